"""Bounded-concurrency batching for independent view calls."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_MAX_IN_FLIGHT = 8


class ViewCallBatcher:
    """
    Runs independent per-entry lookups concurrently with a bounded in-flight limit.

    Each call is a zero-argument coroutine factory. Results come back in the
    order calls were added; a call that raises yields None and is logged, so
    one failing entry never affects its siblings.

    Parameters
    ----------
    max_in_flight : int
        Maximum number of calls awaiting the ledger at once

    """

    def __init__(self, max_in_flight: int = DEFAULT_MAX_IN_FLIGHT) -> None:
        self.max_in_flight = max(1, max_in_flight)
        self._calls: list[tuple[str, Callable[[], Awaitable[Any]]]] = []

    def add_call(self, label: str, factory: Callable[[], Awaitable[Any]]) -> None:
        """
        Add a call to the batch.

        Parameters
        ----------
        label : str
            Description used in diagnostics (e.g., 'echelon supply 0xabc')
        factory : Callable[[], Awaitable[Any]]
            Creates the coroutine to run

        """
        self._calls.append((label, factory))

    async def execute(self) -> list[Any]:
        """
        Execute all batched calls.

        Returns
        -------
        list[Any]
            Results for each call in order (None if call failed)

        """
        if not self._calls:
            return []

        calls, self._calls = self._calls, []
        semaphore = asyncio.Semaphore(self.max_in_flight)

        async def run(label: str, factory: Callable[[], Awaitable[Any]]) -> Any:
            async with semaphore:
                try:
                    return await factory()
                except Exception as e:
                    logger.warning("Skipping %s: %s", label, e)
                    return None

        return list(await asyncio.gather(*(run(label, factory) for label, factory in calls)))

    def clear(self) -> None:
        """Clear all pending calls without executing."""
        self._calls = []

    @property
    def call_count(self) -> int:
        return len(self._calls)
