"""MovePosition lending portfolio handler."""

import logging
import re
from dataclasses import dataclass
from typing import Any

from move_defi_tracker.core.models import Position, PositionCategory, Resource
from move_defi_tracker.core.registry import HandlerRegistry, ViewCaller
from move_defi_tracker.protocols.base import BaseProtocolHandler, first_view_value, stablecoin_aware_decimals
from move_defi_tracker.rpc.batch import ViewCallBatcher

logger = logging.getLogger(__name__)

_COIN_SYMBOL = re.compile(r"::coins::(\w+)>")


@dataclass(frozen=True)
class _NoteEntry:
    index: int
    symbol: str
    coin_type: str
    notes: str


@HandlerRegistry.register
class MovePositionHandler(BaseProtocolHandler):
    """
    Handler for MovePosition ``portfolio::Portfolio`` resources.

    Collaterals and liabilities are stored as parallel lists: hex-encoded
    note struct names under ``keys.items`` and note quantities under
    ``items``. Notes are converted to coin amounts with the broker views.

    """

    name = "moveposition"
    protocol_key = "MOVEPOSITION"
    label = "MovePosition"

    def matches(self, type_tag: str) -> bool:
        return "::portfolio::Portfolio" in type_tag

    def decode_coin(self, struct_name: Any) -> tuple[str, str] | None:
        """
        Decode a hex-encoded note struct name into (symbol, coin type).

        Parameters
        ----------
        struct_name : Any
            Hex string such as the encoding of ``DepositNote<0x..::coins::USDC>``

        Returns
        -------
        tuple[str, str] | None
            Symbol and full coin type, or None when undecodable

        """
        if not isinstance(struct_name, str) or not struct_name.startswith("0x"):
            return None
        try:
            decoded = bytes.fromhex(struct_name[2:]).decode("utf-8", errors="replace")
        except ValueError:
            return None

        match = _COIN_SYMBOL.search(decoded)
        if not match:
            return None
        symbol = match.group(1)
        return symbol, f"{self.contract_address}::coins::{symbol}"

    def _entries(self, book: Any) -> list[_NoteEntry]:
        if not isinstance(book, dict):
            return []
        keys = (book.get("keys") or {}).get("items") or []
        items = book.get("items") or []

        entries = []
        for index, key in enumerate(keys):
            notes = items[index] if index < len(items) else None
            if notes is None or self.shift(notes, 0) <= 0:
                continue
            decoded = self.decode_coin(key.get("struct_name") if isinstance(key, dict) else None)
            if decoded is None:
                logger.debug("moveposition: undecodable note key at index %d", index)
                continue
            symbol, coin_type = decoded
            entries.append(_NoteEntry(index=index, symbol=symbol, coin_type=coin_type, notes=str(notes)))
        return entries

    async def handle(
        self,
        resource: Resource,
        account_address: str,
        view_caller: ViewCaller,
    ) -> list[Position]:
        collaterals = self._entries(resource.data.get("collaterals"))
        liabilities = self._entries(resource.data.get("liabilities"))
        sides = (
            ("supply", PositionCategory.LENDING, "calc_coins_from_dnotes", collaterals),
            ("debt", PositionCategory.DEBT, "calc_coins_from_lnotes", liabilities),
        )

        batcher = ViewCallBatcher(self.max_in_flight)
        for side, _, view_name, entries in sides:
            function = f"{self.contract_address}::broker::{view_name}"
            for entry in entries:
                batcher.add_call(
                    f"moveposition {side} {entry.symbol}",
                    lambda function=function, entry=entry: view_caller.view(function, [entry.coin_type], [entry.notes]),
                )
        results = iter(await batcher.execute())

        positions = []
        for side, category, _, entries in sides:
            for entry in entries:
                result = next(results)
                if result is None:
                    continue
                amount = self.shift(first_view_value(result), stablecoin_aware_decimals(entry.symbol))
                position = self.make_position(
                    side=side,
                    category=category,
                    symbol=entry.symbol,
                    amount=amount,
                    type_tag=resource.type_tag,
                    index=entry.index,
                    metadata={"notes": entry.notes, "coin_type": entry.coin_type},
                )
                if position:
                    logger.debug("moveposition %s: %s %s", side, position.raw_value, entry.symbol)
                    positions.append(position)
        return positions
