"""Scan session orchestration: one in-flight scan per address, stale result discard."""

import asyncio
import logging
import re
from collections.abc import Mapping
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from move_defi_tracker.core.models import (
    FetchErrorKind,
    PortfolioSummary,
    Position,
    PositionCategory,
    ScanPhase,
    ScanResult,
    ScanStatus,
)
from move_defi_tracker.core.registry import ResourceFetcher, ViewCaller
from move_defi_tracker.core.scanner import ResourceScanner, StaleScanError
from move_defi_tracker.rpc.client import AccountNotFoundError, LedgerNetworkError

logger = logging.getLogger(__name__)

VALID_ADDRESS = re.compile(r"^0x[a-f0-9]{1,64}$")

ERROR_MESSAGES = {
    FetchErrorKind.NOT_FOUND: "Account not found or has no resources",
    FetchErrorKind.NETWORK: "Network error. Please try again.",
    FetchErrorKind.UNKNOWN: "Failed to scan DeFi positions",
}


def normalize_address(address: str | None) -> str:
    """
    Normalize an account address for use as a scan key.

    Parameters
    ----------
    address : str | None
        User supplied address, with or without the 0x prefix

    Returns
    -------
    str
        Lowercased, 0x-prefixed address, or '' for empty input

    """
    address = (address or "").strip().lower()
    if address and not address.startswith("0x"):
        address = f"0x{address}"
    return address


def is_valid_address(address: str) -> bool:
    return VALID_ADDRESS.match(address) is not None


def classify_fetch_error(error: BaseException) -> FetchErrorKind:
    """Map a resource fetch failure to a user-facing category."""
    if isinstance(error, AccountNotFoundError):
        return FetchErrorKind.NOT_FOUND
    if isinstance(error, LedgerNetworkError):
        return FetchErrorKind.NETWORK

    message = str(error).lower()
    if "not found" in message or "404" in message:
        return FetchErrorKind.NOT_FOUND
    if "network" in message or "fetch" in message:
        return FetchErrorKind.NETWORK
    return FetchErrorKind.UNKNOWN


class ScanSession(BaseModel):
    """Identity of one scan: the address and the generation it was started in."""

    model_config = ConfigDict(frozen=True)

    address: str
    generation: int


class PositionScanService:
    """
    Holds the scan state of the address currently being viewed.

    Only the current session may write positions. Switching to another
    address starts a new generation: scans from older generations still run
    to completion, but their results come back marked stale and are never
    stored. A second request for an address whose scan is in flight joins
    that scan instead of starting another.

    Parameters
    ----------
    fetcher : ResourceFetcher
        Source of account resources
    view_caller : ViewCaller | None
        View function interface (defaults to ``fetcher``)
    scanner : ResourceScanner | None
        Resource scanner

    """

    def __init__(
        self,
        fetcher: ResourceFetcher,
        view_caller: ViewCaller | None = None,
        scanner: ResourceScanner | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.view_caller = view_caller or fetcher
        self.scanner = scanner or ResourceScanner()

        self.session: ScanSession | None = None
        self.status = ScanStatus.IDLE
        self.phase = ScanPhase.IDLE
        self.error: str | None = None
        self.error_kind: FetchErrorKind | None = None
        self.positions: list[Position] = []

        self._generation = 0
        self._inflight: dict[str, tuple[ScanSession, asyncio.Task[ScanResult]]] = {}

    @property
    def address(self) -> str | None:
        return self.session.address if self.session else None

    def is_current(self, session: ScanSession) -> bool:
        return self.session is not None and self.session.generation == session.generation

    async def scan(self, address: str | None) -> ScanResult:
        """
        Scan an address for DeFi positions.

        Parameters
        ----------
        address : str | None
            Account address (normalized before use)

        Returns
        -------
        ScanResult
            Result of the scan; ``stale`` is set when a newer session
            superseded it before it finished

        """
        normalized = normalize_address(address)
        if not normalized:
            self._reset()
            return ScanResult(address="", status=ScanStatus.IDLE, generation=self._generation)

        inflight = self._inflight.get(normalized)
        if inflight is not None:
            session, task = inflight
            if not task.done() and self.is_current(session):
                logger.debug("Scan for %s already in progress, joining", normalized)
                return await asyncio.shield(task)

        return await self._start(normalized)

    async def refetch(self) -> ScanResult:
        """Scan the current address again, ignoring any previous result."""
        if self.session is None:
            return ScanResult(address="", status=ScanStatus.IDLE, generation=self._generation)
        return await self.scan(self.session.address)

    def _reset(self) -> None:
        self._generation += 1
        self.session = None
        self.status = ScanStatus.IDLE
        self.phase = ScanPhase.IDLE
        self.error = None
        self.error_kind = None
        self.positions = []

    async def _start(self, address: str) -> ScanResult:
        if self.session is None or self.session.address != address:
            logger.debug("New address %s, clearing previous positions", address)
            self.positions = []

        self._generation += 1
        session = ScanSession(address=address, generation=self._generation)
        self.session = session
        self.status = ScanStatus.LOADING
        self.phase = ScanPhase.FETCHING
        self.error = None
        self.error_kind = None

        task = asyncio.create_task(self._run(session))
        self._inflight[address] = (session, task)
        try:
            return await asyncio.shield(task)
        finally:
            if task.done() and self._inflight.get(address, (None, None))[1] is task:
                del self._inflight[address]

    def _set_phase(self, session: ScanSession, phase: ScanPhase) -> None:
        if self.is_current(session):
            self.phase = phase

    async def _run(self, session: ScanSession) -> ScanResult:
        address = session.address

        if not is_valid_address(address):
            return self._fail(session, FetchErrorKind.UNKNOWN, f"Invalid account address: {address}")

        logger.info("Scanning %s for DeFi positions", address)
        try:
            resources = await self.fetcher.get_account_resources(address)
        except Exception as e:
            logger.error("DeFi scan fetch failed for %s: %s", address, e)
            kind = classify_fetch_error(e)
            return self._fail(session, kind, ERROR_MESSAGES[kind])

        if not self.is_current(session):
            return self._stale(session)

        try:
            positions = await self.scanner.scan(
                resources,
                address,
                self.view_caller,
                is_current=lambda: self.is_current(session),
                on_phase=lambda phase: self._set_phase(session, phase),
            )
        except StaleScanError:
            return self._stale(session)

        self.positions = positions
        self.status = ScanStatus.DONE
        self.phase = ScanPhase.DONE
        return ScanResult(
            address=address,
            status=ScanStatus.DONE,
            positions=positions,
            generation=session.generation,
        )

    def _fail(self, session: ScanSession, kind: FetchErrorKind, message: str) -> ScanResult:
        if not self.is_current(session):
            return self._stale(session)

        self.positions = []
        self.status = ScanStatus.ERROR
        self.phase = ScanPhase.FAILED
        self.error = message
        self.error_kind = kind
        return ScanResult(
            address=session.address,
            status=ScanStatus.ERROR,
            error=message,
            error_kind=kind,
            generation=session.generation,
        )

    def _stale(self, session: ScanSession) -> ScanResult:
        logger.debug("Discarding stale scan of %s (generation %d)", session.address, session.generation)
        return ScanResult(
            address=session.address,
            status=ScanStatus.DONE,
            generation=session.generation,
            stale=True,
        )

    def summarize(self, prices: Mapping[str, Decimal] | None = None) -> PortfolioSummary:
        """
        Aggregate the current positions.

        Parameters
        ----------
        prices : Mapping[str, Decimal] | None
            USD price per token symbol. Debt counts against the total.

        Returns
        -------
        PortfolioSummary
            Totals per category and protocol in native units, plus the USD
            total of positions whose symbol has a price

        """
        by_category: dict[str, Decimal] = {}
        by_protocol: dict[str, Decimal] = {}
        total_usd: Decimal | None = Decimal(0) if prices is not None else None

        for position in self.positions:
            amount = Decimal(str(position.numeric_value))
            by_category[position.category] = by_category.get(position.category, Decimal(0)) + amount
            by_protocol[position.protocol_name] = by_protocol.get(position.protocol_name, Decimal(0)) + amount

            if total_usd is not None and position.token_symbol and position.token_symbol in prices:
                usd = amount * Decimal(str(prices[position.token_symbol]))
                total_usd += -usd if position.category == PositionCategory.DEBT else usd

        return PortfolioSummary(
            address=self.address or "",
            positions=list(self.positions),
            by_category=by_category,
            by_protocol=by_protocol,
            total_usd_value=total_usd,
        )
