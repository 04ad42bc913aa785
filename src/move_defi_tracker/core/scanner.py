"""Resource scanner that turns an account's resources into positions."""

import logging
from collections.abc import Callable, Sequence

from move_defi_tracker import protocols  # noqa: F401
from move_defi_tracker.adapters.base import Adapter
from move_defi_tracker.adapters.matcher import ALL_ADAPTERS, match_adapters
from move_defi_tracker.config import ScannerSettings
from move_defi_tracker.core.classifier import COIN_STORE, PatternCatalog, dedup_key, position_name
from move_defi_tracker.core.extractor import calculate_total_value, format_amount
from move_defi_tracker.core.models import Position, PositionSource, ProtocolDescriptor, Resource, ScanPhase
from move_defi_tracker.core.registry import HandlerRegistry, ProtocolRegistry, ViewCaller
from move_defi_tracker.core.sequencer import SeenTypes, finalize
from move_defi_tracker.protocols.base import BaseProtocolHandler

logger = logging.getLogger(__name__)


class StaleScanError(Exception):
    """The scan was superseded before it finished."""


def _always_current() -> bool:
    return True


class ResourceScanner:
    """
    Classifies an account's resources into DeFi positions.

    A scan runs in phases:

    1. Each resource is filtered (plain coin stores are skipped, receipt
       tokens become deposits, LP coins pass through), checked against the
       pattern catalog and protocol registry, then decoded by a specialized
       handler or valued generically. LP coin stores are left for the
       adapter pass.
    2. Index-free handlers query the ledger once for the account.
    3. Declarative adapters get a pass over every resource not yet consumed.
       LP coin stores no adapter claims are valued generically.

    Positions are then sorted. A resource type is consumed at most once per
    scan across all phases.

    Parameters
    ----------
    registry : ProtocolRegistry | None
        Protocol descriptors
    catalog : PatternCatalog | None
        Pattern rules
    handlers : Sequence[BaseProtocolHandler] | None
        Specialized handlers (defaults to every registered handler)
    adapters : Sequence[Adapter]
        Adapters in priority order
    settings : ScannerSettings | None
        Scan tunables

    """

    def __init__(
        self,
        registry: ProtocolRegistry | None = None,
        catalog: PatternCatalog | None = None,
        handlers: Sequence[BaseProtocolHandler] | None = None,
        adapters: Sequence[Adapter] = ALL_ADAPTERS,
        settings: ScannerSettings | None = None,
    ) -> None:
        self.registry = registry or ProtocolRegistry()
        self.catalog = catalog or PatternCatalog()
        self.settings = settings or ScannerSettings()
        self.adapters = adapters

        if handlers is None:
            handlers = [
                handler_class(self.registry, self.settings.max_concurrent_views)
                for handler_class in HandlerRegistry.get_all_handlers()
            ]
        self.resource_handlers = [handler for handler in handlers if not handler.index_free]
        self.account_handlers = [handler for handler in handlers if handler.index_free]

    def _is_lp_coin_store(self, type_tag: str) -> bool:
        return COIN_STORE in type_tag and self.catalog.is_lp_coin(type_tag)

    def find_handler(self, type_tag: str) -> BaseProtocolHandler | None:
        for handler in self.resource_handlers:
            if handler.matches(type_tag):
                return handler
        return None

    async def scan(
        self,
        resources: Sequence[Resource],
        account_address: str,
        view_caller: ViewCaller,
        is_current: Callable[[], bool] = _always_current,
        on_phase: Callable[[ScanPhase], None] | None = None,
    ) -> list[Position]:
        """
        Detect every position held in an account's resources.

        Parameters
        ----------
        resources : Sequence[Resource]
            Full resource list of the account
        account_address : str
            Normalized account address
        view_caller : ViewCaller
            Ledger view function interface
        is_current : Callable[[], bool]
            Checked before each result is committed
        on_phase : Callable[[ScanPhase], None] | None
            Notified as the scan moves between stages

        Returns
        -------
        list[Position]
            Positions sorted by category and value

        Raises
        ------
        StaleScanError
            If ``is_current`` turns false before the scan completes

        """
        positions: list[Position] = []
        seen = SeenTypes()
        notify = on_phase or (lambda phase: None)
        notify(ScanPhase.CLASSIFYING)

        def commit(new_positions: list[Position]) -> None:
            if not is_current():
                raise StaleScanError(account_address)
            positions.extend(new_positions)

        for index, resource in enumerate(resources):
            type_tag = resource.type_tag
            lp_coin = self._is_lp_coin_store(type_tag)

            if COIN_STORE in type_tag and not lp_coin:
                receipt = self._receipt_position(resource, index, seen)
                if receipt:
                    commit([receipt])
                continue

            protocol = self.registry.identify_protocol(type_tag)
            if not self.catalog.is_defi_resource(type_tag) and protocol is None:
                continue

            if seen.seen(type_tag):
                continue

            handler = self.find_handler(type_tag)
            if handler is not None:
                seen.mark(type_tag)
                commit(await self._run_handler(handler, resource, account_address, view_caller))
                continue

            if lp_coin:
                # Adapters know the LP decimals; valued generically only if none claims it
                continue

            generic = self._generic_position(resource, index, protocol)
            if generic:
                seen.mark(type_tag)
                commit([generic])

        for handler in self.account_handlers:
            try:
                found = await handler.scan_account(account_address, view_caller)
            except Exception as e:
                logger.warning("Handler %s failed for %s: %s", handler.name, account_address, e)
                continue
            commit(found)

        for index, resource in enumerate(resources):
            if seen.seen(resource.type_tag):
                continue
            position = match_adapters(
                resource,
                index,
                adapters=self.adapters,
                registry=self.registry,
                dust_threshold=self.settings.adapter_dust_threshold,
            )
            if position is None and self._is_lp_coin_store(resource.type_tag):
                position = self._generic_position(
                    resource, index, self.registry.identify_protocol(resource.type_tag)
                )
            if position:
                seen.mark(resource.type_tag)
                commit([position])

        if not is_current():
            raise StaleScanError(account_address)

        notify(ScanPhase.DEDUPLICATING)
        logger.info(
            "Found %d DeFi positions for %s (%d resource types consumed)",
            len(positions),
            account_address,
            len(seen),
        )
        ordered = finalize(positions)
        notify(ScanPhase.SORTED)
        return ordered

    async def _run_handler(
        self,
        handler: BaseProtocolHandler,
        resource: Resource,
        account_address: str,
        view_caller: ViewCaller,
    ) -> list[Position]:
        try:
            return await handler.handle(resource, account_address, view_caller)
        except Exception as e:
            logger.warning("Handler %s failed on %s: %s", handler.name, resource.type_tag, e)
            return []

    def _receipt_position(self, resource: Resource, index: int, seen: SeenTypes) -> Position | None:
        rule = self.catalog.match_receipt_token(resource.type_tag)
        if rule is None or seen.seen(resource.type_tag):
            return None

        # Consumed even when dust, so no adapter revalues it
        seen.mark(resource.type_tag)
        value = calculate_total_value(resource.data, self.settings.default_decimals, self.settings.max_depth)
        if value < self.settings.dust_threshold:
            return None

        protocol = self.registry.get(rule.protocol)
        label = protocol.display_name if protocol else rule.protocol
        logger.debug("Receipt token: %s %s", label, format_amount(value))
        return Position(
            id=f"{rule.protocol.lower()}_receipt_{index}",
            display_name=f"{label} Deposit",
            category=rule.category,
            raw_value=format_amount(value),
            numeric_value=float(value),
            source_type_tag=resource.type_tag,
            protocol=protocol,
            source=PositionSource.RPC,
        )

    def _generic_position(
        self,
        resource: Resource,
        index: int,
        protocol: ProtocolDescriptor | None,
    ) -> Position | None:
        value = calculate_total_value(resource.data, self.settings.default_decimals, self.settings.max_depth)
        if value <= 0 or value < self.settings.dust_threshold:
            logger.debug("Zero-value resource: %s", resource.type_tag[:80])
            return None

        category = self.catalog.categorize(resource.type_tag, resource.data)
        name = position_name(resource.type_tag, protocol)
        prefix = protocol.key.lower() if protocol else "defi"
        logger.debug("Generic position: %s (%s) %s", name, category, format_amount(value))
        return Position(
            id=f"{prefix}_{category.lower()}_{index}",
            display_name=name,
            category=category,
            raw_value=format_amount(value),
            numeric_value=float(value),
            source_type_tag=resource.type_tag,
            protocol=protocol,
            source=PositionSource.RPC,
            metadata={"dedup_key": dedup_key(resource.type_tag)},
        )
