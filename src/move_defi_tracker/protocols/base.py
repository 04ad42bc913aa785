"""Base protocol handler classes with common functionality."""

import logging
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Any, ClassVar

from move_defi_tracker.core.extractor import format_amount, to_human_amount
from move_defi_tracker.core.models import (
    Position,
    PositionCategory,
    PositionSource,
    ProtocolDescriptor,
    Resource,
)
from move_defi_tracker.core.registry import ProtocolRegistry, ViewCaller
from move_defi_tracker.rpc.batch import DEFAULT_MAX_IN_FLIGHT

logger = logging.getLogger(__name__)

STABLECOINS = frozenset({"USDC", "USDT"})


def stablecoin_aware_decimals(symbol: str) -> int:
    """Decimals for a coin symbol: 6 for USD stablecoins, 8 otherwise."""
    return 6 if symbol.upper() in STABLECOINS else 8


def first_view_value(result: list[Any] | None) -> Any:
    """First returned value of a view call, or None for an empty result."""
    if not result:
        return None
    return result[0]


class BaseProtocolHandler(ABC):
    """
    Abstract base class for resource-driven protocol handlers.

    A handler owns one resource layout. It decodes every sub-entry of a
    matching resource and may call view functions to turn internal shares or
    notes into coin amounts.

    Attributes
    ----------
    name : str
        Unique handler identifier (must be set in subclass)
    protocol_key : str
        Key of the protocol descriptor positions are attributed to
    label : str
        Short name used in position names (e.g., 'Joule Supply')
    dust_threshold : Decimal
        Amounts below this are dropped
    index_free : bool
        True for handlers that query the ledger once per scan instead of
        decoding a resource

    """

    name: ClassVar[str] = ""
    protocol_key: ClassVar[str] = ""
    label: ClassVar[str] = ""
    dust_threshold: ClassVar[Decimal] = Decimal("0.001")
    index_free: ClassVar[bool] = False

    def __init__(
        self,
        registry: ProtocolRegistry | None = None,
        max_in_flight: int = DEFAULT_MAX_IN_FLIGHT,
    ) -> None:
        """
        Initialize the protocol handler.

        Parameters
        ----------
        registry : ProtocolRegistry | None
            Registry used to resolve the protocol descriptor
        max_in_flight : int
            Maximum concurrent view calls per resource

        """
        if not self.name:
            msg = f"{self.__class__.__name__} must define 'name' attribute"
            raise ValueError(msg)
        if not self.protocol_key:
            msg = f"{self.__class__.__name__} must define 'protocol_key' attribute"
            raise ValueError(msg)

        registry = registry or ProtocolRegistry()
        descriptor = registry.get(self.protocol_key)
        if descriptor is None:
            msg = f"Unknown protocol '{self.protocol_key}' for handler {self.name}"
            raise ValueError(msg)

        self.protocol: ProtocolDescriptor = descriptor
        self.max_in_flight = max_in_flight

    @property
    def contract_address(self) -> str:
        """Deployment address of the protocol's modules."""
        return min(self.protocol.known_addresses)

    @property
    def display_label(self) -> str:
        return self.label or self.protocol.display_name

    @abstractmethod
    def matches(self, type_tag: str) -> bool:
        """
        Check if this handler owns a resource type.

        Parameters
        ----------
        type_tag : str
            Resource type tag

        Returns
        -------
        bool
            True if handler can decode this resource

        """
        ...

    @abstractmethod
    async def handle(
        self,
        resource: Resource,
        account_address: str,
        view_caller: ViewCaller,
    ) -> list[Position]:
        """
        Decode all positions held in a resource.

        Must be implemented by subclasses. A failure on one sub-entry must
        not prevent the others from being returned.

        Parameters
        ----------
        resource : Resource
            Matching resource
        account_address : str
            Owner of the resource
        view_caller : ViewCaller
            Ledger view function interface

        Returns
        -------
        list[Position]
            Positions in entry order

        """
        ...

    def make_position(
        self,
        *,
        side: str,
        category: PositionCategory,
        symbol: str,
        amount: Decimal,
        type_tag: str,
        index: int,
        source: PositionSource = PositionSource.VIEW,
        metadata: dict[str, Any] | None = None,
    ) -> Position | None:
        """
        Build a position, or None when the amount is dust.

        Parameters
        ----------
        side : str
            'supply' or 'debt'
        category : PositionCategory
            Position category
        symbol : str
            Token symbol
        amount : Decimal
            Amount in token units
        type_tag : str
            Source resource type tag
        index : int
            Entry index within the resource, used to keep ids unique

        Returns
        -------
        Position | None
            Position, or None for amounts below the dust threshold

        """
        if amount < self.dust_threshold:
            return None

        return Position(
            id=f"{self.name}_{side}_{symbol.lower()}_{index}",
            display_name=f"{self.display_label} {side.capitalize()}",
            category=category,
            raw_value=format_amount(amount),
            numeric_value=float(amount),
            token_symbol=symbol,
            source_type_tag=type_tag,
            protocol=self.protocol,
            source=source,
            metadata=metadata or {},
        )

    def shift(self, raw: Any, decimals: int) -> Decimal:
        """Convert a raw integer-like ledger value into token units."""
        if raw is None or isinstance(raw, bool):
            return Decimal(0)
        try:
            value = Decimal(str(raw))
        except InvalidOperation:
            logger.debug("%s: ignoring non-numeric amount %r", self.name, raw)
            return Decimal(0)
        if not value.is_finite() or value <= 0:
            return Decimal(0)
        return to_human_amount(value, decimals)


class AccountScanHandler(BaseProtocolHandler):
    """
    Handler that finds positions through view calls alone.

    Runs once per scan regardless of which resources the account holds.

    """

    index_free: ClassVar[bool] = True

    def matches(self, type_tag: str) -> bool:
        return False

    async def handle(
        self,
        resource: Resource,
        account_address: str,
        view_caller: ViewCaller,
    ) -> list[Position]:
        return []

    @abstractmethod
    async def scan_account(self, account_address: str, view_caller: ViewCaller) -> list[Position]:
        """
        Query the ledger for all positions of an account.

        Parameters
        ----------
        account_address : str
            Account address
        view_caller : ViewCaller
            Ledger view function interface

        Returns
        -------
        list[Position]
            Detected positions

        """
        ...
