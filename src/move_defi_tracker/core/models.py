"""Data models for resources, protocols, positions, and scan results."""

import re
from decimal import Decimal
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PositionCategory(StrEnum):
    """Category of a detected DeFi position."""

    LENDING = "Lending"
    STAKING = "Staking"
    LIQUIDITY = "Liquidity"
    FARMING = "Farming"
    YIELD = "Yield"
    CDP = "CDP"
    DEBT = "Debt"
    DEFI = "DeFi"


# Sort rank used when ordering the final position list
CATEGORY_ORDER: dict[PositionCategory, int] = {category: rank for rank, category in enumerate(PositionCategory)}


class ProtocolCategory(StrEnum):
    """Kind of protocol a descriptor represents."""

    LENDING = "Lending"
    DEX = "DEX"
    CDP = "CDP"
    LIQUID_STAKING = "Liquid Staking"


class PositionSource(StrEnum):
    """How a position was detected."""

    RPC = "rpc"
    VIEW = "view"
    ADAPTER = "adapter"


class ScanStatus(StrEnum):
    """Overall status of a scan as reported to the caller."""

    IDLE = "idle"
    LOADING = "loading"
    ERROR = "error"
    DONE = "done"


class ScanPhase(StrEnum):
    """Internal stage of a single scan."""

    IDLE = "idle"
    FETCHING = "fetching"
    CLASSIFYING = "classifying"
    DEDUPLICATING = "deduplicating"
    SORTED = "sorted"
    DONE = "done"
    FAILED = "failed"


class FetchErrorKind(StrEnum):
    """Category of a resource fetch failure."""

    NETWORK = "network"
    NOT_FOUND = "not_found"
    UNKNOWN = "unknown"


class ProtocolDescriptor(BaseModel):
    """
    Static identity of a known protocol.

    Attributes
    ----------
    key : str
        Registry key (e.g., 'ECHELON')
    display_name : str
        Human readable name
    website : str | None
        Protocol website
    category : ProtocolCategory
        Kind of protocol
    known_addresses : frozenset[str]
        Lowercased contract addresses deployed by the protocol
    keywords : frozenset[str]
        Lowercased substrings that hint at the protocol in a type tag

    """

    model_config = ConfigDict(frozen=True)

    key: str
    display_name: str
    website: str | None = None
    category: ProtocolCategory
    known_addresses: frozenset[str] = frozenset()
    keywords: frozenset[str] = frozenset()


class PatternRule(BaseModel):
    """
    Type tag pattern mapped to a position category.

    Attributes
    ----------
    matcher : re.Pattern
        Case-insensitive compiled expression
    category : PositionCategory
        Category assigned on match
    priority : int
        Lower numbers are tried first

    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    matcher: re.Pattern
    category: PositionCategory
    priority: int

    def matches(self, type_tag: str) -> bool:
        return self.matcher.search(type_tag) is not None


class ReceiptTokenRule(BaseModel):
    """Deposit receipt token held in a coin store (e.g., ecUSDC, stMOVE)."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    matcher: re.Pattern
    protocol: str
    category: PositionCategory

    def matches(self, type_tag: str) -> bool:
        return self.matcher.search(type_tag) is not None


class Resource(BaseModel):
    """
    Account resource as returned by the ledger.

    Attributes
    ----------
    type_tag : str
        Fully qualified, generic-parameterized Move type
    data : dict
        Nested resource data (maps, lists, and string/number leaves)

    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type_tag: str = Field(alias="type")
    data: dict[str, Any] = Field(default_factory=dict)


class ExtractedValue(BaseModel):
    """Candidate raw value found while walking a resource."""

    model_config = ConfigDict(frozen=True)

    raw_integer: int
    source_field_path: str
    depth: int


class Position(BaseModel):
    """
    Normalized DeFi position produced by a scan.

    Attributes
    ----------
    id : str
        Identifier, stable within one scan
    display_name : str
        Human readable label
    category : PositionCategory
        Position category used for ordering
    raw_value : str
        Decimal string in human units (already decimal-shifted)
    numeric_value : float
        Same amount as a float, used for sorting
    token_symbol : str | None
        Token symbol when known
    source_type_tag : str
        Type tag of the resource the position came from
    protocol : ProtocolDescriptor | None
        Identified protocol, if any
    source : PositionSource
        Detection path
    metadata : dict
        Handler or adapter specific descriptive fields

    """

    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    category: PositionCategory
    raw_value: str
    numeric_value: float
    token_symbol: str | None = None
    source_type_tag: str
    protocol: ProtocolDescriptor | None = None
    source: PositionSource = PositionSource.RPC
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def protocol_name(self) -> str:
        return self.protocol.display_name if self.protocol else "DeFi"


class ScanResult(BaseModel):
    """
    Outcome of one scan for one address.

    Attributes
    ----------
    address : str
        Normalized account address
    status : ScanStatus
        Overall status
    positions : list[Position]
        Sorted positions (empty on error)
    error : str | None
        Human readable error message
    error_kind : FetchErrorKind | None
        Category of the fetch failure
    generation : int
        Session generation that produced this result
    stale : bool
        True when the session was superseded before the scan finished

    """

    address: str
    status: ScanStatus
    positions: list[Position] = Field(default_factory=list)
    error: str | None = None
    error_kind: FetchErrorKind | None = None
    generation: int = 0
    stale: bool = False


class PortfolioSummary(BaseModel):
    """
    Aggregated view over the positions of one scan.

    Attributes
    ----------
    address : str
        Account address
    positions : list[Position]
        All detected positions
    by_category : dict[str, Decimal]
        Native unit totals per category
    by_protocol : dict[str, Decimal]
        Native unit totals per protocol name
    total_usd_value : Decimal | None
        USD total when a price map was supplied

    """

    address: str
    positions: list[Position]
    by_category: dict[str, Decimal] = Field(default_factory=dict)
    by_protocol: dict[str, Decimal] = Field(default_factory=dict)
    total_usd_value: Decimal | None = None
