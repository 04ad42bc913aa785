"""Declarative adapter model and shared parsing helpers."""

from collections.abc import Callable, Iterable
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict

from move_defi_tracker.core.extractor import format_amount, parse_positive_numeric, to_human_amount
from move_defi_tracker.core.models import PositionCategory

ParseFn = Callable[[dict[str, Any]], str | None]
TypeFilterFn = Callable[[str], bool]
AugmentFn = Callable[[str, dict[str, Any], float], dict[str, Any]]


class Adapter(BaseModel):
    """
    Declarative rule for a resource layout that needs no view call.

    Attributes
    ----------
    id : str
        Unique adapter identifier (e.g., 'razor_lp')
    name : str
        Position name
    position_type : PositionCategory
        Category of emitted positions
    search_string : str
        Substring the type tag must contain
    parse : ParseFn
        Turns resource data into a decimal string, or None
    protocol_key : str
        Protocol descriptor the position is attributed to
    type_filter : TypeFilterFn | None
        Extra predicate on the type tag
    augment : AugmentFn | None
        Adds descriptive metadata to the emitted position

    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    position_type: PositionCategory
    search_string: str
    parse: ParseFn
    protocol_key: str
    type_filter: TypeFilterFn | None = None
    augment: AugmentFn | None = None

    def accepts(self, type_tag: str) -> bool:
        if self.search_string not in type_tag:
            return False
        return self.type_filter is None or self.type_filter(type_tag)


def lookup(data: Any, path: str) -> Any:
    """Follow a dotted path through nested maps, returning None when it breaks."""
    node = data
    for key in path.split("."):
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def first_positive(data: dict[str, Any], *paths: str) -> Decimal:
    """First positive amount found among ``paths``, tried in order."""
    for path in paths:
        value = parse_positive_numeric(lookup(data, path))
        if value > 0:
            return value
    return Decimal(0)


def sum_entries(data: dict[str, Any], list_paths: Iterable[str], amount_paths: Iterable[str]) -> Decimal:
    """
    Sum the amounts of every entry in the first non-empty list found.

    Parameters
    ----------
    data : dict
        Resource data
    list_paths : Iterable[str]
        Candidate dotted paths to an entry list, tried in order
    amount_paths : Iterable[str]
        Paths inside an entry holding its amount, tried in order

    Returns
    -------
    Decimal
        Raw total

    """
    amount_paths = tuple(amount_paths)
    for path in list_paths:
        entries = lookup(data, path)
        if isinstance(entries, list) and entries:
            return sum(
                (first_positive(entry, *amount_paths) for entry in entries if isinstance(entry, dict)),
                Decimal(0),
            )
    return Decimal(0)


def scaled(raw: Decimal | int, decimals: int) -> str:
    """Format a raw amount shifted by ``decimals``."""
    return format_amount(to_human_amount(raw, decimals))
