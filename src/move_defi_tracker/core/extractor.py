"""Schema-agnostic value extraction from nested Move resource data."""

import math
import re
from collections.abc import Iterable
from decimal import Decimal, InvalidOperation
from typing import Any, TypeAlias

from move_defi_tracker.core.models import ExtractedValue

# Resource data as decoded from the ledger JSON: maps, sequences and leaves
ResourceValue: TypeAlias = dict[str, "ResourceValue"] | list["ResourceValue"] | str | int | float | bool | None

DEFAULT_MAX_DEPTH = 6
DEFAULT_DECIMALS = 8

# Field names that usually hold an amount
VALUE_FIELDS = (
    "value",
    "amount",
    "balance",
    "coin",
    "total",
    "shares",
    "deposited",
    "borrowed",
    "staked",
    "collateral",
    "principal",
    "debt",
    "supply",
    "deposit_notes",
    "loan_notes",
    "supply_amount",
    "borrow_amount",
    "available",
    "locked",
    "pending",
)

# Field names that usually hold a sequence of entries
CONTAINER_FIELDS = ("data", "inner", "items", "positions", "entries", "handle", "vec")

_NUMERIC_STRING = re.compile(r"^\d+(\.\d+)?$")


def _parse_raw_scalar(value: Any) -> int | None:
    """Parse a leaf into a positive integer, or None when it is not one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float):
        if not math.isfinite(value) or value <= 0:
            return None
        return int(value) or None
    if isinstance(value, str) and _NUMERIC_STRING.match(value):
        raw = int(Decimal(value))
        return raw if raw > 0 else None
    return None


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def extract_candidate_values(
    record: ResourceValue,
    max_depth: int = DEFAULT_MAX_DEPTH,
    _depth: int = 0,
    _path: str = "",
) -> list[ExtractedValue]:
    """
    Walk a resource and collect candidate raw amounts.

    Amount-like fields holding a scalar become candidates at the current
    depth; amount-like fields holding a map are descended into. Sequences
    under container fields contribute their scalar elements directly and
    their map elements by recursion. Maps and sequences under any other key
    are explored as well, so unknown layouts are still searched; maps under
    container fields are not. Malformed nodes are skipped.

    Parameters
    ----------
    record : ResourceValue
        Resource data
    max_depth : int
        Deepest level that is still inspected

    Returns
    -------
    list[ExtractedValue]
        Candidates tagged with their path and depth

    """
    if _depth > max_depth or not isinstance(record, dict):
        return []

    values: list[ExtractedValue] = []

    for field in VALUE_FIELDS:
        if field not in record:
            continue
        node = record[field]
        path = _join(_path, field)
        if isinstance(node, dict):
            values.extend(extract_candidate_values(node, max_depth, _depth + 1, path))
        elif isinstance(node, list):
            values.extend(_walk_sequence(node, path, max_depth, _depth, scalars=False))
        else:
            raw = _parse_raw_scalar(node)
            if raw is not None:
                values.append(ExtractedValue(raw_integer=raw, source_field_path=path, depth=_depth))

    for field in CONTAINER_FIELDS:
        node = record.get(field)
        if isinstance(node, list):
            values.extend(_walk_sequence(node, _join(_path, field), max_depth, _depth, scalars=True))

    for key, node in record.items():
        if key in VALUE_FIELDS or key in CONTAINER_FIELDS:
            continue
        if isinstance(node, dict):
            values.extend(extract_candidate_values(node, max_depth, _depth + 1, _join(_path, key)))
        elif isinstance(node, list):
            values.extend(_walk_sequence(node, _join(_path, key), max_depth, _depth, scalars=False))

    return values


def _walk_sequence(
    items: list[ResourceValue],
    path: str,
    max_depth: int,
    depth: int,
    *,
    scalars: bool,
) -> list[ExtractedValue]:
    values: list[ExtractedValue] = []
    for index, item in enumerate(items):
        item_path = f"{path}[{index}]"
        if isinstance(item, dict):
            values.extend(extract_candidate_values(item, max_depth, depth + 1, item_path))
        elif scalars:
            raw = _parse_raw_scalar(item)
            if raw is not None:
                values.append(ExtractedValue(raw_integer=raw, source_field_path=item_path, depth=depth))
    return values


def select_raw_value(candidates: Iterable[ExtractedValue]) -> int:
    """
    Reduce candidates to a single raw amount.

    The largest value is kept per depth, then the largest of those wins.
    Echoes of one balance at several nesting levels therefore count once.

    """
    by_depth: dict[int, int] = {}
    for candidate in candidates:
        if candidate.raw_integer > by_depth.get(candidate.depth, 0):
            by_depth[candidate.depth] = candidate.raw_integer
    return max(by_depth.values(), default=0)


def calculate_total_value(
    record: ResourceValue,
    decimals: int = DEFAULT_DECIMALS,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Decimal:
    """
    Best-effort human amount held in a resource.

    Parameters
    ----------
    record : ResourceValue
        Resource data
    decimals : int
        Token decimals used to shift the raw amount
    max_depth : int
        Extraction depth bound

    Returns
    -------
    Decimal
        Amount in token units, zero when nothing was found

    """
    raw = select_raw_value(extract_candidate_values(record, max_depth))
    if raw <= 0:
        return Decimal(0)
    return to_human_amount(raw, decimals)


def to_human_amount(raw: int | str | Decimal, decimals: int) -> Decimal:
    """Shift a smallest-unit amount by ``10**decimals``."""
    return Decimal(str(raw)) / (Decimal(10) ** decimals)


def format_amount(amount: Decimal | float) -> str:
    """Render an amount with four fractional digits."""
    return f"{Decimal(str(amount)):.4f}"


def parse_positive_numeric(value: Any) -> Decimal:
    """
    Parse a leaf or a ``{value|amount|coin: ...}`` wrapper into a positive number.

    Returns zero for anything that is not a positive finite number.

    """
    if value is None or isinstance(value, bool):
        return Decimal(0)
    if isinstance(value, int):
        return Decimal(value) if value > 0 else Decimal(0)
    if isinstance(value, float):
        return Decimal(str(value)) if math.isfinite(value) and value > 0 else Decimal(0)
    if isinstance(value, str):
        if not _NUMERIC_STRING.match(value):
            return Decimal(0)
        try:
            parsed = Decimal(value)
        except InvalidOperation:
            return Decimal(0)
        return parsed if parsed > 0 else Decimal(0)
    if isinstance(value, dict):
        for key in ("value", "amount", "coin"):
            if key in value:
                return parse_positive_numeric(value[key])
    return Decimal(0)


def collect_numeric_fields(
    node: ResourceValue,
    field_names: frozenset[str] | set[str],
    max_depth: int = 8,
    _depth: int = 0,
) -> list[Decimal]:
    """Collect every positive value stored under one of ``field_names``, at any depth."""
    if node is None or _depth > max_depth:
        return []

    if isinstance(node, list):
        found: list[Decimal] = []
        for item in node:
            found.extend(collect_numeric_fields(item, field_names, max_depth, _depth + 1))
        return found

    if not isinstance(node, dict):
        return []

    found = []
    for key, value in node.items():
        if key in field_names:
            numeric = parse_positive_numeric(value)
            if numeric > 0:
                found.append(numeric)
        if isinstance(value, dict | list):
            found.extend(collect_numeric_fields(value, field_names, max_depth, _depth + 1))
    return found


def sum_fields(node: ResourceValue, fields: Iterable[str]) -> Decimal:
    return sum(collect_numeric_fields(node, frozenset(fields)), Decimal(0))


def pick_largest_field(node: ResourceValue, fields: Iterable[str]) -> Decimal:
    return max(collect_numeric_fields(node, frozenset(fields)), default=Decimal(0))


def format_by_likely_decimals(raw: Decimal | int, preferred_decimals: tuple[int, ...] = (6, 8)) -> str:
    """
    Format a raw amount whose decimals are unknown.

    Tries each candidate decimal count in turn and keeps the first that lands
    in a plausible range; falls back to the raw figure.

    """
    raw = Decimal(raw)
    if raw <= 0:
        return "0"

    for decimals in preferred_decimals:
        normalized = to_human_amount(raw, decimals)
        if Decimal("0.0001") <= normalized < Decimal(1_000_000_000):
            return format_amount(normalized)

    return format_amount(raw)
