"""Protocol and pattern table loader."""

import re
from functools import cache
from pathlib import Path
from typing import Any

import yaml

from move_defi_tracker.core.models import (
    PatternRule,
    PositionCategory,
    ProtocolCategory,
    ProtocolDescriptor,
    ReceiptTokenRule,
)

DATA_DIR = Path(__file__).parent


def _load_yaml(name: str) -> dict[str, Any]:
    path = DATA_DIR / name
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


@cache
def load_protocols() -> tuple[ProtocolDescriptor, ...]:
    """
    Load protocol descriptors from protocols.yaml.

    Returns
    -------
    tuple[ProtocolDescriptor, ...]
        Descriptors in file order

    """
    raw = _load_yaml("protocols.yaml").get("protocols", {})
    return tuple(
        ProtocolDescriptor(
            key=key,
            display_name=entry["name"],
            website=entry.get("website"),
            category=ProtocolCategory(entry["category"]),
            known_addresses=frozenset(addr.lower() for addr in entry.get("addresses") or []),
            keywords=frozenset(keyword.lower() for keyword in entry.get("keywords") or []),
        )
        for key, entry in raw.items()
    )


@cache
def load_pattern_rules() -> tuple[PatternRule, ...]:
    """
    Load the pattern catalog, sorted by ascending priority.

    Sorting is stable, so rules sharing a priority keep their file order.

    Returns
    -------
    tuple[PatternRule, ...]
        Pattern rules in evaluation order

    """
    raw = _load_yaml("patterns.yaml").get("patterns", [])
    rules = [
        PatternRule(
            matcher=re.compile(entry["regex"], re.IGNORECASE),
            category=PositionCategory(entry["category"]),
            priority=int(entry["priority"]),
        )
        for entry in raw
    ]
    return tuple(sorted(rules, key=lambda rule: rule.priority))


@cache
def load_receipt_token_rules() -> tuple[ReceiptTokenRule, ...]:
    """Load receipt token rules in file order."""
    raw = _load_yaml("patterns.yaml").get("receipt_tokens", [])
    return tuple(
        ReceiptTokenRule(
            matcher=re.compile(entry["regex"], re.IGNORECASE),
            protocol=entry["protocol"],
            category=PositionCategory(entry["category"]),
        )
        for entry in raw
    )


@cache
def load_lp_coin_markers() -> tuple[str, ...]:
    """Load substrings that mark a coin store as an LP token holding."""
    return tuple(_load_yaml("patterns.yaml").get("lp_coin_markers", []))
