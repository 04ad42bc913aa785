"""Declarative protocol adapters."""

from move_defi_tracker.adapters.base import Adapter
from move_defi_tracker.adapters.matcher import ADAPTER_DUST_THRESHOLD, ALL_ADAPTERS, match_adapters

__all__ = [
    "ADAPTER_DUST_THRESHOLD",
    "ALL_ADAPTERS",
    "Adapter",
    "match_adapters",
]
