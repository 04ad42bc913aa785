"""Protocol, pattern, and receipt token tables."""

from move_defi_tracker.data.loader import (
    load_lp_coin_markers,
    load_pattern_rules,
    load_protocols,
    load_receipt_token_rules,
)

__all__ = [
    "load_lp_coin_markers",
    "load_pattern_rules",
    "load_protocols",
    "load_receipt_token_rules",
]
