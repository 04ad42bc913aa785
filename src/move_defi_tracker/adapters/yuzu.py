"""Yuzu CLMM DEX adapters."""

from typing import Any

from move_defi_tracker.adapters.base import Adapter, first_positive, scaled
from move_defi_tracker.core.models import PositionCategory


def parse_clmm_liquidity(data: dict[str, Any]) -> str | None:
    """Concentrated liquidity is reported in raw liquidity units."""
    liquidity = first_positive(data, "liquidity", "amount")
    if liquidity <= 0:
        return None
    return str(int(liquidity))


ADAPTERS = (
    Adapter(
        id="yuzu_liquidity",
        name="Yuzu LP Position",
        position_type=PositionCategory.LIQUIDITY,
        search_string="::clmm::Position",
        protocol_key="YUZU",
        parse=parse_clmm_liquidity,
    ),
    Adapter(
        id="yuzu_lp_token",
        name="Yuzu LP Token",
        position_type=PositionCategory.LIQUIDITY,
        search_string="::pool::LPCoin",
        protocol_key="YUZU",
        parse=lambda data: scaled(first_positive(data, "coin.value", "value", "amount"), 6),
    ),
    Adapter(
        id="yuzu_farming",
        name="Yuzu Yield Farming",
        position_type=PositionCategory.FARMING,
        search_string="::farming::",
        protocol_key="YUZU",
        parse=lambda data: scaled(first_positive(data, "staked_amount", "amount", "deposited"), 8),
    ),
)
