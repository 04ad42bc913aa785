"""Mosaic DEX adapters."""

from move_defi_tracker.adapters.base import Adapter, first_positive, scaled
from move_defi_tracker.core.models import PositionCategory

ADAPTERS = (
    Adapter(
        id="mosaic_lp",
        name="Mosaic LP",
        position_type=PositionCategory.LIQUIDITY,
        search_string="::swap::LPCoin",
        protocol_key="MOSAIC",
        parse=lambda data: scaled(first_positive(data, "value"), 6),
    ),
    Adapter(
        id="mosaic_farm",
        name="Mosaic Farm",
        position_type=PositionCategory.FARMING,
        search_string="::farming::UserInfo",
        protocol_key="MOSAIC",
        parse=lambda data: scaled(first_positive(data, "amount"), 6),
    ),
)
