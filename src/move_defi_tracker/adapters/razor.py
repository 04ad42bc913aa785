"""Razor DEX adapters (AMM liquidity, staking, farming)."""

from move_defi_tracker.adapters.base import Adapter, first_positive, scaled
from move_defi_tracker.core.models import PositionCategory

ADAPTERS = (
    Adapter(
        id="razor_lp",
        name="Razor LP",
        position_type=PositionCategory.LIQUIDITY,
        search_string="::swap::LPCoin",
        protocol_key="RAZOR",
        # LP coins use 6 decimals
        parse=lambda data: scaled(first_positive(data, "coin.value", "value", "amount"), 6),
    ),
    Adapter(
        id="razor_staking",
        name="Razor Staking",
        position_type=PositionCategory.STAKING,
        search_string="::staking::",
        protocol_key="RAZOR",
        parse=lambda data: scaled(first_positive(data, "staked_amount", "amount", "value", "balance.value"), 8),
    ),
    Adapter(
        id="razor_farm",
        name="Razor Farm",
        position_type=PositionCategory.FARMING,
        search_string="::farm::",
        protocol_key="RAZOR",
        parse=lambda data: scaled(first_positive(data, "staked", "deposited", "amount"), 8),
    ),
)
