"""Canopy liquid staking adapters."""

from move_defi_tracker.adapters.base import Adapter, first_positive, scaled
from move_defi_tracker.core.models import PositionCategory

STAKING_MARKERS = ("stmove", "canopy", "liquid_staking", "::st::")


def is_staking_receipt(type_tag: str) -> bool:
    type_lower = type_tag.lower()
    return any(marker in type_lower for marker in STAKING_MARKERS)


ADAPTERS = (
    Adapter(
        id="canopy_liquid_staking",
        name="Canopy Staked MOVE",
        position_type=PositionCategory.STAKING,
        search_string="0x1::coin::CoinStore",
        protocol_key="CANOPY",
        type_filter=is_staking_receipt,
        parse=lambda data: scaled(first_positive(data, "coin.value", "value"), 8),
    ),
    Adapter(
        id="canopy_vault_position",
        name="Canopy Vault",
        position_type=PositionCategory.YIELD,
        search_string="::vault::",
        protocol_key="CANOPY",
        parse=lambda data: scaled(
            first_positive(data, "staked_amount", "shares", "amount", "active_stake", "balance.value"), 8
        ),
    ),
    Adapter(
        id="canopy_staking_position",
        name="Canopy Staking",
        position_type=PositionCategory.STAKING,
        search_string="::staking::",
        protocol_key="CANOPY",
        parse=lambda data: scaled(first_positive(data, "staked", "amount", "principal"), 8),
    ),
)
