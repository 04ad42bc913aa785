"""Joule Finance adapters for lending maps and reward pools."""

import re
from decimal import Decimal
from typing import Any

from move_defi_tracker.adapters.base import Adapter, lookup, scaled
from move_defi_tracker.core.extractor import parse_positive_numeric
from move_defi_tracker.core.models import PositionCategory


def _position_values(data: dict[str, Any]) -> list[dict[str, Any]]:
    entries = lookup(data, "positions_map.data") or []
    return [entry["value"] for entry in entries if isinstance(entry, dict) and isinstance(entry.get("value"), dict)]


def parse_lend_total(data: dict[str, Any]) -> str | None:
    total = Decimal(0)
    for position in _position_values(data):
        for lend in lookup(position, "lend_positions.data") or []:
            if isinstance(lend, dict):
                total += parse_positive_numeric(lend.get("value"))
    return scaled(total, 8) if total > 0 else None


def parse_borrow_total(data: dict[str, Any]) -> str | None:
    total = Decimal(0)
    for position in _position_values(data):
        for borrow in lookup(position, "borrow_positions.data") or []:
            if isinstance(borrow, dict):
                total += parse_positive_numeric(lookup(borrow, "value.borrow_amount"))
    return scaled(total, 8) if total > 0 else None


def parse_reward_stakes(data: dict[str, Any]) -> str | None:
    total = Decimal(0)
    for pool in lookup(data, "user_pools_map.data") or []:
        if isinstance(pool, dict):
            total += parse_positive_numeric(lookup(pool, "value.stake_amount"))
    return scaled(total, 8) if total > 0 else None


def reward_pools(type_tag: str, data: dict[str, Any], numeric_value: float) -> dict[str, Any]:
    """Names of the reward pools the account is staked in."""
    pools = []
    for pool in lookup(data, "user_pools_map.data") or []:
        if not isinstance(pool, dict) or parse_positive_numeric(lookup(pool, "value.stake_amount")) <= 0:
            continue
        coin_name = lookup(pool, "value.coin_name") or pool.get("key") or ""
        # Pool names carry a numeric suffix (e.g., 'AptosCoin1111')
        symbol = re.sub(r"\d+$", "", str(coin_name).split("::")[-1])
        pools.append("MOVE" if symbol == "AptosCoin" else symbol)
    return {"reward_pools": pools} if pools else {}


ADAPTERS = (
    Adapter(
        id="joule_supply",
        name="Joule Supply",
        position_type=PositionCategory.LENDING,
        search_string="::pool::UserPositionsMap",
        protocol_key="JOULE",
        parse=parse_lend_total,
    ),
    Adapter(
        id="joule_borrow",
        name="Joule Borrow",
        position_type=PositionCategory.DEBT,
        search_string="::pool::UserPositionsMap",
        protocol_key="JOULE",
        parse=parse_borrow_total,
    ),
    Adapter(
        id="joule_rewards",
        name="Joule Rewards",
        position_type=PositionCategory.FARMING,
        search_string="::rewards::UserPoolsMap",
        protocol_key="JOULE",
        parse=parse_reward_stakes,
        augment=reward_pools,
    ),
)
