"""Meridian CDP and AMM adapters."""

import re
from decimal import Decimal
from typing import Any

from move_defi_tracker.adapters.base import Adapter, first_positive, scaled
from move_defi_tracker.core.extractor import format_by_likely_decimals, pick_largest_field, sum_fields
from move_defi_tracker.core.models import PositionCategory

MERIDIAN = "0x8f396e4246b2ba87b51c0739ef5ea4f26480d2cf4e42c4ca7e86e98f1d5e3d82"

X_FIELDS = ("liquidity_x", "coin_x_amount", "token_x_amount", "x_amount")
Y_FIELDS = ("liquidity_y", "coin_y_amount", "token_y_amount", "y_amount")
POSITION_FIELDS = (
    "liquidity",
    "amount",
    "shares",
    "value",
    "balance",
    "total_value",
    "position_value",
    "lp_amount",
    "staked",
    "staked_amount",
)

# Wider vocabularies used only for descriptive metadata
X_METADATA_FIELDS = (*X_FIELDS, "amount_x", "token0_amount", "amount_0", "reserve_x")
Y_METADATA_FIELDS = (*Y_FIELDS, "amount_y", "token1_amount", "amount_1", "reserve_y")
STAKED_FIELDS = ("staked", "staked_amount", "deposit", "deposited", "stake", "stake_amount", "lp_amount", "shares")
LIQUIDITY_TOKEN_FIELDS = ("lp_amount", "liquidity", "shares", "amount", "stake_amount", "staked_amount")

_SWAP_PAIR = re.compile(r"swap::(\w+)<([^,]+),\s*([^>]+)>")
_DIGITS = re.compile(r"^\d+$")


def _find_value(node: Any, depth: int = 0) -> Decimal:
    """First positive leaf under the preferred position fields, then anywhere."""
    if depth > 3:
        return Decimal(0)
    if isinstance(node, int | float) and not isinstance(node, bool):
        return Decimal(str(node)) if node > 0 else Decimal(0)
    if isinstance(node, str) and _DIGITS.match(node):
        return Decimal(node) if int(node) > 0 else Decimal(0)
    if isinstance(node, dict):
        for field in POSITION_FIELDS:
            if field in node:
                value = _find_value(node[field], depth + 1)
                if value > 0:
                    return value
        for child in node.values():
            value = _find_value(child, depth + 1)
            if value > 0:
                return value
    if isinstance(node, list):
        for child in node:
            value = _find_value(child, depth + 1)
            if value > 0:
                return value
    return Decimal(0)


def parse_swap_position(data: dict[str, Any]) -> str:
    total = pick_largest_field(data, POSITION_FIELDS)
    if not total:
        total = _find_value(data)
    if not total:
        total = sum_fields(data, X_FIELDS) + sum_fields(data, Y_FIELDS)
    return format_by_likely_decimals(total)


def parse_user_pools(data: dict[str, Any]) -> str:
    fields = ("liquidity", "amount", "value", "shares", "lp_amount", "coin_x_amount", "coin_y_amount")
    return format_by_likely_decimals(sum_fields(data, fields))


def parse_user_positions(data: dict[str, Any]) -> str:
    total = sum_fields(data, ("liquidity", "amount", "shares", "value", "lp_amount"))
    if not total:
        total = sum_fields(data, X_FIELDS) + sum_fields(data, Y_FIELDS)
    return format_by_likely_decimals(total)


def parse_ds_position(data: dict[str, Any]) -> str:
    balance = pick_largest_field(data, ("liquidity", "amount", "shares", "value", "lp_amount"))
    if not balance:
        balance = sum_fields(data, X_FIELDS) + sum_fields(data, Y_FIELDS)
    return format_by_likely_decimals(balance)


def parse_vault_debt(data: dict[str, Any]) -> str:
    debt = first_positive(data, "debt", "debt_amount", "minted", "borrowed")
    return format_by_likely_decimals(debt, (8, 6))


def pool_metadata(*, staked_fallback: bool = False, liquidity_fallback: bool = False):
    """
    Build the metadata augmentation for a Meridian adapter.

    Parameters
    ----------
    staked_fallback : bool
        Derive the staked amount from the position value when none is stored
    liquidity_fallback : bool
        Derive the LP token amount from the position value when none is stored

    Returns
    -------
    Callable
        Augmentation called with (type_tag, data, numeric_value)

    """

    def augment(type_tag: str, data: dict[str, Any], numeric_value: float) -> dict[str, Any]:
        metadata: dict[str, Any] = {}

        liquidity_x = sum_fields(data, X_METADATA_FIELDS)
        liquidity_y = sum_fields(data, Y_METADATA_FIELDS)
        staked = sum_fields(data, STAKED_FIELDS)
        liquidity_tokens = sum_fields(data, LIQUIDITY_TOKEN_FIELDS)

        # Position values were formatted with 6 decimals
        if not staked and staked_fallback:
            staked = Decimal(round(numeric_value * 1_000_000))
        if not liquidity_tokens and liquidity_fallback:
            liquidity_tokens = Decimal(round(numeric_value * 1_000_000))

        if liquidity_x > 0:
            metadata["liquidity_x"] = str(liquidity_x)
        if liquidity_y > 0:
            metadata["liquidity_y"] = str(liquidity_y)
        if staked > 0:
            metadata["staked_amount"] = str(staked)
        if liquidity_tokens > 0:
            metadata["liquidity_tokens"] = str(liquidity_tokens)
        if "pool_id" in data:
            metadata["pool_id"] = data["pool_id"]

        match = _SWAP_PAIR.search(type_tag)
        if match:
            metadata["token_x"] = match.group(2).split("::")[-1]
            metadata["token_y"] = match.group(3).split("::")[-1]
        return metadata

    return augment


ADAPTERS = (
    Adapter(
        id="meridian_generic",
        name="Meridian LP",
        position_type=PositionCategory.LIQUIDITY,
        search_string=f"{MERIDIAN}::swap::",
        protocol_key="MERIDIAN",
        parse=parse_swap_position,
        augment=pool_metadata(),
    ),
    Adapter(
        id="meridian_userpools",
        name="Meridian Pools",
        position_type=PositionCategory.LIQUIDITY,
        search_string="UserPoolsMap",
        protocol_key="MERIDIAN",
        parse=parse_user_pools,
        augment=pool_metadata(staked_fallback=True, liquidity_fallback=True),
    ),
    Adapter(
        id="meridian_userpositions",
        name="Meridian Positions",
        position_type=PositionCategory.LIQUIDITY,
        search_string="UserPositionsMap",
        protocol_key="MERIDIAN",
        parse=parse_user_positions,
        augment=pool_metadata(staked_fallback=True, liquidity_fallback=True),
    ),
    Adapter(
        id="meridian_position",
        name="Meridian Position",
        position_type=PositionCategory.LIQUIDITY,
        search_string="::ds::",
        protocol_key="MERIDIAN",
        parse=parse_ds_position,
        augment=pool_metadata(liquidity_fallback=True),
    ),
    Adapter(
        id="meridian_vault",
        name="Meridian Vault",
        position_type=PositionCategory.LENDING,
        search_string="::vault::",
        protocol_key="MERIDIAN",
        parse=lambda data: scaled(
            first_positive(data, "collateral", "collateral_amount", "deposited", "locked_amount"), 8
        ),
        augment=pool_metadata(),
    ),
    Adapter(
        id="meridian_debt",
        name="Meridian Debt",
        position_type=PositionCategory.DEBT,
        search_string="::vault::",
        protocol_key="MERIDIAN",
        parse=parse_vault_debt,
        augment=pool_metadata(),
    ),
    Adapter(
        id="meridian_lp",
        name="Meridian LP Token",
        position_type=PositionCategory.LIQUIDITY,
        search_string="::swap::LPCoin",
        protocol_key="MERIDIAN",
        parse=lambda data: format_by_likely_decimals(
            pick_largest_field(data, ("value", "amount", "coin", "balance", "liquidity", "shares"))
        ),
        augment=pool_metadata(),
    ),
    Adapter(
        id="meridian_stability",
        name="Meridian Stability Pool",
        position_type=PositionCategory.STAKING,
        search_string="::stability_pool::",
        protocol_key="MERIDIAN",
        parse=lambda data: format_by_likely_decimals(
            sum_fields(data, ("deposited", "amount", "stake", "staked", "staked_amount", "deposit")), (8, 6)
        ),
        augment=pool_metadata(),
    ),
    Adapter(
        id="meridian_staking",
        name="Meridian Staked LP",
        position_type=PositionCategory.FARMING,
        search_string="::staking::",
        protocol_key="MERIDIAN",
        parse=lambda data: format_by_likely_decimals(
            sum_fields(data, ("amount", "staked", "staked_amount", "deposit", "deposited", "stake", "lp_amount"))
        ),
        augment=pool_metadata(staked_fallback=True),
    ),
)
