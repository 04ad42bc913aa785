"""Echelon lending adapters for account maps and ec receipt tokens."""

from move_defi_tracker.adapters.base import Adapter, first_positive, scaled, sum_entries
from move_defi_tracker.core.models import PositionCategory

ENTRY_AMOUNT = ("value.amount", "value.value", "amount")


def is_echelon_receipt(type_tag: str) -> bool:
    return "echelon" in type_tag or "::ec" in type_tag or "EchelonCoin" in type_tag


def parse_supply(data: dict) -> str:
    total = sum_entries(data, ("collateral.data", "deposits.data"), ENTRY_AMOUNT)
    total += sum_entries(data, ("supply_positions.data",), ENTRY_AMOUNT)
    return scaled(total, 8)


ADAPTERS = (
    Adapter(
        id="echelon_supply",
        name="Echelon Supply",
        position_type=PositionCategory.LENDING,
        search_string="::lending::UserAccount",
        protocol_key="ECHELON",
        parse=parse_supply,
    ),
    Adapter(
        id="echelon_receipt_tokens",
        name="Echelon Deposits",
        position_type=PositionCategory.LENDING,
        search_string="0x1::coin::CoinStore",
        protocol_key="ECHELON",
        type_filter=is_echelon_receipt,
        parse=lambda data: scaled(first_positive(data, "coin.value", "value"), 8),
    ),
    Adapter(
        id="echelon_borrow",
        name="Echelon Borrow",
        position_type=PositionCategory.DEBT,
        search_string="::lending::UserAccount",
        protocol_key="ECHELON",
        parse=lambda data: scaled(
            sum_entries(data, ("borrows.data", "liabilities.data", "borrow_positions.data"), ENTRY_AMOUNT), 8
        ),
    ),
)
