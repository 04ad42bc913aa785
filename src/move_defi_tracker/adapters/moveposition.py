"""MovePosition adapters for ``lend`` module resources."""

from move_defi_tracker.adapters.base import Adapter, first_positive, scaled
from move_defi_tracker.core.models import PositionCategory

LEND_MODULE = "0xccd2621d2897d407e06d18e6ebe3be0e6d9b61f1e809dd49360522b9105812cf::lend::"


def parse_supply(data: dict) -> str | None:
    balance = first_positive(data, "deposit_notes", "deposited", "supply_amount", "principal", "balance.value")
    return scaled(balance, 8) if balance > 0 else None


def parse_borrow(data: dict) -> str | None:
    balance = first_positive(data, "loan_notes", "borrowed", "debt_amount", "liability")
    return scaled(balance, 8) if balance > 0 else None


ADAPTERS = (
    Adapter(
        id="moveposition_supply",
        name="MovePosition Supply",
        position_type=PositionCategory.LENDING,
        search_string=LEND_MODULE,
        protocol_key="MOVEPOSITION",
        parse=parse_supply,
    ),
    Adapter(
        id="moveposition_borrow",
        name="MovePosition Borrow",
        position_type=PositionCategory.DEBT,
        search_string=LEND_MODULE,
        protocol_key="MOVEPOSITION",
        parse=parse_borrow,
    ),
)
