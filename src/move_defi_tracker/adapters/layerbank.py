"""LayerBank adapters for native lending modules."""

from decimal import Decimal

from move_defi_tracker.adapters.base import Adapter, first_positive, scaled
from move_defi_tracker.core.extractor import parse_positive_numeric
from move_defi_tracker.core.models import PositionCategory


def parse_deposits(data: dict) -> str:
    total = Decimal(0)
    deposits = data.get("deposits") or data.get("positions") or []
    if isinstance(deposits, list):
        for deposit in deposits:
            if isinstance(deposit, dict):
                total += first_positive(deposit, "amount", "value")
    total += parse_positive_numeric(data.get("balance") or data.get("deposited"))
    return scaled(total, 8)


ADAPTERS = (
    Adapter(
        id="layerbank_supply",
        name="LayerBank Supply",
        position_type=PositionCategory.LENDING,
        search_string="::layerbank::",
        protocol_key="LAYERBANK",
        parse=lambda data: scaled(
            first_positive(data, "total_collateral", "deposited", "supply_balance", "principal"), 8
        ),
    ),
    Adapter(
        id="layerbank_lending_position",
        name="LayerBank Deposits",
        position_type=PositionCategory.LENDING,
        search_string="::lending::",
        protocol_key="LAYERBANK",
        type_filter=lambda type_tag: "layerbank" in type_tag.lower(),
        parse=parse_deposits,
    ),
    Adapter(
        id="layerbank_borrow",
        name="LayerBank Borrow",
        position_type=PositionCategory.DEBT,
        search_string="::layerbank::",
        protocol_key="LAYERBANK",
        parse=lambda data: scaled(first_positive(data, "borrowed", "debt", "borrow_balance", "liability"), 8),
    ),
)
