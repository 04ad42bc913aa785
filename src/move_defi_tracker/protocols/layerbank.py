"""LayerBank lending handler (index-free)."""

import logging
from decimal import Decimal

from move_defi_tracker.core.models import Position, PositionCategory
from move_defi_tracker.core.registry import HandlerRegistry, ViewCaller
from move_defi_tracker.protocols.base import AccountScanHandler, first_view_value

logger = logging.getLogger(__name__)

# Reserve address -> (symbol, decimals)
TOKEN_MAP = {
    "0xa": ("MOVE", 8),
    "0x83121c9f9b0527d1f056e21a950d6bf3b9e9e2e8353d0e95ccea726713cbea39": ("USDC", 6),
    "0x447721a30109c662dde9c73a0c2c9c9c459fb5e5a9c92f03c50fa69737f5d08d": ("USDT", 6),
    "0x908828f4fb0213d4034c3ded1630bbd904e8a3a6bf3c63270887f0b06653a376": ("WETH", 8),
    "0xb06f29f24dde9c6daeec1f930f14a441a8d6c0fbea590725e88b340af3e1939c": ("WBTC", 8),
}


@HandlerRegistry.register
class LayerBankHandler(AccountScanHandler):
    """
    Handler for LayerBank supply and borrow positions.

    LayerBank keeps no per-user resource under the account, so all reserves
    are read in one ``pool_data_provider::get_user_all_reserves_data`` call.
    Positions carry a synthesized type tag per reserve and side.

    """

    name = "layerbank"
    protocol_key = "LAYERBANK"
    dust_threshold = Decimal("0.0001")

    async def scan_account(self, account_address: str, view_caller: ViewCaller) -> list[Position]:
        function = f"{self.contract_address}::pool_data_provider::get_user_all_reserves_data"
        try:
            result = await view_caller.view(function, [], [account_address])
        except Exception as e:
            logger.warning("LayerBank scan failed for %s: %s", account_address, e)
            return []

        reserves = first_view_value(result) or []
        if not isinstance(reserves, list):
            logger.warning("LayerBank returned unexpected reserves payload: %r", type(reserves).__name__)
            return []

        positions = []
        for index, reserve in enumerate(reserves):
            if not isinstance(reserve, dict):
                continue
            reserve_address = str(reserve.get("reserve_address") or "")
            symbol, decimals = TOKEN_MAP.get(reserve_address.lower(), ("UNKNOWN", 8))

            sides = (
                ("supply", PositionCategory.LENDING, "Supply", reserve.get("current_a_token_balance")),
                ("debt", PositionCategory.DEBT, "Debt", reserve.get("current_variable_debt")),
            )
            for side, category, struct, raw_amount in sides:
                position = self.make_position(
                    side=side,
                    category=category,
                    symbol=symbol,
                    amount=self.shift(raw_amount, decimals),
                    type_tag=f"{self.contract_address}::pool::{struct}<{reserve_address}>",
                    index=index,
                    metadata={"reserve_address": reserve_address},
                )
                if position:
                    logger.debug("layerbank %s: %s %s", side, position.raw_value, symbol)
                    positions.append(position)
        return positions
