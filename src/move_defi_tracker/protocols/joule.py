"""Joule Finance lending positions handler."""

import logging
from decimal import Decimal
from typing import Any

from move_defi_tracker.core.models import Position, PositionCategory, PositionSource, Resource
from move_defi_tracker.core.registry import HandlerRegistry, ViewCaller
from move_defi_tracker.protocols.base import BaseProtocolHandler, stablecoin_aware_decimals

logger = logging.getLogger(__name__)

TOKEN_MAP = {
    "0x1::aptos_coin::AptosCoin": ("MOVE", 8),
    "0xa": ("MOVE", 8),
}


def token_info(coin_type: str) -> tuple[str, int]:
    """Symbol and decimals for a coin type key of a Joule position map."""
    if coin_type in TOKEN_MAP:
        return TOKEN_MAP[coin_type]

    symbol = coin_type.split("::")[-1] or "Unknown"
    if symbol == "AptosCoin":
        symbol = "MOVE"
    return symbol, stablecoin_aware_decimals(symbol)


@HandlerRegistry.register
class JouleHandler(BaseProtocolHandler):
    """
    Handler for Joule ``pool::UserPositionsMap`` resources.

    Positions are grouped under named sub-accounts, each holding lend and
    borrow maps keyed by coin type. Amounts are read straight from the
    resource, so no view call is needed.

    """

    name = "joule"
    protocol_key = "JOULE"
    label = "Joule"
    dust_threshold = Decimal("0.0001")

    def matches(self, type_tag: str) -> bool:
        return f"{self.contract_address}::pool::userpositionsmap" in type_tag.lower()

    async def handle(
        self,
        resource: Resource,
        account_address: str,
        view_caller: ViewCaller,
    ) -> list[Position]:
        positions: list[Position] = []
        positions_map = (resource.data.get("positions_map") or {}).get("data") or []

        # Ids are indexed across the whole resource so sub-accounts never collide
        index = 0
        for entry in positions_map:
            value = entry.get("value") if isinstance(entry, dict) else None
            if not isinstance(value, dict):
                continue
            position_name = value.get("position_name") or "Position"

            for lend in _map_entries(value.get("lend_positions")):
                position = self._position(
                    "supply",
                    PositionCategory.LENDING,
                    lend.get("key"),
                    lend.get("value"),
                    resource,
                    index,
                    {"position_name": position_name},
                )
                index += 1
                if position:
                    positions.append(position)

            for borrow in _map_entries(value.get("borrow_positions")):
                borrow_data = borrow.get("value") if isinstance(borrow.get("value"), dict) else {}
                metadata = {
                    "position_name": position_name,
                    "interest_accumulated": str(borrow_data.get("interest_accumulated") or 0),
                }
                position = self._position(
                    "debt",
                    PositionCategory.DEBT,
                    borrow.get("key"),
                    borrow_data.get("borrow_amount"),
                    resource,
                    index,
                    metadata,
                )
                index += 1
                if position:
                    positions.append(position)

        return positions

    def _position(
        self,
        side: str,
        category: PositionCategory,
        coin_type: Any,
        raw_amount: Any,
        resource: Resource,
        index: int,
        metadata: dict[str, Any],
    ) -> Position | None:
        if not isinstance(coin_type, str):
            return None
        symbol, decimals = token_info(coin_type)
        position = self.make_position(
            side=side,
            category=category,
            symbol=symbol,
            amount=self.shift(raw_amount, decimals),
            type_tag=resource.type_tag,
            index=index,
            source=PositionSource.RPC,
            metadata={**metadata, "coin_type": coin_type},
        )
        if position:
            logger.debug("joule %s: %s %s", side, position.raw_value, symbol)
        return position


def _map_entries(node: Any) -> list[dict]:
    if not isinstance(node, dict):
        return []
    return [entry for entry in node.get("data") or [] if isinstance(entry, dict)]
