"""Echelon lending vault handler."""

import logging
from typing import Any

from move_defi_tracker.core.models import Position, PositionCategory, Resource
from move_defi_tracker.core.registry import HandlerRegistry, ViewCaller
from move_defi_tracker.protocols.base import BaseProtocolHandler, first_view_value
from move_defi_tracker.rpc.batch import ViewCallBatcher

logger = logging.getLogger(__name__)

# Substring of the market asset name -> (symbol, decimals), checked in order
ASSET_INFO = (
    ("USDC", "USDC", 6),
    ("USDT", "USDT", 6),
    ("MOVE", "MOVE", 8),
    ("APTOS", "MOVE", 8),
    ("ETH", "WETH", 8),
    ("BTC", "WBTC", 8),
)


def asset_info(asset_name: str | None) -> tuple[str, int]:
    """
    Map an Echelon market asset name to a symbol and decimals.

    Parameters
    ----------
    asset_name : str | None
        Name returned by ``lending::market_asset_name``

    Returns
    -------
    tuple[str, int]
        Symbol and decimals (unknown assets keep their name with 8 decimals)

    """
    name_upper = (asset_name or "").upper()
    for needle, symbol, decimals in ASSET_INFO:
        if needle in name_upper:
            return symbol, decimals
    return asset_name or "UNKNOWN", 8


@HandlerRegistry.register
class EchelonHandler(BaseProtocolHandler):
    """
    Handler for Echelon ``lending::Vault`` resources.

    Each collateral or liability entry references a market object. The
    market's asset name and the account's coin amount are both resolved with
    view calls.

    """

    name = "echelon"
    protocol_key = "ECHELON"

    def matches(self, type_tag: str) -> bool:
        return "::lending::Vault" in type_tag and self.contract_address in type_tag.lower()

    async def _resolve(self, view_caller: ViewCaller, amount_view: str, account: str, market: str) -> tuple[str, Any]:
        name_result = await view_caller.view(f"{self.contract_address}::lending::market_asset_name", [], [market])
        coins_result = await view_caller.view(f"{self.contract_address}::lending::{amount_view}", [], [account, market])
        return first_view_value(name_result) or "Unknown", first_view_value(coins_result)

    async def handle(
        self,
        resource: Resource,
        account_address: str,
        view_caller: ViewCaller,
    ) -> list[Position]:
        collaterals = _entries(resource.data.get("collaterals"), lambda value: value)
        liabilities = _entries(
            resource.data.get("liabilities"),
            lambda value: value.get("principal") if isinstance(value, dict) else None,
        )
        sides = (
            ("supply", PositionCategory.LENDING, "account_coins", collaterals),
            ("debt", PositionCategory.DEBT, "account_liability", liabilities),
        )

        batcher = ViewCallBatcher(self.max_in_flight)
        for side, _, amount_view, entries in sides:
            for _, market in entries:
                batcher.add_call(
                    f"echelon {side} market {market}",
                    lambda amount_view=amount_view, market=market: self._resolve(
                        view_caller, amount_view, account_address, market
                    ),
                )
        results = iter(await batcher.execute())

        positions = []
        for side, category, _, entries in sides:
            for index, market in entries:
                result = next(results)
                if result is None:
                    continue
                asset_name, raw_amount = result
                symbol, decimals = asset_info(asset_name)
                position = self.make_position(
                    side=side,
                    category=category,
                    symbol=symbol,
                    amount=self.shift(raw_amount, decimals),
                    type_tag=resource.type_tag,
                    index=index,
                    metadata={"market": market, "asset_name": asset_name},
                )
                if position:
                    logger.debug("echelon %s: %s %s", side, position.raw_value, symbol)
                    positions.append(position)
        return positions


def _entries(book: Any, quantity: Any) -> list[tuple[int, str]]:
    """(index, market address) for every entry holding a positive quantity."""
    if not isinstance(book, dict):
        return []

    entries = []
    for index, entry in enumerate(book.get("data") or []):
        if not isinstance(entry, dict):
            continue
        key = entry.get("key")
        market = key.get("inner") if isinstance(key, dict) else None
        amount = quantity(entry.get("value"))
        if not market or amount is None or _as_number(amount) <= 0:
            continue
        entries.append((index, market))
    return entries


def _as_number(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0
