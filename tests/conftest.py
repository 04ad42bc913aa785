"""Pytest configuration and shared fakes for move-defi-tracker tests."""

import asyncio
from typing import Any

import pytest

from move_defi_tracker.core.models import Resource

ECHELON = "0x6a01d5761d43a5b5a0ccbfc42edf2d02c0611464aae99a2ea0e0d4819f0550b5"
JOULE = "0x6a164188af7bb6a8268339343a5afe0242292713709af8801dafba3a054dc2f2"
MOVEPOSITION = "0xccd2621d2897d407e06d18e6ebe3be0e6d9b61f1e809dd49360522b9105812cf"
LAYERBANK = "0xf257d40859456809be19dfee7f4c55c4d033680096aeeb4228b7a15749ab68ea"
YUZU = "0x4bf51972879e3b95c4781a5cdcb9e1ee24ef483e7d22f2d903626f126df62bd1"

ADDRESS_A = "0x" + "a" * 64
ADDRESS_B = "0x" + "b" * 64


class FakeViewCaller:
    """
    In-memory view function evaluator.

    Responses map a function name to a result list, an exception instance,
    or a callable ``(type_arguments, arguments)`` returning either. Unknown
    functions raise LookupError.

    """

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self.responses = responses or {}
        self.calls: list[tuple[str, list[str], list[Any]]] = []

    async def view(self, function: str, type_arguments: list[str], arguments: list[Any]) -> list[Any]:
        self.calls.append((function, list(type_arguments), list(arguments)))
        if function not in self.responses:
            msg = f"No view response for {function}"
            raise LookupError(msg)

        response = self.responses[function]
        if callable(response):
            response = response(type_arguments, arguments)
        if isinstance(response, Exception):
            raise response
        return response

    def calls_to(self, function: str) -> list[tuple[str, list[str], list[Any]]]:
        return [call for call in self.calls if call[0] == function]


class FakeFetcher:
    """Resource source keyed by address, optionally gated by an event per address."""

    def __init__(
        self,
        resources: dict[str, list[Resource]] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.resources = resources or {}
        self.error = error
        self.calls: list[str] = []
        self.gates: dict[str, asyncio.Event] = {}

    async def get_account_resources(self, address: str) -> list[Resource]:
        self.calls.append(address)
        gate = self.gates.get(address)
        if gate is not None:
            await gate.wait()
        if self.error is not None:
            raise self.error
        return list(self.resources.get(address, []))


def make_resource(type_tag: str, data: dict[str, Any] | None = None) -> Resource:
    return Resource.model_validate({"type": type_tag, "data": data or {}})


def note_key(symbol: str, note: str = "DepositNote") -> dict[str, str]:
    """Hex-encoded MovePosition note struct name for a coin symbol."""
    struct = f"{MOVEPOSITION}::{note.lower()}::{note}<{MOVEPOSITION}::coins::{symbol}>"
    return {"struct_name": "0x" + struct.encode().hex()}


@pytest.fixture
def view_caller() -> FakeViewCaller:
    """View caller with no responses (every call fails)."""
    return FakeViewCaller()


@pytest.fixture
def plain_coin_store() -> Resource:
    return make_resource(
        "0x1::coin::CoinStore<0x1::aptos_coin::AptosCoin>",
        {"coin": {"value": "900000000"}, "frozen": False},
    )


@pytest.fixture
def user_account() -> Resource:
    """Unknown lending account: 5.0 units of collateral at 8 decimals."""
    return make_resource(
        "0xabc::lending::UserAccount",
        {"collateral": {"data": [{"value": {"amount": "500000000"}}]}},
    )


@pytest.fixture
def echelon_receipt() -> Resource:
    return make_resource(
        "0x1::coin::CoinStore<0xabc::ec::ecUSDC>",
        {"coin": {"value": "200000000"}},
    )


@pytest.fixture
def joule_positions() -> Resource:
    return make_resource(
        f"{JOULE}::pool::UserPositionsMap",
        {
            "positions_map": {
                "data": [
                    {
                        "key": "1",
                        "value": {
                            "position_name": "Main",
                            "lend_positions": {
                                "data": [{"key": "0x1::aptos_coin::AptosCoin", "value": "250000000"}],
                            },
                            "borrow_positions": {
                                "data": [
                                    {
                                        "key": "0xabc::usdc::USDC",
                                        "value": {"borrow_amount": "1000000", "interest_accumulated": "12"},
                                    }
                                ],
                            },
                        },
                    }
                ]
            }
        },
    )


@pytest.fixture
def yuzu_clmm_position() -> Resource:
    """CLMM position whose only amount is raw liquidity (invisible to generic extraction)."""
    return make_resource(f"{YUZU}::clmm::Position", {"liquidity": "123456", "tick_lower": {"bits": 10}})
