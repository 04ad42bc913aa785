"""Tests for scan session orchestration."""

import asyncio
from decimal import Decimal

import pytest
from conftest import ADDRESS_A, ADDRESS_B, MOVEPOSITION, FakeFetcher, FakeViewCaller, make_resource, note_key

from move_defi_tracker.core.models import FetchErrorKind, Position, PositionCategory, ScanPhase, ScanStatus
from move_defi_tracker.core.session import (
    PositionScanService,
    classify_fetch_error,
    is_valid_address,
    normalize_address,
)
from move_defi_tracker.rpc.client import AccountNotFoundError, LedgerAPIError, LedgerNetworkError

STAKE = make_resource("0xabc::staking::StakeInfo", {"amount": "300000000"})
LENDING = make_resource("0xabc::lending::UserAccount", {"collateral": {"data": [{"value": {"amount": "500000000"}}]}})
PORTFOLIO = make_resource(
    f"{MOVEPOSITION}::portfolio::Portfolio",
    {
        "collaterals": {"keys": {"items": [note_key("MOVE")]}, "items": ["1000"]},
        "liabilities": {"keys": {"items": []}, "items": []},
    },
)
DNOTES = f"{MOVEPOSITION}::broker::calc_coins_from_dnotes"


class GatedViewCaller(FakeViewCaller):
    """View caller that holds calls to some functions until released."""

    def __init__(self, responses, gated):
        super().__init__(responses)
        self.gated = gated
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def view(self, function, type_arguments, arguments):
        if function in self.gated:
            self.started.set()
            await self.release.wait()
        return await super().view(function, type_arguments, arguments)


def _service(fetcher: FakeFetcher) -> PositionScanService:
    return PositionScanService(fetcher, view_caller=FakeViewCaller())


def test_normalize_address():
    """Test addresses are trimmed, lowercased, and prefixed."""
    assert normalize_address("  0xABC  ") == "0xabc"
    assert normalize_address("ABC") == "0xabc"
    assert normalize_address("") == ""
    assert normalize_address(None) == ""


def test_is_valid_address():
    """Test address validation."""
    assert is_valid_address(ADDRESS_A)
    assert is_valid_address("0x1")
    assert not is_valid_address("0xzz")
    assert not is_valid_address("0x" + "a" * 65)


def test_classify_fetch_error():
    """Test fetch failures map to user-facing categories."""
    assert classify_fetch_error(AccountNotFoundError("gone", status_code=404)) == FetchErrorKind.NOT_FOUND
    assert classify_fetch_error(LedgerNetworkError("timeout")) == FetchErrorKind.NETWORK
    assert classify_fetch_error(LedgerAPIError("HTTP error 404: resource not found")) == FetchErrorKind.NOT_FOUND
    assert classify_fetch_error(RuntimeError("Failed to fetch")) == FetchErrorKind.NETWORK
    assert classify_fetch_error(RuntimeError("boom")) == FetchErrorKind.UNKNOWN


@pytest.mark.asyncio
async def test_scan_success():
    """Test a successful scan stores its positions."""
    fetcher = FakeFetcher({ADDRESS_A: [LENDING, STAKE]})
    service = _service(fetcher)

    result = await service.scan(ADDRESS_A.upper().replace("0X", "0x"))

    assert result.status == ScanStatus.DONE
    assert result.address == ADDRESS_A
    assert not result.stale
    assert [position.category for position in result.positions] == [
        PositionCategory.LENDING,
        PositionCategory.STAKING,
    ]
    assert service.positions == result.positions
    assert service.status == ScanStatus.DONE
    assert service.phase == ScanPhase.DONE
    assert service.address == ADDRESS_A
    assert fetcher.calls == [ADDRESS_A]


@pytest.mark.asyncio
async def test_empty_address_resets():
    """Test an empty address clears state without fetching."""
    fetcher = FakeFetcher({ADDRESS_A: [LENDING]})
    service = _service(fetcher)
    await service.scan(ADDRESS_A)

    result = await service.scan("   ")

    assert result.status == ScanStatus.IDLE
    assert service.positions == []
    assert service.address is None
    assert fetcher.calls == [ADDRESS_A]


@pytest.mark.asyncio
async def test_invalid_address():
    """Test malformed addresses fail without a ledger call."""
    fetcher = FakeFetcher()
    service = _service(fetcher)

    result = await service.scan("0xnothex")

    assert result.status == ScanStatus.ERROR
    assert result.error == "Invalid account address: 0xnothex"
    assert fetcher.calls == []


@pytest.mark.parametrize(
    ("error", "kind", "message"),
    [
        (
            AccountNotFoundError("Not found", status_code=404),
            FetchErrorKind.NOT_FOUND,
            "Account not found or has no resources",
        ),
        (LedgerNetworkError("Request timeout"), FetchErrorKind.NETWORK, "Network error. Please try again."),
        (RuntimeError("boom"), FetchErrorKind.UNKNOWN, "Failed to scan DeFi positions"),
    ],
)
@pytest.mark.asyncio
async def test_fetch_errors(error, kind, message):
    """Test fetch failures become categorized error results."""
    service = _service(FakeFetcher(error=error))

    result = await service.scan(ADDRESS_A)

    assert result.status == ScanStatus.ERROR
    assert result.error_kind == kind
    assert result.error == message
    assert result.positions == []
    assert service.status == ScanStatus.ERROR
    assert service.error == message
    assert service.phase == ScanPhase.FAILED


@pytest.mark.asyncio
async def test_stale_scan_is_discarded():
    """Test a scan superseded by another address never writes its results."""
    fetcher = FakeFetcher({ADDRESS_A: [LENDING], ADDRESS_B: [STAKE]})
    gate = asyncio.Event()
    fetcher.gates[ADDRESS_A] = gate
    service = _service(fetcher)

    scan_a = asyncio.create_task(service.scan(ADDRESS_A))
    await asyncio.sleep(0)
    result_b = await service.scan(ADDRESS_B)
    gate.set()
    result_a = await scan_a

    assert result_a.stale
    assert result_a.positions == []
    assert not result_b.stale
    assert service.address == ADDRESS_B
    assert service.positions == result_b.positions
    assert [position.category for position in service.positions] == [PositionCategory.STAKING]
    assert result_b.generation > result_a.generation


@pytest.mark.asyncio
async def test_stale_error_is_discarded():
    """Test a superseded scan that fails does not overwrite the current state."""
    fetcher = FakeFetcher({ADDRESS_B: [STAKE]})
    gate = asyncio.Event()
    fetcher.gates[ADDRESS_A] = gate
    service = _service(fetcher)

    scan_a = asyncio.create_task(service.scan(ADDRESS_A))
    await asyncio.sleep(0)
    await service.scan(ADDRESS_B)
    fetcher.error = LedgerNetworkError("late failure")
    gate.set()
    result_a = await scan_a

    assert result_a.stale
    assert result_a.error is None
    assert service.status == ScanStatus.DONE
    assert service.error is None


@pytest.mark.asyncio
async def test_view_calls_resolving_after_switch_are_discarded():
    """Test handler results that arrive after the address changed are never stored."""
    fetcher = FakeFetcher({ADDRESS_A: [PORTFOLIO], ADDRESS_B: [STAKE]})
    view_caller = GatedViewCaller({DNOTES: ["300000000"]}, gated={DNOTES})
    service = PositionScanService(fetcher, view_caller=view_caller)

    scan_a = asyncio.create_task(service.scan(ADDRESS_A))
    await asyncio.wait_for(view_caller.started.wait(), timeout=1)
    result_b = await service.scan(ADDRESS_B)
    view_caller.release.set()
    result_a = await scan_a

    assert len(view_caller.calls_to(DNOTES)) == 1
    assert result_a.stale
    assert result_a.positions == []
    assert not result_b.stale
    assert service.address == ADDRESS_B
    assert [position.category for position in service.positions] == [PositionCategory.STAKING]
    assert service.positions == result_b.positions


@pytest.mark.asyncio
async def test_same_address_joins_inflight_scan():
    """Test a repeated request for an in-flight address shares its scan."""
    fetcher = FakeFetcher({ADDRESS_A: [LENDING]})
    gate = asyncio.Event()
    fetcher.gates[ADDRESS_A] = gate
    service = _service(fetcher)

    first = asyncio.create_task(service.scan(ADDRESS_A))
    await asyncio.sleep(0)
    second = asyncio.create_task(service.scan(ADDRESS_A))
    await asyncio.sleep(0)
    gate.set()
    result_1, result_2 = await asyncio.gather(first, second)

    assert fetcher.calls == [ADDRESS_A]
    assert result_1 == result_2
    assert result_1.generation == result_2.generation


@pytest.mark.asyncio
async def test_refetch_starts_new_scan():
    """Test refetch scans the current address again."""
    fetcher = FakeFetcher({ADDRESS_A: [LENDING]})
    service = _service(fetcher)
    first = await service.scan(ADDRESS_A)

    fetcher.resources[ADDRESS_A] = [LENDING, STAKE]
    second = await service.refetch()

    assert fetcher.calls == [ADDRESS_A, ADDRESS_A]
    assert second.generation > first.generation
    assert len(service.positions) == 2


@pytest.mark.asyncio
async def test_refetch_without_session():
    """Test refetch is a no-op before any scan."""
    fetcher = FakeFetcher()
    service = _service(fetcher)

    result = await service.refetch()

    assert result.status == ScanStatus.IDLE
    assert fetcher.calls == []


def _position(id: str, category: PositionCategory, value: float, symbol: str) -> Position:
    return Position(
        id=id,
        display_name=id,
        category=category,
        raw_value=f"{value:.4f}",
        numeric_value=value,
        token_symbol=symbol,
        source_type_tag=f"0xabc::m::{id}",
    )


def test_summarize():
    """Test totals per category and protocol, with debt counted against the USD value."""
    service = _service(FakeFetcher())
    service.positions = [
        _position("lend", PositionCategory.LENDING, 5.0, "MOVE"),
        _position("debt", PositionCategory.DEBT, 1.0, "MOVE"),
        _position("lp", PositionCategory.LIQUIDITY, 2.0, "UNPRICED"),
    ]

    summary = service.summarize({"MOVE": Decimal("2")})

    assert summary.by_category["Lending"] == Decimal(5)
    assert summary.by_category["Debt"] == Decimal(1)
    assert summary.by_protocol["DeFi"] == Decimal(8)
    assert summary.total_usd_value == Decimal(8)


def test_summarize_without_prices():
    """Test no USD total is reported without a price map."""
    service = _service(FakeFetcher())

    summary = service.summarize()

    assert summary.positions == []
    assert summary.total_usd_value is None
