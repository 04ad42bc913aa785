"""Tests for deduplication bookkeeping and final ordering."""

from move_defi_tracker.core.models import Position, PositionCategory
from move_defi_tracker.core.sequencer import SeenTypes, category_rank, finalize


def _position(id: str, category: PositionCategory, value: float) -> Position:
    return Position(
        id=id,
        display_name=id,
        category=category,
        raw_value=f"{value:.4f}",
        numeric_value=value,
        source_type_tag=f"0xabc::m::{id}",
    )


def test_finalize_orders_by_category_then_value():
    """Test category rank first, descending value second."""
    positions = [
        _position("debt", PositionCategory.DEBT, 10.0),
        _position("small_lend", PositionCategory.LENDING, 1.0),
        _position("other", PositionCategory.DEFI, 100.0),
        _position("stake", PositionCategory.STAKING, 3.0),
        _position("big_lend", PositionCategory.LENDING, 5.0),
    ]

    ordered = [position.id for position in finalize(positions)]

    assert ordered == ["big_lend", "small_lend", "stake", "debt", "other"]


def test_finalize_is_stable():
    """Test ties keep detection order."""
    positions = [
        _position("first", PositionCategory.LIQUIDITY, 2.0),
        _position("second", PositionCategory.LIQUIDITY, 2.0),
    ]

    assert [position.id for position in finalize(positions)] == ["first", "second"]


def test_category_rank():
    """Test lending ranks before debt."""
    assert category_rank(PositionCategory.LENDING) < category_rank(PositionCategory.DEBT)
    assert category_rank(PositionCategory.DEBT) < category_rank(PositionCategory.DEFI)


def test_seen_types():
    """Test resource types are tracked by their dedup key."""
    seen = SeenTypes()

    seen.mark("0xabc::staking::StakeInfo<0x1::A>")

    assert seen.seen("0xabc::staking::StakeInfo<0x1::B>")
    assert not seen.seen("0xabc::staking::Other")
    assert len(seen) == 1


def test_seen_coin_stores_are_distinct():
    """Test different coins in coin stores are tracked separately."""
    seen = SeenTypes()

    seen.mark("0x1::coin::CoinStore<0xabc::ec::ecUSDC>")

    assert seen.seen("0x1::coin::CoinStore<0xabc::ec::ecUSDC>")
    assert not seen.seen("0x1::coin::CoinStore<0xabc::ec::ecMOVE>")
