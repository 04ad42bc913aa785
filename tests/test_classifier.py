"""Tests for pattern matching, categorization, and naming."""

from move_defi_tracker.core.classifier import PatternCatalog, base_type_tag, dedup_key, position_name
from move_defi_tracker.core.models import PositionCategory
from move_defi_tracker.core.registry import ProtocolRegistry


def test_base_type_tag():
    """Test generic parameters are stripped."""
    assert base_type_tag("0xabc::staking::StakeInfo<0x1::aptos_coin::AptosCoin>") == "0xabc::staking::StakeInfo"
    assert base_type_tag("0xabc::lending::UserAccount") == "0xabc::lending::UserAccount"


def test_dedup_key():
    """Test coin stores keep the wrapped coin, other resources collapse to their base type."""
    coin_a = "0x1::coin::CoinStore<0xabc::ec::ecUSDC>"
    coin_b = "0x1::coin::CoinStore<0xabc::ec::ecMOVE>"

    assert dedup_key(coin_a) == coin_a
    assert dedup_key(coin_a) != dedup_key(coin_b)
    assert dedup_key("0xabc::farm::Farm<0x1::A>") == dedup_key("0xabc::farm::Farm<0x1::B>")


def test_is_defi_resource():
    """Test the pattern catalog recognises DeFi resources."""
    catalog = PatternCatalog()

    assert catalog.is_defi_resource("0xabc::lending::UserAccount")
    assert catalog.is_defi_resource("0xabc::staking::StakeInfo")
    assert not catalog.is_defi_resource("0x1::account::Account")


def test_is_lp_coin():
    """Test LP coin detection inside coin stores."""
    catalog = PatternCatalog()

    assert catalog.is_lp_coin("0x1::coin::CoinStore<0xabc::swap::LPCoin<0x1::A, 0x1::B>>")
    assert not catalog.is_lp_coin("0x1::coin::CoinStore<0x1::aptos_coin::AptosCoin>")


def test_match_receipt_token():
    """Test receipt tokens map to their protocol."""
    catalog = PatternCatalog()

    echelon = catalog.match_receipt_token("0x1::coin::CoinStore<0xabc::ec::ecUSDC>")
    canopy = catalog.match_receipt_token("0x1::coin::CoinStore<0xabc::stmove::StMOVE>")

    assert echelon.protocol == "ECHELON"
    assert echelon.category == PositionCategory.LENDING
    assert canopy.protocol == "CANOPY"
    assert canopy.category == PositionCategory.STAKING
    assert catalog.match_receipt_token("0x1::coin::CoinStore<0x1::aptos_coin::AptosCoin>") is None


def test_categorize_by_pattern():
    """Test categorization follows the pattern table."""
    catalog = PatternCatalog()

    assert catalog.categorize("0xabc::lending::UserAccount") == PositionCategory.LENDING
    assert catalog.categorize("0xabc::staking::StakeInfo") == PositionCategory.STAKING
    assert catalog.categorize("0xabc::farming::Farm") == PositionCategory.FARMING
    assert catalog.categorize("0xabc::cdp::Trove") == PositionCategory.CDP


def test_categorize_fallback():
    """Test unmatched resources become DeFi, never None."""
    catalog = PatternCatalog()

    assert catalog.categorize("0xabc::mystery::Thing") == PositionCategory.DEFI


def test_debt_keyword_wins():
    """Test debt keywords take priority over matching patterns."""
    catalog = PatternCatalog()

    assert catalog.categorize("0xabc::lending::BorrowPosition") == PositionCategory.DEBT
    assert catalog.categorize("0xabc::staking::LoanInfo") == PositionCategory.DEBT


def test_debt_fields_win():
    """Test a positive debt field marks the resource as debt."""
    catalog = PatternCatalog()

    assert catalog.categorize("0xabc::lending::UserPosition", {"debt": "100"}) == PositionCategory.DEBT
    assert catalog.categorize("0xabc::lending::UserPosition", {"debt": "0"}) == PositionCategory.LENDING
    assert catalog.categorize("0xabc::lending::UserPosition", {"borrowed": {"value": "5"}}) == PositionCategory.DEBT


def test_position_name_with_protocol():
    """Test names for attributed resources."""
    echelon = ProtocolRegistry().get("ECHELON")

    assert position_name("0xabc::lending::UserAccount", echelon) == "Echelon Position"
    assert position_name("0xabc::swap::LPCoin", echelon) == "Echelon LP"
    assert position_name("0xabc::staking::StakeInfo", echelon) == "Echelon Staked"
    assert position_name("0xabc::lending::Vault", echelon) == "Echelon Vault"


def test_position_name_without_protocol():
    """Test names for unattributed resources use the module name."""
    assert position_name("0xabc::lending::UserAccount", None) == "lending User Account"
    assert position_name("0xabc::liquid_staking::Pool<0x1::A>", None) == "liquid staking Pool"
