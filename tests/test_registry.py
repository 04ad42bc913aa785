"""Tests for protocol and handler registries."""

import pytest
from conftest import ECHELON, JOULE, MOVEPOSITION

from move_defi_tracker.core.models import ProtocolCategory, ProtocolDescriptor
from move_defi_tracker.core.registry import HandlerRegistry, ProtocolRegistry


def test_identify_protocol_by_address():
    """Test identification by known contract address."""
    registry = ProtocolRegistry()

    protocol = registry.identify_protocol(f"{ECHELON}::lending::Vault")

    assert protocol is not None
    assert protocol.key == "ECHELON"


def test_identify_protocol_address_is_case_insensitive():
    """Test identification ignores the case of the type tag."""
    registry = ProtocolRegistry()

    protocol = registry.identify_protocol(f"{MOVEPOSITION.upper().replace('0X', '0x')}::portfolio::Portfolio")

    assert protocol is not None
    assert protocol.key == "MOVEPOSITION"


def test_identify_protocol_by_keyword():
    """Test identification by keyword."""
    registry = ProtocolRegistry()

    assert registry.identify_protocol("0x123::joule_rewards::Pool").key == "JOULE"
    assert registry.identify_protocol("0x123::canopy::Vault").key == "CANOPY"


def test_identify_unknown_protocol():
    """Test unknown resources are not attributed."""
    registry = ProtocolRegistry()

    assert registry.identify_protocol("0x1::account::Account") is None


def test_identify_protocol_first_match_wins():
    """Test registration order decides between overlapping descriptors."""
    first = ProtocolDescriptor(
        key="FIRST",
        display_name="First",
        category=ProtocolCategory.DEX,
        keywords=frozenset({"swap"}),
    )
    second = ProtocolDescriptor(
        key="SECOND",
        display_name="Second",
        category=ProtocolCategory.DEX,
        keywords=frozenset({"swap"}),
    )

    assert ProtocolRegistry((first, second)).identify_protocol("0x9::swap::Pool").key == "FIRST"
    assert ProtocolRegistry((second, first)).identify_protocol("0x9::swap::Pool").key == "SECOND"


def test_identify_checks_address_before_next_descriptor():
    """Test an address hit on an earlier descriptor beats a keyword hit on a later one."""
    registry = ProtocolRegistry()

    # Contains the Joule address and the Meridian keyword 'userpositions'
    protocol = registry.identify_protocol(f"{JOULE}::pool::UserPositionsMap")

    assert protocol.key == "JOULE"


def test_get_protocol():
    """Test lookup by key."""
    registry = ProtocolRegistry()

    assert registry.get("echelon").display_name == "Echelon"
    assert registry.get("NOPE") is None


def test_handler_registration():
    """Test that handlers auto-register on import."""
    from move_defi_tracker import protocols  # noqa: F401

    registered = HandlerRegistry.list_handlers()

    assert "moveposition" in registered
    assert "echelon" in registered
    assert "joule" in registered
    assert "layerbank" in registered


def test_get_handler():
    """Test retrieving handler by name."""
    from move_defi_tracker import protocols  # noqa: F401

    handler_class = HandlerRegistry.get_handler("joule")
    assert handler_class is not None
    assert handler_class.protocol_key == "JOULE"

    assert HandlerRegistry.get_handler("nonexistent") is None


def test_registered_handlers_share_base_class():
    """Test every registered handler implements the common handler base."""
    from move_defi_tracker import protocols  # noqa: F401
    from move_defi_tracker.protocols.base import BaseProtocolHandler

    for handler_class in HandlerRegistry.get_all_handlers():
        assert issubclass(handler_class, BaseProtocolHandler)


def test_account_handlers_are_index_free():
    """Test index-free handlers are listed separately."""
    from move_defi_tracker import protocols  # noqa: F401

    account_handlers = [handler.name for handler in HandlerRegistry.get_account_handlers()]
    resource_handlers = [handler.name for handler in HandlerRegistry.get_resource_handlers()]

    assert account_handlers == ["layerbank"]
    assert "layerbank" not in resource_handlers
    assert "echelon" in resource_handlers


def test_register_requires_name():
    """Test that handlers must define a name."""

    class Nameless:
        name = ""

    with pytest.raises(ValueError, match="must define 'name'"):
        HandlerRegistry.register(Nameless)
