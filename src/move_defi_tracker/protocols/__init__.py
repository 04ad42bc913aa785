"""Specialized protocol handlers."""

# Import all handlers to trigger auto-registration
from move_defi_tracker.protocols.base import AccountScanHandler, BaseProtocolHandler
from move_defi_tracker.protocols.echelon import EchelonHandler
from move_defi_tracker.protocols.joule import JouleHandler
from move_defi_tracker.protocols.layerbank import LayerBankHandler
from move_defi_tracker.protocols.moveposition import MovePositionHandler

__all__ = [
    "AccountScanHandler",
    "BaseProtocolHandler",
    "EchelonHandler",
    "JouleHandler",
    "LayerBankHandler",
    "MovePositionHandler",
]
