"""Protocol descriptor lookup and specialized handler registry."""

from typing import Any, Protocol

from move_defi_tracker.core.models import ProtocolDescriptor, Resource
from move_defi_tracker.data import load_protocols


class ViewCaller(Protocol):
    """Read-only ledger query interface used by specialized handlers."""

    async def view(
        self,
        function: str,
        type_arguments: list[str],
        arguments: list[Any],
    ) -> list[Any]: ...


class ResourceFetcher(Protocol):
    """Source of an account's full resource list."""

    async def get_account_resources(self, address: str) -> list[Resource]: ...


class ProtocolRegistry:
    """
    Ordered table of known protocol descriptors.

    Descriptors come from ``data/protocols.yaml`` unless a table is passed
    explicitly.

    Parameters
    ----------
    descriptors : tuple[ProtocolDescriptor, ...] | None
        Descriptor table in identification order

    """

    def __init__(self, descriptors: tuple[ProtocolDescriptor, ...] | None = None) -> None:
        self._descriptors = descriptors if descriptors is not None else load_protocols()
        self._by_key = {descriptor.key: descriptor for descriptor in self._descriptors}

    def identify_protocol(self, type_tag: str) -> ProtocolDescriptor | None:
        """
        Identify the protocol that owns a resource type.

        Each descriptor is checked in registration order, known addresses
        first and keywords second. The first hit wins.

        Parameters
        ----------
        type_tag : str
            Resource type tag

        Returns
        -------
        ProtocolDescriptor | None
            Matching descriptor or None

        """
        type_lower = type_tag.lower()
        for descriptor in self._descriptors:
            if any(address in type_lower for address in descriptor.known_addresses):
                return descriptor
            if any(keyword in type_lower for keyword in descriptor.keywords):
                return descriptor
        return None

    def get(self, key: str) -> ProtocolDescriptor | None:
        return self._by_key.get(key.upper())

    def list_protocols(self) -> list[ProtocolDescriptor]:
        return list(self._descriptors)


class HandlerRegistry:
    """
    Registry for specialized protocol handlers with auto-registration.

    Handlers register themselves using the @HandlerRegistry.register decorator.
    The scanner instantiates every registered handler once per scan.

    """

    _handlers: dict[str, type] = {}

    @classmethod
    def register(cls, handler_class: type) -> type:
        """
        Decorator to register a protocol handler.

        Parameters
        ----------
        handler_class : type
            Handler class to register

        Returns
        -------
        type
            The handler class (for decorator chaining)

        Examples
        --------
        >>> @HandlerRegistry.register
        ... class JouleHandler(BaseProtocolHandler):
        ...     name = "joule"
        ...     protocol_key = "JOULE"

        """
        if not getattr(handler_class, "name", ""):
            msg = f"Handler {handler_class.__name__} must define 'name' attribute"
            raise ValueError(msg)

        cls._handlers[handler_class.name] = handler_class
        return handler_class

    @classmethod
    def get_handler(cls, name: str) -> type | None:
        return cls._handlers.get(name)

    @classmethod
    def get_all_handlers(cls) -> list[type]:
        return list(cls._handlers.values())

    @classmethod
    def get_resource_handlers(cls) -> list[type]:
        """Handlers that decode a matching resource."""
        return [handler for handler in cls._handlers.values() if not getattr(handler, "index_free", False)]

    @classmethod
    def get_account_handlers(cls) -> list[type]:
        """Index-free handlers that query the ledger directly once per scan."""
        return [handler for handler in cls._handlers.values() if getattr(handler, "index_free", False)]

    @classmethod
    def list_handlers(cls) -> list[str]:
        return list(cls._handlers.keys())
