"""Adapter pass: first matching declarative adapter wins."""

import logging
from collections.abc import Sequence
from decimal import Decimal

from move_defi_tracker.adapters import canopy, echelon, joule, layerbank, meridian, moveposition, mosaic, razor, yuzu
from move_defi_tracker.adapters.base import Adapter
from move_defi_tracker.core.models import Position, PositionSource, Resource
from move_defi_tracker.core.registry import ProtocolRegistry

logger = logging.getLogger(__name__)

ADAPTER_DUST_THRESHOLD = Decimal("0.0001")

# Declaration order is match priority
ALL_ADAPTERS: tuple[Adapter, ...] = (
    *razor.ADAPTERS,
    *yuzu.ADAPTERS,
    *joule.ADAPTERS,
    *mosaic.ADAPTERS,
    *echelon.ADAPTERS,
    *canopy.ADAPTERS,
    *moveposition.ADAPTERS,
    *meridian.ADAPTERS,
    *layerbank.ADAPTERS,
)

_ZERO_RESULTS = frozenset({"", "0", "0.0000"})


def _numeric(parsed: str) -> float:
    try:
        return float(parsed.replace(",", ""))
    except ValueError:
        return 0.0


def match_adapters(
    resource: Resource,
    index: int = 0,
    adapters: Sequence[Adapter] = ALL_ADAPTERS,
    registry: ProtocolRegistry | None = None,
    dust_threshold: Decimal = ADAPTER_DUST_THRESHOLD,
) -> Position | None:
    """
    Turn a resource into a position with the first adapter that accepts it.

    Adapters are tried in order. An adapter whose parser returns nothing,
    zero, or dust is passed over, as is one whose parser raises.

    Parameters
    ----------
    resource : Resource
        Resource not consumed by an earlier pass
    index : int
        Resource index in the scan, used in the position id
    adapters : Sequence[Adapter]
        Adapters in priority order
    registry : ProtocolRegistry | None
        Registry used to attach protocol descriptors
    dust_threshold : Decimal
        Smallest reported value kept

    Returns
    -------
    Position | None
        Position from the winning adapter, or None

    """
    registry = registry or ProtocolRegistry()
    type_tag = resource.type_tag

    for adapter in adapters:
        if not adapter.accepts(type_tag):
            continue

        try:
            parsed = adapter.parse(resource.data)
            if parsed is None or parsed in _ZERO_RESULTS:
                continue
            numeric_value = _numeric(parsed)
            if numeric_value <= 0 or numeric_value < dust_threshold:
                logger.debug("Adapter %s: skipping dust value %s", adapter.id, parsed)
                continue
            metadata = adapter.augment(type_tag, resource.data, numeric_value) if adapter.augment else {}
        except Exception as e:
            logger.warning("Adapter %s failed to parse %s: %s", adapter.id, type_tag, e)
            continue

        logger.debug("Adapter match: %s (%s) value=%s", adapter.name, adapter.position_type, parsed)
        return Position(
            id=f"{adapter.id}_{index}",
            display_name=adapter.name,
            category=adapter.position_type,
            raw_value=parsed,
            numeric_value=numeric_value,
            source_type_tag=type_tag,
            protocol=registry.get(adapter.protocol_key),
            source=PositionSource.ADAPTER,
            metadata={"adapter_id": adapter.id, **metadata},
        )

    return None
