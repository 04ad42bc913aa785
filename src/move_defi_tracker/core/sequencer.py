"""Deduplication bookkeeping and final ordering of positions."""

from collections.abc import Iterable

from move_defi_tracker.core.classifier import dedup_key
from move_defi_tracker.core.models import CATEGORY_ORDER, Position, PositionCategory


def category_rank(category: PositionCategory) -> int:
    return CATEGORY_ORDER.get(category, len(CATEGORY_ORDER))


def finalize(positions: Iterable[Position]) -> list[Position]:
    """
    Order positions by category rank, then by descending value.

    The sort is stable, so ties keep detection order.

    """
    return sorted(positions, key=lambda position: (category_rank(position.category), -position.numeric_value))


class SeenTypes:
    """
    Set of resource types already turned into positions during one scan.

    Checked before every classification attempt so a resource type yields at
    most one position (composite resources may still emit several sub-entries
    through their specialized handler).

    """

    def __init__(self) -> None:
        self._keys: set[str] = set()

    def seen(self, type_tag: str) -> bool:
        return dedup_key(type_tag) in self._keys

    def mark(self, type_tag: str) -> None:
        self._keys.add(dedup_key(type_tag))

    def __len__(self) -> int:
        return len(self._keys)
