"""Fractional position keys for ordering playlist items.

Items are ordered by a real-valued ``position``. Inserting or moving an item
only ever rewrites that item's key, so concurrent clients never have to
renumber the whole list.

Repeated midpoint insertions between the same two neighbours halve the gap
every time; after roughly fifty of them there is no float left strictly
between the two keys. ``has_room`` detects that condition. No rebalancing is
performed here.
"""

import math
from collections.abc import Sequence

SEED_POSITION = 1.0


def allocate(prev: float | None, next: float | None) -> float:
    """Compute a position key between two neighbours.

    Args:
        prev: Position of the item before the slot, or None at the head
        next: Position of the item after the slot, or None at the tail

    Returns:
        ``SEED_POSITION`` for an empty list, ``next - 1`` at the head,
        ``prev + 1`` at the tail, otherwise the midpoint.

    Examples:
        >>> allocate(None, None)
        1.0
        >>> allocate(None, 1.0)
        0.0
        >>> allocate(3.0, None)
        4.0
        >>> allocate(1.0, 2.0)
        1.5
    """
    if prev is None and next is None:
        return SEED_POSITION
    if prev is None:
        return next - 1
    if next is None:
        return prev + 1
    return (prev + next) / 2


def has_room(prev: float | None, next: float | None) -> bool:
    """Return True if ``allocate(prev, next)`` lands strictly between its neighbours."""
    if prev is None or next is None:
        return True
    if not prev < next:
        return False
    return math.nextafter(prev, math.inf) < next


def allocate_at(positions: Sequence[float], index: int) -> float:
    """Compute the key for dropping an item at ``index``.

    Args:
        positions: Ascending positions of the other items (the dragged item excluded)
        index: Target slot, clamped to ``0..len(positions)``

    Returns:
        Position key placing the item between its new neighbours
    """
    return allocate(*neighbours(positions, index))


def neighbours(positions: Sequence[float], index: int) -> tuple[float | None, float | None]:
    """Positions either side of slot ``index``, None past either end."""
    index = max(0, min(index, len(positions)))
    prev = positions[index - 1] if index > 0 else None
    next = positions[index] if index < len(positions) else None
    return prev, next
