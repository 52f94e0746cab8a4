"""Pure sequence-permutation logic for ordered collections.

Nothing in this module performs I/O; every function is safe to call from a
drag event handler. Unchanged results are returned as the *same* list object
so callers can detect no-ops with ``is``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .models import OrderedItem


def _index_of(items: Sequence[OrderedItem], item_id: Any) -> Optional[int]:
    for index, item in enumerate(items):
        if item.id == item_id:
            return index
    return None


def reorder(items: List[OrderedItem], source_id: Any, target_id: Any) -> List[OrderedItem]:
    """Move *source_id* to the index currently held by *target_id*.

    Returns *items* itself when the ids are equal or either is missing.
    Otherwise returns a new list with positions reassigned densely from 1.
    """
    if source_id == target_id:
        return items
    source_index = _index_of(items, source_id)
    target_index = _index_of(items, target_id)
    if source_index is None or target_index is None:
        return items

    updated = list(items)
    moved = updated.pop(source_index)
    updated.insert(target_index, moved)
    return densify(updated)


def densify(items: Sequence[OrderedItem]) -> List[OrderedItem]:
    """Reassign ``position = index + 1`` following display order."""
    return [item if item.position == index + 1 else item.with_position(index + 1)
            for index, item in enumerate(items)]


def order_payload(items: Sequence[OrderedItem]) -> List[Dict[str, Any]]:
    """Build the ``[{id, position}, ...]`` body for a batch reorder."""
    return [{"id": item.id, "position": item.position or index + 1} for index, item in enumerate(items)]


def contains(items: Sequence[OrderedItem], item_id: Any) -> bool:
    return _index_of(items, item_id) is not None


@dataclass(frozen=True)
class MoveState:
    """One drag gesture: the dragged id and the list as currently previewed."""

    source_id: Any
    items: List[OrderedItem]
    moved: bool = False


def begin_move(items: List[OrderedItem], source_id: Any) -> Optional[MoveState]:
    """Start a move; None when *source_id* is not in *items*."""
    if not contains(items, source_id):
        return None
    return MoveState(source_id=source_id, items=items)


def move_over(move: MoveState, target_id: Any) -> MoveState:
    """Preview the move over *target_id*; returns *move* itself on a no-op."""
    reordered = reorder(move.items, move.source_id, target_id)
    if reordered is move.items:
        return move
    return MoveState(source_id=move.source_id, items=reordered, moved=True)


def commit_move(move: MoveState, target_id: Any) -> List[OrderedItem]:
    """Final order for a drop on *target_id*."""
    return move_over(move, target_id).items


__all__ = [
    "reorder",
    "densify",
    "order_payload",
    "contains",
    "MoveState",
    "begin_move",
    "move_over",
    "commit_move",
]
