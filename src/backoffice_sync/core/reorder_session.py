"""
Drag/drop lifecycle for one ordered collection.

The controller owns the displayed list. Drags reorder it optimistically via
the pure functions in :mod:`.ordering`; persistence happens either on an
explicit :meth:`ReorderController.save` (manual mode) or right after every
changing drop (auto mode).
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Iterable, List, Optional

from .errors import GatewayError
from .gateway import PersistenceGateway
from .models import OrderedItem, sort_items
from .ordering import MoveState, begin_move, commit_move, densify, move_over, order_payload

logger = logging.getLogger(__name__)


class ReorderMode(str, Enum):
    MANUAL = "manual"
    AUTO = "auto"


class SessionState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


class ReorderController:
    """State machine ``IDLE -> DRAGGING(source) -> IDLE`` plus order persistence.

    Attributes:
        items: The list as currently displayed
        dirty: Local order differs from what the server has confirmed
        order_error: Section-wide message from the last failed save, if any
    """

    def __init__(
        self,
        collection: str,
        gateway: PersistenceGateway,
        items: Optional[Iterable[OrderedItem]] = None,
        mode: ReorderMode = ReorderMode.MANUAL,
        reorderable: bool = True,
    ):
        self.collection = collection
        self.reorderable = reorderable
        self.gateway = gateway
        self.mode = ReorderMode(mode)
        self.items: List[OrderedItem] = sort_items(list(items or []))
        self.state = SessionState.IDLE
        self.dirty = False
        self.order_error: Optional[str] = None
        self.pending: Optional[asyncio.Task] = None
        self._move: Optional[MoveState] = None
        self._revision = 0
        self._inflight = 0
        self._resend = False
        self._closed = False

    @property
    def saving(self) -> bool:
        return self._inflight > 0

    @property
    def source_id(self) -> Any:
        return self._move.source_id if self._move is not None else None

    def _show(self, items: List[OrderedItem]) -> None:
        """Adopt a locally reordered list as the displayed one."""
        self.items = items
        self._revision += 1
        if self.mode is ReorderMode.MANUAL:
            self.dirty = True

    # ------------------------------------------------------------ drag events

    def drag_start(self, item_id: Any) -> bool:
        if self._closed or not self.reorderable:
            return False
        move = begin_move(self.items, item_id)
        if move is None:
            logger.debug("Ignoring drag of unknown %s item %s", self.collection, item_id)
            return False
        self._move = move
        self.state = SessionState.DRAGGING
        return True

    def drag_over(self, target_id: Any) -> bool:
        """Live preview; returns True when the displayed list changed."""
        if self.state is not SessionState.DRAGGING or self._move is None:
            return False
        moved = move_over(self._move, target_id)
        if moved is self._move:
            return False
        self._move = moved
        self._show(moved.items)
        return True

    def drop(self, target_id: Any) -> bool:
        """Finish the gesture on *target_id*; returns True when the order changed.

        In auto mode a changing drop schedules a save on the running event loop
        and stores the task in :attr:`pending`; auto mode therefore needs a
        running loop, and without one RuntimeError is raised before anything
        changes. A drop while that save is still running does not start a
        second writer: the running save sends the newest order once it settles.
        """
        if self.state is not SessionState.DRAGGING or self._move is None:
            return False
        loop = asyncio.get_running_loop() if self.mode is ReorderMode.AUTO else None
        final = commit_move(self._move, target_id)
        changed = self._move.moved
        if final is not self._move.items:
            self._show(final)
            changed = True
        self._move = None
        self.state = SessionState.IDLE

        if changed and loop is not None:
            if self.saving or (self.pending is not None and not self.pending.done()):
                self._resend = True
            else:
                self.pending = loop.create_task(self._persist())
        return changed

    def drag_end(self) -> None:
        """Unconditional return to IDLE (drop outside any target, cancelled drag)."""
        self._move = None
        self.state = SessionState.IDLE

    # ------------------------------------------------------------ persistence

    async def save(self) -> bool:
        """Send the whole displayed order in one call.

        No-op unless there are unsaved order changes and no save is running.
        Returns True when the gateway accepted the order.
        """
        if self._closed or not self.dirty or self.saving:
            return False
        return await self._persist()

    async def _persist(self) -> bool:
        """Single writer: at most one reorder call per controller is in flight."""
        self._inflight += 1
        try:
            while True:
                revision = self._revision
                order = order_payload(self.items)
                self._resend = False
                self.order_error = None
                try:
                    await self.gateway.reorder(self.collection, order)
                except GatewayError as e:
                    logger.error("Saving %s order failed: %s", self.collection, e)
                    self._resend = False
                    if self._closed:
                        return False
                    # The batch is not atomic; the server may hold part of this order.
                    # Keep the local order and leave it marked unsaved for an explicit retry.
                    self.order_error = e.message
                    self.dirty = True
                    return False

                if self._closed:
                    logger.debug("Discarding %s order response for closed session", self.collection)
                    return True
                if self._resend:
                    logger.debug("%s order changed while saving; sending the newest order", self.collection)
                    continue
                if revision != self._revision:
                    logger.debug("%s order changed while saving; keeping local order", self.collection)
                    return True
                break
        finally:
            self._inflight -= 1

        if self.mode is ReorderMode.AUTO:
            self.dirty = False
            return True

        try:
            fresh = await self.gateway.fetch_ordered(self.collection)
        except GatewayError as e:
            logger.warning("Order of %s saved but refresh failed: %s", self.collection, e)
            self.dirty = False
            return True

        if self._closed or revision != self._revision:
            logger.debug("Discarding stale %s refresh after save", self.collection)
            return True
        self.items = fresh
        self.dirty = False
        logger.info("Saved order of %d %s items", len(order), self.collection)
        return True

    async def wait_idle(self) -> None:
        """Await the auto-save scheduled by the last drop, if any."""
        if self.pending is not None:
            await self.pending
            self.pending = None

    # ------------------------------------------------------- canonical updates

    def replace_items(self, items: Iterable[OrderedItem]) -> None:
        """Adopt a fresh canonical list, cancelling any drag and unsaved order."""
        self.items = sort_items(list(items))
        self._move = None
        self.state = SessionState.IDLE
        self.dirty = False
        self.order_error = None
        self._resend = False
        self._revision += 1

    def upsert_local(self, item: OrderedItem) -> None:
        """Reflect a created or edited item in the displayed list."""
        for index, current in enumerate(self.items):
            if current.id == item.id:
                updated = list(self.items)
                if self.dirty:
                    # Unsaved drag order wins over the server's position.
                    updated[index] = item.with_position(current.position)
                    self.items = updated
                else:
                    updated[index] = item
                    self.items = sort_items(updated)
                return
        if not item.position:
            item = item.with_position(len(self.items) + 1)
        self.items = sort_items(self.items + [item])

    def remove_local(self, item_id: Any) -> None:
        """Drop a deleted item and close the gap in positions."""
        remaining = [item for item in self.items if item.id != item_id]
        if len(remaining) != len(self.items):
            self.items = densify(remaining)
        if self.source_id == item_id:
            self.drag_end()

    def dismiss_error(self) -> None:
        self.order_error = None

    def close(self) -> None:
        self._closed = True
        self.drag_end()


__all__ = ["ReorderController", "ReorderMode", "SessionState"]
