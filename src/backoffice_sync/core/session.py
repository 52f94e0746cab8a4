"""
Session facades wiring the sync components together.

- CollectionSession: one collection's displayed list, drafts and reorder controller
- AdminSession: every collection of an operator session plus its unread tracker
"""

from __future__ import annotations

import asyncio
import datetime
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from .drafts import DraftStore
from .errors import GatewayError
from .gateway import PersistenceGateway
from .kv_store import KeyValueStore
from .models import CollectionSchema, OrderedItem
from .notifications import NotificationTrackerState
from .reorder_session import ReorderController, ReorderMode

logger = logging.getLogger(__name__)


class CollectionSession:
    """Keeps the ordered list and the drafts of one collection consistent."""

    def __init__(
        self,
        schema: CollectionSchema,
        gateway: PersistenceGateway,
        mode: ReorderMode = ReorderMode.MANUAL,
    ):
        self.schema = schema
        self.gateway = gateway
        self.controller = ReorderController(
            schema.name, gateway, mode=mode, reorderable=schema.reorderable
        )
        self.drafts = DraftStore(schema, gateway, on_commit=self.controller.upsert_local)
        self.load_error: Optional[str] = None
        self._load_token = 0
        self._closed = False

    @property
    def name(self) -> str:
        return self.schema.name

    @property
    def items(self) -> List[OrderedItem]:
        return self.controller.items

    def find(self, item_id: Any) -> Optional[OrderedItem]:
        for item in self.controller.items:
            if item.id == item_id:
                return item
        return None

    async def load(self) -> List[OrderedItem]:
        """Fetch canonical items and rebuild the list and every draft from them."""
        self._load_token += 1
        token = self._load_token
        try:
            items = await self.gateway.fetch_ordered(self.name)
        except GatewayError as e:
            if not self._closed:
                self.load_error = e.message
            logger.error("Loading %s failed: %s", self.name, e)
            raise

        if self._closed or token != self._load_token:
            logger.debug("Discarding stale load of %s", self.name)
            return self.items
        self.load_error = None
        self.controller.replace_items(items)
        self.drafts.replace_all(items)
        logger.debug("Loaded %d %s items", len(items), self.name)
        return self.items

    async def create(self, fields: Mapping[str, Any]) -> Optional[OrderedItem]:
        return await self.drafts.create(fields)

    async def commit(self, item_id: Any) -> Optional[OrderedItem]:
        return await self.drafts.commit(item_id)

    async def delete(self, item_id: Any) -> bool:
        """Delete on the server, then drop the item and its draft locally."""
        if self.find(item_id) is None:
            return False
        try:
            await self.gateway.delete_item(self.name, item_id)
        except GatewayError as e:
            if not self._closed and item_id in self.drafts.drafts:
                self.drafts.errors[item_id] = e.message
            logger.error("Deleting %s item %s failed: %s", self.name, item_id, e)
            raise

        if self._closed:
            logger.debug("Discarding delete response for closed %s session", self.name)
            return True
        self.controller.remove_local(item_id)
        self.drafts.remove(item_id)
        return True

    async def save_order(self) -> bool:
        return await self.controller.save()

    def close(self) -> None:
        self._closed = True
        self.controller.close()
        self.drafts.close()


class AdminSession:
    """All collections and unread markers for one operator session.

    Args:
        gateway: Persistence gateway shared by every collection
        schemas: Collection schemas keyed by collection name
        store: Durable key-value store for last-seen markers
        feeds: Feed name -> collection name providing its records
        mode: Reorder persistence mode for reorderable collections
        clock: Optional "now" provider (tests)
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        schemas: Mapping[str, CollectionSchema],
        store: KeyValueStore,
        feeds: Optional[Mapping[str, str]] = None,
        mode: ReorderMode = ReorderMode.MANUAL,
        clock: Optional[Callable[[], datetime.datetime]] = None,
    ):
        self.gateway = gateway
        self.collections: Dict[str, CollectionSession] = {
            name: CollectionSession(schema, gateway, mode=mode) for name, schema in schemas.items()
        }
        self.feeds: Dict[str, str] = dict(feeds or {})
        for feed, collection in self.feeds.items():
            if collection not in self.collections:
                raise ValueError(f"Feed '{feed}' points at unknown collection '{collection}'")
        self.tracker = NotificationTrackerState(store, feeds=self.feeds, clock=clock)

    def collection(self, name: str) -> CollectionSession:
        try:
            return self.collections[name]
        except KeyError:
            raise KeyError(f"Unknown collection '{name}'") from None

    async def open(self) -> Dict[str, Optional[str]]:
        """Load markers and every collection; one failing collection does not block the rest.

        Returns a map of collection name -> load error message (None when loaded).
        """
        self.tracker.open()
        sessions = list(self.collections.values())
        results = await asyncio.gather(*(s.load() for s in sessions), return_exceptions=True)
        outcome: Dict[str, Optional[str]] = {}
        for session, result in zip(sessions, results):
            if isinstance(result, GatewayError):
                outcome[session.name] = result.message
            elif isinstance(result, BaseException):
                raise result
            else:
                outcome[session.name] = None
        return outcome

    def records_by_feed(self) -> Dict[str, List[OrderedItem]]:
        return {feed: self.collections[collection].items for feed, collection in self.feeds.items()}

    def unread_counts(self) -> Dict[str, int]:
        return self.tracker.unread_counts(self.records_by_feed())

    def select_feed(self, feed: str) -> Optional[str]:
        """Activate *feed*, marking everything currently loaded for it as seen."""
        if feed not in self.feeds:
            raise KeyError(f"Unknown feed '{feed}'")
        return self.tracker.activate(feed, self.collections[self.feeds[feed]].items)

    def close(self) -> None:
        for session in self.collections.values():
            session.close()
        self.tracker.close()

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.close()


__all__ = ["CollectionSession", "AdminSession"]
