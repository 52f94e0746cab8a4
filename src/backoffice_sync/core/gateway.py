"""Abstract contract of the persistence gateway consumed by the sync engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional

from .errors import NotFoundError
from .models import CollectionSchema, OrderedItem


class PersistenceGateway(ABC):
    """CRUD plus batch reorder against durable storage.

    Every operation is a coroutine. Implementations normalize raw payloads into
    :class:`OrderedItem` before returning them and raise subclasses of
    :class:`~backoffice_sync.core.errors.GatewayError` on failure.

    ``reorder`` is *not* atomic: it behaves like one update per item, so a
    failure part way through may leave some positions applied.
    """

    def __init__(self, schemas: Mapping[str, CollectionSchema]):
        self.schemas: Dict[str, CollectionSchema] = dict(schemas)

    def schema(self, collection: str) -> CollectionSchema:
        try:
            return self.schemas[collection]
        except KeyError:
            raise NotFoundError(f"Unknown collection '{collection}'") from None

    @abstractmethod
    async def fetch_ordered(self, collection: str) -> List[OrderedItem]:
        """Items sorted by position ascending, ties broken by created_at ascending."""

    @abstractmethod
    async def reorder(self, collection: str, order: List[Dict[str, Any]]) -> None:
        """Persist ``[{id, position}, ...]``."""

    @abstractmethod
    async def upsert_item(self, collection: str, item_id: Optional[Any], fields: Mapping[str, Any]) -> OrderedItem:
        """Create (``item_id`` None) or update an item and return the stored version."""

    @abstractmethod
    async def delete_item(self, collection: str, item_id: Any) -> None:
        ...

    def close(self) -> None:
        """Release backend resources (no-op by default)."""


__all__ = ["PersistenceGateway"]
