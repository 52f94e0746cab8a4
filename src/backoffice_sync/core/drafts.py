"""Per-item editable drafts reconciled against canonical server state."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from .errors import GatewayError, ValidationError
from .gateway import PersistenceGateway
from .models import FLAG, CollectionSchema, OrderedItem, coerce_flag
from .validation import validate_fields

logger = logging.getLogger(__name__)

# Error slot used for the "new item" form, which has no id yet.
CREATE_FORM = None


class DraftStore:
    """Editable shadows of one collection's items.

    The store keeps its own snapshot of each canonical item to compare drafts
    against, but never mutates canonical items: on a successful commit it
    swaps in the server's payload and reports it through ``on_commit`` so the
    owner of the ordered list can do the same.

    Errors are recorded per item in :attr:`errors` (the create form uses the
    ``None`` key) and cleared with :meth:`dismiss_error`.
    """

    def __init__(
        self,
        schema: CollectionSchema,
        gateway: PersistenceGateway,
        on_commit: Optional[Callable[[OrderedItem], Any]] = None,
    ):
        self.schema = schema
        self.gateway = gateway
        self.on_commit = on_commit
        self.canonical: Dict[Any, OrderedItem] = {}
        self.drafts: Dict[Any, Dict[str, Any]] = {}
        self.errors: Dict[Any, str] = {}
        self.saving: set = set()
        self._closed = False

    @property
    def collection(self) -> str:
        return self.schema.name

    def _shadow(self, item: OrderedItem) -> Dict[str, Any]:
        shadow = {}
        for name, kind in self.schema.fields.items():
            value = item.get(name)
            if kind == FLAG:
                shadow[name] = bool(value)
            else:
                shadow[name] = "" if value is None else str(value)
        return shadow

    def _outgoing(self, draft: Mapping[str, Any]) -> Dict[str, Any]:
        """Trimmed copy of a draft, ready for validation and the gateway."""
        payload = {}
        for name, kind in self.schema.fields.items():
            value = draft.get(name)
            payload[name] = coerce_flag(value) if kind == FLAG else str(value or "").strip()
        return payload

    # --------------------------------------------------------------- lifecycle

    def init(self, item: OrderedItem) -> Dict[str, Any]:
        """Start tracking *item*; its draft is a copy of the editable fields."""
        self.canonical[item.id] = item
        self.drafts[item.id] = self._shadow(item)
        return self.drafts[item.id]

    def replace_all(self, items: Iterable[OrderedItem]) -> None:
        """Rebuild every draft from freshly fetched canonical items.

        Unsaved edits are dropped on purpose: a wholesale refresh means the
        server list is the new truth.
        """
        self.canonical.clear()
        self.drafts.clear()
        self.errors.clear()
        for item in items:
            self.init(item)

    def discard(self, item_id: Any) -> None:
        """Throw away unsaved edits, resetting the draft to the canonical values."""
        item = self.canonical.get(item_id)
        if item is not None:
            self.drafts[item_id] = self._shadow(item)
        self.errors.pop(item_id, None)

    def remove(self, item_id: Any) -> None:
        """Forget *item_id* entirely (after a delete)."""
        self.canonical.pop(item_id, None)
        self.drafts.pop(item_id, None)
        self.errors.pop(item_id, None)
        self.saving.discard(item_id)

    def close(self) -> None:
        """Tear down; responses still in flight will not be applied."""
        self._closed = True
        self.canonical.clear()
        self.drafts.clear()
        self.errors.clear()
        self.saving.clear()

    def _is_live(self, item_id: Any) -> bool:
        return not self._closed and item_id in self.drafts

    # ------------------------------------------------------------------ edits

    def get(self, item_id: Any) -> Dict[str, Any]:
        return self.drafts[item_id]

    def update(self, item_id: Any, field: str, value: Any) -> None:
        if item_id not in self.drafts:
            raise KeyError(f"No draft for {self.collection} item {item_id}")
        kind = self.schema.fields.get(field)
        if kind is None:
            raise ValueError(f"'{field}' is not an editable field of {self.collection}")
        self.drafts[item_id][field] = coerce_flag(value) if kind == FLAG else ("" if value is None else str(value))

    def is_dirty(self, item_id: Any) -> bool:
        draft = self.drafts.get(item_id)
        item = self.canonical.get(item_id)
        if draft is None or item is None:
            return False
        for name, kind in self.schema.fields.items():
            current = item.get(name)
            if kind == FLAG:
                if bool(draft[name]) != bool(current):
                    return True
            elif draft[name].strip() != ("" if current is None else str(current)):
                return True
        return False

    def dirty_ids(self) -> List[Any]:
        return [item_id for item_id in self.drafts if self.is_dirty(item_id)]

    def dismiss_error(self, item_id: Any = CREATE_FORM) -> None:
        self.errors.pop(item_id, None)

    # ---------------------------------------------------------------- network

    async def commit(self, item_id: Any) -> Optional[OrderedItem]:
        """Validate and persist the draft of *item_id*.

        Returns the server's item on success, or None when there was nothing
        to save or the response arrived after the item left the store.

        Raises:
            ValidationError: Local validation failed; nothing was sent
            GatewayError: The gateway failed; canonical and draft are untouched
        """
        if not self.is_dirty(item_id) or item_id in self.saving:
            return None

        sent = dict(self.drafts[item_id])
        payload = self._outgoing(sent)
        try:
            validate_fields(self.schema, payload, item_id=item_id)
        except ValidationError as e:
            self.errors[item_id] = e.message
            raise

        self.errors.pop(item_id, None)
        self.saving.add(item_id)
        try:
            item = await self.gateway.upsert_item(self.collection, item_id, payload)
        except GatewayError as e:
            if self._is_live(item_id):
                self.errors[item_id] = e.message
            logger.error("Saving %s item %s failed: %s", self.collection, item_id, e)
            raise
        finally:
            self.saving.discard(item_id)

        if not self._is_live(item_id):
            logger.debug("Discarding stale save response for %s item %s", self.collection, item_id)
            return None

        self.canonical[item_id] = item
        if self.drafts[item_id] == sent:
            self.drafts[item_id] = self._shadow(item)
        else:
            # Edited again while the save was in flight; keep the newer edits.
            logger.debug("Keeping newer edits of %s item %s", self.collection, item_id)
        if self.on_commit is not None:
            self.on_commit(item)
        return item

    async def create(self, fields: Mapping[str, Any]) -> Optional[OrderedItem]:
        """Validate and create a new item from the create form.

        The same validation rules as :meth:`commit` apply. On success the new
        item is tracked with a fresh draft.
        """
        payload = self._outgoing(fields)
        for name in self.schema.extra_fields:
            if name in fields:
                payload[name] = fields[name]
        try:
            validate_fields(self.schema, payload)
        except ValidationError as e:
            self.errors[CREATE_FORM] = e.message
            raise

        self.errors.pop(CREATE_FORM, None)
        try:
            item = await self.gateway.upsert_item(self.collection, None, payload)
        except GatewayError as e:
            if not self._closed:
                self.errors[CREATE_FORM] = e.message
            logger.error("Creating %s item failed: %s", self.collection, e)
            raise

        if self._closed:
            logger.debug("Discarding create response for closed %s store", self.collection)
            return None

        self.init(item)
        if self.on_commit is not None:
            self.on_commit(item)
        return item


__all__ = ["DraftStore", "CREATE_FORM"]
