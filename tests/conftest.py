"""Shared fixtures: collection schemas and an in-memory persistence gateway."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure the repository's src/ directory is importable without installation.
REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from backoffice_sync.core.errors import NotFoundError  # noqa: E402
from backoffice_sync.core.gateway import PersistenceGateway  # noqa: E402
from backoffice_sync.core.models import CollectionSchema, item_from_payload, sort_items  # noqa: E402
from backoffice_sync.core.validation import normalize_fields  # noqa: E402


SCHEMA_CONFIG = {
    "collaborators": {
        "reorderable": True,
        "fields": {"name": "text", "web_link": "text"},
        "required": "name",
    },
    "faqs": {
        "reorderable": True,
        "fields": {"question": "text", "answer": "text", "is_visible": "flag"},
        "extra_fields": ["asker_name", "asker_email"],
        "required": "question",
        "visibility": {"flag": "is_visible", "requires": "answer"},
    },
    "registrations": {
        "fields": {"name": "text"},
        "required": "name",
    },
}


class FakeGateway(PersistenceGateway):
    """In-memory gateway recording every call.

    ``failures[op]`` is raised once by the next ``op`` call. ``gates[op]`` (an
    asyncio.Event created inside the running loop) holds ``op`` responses until set.
    """

    def __init__(self, schemas, items=None):
        super().__init__(schemas)
        self.rows = {name: {} for name in schemas}
        self.calls = []
        self.failures = {}
        self.gates = {}
        self._next_id = 100
        for collection, entries in (items or {}).items():
            for item in entries:
                self.rows[collection][item.id] = item

    async def _enter(self, op, *args):
        self.calls.append((op,) + args)
        gate = self.gates.get(op)
        if gate is not None:
            await gate.wait()
        error = self.failures.pop(op, None)
        if error is not None:
            raise error

    def ops(self, name):
        return [call for call in self.calls if call[0] == name]

    async def fetch_ordered(self, collection):
        await self._enter("fetch_ordered", collection)
        return sort_items(list(self.rows[collection].values()))

    async def reorder(self, collection, order):
        await self._enter("reorder", collection, [dict(entry) for entry in order])
        rows = self.rows[collection]
        for entry in order:
            item = rows.get(entry["id"])
            if item is not None:
                rows[item.id] = item.with_position(entry["position"])

    async def upsert_item(self, collection, item_id, fields):
        await self._enter("upsert_item", collection, item_id, dict(fields))
        schema = self.schema(collection)
        rows = self.rows[collection]
        values = normalize_fields(schema, fields)
        if item_id is None:
            self._next_id += 1
            position = max((i.position for i in rows.values()), default=0) + 1
            payload = {"id": self._next_id, "position": position, "created_at": "2024-06-01T00:00:00.000Z"}
        else:
            current = rows.get(item_id)
            if current is None:
                raise NotFoundError(f"Item {item_id} not found", status=404)
            payload = current.to_dict()
        payload.update(values)
        item = item_from_payload(payload, schema)
        rows[item.id] = item
        return item

    async def delete_item(self, collection, item_id):
        await self._enter("delete_item", collection, item_id)
        self.rows[collection].pop(item_id, None)


@pytest.fixture
def schemas():
    return {name: CollectionSchema.from_config(name, cfg) for name, cfg in SCHEMA_CONFIG.items()}


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    """A fresh default config whose relative database paths land in a temp data dir."""
    monkeypatch.setenv("BACKOFFICE_SYNC_DATA_DIR", str(tmp_path / "data"))
    return str(tmp_path / "config" / "config.yaml")


@pytest.fixture
def make_gateway(schemas):
    """Factory: ``make_gateway({"faqs": [item, ...]})``."""

    def _make(items=None):
        return FakeGateway(schemas, items)

    return _make
