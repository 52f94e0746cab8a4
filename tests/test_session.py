"""Tests for the collection and admin session facades."""

from __future__ import annotations

import asyncio
import datetime
import sys
from pathlib import Path

import pytest

# Ensure the repository's src/ directory is importable without installation.
REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from backoffice_sync.core.errors import NetworkError, ServerError  # noqa: E402
from backoffice_sync.core.kv_store import MemoryKeyValueStore  # noqa: E402
from backoffice_sync.core.models import OrderedItem  # noqa: E402
from backoffice_sync.core.session import AdminSession, CollectionSession  # noqa: E402


def _collaborator(item_id, name, day):
    return OrderedItem(
        id=item_id,
        position=item_id,
        created_at=f"2024-01-{day:02d}T00:00:00.000Z",
        fields={"name": name, "web_link": None},
    )


@pytest.fixture
def seeded(make_gateway):
    return make_gateway({
        "collaborators": [_collaborator(1, "A", 1), _collaborator(2, "B", 2), _collaborator(3, "C", 3)],
        "faqs": [],
        "registrations": [],
    })


def _clock():
    return datetime.datetime(2024, 1, 2, 12, 0, tzinfo=datetime.timezone.utc)


def test_load_populates_list_and_drafts(schemas, seeded):
    session = CollectionSession(schemas["collaborators"], seeded)
    items = asyncio.run(session.load())

    assert [item.id for item in items] == [1, 2, 3]
    assert session.drafts.get(2) == {"name": "B", "web_link": ""}


def test_edit_keeps_unsaved_drag_order(schemas, seeded):
    session = CollectionSession(schemas["collaborators"], seeded)

    async def scenario():
        await session.load()
        session.controller.drag_start(3)
        session.controller.drop(1)
        session.drafts.update(3, "name", "C renamed")
        return await session.commit(3)

    saved = asyncio.run(scenario())

    assert saved.get("name") == "C renamed"
    assert [(item.id, item.position) for item in session.items] == [(3, 1), (1, 2), (2, 3)]
    assert session.items[0].get("name") == "C renamed"
    assert session.controller.dirty


def test_create_appends_to_displayed_list(schemas, seeded):
    session = CollectionSession(schemas["collaborators"], seeded)

    async def scenario():
        await session.load()
        return await session.create({"name": "D", "web_link": "https://d.example"})

    created = asyncio.run(scenario())
    assert session.items[-1].id == created.id
    assert created.position == 4


def test_delete_removes_item_and_draft(schemas, seeded):
    session = CollectionSession(schemas["collaborators"], seeded)

    async def scenario():
        await session.load()
        assert await session.delete(2)
        assert await session.delete(2) is False

    asyncio.run(scenario())
    assert [(item.id, item.position) for item in session.items] == [(1, 1), (3, 2)]
    assert 2 not in session.drafts.drafts
    assert len(seeded.ops("delete_item")) == 1


def test_failed_delete_records_item_error(schemas, seeded):
    session = CollectionSession(schemas["collaborators"], seeded)
    asyncio.run(session.load())
    seeded.failures["delete_item"] = ServerError("locked", status=500)

    with pytest.raises(ServerError):
        asyncio.run(session.delete(1))
    assert session.drafts.errors[1] == "locked"
    assert session.find(1) is not None


def test_stale_load_is_discarded(schemas, seeded):
    session = CollectionSession(schemas["collaborators"], seeded)

    async def scenario():
        gate = asyncio.Event()
        seeded.gates["fetch_ordered"] = gate
        older = asyncio.create_task(session.load())
        await asyncio.sleep(0)

        del seeded.gates["fetch_ordered"]
        removed = seeded.rows["collaborators"].pop(3)
        await session.load()

        # The older fetch now answers with the row restored
        seeded.rows["collaborators"][3] = removed
        gate.set()
        await older

    asyncio.run(scenario())
    assert [item.id for item in session.items] == [1, 2]
    assert 3 not in session.drafts.drafts


def test_admin_session_counts_and_marks_feeds(schemas, seeded):
    store = MemoryKeyValueStore({
        "lastSeen:collaborators": "2024-01-01T12:00:00.000Z",
        "lastSeen:faqs": "2024-01-01T12:00:00.000Z",
    })
    feeds = {"collaborators": "collaborators", "faqs": "faqs", "registrations": "registrations"}

    async def scenario():
        async with AdminSession(seeded, schemas, store, feeds=feeds, clock=_clock) as admin:
            before = admin.unread_counts()
            marker = admin.select_feed("collaborators")
            return before, marker, admin.unread_counts()

    before, marker, after = asyncio.run(scenario())

    assert before == {"collaborators": 2, "faqs": 0, "registrations": 0}
    assert marker == "2024-01-03T00:00:00.000Z"
    assert after["collaborators"] == 0
    assert store.get("lastSeen:registrations") == "2024-01-02T12:00:00.000Z"


def test_admin_open_survives_one_failing_collection(schemas, seeded):
    seeded.failures["fetch_ordered"] = NetworkError("offline")
    admin = AdminSession(seeded, schemas, MemoryKeyValueStore(), feeds={"faqs": "faqs"})

    outcome = asyncio.run(admin.open())

    assert list(outcome.values()).count("offline") == 1
    assert list(outcome.values()).count(None) == 2
    admin.close()
    assert not admin.tracker.is_open


def test_admin_session_rejects_unknown_feed_targets(schemas, seeded):
    with pytest.raises(ValueError):
        AdminSession(seeded, schemas, MemoryKeyValueStore(), feeds={"news": "news"})
    admin = AdminSession(seeded, schemas, MemoryKeyValueStore(), feeds={})
    with pytest.raises(KeyError):
        admin.select_feed("faqs")
