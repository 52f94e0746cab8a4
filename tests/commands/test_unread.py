import os
import sys
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[2]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from backoffice_sync.commands import items as items_cmd  # noqa: E402
from backoffice_sync.commands import unread as unread_cmd  # noqa: E402
from backoffice_sync.core.kv_store import SQLiteKeyValueStore  # noqa: E402


def _state_store():
    return SQLiteKeyValueStore(str(Path(os.environ["BACKOFFICE_SYNC_DATA_DIR"]) / "session_state.db"))


def test_first_run_initializes_markers(config_path):
    items_cmd.add(config_path, "faqs", {"question": "Old?"})

    counts = unread_cmd.counts(config_path)

    assert counts == {"registrations": 0, "collaborators": 0, "proposals": 0, "faqs": 0}
    assert _state_store().get("lastSeen:faqs")


def test_counts_then_mark_seen(config_path):
    items_cmd.add(config_path, "faqs", {"question": "One?"})
    items_cmd.add(config_path, "faqs", {"question": "Two?"})
    items_cmd.add(config_path, "proposals", {"name": "Empresa", "request": "Charla"})
    store = _state_store()
    store.set("lastSeen:faqs", "2000-01-01T00:00:00.000Z")
    store.set("lastSeen:proposals", "2000-01-01T00:00:00.000Z")

    assert unread_cmd.counts(config_path)["faqs"] == 2

    newest = max(item.created_at for item in items_cmd.list_items(config_path, "faqs"))
    assert unread_cmd.mark_seen(config_path, "faqs") == newest

    counts = unread_cmd.counts(config_path)
    assert counts["faqs"] == 0
    assert counts["proposals"] == 1


def test_mark_seen_unknown_feed(config_path):
    with pytest.raises(KeyError):
        unread_cmd.mark_seen(config_path, "news")
