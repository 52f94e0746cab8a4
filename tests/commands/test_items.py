import sys
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[2]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from backoffice_sync.commands import items as items_cmd  # noqa: E402
from backoffice_sync.core.errors import ValidationError  # noqa: E402


def test_add_and_list_in_creation_order(config_path):
    for name in ("Ana", "Beto", "Cira"):
        items_cmd.add(config_path, "collaborators", {"name": name})

    items = items_cmd.list_items(config_path, "collaborators")

    assert [item.get("name") for item in items] == ["Ana", "Beto", "Cira"]
    assert [item.position for item in items] == [1, 2, 3]


def test_add_rejects_missing_required_field(config_path):
    with pytest.raises(ValidationError):
        items_cmd.add(config_path, "collaborators", {"name": "   ", "web_link": "https://x"})
    assert items_cmd.list_items(config_path, "collaborators") == []


def test_add_keeps_extra_fields(config_path):
    faq = items_cmd.add(config_path, "faqs", {"question": "¿Horario?", "asker_name": "Luz"})
    assert faq.get("asker_name") == "Luz"
    assert faq.get("is_visible") is False


def test_edit_publishes_answered_faq(config_path):
    faq = items_cmd.add(config_path, "faqs", {"question": "¿Horario?"})

    saved = items_cmd.edit(config_path, "faqs", faq.id, {"answer": " 9 a 18 ", "is_visible": "true"})

    assert saved.get("answer") == "9 a 18"
    assert saved.get("is_visible") is True


def test_edit_validation_blocks_save(config_path):
    faq = items_cmd.add(config_path, "faqs", {"question": "¿Horario?"})

    with pytest.raises(ValidationError):
        items_cmd.edit(config_path, "faqs", faq.id, {"is_visible": "yes"})

    stored = items_cmd.list_items(config_path, "faqs")[0]
    assert stored.get("is_visible") is False


def test_edit_without_changes_or_unknown_item(config_path):
    item = items_cmd.add(config_path, "registrations", {"name": "Eva"})

    assert items_cmd.edit(config_path, "registrations", item.id, {"name": "  Eva "}) is None
    with pytest.raises(KeyError):
        items_cmd.edit(config_path, "registrations", 999, {"name": "x"})


def test_delete(config_path):
    first = items_cmd.add(config_path, "collaborators", {"name": "Ana"})
    items_cmd.add(config_path, "collaborators", {"name": "Beto"})

    assert items_cmd.delete(config_path, "collaborators", first.id)
    assert items_cmd.delete(config_path, "collaborators", first.id) is False
    assert [item.get("name") for item in items_cmd.list_items(config_path, "collaborators")] == ["Beto"]
