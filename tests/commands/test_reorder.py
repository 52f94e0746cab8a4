import sys
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[2]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from backoffice_sync.commands import items as items_cmd  # noqa: E402
from backoffice_sync.commands import reorder as reorder_cmd  # noqa: E402


def _seed(config_path, names):
    return [items_cmd.add(config_path, "collaborators", {"name": name}) for name in names]


def _names(items):
    return [item.get("name") for item in items]


def test_move_persists_manual_order(config_path):
    a, _, c = _seed(config_path, ["A", "B", "C"])

    shown = reorder_cmd.run(config_path, "collaborators", c.id, a.id)

    assert _names(shown) == ["C", "A", "B"]
    stored = items_cmd.list_items(config_path, "collaborators")
    assert _names(stored) == ["C", "A", "B"]
    assert [item.position for item in stored] == [1, 2, 3]


def test_move_with_auto_save(config_path):
    # Materialize the default config, then switch it to auto save
    items_cmd.list_items(config_path, "collaborators")
    path = Path(config_path)
    path.write_text(path.read_text(encoding="utf-8").replace('mode: "manual"', 'mode: "auto"'), encoding="utf-8")

    a, b = _seed(config_path, ["A", "B"])
    shown = reorder_cmd.run(config_path, "collaborators", b.id, a.id)

    assert _names(shown) == ["B", "A"]
    assert _names(items_cmd.list_items(config_path, "collaborators")) == ["B", "A"]


def test_move_onto_itself_changes_nothing(config_path):
    a, _ = _seed(config_path, ["A", "B"])
    assert _names(reorder_cmd.run(config_path, "collaborators", a.id, a.id)) == ["A", "B"]


def test_move_rejects_unknown_ids_and_fixed_collections(config_path):
    a, _ = _seed(config_path, ["A", "B"])
    with pytest.raises(ValueError):
        reorder_cmd.run(config_path, "collaborators", 999, a.id)
    with pytest.raises(ValueError):
        reorder_cmd.run(config_path, "collaborators", a.id, 999)

    reg = items_cmd.add(config_path, "registrations", {"name": "Eva"})
    with pytest.raises(ValueError):
        reorder_cmd.run(config_path, "registrations", reg.id, reg.id)
