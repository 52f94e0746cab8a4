"""End-to-end tests of the click command group against a temporary SQLite store."""

from __future__ import annotations

import sys
from pathlib import Path

from click.testing import CliRunner

# Ensure the repository's src/ directory is importable without installation.
REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from backoffice_sync.cli import cli  # noqa: E402


def _invoke(config_path, *args):
    return CliRunner().invoke(cli, ["--config", config_path, *args])


def test_status_reports_valid_default_config(config_path):
    result = _invoke(config_path, "status")
    assert result.exit_code == 0, result.output
    assert "Configuration is valid" in result.output
    assert "collaborators" in result.output


def test_add_list_move_cycle(config_path):
    assert _invoke(config_path, "add", "collaborators", "--set", "name=Ana").exit_code == 0
    assert _invoke(config_path, "add", "collaborators", "--set", "name=Beto").exit_code == 0

    moved = _invoke(config_path, "move", "collaborators", "2", "1")
    assert moved.exit_code == 0, moved.output
    assert "Order saved" in moved.output

    listed = _invoke(config_path, "list", "collaborators")
    assert listed.exit_code == 0
    assert listed.output.index("Beto") < listed.output.index("Ana")


def test_edit_and_delete(config_path):
    _invoke(config_path, "add", "faqs", "--set", "question=¿Dónde?")

    failed = _invoke(config_path, "edit", "faqs", "1", "--set", "is_visible=true")
    assert failed.exit_code == 1
    assert "❌ Save failed" in failed.output

    saved = _invoke(config_path, "edit", "faqs", "1", "--set", "answer=Aquí", "--set", "is_visible=true")
    assert saved.exit_code == 0, saved.output
    assert "Saved faqs item #1" in saved.output

    assert "Deleted" in _invoke(config_path, "delete", "faqs", "1").output
    assert "not found" in _invoke(config_path, "delete", "faqs", "1").output


def test_bad_assignment_exits_nonzero(config_path):
    result = _invoke(config_path, "add", "collaborators", "--set", "name")
    assert result.exit_code == 1
    assert "Expected field=value" in result.output


def test_unread_and_seen(config_path):
    _invoke(config_path, "add", "registrations", "--set", "name=Eva")

    unread = _invoke(config_path, "unread")
    assert unread.exit_code == 0, unread.output
    assert "registrations" in unread.output

    seen = _invoke(config_path, "seen", "registrations")
    assert seen.exit_code == 0, seen.output
    assert "registrations seen up to" in seen.output

    assert _invoke(config_path, "seen", "news").exit_code == 1
