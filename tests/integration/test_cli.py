"""Integration tests for the command-line interface."""

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest
from click.testing import CliRunner, Result

from lostfound.cli.main import cli
from lostfound.lifecycle import ITEMS_COLLECTION
from lostfound.store import SqliteDocumentStore
from tests.helpers.factories import make_item


ACTOR = ["--actor-id", "admin-1", "--actor-email", "admin@example.com"]


@pytest.fixture
def db_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Database path inside an isolated working directory."""
    monkeypatch.chdir(tmp_path)
    return tmp_path / "lostfound.sqlite"


def _invoke(db_path: Path, *args: str) -> Result:
    return CliRunner().invoke(cli, ["--db", str(db_path), *args])


class TestItemCommands:
    """Tests for report and transition."""

    def test_report(self, db_path: Path) -> None:
        """Test reporting prints the new item."""
        result = _invoke(
            db_path,
            "report",
            "Blue umbrella",
            "--item-id",
            "u1",
            "--category",
            "Accessories",
            *ACTOR,
        )

        assert result.exit_code == 0, result.output
        assert "Reported item u1 (Blue umbrella)" in result.output

    def test_transition(self, db_path: Path) -> None:
        """Test a valid status change."""
        _invoke(db_path, "report", "Wallet", "--item-id", "w", *ACTOR)

        result = _invoke(db_path, "transition", "w", "requested", *ACTOR)

        assert result.exit_code == 0, result.output
        assert "Item w is now REQUESTED" in result.output

    def test_invalid_transition(self, db_path: Path) -> None:
        """Test a rejected transition exits with a readable message."""
        _invoke(db_path, "report", "Wallet", "--item-id", "w", *ACTOR)

        result = _invoke(db_path, "transition", "w", "DONATED", *ACTOR)

        assert result.exit_code == 1
        assert "Invalid Input: Invalid status." in result.output

    def test_missing_item(self, db_path: Path) -> None:
        """Test an unknown item exits with a not-found message."""
        result = _invoke(db_path, "transition", "ghost", "REQUESTED", *ACTOR)

        assert result.exit_code == 1
        assert "Not Found: The requested item was not found." in result.output

    def test_actor_required(self, db_path: Path) -> None:
        """Test the acting user must be named."""
        result = _invoke(db_path, "report", "Wallet")
        assert result.exit_code == 2


class TestMaintenanceCommands:
    """Tests for sweep and archive."""

    def test_sweep(self, db_path: Path) -> None:
        """Test the sweep flags an aged item."""
        with SqliteDocumentStore(db_path) as store:
            item = make_item("old", age_days=400, now=datetime.now(UTC))
            store.set(ITEMS_COLLECTION, item.id, item.to_document())

        result = _invoke(db_path, "sweep")

        assert result.exit_code == 0, result.output
        assert "Flagged 1 of 1 active items" in result.output

    def test_sweep_json(self, db_path: Path) -> None:
        """Test JSON output of an empty sweep."""
        result = _invoke(db_path, "--json", "sweep")

        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["flagged_count"] == 0
        assert payload["errors"] == []

    def test_archive_nothing_old(self, db_path: Path) -> None:
        """Test archiving a fresh ledger moves nothing."""
        _invoke(db_path, "report", "Wallet", *ACTOR)

        result = _invoke(db_path, "archive")

        assert result.exit_code == 0, result.output
        assert "Archived 0 entries in 0 batches" in result.output
        assert "Partitions: none" in result.output


class TestReadCommands:
    """Tests for logs, search and stats."""

    def test_logs_json(self, db_path: Path) -> None:
        """Test ledger entries are listed newest first."""
        _invoke(db_path, "report", "Wallet", "--item-id", "w", *ACTOR)
        _invoke(db_path, "transition", "w", "REQUESTED", *ACTOR)

        result = _invoke(db_path, "--json", "logs")

        assert result.exit_code == 0, result.output
        entries = json.loads(result.stdout)["entries"]
        assert [e["action_type"] for e in entries] == ["ITEM_REQUEST", "ITEM_REPORT"]

    def test_logs_filtered(self, db_path: Path) -> None:
        """Test action filters narrow the listing."""
        _invoke(db_path, "report", "Wallet", "--item-id", "w", *ACTOR)
        _invoke(db_path, "transition", "w", "REQUESTED", *ACTOR)

        result = _invoke(db_path, "--json", "logs", "--action", "ITEM_REPORT")

        entries = json.loads(result.stdout)["entries"]
        assert [e["target_id"] for e in entries] == ["w"]
        assert entries[0]["action_type"] == "ITEM_REPORT"

    def test_search(self, db_path: Path) -> None:
        """Test search finds entries by description."""
        _invoke(db_path, "report", "Red backpack", *ACTOR)

        found = _invoke(db_path, "search", "backpack")
        missing = _invoke(db_path, "search", "bicycle")

        assert "Reported item 'Red backpack'" in found.output
        assert "No matching entries" in missing.output

    def test_stats(self, db_path: Path) -> None:
        """Test status counts are printed."""
        _invoke(db_path, "report", "Wallet", *ACTOR)

        result = _invoke(db_path, "stats")

        assert result.exit_code == 0, result.output
        assert "Item Status Counts" in result.output
        assert "Active: 1" in result.output
        assert "Archivable ledger entries: 0" in result.output
