"""Integration tests for the audit ledger."""

import sqlite3
import tempfile
from collections.abc import Generator
from datetime import timedelta
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from lostfound.errors import ErrorKind, StoreError, ValidationError, get_user_message
from lostfound.ledger import (
    LEDGER_COLLECTION,
    ActionType,
    AuditLedger,
    LedgerFilters,
)
from lostfound.retry import RetryPolicy
from lostfound.store import InvalidCursorError, SqliteDocumentStore, StoreMetrics
from tests.helpers.factories import make_entry
from tests.helpers.time import FIXED_NOW


@pytest.fixture
def temp_db_path() -> Generator[Path]:
    """Create a temporary database path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.sqlite"


@pytest.fixture
def store(temp_db_path: Path) -> Generator[SqliteDocumentStore]:
    """Create a connected store."""
    StoreMetrics.reset()
    with SqliteDocumentStore(temp_db_path) as s:
        yield s


@pytest.fixture
def ledger(store: SqliteDocumentStore) -> AuditLedger:
    """Create a ledger over the store."""
    return AuditLedger(store, search_window=3)


def _append_days(ledger: AuditLedger, days: int) -> None:
    """Append one entry per day ending at FIXED_NOW, oldest first."""
    for i in range(days):
        ledger.append(
            make_entry(
                entry_id=f"e{i}",
                timestamp=FIXED_NOW - timedelta(days=days - 1 - i),
                description=f"Entry number {i}",
            )
        )


class TestAppend:
    """Tests for AuditLedger.append()."""

    def test_assigns_id(self, ledger: AuditLedger) -> None:
        """Test entries without an id get one and are retrievable."""
        stored = ledger.append(make_entry())

        assert stored.id
        assert ledger.get(stored.id) == stored
        assert ledger.metrics.appended_total == 1

    def test_keeps_given_id(self, ledger: AuditLedger) -> None:
        """Test an explicit id is preserved."""
        assert ledger.append(make_entry(entry_id="fixed")).id == "fixed"

    @pytest.mark.parametrize("field", ["actor_id", "actor_email", "description"])
    def test_rejects_incomplete(
        self, ledger: AuditLedger, store: SqliteDocumentStore, field: str
    ) -> None:
        """Test entries missing required text are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            ledger.append(make_entry(**{field: " "}))

        assert exc_info.value.field == field
        assert ledger.metrics.rejected_total == 1
        assert store.count(LEDGER_COLLECTION) == 0

    def test_store_failure_retried_then_raised(self) -> None:
        """Test store failures are retried and surfaced classified."""
        failing_store = MagicMock(spec=SqliteDocumentStore)
        failing_store.set.side_effect = sqlite3.OperationalError("database is locked")
        ledger = AuditLedger(
            failing_store,
            retry_policy=RetryPolicy(max_retries=2, initial_delay_ms=0),
            sleep=lambda _: None,
        )

        with pytest.raises(StoreError):
            ledger.append(make_entry())

        assert failing_store.set.call_count == 3
        assert ledger.metrics.append_failures_total == 1
        assert ledger.metrics.appended_total == 0


class TestQuery:
    """Tests for AuditLedger.query()."""

    def test_newest_first(self, ledger: AuditLedger) -> None:
        """Test entries come back newest first."""
        _append_days(ledger, 4)
        page = ledger.query()
        assert [e.id for e in page.entries] == ["e3", "e2", "e1", "e0"]
        assert page.next_cursor is None

    def test_pagination(self, ledger: AuditLedger) -> None:
        """Test cursors page through all entries."""
        _append_days(ledger, 5)

        first = ledger.query(limit=2)
        second = ledger.query(cursor=first.next_cursor, limit=2)
        third = ledger.query(cursor=second.next_cursor, limit=2)

        ids = [e.id for p in (first, second, third) for e in p.entries]
        assert ids == ["e4", "e3", "e2", "e1", "e0"]
        assert third.next_cursor is None

    def test_filter_by_action(self, ledger: AuditLedger) -> None:
        """Test action type filtering."""
        ledger.append(make_entry(entry_id="r"))
        ledger.append(make_entry(entry_id="c", action_type=ActionType.ITEM_CLAIM))

        page = ledger.query(LedgerFilters(action_type=ActionType.ITEM_CLAIM))
        assert [e.id for e in page.entries] == ["c"]

    def test_date_range_half_open(self, ledger: AuditLedger) -> None:
        """Test start is inclusive and end exclusive."""
        _append_days(ledger, 5)
        filters = LedgerFilters(
            start=FIXED_NOW - timedelta(days=3), end=FIXED_NOW - timedelta(days=1)
        )
        assert [e.id for e in ledger.query(filters).entries] == ["e2", "e1"]

    def test_non_positive_limit(self, ledger: AuditLedger) -> None:
        """Test a zero page size is rejected."""
        with pytest.raises(ValidationError):
            ledger.query(limit=0)

    def test_malformed_cursor_is_bad_input(self, ledger: AuditLedger) -> None:
        """Test a garbage cursor fails as validation and is not retryable."""
        _append_days(ledger, 2)

        with pytest.raises(InvalidCursorError) as exc_info:
            ledger.query(cursor="not-a-cursor!!")

        error = exc_info.value
        assert isinstance(error, ValidationError)
        assert error.kind == ErrorKind.VALIDATION
        assert not error.is_retryable
        assert error.field == "cursor"
        assert get_user_message(error) == (
            "Invalid cursor. Please check your data and try again."
        )


class TestSearch:
    """Tests for AuditLedger.search()."""

    def test_case_insensitive(self, ledger: AuditLedger) -> None:
        """Test matching ignores case."""
        _append_days(ledger, 2)
        assert [e.id for e in ledger.search("ENTRY NUMBER 1")] == ["e1"]

    def test_matches_action_label(self, ledger: AuditLedger) -> None:
        """Test the action display name is searchable."""
        ledger.append(make_entry(entry_id="c", action_type=ActionType.ITEM_CLAIM))
        assert [e.id for e in ledger.search("item claimed")] == ["c"]

    def test_blank_returns_window(self, ledger: AuditLedger) -> None:
        """Test blank text returns the recent window."""
        _append_days(ledger, 5)
        assert [e.id for e in ledger.search("  ")] == ["e4", "e3", "e2"]

    def test_window_misses_older_matches(self, ledger: AuditLedger) -> None:
        """Test matches outside the recent window are not found."""
        _append_days(ledger, 5)
        assert ledger.search("entry number 0") == []
        assert [e.id for e in ledger.search("entry number 0", window=5)] == ["e0"]


class TestArchiveViews:
    """Tests for archive-related reads."""

    def test_count_older_than(self, ledger: AuditLedger) -> None:
        """Test counting entries before a cutoff."""
        _append_days(ledger, 5)
        assert ledger.count_older_than(FIXED_NOW - timedelta(days=2)) == 2

    def test_query_archive_partition(
        self, ledger: AuditLedger, store: SqliteDocumentStore
    ) -> None:
        """Test archive partitions are queryable by month."""
        entry = make_entry(entry_id="old", timestamp=FIXED_NOW.replace(year=2016))
        store.set("activity_logs_archive_2016-06", "old", entry.to_document())

        assert ledger.list_archive_partitions() == ["activity_logs_archive_2016-06"]
        page = ledger.query_archive("2016-06")
        assert page.entries == [entry]
        assert ledger.query_archive("activity_logs_archive_2016-06").entries == [entry]
