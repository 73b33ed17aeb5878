"""Unit tests for ledger data models."""

from datetime import UTC, datetime, timedelta, timezone

import pydantic
import pytest

from lostfound.ledger import (
    SYSTEM_ACTOR_EMAIL,
    SYSTEM_ACTOR_ID,
    ActionType,
    Actor,
    ActorRole,
    LedgerEntry,
    LedgerFilters,
    TargetType,
    archive_partition_name,
)
from lostfound.store import FilterOp, to_epoch_ms
from tests.helpers.factories import make_entry
from tests.helpers.time import FIXED_NOW


class TestActionType:
    """Tests for ActionType."""

    def test_all_actions_have_display_names(self) -> None:
        """Test every action has a label."""
        assert len(ActionType) == 21
        for action in ActionType:
            assert action.display_name

    def test_action_categories(self) -> None:
        """Test admin and system classification."""
        assert ActionType.AUTO_DONATION_FLAG.is_system_event
        assert ActionType.LOG_ARCHIVE.is_system_event
        assert ActionType.DONATION_COMPLETE.is_admin_action
        assert not ActionType.USER_LOGIN.is_admin_action
        assert not ActionType.USER_LOGIN.is_system_event


class TestLedgerEntry:
    """Tests for LedgerEntry."""

    def test_system_entry(self) -> None:
        """Test system entries are attributed to the system actor."""
        entry = LedgerEntry.system(
            ActionType.SYSTEM_MAINTENANCE, TargetType.SYSTEM, "Sweep complete"
        )
        assert entry.actor_id == SYSTEM_ACTOR_ID
        assert entry.actor_email == SYSTEM_ACTOR_EMAIL
        assert entry.actor_role == ActorRole.SYSTEM

    def test_system_actor(self) -> None:
        """Test the system actor constant."""
        assert Actor.system().role == ActorRole.SYSTEM

    def test_frozen(self) -> None:
        """Test entries are immutable."""
        entry = make_entry()
        with pytest.raises(pydantic.ValidationError):
            entry.description = "changed"  # type: ignore[misc]

    def test_document_form(self) -> None:
        """Test the stored form uses epoch milliseconds and enum values."""
        doc = make_entry(entry_id="e1", metadata={"age_days": 400}).to_document()

        assert doc["timestamp"] == to_epoch_ms(FIXED_NOW)
        assert doc["action_type"] == "ITEM_REPORT"
        assert doc["metadata"] == {"age_days": 400}
        assert LedgerEntry.from_document(doc).timestamp == FIXED_NOW

    @pytest.mark.parametrize(
        "needle",
        ["reporter@", "blue umbrella", "item-1", "item reported"],
    )
    def test_matches_text(self, needle: str) -> None:
        """Test search covers email, description, target and action label."""
        assert make_entry().matches_text(needle)

    def test_matches_text_miss(self) -> None:
        """Test unrelated text does not match."""
        assert not make_entry().matches_text("wallet")


class TestLedgerFilters:
    """Tests for LedgerFilters translation."""

    def test_empty(self) -> None:
        """Test no filters constrain nothing."""
        assert LedgerFilters().to_field_filters() == []

    def test_equality_and_range(self) -> None:
        """Test equality filters and the half-open date range."""
        start = FIXED_NOW - timedelta(days=7)
        filters = LedgerFilters(
            action_type=ActionType.ITEM_CLAIM,
            actor_id="admin-1",
            start=start,
            end=FIXED_NOW,
        ).to_field_filters()

        by_field = {(f.field, f.op): f.value for f in filters}
        assert by_field[("actor_id", FilterOp.EQ)] == "admin-1"
        assert by_field[("action_type", FilterOp.EQ)] == ActionType.ITEM_CLAIM
        assert by_field[("timestamp", FilterOp.GE)] == start
        assert by_field[("timestamp", FilterOp.LT)] == FIXED_NOW


class TestArchivePartitionName:
    """Tests for archive_partition_name()."""

    def test_month_partition(self) -> None:
        """Test entries map to their UTC month."""
        ts = datetime(2016, 3, 31, 23, 59, tzinfo=UTC)
        assert archive_partition_name(ts) == "activity_logs_archive_2016-03"

    def test_offset_converted_to_utc(self) -> None:
        """Test non-UTC timestamps are bucketed by their UTC month."""
        ts = datetime(2016, 4, 1, 1, 0, tzinfo=timezone(timedelta(hours=2)))
        assert archive_partition_name(ts) == "activity_logs_archive_2016-03"

    def test_naive_treated_as_utc(self) -> None:
        """Test naive timestamps are treated as UTC."""
        assert archive_partition_name(datetime(2016, 12, 1)) == (
            "activity_logs_archive_2016-12"
        )
