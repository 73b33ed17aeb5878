"""Unit tests for store value types and encoding."""

from datetime import UTC, datetime
from enum import Enum

from lostfound.store import (
    BatchOp,
    BatchOpKind,
    FieldFilter,
    FilterOp,
    encode_value,
    from_epoch_ms,
    to_epoch_ms,
)


class _Color(str, Enum):
    RED = "RED"


class TestCodec:
    """Tests for timestamp and value encoding."""

    def test_epoch_ms(self) -> None:
        """Test datetimes convert to and from epoch milliseconds."""
        ts = datetime(2017, 6, 13, 12, 30, 0, 250000, tzinfo=UTC)
        ms = to_epoch_ms(ts)
        assert ms == 1497357000250
        assert from_epoch_ms(ms) == ts

    def test_naive_is_utc(self) -> None:
        """Test naive datetimes are read as UTC."""
        assert to_epoch_ms(datetime(1970, 1, 1, 0, 0, 1)) == 1000

    def test_encode_value_recursive(self) -> None:
        """Test nested values are encoded."""
        ts = datetime(1970, 1, 1, 0, 0, 2, tzinfo=UTC)
        assert encode_value({"a": [ts, _Color.RED], "b": 3}) == {
            "a": [2000, "RED"],
            "b": 3,
        }


class TestFieldFilter:
    """Tests for in-memory filter evaluation."""

    def test_equality(self) -> None:
        """Test equality against stored values."""
        f = FieldFilter("status", FilterOp.EQ, "ACTIVE")
        assert f.matches({"status": "ACTIVE"})
        assert not f.matches({"status": "DONATED"})

    def test_nested_path(self) -> None:
        """Test dotted paths reach nested maps."""
        f = FieldFilter("metadata.age_days", FilterOp.GE, 365)
        assert f.matches({"metadata": {"age_days": 400}})
        assert not f.matches({"metadata": {"age_days": 10}})
        assert not f.matches({"metadata": "flat"})

    def test_missing_field(self) -> None:
        """Test missing fields only match null comparisons."""
        assert not FieldFilter("x", FilterOp.LT, 5).matches({})
        assert FieldFilter("x", FilterOp.EQ, None).matches({})
        assert FieldFilter("x", FilterOp.NE, 5).matches({})

    def test_type_mismatch(self) -> None:
        """Test incomparable values do not match."""
        assert not FieldFilter("x", FilterOp.LT, 5).matches({"x": "text"})


class TestBatchOp:
    """Tests for BatchOp constructors."""

    def test_constructors(self) -> None:
        """Test the three operation kinds."""
        assert BatchOp.set("c", "1", {"a": 1}).kind == BatchOpKind.SET
        assert BatchOp.update("c", "1", {"a": 2}).kind == BatchOpKind.UPDATE
        delete = BatchOp.delete("c", "1")
        assert delete.kind == BatchOpKind.DELETE
        assert delete.data is None
