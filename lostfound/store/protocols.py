"""Document store collaborator interface and its value types."""

import operator
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Final, Protocol


class FilterOp(str, Enum):
    """Comparison operators supported in field filters."""

    EQ = "=="
    NE = "!="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="


_COMPARATORS: Final[dict[FilterOp, Callable[[Any, Any], bool]]] = {
    FilterOp.EQ: operator.eq,
    FilterOp.NE: operator.ne,
    FilterOp.LT: operator.lt,
    FilterOp.LE: operator.le,
    FilterOp.GT: operator.gt,
    FilterOp.GE: operator.ge,
}


@dataclass(frozen=True)
class FieldFilter:
    """A single ``field op value`` predicate.

    ``field`` may be a dotted path into nested maps. ``value`` must already
    be in stored form (see ``codec.encode_value``).
    """

    field: str
    op: FilterOp
    value: Any

    def matches(self, data: dict[str, Any]) -> bool:
        """Evaluate the predicate against a stored document body."""
        actual: Any = data
        for part in self.field.split("."):
            if not isinstance(actual, dict) or part not in actual:
                actual = None
                break
            actual = actual[part]
        if actual is None or self.value is None:
            if self.op == FilterOp.EQ:
                return actual is self.value
            if self.op == FilterOp.NE:
                return actual is not self.value
            return False
        try:
            return _COMPARATORS[self.op](actual, self.value)
        except TypeError:
            return False


def matches_all(data: dict[str, Any], filters: Sequence[FieldFilter]) -> bool:
    """Check that a document body satisfies every filter."""
    return all(f.matches(data) for f in filters)


@dataclass(frozen=True)
class OrderBy:
    """Sort order; ties are broken by document id."""

    field: str
    descending: bool = False


@dataclass(frozen=True)
class Document:
    """A stored document."""

    doc_id: str
    data: dict[str, Any]


@dataclass(frozen=True)
class QueryPage:
    """One page of query results.

    Attributes:
        documents: Documents in requested order.
        next_cursor: Opaque cursor for the next page, None when exhausted.
    """

    documents: list[Document]
    next_cursor: str | None = None


class BatchOpKind(str, Enum):
    """Kinds of operation inside an atomic batch."""

    SET = "SET"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class BatchOp:
    """One mutation inside an atomic batch."""

    kind: BatchOpKind
    collection: str
    doc_id: str
    data: dict[str, Any] | None = None

    @classmethod
    def set(cls, collection: str, doc_id: str, data: dict[str, Any]) -> "BatchOp":
        """Create or overwrite a document."""
        return cls(BatchOpKind.SET, collection, doc_id, data)

    @classmethod
    def update(
        cls, collection: str, doc_id: str, fields: dict[str, Any]
    ) -> "BatchOp":
        """Merge top-level fields into an existing document."""
        return cls(BatchOpKind.UPDATE, collection, doc_id, fields)

    @classmethod
    def delete(cls, collection: str, doc_id: str) -> "BatchOp":
        """Delete a document if present."""
        return cls(BatchOpKind.DELETE, collection, doc_id)


class ChangeType(str, Enum):
    """Kind of committed change delivered to subscribers."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    REMOVED = "REMOVED"


@dataclass(frozen=True)
class ChangeEvent:
    """A committed change to one document.

    For removals ``data`` holds the body as it was before deletion.
    """

    change_type: ChangeType
    collection: str
    doc_id: str
    data: dict[str, Any] = field(default_factory=dict)


class Subscription(Protocol):
    """Stream of change events; iteration blocks until the next event."""

    def __iter__(self) -> Iterator[ChangeEvent]:
        """Iterate over events until closed."""
        ...

    def poll(self, timeout: float | None = None) -> ChangeEvent | None:
        """Return the next event, or None after timeout or close."""
        ...

    def close(self) -> None:
        """Stop receiving events."""
        ...


class DocumentStore(Protocol):
    """Document store offering atomic single-document writes and bounded
    atomic multi-document batches.
    """

    @property
    def max_batch_ops(self) -> int:
        """Maximum number of operations in one atomic batch."""
        ...

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Get a document body, or None if absent."""
        ...

    def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """Create or overwrite a document."""
        ...

    def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        """Merge fields into an existing document (NotFoundError if absent)."""
        ...

    def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document; returns whether it existed."""
        ...

    def query(
        self,
        collection: str,
        filters: Sequence[FieldFilter] = (),
        order_by: OrderBy | None = None,
        limit: int | None = None,
        cursor: str | None = None,
    ) -> QueryPage:
        """Query a collection with keyset pagination."""
        ...

    def count(self, collection: str, filters: Sequence[FieldFilter] = ()) -> int:
        """Count documents matching the filters."""
        ...

    def subscribe(
        self, collection: str, filters: Sequence[FieldFilter] = ()
    ) -> Subscription:
        """Subscribe to committed changes matching the filters."""
        ...

    def atomic_batch(self, ops: Sequence[BatchOp]) -> None:
        """Commit up to ``max_batch_ops`` operations all-or-nothing."""
        ...

    def list_collections(self, prefix: str = "") -> list[str]:
        """List non-empty collections whose name starts with prefix."""
        ...
