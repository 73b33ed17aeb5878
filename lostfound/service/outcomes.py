"""Two-part results for mutating operations."""

from dataclasses import dataclass
from typing import Generic, TypeVar

from lostfound.errors import AdminError
from lostfound.ledger import LedgerEntry


T = TypeVar("T")


@dataclass(frozen=True)
class MutationOutcome(Generic[T]):
    """Result of a mutation plus the outcome of its audit write.

    The mutation has been persisted whenever an outcome is returned. If
    the ledger write failed, ``audit_error`` says why and the mutation is
    not rolled back.
    """

    value: T
    audit_entry: LedgerEntry | None = None
    audit_error: AdminError | None = None

    @property
    def audit_ok(self) -> bool:
        """Whether the audit entry was written."""
        return self.audit_error is None
