"""Item lifecycle state machine."""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, ClassVar, assert_never

import structlog

from lostfound.errors import InvalidTransitionError, ValidationError
from lostfound.lifecycle.models import DONATION_STATUSES, Item, ItemStatus, StatusChange


logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ItemStateMachine:
    """State machine for item lifecycle.

    State transitions:
        ACTIVE -> REQUESTED: A claimant requests the item
        ACTIVE -> DONATION_PENDING: Item aged past the donation threshold
        REQUESTED -> RETURNED: Item handed back to its owner
        REQUESTED -> ACTIVE: Request cancelled or rejected
        DONATION_PENDING -> DONATION_READY: Staff prepared the donation
        DONATION_PENDING -> ACTIVE: Pulled back out of the donation pipeline
        DONATION_READY -> DONATED: Handed to a recipient
        DONATION_READY -> ACTIVE: Pulled back out of the donation pipeline

    ``transition`` is pure: it returns an updated copy and never touches
    storage. Persisting the item and writing the ledger entry are up to the
    caller.
    """

    VALID_TRANSITIONS: ClassVar[dict[ItemStatus, set[ItemStatus]]] = {
        ItemStatus.ACTIVE: {ItemStatus.REQUESTED, ItemStatus.DONATION_PENDING},
        ItemStatus.REQUESTED: {ItemStatus.RETURNED, ItemStatus.ACTIVE},
        ItemStatus.DONATION_PENDING: {ItemStatus.DONATION_READY, ItemStatus.ACTIVE},
        ItemStatus.DONATION_READY: {ItemStatus.DONATED, ItemStatus.ACTIVE},
        ItemStatus.RETURNED: set(),  # Terminal state
        ItemStatus.DONATED: set(),  # Terminal state
    }

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        """Initialize the state machine.

        Args:
            clock: Returns the current aware datetime.
        """
        self._clock = clock
        self._log = logger.bind(component="lifecycle")

    @classmethod
    def can_transition(cls, from_status: ItemStatus, to_status: ItemStatus) -> bool:
        """Check if ``from_status -> to_status`` is an edge of the graph."""
        return to_status in cls.VALID_TRANSITIONS[from_status]

    @classmethod
    def valid_targets(cls, from_status: ItemStatus) -> frozenset[ItemStatus]:
        """Statuses reachable in one step from ``from_status``."""
        return frozenset(cls.VALID_TRANSITIONS[from_status])

    @classmethod
    def is_terminal(cls, status: ItemStatus) -> bool:
        """Check if a status has no outgoing transitions."""
        return not cls.VALID_TRANSITIONS[status]

    def transition(
        self,
        item: Item,
        target: ItemStatus,
        actor_id: str,
        reason: str = "",
        now: datetime | None = None,
    ) -> Item:
        """Apply a status transition.

        Args:
            item: The item in its current state.
            target: The status to move to.
            actor_id: Who is performing the change.
            reason: Free-text reason recorded in the history.
            now: Transition time (clock time if omitted).

        Returns:
            A new Item with the status, history and timestamps updated.

        Raises:
            ValidationError: If the target equals the current status or the
                actor is blank.
            InvalidTransitionError: If the edge is not in the graph.
        """
        if target == item.status:
            msg = f"Item {item.id} is already {target.value}"
            raise ValidationError(msg, field="status")

        if not self.can_transition(item.status, target):
            self._log.error(
                "invariant_violation",
                error_type="illegal_state_transition",
                item_id=item.id,
                from_state=item.status.value,
                to_state=target.value,
            )
            raise InvalidTransitionError(item.status, target)

        if not actor_id.strip():
            raise ValidationError("Actor id must not be blank", field="actor_id")

        now = now or self._clock()
        change = StatusChange(
            previous_status=item.status,
            new_status=target,
            actor_id=actor_id,
            timestamp=now,
            reason=reason,
        )
        updates: dict[str, Any] = {
            "status": target,
            "status_history": (*item.status_history, change),
            "last_modified_by": actor_id,
            "last_modified_at": now,
        }
        updates.update(self._status_fields(item.status, target, actor_id, now))

        self._log.info(
            "item_status_transition",
            item_id=item.id,
            from_state=item.status.value,
            to_state=target.value,
            actor_id=actor_id,
        )
        return item.model_copy(update=updates)

    @staticmethod
    def _status_fields(
        previous: ItemStatus, target: ItemStatus, actor_id: str, now: datetime
    ) -> dict[str, Any]:
        """Status-specific fields set by entering ``target``."""
        match target:
            case ItemStatus.REQUESTED:
                return {"requested_at": now, "requested_by": actor_id}
            case ItemStatus.RETURNED:
                return {"returned_at": now}
            case ItemStatus.DONATION_PENDING:
                return {"donation_eligible_at": now}
            case ItemStatus.DONATION_READY:
                return {}
            case ItemStatus.DONATED:
                return {"donated_at": now}
            case ItemStatus.ACTIVE:
                if previous == ItemStatus.REQUESTED:
                    return {"requested_at": None, "requested_by": None}
                if previous in DONATION_STATUSES:
                    return {"donation_eligible_at": None}
                return {}
            case _:
                assert_never(target)


_default_machine = ItemStateMachine()


def transition(
    item: Item,
    target: ItemStatus,
    actor_id: str,
    reason: str = "",
    now: datetime | None = None,
) -> Item:
    """Apply a status transition with the default state machine."""
    return _default_machine.transition(item, target, actor_id, reason, now)
