"""Data models for the audit ledger."""

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any, Final

from pydantic import BaseModel, ConfigDict, Field

from lostfound.store.codec import Timestamp
from lostfound.store.protocols import FieldFilter, FilterOp


LEDGER_COLLECTION: Final = "activity_logs"
ARCHIVE_PREFIX: Final = "activity_logs_archive_"

MetadataValue = str | int | float | bool | None


class ActionType(str, Enum):
    """Kinds of recorded action."""

    USER_LOGIN = "USER_LOGIN"
    USER_LOGOUT = "USER_LOGOUT"
    USER_REGISTER = "USER_REGISTER"
    ITEM_REPORT = "ITEM_REPORT"
    ITEM_REQUEST = "ITEM_REQUEST"
    ITEM_CLAIM = "ITEM_CLAIM"
    USER_BLOCK = "USER_BLOCK"
    USER_UNBLOCK = "USER_UNBLOCK"
    USER_ROLE_CHANGE = "USER_ROLE_CHANGE"
    USER_EDIT = "USER_EDIT"
    ITEM_EDIT = "ITEM_EDIT"
    ITEM_STATUS_CHANGE = "ITEM_STATUS_CHANGE"
    ITEM_DELETE = "ITEM_DELETE"
    DONATION_MARK_READY = "DONATION_MARK_READY"
    DONATION_COMPLETE = "DONATION_COMPLETE"
    NOTIFICATION_SEND = "NOTIFICATION_SEND"
    DATA_EXPORT = "DATA_EXPORT"
    SYSTEM_MAINTENANCE = "SYSTEM_MAINTENANCE"
    SYSTEM_ERROR = "SYSTEM_ERROR"
    AUTO_DONATION_FLAG = "AUTO_DONATION_FLAG"
    LOG_ARCHIVE = "LOG_ARCHIVE"

    @property
    def display_name(self) -> str:
        """Human-readable action label."""
        return _ACTION_DISPLAY_NAMES[self]

    @property
    def is_admin_action(self) -> bool:
        """Whether the action is performed by an administrator."""
        return self in _ADMIN_ACTIONS

    @property
    def is_system_event(self) -> bool:
        """Whether the action is emitted by the system itself."""
        return self in _SYSTEM_EVENTS


_ACTION_DISPLAY_NAMES: Final[dict[ActionType, str]] = {
    ActionType.USER_LOGIN: "User Login",
    ActionType.USER_LOGOUT: "User Logout",
    ActionType.USER_REGISTER: "User Registration",
    ActionType.ITEM_REPORT: "Item Reported",
    ActionType.ITEM_REQUEST: "Item Requested",
    ActionType.ITEM_CLAIM: "Item Claimed",
    ActionType.USER_BLOCK: "User Blocked",
    ActionType.USER_UNBLOCK: "User Unblocked",
    ActionType.USER_ROLE_CHANGE: "Role Changed",
    ActionType.USER_EDIT: "User Edited",
    ActionType.ITEM_EDIT: "Item Edited",
    ActionType.ITEM_STATUS_CHANGE: "Status Changed",
    ActionType.ITEM_DELETE: "Item Deleted",
    ActionType.DONATION_MARK_READY: "Marked Ready for Donation",
    ActionType.DONATION_COMPLETE: "Donation Completed",
    ActionType.NOTIFICATION_SEND: "Notification Sent",
    ActionType.DATA_EXPORT: "Data Exported",
    ActionType.SYSTEM_MAINTENANCE: "System Maintenance",
    ActionType.SYSTEM_ERROR: "System Error",
    ActionType.AUTO_DONATION_FLAG: "Auto-flagged for Donation",
    ActionType.LOG_ARCHIVE: "Logs Archived",
}

_ADMIN_ACTIONS: Final[frozenset[ActionType]] = frozenset(
    {
        ActionType.USER_BLOCK,
        ActionType.USER_UNBLOCK,
        ActionType.USER_ROLE_CHANGE,
        ActionType.USER_EDIT,
        ActionType.ITEM_EDIT,
        ActionType.ITEM_STATUS_CHANGE,
        ActionType.ITEM_DELETE,
        ActionType.DONATION_MARK_READY,
        ActionType.DONATION_COMPLETE,
        ActionType.NOTIFICATION_SEND,
        ActionType.DATA_EXPORT,
    }
)

_SYSTEM_EVENTS: Final[frozenset[ActionType]] = frozenset(
    {
        ActionType.SYSTEM_MAINTENANCE,
        ActionType.SYSTEM_ERROR,
        ActionType.AUTO_DONATION_FLAG,
        ActionType.LOG_ARCHIVE,
    }
)


class TargetType(str, Enum):
    """Kind of entity an action refers to."""

    USER = "USER"
    ITEM = "ITEM"
    DONATION = "DONATION"
    NOTIFICATION = "NOTIFICATION"
    SYSTEM = "SYSTEM"


class ActorRole(str, Enum):
    """Role of the actor at the time of the action."""

    USER = "USER"
    ADMIN = "ADMIN"
    SYSTEM = "SYSTEM"


SYSTEM_ACTOR_ID: Final = "system"
SYSTEM_ACTOR_EMAIL: Final = "system@lostfound.local"


class Actor(BaseModel):
    """Who performs an action."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    email: str
    role: ActorRole = ActorRole.USER

    @classmethod
    def system(cls) -> "Actor":
        """The actor used for scheduled maintenance."""
        return cls(id=SYSTEM_ACTOR_ID, email=SYSTEM_ACTOR_EMAIL, role=ActorRole.SYSTEM)


class LedgerEntry(BaseModel):
    """One immutable audit record.

    Entries outlive the items they describe; deleting an item never
    deletes its entries.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str | None = None
    timestamp: Timestamp = Field(default_factory=lambda: datetime.now(UTC))
    actor_id: str
    actor_email: str
    actor_role: ActorRole = ActorRole.USER
    action_type: ActionType
    target_type: TargetType
    target_id: str = ""
    description: str
    previous_value: str | None = None
    new_value: str | None = None
    metadata: dict[str, MetadataValue] = Field(default_factory=dict)

    @classmethod
    def system(
        cls,
        action_type: ActionType,
        target_type: TargetType,
        description: str,
        **kwargs: Any,
    ) -> "LedgerEntry":
        """Build an entry attributed to the system actor."""
        return cls(
            actor_id=SYSTEM_ACTOR_ID,
            actor_email=SYSTEM_ACTOR_EMAIL,
            actor_role=ActorRole.SYSTEM,
            action_type=action_type,
            target_type=target_type,
            description=description,
            **kwargs,
        )

    def matches_text(self, needle: str) -> bool:
        """Case-insensitive substring match over searchable fields.

        Args:
            needle: Lowercased search text.
        """
        return (
            needle in self.actor_email.lower()
            or needle in self.description.lower()
            or needle in self.target_id.lower()
            or needle in self.action_type.display_name.lower()
        )

    def to_document(self) -> dict[str, Any]:
        """Serialize into stored form."""
        return self.model_dump(mode="json")

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> "LedgerEntry":
        """Deserialize from stored form."""
        return cls.model_validate(data)


class LedgerFilters(BaseModel):
    """Filters for ledger queries; unset fields do not constrain."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    actor_id: str | None = None
    actor_email: str | None = None
    action_type: ActionType | None = None
    target_type: TargetType | None = None
    target_id: str | None = None
    start: datetime | None = None
    end: datetime | None = None

    def to_field_filters(self) -> list[FieldFilter]:
        """Translate into store predicates (``start`` inclusive, ``end`` exclusive)."""
        filters: list[FieldFilter] = []
        for name in ("actor_id", "actor_email", "action_type", "target_type", "target_id"):
            value = getattr(self, name)
            if value is not None:
                filters.append(FieldFilter(name, FilterOp.EQ, value))
        if self.start is not None:
            filters.append(FieldFilter("timestamp", FilterOp.GE, self.start))
        if self.end is not None:
            filters.append(FieldFilter("timestamp", FilterOp.LT, self.end))
        return filters


class LedgerPage(BaseModel):
    """One page of ledger entries, newest first."""

    model_config = ConfigDict(frozen=True)

    entries: list[LedgerEntry]
    next_cursor: Annotated[str | None, Field(description="Cursor for next page")] = None
