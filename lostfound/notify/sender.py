"""Notification sender collaborator."""

from dataclasses import dataclass, field
from typing import Protocol


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of one notification send.

    Attributes:
        delivered: Number of targets reached.
        failed: Targets that could not be reached.
    """

    delivered: int
    failed: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        """Whether every target was reached."""
        return not self.failed


class NotificationSender(Protocol):
    """Delivers notifications to users or groups (e.g. "admins")."""

    def send(
        self,
        targets: list[str],
        title: str,
        body: str,
        metadata: dict[str, str],
    ) -> DeliveryOutcome:
        """Send one notification to every target."""
        ...


@dataclass
class RecordingNotificationSender:
    """Sender that keeps every notification in memory.

    Used by the CLI when no delivery channel is configured, and in tests.
    """

    sent: list[tuple[list[str], str, str, dict[str, str]]] = field(
        default_factory=list
    )

    def send(
        self,
        targets: list[str],
        title: str,
        body: str,
        metadata: dict[str, str],
    ) -> DeliveryOutcome:
        """Record the notification and report it delivered."""
        self.sent.append((list(targets), title, body, dict(metadata)))
        return DeliveryOutcome(delivered=len(targets))
