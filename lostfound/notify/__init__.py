"""Notification sender interface."""

from lostfound.notify.sender import (
    DeliveryOutcome,
    NotificationSender,
    RecordingNotificationSender,
)


__all__ = ["DeliveryOutcome", "NotificationSender", "RecordingNotificationSender"]
