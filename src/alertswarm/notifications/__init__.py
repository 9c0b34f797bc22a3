"""Notification services for AlertSwarm."""

from alertswarm.notifications.status import (
    LoggingStatusNotifier,
    StatusNotifier,
    StatusUpdate,
    WebhookStatusNotifier,
)

__all__ = [
    "LoggingStatusNotifier",
    "StatusNotifier",
    "StatusUpdate",
    "WebhookStatusNotifier",
]
