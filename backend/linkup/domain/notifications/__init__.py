"""Notification domain exports."""

from .aggregator import Notification, NotificationFeed, NotificationKind, project  # noqa: F401
