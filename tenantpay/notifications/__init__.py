"""Tenant notifications: email, push and the confirmation outbox."""
from .models import NotificationOutboxEntry, NotificationType, OutboxStatus

__all__ = ["NotificationOutboxEntry", "NotificationType", "OutboxStatus"]
