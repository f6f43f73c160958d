"""All mapped models, imported together so metadata is complete (Alembic, tests)."""
from tenantpay.database import Base
from tenantpay.directory.models import User, Property, PushToken
from tenantpay.obligations.models import PaymentObligation, ObligationStatus
from tenantpay.notifications.models import NotificationOutboxEntry, NotificationType, OutboxStatus
from tenantpay.audit.models import AuditLog

__all__ = [
    "Base",
    "User",
    "Property",
    "PushToken",
    "PaymentObligation",
    "ObligationStatus",
    "NotificationOutboxEntry",
    "NotificationType",
    "OutboxStatus",
    "AuditLog",
]
