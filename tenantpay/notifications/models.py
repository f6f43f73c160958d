"""
Notification Models

Outbox rows for notifications that must follow a committed data change.
A row is written in the same transaction as the change and delivered after
commit; failed rows stay behind for the retry job.
"""
from enum import Enum

from sqlalchemy import Column, String, DateTime, Integer, Text, ForeignKey, Index
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from tenantpay.database import Base, generate_id


class NotificationType(str, Enum):
    """Types of notifications that can be sent."""
    PAYMENT_REMINDER = "payment_reminder"          # Upcoming rent, from the daily job
    PAYMENT_CONFIRMATION = "payment_confirmation"  # Obligation(s) marked paid


class OutboxStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class NotificationOutboxEntry(Base):
    """
    Notification Outbox Entry

    payload example:
    {
        "payment_date": "2025-07-04",
        "items": [
            {"obligation_id": "pay_...", "property_id": "prop_...",
             "period_month": "2025-07-01", "amount": "300.00"}
        ]
    }
    """

    __tablename__ = "notification_outbox"

    id = Column(String, primary_key=True, default=lambda: generate_id("ntf"))
    notification_type = Column(String, nullable=False)
    tenant_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    payload = Column(JSONB, nullable=False)

    status = Column(String, nullable=False, default=OutboxStatus.PENDING.value)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_notification_outbox_status", "status"),
        Index("ix_notification_outbox_tenant_id", "tenant_id"),
    )

    __mapper_args__ = {"eager_defaults": True}

    def __repr__(self):
        return f"<NotificationOutboxEntry {self.id} {self.notification_type} {self.status}>"
