"""
Audit Log model for tracking changes to payment records.

Every obligation creation, status change and reconciliation delete is written
here in the same transaction as the change itself.
"""
from sqlalchemy import Column, String, DateTime, Text, Index
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from tenantpay.database import Base, generate_id


class AuditLog(Base):
    """Audit Log - one row per recorded change."""

    __tablename__ = "audit_logs"

    id = Column(String, primary_key=True, default=lambda: generate_id("audit"))

    # What changed?
    entity_type = Column(String, nullable=False, index=True)
    # Options: "obligation"

    entity_id = Column(String, nullable=False, index=True)

    action = Column(String, nullable=False, index=True)
    # Options:
    # - "create": Obligation generated
    # - "update": Field changed (status, payment_date, notes)
    # - "reconcile": Duplicate removed by the reconciliation job

    # What field changed? (for updates)
    field_name = Column(String, nullable=True)

    old_value = Column(JSONB, nullable=True)
    new_value = Column(JSONB, nullable=True)

    # Who made the change?
    user_id = Column(String, nullable=True, index=True)

    source = Column(String, nullable=False, default="api")
    # Options:
    # - "api": Direct API call
    # - "system": Scheduler / background job
    # - "script": Maintenance CLI

    extra_data = Column("extra_data", JSONB, nullable=True)

    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    __table_args__ = (
        Index("ix_audit_log_entity", "entity_type", "entity_id"),
        Index("ix_audit_log_entity_action", "entity_type", "action"),
        Index("ix_audit_log_user_time", "user_id", "created_at"),
        Index("ix_audit_log_source", "source"),
    )

    def __repr__(self):
        return (
            f"<AuditLog {self.id}: "
            f"{self.action} on {self.entity_type}/{self.entity_id} "
            f"at {self.created_at}>"
        )
