"""Payment obligation model - one expected rent payment per tenant, property and month."""
from enum import Enum

from sqlalchemy import (
    Column, String, Date, DateTime, Numeric, Text, ForeignKey, Index,
    UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from tenantpay.database import Base, generate_id
from tenantpay.directory.models import Property, User


class ObligationStatus(str, Enum):
    """Stored payment status. Lateness of a pending record is computed, not stored."""
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"


class PaymentObligation(Base):
    """
    Payment Obligation

    A tenant's rent for one property for one calendar month. The amount is
    captured from the tenant's monthly rate when the record is created and is
    not recomputed afterwards.
    """

    __tablename__ = "tenant_payments"

    id = Column(String, primary_key=True, default=lambda: generate_id("pay"))
    tenant_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    property_id = Column(String, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False)

    # First day of the covered month
    period_month = Column(Date, nullable=False)

    amount = Column(Numeric(precision=10, scale=2), nullable=False)

    status = Column(String, nullable=False, default=ObligationStatus.PENDING.value)
    # Options:
    # - "pending": Expected, not yet received
    # - "paid": Received; payment_date is set
    # - "overdue": Explicitly flagged by a manager

    payment_date = Column(Date, nullable=True)  # Only set while status == "paid"
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    tenant = relationship(User)
    rental_property = relationship(Property)

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "property_id", "period_month",
            name="uq_tenant_payments_tenant_property_month",
        ),
        CheckConstraint(
            "EXTRACT(DAY FROM period_month) = 1",
            name="ck_tenant_payments_period_month_first_day",
        ),
        CheckConstraint(
            "status IN ('pending', 'paid', 'overdue')",
            name="ck_tenant_payments_status",
        ),
        Index("ix_tenant_payments_tenant_id", "tenant_id"),
        Index("ix_tenant_payments_property_id", "property_id"),
        Index("ix_tenant_payments_period_month", "period_month"),
        Index("ix_tenant_payments_status", "status"),
    )

    # Fetch created_at/updated_at with RETURNING so they are readable after commit
    __mapper_args__ = {"eager_defaults": True}

    @property
    def key(self):
        return (self.tenant_id, self.property_id, self.period_month)

    def __repr__(self) -> str:
        return (
            f"<PaymentObligation {self.id} tenant={self.tenant_id} "
            f"property={self.property_id} period={self.period_month} status={self.status}>"
        )
