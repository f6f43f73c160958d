"""
Directory models - users, properties and push tokens.

These tables belong to the wider rent management application (profiles,
property CRUD, mobile app registration). The payments core only reads them.
"""
from sqlalchemy import Column, String, DateTime, Boolean, Numeric, SmallInteger, ForeignKey, JSON, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from tenantpay.database import Base, generate_id


class User(Base):
    """User model - admins, property managers and tenants share one table."""

    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: generate_id("user"))
    email = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)
    surname = Column(String, nullable=True)

    role = Column(String, nullable=False, default="tenant", index=True)
    # Options: "admin", "property_manager", "tenant"

    # Billing profile (tenants only)
    monthly_rate = Column(Numeric(precision=10, scale=2), nullable=True)
    notice_day = Column(SmallInteger, nullable=True)  # 1-31, day payment is expected by
    property_ids = Column(JSON, nullable=False, default=list)
    apartment_label = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    push_tokens = relationship("PushToken", back_populates="user", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("notice_day IS NULL OR notice_day BETWEEN 1 AND 31", name="ck_users_notice_day"),
    )


class Property(Base):
    """A managed building or apartment block."""

    __tablename__ = "properties"

    id = Column(String, primary_key=True, default=lambda: generate_id("prop"))
    name = Column(String, nullable=False)
    address = Column(String, nullable=True)
    location = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class PushToken(Base):
    """Expo push token registered by the mobile app."""

    __tablename__ = "push_tokens"

    id = Column(String, primary_key=True, default=lambda: generate_id("push"))
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    push_token = Column(String(255), unique=True, nullable=False)
    device_type = Column(String, nullable=False)  # "ios" | "android"
    is_active = Column(Boolean, nullable=False, default=True)
    last_used_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="push_tokens")
