"""
Pydantic schemas for the tenant payments API.
"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field
from decimal import Decimal
from datetime import date, datetime


# ============================================
# Payment Obligation
# ============================================

class PaymentObligationResponse(BaseModel):
    """A stored payment obligation."""

    id: str
    tenant_id: str
    property_id: str
    period_month: date
    amount: Decimal
    status: str
    payment_date: Optional[date] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Computed for display: still pending after its month ended
    is_late: bool = False

    class Config:
        from_attributes = True


class PaymentStatistics(BaseModel):
    count: int
    amount: Decimal


class PaymentStatisticsResponse(BaseModel):
    total_count: int
    total_amount: Decimal
    by_status: Dict[str, PaymentStatistics]


class AuditEntryResponse(BaseModel):
    id: str
    action: str
    field_name: Optional[str] = None
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    user_id: Optional[str] = None
    source: str
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ============================================
# Generation
# ============================================

class EnsureObligationsRequest(BaseModel):
    """Create missing obligations for tenants of one property."""

    tenant_ids: List[str] = Field(..., min_length=1, description="Tenants to bill")
    property_id: str = Field(..., min_length=1)
    year: int = Field(..., ge=2000, le=2100)
    months: List[int] = Field(..., min_length=1, description="Calendar months, 1-12")


class GenerateFutureRequest(BaseModel):
    tenant_id: str = Field(..., min_length=1)
    property_id: str = Field(..., min_length=1)
    months_ahead: int = Field(12, description="Consecutive months starting next month (1-24)")


class EnsureResultItem(BaseModel):
    obligation_id: str
    tenant_id: str
    property_id: str
    period_month: date
    created: bool
    status: str


class EnsureErrorItem(BaseModel):
    tenant_id: str
    period_month: date
    error: str


class EnsureObligationsResponse(BaseModel):
    created: List[EnsureResultItem]
    existing: List[EnsureResultItem]
    errors: List[EnsureErrorItem]


# ============================================
# Status changes
# ============================================

class StatusUpdateRequest(BaseModel):
    status: str = Field(..., description="pending, paid or overdue")
    notes: Optional[str] = None


class StatusUpdateResponse(BaseModel):
    payment: PaymentObligationResponse
    notifications_sent: int
    notifications_failed: int
    partial_success: bool


class BulkStatusUpdateRequest(BaseModel):
    payment_ids: List[str]
    status: str
    notes: Optional[str] = None


class BulkStatusUpdateResponse(BaseModel):
    updated: int
    tenants_notified: int
    notifications_sent: int
    notifications_failed: int
    partial_success: bool
    not_found_ids: List[str]


class PaymentDateUpdateRequest(BaseModel):
    payment_date: date
