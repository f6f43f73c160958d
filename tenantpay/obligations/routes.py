"""
API routes for tenant payment obligations.

- Listing and statistics (tenants only see their own records)
- Generation: ensure for months, generate ahead
- Status changes: single, bulk, payment date correction

Obligations are never deleted through the API; duplicates are removed only
by the reconciliation job.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from datetime import date
from decimal import Decimal

from tenantpay.audit import AuditService
from tenantpay.auth.dependencies import (
    ADMIN, PROPERTY_MANAGER, TENANT, get_current_user, require_roles,
)
from tenantpay.config import settings
from tenantpay.database import get_db
from tenantpay.directory.models import User
from .errors import (
    ObligationError,
    ObligationNotFoundError,
    ObligationPreconditionError,
    ObligationValidationError,
)
from .generator import EnsureBatchResult, ObligationGenerator
from .models import PaymentObligation
from .periods import is_currently_late, local_today
from .schemas import (
    AuditEntryResponse,
    BulkStatusUpdateRequest,
    BulkStatusUpdateResponse,
    EnsureErrorItem,
    EnsureObligationsRequest,
    EnsureObligationsResponse,
    EnsureResultItem,
    GenerateFutureRequest,
    PaymentDateUpdateRequest,
    PaymentObligationResponse,
    PaymentStatistics,
    PaymentStatisticsResponse,
    StatusUpdateRequest,
    StatusUpdateResponse,
)
from .status import StatusTransitionService
from .store import ObligationStore

router = APIRouter()

require_manager = require_roles(ADMIN, PROPERTY_MANAGER)


def _http_error(e: ObligationError) -> HTTPException:
    if isinstance(e, ObligationNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, (ObligationValidationError, ObligationPreconditionError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


def _to_response(obligation: PaymentObligation, today: date) -> PaymentObligationResponse:
    response = PaymentObligationResponse.model_validate(obligation)
    response.is_late = is_currently_late(obligation.status, obligation.period_month, today)
    return response


def _batch_response(batch: EnsureBatchResult) -> EnsureObligationsResponse:
    return EnsureObligationsResponse(
        created=[EnsureResultItem(**vars(r)) for r in batch.created],
        existing=[EnsureResultItem(**vars(r)) for r in batch.existing],
        errors=[EnsureErrorItem(**vars(e)) for e in batch.errors],
    )


# ============================================
# Listing
# ============================================

@router.get("", response_model=List[PaymentObligationResponse])
async def list_payments(
    tenant_id: Optional[str] = None,
    property_id: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    year: Optional[int] = None,
    months: Optional[List[int]] = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    List payment obligations, newest period first.

    Filters:
    - tenant_id, property_id, status
    - year and months (1-12), each usable on its own
    """
    if current_user.role == TENANT:
        tenant_id = current_user.id

    obligations = await ObligationStore(db).search(
        tenant_id=tenant_id,
        property_id=property_id,
        status=status_filter,
        year=year,
        months=months,
    )
    today = local_today(settings.TIMEZONE)
    return [_to_response(o, today) for o in obligations]


@router.get("/statistics", response_model=PaymentStatisticsResponse)
async def payment_statistics(
    tenant_id: Optional[str] = None,
    property_id: Optional[str] = None,
    year: Optional[int] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Counts and amounts per status."""
    if current_user.role == TENANT:
        tenant_id = current_user.id

    totals = await ObligationStore(db).status_totals(
        tenant_id=tenant_id, property_id=property_id, year=year
    )
    by_status = {
        key: PaymentStatistics(count=count, amount=amount)
        for key, (count, amount) in totals.items()
    }
    return PaymentStatisticsResponse(
        total_count=sum(s.count for s in by_status.values()),
        total_amount=sum((s.amount for s in by_status.values()), Decimal("0")),
        by_status=by_status,
    )


@router.get("/{payment_id}/history", response_model=List[AuditEntryResponse])
async def payment_history(
    payment_id: str,
    current_user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db)
):
    """Audit trail of a payment record."""
    return await AuditService(db).get_entity_history("obligation", payment_id)


# ============================================
# Generation
# ============================================

@router.post("/ensure", response_model=EnsureObligationsResponse)
async def ensure_payments(
    request: EnsureObligationsRequest,
    current_user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db)
):
    """
    Make sure a payment record exists for every tenant and month.

    Existing records are returned untouched. Per-item failures (no rate,
    tenant not on the property) are listed in ``errors``.
    """
    generator = ObligationGenerator(db, audit=AuditService(db, user_id=current_user.id))
    try:
        batch = await generator.ensure_for_months(
            request.tenant_ids, request.property_id, request.year, request.months
        )
    except ObligationError as e:
        raise _http_error(e)
    return _batch_response(batch)


@router.post("/generate-future", response_model=EnsureObligationsResponse)
async def generate_future_payments(
    request: GenerateFutureRequest,
    current_user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db)
):
    """Create records for the next ``months_ahead`` months, starting next month."""
    generator = ObligationGenerator(db, audit=AuditService(db, user_id=current_user.id))
    try:
        batch = await generator.generate_ahead(
            request.tenant_id,
            request.property_id,
            request.months_ahead,
            today=local_today(settings.TIMEZONE),
        )
    except ObligationError as e:
        raise _http_error(e)
    return _batch_response(batch)


# ============================================
# Status changes
# ============================================

@router.patch("/bulk-status", response_model=BulkStatusUpdateResponse)
async def bulk_update_status(
    request: BulkStatusUpdateRequest,
    current_user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db)
):
    """
    Set the status of several payments at once.

    Marking paid sends one confirmation per tenant.
    """
    service = StatusTransitionService(db, user_id=current_user.id)
    try:
        result = await service.set_status_bulk(request.payment_ids, request.status, request.notes)
    except ObligationError as e:
        raise _http_error(e)

    return BulkStatusUpdateResponse(
        updated=result.updated,
        tenants_notified=result.tenants_notified,
        notifications_sent=result.notifications_sent,
        notifications_failed=result.notifications_failed,
        partial_success=result.partial_success,
        not_found_ids=result.not_found_ids,
    )


@router.patch("/{payment_id}/status", response_model=StatusUpdateResponse)
async def update_status(
    payment_id: str,
    request: StatusUpdateRequest,
    current_user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db)
):
    """Set the status of one payment."""
    service = StatusTransitionService(db, user_id=current_user.id)
    try:
        result = await service.set_status(payment_id, request.status, request.notes)
    except ObligationError as e:
        raise _http_error(e)

    return StatusUpdateResponse(
        payment=_to_response(result.obligation, local_today(settings.TIMEZONE)),
        notifications_sent=result.notifications_sent,
        notifications_failed=result.notifications_failed,
        partial_success=result.partial_success,
    )


@router.patch("/{payment_id}/payment-date", response_model=PaymentObligationResponse)
async def update_payment_date(
    payment_id: str,
    request: PaymentDateUpdateRequest,
    current_user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db)
):
    """Correct the payment date of a paid record."""
    service = StatusTransitionService(db, user_id=current_user.id)
    try:
        obligation = await service.set_payment_date(payment_id, request.payment_date)
    except ObligationError as e:
        raise _http_error(e)
    return _to_response(obligation, local_today(settings.TIMEZONE))
