"""API routes for duplicate payment reconciliation."""
import asyncio

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
from datetime import date

from tenantpay.audit import AuditService
from tenantpay.auth.dependencies import ADMIN, require_roles
from tenantpay.config import settings
from tenantpay.database import get_db
from tenantpay.directory.models import User
from tenantpay.middleware.rate_limit import JOB_TRIGGER_LIMIT, limiter
from .service import ReconciliationJob

router = APIRouter()


class DuplicateGroupResponse(BaseModel):
    tenant_id: str
    property_id: str
    period_month: date
    keep_id: str
    delete_ids: List[str]


class ReconciliationResponse(BaseModel):
    dry_run: bool
    groups_with_duplicates: int
    records_deleted: int
    remaining_duplicate_groups: int
    warnings: List[str]
    groups: List[DuplicateGroupResponse]


@router.post("/run", response_model=ReconciliationResponse)
@limiter.limit(JOB_TRIGGER_LIMIT)
async def run_reconciliation(
    request: Request,
    dry_run: bool = False,
    current_user: User = Depends(require_roles(ADMIN)),
    db: AsyncSession = Depends(get_db)
):
    """
    Remove duplicate payment records.

    Keeps the paid record of each duplicated month, otherwise the newest.
    With ``dry_run`` the plan is returned and nothing is deleted.
    """
    job = ReconciliationJob(db, audit=AuditService(db, user_id=current_user.id, source="api"))
    try:
        result = await asyncio.wait_for(
            job.run(dry_run=dry_run),
            timeout=settings.RECONCILIATION_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail="Reconciliation timed out; completed batches were kept",
        )

    return ReconciliationResponse(
        dry_run=result.dry_run,
        groups_with_duplicates=result.groups_with_duplicates,
        records_deleted=result.records_deleted,
        remaining_duplicate_groups=result.remaining_duplicate_groups,
        warnings=result.warnings,
        groups=[
            DuplicateGroupResponse(
                tenant_id=g.key[0],
                property_id=g.key[1],
                period_month=g.key[2],
                keep_id=g.keep_id,
                delete_ids=g.delete_ids,
            )
            for g in result.groups
        ],
    )
