"""API routes for the notification outbox."""
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from datetime import datetime, timedelta

from tenantpay.auth.dependencies import ADMIN, require_roles
from tenantpay.config import settings
from tenantpay.database import get_db
from tenantpay.directory.models import User
from .outbox import NotificationOutbox

router = APIRouter()


class OutboxEntryResponse(BaseModel):
    id: str
    notification_type: str
    tenant_id: str
    payload: dict
    status: str
    attempts: int
    last_error: Optional[str] = None
    created_at: datetime
    sent_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OutboxRetryResponse(BaseModel):
    sent: int
    failed: int
    failed_ids: List[str]


@router.get("/outbox", response_model=List[OutboxEntryResponse])
async def list_outbox(
    status: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    current_user: User = Depends(require_roles(ADMIN)),
    db: AsyncSession = Depends(get_db)
):
    """Recent outbox entries, newest first."""
    return await NotificationOutbox(db).list_entries(status=status, limit=limit)


@router.post("/outbox/retry", response_model=OutboxRetryResponse)
async def retry_outbox(
    current_user: User = Depends(require_roles(ADMIN)),
    db: AsyncSession = Depends(get_db)
):
    """Re-send failed entries, and pending ones older than the retry interval."""
    result = await NotificationOutbox(db).retry_pending(
        settings.OUTBOX_MAX_ATTEMPTS,
        pending_grace=timedelta(minutes=settings.OUTBOX_RETRY_MINUTES),
    )
    return OutboxRetryResponse(sent=result.sent, failed=result.failed, failed_ids=result.failed_ids)
