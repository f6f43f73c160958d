"""API routes for the payment reminder job."""
import asyncio

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel
from typing import List, Optional
from datetime import date

from tenantpay.auth.dependencies import ADMIN, require_roles
from tenantpay.directory.models import User
from tenantpay.middleware.rate_limit import JOB_TRIGGER_LIMIT, limiter
from .scheduler import PaymentReminderScheduler

router = APIRouter()


class ReminderRunResponse(BaseModel):
    check_date: date
    tenants_checked: int
    reminders_sent: int
    errors: List[dict]


class ReminderStatusResponse(BaseModel):
    running: bool
    schedule: str
    next_run: Optional[str] = None
    last_run: Optional[str] = None
    last_summary: Optional[dict] = None


def get_reminder_scheduler(request: Request) -> PaymentReminderScheduler:
    scheduler = getattr(request.app.state, "reminder_scheduler", None)
    if scheduler is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Reminder scheduler is not configured",
        )
    return scheduler


@router.post("/trigger", response_model=ReminderRunResponse)
@limiter.limit(JOB_TRIGGER_LIMIT)
async def trigger_reminders(
    request: Request,
    current_user: User = Depends(require_roles(ADMIN)),
    scheduler: PaymentReminderScheduler = Depends(get_reminder_scheduler),
):
    """Run the reminder check now, same logic as the daily job."""
    try:
        summary = await scheduler.run_now()
    except asyncio.TimeoutError:
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail="Reminder check timed out",
        )
    return ReminderRunResponse(
        check_date=summary.check_date,
        tenants_checked=summary.tenants_checked,
        reminders_sent=summary.reminders_sent,
        errors=summary.errors,
    )


@router.get("/status", response_model=ReminderStatusResponse)
async def reminder_status(
    current_user: User = Depends(require_roles(ADMIN)),
    scheduler: PaymentReminderScheduler = Depends(get_reminder_scheduler),
):
    return scheduler.get_status()
