"""
Payment Reminder Scheduler

Owns an APScheduler instance with two jobs:
- payment reminders: daily at REMINDER_HOUR:REMINDER_MINUTE in TIMEZONE
- outbox retry: every OUTBOX_RETRY_MINUTES

Created in the FastAPI lifespan and kept on ``app.state``; there is no module
level instance. ``run_now()`` runs the same reminder logic on demand.
"""

import asyncio
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tenantpay.config import Settings
from tenantpay.notifications.outbox import DispatchResult, NotificationOutbox
from .service import ReminderRunSummary, ReminderService

logger = logging.getLogger(__name__)

REMINDER_JOB_ID = "payment_reminders"
OUTBOX_JOB_ID = "notification_outbox_retry"


class PaymentReminderScheduler:
    """Runs the daily reminder check and the outbox retry job."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        settings: Settings,
        service_factory: Optional[Callable[[AsyncSession], ReminderService]] = None,
    ):
        self.session_factory = session_factory
        self.settings = settings
        self.service_factory = service_factory or (lambda db: ReminderService(db))
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False
        self._last_run: Optional[datetime] = None
        self._last_summary: Optional[ReminderRunSummary] = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def schedule_description(self) -> str:
        return (
            f"daily at {self.settings.REMINDER_HOUR:02d}:{self.settings.REMINDER_MINUTE:02d} "
            f"{self.settings.TIMEZONE}"
        )

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    def start(self, run_immediately: bool = False) -> None:
        if self._running:
            logger.warning("Payment reminder scheduler already running")
            return

        scheduler = AsyncIOScheduler(timezone=self.settings.TIMEZONE)

        scheduler.add_job(
            self._run_scheduled,
            CronTrigger(
                hour=self.settings.REMINDER_HOUR,
                minute=self.settings.REMINDER_MINUTE,
                timezone=self.settings.TIMEZONE,
            ),
            id=REMINDER_JOB_ID,
            name="Daily Payment Reminder Check",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

        scheduler.add_job(
            self.retry_outbox,
            "interval",
            minutes=self.settings.OUTBOX_RETRY_MINUTES,
            id=OUTBOX_JOB_ID,
            name="Notification Outbox Retry",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

        if run_immediately:
            scheduler.add_job(self._run_scheduled, id=f"{REMINDER_JOB_ID}_startup")

        scheduler.start()
        self._scheduler = scheduler
        self._running = True
        logger.info(f"Payment reminder scheduler started ({self.schedule_description})")

    def stop(self) -> None:
        if not self._running:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        self._running = False
        logger.info("Payment reminder scheduler stopped")

    # ==========================================================================
    # Jobs
    # ==========================================================================

    async def run_now(self, today: Optional[date] = None) -> ReminderRunSummary:
        """
        Run the reminder check once and return its summary.

        Raises:
            asyncio.TimeoutError: the run exceeded REMINDER_RUN_TIMEOUT_SECONDS
        """
        logger.info("Running payment reminder check")
        self._last_run = datetime.now(timezone.utc)

        async with self.session_factory() as db:
            service = self.service_factory(db)
            summary = await asyncio.wait_for(
                service.check_and_send_reminders(today),
                timeout=self.settings.REMINDER_RUN_TIMEOUT_SECONDS,
            )

        self._last_summary = summary
        return summary

    async def _run_scheduled(self) -> None:
        try:
            await self.run_now()
        except asyncio.TimeoutError:
            logger.error(
                f"Payment reminder check timed out after "
                f"{self.settings.REMINDER_RUN_TIMEOUT_SECONDS}s"
            )
        except Exception as e:
            logger.exception(f"Payment reminder check failed: {e}")

    async def retry_outbox(self) -> DispatchResult:
        async with self.session_factory() as db:
            try:
                return await NotificationOutbox(db).retry_pending(
                    self.settings.OUTBOX_MAX_ATTEMPTS,
                    pending_grace=timedelta(minutes=self.settings.OUTBOX_RETRY_MINUTES),
                )
            except Exception as e:
                logger.exception(f"Outbox retry failed: {e}")
                await db.rollback()
                return DispatchResult()

    # ==========================================================================
    # Status
    # ==========================================================================

    def get_status(self) -> dict:
        next_run = None
        if self._scheduler:
            job = self._scheduler.get_job(REMINDER_JOB_ID)
            if job and job.next_run_time:
                next_run = job.next_run_time.isoformat()

        last_summary = None
        if self._last_summary:
            last_summary = {
                "check_date": self._last_summary.check_date.isoformat(),
                "tenants_checked": self._last_summary.tenants_checked,
                "reminders_sent": self._last_summary.reminders_sent,
                "errors": len(self._last_summary.errors),
            }

        return {
            "running": self._running,
            "schedule": self.schedule_description,
            "next_run": next_run,
            "last_run": self._last_run.isoformat() if self._last_run else None,
            "last_summary": last_summary,
        }
