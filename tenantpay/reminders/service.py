"""
Reminder Service - daily "rent due soon" check.

For every tenant with a notice day:

    today == reminder_trigger_date(notice_day, target_period(today, notice_day))
        → for each linked property, remind unless that period is already paid

The check only reads obligations; it never creates them. Nothing is persisted
about sent reminders, so running twice on the same day reminds twice.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tenantpay.config import settings
from tenantpay.directory import TenantBillingProfile, TenantDirectory
from tenantpay.notifications.service import Notifier
from tenantpay.obligations.models import ObligationStatus
from tenantpay.obligations.periods import (
    local_today,
    month_label,
    reminder_trigger_date,
    target_period,
)
from tenantpay.obligations.store import ObligationStore

logger = logging.getLogger(__name__)


@dataclass
class ReminderRunSummary:
    check_date: date
    tenants_checked: int = 0
    reminders_sent: int = 0
    errors: List[dict] = field(default_factory=list)


class ReminderService:
    """Evaluates reminder timing per tenant and asks the notifier to send."""

    def __init__(
        self,
        db: AsyncSession,
        directory: Optional[TenantDirectory] = None,
        store: Optional[ObligationStore] = None,
        notifier: Optional[Notifier] = None,
        days_before: Optional[int] = None,
        timezone: Optional[str] = None,
    ):
        self.db = db
        self.directory = directory or TenantDirectory(db)
        self.store = store or ObligationStore(db)
        self.notifier = notifier or Notifier(db, directory=self.directory)
        self.days_before = days_before or settings.REMINDER_DAYS_BEFORE
        self.timezone = timezone or settings.TIMEZONE

    def is_due(self, tenant: TenantBillingProfile, today: date) -> Optional[date]:
        """Target period if today is the tenant's trigger date, else None."""
        period = target_period(today, tenant.notice_day)
        if reminder_trigger_date(tenant.notice_day, period, self.days_before) != today:
            return None
        return period

    async def _remind_tenant(
        self,
        tenant: TenantBillingProfile,
        period: date,
        summary: ReminderRunSummary,
    ) -> None:
        label = month_label(period)

        for property_id in tenant.property_ids:
            try:
                obligation = await self.store.get_by_key(tenant.tenant_id, property_id, period)
                if obligation and obligation.status == ObligationStatus.PAID.value:
                    logger.debug(f"{tenant.tenant_id}/{property_id} already paid for {label}")
                    continue

                amount = obligation.amount if obligation else tenant.monthly_rate
                prop = await self.directory.get_property(property_id)

                await self.notifier.send_payment_reminder(
                    tenant_id=tenant.tenant_id,
                    period_label=label,
                    amount=amount,
                    property_name=prop.name if prop else "N/A",
                    property_location=prop.location if prop else None,
                    notice_day=tenant.notice_day,
                )
                summary.reminders_sent += 1
                logger.info(f"Reminder sent to {tenant.tenant_id} for {property_id} ({label})")

            except SQLAlchemyError as e:
                # The session is unusable until rolled back; later tenants share it.
                await self.store.rollback()
                self._record_failure(summary, tenant, property_id, e)
            except Exception as e:
                self._record_failure(summary, tenant, property_id, e)

    @staticmethod
    def _record_failure(
        summary: ReminderRunSummary,
        tenant: TenantBillingProfile,
        property_id: str,
        error: Exception,
    ) -> None:
        logger.error(f"Failed to send reminder to {tenant.tenant_id} for {property_id}: {error}")
        summary.errors.append({
            "tenant_id": tenant.tenant_id,
            "property_id": property_id,
            "error": str(error),
        })

    async def check_and_send_reminders(self, today: Optional[date] = None) -> ReminderRunSummary:
        """
        Run the reminder check for every tenant with a notice day.

        One tenant failing (bad notice day, notifier down) never stops the rest.
        """
        today = today or local_today(self.timezone)
        summary = ReminderRunSummary(check_date=today)

        tenants = await self.directory.list_reminder_profiles()
        logger.info(f"Payment reminder check for {today}: {len(tenants)} tenants")

        for tenant in tenants:
            summary.tenants_checked += 1
            try:
                period = self.is_due(tenant, today)
            except ValueError as e:
                logger.error(f"Invalid reminder settings for tenant {tenant.tenant_id}: {e}")
                summary.errors.append({"tenant_id": tenant.tenant_id, "error": str(e)})
                continue

            if period is None:
                continue

            await self._remind_tenant(tenant, period, summary)

        logger.info(
            f"Payment reminder check completed: {summary.tenants_checked} tenants checked, "
            f"{summary.reminders_sent} reminders sent, {len(summary.errors)} errors"
        )
        return summary
