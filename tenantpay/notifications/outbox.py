"""
Notification Outbox - post-commit delivery of payment confirmations.

Flow:
    status change + outbox row      (one transaction)
                ↓ commit
    dispatch(entries)               → sent | failed (attempts, last_error)
                ↓
    retry_pending()                 (periodic job: failed rows, and pending rows
                                     older than the grace period)

A delivery failure never touches the payment records; it only leaves the
entry in ``failed`` for the next retry.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantpay.database import generate_id
from tenantpay.directory import TenantDirectory
from tenantpay.obligations.models import PaymentObligation
from tenantpay.obligations.periods import month_label

from .models import NotificationOutboxEntry, NotificationType, OutboxStatus
from .service import Notifier

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    sent: int = 0
    failed: int = 0
    failed_ids: List[str] = field(default_factory=list)


def _confirmation_payload(obligations: Sequence[PaymentObligation], payment_date: date) -> dict:
    return {
        "payment_date": payment_date.isoformat(),
        "items": [
            {
                "obligation_id": o.id,
                "property_id": o.property_id,
                "period_month": o.period_month.isoformat(),
                "amount": str(o.amount),
            }
            for o in obligations
        ],
    }


class NotificationOutbox:
    """Writes, delivers and retries outbox entries."""

    def __init__(
        self,
        db: AsyncSession,
        notifier: Optional[Notifier] = None,
        directory: Optional[TenantDirectory] = None,
    ):
        self.db = db
        self.directory = directory or TenantDirectory(db)
        self.notifier = notifier or Notifier(db, directory=self.directory)

    # ==========================================================================
    # Enqueue (inside the caller's transaction)
    # ==========================================================================

    def enqueue_payment_confirmations(
        self,
        obligations: Sequence[PaymentObligation],
        payment_date: date,
    ) -> List[NotificationOutboxEntry]:
        """
        Add one confirmation entry per tenant to the session.

        Not committed here; the entries land with the status change.
        """
        by_tenant: Dict[str, List[PaymentObligation]] = {}
        for obligation in obligations:
            by_tenant.setdefault(obligation.tenant_id, []).append(obligation)

        entries = []
        for tenant_id, tenant_obligations in by_tenant.items():
            entry = NotificationOutboxEntry(
                id=generate_id("ntf"),
                notification_type=NotificationType.PAYMENT_CONFIRMATION.value,
                tenant_id=tenant_id,
                payload=_confirmation_payload(tenant_obligations, payment_date),
                status=OutboxStatus.PENDING.value,
                attempts=0,
            )
            self.db.add(entry)
            entries.append(entry)
        return entries

    # ==========================================================================
    # Delivery
    # ==========================================================================

    async def _property_name(self, property_id: str, cache: Dict[str, str]) -> str:
        if property_id not in cache:
            prop = await self.directory.get_property(property_id)
            cache[property_id] = prop.name if prop else "N/A"
        return cache[property_id]

    async def _deliver(self, entry: NotificationOutboxEntry, cache: Dict[str, str]) -> None:
        if entry.notification_type != NotificationType.PAYMENT_CONFIRMATION.value:
            raise ValueError(f"Unsupported notification type: {entry.notification_type}")

        payment_date = date.fromisoformat(entry.payload["payment_date"])
        items = []
        for item in entry.payload["items"]:
            items.append({
                "period_label": month_label(date.fromisoformat(item["period_month"])),
                "property_name": await self._property_name(item["property_id"], cache),
                "amount": Decimal(item["amount"]),
            })

        if len(items) == 1:
            await self.notifier.send_payment_confirmation(
                tenant_id=entry.tenant_id,
                period_label=items[0]["period_label"],
                amount=items[0]["amount"],
                property_name=items[0]["property_name"],
                payment_date=payment_date,
            )
        else:
            await self.notifier.send_bulk_payment_confirmation(
                tenant_id=entry.tenant_id,
                items=items,
                payment_date=payment_date,
            )

    async def dispatch(self, entries: Sequence[NotificationOutboxEntry]) -> DispatchResult:
        """
        Deliver entries and record the outcome on each.

        Never raises for delivery problems; failures are counted and logged.
        """
        result = DispatchResult()
        cache: Dict[str, str] = {}

        for entry in entries:
            entry.attempts = (entry.attempts or 0) + 1
            try:
                await self._deliver(entry, cache)
            except Exception as e:
                logger.error(
                    f"Failed to deliver {entry.notification_type} {entry.id} "
                    f"to tenant {entry.tenant_id}: {e}"
                )
                entry.status = OutboxStatus.FAILED.value
                entry.last_error = str(e)
                result.failed += 1
                result.failed_ids.append(entry.id)
            else:
                entry.status = OutboxStatus.SENT.value
                entry.last_error = None
                entry.sent_at = datetime.now(timezone.utc)
                result.sent += 1

        if entries:
            await self.db.commit()

        logger.info(f"Outbox dispatch: {result.sent} sent, {result.failed} failed")
        return result

    async def list_entries(
        self,
        status: Optional[str] = None,
        limit: int = 100,
    ) -> List[NotificationOutboxEntry]:
        query = select(NotificationOutboxEntry).order_by(NotificationOutboxEntry.created_at.desc())
        if status:
            query = query.where(NotificationOutboxEntry.status == status)
        result = await self.db.execute(query.limit(limit))
        return list(result.scalars().all())

    @staticmethod
    def retry_query(max_attempts: int, pending_before: datetime):
        """
        Entries eligible for another attempt.

        A ``pending`` entry younger than ``pending_before`` still belongs to
        the post-commit dispatch of the request that wrote it.
        """
        return (
            select(NotificationOutboxEntry)
            .where(or_(
                NotificationOutboxEntry.status == OutboxStatus.FAILED.value,
                and_(
                    NotificationOutboxEntry.status == OutboxStatus.PENDING.value,
                    NotificationOutboxEntry.created_at < pending_before,
                ),
            ))
            .where(NotificationOutboxEntry.attempts < max_attempts)
            .order_by(NotificationOutboxEntry.created_at)
        )

    async def retry_pending(
        self,
        max_attempts: int,
        pending_grace: timedelta = timedelta(minutes=15),
    ) -> DispatchResult:
        """Re-dispatch failed entries, and pending ones left behind for longer than ``pending_grace``."""
        cutoff = datetime.now(timezone.utc) - pending_grace
        result = await self.db.execute(self.retry_query(max_attempts, cutoff))
        entries = list(result.scalars().all())
        if not entries:
            return DispatchResult()

        logger.info(f"Retrying {len(entries)} outbox entries")
        return await self.dispatch(entries)
