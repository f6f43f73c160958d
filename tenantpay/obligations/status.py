"""
Status Transition Service - pending / paid / overdue changes.

Rules:
- paid:          payment_date = today (local timezone)
- anything else: payment_date cleared
- notes are only touched when given

Payment confirmations go through the notification outbox: the entry is
written in the same transaction as the status change and delivered after
commit. A delivery failure is reported as partial success and never undoes
the status change.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from tenantpay.audit import AuditService
from tenantpay.config import settings
from tenantpay.notifications.outbox import NotificationOutbox
from .errors import ObligationNotFoundError, ObligationValidationError
from .models import ObligationStatus, PaymentObligation
from .periods import local_today
from .store import ObligationStore

logger = logging.getLogger(__name__)


@dataclass
class StatusChangeResult:
    obligation: PaymentObligation
    notifications_sent: int = 0
    notifications_failed: int = 0

    @property
    def partial_success(self) -> bool:
        return self.notifications_failed > 0


@dataclass
class BulkStatusChangeResult:
    updated: int
    obligations: List[PaymentObligation] = field(default_factory=list)
    tenants_notified: int = 0
    notifications_sent: int = 0
    notifications_failed: int = 0
    not_found_ids: List[str] = field(default_factory=list)

    @property
    def partial_success(self) -> bool:
        return self.notifications_failed > 0


def parse_status(value) -> ObligationStatus:
    try:
        return ObligationStatus(value)
    except ValueError:
        valid = ", ".join(s.value for s in ObligationStatus)
        raise ObligationValidationError(f"Invalid status '{value}'. Must be one of: {valid}")


class StatusTransitionService:
    """Applies status changes to obligations and triggers confirmations."""

    def __init__(
        self,
        db: AsyncSession,
        store: Optional[ObligationStore] = None,
        outbox: Optional[NotificationOutbox] = None,
        audit: Optional[AuditService] = None,
        user_id: Optional[str] = None,
        timezone: Optional[str] = None,
    ):
        self.db = db
        self.store = store or ObligationStore(db)
        self.outbox = outbox or NotificationOutbox(db)
        self.audit = audit or AuditService(db, user_id=user_id, source="api")
        self.timezone = timezone or settings.TIMEZONE

    async def _apply(
        self,
        obligation: PaymentObligation,
        status: ObligationStatus,
        notes: Optional[str],
        today: date,
    ) -> None:
        old_status = obligation.status
        old_payment_date = obligation.payment_date
        old_notes = obligation.notes

        obligation.status = status.value
        if status == ObligationStatus.PAID:
            obligation.payment_date = today
        else:
            obligation.payment_date = None
        if notes is not None:
            obligation.notes = notes

        await self.audit.log_update(
            "obligation",
            obligation.id,
            {
                "status": (old_status, obligation.status),
                "payment_date": (old_payment_date, obligation.payment_date),
                "notes": (old_notes, obligation.notes),
            },
        )

    # ==========================================================================
    # Single
    # ==========================================================================

    async def set_status(
        self,
        obligation_id: str,
        status,
        notes: Optional[str] = None,
        today: Optional[date] = None,
    ) -> StatusChangeResult:
        """
        Change one obligation's status.

        Raises:
            ObligationValidationError: unknown status
            ObligationNotFoundError: no such obligation
        """
        new_status = parse_status(status)
        obligation = await self.store.get(obligation_id)
        if not obligation:
            raise ObligationNotFoundError(f"Payment record {obligation_id} not found")

        today = today or local_today(self.timezone)
        await self._apply(obligation, new_status, notes, today)

        entries = []
        if new_status == ObligationStatus.PAID:
            entries = self.outbox.enqueue_payment_confirmations([obligation], today)

        await self.store.commit()
        logger.info(f"Obligation {obligation.id} set to {new_status.value}")

        result = StatusChangeResult(obligation=obligation)
        if entries:
            dispatched = await self.outbox.dispatch(entries)
            result.notifications_sent = dispatched.sent
            result.notifications_failed = dispatched.failed
        return result

    # ==========================================================================
    # Bulk
    # ==========================================================================

    async def set_status_bulk(
        self,
        obligation_ids: Sequence[str],
        status,
        notes: Optional[str] = None,
        today: Optional[date] = None,
    ) -> BulkStatusChangeResult:
        """
        Change the status of several obligations in one transaction.

        Confirmations are grouped so each tenant gets exactly one, however
        many of their obligations changed. Unknown ids are ignored as long as
        at least one id matches.
        """
        new_status = parse_status(status)
        obligation_ids = list(dict.fromkeys(obligation_ids or []))
        if not obligation_ids:
            raise ObligationValidationError("paymentIds must be a non-empty list")

        obligations = await self.store.get_many(obligation_ids)
        if not obligations:
            raise ObligationNotFoundError("No payment records found")

        found = {o.id for o in obligations}
        not_found = [oid for oid in obligation_ids if oid not in found]
        if not_found:
            logger.warning(f"Bulk status update ignoring unknown ids: {not_found}")

        today = today or local_today(self.timezone)
        for obligation in obligations:
            await self._apply(obligation, new_status, notes, today)

        entries = []
        if new_status == ObligationStatus.PAID:
            entries = self.outbox.enqueue_payment_confirmations(obligations, today)

        await self.store.commit()
        logger.info(f"Bulk updated {len(obligations)} obligations to {new_status.value}")

        result = BulkStatusChangeResult(
            updated=len(obligations),
            obligations=obligations,
            not_found_ids=not_found,
            tenants_notified=len(entries),
        )
        if entries:
            dispatched = await self.outbox.dispatch(entries)
            result.notifications_sent = dispatched.sent
            result.notifications_failed = dispatched.failed
        return result

    # ==========================================================================
    # Payment date correction
    # ==========================================================================

    async def set_payment_date(self, obligation_id: str, payment_date: date) -> PaymentObligation:
        """Correct the recorded payment date of a paid obligation."""
        obligation = await self.store.get(obligation_id)
        if not obligation:
            raise ObligationNotFoundError(f"Payment record {obligation_id} not found")
        if obligation.status != ObligationStatus.PAID.value:
            raise ObligationValidationError("Payment date can only be set on a paid record")

        old_payment_date = obligation.payment_date
        obligation.payment_date = payment_date
        await self.audit.log_update(
            "obligation", obligation.id, {"payment_date": (old_payment_date, payment_date)}
        )
        await self.store.commit()
        return obligation
