"""
Obligation Generator - idempotently creates monthly payment obligations.

Data Flow:
    TenantBillingProfile (monthly_rate, property_ids)
                ↓
    ensure(tenant, property, month)  → existing record, or a new pending one
                ↓
    PaymentObligation (amount captured at creation, never recomputed)

Creation is safe under concurrent callers: the store's unique constraint
decides the winner and the loser re-fetches the winning record.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tenantpay.audit import AuditService
from tenantpay.database import generate_id
from tenantpay.directory import TenantDirectory
from .errors import ObligationError, ObligationPreconditionError, ObligationValidationError
from .models import ObligationStatus, PaymentObligation
from .periods import consecutive_periods, first_unbilled_month, month_periods, normalize_month
from .store import ObligationStore

logger = logging.getLogger(__name__)

MAX_MONTHS_AHEAD = 24


@dataclass
class EnsureResult:
    obligation_id: str
    tenant_id: str
    property_id: str
    period_month: date
    created: bool
    status: str


@dataclass
class EnsureError:
    tenant_id: str
    period_month: date
    error: str


@dataclass
class EnsureBatchResult:
    created: List[EnsureResult] = field(default_factory=list)
    existing: List[EnsureResult] = field(default_factory=list)
    errors: List[EnsureError] = field(default_factory=list)

    @property
    def results(self) -> List[EnsureResult]:
        return self.created + self.existing


def _result(obligation: PaymentObligation, created: bool) -> EnsureResult:
    return EnsureResult(
        obligation_id=obligation.id,
        tenant_id=obligation.tenant_id,
        property_id=obligation.property_id,
        period_month=obligation.period_month,
        created=created,
        status=obligation.status,
    )


class ObligationGenerator:
    """
    Creates missing obligations for tenant/property/month keys.

    Existing records are returned untouched whatever their status; the
    generator never overwrites or re-prices an obligation.
    """

    def __init__(
        self,
        db: AsyncSession,
        store: Optional[ObligationStore] = None,
        directory: Optional[TenantDirectory] = None,
        audit: Optional[AuditService] = None,
    ):
        self.db = db
        self.store = store or ObligationStore(db)
        self.directory = directory or TenantDirectory(db)
        self.audit = audit or AuditService(db, source="api")

    # ==========================================================================
    # Single key
    # ==========================================================================

    async def ensure(
        self,
        tenant_id: str,
        property_id: str,
        period_month: date,
    ) -> EnsureResult:
        """
        Return the obligation for the key, creating it if missing.

        Raises:
            ObligationValidationError: ids missing
            ObligationPreconditionError: tenant unknown, not linked, or no rate
        """
        if not tenant_id or not property_id:
            raise ObligationValidationError("tenant_id and property_id are required")

        period = normalize_month(period_month)

        existing = await self.store.get_by_key(tenant_id, property_id, period)
        if existing:
            return _result(existing, created=False)

        tenant = await self.directory.get_tenant(tenant_id)
        if not tenant:
            raise ObligationPreconditionError("Tenant not found")
        if not tenant.is_linked_to(property_id):
            raise ObligationPreconditionError("Tenant not associated with this property")
        if not tenant.has_billable_rate:
            raise ObligationPreconditionError("Tenant does not have a monthly rate set")

        obligation = PaymentObligation(
            id=generate_id("pay"),
            tenant_id=tenant_id,
            property_id=property_id,
            period_month=period,
            amount=tenant.monthly_rate,
            status=ObligationStatus.PENDING.value,
        )

        try:
            await self.store.insert(obligation)
        except IntegrityError:
            # Lost the race to a concurrent creator; the savepoint is already rolled back
            winner = await self.store.get_by_key(tenant_id, property_id, period)
            if winner is None:
                raise ObligationError("Duplicate payment record")
            logger.info(
                f"Obligation for {tenant_id}/{property_id}/{period} created concurrently, "
                f"returning {winner.id}"
            )
            return _result(winner, created=False)

        await self.audit.log_create(
            "obligation",
            obligation.id,
            {
                "tenant_id": tenant_id,
                "property_id": property_id,
                "period_month": period,
                "amount": obligation.amount,
            },
        )
        await self.store.commit()

        logger.info(f"Created obligation {obligation.id} for {tenant_id}/{property_id}/{period}")
        return _result(obligation, created=True)

    # ==========================================================================
    # Batches
    # ==========================================================================

    async def ensure_batch(
        self,
        tenant_ids: Iterable[str],
        property_id: str,
        periods: Iterable[date],
    ) -> EnsureBatchResult:
        """
        Ensure every (tenant, period) pair independently.

        A failing pair is recorded in ``errors`` and never stops the others.
        """
        tenant_ids = list(dict.fromkeys(tenant_ids))
        periods = [normalize_month(p) for p in periods]
        if not tenant_ids:
            raise ObligationValidationError("At least one tenant id is required")
        if not periods:
            raise ObligationValidationError("At least one period is required")
        if not property_id:
            raise ObligationValidationError("property_id is required")

        batch = EnsureBatchResult()

        for tenant_id in tenant_ids:
            for period in periods:
                try:
                    result = await self.ensure(tenant_id, property_id, period)
                except ObligationError as e:
                    batch.errors.append(EnsureError(tenant_id, period, str(e)))
                    continue
                except SQLAlchemyError as e:
                    logger.error(f"Failed to ensure obligation for {tenant_id}/{period}: {e}")
                    await self.store.rollback()
                    batch.errors.append(EnsureError(tenant_id, period, str(e)))
                    continue

                if result.created:
                    batch.created.append(result)
                else:
                    batch.existing.append(result)

        logger.info(
            f"Ensured obligations for property {property_id}: "
            f"{len(batch.created)} created, {len(batch.existing)} existing, "
            f"{len(batch.errors)} errors"
        )
        return batch

    async def ensure_for_months(
        self,
        tenant_ids: Iterable[str],
        property_id: str,
        year: int,
        months: List[int],
    ) -> EnsureBatchResult:
        """Batch ensure for calendar months (1-12) of one year."""
        if not months:
            raise ObligationValidationError("At least one month is required")
        try:
            periods = month_periods(year, months)
        except ValueError as e:
            raise ObligationValidationError(str(e))
        return await self.ensure_batch(tenant_ids, property_id, periods)

    async def generate_ahead(
        self,
        tenant_id: str,
        property_id: str,
        months_ahead: int,
        today: date,
    ) -> EnsureBatchResult:
        """Ensure ``months_ahead`` consecutive months starting with next month."""
        if not 1 <= months_ahead <= MAX_MONTHS_AHEAD:
            raise ObligationValidationError(
                f"months_ahead must be between 1 and {MAX_MONTHS_AHEAD}"
            )
        start = first_unbilled_month(today)
        return await self.ensure_batch(
            [tenant_id], property_id, consecutive_periods(start, months_ahead)
        )
