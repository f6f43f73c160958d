"""
Obligation Store - persistence for PaymentObligation records.

Thin repository over the ``tenant_payments`` table. The unique constraint on
(tenant_id, property_id, period_month) is the only thing that keeps
concurrent creators from producing duplicates, so ``insert`` runs inside a
SAVEPOINT: a constraint violation rolls back just that insert and surfaces as
``IntegrityError`` for the caller to resolve.
"""
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import case, select, delete, func, extract, or_
from sqlalchemy.ext.asyncio import AsyncSession

from .models import ObligationStatus, PaymentObligation
from .periods import normalize_month

ObligationKey = Tuple[str, str, date]


class ObligationStore:
    """Repository for payment obligations bound to one session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==========================================================================
    # Reads
    # ==========================================================================

    async def get(self, obligation_id: str) -> Optional[PaymentObligation]:
        result = await self.db.execute(
            select(PaymentObligation).where(PaymentObligation.id == obligation_id)
        )
        return result.scalar_one_or_none()

    async def get_many(self, obligation_ids: Sequence[str]) -> List[PaymentObligation]:
        if not obligation_ids:
            return []
        result = await self.db.execute(
            select(PaymentObligation)
            .where(PaymentObligation.id.in_(list(obligation_ids)))
            .order_by(PaymentObligation.tenant_id, PaymentObligation.period_month)
        )
        return list(result.scalars().all())

    async def get_by_key(
        self,
        tenant_id: str,
        property_id: str,
        period_month: date,
    ) -> Optional[PaymentObligation]:
        """
        Fetch the obligation for a key.

        Uses ``first()`` rather than ``scalar_one_or_none()`` so lookups keep
        working on tables that still hold duplicates from before the unique
        constraint existed. Duplicates resolve to the record reconciliation
        would keep: paid first, then newest, then highest id.
        """
        result = await self.db.execute(
            select(PaymentObligation)
            .where(PaymentObligation.tenant_id == tenant_id)
            .where(PaymentObligation.property_id == property_id)
            .where(PaymentObligation.period_month == normalize_month(period_month))
            .order_by(
                case((PaymentObligation.status == ObligationStatus.PAID.value, 1), else_=0).desc(),
                PaymentObligation.created_at.desc(),
                PaymentObligation.id.desc(),
            )
        )
        return result.scalars().first()

    async def list_all(self) -> List[PaymentObligation]:
        result = await self.db.execute(
            select(PaymentObligation).order_by(
                PaymentObligation.tenant_id,
                PaymentObligation.property_id,
                PaymentObligation.period_month,
                PaymentObligation.created_at.desc(),
            )
        )
        return list(result.scalars().all())

    async def search(
        self,
        tenant_id: Optional[str] = None,
        property_id: Optional[str] = None,
        status: Optional[str] = None,
        year: Optional[int] = None,
        months: Optional[List[int]] = None,
    ) -> List[PaymentObligation]:
        """Filtered listing, newest period first."""
        query = self._apply_filters(
            select(PaymentObligation), tenant_id, property_id, status, year, months
        )
        query = query.order_by(PaymentObligation.period_month.desc(), PaymentObligation.tenant_id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def status_totals(
        self,
        tenant_id: Optional[str] = None,
        property_id: Optional[str] = None,
        year: Optional[int] = None,
    ) -> Dict[str, Tuple[int, Decimal]]:
        """Count and amount sum per status."""
        query = select(
            PaymentObligation.status,
            func.count(PaymentObligation.id),
            func.coalesce(func.sum(PaymentObligation.amount), 0),
        ).group_by(PaymentObligation.status)
        query = self._apply_filters(query, tenant_id, property_id, None, year, None)

        result = await self.db.execute(query)
        return {
            status: (int(count), Decimal(str(total)))
            for status, count, total in result.fetchall()
        }

    async def find_duplicate_keys(self) -> List[Tuple[ObligationKey, int]]:
        """Keys that currently have more than one record."""
        result = await self.db.execute(
            select(
                PaymentObligation.tenant_id,
                PaymentObligation.property_id,
                PaymentObligation.period_month,
                func.count(PaymentObligation.id),
            )
            .group_by(
                PaymentObligation.tenant_id,
                PaymentObligation.property_id,
                PaymentObligation.period_month,
            )
            .having(func.count(PaymentObligation.id) > 1)
        )
        return [((t, p, m), int(c)) for t, p, m, c in result.fetchall()]

    # ==========================================================================
    # Writes
    # ==========================================================================

    async def insert(self, obligation: PaymentObligation) -> PaymentObligation:
        """
        Insert a new obligation inside a savepoint.

        Raises:
            sqlalchemy.exc.IntegrityError: the key already exists
        """
        async with self.db.begin_nested():
            self.db.add(obligation)
        return obligation

    async def delete_by_ids(self, obligation_ids: Sequence[str]) -> int:
        if not obligation_ids:
            return 0
        result = await self.db.execute(
            delete(PaymentObligation).where(PaymentObligation.id.in_(list(obligation_ids)))
        )
        return result.rowcount or 0

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @staticmethod
    def _apply_filters(query, tenant_id, property_id, status, year, months):
        if tenant_id:
            query = query.where(PaymentObligation.tenant_id == tenant_id)
        if property_id:
            query = query.where(PaymentObligation.property_id == property_id)
        if status:
            query = query.where(PaymentObligation.status == status)
        if year:
            query = query.where(extract("year", PaymentObligation.period_month) == year)
        if months:
            query = query.where(
                or_(*[extract("month", PaymentObligation.period_month) == m for m in months])
            )
        return query
