"""
Reconciliation Job - collapses duplicate obligations.

Groups every obligation by (tenant_id, property_id, period_month) and keeps
exactly one per group:

    1. a paid record, if any
    2. otherwise the most recently created
    ties: created_at desc, then id desc

Discarded ids are deleted in batches, each committed on its own, and a final
re-scan reports any group that still has duplicates. The keeper of a group is
never deleted, so stopping part way always leaves one record per key.

Not locked against concurrent ``ensure`` calls. If a record is recreated after
its duplicates were removed it is simply the only record for that key.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from tenantpay.audit import AuditService
from tenantpay.config import settings
from tenantpay.obligations.models import ObligationStatus, PaymentObligation
from tenantpay.obligations.store import ObligationKey, ObligationStore

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class DuplicateGroup:
    key: ObligationKey
    keep_id: str
    delete_ids: List[str]


@dataclass
class ReconciliationResult:
    dry_run: bool
    groups_with_duplicates: int = 0
    records_deleted: int = 0
    remaining_duplicate_groups: int = 0
    warnings: List[str] = field(default_factory=list)
    groups: List[DuplicateGroup] = field(default_factory=list)


def _keep_rank(obligation: PaymentObligation):
    """Sort key; the maximum is the record to keep."""
    created_at = obligation.created_at or _EPOCH
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return (
        obligation.status == ObligationStatus.PAID.value,
        created_at,
        obligation.id,
    )


def choose_keeper(obligations: Sequence[PaymentObligation]) -> PaymentObligation:
    return max(obligations, key=_keep_rank)


def plan_deduplication(obligations: Sequence[PaymentObligation]) -> List[DuplicateGroup]:
    """Deterministic keep/delete plan for every key with more than one record."""
    grouped: Dict[ObligationKey, List[PaymentObligation]] = {}
    for obligation in obligations:
        grouped.setdefault(obligation.key, []).append(obligation)

    plan = []
    for key, members in grouped.items():
        if len(members) < 2:
            continue
        keeper = choose_keeper(members)
        plan.append(DuplicateGroup(
            key=key,
            keep_id=keeper.id,
            delete_ids=sorted(o.id for o in members if o.id != keeper.id),
        ))
    return plan


def _batches(items: List[str], size: int):
    for start in range(0, len(items), size):
        yield items[start:start + size]


class ReconciliationJob:
    """Finds and removes duplicate obligation records."""

    def __init__(
        self,
        db: AsyncSession,
        store: Optional[ObligationStore] = None,
        audit: Optional[AuditService] = None,
        batch_size: Optional[int] = None,
    ):
        self.db = db
        self.store = store or ObligationStore(db)
        self.audit = audit or AuditService(db, source="system")
        self.batch_size = batch_size or settings.RECONCILIATION_BATCH_SIZE

    async def run(self, dry_run: bool = False) -> ReconciliationResult:
        result = ReconciliationResult(dry_run=dry_run)

        obligations = await self.store.list_all()
        plan = plan_deduplication(obligations)
        result.groups = plan
        result.groups_with_duplicates = len(plan)

        if not plan:
            logger.info(f"Reconciliation: no duplicates among {len(obligations)} obligations")
            return result

        logger.warning(f"Reconciliation: {len(plan)} keys have duplicate obligations")

        if dry_run:
            for group in plan:
                logger.info(f"  would keep {group.keep_id}, delete {group.delete_ids}")
            return result

        by_id = {o.id: o for o in obligations}
        kept_by = {oid: group.keep_id for group in plan for oid in group.delete_ids}
        to_delete = [oid for group in plan for oid in group.delete_ids]

        for batch in _batches(to_delete, self.batch_size):
            for oid in batch:
                doomed = by_id[oid]
                await self.audit.log_reconcile(
                    "obligation",
                    oid,
                    {
                        "tenant_id": doomed.tenant_id,
                        "property_id": doomed.property_id,
                        "period_month": doomed.period_month,
                        "status": doomed.status,
                        "amount": doomed.amount,
                    },
                    kept_id=kept_by[oid],
                )
            deleted = await self.store.delete_by_ids(batch)
            await self.store.commit()
            result.records_deleted += deleted
            logger.info(f"Reconciliation: deleted batch of {deleted} duplicates")

        remaining = await self.store.find_duplicate_keys()
        result.remaining_duplicate_groups = len(remaining)
        for (tenant_id, property_id, period_month), count in remaining:
            warning = (
                f"{count} records still exist for tenant {tenant_id}, "
                f"property {property_id}, period {period_month.isoformat()}"
            )
            logger.warning(f"Reconciliation: {warning}")
            result.warnings.append(warning)

        logger.info(
            f"Reconciliation finished: {result.records_deleted} deleted, "
            f"{result.remaining_duplicate_groups} groups still duplicated"
        )
        return result
