"""
Tests for duplicate obligation reconciliation.

The store here does not enforce uniqueness, mirroring data written before
the unique constraint existed.
"""

import pytest
from datetime import date
from unittest.mock import AsyncMock

from tenantpay.audit import AuditService
from tenantpay.reconciliation.service import ReconciliationJob, choose_keeper, plan_deduplication


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def job(mock_db, loose_store):
    return ReconciliationJob(
        mock_db,
        store=loose_store,
        audit=AuditService(mock_db, source="system"),
        batch_size=2,
    )


@pytest.fixture
def duplicated(loose_store, make_obligation):
    """
    Two duplicated keys and one clean key:

    - July: three pending copies, pay_c newest
    - August: an older paid copy and a newer pending copy
    - September: a single record
    """
    records = [
        make_obligation("pay_a", created_minutes=0),
        make_obligation("pay_b", created_minutes=5),
        make_obligation("pay_c", created_minutes=10),
        make_obligation("pay_d", period_month=date(2025, 8, 1), status="paid", created_minutes=0),
        make_obligation("pay_e", period_month=date(2025, 8, 1), created_minutes=30),
        make_obligation("pay_f", period_month=date(2025, 9, 1)),
    ]
    for record in records:
        loose_store.add(record)
    return records


# =============================================================================
# Unit Tests - Keeper Selection
# =============================================================================

class TestChooseKeeper:
    """Tests for the deterministic keep rule."""

    def test_paid_beats_newer_pending(self, make_obligation):
        paid = make_obligation("pay_old", status="paid", created_minutes=0)
        pending = make_obligation("pay_new", created_minutes=60)

        assert choose_keeper([pending, paid]) is paid

    def test_newest_wins_without_paid(self, make_obligation):
        older = make_obligation("pay_z", created_minutes=0)
        newer = make_obligation("pay_a", created_minutes=1)

        assert choose_keeper([older, newer]) is newer

    def test_tie_broken_by_id(self, make_obligation):
        first = make_obligation("pay_a", created_minutes=5)
        second = make_obligation("pay_b", created_minutes=5)

        assert choose_keeper([first, second]) is second
        assert choose_keeper([second, first]) is second

    def test_missing_created_at_sorts_oldest(self, make_obligation):
        unknown = make_obligation("pay_z")
        unknown.created_at = None
        dated = make_obligation("pay_a", created_minutes=0)

        assert choose_keeper([unknown, dated]) is dated

    def test_naive_timestamp_compared(self, make_obligation):
        naive = make_obligation("pay_a", created_minutes=90)
        naive.created_at = naive.created_at.replace(tzinfo=None)
        aware = make_obligation("pay_b", created_minutes=0)

        assert choose_keeper([naive, aware]) is naive


class TestPlanDeduplication:
    """Tests for grouping and planning."""

    def test_only_duplicated_keys_planned(self, duplicated):
        plan = plan_deduplication(duplicated)

        assert len(plan) == 2
        by_keep = {g.keep_id: g for g in plan}
        assert by_keep["pay_c"].delete_ids == ["pay_a", "pay_b"]
        assert by_keep["pay_d"].delete_ids == ["pay_e"]

    def test_oldest_paid_kept_over_two_pending(self, make_obligation):
        records = [
            make_obligation("pay_paid", status="paid", created_minutes=0),
            make_obligation("pay_older", created_minutes=10),
            make_obligation("pay_newer", created_minutes=20),
        ]

        plan = plan_deduplication(records)

        assert len(plan) == 1
        assert plan[0].keep_id == "pay_paid"
        assert sorted(plan[0].delete_ids) == ["pay_newer", "pay_older"]

    def test_no_duplicates(self, make_obligation):
        assert plan_deduplication([make_obligation("pay_a")]) == []


# =============================================================================
# Unit Tests - Reconciliation Run
# =============================================================================

class TestReconciliationRun:
    """Tests for the full reconciliation job."""

    @pytest.mark.asyncio
    async def test_leaves_one_record_per_key(self, job, duplicated, loose_store):
        result = await job.run()

        assert result.groups_with_duplicates == 2
        assert result.records_deleted == 3
        assert result.remaining_duplicate_groups == 0
        assert result.warnings == []
        assert sorted(loose_store.records) == ["pay_c", "pay_d", "pay_f"]

    @pytest.mark.asyncio
    async def test_run_keeps_paid_and_deletes_both_pending(self, job, loose_store, make_obligation):
        for record in (
            make_obligation("pay_paid", status="paid", created_minutes=0),
            make_obligation("pay_older", created_minutes=10),
            make_obligation("pay_newer", created_minutes=20),
        ):
            loose_store.add(record)

        result = await job.run()

        assert result.records_deleted == 2
        assert list(loose_store.records) == ["pay_paid"]
        assert loose_store.records["pay_paid"].status == "paid"

    @pytest.mark.asyncio
    async def test_deletes_in_committed_batches(self, job, duplicated, loose_store):
        """Three deletions with batch size 2 commit twice."""
        await job.run()

        assert loose_store.commits == 2

    @pytest.mark.asyncio
    async def test_audits_each_deletion(self, job, duplicated, mock_db):
        await job.run()

        logs = [call[0][0] for call in mock_db.add.call_args_list]
        assert sorted(log.entity_id for log in logs) == ["pay_a", "pay_b", "pay_e"]
        assert all(log.action == "reconcile" for log in logs)
        assert all(log.source == "system" for log in logs)
        kept = {log.entity_id: log.extra_data["kept_id"] for log in logs}
        assert kept == {"pay_a": "pay_c", "pay_b": "pay_c", "pay_e": "pay_d"}

    @pytest.mark.asyncio
    async def test_dry_run_changes_nothing(self, job, duplicated, loose_store, mock_db):
        result = await job.run(dry_run=True)

        assert result.dry_run is True
        assert result.groups_with_duplicates == 2
        assert result.records_deleted == 0
        assert len(loose_store.records) == 6
        assert loose_store.commits == 0
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_remaining_duplicates_reported(self, job, duplicated, loose_store):
        """If deletes do not take effect the final re-scan reports each key."""
        loose_store.delete_by_ids = AsyncMock(return_value=0)

        result = await job.run()

        assert result.records_deleted == 0
        assert result.remaining_duplicate_groups == 2
        assert len(result.warnings) == 2
        assert any("2025-07-01" in w and "3 records" in w for w in result.warnings)

    @pytest.mark.asyncio
    async def test_clean_data(self, job, loose_store, make_obligation):
        loose_store.add(make_obligation("pay_a"))

        result = await job.run()

        assert result.groups_with_duplicates == 0
        assert result.groups == []
        assert loose_store.records.keys() == {"pay_a"}
