"""
Tests for the Obligation Generator.

Uses the in-memory store from conftest, which enforces the same
(tenant, property, month) uniqueness as the database.
"""

import asyncio
import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock

from sqlalchemy.exc import SQLAlchemyError

from tenantpay.audit import AuditService
from tenantpay.obligations.errors import (
    ObligationPreconditionError,
    ObligationValidationError,
)
from tenantpay.obligations.generator import ObligationGenerator


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def generator(mock_db, store, directory):
    """Generator wired to the fakes, with one billable tenant on prop_p1."""
    directory.add_tenant("user_t1", monthly_rate=Decimal("300.00"), property_ids=["prop_p1"])
    return ObligationGenerator(
        mock_db,
        store=store,
        directory=directory,
        audit=AuditService(mock_db, user_id="user_admin"),
    )


# =============================================================================
# Unit Tests - ensure
# =============================================================================

class TestEnsure:
    """Tests for single-key idempotent creation."""

    @pytest.mark.asyncio
    async def test_creates_pending_obligation_with_rate(self, generator, store):
        result = await generator.ensure("user_t1", "prop_p1", date(2025, 7, 1))

        assert result.created is True
        assert result.status == "pending"
        obligation = store.records[result.obligation_id]
        assert obligation.amount == Decimal("300.00")
        assert obligation.period_month == date(2025, 7, 1)
        assert obligation.payment_date is None
        assert store.commits == 1

    @pytest.mark.asyncio
    async def test_normalizes_period_to_first_of_month(self, generator, store):
        result = await generator.ensure("user_t1", "prop_p1", date(2025, 7, 19))

        assert result.period_month == date(2025, 7, 1)
        assert store.records[result.obligation_id].period_month == date(2025, 7, 1)

    @pytest.mark.asyncio
    async def test_second_call_returns_existing(self, generator, store):
        """Calling twice yields one record and the same id."""
        first = await generator.ensure("user_t1", "prop_p1", date(2025, 7, 1))
        second = await generator.ensure("user_t1", "prop_p1", date(2025, 7, 15))

        assert second.created is False
        assert second.obligation_id == first.obligation_id
        assert len(store.records) == 1

    @pytest.mark.asyncio
    async def test_existing_amount_not_repriced(self, generator, store, directory):
        """A later rate change never touches an existing obligation."""
        first = await generator.ensure("user_t1", "prop_p1", date(2025, 7, 1))
        directory.tenants["user_t1"].monthly_rate = Decimal("450.00")

        again = await generator.ensure("user_t1", "prop_p1", date(2025, 7, 1))

        assert again.obligation_id == first.obligation_id
        assert store.records[first.obligation_id].amount == Decimal("300.00")

    @pytest.mark.asyncio
    async def test_existing_paid_record_returned_untouched(self, generator, store):
        first = await generator.ensure("user_t1", "prop_p1", date(2025, 7, 1))
        store.records[first.obligation_id].status = "paid"

        again = await generator.ensure("user_t1", "prop_p1", date(2025, 7, 1))

        assert again.created is False
        assert again.status == "paid"

    @pytest.mark.asyncio
    async def test_concurrent_calls_leave_one_record(self, generator, store):
        """Racing creators both get the same record; only one is created."""
        results = await asyncio.gather(
            generator.ensure("user_t1", "prop_p1", date(2025, 7, 1)),
            generator.ensure("user_t1", "prop_p1", date(2025, 7, 1)),
        )

        assert len(store.records) == 1
        assert results[0].obligation_id == results[1].obligation_id
        assert sorted(r.created for r in results) == [False, True]

    @pytest.mark.asyncio
    async def test_writes_audit_entry(self, generator, mock_db):
        await generator.ensure("user_t1", "prop_p1", date(2025, 7, 1))

        audit_log = mock_db.add.call_args[0][0]
        assert audit_log.action == "create"
        assert audit_log.entity_type == "obligation"
        assert audit_log.new_value["amount"] == "300.00"
        assert audit_log.new_value["period_month"] == "2025-07-01"
        assert audit_log.user_id == "user_admin"


class TestEnsurePreconditions:
    """Tests for rejected keys."""

    @pytest.mark.asyncio
    async def test_missing_ids(self, generator):
        with pytest.raises(ObligationValidationError):
            await generator.ensure("", "prop_p1", date(2025, 7, 1))

    @pytest.mark.asyncio
    async def test_unknown_tenant(self, generator):
        with pytest.raises(ObligationPreconditionError, match="Tenant not found"):
            await generator.ensure("user_ghost", "prop_p1", date(2025, 7, 1))

    @pytest.mark.asyncio
    async def test_tenant_not_linked_to_property(self, generator, store):
        with pytest.raises(ObligationPreconditionError, match="not associated"):
            await generator.ensure("user_t1", "prop_p2", date(2025, 7, 1))
        assert store.records == {}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rate", [None, Decimal("0")])
    async def test_tenant_without_rate(self, generator, directory, store, rate):
        directory.add_tenant("user_t2", monthly_rate=rate, property_ids=["prop_p1"])

        with pytest.raises(ObligationPreconditionError, match="monthly rate"):
            await generator.ensure("user_t2", "prop_p1", date(2025, 7, 1))
        assert store.records == {}


# =============================================================================
# Unit Tests - Batches
# =============================================================================

class TestEnsureBatch:
    """Tests for batch generation with per-item failures."""

    @pytest.mark.asyncio
    async def test_failures_do_not_stop_batch(self, generator, directory):
        directory.add_tenant("user_t2", monthly_rate=None, property_ids=["prop_p1"])

        batch = await generator.ensure_for_months(["user_t1", "user_t2"], "prop_p1", 2025, [7, 8])

        assert len(batch.created) == 2
        assert len(batch.errors) == 2
        assert {e.tenant_id for e in batch.errors} == {"user_t2"}
        assert all("monthly rate" in e.error for e in batch.errors)

    @pytest.mark.asyncio
    async def test_rerun_reports_existing(self, generator):
        await generator.ensure_for_months(["user_t1"], "prop_p1", 2025, [7, 8])
        batch = await generator.ensure_for_months(["user_t1"], "prop_p1", 2025, [7, 8])

        assert batch.created == []
        assert len(batch.existing) == 2
        assert len(batch.results) == 2

    @pytest.mark.asyncio
    async def test_database_error_rolls_back_and_continues(self, generator, store):
        store.insert = AsyncMock(side_effect=SQLAlchemyError("connection reset"))

        batch = await generator.ensure_for_months(["user_t1"], "prop_p1", 2025, [7, 8])

        assert len(batch.errors) == 2
        assert store.rollbacks == 2

    @pytest.mark.asyncio
    async def test_invalid_month(self, generator):
        with pytest.raises(ObligationValidationError):
            await generator.ensure_for_months(["user_t1"], "prop_p1", 2025, [13])

    @pytest.mark.asyncio
    async def test_empty_inputs(self, generator):
        with pytest.raises(ObligationValidationError):
            await generator.ensure_for_months([], "prop_p1", 2025, [7])
        with pytest.raises(ObligationValidationError):
            await generator.ensure_for_months(["user_t1"], "prop_p1", 2025, [])


class TestGenerateAhead:
    """Tests for generating future months."""

    @pytest.mark.asyncio
    async def test_starts_next_month(self, generator):
        batch = await generator.generate_ahead("user_t1", "prop_p1", 3, today=date(2025, 12, 15))

        assert [r.period_month for r in batch.created] == [
            date(2026, 1, 1), date(2026, 2, 1), date(2026, 3, 1),
        ]

    @pytest.mark.asyncio
    async def test_existing_months_untouched(self, generator):
        await generator.ensure("user_t1", "prop_p1", date(2026, 2, 1))

        batch = await generator.generate_ahead("user_t1", "prop_p1", 3, today=date(2025, 12, 15))

        assert len(batch.created) == 2
        assert [r.period_month for r in batch.existing] == [date(2026, 2, 1)]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("months_ahead", [0, 25])
    async def test_months_ahead_bounds(self, generator, months_ahead):
        with pytest.raises(ObligationValidationError):
            await generator.generate_ahead("user_t1", "prop_p1", months_ahead, today=date(2025, 7, 1))
