"""
Tests for billing period arithmetic.

Covers month normalization, reminder trigger dates (including month
underflow into short months) and the target period flip.
"""

import pytest
from datetime import date

from tenantpay.obligations.periods import (
    add_months,
    consecutive_periods,
    first_unbilled_month,
    is_currently_late,
    is_reminder_date,
    month_label,
    month_periods,
    normalize_month,
    reminder_trigger_date,
    target_period,
    validate_notice_day,
)


# =============================================================================
# Unit Tests - Month Helpers
# =============================================================================

class TestMonthHelpers:
    """Tests for period normalization and month stepping."""

    def test_normalize_month(self):
        assert normalize_month(date(2025, 7, 19)) == date(2025, 7, 1)
        assert normalize_month(date(2025, 7, 1)) == date(2025, 7, 1)

    def test_add_months_crosses_year(self):
        assert add_months(date(2025, 11, 30), 2) == date(2026, 1, 1)
        assert add_months(date(2025, 1, 31), -1) == date(2024, 12, 1)

    def test_first_unbilled_month_is_next_month(self):
        """Generating ahead always starts with the month after today."""
        assert first_unbilled_month(date(2025, 12, 15)) == date(2026, 1, 1)

    def test_consecutive_periods(self):
        periods = consecutive_periods(date(2025, 11, 1), 3)
        assert periods == [date(2025, 11, 1), date(2025, 12, 1), date(2026, 1, 1)]

    def test_month_periods_drops_repeats(self):
        assert month_periods(2025, [3, 1, 3]) == [date(2025, 3, 1), date(2025, 1, 1)]

    def test_month_periods_rejects_out_of_range(self):
        with pytest.raises(ValueError):
            month_periods(2025, [0])
        with pytest.raises(ValueError):
            month_periods(2025, [13])

    def test_month_label(self):
        assert month_label(date(2025, 7, 1)) == "July 2025"
        assert month_label(date(2026, 1, 1)) == "January 2026"


# =============================================================================
# Unit Tests - Reminder Timing
# =============================================================================

class TestReminderTriggerDate:
    """Tests for notice_day - N with rollback into the previous month."""

    def test_same_month(self):
        assert reminder_trigger_date(7, date(2025, 7, 1), 3) == date(2025, 7, 4)

    def test_underflow_into_february(self):
        """notice_day=1 for March lands on Feb 26 in a common year."""
        assert reminder_trigger_date(1, date(2025, 3, 1), 3) == date(2025, 2, 26)

    def test_underflow_into_leap_february(self):
        assert reminder_trigger_date(1, date(2024, 3, 1), 3) == date(2024, 2, 27)

    def test_underflow_into_31_day_month(self):
        assert reminder_trigger_date(2, date(2025, 8, 1), 3) == date(2025, 7, 30)

    def test_underflow_across_year(self):
        assert reminder_trigger_date(3, date(2026, 1, 1), 3) == date(2025, 12, 31)

    def test_late_notice_day_clamped_in_short_month(self):
        assert reminder_trigger_date(31, date(2025, 2, 1), 1) == date(2025, 2, 28)

    def test_rejects_invalid_notice_day(self):
        with pytest.raises(ValueError):
            reminder_trigger_date(0, date(2025, 7, 1))
        with pytest.raises(ValueError):
            validate_notice_day(32)


class TestTargetPeriod:
    """Tests for the month a reminder refers to."""

    def test_before_notice_day_is_current_month(self):
        assert target_period(date(2025, 7, 2), 5) == date(2025, 7, 1)

    def test_on_notice_day_flips_to_next_month(self):
        assert target_period(date(2025, 7, 5), 5) == date(2025, 8, 1)

    def test_after_notice_day_is_next_month(self):
        assert target_period(date(2025, 12, 20), 5) == date(2026, 1, 1)


class TestIsReminderDate:
    """Tests for the daily "fire today?" check."""

    def test_notice_day_seven_fires_on_fourth(self):
        assert is_reminder_date(date(2025, 7, 4), 7)
        assert not is_reminder_date(date(2025, 7, 3), 7)
        assert not is_reminder_date(date(2025, 7, 5), 7)

    def test_notice_day_one_fires_in_previous_month(self):
        """Feb 26 reminds about March 1."""
        assert is_reminder_date(date(2025, 2, 26), 1)
        assert not is_reminder_date(date(2025, 2, 27), 1)

    def test_leap_year_shifts_trigger(self):
        assert is_reminder_date(date(2024, 2, 27), 1)
        assert not is_reminder_date(date(2024, 2, 26), 1)

    def test_fires_once_per_month(self):
        """Exactly one trigger date per month for a given notice day."""
        hits = [
            day for day in range(1, 32)
            if is_reminder_date(date(2025, 7, day), 10)
        ]
        assert hits == [7]

    def test_custom_days_before(self):
        assert is_reminder_date(date(2025, 7, 9), 10, days_before=1)


class TestIsCurrentlyLate:
    """Presentation-only lateness."""

    def test_pending_past_period_is_late(self):
        assert is_currently_late("pending", date(2025, 6, 1), date(2025, 7, 2))

    def test_current_period_is_not_late(self):
        assert not is_currently_late("pending", date(2025, 7, 1), date(2025, 7, 28))

    def test_paid_is_never_late(self):
        assert not is_currently_late("paid", date(2024, 1, 1), date(2025, 7, 2))
