"""Tests for classification, fallback policies and pay periods."""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from shift_settlement.calculators.pay_period import (
    PayPeriod,
    calculate_pay_period,
    next_pay_period,
)
from shift_settlement.calculators.policies import (
    align_timestamp,
    classify_shift_type,
    resolve_funding_category,
    resolve_shift_type,
    to_local,
    to_money,
)
from shift_settlement.calculators.types import EmploymentType, FundingCategory, ShiftType


class TestShiftClassification:
    """Test time-of-day shift classification."""

    @pytest.mark.parametrize(
        "hour,expected",
        [
            (0, ShiftType.ACTIVE_NIGHT),
            (5, ShiftType.ACTIVE_NIGHT),
            (6, ShiftType.AM),
            (9, ShiftType.AM),
            (19, ShiftType.AM),
            (20, ShiftType.PM),
            (23, ShiftType.PM),
        ],
    )
    def test_classify_by_start_hour(self, hour, expected):
        assert classify_shift_type(datetime(2025, 3, 3, hour, 30)) == expected

    def test_classifier_never_produces_sleepover(self):
        produced = {classify_shift_type(datetime(2025, 3, 3, hour)) for hour in range(24)}
        assert ShiftType.SLEEPOVER not in produced

    def test_explicit_shift_type_wins(self):
        assert resolve_shift_type("Sleepover", datetime(2025, 3, 3, 9)) == ShiftType.SLEEPOVER

    def test_missing_shift_type_is_classified(self):
        assert resolve_shift_type(None, datetime(2025, 3, 3, 21)) == ShiftType.PM

    def test_unknown_explicit_shift_type_rejected(self):
        with pytest.raises(ValueError):
            resolve_shift_type("Overnight", datetime(2025, 3, 3, 9))


class TestFundingCategory:
    """Test funding category defaulting."""

    def test_day_shifts_default_to_community_access(self):
        assert resolve_funding_category(None, ShiftType.AM) == FundingCategory.COMMUNITY_ACCESS
        assert resolve_funding_category(None, ShiftType.PM) == FundingCategory.COMMUNITY_ACCESS

    def test_night_shifts_default_to_sil(self):
        assert resolve_funding_category(None, ShiftType.ACTIVE_NIGHT) == FundingCategory.SIL
        assert resolve_funding_category(None, ShiftType.SLEEPOVER) == FundingCategory.SIL

    def test_explicit_category_wins(self):
        result = resolve_funding_category("CapacityBuilding", ShiftType.AM)
        assert result == FundingCategory.CAPACITY_BUILDING


class TestEmploymentType:
    """Test normalization of free-text employment types."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("full-time", EmploymentType.FULL_TIME),
            ("Full Time", EmploymentType.FULL_TIME),
            ("fulltime", EmploymentType.FULL_TIME),
            ("part_time", EmploymentType.PART_TIME),
            ("parttime", EmploymentType.PART_TIME),
            ("PART-TIME", EmploymentType.PART_TIME),
            ("casual", EmploymentType.CASUAL),
            ("contractor", EmploymentType.CASUAL),
            ("", EmploymentType.CASUAL),
            (None, EmploymentType.CASUAL),
        ],
    )
    def test_normalize(self, raw, expected):
        assert EmploymentType.normalize(raw) == expected

    def test_only_casual_does_not_accrue_leave(self):
        assert EmploymentType.FULL_TIME.accrues_leave is True
        assert EmploymentType.PART_TIME.accrues_leave is True
        assert EmploymentType.CASUAL.accrues_leave is False


class TestTimestamps:
    """Test local time conversion and rounding helpers."""

    def test_naive_values_are_already_local(self):
        value = datetime(2025, 3, 3, 9, 0)
        assert to_local(value, "Australia/Sydney") == value

    def test_aware_values_converted_to_local(self):
        # 22:00 UTC is 09:00 the next day in Sydney (AEDT, UTC+11)
        value = datetime(2025, 3, 2, 22, 0, tzinfo=timezone.utc)
        assert to_local(value, "Australia/Sydney") == datetime(2025, 3, 3, 9, 0)

    def test_align_naive_to_aware_reference(self):
        reference = datetime(2025, 3, 3, 6, 0, tzinfo=timezone.utc)
        aligned = align_timestamp(datetime(2025, 3, 3, 16, 0), reference, "Australia/Sydney")
        assert aligned.tzinfo is not None
        assert aligned < reference

    def test_align_aware_to_naive_reference(self):
        reference = datetime(2025, 3, 3, 17, 0)
        value = datetime(2025, 3, 3, 5, 0, tzinfo=timezone.utc)
        assert align_timestamp(value, reference, "Australia/Sydney") == datetime(2025, 3, 3, 16, 0)

    def test_to_money_rounds_half_up(self):
        assert to_money(Decimal("258.345")) == Decimal("258.35")
        assert to_money(Decimal("0.005")) == Decimal("0.01")


class TestPayPeriods:
    """Test anchored fortnightly pay periods."""

    ANCHOR = date(2024, 1, 1)

    def test_anchor_starts_a_period(self):
        period = calculate_pay_period(self.ANCHOR, self.ANCHOR)
        assert period == PayPeriod(date(2024, 1, 1), date(2024, 1, 14))

    def test_last_day_of_period(self):
        period = calculate_pay_period(date(2024, 1, 14), self.ANCHOR)
        assert period.start == date(2024, 1, 1)

    def test_day_after_period(self):
        period = calculate_pay_period(date(2024, 1, 15), self.ANCHOR)
        assert period == PayPeriod(date(2024, 1, 15), date(2024, 1, 28))

    def test_days_before_anchor(self):
        period = calculate_pay_period(date(2023, 12, 31), self.ANCHOR)
        assert period == PayPeriod(date(2023, 12, 18), date(2023, 12, 31))

    def test_periods_do_not_overlap(self):
        period = calculate_pay_period(date(2025, 3, 3), self.ANCHOR)
        following = next_pay_period(period)
        assert following.start == period.end + timedelta(days=1)
        assert not period.contains(following.start)
        assert calculate_pay_period(following.start, self.ANCHOR) == following
