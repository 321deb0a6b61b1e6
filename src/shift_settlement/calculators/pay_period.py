"""Fortnightly pay period boundaries."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

PERIOD_LENGTH_DAYS = 14


@dataclass(frozen=True)
class PayPeriod:
    start: date
    end: date  # Inclusive

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


def calculate_pay_period(day: date, anchor: date) -> PayPeriod:
    """Return the fortnight containing day.

    Periods start on the anchor date and repeat every 14 days in both
    directions, so consecutive periods never overlap.
    """
    offset = (day - anchor).days // PERIOD_LENGTH_DAYS
    start = anchor + timedelta(days=offset * PERIOD_LENGTH_DAYS)
    return PayPeriod(start=start, end=start + timedelta(days=PERIOD_LENGTH_DAYS - 1))


def next_pay_period(current: PayPeriod) -> PayPeriod:
    start = current.end + timedelta(days=1)
    return PayPeriod(start=start, end=start + timedelta(days=PERIOD_LENGTH_DAYS - 1))
