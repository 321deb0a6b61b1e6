"""Unpaid meal-break entitlement by shift length."""

from __future__ import annotations

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal

# (upper bound in minutes, inclusive) -> unpaid break minutes
BREAK_TIERS: tuple[tuple[Decimal, int], ...] = (
    (Decimal("240"), 0),
    (Decimal("360"), 30),
    (Decimal("480"), 45),
)
LONG_SHIFT_BREAK_MINUTES = 60

HOURS_PRECISION = Decimal("0.01")
MINUTES_PER_HOUR = Decimal("60")


def calculate_break_minutes(total_minutes: Decimal | int | float) -> int:
    """Map a duration in minutes to its unpaid break.

    <= 240 -> 0, 241-360 -> 30, 361-480 -> 45, > 480 -> 60.
    """
    minutes = Decimal(str(total_minutes))
    for upper_bound, break_minutes in BREAK_TIERS:
        if minutes <= upper_bound:
            return break_minutes
    return LONG_SHIFT_BREAK_MINUTES


def paid_hours(
    total_minutes: Decimal,
    limit_minutes: Decimal | None = None,
) -> tuple[int, Decimal]:
    """Return (break minutes, paid hours) for a raw duration.

    Paid hours are floored at zero and rounded half-up to two places.
    Rounding never lifts them above limit_minutes (the scheduled
    duration), which defaults to the raw duration itself.
    """
    break_minutes = calculate_break_minutes(total_minutes)
    worked = max(Decimal("0"), total_minutes - break_minutes)
    hours = (worked / MINUTES_PER_HOUR).quantize(HOURS_PRECISION, rounding=ROUND_HALF_UP)

    limit = max(Decimal("0"), total_minutes if limit_minutes is None else limit_minutes)
    if hours * MINUTES_PER_HOUR > limit:
        hours = (limit / MINUTES_PER_HOUR).quantize(HOURS_PRECISION, rounding=ROUND_DOWN)
    return break_minutes, hours
