"""Fallback and classification policies.

Each precedence rule lives here once so call sites cannot drift apart:

- shift type: explicit shift_type on the shift, else time-of-day classification
- funding category: explicit funding_category on the shift, else by shift type
- employment type: see EmploymentType.normalize
"""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from zoneinfo import ZoneInfo

from shift_settlement.calculators.types import FundingCategory, ShiftType

CENTS = Decimal("0.01")


def to_money(amount: Decimal) -> Decimal:
    """Round to cents, half up."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def to_local(value: datetime, timezone: str) -> datetime:
    """Return the naive local wall-clock time for a timestamp.

    Naive values are taken to already be local. Aware values are
    converted to the given zone first.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone(ZoneInfo(timezone)).replace(tzinfo=None)


def align_timestamp(value: datetime, reference: datetime, timezone: str) -> datetime:
    """Make value comparable with reference.

    A naive value next to an aware reference is taken as local time; an
    aware value next to a naive reference is converted to local time.
    """
    if (value.tzinfo is None) == (reference.tzinfo is None):
        return value
    if value.tzinfo is None:
        return value.replace(tzinfo=ZoneInfo(timezone))
    return to_local(value, timezone)


def classify_shift_type(start_time: datetime) -> ShiftType:
    """Classify a shift by its local start hour.

    [06:00, 20:00) is AM, [20:00, 24:00) is PM, [00:00, 06:00) is
    ActiveNight. Sleepover is never produced here; it only comes from an
    explicit shift_type on the shift.
    """
    hour = start_time.hour
    if 6 <= hour < 20:
        return ShiftType.AM
    if hour >= 20:
        return ShiftType.PM
    return ShiftType.ACTIVE_NIGHT


def resolve_shift_type(explicit: str | None, local_start: datetime) -> ShiftType:
    """Explicit shift type wins; otherwise classify by start time."""
    if explicit:
        return ShiftType(explicit)
    return classify_shift_type(local_start)


def resolve_funding_category(
    explicit: str | None,
    shift_type: ShiftType,
) -> FundingCategory:
    """Explicit funding category wins; otherwise default by shift type.

    AM and PM default to CommunityAccess, everything else to SIL.
    """
    if explicit:
        return FundingCategory(explicit)
    if shift_type in (ShiftType.AM, ShiftType.PM):
        return FundingCategory.COMMUNITY_ACCESS
    return FundingCategory.SIL
