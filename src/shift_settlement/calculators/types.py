"""Type definitions for the settlement and payroll calculations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class ShiftType(str, Enum):
    """NDIS pricing shift types."""

    AM = "AM"
    PM = "PM"
    ACTIVE_NIGHT = "ActiveNight"
    SLEEPOVER = "Sleepover"


class FundingCategory(str, Enum):
    """NDIS budget categories, each an independent spending pool."""

    COMMUNITY_ACCESS = "CommunityAccess"
    SIL = "SIL"
    CAPACITY_BUILDING = "CapacityBuilding"


class PaymentMethod(str, Enum):
    """How a timesheet entry was valued."""

    ACTUAL = "actual"
    SCHEDULED = "scheduled"
    MANUAL = "manual"
    ADJUSTMENT = "adjustment"


class LeaveType(str, Enum):
    """Accruing leave types."""

    ANNUAL = "annual"
    SICK = "sick"
    PERSONAL = "personal"
    LONG_SERVICE = "long_service"


class EmploymentType(str, Enum):
    """Closed set of employment types.

    Free-text variants ("Full Time", "parttime", "part_time", ...) are
    folded into one of these by normalize(). Anything unrecognised is
    treated as casual.
    """

    FULL_TIME = "full-time"
    PART_TIME = "part-time"
    CASUAL = "casual"

    @classmethod
    def normalize(cls, value: str | EmploymentType | None) -> EmploymentType:
        if isinstance(value, EmploymentType):
            return value
        if not value:
            return cls.CASUAL
        key = "".join(ch for ch in value.lower() if ch.isalpha())
        return _EMPLOYMENT_ALIASES.get(key, cls.CASUAL)

    @property
    def accrues_leave(self) -> bool:
        return self is not EmploymentType.CASUAL


_EMPLOYMENT_ALIASES = {
    "fulltime": EmploymentType.FULL_TIME,
    "ft": EmploymentType.FULL_TIME,
    "permanent": EmploymentType.FULL_TIME,
    "parttime": EmploymentType.PART_TIME,
    "pt": EmploymentType.PART_TIME,
    "casual": EmploymentType.CASUAL,
}


@dataclass(frozen=True)
class TaxBand:
    """One progressive tax band (annual amounts)."""

    min_income: Decimal
    max_income: Decimal | None  # None = no upper limit
    rate: Decimal  # As decimal, e.g., 0.325 for 32.5%
    base_tax: Decimal = Decimal("0")  # Tax on income up to min_income


@dataclass(frozen=True)
class SmartTimesheetCalculation:
    """Result of valuing a shift under the submission-timing pay policy."""

    shift_id: UUID
    total_hours: Decimal
    gross_pay: Decimal
    hourly_rate: Decimal
    break_minutes: int
    payment_method: PaymentMethod
    submission_timestamp: datetime
    scheduled_start_time: datetime
    scheduled_end_time: datetime
    actual_end_time: datetime
    explanation: str


@dataclass(frozen=True)
class LeaveAccrual:
    """Leave hours accrued for one pay period."""

    annual: Decimal = Decimal("0")
    sick: Decimal = Decimal("0")
    personal: Decimal = Decimal("0")
    long_service: Decimal = Decimal("0")

    def as_dict(self) -> dict[LeaveType, Decimal]:
        return {
            LeaveType.ANNUAL: self.annual,
            LeaveType.SICK: self.sick,
            LeaveType.PERSONAL: self.personal,
            LeaveType.LONG_SERVICE: self.long_service,
        }


@dataclass(frozen=True)
class PayrollCalculation:
    """Net pay, tax and leave figures for one pay period."""

    gross_pay: Decimal
    tax_withheld: Decimal
    medicare_levy: Decimal
    super_contribution: Decimal
    net_pay: Decimal
    leave_accrued: LeaveAccrual = field(default_factory=LeaveAccrual)
