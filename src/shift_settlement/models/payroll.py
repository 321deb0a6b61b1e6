"""Pay scale, tax, timesheet and leave models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shift_settlement.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from shift_settlement.models.company import Tenant


# ===== Pay Scales & Tax =====


class PayScale(Base, TimestampMixin):
    """ScHADS-style hourly rate for one (level, pay point, employment type).

    Rows are superseded in place by the wage increase job; never deleted.
    """

    __tablename__ = "pay_scale"

    pay_scale_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenant.tenant_id", ondelete="CASCADE"),
        nullable=False,
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    pay_point: Mapped[int] = mapped_column(Integer, nullable=False)
    employment_type: Mapped[str] = mapped_column(String, nullable=False)
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    effective_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "level", "pay_point", "employment_type",
            name="pay_scale_key_unique",
        ),
        CheckConstraint(
            "employment_type IN ('full-time', 'part-time', 'casual')",
            name="pay_scale_employment_type_check",
        ),
        CheckConstraint("hourly_rate > 0", name="pay_scale_rate_positive"),
    )

    # Relationships
    tenant: Mapped[Tenant] = relationship(back_populates="pay_scales")


class TaxBracket(Base, TimestampMixin):
    """Progressive income tax bracket (system-wide, per tax year)."""

    __tablename__ = "tax_bracket"

    tax_bracket_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tax_year: Mapped[int] = mapped_column(Integer, nullable=False)
    min_income: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    max_income: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(6, 4), nullable=False)
    base_tax: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    __table_args__ = (
        UniqueConstraint("tax_year", "min_income", name="tax_bracket_year_min_unique"),
        CheckConstraint(
            "max_income IS NULL OR max_income > min_income",
            name="tax_bracket_range_check",
        ),
    )


# ===== Timesheets =====


class Timesheet(Base, TimestampMixin):
    """A staff member's timesheet for one fortnightly pay period.

    total_hours/total_earnings are always re-derived from the entries.
    """

    __tablename__ = "timesheet"

    timesheet_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenant.tenant_id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.user_id", ondelete="CASCADE"),
        nullable=False,
    )
    pay_period_start: Mapped[date] = mapped_column(Date, nullable=False)
    pay_period_end: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    total_hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    total_earnings: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )

    # Populated when the timesheet is paid
    tax_withheld: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    medicare_levy: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    super_contribution: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    net_pay: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by_user_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("app_user.user_id"),
        nullable=True,
    )
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "user_id", "tenant_id", "pay_period_start",
            name="timesheet_user_period_unique",
        ),
        CheckConstraint(
            "status IN ('draft', 'submitted', 'approved', 'rejected', 'paid')",
            name="timesheet_status_check",
        ),
        CheckConstraint("pay_period_end >= pay_period_start", name="timesheet_period_check"),
    )

    # Relationships
    entries: Mapped[list[TimesheetEntry]] = relationship(back_populates="timesheet")


class TimesheetEntry(Base, TimestampMixin):
    """One settled shift (or manual line, or compensating adjustment)."""

    __tablename__ = "timesheet_entry"

    timesheet_entry_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    timesheet_id: Mapped[UUID] = mapped_column(
        ForeignKey("timesheet.timesheet_id", ondelete="CASCADE"),
        nullable=False,
    )
    # Unique: at most one settled entry per shift
    shift_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("shift.shift_id"),
        nullable=True,
        unique=True,
    )
    adjusts_entry_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("timesheet_entry.timesheet_entry_id"),
        nullable=True,
    )
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    break_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    gross_pay: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_method: Mapped[str] = mapped_column(String, nullable=False)
    submission_timestamp: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    scheduled_end_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    is_auto_generated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "payment_method IN ('actual', 'scheduled', 'manual', 'adjustment')",
            name="timesheet_entry_payment_method_check",
        ),
        CheckConstraint("break_minutes >= 0", name="timesheet_entry_break_nonneg"),
    )

    # Relationships
    timesheet: Mapped[Timesheet] = relationship(back_populates="entries")


# ===== Leave =====


class LeaveBalance(Base, TimestampMixin):
    """Accrued leave hours for one leave type."""

    __tablename__ = "leave_balance"

    leave_balance_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenant.tenant_id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.user_id", ondelete="CASCADE"),
        nullable=False,
    )
    leave_type: Mapped[str] = mapped_column(String, nullable=False)
    balance_hours: Mapped[Decimal] = mapped_column(
        Numeric(12, 4), nullable=False, default=Decimal("0")
    )
    last_updated: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "tenant_id", "leave_type", name="leave_balance_key_unique"),
        CheckConstraint(
            "leave_type IN ('annual', 'sick', 'personal', 'long_service')",
            name="leave_balance_type_check",
        ),
        CheckConstraint("balance_hours >= 0", name="leave_balance_nonneg"),
    )
