"""Smart timesheet settlement - values a completed shift for payroll.

Pay depends on when the shift was submitted:
- Before the scheduled end: paid for the time actually worked ("actual")
- At or after the scheduled end: paid for the booked duration ("scheduled")

Late submission can never add hours beyond the schedule.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shift_settlement.calculators.break_policy import HOURS_PRECISION, paid_hours
from shift_settlement.calculators.pay_period import PayPeriod, calculate_pay_period, next_pay_period
from shift_settlement.calculators.policies import align_timestamp, to_local, to_money
from shift_settlement.calculators.rate_resolver import PayScaleResolver
from shift_settlement.calculators.types import PaymentMethod, SmartTimesheetCalculation
from shift_settlement.config import Settings, get_settings
from shift_settlement.exceptions import IncompleteShiftError, ShiftNotFoundError
from shift_settlement.models import Shift, Timesheet, TimesheetEntry, User
from shift_settlement.services.state_machine import TimesheetStateMachine, TimesheetStatus

logger = logging.getLogger(__name__)

SECONDS_PER_MINUTE = Decimal("60")


def _minutes_between(start: datetime, end: datetime) -> Decimal:
    return Decimal(str((end - start).total_seconds())) / SECONDS_PER_MINUTE


class TimesheetSettlementService:
    """Turns completed shifts into timesheet entries.

    Entries are keyed by shift: settling the same shift again updates its
    entry, or appends an adjustment when the timesheet is already approved
    or paid. Timesheet totals are always re-derived from the entries.
    """

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()
        self.pay_scale_resolver = PayScaleResolver(session, self.settings.statutory_minimum_rate)

    async def calculate_smart_timesheet_hours(
        self,
        shift_id: UUID,
        submission_timestamp: datetime | None = None,
        tenant_id: UUID | None = None,
    ) -> SmartTimesheetCalculation:
        """Value a shift under the submission-timing pay policy.

        Raises:
            ShiftNotFoundError: Shift does not exist (in the tenant, if given)
            IncompleteShiftError: Missing scheduled times or assigned user
        """
        shift, user = await self._load_shift(shift_id, tenant_id)
        return await self._calculate(shift, user, submission_timestamp)

    async def create_smart_timesheet_entry(
        self,
        shift_id: UUID,
        submission_timestamp: datetime | None = None,
        tenant_id: UUID | None = None,
    ) -> TimesheetEntry:
        """Settle a shift into its staff member's timesheet.

        Returns the entry written: the shift's own entry, or the adjustment
        appended for it when its timesheet is locked.
        """
        shift, user = await self._load_shift(shift_id, tenant_id)
        calculation = await self._calculate(shift, user, submission_timestamp)

        entry = await self.get_entry_for_shift(shift.shift_id)
        if entry is None:
            period = self._period_for(shift.start_time)
            timesheet = await self.get_open_timesheet(user.user_id, user.tenant_id, period)
            entry = TimesheetEntry(
                timesheet_id=timesheet.timesheet_id,
                shift_id=shift.shift_id,
                entry_date=to_local(shift.start_time, self.settings.local_timezone).date(),
                is_auto_generated=True,
            )
            self._apply_calculation(entry, calculation)
            self.session.add(entry)
            await self.session.flush()
            await self.recalculate_totals(timesheet)
            logger.info(
                "Settled shift %s into timesheet %s: %sh, %s (%s)",
                shift.shift_id,
                timesheet.timesheet_id,
                calculation.total_hours,
                calculation.gross_pay,
                calculation.payment_method.value,
            )
            return entry

        parent = await self.session.get(Timesheet, entry.timesheet_id)
        if not TimesheetStateMachine.are_entries_locked(parent.status):
            self._apply_calculation(entry, calculation)
            await self.session.flush()
            await self.recalculate_totals(parent)
            logger.info("Re-settled shift %s in timesheet %s", shift.shift_id, parent.timesheet_id)
            return entry

        return await self._append_adjustment(entry, parent, calculation)

    async def get_entry_for_shift(self, shift_id: UUID) -> TimesheetEntry | None:
        result = await self.session.execute(
            select(TimesheetEntry).where(TimesheetEntry.shift_id == shift_id)
        )
        return result.scalar_one_or_none()

    async def find_or_create_timesheet(
        self,
        user_id: UUID,
        tenant_id: UUID,
        period: PayPeriod,
    ) -> Timesheet:
        """Get the timesheet for a pay period, creating a draft if needed."""
        result = await self.session.execute(
            select(Timesheet).where(
                Timesheet.user_id == user_id,
                Timesheet.tenant_id == tenant_id,
                Timesheet.pay_period_start == period.start,
            )
        )
        timesheet = result.scalar_one_or_none()
        if timesheet is not None:
            return timesheet

        timesheet = Timesheet(
            tenant_id=tenant_id,
            user_id=user_id,
            pay_period_start=period.start,
            pay_period_end=period.end,
            status=TimesheetStatus.DRAFT.value,
            total_hours=Decimal("0"),
            total_earnings=Decimal("0"),
        )
        self.session.add(timesheet)
        await self.session.flush()
        logger.info(
            "Created timesheet %s for user %s, period %s to %s",
            timesheet.timesheet_id,
            user_id,
            period.start,
            period.end,
        )
        return timesheet

    async def get_open_timesheet(
        self,
        user_id: UUID,
        tenant_id: UUID,
        period: PayPeriod,
    ) -> Timesheet:
        """First timesheet from period onwards that still accepts edits."""
        while True:
            timesheet = await self.find_or_create_timesheet(user_id, tenant_id, period)
            if not TimesheetStateMachine.are_entries_locked(timesheet.status):
                return timesheet
            period = next_pay_period(period)

    async def recalculate_totals(self, timesheet: Timesheet) -> Timesheet:
        """Re-derive total hours and earnings by summing every entry."""
        result = await self.session.execute(
            select(
                func.coalesce(func.sum(TimesheetEntry.total_hours), 0),
                func.coalesce(func.sum(TimesheetEntry.gross_pay), 0),
            ).where(TimesheetEntry.timesheet_id == timesheet.timesheet_id)
        )
        total_hours, total_earnings = result.one()
        timesheet.total_hours = Decimal(str(total_hours)).quantize(HOURS_PRECISION)
        timesheet.total_earnings = to_money(Decimal(str(total_earnings)))
        timesheet.updated_at = datetime.now(timezone.utc)
        await self.session.flush()
        return timesheet

    async def _append_adjustment(
        self,
        entry: TimesheetEntry,
        locked: Timesheet,
        calculation: SmartTimesheetCalculation,
    ) -> TimesheetEntry:
        """Record the difference from the settled value as a new entry."""
        result = await self.session.execute(
            select(
                func.coalesce(func.sum(TimesheetEntry.total_hours), 0),
                func.coalesce(func.sum(TimesheetEntry.gross_pay), 0),
            ).where(TimesheetEntry.adjusts_entry_id == entry.timesheet_entry_id)
        )
        adjusted_hours, adjusted_gross = result.one()
        delta_hours = calculation.total_hours - (entry.total_hours + Decimal(str(adjusted_hours)))
        delta_gross = calculation.gross_pay - (entry.gross_pay + Decimal(str(adjusted_gross)))

        if delta_hours == 0 and delta_gross == 0:
            logger.info(
                "Shift %s unchanged since timesheet %s was %s, no adjustment",
                entry.shift_id,
                locked.timesheet_id,
                locked.status,
            )
            return entry

        target = await self.get_open_timesheet(
            locked.user_id,
            locked.tenant_id,
            next_pay_period(PayPeriod(locked.pay_period_start, locked.pay_period_end)),
        )
        adjustment = TimesheetEntry(
            timesheet_id=target.timesheet_id,
            adjusts_entry_id=entry.timesheet_entry_id,
            entry_date=entry.entry_date,
            start_time=calculation.scheduled_start_time,
            end_time=calculation.actual_end_time,
            break_minutes=0,
            total_hours=delta_hours,
            hourly_rate=calculation.hourly_rate,
            gross_pay=delta_gross,
            payment_method=PaymentMethod.ADJUSTMENT.value,
            submission_timestamp=calculation.submission_timestamp,
            scheduled_end_time=calculation.scheduled_end_time,
            is_auto_generated=True,
            notes=f"Adjustment for shift {entry.shift_id}: {calculation.explanation}",
        )
        self.session.add(adjustment)
        await self.session.flush()
        await self.recalculate_totals(target)

        logger.warning(
            "Timesheet %s is %s; shift %s adjusted by %sh / %s in timesheet %s",
            locked.timesheet_id,
            locked.status,
            entry.shift_id,
            delta_hours,
            delta_gross,
            target.timesheet_id,
        )
        return adjustment

    async def _load_shift(self, shift_id: UUID, tenant_id: UUID | None) -> tuple[Shift, User]:
        shift = await self.session.get(Shift, shift_id)
        if shift is None or (tenant_id is not None and shift.tenant_id != tenant_id):
            raise ShiftNotFoundError(shift_id, tenant_id)

        missing = [
            name
            for name, value in (
                ("start_time", shift.start_time),
                ("end_time", shift.end_time),
                ("user_id", shift.user_id),
            )
            if value is None
        ]
        if missing:
            raise IncompleteShiftError(shift_id, missing)

        user = await self.session.get(User, shift.user_id)
        if user is None:
            raise IncompleteShiftError(shift_id, ["user"])
        return shift, user

    async def _calculate(
        self,
        shift: Shift,
        user: User,
        submission_timestamp: datetime | None,
    ) -> SmartTimesheetCalculation:
        tz = self.settings.local_timezone
        submitted = align_timestamp(
            submission_timestamp or datetime.now(timezone.utc), shift.end_time, tz
        )

        is_early = submitted < shift.end_time
        actual_end = submitted if is_early else shift.end_time
        raw_minutes = _minutes_between(shift.start_time, actual_end)
        scheduled_minutes = _minutes_between(shift.start_time, shift.end_time)
        break_minutes, hours = paid_hours(raw_minutes, scheduled_minutes)

        hourly_rate = await self.pay_scale_resolver.resolve_for_user(user)
        gross_pay = to_money(hours * hourly_rate)

        if is_early:
            method = PaymentMethod.ACTUAL
            explanation = (
                f"Submitted at {to_local(submitted, tz):%H:%M}, before the scheduled end: "
                f"paid {hours}h actually worked after a {break_minutes} minute break"
            )
        else:
            method = PaymentMethod.SCHEDULED
            explanation = (
                f"Submitted at or after the scheduled end: paid the scheduled {hours}h "
                f"after a {break_minutes} minute break"
            )

        return SmartTimesheetCalculation(
            shift_id=shift.shift_id,
            total_hours=hours,
            gross_pay=gross_pay,
            hourly_rate=hourly_rate,
            break_minutes=break_minutes,
            payment_method=method,
            submission_timestamp=submitted,
            scheduled_start_time=shift.start_time,
            scheduled_end_time=shift.end_time,
            actual_end_time=actual_end,
            explanation=explanation,
        )

    def _period_for(self, start_time: datetime) -> PayPeriod:
        local_day = to_local(start_time, self.settings.local_timezone).date()
        return calculate_pay_period(local_day, self.settings.pay_period_anchor)

    @staticmethod
    def _apply_calculation(entry: TimesheetEntry, calculation: SmartTimesheetCalculation) -> None:
        entry.start_time = calculation.scheduled_start_time
        entry.end_time = calculation.actual_end_time
        entry.break_minutes = calculation.break_minutes
        entry.total_hours = calculation.total_hours
        entry.hourly_rate = calculation.hourly_rate
        entry.gross_pay = calculation.gross_pay
        entry.payment_method = calculation.payment_method.value
        entry.submission_timestamp = calculation.submission_timestamp
        entry.scheduled_end_time = calculation.scheduled_end_time
        entry.notes = calculation.explanation
