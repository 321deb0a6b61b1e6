"""Timesheet service - submission, approval and payment lifecycle."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from shift_settlement.config import Settings, get_settings
from shift_settlement.exceptions import InvalidTransitionError
from shift_settlement.models import Timesheet
from shift_settlement.services.audit import create_notification, record_activity
from shift_settlement.services.payroll_service import PayrollService
from shift_settlement.services.state_machine import TimesheetStateMachine, TimesheetStatus

logger = logging.getLogger(__name__)


class TimesheetService:
    """Service for managing the timesheet lifecycle.

    Operations:
    - submit_timesheet: draft/rejected → submitted
    - approve_timesheet: submitted → approved, notifies the staff member
    - reject_timesheet: submitted → rejected, requires a reason
    - mark_timesheet_paid: approved → paid, runs payroll and accrues leave
    """

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()
        self.payroll_service = PayrollService(session, self.settings)

    async def get_timesheet(
        self,
        timesheet_id: UUID,
        load_entries: bool = False,
    ) -> Timesheet | None:
        options = [selectinload(Timesheet.entries)] if load_entries else []
        result = await self.session.execute(
            select(Timesheet).where(Timesheet.timesheet_id == timesheet_id).options(*options)
        )
        return result.scalar_one_or_none()

    async def transition_status(
        self,
        timesheet: Timesheet,
        to_status: str,
        actor_user_id: UUID | None = None,
        reason: str | None = None,
    ) -> Timesheet:
        """Transition a timesheet to a new status.

        Handles all side effects of transitions:
        - submitted: set submitted_at, clear any rejection reason
        - approved: set approver, notify the staff member
        - rejected: requires reason, notify the staff member
        - paid: calculate payroll, store figures, accrue leave

        Raises InvalidTransitionError if transition is not allowed.
        """
        from_status = timesheet.status
        TimesheetStateMachine.validate_transition(from_status, to_status)
        now = datetime.now(timezone.utc)

        if to_status == TimesheetStatus.SUBMITTED:
            timesheet.submitted_at = now
            timesheet.rejection_reason = None

        elif to_status == TimesheetStatus.APPROVED:
            timesheet.approved_at = now
            timesheet.approved_by_user_id = actor_user_id
            await create_notification(
                self.session,
                tenant_id=timesheet.tenant_id,
                user_id=timesheet.user_id,
                title="Timesheet Approved",
                message=(
                    f"Your timesheet for {timesheet.pay_period_start} to "
                    f"{timesheet.pay_period_end} has been approved"
                ),
                type="success",
            )

        elif to_status == TimesheetStatus.REJECTED:
            if not reason:
                raise InvalidTransitionError(from_status, to_status, "Rejection requires a reason")
            timesheet.rejection_reason = reason
            await create_notification(
                self.session,
                tenant_id=timesheet.tenant_id,
                user_id=timesheet.user_id,
                title="Timesheet Rejected",
                message=(
                    f"Your timesheet for {timesheet.pay_period_start} to "
                    f"{timesheet.pay_period_end} was rejected: {reason}"
                ),
                type="warning",
            )

        elif to_status == TimesheetStatus.PAID:
            await self._handle_payment(timesheet)
            timesheet.paid_at = now

        old_status = timesheet.status
        timesheet.status = TimesheetStatus(to_status).value
        timesheet.updated_at = now

        if TimesheetStateMachine.is_resubmit(old_status, timesheet.status):
            action = "timesheet_resubmitted"
        else:
            action = f"timesheet_{timesheet.status}"

        await record_activity(
            self.session,
            tenant_id=timesheet.tenant_id,
            user_id=actor_user_id,
            action=action,
            resource_type="timesheet",
            resource_id=timesheet.timesheet_id,
            description=f"Timesheet status changed from {old_status} to {timesheet.status}",
            details={"reason": reason} if reason else None,
        )
        logger.info(
            "Timesheet %s: %s -> %s (actor %s)",
            timesheet.timesheet_id,
            old_status,
            timesheet.status,
            actor_user_id,
        )
        return timesheet

    async def submit_timesheet(self, timesheet_id: UUID, actor_user_id: UUID | None = None) -> Timesheet:
        timesheet = await self._require(timesheet_id)
        return await self.transition_status(timesheet, TimesheetStatus.SUBMITTED, actor_user_id)

    async def approve_timesheet(self, timesheet_id: UUID, approver_user_id: UUID) -> Timesheet:
        timesheet = await self._require(timesheet_id)
        return await self.transition_status(timesheet, TimesheetStatus.APPROVED, approver_user_id)

    async def reject_timesheet(
        self,
        timesheet_id: UUID,
        approver_user_id: UUID,
        reason: str,
    ) -> Timesheet:
        timesheet = await self._require(timesheet_id)
        return await self.transition_status(
            timesheet, TimesheetStatus.REJECTED, approver_user_id, reason
        )

    async def mark_timesheet_paid(
        self,
        timesheet_id: UUID,
        actor_user_id: UUID | None = None,
    ) -> Timesheet:
        timesheet = await self._require(timesheet_id)
        return await self.transition_status(timesheet, TimesheetStatus.PAID, actor_user_id)

    async def _handle_payment(self, timesheet: Timesheet) -> None:
        """Store payroll figures for the period and accrue leave."""
        payroll = await self.payroll_service.calculate_payroll(
            user_id=timesheet.user_id,
            tenant_id=timesheet.tenant_id,
            gross_pay=timesheet.total_earnings,
        )
        timesheet.tax_withheld = payroll.tax_withheld
        timesheet.medicare_levy = payroll.medicare_levy
        timesheet.super_contribution = payroll.super_contribution
        timesheet.net_pay = payroll.net_pay

        await self.payroll_service.update_leave_balances(
            timesheet.user_id, timesheet.tenant_id, payroll.leave_accrued
        )

    async def _require(self, timesheet_id: UUID) -> Timesheet:
        timesheet = await self.get_timesheet(timesheet_id)
        if timesheet is None:
            raise ValueError(f"Timesheet {timesheet_id} not found")
        return timesheet
