"""Shift completion orchestration.

Budget deduction and timesheet settlement are best-effort side effects of
completing a shift. Each runs in its own unit of work; a failure is logged
with enough context to replay it and never reaches the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Awaitable, Callable, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shift_settlement.config import Settings, get_settings
from shift_settlement.database import session_scope
from shift_settlement.exceptions import SettlementError, ShiftNotFoundError
from shift_settlement.models import BudgetTransaction, Shift
from shift_settlement.services.budget_ledger import (
    BudgetLedgerService,
    DeductionResult,
    InsufficientFundsNotice,
)
from shift_settlement.services.timesheet_settlement import TimesheetSettlementService

logger = logging.getLogger(__name__)

MAX_BACKFILL_SHIFT_DURATION = timedelta(hours=24)
MAX_STEP_ATTEMPTS = 2

T = TypeVar("T")


@dataclass
class SettlementOutcome:
    """What happened when a completed shift was settled."""

    shift_id: UUID
    budget: DeductionResult | InsufficientFundsNotice | None = None
    timesheet_entry_id: UUID | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def fully_settled(self) -> bool:
        return (
            isinstance(self.budget, DeductionResult)
            and self.timesheet_entry_id is not None
            and not self.errors
        )


@dataclass
class BackfillSummary:
    examined: int = 0
    deducted: int = 0
    insufficient: int = 0
    skipped: int = 0
    failed: int = 0


class ShiftSettlementService:
    """Runs the settlement steps for completed shifts."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings | None = None,
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()

    async def on_shift_completed(
        self,
        shift_id: UUID,
        tenant_id: UUID,
        acting_user_id: UUID | None = None,
        submission_timestamp: datetime | None = None,
    ) -> SettlementOutcome:
        """Charge the client's budget and settle the staff timesheet.

        The two steps touch disjoint data and are independent: either may
        fail or be skipped without affecting the other.
        """
        outcome = SettlementOutcome(shift_id=shift_id)

        async def deduct(session: AsyncSession):
            shift = await self._get_shift(session, shift_id, tenant_id)
            ledger = BudgetLedgerService(session, self.settings.local_timezone)
            return await ledger.process_budget_deduction(shift, acting_user_id)

        async def settle(session: AsyncSession):
            settlement = TimesheetSettlementService(session, self.settings)
            return await settlement.create_smart_timesheet_entry(
                shift_id, submission_timestamp, tenant_id=tenant_id
            )

        outcome.budget = await self._run_step("Budget deduction", deduct, outcome, tenant_id)
        entry = await self._run_step("Timesheet settlement", settle, outcome, tenant_id)
        if entry is not None:
            outcome.timesheet_entry_id = entry.timesheet_entry_id

        return outcome

    async def _run_step(
        self,
        label: str,
        step: Callable[[AsyncSession], Awaitable[T]],
        outcome: SettlementOutcome,
        tenant_id: UUID,
    ) -> T | None:
        """Run one settlement step in its own unit of work.

        A unique-key violation means a concurrent settlement of the same
        shift committed first. The step is idempotent per shift, so it is
        retried once and then finds the row the other worker wrote.
        """
        shift_id = outcome.shift_id
        for attempt in range(1, MAX_STEP_ATTEMPTS + 1):
            try:
                async with session_scope(self.session_factory) as session:
                    return await step(session)
            except IntegrityError as e:
                if attempt < MAX_STEP_ATTEMPTS:
                    logger.info(
                        "%s for shift %s (tenant %s) raced a concurrent settlement, retrying",
                        label,
                        shift_id,
                        tenant_id,
                    )
                    continue
                logger.exception("%s failed for shift %s (tenant %s)", label, shift_id, tenant_id)
                outcome.errors.append(str(e))
            except SettlementError as e:
                logger.warning("%s skipped for shift %s (tenant %s): %s", label, shift_id, tenant_id, e)
                outcome.errors.append(str(e))
            except Exception as e:
                logger.exception("%s failed for shift %s (tenant %s)", label, shift_id, tenant_id)
                outcome.errors.append(str(e))
            return None
        return None

    async def backfill_budget_deductions(self, acting_user_id: UUID | None = None) -> BackfillSummary:
        """Deduct every completed shift that was never charged.

        Shifts longer than 24 hours are treated as bad data and skipped.
        """
        summary = BackfillSummary()

        async with session_scope(self.session_factory) as session:
            deducted = select(BudgetTransaction.shift_id).where(
                BudgetTransaction.transaction_type == "deduction"
            )
            result = await session.execute(
                select(Shift.shift_id, Shift.tenant_id, Shift.start_time, Shift.end_time)
                .where(
                    Shift.status == "completed",
                    Shift.client_id.is_not(None),
                    Shift.start_time.is_not(None),
                    Shift.end_time.is_not(None),
                    Shift.shift_id.not_in(deducted),
                )
                .order_by(Shift.start_time)
            )
            pending = result.all()

        logger.info("Budget backfill: %d completed shifts without a deduction", len(pending))

        for shift_id, tenant_id, start_time, end_time in pending:
            summary.examined += 1
            if end_time - start_time > MAX_BACKFILL_SHIFT_DURATION:
                logger.warning(
                    "Skipping shift %s (tenant %s): duration %s exceeds 24 hours",
                    shift_id,
                    tenant_id,
                    end_time - start_time,
                )
                summary.skipped += 1
                continue

            try:
                async with session_scope(self.session_factory) as session:
                    shift = await self._get_shift(session, shift_id, tenant_id)
                    ledger = BudgetLedgerService(session, self.settings.local_timezone)
                    result = await ledger.process_budget_deduction(shift, acting_user_id)
            except IntegrityError:
                logger.info("Backfill: shift %s (tenant %s) was deducted concurrently", shift_id, tenant_id)
                summary.skipped += 1
                continue
            except SettlementError as e:
                logger.warning("Backfill skipped shift %s (tenant %s): %s", shift_id, tenant_id, e)
                summary.skipped += 1
                continue
            except Exception:
                logger.exception("Backfill failed for shift %s (tenant %s)", shift_id, tenant_id)
                summary.failed += 1
                continue

            if isinstance(result, InsufficientFundsNotice):
                summary.insufficient += 1
            else:
                summary.deducted += 1

        logger.info(
            "Budget backfill complete: %d deducted, %d insufficient, %d skipped, %d failed",
            summary.deducted,
            summary.insufficient,
            summary.skipped,
            summary.failed,
        )
        return summary

    @staticmethod
    async def _get_shift(session: AsyncSession, shift_id: UUID, tenant_id: UUID) -> Shift:
        shift = await session.get(Shift, shift_id)
        if shift is None or shift.tenant_id != tenant_id:
            raise ShiftNotFoundError(shift_id, tenant_id)
        return shift
