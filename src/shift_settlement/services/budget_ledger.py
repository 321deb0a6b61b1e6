"""Budget ledger - charges completed shifts against NDIS funding categories.

Provides at-most-once, all-or-nothing deductions with:
- Billing on the scheduled duration, never the actual worked time
- A single conditional UPDATE for the sufficiency check and decrement
- Append-only transactions, corrected only by compensating reversals
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shift_settlement.calculators.policies import (
    resolve_funding_category,
    resolve_shift_type,
    to_local,
    to_money,
)
from shift_settlement.calculators.rate_resolver import RateResolver
from shift_settlement.config import get_settings
from shift_settlement.exceptions import (
    BudgetNotFoundError,
    IncompleteShiftError,
    SettlementError,
)
from shift_settlement.models import BudgetTransaction, NdisBudget, Shift
from shift_settlement.services.audit import record_activity

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = Decimal("3600")


@dataclass(frozen=True)
class DeductionResult:
    """Result of a ledger posting.

    is_new is False when the shift had already been posted and the
    existing transaction was returned instead.
    """

    transaction_id: UUID
    budget_id: UUID
    category: str
    shift_type: str
    hours: Decimal
    rate: Decimal
    amount: Decimal
    remaining: Decimal
    is_new: bool


@dataclass(frozen=True)
class InsufficientFundsNotice:
    """Negative result: the category could not cover the shift. Nothing was written."""

    shift_id: UUID
    budget_id: UUID
    category: str
    available: Decimal
    required: Decimal

    @property
    def shortfall(self) -> Decimal:
        return self.required - self.available


def scheduled_hours(shift: Shift) -> Decimal:
    """Booked duration in hours (unrounded)."""
    seconds = Decimal(str((shift.end_time - shift.start_time).total_seconds()))
    return seconds / SECONDS_PER_HOUR


class BudgetLedgerService:
    """Applies shift costs to a client's NDIS budget."""

    def __init__(self, session: AsyncSession, timezone: str | None = None):
        self.session = session
        self.timezone = timezone or get_settings().local_timezone
        self.rate_resolver = RateResolver(session)

    async def process_budget_deduction(
        self,
        shift: Shift,
        acting_user_id: UUID | None,
    ) -> DeductionResult | InsufficientFundsNotice:
        """Charge a completed shift to its client's budget.

        Returns:
            DeductionResult on success (or for an already-posted shift),
            InsufficientFundsNotice if the category cannot cover the cost

        Raises:
            IncompleteShiftError: Missing schedule/client or non-positive duration
            BudgetNotFoundError: Client has no budget
            RateNotFoundError: No positive override or pricing rate
        """
        missing = [
            name
            for name, value in (
                ("start_time", shift.start_time),
                ("end_time", shift.end_time),
                ("client_id", shift.client_id),
            )
            if value is None
        ]
        if missing:
            raise IncompleteShiftError(shift.shift_id, missing)

        hours = scheduled_hours(shift)
        if hours <= 0:
            raise IncompleteShiftError(shift.shift_id, ["positive scheduled duration"])

        existing = await self.get_transaction(shift.shift_id, "deduction")
        if existing is not None:
            logger.info("Shift %s already deducted by transaction %s", shift.shift_id, existing.transaction_id)
            budget = await self.session.get(NdisBudget, existing.budget_id)
            return self._to_result(existing, budget.remaining_for(existing.category), is_new=False)

        budget = await self.get_budget_for_client(shift.client_id, shift.tenant_id)
        if budget is None:
            raise BudgetNotFoundError(shift.client_id, shift.tenant_id)

        shift_type = resolve_shift_type(shift.shift_type, to_local(shift.start_time, self.timezone))
        ratio = shift.staff_ratio or "1:1"
        rate = await self.rate_resolver.resolve_billable_rate(
            shift_type, ratio, shift.tenant_id, budget.price_overrides
        )
        category = resolve_funding_category(shift.funding_category, shift_type).value

        cost = to_money(rate * hours)
        if cost <= 0:
            raise IncompleteShiftError(shift.shift_id, ["billable amount"])

        applied = await self._apply_delta(budget, category, -cost)
        if not applied:
            available = budget.remaining_for(category)
            logger.warning(
                "Insufficient %s funds for shift %s (tenant %s, budget %s): available %s, required %s",
                category,
                shift.shift_id,
                shift.tenant_id,
                budget.budget_id,
                available,
                cost,
            )
            return InsufficientFundsNotice(
                shift_id=shift.shift_id,
                budget_id=budget.budget_id,
                category=category,
                available=available,
                required=cost,
            )

        display_hours = hours.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        transaction = BudgetTransaction(
            tenant_id=shift.tenant_id,
            budget_id=budget.budget_id,
            shift_id=shift.shift_id,
            transaction_type="deduction",
            category=category,
            shift_type=shift_type.value,
            ratio=ratio,
            hours=display_hours,
            rate=rate,
            amount=cost,
            description=f"Shift completion: {shift.title}",
            created_by_user_id=acting_user_id,
        )
        self.session.add(transaction)
        await self.session.flush()

        await record_activity(
            self.session,
            tenant_id=shift.tenant_id,
            user_id=acting_user_id,
            action="budget_deduction",
            resource_type="ndis_budget",
            resource_id=budget.budget_id,
            description=(
                f"Deducted ${cost} for completed shift: {shift.title} "
                f"({display_hours}h @ ${rate}/h)"
            ),
            details={"shift_id": shift.shift_id, "category": category, "amount": cost},
        )

        logger.info(
            "Deducted %s from %s for shift %s (tenant %s): %sh x %s",
            cost,
            category,
            shift.shift_id,
            shift.tenant_id,
            display_hours,
            rate,
        )
        return self._to_result(transaction, budget.remaining_for(category), is_new=True)

    async def reverse_shift_deduction(
        self,
        shift: Shift,
        acting_user_id: UUID | None,
        reason: str,
    ) -> DeductionResult:
        """Refund a shift's deduction with a compensating reversal.

        The original transaction is never modified. A second call returns
        the existing reversal.
        """
        original = await self.get_transaction(shift.shift_id, "deduction")
        if original is None:
            raise SettlementError(f"Shift {shift.shift_id} has no budget deduction to reverse")

        budget = await self.session.get(NdisBudget, original.budget_id)
        existing = await self.get_transaction(shift.shift_id, "reversal")
        if existing is not None:
            return self._to_result(existing, budget.remaining_for(existing.category), is_new=False)

        await self._apply_delta(budget, original.category, original.amount)

        reversal = BudgetTransaction(
            tenant_id=original.tenant_id,
            budget_id=original.budget_id,
            shift_id=original.shift_id,
            transaction_type="reversal",
            category=original.category,
            shift_type=original.shift_type,
            ratio=original.ratio,
            hours=original.hours,
            rate=original.rate,
            amount=original.amount,
            description=f"Reversal: {reason}",
            created_by_user_id=acting_user_id,
        )
        self.session.add(reversal)
        await self.session.flush()

        await record_activity(
            self.session,
            tenant_id=original.tenant_id,
            user_id=acting_user_id,
            action="budget_reversal",
            resource_type="ndis_budget",
            resource_id=original.budget_id,
            description=f"Restored ${original.amount} to {original.category}: {reason}",
            details={"shift_id": shift.shift_id, "original_transaction_id": original.transaction_id},
        )
        return self._to_result(reversal, budget.remaining_for(original.category), is_new=True)

    async def get_budget_for_client(self, client_id: UUID, tenant_id: UUID) -> NdisBudget | None:
        result = await self.session.execute(
            select(NdisBudget).where(
                NdisBudget.client_id == client_id,
                NdisBudget.tenant_id == tenant_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_transaction(self, shift_id: UUID, transaction_type: str) -> BudgetTransaction | None:
        result = await self.session.execute(
            select(BudgetTransaction).where(
                BudgetTransaction.shift_id == shift_id,
                BudgetTransaction.transaction_type == transaction_type,
            )
        )
        return result.scalar_one_or_none()

    async def _apply_delta(self, budget: NdisBudget, category: str, delta: Decimal) -> bool:
        """Atomically add delta to a category balance.

        Negative deltas only apply if the balance stays non-negative; the
        check and the write are one statement, so two concurrent deductions
        cannot both pass on a stale balance. The budget is refreshed either way.
        """
        column = NdisBudget.remaining_column(category)
        stmt = update(NdisBudget).where(NdisBudget.budget_id == budget.budget_id)
        if delta < 0:
            stmt = stmt.where(column >= -delta)
        result = await self.session.execute(
            stmt.values({column: column + delta}).execution_options(synchronize_session=False)
        )
        await self.session.refresh(budget)
        return result.rowcount == 1

    @staticmethod
    def _to_result(transaction: BudgetTransaction, remaining: Decimal, is_new: bool) -> DeductionResult:
        return DeductionResult(
            transaction_id=transaction.transaction_id,
            budget_id=transaction.budget_id,
            category=transaction.category,
            shift_type=transaction.shift_type,
            hours=transaction.hours,
            rate=transaction.rate,
            amount=transaction.amount,
            remaining=remaining,
            is_new=is_new,
        )
