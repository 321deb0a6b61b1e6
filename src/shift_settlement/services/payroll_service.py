"""Payroll service - net pay, withholding and leave accrual for a pay period."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shift_settlement.calculators.policies import to_money
from shift_settlement.calculators.rate_resolver import PayScaleResolver
from shift_settlement.calculators.tax_calculator import (
    TaxCalculator,
    calculate_leave_accrual,
    current_tax_year,
)
from shift_settlement.calculators.types import LeaveAccrual, PayrollCalculation
from shift_settlement.config import Settings, get_settings
from shift_settlement.models import LeaveBalance, User

logger = logging.getLogger(__name__)


class PayrollService:
    """Calculates a staff member's pay for one period.

    Operations:
    - calculate_payroll: tax, Medicare levy, super, net pay and leave accrued
    - update_leave_balances: add accrued hours to the leave_balance rows
    """

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()
        self.tax_calculator = TaxCalculator(session, self.settings.pay_periods_per_year)
        self.pay_scale_resolver = PayScaleResolver(session, self.settings.statutory_minimum_rate)

    async def calculate_payroll(
        self,
        user_id: UUID,
        tenant_id: UUID,
        gross_pay: Decimal,
        ytd_gross: Decimal = Decimal("0"),
        tax_year: int | None = None,
    ) -> PayrollCalculation:
        """Calculate payroll for one period.

        Income is annualized as (ytd_gross + gross_pay) x periods per year,
        taxed with the progressive brackets for the tax year and
        de-annualized. Leave hours are derived from gross / hourly rate.
        """
        gross = to_money(Decimal(gross_pay))
        year = tax_year or self.settings.tax_year or current_tax_year()

        annual_income = self.tax_calculator.annualize(gross, Decimal(ytd_gross))
        tax_withheld = await self.tax_calculator.calculate_withholding(annual_income, year)
        medicare_levy = to_money(gross * self.settings.medicare_levy_rate)
        super_contribution = to_money(gross * self.settings.super_rate)
        net_pay = gross - tax_withheld - medicare_levy

        leave_accrued = await self._leave_accrual(user_id, tenant_id, gross)

        logger.debug(
            "Payroll for user %s (tenant %s): gross %s, tax %s, net %s",
            user_id,
            tenant_id,
            gross,
            tax_withheld,
            net_pay,
        )
        return PayrollCalculation(
            gross_pay=gross,
            tax_withheld=tax_withheld,
            medicare_levy=medicare_levy,
            super_contribution=super_contribution,
            net_pay=net_pay,
            leave_accrued=leave_accrued,
        )

    async def update_leave_balances(
        self,
        user_id: UUID,
        tenant_id: UUID,
        accrual: LeaveAccrual,
    ) -> dict[str, Decimal]:
        """Add accrued hours to each leave balance. Returns the new balances."""
        now = datetime.now(timezone.utc)
        result = await self.session.execute(
            select(LeaveBalance).where(
                LeaveBalance.user_id == user_id,
                LeaveBalance.tenant_id == tenant_id,
            )
        )
        balances = {row.leave_type: row for row in result.scalars().all()}

        updated: dict[str, Decimal] = {}
        for leave_type, hours in accrual.as_dict().items():
            if hours <= 0:
                continue
            balance = balances.get(leave_type.value)
            if balance is None:
                balance = LeaveBalance(
                    tenant_id=tenant_id,
                    user_id=user_id,
                    leave_type=leave_type.value,
                    balance_hours=Decimal("0"),
                )
                self.session.add(balance)
            balance.balance_hours = balance.balance_hours + hours
            balance.last_updated = now
            updated[leave_type.value] = balance.balance_hours

        await self.session.flush()
        return updated

    async def _leave_accrual(self, user_id: UUID, tenant_id: UUID, gross: Decimal) -> LeaveAccrual:
        user = await self.session.get(User, user_id)
        if user is None or user.tenant_id != tenant_id:
            logger.warning("User %s not found in tenant %s, no leave accrued", user_id, tenant_id)
            return LeaveAccrual()

        hourly_rate = await self.pay_scale_resolver.resolve_for_user(user)
        if hourly_rate <= 0:
            return LeaveAccrual()
        return calculate_leave_accrual(user.employment_type, gross / hourly_rate)
