"""Tests for payroll calculation and leave balances."""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from shift_settlement.calculators.types import LeaveAccrual
from shift_settlement.models import LeaveBalance, User
from shift_settlement.services.payroll_service import PayrollService


class TestCalculatePayroll:
    """Test net pay for one fortnight."""

    @pytest.mark.asyncio
    async def test_fortnightly_payroll(
        self, session, settings, test_tenant, test_worker, test_pay_scales
    ):
        service = PayrollService(session, settings)

        payroll = await service.calculate_payroll(
            test_worker.user_id, test_tenant.tenant_id, Decimal("2000.00")
        )

        assert payroll.gross_pay == Decimal("2000.00")
        assert payroll.tax_withheld == Decimal("283.35")
        assert payroll.medicare_levy == Decimal("40.00")
        assert payroll.super_contribution == Decimal("220.00")
        assert payroll.net_pay == Decimal("1676.65")

    @pytest.mark.asyncio
    async def test_fifty_thousand_annualized(
        self, session, settings, test_tenant, test_worker, test_pay_scales
    ):
        """50000 / 26 per fortnight withholds 6717 / 26."""
        service = PayrollService(session, settings)
        gross = Decimal("50000") / 26

        payroll = await service.calculate_payroll(test_worker.user_id, test_tenant.tenant_id, gross)

        # Gross is rounded to cents first, which moves annual income by cents only
        assert payroll.tax_withheld == Decimal("258.35")

    @pytest.mark.asyncio
    async def test_ytd_included_in_annualization(
        self, session, settings, test_tenant, test_worker, test_pay_scales
    ):
        service = PayrollService(session, settings)

        with_ytd = await service.calculate_payroll(
            test_worker.user_id, test_tenant.tenant_id, Decimal("1000"), Decimal("1000")
        )
        without = await service.calculate_payroll(
            test_worker.user_id, test_tenant.tenant_id, Decimal("2000")
        )

        assert with_ytd.tax_withheld == without.tax_withheld

    @pytest.mark.asyncio
    async def test_low_income_pays_no_tax(
        self, session, settings, test_tenant, test_worker, test_pay_scales
    ):
        service = PayrollService(session, settings)

        payroll = await service.calculate_payroll(
            test_worker.user_id, test_tenant.tenant_id, Decimal("500.00")
        )

        assert payroll.tax_withheld == Decimal("0.00")
        assert payroll.net_pay == Decimal("490.00")

    @pytest.mark.asyncio
    async def test_part_time_leave_accrual(
        self, session, settings, test_tenant, test_worker, test_pay_scales
    ):
        """2000 at $40/h is 50 hours worked."""
        service = PayrollService(session, settings)

        payroll = await service.calculate_payroll(
            test_worker.user_id, test_tenant.tenant_id, Decimal("2000.00")
        )

        assert payroll.leave_accrued.annual == Decimal("3.8450")
        assert payroll.leave_accrued.sick == Decimal("1.9200")
        assert payroll.leave_accrued.personal == Decimal("0.9600")
        assert payroll.leave_accrued.long_service == Decimal("0.3250")

    @pytest.mark.asyncio
    async def test_casual_accrues_no_leave(self, session, settings, test_tenant, test_pay_scales):
        casual = User(
            user_id=uuid4(),
            tenant_id=test_tenant.tenant_id,
            full_name="Casey Brown",
            employment_type="Casual",
            pay_level=2,
            pay_point=1,
        )
        session.add(casual)
        await session.flush()
        service = PayrollService(session, settings)

        payroll = await service.calculate_payroll(casual.user_id, test_tenant.tenant_id, Decimal("2000"))

        assert payroll.leave_accrued == LeaveAccrual()

    @pytest.mark.asyncio
    async def test_unknown_employment_type_accrues_no_leave(
        self, session, settings, test_tenant, test_pay_scales
    ):
        user = User(
            user_id=uuid4(),
            tenant_id=test_tenant.tenant_id,
            full_name="Riley Chen",
            employment_type="agency",
            pay_level=2,
            pay_point=1,
        )
        session.add(user)
        await session.flush()
        service = PayrollService(session, settings)

        payroll = await service.calculate_payroll(user.user_id, test_tenant.tenant_id, Decimal("2000"))

        assert payroll.leave_accrued.annual == 0
        assert payroll.net_pay == Decimal("1676.65")


class TestUpdateLeaveBalances:
    """Test accrued hours are added to the balances."""

    @pytest.mark.asyncio
    async def test_balances_created_then_incremented(self, session, settings, test_tenant, test_worker):
        service = PayrollService(session, settings)
        accrual = LeaveAccrual(
            annual=Decimal("3.8450"),
            sick=Decimal("1.9200"),
            personal=Decimal("0.9600"),
            long_service=Decimal("0.3250"),
        )

        await service.update_leave_balances(test_worker.user_id, test_tenant.tenant_id, accrual)
        updated = await service.update_leave_balances(
            test_worker.user_id, test_tenant.tenant_id, accrual
        )

        assert updated["annual"] == Decimal("7.6900")
        result = await session.execute(
            select(LeaveBalance).where(LeaveBalance.user_id == test_worker.user_id)
        )
        balances = result.scalars().all()
        assert len(balances) == 4
        assert all(b.last_updated is not None for b in balances)

    @pytest.mark.asyncio
    async def test_zero_accrual_creates_nothing(self, session, settings, test_tenant, test_worker):
        service = PayrollService(session, settings)

        updated = await service.update_leave_balances(
            test_worker.user_id, test_tenant.tenant_id, LeaveAccrual()
        )

        assert updated == {}
