"""Unit tests for TaxCalculator.

Tests the marginal tax arithmetic directly and the bracket lookup
against the test database.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from shift_settlement.calculators.tax_calculator import (
    DEFAULT_TAX_BANDS,
    TaxCalculator,
    calculate_leave_accrual,
    calculate_marginal_tax,
    current_tax_year,
    seed_default_tax_brackets,
)
from shift_settlement.calculators.types import TaxBand
from shift_settlement.models import TaxBracket


class TestMarginalTax:
    """Test progressive bracket calculations."""

    def test_tax_free_threshold(self):
        assert calculate_marginal_tax(Decimal("18000"), list(DEFAULT_TAX_BANDS)) == 0

    def test_second_band(self):
        tax = calculate_marginal_tax(Decimal("30000"), list(DEFAULT_TAX_BANDS))
        assert tax == Decimal("2242.00")

    def test_fifty_thousand(self):
        """(45000 - 18200) x 0.19 = 5092, plus (50000 - 45000) x 0.325 = 1625."""
        tax = calculate_marginal_tax(Decimal("50000"), list(DEFAULT_TAX_BANDS))
        assert tax == Decimal("6717")

    def test_top_band_has_no_ceiling(self):
        tax = calculate_marginal_tax(Decimal("200000"), list(DEFAULT_TAX_BANDS))
        assert tax == Decimal("51667") + Decimal("20000") * Decimal("0.45")

    def test_band_order_does_not_matter(self):
        bands = list(reversed(DEFAULT_TAX_BANDS))
        assert calculate_marginal_tax(Decimal("50000"), bands) == Decimal("6717")

    def test_single_band(self):
        bands = [TaxBand(Decimal("0"), None, Decimal("0.10"))]
        assert calculate_marginal_tax(Decimal("1000"), bands) == Decimal("100.00")

    def test_annualize_fortnightly(self):
        # Create calculator without session (testing pure methods)
        calc = TaxCalculator.__new__(TaxCalculator)
        calc.periods_per_year = 26

        assert calc.annualize(Decimal("2000")) == Decimal("52000")
        assert calc.annualize(Decimal("1000"), Decimal("500")) == Decimal("39000")


class TestTaxYear:
    def test_before_july(self):
        assert current_tax_year(date(2025, 6, 30)) == 2025

    def test_from_july(self):
        assert current_tax_year(date(2025, 7, 1)) == 2026


class TestLeaveAccrual:
    """Test leave hours per hour worked."""

    def test_part_time_accrues(self):
        accrual = calculate_leave_accrual("part-time", Decimal("50"))
        assert accrual.annual == Decimal("3.8450")
        assert accrual.sick == Decimal("1.9200")
        assert accrual.personal == Decimal("0.9600")
        assert accrual.long_service == Decimal("0.3250")

    def test_casual_accrues_nothing(self):
        accrual = calculate_leave_accrual("casual", Decimal("50"))
        assert all(hours == 0 for hours in accrual.as_dict().values())

    def test_unknown_employment_type_treated_as_casual(self):
        accrual = calculate_leave_accrual("volunteer", Decimal("50"))
        assert accrual.annual == 0


class TestWithholding:
    """Test withholding against the tax_bracket table."""

    @pytest.mark.asyncio
    async def test_brackets_seeded_on_first_use(self, session):
        calc = TaxCalculator(session, periods_per_year=26)

        withholding = await calc.calculate_withholding(Decimal("50000"), 2025)

        assert withholding == Decimal("258.35")
        count = await session.scalar(
            select(func.count()).select_from(TaxBracket).where(TaxBracket.tax_year == 2025)
        )
        assert count == len(DEFAULT_TAX_BANDS)

    @pytest.mark.asyncio
    async def test_existing_brackets_used(self, session):
        session.add(
            TaxBracket(
                tax_year=2030,
                min_income=Decimal("0"),
                max_income=None,
                tax_rate=Decimal("0.10"),
                base_tax=Decimal("0"),
            )
        )
        await session.flush()
        calc = TaxCalculator(session, periods_per_year=26)

        withholding = await calc.calculate_withholding(Decimal("26000"), 2030)

        assert withholding == Decimal("100.00")

    @pytest.mark.asyncio
    async def test_seed_is_idempotent(self, session):
        first = await seed_default_tax_brackets(session, 2026)
        second = await seed_default_tax_brackets(session, 2026)

        assert first == len(DEFAULT_TAX_BANDS)
        assert second == 0
