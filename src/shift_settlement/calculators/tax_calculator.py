"""Marginal income tax, levies and leave accrual."""

from __future__ import annotations

import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shift_settlement.calculators.policies import to_money
from shift_settlement.calculators.types import EmploymentType, LeaveAccrual, TaxBand
from shift_settlement.exceptions import TaxConfigurationError
from shift_settlement.models import TaxBracket

logger = logging.getLogger(__name__)

# Australian resident rates. Each band's minimum is the previous band's
# maximum, so the bands cover [0, inf) without gaps.
DEFAULT_TAX_BANDS: tuple[TaxBand, ...] = (
    TaxBand(Decimal("0"), Decimal("18200"), Decimal("0"), Decimal("0")),
    TaxBand(Decimal("18200"), Decimal("45000"), Decimal("0.19"), Decimal("0")),
    TaxBand(Decimal("45000"), Decimal("120000"), Decimal("0.325"), Decimal("5092")),
    TaxBand(Decimal("120000"), Decimal("180000"), Decimal("0.37"), Decimal("29467")),
    TaxBand(Decimal("180000"), None, Decimal("0.45"), Decimal("51667")),
)

# Leave hours accrued per hour worked
LEAVE_ACCRUAL_RATES: dict[EmploymentType, LeaveAccrual] = {
    EmploymentType.FULL_TIME: LeaveAccrual(
        annual=Decimal("0.0769"),  # 4 weeks per year
        sick=Decimal("0.0384"),  # 2 weeks per year
        personal=Decimal("0.0192"),  # 1 week per year
        long_service=Decimal("0.0065"),
    ),
    EmploymentType.PART_TIME: LeaveAccrual(
        annual=Decimal("0.0769"),
        sick=Decimal("0.0384"),
        personal=Decimal("0.0192"),
        long_service=Decimal("0.0065"),
    ),
    EmploymentType.CASUAL: LeaveAccrual(),
}

LEAVE_PRECISION = Decimal("0.0001")


def current_tax_year(as_of: date | None = None) -> int:
    """Financial year label: the year in which 30 June falls."""
    as_of = as_of or date.today()
    return as_of.year + 1 if as_of.month >= 7 else as_of.year


def calculate_marginal_tax(annual_income: Decimal, bands: list[TaxBand]) -> Decimal:
    """Annual tax on an income using progressive bands.

    Every band whose minimum is below the income is evaluated in order;
    the last one wins. With non-overlapping bands that is the band that
    contains the income.
    """
    tax = Decimal("0")
    for band in sorted(bands, key=lambda b: b.min_income):
        if annual_income > band.min_income:
            upper = annual_income if band.max_income is None else min(annual_income, band.max_income)
            tax = band.base_tax + (upper - band.min_income) * band.rate
    return tax


def calculate_leave_accrual(
    employment_type: EmploymentType | str | None,
    hours_worked: Decimal,
) -> LeaveAccrual:
    """Leave hours accrued for hours worked. Casual staff accrue nothing."""
    rates = LEAVE_ACCRUAL_RATES[EmploymentType.normalize(employment_type)]
    hours = max(Decimal("0"), hours_worked)

    def accrue(rate: Decimal) -> Decimal:
        return (hours * rate).quantize(LEAVE_PRECISION, rounding=ROUND_HALF_UP)

    return LeaveAccrual(
        annual=accrue(rates.annual),
        sick=accrue(rates.sick),
        personal=accrue(rates.personal),
        long_service=accrue(rates.long_service),
    )


class TaxCalculator:
    """Computes PAYG withholding from the tax_bracket table.

    Brackets are system-wide and keyed by tax year. If a year has no
    brackets the default table is seeded once and the lookup retried.
    """

    def __init__(self, session: AsyncSession, periods_per_year: int = 26):
        self.session = session
        self.periods_per_year = periods_per_year
        self._band_cache: dict[int, list[TaxBand]] = {}

    def annualize(self, gross_pay: Decimal, ytd_gross: Decimal = Decimal("0")) -> Decimal:
        return (ytd_gross + gross_pay) * self.periods_per_year

    async def calculate_withholding(self, annual_income: Decimal, tax_year: int) -> Decimal:
        """Per-period tax withheld for an annualized income."""
        bands = await self.get_bands(tax_year)
        annual_tax = calculate_marginal_tax(annual_income, bands)
        return to_money(annual_tax / self.periods_per_year)

    async def get_bands(self, tax_year: int) -> list[TaxBand]:
        if tax_year in self._band_cache:
            return self._band_cache[tax_year]

        bands = await self._load_bands(tax_year)
        if not bands:
            logger.info("No tax brackets for %s, seeding defaults", tax_year)
            await seed_default_tax_brackets(self.session, tax_year)
            bands = await self._load_bands(tax_year)
            if not bands:
                raise TaxConfigurationError(tax_year)

        self._band_cache[tax_year] = bands
        return bands

    async def _load_bands(self, tax_year: int) -> list[TaxBand]:
        result = await self.session.execute(
            select(TaxBracket)
            .where(TaxBracket.tax_year == tax_year)
            .order_by(TaxBracket.min_income)
        )
        return [
            TaxBand(
                min_income=row.min_income,
                max_income=row.max_income,
                rate=row.tax_rate,
                base_tax=row.base_tax,
            )
            for row in result.scalars().all()
        ]


async def seed_default_tax_brackets(session: AsyncSession, tax_year: int) -> int:
    """Insert the default bands for a tax year if none exist.

    Returns the number of rows created (0 if the year was already seeded).
    A concurrent seed of the same year fails on the unique constraint and
    the caller's unit of work is retried.
    """
    existing = await session.execute(
        select(TaxBracket.tax_bracket_id).where(TaxBracket.tax_year == tax_year).limit(1)
    )
    if existing.first() is not None:
        return 0

    session.add_all(
        TaxBracket(
            tax_year=tax_year,
            min_income=band.min_income,
            max_income=band.max_income,
            tax_rate=band.rate,
            base_tax=band.base_tax,
        )
        for band in DEFAULT_TAX_BANDS
    )
    await session.flush()
    return len(DEFAULT_TAX_BANDS)
