"""Settlement and payroll calculations."""

from shift_settlement.calculators.break_policy import calculate_break_minutes, paid_hours
from shift_settlement.calculators.pay_period import PayPeriod, calculate_pay_period
from shift_settlement.calculators.policies import (
    classify_shift_type,
    resolve_funding_category,
    resolve_shift_type,
)
from shift_settlement.calculators.rate_resolver import PayScaleResolver, RateResolver
from shift_settlement.calculators.tax_calculator import TaxCalculator, calculate_marginal_tax

__all__ = [
    "PayPeriod",
    "PayScaleResolver",
    "RateResolver",
    "TaxCalculator",
    "calculate_break_minutes",
    "calculate_marginal_tax",
    "calculate_pay_period",
    "classify_shift_type",
    "paid_hours",
    "resolve_funding_category",
    "resolve_shift_type",
]
