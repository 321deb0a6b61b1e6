"""Settlement engine exceptions.

Grouped by how the shift-completion workflow treats them:

- data incomplete (skip): IncompleteShiftError, ShiftNotFoundError, BudgetNotFoundError
- policy rejected (no writes): RateNotFoundError; insufficient funds is
  reported as a value, see budget_ledger.InsufficientFundsNotice
- configuration missing (self-heal, else fail): TaxConfigurationError
- validation (reject before any write): WageIncreaseValidationError,
  InvalidTransitionError
"""

from __future__ import annotations

from uuid import UUID


class SettlementError(Exception):
    """Base class for settlement engine errors."""


class ShiftNotFoundError(SettlementError):
    """Raised when a shift does not exist for the tenant."""

    def __init__(self, shift_id: UUID, tenant_id: UUID | None = None):
        self.shift_id = shift_id
        self.tenant_id = tenant_id
        super().__init__(f"Shift {shift_id} not found")


class IncompleteShiftError(SettlementError):
    """Raised when a shift lacks the data needed to settle it."""

    def __init__(self, shift_id: UUID, missing: list[str]):
        self.shift_id = shift_id
        self.missing = missing
        super().__init__(f"Shift {shift_id} is missing {', '.join(missing)}")


class BudgetNotFoundError(SettlementError):
    """Raised when the shift's client has no NDIS budget."""

    def __init__(self, client_id: UUID, tenant_id: UUID):
        self.client_id = client_id
        self.tenant_id = tenant_id
        super().__init__(f"No NDIS budget for client {client_id} in tenant {tenant_id}")


class RateNotFoundError(SettlementError):
    """Raised when neither a price override nor the pricing table yields a positive rate."""

    def __init__(self, shift_type: str, ratio: str, tenant_id: UUID):
        self.shift_type = shift_type
        self.ratio = ratio
        self.tenant_id = tenant_id
        super().__init__(
            f"No valid rate for shift type {shift_type} at ratio {ratio} "
            f"in tenant {tenant_id}"
        )


class TaxConfigurationError(SettlementError):
    """Raised when no tax brackets exist for a year even after seeding."""

    def __init__(self, tax_year: int):
        self.tax_year = tax_year
        super().__init__(f"No tax brackets configured for tax year {tax_year}")


class WageIncreaseValidationError(SettlementError):
    """Raised when a wage increase request fails validation."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


class InvalidTransitionError(SettlementError):
    """Raised when an invalid timesheet state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
