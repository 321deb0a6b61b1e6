"""ORM models."""

from shift_settlement.models.audit import ActivityLog, Notification
from shift_settlement.models.base import Base, TimestampMixin
from shift_settlement.models.budget import BudgetTransaction, NdisBudget, NdisPricing
from shift_settlement.models.company import Client, Tenant, User
from shift_settlement.models.payroll import (
    LeaveBalance,
    PayScale,
    TaxBracket,
    Timesheet,
    TimesheetEntry,
)
from shift_settlement.models.shift import Shift

__all__ = [
    "ActivityLog",
    "Base",
    "BudgetTransaction",
    "Client",
    "LeaveBalance",
    "NdisBudget",
    "NdisPricing",
    "Notification",
    "PayScale",
    "Shift",
    "TaxBracket",
    "Tenant",
    "Timesheet",
    "TimesheetEntry",
    "TimestampMixin",
    "User",
]
