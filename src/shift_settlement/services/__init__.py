"""Settlement engine services."""

from shift_settlement.services.budget_ledger import (
    BudgetLedgerService,
    DeductionResult,
    InsufficientFundsNotice,
)
from shift_settlement.services.payroll_service import PayrollService
from shift_settlement.services.settlement_service import ShiftSettlementService
from shift_settlement.services.state_machine import TimesheetStateMachine, TimesheetStatus
from shift_settlement.services.timesheet_service import TimesheetService
from shift_settlement.services.timesheet_settlement import TimesheetSettlementService
from shift_settlement.services.wage_scale_service import WageIncreaseConfig, WageScaleService

__all__ = [
    "BudgetLedgerService",
    "DeductionResult",
    "InsufficientFundsNotice",
    "PayrollService",
    "ShiftSettlementService",
    "TimesheetService",
    "TimesheetSettlementService",
    "TimesheetStateMachine",
    "TimesheetStatus",
    "WageIncreaseConfig",
    "WageScaleService",
]
