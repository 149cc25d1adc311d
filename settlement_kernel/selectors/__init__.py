"""Read-only selectors."""

from settlement_kernel.selectors.base import BaseSelector
from settlement_kernel.selectors.employee_selector import (
    CommissionPlanSelector,
    EmployeeSelector,
)
from settlement_kernel.selectors.field_selector import FieldDispatchSelector
from settlement_kernel.selectors.payroll_selector import PayrollSelector
from settlement_kernel.selectors.shift_selector import CashupRow, ShiftSelector

__all__ = [
    "BaseSelector",
    "CashupRow",
    "CommissionPlanSelector",
    "EmployeeSelector",
    "FieldDispatchSelector",
    "PayrollSelector",
    "ShiftSelector",
]
