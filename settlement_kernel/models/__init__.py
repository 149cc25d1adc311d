"""ORM models for the settlement engine."""

from settlement_kernel.models.audit_flag import AuditFlagModel
from settlement_kernel.models.commission_plan import CommissionPlanModel
from settlement_kernel.models.employee import EmployeeModel
from settlement_kernel.models.field_dispatch import FieldDispatchModel, FieldReturnModel
from settlement_kernel.models.payroll import PayrollLineModel, PayrollRunModel
from settlement_kernel.models.salary_deduction import SalaryDeductionModel
from settlement_kernel.models.shift import (
    CashupModel,
    SaleLineModel,
    ShiftEventModel,
    ShiftModel,
    ShiftSlotLockModel,
)


def import_all_models() -> None:
    """Make sure every model is registered on ``Base.metadata``.

    Importing this package already does that; the function exists so
    ``create_tables()`` has an explicit, greppable hook.
    """


__all__ = [
    "AuditFlagModel",
    "CashupModel",
    "CommissionPlanModel",
    "EmployeeModel",
    "FieldDispatchModel",
    "FieldReturnModel",
    "PayrollLineModel",
    "PayrollRunModel",
    "SalaryDeductionModel",
    "SaleLineModel",
    "ShiftEventModel",
    "ShiftModel",
    "ShiftSlotLockModel",
    "import_all_models",
]
