"""
Typed exception hierarchy for the settlement engine.

Every error has a typed class (catch by type, not message), a ``code``
class attribute (machine-readable, API-safe), and carries its context as
attributes rather than only inside the message string.

    SettlementError (base)
    |
    +-- SettlementDataError
    |   +-- DuplicateDefaultPlanError
    |
    +-- RecordNotFoundError
    |   +-- EmployeeNotFoundError
    |   +-- ShiftNotFoundError
    |   +-- DispatchNotFoundError
    |   +-- PayrollRunNotFoundError
    |
    +-- SettlementValidationError
    |   +-- InvalidDeductionError
    |   +-- InvalidFieldDispatchError
    |   +-- InvalidFieldReturnError
    |   +-- InvalidPayrollPeriodError
    |   +-- InvalidCommissionPlanError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ConsistencyError
    |   +-- ShiftSettledError
    |   +-- ShiftAlreadyClosedError
    |   +-- ShiftAlreadyOpenError
    |   +-- CashupAlreadyExistsError
    |   +-- DispatchAlreadyReturnedError
    |
    +-- PayrollError
        +-- PayrollRunExistsError

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Data            | DUPLICATE_DEFAULT_PLAN      | >1 default plan for a role
----------------|-----------------------------|-----------------------------------------
Not found       | EMPLOYEE_NOT_FOUND          | Employee ID doesn't exist
                | SHIFT_NOT_FOUND             | Shift ID doesn't exist
                | DISPATCH_NOT_FOUND          | Field dispatch ID doesn't exist
                | PAYROLL_RUN_NOT_FOUND       | No run for (year, month)
----------------|-----------------------------|-----------------------------------------
Validation      | INVALID_DEDUCTION           | Non-positive amount, unknown reason
                | INVALID_FIELD_DISPATCH      | Non-positive qty, negative price
                | INVALID_FIELD_RETURN        | Quantities/cash out of range
                | INVALID_PAYROLL_PERIOD      | Month outside 1..12
                | INVALID_COMMISSION_PLAN     | Unknown role, empty name
----------------|-----------------------------|-----------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | Shift row changed under us
----------------|-----------------------------|-----------------------------------------
Consistency     | SHIFT_SETTLED               | Mutating a shift with a cashup
                | SHIFT_ALREADY_CLOSED        | Closing a closed shift
                | SHIFT_ALREADY_OPEN          | Reopening an open shift
                | CASHUP_ALREADY_EXISTS       | Second cashup for one shift
                | DISPATCH_ALREADY_RETURNED   | Second return for one dispatch
----------------|-----------------------------|-----------------------------------------
Payroll         | PAYROLL_RUN_EXISTS          | Run exists and rerun not requested

Data errors are descriptive: commission and payroll computation degrade
instead of raising them (see ``settlement_kernel.domain.values.DataIssue``).
ConcurrencyError is meant to be retried by the caller.
"""


class SettlementError(Exception):
    """
    Base exception for all settlement engine errors.

    All subclasses must have a ``code`` class attribute.
    """

    code: str = "SETTLEMENT_ERROR"


# Data exceptions


class SettlementDataError(SettlementError):
    """Base exception for malformed stored data."""

    code: str = "DATA_ERROR"


class DuplicateDefaultPlanError(SettlementDataError):
    """More than one commission plan is flagged default for a role."""

    code: str = "DUPLICATE_DEFAULT_PLAN"

    def __init__(self, role: str, plan_ids: list[str]):
        self.role = role
        self.plan_ids = plan_ids
        super().__init__(
            f"Role {role} has {len(plan_ids)} default plans: {', '.join(plan_ids)}"
        )


# Lookup exceptions


class RecordNotFoundError(SettlementError):
    """Base exception for missing records."""

    code: str = "RECORD_NOT_FOUND"


class EmployeeNotFoundError(RecordNotFoundError):
    """Employee with given ID was not found."""

    code: str = "EMPLOYEE_NOT_FOUND"

    def __init__(self, employee_id: str):
        self.employee_id = employee_id
        super().__init__(f"Employee not found: {employee_id}")


class ShiftNotFoundError(RecordNotFoundError):
    """Shift with given ID was not found."""

    code: str = "SHIFT_NOT_FOUND"

    def __init__(self, shift_id: str):
        self.shift_id = shift_id
        super().__init__(f"Shift not found: {shift_id}")


class DispatchNotFoundError(RecordNotFoundError):
    """Field dispatch with given ID was not found."""

    code: str = "DISPATCH_NOT_FOUND"

    def __init__(self, dispatch_id: str):
        self.dispatch_id = dispatch_id
        super().__init__(f"Field dispatch not found: {dispatch_id}")


class PayrollRunNotFoundError(RecordNotFoundError):
    """No payroll run exists for the period."""

    code: str = "PAYROLL_RUN_NOT_FOUND"

    def __init__(self, year: int, month: int):
        self.year = year
        self.month = month
        super().__init__(f"Payroll run not found for {year}-{month:02d}")


# Validation exceptions


class SettlementValidationError(SettlementError):
    """Base exception for rejected input."""

    code: str = "VALIDATION_ERROR"


class InvalidDeductionError(SettlementValidationError):
    """Salary deduction input is invalid."""

    code: str = "INVALID_DEDUCTION"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid salary deduction: {reason}")


class InvalidFieldDispatchError(SettlementValidationError):
    """Field dispatch quantity or price is out of range."""

    code: str = "INVALID_FIELD_DISPATCH"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid field dispatch: {reason}")


class InvalidFieldReturnError(SettlementValidationError):
    """Field return quantities or cash are out of range."""

    code: str = "INVALID_FIELD_RETURN"

    def __init__(self, reason: str, details: dict | None = None):
        self.reason = reason
        self.details = details or {}
        super().__init__(f"Invalid field return: {reason}")


class InvalidPayrollPeriodError(SettlementValidationError):
    """Payroll period is not a valid (year, month)."""

    code: str = "INVALID_PAYROLL_PERIOD"

    def __init__(self, year: int, month: int):
        self.year = year
        self.month = month
        super().__init__(f"Invalid payroll period: year={year} month={month}")


class InvalidCommissionPlanError(SettlementValidationError):
    """Commission plan definition is invalid."""

    code: str = "INVALID_COMMISSION_PLAN"

    def __init__(self, plan_name: str, reason: str):
        self.plan_name = plan_name
        self.reason = reason
        super().__init__(f"Invalid commission plan {plan_name!r}: {reason}")


# Concurrency exceptions


class ConcurrencyError(SettlementError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Consistency exceptions


class ConsistencyError(SettlementError):
    """Base exception for state that must not be silently corrected."""

    code: str = "CONSISTENCY_ERROR"


class ShiftSettledError(ConsistencyError):
    """Shift already has a cashup and is financially final."""

    code: str = "SHIFT_SETTLED"

    def __init__(self, shift_id: str, cashup_id: str):
        self.shift_id = shift_id
        self.cashup_id = cashup_id
        super().__init__(f"Shift {shift_id} is settled by cashup {cashup_id}")


class ShiftAlreadyClosedError(ConsistencyError):
    """Shift is already closed."""

    code: str = "SHIFT_ALREADY_CLOSED"

    def __init__(self, shift_id: str):
        self.shift_id = shift_id
        super().__init__(f"Shift already closed: {shift_id}")


class ShiftAlreadyOpenError(ConsistencyError):
    """Shift is already open."""

    code: str = "SHIFT_ALREADY_OPEN"

    def __init__(self, shift_id: str):
        self.shift_id = shift_id
        super().__init__(f"Shift already open: {shift_id}")


class CashupAlreadyExistsError(ConsistencyError):
    """A cashup was already recorded for the shift."""

    code: str = "CASHUP_ALREADY_EXISTS"

    def __init__(self, shift_id: str, cashup_id: str):
        self.shift_id = shift_id
        self.cashup_id = cashup_id
        super().__init__(f"Shift {shift_id} already has cashup {cashup_id}")


class DispatchAlreadyReturnedError(ConsistencyError):
    """A return was already recorded for the dispatch."""

    code: str = "DISPATCH_ALREADY_RETURNED"

    def __init__(self, dispatch_id: str):
        self.dispatch_id = dispatch_id
        super().__init__(f"Dispatch already has a return recorded: {dispatch_id}")


# Payroll exceptions


class PayrollError(SettlementError):
    """Base exception for payroll run errors."""

    code: str = "PAYROLL_ERROR"


class PayrollRunExistsError(PayrollError):
    """A run for the period exists and rerun was not requested."""

    code: str = "PAYROLL_RUN_EXISTS"

    def __init__(self, year: int, month: int, run_id: str):
        self.year = year
        self.month = month
        self.run_id = run_id
        super().__init__(
            f"Payroll run already exists for {year}-{month:02d}: {run_id}"
        )
