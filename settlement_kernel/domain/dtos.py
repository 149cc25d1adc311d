"""
Data Transfer Objects -- frozen records passed between layers.

Responsibility:
    Immutable value objects that selectors and services return instead of
    ORM entities, plus the enumerations shared by every layer.

Architecture position:
    Kernel > Domain -- pure data definitions with ZERO I/O.

Invariants enforced:
    - All DTOs are ``frozen=True``.
    - All monetary fields use ``Decimal``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class EmployeeRole(str, Enum):
    """Job role of an employee."""

    WAITER = "WAITER"
    KITCHEN = "KITCHEN"
    MANAGER = "MANAGER"


class EmployeeType(str, Enum):
    """Where an employee works; selects the role-default commission plan."""

    INSIDE = "INSIDE"
    FIELD = "FIELD"
    KITCHEN = "KITCHEN"


class CommissionRole(str, Enum):
    """Role a commission plan applies to."""

    INSIDE = "INSIDE"
    FIELD = "FIELD"
    KITCHEN = "KITCHEN"


class ShiftState(str, Enum):
    """Derived lifecycle state of a shift."""

    OPEN = "OPEN"
    CLOSED = "CLOSED"
    SETTLED = "SETTLED"


class ShiftEventType(str, Enum):
    """Entries of the append-only shift lifecycle log."""

    OPENED = "OPENED"
    CLOSED = "CLOSED"
    REOPENED = "REOPENED"
    OPENED_AFTER_SETTLEMENT = "OPENED_AFTER_SETTLEMENT"
    SETTLED = "SETTLED"


class DeductionReason(str, Enum):
    """Why money is withheld from pay."""

    ADVANCE = "ADVANCE"
    BREAKAGE = "BREAKAGE"
    LOSS = "LOSS"
    OTHER = "OTHER"


class AuditFlagKind(str, Enum):
    """Consistency problems surfaced to operators."""

    NEGATIVE_SOLD_QTY = "NEGATIVE_SOLD_QTY"
    DUPLICATE_DEFAULT_PLAN = "DUPLICATE_DEFAULT_PLAN"


@dataclass(frozen=True)
class WaiterMeta:
    """
    Optional waiter metadata stamped on a new shift.

    ``None`` means "not supplied": a shift created after settlement
    inherits the previous shift's value for that field.
    """

    waiter_type: EmployeeType | None = None
    table_code: str | None = None
    route: str | None = None
    opening_float: Decimal | None = None
    notes: str | None = None


@dataclass(frozen=True)
class EmployeeInfo:
    id: UUID
    name: str
    role: EmployeeRole
    employee_type: EmployeeType
    commission_plan_id: UUID | None = None
    is_active: bool = True


@dataclass(frozen=True)
class CommissionPlanInfo:
    id: UUID
    name: str
    role: CommissionRole
    is_default: bool
    brackets: Any = None


@dataclass(frozen=True)
class ShiftEventInfo:
    id: UUID
    shift_id: UUID
    event_type: ShiftEventType
    occurred_at: datetime
    prior_state: dict[str, Any] = field(default_factory=dict)
    previous_shift_id: UUID | None = None


@dataclass(frozen=True)
class ShiftInfo:
    """A shift as seen by callers; ``state`` is derived, not stored."""

    id: UUID
    employee_id: UUID
    shift_date: date
    opened_at: datetime
    closed_at: datetime | None
    state: ShiftState
    waiter_type: EmployeeType | None = None
    table_code: str | None = None
    route: str | None = None
    opening_float: Decimal | None = None
    cash_remit: Decimal | None = None
    notes: str | None = None
    cashup_id: UUID | None = None
    events: tuple[ShiftEventInfo, ...] = ()
    slot_seq: int = 1

    @property
    def is_open(self) -> bool:
        return self.state == ShiftState.OPEN

    @property
    def is_settled(self) -> bool:
        return self.state == ShiftState.SETTLED


@dataclass(frozen=True)
class SaleLineInfo:
    id: UUID
    shift_id: UUID
    item_code: str
    qty: Decimal
    unit_price: Decimal
    is_void: bool = False
    is_return: bool = False


@dataclass(frozen=True)
class CashupInfo:
    id: UUID
    shift_id: UUID
    snapshot: dict[str, Any]
    submitted_by: str | None = None
    note: str | None = None


@dataclass(frozen=True)
class FieldReturnInfo:
    id: UUID
    dispatch_id: UUID
    shift_id: UUID
    qty_returned: Decimal
    loss_qty: Decimal
    cash_collected: Decimal
    note: str | None = None
    returned_on: date | None = None


@dataclass(frozen=True)
class FieldDispatchInfo:
    id: UUID
    waiter_id: UUID
    item_code: str
    qty_dispatched: Decimal
    price_each: Decimal
    dispatch_date: date
    field_return: FieldReturnInfo | None = None


@dataclass(frozen=True)
class SalaryDeductionInfo:
    id: UUID
    employee_id: UUID
    deduction_date: date
    amount: Decimal
    reason: DeductionReason
    note: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AuditFlagInfo:
    id: UUID
    kind: AuditFlagKind
    entity_type: str
    entity_id: str
    detail: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
