"""Diagnostic report records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from settlement_kernel.domain.values import DataIssue, money_str


class ProblemKind(str, Enum):
    MISSING_COMMISSION = "MISSING_COMMISSION"
    ZERO_COMMISSION = "ZERO_COMMISSION"
    NON_NUMERIC_COMMISSION = "NON_NUMERIC_COMMISSION"
    CASH_ABOVE_TOP_BRACKET = "CASH_ABOVE_TOP_BRACKET"


@dataclass(frozen=True)
class DiagnosticProblem:
    """One suspicious settled shift; ``commission`` is the raw snapshot section."""

    kind: ProblemKind
    shift_id: UUID
    employee_id: UUID
    shift_date: date
    cashup_id: UUID
    waiter_type: str | None = None
    commission: dict[str, Any] | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "shiftId": str(self.shift_id),
            "employeeId": str(self.employee_id),
            "date": self.shift_date.isoformat(),
            "cashupId": str(self.cashup_id),
            "waiterType": self.waiter_type,
            "commission": self.commission,
        }


@dataclass(frozen=True)
class DiagnosticReport:
    year: int
    month: int
    total_shifts: int
    settled_shifts: int
    default_plan_id: UUID | None
    top_bound: Decimal | None
    problems: tuple[DiagnosticProblem, ...] = ()
    issues: tuple[DataIssue, ...] = field(default_factory=tuple)

    def problems_of(self, kind: ProblemKind) -> list[DiagnosticProblem]:
        return [p for p in self.problems if p.kind == kind]

    def as_dict(self) -> dict[str, Any]:
        return {
            "period": f"{self.year}-{self.month:02d}",
            "totalShifts": self.total_shifts,
            "settledShifts": self.settled_shifts,
            "defaultPlanId": str(self.default_plan_id) if self.default_plan_id else None,
            "topBound": money_str(self.top_bound),
            "problems": [p.as_dict() for p in self.problems],
            "issues": [i.as_dict() for i in self.issues],
        }
