"""
Payroll Domain Models (``settlement_modules.payroll.models``).

A ``PayrollRun`` is returned both by previews (``persisted=False``, no id)
and by stored runs, so callers read the same shape either way.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from settlement_engines.payroll_aggregation import PayrollLineResult
from settlement_kernel.domain.values import DataIssue, money_str


@dataclass(frozen=True)
class PayrollLine:
    employee_id: UUID
    gross: Decimal
    deductions_applied: Decimal
    carry_forward: Decimal
    net_pay: Decimal
    note: str
    outstanding_deductions: Decimal | None = None

    @classmethod
    def from_result(cls, result: PayrollLineResult) -> PayrollLine:
        return cls(
            employee_id=result.employee_id,
            gross=result.gross,
            deductions_applied=result.deductions_applied,
            carry_forward=result.carry_forward,
            net_pay=result.net_pay,
            note=result.note,
            outstanding_deductions=result.outstanding_deductions,
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "employeeId": str(self.employee_id),
            "gross": money_str(self.gross),
            "deductionsApplied": money_str(self.deductions_applied),
            "carryForward": money_str(self.carry_forward),
            "netPay": money_str(self.net_pay),
            "note": self.note,
        }


@dataclass(frozen=True)
class PayrollRun:
    """A computed or stored payroll run; lines are in presentation order."""

    period_year: int
    period_month: int
    lines: tuple[PayrollLine, ...]
    id: UUID | None = None
    run_at: datetime | None = None
    created_by: str | None = None
    cashup_count: int = 0
    issues: tuple[DataIssue, ...] = field(default_factory=tuple)
    persisted: bool = False

    @property
    def total_gross(self) -> Decimal:
        return sum((line.gross for line in self.lines), Decimal("0"))

    @property
    def total_net(self) -> Decimal:
        return sum((line.net_pay for line in self.lines), Decimal("0"))

    def line_for(self, employee_id: UUID) -> PayrollLine | None:
        for line in self.lines:
            if line.employee_id == employee_id:
                return line
        return None

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id) if self.id else None,
            "period": f"{self.period_year}-{self.period_month:02d}",
            "runAt": self.run_at.isoformat() if self.run_at else None,
            "createdBy": self.created_by,
            "persisted": self.persisted,
            "cashupCount": self.cashup_count,
            "totalGross": money_str(self.total_gross),
            "totalNet": money_str(self.total_net),
            "lines": [line.as_dict() for line in self.lines],
            "issues": [issue.as_dict() for issue in self.issues],
        }
