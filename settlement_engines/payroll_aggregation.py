"""
Payroll Aggregation Engine - monthly gross, deductions and carry-forward.

Given each employee's commission gross for a month and their outstanding
deductions, produce payroll lines:

    cap          = floor(cap_pct% * gross)   (no cap when cap_pct >= 100)
    applied      = min(outstanding, cap, gross)
    carryForward = outstanding - applied
    netPay       = gross - applied

so ``applied + carryForward == outstanding`` and ``applied <= gross``
hold for every line.  Lines are ordered by net pay, then gross (both
descending), then employee id, which makes a run reproducible.

Gross comes from cashup snapshots: each snapshot's ``commission.amount``
is summed; a missing or non-numeric amount counts as zero and is reported
as a DataIssue.

Pure functions with no I/O.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import ROUND_FLOOR, Decimal
from typing import Any
from uuid import UUID

from settlement_engines.tracer import traced_engine
from settlement_kernel.domain.values import ZERO, DataIssue, parse_amount, round_money
from settlement_kernel.logging_config import get_logger

logger = get_logger("engines.payroll_aggregation")

NOTE_BASIS = "commission-only:cashup-snapshots"
NOTE_CARRY_FORWARD = "carryForward"
NOTE_CAPPED = "deduction-capped"

FULL_CAP = Decimal("100")


@dataclass(frozen=True)
class PayrollLineResult:
    """One employee's computed payroll figures."""

    employee_id: UUID
    gross: Decimal
    outstanding_deductions: Decimal
    deductions_applied: Decimal
    carry_forward: Decimal
    net_pay: Decimal
    capped: bool = False
    note: str = NOTE_BASIS

    def as_dict(self) -> dict[str, Any]:
        return {
            "employeeId": str(self.employee_id),
            "gross": str(self.gross),
            "outstandingDeductions": str(self.outstanding_deductions),
            "deductionsApplied": str(self.deductions_applied),
            "carryForward": str(self.carry_forward),
            "netPay": str(self.net_pay),
            "note": self.note,
        }


@dataclass(frozen=True)
class SnapshotAmount:
    amount: Decimal
    issue: DataIssue | None = None


@dataclass(frozen=True)
class GrossTotals:
    """Per-employee gross plus the issues met while summing it."""

    by_employee: dict[UUID, Decimal]
    cashup_count: int = 0
    issues: tuple[DataIssue, ...] = field(default_factory=tuple)


def snapshot_commission_amount(snapshot: Mapping[str, Any] | None) -> SnapshotAmount:
    """Read ``commission.amount`` from a cashup snapshot; unusable means zero."""
    section = (snapshot or {}).get("commission")
    if not isinstance(section, Mapping):
        return SnapshotAmount(ZERO, DataIssue(
            code="MISSING_COMMISSION",
            message="Cashup snapshot has no commission section",
        ))
    raw = section.get("amount")
    amount = parse_amount(raw)
    if not amount.is_finite():
        return SnapshotAmount(ZERO, DataIssue(
            code="NON_NUMERIC_COMMISSION",
            message="Cashup commission amount is not a number",
            context={"amount": str(raw)},
        ))
    return SnapshotAmount(amount)


def sum_gross(rows: Iterable[tuple[UUID, Any, Mapping[str, Any] | None]]) -> GrossTotals:
    """
    Sum commission per employee.

    ``rows`` yields ``(employee_id, cashup_id, snapshot)``; it may be a
    streaming iterator and is consumed once.
    """
    totals: dict[UUID, Decimal] = {}
    issues: list[DataIssue] = []
    count = 0
    for employee_id, cashup_id, snapshot in rows:
        count += 1
        read = snapshot_commission_amount(snapshot)
        if read.issue is not None:
            issue = DataIssue(
                code=read.issue.code,
                message=read.issue.message,
                context={**read.issue.context, "cashupId": str(cashup_id)},
            )
            issues.append(issue)
            logger.warning(
                "payroll_snapshot_amount_unusable",
                extra={"issue_code": issue.code, "cashup_id": str(cashup_id)},
            )
        totals[employee_id] = totals.get(employee_id, ZERO) + read.amount
    return GrossTotals(
        by_employee={k: round_money(v) for k, v in totals.items()},
        cashup_count=count,
        issues=tuple(issues),
    )


def deduction_cap(gross: Decimal, cap_pct: Decimal) -> Decimal | None:
    """Absolute cap for the period, or None when deductions are uncapped."""
    if cap_pct >= FULL_CAP:
        return None
    return (gross * cap_pct / FULL_CAP).to_integral_value(rounding=ROUND_FLOOR)


def compute_line(
    employee_id: UUID,
    gross: Decimal,
    outstanding: Decimal,
    cap_pct: Decimal = FULL_CAP,
) -> PayrollLineResult:
    gross = round_money(max(gross, ZERO))
    outstanding = round_money(max(outstanding, ZERO))

    cap = deduction_cap(gross, cap_pct)
    capped_outstanding = outstanding if cap is None else min(outstanding, cap)
    applied = round_money(min(capped_outstanding, gross))
    carry_forward = outstanding - applied
    net_pay = gross - applied
    capped = cap is not None and cap < outstanding and cap < gross

    notes = [NOTE_BASIS]
    if carry_forward > ZERO:
        notes.append(NOTE_CARRY_FORWARD)
    if capped:
        notes.append(NOTE_CAPPED)

    return PayrollLineResult(
        employee_id=employee_id,
        gross=gross,
        outstanding_deductions=outstanding,
        deductions_applied=applied,
        carry_forward=carry_forward,
        net_pay=net_pay,
        capped=capped,
        note=",".join(notes),
    )


def _sort_key(line: PayrollLineResult) -> tuple:
    return (-line.net_pay, -line.gross, str(line.employee_id))


@traced_engine(
    "payroll_aggregation",
    "1.0",
    fingerprint_fields=("gross_by_employee", "outstanding_by_employee", "cap_pct"),
)
def aggregate_payroll(
    *,
    gross_by_employee: Mapping[UUID, Decimal],
    outstanding_by_employee: Mapping[UUID, Decimal],
    cap_pct: Decimal = FULL_CAP,
) -> tuple[PayrollLineResult, ...]:
    """
    Build the ordered payroll lines for a period.

    Every employee with commission this period or with deductions still
    outstanding gets a line.
    """
    employee_ids = set(gross_by_employee)
    employee_ids.update(
        emp for emp, amount in outstanding_by_employee.items() if amount > ZERO
    )
    lines = [
        compute_line(
            emp,
            gross_by_employee.get(emp, ZERO),
            outstanding_by_employee.get(emp, ZERO),
            cap_pct,
        )
        for emp in employee_ids
    ]
    lines.sort(key=_sort_key)
    return tuple(lines)
