"""
CommissionDiagnostics (``settlement_modules.diagnostics.service``).

``check_month(year, month)`` walks the month's cashups and reports:

* MISSING_COMMISSION      snapshot has no commission section
* NON_NUMERIC_COMMISSION  commission amount is not a number
* ZERO_COMMISSION         commission amount is exactly zero
* CASH_ABOVE_TOP_BRACKET  cash collected exceeds the FIELD default plan's
                          top bracket bound, so no tier could match

Nothing is written; the report is for operators.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy.orm import Session

from settlement_config.schema import SettlementConfig
from settlement_engines.brackets import BracketTable
from settlement_engines.payroll_aggregation import snapshot_commission_amount
from settlement_kernel.domain.dates import month_range
from settlement_kernel.domain.dtos import CommissionPlanInfo, CommissionRole
from settlement_kernel.domain.values import ZERO, DataIssue, parse_amount
from settlement_kernel.logging_config import get_logger
from settlement_kernel.selectors.employee_selector import CommissionPlanSelector
from settlement_kernel.selectors.shift_selector import CashupRow, ShiftSelector
from settlement_modules.diagnostics.models import (
    DiagnosticProblem,
    DiagnosticReport,
    ProblemKind,
)

logger = get_logger("modules.diagnostics")


class CommissionDiagnostics:
    """Month-level commission sanity checks over stored snapshots."""

    def __init__(self, session: Session, config: SettlementConfig | None = None):
        self.session = session
        self._config = config or SettlementConfig()
        self._shifts = ShiftSelector(session)
        self._plans = CommissionPlanSelector(session)

    def check_month(self, year: int, month: int) -> DiagnosticReport:
        start, end = month_range(year, month)
        plan, issues = self._field_default()
        top_bound = None
        if plan is not None:
            table = BracketTable.parse(plan.brackets)
            top_bound = table.upper_bound
            issues.extend(table.issues)

        problems: list[DiagnosticProblem] = []
        settled = 0
        for row in self._shifts.iter_cashups(
            start, end, batch_size=self._config.payroll_batch_size
        ):
            settled += 1
            problems.extend(self._check_row(row, top_bound))

        report = DiagnosticReport(
            year=year,
            month=month,
            total_shifts=self._shifts.count_shifts(start, end),
            settled_shifts=settled,
            default_plan_id=plan.id if plan is not None else None,
            top_bound=top_bound,
            problems=tuple(problems),
            issues=tuple(issues),
        )
        logger.info(
            "commission_diagnostics_completed",
            extra={
                "period": f"{year}-{month:02d}",
                "total_shifts": report.total_shifts,
                "problem_count": len(problems),
            },
        )
        return report

    def _field_default(self) -> tuple[CommissionPlanInfo | None, list[DataIssue]]:
        defaults = self._plans.defaults_for_role(CommissionRole.FIELD)
        if not defaults:
            return None, [DataIssue(
                code="NO_DEFAULT_PLAN",
                message="No default FIELD plan; top bracket check skipped",
            )]
        if len(defaults) > 1:
            return None, [DataIssue(
                code="DUPLICATE_DEFAULT_PLAN",
                message="Several default FIELD plans; top bracket check skipped",
                context={"planIds": [str(p.id) for p in defaults]},
            )]
        return defaults[0], []

    def _check_row(self, row: CashupRow, top_bound: Decimal | None) -> list[DiagnosticProblem]:
        section = row.snapshot.get("commission")
        meta = row.snapshot.get("meta") or {}

        def problem(kind: ProblemKind) -> DiagnosticProblem:
            return DiagnosticProblem(
                kind=kind,
                shift_id=row.shift_id,
                employee_id=row.employee_id,
                shift_date=row.shift_date,
                cashup_id=row.cashup_id,
                waiter_type=meta.get("waiterType") if isinstance(meta, dict) else None,
                commission=section if isinstance(section, dict) else None,
            )

        read = snapshot_commission_amount(row.snapshot)
        if read.issue is not None:
            return [problem(ProblemKind(read.issue.code))]

        found = []
        if read.amount == ZERO:
            found.append(problem(ProblemKind.ZERO_COMMISSION))
        cash = parse_amount(section.get("cashCollected"))
        if top_bound is not None and top_bound > ZERO and cash.is_finite() and cash > top_bound:
            found.append(problem(ProblemKind.CASH_ABOVE_TOP_BRACKET))
        return found
