"""
PayrollService (``settlement_modules.payroll.service``).

Responsibility
--------------
* ``preview_payroll`` -- compute a month's lines without writing.
* ``run_payroll`` -- compute and store them; one stored run per month.
* ``record_deduction`` -- validated salary deduction rows.
* ``get_run`` / ``list_runs`` -- stored runs.

How a run is computed
---------------------
1. Stream cashups whose shift date is in ``[monthStart, nextMonthStart)``
   (UTC, date-only) in batches of ``payroll_batch_size``.
2. Sum each employee's snapshot ``commission.amount`` into gross.
3. Outstanding deductions = deductions dated before the period end minus
   what runs of earlier periods already applied.
4. ``settlement_engines.payroll_aggregation`` turns gross and outstanding
   into ordered lines.

Invariants enforced
-------------------
* Preview and run share ``_compute``; their lines are identical for
  identical data.
* A stored run is replaced only when ``rerun=True``; deleting the old run
  and writing the new one happen in the caller's transaction, so the
  period is never left half written.
* ``deductions_applied + carry_forward == outstanding`` and
  ``deductions_applied <= gross`` on every line.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from settlement_config.schema import SettlementConfig
from settlement_engines.payroll_aggregation import aggregate_payroll, sum_gross
from settlement_kernel.domain.clock import Clock
from settlement_kernel.domain.dates import date_only_utc, month_range
from settlement_kernel.domain.dtos import DeductionReason, SalaryDeductionInfo
from settlement_kernel.domain.values import ZERO, parse_amount, round_money
from settlement_kernel.exceptions import (
    EmployeeNotFoundError,
    InvalidDeductionError,
    PayrollRunExistsError,
    PayrollRunNotFoundError,
)
from settlement_kernel.logging_config import LogContext, get_logger
from settlement_kernel.models.employee import EmployeeModel
from settlement_kernel.models.payroll import PayrollLineModel, PayrollRunModel
from settlement_kernel.models.salary_deduction import SalaryDeductionModel
from settlement_kernel.selectors.payroll_selector import PayrollSelector
from settlement_kernel.selectors.shift_selector import ShiftSelector
from settlement_kernel.services.base import BaseService
from settlement_modules.payroll.models import PayrollLine, PayrollRun

logger = get_logger("modules.payroll.service")


def _run_from_model(model: PayrollRunModel) -> PayrollRun:
    return PayrollRun(
        id=model.id,
        period_year=model.period_year,
        period_month=model.period_month,
        run_at=model.run_at,
        created_by=model.created_by,
        lines=tuple(
            PayrollLine(
                employee_id=line.employee_id,
                gross=round_money(line.gross),
                deductions_applied=round_money(line.deductions_applied),
                carry_forward=round_money(line.carry_forward),
                net_pay=round_money(line.net_pay),
                note=line.note or "",
            )
            for line in model.lines
        ),
        persisted=True,
    )


class PayrollService(BaseService):
    """Monthly payroll over cashup snapshots and salary deductions."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: SettlementConfig | None = None,
    ):
        super().__init__(session, clock)
        self._config = config or SettlementConfig()
        self._selector = PayrollSelector(session)
        self._shifts = ShiftSelector(session)

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def preview_payroll(self, year: int, month: int) -> PayrollRun:
        return self._compute(year, month)

    def run_payroll(
        self,
        year: int,
        month: int,
        rerun: bool = False,
        created_by: str | None = None,
    ) -> PayrollRun:
        """
        Compute and store the run for (year, month).

        Raises:
            InvalidPayrollPeriodError: month outside 1..12.
            PayrollRunExistsError: a run is stored and ``rerun`` is False.
        """
        computed = self._compute(year, month)

        with LogContext.bind(payroll_period=f"{year}-{month:02d}", actor_id=created_by):
            existing = self._selector.find_run(year, month)
            if existing is not None:
                if not rerun:
                    raise PayrollRunExistsError(year, month, str(existing.id))
                logger.info(
                    "payroll_run_replaced",
                    extra={"replaced_run_id": str(existing.id)},
                )
                self.session.delete(existing)
                self.session.flush()

            run = PayrollRunModel(
                period_year=year,
                period_month=month,
                run_at=self.clock.now(),
                created_by=created_by,
            )
            for position, line in enumerate(computed.lines):
                run.lines.append(PayrollLineModel(
                    employee_id=line.employee_id,
                    position=position,
                    gross=line.gross,
                    deductions_applied=line.deductions_applied,
                    carry_forward=line.carry_forward,
                    net_pay=line.net_pay,
                    note=line.note,
                ))

            try:
                with self.session.begin_nested():
                    self.session.add(run)
                    self.session.flush()
            except IntegrityError:
                # another writer stored this period first
                winner = self._selector.find_run(year, month)
                raise PayrollRunExistsError(
                    year, month, str(winner.id) if winner is not None else "unknown"
                ) from None

            with LogContext.bind(payroll_run_id=str(run.id)):
                logger.info(
                    "payroll_run_completed",
                    extra={
                        "line_count": len(computed.lines),
                        "cashup_count": computed.cashup_count,
                        "issue_count": len(computed.issues),
                        "total_gross": str(computed.total_gross),
                        "total_net": str(computed.total_net),
                        "rerun": existing is not None,
                    },
                )

        return PayrollRun(
            id=run.id,
            period_year=year,
            period_month=month,
            run_at=run.run_at,
            created_by=created_by,
            lines=computed.lines,
            cashup_count=computed.cashup_count,
            issues=computed.issues,
            persisted=True,
        )

    def get_run(self, year: int, month: int) -> PayrollRun:
        month_range(year, month)
        model = self._selector.find_run(year, month)
        if model is None:
            raise PayrollRunNotFoundError(year, month)
        return _run_from_model(model)

    def list_runs(self, year: int | None = None) -> list[PayrollRun]:
        return [_run_from_model(m) for m in self._selector.list_runs(year)]

    # ------------------------------------------------------------------
    # Deductions
    # ------------------------------------------------------------------

    def record_deduction(
        self,
        employee_id: UUID,
        deduction_date: date | str,
        amount: Any,
        reason: DeductionReason | str,
        note: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> SalaryDeductionInfo:
        value = parse_amount(amount)
        if not value.is_finite() or value <= ZERO:
            raise InvalidDeductionError(f"amount must be a positive number, got {amount!r}")
        try:
            reason = DeductionReason(reason)
        except ValueError:
            raise InvalidDeductionError(f"unknown reason {reason!r}") from None
        if self.session.get(EmployeeModel, employee_id) is None:
            raise EmployeeNotFoundError(str(employee_id))

        row = SalaryDeductionModel(
            employee_id=employee_id,
            deduction_date=date_only_utc(deduction_date),
            amount=round_money(value),
            reason=reason.value,
            note=note,
            meta=dict(metadata or {}),
        )
        self.session.add(row)
        self.session.flush()

        logger.info(
            "salary_deduction_recorded",
            extra={
                "employee_id": str(employee_id),
                "deduction_id": str(row.id),
                "amount": str(row.amount),
                "reason": reason.value,
            },
        )
        return row.to_dto()

    def outstanding_deductions(self, year: int, month: int) -> dict[UUID, Decimal]:
        """Per-employee deductions still owed when the (year, month) run applies them."""
        _, end = month_range(year, month)
        recorded = self._selector.deductions_before(end)
        applied = self._selector.applied_before(year, month)
        return {
            emp: round_money(max(ZERO, total - applied.get(emp, ZERO)))
            for emp, total in recorded.items()
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _compute(self, year: int, month: int) -> PayrollRun:
        start, end = month_range(year, month)
        totals = sum_gross(
            (row.employee_id, row.cashup_id, row.snapshot)
            for row in self._shifts.iter_cashups(
                start, end, batch_size=self._config.payroll_batch_size
            )
        )
        results = aggregate_payroll(
            gross_by_employee=totals.by_employee,
            outstanding_by_employee=self.outstanding_deductions(year, month),
            cap_pct=self._config.deduction_cap_pct,
        )
        return PayrollRun(
            period_year=year,
            period_month=month,
            lines=tuple(PayrollLine.from_result(r) for r in results),
            cashup_count=totals.cashup_count,
            issues=totals.issues,
        )
