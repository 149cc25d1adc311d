"""
Module: settlement_kernel.selectors.payroll_selector
Responsibility: Read-only queries for salary deductions and stored payroll
    runs.  Outstanding deductions are always derived from these rows, never
    stored.
Architecture position: Kernel > Selectors.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_, func, or_, select

from settlement_kernel.models.payroll import PayrollLineModel, PayrollRunModel
from settlement_kernel.models.salary_deduction import SalaryDeductionModel
from settlement_kernel.selectors.base import BaseSelector


class PayrollSelector(BaseSelector):
    """Deduction and payroll run queries."""

    def deductions_before(self, end: date) -> dict[UUID, Decimal]:
        """Sum of every deduction dated strictly before ``end``, per employee."""
        stmt = (
            select(
                SalaryDeductionModel.employee_id,
                func.sum(SalaryDeductionModel.amount),
            )
            .where(SalaryDeductionModel.deduction_date < end)
            .group_by(SalaryDeductionModel.employee_id)
        )
        totals: dict[UUID, Decimal] = {}
        for employee_id, total in self.session.execute(stmt):
            totals[employee_id] = Decimal(total or 0)
        return totals

    def applied_before(self, year: int, month: int) -> dict[UUID, Decimal]:
        """Deductions applied by runs of periods strictly before (year, month)."""
        earlier = or_(
            PayrollRunModel.period_year < year,
            and_(
                PayrollRunModel.period_year == year,
                PayrollRunModel.period_month < month,
            ),
        )
        stmt = (
            select(
                PayrollLineModel.employee_id,
                func.sum(PayrollLineModel.deductions_applied),
            )
            .join(PayrollRunModel, PayrollRunModel.id == PayrollLineModel.payroll_run_id)
            .where(earlier)
            .group_by(PayrollLineModel.employee_id)
        )
        applied: dict[UUID, Decimal] = {}
        for employee_id, total in self.session.execute(stmt):
            applied[employee_id] = Decimal(total or 0)
        return applied

    def find_run(self, year: int, month: int) -> PayrollRunModel | None:
        return self.session.scalars(
            select(PayrollRunModel)
            .where(PayrollRunModel.period_year == year)
            .where(PayrollRunModel.period_month == month)
        ).one_or_none()

    def list_runs(self, year: int | None = None) -> list[PayrollRunModel]:
        stmt = select(PayrollRunModel)
        if year is not None:
            stmt = stmt.where(PayrollRunModel.period_year == year)
        stmt = stmt.order_by(
            PayrollRunModel.period_year.desc(), PayrollRunModel.period_month.desc()
        )
        return list(self.session.scalars(stmt))
