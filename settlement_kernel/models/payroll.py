"""
Module: settlement_kernel.models.payroll
Responsibility: ORM persistence for monthly payroll runs and their lines.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One run per (period_year, period_month) (uq_payroll_run_period).
    - Lines are owned by their run and deleted with it.
    - net_pay = gross - deductions_applied on every line.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settlement_kernel.db.base import TimestampedBase, UUIDString


class PayrollRunModel(TimestampedBase):
    """A payroll run for one calendar month."""

    __tablename__ = "payroll_runs"

    __table_args__ = (
        UniqueConstraint("period_year", "period_month", name="uq_payroll_run_period"),
    )

    period_year: Mapped[int] = mapped_column(Integer, nullable=False)
    period_month: Mapped[int] = mapped_column(Integer, nullable=False)
    run_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_by: Mapped[str | None] = mapped_column(String(120), nullable=True)

    lines: Mapped[list["PayrollLineModel"]] = relationship(
        back_populates="run",
        cascade="all, delete-orphan",
        order_by="PayrollLineModel.position",
    )

    def __repr__(self) -> str:
        return f"<PayrollRunModel {self.period_year}-{self.period_month:02d}>"


class PayrollLineModel(TimestampedBase):
    """One employee's result inside a payroll run."""

    __tablename__ = "payroll_lines"

    __table_args__ = (
        UniqueConstraint("payroll_run_id", "employee_id", name="uq_payroll_line_employee"),
        Index("idx_payroll_line_employee", "employee_id"),
    )

    payroll_run_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("payroll_runs.id", ondelete="CASCADE"), nullable=False
    )
    employee_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    gross: Mapped[Decimal] = mapped_column(nullable=False)
    deductions_applied: Mapped[Decimal] = mapped_column(nullable=False)
    carry_forward: Mapped[Decimal] = mapped_column(nullable=False)
    net_pay: Mapped[Decimal] = mapped_column(nullable=False)
    note: Mapped[str | None] = mapped_column(String(200), nullable=True)

    run: Mapped[PayrollRunModel] = relationship(back_populates="lines")
