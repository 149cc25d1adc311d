"""
Module: settlement_kernel.models.salary_deduction
Responsibility: ORM persistence for money withheld from an employee's pay.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - ``amount`` > 0 (checked by SalaryDeductionService before insert).
    - Deductions are never edited by payroll; carry-forward is derived from
      the amounts earlier runs applied.
"""

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Date, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from settlement_kernel.db.base import TimestampedBase, UUIDString


class SalaryDeductionModel(TimestampedBase):
    """A salary deduction (advance, breakage, loss...)."""

    __tablename__ = "salary_deductions"

    __table_args__ = (
        Index("idx_salary_deduction_employee_date", "employee_id", "deduction_date"),
    )

    employee_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("employees.id"), nullable=False
    )
    deduction_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    reason: Mapped[str] = mapped_column(String(20), nullable=False)
    note: Mapped[str | None] = mapped_column(String(500), nullable=True)
    meta: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)

    def to_dto(self):
        from settlement_kernel.domain.dtos import DeductionReason, SalaryDeductionInfo

        return SalaryDeductionInfo(
            id=self.id,
            employee_id=self.employee_id,
            deduction_date=self.deduction_date,
            amount=self.amount,
            reason=DeductionReason(self.reason),
            note=self.note,
            metadata=dict(self.meta or {}),
        )
