"""
Module: settlement_kernel.models.employee
Responsibility: ORM persistence for staff members who earn commission.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - ``employee_type`` selects the role-default commission plan when no
      plan is linked directly.
    - The plan link is optional; absence is not an error.
"""

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from settlement_kernel.db.base import TimestampedBase, UUIDString


class EmployeeModel(TimestampedBase):
    """
    ORM model for an employee.

    Guarantees:
        - ``role`` and ``employee_type`` store enum .value strings.
    """

    __tablename__ = "employees"

    __table_args__ = (
        Index("idx_employee_type", "employee_type"),
        Index("idx_employee_active", "is_active"),
    )

    name: Mapped[str] = mapped_column(String(120), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    employee_type: Mapped[str] = mapped_column(String(20), nullable=False)
    commission_plan_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("commission_plans.id"),
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def to_dto(self):
        from settlement_kernel.domain.dtos import EmployeeInfo, EmployeeRole, EmployeeType

        return EmployeeInfo(
            id=self.id,
            name=self.name,
            role=EmployeeRole(self.role),
            employee_type=EmployeeType(self.employee_type),
            commission_plan_id=self.commission_plan_id,
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return f"<EmployeeModel {self.name} ({self.employee_type})>"
