"""
Module: settlement_kernel.selectors.employee_selector
Responsibility: Read-only lookups of employees and commission plans.
Architecture position: Kernel > Selectors.

Commission resolution reads plans through this selector only; plans are
shared and read-mostly, so no locks are taken here.
"""

from uuid import UUID

from sqlalchemy import select

from settlement_kernel.domain.dtos import (
    CommissionPlanInfo,
    CommissionRole,
    EmployeeInfo,
    EmployeeType,
)
from settlement_kernel.models.commission_plan import CommissionPlanModel
from settlement_kernel.models.employee import EmployeeModel
from settlement_kernel.selectors.base import BaseSelector


class EmployeeSelector(BaseSelector):
    """Employee queries."""

    def get(self, employee_id: UUID) -> EmployeeInfo | None:
        model = self.session.get(EmployeeModel, employee_id)
        return model.to_dto() if model is not None else None

    def list_employees(
        self,
        employee_type: EmployeeType | None = None,
        active_only: bool = True,
    ) -> list[EmployeeInfo]:
        stmt = select(EmployeeModel)
        if employee_type is not None:
            stmt = stmt.where(EmployeeModel.employee_type == employee_type.value)
        if active_only:
            stmt = stmt.where(EmployeeModel.is_active.is_(True))
        stmt = stmt.order_by(EmployeeModel.name, EmployeeModel.id)
        return [m.to_dto() for m in self.session.scalars(stmt)]


class CommissionPlanSelector(BaseSelector):
    """Commission plan queries."""

    def get(self, plan_id: UUID) -> CommissionPlanInfo | None:
        model = self.session.get(CommissionPlanModel, plan_id)
        return model.to_dto() if model is not None else None

    def get_by_name(self, name: str) -> CommissionPlanInfo | None:
        model = self.session.scalars(
            select(CommissionPlanModel).where(CommissionPlanModel.name == name)
        ).one_or_none()
        return model.to_dto() if model is not None else None

    def defaults_for_role(self, role: CommissionRole) -> list[CommissionPlanInfo]:
        """
        Every plan flagged default for ``role``, oldest first.

        More than one row means the default-per-role invariant is broken;
        the caller decides how to report it.
        """
        stmt = (
            select(CommissionPlanModel)
            .where(CommissionPlanModel.role == role.value)
            .where(CommissionPlanModel.is_default.is_(True))
            .order_by(CommissionPlanModel.created_at, CommissionPlanModel.id)
        )
        return [m.to_dto() for m in self.session.scalars(stmt)]

    def list_plans(self, role: CommissionRole | None = None) -> list[CommissionPlanInfo]:
        stmt = select(CommissionPlanModel)
        if role is not None:
            stmt = stmt.where(CommissionPlanModel.role == role.value)
        stmt = stmt.order_by(CommissionPlanModel.role, CommissionPlanModel.name)
        return [m.to_dto() for m in self.session.scalars(stmt)]
