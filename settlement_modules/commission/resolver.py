"""
CommissionResolver (``settlement_modules.commission.resolver``).

Responsibility
--------------
``resolve_commission(employee_id, settlement_amount)``:

1. Use the plan linked to the employee, if any.
2. Otherwise use the default plan of the role matching the employee's
   type (INSIDE, FIELD, KITCHEN).
3. No employee or no plan: zero commission with an issue.
4. Parse the plan's brackets (encoding inferred from the tiers) and look
   the amount up.
5. Return the commission rounded to 2dp, the effective rate for
   rate-style tables, the plan id and the matched tier.

Failure modes
-------------
Nothing raises for bad data.  Missing records and malformed brackets are
reported as ``DataIssue`` records on the result and logged at WARNING.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from settlement_engines.brackets import BracketTable, lookup_commission
from settlement_kernel.domain.clock import Clock
from settlement_kernel.domain.dtos import AuditFlagKind, CommissionRole, EmployeeInfo
from settlement_kernel.domain.values import ZERO, DataIssue, parse_amount, round_money
from settlement_kernel.exceptions import DuplicateDefaultPlanError
from settlement_kernel.logging_config import get_logger
from settlement_kernel.selectors.employee_selector import (
    CommissionPlanSelector,
    EmployeeSelector,
)
from settlement_kernel.services.audit_flag_service import AuditFlagService
from settlement_modules.commission.models import CommissionResult, PlanSelection

logger = get_logger("modules.commission.resolver")


class CommissionResolver:
    """
    Select an employee's commission plan and apply its bracket table.

    Args:
        session: Caller's session.
        audit: Where duplicate-default flags go.  Defaults to an
            AuditFlagService on the same session.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditFlagService | None = None,
    ):
        self.session = session
        self._employees = EmployeeSelector(session)
        self._plans = CommissionPlanSelector(session)
        self._audit = audit or AuditFlagService(session, clock)

    def select_plan(self, employee: EmployeeInfo) -> PlanSelection:
        """Plan linked to the employee, else the role default."""
        issues: list[DataIssue] = []

        if employee.commission_plan_id is not None:
            plan = self._plans.get(employee.commission_plan_id)
            if plan is not None:
                table = BracketTable.parse(plan.brackets)
                return PlanSelection(plan, table, tuple(issues) + table.issues)
            issues.append(DataIssue(
                code="LINKED_PLAN_NOT_FOUND",
                message="Employee references a plan that does not exist",
                context={"planId": str(employee.commission_plan_id)},
            ))

        role = CommissionRole(employee.employee_type.value)
        defaults = self._plans.defaults_for_role(role)

        if not defaults:
            issues.append(DataIssue(
                code="PLAN_NOT_FOUND",
                message=f"No commission plan for role {role.value}",
                context={"role": role.value},
            ))
            logger.warning(
                "commission_plan_not_found",
                extra={"employee_id": str(employee.id), "role": role.value},
            )
            return PlanSelection(None, BracketTable.empty(), tuple(issues))

        if len(defaults) > 1:
            plan_ids = [str(p.id) for p in defaults]
            issues.append(DataIssue(
                code=DuplicateDefaultPlanError.code,
                message=str(DuplicateDefaultPlanError(role.value, plan_ids)),
                context={"role": role.value, "planIds": plan_ids},
            ))
            logger.warning(
                "commission_duplicate_default_plan",
                extra={"role": role.value, "plan_ids": plan_ids},
            )
            self._audit.raise_flag(
                AuditFlagKind.DUPLICATE_DEFAULT_PLAN,
                entity_type="CommissionRole",
                entity_id=role.value,
                detail={"planIds": plan_ids},
            )
            return PlanSelection(None, BracketTable.empty(), tuple(issues))

        plan = defaults[0]
        table = BracketTable.parse(plan.brackets)
        return PlanSelection(plan, table, tuple(issues) + table.issues)

    def plan_for_employee(self, employee_id: UUID) -> tuple[EmployeeInfo | None, PlanSelection]:
        employee = self._employees.get(employee_id)
        if employee is None:
            issue = DataIssue(
                code="EMPLOYEE_NOT_FOUND",
                message="Employee not found",
                context={"employeeId": str(employee_id)},
            )
            return None, PlanSelection(None, BracketTable.empty(), (issue,))
        return employee, self.select_plan(employee)

    def resolve_commission(self, employee_id: UUID, settlement_amount: Any) -> CommissionResult:
        """Commission for ``settlement_amount`` under the employee's plan."""
        _, selection = self.plan_for_employee(employee_id)
        return self.apply(employee_id, settlement_amount, selection)

    def apply(self, employee_id: UUID, amount: Any, selection: PlanSelection) -> CommissionResult:
        """Look ``amount`` up in an already selected plan."""
        amount = parse_amount(amount)
        issues = list(selection.issues)
        if not amount.is_finite():
            issues.append(DataIssue(
                code="NON_NUMERIC_AMOUNT",
                message="Settlement amount is not a number",
                context={"amount": str(amount)},
            ))

        match = lookup_commission(table=selection.table, amount=amount)
        commission = match.commission if match is not None else round_money(ZERO)
        plan = selection.plan

        result = CommissionResult(
            employee_id=employee_id,
            settlement_amount=amount,
            commission=commission,
            rate_pct=match.rate_pct if match is not None else None,
            plan_id=plan.id if plan is not None else None,
            plan_name=plan.name if plan is not None else None,
            bracket_kind=selection.table.kind,
            matched_tier=match.tier if match is not None else None,
            issues=tuple(issues),
        )
        logger.debug(
            "commission_resolved",
            extra={
                "employee_id": str(employee_id),
                "settlement_amount": amount,
                "commission": commission,
                "plan_id": str(result.plan_id) if result.plan_id else None,
                "issue_count": len(issues),
            },
        )
        return result
