"""
CommissionPlanService (``settlement_modules.commission.service``).

Responsibility
--------------
Write path for commission plans, limited to keeping the default-plan
invariant true: upsert by name, verify the invariant, and seed the
configured default plans.  Editing individual brackets is not offered.

Invariants enforced
-------------------
* After ``upsert_plan(..., is_default=True)`` the plan is the only default
  of its role.
* Stored bracket payloads parse to at least one tier.

Failure modes
-------------
* ``InvalidCommissionPlanError`` -- empty name, unknown role, or brackets
  with no usable tier.
* ``DuplicateDefaultPlanError`` -- from ``check_default_invariant``.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from settlement_config.schema import SettlementConfig
from settlement_engines.brackets import BracketTable
from settlement_kernel.domain.clock import Clock
from settlement_kernel.domain.dtos import CommissionPlanInfo, CommissionRole
from settlement_kernel.exceptions import (
    DuplicateDefaultPlanError,
    InvalidCommissionPlanError,
)
from settlement_kernel.logging_config import get_logger
from settlement_kernel.models.commission_plan import CommissionPlanModel
from settlement_kernel.services.base import BaseService

logger = get_logger("modules.commission.service")


class CommissionPlanService(BaseService):
    """Create/update commission plans without breaking the default invariant."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    def upsert_plan(
        self,
        name: str,
        role: CommissionRole | str,
        brackets: Any,
        is_default: bool = False,
    ) -> CommissionPlanInfo:
        if not name or not name.strip():
            raise InvalidCommissionPlanError(str(name), "name must be non-empty")
        try:
            role = CommissionRole(getattr(role, "value", role))
        except ValueError as exc:
            raise InvalidCommissionPlanError(name, f"unknown role {role!r}") from exc

        table = BracketTable.parse(brackets)
        if table.is_empty:
            raise InvalidCommissionPlanError(name, "brackets contain no usable tier")

        plan = self.session.scalars(
            select(CommissionPlanModel).where(CommissionPlanModel.name == name)
        ).one_or_none()
        created = plan is None
        if plan is None:
            plan = CommissionPlanModel(name=name)
            self.session.add(plan)
        plan.role = role.value
        plan.is_default = is_default
        plan.brackets_json = _plain(brackets)
        self.session.flush()

        cleared = 0
        if is_default:
            result = self.session.execute(
                update(CommissionPlanModel)
                .where(CommissionPlanModel.role == role.value)
                .where(CommissionPlanModel.id != plan.id)
                .where(CommissionPlanModel.is_default.is_(True))
                .values(is_default=False)
                .execution_options(synchronize_session="fetch")
            )
            cleared = result.rowcount or 0

        logger.info(
            "commission_plan_upserted",
            extra={
                "plan_id": str(plan.id),
                "plan_name": name,
                "role": role.value,
                "is_default": is_default,
                "plan_created": created,
                "tier_count": len(table.tiers),
                "defaults_cleared": cleared,
            },
        )
        return plan.to_dto()

    def check_default_invariant(self, role: CommissionRole | str) -> CommissionPlanInfo | None:
        """
        Return the role's default plan (None if there is none).

        Raises:
            DuplicateDefaultPlanError: More than one default exists.
        """
        role = CommissionRole(getattr(role, "value", role))
        defaults = list(self.session.scalars(
            select(CommissionPlanModel)
            .where(CommissionPlanModel.role == role.value)
            .where(CommissionPlanModel.is_default.is_(True))
            .order_by(CommissionPlanModel.name)
        ))
        if len(defaults) > 1:
            raise DuplicateDefaultPlanError(role.value, [str(p.id) for p in defaults])
        return defaults[0].to_dto() if defaults else None

    def seed_default_plans(self, config: SettlementConfig) -> list[CommissionPlanInfo]:
        """Upsert every configured default plan as its role's default."""
        seeded = [
            self.upsert_plan(seed.name, seed.role, list(seed.brackets), is_default=True)
            for seed in config.default_plans
        ]
        logger.info("commission_plans_seeded", extra={"plan_count": len(seeded)})
        return seeded


def _plain(brackets: Any) -> Any:
    """JSON-safe copy of a bracket payload (Decimals become strings)."""
    if isinstance(brackets, (list, tuple)):
        return [_plain(b) for b in brackets]
    if isinstance(brackets, dict):
        return {str(k): _plain(v) for k, v in brackets.items()}
    if isinstance(brackets, (str, int, float, bool)) or brackets is None:
        return brackets
    return str(brackets)
