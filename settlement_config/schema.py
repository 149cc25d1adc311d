"""
Configuration Schema (``settlement_config.schema``).

Frozen dataclasses describing the settlement engine's runtime settings.
Values come from ``defaults.yaml`` (or an explicit file) through
``settlement_config.loader`` and from environment overrides applied by
``settlement_config.get_active_config()``.

Invariants enforced
-------------------
* ``deduction_cap_pct`` lies in 0..100 (100 means uncapped).
* ``payroll_batch_size`` >= 1.
* Every default plan seed names a known commission role and carries a
  non-empty bracket list.

Violations raise ``ValueError`` with a descriptive message.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

VALID_PLAN_ROLES = frozenset({"INSIDE", "FIELD", "KITCHEN"})


@dataclass(frozen=True)
class PlanSeed:
    """A default commission plan to install for a role."""

    name: str
    role: str
    brackets: tuple[dict[str, Any], ...]

    def __post_init__(self):
        if not self.name:
            raise ValueError("plan seed name must be non-empty")
        if self.role not in VALID_PLAN_ROLES:
            raise ValueError(
                f"plan seed role must be one of {sorted(VALID_PLAN_ROLES)}, got '{self.role}'"
            )
        if not self.brackets:
            raise ValueError(f"plan seed '{self.name}' has no brackets")


@dataclass(frozen=True)
class SettlementConfig:
    """Runtime settings of the settlement engine."""

    deduction_cap_pct: Decimal = Decimal("100")
    payroll_batch_size: int = 500
    business_timezone: str = "UTC"
    default_plans: tuple[PlanSeed, ...] = field(default_factory=tuple)
    database_url: str | None = None

    def __post_init__(self):
        if not isinstance(self.deduction_cap_pct, Decimal):
            raise ValueError("deduction_cap_pct must be a Decimal")
        if not self.deduction_cap_pct.is_finite() or not (
            Decimal("0") <= self.deduction_cap_pct <= Decimal("100")
        ):
            raise ValueError(
                f"deduction_cap_pct must be between 0 and 100, got {self.deduction_cap_pct}"
            )
        if self.payroll_batch_size < 1:
            raise ValueError(
                f"payroll_batch_size must be >= 1, got {self.payroll_batch_size}"
            )

    def plan_for_role(self, role: str) -> PlanSeed | None:
        for seed in self.default_plans:
            if seed.role == role:
                return seed
        return None

    def as_dict(self) -> dict[str, Any]:
        return {
            "deduction_cap_pct": str(self.deduction_cap_pct),
            "payroll_batch_size": self.payroll_batch_size,
            "business_timezone": self.business_timezone,
            "default_plans": [
                {"name": p.name, "role": p.role, "brackets": list(p.brackets)}
                for p in self.default_plans
            ],
            "database_url": self.database_url,
        }
