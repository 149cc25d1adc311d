"""
Commission Domain Models (``settlement_modules.commission.models``).

Frozen value objects returned by the commission resolver.  All money is
``Decimal``; ``as_dict`` renders amounts as 2dp strings for JSON output.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any
from uuid import UUID

from settlement_engines.brackets import BracketKind, BracketTable, Tier
from settlement_kernel.domain.dtos import CommissionPlanInfo
from settlement_kernel.domain.values import DataIssue, money_str


@dataclass(frozen=True)
class PlanSelection:
    """The plan chosen for an employee and its parsed bracket table."""

    plan: CommissionPlanInfo | None
    table: BracketTable
    issues: tuple[DataIssue, ...] = field(default_factory=tuple)

    @property
    def plan_id(self) -> UUID | None:
        return self.plan.id if self.plan is not None else None


@dataclass(frozen=True)
class CommissionResult:
    """
    Best-effort commission plus the context needed to audit it.

    ``commission`` is always a number (zero when nothing could be
    resolved); ``issues`` says why a zero is a zero.
    """

    employee_id: UUID
    settlement_amount: Decimal
    commission: Decimal
    rate_pct: Decimal | None = None
    plan_id: UUID | None = None
    plan_name: str | None = None
    bracket_kind: BracketKind | None = None
    matched_tier: Tier | None = None
    issues: tuple[DataIssue, ...] = field(default_factory=tuple)

    @property
    def matched(self) -> bool:
        return self.matched_tier is not None

    def as_dict(self) -> dict[str, Any]:
        return {
            "employeeId": str(self.employee_id),
            "settlementAmount": money_str(self.settlement_amount),
            "commission": money_str(self.commission),
            "ratePct": str(self.rate_pct) if self.rate_pct is not None else None,
            "planId": str(self.plan_id) if self.plan_id else None,
            "planName": self.plan_name,
            "bracketKind": self.bracket_kind.value if self.bracket_kind else None,
            "matchedTier": self.matched_tier.as_dict() if self.matched_tier else None,
            "issues": [i.as_dict() for i in self.issues],
        }
