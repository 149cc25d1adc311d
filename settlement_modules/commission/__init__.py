"""
Commission Module (``settlement_modules.commission``).

Responsibility
--------------
Resolve the commission an employee earns for a settlement amount, and
keep the one-default-plan-per-role invariant true when plans are written.

Invariants enforced
-------------------
* Resolution is read-only on plans and employees and deterministic for
  identical inputs.
* Duplicate default plans are never resolved by picking one: the result
  is zero commission with a ``DUPLICATE_DEFAULT_PLAN`` issue and an audit
  flag.
* Upserting a default plan clears every other default of the same role in
  the same flush.
"""

from settlement_modules.commission.models import CommissionResult, PlanSelection
from settlement_modules.commission.resolver import CommissionResolver
from settlement_modules.commission.service import CommissionPlanService

__all__ = [
    "CommissionPlanService",
    "CommissionResolver",
    "CommissionResult",
    "PlanSelection",
]
