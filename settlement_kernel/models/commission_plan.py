"""
Module: settlement_kernel.models.commission_plan
Responsibility: ORM persistence for commission plans and their bracket tables.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - ``name`` is unique.
    - At most one ``is_default`` plan per ``role``.  This is NOT a database
      constraint; CommissionPlanService clears sibling defaults on write and
      the resolver reports violations as data issues on read.

Audit relevance:
    ``brackets_json`` is stored exactly as supplied (list or JSON string)
    so the bracket parser, not the ORM, decides what is valid.
"""

from typing import Any

from sqlalchemy import JSON, Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from settlement_kernel.db.base import TimestampedBase


class CommissionPlanModel(TimestampedBase):
    """ORM model for a commission plan (shared, read-only at resolution time)."""

    __tablename__ = "commission_plans"

    __table_args__ = (
        UniqueConstraint("name", name="uq_commission_plan_name"),
        Index("idx_commission_plan_role_default", "role", "is_default"),
    )

    name: Mapped[str] = mapped_column(String(120), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    brackets_json: Mapped[Any] = mapped_column(JSON, nullable=True)

    def to_dto(self):
        from settlement_kernel.domain.dtos import CommissionPlanInfo, CommissionRole

        return CommissionPlanInfo(
            id=self.id,
            name=self.name,
            role=CommissionRole(self.role),
            is_default=self.is_default,
            brackets=self.brackets_json,
        )

    def __repr__(self) -> str:
        return f"<CommissionPlanModel {self.name} ({self.role}) default={self.is_default}>"
