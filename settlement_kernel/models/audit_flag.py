"""
Module: settlement_kernel.models.audit_flag
Responsibility: ORM persistence for consistency problems that must be shown
    to operators instead of being silently corrected.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from typing import Any

from sqlalchemy import JSON, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from settlement_kernel.db.base import TimestampedBase


class AuditFlagModel(TimestampedBase):
    """A flagged audit row (negative sold quantity, duplicate default plan...)."""

    __tablename__ = "audit_flags"

    __table_args__ = (
        Index("idx_audit_flag_kind", "kind"),
        Index("idx_audit_flag_entity", "entity_type", "entity_id"),
    )

    kind: Mapped[str] = mapped_column(String(40), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(40), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(80), nullable=False)
    detail: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    def to_dto(self):
        from settlement_kernel.domain.dtos import AuditFlagInfo, AuditFlagKind

        return AuditFlagInfo(
            id=self.id,
            kind=AuditFlagKind(self.kind),
            entity_type=self.entity_type,
            entity_id=self.entity_id,
            detail=dict(self.detail or {}),
            created_at=self.created_at,
        )
