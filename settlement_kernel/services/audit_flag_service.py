"""
AuditFlagService -- persist consistency problems for operators.

Responsibility:
    Record conditions that must not be silently corrected (negative sold
    quantities, duplicate default commission plans) as AuditFlagModel rows
    and log them at WARNING.

Architecture position:
    Kernel > Services -- flush-only.

Invariants enforced:
    - Flags are append-only.  Raising a flag again for the same kind and
      entity returns the existing row instead of adding a duplicate.
"""

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from settlement_kernel.domain.clock import Clock
from settlement_kernel.domain.dtos import AuditFlagInfo, AuditFlagKind
from settlement_kernel.logging_config import get_logger
from settlement_kernel.models.audit_flag import AuditFlagModel
from settlement_kernel.services.base import BaseService

logger = get_logger("services.audit_flag")


class AuditFlagService(BaseService):
    """Raise and list audit flags."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    def raise_flag(
        self,
        kind: AuditFlagKind,
        entity_type: str,
        entity_id: Any,
        detail: dict[str, Any] | None = None,
    ) -> AuditFlagInfo:
        """
        Persist a flag, or return the existing one for the same kind and entity.

        ``detail`` must be JSON-serialisable; money values should already be
        strings.
        """
        entity_key = str(entity_id)
        existing = self.session.scalars(
            select(AuditFlagModel)
            .where(AuditFlagModel.kind == kind.value)
            .where(AuditFlagModel.entity_type == entity_type)
            .where(AuditFlagModel.entity_id == entity_key)
        ).first()
        if existing is not None:
            return existing.to_dto()

        flag = AuditFlagModel(
            kind=kind.value,
            entity_type=entity_type,
            entity_id=entity_key,
            detail=detail or {},
            created_at=self.clock.now(),
            updated_at=self.clock.now(),
        )
        self.session.add(flag)
        self.session.flush()

        logger.warning(
            "audit_flag_raised",
            extra={
                "flag_kind": kind.value,
                "entity_type": entity_type,
                "entity_id": entity_key,
                "detail": flag.detail,
            },
        )
        return flag.to_dto()

    def list_flags(self, kind: AuditFlagKind | None = None) -> list[AuditFlagInfo]:
        stmt = select(AuditFlagModel)
        if kind is not None:
            stmt = stmt.where(AuditFlagModel.kind == kind.value)
        stmt = stmt.order_by(AuditFlagModel.created_at, AuditFlagModel.id)
        return [m.to_dto() for m in self.session.scalars(stmt)]
