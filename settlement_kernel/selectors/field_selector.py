"""
Module: settlement_kernel.selectors.field_selector
Responsibility: Read-only queries over field dispatches and their returns.
Architecture position: Kernel > Selectors.

Day windows use the dispatch date, not the return date: cash brought back
the morning after still belongs to the day the goods went out.  Cash for a
cashup is counted per shift: each return belongs to the shift that was
editable when it was recorded, so a later slot of the same day never sees
cash an earlier, already settled slot paid commission on.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from settlement_kernel.domain.dtos import FieldDispatchInfo
from settlement_kernel.models.field_dispatch import FieldDispatchModel, FieldReturnModel
from settlement_kernel.selectors.base import BaseSelector


class FieldDispatchSelector(BaseSelector):
    """Field dispatch queries."""

    def get(self, dispatch_id: UUID) -> FieldDispatchInfo | None:
        model = self.session.get(FieldDispatchModel, dispatch_id)
        return model.to_dto() if model is not None else None

    def dispatches_for_day(
        self,
        day: date,
        waiter_id: UUID | None = None,
    ) -> list[FieldDispatchInfo]:
        stmt = (
            select(FieldDispatchModel)
            .options(selectinload(FieldDispatchModel.field_return))
            .where(FieldDispatchModel.dispatch_date == day)
        )
        if waiter_id is not None:
            stmt = stmt.where(FieldDispatchModel.waiter_id == waiter_id)
        stmt = stmt.order_by(
            FieldDispatchModel.waiter_id,
            FieldDispatchModel.created_at,
            FieldDispatchModel.id,
        )
        return [m.to_dto() for m in self.session.scalars(stmt)]

    def cash_collected_for_shift(self, shift_id: UUID) -> Decimal:
        """Total cash of the returns recorded against ``shift_id``."""
        stmt = (
            select(func.coalesce(func.sum(FieldReturnModel.cash_collected), 0))
            .where(FieldReturnModel.shift_id == shift_id)
        )
        return Decimal(self.session.scalar(stmt) or 0)
