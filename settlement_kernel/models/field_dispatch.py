"""
Module: settlement_kernel.models.field_dispatch
Responsibility: ORM persistence for stock handed to field sellers and what
    came back at the end of the run.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - At most one return per dispatch (uq_field_return_dispatch).
    - Each return belongs to the shift that was editable when it was
      recorded; that shift's cashup is the only one that counts its cash.
    - Quantities and prices are Decimal.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settlement_kernel.db.base import TimestampedBase, UUIDString


class FieldDispatchModel(TimestampedBase):
    """Items dispatched to a field waiter for sale away from the restaurant."""

    __tablename__ = "field_dispatches"

    __table_args__ = (
        Index("idx_field_dispatch_waiter_date", "waiter_id", "dispatch_date"),
    )

    waiter_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("employees.id"), nullable=False
    )
    item_code: Mapped[str] = mapped_column(String(60), nullable=False)
    qty_dispatched: Mapped[Decimal] = mapped_column(nullable=False)
    price_each: Mapped[Decimal] = mapped_column(nullable=False)
    dispatch_date: Mapped[date] = mapped_column(Date, nullable=False)

    field_return: Mapped[Optional["FieldReturnModel"]] = relationship(
        back_populates="dispatch", uselist=False
    )

    def to_dto(self):
        from settlement_kernel.domain.dtos import FieldDispatchInfo

        return FieldDispatchInfo(
            id=self.id,
            waiter_id=self.waiter_id,
            item_code=self.item_code,
            qty_dispatched=self.qty_dispatched,
            price_each=self.price_each,
            dispatch_date=self.dispatch_date,
            field_return=self.field_return.to_dto() if self.field_return else None,
        )


class FieldReturnModel(TimestampedBase):
    """Unsold, lost and cash figures reported when a field waiter comes back."""

    __tablename__ = "field_returns"

    __table_args__ = (
        UniqueConstraint("dispatch_id", name="uq_field_return_dispatch"),
        Index("idx_field_return_date", "returned_on"),
        Index("idx_field_return_shift", "shift_id"),
    )

    dispatch_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("field_dispatches.id"), nullable=False
    )
    shift_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("shifts.id"), nullable=False
    )
    qty_returned: Mapped[Decimal] = mapped_column(nullable=False)
    loss_qty: Mapped[Decimal] = mapped_column(nullable=False)
    cash_collected: Mapped[Decimal] = mapped_column(nullable=False)
    returned_on: Mapped[date] = mapped_column(Date, nullable=False)
    note: Mapped[str | None] = mapped_column(String(500), nullable=True)

    dispatch: Mapped[FieldDispatchModel] = relationship(back_populates="field_return")

    def to_dto(self):
        from settlement_kernel.domain.dtos import FieldReturnInfo

        return FieldReturnInfo(
            id=self.id,
            dispatch_id=self.dispatch_id,
            shift_id=self.shift_id,
            qty_returned=self.qty_returned,
            loss_qty=self.loss_qty,
            cash_collected=self.cash_collected,
            note=self.note,
            returned_on=self.returned_on,
        )
