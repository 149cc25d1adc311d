"""
Module: settlement_kernel.models.shift
Responsibility: ORM persistence for shifts, their append-only lifecycle log,
    the per-(employee, day) slot lock, sale lines and cashup snapshots.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - A shift is OPEN while ``closed_at`` is NULL, CLOSED otherwise, and
      SETTLED once a CashupModel row references it.
    - At most one cashup per shift (uq_cashup_shift).
    - ``slot_seq`` numbers the shifts of one (employee_id, shift_date);
      two writers can never both create shift N (uq_shift_slot_seq).
    - At most one slot lock row per (employee_id, shift_date)
      (uq_shift_slot); every find-decide-write sequence on shifts for that
      key locks this row first.
    - ``version`` is an optimistic lock counter; a concurrent update makes
      the flush fail with StaleDataError.
    - ShiftEventModel rows are append-only; ``sequence`` orders them within
      a shift.

Audit relevance:
    Reopens, closes and settlements are recorded as ShiftEventModel rows
    with the prior state, so history is never rewritten.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settlement_kernel.db.base import Base, TimestampedBase, UUIDString


class ShiftModel(TimestampedBase):
    """ORM model for one working shift of one employee on one calendar day."""

    __tablename__ = "shifts"

    __table_args__ = (
        UniqueConstraint(
            "employee_id", "shift_date", "slot_seq", name="uq_shift_slot_seq"
        ),
        Index("idx_shift_date", "shift_date"),
    )

    employee_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("employees.id"), nullable=False
    )
    shift_date: Mapped[date] = mapped_column(Date, nullable=False)
    # 1, 2, ... per (employee_id, shift_date); the highest is the latest shift
    slot_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    opened_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    closed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    waiter_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    table_code: Mapped[str | None] = mapped_column(String(40), nullable=True)
    route: Mapped[str | None] = mapped_column(String(120), nullable=True)
    opening_float: Mapped[Decimal | None] = mapped_column(nullable=True)
    cash_remit: Mapped[Decimal | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    cashup: Mapped[Optional["CashupModel"]] = relationship(
        back_populates="shift", uselist=False
    )
    events: Mapped[list["ShiftEventModel"]] = relationship(
        back_populates="shift",
        order_by="ShiftEventModel.sequence",
        cascade="all, delete-orphan",
    )
    lines: Mapped[list["SaleLineModel"]] = relationship(
        back_populates="shift",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_open(self) -> bool:
        return self.closed_at is None

    def to_dto(self, with_events: bool = True):
        from settlement_kernel.domain.dtos import EmployeeType, ShiftInfo, ShiftState

        if self.cashup is not None:
            state = ShiftState.SETTLED
        elif self.closed_at is None:
            state = ShiftState.OPEN
        else:
            state = ShiftState.CLOSED
        return ShiftInfo(
            id=self.id,
            employee_id=self.employee_id,
            shift_date=self.shift_date,
            opened_at=self.opened_at,
            closed_at=self.closed_at,
            state=state,
            waiter_type=EmployeeType(self.waiter_type) if self.waiter_type else None,
            table_code=self.table_code,
            route=self.route,
            opening_float=self.opening_float,
            cash_remit=self.cash_remit,
            notes=self.notes,
            cashup_id=self.cashup.id if self.cashup is not None else None,
            events=tuple(e.to_dto() for e in self.events) if with_events else (),
            slot_seq=self.slot_seq,
        )

    def __repr__(self) -> str:
        status = "open" if self.closed_at is None else "closed"
        return f"<ShiftModel {self.employee_id} {self.shift_date} {status}>"


class ShiftEventModel(Base):
    """Append-only lifecycle record for a shift."""

    __tablename__ = "shift_events"

    __table_args__ = (
        UniqueConstraint("shift_id", "sequence", name="uq_shift_event_sequence"),
    )

    shift_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("shifts.id"), nullable=False
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    event_type: Mapped[str] = mapped_column(String(40), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    prior_state: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    previous_shift_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    shift: Mapped[ShiftModel] = relationship(back_populates="events")

    def to_dto(self):
        from settlement_kernel.domain.dtos import ShiftEventInfo, ShiftEventType

        return ShiftEventInfo(
            id=self.id,
            shift_id=self.shift_id,
            event_type=ShiftEventType(self.event_type),
            occurred_at=self.occurred_at,
            prior_state=dict(self.prior_state or {}),
            previous_shift_id=self.previous_shift_id,
        )


class ShiftSlotLockModel(Base):
    """
    Lock row for an (employee, calendar day) key.

    Holds no business data.  ``SELECT ... FOR UPDATE`` on this row
    serialises concurrent shift decisions for the same key.
    """

    __tablename__ = "shift_slot_locks"

    __table_args__ = (
        UniqueConstraint("employee_id", "shift_date", name="uq_shift_slot"),
    )

    employee_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    shift_date: Mapped[date] = mapped_column(Date, nullable=False)
    touch_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class SaleLineModel(TimestampedBase):
    """One sold item recorded against a shift."""

    __tablename__ = "sale_lines"

    __table_args__ = (Index("idx_sale_line_shift", "shift_id"),)

    shift_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("shifts.id"), nullable=False
    )
    item_code: Mapped[str] = mapped_column(String(60), nullable=False)
    qty: Mapped[Decimal] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    is_void: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_return: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    shift: Mapped[ShiftModel] = relationship(back_populates="lines")

    def to_dto(self):
        from settlement_kernel.domain.dtos import SaleLineInfo

        return SaleLineInfo(
            id=self.id,
            shift_id=self.shift_id,
            item_code=self.item_code,
            qty=self.qty,
            unit_price=self.unit_price,
            is_void=self.is_void,
            is_return=self.is_return,
        )


class CashupModel(TimestampedBase):
    """
    End-of-shift financial snapshot.

    Created once per shift and never updated; its existence marks the
    shift settled.
    """

    __tablename__ = "cashups"

    __table_args__ = (UniqueConstraint("shift_id", name="uq_cashup_shift"),)

    shift_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("shifts.id"), nullable=False
    )
    snapshot: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    submitted_by: Mapped[str | None] = mapped_column(String(120), nullable=True)
    note: Mapped[str | None] = mapped_column(String(500), nullable=True)

    shift: Mapped[ShiftModel] = relationship(back_populates="cashup")

    def to_dto(self):
        from settlement_kernel.domain.dtos import CashupInfo

        return CashupInfo(
            id=self.id,
            shift_id=self.shift_id,
            snapshot=dict(self.snapshot or {}),
            submitted_by=self.submitted_by,
            note=self.note,
        )
