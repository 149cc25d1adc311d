"""
Module: settlement_kernel.selectors.shift_selector
Responsibility: Read-only queries over shifts, sale lines and cashups,
    including the month scan that feeds payroll.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Month scans use the half-open ``[start, end)`` interval on the
      date-only ``shift_date`` column.
    - Month scans stream rows with ``yield_per`` so a large month is never
      loaded in one piece.
"""

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import func, select

from settlement_kernel.domain.dtos import CashupInfo, SaleLineInfo, ShiftInfo
from settlement_kernel.models.shift import CashupModel, SaleLineModel, ShiftModel
from settlement_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class CashupRow:
    """A cashup joined with the shift fields payroll and diagnostics need."""

    cashup_id: UUID
    shift_id: UUID
    employee_id: UUID
    shift_date: date
    snapshot: dict[str, Any]


class ShiftSelector(BaseSelector):
    """Shift and cashup queries."""

    def get(self, shift_id: UUID) -> ShiftInfo | None:
        model = self.session.get(ShiftModel, shift_id)
        return model.to_dto() if model is not None else None

    def shifts_for_day(self, employee_id: UUID, shift_date: date) -> list[ShiftInfo]:
        """All shifts of the employee on the day, oldest first."""
        stmt = (
            select(ShiftModel)
            .where(ShiftModel.employee_id == employee_id)
            .where(ShiftModel.shift_date == shift_date)
            .order_by(ShiftModel.slot_seq)
        )
        return [m.to_dto() for m in self.session.scalars(stmt)]

    def sale_lines(self, shift_id: UUID) -> list[SaleLineInfo]:
        stmt = (
            select(SaleLineModel)
            .where(SaleLineModel.shift_id == shift_id)
            .order_by(SaleLineModel.created_at, SaleLineModel.id)
        )
        return [m.to_dto() for m in self.session.scalars(stmt)]

    def cashup_for_shift(self, shift_id: UUID) -> CashupInfo | None:
        model = self.session.scalars(
            select(CashupModel).where(CashupModel.shift_id == shift_id)
        ).one_or_none()
        return model.to_dto() if model is not None else None

    def count_shifts(self, start: date, end: date) -> int:
        """Number of shifts, settled or not, dated in ``[start, end)``."""
        stmt = (
            select(func.count(ShiftModel.id))
            .where(ShiftModel.shift_date >= start)
            .where(ShiftModel.shift_date < end)
        )
        return int(self.session.scalar(stmt) or 0)

    def iter_cashups(
        self,
        start: date,
        end: date,
        batch_size: int = 500,
    ) -> Iterator[CashupRow]:
        """Stream cashups whose shift date lies in ``[start, end)``."""
        stmt = (
            select(
                CashupModel.id,
                CashupModel.shift_id,
                ShiftModel.employee_id,
                ShiftModel.shift_date,
                CashupModel.snapshot,
            )
            .join(ShiftModel, ShiftModel.id == CashupModel.shift_id)
            .where(ShiftModel.shift_date >= start)
            .where(ShiftModel.shift_date < end)
            .order_by(ShiftModel.shift_date, ShiftModel.employee_id, CashupModel.id)
            .execution_options(yield_per=batch_size)
        )
        for row in self.session.execute(stmt):
            yield CashupRow(
                cashup_id=row[0],
                shift_id=row[1],
                employee_id=row[2],
                shift_date=row[3],
                snapshot=dict(row[4] or {}),
            )
