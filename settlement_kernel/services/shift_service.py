"""
ShiftService -- shift lifecycle state machine per (employee, calendar day).

Responsibility:
    Find or create the single editable shift for an employee on a day,
    close and reopen shifts, and record sale lines through that lifecycle.

Architecture position:
    Kernel > Services -- imperative shell, flush-only.
    Called by request handlers, CashupService and FieldDispatchService.

Invariants enforced:
    - At most one editable shift per (employee_id, shift_date): every
      find-decide-write sequence first locks the ShiftSlotLockModel row for
      the key (``SELECT ... FOR UPDATE``), and new shifts take the next
      ``slot_seq`` under that lock.
    - A settled shift (one with a cashup) is never reopened; a new OPEN
      shift is created instead, inheriting waiter metadata.
    - Lifecycle history is appended as ShiftEventModel rows, never edited.

Failure modes:
    - EmployeeNotFoundError when the employee does not exist.
    - ShiftNotFoundError for an unknown shift id.
    - ShiftAlreadyClosedError / ShiftAlreadyOpenError / ShiftSettledError on
      an invalid transition.
    - OptimisticLockError when the shift row changed under us (retry).

Audit relevance:
    OPENED, REOPENED, OPENED_AFTER_SETTLEMENT and CLOSED events carry the
    prior state, so the close time a reopen discarded is still on record.
"""

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from settlement_kernel.domain.clock import Clock
from settlement_kernel.domain.dates import date_only_utc
from settlement_kernel.domain.dtos import (
    SaleLineInfo,
    ShiftEventType,
    ShiftInfo,
    WaiterMeta,
)
from settlement_kernel.domain.values import ZERO, round_money
from settlement_kernel.exceptions import (
    EmployeeNotFoundError,
    OptimisticLockError,
    ShiftAlreadyClosedError,
    ShiftAlreadyOpenError,
    ShiftNotFoundError,
    ShiftSettledError,
)
from settlement_kernel.logging_config import LogContext, get_logger
from settlement_kernel.models.employee import EmployeeModel
from settlement_kernel.models.shift import (
    CashupModel,
    SaleLineModel,
    ShiftEventModel,
    ShiftModel,
    ShiftSlotLockModel,
)
from settlement_kernel.services.base import BaseService

logger = get_logger("services.shift")


class ShiftService(BaseService):
    """
    Shift lifecycle manager.

    Contract:
        All mutating operations flush but never commit.  The slot lock is
        held until the caller's transaction ends, so the whole request that
        records a sale is serialised per (employee, day).
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    def lock_slot(self, employee_id: UUID, shift_date: date) -> ShiftSlotLockModel:
        """
        Lock (creating on first use) the slot row for (employee, day).

        Postconditions:
            - The row is locked FOR UPDATE until the transaction ends.
        """
        stmt = (
            select(ShiftSlotLockModel)
            .where(ShiftSlotLockModel.employee_id == employee_id)
            .where(ShiftSlotLockModel.shift_date == shift_date)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        slot = self.session.execute(stmt).scalar_one_or_none()

        if slot is None:
            # Another transaction may insert the same key concurrently; the
            # savepoint keeps the caller's earlier work if we lose the race.
            savepoint = self.session.begin_nested()
            try:
                slot = ShiftSlotLockModel(
                    employee_id=employee_id, shift_date=shift_date, touch_count=0
                )
                self.session.add(slot)
                self.session.flush()
                savepoint.commit()
            except IntegrityError:
                logger.debug(
                    "shift_slot_race_retry",
                    extra={"employee_id": str(employee_id), "shift_date": shift_date},
                )
                savepoint.rollback()
                slot = self.session.execute(stmt).scalar_one()

        slot.touch_count += 1
        self.session.flush()
        return slot

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def get_or_create_editable_shift(
        self,
        shift_date: date | str,
        employee_id: UUID,
        waiter_meta: WaiterMeta | None = None,
    ) -> ShiftInfo:
        """
        Return the editable shift for (employee, day), creating or
        reopening one as needed.

        - No shift yet: create an OPEN shift with the supplied metadata.
        - Latest shift OPEN: return it unchanged.
        - Latest shift CLOSED without cashup: reopen it.
        - Latest shift settled: create a new OPEN shift that inherits the
          previous shift's waiter type, table and route.
        """
        shift = self._editable_shift_model(shift_date, employee_id, waiter_meta)
        return shift.to_dto()

    def close_shift(
        self,
        shift_id: UUID,
        cash_remit: Decimal | None = None,
        notes: str | None = None,
    ) -> ShiftInfo:
        """Move an OPEN shift to CLOSED and append a CLOSED event."""
        shift = self.get_shift_model(shift_id)
        self.lock_slot(shift.employee_id, shift.shift_date)
        self.session.refresh(shift)
        self._check_not_settled(shift)
        if shift.closed_at is not None:
            raise ShiftAlreadyClosedError(str(shift.id))

        shift.closed_at = self.clock.now()
        if cash_remit is not None:
            shift.cash_remit = round_money(Decimal(cash_remit))
        if notes is not None:
            shift.notes = notes
        self.append_event(shift, ShiftEventType.CLOSED)
        self._flush_shift(shift)

        logger.info(
            "shift_closed",
            extra={
                "shift_id": str(shift.id),
                "employee_id": str(shift.employee_id),
                "shift_date": shift.shift_date,
                "cash_remit": shift.cash_remit,
            },
        )
        return shift.to_dto()

    def reopen_shift(self, shift_id: UUID) -> ShiftInfo:
        """
        Explicitly reopen a CLOSED shift.

        Raises:
            ShiftAlreadyOpenError: The shift is open.
            ShiftSettledError: The shift has a cashup.
        """
        shift = self.get_shift_model(shift_id)
        self.lock_slot(shift.employee_id, shift.shift_date)
        self.session.refresh(shift)
        self._check_not_settled(shift)
        if shift.closed_at is None:
            raise ShiftAlreadyOpenError(str(shift.id))
        self._reopen(shift)
        return shift.to_dto()

    # ------------------------------------------------------------------
    # Sales
    # ------------------------------------------------------------------

    def add_sale_line(
        self,
        shift_date: date | str,
        employee_id: UUID,
        item_code: str,
        qty: Decimal,
        unit_price: Decimal,
        waiter_meta: WaiterMeta | None = None,
        is_void: bool = False,
        is_return: bool = False,
    ) -> tuple[ShiftInfo, SaleLineInfo]:
        """
        Record a sale line on the editable shift.

        Returns both the shift that received the line and the line, so the
        caller can switch to the shift that is now active.
        """
        shift = self._editable_shift_model(shift_date, employee_id, waiter_meta)
        line = SaleLineModel(
            shift=shift,
            item_code=item_code,
            qty=Decimal(qty),
            unit_price=Decimal(unit_price),
            is_void=is_void,
            is_return=is_return,
        )
        self.session.add(line)
        self.session.flush()

        logger.info(
            "sale_line_recorded",
            extra={
                "shift_id": str(shift.id),
                "employee_id": str(employee_id),
                "item_code": item_code,
                "qty": line.qty,
                "unit_price": line.unit_price,
            },
        )
        return shift.to_dto(), line.to_dto()

    def compute_expected_cash(
        self,
        shift_id: UUID,
        include_returns: bool = False,
        include_voids: bool = False,
    ) -> Decimal:
        """Sum of ``qty * unit_price`` over the shift's usable lines."""
        stmt = select(
            func.coalesce(func.sum(SaleLineModel.qty * SaleLineModel.unit_price), 0)
        ).where(SaleLineModel.shift_id == shift_id)
        if not include_returns:
            stmt = stmt.where(SaleLineModel.is_return.is_(False))
        if not include_voids:
            stmt = stmt.where(SaleLineModel.is_void.is_(False))
        total = self.session.scalar(stmt)
        return round_money(Decimal(total or ZERO))

    # ------------------------------------------------------------------
    # Helpers shared with CashupService and FieldDispatchService
    # ------------------------------------------------------------------

    def _editable_shift_model(
        self,
        shift_date: date | str,
        employee_id: UUID,
        waiter_meta: WaiterMeta | None,
    ) -> ShiftModel:
        day = date_only_utc(shift_date)
        meta = waiter_meta or WaiterMeta()

        if self.session.get(EmployeeModel, employee_id) is None:
            raise EmployeeNotFoundError(str(employee_id))

        with LogContext.bind(employee_id=str(employee_id)):
            self.lock_slot(employee_id, day)
            latest = self._latest_shift(employee_id, day)

            if latest is None:
                return self._create_shift(employee_id, day, 1, meta)

            if self._cashup_id(latest) is not None:
                return self._create_shift(employee_id, day, latest.slot_seq + 1, meta, latest)

            if latest.closed_at is None:
                return latest

            self._reopen(latest)
            return latest

    def _latest_shift(self, employee_id: UUID, day: date) -> ShiftModel | None:
        return self.session.execute(
            select(ShiftModel)
            .where(ShiftModel.employee_id == employee_id)
            .where(ShiftModel.shift_date == day)
            .order_by(ShiftModel.slot_seq.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _cashup_id(self, shift: ShiftModel) -> UUID | None:
        # Query instead of the relationship: a cashup may have been
        # committed by another transaction after the shift was loaded.
        return self.session.scalar(
            select(CashupModel.id).where(CashupModel.shift_id == shift.id)
        )

    def _create_shift(
        self,
        employee_id: UUID,
        day: date,
        slot_seq: int,
        meta: WaiterMeta,
        previous: ShiftModel | None = None,
    ) -> ShiftModel:
        waiter_type = meta.waiter_type
        table_code = meta.table_code
        route = meta.route
        if previous is not None:
            if waiter_type is None and previous.waiter_type:
                waiter_type = previous.waiter_type
            if table_code is None:
                table_code = previous.table_code
            if route is None:
                route = previous.route

        shift = ShiftModel(
            employee_id=employee_id,
            shift_date=day,
            slot_seq=slot_seq,
            opened_at=self.clock.now(),
            waiter_type=getattr(waiter_type, "value", waiter_type),
            table_code=table_code,
            route=route,
            opening_float=meta.opening_float,
            notes=meta.notes,
        )
        self.session.add(shift)

        if previous is None:
            self.append_event(shift, ShiftEventType.OPENED)
        else:
            self.append_event(
                shift,
                ShiftEventType.OPENED_AFTER_SETTLEMENT,
                prior_state={"previous_slot_seq": previous.slot_seq},
                previous_shift_id=previous.id,
            )
        self.session.flush()

        logger.info(
            "shift_opened",
            extra={
                "shift_id": str(shift.id),
                "employee_id": str(employee_id),
                "shift_date": day,
                "slot_seq": slot_seq,
                "after_settlement": previous is not None,
            },
        )
        return shift

    def _reopen(self, shift: ShiftModel) -> None:
        prior_closed_at = shift.closed_at
        shift.closed_at = None
        self.append_event(
            shift,
            ShiftEventType.REOPENED,
            prior_state={
                "closed_at": prior_closed_at.isoformat() if prior_closed_at else None,
                "cash_remit": str(shift.cash_remit) if shift.cash_remit is not None else None,
            },
        )
        self._flush_shift(shift)

        logger.info(
            "shift_reopened",
            extra={
                "shift_id": str(shift.id),
                "employee_id": str(shift.employee_id),
                "shift_date": shift.shift_date,
                "previous_closed_at": prior_closed_at,
            },
        )

    def append_event(
        self,
        shift: ShiftModel,
        event_type: ShiftEventType,
        prior_state: dict[str, Any] | None = None,
        previous_shift_id: UUID | None = None,
    ) -> ShiftEventModel:
        event = ShiftEventModel(
            sequence=len(shift.events) + 1,
            event_type=event_type.value,
            occurred_at=self.clock.now(),
            prior_state=prior_state or {},
            previous_shift_id=previous_shift_id,
        )
        shift.events.append(event)
        return event

    def get_shift_model(self, shift_id: UUID) -> ShiftModel:
        shift = self.session.get(ShiftModel, shift_id)
        if shift is None:
            raise ShiftNotFoundError(str(shift_id))
        return shift

    def _check_not_settled(self, shift: ShiftModel) -> None:
        cashup_id = self._cashup_id(shift)
        if cashup_id is not None:
            raise ShiftSettledError(str(shift.id), str(cashup_id))

    def _flush_shift(self, shift: ShiftModel) -> None:
        try:
            self.session.flush()
        except StaleDataError as exc:
            logger.warning(
                "shift_version_conflict",
                extra={"shift_id": str(shift.id)},
            )
            raise OptimisticLockError("Shift", str(shift.id)) from exc
