"""
CashupService (``settlement_modules.cashup.service``).

Responsibility
--------------
* ``build_snapshot`` -- compute the snapshot a cashup would store, without
  writing anything.
* ``submit_cashup`` -- under the shift's slot lock: refuse a second cashup,
  close the shift if it is still open, store the snapshot and append a
  SETTLED event.

Snapshot layout (version 1)::

    meta        shiftId, shiftDate, employeeId, waiterType, openedAt,
                closedAt, createdAt, submittedBy, note, version
    summary     lineCount, expectedCash, cashRemit
    commission  amount, basis, dailySales | cashCollected, planId,
                planName, ratePct, matchedTier, issues

INSIDE (and KITCHEN) shifts settle on the shift's expected cash
(``dailySales``).  FIELD shifts settle on the cash of the returns recorded
while the shift was editable (``cashCollected``), so cash already paid out
by an earlier settled slot of the day is not counted again.  Money is
stored as 2dp strings.

Invariants enforced
-------------------
* One cashup per shift (``CashupAlreadyExistsError``).
* Preview and stored snapshot carry the same commission figures: both are
  produced by ``build_snapshot``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from settlement_kernel.domain.clock import Clock
from settlement_kernel.domain.dtos import CashupInfo, EmployeeType, ShiftEventType
from settlement_kernel.domain.values import money_str, round_money
from settlement_kernel.exceptions import CashupAlreadyExistsError
from settlement_kernel.logging_config import LogContext, get_logger
from settlement_kernel.models.shift import CashupModel, ShiftModel
from settlement_kernel.selectors.employee_selector import EmployeeSelector
from settlement_kernel.selectors.field_selector import FieldDispatchSelector
from settlement_kernel.selectors.shift_selector import ShiftSelector
from settlement_kernel.services.base import BaseService
from settlement_kernel.services.shift_service import ShiftService
from settlement_modules.commission.resolver import CommissionResolver

logger = get_logger("modules.cashup.service")

SNAPSHOT_VERSION = 1
BASIS_DAILY_SALES = "dailySales"
BASIS_CASH_COLLECTED = "cashCollected"


class CashupService(BaseService):
    """Cashup preview and submission."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        resolver: CommissionResolver | None = None,
        shifts: ShiftService | None = None,
    ):
        super().__init__(session, clock)
        self._shifts = shifts or ShiftService(session, self.clock)
        self._resolver = resolver or CommissionResolver(session, self.clock)
        self._shift_selector = ShiftSelector(session)
        self._field = FieldDispatchSelector(session)
        self._employees = EmployeeSelector(session)

    def build_snapshot(
        self,
        shift_id: UUID,
        submitted_by: str | None = None,
        note: str | None = None,
    ) -> dict[str, Any]:
        """Compute the snapshot for ``shift_id`` without persisting it."""
        shift = self._shifts.get_shift_model(shift_id)
        return self._snapshot(shift, submitted_by, note)

    def submit_cashup(
        self,
        shift_id: UUID,
        submitted_by: str | None = None,
        note: str | None = None,
        cash_remit: Decimal | None = None,
    ) -> CashupInfo:
        """
        Persist the shift's cashup.

        Raises:
            ShiftNotFoundError: Unknown shift.
            CashupAlreadyExistsError: The shift already has a cashup.
        """
        shift = self._shifts.get_shift_model(shift_id)
        with LogContext.bind(
            shift_id=shift.id, employee_id=shift.employee_id, actor_id=submitted_by
        ):
            self._shifts.lock_slot(shift.employee_id, shift.shift_date)
            self.session.refresh(shift)

            existing = self._shift_selector.cashup_for_shift(shift.id)
            if existing is not None:
                raise CashupAlreadyExistsError(str(shift.id), str(existing.id))

            if shift.closed_at is None:
                self._shifts.close_shift(shift.id, cash_remit=cash_remit)
            elif cash_remit is not None:
                shift.cash_remit = round_money(Decimal(cash_remit))

            snapshot = self._snapshot(shift, submitted_by, note)
            cashup = CashupModel(
                shift=shift,
                snapshot=snapshot,
                submitted_by=submitted_by,
                note=note,
            )
            self.session.add(cashup)
            self.session.flush()
            self._shifts.append_event(
                shift,
                ShiftEventType.SETTLED,
                prior_state={"cashup_id": str(cashup.id)},
            )
            self.session.flush()

            logger.info(
                "cashup_submitted",
                extra={
                    "cashup_id": str(cashup.id),
                    "shift_date": shift.shift_date,
                    "commission_amount": snapshot["commission"]["amount"],
                    "basis": snapshot["commission"]["basis"],
                },
            )
            return cashup.to_dto()

    def _snapshot(
        self,
        shift: ShiftModel,
        submitted_by: str | None,
        note: str | None,
    ) -> dict[str, Any]:
        lines = self._shift_selector.sale_lines(shift.id)
        expected_cash = self._shifts.compute_expected_cash(shift.id)
        waiter_type = self._waiter_type(shift)

        commission: dict[str, Any]
        if waiter_type == EmployeeType.FIELD:
            basis_amount = self._field.cash_collected_for_shift(shift.id)
            result = self._resolver.resolve_commission(shift.employee_id, basis_amount)
            commission = {"basis": BASIS_CASH_COLLECTED, "cashCollected": money_str(basis_amount)}
        else:
            result = self._resolver.resolve_commission(shift.employee_id, expected_cash)
            commission = {"basis": BASIS_DAILY_SALES, "dailySales": money_str(expected_cash)}

        commission.update({
            "amount": money_str(result.commission),
            "planId": str(result.plan_id) if result.plan_id else None,
            "planName": result.plan_name,
            "ratePct": str(result.rate_pct) if result.rate_pct is not None else None,
            "matchedTier": result.matched_tier.as_dict() if result.matched_tier else None,
            "issues": [i.as_dict() for i in result.issues],
        })

        return {
            "meta": {
                "version": SNAPSHOT_VERSION,
                "shiftId": str(shift.id),
                "shiftDate": shift.shift_date.isoformat(),
                "employeeId": str(shift.employee_id),
                "waiterType": waiter_type.value if waiter_type else None,
                "openedAt": _iso(shift.opened_at),
                "closedAt": _iso(shift.closed_at),
                "createdAt": _iso(self.clock.now()),
                "submittedBy": submitted_by,
                "note": note,
            },
            "summary": {
                "lineCount": len(lines),
                "expectedCash": money_str(expected_cash),
                "cashRemit": money_str(shift.cash_remit),
            },
            "commission": commission,
        }

    def _waiter_type(self, shift: ShiftModel) -> EmployeeType | None:
        if shift.waiter_type:
            return EmployeeType(shift.waiter_type)
        employee = self._employees.get(shift.employee_id)
        return employee.employee_type if employee is not None else None


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None
