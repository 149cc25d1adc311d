"""
FieldDispatchService (``settlement_modules.field.service``).

Responsibility
--------------
* ``record_dispatch`` / ``record_return`` -- validated writes, each routed
  through the waiter's editable shift for the dispatch day.  A return is
  tied to that shift, which is the one whose cashup settles its cash.
* ``settle_field_dispatch`` -- sold quantity, sold amount and commission of
  a persisted dispatch (commission on sold amount).  Dispatch commission is
  always a flat-tier lookup: when the waiter's plan is rate-style, missing
  or ambiguous, the configured FIELD default brackets are used instead and
  a FIELD_FALLBACK_BRACKETS issue says why.
* ``daily_summary`` -- per-waiter totals for a day.

Invariants enforced
-------------------
* Quantities and cash are non-negative; ``qty_returned + loss_qty <=
  qty_dispatched``; ``cash_collected <= sold amount``.
* At most one return per dispatch.
* A negative sold quantity found while settling is reported and flagged
  (NEGATIVE_SOLD_QTY audit flag), never clamped.

Failure modes
-------------
* ``EmployeeNotFoundError`` / ``DispatchNotFoundError`` for unknown ids.
* ``InvalidFieldDispatchError`` / ``InvalidFieldReturnError`` on bad input.
* ``DispatchAlreadyReturnedError`` for a second return.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from settlement_config import get_active_config
from settlement_config.schema import SettlementConfig
from settlement_engines.brackets import BracketKind, BracketTable
from settlement_engines.field_settlement import FieldSettlement, settle_field_dispatch
from settlement_kernel.domain.clock import Clock
from settlement_kernel.domain.dates import date_only_utc
from settlement_kernel.domain.dtos import (
    AuditFlagKind,
    CommissionRole,
    EmployeeType,
    FieldDispatchInfo,
    FieldReturnInfo,
    WaiterMeta,
)
from settlement_kernel.domain.values import ZERO, DataIssue, parse_amount, round_money
from settlement_kernel.exceptions import (
    DispatchAlreadyReturnedError,
    DispatchNotFoundError,
    InvalidFieldDispatchError,
    InvalidFieldReturnError,
)
from settlement_kernel.logging_config import get_logger
from settlement_kernel.models.field_dispatch import FieldDispatchModel, FieldReturnModel
from settlement_kernel.selectors.field_selector import FieldDispatchSelector
from settlement_kernel.services.audit_flag_service import AuditFlagService
from settlement_kernel.services.base import BaseService
from settlement_kernel.services.shift_service import ShiftService
from settlement_modules.commission.models import PlanSelection
from settlement_modules.commission.resolver import CommissionResolver
from settlement_modules.field.models import FieldDailySummary

logger = get_logger("modules.field.service")


def _quantity(value: Any, name: str, error: type) -> Decimal:
    parsed = parse_amount(value)
    if not parsed.is_finite():
        raise error(f"{name} must be a number")
    if parsed < ZERO:
        raise error(f"{name} must be non-negative")
    return parsed


class FieldDispatchService(BaseService):
    """Field dispatch recording and settlement."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        resolver: CommissionResolver | None = None,
        audit: AuditFlagService | None = None,
        shifts: ShiftService | None = None,
        config: SettlementConfig | None = None,
    ):
        super().__init__(session, clock)
        self._config = config or get_active_config()
        self._audit = audit or AuditFlagService(session, self.clock)
        self._resolver = resolver or CommissionResolver(session, self.clock, self._audit)
        self._shifts = shifts or ShiftService(session, self.clock)
        self._selector = FieldDispatchSelector(session)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def record_dispatch(
        self,
        waiter_id: UUID,
        item_code: str,
        qty_dispatched: Any,
        price_each: Any,
        dispatch_date: date | str,
        route: str | None = None,
    ) -> FieldDispatchInfo:
        qty = _quantity(qty_dispatched, "qty_dispatched", InvalidFieldDispatchError)
        if qty == ZERO:
            raise InvalidFieldDispatchError("qty_dispatched must be positive")
        price = _quantity(price_each, "price_each", InvalidFieldDispatchError)
        if not item_code:
            raise InvalidFieldDispatchError("item_code must be non-empty")
        day = date_only_utc(dispatch_date)

        shift = self._shifts.get_or_create_editable_shift(
            day, waiter_id, WaiterMeta(waiter_type=EmployeeType.FIELD, route=route)
        )

        dispatch = FieldDispatchModel(
            waiter_id=waiter_id,
            item_code=item_code,
            qty_dispatched=qty,
            price_each=price,
            dispatch_date=day,
        )
        self.session.add(dispatch)
        self.session.flush()

        logger.info(
            "field_dispatch_recorded",
            extra={
                "dispatch_id": str(dispatch.id),
                "waiter_id": str(waiter_id),
                "shift_id": str(shift.id),
                "item_code": item_code,
                "qty_dispatched": qty,
                "price_each": price,
            },
        )
        return dispatch.to_dto()

    def record_return(
        self,
        dispatch_id: UUID,
        qty_returned: Any,
        loss_qty: Any = 0,
        cash_collected: Any = 0,
        note: str | None = None,
    ) -> FieldReturnInfo:
        dispatch = self._get_dispatch(dispatch_id)
        if dispatch.field_return is not None:
            raise DispatchAlreadyReturnedError(str(dispatch.id))

        returned = _quantity(qty_returned, "qty_returned", InvalidFieldReturnError)
        loss = _quantity(loss_qty, "loss_qty", InvalidFieldReturnError)
        cash = _quantity(cash_collected, "cash_collected", InvalidFieldReturnError)

        if returned + loss > dispatch.qty_dispatched:
            raise InvalidFieldReturnError(
                "qty_returned + loss_qty exceeds qty_dispatched",
                {
                    "qtyDispatched": str(dispatch.qty_dispatched),
                    "qtyReturned": str(returned),
                    "lossQty": str(loss),
                },
            )
        sold_qty = dispatch.qty_dispatched - returned - loss
        sold_amount = round_money(sold_qty * dispatch.price_each)
        if cash > sold_amount:
            raise InvalidFieldReturnError(
                "cash_collected cannot exceed sold amount",
                {
                    "soldQty": str(sold_qty),
                    "soldAmount": str(sold_amount),
                    "cashCollected": str(cash),
                },
            )

        shift = self._shifts.get_or_create_editable_shift(
            dispatch.dispatch_date,
            dispatch.waiter_id,
            WaiterMeta(waiter_type=EmployeeType.FIELD),
        )

        field_return = FieldReturnModel(
            dispatch=dispatch,
            shift_id=shift.id,
            qty_returned=returned,
            loss_qty=loss,
            cash_collected=round_money(cash),
            returned_on=self.clock.today(),
            note=note,
        )
        self.session.add(field_return)
        self.session.flush()

        logger.info(
            "field_return_recorded",
            extra={
                "dispatch_id": str(dispatch.id),
                "waiter_id": str(dispatch.waiter_id),
                "shift_id": str(shift.id),
                "sold_qty": sold_qty,
                "sold_amount": sold_amount,
                "cash_collected": field_return.cash_collected,
            },
        )
        return field_return.to_dto()

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def settle_field_dispatch(self, dispatch_id: UUID) -> FieldSettlement:
        """Settle a persisted dispatch; flags a negative sold quantity."""
        dispatch = self._selector.get(dispatch_id)
        if dispatch is None:
            raise DispatchNotFoundError(str(dispatch_id))
        _, selection = self._resolver.plan_for_employee(dispatch.waiter_id)
        return self._settle(dispatch, *self._flat_selection(selection))

    def daily_summary(self, day: date | str, waiter_id: UUID | None = None) -> list[FieldDailySummary]:
        """Per-waiter totals for dispatches dated ``day``, ordered by waiter id."""
        day = date_only_utc(day)
        by_waiter: dict[UUID, list[FieldDispatchInfo]] = {}
        for dispatch in self._selector.dispatches_for_day(day, waiter_id):
            by_waiter.setdefault(dispatch.waiter_id, []).append(dispatch)

        summaries = []
        for waiter, dispatches in sorted(by_waiter.items(), key=lambda kv: str(kv[0])):
            _, resolved = self._resolver.plan_for_employee(waiter)
            selection, plan_name = self._flat_selection(resolved)
            gross = sold = cash = commission = ZERO
            returned = negative = 0
            for dispatch in dispatches:
                settlement = self._settle(dispatch, selection, plan_name)
                gross += settlement.gross_sales
                if settlement.returned:
                    returned += 1
                    sold += settlement.sold_amount
                    cash += settlement.cash_collected or ZERO
                    commission += settlement.commission
                    negative += int(settlement.negative_sold_qty)
            summaries.append(FieldDailySummary(
                waiter_id=waiter,
                day=day,
                dispatch_count=len(dispatches),
                returned_count=returned,
                gross_sales=round_money(gross),
                sold_amount=round_money(sold),
                cash_remitted=round_money(cash),
                commission=round_money(commission),
                negative_sold_count=negative,
            ))
        return summaries

    def _flat_selection(self, selection: PlanSelection) -> tuple[PlanSelection, str | None]:
        """
        The selected plan when it is flat, else the configured FIELD brackets.

        Returns the selection to settle with and the name of the table used.
        """
        if selection.table.kind == BracketKind.FLAT:
            return selection, selection.plan.name if selection.plan else None

        seed = self._config.plan_for_role(CommissionRole.FIELD.value)
        table = BracketTable.parse(list(seed.brackets)) if seed is not None else BracketTable.empty()
        if table.kind != BracketKind.FLAT:
            table = BracketTable.empty(*table.issues)
        reason = "RATE_STYLE_PLAN" if selection.table.kind == BracketKind.RATE_FLAT else "NO_USABLE_PLAN"
        source = seed.name if seed is not None and not table.is_empty else None
        fallback = DataIssue(
            code="FIELD_FALLBACK_BRACKETS",
            message="Dispatch settled on the configured FIELD default brackets",
            context={
                "reason": reason,
                "planId": str(selection.plan_id) if selection.plan_id else None,
                "fallback": source,
            },
        )
        logger.warning(
            "field_fallback_brackets",
            extra={
                "reason": reason,
                "plan_id": fallback.context["planId"],
                "fallback_tiers": len(table.tiers),
            },
        )
        flat = PlanSelection(
            plan=None,
            table=table,
            issues=selection.issues + (fallback,) + table.issues,
        )
        return flat, source

    def _settle(
        self,
        dispatch: FieldDispatchInfo,
        selection: PlanSelection,
        plan_name: str | None,
    ) -> FieldSettlement:
        ret = dispatch.field_return
        settlement = settle_field_dispatch(
            qty_dispatched=dispatch.qty_dispatched,
            price_each=dispatch.price_each,
            table=selection.table,
            plan_id=selection.plan_id,
            plan_name=plan_name,
            issues=selection.issues,
            qty_returned=ret.qty_returned if ret else None,
            loss_qty=ret.loss_qty if ret else None,
            cash_collected=ret.cash_collected if ret else None,
        )
        if settlement.negative_sold_qty:
            self._audit.raise_flag(
                AuditFlagKind.NEGATIVE_SOLD_QTY,
                entity_type="FieldDispatch",
                entity_id=dispatch.id,
                detail={
                    "waiterId": str(dispatch.waiter_id),
                    "soldQty": str(settlement.sold_qty),
                    "qtyDispatched": str(dispatch.qty_dispatched),
                },
            )
        return settlement

    def _get_dispatch(self, dispatch_id: UUID) -> FieldDispatchModel:
        dispatch = self.session.get(FieldDispatchModel, dispatch_id)
        if dispatch is None:
            raise DispatchNotFoundError(str(dispatch_id))
        return dispatch
