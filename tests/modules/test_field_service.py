"""
Tests for FieldDispatchService.

Covers:
- Dispatch and return validation
- Each write goes through the waiter's editable shift
- Settlement on sold amount, with NEGATIVE_SOLD_QTY flagged not clamped
- Daily per-waiter summaries
- Flat default brackets stand in for rate-style or missing plans
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from settlement_config.schema import SettlementConfig
from settlement_kernel.domain.dtos import AuditFlagKind, CommissionRole, EmployeeType, ShiftState
from settlement_kernel.exceptions import (
    DispatchAlreadyReturnedError,
    DispatchNotFoundError,
    EmployeeNotFoundError,
    InvalidFieldDispatchError,
    InvalidFieldReturnError,
)
from settlement_kernel.selectors.shift_selector import ShiftSelector
from settlement_kernel.services.audit_flag_service import AuditFlagService
from settlement_kernel.services.shift_service import ShiftService
from settlement_modules.cashup.service import CashupService
from settlement_modules.field import FieldDispatchService


@pytest.fixture
def service(session, clock) -> FieldDispatchService:
    return FieldDispatchService(session, clock)


@pytest.fixture
def waiter(make_employee, field_plan):
    return make_employee("Baraka", EmployeeType.FIELD)


class TestRecordDispatch:

    def test_records_dispatch_and_opens_field_shift(self, session, service, waiter, shift_date):
        dispatch = service.record_dispatch(
            waiter.id, "SAMOSA", 10, "50", shift_date, route="Kibera"
        )

        assert dispatch.qty_dispatched == Decimal("10")
        assert dispatch.price_each == Decimal("50")
        assert dispatch.field_return is None
        shifts = ShiftSelector(session).shifts_for_day(waiter.id, shift_date)
        assert len(shifts) == 1
        assert shifts[0].waiter_type == EmployeeType.FIELD
        assert shifts[0].route == "Kibera"
        assert shifts[0].state == ShiftState.OPEN

    def test_accepts_iso_date_string(self, service, waiter):
        dispatch = service.record_dispatch(waiter.id, "SAMOSA", 1, 50, "2025-11-14")
        assert dispatch.dispatch_date == date(2025, 11, 14)

    @pytest.mark.parametrize(
        "qty, price",
        [(0, 50), (-1, 50), ("lots", 50), (5, -1), (5, "free")],
    )
    def test_rejects_bad_quantities(self, service, waiter, shift_date, qty, price):
        with pytest.raises(InvalidFieldDispatchError):
            service.record_dispatch(waiter.id, "SAMOSA", qty, price, shift_date)

    def test_rejects_blank_item(self, service, waiter, shift_date):
        with pytest.raises(InvalidFieldDispatchError):
            service.record_dispatch(waiter.id, "", 1, 50, shift_date)

    def test_unknown_waiter(self, service, shift_date):
        with pytest.raises(EmployeeNotFoundError):
            service.record_dispatch(uuid4(), "SAMOSA", 1, 50, shift_date)


class TestRecordReturn:

    def test_records_return(self, service, waiter, shift_date, clock):
        dispatch = service.record_dispatch(waiter.id, "SAMOSA", 10, 50, shift_date)

        field_return = service.record_return(dispatch.id, 3, loss_qty=0, cash_collected=350)

        assert field_return.dispatch_id == dispatch.id
        assert field_return.qty_returned == Decimal("3")
        assert field_return.cash_collected == Decimal("350.00")
        assert field_return.returned_on == clock.today()

    def test_second_return_is_refused(self, service, waiter, shift_date):
        dispatch = service.record_dispatch(waiter.id, "SAMOSA", 10, 50, shift_date)
        service.record_return(dispatch.id, 10)

        with pytest.raises(DispatchAlreadyReturnedError):
            service.record_return(dispatch.id, 0)

    def test_returned_plus_loss_cannot_exceed_dispatched(self, service, waiter, shift_date):
        dispatch = service.record_dispatch(waiter.id, "SAMOSA", 10, 50, shift_date)

        with pytest.raises(InvalidFieldReturnError) as exc_info:
            service.record_return(dispatch.id, 8, loss_qty=3)
        assert exc_info.value.details["lossQty"] == "3"

    def test_cash_cannot_exceed_sold_amount(self, service, waiter, shift_date):
        dispatch = service.record_dispatch(waiter.id, "SAMOSA", 10, 50, shift_date)

        with pytest.raises(InvalidFieldReturnError) as exc_info:
            service.record_return(dispatch.id, 3, cash_collected=351)
        assert exc_info.value.details["soldAmount"] == "350.00"

    def test_negative_values_are_refused(self, service, waiter, shift_date):
        dispatch = service.record_dispatch(waiter.id, "SAMOSA", 10, 50, shift_date)

        with pytest.raises(InvalidFieldReturnError):
            service.record_return(dispatch.id, -1)

    def test_unknown_dispatch(self, service):
        with pytest.raises(DispatchNotFoundError):
            service.record_return(uuid4(), 0)

    def test_return_reopens_closed_shift(self, session, clock, service, waiter, shift_date):
        dispatch = service.record_dispatch(waiter.id, "SAMOSA", 10, 50, shift_date)
        shift = ShiftSelector(session).shifts_for_day(waiter.id, shift_date)[0]
        ShiftService(session, clock).close_shift(shift.id)

        service.record_return(dispatch.id, 3, cash_collected=350)

        assert ShiftSelector(session).get(shift.id).state == ShiftState.OPEN

    def test_return_after_settlement_opens_new_shift(
        self, session, clock, service, waiter, shift_date
    ):
        dispatch = service.record_dispatch(waiter.id, "SAMOSA", 10, 50, shift_date)
        shift = ShiftSelector(session).shifts_for_day(waiter.id, shift_date)[0]
        CashupService(session, clock).submit_cashup(shift.id)

        service.record_return(dispatch.id, 3, cash_collected=350)

        shifts = ShiftSelector(session).shifts_for_day(waiter.id, shift_date)
        assert [s.state for s in shifts] == [ShiftState.SETTLED, ShiftState.OPEN]
        assert shifts[1].waiter_type == EmployeeType.FIELD

    def test_return_belongs_to_the_editable_shift(self, session, clock, service, waiter, shift_date):
        dispatch = service.record_dispatch(waiter.id, "SAMOSA", 10, 50, shift_date)
        first = ShiftSelector(session).shifts_for_day(waiter.id, shift_date)[0]
        CashupService(session, clock).submit_cashup(first.id)

        field_return = service.record_return(dispatch.id, 3, cash_collected=350)

        second = ShiftSelector(session).shifts_for_day(waiter.id, shift_date)[1]
        assert field_return.shift_id == second.id


class TestSettleFieldDispatch:

    def test_commission_on_sold_amount(self, service, waiter, field_plan, shift_date):
        dispatch = service.record_dispatch(waiter.id, "SAMOSA", 10, 50, shift_date)
        service.record_return(dispatch.id, 3, cash_collected=300)

        settlement = service.settle_field_dispatch(dispatch.id)

        assert settlement.gross_sales == Decimal("500.00")
        assert settlement.sold_qty == Decimal("7")
        assert settlement.sold_amount == Decimal("350.00")
        assert settlement.cash_collected == Decimal("300.00")
        assert settlement.commission == Decimal("100.00")
        assert settlement.basis == "soldAmount"
        assert settlement.plan_id == field_plan.id
        assert settlement.plan_name == "Field Test Brackets"
        assert settlement.issues == ()

    def test_open_dispatch_has_no_commission(self, service, waiter, shift_date):
        dispatch = service.record_dispatch(waiter.id, "SAMOSA", 10, 50, shift_date)

        settlement = service.settle_field_dispatch(dispatch.id)

        assert settlement.returned is False
        assert settlement.commission is None
        assert settlement.gross_sales == Decimal("500.00")

    def test_negative_sold_qty_is_flagged(
        self, session, clock, service, waiter, shift_date, make_dispatch
    ):
        dispatch = make_dispatch(waiter.id, shift_date, 10, 50, returned=12)

        settlement = service.settle_field_dispatch(dispatch.id)

        assert settlement.negative_sold_qty is True
        assert settlement.sold_qty == Decimal("-2")
        assert settlement.commission == Decimal("0.00")
        assert "NEGATIVE_SOLD_QTY" in [i.code for i in settlement.issues]
        flags = AuditFlagService(session, clock).list_flags(AuditFlagKind.NEGATIVE_SOLD_QTY)
        assert [(f.entity_type, f.entity_id) for f in flags] == [("FieldDispatch", str(dispatch.id))]

    def test_unknown_dispatch(self, service):
        with pytest.raises(DispatchNotFoundError):
            service.settle_field_dispatch(uuid4())


class TestDailySummary:

    def test_totals_per_waiter(self, service, make_employee, field_plan, shift_date, make_dispatch):
        first = make_employee("A", EmployeeType.FIELD)
        second = make_employee("B", EmployeeType.FIELD)
        make_dispatch(first.id, shift_date, 10, 50, returned=3, cash=350)
        make_dispatch(first.id, shift_date, 4, 50)
        make_dispatch(second.id, shift_date, 12, 50, returned=0, cash=600)
        make_dispatch(second.id, date(2025, 11, 13), 1, 50, returned=0, cash=50)

        summaries = service.daily_summary(shift_date)

        assert [s.waiter_id for s in summaries] == sorted([first.id, second.id], key=str)
        by_waiter = {s.waiter_id: s for s in summaries}
        a = by_waiter[first.id]
        assert (a.dispatch_count, a.returned_count) == (2, 1)
        assert a.gross_sales == Decimal("700.00")
        assert a.sold_amount == Decimal("350.00")
        assert a.cash_remitted == Decimal("350.00")
        assert a.commission == Decimal("100.00")
        b = by_waiter[second.id]
        assert b.sold_amount == Decimal("600.00")
        assert b.commission == Decimal("200.00")

    def test_filter_by_waiter(self, service, waiter, make_employee, shift_date, make_dispatch):
        other = make_employee("Other", EmployeeType.FIELD)
        make_dispatch(waiter.id, shift_date, 1, 50, returned=0, cash=50)
        make_dispatch(other.id, shift_date, 1, 50, returned=0, cash=50)

        summaries = service.daily_summary(shift_date, waiter_id=waiter.id)

        assert [s.waiter_id for s in summaries] == [waiter.id]
        assert summaries[0].as_dict()["commission"] == "0.00"

    def test_counts_negative_sold(self, service, waiter, shift_date, make_dispatch):
        make_dispatch(waiter.id, shift_date, 10, 50, returned=11)

        [summary] = service.daily_summary(shift_date)

        assert summary.negative_sold_count == 1
        assert summary.sold_amount == Decimal("-50.00")

    def test_empty_day(self, service):
        assert service.daily_summary(date(2030, 1, 1)) == []


class TestDispatchBracketFallback:
    """Dispatch commission is always a flat-tier lookup."""

    def _settle(self, service, waiter_id, shift_date):
        dispatch = service.record_dispatch(waiter_id, "SAMOSA", 10, 50, shift_date)
        service.record_return(dispatch.id, 2, loss_qty=1)
        return service.settle_field_dispatch(dispatch.id)

    def test_rate_style_plan_falls_back_to_default_brackets(
        self, service, make_employee, make_plan, shift_date
    ):
        rate_plan = make_plan(
            "Field Rate", CommissionRole.FIELD, [{"min": 0, "ratePct": 10, "flat": 0}]
        )
        waiter = make_employee("Rate Waiter", EmployeeType.FIELD)

        settlement = self._settle(service, waiter.id, shift_date)

        assert settlement.sold_amount == Decimal("350.00")
        assert settlement.commission == Decimal("100.00")
        assert settlement.plan_id is None
        assert settlement.plan_name == "Field Default Brackets"
        [fallback] = [i for i in settlement.issues if i.code == "FIELD_FALLBACK_BRACKETS"]
        assert fallback.context["reason"] == "RATE_STYLE_PLAN"
        assert fallback.context["planId"] == str(rate_plan.id)

    def test_missing_plan_is_reported_and_falls_back(
        self, service, make_employee, shift_date, captured_logs
    ):
        waiter = make_employee("Planless", EmployeeType.FIELD)

        settlement = self._settle(service, waiter.id, shift_date)

        codes = [i.code for i in settlement.issues]
        assert codes[:2] == ["PLAN_NOT_FOUND", "FIELD_FALLBACK_BRACKETS"]
        assert settlement.commission == Decimal("100.00")
        assert any(r["message"] == "field_fallback_brackets" for r in captured_logs())

    def test_no_configured_brackets_pays_zero_with_issues(
        self, session, clock, make_employee, shift_date
    ):
        service = FieldDispatchService(session, clock, config=SettlementConfig())
        waiter = make_employee("Planless", EmployeeType.FIELD)

        settlement = self._settle(service, waiter.id, shift_date)

        assert settlement.commission == Decimal("0.00")
        assert settlement.plan_name is None
        [fallback] = [i for i in settlement.issues if i.code == "FIELD_FALLBACK_BRACKETS"]
        assert fallback.context["fallback"] is None
        assert "PLAN_NOT_FOUND" in [i.code for i in settlement.issues]
