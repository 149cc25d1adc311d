"""
Tests for CashupService.

Covers:
- INSIDE shifts settle on daily sales, FIELD shifts on cash collected
- A second settled FIELD shift on the same day counts only its own returns
- Submitting closes an open shift and appends a SETTLED event
- A second cashup for the same shift is refused
- The preview carries the same commission figures as the stored snapshot
"""

from decimal import Decimal

import pytest

from settlement_kernel.domain.dtos import EmployeeType, ShiftEventType, ShiftState, WaiterMeta
from settlement_kernel.exceptions import CashupAlreadyExistsError, ShiftNotFoundError
from settlement_kernel.selectors.shift_selector import ShiftSelector
from settlement_kernel.services.shift_service import ShiftService
from settlement_modules.cashup.service import CashupService
from settlement_modules.field import FieldDispatchService
from settlement_modules.payroll import PayrollService


@pytest.fixture
def shifts(session, clock) -> ShiftService:
    return ShiftService(session, clock)


@pytest.fixture
def cashups(session, clock, shifts) -> CashupService:
    return CashupService(session, clock, shifts=shifts)


@pytest.fixture
def inside_waiter(make_employee, inside_plan):
    return make_employee("Amina", EmployeeType.INSIDE)


@pytest.fixture
def field_waiter(make_employee, field_plan):
    return make_employee("Baraka", EmployeeType.FIELD)


class TestInsideCashup:

    def test_commission_on_daily_sales(self, cashups, shifts, inside_waiter, shift_date):
        shift, _ = shifts.add_sale_line(shift_date, inside_waiter.id, "CHAI", Decimal("10"), Decimal("250"))
        shifts.add_sale_line(shift_date, inside_waiter.id, "MANDAZI", Decimal("20"), Decimal("100"))

        cashup = cashups.submit_cashup(shift.id, submitted_by="manager")

        commission = cashup.snapshot["commission"]
        assert commission["basis"] == "dailySales"
        assert commission["dailySales"] == "4500.00"
        assert commission["amount"] == "150.00"
        assert cashup.snapshot["summary"]["lineCount"] == 2
        assert cashup.snapshot["meta"]["waiterType"] == "INSIDE"
        assert cashup.submitted_by == "manager"

    def test_voided_lines_do_not_count(self, cashups, shifts, inside_waiter, shift_date):
        shift, _ = shifts.add_sale_line(shift_date, inside_waiter.id, "CHAI", Decimal("50"), Decimal("100"))
        shifts.add_sale_line(
            shift_date, inside_waiter.id, "CHAI", Decimal("10"), Decimal("100"), is_void=True
        )

        snapshot = cashups.build_snapshot(shift.id)

        assert snapshot["commission"]["dailySales"] == "5000.00"
        assert snapshot["commission"]["amount"] == "250.00"

    def test_below_first_tier_is_zero(self, cashups, shifts, inside_waiter, shift_date):
        shift, _ = shifts.add_sale_line(shift_date, inside_waiter.id, "CHAI", Decimal("1"), Decimal("100"))

        cashup = cashups.submit_cashup(shift.id)

        assert cashup.snapshot["commission"]["amount"] == "0.00"
        assert cashup.snapshot["commission"]["matchedTier"] is None


class TestFieldCashup:

    def test_commission_on_cash_collected(
        self, cashups, shifts, field_waiter, shift_date, make_dispatch
    ):
        shift = shifts.get_or_create_editable_shift(
            shift_date, field_waiter.id, WaiterMeta(waiter_type=EmployeeType.FIELD, route="Kibera")
        )
        make_dispatch(field_waiter.id, shift_date, 10, 50, returned=3, cash=350)
        make_dispatch(field_waiter.id, shift_date, 4, 50, returned=0, cash=200)

        cashup = cashups.submit_cashup(shift.id)

        commission = cashup.snapshot["commission"]
        assert commission["basis"] == "cashCollected"
        assert commission["cashCollected"] == "550.00"
        assert commission["amount"] == "200.00"
        assert cashup.snapshot["meta"]["waiterType"] == "FIELD"

    def test_other_days_are_ignored(self, cashups, shifts, field_waiter, shift_date, make_dispatch):
        shift = shifts.get_or_create_editable_shift(
            shift_date, field_waiter.id, WaiterMeta(waiter_type=EmployeeType.FIELD)
        )
        make_dispatch(field_waiter.id, shift_date.replace(day=13), 10, 50, returned=0, cash=500)

        snapshot = cashups.build_snapshot(shift.id)

        assert snapshot["commission"]["cashCollected"] == "0.00"
        assert snapshot["commission"]["amount"] == "0.00"

    def test_same_day_second_shift_counts_only_its_own_cash(
        self, session, clock, cashups, field_waiter, shift_date
    ):
        field = FieldDispatchService(session, clock)
        morning = field.record_dispatch(field_waiter.id, "SAMOSA", 10, 50, shift_date)
        field.record_return(morning.id, 0, cash_collected=500)
        first_shift = ShiftSelector(session).shifts_for_day(field_waiter.id, shift_date)[0]
        first = cashups.submit_cashup(first_shift.id)

        evening = field.record_dispatch(field_waiter.id, "SAMOSA", 1, 10, shift_date)
        field.record_return(evening.id, 0, cash_collected=0)
        shifts = ShiftSelector(session).shifts_for_day(field_waiter.id, shift_date)
        assert len(shifts) == 2
        second = cashups.submit_cashup(shifts[1].id)

        assert first.snapshot["commission"]["cashCollected"] == "500.00"
        assert first.snapshot["commission"]["amount"] == "100.00"
        assert second.snapshot["commission"]["cashCollected"] == "0.00"
        assert second.snapshot["commission"]["amount"] == "0.00"
        payroll = PayrollService(session, clock).preview_payroll(shift_date.year, shift_date.month)
        assert payroll.line_for(field_waiter.id).gross == Decimal("100.00")

    def test_cash_returned_after_settlement_goes_to_next_shift(
        self, session, clock, cashups, field_waiter, shift_date
    ):
        field = FieldDispatchService(session, clock)
        dispatch = field.record_dispatch(field_waiter.id, "SAMOSA", 10, 50, shift_date)
        first_shift = ShiftSelector(session).shifts_for_day(field_waiter.id, shift_date)[0]
        first = cashups.submit_cashup(first_shift.id)

        field.record_return(dispatch.id, 3, cash_collected=350)
        second_shift = ShiftSelector(session).shifts_for_day(field_waiter.id, shift_date)[1]
        second = cashups.submit_cashup(second_shift.id)

        assert first.snapshot["commission"]["cashCollected"] == "0.00"
        assert second.snapshot["commission"]["cashCollected"] == "350.00"
        assert second.snapshot["commission"]["amount"] == "100.00"

    def test_employee_type_used_when_shift_has_none(
        self, cashups, shifts, field_waiter, shift_date, make_dispatch
    ):
        shift = shifts.get_or_create_editable_shift(shift_date, field_waiter.id)
        make_dispatch(field_waiter.id, shift_date, 10, 50, returned=0, cash=500)

        snapshot = cashups.build_snapshot(shift.id)

        assert snapshot["commission"]["basis"] == "cashCollected"
        assert snapshot["commission"]["amount"] == "100.00"


class TestSubmission:

    def test_closes_open_shift_and_records_settled_event(
        self, session, cashups, shifts, inside_waiter, shift_date
    ):
        shift, _ = shifts.add_sale_line(shift_date, inside_waiter.id, "CHAI", Decimal("1"), Decimal("100"))

        cashup = cashups.submit_cashup(shift.id, cash_remit=Decimal("100"))

        settled = ShiftSelector(session).get(shift.id)
        assert settled.state == ShiftState.SETTLED
        assert settled.cashup_id == cashup.id
        assert settled.cash_remit == Decimal("100.00")
        assert [e.event_type for e in settled.events] == [
            ShiftEventType.OPENED,
            ShiftEventType.CLOSED,
            ShiftEventType.SETTLED,
        ]
        assert settled.events[-1].prior_state == {"cashup_id": str(cashup.id)}

    def test_second_cashup_is_refused(self, cashups, shifts, inside_waiter, shift_date):
        shift, _ = shifts.add_sale_line(shift_date, inside_waiter.id, "CHAI", Decimal("1"), Decimal("100"))
        first = cashups.submit_cashup(shift.id)

        with pytest.raises(CashupAlreadyExistsError) as exc_info:
            cashups.submit_cashup(shift.id)
        assert exc_info.value.cashup_id == str(first.id)

    def test_unknown_shift(self, cashups):
        from uuid import uuid4

        with pytest.raises(ShiftNotFoundError):
            cashups.submit_cashup(uuid4())

    def test_next_sale_after_settlement_opens_new_shift(
        self, cashups, shifts, inside_waiter, shift_date
    ):
        shift, _ = shifts.add_sale_line(shift_date, inside_waiter.id, "CHAI", Decimal("1"), Decimal("100"))
        cashups.submit_cashup(shift.id)

        next_shift, _ = shifts.add_sale_line(shift_date, inside_waiter.id, "CHAI", Decimal("1"), Decimal("100"))

        assert next_shift.id != shift.id
        assert next_shift.state == ShiftState.OPEN
        assert next_shift.events[0].event_type == ShiftEventType.OPENED_AFTER_SETTLEMENT

    def test_preview_matches_stored_commission(self, cashups, shifts, inside_waiter, shift_date):
        shift, _ = shifts.add_sale_line(shift_date, inside_waiter.id, "CHAI", Decimal("60"), Decimal("100"))
        shifts.close_shift(shift.id)

        preview = cashups.build_snapshot(shift.id)
        cashup = cashups.submit_cashup(shift.id)

        assert preview["commission"] == cashup.snapshot["commission"]
        assert preview["summary"] == cashup.snapshot["summary"]

    def test_logs_submission(self, cashups, shifts, inside_waiter, shift_date, captured_logs):
        shift, _ = shifts.add_sale_line(shift_date, inside_waiter.id, "CHAI", Decimal("1"), Decimal("100"))

        cashups.submit_cashup(shift.id)

        records = [r for r in captured_logs() if r["message"] == "cashup_submitted"]
        assert len(records) == 1
        assert records[0]["shift_id"] == str(shift.id)
