"""
Tests for the field settlement engine.

Covers:
- Open dispatches (no return) report gross only
- Sold quantity / sold amount / commission on sold amount
- Negative sold quantity is reported, not clamped
- Rate-style tables are refused; plan context is carried onto the result
"""

from decimal import Decimal
from uuid import uuid4

from settlement_engines.brackets import BracketTable
from settlement_engines.field_settlement import BASIS_SOLD_AMOUNT, settle_field_dispatch
from settlement_kernel.domain.values import DataIssue
from tests.helpers import FLAT_BRACKETS, RATE_BRACKETS


class TestFieldSettlement:

    def setup_method(self):
        self.table = BracketTable.parse(FLAT_BRACKETS)

    def test_open_dispatch_has_no_commission(self):
        result = settle_field_dispatch(
            qty_dispatched=Decimal("10"), price_each=Decimal("50"), table=self.table,
        )

        assert result.returned is False
        assert result.gross_sales == Decimal("500.00")
        assert result.commission is None
        assert result.sold_amount is None

    def test_returned_dispatch_settles_on_sold_amount(self):
        """10 @ 50, 2 returned, 1 lost: 7 sold for 350, commission from 350."""
        result = settle_field_dispatch(
            qty_dispatched=Decimal("10"),
            price_each=Decimal("50"),
            qty_returned=Decimal("2"),
            loss_qty=Decimal("1"),
            cash_collected=Decimal("300"),
            table=self.table,
        )

        assert result.sold_qty == Decimal("7")
        assert result.sold_amount == Decimal("350.00")
        assert result.commission == Decimal("100.00")
        assert result.cash_collected == Decimal("300.00")
        assert result.basis == BASIS_SOLD_AMOUNT
        assert result.match.tier.min == Decimal("100")

    def test_cash_collected_does_not_change_commission(self):
        common = dict(
            qty_dispatched=Decimal("12"),
            price_each=Decimal("50"),
            qty_returned=Decimal("0"),
            loss_qty=Decimal("0"),
            table=self.table,
        )

        full = settle_field_dispatch(cash_collected=Decimal("600"), **common)
        partial = settle_field_dispatch(cash_collected=Decimal("100"), **common)

        assert full.commission == partial.commission == Decimal("200.00")

    def test_missing_loss_counts_as_zero(self):
        result = settle_field_dispatch(
            qty_dispatched=Decimal("4"),
            price_each=Decimal("25"),
            qty_returned=Decimal("0"),
            table=self.table,
        )

        assert result.sold_qty == Decimal("4")
        assert result.sold_amount == Decimal("100.00")

    def test_negative_sold_quantity_is_reported(self, captured_logs):
        result = settle_field_dispatch(
            qty_dispatched=Decimal("5"),
            price_each=Decimal("50"),
            qty_returned=Decimal("4"),
            loss_qty=Decimal("3"),
            table=self.table,
        )

        assert result.sold_qty == Decimal("-2")
        assert result.sold_amount == Decimal("-100.00")
        assert result.negative_sold_qty is True
        assert result.commission == Decimal("0.00")
        assert [i.code for i in result.issues] == ["NEGATIVE_SOLD_QTY"]
        assert any(r["message"] == "field_negative_sold_qty" for r in captured_logs())

    def test_as_dict_renders_money_strings(self):
        result = settle_field_dispatch(
            qty_dispatched=Decimal("10"),
            price_each=Decimal("50"),
            qty_returned=Decimal("2"),
            loss_qty=Decimal("1"),
            table=self.table,
        )

        data = result.as_dict()

        assert data["soldAmount"] == "350.00"
        assert data["commission"] == "100.00"
        assert data["matchedTier"] == {"min": "100.00", "max": "500.00", "fixed": "100.00"}

    def test_rate_table_pays_nothing(self):
        result = settle_field_dispatch(
            qty_dispatched=Decimal("10"),
            price_each=Decimal("50"),
            qty_returned=Decimal("2"),
            loss_qty=Decimal("1"),
            table=BracketTable.parse(RATE_BRACKETS),
        )

        assert result.sold_amount == Decimal("350.00")
        assert result.commission == Decimal("0.00")
        assert result.match is None
        assert [i.code for i in result.issues] == ["RATE_TABLE_ON_DISPATCH"]

    def test_plan_context_is_carried(self):
        plan_id = uuid4()
        upstream = DataIssue(code="FIELD_FALLBACK_BRACKETS", message="fallback")

        open_dispatch = settle_field_dispatch(
            qty_dispatched=Decimal("1"),
            price_each=Decimal("50"),
            table=self.table,
            plan_id=plan_id,
            plan_name="Field Test Brackets",
            issues=(upstream,),
        )
        returned = settle_field_dispatch(
            qty_dispatched=Decimal("10"),
            price_each=Decimal("50"),
            qty_returned=Decimal("0"),
            table=self.table,
            plan_id=plan_id,
            issues=(upstream,),
        )

        assert open_dispatch.issues == (upstream,)
        assert open_dispatch.as_dict()["planName"] == "Field Test Brackets"
        assert returned.plan_id == plan_id
        assert returned.as_dict()["planId"] == str(plan_id)
        assert returned.issues == (upstream,)
