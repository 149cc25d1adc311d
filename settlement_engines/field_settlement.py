"""
Field Settlement Engine - sold quantity, sold amount and commission of a
field dispatch.

A field waiter takes ``qty_dispatched`` items out at ``price_each``.  When
they come back, the return records what was not sold, what was lost and
the cash handed in.  Commission on this path is looked up on the *sold
amount*; the cash collected is reported next to it but never substituted
for it, because partial payment makes the two differ.

Only flat (fixed-payout) tables apply here.  A rate-style table is refused
with a RATE_TABLE_ON_DISPATCH issue and pays nothing; choosing a flat
table is the caller's job.

A negative sold quantity can only come from bad data.  It is reported as
is (not clamped) and ``negative_sold_qty`` is set so the caller can raise
an audit flag.

Pure functions with no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any
from uuid import UUID

from settlement_engines.brackets import BracketKind, BracketMatch, BracketTable
from settlement_engines.tracer import traced_engine
from settlement_kernel.domain.values import ZERO, DataIssue, money_str, round_money
from settlement_kernel.logging_config import get_logger

logger = get_logger("engines.field_settlement")

BASIS_SOLD_AMOUNT = "soldAmount"
BASIS_CASH_COLLECTED = "cashCollected"


@dataclass(frozen=True)
class FieldSettlement:
    """Result of settling one dispatch."""

    gross_sales: Decimal
    returned: bool
    sold_qty: Decimal | None = None
    sold_amount: Decimal | None = None
    cash_collected: Decimal | None = None
    commission: Decimal | None = None
    basis: str = BASIS_SOLD_AMOUNT
    match: BracketMatch | None = None
    negative_sold_qty: bool = False
    plan_id: UUID | None = None
    plan_name: str | None = None
    issues: tuple[DataIssue, ...] = field(default_factory=tuple)

    def as_dict(self) -> dict[str, Any]:
        return {
            "grossSales": money_str(self.gross_sales),
            "returned": self.returned,
            "soldQty": str(self.sold_qty) if self.sold_qty is not None else None,
            "soldAmount": money_str(self.sold_amount),
            "cashCollected": money_str(self.cash_collected),
            "commission": money_str(self.commission),
            "basis": self.basis,
            "matchedTier": self.match.tier.as_dict() if self.match else None,
            "negativeSoldQty": self.negative_sold_qty,
            "planId": str(self.plan_id) if self.plan_id else None,
            "planName": self.plan_name,
            "issues": [i.as_dict() for i in self.issues],
        }


@traced_engine(
    "field_settlement",
    "1.0",
    fingerprint_fields=("qty_dispatched", "price_each", "qty_returned", "loss_qty", "table"),
)
def settle_field_dispatch(
    *,
    qty_dispatched: Decimal,
    price_each: Decimal,
    table: BracketTable,
    qty_returned: Decimal | None = None,
    loss_qty: Decimal | None = None,
    cash_collected: Decimal | None = None,
    plan_id: UUID | None = None,
    plan_name: str | None = None,
    issues: tuple[DataIssue, ...] = (),
) -> FieldSettlement:
    """
    Settle a dispatch and its optional return.

    Without a return (``qty_returned is None``) only gross sales are
    known and ``commission`` is None: the dispatch is still out.
    ``plan_id``, ``plan_name`` and ``issues`` describe where ``table``
    came from and are carried onto the result unchanged.
    """
    gross_sales = round_money(qty_dispatched * price_each)

    if qty_returned is None:
        return FieldSettlement(
            gross_sales=gross_sales,
            returned=False,
            plan_id=plan_id,
            plan_name=plan_name,
            issues=tuple(issues),
        )

    loss = loss_qty if loss_qty is not None else ZERO
    sold_qty = qty_dispatched - qty_returned - loss
    sold_amount = round_money(sold_qty * price_each)
    negative = sold_qty < ZERO

    found: list[DataIssue] = list(issues)
    if negative:
        found.append(DataIssue(
            code="NEGATIVE_SOLD_QTY",
            message="Returned plus lost quantity exceeds the dispatched quantity",
            context={
                "qtyDispatched": str(qty_dispatched),
                "qtyReturned": str(qty_returned),
                "lossQty": str(loss),
                "soldQty": str(sold_qty),
            },
        ))
        logger.warning(
            "field_negative_sold_qty",
            extra={"sold_qty": sold_qty, "qty_dispatched": qty_dispatched},
        )

    match = None
    if table.kind == BracketKind.RATE_FLAT:
        found.append(DataIssue(
            code="RATE_TABLE_ON_DISPATCH",
            message="Dispatch commission uses flat tiers; rate table ignored",
            context={"planId": str(plan_id) if plan_id else None},
        ))
    else:
        match = table.lookup(sold_amount)
    commission = match.commission if match is not None else round_money(ZERO)

    return FieldSettlement(
        gross_sales=gross_sales,
        returned=True,
        sold_qty=sold_qty,
        sold_amount=sold_amount,
        cash_collected=round_money(cash_collected) if cash_collected is not None else None,
        commission=commission,
        basis=BASIS_SOLD_AMOUNT,
        match=match,
        negative_sold_qty=negative,
        plan_id=plan_id,
        plan_name=plan_name,
        issues=tuple(found),
    )
