"""Field module value objects."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from settlement_kernel.domain.values import money_str


@dataclass(frozen=True)
class FieldDailySummary:
    """
    One waiter's field day.

    ``commission`` is the sum of per-dispatch bracket lookups on sold
    amount; ``cash_remitted`` is what was handed in.  The two are reported
    side by side and never substituted for each other.
    """

    waiter_id: UUID
    day: date
    dispatch_count: int
    returned_count: int
    gross_sales: Decimal
    sold_amount: Decimal
    cash_remitted: Decimal
    commission: Decimal
    negative_sold_count: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "waiterId": str(self.waiter_id),
            "day": self.day.isoformat(),
            "dispatchCount": self.dispatch_count,
            "returnedCount": self.returned_count,
            "grossSales": money_str(self.gross_sales),
            "soldAmount": money_str(self.sold_amount),
            "cashRemitted": money_str(self.cash_remitted),
            "commission": money_str(self.commission),
            "negativeSoldCount": self.negative_sold_count,
        }
