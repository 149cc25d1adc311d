"""Pure domain layer: DTOs, money values, dates and the clock."""

from settlement_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from settlement_kernel.domain.values import (
    NAN,
    ZERO,
    DataIssue,
    amount_or_zero,
    money_str,
    parse_amount,
    round_money,
)

__all__ = [
    "NAN",
    "ZERO",
    "Clock",
    "DataIssue",
    "DeterministicClock",
    "SystemClock",
    "amount_or_zero",
    "money_str",
    "parse_amount",
    "round_money",
]
