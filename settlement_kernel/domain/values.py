"""
Values -- currency normalization and money rounding.

Responsibility:
    Turn amounts that arrive as numbers, Decimals or display strings
    ("1,250.00", "4 000") into ``Decimal``, with a distinguishable
    not-a-number sentinel for "no data".  Round terminal monetary values
    to 2 decimal places.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.

Invariants enforced:
    - Grouping characters (commas, spaces, non-breaking spaces) are
      stripped before parsing.
    - ``None``, empty strings, booleans and unparsable values yield
      ``Decimal("NaN")``, never zero.
    - Terminal amounts are quantized with ROUND_HALF_UP to 0.01.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

NAN = Decimal("NaN")
ZERO = Decimal("0")
CENT = Decimal("0.01")

_GROUPING_RE = re.compile(r"[,\s\u00a0]+")


def parse_amount(value: Any) -> Decimal:
    """
    Parse a loosely-typed amount into a Decimal.

    Returns ``NAN`` when the value is missing or cannot be parsed, so
    callers can tell "no data" apart from a real zero.
    """
    if value is None or isinstance(value, bool):
        return NAN
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        # repr round-trip keeps 0.1 as 0.1 instead of its binary expansion
        return Decimal(repr(value))
    text = _GROUPING_RE.sub("", str(value))
    if not text:
        return NAN
    try:
        return Decimal(text)
    except InvalidOperation:
        return NAN


def amount_or_zero(value: Any) -> Decimal:
    """Parse ``value``; anything non-finite becomes zero."""
    parsed = parse_amount(value)
    return parsed if parsed.is_finite() else ZERO


def round_money(value: Decimal) -> Decimal:
    """Quantize a finite amount to 2 decimal places (ROUND_HALF_UP)."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def money_str(value: Any) -> str | None:
    """Serialise a money value as a 2dp string; None stays None."""
    if value is None:
        return None
    parsed = parse_amount(value)
    if not parsed.is_finite():
        return str(value)
    return str(round_money(parsed))


@dataclass(frozen=True)
class DataIssue:
    """
    A fail-soft data problem observed during a computation.

    Issues travel on result objects so request handlers can show the raw
    context of a discrepancy instead of only a degraded number.
    """

    code: str
    message: str
    context: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "context": dict(self.context)}
