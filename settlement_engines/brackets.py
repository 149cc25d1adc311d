"""
Bracket Table Engine - tiered commission schedules.

Two tier encodings are stored in commission plans and both are accepted
without a version flag; the encoding is inferred from each tier's keys:

    FlatTier      {min, max, fixed}          (aliases: from, to, amount)
    RateFlatTier  {min, max?, ratePct, flat}

Flat tables pay a fixed amount for the first tier whose range holds the
amount.  A tier is half-open when the next tier starts at or below its
``max``; otherwise (and always for the last tier) ``max`` is inclusive.
Rate tables pay ``amount * ratePct / 100 + flat`` (floored at zero) using
the matching tier with the greatest ``min``.

Parsing is fail-soft: malformed JSON, non-list payloads and unusable tiers
never raise.  They produce a smaller (or empty) table plus ``DataIssue``
records that callers surface next to the commission they computed.

Usage:
    from settlement_engines.brackets import BracketTable

    table = BracketTable.parse('[{"min": 100, "max": 500, "fixed": 100}]')
    table.commission_for(Decimal("450"))   # Decimal("100.00")
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Union

from settlement_engines.tracer import traced_engine
from settlement_kernel.domain.values import (
    ZERO,
    DataIssue,
    amount_or_zero,
    money_str,
    parse_amount,
    round_money,
)
from settlement_kernel.logging_config import get_logger

logger = get_logger("engines.brackets")

_FLAT_KEYS = ("fixed", "amount")
_RATE_KEYS = ("ratePct", "rate_pct", "flat")
_HUNDRED = Decimal("100")


class BracketKind(str, Enum):
    """Encoding of a bracket table."""

    FLAT = "FLAT"
    RATE_FLAT = "RATE_FLAT"


@dataclass(frozen=True)
class FlatTier:
    """Fixed payout for amounts in ``[min, max)``, or ``[min, max]`` when no tier starts at ``max``."""

    min: Decimal
    max: Decimal
    fixed: Decimal

    def as_dict(self) -> dict[str, Any]:
        return {"min": money_str(self.min), "max": money_str(self.max), "fixed": money_str(self.fixed)}


@dataclass(frozen=True)
class RateFlatTier:
    """Percentage of the amount plus a flat addend; ``max=None`` is open-ended."""

    min: Decimal
    max: Decimal | None
    rate_pct: Decimal
    flat: Decimal

    def as_dict(self) -> dict[str, Any]:
        return {
            "min": money_str(self.min),
            "max": money_str(self.max),
            "ratePct": str(self.rate_pct),
            "flat": money_str(self.flat),
        }


Tier = Union[FlatTier, RateFlatTier]


@dataclass(frozen=True)
class BracketMatch:
    """The tier an amount resolved to and the commission it pays."""

    tier: Tier
    commission: Decimal
    rate_pct: Decimal | None = None


def _first_present(raw: dict, keys: tuple[str, ...]) -> Any:
    for key in keys:
        if key in raw:
            return raw[key]
    return None


def _tier_kind(raw: dict) -> BracketKind | None:
    if any(key in raw for key in _FLAT_KEYS):
        return BracketKind.FLAT
    if any(key in raw for key in _RATE_KEYS):
        return BracketKind.RATE_FLAT
    return None


def _parse_flat(raw: dict, index: int) -> tuple[FlatTier | None, DataIssue | None]:
    lo = parse_amount(_first_present(raw, ("min", "from")))
    hi = parse_amount(_first_present(raw, ("max", "to")))
    fixed = parse_amount(_first_present(raw, _FLAT_KEYS))
    if not (lo.is_finite() and hi.is_finite() and fixed.is_finite()):
        return None, DataIssue(
            code="NON_FINITE_TIER",
            message="Flat tier discarded: min, max and fixed must be numbers",
            context={"index": index, "tier": _jsonable(raw)},
        )
    return FlatTier(min=lo, max=hi, fixed=fixed), None


def _parse_rate(raw: dict, index: int) -> tuple[RateFlatTier | None, DataIssue | None]:
    raw_min = raw.get("min")
    lo = ZERO if raw_min is None else parse_amount(raw_min)
    if not lo.is_finite():
        return None, DataIssue(
            code="NON_FINITE_TIER",
            message="Rate tier discarded: min must be a number",
            context={"index": index, "tier": _jsonable(raw)},
        )
    raw_max = raw.get("max")
    hi = None if raw_max is None else parse_amount(raw_max)
    if hi is not None and not hi.is_finite():
        # "Infinity" or garbage: treat the tier as open-ended
        hi = None
    return RateFlatTier(
        min=lo,
        max=hi,
        rate_pct=amount_or_zero(_first_present(raw, ("ratePct", "rate_pct"))),
        flat=amount_or_zero(raw.get("flat")),
    ), None


def _jsonable(raw: Any) -> Any:
    try:
        json.dumps(raw)
        return raw
    except (TypeError, ValueError):
        return str(raw)


def _decode(payload: Any) -> tuple[list | None, DataIssue | None]:
    if payload is None:
        return None, DataIssue(code="NO_BRACKETS", message="Plan has no brackets")
    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode("utf-8", errors="replace")
    if isinstance(payload, str):
        try:
            payload = json.loads(payload, parse_float=Decimal)
        except ValueError as exc:
            return None, DataIssue(
                code="INVALID_BRACKET_JSON",
                message="Bracket payload is not valid JSON",
                context={"error": str(exc)},
            )
    if isinstance(payload, tuple):
        payload = list(payload)
    if not isinstance(payload, list):
        return None, DataIssue(
            code="BRACKETS_NOT_A_LIST",
            message="Bracket payload is not a list",
            context={"type": type(payload).__name__},
        )
    return payload, None


@dataclass(frozen=True)
class BracketTable:
    """
    Validated, ordered tier list of a single encoding.

    Tiers are sorted ascending by ``min`` (stable, so equal minimums keep
    their stored order).  ``kind`` is None when no tier was recognised.
    """

    kind: BracketKind | None
    tiers: tuple[Tier, ...] = ()
    issues: tuple[DataIssue, ...] = ()

    @classmethod
    def empty(cls, *issues: DataIssue) -> BracketTable:
        return cls(kind=None, tiers=(), issues=tuple(issues))

    @classmethod
    def parse(cls, payload: Any) -> BracketTable:
        """
        Build a table from a list of tier dicts or its JSON encoding.

        Never raises.  The first recognisable tier decides the table's
        encoding; tiers of the other encoding are discarded with an issue.
        """
        items, issue = _decode(payload)
        if items is None:
            logger.warning("bracket_payload_unusable", extra={"issue_code": issue.code})
            return cls.empty(issue)

        kind: BracketKind | None = None
        tiers: list[Tier] = []
        issues: list[DataIssue] = []

        for index, raw in enumerate(items):
            if not isinstance(raw, dict):
                issues.append(DataIssue(
                    code="INVALID_TIER",
                    message="Tier is not an object",
                    context={"index": index, "tier": _jsonable(raw)},
                ))
                continue
            tier_kind = _tier_kind(raw)
            if tier_kind is None:
                issues.append(DataIssue(
                    code="UNKNOWN_TIER_SHAPE",
                    message="Tier has neither fixed nor ratePct/flat",
                    context={"index": index, "tier": _jsonable(raw)},
                ))
                continue
            if kind is None:
                kind = tier_kind
            elif tier_kind != kind:
                issues.append(DataIssue(
                    code="MIXED_TIER_ENCODING",
                    message=f"{tier_kind.value} tier discarded from a {kind.value} table",
                    context={"index": index, "tier": _jsonable(raw)},
                ))
                continue

            if tier_kind == BracketKind.FLAT:
                tier, problem = _parse_flat(raw, index)
            else:
                tier, problem = _parse_rate(raw, index)
            if problem is not None:
                issues.append(problem)
                continue
            tiers.append(tier)

        tiers.sort(key=lambda t: t.min)

        for problem in issues:
            logger.warning(
                "bracket_tier_discarded",
                extra={"issue_code": problem.code, "issue_context": problem.context},
            )

        return cls(kind=kind, tiers=tuple(tiers), issues=tuple(issues))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def is_empty(self) -> bool:
        return not self.tiers

    @property
    def lower_bound(self) -> Decimal | None:
        return self.tiers[0].min if self.tiers else None

    @property
    def upper_bound(self) -> Decimal | None:
        """Top bound of the table; None when empty or open-ended."""
        if not self.tiers:
            return None
        if self.kind == BracketKind.FLAT:
            return self.tiers[-1].max
        maxima = [t.max for t in self.tiers]
        if any(m is None for m in maxima):
            return None
        return max(maxima)

    def lookup(self, amount: Any) -> BracketMatch | None:
        """
        Resolve ``amount`` to a tier.

        Amounts that are not numbers or are <= 0 never match.
        """
        value = parse_amount(amount)
        if not value.is_finite() or value <= ZERO or not self.tiers:
            return None
        if self.kind == BracketKind.FLAT:
            return self._lookup_flat(value)
        return self._lookup_rate(value)

    def commission_for(self, amount: Any) -> Decimal:
        match = self.lookup(amount)
        return match.commission if match is not None else round_money(ZERO)

    def fingerprint(self) -> str:
        kind = self.kind.value if self.kind else "EMPTY"
        return kind + ":" + ";".join(
            ",".join(f"{k}={v}" for k, v in sorted(t.as_dict().items()))
            for t in self.tiers
        )

    def _lookup_flat(self, value: Decimal) -> BracketMatch | None:
        last = len(self.tiers) - 1
        for position, tier in enumerate(self.tiers):
            if value < tier.min:
                continue
            if position == last or self.tiers[position + 1].min > tier.max:
                # nothing starts at max, so max itself stays in this tier
                in_range = value <= tier.max
            else:
                in_range = value < tier.max
            if in_range:
                return BracketMatch(tier=tier, commission=round_money(tier.fixed))
        return None

    def _lookup_rate(self, value: Decimal) -> BracketMatch | None:
        best: RateFlatTier | None = None
        for tier in self.tiers:
            if value < tier.min:
                continue
            if tier.max is not None and value > tier.max:
                continue
            # strictly greater keeps the first of equal minimums
            if best is None or tier.min > best.min:
                best = tier
        if best is None:
            return None
        raw = value * best.rate_pct / _HUNDRED + best.flat
        commission = round_money(max(ZERO, raw))
        return BracketMatch(tier=best, commission=commission, rate_pct=best.rate_pct)


@traced_engine("brackets.lookup", "1.0", fingerprint_fields=("table", "amount"))
def lookup_commission(*, table: BracketTable, amount: Any) -> BracketMatch | None:
    """Traced entry point for a single bracket lookup."""
    return table.lookup(amount)
