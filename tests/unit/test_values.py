"""
Tests for the currency/number normalizer.

Covers:
- Loose input parsing (strings with grouping, floats, ints)
- NaN sentinel for missing or garbage input
- ROUND_HALF_UP to cents
"""

from decimal import Decimal

import pytest

from settlement_kernel.domain.values import (
    ZERO,
    DataIssue,
    amount_or_zero,
    money_str,
    parse_amount,
    round_money,
)


class TestParseAmount:

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("1500", Decimal("1500")),
            ("1,500.50", Decimal("1500.50")),
            (" 2 000 ", Decimal("2000")),
            ("2 000", Decimal("2000")),
            (12, Decimal("12")),
            (0.1, Decimal("0.1")),
            (Decimal("7.25"), Decimal("7.25")),
            ("-40", Decimal("-40")),
        ],
    )
    def test_parses(self, raw, expected):
        assert parse_amount(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "   ", "abc", "12abc", True, [], {}])
    def test_unparseable_is_nan(self, raw):
        parsed = parse_amount(raw)

        assert parsed.is_nan()

    def test_nan_is_distinct_from_zero(self):
        assert parse_amount(None) != ZERO
        assert amount_or_zero(None) == ZERO

    def test_infinity_is_not_a_number(self):
        assert not parse_amount("Infinity").is_finite()
        assert amount_or_zero("Infinity") == ZERO


class TestRounding:

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("0.005", "0.01"),
            ("0.004", "0.00"),
            ("2.675", "2.68"),
            ("-2.675", "-2.68"),
            ("10", "10.00"),
        ],
    )
    def test_round_half_up(self, raw, expected):
        assert round_money(Decimal(raw)) == Decimal(expected)
        assert str(round_money(Decimal(raw))) == expected

    def test_money_str(self):
        assert money_str(Decimal("350")) == "350.00"
        assert money_str("1,000.005") == "1000.01"
        assert money_str(None) is None
        assert money_str("abc") == "abc"


class TestDataIssue:

    def test_as_dict_copies_context(self):
        issue = DataIssue(code="X", message="m", context={"a": 1})

        data = issue.as_dict()
        data["context"]["a"] = 2

        assert issue.context == {"a": 1}
        assert data["code"] == "X"
