"""Payload coercion helpers: dates and amounts."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from research_portal.utils.helpers import parse_date_input, parse_decimal_input


class TestParseDate:

    @pytest.mark.parametrize("value", [
        "2025-01-01",
        " 2025-01-01 ",
        "2025-01-01T00:00:00Z",
        "2025-01-01T00:00:00.000Z",
        "2025-01-01T23:30:00+05:30",
        date(2025, 1, 1),
        datetime(2025, 1, 1, 18, 0),
    ])
    def test_calendar_day_is_kept(self, value):
        assert parse_date_input(value) == date(2025, 1, 1)

    @pytest.mark.parametrize("value", [
        "2025-01-01oops",
        "2025-01-01 junk",
        "2025-13-01",
        "next year",
    ])
    def test_trailing_or_malformed_text_is_rejected(self, value):
        with pytest.raises(ValueError):
            parse_date_input(value)

    def test_empty_is_none(self):
        assert parse_date_input("") is None
        assert parse_date_input(None) is None


class TestParseDecimal:

    def test_amounts(self):
        assert parse_decimal_input("1250000.50") == Decimal("1250000.50")
        assert parse_decimal_input(12) == Decimal("12")
        assert parse_decimal_input("") is None

    @pytest.mark.parametrize("value", ["abc", "NaN", "Infinity"])
    def test_rejects_non_finite_and_garbage(self, value):
        with pytest.raises(ValueError):
            parse_decimal_input(value)
