"""
Tests de normalización y parsers tipados (fechas, moneda, porcentajes)
"""
import sys
from datetime import date
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from parsers.value_parsers import normalize_value, parse_currency, parse_date, parse_percentage


@pytest.mark.parametrize("raw,expected", [
    ("  General   Liability ", "general liability"),
    ("ABC\t123", "abc 123"),
    ("", ""),
    (None, ""),
])
def test_normalize_value(raw, expected):
    assert normalize_value(raw) == expected


@pytest.mark.parametrize("raw", [
    "01/15/2025",
    "1-15-2025",
    "15/01/2025",
    "2025-01-15",
    "2025/01/15",
    "2025-01-15T10:30:00",
    "January 15, 2025",
    "jan 15 2025",
    "15 January 2025",
    "15-Jan-2025",
    "Jan-15-2025",
])
def test_parse_date_formats(raw):
    assert parse_date(raw) == date(2025, 1, 15)


def test_parse_date_month_year_defaults_to_first_day():
    assert parse_date("March 2025") == date(2025, 3, 1)


@pytest.mark.parametrize("raw", ["", None, "not a date", "02/30/2025", "13/13/2025", "Smarch 3, 2025", "ABC-123"])
def test_parse_date_rejects(raw):
    assert parse_date(raw) is None


@pytest.mark.parametrize("raw,expected", [
    ("$1,000,000", 1_000_000),
    ("1000000", 1_000_000),
    ("$12,500.00", 12_500),
    ("$1M", 1_000_000),
    ("$2.5m", 2_500_000),
    ("500k", 500_000),
    ("$1B", 1_000_000_000),
    ("one million", 1_000_000),
    ("five thousand", 5_000),
])
def test_parse_currency(raw, expected):
    assert parse_currency(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", ["", None, "general liability", "$", "1,00"])
def test_parse_currency_rejects(raw):
    assert parse_currency(raw) is None


@pytest.mark.parametrize("raw,expected", [
    ("2.5%", 2.5),
    ("10 %", 10),
    ("0.025", 2.5),
    ("2.5 percent", 2.5),
    ("fifty percent", 50),
    ("Hundred Percent", 100),
])
def test_parse_percentage(raw, expected):
    assert parse_percentage(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", ["", None, "25", "percent", "eleven percent"])
def test_parse_percentage_rejects(raw):
    assert parse_percentage(raw) is None
