import pytest

from service_scheduler.core.model import Duration
from service_scheduler.core.parse.relative_date import (
    format_relative_days,
    is_valid_expression,
    parse_relative_date,
)


@pytest.mark.parametrize("unit,size", [("day", 1), ("week", 7), ("month", 30), ("year", 365)])
@pytest.mark.parametrize("n", [0, 1, 2, 3, 12, 100])
def test_parse_unit_multiplies_fixed_day_count(n, unit, size):
    for text in (f"{n} {unit}", f"{n} {unit}s"):
        d = parse_relative_date(text)
        assert d is not None, text
        assert d.total_days == n * size
        assert d.amount == n
        assert d.unit == unit


def test_parse_special_days():
    assert parse_relative_date("same day").total_days == 0
    assert parse_relative_date("next day").total_days == 1
    assert parse_relative_date("Today").total_days == 0
    assert parse_relative_date("TOMORROW").total_days == 1


@pytest.mark.parametrize("text", ["same day", "next day", "5", "1 week", "2 months", "3 days later"])
def test_canonical_form_reparses_to_same_duration(text):
    d = parse_relative_date(text)
    assert d is not None
    assert parse_relative_date(d.canonical()) == d


def test_parse_is_case_and_whitespace_tolerant():
    assert parse_relative_date("  2   Weeks  ").total_days == 14
    assert parse_relative_date("SAME   DAY").total_days == 0
    assert parse_relative_date("\t3 days\n").total_days == 3


def test_parse_later_suffix_is_ignored():
    assert parse_relative_date("3 days later") == parse_relative_date("3 days")
    assert parse_relative_date("1 month later").total_days == 30


def test_parse_bare_integer_is_days():
    d = parse_relative_date("5")
    assert d == Duration(total_days=5, amount=5, unit="day")
    assert parse_relative_date("5 later").total_days == 5


@pytest.mark.parametrize(
    "text",
    [
        "",
        "   ",
        "abc",
        "-1 day",
        "1.5 weeks",
        "2 fortnights",
        "two weeks",
        "1 week and a bit",
        "later",
        "3 days earlier",
        "day",
        "same",
        "1 week later please",
        "٥ days",
    ],
)
def test_parse_invalid(text):
    assert parse_relative_date(text) is None
    assert is_valid_expression(text) is False


def test_parse_non_string_is_invalid():
    assert parse_relative_date(None) is None  # type: ignore[arg-type]
    assert parse_relative_date(7) is None  # type: ignore[arg-type]


def test_parse_is_deterministic():
    assert parse_relative_date("2 months") == parse_relative_date("2 months")


def test_duration_rejects_negative_and_fractional_days():
    with pytest.raises(ValueError):
        Duration(total_days=-1, amount=-1)
    with pytest.raises(ValueError):
        Duration(total_days=1.5, amount=1)  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "days,label",
    [
        (0, "Same day"),
        (1, "Next day"),
        (2, "2 days"),
        (7, "1 week"),
        (14, "2 weeks"),
        (30, "1 month"),
        (60, "2 months"),
        (365, "1 year"),
        (730, "2 years"),
        (10, "10 days"),
        (35, "5 weeks"),
    ],
)
def test_format_relative_days(days, label):
    assert format_relative_days(days) == label
    assert parse_relative_date(label).total_days == days


def test_format_relative_days_rejects_negative():
    with pytest.raises(ValueError):
        format_relative_days(-3)


def test_parse_oversized_amount_is_invalid():
    assert parse_relative_date("9" * 5000 + " days") is None
    assert parse_relative_date("1" * 5000) is None
