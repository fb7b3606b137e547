from __future__ import annotations

import re
from types import MappingProxyType
from typing import Mapping, Optional

from service_scheduler.core.model import Duration, DurationUnit


# Fixed day counts; months and years are approximations so parsing stays
# independent of the anchor date.
UNIT_DAYS: Mapping[str, int] = MappingProxyType(
    {
        "day": 1,
        "week": 7,
        "month": 30,
        "year": 365,
    }
)

SPECIAL_EXPRESSIONS: Mapping[str, Duration] = MappingProxyType(
    {
        "same day": Duration(total_days=0, amount=0, special="same day"),
        "today": Duration(total_days=0, amount=0, special="same day"),
        "next day": Duration(total_days=1, amount=1, special="next day"),
        "tomorrow": Duration(total_days=1, amount=1, special="next day"),
    }
)

# ASCII digits only: str patterns would otherwise accept e.g. Arabic-Indic digits.
_AMOUNT_RE = re.compile(
    r"^(?P<amount>[0-9]+)"
    r"(?:\s+(?P<unit>day|days|week|weeks|month|months|year|years))?"
    r"(?:\s+later)?$"
)
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_expression(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text.strip().lower())


def parse_relative_date(text: str) -> Optional[Duration]:
    """Parse a relative expression like "1 week", "same day" or "3 days later".

    Returns None when the text does not match the grammar. Never raises.
    A bare integer is read as days; the whole string must match, so
    trailing garbage invalidates the expression.
    """
    if not isinstance(text, str):
        return None

    normalized = normalize_expression(text)
    if not normalized:
        return None

    special = SPECIAL_EXPRESSIONS.get(normalized)
    if special is not None:
        return special

    match = _AMOUNT_RE.match(normalized)
    if match is None:
        return None

    try:
        amount = int(match.group("amount"))
    except ValueError:
        # int() refuses digit strings past the interpreter's conversion limit.
        return None
    unit = _singular(match.group("unit") or "day")
    return Duration(total_days=amount * UNIT_DAYS[unit], amount=amount, unit=unit)


def is_valid_expression(text: str) -> bool:
    return parse_relative_date(text) is not None


def format_relative_days(days: int) -> str:
    """Render a day count back to the most natural label ("2 weeks", "Same day")."""
    if isinstance(days, bool) or not isinstance(days, int):
        raise ValueError(f"days must be an integer, got {days!r}")
    if days < 0:
        raise ValueError(f"days must be >= 0, got {days}")

    if days == 0:
        return "Same day"
    if days == 1:
        return "Next day"

    for unit in ("year", "month", "week"):
        size = UNIT_DAYS[unit]
        if days % size == 0:
            return _plural(days // size, unit)

    return _plural(days, "day")


def _singular(unit: str) -> DurationUnit:
    base = unit[:-1] if unit.endswith("s") else unit
    return base  # type: ignore[return-value]


def _plural(amount: int, unit: str) -> str:
    return f"{amount} {unit}" if amount == 1 else f"{amount} {unit}s"
