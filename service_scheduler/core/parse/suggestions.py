from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DateSuggestion:
    label: str
    expression: str
    total_days: int


# Display order; never sorted at runtime.
DATE_SUGGESTIONS: tuple[DateSuggestion, ...] = (
    DateSuggestion(label="Same day", expression="same day", total_days=0),
    DateSuggestion(label="Next day", expression="next day", total_days=1),
    DateSuggestion(label="3 days", expression="3 days", total_days=3),
    DateSuggestion(label="1 week", expression="1 week", total_days=7),
    DateSuggestion(label="2 weeks", expression="2 weeks", total_days=14),
    DateSuggestion(label="3 weeks", expression="3 weeks", total_days=21),
    DateSuggestion(label="1 month", expression="1 month", total_days=30),
    DateSuggestion(label="2 months", expression="2 months", total_days=60),
    DateSuggestion(label="3 months", expression="3 months", total_days=90),
    DateSuggestion(label="6 months", expression="6 months", total_days=180),
)


def suggestions() -> tuple[DateSuggestion, ...]:
    """Common relative-date choices for autocompletion."""
    return DATE_SUGGESTIONS
