"""
Heuristic date recognition for free-text bookmark search.

Turns a search string such as "react march 2024" into predicates on the parts of a
bookmark's creation date (month == 3, year == 2024). Every recognized predicate must
hold at once; when nothing date-like is found the result is empty and the date
channel of the search contributes nothing.
"""
import re
from dataclasses import dataclass
from enum import StrEnum


class DatePart(StrEnum):
    """A component of a timestamp that can be compared for equality."""

    YEAR = "year"
    MONTH = "month"
    DAY = "day"


@dataclass(frozen=True)
class DatePredicate:
    """`<part of created_at> == value`."""

    part: DatePart
    value: int


MONTHS: dict[str, int] = {
    "jan": 1, "january": 1,
    "feb": 2, "february": 2,
    "mar": 3, "march": 3,
    "apr": 4, "april": 4,
    "may": 5,
    "jun": 6, "june": 6,
    "jul": 7, "july": 7,
    "aug": 8, "august": 8,
    "sep": 9, "september": 9,
    "oct": 10, "october": 10,
    "nov": 11, "november": 11,
    "dec": 12, "december": 12,
}

_MONTH_PATTERN = re.compile(
    r"\b(" + "|".join(sorted(MONTHS, key=len, reverse=True)) + r")\b",
)
_DAY_PATTERN = re.compile(r"\b(\d{1,2})\b")
_YEAR_PATTERN = re.compile(r"\b(20[23]\d)\b")
_DAY_MONTH_PATTERN = re.compile(r"(?<!\d)(\d{1,2})[/-](\d{1,2})(?!\d)")

MIN_DAY, MAX_DAY = 1, 31
MIN_MONTH, MAX_MONTH = 1, 12


def parse_date_predicates(search: str) -> list[DatePredicate]:
    """
    Extract date-part predicates from a search string.

    Recognizes, case-insensitively:
    - English month names and three-letter abbreviations as whole words
    - the first standalone one- or two-digit number as a day of month (1-31)
    - a four-digit year from 2020 through 2039
    - a `d/m` or `d-m` pair, read as day then month

    Duplicate predicates are collapsed; order follows first recognition.

    Args:
        search: Raw search text.

    Returns:
        Predicates that must all hold, or an empty list when nothing matched.
    """
    text = search.lower().strip()
    if not text:
        return []

    predicates: list[DatePredicate] = []

    def add(part: DatePart, value: int) -> None:
        predicate = DatePredicate(part, value)
        if predicate not in predicates:
            predicates.append(predicate)

    for match in _MONTH_PATTERN.finditer(text):
        add(DatePart.MONTH, MONTHS[match.group(1)])

    day_match = _DAY_PATTERN.search(text)
    if day_match:
        day = int(day_match.group(1))
        if MIN_DAY <= day <= MAX_DAY:
            add(DatePart.DAY, day)

    year_match = _YEAR_PATTERN.search(text)
    if year_match:
        add(DatePart.YEAR, int(year_match.group(1)))

    pair_match = _DAY_MONTH_PATTERN.search(text)
    if pair_match:
        day, month = int(pair_match.group(1)), int(pair_match.group(2))
        if MIN_DAY <= day <= MAX_DAY:
            add(DatePart.DAY, day)
        if MIN_MONTH <= month <= MAX_MONTH:
            add(DatePart.MONTH, month)

    return predicates
