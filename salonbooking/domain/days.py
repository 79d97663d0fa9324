"""
Calendar-day helpers: date parsing, weekday labels and label matching.

Weekdays are always derived from the calendar date itself (year, month,
day), never from a timestamp shifted into a local timezone.
"""

from __future__ import annotations

import re
import unicodedata
from datetime import date
from typing import FrozenSet, Optional, Union

import pendulum

# Index matches date.weekday(): 0=Monday, 6=Sunday
DAY_LABELS = (
    "lunes",
    "martes",
    "miercoles",
    "jueves",
    "viernes",
    "sabado",
    "domingo",
)

_LABEL_SEPARATORS = re.compile(r"[;,|/\\\-]+")


def normalize_label(value: str) -> str:
    """
    Lower-case a label and strip diacritics.

    Examples:
        >>> normalize_label("  Miércoles ")
        'miercoles'
        >>> normalize_label("SÁBADO")
        'sabado'
    """
    lowered = str(value).lower()
    stripped = "".join(
        ch for ch in unicodedata.normalize("NFKD", lowered) if not unicodedata.combining(ch)
    )
    return " ".join(stripped.split())


def parse_day_labels(raw: Optional[str]) -> Optional[FrozenSet[str]]:
    """
    Split a composite day label into normalized parts.

    Returns None when the label is empty, meaning the window applies on
    every day.
    """
    if raw is None:
        return None
    normalized = normalize_label(raw)
    parts = frozenset(
        part.strip() for part in _LABEL_SEPARATORS.split(normalized) if part.strip()
    )
    return parts or None


def parse_calendar_date(value: Union[str, date]) -> date:
    """
    Parse ``YYYY-MM-DD`` as a calendar date.

    The string is anchored to UTC before taking the date part so the result
    never depends on the host's local offset.

    Raises:
        ValueError: If the value is not a valid date
    """
    if isinstance(value, date):
        return date(value.year, value.month, value.day)
    text = str(value).strip()
    try:
        parsed = pendulum.from_format(text, "YYYY-MM-DD", tz="UTC")
    except ValueError:
        raise ValueError(f"Invalid date (expected YYYY-MM-DD): {value!r}") from None
    return date(parsed.year, parsed.month, parsed.day)


def weekday_label(day: date) -> str:
    """Return the normalized label of the day's weekday, e.g. ``'martes'``."""
    return DAY_LABELS[day.weekday()]


def label_matches(part: str, target: str) -> bool:
    """Bidirectional substring match so abbreviations like ``'mie'`` still match."""
    return part in target or target in part


def applies_on_day(applies_on: Optional[FrozenSet[str]], day: date) -> bool:
    """Check whether a set of day labels covers the given calendar date."""
    if not applies_on:
        return True
    target = weekday_label(day)
    return any(label_matches(part, target) for part in applies_on)


def today_in(timezone: str) -> date:
    """Current calendar date in the salon's timezone."""
    now = pendulum.now(timezone)
    return date(now.year, now.month, now.day)
