"""Form value helpers shared by options, forms and transformation.

Pure functions -- no I/O.
"""

import math
import re
from datetime import date, datetime
from typing import Any

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def is_blank(value: Any) -> bool:
    """True for ``None``, blank strings and empty collections."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def values_match(a: Any, b: Any) -> bool:
    """Compare option values loosely: ``5`` matches ``"5"``."""
    if a is None or b is None:
        return a is b
    return a == b or str(a) == str(b)


def read_path(record: Any, path: tuple[str, ...] | list[str]) -> Any:
    """Follow a nested attribute path through dicts; ``None`` when any hop is missing."""
    value = record
    for part in path:
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def to_number(value: Any) -> float | None:
    """Parse a form value as a number; ``None`` when missing or non-numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def parse_date(value: Any) -> datetime | date | None:
    """Parse a date/datetime value; ``None`` when missing or invalid.

    Examples:
        >>> parse_date("2024-03-01")
        datetime.date(2024, 3, 1)
        >>> parse_date("not a date") is None
        True
    """
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        if _DATE_ONLY.match(text):
            return date.fromisoformat(text)
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
