"""Date normalization helpers for store documents.

Documents arrive with dates in whatever shape the writer used: Firestore
timestamps, ISO strings, epoch milliseconds, or ``{"seconds": ...}``
wrappers left behind by JSON exports.  Everything here funnels those into
naive local-time ``datetime`` values so the filter engine can compare them.

None of the functions in this module raise for malformed input.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date, datetime, timedelta
from typing import Any

from dateutil import parser as _date_parser
from dateutil.relativedelta import relativedelta

logger = logging.getLogger(__name__)

# Zero-argument conversion methods exposed by SDK timestamp types
# (google-cloud-firestore, protobuf, pandas) and by JS-style exports.
_CONVERSION_METHODS = ("to_datetime", "ToDatetime", "to_pydatetime", "toDate")

_SECONDS_KEYS = ("seconds", "_seconds")


def _to_local_naive(value: datetime) -> datetime:
    """Convert an aware datetime to naive local time; naive passes through."""
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def _seconds_field(value: Any) -> float | None:
    """Return the numeric ``seconds``/``_seconds`` field of *value*, if any."""
    for key in _SECONDS_KEYS:
        if isinstance(value, Mapping):
            raw = value.get(key)
        else:
            raw = getattr(value, key, None)
        if isinstance(raw, (int, float)) and not isinstance(raw, bool):
            return float(raw)
    return None


def _parse_string(text: str) -> datetime | None:
    text = text.strip()
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = _date_parser.parse(text)
        except (ValueError, OverflowError):
            return None
    return _to_local_naive(parsed)


def parse_date(value: Any) -> datetime | None:
    """Convert any supported date representation into a local datetime.

    Tried in order:

    1. An object exposing a zero-argument conversion method
       (``to_datetime``, ``ToDatetime``, ``to_pydatetime``, ``toDate``).
    2. A native ``datetime`` or ``date``.
    3. A string, via ISO-8601 first and ``dateutil`` general parsing second.
    4. An int or float, read as epoch milliseconds.
    5. A mapping or object with a numeric ``seconds``/``_seconds`` field.

    Args:
        value: Any value pulled from a store document.

    Returns:
        Naive local-time datetime, or ``None`` when the value cannot be
        interpreted as a date.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        for name in _CONVERSION_METHODS:
            method = getattr(value, name, None)
            if callable(method):
                converted = method()
                if isinstance(converted, datetime):
                    return _to_local_naive(converted)
                if isinstance(converted, date):
                    return datetime(converted.year, converted.month, converted.day)
                return None
        if isinstance(value, datetime):
            return _to_local_naive(value)
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        if isinstance(value, str):
            return _parse_string(value)
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(value / 1000)
        seconds = _seconds_field(value)
        if seconds is not None:
            return datetime.fromtimestamp(seconds)
    except Exception:
        logger.debug("Unparseable date value %r", value, exc_info=True)
    return None


def format_date(value: Any) -> str:
    """Render *value* as ``M/D/YYYY``, or ``"N/A"`` if it does not parse."""
    parsed = parse_date(value)
    if parsed is None:
        return "N/A"
    return f"{parsed.month}/{parsed.day}/{parsed.year}"


def _bound(value: Any) -> date | None:
    if value is None or value == "":
        return None
    parsed = parse_date(value)
    return parsed.date() if parsed is not None else None


def is_date_in_range(value: Any, start_date: Any = "", end_date: Any = "") -> bool:
    """Return True if *value* falls on or between the two calendar days.

    Both bounds empty (or unparseable) means no date filter, so every value
    passes, including ``None``.  With either bound in effect, *value* must
    parse.  The check works on local calendar days: a record stamped 23:59
    on the end day is inside the range, one stamped 00:00 the following day
    is not.

    Args:
        value: Record date in any form :func:`parse_date` accepts.
        start_date: Inclusive first day (``YYYY-MM-DD``, date, or empty).
        end_date: Inclusive last day (``YYYY-MM-DD``, date, or empty).
    """
    start = _bound(start_date)
    end = _bound(end_date)
    if start is None and end is None:
        return True
    parsed = parse_date(value)
    if parsed is None:
        return False
    day = parsed.date()
    if start is not None and day < start:
        return False
    if end is not None and day > end:
        return False
    return True


def current_week_range(today: date | None = None) -> tuple[str, str]:
    """Return ISO (Sunday, Saturday) bounds of the week containing *today*."""
    today = today or date.today()
    # date.weekday(): Monday=0 .. Sunday=6
    days_since_sunday = (today.weekday() + 1) % 7
    start = today - timedelta(days=days_since_sunday)
    end = start + timedelta(days=6)
    return start.isoformat(), end.isoformat()


def current_month_range(today: date | None = None) -> tuple[str, str]:
    """Return ISO first/last day bounds of the month containing *today*."""
    today = today or date.today()
    start = today.replace(day=1)
    end = start + relativedelta(months=1) - timedelta(days=1)
    return start.isoformat(), end.isoformat()
