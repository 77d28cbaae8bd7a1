from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from typing import Any

from .models import AnnotationKind, StatusTag


def to_list(value: Any) -> list[Any]:
    """Coerce an arbitrary collection payload into a list.

    Lists and tuples are copied, mappings contribute their values and any
    other iterable (except strings) is materialised. Everything else becomes
    an empty list.
    """
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, Mapping):
        return list(value.values())
    if isinstance(value, Iterable) and not isinstance(value, (str, bytes)):
        return list(value)
    return []


def get_field(record: Any, key: str, default: Any = None) -> Any:
    if isinstance(record, Mapping):
        value = record.get(key, default)
        return default if value is None else value
    return default


def text_field(record: Any, key: str) -> str:
    value = get_field(record, key)
    if value is None:
        return ""
    return str(value)


def number_field(record: Any, key: str) -> float:
    """Return a finite float for ``record[key]`` or 0."""
    return to_number(get_field(record, key))


def to_number(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return float(value or 0)
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def is_finite_number(value: Any) -> bool:
    if value is None or isinstance(value, bool):
        return False
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError, OverflowError):
        return False


def as_int(value: float) -> int | float:
    """Collapse integral floats back to ints so derived totals stay tidy."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def get_book_ref(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def annotation_kind(annotation: Any) -> AnnotationKind:
    has_text = bool(text_field(annotation, "text").strip())
    has_note = bool(text_field(annotation, "note").strip())
    if has_text and has_note:
        return "note"
    if has_text:
        return "highlight"
    return "bookmark"


def book_status_tag(book: Any) -> StatusTag:
    status = text_field(book, "status").lower()
    if status in ("finished", "complete"):
        return "finished"
    if number_field(book, "percent") > 0:
        return "reading"
    return "queued"


def pages_read(book: Any) -> int:
    pages = number_field(book, "pages")
    if pages <= 0:
        return 0
    return int(math.floor(number_field(book, "percent") / 100 * pages + 0.5))


def annotation_timestamp(annotation: Any) -> str:
    return text_field(annotation, "datetime") or text_field(annotation, "datetime_updated")


def parse_datetime_like(value: Any) -> datetime | None:
    """Parse ``YYYY-MM-DD[ HH:MM:SS]`` style strings; ``None`` when unparseable."""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    else:
        raw = str(value).strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw.replace(" ", "T", 1))
        except ValueError:
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def parse_day(value: Any) -> date | None:
    """Parse a calendar day string (``YYYY-MM-DD``)."""
    if not value:
        return None
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


def timestamp_to_datetime(value: Any) -> datetime | None:
    seconds = to_number(value)
    if seconds <= 0:
        return None
    try:
        return datetime.fromtimestamp(seconds)
    except (OverflowError, OSError, ValueError):
        return None


__all__ = [
    "to_list",
    "get_field",
    "text_field",
    "number_field",
    "to_number",
    "is_finite_number",
    "as_int",
    "get_book_ref",
    "annotation_kind",
    "book_status_tag",
    "pages_read",
    "annotation_timestamp",
    "parse_datetime_like",
    "parse_day",
    "timestamp_to_datetime",
]
