from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from .config import Preferences
from .covers import CoverResolver, book_cover_url
from .dedupe import dedupe_annotations_for_display
from .formatting import format_timestamp
from .models import BookGroup, HighlightsSort, HighlightsType
from .normalize import normalize_loose_title
from .records import (
    annotation_kind,
    annotation_timestamp,
    get_book_ref,
    parse_datetime_like,
    text_field,
    to_list,
)

logger = logging.getLogger(__name__)

_SEARCH_FIELDS = ("book_title", "book_authors", "chapter", "text", "note")


def annotation_search_text(annotation: Any) -> str:
    return " ".join(text_field(annotation, key) for key in _SEARCH_FIELDS).lower()


def annotation_epoch(annotation: Any) -> float:
    moment = parse_datetime_like(annotation_timestamp(annotation))
    return moment.timestamp() if moment else 0.0


def filter_annotations(items: Any, kind: HighlightsType = "all", query: str = "") -> list[Any]:
    needle = (query or "").strip().lower()
    result = []
    for item in to_list(items):
        if kind != "all" and annotation_kind(item) != kind:
            continue
        if needle and needle not in annotation_search_text(item):
            continue
        result.append(item)
    return result


def annotation_group_key(annotation: Any) -> str:
    explicit = get_book_ref(text_field(annotation, "book_ref") or text_field(annotation, "book_id"))
    if explicit:
        return explicit
    title = normalize_loose_title(text_field(annotation, "book_title"))
    authors = normalize_loose_title(text_field(annotation, "book_authors"))
    return f"{title}::{authors}"


def group_annotations(
    items: Any,
    sort: HighlightsSort = "recent",
    resolver: CoverResolver | None = None,
) -> list[BookGroup]:
    """Group annotations per book, newest first within each group."""
    groups: dict[str, BookGroup] = {}
    for item in to_list(items):
        if not isinstance(item, Mapping):
            continue
        key = annotation_group_key(item)
        group = groups.get(key)
        if group is None:
            group = BookGroup(
                id=key,
                book_ref=get_book_ref(text_field(item, "book_ref") or text_field(item, "book_id")),
                book_md5=get_book_ref(item.get("book_md5")),
                title=text_field(item, "book_title"),
                authors=text_field(item, "book_authors"),
            )
            groups[key] = group
        group.items.append(item)

    for group in groups.values():
        group.items.sort(key=annotation_epoch, reverse=True)
        group.last_ts = annotation_epoch(group.items[0]) if group.items else 0.0
        group.note_count = sum(1 for item in group.items if annotation_kind(item) == "note")
        group.cover_url = _group_cover_url(group, resolver)

    return sort_groups(list(groups.values()), sort)


def _group_cover_url(group: BookGroup, resolver: CoverResolver | None) -> str:
    if resolver is None:
        return book_cover_url(group.book_ref) if group.book_ref else ""
    resolved = resolver(
        {"book_ref": group.book_ref, "md5": group.book_md5, "title": group.title, "authors": group.authors}
    )
    return text_field(resolved, "cover_url")


def sort_groups(groups: list[BookGroup], sort: HighlightsSort = "recent") -> list[BookGroup]:
    if sort == "title":
        return sorted(groups, key=lambda g: g.title.casefold())
    if sort == "count":
        return sorted(groups, key=lambda g: (-len(g.items), -g.last_ts))
    return sorted(groups, key=lambda g: (-g.last_ts, -len(g.items)))


def build_highlight_groups(
    annotations: Any,
    prefs: Preferences | None = None,
    resolver: CoverResolver | None = None,
) -> list[BookGroup]:
    """Highlights view: dedupe, filter by kind and search text, group and sort."""
    prefs = prefs or Preferences()
    unique = dedupe_annotations_for_display(annotations)
    visible = filter_annotations(unique, prefs.highlights_type, prefs.highlights_search)
    groups = group_annotations(visible, prefs.highlights_sort, resolver)
    logger.debug("Grouped %d annotations into %d books", len(visible), len(groups))
    return groups


def annotation_copy_text(annotation: Any) -> str:
    lines: list[str] = []
    for label, key in (("Book", "book_title"), ("Author", "book_authors"), ("Chapter", "chapter"), ("Page", "pageno")):
        value = text_field(annotation, key)
        if value:
            lines.append(f"{label}: {value}")
    stamp = text_field(annotation, "datetime")
    if stamp:
        lines.append(f"Date: {format_timestamp(stamp)}")
    text = text_field(annotation, "text")
    note = text_field(annotation, "note")
    if text:
        if lines:
            lines.append("")
        lines.append(text)
    if note:
        if text:
            lines.append("")
        lines.append(f"Note: {note}")
    return "\n".join(lines).strip()


def export_rows(groups: list[BookGroup]) -> list[dict[str, Any]]:
    rows = []
    for group in groups:
        for item in group.items:
            rows.append(
                {
                    "book_id": group.id,
                    "book_ref": group.book_ref or text_field(item, "book_ref") or None,
                    "book_md5": group.book_md5 or text_field(item, "book_md5"),
                    "book_title": group.title,
                    "book_authors": group.authors,
                    "type": annotation_kind(item),
                    "color": text_field(item, "color"),
                    "chapter": text_field(item, "chapter"),
                    "page": text_field(item, "pageno"),
                    "datetime": annotation_timestamp(item),
                    "text": text_field(item, "text"),
                    "note": text_field(item, "note"),
                    "drawer": text_field(item, "drawer"),
                }
            )
    return rows


def export_highlights_json(groups: list[BookGroup], *, now: datetime | None = None) -> str:
    rows = export_rows(groups)
    payload = {
        "exported_at": (now or datetime.now()).isoformat(),
        "books": len(groups),
        "items": len(rows),
        "rows": rows,
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)


def _single_line(value: str) -> str:
    return value.replace("\n", " ")


def export_highlights_markdown(groups: list[BookGroup], *, now: datetime | None = None) -> str:
    lines = [
        "# Highlights Export",
        "",
        f"Exported: {format_timestamp(now or datetime.now())}",
        f"Books: {len(groups)}",
        f"Items: {sum(len(group.items) for group in groups)}",
        "",
    ]
    for group in groups:
        lines.append(f"## {_single_line(group.title or 'Untitled')}")
        if group.authors:
            lines.append(f"Author: {_single_line(group.authors)}")
        lines.append("")
        for position, item in enumerate(group.items, start=1):
            lines.append(f"### {position}. {annotation_kind(item)}")
            stamp = text_field(item, "datetime")
            if stamp:
                lines.append(f"- Date: {format_timestamp(stamp)}")
            chapter = text_field(item, "chapter")
            if chapter:
                lines.append(f"- Chapter: {_single_line(chapter)}")
            page = text_field(item, "pageno")
            if page:
                lines.append(f"- Page: {page}")
            color = text_field(item, "color")
            if color:
                lines.append(f"- Color: {color}")
            lines.append("")
            text = text_field(item, "text")
            if text:
                lines.append("> " + text.replace("\n", "\n> "))
                lines.append("")
            note = text_field(item, "note")
            if note:
                lines.append("Note:")
                lines.append(note)
                lines.append("")
        lines.append("")
    return "\n".join(lines).strip() + "\n"


__all__ = [
    "annotation_search_text",
    "filter_annotations",
    "annotation_group_key",
    "group_annotations",
    "sort_groups",
    "build_highlight_groups",
    "annotation_copy_text",
    "export_rows",
    "export_highlights_json",
    "export_highlights_markdown",
]
