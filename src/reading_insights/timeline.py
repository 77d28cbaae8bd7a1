from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .models import Milestone
from .records import (
    annotation_kind,
    annotation_timestamp,
    as_int,
    number_field,
    parse_datetime_like,
    text_field,
    timestamp_to_datetime,
    to_list,
)


def _session_milestone(key: str, label: str, kind: str, session: Mapping[str, Any]) -> Milestone:
    page = int(number_field(session, "page"))
    total = int(number_field(session, "total_pages"))
    return Milestone(
        key=key,
        label=label,
        kind=kind,  # type: ignore[arg-type]
        when=timestamp_to_datetime(session.get("start_time")),
        page=page or None,
        total_pages=total or None,
        duration=as_int(number_field(session, "duration")),
    )


def build_book_milestones(
    sessions: Any = (),
    annotations: Any = (),
    first_session: Mapping[str, Any] | None = None,
    last_session: Mapping[str, Any] | None = None,
) -> list[Milestone]:
    """First open, first annotation and last open for one book.

    Explicit ``first_session``/``last_session`` summaries from the timeline
    endpoint take precedence over what the (possibly paginated) session list
    shows.
    """
    ordered = sorted(
        (s for s in to_list(sessions) if isinstance(s, Mapping) and number_field(s, "start_time") > 0),
        key=lambda s: number_field(s, "start_time"),
    )
    first = first_session if number_field(first_session, "start_time") > 0 else (ordered[0] if ordered else None)
    last = last_session if number_field(last_session, "start_time") > 0 else (ordered[-1] if ordered else None)

    dated = []
    for annotation in to_list(annotations):
        moment = parse_datetime_like(annotation_timestamp(annotation))
        if moment is not None:
            dated.append((moment, annotation))
    dated.sort(key=lambda pair: pair[0])

    points: list[Milestone] = []
    if first is not None:
        points.append(_session_milestone("first-open", "First open", "open", first))
    if dated:
        moment, annotation = dated[0]
        pageno = int(number_field(annotation, "pageno"))
        points.append(
            Milestone(
                key="first-annotation",
                label="First annotation",
                kind="annotation",
                when=moment,
                page=pageno or None,
                annotation_kind=annotation_kind(annotation),
                chapter=text_field(annotation, "chapter"),
            )
        )
    if last is not None:
        points.append(_session_milestone("last-open", "Last open", "last", last))
    return points


__all__ = ["build_book_milestones"]
