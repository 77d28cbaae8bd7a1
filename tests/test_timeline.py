from __future__ import annotations

from datetime import datetime

from reading_insights.timeline import build_book_milestones


def test_milestones_from_sessions_and_annotations() -> None:
    sessions = [
        {"start_time": 1_700_100_000, "duration": 600, "page": 40, "total_pages": 400},
        {"start_time": 1_700_000_000, "duration": 300, "page": 1, "total_pages": 400},
        {"start_time": 0, "duration": 999},
    ]
    annotations = [
        {"datetime": "2023-11-20 10:00:00", "text": "later"},
        {"datetime": "2023-11-15 08:30:00", "text": "first", "note": "n", "pageno": 5, "chapter": "One"},
        {"datetime": ""},
    ]
    points = build_book_milestones(sessions, annotations)
    assert [point.key for point in points] == ["first-open", "first-annotation", "last-open"]
    first_open, first_note, last_open = points
    assert first_open.when == datetime.fromtimestamp(1_700_000_000)
    assert first_open.page == 1
    assert first_open.duration == 300
    assert first_note.when == datetime(2023, 11, 15, 8, 30)
    assert first_note.annotation_kind == "note"
    assert first_note.page == 5
    assert first_note.chapter == "One"
    assert last_open.kind == "last"
    assert last_open.page == 40
    assert last_open.total_pages == 400


def test_explicit_session_summaries_take_precedence() -> None:
    sessions = [{"start_time": 1_700_000_000, "page": 3}]
    first = {"start_time": 1_600_000_000, "page": 1}
    points = build_book_milestones(sessions, [], first_session=first, last_session=None)
    assert [point.key for point in points] == ["first-open", "last-open"]
    assert points[0].page == 1
    assert points[1].page == 3


def test_no_activity_yields_no_milestones() -> None:
    assert build_book_milestones() == []
    assert build_book_milestones(None, None) == []
