from __future__ import annotations

import datetime as dt
import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from filelock import FileLock

logger = logging.getLogger(__name__)

SNAPSHOT_FILENAME = "snapshot.json"


class SnapshotNotFoundError(FileNotFoundError):
    pass


@dataclass(slots=True)
class Snapshot:
    """Raw collections as served by the dashboard API on one day."""

    books: list[dict[str, Any]] = field(default_factory=list)
    stats: dict[str, Any] = field(default_factory=dict)
    dashboard: dict[str, Any] = field(default_factory=dict)
    highlights: list[dict[str, Any]] = field(default_factory=list)
    # book ref -> {"book": ..., "annotations": [...], "timeline": {...}}
    book_details: dict[str, dict[str, Any]] = field(default_factory=dict)
    pulled_at: str = ""

    @property
    def stats_books(self) -> list[dict[str, Any]]:
        books = self.stats.get("books") if isinstance(self.stats, dict) else None
        return books if isinstance(books, list) else []

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Snapshot:
        def _mapping(key: str) -> dict[str, Any]:
            value = data.get(key)
            return value if isinstance(value, dict) else {}

        def _sequence(key: str) -> list[dict[str, Any]]:
            value = data.get(key)
            return value if isinstance(value, list) else []

        return cls(
            books=_sequence("books"),
            stats=_mapping("stats"),
            dashboard=_mapping("dashboard"),
            highlights=_sequence("highlights"),
            book_details=_mapping("book_details"),
            pulled_at=str(data.get("pulled_at") or ""),
        )


def snapshot_path(root: Path, *, date: dt.date | None = None) -> Path:
    date = date or dt.datetime.now().date()
    return root / date.strftime("%Y%m%d") / SNAPSHOT_FILENAME


def save_snapshot(root: Path, snapshot: Snapshot, *, date: dt.date | None = None) -> Path:
    path = snapshot_path(root, date=date)
    path.parent.mkdir(parents=True, exist_ok=True)
    if not snapshot.pulled_at:
        snapshot.pulled_at = dt.datetime.now().isoformat(timespec="seconds")
    lock = FileLock(str(path) + ".lock")
    with lock:
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, "w", encoding="utf-8") as fh:
            json.dump(asdict(snapshot), fh, ensure_ascii=False, indent=2)
        tmp_path.replace(path)
    logger.info("Saved snapshot %s (%d books)", path, len(snapshot.books))
    return path


def list_snapshot_dates(root: Path) -> list[dt.date]:
    if not root.exists():
        return []
    dates: list[dt.date] = []
    for child in root.iterdir():
        if not (child / SNAPSHOT_FILENAME).is_file():
            continue
        try:
            dates.append(dt.datetime.strptime(child.name, "%Y%m%d").date())
        except ValueError:
            continue
    return sorted(dates)


def load_snapshot(root: Path, *, date: dt.date | None = None) -> Snapshot:
    """Load the snapshot for ``date``, or the most recent one."""
    if date is None:
        dates = list_snapshot_dates(root)
        if not dates:
            raise SnapshotNotFoundError(f"No snapshots under {root}; run `reading-insights pull` first")
        date = dates[-1]
    path = snapshot_path(root, date=date)
    if not path.exists():
        raise SnapshotNotFoundError(f"No snapshot for {date.isoformat()} at {path}")
    with FileLock(str(path) + ".lock"):
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    if not isinstance(data, dict):
        raise ValueError(f"Snapshot {path} must contain a JSON object")
    logger.debug("Loaded snapshot %s", path)
    return Snapshot.from_dict(data)


__all__ = [
    "SNAPSHOT_FILENAME",
    "Snapshot",
    "SnapshotNotFoundError",
    "snapshot_path",
    "save_snapshot",
    "list_snapshot_dates",
    "load_snapshot",
]
