from __future__ import annotations

import asyncio
import datetime as dt
import logging
from pathlib import Path
from typing import Any

from .client import DashboardClient, DashboardError
from .config import Settings
from .dedupe import dedupe_books_for_display
from .records import get_book_ref, text_field
from .snapshot import Snapshot, save_snapshot

logger = logging.getLogger(__name__)


class SnapshotService:
    def __init__(self, settings: Settings, client: DashboardClient | None = None) -> None:
        self.settings = settings
        try:
            self.client = client or DashboardClient(
                settings.api_base_url,
                timeout=settings.api_timeout,
                concurrency=settings.concurrency,
                rpm=settings.rpm,
            )
        except DashboardError as exc:
            logger.error("Failed to initialize dashboard client: %s", exc)
            raise

    async def close(self) -> None:
        await self.client.close()

    async def pull(self, *, with_details: bool = True, max_books: int | None = None) -> Snapshot:
        """Fetch every top-level collection and, optionally, per-book details."""
        books, stats, dashboard, highlights = await asyncio.gather(
            self.client.get_books(),
            self.client.get_stats(),
            self.client.get_dashboard(),
            self.client.get_highlights(),
        )
        snapshot = Snapshot(books=books, stats=stats, dashboard=dashboard, highlights=highlights)
        logger.info(
            "Pulled %d books, %d stats books, %d highlights",
            len(books),
            len(snapshot.stats_books),
            len(highlights),
        )
        if not with_details:
            return snapshot

        refs = [get_book_ref(text_field(book, "id")) for book in dedupe_books_for_display(books)]
        refs = [ref for ref in refs if ref]
        if max_books is not None:
            refs = refs[:max_books]
        semaphore = asyncio.Semaphore(self.settings.concurrency)
        results = await asyncio.gather(*(self._pull_book(ref, semaphore) for ref in refs))
        snapshot.book_details = {ref: detail for ref, detail in zip(refs, results) if detail is not None}
        logger.info("Pulled details for %d/%d books", len(snapshot.book_details), len(refs))
        return snapshot

    async def pull_and_save(self, *, date: dt.date | None = None, with_details: bool = True) -> Path:
        snapshot = await self.pull(with_details=with_details)
        return save_snapshot(self.settings.snapshot_dir, snapshot, date=date)

    async def _pull_book(self, ref: str, semaphore: asyncio.Semaphore) -> dict[str, Any] | None:
        async with semaphore:
            try:
                book = await self.client.get_book(ref)
            except DashboardError as exc:
                logger.warning("Skipping book %s: %s", ref, exc)
                return None
            annotations = await self.client.get_book_annotations(ref)
            timeline = await self.client.get_book_timeline(ref)
        return {"book": book, "annotations": annotations, "timeline": timeline}


__all__ = ["SnapshotService"]
