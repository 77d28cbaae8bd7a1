from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any
from urllib.parse import quote

import httpx
from aiolimiter import AsyncLimiter

from .analytics import empty_dashboard

logger = logging.getLogger(__name__)


class DashboardError(Exception):
    pass


def book_path(ref: str, suffix: str = "") -> str:
    path = f"books/{quote(str(ref), safe='')}"
    return f"{path}/{suffix}" if suffix else path


class DashboardClient:
    """Async client for the reading dashboard API with a shared rate limit.

    Successful responses are cached per path for the life of the client;
    ``invalidate`` drops entries so the next call refetches them.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        concurrency: int = 4,
        rpm: int = 240,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise DashboardError("dashboard base URL is required")
        limits = httpx.Limits(max_connections=max(5, concurrency * 2), max_keepalive_connections=max(5, concurrency))
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/api/",
            timeout=httpx.Timeout(timeout, connect=min(5.0, timeout)),
            limits=limits,
            follow_redirects=True,
            transport=transport,
        )
        self._limiter = AsyncLimiter(max(1, rpm), time_period=60)
        self._cache: dict[str, Any] = {}

    async def close(self) -> None:
        await self._client.aclose()

    def invalidate(self, *paths: str) -> None:
        for path in paths:
            self._cache.pop(path, None)

    async def get_json(self, path: str, *, use_cache: bool = True) -> Any:
        if use_cache and path in self._cache:
            return self._cache[path]
        async with self._limiter:
            try:
                response = await self._client.get(path)
            except httpx.HTTPError as exc:
                raise DashboardError(f"API /{path} request failed: {exc}") from exc
            if response.status_code == 429:
                await self._respect_retry_after(response)
                try:
                    response = await self._client.get(path)
                except httpx.HTTPError as exc:
                    raise DashboardError(f"API /{path} request failed: {exc}") from exc
        payload: Any = None
        if response.content:
            try:
                payload = response.json()
            except ValueError:
                payload = response.text
        if not response.is_success:
            raise DashboardError(f"API /{path} returned {response.status_code}: {_error_message(payload)}")
        logger.debug("GET /%s -> %s", path, response.status_code)
        if use_cache:
            self._cache[path] = payload
        return payload

    async def get_books(self) -> list[dict[str, Any]]:
        payload = await self.get_json("books")
        return _list_field(payload, "books")

    async def get_stats(self) -> dict[str, Any]:
        try:
            payload = await self.get_json("stats")
        except DashboardError as exc:
            logger.warning("Stats unavailable: %s", exc)
            return {"books": [], "daily": []}
        if not isinstance(payload, dict):
            return {"books": [], "daily": []}
        return {**payload, "books": _list_field(payload, "books"), "daily": _list_field(payload, "daily")}

    async def get_dashboard(self) -> dict[str, Any]:
        try:
            payload = await self.get_json("dashboard")
        except DashboardError as exc:
            logger.warning("Dashboard unavailable, using empty dashboard: %s", exc)
            return empty_dashboard()
        return payload if isinstance(payload, dict) else empty_dashboard()

    async def get_highlights(self) -> list[dict[str, Any]]:
        try:
            payload = await self.get_json("highlights")
        except DashboardError as exc:
            logger.warning("Highlights unavailable: %s", exc)
            return []
        if isinstance(payload, list):
            return payload
        return _list_field(payload, "highlights")

    async def get_book(self, ref: str) -> dict[str, Any]:
        payload = await self.get_json(book_path(ref))
        if not isinstance(payload, dict) or payload.get("error"):
            raise DashboardError(f"book {ref!r} not found")
        return payload

    async def get_book_annotations(self, ref: str) -> list[dict[str, Any]]:
        try:
            payload = await self.get_json(book_path(ref, "annotations"))
        except DashboardError as exc:
            logger.warning("Annotations unavailable for %s: %s", ref, exc)
            return []
        return _list_field(payload, "annotations")

    async def get_book_timeline(self, ref: str) -> dict[str, Any]:
        try:
            payload = await self.get_json(book_path(ref, "timeline"))
        except DashboardError as exc:
            logger.warning("Timeline unavailable for %s: %s", ref, exc)
            return {"sessions": [], "daily": [], "total": 0}
        if not isinstance(payload, dict):
            return {"sessions": [], "daily": [], "total": 0}
        return {
            **payload,
            "sessions": _list_field(payload, "sessions"),
            "daily": _list_field(payload, "daily"),
        }

    async def _respect_retry_after(self, response: httpx.Response) -> None:
        retry_after = response.headers.get("Retry-After")
        delay = 1.0
        if retry_after:
            with contextlib.suppress(ValueError):
                delay = max(1.0, float(retry_after))
        logger.warning("Rate limited by dashboard, sleeping for %.1fs", delay)
        await asyncio.sleep(delay)


def _list_field(payload: Any, key: str) -> list[Any]:
    if isinstance(payload, dict):
        value = payload.get(key)
        return value if isinstance(value, list) else []
    return []


def _error_message(payload: Any) -> str:
    if isinstance(payload, str):
        return payload
    if isinstance(payload, dict):
        message = payload.get("detail") or payload.get("error")
        if message:
            return str(message)
    return json.dumps(payload or {})


__all__ = ["DashboardClient", "DashboardError", "book_path"]
