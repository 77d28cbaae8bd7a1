from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from .normalize import normalize_title, title_author_key
from .records import text_field, to_list

V = TypeVar("V")

EMPTY_TITLE_AUTHOR_KEY = "::"


class FirstWinsIndex(Generic[V]):
    """Insertion-ordered mapping where the first value stored for a key is final.

    Later ``add`` calls for a key that is already present are ignored, so
    duplicate resolution happens once, at build time, and lookups never have
    to reason about order.
    """

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: dict[str, V] = {}

    def add(self, key: str, value: V) -> bool:
        if not key or key in self._items:
            return False
        self._items[key] = value
        return True

    def get(self, key: str, default: V | None = None) -> V | None:
        return self._items.get(key, default)

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def values(self) -> list[V]:
        return list(self._items.values())

    def items(self) -> list[tuple[str, V]]:
        return list(self._items.items())


@dataclass(slots=True)
class MatchIndex:
    by_md5: FirstWinsIndex[Mapping[str, Any]] = field(default_factory=FirstWinsIndex)
    by_title_author: FirstWinsIndex[Mapping[str, Any]] = field(default_factory=FirstWinsIndex)
    by_title: FirstWinsIndex[Mapping[str, Any]] = field(default_factory=FirstWinsIndex)


def build_stats_indexes(records: Any) -> MatchIndex:
    """Index a statistics (or catalog) collection by md5, title+author and title."""
    index = MatchIndex()
    for record in to_list(records):
        if not record or not isinstance(record, Mapping):
            continue
        md5 = text_field(record, "md5")
        if md5:
            index.by_md5.add(md5, record)
        index.by_title.add(normalize_title(record.get("title")), record)
        ta_key = title_author_key(record.get("title"), record.get("authors"))
        if ta_key != EMPTY_TITLE_AUTHOR_KEY:
            index.by_title_author.add(ta_key, record)
    return index


__all__ = ["EMPTY_TITLE_AUTHOR_KEY", "FirstWinsIndex", "MatchIndex", "build_stats_indexes"]
