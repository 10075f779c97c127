"""PR state data models.

Decoupled from prthreads_core so the store layer can be used independently.
Field names follow Python conventions; the camelCase keys of the on-disk
format live only in to_dict/from_dict.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

STATUSES = ("done", "skip", "later")


def utc_now_iso(now: datetime | None = None) -> str:
    """Return an ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def parse_iso(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class PageRecord:
    """One fetched page: the cursor passed to fetch it and how many items it held."""

    cursor: str | None
    item_count: int

    def to_dict(self) -> dict:
        return {"cursor": self.cursor, "itemCount": self.item_count}

    @staticmethod
    def from_dict(d: dict) -> PageRecord:
        return PageRecord(cursor=d.get("cursor"), item_count=d.get("itemCount", 0))


@dataclass
class PaginationCache:
    """Recorded progress through one paginated query.

    ``pages`` is a cursor chain starting from ``None``. ``last_page_has_more``
    says whether the chain was known to be incomplete at ``fetched_at``.
    """

    pages: list[PageRecord] = field(default_factory=list)
    last_page_has_more: bool = False
    total_items: int = 0
    fetched_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict:
        return {
            "pages": [p.to_dict() for p in self.pages],
            "lastPageHasMore": self.last_page_has_more,
            "totalItems": self.total_items,
            "fetchedAt": self.fetched_at,
        }

    @staticmethod
    def from_dict(d: dict) -> PaginationCache:
        return PaginationCache(
            pages=[PageRecord.from_dict(p) for p in d.get("pages", [])],
            last_page_has_more=bool(d.get("lastPageHasMore", False)),
            total_items=d.get("totalItems", 0),
            fetched_at=d.get("fetchedAt", ""),
        )


@dataclass
class CursorCache:
    """Pagination caches keyed by query type.

    ``thread_comments`` is kept verbatim: per-thread comment pagination is
    always fetched cold, so its entry is only ever carried forward.
    """

    entries: dict[str, PaginationCache] = field(default_factory=dict)
    thread_comments: Any = None

    def get(self, query_type: str) -> PaginationCache | None:
        return self.entries.get(query_type)

    def to_dict(self) -> dict:
        data: dict[str, Any] = {name: cache.to_dict() for name, cache in self.entries.items()}
        if self.thread_comments is not None:
            data["threadComments"] = self.thread_comments
        return data

    @staticmethod
    def from_dict(d: dict) -> CursorCache:
        entries = {
            name: PaginationCache.from_dict(value)
            for name, value in d.items()
            if name != "threadComments" and isinstance(value, dict)
        }
        return CursorCache(entries=entries, thread_comments=d.get("threadComments"))


@dataclass
class ItemRecord:
    status: str  # "done" | "skip" | "later"
    note: str | None = None

    def to_dict(self) -> dict:
        data = {"status": self.status}
        if self.note is not None:
            data["note"] = self.note
        return data

    @staticmethod
    def from_dict(d: dict) -> ItemRecord:
        return ItemRecord(status=d.get("status", ""), note=d.get("note"))


class ItemKind(enum.Enum):
    THREAD = "thread"
    NITPICK = "nitpick"


@dataclass(frozen=True)
class ItemRef:
    """A user-supplied token resolved to a full ID, classified once."""

    token: str
    full_id: str
    kind: ItemKind

    @property
    def is_thread(self) -> bool:
        return self.kind is ItemKind.THREAD


@dataclass
class State:
    """Everything persisted for one pull request between runs."""

    pr: str = ""
    updated_at: str = ""
    threads: dict[str, ItemRecord] = field(default_factory=dict)
    nitpicks: dict[str, ItemRecord] = field(default_factory=dict)
    id_map: dict[str, str] = field(default_factory=dict)
    cursor_cache: CursorCache | None = None

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "pr": self.pr,
            "updatedAt": self.updated_at,
            "threads": {k: v.to_dict() for k, v in self.threads.items()},
            "nitpicks": {k: v.to_dict() for k, v in self.nitpicks.items()},
            "idMap": dict(self.id_map),
        }
        if self.cursor_cache is not None:
            data["cursorCache"] = self.cursor_cache.to_dict()
        return data

    @staticmethod
    def from_dict(d: dict) -> State:
        cursor_cache = d.get("cursorCache")
        return State(
            pr=d.get("pr", ""),
            updated_at=d.get("updatedAt", ""),
            threads={k: ItemRecord.from_dict(v) for k, v in (d.get("threads") or {}).items()},
            nitpicks={k: ItemRecord.from_dict(v) for k, v in (d.get("nitpicks") or {}).items()},
            id_map=dict(d.get("idMap") or {}),
            cursor_cache=CursorCache.from_dict(cursor_cache) if cursor_cache else None,
        )
