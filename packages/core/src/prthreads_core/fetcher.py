"""Paginated PR data fetching with an incremental cursor cache.

GraphQL pagination is a cursor chain, so a first (cold) fetch has to walk it
one page at a time. A cursor seen on an earlier run can still be
dereferenced on its own, though, so a warm fetch replays every recorded
cursor in parallel to pick up edits on pages already seen (resolution state,
reactions) and only walks sequentially past the end of the known chain.

Three strategies per query type:

* cold: with no cache, or one older than the TTL, walk from ``None``.
* warm: with a valid cache, refresh known pages in parallel and walk a delta that
  continues from the refreshed last page.
* fallback: a warm fetch that hits a stale cursor is thrown away and redone
  cold. Any other error propagates.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Collection

from prthreads_core.errors import StaleCursorError
from prthreads_core.gh.queries import FILES, META_QUERY, QUERY_TYPES, THREAD_COMMENTS_QUERY, THREADS, QueryType
from prthreads_core.utils.concurrency import pmap
from prthreads_store.cache import is_cache_valid
from prthreads_store.models import CursorCache, PageRecord, PaginationCache, utc_now_iso
from prthreads_store.registry import is_location_token

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 8


@dataclass
class Page:
    nodes: list[dict]
    has_next_page: bool
    end_cursor: str | None


@dataclass
class FetchResult:
    nodes: list[dict]
    cache: PaginationCache
    had_new_data: bool


@dataclass
class _Walk:
    nodes: list[dict] = field(default_factory=list)
    pages: list[PageRecord] = field(default_factory=list)
    has_more: bool = False


async def fetch_page(client, query_type: QueryType, cursor: str | None) -> Page:
    """Fetch one page of ``query_type`` starting after ``cursor`` (None = first page)."""
    data = await client.query(query_type.query, {"after": cursor})
    pull_request = (data.get("repository") or {}).get("pullRequest") or {}
    connection = pull_request.get(query_type.connection) or {}
    page_info = connection.get("pageInfo") or {}
    return Page(
        nodes=list(connection.get("nodes") or []),
        has_next_page=bool(page_info.get("hasNextPage")),
        end_cursor=page_info.get("endCursor"),
    )


async def _walk(client, query_type: QueryType, cursor: str | None) -> _Walk:
    """Fetch pages sequentially from ``cursor`` until the chain ends."""
    walk = _Walk(has_more=True)
    while walk.has_more:
        page = await fetch_page(client, query_type, cursor)
        walk.pages.append(PageRecord(cursor=cursor, item_count=len(page.nodes)))
        walk.nodes.extend(page.nodes)
        walk.has_more = page.has_next_page
        if page.end_cursor is None:
            break
        cursor = page.end_cursor
    return walk


async def fetch_cold(client, query_type: QueryType) -> FetchResult:
    """Walk the whole cursor chain. Correct from any starting state."""
    start = time.monotonic()
    walk = await _walk(client, query_type, None)
    logger.debug(
        "%s: cold fetch of %d page(s), %d node(s) in %.0fms",
        query_type.name,
        len(walk.pages),
        len(walk.nodes),
        (time.monotonic() - start) * 1000,
    )
    cache = PaginationCache(
        pages=walk.pages,
        last_page_has_more=walk.has_more,
        total_items=len(walk.nodes),
        fetched_at=utc_now_iso(),
    )
    # No baseline to compare with: everything counts as new.
    return FetchResult(nodes=walk.nodes, cache=cache, had_new_data=True)


async def fetch_warm(
    client,
    query_type: QueryType,
    cache: PaginationCache,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
) -> FetchResult:
    """Refresh known pages in parallel and fetch any pages past the known chain."""
    if not cache.pages:
        return await fetch_cold(client, query_type)

    start = time.monotonic()
    last_index = len(cache.pages) - 1

    async def refresh(index: int) -> tuple[Page, _Walk | None]:
        record = cache.pages[index]
        page = await fetch_page(client, query_type, record.cursor)
        if index != last_index:
            return page, None
        # The delta needs the refreshed last page's end cursor, so it chains here.
        if page.has_next_page and page.end_cursor is not None:
            return page, await _walk(client, query_type, page.end_cursor)
        return page, _Walk(has_more=page.has_next_page)

    try:
        refreshed = await pmap(refresh, range(len(cache.pages)), max_concurrency)
    except StaleCursorError as e:
        logger.warning("%s: cached cursor is stale (%s); refetching from the start", query_type.name, e)
        return await fetch_cold(client, query_type)

    delta = refreshed[-1][1] or _Walk()
    nodes = [node for page, _ in refreshed for node in page.nodes]
    nodes.extend(delta.nodes)

    logger.debug(
        "%s: warm fetch refreshed %d page(s), %d new page(s), %d node(s) in %.0fms",
        query_type.name,
        len(cache.pages),
        len(delta.pages),
        len(nodes),
        (time.monotonic() - start) * 1000,
    )
    new_cache = PaginationCache(
        pages=list(cache.pages) + delta.pages,
        last_page_has_more=delta.has_more,
        total_items=len(nodes),
        fetched_at=utc_now_iso(),
    )
    return FetchResult(nodes=nodes, cache=new_cache, had_new_data=len(delta.nodes) > 0)


async def fetch_with_cache(
    client,
    query_type: QueryType,
    cached: PaginationCache | None,
    ttl_minutes: float,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
) -> FetchResult:
    """Warm fetch when ``cached`` is present and within the TTL, otherwise cold."""
    if cached is not None and is_cache_valid(cached, ttl_minutes):
        return await fetch_warm(client, query_type, cached, max_concurrency)
    return await fetch_cold(client, query_type)


async def fetch_thread_comments(client, thread: dict) -> list[dict]:
    """Return every comment of a review thread.

    The first page comes embedded in the thread node. Later pages are always
    fetched cold; per-thread cursors are not cached.
    """
    embedded = thread.get("comments") or {}
    comments = list(embedded.get("nodes") or [])
    page_info = embedded.get("pageInfo") or {}
    has_next = bool(page_info.get("hasNextPage"))
    cursor = page_info.get("endCursor")

    while has_next and cursor:
        data = await client.query(THREAD_COMMENTS_QUERY, {"threadId": thread["id"], "after": cursor}, pr_scoped=False)
        node = data.get("node")
        if not node:
            break
        connection = node.get("comments") or {}
        comments.extend(connection.get("nodes") or [])
        page_info = connection.get("pageInfo") or {}
        has_next = bool(page_info.get("hasNextPage"))
        cursor = page_info.get("endCursor")
    return comments


@dataclass
class PRMetadata:
    number: int
    title: str
    state: str
    is_draft: bool
    mergeable: str
    author: str
    total_additions: int = 0
    total_deletions: int = 0
    files: list[dict] = field(default_factory=list)


@dataclass
class PRData:
    threads: list[dict]
    files: list[dict]
    reviews: list[dict]
    comments: list[dict]
    metadata: PRMetadata
    cursor_cache: CursorCache
    had_new_data: dict[str, bool] = field(default_factory=dict)


async def fetch_metadata(client) -> PRMetadata:
    data = await client.query(META_QUERY)
    pr = (data.get("repository") or {}).get("pullRequest") or {}
    return PRMetadata(
        number=pr.get("number", 0),
        title=pr.get("title", ""),
        state=pr.get("state", ""),
        is_draft=bool(pr.get("isDraft", False)),
        mergeable=pr.get("mergeable", ""),
        author=(pr.get("author") or {}).get("login", "unknown"),
        total_additions=pr.get("additions", 0),
        total_deletions=pr.get("deletions", 0),
    )


async def fetch_pr_data(
    client,
    cursor_cache: CursorCache | None = None,
    ttl_minutes: float = 5,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    include_files: bool = True,
    target_thread_id: str | None = None,
    only: Collection[str] | None = None,
) -> PRData:
    """Fetch threads, files, reviews, comments and metadata concurrently.

    Each query type uses its own cache entry. The returned cursor cache
    replaces every entry wholesale and carries ``thread_comments`` over
    unchanged.

    Skipped types come back empty and keep their cache entry. ``only``
    limits the fetch to the named types; threads are always fetched since
    they feed the short-ID registry. A ``target_thread_id`` naming one
    thread by ID skips everything but threads, while a ``path:line`` target
    still fetches everything.
    """
    start = time.monotonic()
    cursor_cache = cursor_cache or CursorCache()
    skipped = set() if include_files else {FILES.name}
    if only:
        skipped.update(qt.name for qt in QUERY_TYPES if qt is not THREADS and qt.name not in only)
    if target_thread_id and not is_location_token(target_thread_id):
        skipped.update(qt.name for qt in QUERY_TYPES if qt is not THREADS)
    if skipped:
        logger.debug("Skipping %s", ", ".join(sorted(skipped)))

    async def fetch_type(query_type: QueryType) -> FetchResult:
        cached = cursor_cache.get(query_type.name)
        if query_type.name in skipped:
            return FetchResult(nodes=[], cache=cached or PaginationCache(), had_new_data=False)
        return await fetch_with_cache(client, query_type, cached, ttl_minutes, max_concurrency)

    *results, metadata = await asyncio.gather(*(fetch_type(qt) for qt in QUERY_TYPES), fetch_metadata(client))
    by_name: dict[str, FetchResult] = {qt.name: result for qt, result in zip(QUERY_TYPES, results)}
    logger.debug("All PR data fetched in %.0fms", (time.monotonic() - start) * 1000)

    files = by_name["files"].nodes
    if files:
        metadata.total_additions = sum(f.get("additions", 0) for f in files)
        metadata.total_deletions = sum(f.get("deletions", 0) for f in files)
    metadata.files = files

    return PRData(
        threads=by_name["threads"].nodes,
        files=files,
        reviews=by_name["reviews"].nodes,
        comments=by_name["comments"].nodes,
        metadata=metadata,
        cursor_cache=CursorCache(
            entries={name: result.cache for name, result in by_name.items()},
            thread_comments=cursor_cache.thread_comments,
        ),
        had_new_data={name: result.had_new_data for name, result in by_name.items()},
    )
