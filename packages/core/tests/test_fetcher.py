"""Tests for the incremental pagination fetcher."""

from __future__ import annotations

import asyncio

import pytest

from prthreads_core.errors import RemoteError, StaleCursorError
from prthreads_core.fetcher import (
    fetch_cold,
    fetch_pr_data,
    fetch_thread_comments,
    fetch_warm,
    fetch_with_cache,
)
from prthreads_core.gh.queries import FILES, META_QUERY, QUERY_TYPES, THREAD_COMMENTS_QUERY, THREADS
from prthreads_store.models import CursorCache, PageRecord, PaginationCache, utc_now_iso


class FakeGh:
    """Serves paginated connections from in-memory pages.

    Page ``i`` of a connection is fetched with cursor ``None`` (i == 0) or
    ``"c<i>"``. Cursors listed in ``stale`` raise StaleCursorError; cursors
    in ``errors`` raise the mapped exception.
    """

    def __init__(self, pages=None, stale=(), errors=None, thread_comments=None):
        self.pages = pages or {}
        self.stale = set(stale)
        self.errors = errors or {}
        self.thread_comments = thread_comments or {}
        self.calls: list[tuple[str, str | None]] = []
        self.unscoped_calls = 0

    async def query(self, document, variables=None, pr_scoped=True):
        variables = variables or {}
        if document == META_QUERY:
            self.calls.append(("meta", None))
            return {
                "repository": {
                    "pullRequest": {
                        "number": 1,
                        "title": "Fix the thing",
                        "state": "OPEN",
                        "isDraft": False,
                        "mergeable": "MERGEABLE",
                        "additions": 100,
                        "deletions": 50,
                        "author": {"login": "alice"},
                    }
                }
            }
        if document == THREAD_COMMENTS_QUERY:
            if not pr_scoped:
                self.unscoped_calls += 1
            return self._thread_comments(variables["threadId"], variables["after"])

        query_type = next(qt for qt in QUERY_TYPES if qt.query == document)
        cursor = variables.get("after")
        self.calls.append((query_type.name, cursor))
        await asyncio.sleep(0)
        if cursor in self.stale:
            raise StaleCursorError(f"Invalid cursor: {cursor}")
        if cursor in self.errors:
            raise self.errors[cursor]

        pages = self.pages.get(query_type.name, [[]])
        index = 0 if cursor is None else int(cursor[1:])
        return {
            "repository": {
                "pullRequest": {
                    query_type.connection: {
                        "nodes": pages[index],
                        "pageInfo": {"hasNextPage": index + 1 < len(pages), "endCursor": f"c{index + 1}"},
                    }
                }
            }
        }

    def _thread_comments(self, thread_id, cursor):
        pages = self.thread_comments[thread_id]
        index = int(cursor[1:]) - 1
        return {
            "node": {
                "comments": {
                    "nodes": pages[index],
                    "pageInfo": {"hasNextPage": index + 1 < len(pages), "endCursor": f"t{index + 2}"},
                }
            }
        }

    def cursors(self, name):
        return [cursor for query, cursor in self.calls if query == name]


def _nodes(prefix, count):
    return [{"id": f"{prefix}{i}"} for i in range(count)]


def _fresh_cache(pages, has_more=False, total=None):
    return PaginationCache(
        pages=pages,
        last_page_has_more=has_more,
        total_items=total if total is not None else sum(p.item_count for p in pages),
        fetched_at=utc_now_iso(),
    )


# ---------------------------------------------------------------------------
# Cold fetch
# ---------------------------------------------------------------------------


class TestFetchCold:
    def test_walks_every_page(self):
        gh = FakeGh(pages={"threads": [_nodes("a", 3), _nodes("b", 3), _nodes("c", 1)]})
        result = asyncio.run(fetch_cold(gh, THREADS))

        assert [n["id"] for n in result.nodes] == ["a0", "a1", "a2", "b0", "b1", "b2", "c0"]
        assert result.cache.pages == [PageRecord(None, 3), PageRecord("c1", 3), PageRecord("c2", 1)]
        assert result.cache.total_items == 7
        assert result.cache.last_page_has_more is False
        assert result.had_new_data is True

    def test_empty_connection(self):
        gh = FakeGh(pages={"threads": [[]]})
        result = asyncio.run(fetch_cold(gh, THREADS))
        assert result.nodes == []
        assert result.cache.pages == [PageRecord(None, 0)]

    def test_stops_when_end_cursor_missing(self):
        class NoCursorGh(FakeGh):
            async def query(self, document, variables=None, pr_scoped=True):
                data = await super().query(document, variables, pr_scoped)
                data["repository"]["pullRequest"]["reviewThreads"]["pageInfo"]["endCursor"] = None
                return data

        gh = NoCursorGh(pages={"threads": [_nodes("a", 1), _nodes("b", 1)]})
        result = asyncio.run(fetch_cold(gh, THREADS))
        assert len(result.cache.pages) == 1
        assert result.cache.last_page_has_more is True


# ---------------------------------------------------------------------------
# Warm fetch
# ---------------------------------------------------------------------------


class TestFetchWarm:
    def test_unchanged_data_round_trips(self):
        gh = FakeGh(pages={"threads": [_nodes("a", 2), _nodes("b", 2)]})
        cold = asyncio.run(fetch_cold(gh, THREADS))
        warm = asyncio.run(fetch_warm(gh, THREADS, cold.cache))

        assert warm.nodes == cold.nodes
        assert warm.cache.pages == cold.cache.pages
        assert warm.cache.total_items == cold.cache.total_items
        assert warm.had_new_data is False

    def test_refreshes_known_pages_in_parallel(self):
        gh = FakeGh(pages={"threads": [_nodes("a", 1), _nodes("b", 1), _nodes("c", 1)]})
        cache = _fresh_cache([PageRecord(None, 1), PageRecord("c1", 1), PageRecord("c2", 1)])
        asyncio.run(fetch_warm(gh, THREADS, cache))
        assert sorted(gh.cursors("threads"), key=str) == sorted([None, "c1", "c2"], key=str)

    def test_picks_up_edits_on_known_pages(self):
        pages = [[{"id": "a0", "isResolved": False}], [{"id": "b0", "isResolved": False}]]
        gh = FakeGh(pages={"threads": pages})
        cold = asyncio.run(fetch_cold(gh, THREADS))

        pages[0][0]["isResolved"] = True
        warm = asyncio.run(fetch_warm(gh, THREADS, cold.cache))
        assert warm.nodes[0]["isResolved"] is True

    def test_delta_pages_appended(self):
        pages = [_nodes("a", 2), _nodes("b", 2)]
        gh = FakeGh(pages={"threads": pages})
        cold = asyncio.run(fetch_cold(gh, THREADS))

        pages.append(_nodes("c", 1))
        pages.append(_nodes("d", 1))
        gh.calls.clear()
        warm = asyncio.run(fetch_warm(gh, THREADS, cold.cache))

        assert [n["id"] for n in warm.nodes] == ["a0", "a1", "b0", "b1", "c0", "d0"]
        assert [p.cursor for p in warm.cache.pages] == [None, "c1", "c2", "c3"]
        assert warm.cache.total_items == 6
        assert warm.cache.last_page_has_more is False
        assert warm.had_new_data is True
        # The delta continues from the refreshed last page, after it.
        cursors = gh.cursors("threads")
        assert cursors.index("c2") > cursors.index("c1")

    def test_warm_equals_cold_after_growth(self):
        pages = [_nodes("a", 3)]
        gh = FakeGh(pages={"threads": pages})
        cached = asyncio.run(fetch_cold(gh, THREADS)).cache

        pages.extend([_nodes("b", 3), _nodes("c", 2)])
        warm = asyncio.run(fetch_warm(gh, THREADS, cached))
        cold = asyncio.run(fetch_cold(gh, THREADS))
        assert warm.nodes == cold.nodes
        assert warm.cache.pages == cold.cache.pages

    def test_cache_without_pages_fetches_cold(self):
        gh = FakeGh(pages={"threads": [_nodes("a", 1)]})
        result = asyncio.run(fetch_warm(gh, THREADS, _fresh_cache([])))
        assert result.had_new_data is True
        assert gh.cursors("threads") == [None]


class TestStaleCursorFallback:
    def test_stale_cursor_refetches_cold(self):
        gh = FakeGh(pages={"threads": [_nodes("a", 2), _nodes("b", 1)]}, stale={"gone"})
        cache = _fresh_cache([PageRecord(None, 2), PageRecord("gone", 1)])

        result = asyncio.run(fetch_warm(gh, THREADS, cache))
        expected = asyncio.run(fetch_cold(FakeGh(pages={"threads": [_nodes("a", 2), _nodes("b", 1)]}), THREADS))

        assert result.nodes == expected.nodes
        assert result.cache.pages == expected.cache.pages
        assert result.had_new_data is True

    def test_stale_cursor_logs_warning(self, caplog):
        gh = FakeGh(pages={"threads": [_nodes("a", 1)]}, stale={"gone"})
        cache = _fresh_cache([PageRecord(None, 1), PageRecord("gone", 1)])
        with caplog.at_level("WARNING", logger="prthreads_core.fetcher"):
            asyncio.run(fetch_warm(gh, THREADS, cache))
        assert "stale" in caplog.text

    def test_other_errors_propagate(self):
        gh = FakeGh(
            pages={"threads": [_nodes("a", 1), _nodes("b", 1)]},
            errors={"c1": RemoteError("API rate limit exceeded")},
        )
        cache = _fresh_cache([PageRecord(None, 1), PageRecord("c1", 1)])
        with pytest.raises(RemoteError, match="rate limit") as exc_info:
            asyncio.run(fetch_warm(gh, THREADS, cache))
        assert not isinstance(exc_info.value, StaleCursorError)


class TestFetchWithCache:
    def test_no_cache_is_cold(self):
        gh = FakeGh(pages={"threads": [_nodes("a", 1)]})
        result = asyncio.run(fetch_with_cache(gh, THREADS, None, ttl_minutes=5))
        assert result.had_new_data is True

    def test_expired_cache_is_cold(self):
        gh = FakeGh(pages={"threads": [_nodes("a", 1), _nodes("b", 1)]})
        expired = PaginationCache(
            pages=[PageRecord(None, 1), PageRecord("c1", 1)],
            total_items=2,
            fetched_at="2000-01-01T00:00:00.000Z",
        )
        result = asyncio.run(fetch_with_cache(gh, THREADS, expired, ttl_minutes=5))
        assert result.had_new_data is True
        assert gh.cursors("threads") == [None, "c1"]

    def test_valid_cache_is_warm(self):
        gh = FakeGh(pages={"threads": [_nodes("a", 1)]})
        result = asyncio.run(fetch_with_cache(gh, THREADS, _fresh_cache([PageRecord(None, 1)]), ttl_minutes=5))
        assert result.had_new_data is False


# ---------------------------------------------------------------------------
# Thread comments
# ---------------------------------------------------------------------------


class TestFetchThreadComments:
    def test_embedded_only(self):
        thread = {"id": "PRRT_1", "comments": {"nodes": _nodes("m", 2), "pageInfo": {"hasNextPage": False}}}
        assert asyncio.run(fetch_thread_comments(FakeGh(), thread)) == _nodes("m", 2)

    def test_follows_pages_without_pr_variables(self):
        gh = FakeGh(thread_comments={"PRRT_1": [_nodes("n", 2), _nodes("o", 1)]})
        thread = {
            "id": "PRRT_1",
            "comments": {"nodes": _nodes("m", 1), "pageInfo": {"hasNextPage": True, "endCursor": "t1"}},
        }
        comments = asyncio.run(fetch_thread_comments(gh, thread))
        assert [c["id"] for c in comments] == ["m0", "n0", "n1", "o0"]
        assert gh.unscoped_calls == 2


# ---------------------------------------------------------------------------
# fetch_pr_data
# ---------------------------------------------------------------------------


class TestFetchPrData:
    def _gh(self):
        return FakeGh(
            pages={
                "threads": [_nodes("t", 2)],
                "files": [[{"path": "a.py", "additions": 3, "deletions": 1}, {"path": "b.py", "additions": 4}]],
                "reviews": [_nodes("r", 1)],
                "comments": [[]],
            }
        )

    def test_fetches_every_type_and_metadata(self):
        data = asyncio.run(fetch_pr_data(self._gh()))
        assert len(data.threads) == 2
        assert len(data.files) == 2
        assert len(data.reviews) == 1
        assert data.comments == []
        assert data.metadata.title == "Fix the thing"
        assert data.metadata.author == "alice"
        assert set(data.cursor_cache.entries) == {qt.name for qt in QUERY_TYPES}
        assert all(data.had_new_data.values())

    def test_totals_summed_from_files(self):
        data = asyncio.run(fetch_pr_data(self._gh()))
        assert data.metadata.total_additions == 7
        assert data.metadata.total_deletions == 1
        assert data.metadata.files == data.files

    def test_thread_comments_carried_forward(self):
        opaque = {"PRRT_x": {"pages": [{"cursor": None, "itemCount": 3}]}}
        data = asyncio.run(fetch_pr_data(self._gh(), cursor_cache=CursorCache(thread_comments=opaque)))
        assert data.cursor_cache.thread_comments == opaque

    def test_no_files_skips_query_and_keeps_cache(self):
        gh = self._gh()
        files_cache = _fresh_cache([PageRecord(None, 9)])
        data = asyncio.run(
            fetch_pr_data(gh, cursor_cache=CursorCache(entries={"files": files_cache}), include_files=False)
        )
        assert gh.cursors(FILES.name) == []
        assert data.files == []
        assert data.cursor_cache.get("files") is files_cache
        assert data.had_new_data["files"] is False
        # Without files the totals come from the PR itself.
        assert data.metadata.total_additions == 100

    def test_targeted_thread_fetches_threads_only(self):
        gh = self._gh()
        reviews_cache = _fresh_cache([PageRecord(None, 4)])
        data = asyncio.run(
            fetch_pr_data(gh, cursor_cache=CursorCache(entries={"reviews": reviews_cache}), target_thread_id="PRRT_t1")
        )
        assert gh.cursors(THREADS.name) == [None]
        for name in ("files", "reviews", "comments"):
            assert gh.cursors(name) == []
            assert data.had_new_data[name] is False
        assert len(data.threads) == 2
        assert data.reviews == []
        assert data.cursor_cache.get("reviews") is reviews_cache
        assert data.cursor_cache.get("comments").pages == []

    def test_location_target_fetches_everything(self):
        gh = self._gh()
        data = asyncio.run(fetch_pr_data(gh, target_thread_id="src/a.py:10"))
        assert len(data.files) == 2
        assert len(data.reviews) == 1

    def test_only_limits_types_but_keeps_threads(self):
        gh = self._gh()
        data = asyncio.run(fetch_pr_data(gh, only=("files",)))
        assert len(data.threads) == 2
        assert len(data.files) == 2
        assert gh.cursors("reviews") == []
        assert gh.cursors("comments") == []

    def test_warm_second_run(self):
        gh = self._gh()
        first = asyncio.run(fetch_pr_data(gh))
        second = asyncio.run(fetch_pr_data(gh, cursor_cache=first.cursor_cache, ttl_minutes=5))
        assert second.threads == first.threads
        assert not any(second.had_new_data.values())
