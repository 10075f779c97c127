"""Review thread filtering and comment expansion."""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field

from prthreads_core.errors import ConfigurationError
from prthreads_core.fetcher import DEFAULT_MAX_CONCURRENCY, fetch_thread_comments
from prthreads_core.utils.concurrency import pmap
from prthreads_store.models import State
from prthreads_store.registry import is_location_token, short_id

logger = logging.getLogger(__name__)

_HIDDEN_STATUSES = ("done", "skip")
_FULL_ID_RE = re.compile(r"^PRR[CT]_")


@dataclass
class ProcessedThread:
    thread_id: str
    short_id: str
    is_resolved: bool
    is_outdated: bool
    path: str
    line: int | None
    status: str | None = None
    comments: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "thread_id": self.thread_id,
            "short_id": self.short_id,
            "isResolved": self.is_resolved,
            "isOutdated": self.is_outdated,
            "path": self.path,
            "line": self.line,
            "status": self.status,
            "comments": self.comments,
        }


def should_skip_thread(thread: dict, state: State, show_all: bool, with_resolved: bool, include_done: bool) -> bool:
    if not show_all and not with_resolved and thread.get("isResolved"):
        return True
    record = state.threads.get(thread["id"])
    if not include_done and record is not None and record.status in _HIDDEN_STATUSES:
        return True
    return False


def resolve_thread_id(token: str | None, state: State) -> str | None:
    """Turn a ``--thread`` argument into the ID to look for.

    ``path:line`` tokens and unregistered IDs come back as given, so
    ``validate_thread_id`` can tell an unknown short ID from a full one.
    """
    if not token:
        return None
    if is_location_token(token):
        return token
    return state.id_map.get(token, token)


def validate_thread_id(token: str | None, resolved: str | None, pr_slug: str, location: str) -> None:
    if not token or resolved != token:
        return
    if is_location_token(token) or _FULL_ID_RE.match(token):
        return
    raise ConfigurationError(
        f"Thread '{token}' not found in PR {pr_slug}\n"
        f"State file: {location}\n"
        "Hint: Run without --thread first to populate thread IDs."
    )


def _matches_location(thread: dict, target: str) -> bool:
    path, _, lines = target.rpartition(":")
    if thread.get("path") != path:
        return False
    line = thread.get("line")
    if line is None:
        return False
    start, sep, end = lines.partition("-")
    try:
        if sep:
            return int(start) <= line <= int(end)
        return line == int(start)
    except ValueError:
        return False


def filter_thread_by_id(threads: list[dict], target: str) -> list[dict]:
    """Threads with ID ``target``, or anchored at ``path:line`` / ``path:start-end``."""
    matched = [t for t in threads if t.get("id") == target]
    if matched or not is_location_token(target):
        return matched
    return [t for t in threads if _matches_location(t, target)]


def _simplify_comment(comment: dict) -> dict:
    simplified = {
        "id": comment.get("id"),
        "author": (comment.get("author") or {}).get("login", "ghost"),
        "body": comment.get("body", ""),
        "url": comment.get("url", ""),
        "createdAt": comment.get("createdAt", ""),
    }
    reactions = [g for g in comment.get("reactionGroups") or [] if (g.get("reactors") or {}).get("totalCount")]
    if reactions:
        simplified["reactionGroups"] = reactions
    return simplified


async def process_threads(
    client,
    threads: list[dict],
    state: State,
    show_all: bool = False,
    with_resolved: bool = False,
    include_done: bool = False,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
) -> list[ProcessedThread]:
    """Drop threads the user has no reason to see and expand the rest.

    Resolved threads are hidden unless ``show_all``/``with_resolved``; threads
    marked done or skip are hidden unless ``include_done``. Remaining threads
    get their full comment list, fetched concurrently.
    """
    start = time.monotonic()
    visible = [t for t in threads if not should_skip_thread(t, state, show_all, with_resolved, include_done)]

    async def expand(thread: dict) -> ProcessedThread:
        comments = await fetch_thread_comments(client, thread)
        record = state.threads.get(thread["id"])
        return ProcessedThread(
            thread_id=thread["id"],
            short_id=short_id(thread["id"]),
            is_resolved=bool(thread.get("isResolved")),
            is_outdated=bool(thread.get("isOutdated")),
            path=thread.get("path", ""),
            line=thread.get("line"),
            status=record.status if record else None,
            comments=[_simplify_comment(c) for c in comments],
        )

    processed = await pmap(expand, visible, max_concurrency)
    logger.debug(
        "Threads processed: %d / %d (%d skipped) in %.0fms",
        len(processed),
        len(threads),
        len(threads) - len(visible),
        (time.monotonic() - start) * 1000,
    )
    return processed
