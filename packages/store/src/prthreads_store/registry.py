"""Short-ID registry and per-item status records.

Short IDs are the first six hex digits of SHA-256 over the full remote ID.
The registry maps them back to full IDs; anything longer than six characters
is taken to be a full ID already and passes through untouched.

Thread/nitpick classification happens in exactly one place, ``classify_id``.
Callers resolve a token once into an ``ItemRef`` and carry its ``kind``.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Iterable

from prthreads_store.models import STATUSES, ItemKind, ItemRecord, ItemRef, State

logger = logging.getLogger(__name__)

SHORT_ID_LENGTH = 6
THREAD_ID_PREFIX = "PRRT_"
_COMMENT_PATH_MARKER = "/comments/"


def short_id(full_id: str) -> str:
    return hashlib.sha256(full_id.encode("utf-8")).hexdigest()[:SHORT_ID_LENGTH]


def classify_id(full_id: str) -> ItemKind:
    """Threads carry the remote thread-ID prefix or a comment URL path."""
    if full_id.startswith(THREAD_ID_PREFIX) or _COMMENT_PATH_MARKER in full_id:
        return ItemKind.THREAD
    return ItemKind.NITPICK


def is_location_token(token: str) -> bool:
    """``path/to/file.py:42`` style tokens name a position, not an ID."""
    return ":" in token and "/" in token


def register(state: State, full_id: str) -> str:
    """Record ``short_id(full_id) -> full_id`` and return the short ID.

    Re-registering the same ID is a no-op. A different full ID hashing to an
    existing short ID keeps the first mapping.
    """
    short = short_id(full_id)
    existing = state.id_map.get(short)
    if existing is None:
        state.id_map[short] = full_id
    elif existing != full_id:
        logger.warning("Short ID %s collides: keeping %s, not registering %s", short, existing, full_id)
    return short


def register_ids(state: State, full_ids: Iterable[str]) -> None:
    for full_id in full_ids:
        register(state, full_id)


def resolve_id(state: State, token: str) -> str | None:
    """Resolve a short or full ID. Returns None if a short ID is unknown."""
    if len(token) > SHORT_ID_LENGTH:
        return token
    return state.id_map.get(token)


def resolve_ref(state: State, token: str) -> ItemRef | None:
    full_id = resolve_id(state, token)
    if full_id is None:
        return None
    return ItemRef(token=token, full_id=full_id, kind=classify_id(full_id))


def _as_ref(state: State, item: str | ItemRef) -> ItemRef | None:
    if isinstance(item, ItemRef):
        return item
    return resolve_ref(state, item)


def mark_item(state: State, item: str | ItemRef, status: str, note: str | None = None) -> bool:
    """Set the status of a thread or nitpick, replacing any earlier record."""
    if status not in STATUSES:
        raise ValueError(f"Invalid status {status!r}. Must be one of: {', '.join(STATUSES)}")
    ref = _as_ref(state, item)
    if ref is None:
        return False

    record = ItemRecord(status=status, note=note)
    if ref.is_thread:
        state.threads[ref.full_id] = record
    else:
        state.nitpicks[ref.full_id] = record
    return True


def clear_mark(state: State, item: str | ItemRef) -> bool:
    """Drop any status for the item. Only an unresolvable token returns False."""
    ref = _as_ref(state, item)
    if ref is None:
        return False
    # Both collections, in case an older state file filed it under the other kind.
    state.threads.pop(ref.full_id, None)
    state.nitpicks.pop(ref.full_id, None)
    return True


def clear_state(state: State) -> None:
    """Forget all marks, short IDs and pagination progress for the PR."""
    state.threads = {}
    state.nitpicks = {}
    state.id_map = {}
    state.cursor_cache = None
