"""Pagination cache validity.

Staleness is purely time based. The only other way a cache is abandoned is
the stale-cursor fallback in the fetch engine.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from prthreads_store.models import PaginationCache, parse_iso

logger = logging.getLogger(__name__)


def is_cache_valid(cache: PaginationCache, ttl_minutes: float, now: datetime | None = None) -> bool:
    """Return True while ``cache`` is younger than ``ttl_minutes``."""
    try:
        fetched_at = parse_iso(cache.fetched_at)
    except (TypeError, ValueError):
        logger.debug("Unparseable fetchedAt %r; treating cache as expired", cache.fetched_at)
        return False
    now = now or datetime.now(timezone.utc)
    return now - fetched_at < timedelta(minutes=ttl_minutes)
