"""Exception hierarchy.

An unresolvable ID is not an exception: batch commands report it per item
through ``BatchContext.invalid``.
"""

from __future__ import annotations

import re

_CURSOR_RE = re.compile(r"cursor", re.IGNORECASE)
_INVALID_RE = re.compile(r"invalid|not found|not valid|does not exist", re.IGNORECASE)


class PrThreadsError(Exception):
    """Base class for errors raised by prthreads."""


class RemoteError(PrThreadsError):
    """A gh/GraphQL call failed. The message embeds the remote error text."""


class StaleCursorError(RemoteError):
    """A recorded pagination cursor can no longer be dereferenced."""


class ConfigurationError(PrThreadsError):
    """Nothing in a batch can be acted on (no known IDs, or no threads)."""


def is_stale_cursor_message(message: str) -> bool:
    return bool(_CURSOR_RE.search(message) and _INVALID_RE.search(message))


def remote_error(message: str) -> RemoteError:
    """Build the right RemoteError subtype for a failure message."""
    if is_stale_cursor_message(message):
        return StaleCursorError(message)
    return RemoteError(message)
