"""Abstract store interface.

The CLI and the batch orchestrator depend on BaseStore, not on the JSON file
backend, so tests can substitute an in-memory store.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prthreads_store.models import State


class BaseStore(ABC):
    """Persistence for the state of a single pull request."""

    @abstractmethod
    def load(self) -> State:
        """Return the stored state, or a fresh empty State.

        Never raises for a missing or unreadable state.
        """

    @abstractmethod
    def save(self, state: State) -> None:
        """Persist ``state``, replacing whatever was stored."""

    @property
    def location(self) -> str:
        """Human-readable location of the stored state, for messages."""
        return ""

    def reset(self) -> bool:
        """Remove auxiliary files kept next to the state. Returns True if anything was removed.

        Optional; the default has nothing to remove.
        """
        return False
