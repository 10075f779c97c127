"""In-memory store — state lives only for the lifetime of the process.

For callers that must not touch disk, and for tests. Counts saves so callers
can check that a batch wrote exactly once.
"""

from __future__ import annotations

import copy

from prthreads_store.base import BaseStore
from prthreads_store.models import State


class MemoryStore(BaseStore):
    def __init__(self, state: State | None = None):
        self._state = state or State()
        self.save_count = 0

    def load(self) -> State:
        return copy.deepcopy(self._state)

    def save(self, state: State) -> None:
        self._state = copy.deepcopy(state)
        self.save_count += 1

    @property
    def location(self) -> str:
        return "<memory>"
