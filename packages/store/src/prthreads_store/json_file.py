"""JsonFileStore — one JSON document per pull request on local disk.

Layout::

    <state_dir>/<owner>-<repo>-<number>/pr-state.json
    <state_dir>/<owner>-<repo>-<number>/images/

The per-PR directory is passed in explicitly; anything else that needs to
keep files for the PR (downloaded images) derives its path from
``JsonFileStore.pr_dir`` rather than from process-wide state.

The file is not locked. Two concurrent runs against the same PR can lose
each other's updates.
"""

from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path

from prthreads_store.base import BaseStore
from prthreads_store.models import State

logger = logging.getLogger(__name__)

STATE_FILENAME = "pr-state.json"
IMAGES_DIRNAME = "images"


def pr_state_dir(state_dir: str | Path, owner: str, repo: str, number: int) -> Path:
    return Path(state_dir).expanduser() / f"{owner}-{repo}-{number}"


class JsonFileStore(BaseStore):
    """Reads and writes a PR's State as a JSON file."""

    def __init__(self, pr_dir: str | Path):
        self.pr_dir = Path(pr_dir)
        self.path = self.pr_dir / STATE_FILENAME

    @classmethod
    def for_pr(cls, state_dir: str | Path, owner: str, repo: str, number: int) -> JsonFileStore:
        return cls(pr_state_dir(state_dir, owner, repo, number))

    @property
    def location(self) -> str:
        return str(self.path)

    @property
    def images_dir(self) -> Path:
        return self.pr_dir / IMAGES_DIRNAME

    def load(self) -> State:
        if not self.path.exists():
            return State()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.debug("Ignoring unreadable state file %s: %s", self.path, e)
            return State()
        if not isinstance(data, dict):
            return State()
        return State.from_dict(data)

    def save(self, state: State) -> None:
        self.pr_dir.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(state.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
        logger.debug("State saved to %s", self.path)

    def reset(self) -> bool:
        if self.images_dir.exists():
            shutil.rmtree(self.images_dir)
            return True
        return False
