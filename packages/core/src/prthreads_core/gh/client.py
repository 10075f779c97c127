"""Async GraphQL transport over the GitHub CLI.

Every call is ``gh api graphql --input -`` with a JSON body on stdin, run as
an asyncio subprocess so independent calls can be in flight together. gh
takes care of authentication (``gh auth login`` or GH_TOKEN).
"""

from __future__ import annotations

import asyncio
import json
import logging
import time

from prthreads_core.errors import RemoteError, remote_error
from prthreads_core.gh.pull_request import PullRequestRef

logger = logging.getLogger(__name__)


def _error_messages(response: dict) -> str | None:
    errors = response.get("errors")
    if not errors:
        return None
    return ", ".join(str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors)


class GhClient:
    """Runs queries and mutations for one pull request."""

    def __init__(self, pr: PullRequestRef, gh_path: str = "gh"):
        self.pr = pr
        self._gh_path = gh_path

    async def _graphql(self, document: str, variables: dict) -> dict:
        payload = json.dumps({"query": document, "variables": variables}).encode("utf-8")
        start = time.monotonic()
        try:
            proc = await asyncio.create_subprocess_exec(
                self._gh_path,
                "api",
                "graphql",
                "--input",
                "-",
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise RemoteError(f"GitHub CLI not found ({self._gh_path}). Install gh and run `gh auth login`.") from e
        try:
            stdout, stderr = await proc.communicate(payload)
        except asyncio.CancelledError:
            # A cancelled fan-out must not leave gh running past the event loop.
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            raise
        logger.debug("gh api graphql finished in %.0fms (exit %s)", (time.monotonic() - start) * 1000, proc.returncode)

        response: dict | None = None
        try:
            response = json.loads(stdout) if stdout.strip() else None
        except json.JSONDecodeError:
            response = None

        if isinstance(response, dict):
            messages = _error_messages(response)
            if messages:
                raise remote_error(messages)

        if proc.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip() or f"gh exited with status {proc.returncode}"
            raise remote_error(message)

        if not isinstance(response, dict) or response.get("data") is None:
            raise RemoteError("GraphQL response missing data field")
        return response["data"]

    async def query(self, document: str, variables: dict | None = None, pr_scoped: bool = True) -> dict:
        """Run a query. PR-scoped queries get owner, repo and number filled in."""
        base = self.pr.variables() if pr_scoped else {}
        return await self._graphql(document, {**base, **(variables or {})})

    async def mutate(self, document: str, variables: dict) -> dict:
        try:
            return await self._graphql(document, variables)
        except RemoteError as e:
            raise type(e)(f"GraphQL mutation failed: {e}") from e
