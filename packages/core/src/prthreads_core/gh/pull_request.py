from __future__ import annotations

import json
import logging
import re
import subprocess
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_PR_URL_RE = re.compile(r"^https://github\.com/([^/]+)/([^/]+)/pull/(\d+)(?:[/?#].*)?$")


@dataclass(frozen=True)
class PullRequestRef:
    owner: str
    repo: str
    number: int

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}#{self.number}"

    def variables(self) -> dict:
        return {"owner": self.owner, "repo": self.repo, "number": self.number}


def parse_pr_url(url: str) -> PullRequestRef:
    """Parse https://github.com/<owner>/<repo>/pull/<number>."""
    match = _PR_URL_RE.match(url.strip())
    if not match:
        raise ValueError(f"Invalid PR URL: {url!r}. Expected a GitHub pull request URL.")
    owner, repo, number = match.groups()
    return PullRequestRef(owner=owner, repo=repo, number=int(number))


def detect_pr(gh_path: str = "gh") -> PullRequestRef:
    """Find the PR for the current branch via ``gh pr view``."""
    try:
        result = subprocess.run(
            [gh_path, "pr", "view", "--json", "number,url"],
            capture_output=True,
            text=True,
            timeout=15,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired) as e:
        raise ValueError(f"Could not detect PR: {e}") from e
    if result.returncode != 0:
        logger.debug("gh pr view failed: %s", result.stderr.strip())
        raise ValueError("Could not detect PR. Provide a PR URL or use --repo and --pr.")
    try:
        info = json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise ValueError(f"Could not detect PR: unexpected gh output ({e})") from e
    url = info.get("url") if isinstance(info, dict) else None
    if not url:
        raise ValueError("Could not detect PR: gh pr view returned no URL.")
    return parse_pr_url(url)


def resolve_pr(
    url: str | None = None,
    repo: str | None = None,
    number: int | None = None,
    gh_path: str = "gh",
) -> PullRequestRef:
    """Work out which PR to act on.

    An explicit URL wins, then ``--repo owner/name`` with ``--pr N``;
    otherwise the PR of the current branch is detected.
    """
    if url:
        return parse_pr_url(url)
    if repo and number:
        owner, sep, name = repo.partition("/")
        if not sep or not owner or not name:
            raise ValueError(f"Invalid repository {repo!r}. Expected owner/name.")
        return PullRequestRef(owner=owner, repo=name, number=number)
    return detect_pr(gh_path)
