"""Options and helpers shared by the prthreads commands."""

from __future__ import annotations

import functools

import click

from prthreads_core.errors import ConfigurationError, RemoteError
from prthreads_core.gh.pull_request import PullRequestRef, resolve_pr

MARK_STATUSES = ("done", "skip", "later")


def pr_options(func):
    """Add --url/--repo/--pr. Without them the PR of the current branch is used."""
    func = click.option("--pr", "pr_number", type=int, default=None, help="Pull request number.")(func)
    func = click.option("--repo", default=None, help="GitHub repository in owner/name format.")(func)
    func = click.option("--url", default=None, help="Pull request URL.")(func)
    return func


def mark_option(help_text: str):
    return click.option("--mark", "mark_as", type=click.Choice(MARK_STATUSES), default=None, help=help_text)


def translate_errors(func):
    """Report expected failures as a one-line error and exit status 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (ConfigurationError, RemoteError, ValueError) as e:
            raise click.ClickException(str(e))

    return wrapper


def open_pr(ctx: click.Context, url: str | None, repo: str | None, pr_number: int | None):
    """Resolve the target PR and return ``(pr, store, config)``."""
    config = ctx.obj["config"]
    pr: PullRequestRef = resolve_pr(url=url, repo=repo, number=pr_number, gh_path=config.get("gh_path", "gh"))
    store = ctx.obj["store_factory"](config, pr)
    return pr, store, config


def open_client(ctx: click.Context, pr: PullRequestRef):
    return ctx.obj["client_factory"](ctx.obj["config"], pr)
