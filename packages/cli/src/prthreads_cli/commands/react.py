"""react command — add a reaction to threads or comments."""

from __future__ import annotations

import asyncio

import click

from prthreads_cli.commands.shared import open_client, open_pr, pr_options, translate_errors
from prthreads_core.batch import prepare_batch, react_batch, report_results, require_non_empty
from prthreads_core.reactions import normalize_reaction


@click.command("react")
@click.argument("reaction")
@click.argument("ids", nargs=-1, required=True)
@pr_options
@click.pass_context
@translate_errors
def react_cmd(ctx, reaction: str, ids: tuple[str, ...], url: str | None, repo: str | None, pr_number: int | None):
    """Add REACTION to every item in IDS.

    REACTION is a GitHub reaction name or its emoji: THUMBS_UP, THUMBS_DOWN,
    LAUGH, HOORAY, CONFUSED, HEART, ROCKET or EYES.
    """
    content = normalize_reaction(reaction)
    pr, store, config = open_pr(ctx, url, repo, pr_number)
    context = prepare_batch(store.load(), store, ids)
    require_non_empty(context)

    client = open_client(ctx, pr)
    result = asyncio.run(react_batch(client, context.resolved, content, config["max_concurrency"]))

    if not report_results(result, "React", invalid_ids=context.invalid):
        ctx.exit(1)

