"""resolve command — resolve review threads, optionally replying first."""

from __future__ import annotations

import asyncio

import click
from rich.console import Console
from rich.markup import escape

from prthreads_cli.commands.shared import mark_option, open_client, open_pr, pr_options, translate_errors
from prthreads_core.batch import mark_successful, prepare_thread_batch, report_results, resolve_batch

console = Console()


@click.command("resolve")
@click.argument("ids", nargs=-1, required=True)
@pr_options
@click.option("--reply", "reply_message", default=None, help="Post this reply before resolving.")
@mark_option("Mark the resolved threads with this status.")
@click.pass_context
@translate_errors
def resolve_cmd(
    ctx,
    ids: tuple[str, ...],
    url: str | None,
    repo: str | None,
    pr_number: int | None,
    reply_message: str | None,
    mark_as: str | None,
):
    """Resolve review threads.

    With --reply each thread gets the reply first; a reply that was posted
    stays posted even if resolving the thread then fails.
    """
    pr, store, config = open_pr(ctx, url, repo, pr_number)
    context, threads, non_threads = prepare_thread_batch(store.load(), store, ids)

    client = open_client(ctx, pr)
    result = asyncio.run(resolve_batch(client, threads, reply_message, config["max_concurrency"]))

    for token in result.successful:
        console.print(f"🔒 Resolved thread {escape(token)}", soft_wrap=True)
        if token in result.links:
            console.print(f"   [dim]{result.links[token]}[/dim]", soft_wrap=True)

    if mark_as:
        marked = mark_successful(context, threads, result.successful, mark_as)
        if marked:
            console.print(f"📌 Marked {marked} item(s) as {mark_as}")

    if not report_results(result, "Resolve", invalid_ids=context.invalid, non_thread_ids=non_threads):
        ctx.exit(1)
