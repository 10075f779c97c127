"""reply command — post the same reply to one or more review threads."""

from __future__ import annotations

import asyncio

import click
from rich.console import Console
from rich.markup import escape

from prthreads_cli.commands.shared import mark_option, open_client, open_pr, pr_options, translate_errors
from prthreads_core.batch import mark_successful, prepare_thread_batch, reply_batch, report_results

console = Console()


@click.command("reply")
@click.argument("message")
@click.argument("ids", nargs=-1, required=True)
@pr_options
@mark_option("Mark the threads that were replied to with this status.")
@click.pass_context
@translate_errors
def reply_cmd(
    ctx,
    message: str,
    ids: tuple[str, ...],
    url: str | None,
    repo: str | None,
    pr_number: int | None,
    mark_as: str | None,
):
    """Reply to review threads.

    Nitpick IDs are skipped and reported; they have no thread to reply to.
    """
    pr, store, config = open_pr(ctx, url, repo, pr_number)
    context, threads, non_threads = prepare_thread_batch(store.load(), store, ids)

    client = open_client(ctx, pr)
    result = asyncio.run(reply_batch(client, threads, message, config["max_concurrency"]))

    for token in result.successful:
        console.print(f"💬 Replied to thread {escape(token)}", soft_wrap=True)
        if token in result.links:
            console.print(f"   [dim]{result.links[token]}[/dim]", soft_wrap=True)

    if mark_as:
        marked = mark_successful(context, threads, result.successful, mark_as)
        if marked:
            console.print(f"📌 Marked {marked} item(s) as {mark_as}")

    if not report_results(result, "Reply", invalid_ids=context.invalid, non_thread_ids=non_threads):
        ctx.exit(1)
