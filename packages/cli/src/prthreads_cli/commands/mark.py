"""mark command — set or clear the local status of threads and nitpicks."""

from __future__ import annotations

import click
from rich.console import Console

from prthreads_cli.commands.shared import MARK_STATUSES, open_pr, pr_options, translate_errors
from prthreads_core.batch import clear_batch, mark_batch, prepare_batch, report_results, require_non_empty

console = Console()


@click.command("mark")
@click.argument("status", type=click.Choice(MARK_STATUSES + ("clear",)))
@click.argument("ids", nargs=-1, required=True)
@pr_options
@click.option("--note", default=None, help="Free-text note stored with the mark.")
@click.pass_context
@translate_errors
def mark_cmd(ctx, status: str, ids: tuple[str, ...], url: str | None, repo: str | None, pr_number: int | None, note: str | None):
    """Mark items as done, skip or later, or clear their mark.

    IDS are the short IDs printed by `prthreads fetch`; full node IDs are
    accepted too. Nothing is sent to GitHub.
    """
    _pr, store, _config = open_pr(ctx, url, repo, pr_number)
    context = prepare_batch(store.load(), store, ids)
    require_non_empty(context)

    if status == "clear":
        result = clear_batch(context)
        ok = report_results(result, "Clear", invalid_ids=context.invalid)
    else:
        result = mark_batch(context, status, note)
        ok = report_results(result, "Mark", invalid_ids=context.invalid)

    if result.successful:
        console.print(f"[dim]💾 State saved to {store.location}[/dim]")
    if not ok:
        ctx.exit(1)
