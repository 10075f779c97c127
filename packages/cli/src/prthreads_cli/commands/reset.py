"""reset command — forget local state for a PR."""

from __future__ import annotations

import click
from rich.console import Console

from prthreads_cli.commands.shared import open_pr, pr_options, translate_errors
from prthreads_store.models import utc_now_iso
from prthreads_store.registry import clear_state

console = Console()


@click.command("reset")
@click.argument("pr_url", required=False)
@pr_options
@click.pass_context
@translate_errors
def reset_cmd(ctx, pr_url: str | None, url: str | None, repo: str | None, pr_number: int | None):
    """Clear all marks, short IDs and cached cursors for a PR.

    Also deletes the downloaded images directory. Nothing on GitHub changes.
    """
    pr, store, _config = open_pr(ctx, pr_url or url, repo, pr_number)

    state = store.load()
    clear_state(state)
    state.pr = pr.slug
    state.updated_at = utc_now_iso()
    store.save(state)
    console.print(f"[green]✓ Reset state for {pr.slug}[/green]")
    console.print(f"[dim]  {store.location}[/dim]")

    if store.reset():
        console.print("[green]✓ Removed downloaded images[/green]")
