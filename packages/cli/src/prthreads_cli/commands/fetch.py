"""fetch command — fetch review threads and register their short IDs."""

from __future__ import annotations

import asyncio
import json

import click
from rich.console import Console
from rich.table import Table

from prthreads_cli.commands.shared import open_client, open_pr, pr_options, translate_errors
from prthreads_core.fetcher import PRData, fetch_pr_data
from prthreads_core.gh.queries import QUERY_TYPES
from prthreads_core.reactions import format_reaction
from prthreads_core.threads import (
    ProcessedThread,
    filter_thread_by_id,
    process_threads,
    resolve_thread_id,
    validate_thread_id,
)
from prthreads_store.models import utc_now_iso
from prthreads_store.registry import register_ids

console = Console()

_STATUS_STYLE = {"done": "green", "skip": "dim", "later": "yellow"}
QUERY_TYPE_NAMES = tuple(qt.name for qt in QUERY_TYPES)


def _reactions(comment: dict) -> str:
    return " ".join(
        f"{format_reaction(g['content'], use_emoji=True)}{g['reactors']['totalCount']}"
        for g in comment.get("reactionGroups", [])
    )


def _parse_only(ctx, param, value: str | None) -> tuple[str, ...]:
    if not value:
        return ()
    types = tuple(t.strip() for t in value.split(",") if t.strip())
    unknown = [t for t in types if t not in QUERY_TYPE_NAMES]
    if unknown:
        raise click.BadParameter(f"unknown type(s) {', '.join(unknown)}. Choose from: {', '.join(QUERY_TYPE_NAMES)}")
    return types


async def _fetch(client, state, cursor_cache, config: dict, options: dict) -> tuple[PRData, list[ProcessedThread]]:
    target = options["target"]
    data = await fetch_pr_data(
        client,
        cursor_cache=cursor_cache,
        ttl_minutes=config["cache_ttl"],
        max_concurrency=config["max_concurrency"],
        include_files=options["include_files"],
        target_thread_id=target,
        only=options["only"],
    )
    if options["only"] and "threads" not in options["only"]:
        return data, []
    if target:
        # A targeted thread is shown whatever its resolution or mark.
        threads = await process_threads(
            client,
            filter_thread_by_id(data.threads, target),
            state,
            show_all=True,
            include_done=True,
            max_concurrency=config["max_concurrency"],
        )
        return data, threads
    threads = await process_threads(
        client,
        data.threads,
        state,
        show_all=options["show_all"],
        with_resolved=options["with_resolved"],
        include_done=options["include_done"],
        max_concurrency=config["max_concurrency"],
    )
    return data, threads


def _print_table(data: PRData, threads: list[ProcessedThread], location: str, show_threads: bool = True) -> None:
    meta = data.metadata
    draft = " [dim](draft)[/dim]" if meta.is_draft else ""
    console.print(f"\n[bold]#{meta.number} {meta.title}[/bold]{draft}  {meta.state} · by {meta.author}")
    console.print(
        f"[dim]{len(data.files)} file(s) +{meta.total_additions}/-{meta.total_deletions} · "
        f"{len(data.threads)} thread(s) · {len(data.reviews)} review(s) · {len(data.comments)} comment(s)[/dim]"
    )

    if not threads:
        if show_threads:
            console.print("[green]No open review threads.[/green]")
    else:
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("ID", style="bold", width=6)
        table.add_column("Location")
        table.add_column("Status", width=7)
        table.add_column("Comments", justify="right")
        table.add_column("Last by")
        table.add_column("Reactions")
        for thread in threads:
            location_text = f"{thread.path}:{thread.line}" if thread.line is not None else thread.path
            if thread.is_resolved:
                location_text += " [dim](resolved)[/dim]"
            if thread.is_outdated:
                location_text += " [dim](outdated)[/dim]"
            status = thread.status or ""
            style = _STATUS_STYLE.get(status, "white")
            last = thread.comments[-1] if thread.comments else {}
            table.add_row(
                thread.short_id,
                location_text,
                f"[{style}]{status}[/{style}]" if status else "",
                str(len(thread.comments)),
                last.get("author", ""),
                _reactions(last),
            )
        console.print(table)

    console.print(f"[dim]State: {location}[/dim]")


def _to_json(data: PRData, threads: list[ProcessedThread], location: str) -> str:
    meta = data.metadata
    return json.dumps(
        {
            "pr": {
                "number": meta.number,
                "title": meta.title,
                "state": meta.state,
                "author": meta.author,
                "isDraft": meta.is_draft,
                "mergeable": meta.mergeable,
                "files": meta.files,
            },
            "statePath": location,
            "threads": [t.to_dict() for t in threads],
            "summary": {
                "totalThreads": len(data.threads),
                "filteredCount": len(threads),
                "unresolvedCount": sum(1 for t in data.threads if not t.get("isResolved")),
            },
        },
        indent=2,
        ensure_ascii=False,
    )


@click.command("fetch")
@click.argument("pr_url", required=False)
@pr_options
@click.option("--all", "show_all", is_flag=True, help="Show all threads, including resolved ones.")
@click.option("--with-resolved", is_flag=True, help="Include resolved threads.")
@click.option("--include-done", is_flag=True, help="Include threads marked done or skip.")
@click.option("--no-files", is_flag=True, help="Do not fetch the changed-files list.")
@click.option("--no-cache", is_flag=True, help="Ignore and do not update the cursor cache.")
@click.option("--cache-ttl", type=float, default=None, help="Minutes a cursor cache stays valid. Overrides config.")
@click.option(
    "--thread",
    "thread_id",
    default=None,
    help="Show one thread by short ID, full ID or path:line. Bypasses all filters.",
)
@click.option(
    "--only",
    callback=_parse_only,
    default=None,
    help=f"Comma-separated types to fetch ({', '.join(QUERY_TYPE_NAMES)}). Threads are always fetched.",
)
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of a table.")
@click.pass_context
@translate_errors
def fetch_cmd(
    ctx,
    pr_url: str | None,
    url: str | None,
    repo: str | None,
    pr_number: int | None,
    show_all: bool,
    with_resolved: bool,
    include_done: bool,
    no_files: bool,
    no_cache: bool,
    cache_ttl: float | None,
    thread_id: str | None,
    only: tuple[str, ...],
    as_json: bool,
):
    """Fetch review threads for a pull request.

    Re-runs within the cache TTL replay the cursors recorded last time in
    parallel and only walk new pages sequentially. Thread short IDs printed
    here are what mark/reply/resolve/react accept.
    """
    pr, store, config = open_pr(ctx, pr_url or url, repo, pr_number)
    if cache_ttl is not None:
        config = {**config, "cache_ttl": cache_ttl}
    use_cache = config.get("use_cache", True) and not no_cache

    state = store.load()
    target = resolve_thread_id(thread_id, state)
    validate_thread_id(thread_id, target, pr.slug, store.location)
    client = open_client(ctx, pr)
    options = {
        "show_all": show_all,
        "with_resolved": with_resolved,
        "include_done": include_done,
        "include_files": not no_files,
        "target": target,
        "only": only,
    }
    data, threads = asyncio.run(
        _fetch(client, state, state.cursor_cache if use_cache else None, config, options)
    )

    register_ids(state, [thread["id"] for thread in data.threads])
    if use_cache:
        state.cursor_cache = data.cursor_cache
    state.pr = pr.slug
    state.updated_at = utc_now_iso()
    store.save(state)

    if as_json:
        click.echo(_to_json(data, threads, store.location))
    else:
        _print_table(data, threads, store.location, show_threads=not only or "threads" in only)
