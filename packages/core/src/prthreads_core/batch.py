"""Batch commands over many short IDs with per-item failure capture.

Resolution first splits the user's tokens into resolved items and invalid
ones; an invalid token never aborts the batch, it only shows up in the final
report. A batch with nothing resolvable is a ConfigurationError.

Local operations (mark, clear) run synchronously and save the state once, and
only when at least one item changed. Remote operations (reply, resolve,
react) send one mutation chain per item concurrently; a failure is recorded
against that item and never undoes another item's mutation.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field

from rich.console import Console
from rich.markup import escape

from prthreads_core.errors import ConfigurationError, RemoteError
from prthreads_core.fetcher import DEFAULT_MAX_CONCURRENCY
from prthreads_core.gh.queries import ADD_REACTION_MUTATION, REPLY_MUTATION, RESOLVE_MUTATION
from prthreads_core.utils.concurrency import pmap
from prthreads_store.base import BaseStore
from prthreads_store.models import ItemRef, State
from prthreads_store.registry import clear_mark, mark_item, resolve_ref

console = Console()
logger = logging.getLogger(__name__)


@dataclass
class BatchFailure:
    id: str
    error: str


@dataclass
class BatchResult:
    successful: list[str] = field(default_factory=list)
    failed: list[BatchFailure] = field(default_factory=list)
    links: dict[str, str] = field(default_factory=dict)  # token -> URL of a posted reply


@dataclass
class BatchContext:
    state: State
    store: BaseStore
    resolved: dict[str, ItemRef] = field(default_factory=dict)
    invalid: list[str] = field(default_factory=list)


def prepare_batch(state: State, store: BaseStore, ids: Iterable[str]) -> BatchContext:
    """Resolve every token against the registry. Never raises."""
    context = BatchContext(state=state, store=store)
    for token in ids:
        ref = resolve_ref(state, token)
        if ref is None:
            context.invalid.append(token)
        else:
            context.resolved[token] = ref
    return context


def require_non_empty(context: BatchContext) -> None:
    if not context.resolved:
        details = "\n".join(f"   - {token}: Not found" for token in context.invalid)
        raise ConfigurationError(
            f"None of the provided IDs were found in state. Run `prthreads fetch` first.\n{details}"
        )


def partition_by_kind(context: BatchContext) -> tuple[dict[str, ItemRef], list[str]]:
    """Split resolved items into threads and the tokens of everything else."""
    threads: dict[str, ItemRef] = {}
    non_threads: list[str] = []
    for token, ref in context.resolved.items():
        if ref.is_thread:
            threads[token] = ref
        else:
            non_threads.append(token)
    return threads, non_threads


def require_threads(threads: dict[str, ItemRef], non_threads: list[str]) -> None:
    if not threads:
        details = "\n".join(f"   - {token}: Is a nitpick, not a thread" for token in non_threads)
        raise ConfigurationError(
            f"None of the provided IDs are review threads. This command only works with threads.\n{details}"
        )


def prepare_thread_batch(
    state: State, store: BaseStore, ids: Iterable[str]
) -> tuple[BatchContext, dict[str, ItemRef], list[str]]:
    """prepare_batch + require_non_empty + partition_by_kind + require_threads."""
    context = prepare_batch(state, store, ids)
    require_non_empty(context)
    threads, non_threads = partition_by_kind(context)
    require_threads(threads, non_threads)
    return context, threads, non_threads


# ---------------------------------------------------------------------------
# Local operations
# ---------------------------------------------------------------------------


def _process_local(context: BatchContext, operation: Callable[[State, ItemRef], bool], error: str) -> BatchResult:
    result = BatchResult()
    for token, ref in context.resolved.items():
        if operation(context.state, ref):
            result.successful.append(token)
        else:
            result.failed.append(BatchFailure(id=token, error=error))

    if result.successful:
        context.store.save(context.state)
    return result


def mark_batch(context: BatchContext, status: str, note: str | None = None) -> BatchResult:
    return _process_local(context, lambda state, ref: mark_item(state, ref, status, note), "Failed to mark item")


def clear_batch(context: BatchContext) -> BatchResult:
    return _process_local(context, clear_mark, "Failed to clear mark")


def mark_successful(context: BatchContext, items: dict[str, ItemRef], successful: list[str], status: str) -> int:
    """Mark the items a remote batch succeeded on; one save if any were marked."""
    marked = 0
    for token in successful:
        ref = items.get(token)
        if ref is not None and mark_item(context.state, ref, status):
            marked += 1
    if marked:
        context.store.save(context.state)
    return marked


# ---------------------------------------------------------------------------
# Remote operations
# ---------------------------------------------------------------------------


async def _run_remote(
    items: dict[str, ItemRef],
    action: Callable[[ItemRef], Awaitable[str | None]],
    max_concurrency: int,
    describe_error: Callable[[RemoteError], str] = str,
) -> BatchResult:
    async def attempt(entry: tuple[str, ItemRef]) -> tuple[str, str | None, str | None]:
        token, ref = entry
        try:
            return token, await action(ref), None
        except RemoteError as e:
            logger.debug("Remote operation failed for %s: %s", token, e)
            return token, None, describe_error(e)

    result = BatchResult()
    for token, link, error in await pmap(attempt, list(items.items()), max_concurrency):
        if error is None:
            result.successful.append(token)
            if link:
                result.links[token] = link
        else:
            result.failed.append(BatchFailure(id=token, error=error))
    return result


async def _reply(client, ref: ItemRef, message: str) -> str | None:
    data = await client.mutate(REPLY_MUTATION, {"threadId": ref.full_id, "body": message})
    return ((data.get("addPullRequestReviewThreadReply") or {}).get("comment") or {}).get("url")


async def reply_batch(
    client, threads: dict[str, ItemRef], message: str, max_concurrency: int = DEFAULT_MAX_CONCURRENCY
) -> BatchResult:
    return await _run_remote(threads, lambda ref: _reply(client, ref, message), max_concurrency)


async def resolve_batch(
    client,
    threads: dict[str, ItemRef],
    reply: str | None = None,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
) -> BatchResult:
    """Resolve each thread, replying first when ``reply`` is given.

    A reply that went through stays posted even if resolving then fails.
    """

    async def resolve_one(ref: ItemRef) -> str | None:
        link = await _reply(client, ref, reply) if reply else None
        await client.mutate(RESOLVE_MUTATION, {"threadId": ref.full_id})
        return link

    return await _run_remote(threads, resolve_one, max_concurrency)


def _describe_reaction_error(error: RemoteError) -> str:
    message = str(error)
    if "already reacted" in message:
        return "You have already reacted with this emoji"
    if "Not Found" in message:
        return "Comment not found or you don't have access"
    return message


async def react_batch(
    client, items: dict[str, ItemRef], reaction: str, max_concurrency: int = DEFAULT_MAX_CONCURRENCY
) -> BatchResult:
    """Add ``reaction`` (a normalised GitHub enum name) to every item."""

    async def react_one(ref: ItemRef) -> str | None:
        await client.mutate(ADD_REACTION_MUTATION, {"subjectId": ref.full_id, "content": reaction})
        return None

    return await _run_remote(items, react_one, max_concurrency, _describe_reaction_error)


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------


def report_results(
    result: BatchResult,
    operation: str,
    invalid_ids: Iterable[str] = (),
    non_thread_ids: Iterable[str] = (),
    out: Console | None = None,
) -> bool:
    """Print the outcome of a batch. Returns True only if every item succeeded.

    Any failure, unknown ID or skipped nitpick makes the result False even
    when other items went through.
    """
    out = out or console
    invalid_ids = list(invalid_ids)
    non_thread_ids = list(non_thread_ids)

    for token in result.successful:
        out.print(f"[green]✅ {operation} succeeded for {escape(token)}[/green]", soft_wrap=True)
    for token in non_thread_ids:
        out.print(
            f"[yellow]⚠️  Skipped {escape(token)}: not a review thread "
            "(nitpicks cannot be replied to or resolved)[/yellow]",
            soft_wrap=True,
        )
    for token in invalid_ids:
        out.print(f"[red]❌ {operation} failed for {escape(token)}: Not found in state[/red]", soft_wrap=True)
    for failure in result.failed:
        out.print(f"[red]❌ {operation} failed for {escape(failure.id)}: {escape(failure.error)}[/red]", soft_wrap=True)

    attempted = len(result.successful) + len(result.failed) + len(invalid_ids) + len(non_thread_ids)
    if attempted > 1:
        out.print(f"📊 Summary: {len(result.successful)}/{attempted} succeeded", soft_wrap=True)

    return not result.failed and not invalid_ids and not non_thread_ids
