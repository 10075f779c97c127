"""CLI entry point for prthreads.

Commands:
  fetch    — fetch review threads (incremental, cached) and register short IDs
  mark     — mark threads/nitpicks as done, skip, later, or clear the mark
  reply    — reply to review threads
  resolve  — resolve review threads, optionally replying first
  react    — add a reaction to threads or comments
  reset    — forget all marks, short IDs and cached cursors for a PR
"""

from __future__ import annotations

import importlib.metadata
import logging

import click

from prthreads_cli.commands.fetch import fetch_cmd
from prthreads_cli.commands.mark import mark_cmd
from prthreads_cli.commands.react import react_cmd
from prthreads_cli.commands.reply import reply_cmd
from prthreads_cli.commands.reset import reset_cmd
from prthreads_cli.commands.resolve import resolve_cmd


def _build_store(config: dict, pr):
    """Instantiate the state store for one PR from config settings.

    store: memory → MemoryStore (nothing written to disk)
    (default)     → JsonFileStore under state_dir
    """
    if config.get("store") == "memory":
        from prthreads_store.memory import MemoryStore

        return MemoryStore()

    from prthreads_store.json_file import JsonFileStore

    return JsonFileStore.for_pr(config["state_dir"], pr.owner, pr.repo, pr.number)


def _build_client(config: dict, pr):
    from prthreads_core.gh.client import GhClient

    return GhClient(pr, gh_path=config.get("gh_path", "gh"))


def _version() -> str:
    try:
        return importlib.metadata.version("prthreads")
    except importlib.metadata.PackageNotFoundError:
        return "0.0.0"


@click.group()
@click.version_option(version=_version(), prog_name="prthreads")
@click.option(
    "--config",
    "config_path",
    default=".prthreads.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PRTHREADS_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Log debug output (timings, page counts) to stderr.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Fetch, track and act on GitHub PR review threads."""
    from prthreads_core.config import load_config

    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = load_config(config_path)
    except ValueError as e:
        raise click.UsageError(str(e))
    # Looked up at call time so tests can patch the factories.
    ctx.obj["store_factory"] = lambda config, pr: _build_store(config, pr)
    ctx.obj["client_factory"] = lambda config, pr: _build_client(config, pr)


main.add_command(fetch_cmd)
main.add_command(mark_cmd)
main.add_command(reply_cmd)
main.add_command(resolve_cmd)
main.add_command(react_cmd)
main.add_command(reset_cmd)
