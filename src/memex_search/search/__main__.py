"""CLI entry point for search.

Allows building and searching the conversation index from the command line:
    python -m memex_search.search build
    python -m memex_search.search commands "npm install"
"""

import json
import sys
from pathlib import Path

import click

from memex_search.config import Config, load_config
from memex_search.errors import MemexSearchError
from memex_search.indexer.engine import SearchIndex
from memex_search.indexer.store import render_highlight
from memex_search.logging import setup_logging
from memex_search.models import SearchResult
from memex_search.server.tools import MemexTools


def open_index(config: Config) -> SearchIndex:
    """Attach to a completed file-backed index, or build one from the archive."""
    index = SearchIndex(config.index)
    if index.attach():
        return index

    report = index.build(config.archive.history_path)
    if report.failures:
        click.echo(f"Skipped {report.files_failed} unreadable files", err=True)
    return index


def rebuild_index(config: Config) -> SearchIndex:
    """Build from the archive even when a completed file-backed index exists."""
    index = SearchIndex(config.index)
    index.build(config.archive.history_path)
    return index


def print_conversation(result: SearchResult, verbose: bool = False) -> None:
    """Print a conversation search hit."""
    conv = result.item

    click.echo(f"\033[36m[{conv.created_at or 'unknown date'}]\033[0m \033[1m{conv.title}\033[0m")
    click.echo(f"ID: {conv.conversation_id} | Messages: {conv.message_count} | Score: {result.score:.2f}")
    if verbose:
        click.echo(f"Project: {conv.project or '-'}")
        click.echo(f"File: {conv.file_path}")

    if result.highlights:
        highlight = render_highlight(result.highlights[0], "\033[1m", "\033[0m")
    else:
        highlight = conv.summary
    click.echo(f"Summary: {highlight}")
    click.echo("-" * 40)


def print_command(result: SearchResult, verbose: bool = False) -> None:
    """Print a command search hit."""
    cmd = result.item

    click.echo(f"\033[32m{cmd.command}\033[0m ({cmd.command_type}, confidence {cmd.confidence:.1f})")
    click.echo(f"Conversation: {cmd.conversation_id} message {cmd.message_index} | Score: {result.score:.2f}")
    if verbose and cmd.context:
        click.echo(f"\n{cmd.context}\n")
    click.echo("-" * 40)


@click.group()
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path), help="Path to config.yaml")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None) -> None:
    """Search Memex conversation history."""
    config = load_config(config_path)
    setup_logging(
        "search", log_dir=config.logging.log_dir, level=config.logging.level, console=False
    )
    ctx.obj = config


@cli.command()
@click.pass_obj
def build(config: Config) -> None:
    """Build the search index and print its statistics."""
    try:
        with rebuild_index(config) as index:
            stats = index.get_stats()
    except MemexSearchError as e:
        click.echo(f"Error building index: {e}", err=True)
        sys.exit(1)

    click.echo(
        f"Indexed {stats['conversations']} conversations, "
        f"{stats['messages']} messages, {stats['commands']} commands"
    )


@cli.command()
@click.argument("query")
@click.option("--project", help="Filter by project name")
@click.option("--date-from", help="Created on or after (YYYY-MM-DD)")
@click.option("--date-to", help="Created on or before (YYYY-MM-DD)")
@click.option("--limit", "-n", default=10, help="Number of results")
@click.option("--verbose", "-v", is_flag=True, help="Show more details")
@click.pass_obj
def conversations(
    config: Config,
    query: str,
    project: str | None,
    date_from: str | None,
    date_to: str | None,
    limit: int,
    verbose: bool,
) -> None:
    """Search conversations."""
    try:
        with open_index(config) as index:
            results = index.search_conversations(
                query, project=project, date_from=date_from, date_to=date_to, limit=limit
            )
    except (MemexSearchError, ValueError) as e:
        click.echo(f"Error searching conversations: {e}", err=True)
        sys.exit(1)

    click.echo(f"Found {len(results)} conversations:\n")
    for result in results:
        print_conversation(result, verbose)


@cli.command()
@click.argument("query")
@click.option(
    "--type",
    "command_type",
    type=click.Choice(["cli", "code", "config", "any"]),
    default="any",
    help="Command type",
)
@click.option("--limit", "-n", default=10, help="Number of results")
@click.option("--verbose", "-v", is_flag=True, help="Show context around each command")
@click.pass_obj
def commands(config: Config, query: str, command_type: str, limit: int, verbose: bool) -> None:
    """Search extracted commands."""
    try:
        with open_index(config) as index:
            results = index.search_commands(query, command_type=command_type, limit=limit)
    except (MemexSearchError, ValueError) as e:
        click.echo(f"Error searching commands: {e}", err=True)
        sys.exit(1)

    click.echo(f"Found {len(results)} commands:\n")
    for result in results:
        print_command(result, verbose)


@cli.command()
@click.argument("query")
@click.option("--limit", "-n", default=10, help="Number of results")
@click.option("--verbose", "-v", is_flag=True, help="Show context around each command")
@click.pass_obj
def fuzzy(config: Config, query: str, limit: int, verbose: bool) -> None:
    """Typo-tolerant command search."""
    try:
        with open_index(config) as index:
            results = index.fuzzy_search_commands(query, limit=limit)
    except (MemexSearchError, ValueError) as e:
        click.echo(f"Error searching commands: {e}", err=True)
        sys.exit(1)

    click.echo(f"Found {len(results)} commands:\n")
    for result in results:
        print_command(result, verbose)


@cli.command()
@click.pass_obj
def stats(config: Config) -> None:
    """Show index statistics."""
    try:
        with open_index(config) as index:
            stats = index.get_stats()
    except MemexSearchError as e:
        click.echo(f"Error reading index statistics: {e}", err=True)
        sys.exit(1)

    click.echo(json.dumps(stats, indent=2))


@cli.command()
@click.argument("conversation_id")
@click.option("--start", default=0, help="First message index")
@click.option("--count", default=10, help="Number of messages")
@click.pass_obj
def snippet(config: Config, conversation_id: str, start: int, count: int) -> None:
    """Print messages from one conversation."""
    with SearchIndex(config.index) as index:
        index.attach()
        tools = MemexTools(index, config.archive)
        output = tools.call(
            "get_conversation_snippet",
            {"conversation_id": conversation_id, "message_start": start, "message_count": count},
        )
    click.echo(output)
    if output.startswith("Error:"):
        sys.exit(1)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
