"""CLI entry point for search.

Indexes extracted conversations into Typesense and searches them from the
command line.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

import click

from cursor_history.config import Config, load_config
from cursor_history.logging import setup_logging
from cursor_history.processor.indexer import TypesenseIndexer
from cursor_history.processor.resolver import FallbackResolver


def format_timestamp(ts: int) -> str:
    """Format an epoch-ms timestamp for display."""
    return datetime.fromtimestamp(ts / 1000).strftime("%Y-%m-%d %H:%M:%S")


def print_message(hit: dict[str, Any], verbose: bool = False) -> None:
    """Print a message search hit."""
    doc = hit["document"]
    highlights = hit.get("highlights", [])

    # Use highlighted snippet if available
    content = doc["content"]
    for hl in highlights:
        if hl["field"] == "content":
            content = hl["snippet"]
            break

    # Clean up snippet tags for terminal
    content = content.replace("<mark>", "\033[1m").replace("</mark>", "\033[0m")

    workspace = doc.get("workspace_name") or "no workspace"
    click.echo(f"\033[36m[{format_timestamp(doc['ts'])}]\033[0m \033[32m{workspace}\033[0m ({doc['role']})")
    click.echo(f"Conversation: {doc['conversation_id']}")
    if verbose:
        click.echo(f"Path: {doc.get('workspace_path') or 'unknown'}")

    click.echo(f"\n{content}\n")
    click.echo("-" * 40)


def print_conversation(hit: dict[str, Any], verbose: bool = False) -> None:
    """Print a conversation search hit."""
    doc = hit["document"]

    workspace = doc.get("workspace_name") or "no workspace"
    click.echo(f"\033[36m[{format_timestamp(doc['last_active_at'])}]\033[0m \033[1m{doc['name']}\033[0m")
    click.echo(f"Workspace: \033[32m{workspace}\033[0m | Messages: {doc['message_count']}")
    click.echo(f"ID: {doc['id']}")
    if verbose:
        click.echo(f"Path: {doc.get('workspace_path') or 'unknown'}")

    click.echo(f"Preview: {doc['preview']}")
    click.echo("-" * 40)


@click.group()
@click.option("--config", "config_path", type=click.Path(path_type=Path), help="Path to config.yaml")
@click.option("--verbose", "-v", is_flag=True, help="Log debug output")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """Search Cursor conversation history."""
    setup_logging("search", level=logging.DEBUG if verbose else logging.INFO)
    ctx.obj = load_config(config_path)


@cli.command()
@click.pass_obj
def index(config: Config) -> None:
    """Index every global conversation and its messages."""
    resolution = FallbackResolver.from_config(config).extract_all()
    if not resolution.conversations:
        click.echo("No conversations found.")
        return

    indexer = TypesenseIndexer(config.typesense)
    try:
        indexer.ensure_collections()
        conversation_counts = indexer.upsert_conversations(resolution.conversations)
        message_counts = indexer.upsert_messages(resolution.conversations)
    except Exception as e:
        click.echo(f"Error indexing conversations: {e}", err=True)
        sys.exit(1)

    click.echo(
        f"Indexed {conversation_counts['success']} conversations and "
        f"{message_counts['success']} messages "
        f"({conversation_counts['failed'] + message_counts['failed']} failed)"
    )


@cli.command()
@click.argument("query")
@click.option("--workspace", help="Filter by workspace name")
@click.option("--role", type=click.Choice(["user", "assistant"]), help="Filter by role")
@click.option("--limit", "-n", default=10, help="Number of results")
@click.option("--verbose", "-v", is_flag=True, help="Show more details")
@click.pass_obj
def messages(config: Config, query: str, workspace: str | None, role: str | None, limit: int, verbose: bool) -> None:
    """Search individual messages."""
    indexer = TypesenseIndexer(config.typesense)

    filters = {}
    if workspace:
        filters["workspace_name"] = workspace
    if role:
        filters["role"] = role

    try:
        results = indexer.search_messages(query, per_page=limit, filters=filters)
    except Exception as e:
        click.echo(f"Error searching messages: {e}", err=True)
        sys.exit(1)

    found = results.get("found", 0)
    hits = results.get("hits", [])

    click.echo(f"Found {found} messages (showing {len(hits)}):\n")

    for hit in hits:
        print_message(hit, verbose)


@cli.command()
@click.argument("query")
@click.option("--workspace", help="Filter by workspace name")
@click.option("--limit", "-n", default=10, help="Number of results")
@click.option("--verbose", "-v", is_flag=True, help="Show more details")
@click.pass_obj
def conversations(config: Config, query: str, workspace: str | None, limit: int, verbose: bool) -> None:
    """Search conversations."""
    indexer = TypesenseIndexer(config.typesense)

    filters = {}
    if workspace:
        filters["workspace_name"] = workspace

    try:
        results = indexer.search_conversations(query, per_page=limit, filters=filters)
    except Exception as e:
        click.echo(f"Error searching conversations: {e}", err=True)
        sys.exit(1)

    found = results.get("found", 0)
    hits = results.get("hits", [])

    click.echo(f"Found {found} conversations (showing {len(hits)}):\n")

    for hit in hits:
        print_conversation(hit, verbose)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
