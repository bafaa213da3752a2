"""CLI entry point for browsing and exporting Cursor conversations.

    cursor-history workspaces
    cursor-history list my-project --match "login"
    cursor-history latest
    cursor-history extract --output-dir ./conversations
"""

import logging
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import click

from cursor_history.config import Config, load_config
from cursor_history.logging import get_logger, setup_logging
from cursor_history.models import NormalizedConversation
from cursor_history.processor.formatting import (
    format_conversation,
    format_index,
    generate_conversation_filename,
)
from cursor_history.processor.ranking import (
    effective_activity_time,
    filter_with_assistant_content,
    match_conversations,
)
from cursor_history.processor.resolver import FallbackResolver

logger = get_logger("extract")


def format_activity(conversation: NormalizedConversation) -> str:
    """Last activity for display."""
    ts = effective_activity_time(conversation)
    if ts <= 0:
        return "unknown"
    return datetime.fromtimestamp(ts / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")


def unique_filename(filename: str, taken: set[str]) -> str:
    """Add a numeric suffix until the name is not in `taken`."""
    candidate = filename
    stem = filename[:-3] if filename.endswith(".md") else filename
    counter = 2
    while candidate in taken:
        candidate = f"{stem}-{counter}.md"
        counter += 1
    taken.add(candidate)
    return candidate


@click.group()
@click.option("--config", "config_path", type=click.Path(path_type=Path), help="Path to config.yaml")
@click.option("--verbose", "-v", is_flag=True, help="Log debug output")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """Browse and export Cursor conversation history."""
    setup_logging("extract", level=logging.DEBUG if verbose else logging.INFO)
    ctx.obj = load_config(config_path)


@cli.command()
@click.pass_obj
def workspaces(config: Config) -> None:
    """List known workspaces."""
    descriptors, skipped = FallbackResolver.from_config(config).workspaces()
    if not descriptors:
        click.echo("No workspaces found.")
        return

    for descriptor in descriptors:
        click.echo(f"{descriptor.display_name}\t{descriptor.folder_path}\t{descriptor.storage_id}")
    if skipped:
        logger.info("Skipped workspace directories: count=%d", len(skipped))


@cli.command("list")
@click.argument("name")
@click.option("--match", "term", help="Only conversations whose name or first message contains this")
@click.option("--limit", "-n", default=20, help="Number of conversations")
@click.pass_obj
def list_conversations(config: Config, name: str, term: str | None, limit: int) -> None:
    """List the conversations of workspace NAME, most recent first."""
    resolution = FallbackResolver.from_config(config).resolve_workspace(name)
    conversations = match_conversations(resolution.conversations, term)
    if not conversations:
        click.echo(f"No conversations found for workspace: {name}")
        return

    click.echo(f"Found {len(conversations)} conversations (via {resolution.tier.value}):\n")
    for conversation in conversations[:limit]:
        count = f"{len(conversation.messages)} messages" if conversation.messages else "metadata only"
        click.echo(f"[{format_activity(conversation)}] {conversation.title}")
        click.echo(f"  ID: {conversation.id} | {count}")


@cli.command()
@click.option("--workspace", "-w", help="Workspace name (defaults to the current directory name)")
@click.option("--output", "-o", type=click.Path(path_type=Path), help="Markdown file to write")
@click.pass_obj
def latest(config: Config, workspace: str | None, output: Path | None) -> None:
    """Write the latest conversation to a markdown file."""
    resolver = FallbackResolver.from_config(config)
    name = workspace or Path.cwd().name

    conversation = None
    resolution = resolver.resolve_workspace(name)
    if resolution.conversations:
        conversation = resolver.hydrate(resolution.conversations[0])
    else:
        logger.info("No conversations for workspace, using global latest: workspace=%s", name)
        resolution = resolver.resolve_latest()
        if resolution.conversations:
            conversation = resolution.conversations[0]

    if conversation is None:
        click.echo("No conversations found.")
        return

    if output is None:
        output = Path(tempfile.gettempdir()) / generate_conversation_filename(conversation)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(format_conversation(conversation), encoding="utf-8")
    click.echo(str(output))


@cli.command()
@click.option("--output-dir", "-o", type=click.Path(path_type=Path), help="Directory for markdown files")
@click.option("--all", "include_all", is_flag=True, help="Keep conversations without assistant replies")
@click.pass_obj
def extract(config: Config, output_dir: Path | None, include_all: bool) -> None:
    """Export every conversation in the global store to markdown."""
    output_dir = output_dir or config.extract.output_dir
    resolution = FallbackResolver.from_config(config).extract_all()

    conversations = resolution.conversations
    if not include_all:
        conversations = filter_with_assistant_content(conversations)
    if not conversations:
        click.echo("No conversations found.")
        return

    output_dir.mkdir(parents=True, exist_ok=True)
    taken: set[str] = {"index.md"}
    filenames: list[str] = []
    for conversation in conversations:
        filename = unique_filename(generate_conversation_filename(conversation), taken)
        (output_dir / filename).write_text(format_conversation(conversation), encoding="utf-8")
        filenames.append(filename)

    (output_dir / "index.md").write_text(format_index(conversations, filenames), encoding="utf-8")
    logger.info(
        "Exported conversations: count=%d skipped=%d output_dir=%s",
        len(conversations),
        len(resolution.skipped),
        output_dir,
    )
    click.echo(f"Exported {len(conversations)} conversations to {output_dir}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
