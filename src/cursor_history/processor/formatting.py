"""Markdown rendering of normalized conversations.

Dates are rendered in UTC so exported files do not depend on the machine
that produced them.
"""

import re
from datetime import datetime, timezone

from cursor_history.models import CodeBlock, NormalizedConversation, NormalizedMessage, Role

# Timestamps outside this window are treated as garbage
_VALID_FROM_MS = int(datetime(2020, 1, 1, tzinfo=timezone.utc).timestamp() * 1000)
_VALID_UNTIL_MS = int(datetime(2030, 1, 1, tzinfo=timezone.utc).timestamp() * 1000)

_ROLE_HEADINGS = {
    Role.USER: "User",
    Role.ASSISTANT: "Assistant",
}


def _to_datetime(timestamp_ms: int) -> datetime:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)


def format_timestamp(timestamp_ms: int | float | None) -> str | None:
    """ISO 8601 form of an epoch-ms timestamp, or None when implausible."""
    if not isinstance(timestamp_ms, (int, float)) or isinstance(timestamp_ms, bool):
        return None
    if not _VALID_FROM_MS <= timestamp_ms <= _VALID_UNTIL_MS:
        return None
    return _to_datetime(int(timestamp_ms)).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _human_time(timestamp_ms: int) -> str:
    return _to_datetime(timestamp_ms).strftime("%Y-%m-%d %H:%M:%S UTC")


def slugify(value: str) -> str:
    """Lowercase, with runs of anything but letters and digits turned into '-'."""
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")


def _format_code_block(block: CodeBlock) -> str:
    lines = [f"```{block.language.lower()}"]
    if block.file_path:
        filename = re.split(r"[/\\]", block.file_path)[-1] or "unknown"
        lines.append(f"// File: {filename}")
        if block.line_start is not None and block.line_end is not None:
            lines.append(f"// Lines: {block.line_start}-{block.line_end}")
        lines.append("")
    lines.append(block.code.strip())
    lines.append("```")
    return "\n".join(lines) + "\n\n"


def format_message(message: NormalizedMessage) -> str:
    """Render one message as a level-3 section."""
    output = f"### {_ROLE_HEADINGS[message.role]}\n\n"

    if message.timing is not None and message.timing.start and message.timing.end:
        start = _human_time(message.timing.start)
        end = _human_time(message.timing.end)
        if start == end:
            output += f"_{start} (instant)_\n\n"
        else:
            duration = (message.timing.end - message.timing.start) / 1000
            output += f"_{duration:.1f}s: {start} to {end}_\n\n"

    if message.text:
        output += f"{message.text.strip()}\n\n"

    for block in message.code_blocks:
        output += _format_code_block(block)

    return output


def format_conversation(conversation: NormalizedConversation) -> str:
    """Render a conversation as a markdown document."""
    output = f"# {conversation.name or 'Unnamed Conversation'}\n\n"

    created = format_timestamp(conversation.created_at)
    output += f"_Created: {_human_time(conversation.created_at) if created else 'unknown'}_\n\n"

    if conversation.workspace_name:
        output += f"_Workspace: `{conversation.workspace_name}`_\n\n"

    for message in conversation.messages:
        output += format_message(message)

    return output


def generate_conversation_filename(conversation: NormalizedConversation) -> str:
    """File name of the form <workspace>-<YYYY-MM-DD>-<HHMM>-<name>.md."""
    created = _to_datetime(conversation.created_at)
    workspace = slugify(conversation.workspace_name or "unnamed-workspace") or "unnamed-workspace"
    name = slugify(conversation.name or "unnamed") or "unnamed"
    return f"{workspace}-{created:%Y-%m-%d}-{created:%H%M}-{name}.md"


def format_index(conversations: list[NormalizedConversation], filenames: list[str]) -> str:
    """Table of contents linking each exported conversation file."""
    output = "# Cursor Conversations\n\n"
    for conversation, filename in zip(conversations, filenames):
        created = format_timestamp(conversation.created_at)
        date = created[:10] if created else "unknown date"
        workspace = f" ({conversation.workspace_name})" if conversation.workspace_name else ""
        output += f"- [{conversation.title}]({filename}){workspace}, {date}, {len(conversation.messages)} messages\n"
    return output
