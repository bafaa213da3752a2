"""Field extraction shared by the message-bearing parsers."""

import json
from typing import Any

from cursor_history.models import CodeBlock, NormalizedMessage, Role, Timing
from cursor_history.processor.parsers.checkpoint import apply_checkpoint

ROLE_BY_TYPE: dict[str, Role] = {
    "1": Role.USER,
    "2": Role.ASSISTANT,
    "user": Role.USER,
    "assistant": Role.ASSISTANT,
}


def _number(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


def parse_role(message: dict) -> Role | None:
    """Sender of a message: `type` 1/2 (int or string), or a `role` name."""
    for field_name in ("type", "role"):
        value = message.get(field_name)
        if isinstance(value, bool) or value is None:
            continue
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        role = ROLE_BY_TYPE.get(str(value).strip().lower())
        if role is not None:
            return role
    return None


def parse_text(message: dict) -> str:
    """Plain text of a message: `text`, else `content`."""
    for field_name in ("text", "content"):
        value = message.get(field_name)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def parse_timing(message: dict) -> Timing | None:
    """Timing window in epoch ms, from either naming of `timingInfo`."""
    info = message.get("timingInfo")
    if not isinstance(info, dict):
        return None
    for start_key, end_key in (("clientStartTime", "clientEndTime"), ("startTime", "endTime")):
        start = _number(info.get(start_key))
        end = _number(info.get(end_key))
        if start is not None and end is not None:
            return Timing(start=start, end=end)
    return None


def _uri_path(uri: Any) -> str | None:
    if isinstance(uri, dict):
        path = uri.get("path") or uri.get("fsPath")
        return path if isinstance(path, str) and path else None
    if isinstance(uri, str) and uri:
        return uri
    return None


def _code_block(entry: Any) -> CodeBlock | None:
    if isinstance(entry, str):
        try:
            entry = json.loads(entry)
        except json.JSONDecodeError:
            # Not JSON: the string is the code itself
            return CodeBlock(code=entry, language="text") if entry.strip() else None
        except RecursionError:
            return None
    if not isinstance(entry, dict):
        return None

    code = entry.get("content")
    if not isinstance(code, str) or not code:
        code = entry.get("code")
    if not isinstance(code, str) or not code:
        return None

    language = entry.get("language") or entry.get("languageId") or ""
    return CodeBlock(
        code=code,
        language=language if isinstance(language, str) else "",
        file_path=_uri_path(entry.get("uri")),
        line_start=_number(entry.get("start")),
        line_end=_number(entry.get("end")),
    )


def parse_code_blocks(message: dict) -> list[CodeBlock]:
    """Code blocks listed on a message. Entries without code are dropped."""
    raw_blocks = message.get("codeBlocks")
    if not isinstance(raw_blocks, list):
        return []
    blocks: list[CodeBlock] = []
    for entry in raw_blocks:
        block = _code_block(entry)
        if block is not None:
            blocks.append(block)
    return blocks


def build_message(
    message: dict,
    role: Role,
    text: str,
    code_blocks: list[CodeBlock],
) -> NormalizedMessage | None:
    """Finish a message: merge checkpoint edits, then apply the retention rule.

    Returns:
        NormalizedMessage, or None when it has neither text nor code
    """
    code_blocks = apply_checkpoint(code_blocks, message.get("checkpoint"))
    result = NormalizedMessage(
        role=role,
        text=text,
        code_blocks=tuple(code_blocks),
        timing=parse_timing(message),
    )
    return result if result.has_content else None


def conversation_fields(data: Any, fallback_id: str) -> tuple[str, int, str | None]:
    """Id, creation time and name of a conversation record.

    Returns:
        Tuple of (id, created_at in epoch ms, name or None)
    """
    if not isinstance(data, dict):
        return fallback_id, 0, None

    conversation_id = data.get("composerId") or data.get("id")
    if not isinstance(conversation_id, str) or not conversation_id:
        conversation_id = fallback_id

    created_at = _number(data.get("createdAt")) or 0

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        name = None

    return conversation_id, created_at, name
