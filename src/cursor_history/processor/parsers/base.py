"""Base parser interface, schema classification and registry.

Cursor has stored conversations in several shapes over time and none of
them carries a reliable version tag. `classify_record` probes the structure
of a decoded JSON value and names the generation; each generation has one
parser registered under its `RecordKind`.
"""

import hashlib
import json
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from cursor_history.models import NormalizedConversation, SourceTier, Unusable

__all__ = [
    "Parser",
    "ParserRegistry",
    "RecordKind",
    "classify_record",
    "content_hash",
    "decode_payload",
]


class RecordKind(str, Enum):
    LEGACY = "legacy"
    RICH_TEXT = "rich_text"
    REGISTRY = "registry"
    UNUSABLE = "unusable"


def content_hash(content: bytes | str) -> str:
    """Compute SHA256 hash of content.

    Args:
        content: Raw record bytes or text

    Returns:
        First 16 characters of the hex-encoded SHA256 hash
    """
    if isinstance(content, str):
        content = content.encode()
    return hashlib.sha256(content).hexdigest()[:16]


def decode_payload(raw: bytes | str) -> Any:
    """Decode a raw store value into JSON data.

    Raises:
        ValueError: if the payload is not UTF-8 JSON
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    return json.loads(raw)


def _is_message(value: Any) -> bool:
    return isinstance(value, dict) and ("type" in value or "role" in value)


def _has_rich_text(message: Any) -> bool:
    if not isinstance(message, dict):
        return False
    rich = message.get("richText")
    return isinstance(rich, (dict, str)) and bool(rich)


def _is_composer_header(data: dict) -> bool:
    created_at = data.get("createdAt")
    return (
        isinstance(data.get("composerId"), str)
        and isinstance(created_at, (int, float))
        and not isinstance(created_at, bool)
    )


def classify_record(data: Any) -> RecordKind:
    """Name the schema generation of a decoded record."""
    if isinstance(data, list):
        if data and all(_is_message(item) for item in data):
            return RecordKind.LEGACY
        return RecordKind.UNUSABLE

    if not isinstance(data, dict):
        return RecordKind.UNUSABLE

    conversation = data.get("conversation")
    if isinstance(conversation, list):
        if any(_has_rich_text(message) for message in conversation):
            return RecordKind.RICH_TEXT
        return RecordKind.LEGACY

    if isinstance(data.get("allComposers"), list):
        return RecordKind.REGISTRY

    if _is_message(data) and ("text" in data or "content" in data):
        # A single message on its own
        return RecordKind.LEGACY

    if _is_composer_header(data):
        return RecordKind.REGISTRY

    return RecordKind.UNUSABLE


class Parser(ABC):
    """Base class for schema-generation parsers.

    Subclasses set the `kind` class attribute and implement `parse()` to
    turn decoded JSON of that generation into a NormalizedConversation.
    """

    kind: RecordKind

    @abstractmethod
    def parse(
        self,
        data: Any,
        fallback_id: str,
        tier: SourceTier = SourceTier.DIRECT,
    ) -> NormalizedConversation | Unusable:
        """Parse decoded record data.

        Args:
            data: Decoded JSON value already classified as this parser's kind
            fallback_id: Conversation id to use when the record carries none
            tier: Lookup tier recorded on the result

        Returns:
            NormalizedConversation, or Unusable if the data does not hold up
        """


class ParserRegistry:
    """Registry of parsers by record kind."""

    _parsers: dict[RecordKind, Parser] = {}

    @classmethod
    def register(cls, parser: Parser) -> None:
        """Register a parser."""
        cls._parsers[parser.kind] = parser

    @classmethod
    def get(cls, kind: RecordKind) -> Parser | None:
        """Get parser by record kind."""
        return cls._parsers.get(kind)
