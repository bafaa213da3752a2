"""Parser for the legacy flat conversation form.

Older composer records hold the conversation as a list of plain messages::

    {
        "composerId": "abc",
        "createdAt": 1700000000000,
        "conversation": [
            {"type": 1, "text": "How do I ...?"},
            {"type": 2, "text": "You can ...", "codeBlocks": [...]}
        ]
    }

`type` is 1 for the user and 2 for the assistant, sometimes as a string.
A bare list of such messages, or a single message, is accepted too.
"""

from typing import Any

from cursor_history.logging import get_logger
from cursor_history.models import NormalizedConversation, NormalizedMessage, SourceTier, Unusable
from cursor_history.processor.parsers.base import Parser, RecordKind
from cursor_history.processor.parsers.messages import (
    build_message,
    conversation_fields,
    parse_code_blocks,
    parse_role,
    parse_text,
)

logger = get_logger("parsers.legacy")


class LegacyParser(Parser):
    """Parser for flat `type`/`text` message lists."""

    kind = RecordKind.LEGACY

    def parse(
        self,
        data: Any,
        fallback_id: str,
        tier: SourceTier = SourceTier.DIRECT,
    ) -> NormalizedConversation | Unusable:
        """Parse a legacy record into a conversation.

        Args:
            data: A conversation dict, a list of messages, or one message
            fallback_id: Conversation id when the record has none
            tier: Lookup tier recorded on the result

        Returns:
            NormalizedConversation (possibly with no messages) or Unusable
        """
        if isinstance(data, list):
            raw_messages: list = data
            metadata: Any = None
        elif isinstance(data, dict) and isinstance(data.get("conversation"), list):
            raw_messages = data["conversation"]
            metadata = data
        elif isinstance(data, dict):
            raw_messages = [data]
            metadata = None
        else:
            return Unusable(f"legacy record must be a list or object, got {type(data).__name__}")

        messages: list[NormalizedMessage] = []
        for raw in raw_messages:
            message = self._parse_message(raw)
            if message is not None:
                messages.append(message)

        conversation_id, created_at, name = conversation_fields(metadata, fallback_id)
        return NormalizedConversation(
            id=conversation_id,
            created_at=created_at,
            messages=tuple(messages),
            name=name,
            source_tier=tier,
        )

    def _parse_message(self, raw: Any) -> NormalizedMessage | None:
        """Extract one message, or None when it is dropped."""
        if not isinstance(raw, dict):
            return None

        role = parse_role(raw)
        if role is None:
            logger.debug("Dropping message with unknown sender: type=%r", raw.get("type"))
            return None

        return build_message(raw, role, parse_text(raw), parse_code_blocks(raw))
