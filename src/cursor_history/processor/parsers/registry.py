"""Parser for registry-only records: composer headers without bodies.

A workspace store indexes its conversations under `composer.composerData`::

    {
        "allComposers": [
            {"composerId": "abc", "name": "Fix login", "createdAt": 1700000000000,
             "lastUpdatedAt": 1700000500000, "unifiedMode": "agent"}
        ],
        "selectedComposerIds": ["abc"]
    }

Each header becomes a metadata-only conversation (no messages). Global
conversation blobs from builds that keep only bubble headers have the same
shape as a single header.
"""

from typing import Any

from cursor_history.logging import get_logger
from cursor_history.models import NormalizedConversation, SourceTier, Unusable
from cursor_history.processor.parsers.base import Parser, RecordKind
from cursor_history.processor.parsers.messages import conversation_fields

logger = get_logger("parsers.registry")


class RegistryParser(Parser):
    """Parser for composer headers."""

    kind = RecordKind.REGISTRY

    def parse(
        self,
        data: Any,
        fallback_id: str,
        tier: SourceTier = SourceTier.DIRECT,
    ) -> NormalizedConversation | Unusable:
        """Parse a single composer header.

        A full registry holds many conversations and is rejected here; use
        `parse_registry` for it.
        """
        if not isinstance(data, dict):
            return Unusable("composer header must be an object")
        if isinstance(data.get("allComposers"), list):
            count = len(data["allComposers"])
            return Unusable(f"registry document holds {count} composer headers")
        return self._header(data, fallback_id, tier) or Unusable("composer header has no id")

    def parse_registry(
        self,
        data: Any,
        tier: SourceTier = SourceTier.DIRECT,
    ) -> list[NormalizedConversation]:
        """Parse every header in a registry document, skipping bad entries."""
        if not isinstance(data, dict) or not isinstance(data.get("allComposers"), list):
            return []

        conversations: list[NormalizedConversation] = []
        for header in data["allComposers"]:
            conversation = self._header(header, "", tier)
            if conversation is None:
                logger.debug("Skipping composer header without id: header=%r", header)
                continue
            conversations.append(conversation)
        return conversations

    def _header(
        self,
        header: Any,
        fallback_id: str,
        tier: SourceTier,
    ) -> NormalizedConversation | None:
        if not isinstance(header, dict):
            return None
        conversation_id, created_at, name = conversation_fields(header, fallback_id)
        if not conversation_id:
            return None
        return NormalizedConversation(
            id=conversation_id,
            created_at=created_at,
            name=name,
            source_tier=tier,
        )


def registry_composer_ids(data: Any) -> list[str]:
    """Composer ids listed in a registry document, in registry order."""
    if not isinstance(data, dict) or not isinstance(data.get("allComposers"), list):
        return []
    ids: list[str] = []
    for header in data["allComposers"]:
        if isinstance(header, dict):
            composer_id = header.get("composerId")
            if isinstance(composer_id, str) and composer_id and composer_id not in ids:
                ids.append(composer_id)
    return ids
