"""Entry points used by the CLI, the search indexer and exporters.

Each call loads configuration when none is given and builds a fresh
resolver, so nothing is cached between calls.
"""

import threading

from cursor_history.config import Config, load_config
from cursor_history.models import NormalizedConversation, WorkspaceDescriptor
from cursor_history.processor.normalizer import normalize_record
from cursor_history.processor.resolver import ComposerIndex, FallbackResolver

__all__ = [
    "extract_global_conversations",
    "hydrate_conversation",
    "normalize_record",
    "resolve_conversations_for_workspace",
    "resolve_latest_conversation",
    "resolve_workspaces",
]


def _resolver(config: Config | None, cancel: threading.Event | None = None) -> FallbackResolver:
    return FallbackResolver.from_config(config or load_config(), cancel=cancel)


def resolve_workspaces(config: Config | None = None) -> list[WorkspaceDescriptor]:
    """All decodable workspaces, stale duplicates included."""
    descriptors, _ = _resolver(config).workspaces()
    return descriptors


def resolve_conversations_for_workspace(
    name: str,
    config: Config | None = None,
    composer_index: ComposerIndex | None = None,
    cancel: threading.Event | None = None,
) -> list[NormalizedConversation]:
    """Ranked conversations for the named workspace.

    Args:
        name: Workspace display name or folder path fragment
        config: Storage locations; loaded from the config file when omitted
        composer_index: Composer ids per folder for the global fallback
        cancel: Event checked between workspace iterations

    Returns:
        Conversations most recently active first; empty when no tier answers
    """
    return _resolver(config, cancel).resolve_workspace(name, composer_index).conversations


def resolve_latest_conversation(config: Config | None = None) -> NormalizedConversation | None:
    """The most recently active conversation across all workspaces, if any."""
    conversations = _resolver(config).resolve_latest().conversations
    return conversations[0] if conversations else None


def hydrate_conversation(
    conversation: NormalizedConversation,
    config: Config | None = None,
) -> NormalizedConversation:
    """Fill a metadata-only conversation from the global store.

    Returns the input unchanged when the global store has no messages for it.
    """
    return _resolver(config).hydrate(conversation)


def extract_global_conversations(
    config: Config | None = None,
    cancel: threading.Event | None = None,
) -> list[NormalizedConversation]:
    """Every global conversation with messages, ranked, with workspace identity where known."""
    return _resolver(config, cancel).extract_all().conversations
