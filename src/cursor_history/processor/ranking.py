"""Ordering and filtering of normalized conversations."""

from typing import Iterable

from cursor_history.models import NormalizedConversation, Role


def effective_activity_time(conversation: NormalizedConversation) -> int:
    """When a conversation was last active, in epoch ms.

    The end of the most recent recorded timing window (scanning messages
    from the last one backwards), else the creation time. User messages
    usually carry no timing, so a trailing user turn still ranks by the
    reply before it rather than dropping back to the creation time.
    """
    for message in reversed(conversation.messages):
        if message.timing is not None:
            return message.timing.end
    return conversation.created_at


def _rank_key(conversation: NormalizedConversation) -> tuple[int, int, str]:
    return (-effective_activity_time(conversation), -conversation.created_at, conversation.id)


def rank_conversations(conversations: Iterable[NormalizedConversation]) -> list[NormalizedConversation]:
    """Most recently active first; ties by creation time, then id."""
    return sorted(conversations, key=_rank_key)


def has_assistant_content(conversation: NormalizedConversation) -> bool:
    """True when at least one retained message came from the assistant."""
    return any(message.role is Role.ASSISTANT for message in conversation.messages)


def filter_with_assistant_content(
    conversations: Iterable[NormalizedConversation],
) -> list[NormalizedConversation]:
    """Drop conversations with no assistant reply. Used for bulk export only."""
    return [conversation for conversation in conversations if has_assistant_content(conversation)]


def match_conversations(
    conversations: Iterable[NormalizedConversation],
    term: str | None,
) -> list[NormalizedConversation]:
    """Case-insensitive substring match over name and first message text.

    An empty term matches everything.
    """
    conversations = list(conversations)
    if not term:
        return conversations

    needle = term.lower()
    matched: list[NormalizedConversation] = []
    for conversation in conversations:
        haystacks = [conversation.name or ""]
        if conversation.messages:
            haystacks.append(conversation.messages[0].text)
        if any(needle in haystack.lower() for haystack in haystacks):
            matched.append(conversation)
    return matched
