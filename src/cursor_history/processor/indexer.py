"""Typesense indexer for extracted Cursor conversations and their messages."""

from typing import Any

import typesense
from typesense.exceptions import ObjectNotFound

from cursor_history.config import TypesenseConfig
from cursor_history.logging import get_logger
from cursor_history.models import NormalizedConversation
from cursor_history.processor.ranking import effective_activity_time

logger = get_logger("indexer")

MESSAGES_SCHEMA: dict[str, Any] = {
    "name": "cursor_messages",
    "fields": [
        {"name": "id", "type": "string"},
        {"name": "conversation_id", "type": "string", "facet": True},
        {"name": "workspace_name", "type": "string", "facet": True},
        {"name": "workspace_path", "type": "string"},
        {"name": "position", "type": "int32"},
        {"name": "ts", "type": "int64", "sort": True},
        {"name": "role", "type": "string", "facet": True},
        {"name": "content", "type": "string"},
        {"name": "languages", "type": "string[]", "facet": True},
    ],
    "default_sorting_field": "ts",
}

CONVERSATIONS_SCHEMA: dict[str, Any] = {
    "name": "cursor_conversations",
    "fields": [
        {"name": "id", "type": "string"},
        {"name": "name", "type": "string"},
        {"name": "workspace_name", "type": "string", "facet": True},
        {"name": "workspace_path", "type": "string"},
        {"name": "created_at", "type": "int64", "sort": True},
        {"name": "last_active_at", "type": "int64", "sort": True},
        {"name": "message_count", "type": "int32"},
        {"name": "preview", "type": "string"},
        {"name": "source_tier", "type": "string", "facet": True},
    ],
    "default_sorting_field": "last_active_at",
}


def _filter_by(filters: dict[str, Any] | None, fields: tuple[str, ...]) -> str | None:
    if not filters:
        return None
    parts = [f"{name}:={filters[name]}" for name in fields if filters.get(name)]
    return " && ".join(parts) or None


class TypesenseIndexer:
    """Indexes conversations and messages in Typesense.

    Handles collection creation/verification and document upserts.
    """

    def __init__(self, config: TypesenseConfig) -> None:
        """Initialize indexer with Typesense configuration.

        Args:
            config: TypesenseConfig with connection details
        """
        self._config = config
        self._client = typesense.Client({
            "nodes": [{
                "host": config.host,
                "port": str(config.port),
                "protocol": config.protocol,
            }],
            "api_key": config.api_key,
            "connection_timeout_seconds": 5,
        })

    @property
    def client(self) -> typesense.Client:
        """Access the underlying Typesense client."""
        return self._client

    def ensure_collections(self) -> None:
        """Create the message and conversation collections if missing."""
        self._ensure_collection(MESSAGES_SCHEMA)
        self._ensure_collection(CONVERSATIONS_SCHEMA)

    def _ensure_collection(self, schema: dict[str, Any]) -> None:
        name = schema["name"]
        try:
            self._client.collections[name].retrieve()
            logger.debug("Collection already exists: collection=%s", name)
        except ObjectNotFound:
            self._client.collections.create(schema)
            logger.info("Created collection: collection=%s", name)

    def _import(self, collection: str, documents: list[dict[str, Any]]) -> dict[str, int]:
        if not documents:
            return {"success": 0, "failed": 0}

        results = self._client.collections[collection].documents.import_(
            documents,
            {"action": "upsert"},
        )

        success = 0
        failed = 0
        for result in results:
            if result.get("success", False):
                success += 1
            else:
                failed += 1
                logger.debug("Failed to index document: collection=%s error=%s", collection, result.get("error", "unknown"))

        if failed > 0:
            logger.warning("Some documents failed to index: collection=%s success=%d failed=%d", collection, success, failed)

        return {"success": success, "failed": failed}

    def upsert_messages(self, conversations: list[NormalizedConversation]) -> dict[str, int]:
        """Index every message of the given conversations.

        Returns:
            Dict with counts: {"success": N, "failed": M}
        """
        documents = [
            message.to_typesense_doc(conversation, position)
            for conversation in conversations
            for position, message in enumerate(conversation.messages)
        ]
        return self._import(MESSAGES_SCHEMA["name"], documents)

    def upsert_conversations(self, conversations: list[NormalizedConversation]) -> dict[str, int]:
        """Index conversation summaries.

        Returns:
            Dict with counts: {"success": N, "failed": M}
        """
        documents = [
            conversation.to_typesense_doc(effective_activity_time(conversation))
            for conversation in conversations
        ]
        return self._import(CONVERSATIONS_SCHEMA["name"], documents)

    def search_messages(
        self,
        query: str,
        page: int = 1,
        per_page: int = 10,
        filters: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Search for messages.

        Args:
            query: Search query string (use "*" for all)
            page: Page number (1-based)
            per_page: Number of results per page
            filters: dictionary of filters (workspace_name, conversation_id, role)

        Returns:
            Search results from Typesense
        """
        search_params: dict[str, Any] = {
            "q": query,
            "query_by": "content",
            "page": page,
            "per_page": per_page,
            "sort_by": "ts:desc",
        }
        filter_by = _filter_by(filters, ("workspace_name", "conversation_id", "role"))
        if filter_by:
            search_params["filter_by"] = filter_by

        return self._client.collections[MESSAGES_SCHEMA["name"]].documents.search(search_params)

    def search_conversations(
        self,
        query: str,
        page: int = 1,
        per_page: int = 10,
        filters: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Search for conversations by name and preview.

        Args:
            query: Search query string (use "*" for all)
            page: Page number (1-based)
            per_page: Number of results per page
            filters: dictionary of filters (workspace_name, source_tier)

        Returns:
            Search results from Typesense
        """
        search_params: dict[str, Any] = {
            "q": query,
            "query_by": "name,preview",
            "page": page,
            "per_page": per_page,
            "sort_by": "last_active_at:desc",
        }
        filter_by = _filter_by(filters, ("workspace_name", "source_tier"))
        if filter_by:
            search_params["filter_by"] = filter_by

        return self._client.collections[CONVERSATIONS_SCHEMA["name"]].documents.search(search_params)
