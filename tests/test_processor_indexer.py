"""Tests for Typesense indexer."""

from unittest.mock import MagicMock, patch

import pytest
from typesense.exceptions import ObjectNotFound

from cursor_history.config import TypesenseConfig
from cursor_history.models import (
    CodeBlock,
    NormalizedConversation,
    NormalizedMessage,
    Role,
    SourceTier,
    Timing,
)
from cursor_history.processor.indexer import (
    CONVERSATIONS_SCHEMA,
    MESSAGES_SCHEMA,
    TypesenseIndexer,
)


@pytest.fixture
def config() -> TypesenseConfig:
    """Provide a test TypesenseConfig."""
    return TypesenseConfig(
        host="localhost",
        port=8108,
        protocol="http",
        api_key="test-api-key",
    )


@pytest.fixture
def mock_client() -> MagicMock:
    """Provide a mock Typesense client."""
    return MagicMock()


@pytest.fixture
def indexer(config: TypesenseConfig, mock_client: MagicMock) -> TypesenseIndexer:
    """Provide a TypesenseIndexer with mocked client."""
    with patch("cursor_history.processor.indexer.typesense.Client", return_value=mock_client):
        return TypesenseIndexer(config)


@pytest.fixture
def conversation() -> NormalizedConversation:
    return NormalizedConversation(
        id="abc",
        created_at=1000,
        name="Fix login",
        workspace_name="app",
        workspace_path="/home/me/app",
        source_tier=SourceTier.GLOBAL_SCAN,
        messages=(
            NormalizedMessage(role=Role.USER, text="Why?"),
            NormalizedMessage(
                role=Role.ASSISTANT,
                text="Because",
                code_blocks=(CodeBlock(code="x = 1", language="python"),),
                timing=Timing(2000, 3000),
            ),
        ),
    )


class TestTypesenseIndexerInit:
    """Tests for TypesenseIndexer initialization."""

    def test_creates_client_with_config(self, config: TypesenseConfig) -> None:
        """TypesenseIndexer should create client with correct config."""
        with patch("cursor_history.processor.indexer.typesense.Client") as mock_client_class:
            TypesenseIndexer(config)

            mock_client_class.assert_called_once_with({
                "nodes": [{
                    "host": "localhost",
                    "port": "8108",
                    "protocol": "http",
                }],
                "api_key": "test-api-key",
                "connection_timeout_seconds": 5,
            })

    def test_client_property(self, indexer: TypesenseIndexer, mock_client: MagicMock) -> None:
        assert indexer.client is mock_client


class TestEnsureCollections:
    """Tests for ensure_collections method."""

    def test_creates_missing_collection(self, indexer: TypesenseIndexer, mock_client: MagicMock) -> None:
        mock_client.collections.__getitem__.return_value.retrieve.side_effect = [
            ObjectNotFound("cursor_messages"),
            {"name": "cursor_conversations"},
        ]

        indexer.ensure_collections()

        mock_client.collections.create.assert_called_once_with(MESSAGES_SCHEMA)

    def test_existing_collections_untouched(self, indexer: TypesenseIndexer, mock_client: MagicMock) -> None:
        mock_client.collections.__getitem__.return_value.retrieve.return_value = {}

        indexer.ensure_collections()

        mock_client.collections.create.assert_not_called()


class TestDocuments:
    """Tests for the document shapes."""

    def test_message_doc(self, conversation: NormalizedConversation) -> None:
        doc = conversation.messages[1].to_typesense_doc(conversation, 1)

        assert doc["id"].startswith("abc:1:")
        assert doc["conversation_id"] == "abc"
        assert doc["workspace_name"] == "app"
        assert doc["ts"] == 2000
        assert doc["role"] == "assistant"
        assert doc["content"] == "Because\n\nx = 1"
        assert doc["languages"] == ["python"]

    def test_message_doc_without_timing_uses_created_at(self, conversation: NormalizedConversation) -> None:
        assert conversation.messages[0].to_typesense_doc(conversation, 0)["ts"] == 1000

    def test_conversation_doc(self, conversation: NormalizedConversation) -> None:
        doc = conversation.to_typesense_doc(3000)

        assert doc == {
            "id": "abc",
            "name": "Fix login",
            "workspace_name": "app",
            "workspace_path": "/home/me/app",
            "created_at": 1000,
            "last_active_at": 3000,
            "message_count": 2,
            "preview": "Because",
            "source_tier": "global_scan",
        }


class TestUpserts:
    """Tests for upsert_messages and upsert_conversations."""

    def test_upsert_messages(
        self, indexer: TypesenseIndexer, mock_client: MagicMock, conversation: NormalizedConversation
    ) -> None:
        documents = mock_client.collections.__getitem__.return_value.documents
        documents.import_.return_value = [{"success": True}, {"success": False, "error": "bad"}]

        result = indexer.upsert_messages([conversation])

        assert result == {"success": 1, "failed": 1}
        mock_client.collections.__getitem__.assert_called_with("cursor_messages")
        sent, params = documents.import_.call_args[0]
        assert [d["position"] for d in sent] == [0, 1]
        assert params == {"action": "upsert"}

    def test_upsert_conversations_uses_activity_time(
        self, indexer: TypesenseIndexer, mock_client: MagicMock, conversation: NormalizedConversation
    ) -> None:
        documents = mock_client.collections.__getitem__.return_value.documents
        documents.import_.return_value = [{"success": True}]

        result = indexer.upsert_conversations([conversation])

        assert result == {"success": 1, "failed": 0}
        sent, _ = documents.import_.call_args[0]
        assert sent[0]["last_active_at"] == 3000

    def test_nothing_to_upsert(self, indexer: TypesenseIndexer, mock_client: MagicMock) -> None:
        assert indexer.upsert_messages([]) == {"success": 0, "failed": 0}
        mock_client.collections.__getitem__.return_value.documents.import_.assert_not_called()


class TestSearch:
    """Tests for search methods."""

    def test_search_messages_with_filters(self, indexer: TypesenseIndexer, mock_client: MagicMock) -> None:
        documents = mock_client.collections.__getitem__.return_value.documents
        documents.search.return_value = {"found": 0, "hits": []}

        indexer.search_messages("login", per_page=5, filters={"workspace_name": "app", "role": "user"})

        params = documents.search.call_args[0][0]
        assert params["q"] == "login"
        assert params["query_by"] == "content"
        assert params["per_page"] == 5
        assert params["filter_by"] == "workspace_name:=app && role:=user"

    def test_search_conversations_without_filters(self, indexer: TypesenseIndexer, mock_client: MagicMock) -> None:
        documents = mock_client.collections.__getitem__.return_value.documents
        documents.search.return_value = {"found": 0, "hits": []}

        indexer.search_conversations("*")

        params = documents.search.call_args[0][0]
        assert params["query_by"] == "name,preview"
        assert params["sort_by"] == "last_active_at:desc"
        assert "filter_by" not in params
        mock_client.collections.__getitem__.assert_called_with(CONVERSATIONS_SCHEMA["name"])
