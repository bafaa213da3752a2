"""Parser for conversations whose messages carry a rich-text document tree.

Newer messages keep a serialized editor document next to (or instead of)
the plain `text` field::

    "richText": "{\"root\": {\"type\": \"root\", \"children\": [
        {\"type\": \"paragraph\", \"children\": [{\"type\": \"text\", \"text\": \"Fix \"},
                                              {\"type\": \"text\", \"text\": \"this\"}]},
        {\"type\": \"code\", \"language\": \"python\", \"children\": [...]}
    ]}}"

Text is recovered by a depth-first walk over the tree in document order.
Code nodes become separate code blocks instead of being inlined. Children
may live under `children` or `content`, and code languages under
`language` or `attrs.language`, depending on the editor that wrote them.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from cursor_history.logging import get_logger
from cursor_history.models import (
    CodeBlock,
    NormalizedConversation,
    NormalizedMessage,
    SourceTier,
    Unusable,
)
from cursor_history.processor.parsers.base import Parser, RecordKind
from cursor_history.processor.parsers.messages import (
    build_message,
    conversation_fields,
    parse_code_blocks,
    parse_role,
    parse_text,
)

logger = get_logger("parsers.rich_text")

MAX_DEPTH = 64

TEXT_TYPES = {"text", "linebreak"}
CODE_TYPES = {"code", "codeBlock", "code_block"}
BLOCK_TYPES = {"paragraph", "blockquote", "quote", "listItem", "listitem", "list", "heading"}
CONTAINER_TYPES = BLOCK_TYPES | {"root", "doc", "link"}


class NodeKind(str, Enum):
    TEXT = "text"
    CONTAINER = "container"
    CODE = "code"
    UNKNOWN = "unknown"


class RichTextTooDeep(ValueError):
    """Tree nests deeper than the walker accepts."""


def classify_node(node: Any) -> NodeKind:
    if not isinstance(node, dict):
        return NodeKind.UNKNOWN
    node_type = node.get("type")
    if node_type in TEXT_TYPES:
        return NodeKind.TEXT
    if node_type in CODE_TYPES:
        return NodeKind.CODE
    if node_type in CONTAINER_TYPES:
        return NodeKind.CONTAINER
    return NodeKind.UNKNOWN


def node_children(node: dict) -> list:
    for key in ("children", "content"):
        children = node.get(key)
        if isinstance(children, list):
            return children
    return []


def load_tree(rich_text: Any) -> dict | None:
    """Decode a `richText` value into its root node, or None."""
    if isinstance(rich_text, str):
        try:
            rich_text = json.loads(rich_text)
        except (ValueError, RecursionError):
            return None
    if not isinstance(rich_text, dict):
        return None
    root = rich_text.get("root")
    if isinstance(root, dict):
        return root
    if rich_text.get("type") in ("root", "doc"):
        return rich_text
    return None


@dataclass
class RichTextContent:
    text: str
    code_blocks: list[CodeBlock] = field(default_factory=list)


class RichTextWalker:
    """Depth-first visitor collecting text and code from a document tree.

    One walker per tree; `walk` raises RichTextTooDeep when the tree nests
    beyond `max_depth`.
    """

    def __init__(self, max_depth: int = MAX_DEPTH) -> None:
        self._max_depth = max_depth
        self._code_blocks: list[CodeBlock] = []

    def walk(self, root: dict) -> RichTextContent:
        self._code_blocks = []
        text = self._visit(root, 0)
        return RichTextContent(text=text.strip(), code_blocks=list(self._code_blocks))

    def _visit(self, node: Any, depth: int) -> str:
        if depth > self._max_depth:
            raise RichTextTooDeep(f"rich text nests deeper than {self._max_depth}")

        kind = classify_node(node)
        if kind is NodeKind.TEXT:
            return self._visit_text(node)
        if kind is NodeKind.CODE:
            self._visit_code(node, depth)
            return ""
        if kind is NodeKind.CONTAINER:
            return self._visit_children(node, depth)
        return self._visit_unknown(node, depth)

    def _visit_text(self, node: dict) -> str:
        if node.get("type") == "linebreak":
            return "\n"
        text = node.get("text")
        return text if isinstance(text, str) else ""

    def _visit_children(self, node: dict, depth: int) -> str:
        parts: list[str] = []
        for child in node_children(node):
            chunk = self._visit(child, depth + 1)
            if not chunk:
                continue
            if parts and isinstance(child, dict) and child.get("type") in BLOCK_TYPES:
                parts.append("\n")
            parts.append(chunk)
        return "".join(parts)

    def _visit_code(self, node: dict, depth: int) -> None:
        # Code inside code is flattened into the outer block
        inner = _CodeTextWalker(self._max_depth).collect(node, depth)
        if not inner.strip():
            return
        language = node.get("language")
        attrs = node.get("attrs")
        if not language and isinstance(attrs, dict):
            language = attrs.get("language")
        self._code_blocks.append(
            CodeBlock(code=inner, language=language if isinstance(language, str) else "")
        )

    def _visit_unknown(self, node: Any, depth: int) -> str:
        # Inline extras (mentions, highlights) still carry readable text
        if not isinstance(node, dict):
            return ""
        if node_children(node):
            return self._visit_children(node, depth)
        text = node.get("text")
        return text if isinstance(text, str) else ""


class _CodeTextWalker(RichTextWalker):
    """Reconstructs the literal text inside a code node."""

    def collect(self, node: dict, depth: int) -> str:
        parts: list[str] = []
        for child in node_children(node):
            parts.append(self._visit(child, depth + 1))
        return "".join(parts)

    def _visit(self, node: Any, depth: int) -> str:
        if depth > self._max_depth:
            raise RichTextTooDeep(f"rich text nests deeper than {self._max_depth}")
        if classify_node(node) is NodeKind.TEXT:
            return self._visit_text(node)
        if not isinstance(node, dict):
            return ""
        if node_children(node):
            return self.collect(node, depth)
        text = node.get("text")
        return text if isinstance(text, str) else ""


class RichTextParser(Parser):
    """Parser for conversations with `richText` message trees."""

    kind = RecordKind.RICH_TEXT

    def __init__(self, max_depth: int = MAX_DEPTH) -> None:
        self._max_depth = max_depth

    def parse(
        self,
        data: Any,
        fallback_id: str,
        tier: SourceTier = SourceTier.DIRECT,
    ) -> NormalizedConversation | Unusable:
        """Parse a rich-text conversation record.

        Args:
            data: Conversation dict with a `conversation` list
            fallback_id: Conversation id when the record has none
            tier: Lookup tier recorded on the result

        Returns:
            NormalizedConversation or Unusable
        """
        if not isinstance(data, dict) or not isinstance(data.get("conversation"), list):
            return Unusable("rich text record has no conversation list")

        messages: list[NormalizedMessage] = []
        for raw in data["conversation"]:
            message = self._parse_message(raw)
            if message is not None:
                messages.append(message)

        conversation_id, created_at, name = conversation_fields(data, fallback_id)
        return NormalizedConversation(
            id=conversation_id,
            created_at=created_at,
            messages=tuple(messages),
            name=name,
            source_tier=tier,
        )

    def extract(self, rich_text: Any) -> RichTextContent | None:
        """Walk one `richText` value. None when it is absent or unusable."""
        root = load_tree(rich_text)
        if root is None:
            return None
        try:
            return RichTextWalker(self._max_depth).walk(root)
        except RichTextTooDeep as e:
            logger.debug("Rejecting rich text: %s", e)
            return None

    def _parse_message(self, raw: Any) -> NormalizedMessage | None:
        if not isinstance(raw, dict):
            return None

        role = parse_role(raw)
        if role is None:
            logger.debug("Dropping message with unknown sender: type=%r", raw.get("type"))
            return None

        code_blocks = parse_code_blocks(raw)
        content = self.extract(raw.get("richText"))
        if content is None:
            text = parse_text(raw)
        else:
            text = content.text or parse_text(raw)
            code_blocks.extend(content.code_blocks)

        return build_message(raw, role, text, code_blocks)
