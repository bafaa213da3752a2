"""Canonical data models.

Every model is frozen: values are built once by the reader or a schema
parser and later sorted and filtered without being re-derived.
"""

import hashlib
from dataclasses import dataclass, field, replace
from enum import Enum


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class SourceTier(str, Enum):
    """Which lookup produced a conversation. Diagnostic only."""

    DIRECT = "direct"  # normalize_record called by the caller
    LOCAL_REGISTRY = "local_registry"  # T1
    GLOBAL_FALLBACK = "global_fallback"  # T2
    GLOBAL_LATEST = "global_latest"  # T3
    GLOBAL_SCAN = "global_scan"  # bulk extraction


@dataclass(frozen=True)
class WorkspaceDescriptor:
    """A workspace storage directory and the project folder it belongs to."""

    storage_id: str  # Directory name under workspaceStorage
    folder_path: str  # Decoded absolute folder path
    display_name: str  # Final path segment

    def matches_exactly(self, name: str) -> bool:
        return self.display_name.lower() == name.lower()

    def matches(self, name: str) -> bool:
        """Case-insensitive match by display name or folder path substring."""
        return self.matches_exactly(name) or name.lower() in self.folder_path.lower()


@dataclass(frozen=True)
class RawRecord:
    """One undecoded value read from a store."""

    store: str
    key: str
    payload: bytes


@dataclass(frozen=True)
class CodeBlock:
    code: str
    language: str = ""
    file_path: str | None = None
    line_start: int | None = None
    line_end: int | None = None


@dataclass(frozen=True)
class Timing:
    start: int  # epoch ms
    end: int  # epoch ms


@dataclass(frozen=True)
class NormalizedMessage:
    role: Role
    text: str
    code_blocks: tuple[CodeBlock, ...] = ()
    timing: Timing | None = None

    @property
    def has_content(self) -> bool:
        return bool(self.text) or bool(self.code_blocks)

    @property
    def content_hash(self) -> str:
        """SHA256 hash of text and code for deduplication."""
        payload = self.text + "".join(block.code for block in self.code_blocks)
        return hashlib.sha256(payload.encode()).hexdigest()[:16]

    def to_typesense_doc(self, conversation: "NormalizedConversation", position: int) -> dict:
        """Convert to Typesense document format."""
        content = self.text
        if self.code_blocks:
            content = "\n\n".join([content, *(block.code for block in self.code_blocks)]).strip()
        ts = self.timing.start if self.timing else conversation.created_at
        return {
            "id": f"{conversation.id}:{position}:{self.content_hash}",
            "conversation_id": conversation.id,
            "workspace_name": conversation.workspace_name or "",
            "workspace_path": conversation.workspace_path or "",
            "position": position,
            "ts": ts,
            "role": self.role.value,
            "content": content,
            "languages": sorted({block.language for block in self.code_blocks if block.language}),
        }


@dataclass(frozen=True)
class NormalizedConversation:
    id: str
    created_at: int  # epoch ms
    messages: tuple[NormalizedMessage, ...] = ()
    name: str | None = None
    workspace_name: str | None = None
    workspace_path: str | None = None
    source_tier: SourceTier = field(default=SourceTier.DIRECT, compare=False)

    @property
    def is_metadata_only(self) -> bool:
        return not self.messages

    @property
    def title(self) -> str:
        """Display title: the name, else the first message text, else the id."""
        if self.name:
            return self.name
        for message in self.messages:
            if message.text:
                first_line = message.text.strip().splitlines()[0]
                return first_line[:100]
        return f"Conversation {self.id}"

    def with_workspace(self, workspace: WorkspaceDescriptor) -> "NormalizedConversation":
        return replace(
            self,
            workspace_name=workspace.display_name,
            workspace_path=workspace.folder_path,
        )

    def to_typesense_doc(self, last_active_at: int) -> dict:
        """Convert to Typesense document format."""
        preview = ""
        if self.messages:
            last_text = self.messages[-1].text
            preview = last_text[:200].strip()
            if len(last_text) > 200:
                preview += "..."
        return {
            "id": self.id,
            "name": self.title,
            "workspace_name": self.workspace_name or "",
            "workspace_path": self.workspace_path or "",
            "created_at": self.created_at,
            "last_active_at": last_active_at,
            "message_count": len(self.messages),
            "preview": preview,
            "source_tier": self.source_tier.value,
        }


@dataclass(frozen=True)
class Skipped:
    """A store, descriptor or record that contributed nothing, and why."""

    source: str
    reason: str


@dataclass(frozen=True)
class Unusable:
    """A record that matched no known schema or failed to parse."""

    reason: str

    def __bool__(self) -> bool:
        return False
