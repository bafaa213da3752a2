"""Tiered lookup of conversations across workspace and global stores.

A workspace query walks the tiers in order and stops at the first one that
answers:

    T0  match the requested name against the decoded workspaces
    T1  read the primary workspace's composer registry (metadata only)
    T2  when that registry is absent, fetch the workspace's known composer
        ids from the global store as full conversations

A workspace-less "latest" query (T3) scans every global conversation blob
and keeps the most recently active one.

Store failures never raise out of this module. They are folded into the
`skipped` list of the Resolution and the tier counts as having produced
nothing.
"""

import json
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from pathlib import Path

from cursor_history.config import Config
from cursor_history.errors import ExtractionError, MalformedRecord
from cursor_history.logging import get_logger
from cursor_history.models import (
    NormalizedConversation,
    RawRecord,
    Skipped,
    SourceTier,
    Unusable,
    WorkspaceDescriptor,
)
from cursor_history.processor.normalizer import normalize_record, normalize_records, normalize_registry
from cursor_history.processor.parsers import decode_payload, registry_composer_ids
from cursor_history.processor.ranking import rank_conversations
from cursor_history.reader.sources import workspace_store_path
from cursor_history.reader.store import (
    COMPOSER_DATA_PREFIX,
    COMPOSER_REGISTRY_KEY,
    RecordStore,
    bubble_key,
    composer_data_key,
)
from cursor_history.reader.workspaces import match_workspaces, scan_workspaces

logger = get_logger("resolver")

_BUBBLE_HEADERS_FIELD = "fullConversationHeadersOnly"


class ComposerIndex:
    """Composer ids known per workspace folder, for a single resolution call.

    Folder keys are case-folded, so stale storage directories that decode
    to the same folder share one entry.
    """

    def __init__(self) -> None:
        self._ids_by_folder: dict[str, list[str]] = {}
        self._owners: dict[str, WorkspaceDescriptor] = {}

    @staticmethod
    def folder_key(folder_path: str) -> str:
        return folder_path.rstrip("/\\").casefold()

    def add(self, workspace: WorkspaceDescriptor, composer_ids: list[str]) -> None:
        """Record composer ids listed by one workspace registry."""
        ids = self._ids_by_folder.setdefault(self.folder_key(workspace.folder_path), [])
        for composer_id in composer_ids:
            if composer_id not in ids:
                ids.append(composer_id)
            self._owners.setdefault(composer_id, workspace)

    def ids_for(self, workspaces: list[WorkspaceDescriptor]) -> list[str]:
        """Ids associated with any of the workspaces, first-seen order."""
        seen: list[str] = []
        for workspace in workspaces:
            for composer_id in self._ids_by_folder.get(self.folder_key(workspace.folder_path), []):
                if composer_id not in seen:
                    seen.append(composer_id)
        return seen

    def owner_of(self, composer_id: str) -> WorkspaceDescriptor | None:
        """Workspace whose registry first listed the composer."""
        return self._owners.get(composer_id)

    def __len__(self) -> int:
        return len(self._owners)


@dataclass
class Resolution:
    """Outcome of one resolution call.

    `tier` is the tier that answered, or None when every tier came up empty.
    """

    tier: SourceTier | None = None
    conversations: list[NormalizedConversation] = field(default_factory=list)
    skipped: list[Skipped] = field(default_factory=list)


def _skipped_from(error: ExtractionError) -> Skipped:
    return Skipped(source=error.source, reason=str(error))


def expand_bubbles(store: RecordStore, key: str, payload: bytes) -> bytes:
    """Splice separately stored message bodies into a conversation blob.

    Newer builds keep only bubble headers in ``composerData:<id>`` and each
    message under ``bubbleId:<id>:<bubbleId>``, sometimes next to an empty
    ``conversation`` list. Blobs that already carry messages, or that cannot
    be decoded, are returned unchanged.
    """
    if _BUBBLE_HEADERS_FIELD.encode() not in payload:
        return payload
    try:
        data = decode_payload(payload)
    except (ValueError, RecursionError):
        return payload
    if not isinstance(data, dict):
        return payload
    existing = data.get("conversation")
    if isinstance(existing, list) and existing:
        return payload

    headers = data.get(_BUBBLE_HEADERS_FIELD)
    if not isinstance(headers, list) or not headers:
        return payload

    composer_id = data.get("composerId")
    if not isinstance(composer_id, str) or not composer_id:
        composer_id = key[len(COMPOSER_DATA_PREFIX):]

    wanted: list[tuple[dict, str]] = []
    for header in headers:
        if isinstance(header, dict) and isinstance(header.get("bubbleId"), str):
            wanted.append((header, bubble_key(composer_id, header["bubbleId"])))

    bubbles = store.get_blobs([k for _, k in wanted])
    conversation: list[dict] = []
    for header, k in wanted:
        raw = bubbles.get(k)
        if raw is None:
            continue
        try:
            bubble = decode_payload(raw)
        except (ValueError, RecursionError):
            logger.debug("Skipping undecodable bubble: key=%s", k)
            continue
        if not isinstance(bubble, dict):
            continue
        if "type" not in bubble and "type" in header:
            bubble = {**bubble, "type": header["type"]}
        conversation.append(bubble)

    if not conversation:
        return payload
    logger.debug("Hydrated bubbles: composer=%s count=%d", composer_id, len(conversation))
    return json.dumps({**data, "conversation": conversation}).encode("utf-8")


class FallbackResolver:
    """Runs the tiered lookup against one Cursor user directory."""

    def __init__(
        self,
        storage_root: Path | None,
        global_store: Path | None,
        max_workers: int = 1,
        cancel: threading.Event | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            storage_root: workspaceStorage directory
            global_store: Path to the global state.vscdb
            max_workers: Thread pool size for per-workspace and per-record work
            cancel: Checked between workspace iterations; set it to stop early
        """
        self.storage_root = storage_root
        self.global_store = global_store
        self.max_workers = max(1, max_workers)
        self.cancel = cancel

    @classmethod
    def from_config(cls, config: Config, cancel: threading.Event | None = None) -> "FallbackResolver":
        return cls(
            storage_root=config.cursor.workspace_storage,
            global_store=config.cursor.global_store,
            max_workers=config.max_workers,
            cancel=cancel,
        )

    def _cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.is_set()

    def _store_path(self, workspace: WorkspaceDescriptor) -> Path:
        return workspace_store_path(self.storage_root, workspace.storage_id)

    def _global_store(self) -> RecordStore:
        return RecordStore(self.global_store)

    def workspaces(self) -> tuple[list[WorkspaceDescriptor], list[Skipped]]:
        """Decode every workspace under the storage root."""
        descriptors, bad = scan_workspaces(self.storage_root)
        return descriptors, [_skipped_from(e) for e in bad]

    def _read_registry(self, workspace: WorkspaceDescriptor) -> tuple[str | None, Skipped | None]:
        with RecordStore(self._store_path(workspace)) as store:
            value = store.get_item(COMPOSER_REGISTRY_KEY)
            error = store.error
        return value, _skipped_from(error) if error else None

    def build_composer_index(
        self,
        workspaces: list[WorkspaceDescriptor],
    ) -> tuple[ComposerIndex, list[Skipped]]:
        """Read the registry of each workspace into a ComposerIndex.

        Each workspace's store is opened and closed inside its own task.
        Workspaces not yet started when the cancel event is set are left
        out of the index.
        """
        index = ComposerIndex()
        skipped: list[Skipped] = []

        def read(workspace: WorkspaceDescriptor) -> tuple[list[str], Skipped | None] | None:
            if self._cancelled():
                return None
            value, problem = self._read_registry(workspace)
            if value is None:
                return [], problem
            try:
                return registry_composer_ids(decode_payload(value)), problem
            except (ValueError, RecursionError) as e:
                return [], _skipped_from(MalformedRecord(workspace.storage_id, f"registry: {e}"))

        if self.max_workers > 1 and len(workspaces) > 1:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(workspaces))) as executor:
                results = list(executor.map(read, workspaces))
        else:
            results = []
            for workspace in workspaces:
                if self._cancelled():
                    break
                results.append(read(workspace))

        cancelled = 0
        for workspace, result in zip(workspaces, results):
            if result is None:
                cancelled += 1
                continue
            ids, problem = result
            if problem is not None:
                skipped.append(problem)
            index.add(workspace, ids)
        cancelled += len(workspaces) - len(results)

        if cancelled:
            logger.info("Composer index cancelled: read=%d cancelled=%d", len(workspaces) - cancelled, cancelled)
        logger.debug("Built composer index: workspaces=%d composers=%d", len(workspaces), len(index))
        return index, skipped

    def _load_global(
        self,
        keys: list[str] | None,
        skipped: list[Skipped],
    ) -> list[RawRecord]:
        """Fetch conversation blobs from the global store, hydrating bubbles.

        `keys` of None scans every conversation blob.
        """
        records: list[RawRecord] = []
        with self._global_store() as store:
            if store.error is not None:
                skipped.append(_skipped_from(store.error))
                return records
            if keys is None:
                rows = store.scan_blobs(COMPOSER_DATA_PREFIX)
            else:
                rows = list(store.get_blobs(keys).items())
            for key, payload in rows:
                records.append(RawRecord(store=str(store.path), key=key, payload=expand_bubbles(store, key, payload)))
        return records

    def resolve_workspace(
        self,
        name: str,
        composer_index: ComposerIndex | None = None,
    ) -> Resolution:
        """Resolve the conversations of the workspace called `name` (T0 to T2).

        Args:
            name: Display name or folder path fragment, case-insensitive
            composer_index: Ids to use for T2; built from the matching
                workspaces' registries when not given
        """
        descriptors, skipped = self.workspaces()
        resolution = Resolution(skipped=skipped)

        # T0
        matches = match_workspaces(descriptors, name)
        if not matches:
            logger.info("No workspace matches: name=%s", name)
            return resolution
        primary = matches[0]
        logger.debug("Matched workspace: name=%s primary=%s candidates=%d", name, primary.storage_id, len(matches))

        # T1
        registry, problem = self._read_registry(primary)
        if problem is not None:
            resolution.skipped.append(problem)
        if registry is not None:
            headers = normalize_registry(registry, SourceTier.LOCAL_REGISTRY)
            if isinstance(headers, Unusable):
                resolution.skipped.append(_skipped_from(MalformedRecord(primary.storage_id, headers.reason)))
            else:
                # An existing registry answers even when it lists nothing
                resolution.tier = SourceTier.LOCAL_REGISTRY
                resolution.conversations = rank_conversations(c.with_workspace(primary) for c in headers)
                logger.info("Resolved from local registry: workspace=%s count=%d", primary.display_name, len(headers))
                return resolution

        # T2
        if composer_index is None:
            # The primary registry is already known to be absent
            composer_index, index_skipped = self.build_composer_index(matches[1:])
            resolution.skipped.extend(index_skipped)
        composer_ids = composer_index.ids_for(matches)
        if not composer_ids:
            logger.info("No composer ids for workspace: workspace=%s", primary.display_name)
            return resolution

        records = self._load_global([composer_data_key(cid) for cid in composer_ids], resolution.skipped)
        conversations, record_skipped = normalize_records(records, SourceTier.GLOBAL_FALLBACK, self.max_workers)
        resolution.skipped.extend(record_skipped)
        if conversations:
            resolution.tier = SourceTier.GLOBAL_FALLBACK
            resolution.conversations = rank_conversations(c.with_workspace(primary) for c in conversations)
        logger.info(
            "Resolved from global store: workspace=%s requested=%d found=%d",
            primary.display_name,
            len(composer_ids),
            len(conversations),
        )
        return resolution

    def resolve_latest(self) -> Resolution:
        """The single most recently active conversation in the global store (T3)."""
        resolution = Resolution()
        records = self._load_global(None, resolution.skipped)
        conversations, record_skipped = normalize_records(records, SourceTier.GLOBAL_LATEST, self.max_workers)
        resolution.skipped.extend(record_skipped)

        ranked = rank_conversations(c for c in conversations if c.messages)
        if ranked:
            resolution.tier = SourceTier.GLOBAL_LATEST
            resolution.conversations = ranked[:1]
        logger.debug("Scanned global store: records=%d usable=%d", len(records), len(ranked))
        return resolution

    def hydrate(self, conversation: NormalizedConversation) -> NormalizedConversation:
        """Replace a metadata-only conversation with its full global record.

        Workspace identity and name of the input are kept. The input is
        returned as-is when the global store has no messages for it.
        """
        if conversation.messages:
            return conversation

        with self._global_store() as store:
            key = composer_data_key(conversation.id)
            payload = store.get_blob(key)
            if payload is None:
                return conversation
            payload = expand_bubbles(store, key, payload)

        full = normalize_record(payload, SourceTier.GLOBAL_FALLBACK)
        if isinstance(full, Unusable) or not full.messages:
            logger.debug("Global record not usable: composer=%s", conversation.id)
            return conversation
        return replace(
            full,
            id=conversation.id,
            name=conversation.name or full.name,
            workspace_name=conversation.workspace_name,
            workspace_path=conversation.workspace_path,
        )

    def extract_all(self) -> Resolution:
        """Every global conversation with messages, tagged with its workspace.

        Workspace identity comes from a reverse index over all workspace
        registries; conversations no registry lists stay workspace-less.
        """
        descriptors, skipped = self.workspaces()
        resolution = Resolution(skipped=skipped)
        index, index_skipped = self.build_composer_index(descriptors)
        resolution.skipped.extend(index_skipped)

        records = self._load_global(None, resolution.skipped)
        conversations, record_skipped = normalize_records(records, SourceTier.GLOBAL_SCAN, self.max_workers)
        resolution.skipped.extend(record_skipped)

        tagged: list[NormalizedConversation] = []
        for conversation in conversations:
            if not conversation.messages:
                continue
            owner = index.owner_of(conversation.id)
            tagged.append(conversation.with_workspace(owner) if owner else conversation)

        if tagged:
            resolution.tier = SourceTier.GLOBAL_SCAN
        resolution.conversations = rank_conversations(tagged)
        logger.info("Extracted global conversations: count=%d skipped=%d", len(tagged), len(resolution.skipped))
        return resolution
