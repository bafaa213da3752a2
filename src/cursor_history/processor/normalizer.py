"""Normalization of raw store values into conversations.

`normalize_record` is a pure function of its input bytes: it classifies the
decoded record, hands it to the parser registered for that generation, and
returns either a NormalizedConversation or an Unusable marker. Callers skip
Unusable results and carry on.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Iterable

from cursor_history.logging import get_logger
from cursor_history.models import (
    NormalizedConversation,
    RawRecord,
    Skipped,
    SourceTier,
    Unusable,
)
from cursor_history.processor.parsers import (
    ParserRegistry,
    RecordKind,
    RegistryParser,
    classify_record,
    content_hash,
    decode_payload,
)

logger = get_logger("normalizer")


def _fallback_id(raw: bytes | str) -> str:
    return f"record-{content_hash(raw)}"


def normalize_payload(
    data: Any,
    fallback_id: str,
    tier: SourceTier = SourceTier.DIRECT,
) -> NormalizedConversation | Unusable:
    """Normalize an already-decoded record.

    Args:
        data: Decoded JSON value of unknown generation
        fallback_id: Conversation id when the record has none
        tier: Lookup tier recorded on the result
    """
    kind = classify_record(data)
    if kind is RecordKind.UNUSABLE:
        return Unusable("record matches no known schema")

    parser = ParserRegistry.get(kind)
    if parser is None:
        return Unusable(f"no parser registered for {kind.value}")
    try:
        return parser.parse(data, fallback_id, tier)
    except RecursionError as e:
        return Unusable(f"{kind.value} record nests too deeply: {e}")


def normalize_record(
    raw: bytes | str,
    tier: SourceTier = SourceTier.DIRECT,
) -> NormalizedConversation | Unusable:
    """Normalize one raw record.

    Args:
        raw: Record bytes (UTF-8 JSON) as read from a store
        tier: Lookup tier recorded on the result

    Returns:
        NormalizedConversation, or Unusable if the bytes are not JSON or the
        record matches no known schema generation
    """
    try:
        data = decode_payload(raw)
    except (ValueError, RecursionError) as e:
        return Unusable(f"record is not valid JSON: {e}")
    return normalize_payload(data, _fallback_id(raw), tier)


def normalize_registry(
    raw: bytes | str,
    tier: SourceTier = SourceTier.DIRECT,
) -> list[NormalizedConversation] | Unusable:
    """Normalize a composer registry document into metadata-only conversations."""
    try:
        data = decode_payload(raw)
    except (ValueError, RecursionError) as e:
        return Unusable(f"registry is not valid JSON: {e}")
    if classify_record(data) is not RecordKind.REGISTRY or "allComposers" not in data:
        return Unusable("value is not a composer registry")
    return RegistryParser().parse_registry(data, tier)


def _normalize_raw(record: RawRecord, tier: SourceTier) -> NormalizedConversation | Unusable:
    return normalize_record(record.payload, tier)


def normalize_records(
    records: Iterable[RawRecord],
    tier: SourceTier,
    max_workers: int = 1,
) -> tuple[list[NormalizedConversation], list[Skipped]]:
    """Normalize a batch of records, keeping every usable one.

    Records are independent, so they may be normalized on a thread pool;
    the order of the returned conversations is not meaningful.

    Returns:
        Tuple of (conversations, skipped records with reasons)
    """
    records = list(records)
    if max_workers > 1 and len(records) > 1:
        with ThreadPoolExecutor(max_workers=min(max_workers, len(records))) as executor:
            results = list(executor.map(lambda r: _normalize_raw(r, tier), records))
    else:
        results = [_normalize_raw(record, tier) for record in records]

    conversations: list[NormalizedConversation] = []
    skipped: list[Skipped] = []
    for record, result in zip(records, results):
        if isinstance(result, Unusable):
            logger.debug("Skipping record: store=%s key=%s reason=%s", record.store, record.key, result.reason)
            skipped.append(Skipped(source=f"{record.store}:{record.key}", reason=result.reason))
        else:
            conversations.append(result)

    return conversations, skipped
