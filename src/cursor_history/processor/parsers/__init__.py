"""Parsers for the schema generations of Cursor conversation records."""

from .base import Parser, ParserRegistry, RecordKind, classify_record, content_hash, decode_payload
from .legacy import LegacyParser
from .registry import RegistryParser, registry_composer_ids
from .rich_text import RichTextParser

__all__ = [
    "LegacyParser",
    "Parser",
    "ParserRegistry",
    "RecordKind",
    "RegistryParser",
    "RichTextParser",
    "classify_record",
    "content_hash",
    "decode_payload",
    "registry_composer_ids",
]

# Register parsers
ParserRegistry.register(LegacyParser())
ParserRegistry.register(RegistryParser())
ParserRegistry.register(RichTextParser())
