"""Failure categories for extraction.

These are carried as values (on store handles and in skipped-result lists)
rather than raised across layers. A failed store, descriptor or record only
ever removes its own contribution from a result.
"""


class ExtractionError(Exception):
    """Base class for every recoverable extraction failure."""

    category = "extraction_error"

    def __init__(self, source: str, detail: str = "") -> None:
        self.source = source
        self.detail = detail
        message = f"{self.category}: {source}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class MissingStore(ExtractionError):
    """Store file does not exist."""

    category = "missing_store"


class StoreOpenFailure(ExtractionError):
    """Store file exists but could not be opened or queried."""

    category = "store_open_failure"


class MalformedDescriptor(ExtractionError):
    """Workspace descriptor is missing, unreadable or has no folder."""

    category = "malformed_descriptor"


class MalformedRecord(ExtractionError):
    """Record is not valid JSON or matches no known schema."""

    category = "malformed_record"
