"""Custom exception hierarchy for gaia-search.

Exception tree:
    GaiaSearchError
    +-- MalformedInput      (ingestion bundle missing required identifiers)
    +-- UnknownVocabulary   (race/structure name outside the enumeration)
    +-- DuplicateError      (table already stored)
    +-- StorageUnavailable  (transient backing-store failure)
"""

from typing import Any, Optional


class GaiaSearchError(Exception):
    """Base exception for all gaia-search errors."""

    def __init__(self, message: str, *, table_id: Optional[int] = None):
        self.table_id = table_id
        super().__init__(message)


class MalformedInput(GaiaSearchError):
    """An ingestion bundle is missing required fields or is inconsistent.

    Fatal to that ingestion call only. Nothing is written.
    """

    pass


class UnknownVocabulary(GaiaSearchError):
    """A search request names a race or structure that does not exist.

    The query is rejected rather than silently dropping the clause.
    """

    def __init__(self, message: str, *, kind: str, value: Any):
        self.kind = kind
        self.value = value
        super().__init__(message)


class DuplicateError(GaiaSearchError):
    """The table ID is already stored.

    Recoverable: ``existing`` carries the stored record so callers can
    treat this as "already have this game" and move on.
    """

    def __init__(self, message: str, *, table_id: int, existing: Any = None):
        self.existing = existing
        super().__init__(message, table_id=table_id)


class StorageUnavailable(GaiaSearchError):
    """Transient backing-store failure (locked database, I/O error).

    Propagated to the caller for retry. The core never retries itself.
    """

    pass
