"""Shared error classes for the tournament ingestion pipeline."""

from __future__ import annotations


class IngestError(RuntimeError):
    """Base exception raised by ingestion components."""

    def __init__(self, message: str, code: str = "INGEST_ERROR") -> None:
        super().__init__(message)
        self.code = code


class CrawlPageError(IngestError):
    """Raised when a single listing page cannot be fetched or parsed."""

    def __init__(self, message: str, code: str = "CRAWL_PAGE_ERROR") -> None:
        super().__init__(message, code=code)


class NormalizationError(IngestError):
    """Raised when a raw listing cannot be mapped to a tournament draft."""


class StorePersistenceError(IngestError):
    """Raised when a single tournament write fails."""

    def __init__(self, message: str, code: str = "STORE_WRITE_FAILED") -> None:
        super().__init__(message, code=code)


class StoreConflictError(StorePersistenceError):
    """Raised when a conditional write loses a race with a concurrent writer."""

    def __init__(self, message: str = "Concurrent modification detected.") -> None:
        super().__init__(message, code="STORE_CONFLICT")


class StoreUnavailableError(IngestError):
    """Raised when the store cannot be reached at all."""

    def __init__(self, message: str = "Tournament store is unreachable.") -> None:
        super().__init__(message, code="STORE_UNAVAILABLE")


class RunFatalError(IngestError):
    """Raised when a run cannot continue and must be marked failed."""

    def __init__(self, message: str, code: str = "RUN_FATAL") -> None:
        super().__init__(message, code=code)
