"""
Exception types for the METAR ingest pipeline.

Every failure raised by the pipeline derives from MetarPipelineError so callers
(CLI, API) can tell pipeline failures apart from programming errors. Lower-level
causes (httpx, psycopg, OSError) are chained with ``raise ... from``.
"""
from typing import Optional


class MetarPipelineError(RuntimeError):
    """Base class for all pipeline failures."""


class FetchError(MetarPipelineError):
    """Downloading or decompressing the remote feed failed."""


class IngestError(MetarPipelineError):
    """The local CSV file could not be opened or read."""


class HeaderError(MetarPipelineError):
    """A header line did not match its expected pattern."""


class HeaderTruncatedError(HeaderError):
    """Input ended before every header pattern was matched."""


class RecordError(MetarPipelineError):
    """A data line could not be parsed into an observation."""

    def __init__(self, message: str, line: Optional[str] = None) -> None:
        super().__init__(message)
        self.line = line


class StoreError(MetarPipelineError):
    """A database operation failed (transaction begin/commit, write)."""


class WriteError(StoreError):
    """The upsert for a single observation failed."""

    def __init__(self, message: str, line: Optional[str] = None) -> None:
        super().__init__(message)
        self.line = line


class CleanupError(MetarPipelineError):
    """The downloaded file could not be removed after a successful ingest."""
