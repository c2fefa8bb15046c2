"""Exception hierarchy for the ingestion pipeline.

Item-level errors (ValidationError, PersistenceError) are counted and never
stop a source. FetchError stops paging for one source. CleanupError is
recorded in cleanup stats and never aborts the cycle that triggered it.
"""


class IngestionError(Exception):
    """Base class for all pipeline errors."""


class ValidationError(IngestionError):
    """A normalized candidate is missing required fields."""

    def __init__(self, source_name: str | None, source_job_id: str | None, errors: list[str]):
        self.source_name = source_name
        self.source_job_id = source_job_id
        self.errors = errors
        super().__init__(f"[{source_name or 'unknown'}/{source_job_id or 'unknown'}] {', '.join(errors)}")


class FetchError(IngestionError):
    """A source request failed after all retry attempts."""

    def __init__(self, source_name: str, url: str, message: str):
        self.source_name = source_name
        self.url = url
        super().__init__(f"[{source_name}] {url}: {message}")


class PersistenceError(IngestionError):
    """The durable store rejected a single merge."""

    def __init__(self, source_name: str | None, source_job_id: str | None, message: str):
        self.source_name = source_name
        self.source_job_id = source_job_id
        super().__init__(f"[{source_name or 'unknown'}/{source_job_id or 'unknown'}] {message}")


class CleanupError(IngestionError):
    """A cleanup pass failed to identify or delete records."""

    def __init__(self, stage: str, message: str):
        self.stage = stage
        super().__init__(f"{stage} pass failed: {message}")


class RunStateError(IngestionError):
    """Illegal run status transition (only running -> success|failed exists)."""
