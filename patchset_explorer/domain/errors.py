from __future__ import annotations


class PatchsetError(Exception):
    """Root of every error raised by the explorer."""
    pass


class SessionInitError(PatchsetError):
    """
    Bringing the dataset session up failed. Fatal and persistent: the
    session stays failed and later `open()` calls re-raise this error.
    """

    def __init__(self, message: str, step: str | None = None) -> None:
        self.step = step
        super().__init__(message)


class DatasetLoadError(SessionInitError):
    """A dataset file could not be fetched (non-success status)."""

    def __init__(self, file_name: str, status: int) -> None:
        self.file_name = file_name
        self.status    = status
        super().__init__(f"Failed to fetch {file_name}: {status}", step="fetch")


class SessionNotReadyError(PatchsetError):
    """An operation needs a ready session but none is open."""
    pass


class QueryExecutionError(PatchsetError):
    """One query failed. Reported per operation, never retried by the core."""

    def __init__(self, message: str, operation: str | None = None) -> None:
        self.operation = operation
        super().__init__(message)


class RowSchemaError(QueryExecutionError):
    """A result row did not match the record schema of its table."""
    pass


class InvalidCriteriaError(PatchsetError, ValueError):
    """A filter criteria field is malformed."""
    pass
