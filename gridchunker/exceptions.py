"""Exceptions for the OLAP grid chunking pipeline."""

from __future__ import annotations


class ProcessingError(Exception):
    """Base exception for fatal pipeline errors."""

    pass


class GridValidationError(ProcessingError):
    """Raised when the raw grid is malformed (too few rows/columns, empty).

    Carries every validation error so the caller can report them at once.
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__(f"Data validation failed: {', '.join(self.errors)}")


class StructureError(ProcessingError):
    """Raised when no header/data boundary can be detected in the grid."""

    pass


class EmptyQueryError(ProcessingError):
    """Raised when the grid yields neither column nor row dimensions."""

    pass


class AssemblyError(ProcessingError):
    """Raised when too few chunks succeeded to assemble a response."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        self.errors = list(errors) if errors else [message]
        super().__init__(message)


class OperationInProgressError(ProcessingError):
    """Raised when an operation is started while another one is active."""

    pass


class OperationCancelledError(ProcessingError):
    """Raised when an operation is cancelled before any chunk was dispatched."""

    pass


class ChunkTransportError(Exception):
    """Raised by a transport when one chunk submission failed.

    Never aborts the operation: the orchestrator records it as an error
    ChunkResponse and moves on to the next chunk.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class HostWriteError(Exception):
    """Raised by a range writer when one batch write failed."""

    pass


class IntegrityWarning(UserWarning):
    """Advisory: cell or column counts do not add up after merging."""

    pass
