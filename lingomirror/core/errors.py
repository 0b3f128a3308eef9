"""
LingoMirror Core: Exception hierarchy.

Every exception carries an ErrorCode so callers (the CLI, scheduled tasks)
can map failures to exit codes and log lines without string matching.
"""
from typing import Iterable, List, Optional

from lingomirror.core.constants import ErrorCode


class LingoMirrorError(Exception):
    """Base exception for LingoMirror errors."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.INTERNAL_ERROR):
        """Initialize LingoMirrorError.

        Args:
            message: Error message
            error_code: Associated error code
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class NotFoundError(LingoMirrorError):
    """A mirror, alternative, library or user vanished or never existed."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.NOT_FOUND)


class ConflictError(LingoMirrorError):
    """A concurrent modification invalidated the caller's view."""

    def __init__(self, message: str, conflicting_ids: Optional[Iterable[str]] = None):
        super().__init__(message, ErrorCode.CONFLICT)
        self.conflicting_ids: List[str] = list(conflicting_ids or [])


class FatalOperationError(LingoMirrorError):
    """An operation failed and the persisted state was left untouched or rolled back."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.INTERNAL_ERROR):
        super().__init__(message, error_code)


class OperationCancelled(LingoMirrorError):
    """A cancellation token fired while a bulk operation was running."""

    def __init__(self, message: str = "Operation cancelled"):
        super().__init__(message, ErrorCode.TIMEOUT)
