"""Cancellation tokens and progress reporting for long-running operations."""

import threading
from typing import Callable, Optional

from lingomirror.core.errors import OperationCancelled
from lingomirror.infrastructure.logger import get_logger

ProgressCallback = Callable[[float], None]
CancelToken = Optional[threading.Event]


def is_cancelled(cancel: CancelToken) -> bool:
    """True if a token is set."""
    return cancel is not None and cancel.is_set()


def check_cancelled(cancel: CancelToken, message: str = "Operation cancelled") -> None:
    """Raise OperationCancelled if the token is set."""
    if is_cancelled(cancel):
        raise OperationCancelled(message)


def report_progress(progress: Optional[ProgressCallback], value: float) -> None:
    """Invoke a progress callback, clamped to 0-100.

    Callback failures are logged and never propagate.
    """
    if progress is None:
        return
    try:
        progress(max(0.0, min(100.0, value)))
    except Exception as e:
        get_logger().debug("Progress callback failed", error=str(e))


def scaled(progress: Optional[ProgressCallback], start: float, span: float) -> Optional[ProgressCallback]:
    """Map a child's 0-100 progress onto ``[start, start + span]`` of the parent."""
    if progress is None:
        return None

    def child(value: float) -> None:
        report_progress(progress, start + span * value / 100.0)

    return child
