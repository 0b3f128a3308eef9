"""Mirror engine: hardlinked shadow trees of source libraries."""

from lingomirror.mirror.engine import MirrorEngine
from lingomirror.mirror.locks import LockRegistry
from lingomirror.mirror.orphans import OrphanReconciler
from lingomirror.mirror.results import (
    DeleteMirrorResult,
    LibraryInfo,
    OrphanCleanupResult,
    SyncAllResult,
    SyncAllStatus,
    SyncMirrorResult,
)

__all__ = [
    "MirrorEngine",
    "LockRegistry",
    "OrphanReconciler",
    "DeleteMirrorResult",
    "LibraryInfo",
    "OrphanCleanupResult",
    "SyncAllResult",
    "SyncAllStatus",
    "SyncMirrorResult",
]
