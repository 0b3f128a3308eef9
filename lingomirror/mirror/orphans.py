"""Orphan mirror reconciliation.

A mirror becomes an orphan when the host state it depends on disappears:
- source deleted: the source library is gone; the mirror library (if any),
  the target files and the record are removed
- mirror deleted: the mirror library was removed on the host; the files and
  the record are removed, the source is left alone
- ghost: creation never finished (PENDING or ERROR, no mirror library) and
  the record is older than the ghost threshold

The reconciler never raises for a single mirror; problems are collected in
the returned report.
"""

from datetime import timedelta
from typing import Optional, Set

from lingomirror.core.errors import LingoMirrorError, NotFoundError
from lingomirror.core.progress import CancelToken, is_cancelled
from lingomirror.host.interfaces import LibraryDirectory
from lingomirror.infrastructure.log_entities import log_mirror
from lingomirror.infrastructure.logger import Logger, get_logger
from lingomirror.mirror.engine import MirrorEngine
from lingomirror.mirror.results import OrphanCleanupResult
from lingomirror.store.models import Mirror, SyncStatus, utcnow
from lingomirror.store.repository import ConfigurationStore

REASON_SOURCE_DELETED = "source deleted"
REASON_MIRROR_DELETED = "mirror deleted"
REASON_GHOST = "ghost"


class OrphanReconciler:
    """Finds and removes mirrors whose host libraries vanished."""

    def __init__(
        self,
        store: ConfigurationStore,
        engine: MirrorEngine,
        libraries: LibraryDirectory,
        logger: Optional[Logger] = None,
        ghost_threshold_minutes: Optional[float] = None,
    ):
        """Initialize the reconciler.

        Args:
            store: Configuration store
            engine: Engine used to delete mirrors under their locks
            libraries: Host library directory
            logger: Optional logger
            ghost_threshold_minutes: Override for the stored ghost threshold
        """
        self.store = store
        self.engine = engine
        self.libraries = libraries
        self.logger = logger or get_logger()
        self.ghost_threshold_minutes = ghost_threshold_minutes

    def _ghost_threshold(self) -> timedelta:
        minutes = self.ghost_threshold_minutes
        if minutes is None:
            minutes = self.store.get_settings().ghost_threshold_minutes
        return timedelta(minutes=minutes)

    def _is_ghost(self, mirror: Mirror, threshold: timedelta) -> bool:
        if mirror.target_library_id or mirror.status not in (SyncStatus.PENDING, SyncStatus.ERROR):
            return False
        stamps = [t for t in (mirror.created_at, mirror.last_synced_at) if t is not None]
        if not stamps:
            return True
        return utcnow() - max(stamps) > threshold

    def classify(self, mirror: Mirror, library_ids: Set[str], threshold: timedelta) -> Optional[str]:
        """Return the orphan reason for a mirror, or None if it is healthy."""
        if mirror.source_library_id not in library_ids:
            return REASON_SOURCE_DELETED
        if mirror.target_library_id and mirror.target_library_id not in library_ids:
            return REASON_MIRROR_DELETED
        if self._is_ghost(mirror, threshold):
            return REASON_GHOST
        return None

    def cleanup(self, cancel: CancelToken = None) -> OrphanCleanupResult:
        """Remove every orphaned mirror.

        Args:
            cancel: Optional cancellation token, checked between mirrors

        Returns:
            OrphanCleanupResult
        """
        result = OrphanCleanupResult()
        library_ids = {folder.id for folder in self.libraries.get_virtual_folders()}
        threshold = self._ghost_threshold()

        for mirror, _ in self.store.get_all_mirrors():
            if is_cancelled(cancel):
                self.logger.info("Orphan cleanup cancelled", cleaned=result.total_cleaned)
                break

            reason = self.classify(mirror, library_ids, threshold)
            if reason is None:
                continue

            self.logger.warning("Orphaned mirror found", mirror=log_mirror(mirror), reason=reason)
            delete_library = reason == REASON_SOURCE_DELETED
            try:
                deleted = self.engine.delete_mirror(
                    mirror.id, delete_library=delete_library, delete_files=True, force=True
                )
            except NotFoundError:
                self.logger.debug("Orphaned mirror already removed", mirror=log_mirror(mirror))
                continue
            except LingoMirrorError as e:
                result.failed_cleanups.append(f"{mirror.target_library_name}: {e.message}")
                self.logger.error("Failed to clean up orphaned mirror", mirror=log_mirror(mirror), error=e.message)
                continue
            except Exception as e:
                result.failed_cleanups.append(f"{mirror.target_library_name}: {e}")
                self.logger.exception("Failed to clean up orphaned mirror", e, mirror=log_mirror(mirror))
                continue

            if deleted.has_errors:
                result.failed_cleanups.append(f"{mirror.target_library_name}: {deleted.error_summary}")
            if not deleted.removed_from_config:
                continue

            result.cleaned_up_mirrors.append(f"{mirror.target_library_name} ({reason})")
            self.logger.info("Removed orphaned mirror", mirror=log_mirror(mirror), reason=reason)

            if reason == REASON_MIRROR_DELETED and self._source_has_no_mirrors(mirror.source_library_id):
                result.sources_without_mirrors.append(mirror.source_library_id)
                self.logger.info(
                    "Source library has no more mirrors",
                    library=f"{mirror.source_library_name} ({mirror.source_library_id})",
                )

        return result

    def _source_has_no_mirrors(self, source_library_id: str) -> bool:
        return not any(m.source_library_id == source_library_id for m, _ in self.store.get_all_mirrors())
