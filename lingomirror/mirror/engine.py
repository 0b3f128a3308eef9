#!/usr/bin/env python3
"""Mirror synchronization engine.

Maintains hardlinked shadow trees of source libraries:
- Create: link every qualifying source file into the target, register the
  mirror library with the host, roll back on failure
- Sync: incremental diff by (size, mtime, inode), relink changed files,
  delete files gone from the source and prune empty directories
- Delete: remove the host library and/or the target tree, then the
  configuration record
- Validation gate for new mirrors

Each operation holds the mirror's lock for its whole duration. Status
transitions (PENDING -> SYNCING -> SYNCED | ERROR) are written through the
configuration store's update primitives.

Example:
    >>> engine = MirrorEngine(store, host)
    >>> engine.create_mirror(alternative.id, mirror.id)
    1532
    >>> engine.sync_mirror(mirror.id).added
    0
"""

import os
from pathlib import Path
from typing import List, Optional, Tuple

from lingomirror.core.errors import FatalOperationError, LingoMirrorError, NotFoundError, OperationCancelled
from lingomirror.core.file_ops import (
    FileOperationError,
    are_on_same_filesystem,
    cleanup_empty_directories,
    create_hardlink,
    is_directory_empty,
    is_path_inside,
    remove_tree,
)
from lingomirror.core.progress import (
    CancelToken,
    ProgressCallback,
    check_cancelled,
    is_cancelled,
    report_progress,
    scaled,
)
from lingomirror.host.interfaces import LibraryDirectory, VirtualFolder
from lingomirror.infrastructure.log_entities import log_alternative, log_mirror
from lingomirror.infrastructure.logger import Logger, get_logger
from lingomirror.mirror.locks import LockRegistry
from lingomirror.mirror.results import (
    DeleteMirrorResult,
    LibraryInfo,
    SyncAllResult,
    SyncAllStatus,
    SyncMirrorResult,
)
from lingomirror.mirror.scanner import scan_sources, scan_target
from lingomirror.rules.classifier import FileClassifier
from lingomirror.store.models import Alternative, Mirror, SyncStatus, utcnow
from lingomirror.store.persistence import PersistenceError
from lingomirror.store.repository import ConfigurationStore


class _CreateState:
    """What a create run changed, for rollback."""

    def __init__(self, target: Path):
        self.target = target
        self.created_directory = False
        self.preexisting_empty = False
        self.placed_files: List[Path] = []
        self.registered_library: Optional[VirtualFolder] = None


class MirrorEngine:
    """Creates, syncs and deletes mirrors."""

    def __init__(
        self,
        store: ConfigurationStore,
        libraries: LibraryDirectory,
        logger: Optional[Logger] = None,
        locks: Optional[LockRegistry] = None,
        probe_hardlinks: bool = False,
    ):
        """Initialize the engine.

        Args:
            store: Configuration store
            libraries: Host library directory
            logger: Optional logger
            locks: Lock registry (shared with anything else touching mirrors)
            probe_hardlinks: Verify same-volume checks with a test hardlink
        """
        self.store = store
        self.libraries = libraries
        self.logger = logger or get_logger()
        self.locks = locks or LockRegistry()
        self.probe_hardlinks = probe_hardlinks

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _classifier(self) -> FileClassifier:
        settings = self.store.get_settings()
        return FileClassifier.from_lists(
            settings.excluded_extensions,
            settings.excluded_directories,
            settings.included_directories,
        )

    def _source_paths(self, mirror: Mirror) -> Tuple[VirtualFolder, List[str]]:
        source = self.libraries.get_virtual_folder(mirror.source_library_id)
        if source is None:
            raise NotFoundError(f"Source library {mirror.source_library_name} ({mirror.source_library_id}) not found")
        if not source.locations:
            raise FatalOperationError(f"Source library {source.name} has no paths")
        return source, list(source.locations)

    def _set_status(self, mirror_id: str, status: SyncStatus, error: Optional[str] = None, **fields) -> None:
        def update(m: Mirror) -> None:
            m.status = status
            m.last_error = error
            for key, value in fields.items():
                setattr(m, key, value)

        self.store.update_mirror(mirror_id, update)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_mirror(self, alternative_id: str, mirror_id: str, cancel: CancelToken = None) -> int:
        """Build a mirror's tree and register its host library.

        Args:
            alternative_id: Owning alternative
            mirror_id: Mirror to create (already in the store)
            cancel: Optional cancellation token

        Returns:
            Number of files linked

        Raises:
            NotFoundError: If the alternative, mirror or source library is gone
            FatalOperationError: If the tree or library could not be built
            OperationCancelled: If cancelled; the partial mirror is rolled back
        """
        with self.locks.hold(mirror_id):
            alternative = self.store.get_alternative(alternative_id)
            if alternative is None:
                raise NotFoundError(f"Alternative {alternative_id} not found")
            mirror = alternative.find_mirror(mirror_id)
            if mirror is None:
                raise NotFoundError(f"Mirror {mirror_id} not found in alternative {alternative.name}")

            with self.logger.add_context(mirror=log_mirror(mirror)):
                self.logger.info("Creating mirror", alternative=log_alternative(alternative))
                self._set_status(mirror_id, SyncStatus.SYNCING)
                state = _CreateState(Path(mirror.target_path))

                try:
                    file_count = self._build_mirror(alternative, mirror, state, cancel)
                except Exception as e:
                    self.logger.error("Mirror creation failed", error=str(e))
                    library_removed = self._rollback(state)
                    fields = {"target_library_id": None} if library_removed else {}
                    try:
                        self._set_status(mirror_id, SyncStatus.ERROR, str(e), **fields)
                    except PersistenceError as save_error:
                        self.logger.error("Failed to record mirror error status", error=save_error.message)
                    raise

                self._set_status(
                    mirror_id,
                    SyncStatus.SYNCED,
                    last_synced_at=utcnow(),
                    last_sync_file_count=file_count,
                )
                self.logger.info("Mirror created", files=file_count)
                return file_count

    def _build_mirror(self, alternative: Alternative, mirror: Mirror, state: _CreateState, cancel: CancelToken) -> int:
        source, source_paths = self._source_paths(mirror)

        for path in source_paths:
            if not are_on_same_filesystem(path, mirror.target_path, probe=self.probe_hardlinks):
                raise FatalOperationError(
                    f"Source path '{path}' and target '{mirror.target_path}' are on different "
                    "filesystems. Hardlinks require the same filesystem."
                )

        target = state.target
        if target.exists():
            if not target.is_dir():
                raise FatalOperationError(f"Target path exists and is not a directory: {target}")
            state.preexisting_empty = is_directory_empty(target)
        else:
            try:
                target.mkdir(parents=True)
            except OSError as e:
                raise FatalOperationError(f"Cannot create target directory {target}: {e}") from e
            state.created_directory = True

        file_count = 0
        for relative, scanned in scan_sources(source_paths, self._classifier(), self.logger).items():
            check_cancelled(cancel, "Mirror creation cancelled")
            link_path = target / relative
            existed = link_path.exists()
            if create_hardlink(scanned.path, link_path, self.logger):
                file_count += 1
                if not existed:
                    state.placed_files.append(link_path)

        if mirror.target_library_id is None:
            self._register_library(alternative, mirror, source, state)

        return file_count

    def _register_library(
        self, alternative: Alternative, mirror: Mirror, source: VirtualFolder, state: _CreateState
    ) -> None:
        options = source.options.for_mirror(alternative.metadata_language, alternative.metadata_country)
        try:
            folder = self.libraries.add_virtual_folder(
                mirror.target_library_name, mirror.collection_type or source.collection_type, options
            )
        except LingoMirrorError:
            raise
        except Exception as e:
            raise FatalOperationError(f"Host refused to register library {mirror.target_library_name}: {e}") from e
        state.registered_library = folder

        try:
            self.libraries.add_media_path(folder.name, mirror.target_path)
        except Exception as e:
            raise FatalOperationError(f"Cannot add media path to {folder.name}: {e}") from e

        self.store.update_mirror(mirror.id, lambda m: setattr(m, "target_library_id", folder.id))
        self.logger.info("Registered mirror library", library=folder.name, library_id=folder.id)

        try:
            self.libraries.queue_refresh(folder.id)
        except Exception as e:
            self.logger.warning("Library refresh could not be queued, a manual scan may be needed", error=str(e))

    def _rollback(self, state: _CreateState) -> bool:
        """Undo a failed create. Returns True if a registered library was removed."""
        try:
            if state.created_directory:
                remove_tree(state.target)
                self.logger.info("Rolled back target directory", path=str(state.target))
            elif state.preexisting_empty:
                for placed in reversed(state.placed_files):
                    try:
                        placed.unlink()
                    except FileNotFoundError:
                        pass
                    cleanup_empty_directories(placed.parent, state.target)
                self.logger.info("Rolled back placed files", files=len(state.placed_files))
        except (OSError, FileOperationError) as e:
            self.logger.warning("Rollback of mirror files failed", error=str(e))

        if state.registered_library is None:
            return False
        try:
            self.libraries.remove_virtual_folder(state.registered_library.name)
            self.logger.info("Rolled back mirror library", library=state.registered_library.name)
            return True
        except Exception as e:
            self.logger.warning("Rollback of mirror library failed", error=str(e))
            return False

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    def sync_mirror(
        self, mirror_id: str, progress: Optional[ProgressCallback] = None, cancel: CancelToken = None
    ) -> SyncMirrorResult:
        """Bring a mirror's tree in line with its source.

        Args:
            mirror_id: Mirror to sync
            progress: Optional 0-100 progress callback
            cancel: Optional cancellation token

        Returns:
            SyncMirrorResult with per-file counts

        Raises:
            NotFoundError: If the mirror or its source library is gone
            OperationCancelled: If cancelled between files
        """
        with self.locks.hold(mirror_id):
            mirror = self.store.get_mirror(mirror_id)
            if mirror is None:
                raise NotFoundError(f"Mirror {mirror_id} not found")

            with self.logger.add_context(mirror=log_mirror(mirror)):
                self.logger.info("Syncing mirror")
                self._set_status(mirror_id, SyncStatus.SYNCING, mirror.last_error)
                try:
                    result = self._sync_files(mirror, progress, cancel)
                except OperationCancelled:
                    self._set_status(mirror_id, SyncStatus.ERROR, "Sync cancelled")
                    self.logger.warning("Mirror sync cancelled")
                    raise
                except Exception as e:
                    self._set_status(mirror_id, SyncStatus.ERROR, str(e))
                    self.logger.error("Mirror sync failed", error=str(e))
                    raise

                self._set_status(
                    mirror_id,
                    SyncStatus.SYNCED,
                    last_synced_at=utcnow(),
                    last_sync_file_count=result.total_files,
                )
                self.logger.info(
                    "Mirror sync completed", added=result.added, removed=result.removed, failed=result.failed
                )
                return result

    def _sync_files(
        self, mirror: Mirror, progress: Optional[ProgressCallback], cancel: CancelToken
    ) -> SyncMirrorResult:
        _, source_paths = self._source_paths(mirror)
        target = Path(mirror.target_path)
        target.mkdir(parents=True, exist_ok=True)

        classifier = self._classifier()
        source_files = scan_sources(source_paths, classifier, self.logger)
        target_files = scan_target(str(target), classifier, self.logger)

        to_add: List[str] = []
        to_remove: List[str] = []
        for relative, scanned in source_files.items():
            existing = target_files.get(relative)
            if existing is None:
                to_add.append(relative)
            elif existing.signature != scanned.signature:
                self.logger.debug("File changed", path=relative)
                to_remove.append(relative)
                to_add.append(relative)
        for relative in target_files:
            if relative not in source_files:
                to_remove.append(relative)

        result = SyncMirrorResult(total_files=len(source_files))
        total = len(to_add) + len(to_remove)
        done = 0

        for relative in to_remove:
            check_cancelled(cancel, "Sync cancelled")
            target_file = target / relative
            try:
                target_file.unlink(missing_ok=True)
                cleanup_empty_directories(target_file.parent, target)
                result.removed += 1
            except OSError as e:
                self.logger.warning("Failed to delete file", path=str(target_file), error=str(e))
                result.failed += 1
            done += 1
            report_progress(progress, done / total * 100)

        for relative in to_add:
            check_cancelled(cancel, "Sync cancelled")
            if create_hardlink(source_files[relative].path, target / relative, self.logger):
                result.added += 1
            else:
                result.failed += 1
            done += 1
            report_progress(progress, done / total * 100)

        if total == 0:
            report_progress(progress, 100.0)
        return result

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_mirror(
        self,
        mirror_id: str,
        delete_library: bool = True,
        delete_files: bool = True,
        force: bool = False,
    ) -> DeleteMirrorResult:
        """Delete a mirror's host library, files and configuration record.

        Without ``force`` any failure leaves the record in place so the
        delete can be retried. With ``force`` the record is removed and
        failures are only reported.

        Args:
            mirror_id: Mirror to delete
            delete_library: Remove the host library registration
            delete_files: Remove the target directory tree
            force: Remove the record even if a step failed

        Returns:
            DeleteMirrorResult

        Raises:
            NotFoundError: If the mirror does not exist
        """
        with self.locks.hold(mirror_id):
            mirror = self.store.get_mirror(mirror_id)
            if mirror is None:
                raise NotFoundError(f"Mirror {mirror_id} not found")

            result = DeleteMirrorResult()
            with self.logger.add_context(mirror=log_mirror(mirror)):
                self.logger.info("Deleting mirror", delete_library=delete_library, delete_files=delete_files)

                if delete_library and mirror.target_library_id:
                    folder = self.libraries.get_virtual_folder(mirror.target_library_id)
                    if folder is not None:
                        try:
                            self.libraries.remove_virtual_folder(folder.name)
                            self.logger.info("Removed mirror library", library=folder.name)
                        except Exception as e:
                            result.library_deletion_error = str(e)
                            self.logger.warning("Failed to remove mirror library", error=str(e))

                if delete_files and os.path.isdir(mirror.target_path):
                    try:
                        remove_tree(mirror.target_path)
                        self.logger.info("Deleted mirror directory", path=mirror.target_path)
                    except FileOperationError as e:
                        result.file_deletion_error = e.message
                        self.logger.warning("Failed to delete mirror directory", error=e.message)

                if result.has_errors and not force:
                    self.logger.warning("Mirror delete aborted, configuration kept for retry")
                    return result

                result.removed_from_config = self.store.remove_mirror(mirror_id)

        self.locks.evict(mirror_id)
        return result

    # ------------------------------------------------------------------
    # Bulk
    # ------------------------------------------------------------------

    def sync_all_mirrors(
        self, alternative_id: str, progress: Optional[ProgressCallback] = None, cancel: CancelToken = None
    ) -> SyncAllResult:
        """Sync every mirror of an alternative in order.

        One mirror failing does not stop the others. Cancellation is honoured
        between mirrors; the mirror in flight finishes its own cleanup first.
        """
        alternative = self.store.get_alternative(alternative_id)
        if alternative is None:
            return SyncAllResult(SyncAllStatus.ALTERNATIVE_NOT_FOUND)

        mirror_ids = [m.id for m in alternative.mirrors]
        result = SyncAllResult(SyncAllStatus.COMPLETED, total_mirrors=len(mirror_ids))
        self.logger.info("Syncing all mirrors", alternative=log_alternative(alternative), mirrors=len(mirror_ids))

        for index, mirror_id in enumerate(mirror_ids):
            if is_cancelled(cancel):
                result.status = SyncAllStatus.CANCELLED
                return result

            child = scaled(progress, index * 100.0 / len(mirror_ids), 100.0 / len(mirror_ids))
            try:
                self.sync_mirror(mirror_id, child, cancel)
                result.mirrors_synced += 1
            except OperationCancelled:
                result.mirrors_failed += 1
                result.status = SyncAllStatus.CANCELLED
                return result
            except NotFoundError as e:
                if self.store.get_mirror(mirror_id) is None:
                    result.total_mirrors -= 1
                    self.logger.debug("Mirror removed during sync-all", mirror=mirror_id)
                    continue
                result.mirrors_failed += 1
                self.logger.error("Failed to sync mirror", mirror=mirror_id, error=e.message)
            except Exception as e:
                result.mirrors_failed += 1
                self.logger.exception("Failed to sync mirror", e, mirror=mirror_id)

        if result.mirrors_failed:
            result.status = SyncAllStatus.COMPLETED_WITH_ERRORS
        report_progress(progress, 100.0)
        return result

    # ------------------------------------------------------------------
    # Validation and inventory
    # ------------------------------------------------------------------

    def validate_mirror_configuration(self, source_library_id: str, target_path: str) -> Tuple[bool, Optional[str]]:
        """Check whether a new mirror of a source into ``target_path`` is acceptable.

        Returns:
            ``(True, None)`` or ``(False, reason)``
        """
        source = self.libraries.get_virtual_folder(source_library_id)
        if source is None:
            return False, "Source library not found"
        if not source.locations:
            return False, "Source library has no paths"

        if not target_path or not target_path.strip():
            return False, "Target path is required"
        if ".." in target_path.replace("\\", "/").split("/"):
            return False, "Target path cannot contain path traversal sequences"
        if not os.path.isabs(target_path):
            return False, "Target path must be absolute"

        for path in source.locations:
            if not are_on_same_filesystem(path, target_path, probe=self.probe_hardlinks):
                return False, (
                    f"Source path '{path}' and target path are on different filesystems. "
                    "Hardlinks require the same filesystem."
                )

        for path in source.locations:
            if is_path_inside(target_path, path):
                return False, "Target path cannot be inside the source library path"

        if os.path.exists(target_path):
            if not os.path.isdir(target_path):
                return False, "Target path exists and is not a directory"
            if not is_directory_empty(target_path):
                return False, "Target directory must be empty"

        return True, None

    def get_libraries(self) -> List[LibraryInfo]:
        """List host libraries, marking the ones that are mirror targets."""
        mirror_owner = {
            m.target_library_id: alt_id for m, alt_id in self.store.get_all_mirrors() if m.target_library_id
        }
        libraries = []
        for folder in self.libraries.get_virtual_folders():
            alternative_id = mirror_owner.get(folder.id)
            libraries.append(
                LibraryInfo(
                    id=folder.id,
                    name=folder.name,
                    collection_type=folder.collection_type,
                    paths=list(folder.locations),
                    preferred_metadata_language=folder.options.preferred_metadata_language,
                    metadata_country_code=folder.options.metadata_country_code,
                    is_mirror=alternative_id is not None,
                    alternative_id=alternative_id,
                )
            )
        return libraries
