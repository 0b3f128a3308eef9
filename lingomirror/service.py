#!/usr/bin/env python3
"""Management operations over alternatives and mirrors.

MirrorManager is the caller layer used by the CLI and event handlers. It
validates requests, coordinates the store, the mirror engine and the
access service, and turns partial failures into typed errors:
- create_alternative / delete_alternative
- add_library_mirror / delete_library_mirror
- sync_alternative

Example:
    >>> manager = MirrorManager(store, host, host)
    >>> alt = manager.create_alternative("Portuguese", "pt-BR", "/media/pt")
    >>> mirror = manager.add_library_mirror(alt.id, movies.id)
    >>> mirror.target_path
    '/media/pt/movies'
"""

from typing import List, Optional

from lingomirror.access.applier import LibraryAccessService
from lingomirror.core.errors import ConflictError, FatalOperationError, LingoMirrorError, NotFoundError
from lingomirror.core.naming import NameRenderer
from lingomirror.core.progress import CancelToken, ProgressCallback
from lingomirror.core.validators import (
    ValidationError,
    split_language_code,
    validate_absolute_path,
    validate_alternative_name,
    validate_language_code,
    validate_library_name,
)
from lingomirror.host.interfaces import LibraryDirectory, UserDirectory
from lingomirror.infrastructure.log_entities import log_alternative, log_mirror
from lingomirror.infrastructure.logger import Logger, get_logger
from lingomirror.mirror.engine import MirrorEngine
from lingomirror.mirror.results import DeleteMirrorResult, SyncAllResult, SyncAllStatus
from lingomirror.store.models import Alternative, Mirror
from lingomirror.store.repository import ConfigurationStore, RemoveOutcome


class MirrorManager:
    """Validates and coordinates alternative and mirror management."""

    def __init__(
        self,
        store: ConfigurationStore,
        libraries: LibraryDirectory,
        users: UserDirectory,
        engine: Optional[MirrorEngine] = None,
        access: Optional[LibraryAccessService] = None,
        logger: Optional[Logger] = None,
        target_path_template: Optional[str] = None,
    ):
        """Initialize the manager.

        Args:
            store: Configuration store
            libraries: Host library directory
            users: Host user directory
            engine: Mirror engine (built from the store and host if omitted)
            access: Library access service (built if omitted)
            logger: Optional logger
            target_path_template: Jinja2 template for default target paths
        """
        self.store = store
        self.libraries = libraries
        self.users = users
        self.logger = logger or get_logger()
        self.engine = engine or MirrorEngine(store, libraries, self.logger)
        self.access = access or LibraryAccessService(store, libraries, users, logger=self.logger)
        self.target_path_template = target_path_template

    def _renderer(self) -> NameRenderer:
        return NameRenderer(self.store.get_settings().library_name_template, self.target_path_template)

    def _require_alternative(self, alternative_id: str) -> Alternative:
        alternative = self.store.get_alternative(alternative_id)
        if alternative is None:
            raise NotFoundError(f"Language alternative {alternative_id} not found")
        return alternative

    def _refresh_alternative_users(self, alternative_id: str) -> int:
        """Reapply access for managed users assigned to an alternative."""
        user_ids = [
            u.user_id
            for u in self.store.get_user_languages()
            if u.selected_alternative_id == alternative_id and u.is_plugin_managed
        ]
        for user_id in user_ids:
            try:
                self.access.update_user_library_access(user_id)
            except Exception as e:
                self.logger.warning("Failed to update user library access", user=user_id, error=str(e))
        return len(user_ids)

    def _restore_unmirrored_sources(self, source_library_ids: List[str]) -> None:
        """Grant sources that lost their last mirror back to every managed user."""
        mirrored = {m.source_library_id for m, _ in self.store.get_all_mirrors()}
        sources = [s for s in dict.fromkeys(source_library_ids) if s not in mirrored]
        if not sources:
            return
        for user_config in self.store.get_user_languages():
            if not user_config.is_plugin_managed:
                continue
            try:
                self.access.add_libraries_to_user_access(user_config.user_id, sources)
            except Exception as e:
                self.logger.warning("Failed to restore source libraries", user=user_config.user_id, error=str(e))

    # ------------------------------------------------------------------
    # Alternatives
    # ------------------------------------------------------------------

    def create_alternative(
        self,
        name: str,
        language_code: str,
        destination_base_path: str,
        metadata_language: Optional[str] = None,
        metadata_country: Optional[str] = None,
    ) -> Alternative:
        """Create a language alternative.

        Metadata language and country default to the parts of an ``ll-CC``
        language code.

        Raises:
            ValidationError: If any field is invalid
            ConflictError: If an alternative with the same name exists
            FatalOperationError: If the configuration is unavailable
        """
        validate_alternative_name(name)
        validate_language_code(language_code)
        if not destination_base_path or not destination_base_path.strip():
            raise ValidationError("Destination base path is required")
        validate_absolute_path(destination_base_path)

        language, country = split_language_code(language_code)
        alternative = Alternative(
            name=name.strip(),
            language_code=language_code,
            metadata_language=metadata_language or language,
            metadata_country=metadata_country or country,
            destination_base_path=destination_base_path,
        )

        if not self.store.add_alternative(alternative):
            if not self.store.available:
                raise FatalOperationError("Configuration is unavailable")
            raise ConflictError(f"A language alternative named '{name}' already exists")

        self.logger.info(
            "Created alternative", alternative=log_alternative(alternative), language=language_code
        )
        return alternative

    def delete_alternative(
        self, alternative_id: str, delete_libraries: bool = False, delete_files: bool = False
    ) -> List[str]:
        """Delete an alternative and all of its mirrors.

        Mirrors are deleted one by one without holding the store lock, then
        the alternative is removed only if no mirror was added meanwhile.

        Returns:
            Ids of the deleted mirrors

        Raises:
            NotFoundError: If the alternative does not exist
            FatalOperationError: If some mirrors could not be deleted; the
                alternative is kept with only the failed mirrors
            ConflictError: If mirrors were added during the deletion
        """
        alternative = self._require_alternative(alternative_id)
        mirror_ids = [m.id for m in alternative.mirrors]
        deleted: List[str] = []
        failed: List[str] = []

        for mirror in alternative.mirrors:
            try:
                result = self.engine.delete_mirror(mirror.id, delete_libraries, delete_files, force=False)
            except NotFoundError:
                deleted.append(mirror.id)
                continue
            except Exception as e:
                self.logger.exception("Failed to delete mirror", e, mirror=log_mirror(mirror))
                failed.append(f"{mirror.target_library_name}: {e}")
                continue
            if result.removed_from_config:
                deleted.append(mirror.id)
            else:
                failed.append(f"{mirror.target_library_name}: {result.error_summary}")

        if failed:
            self.logger.warning(
                "Mirrors failed to delete, keeping alternative",
                alternative=log_alternative(alternative),
                failed=len(failed),
                total=len(mirror_ids),
            )
            raise FatalOperationError(
                f"Failed to delete {len(failed)} of {len(mirror_ids)} mirrors "
                f"({len(deleted)} already deleted); retry to delete the rest: " + "; ".join(failed)
            )

        removal = self.store.try_remove_alternative_atomic(alternative_id, mirror_ids)
        if removal.outcome == RemoveOutcome.NEW_MIRRORS_ADDED:
            raise ConflictError(
                "Cannot delete alternative: new mirrors were added during deletion, retry the operation",
                removal.unexpected_mirror_ids,
            )
        if removal.outcome == RemoveOutcome.UNAVAILABLE:
            raise FatalOperationError("Configuration is unavailable")

        self._restore_unmirrored_sources([m.source_library_id for m in alternative.mirrors])
        self.logger.info("Deleted alternative", alternative=log_alternative(alternative), mirrors=len(deleted))
        return deleted

    # ------------------------------------------------------------------
    # Mirrors
    # ------------------------------------------------------------------

    def add_library_mirror(
        self,
        alternative_id: str,
        source_library_id: str,
        target_path: Optional[str] = None,
        target_library_name: Optional[str] = None,
        cancel: CancelToken = None,
    ) -> Mirror:
        """Create a mirror of a source library for an alternative.

        Raises:
            NotFoundError: If the alternative or source library is missing
            ValidationError: If the target is not acceptable or the source
                is itself a mirror
            ConflictError: If the alternative already mirrors this source
            FatalOperationError: If creation failed (the entry is removed)
        """
        alternative = self._require_alternative(alternative_id)
        source = self.libraries.get_virtual_folder(source_library_id)
        if source is None:
            raise NotFoundError(f"Source library {source_library_id} not found")

        renderer = self._renderer()
        if target_path is None:
            target_path = renderer.target_path(
                alternative.destination_base_path, source.name, alternative.name, alternative.language_code
            )
        if target_library_name is None:
            target_library_name = renderer.library_name(source.name, alternative.name, alternative.language_code)
        else:
            validate_library_name(target_library_name)

        is_valid, error = self.engine.validate_mirror_configuration(source_library_id, target_path)
        if not is_valid:
            raise ValidationError(error)

        if any(m.target_library_id == source_library_id for m, _ in self.store.get_all_mirrors()):
            raise ValidationError("Cannot create a mirror of a mirror library, select a source library")

        mirror = Mirror(
            source_library_id=source.id,
            source_library_name=source.name,
            target_path=target_path,
            target_library_name=target_library_name,
            collection_type=source.collection_type,
        )
        if not self.store.add_mirror(alternative_id, mirror):
            raise ConflictError(
                f"Failed to add mirror: the alternative was deleted or a mirror of '{source.name}' already exists"
            )

        try:
            self.engine.create_mirror(alternative_id, mirror.id, cancel)
        except Exception as e:
            self.logger.error("Failed to create mirror", mirror=log_mirror(mirror), error=str(e))
            if self.store.remove_mirror(mirror.id):
                self.logger.info("Removed failed mirror from configuration", mirror=log_mirror(mirror))
            self.engine.locks.evict(mirror.id)
            if isinstance(e, LingoMirrorError):
                raise
            raise FatalOperationError(f"Failed to create mirror {target_library_name}: {e}") from e

        users = self._refresh_alternative_users(alternative_id)
        self.logger.info("Mirror ready", mirror=log_mirror(mirror), users_updated=users)

        created = self.store.get_mirror(mirror.id)
        if created is None:
            raise FatalOperationError(f"Mirror {mirror.id} vanished from configuration after creation")
        return created

    def delete_library_mirror(
        self,
        alternative_id: str,
        source_library_id: str,
        delete_library: bool = False,
        delete_files: bool = False,
        force: bool = False,
    ) -> DeleteMirrorResult:
        """Delete an alternative's mirror of a source library.

        Raises:
            NotFoundError: If the alternative or mirror does not exist
            FatalOperationError: If a step failed and ``force`` is off
        """
        alternative = self._require_alternative(alternative_id)
        mirror = alternative.find_mirror_for_source(source_library_id)
        if mirror is None:
            raise NotFoundError(f"No mirror of library {source_library_id} in {alternative.name}")

        result = self.engine.delete_mirror(mirror.id, delete_library, delete_files, force)
        if not result.removed_from_config:
            raise FatalOperationError(
                f"Failed to delete mirror {mirror.target_library_name}: {result.error_summary}. "
                "Use force to remove it from the configuration anyway."
            )
        if result.has_errors:
            self.logger.warning(
                "Mirror removed with errors", mirror=log_mirror(mirror), errors=result.error_summary
            )

        self._restore_unmirrored_sources([source_library_id])
        users = self._refresh_alternative_users(alternative_id)
        self.logger.info("Deleted mirror", mirror=log_mirror(mirror), users_updated=users)
        return result

    def sync_alternative(
        self, alternative_id: str, progress: Optional[ProgressCallback] = None, cancel: CancelToken = None
    ) -> SyncAllResult:
        """Sync every mirror of one alternative.

        Raises:
            NotFoundError: If the alternative does not exist (or vanished mid-sync)
        """
        alternative = self._require_alternative(alternative_id)
        result = self.engine.sync_all_mirrors(alternative_id, progress, cancel)
        if result.status == SyncAllStatus.ALTERNATIVE_NOT_FOUND:
            raise NotFoundError(f"Language alternative {alternative.name} was deleted during sync")
        self.logger.info(
            "Alternative sync finished",
            alternative=log_alternative(alternative),
            status=result.status.value,
            synced=result.mirrors_synced,
            failed=result.mirrors_failed,
        )
        return result
