#!/usr/bin/env python3
"""Applies projected library access to host users.

The projection decides visibility of managed libraries only. Applying it
keeps whatever access the user already had to unmanaged libraries, turns
the user's "all folders" flag off and writes an explicit library list.

Example:
    >>> access = LibraryAccessService(store, host, host)
    >>> access.reconcile_all_users()
    3
"""

from typing import Iterable, Optional, Set

from lingomirror.access.projection import AccessProjector
from lingomirror.core.progress import CancelToken, check_cancelled
from lingomirror.host.interfaces import HostUser, LibraryDirectory, UserDirectory
from lingomirror.infrastructure.log_entities import log_user
from lingomirror.infrastructure.logger import Logger, get_logger
from lingomirror.store.models import utcnow
from lingomirror.store.repository import ConfigurationStore

SET_BY_BULK_ENABLE = "bulk-enable"
SET_BY_ADMIN_DISABLED = "admin-disabled"


class LibraryAccessService:
    """Writes per-user library access on the host."""

    def __init__(
        self,
        store: ConfigurationStore,
        libraries: LibraryDirectory,
        users: UserDirectory,
        projector: Optional[AccessProjector] = None,
        logger: Optional[Logger] = None,
    ):
        self.store = store
        self.libraries = libraries
        self.users = users
        self.logger = logger or get_logger()
        self.projector = projector or AccessProjector(store, libraries, self.logger)

    def current_access(self, user: HostUser, host_ids: Optional[Set[str]] = None) -> Set[str]:
        """Libraries the user can see right now."""
        if user.enable_all_folders:
            return set(host_ids) if host_ids is not None else self.projector.host_library_ids()
        return {f.strip() for f in user.enabled_folders if f and f.strip()}

    def _desired_access(self, user: HostUser) -> Optional[Set[str]]:
        projection = self.projector.project(user.id)
        if projection is None:
            return None
        expected, managed, host_ids = projection
        current = self.current_access(user, host_ids) & host_ids
        if not managed:
            return current
        return expected | {library_id for library_id in current if library_id not in managed}

    def _write_access(self, user: HostUser, library_ids: Iterable[str]) -> None:
        user.enable_all_folders = False
        user.enabled_folders = sorted(library_ids)
        self.users.update_user(user)

    def update_user_library_access(self, user_id: str) -> bool:
        """Apply the projected access to a managed user.

        Returns:
            True if the user's access was written, False if the user is
            unknown or not managed
        """
        user = self.users.get_user(user_id)
        if user is None:
            self.logger.warning("User not found", user=user_id)
            return False

        desired = self._desired_access(user)
        if desired is None:
            self.logger.debug("User is not managed, skipping library access update", user=log_user(user))
            return False

        self._write_access(user, desired)
        self.logger.info("User library access updated", user=log_user(user), libraries=len(desired))
        return True

    def reconcile_user_access(self, user_id: str) -> bool:
        """Reapply a managed user's access if it drifted.

        Returns:
            True if the access had to be rewritten
        """
        user = self.users.get_user(user_id)
        if user is None:
            return False

        desired = self._desired_access(user)
        if desired is None:
            return False

        current = self.current_access(user)
        if not user.enable_all_folders and desired == current:
            return False

        self.logger.info(
            "Reconciling user library access",
            user=log_user(user),
            expected=len(desired),
            current=len(current),
            all_folders=user.enable_all_folders,
        )
        self._write_access(user, desired)
        return True

    def reconcile_all_users(self, cancel: CancelToken = None) -> int:
        """Reconcile every user with a stored assignment.

        Returns:
            Number of users whose access changed

        Raises:
            OperationCancelled: If cancelled between users
        """
        changed = 0
        for user_config in self.store.get_user_languages():
            check_cancelled(cancel)
            try:
                if self.reconcile_user_access(user_config.user_id):
                    changed += 1
            except Exception as e:
                self.logger.exception("Failed to reconcile user", e, user=user_config.user_id)
        return changed

    def enable_all_users(self, cancel: CancelToken = None) -> int:
        """Put every host user under management, keeping existing assignments.

        Returns:
            Number of users that were not managed before
        """
        def manage(user_config) -> None:
            user_config.is_plugin_managed = True
            user_config.set_at = utcnow()
            user_config.set_by = SET_BY_BULK_ENABLE

        enabled = 0
        for user in self.users.get_users():
            check_cancelled(cancel)
            existing = self.store.get_user_language(user.id)
            try:
                if existing is None:
                    self.store.update_or_create_user_language(user.id, manage)
                    enabled += 1
                elif not existing.is_plugin_managed:
                    self.store.update_user_language(user.id, manage)
                    enabled += 1
                self.update_user_library_access(user.id)
            except Exception as e:
                self.logger.exception("Failed to enable user", e, user=log_user(user))

        self.logger.info("Enabled management for users", users=enabled)
        return enabled

    def disable_user(self, user_id: str, restore_full_access: bool = False) -> bool:
        """Stop managing a user, optionally restoring access to every library.

        Returns:
            False if the user does not exist on the host
        """
        user = self.users.get_user(user_id)
        if user is None:
            self.logger.warning("User not found", user=user_id)
            return False

        def unmanage(user_config) -> None:
            user_config.is_plugin_managed = False
            user_config.set_at = utcnow()
            user_config.set_by = SET_BY_ADMIN_DISABLED

        self.store.update_user_language(user_id, unmanage)

        if restore_full_access:
            user.enable_all_folders = True
            self.users.update_user(user)
            self.logger.info("Restored access to all libraries", user=log_user(user))

        self.logger.info("Disabled management for user", user=log_user(user))
        return True

    def add_libraries_to_user_access(self, user_id: str, library_ids: Iterable[str]) -> int:
        """Grant additional libraries to a user, dropping ids no longer on the host.

        Returns:
            Number of libraries newly granted
        """
        user = self.users.get_user(user_id)
        if user is None:
            self.logger.warning("User not found when adding libraries", user=user_id)
            return 0

        requested = set(library_ids)
        if not requested:
            return 0

        host_ids = self.projector.host_library_ids()
        current = self.current_access(user, host_ids) & host_ids
        added = requested - current
        if not added:
            return 0

        self._write_access(user, current | added)
        self.logger.info(
            "Added libraries to user access", user=log_user(user), added=len(added), total=len(current | added)
        )
        return len(added)
