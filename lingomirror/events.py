"""Host event handlers.

The host (or the CLI standing in for it) calls these when users come and
go or when a library disappears. Handlers log failures and never raise
back into the host.
"""

from typing import Optional

from lingomirror.access.applier import LibraryAccessService
from lingomirror.access.users import UserLanguageService
from lingomirror.core.constants import SetBy
from lingomirror.core.progress import CancelToken
from lingomirror.infrastructure.logger import Logger, get_logger
from lingomirror.mirror.orphans import OrphanReconciler
from lingomirror.mirror.results import OrphanCleanupResult
from lingomirror.store.repository import ConfigurationStore


class EventHandlers:
    """Reacts to user and library lifecycle events."""

    def __init__(
        self,
        store: ConfigurationStore,
        languages: UserLanguageService,
        access: LibraryAccessService,
        orphans: OrphanReconciler,
        logger: Optional[Logger] = None,
    ):
        self.store = store
        self.languages = languages
        self.access = access
        self.orphans = orphans
        self.logger = logger or get_logger()

    def on_user_created(self, user_id: str) -> bool:
        """Put a new user under management when auto-management is on.

        Returns:
            True if a language was assigned
        """
        settings = self.store.get_settings()
        if not settings.auto_manage_new_users:
            return False

        alternative_id = settings.default_alternative_id
        if alternative_id is not None and self.store.get_alternative(alternative_id) is None:
            self.logger.warning("Default alternative no longer exists, using default language", alternative=alternative_id)
            alternative_id = None

        try:
            self.languages.assign_language(
                user_id, alternative_id, SetBy.AUTO, manually_set=False, is_plugin_managed=True
            )
        except Exception as e:
            self.logger.exception("Failed to assign language to new user", e, user=user_id)
            return False
        return True

    def on_user_deleted(self, user_id: str) -> bool:
        """Forget a deleted user's assignment."""
        try:
            return self.languages.remove_user(user_id)
        except Exception as e:
            self.logger.exception("Failed to remove user assignment", e, user=user_id)
            return False

    def on_library_removed(self, cancel: CancelToken = None) -> OrphanCleanupResult:
        """Clean up orphaned mirrors, then repair user access."""
        result = self.orphans.cleanup(cancel)
        if result.total_cleaned == 0:
            return result

        self.logger.info("Cleaned up orphaned mirrors", count=result.total_cleaned)

        if result.sources_without_mirrors:
            for user_config in self.store.get_user_languages():
                if not user_config.is_plugin_managed:
                    continue
                try:
                    self.access.add_libraries_to_user_access(user_config.user_id, result.sources_without_mirrors)
                except Exception as e:
                    self.logger.exception("Failed to add sources to user", e, user=user_config.user_id)

        try:
            changed = self.access.reconcile_all_users(cancel)
            self.logger.info("Reconciled user access after cleanup", users=changed)
        except Exception as e:
            self.logger.exception("Failed to reconcile user access after cleanup", e)
        return result
