"""User language assignment.

Assigning a language records it in the store and, for managed users,
immediately reapplies library access.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from lingomirror.access.applier import LibraryAccessService
from lingomirror.core.errors import NotFoundError
from lingomirror.host.interfaces import UserDirectory
from lingomirror.infrastructure.log_entities import log_alternative, log_user
from lingomirror.infrastructure.logger import Logger, get_logger
from lingomirror.store.models import Alternative, UserLanguageConfig, utcnow
from lingomirror.store.repository import ConfigurationStore

SET_BY_ADMIN = "admin"


@dataclass
class UserInfo:
    """A host user joined with their stored language assignment."""

    id: str
    username: str
    is_administrator: bool = False
    is_plugin_managed: bool = False
    assigned_alternative_id: Optional[str] = None
    assigned_alternative_name: Optional[str] = None
    manually_set: bool = False
    set_by: Optional[str] = None
    set_at: Optional[datetime] = None


class UserLanguageService:
    """Reads and writes user language assignments."""

    def __init__(
        self,
        store: ConfigurationStore,
        users: UserDirectory,
        access: LibraryAccessService,
        logger: Optional[Logger] = None,
    ):
        self.store = store
        self.users = users
        self.access = access
        self.logger = logger or get_logger()

    def assign_language(
        self,
        user_id: str,
        alternative_id: Optional[str],
        set_by: str,
        manually_set: bool = False,
        is_plugin_managed: bool = True,
    ) -> None:
        """Assign an alternative (None for the default language) to a user.

        Args:
            user_id: Host user id
            alternative_id: Alternative to assign, or None for default
            set_by: Who made the assignment
            manually_set: Protect the assignment from automatic changes
            is_plugin_managed: Let LingoMirror control the user's library access

        Raises:
            NotFoundError: If the user or the alternative does not exist
        """
        user = self.users.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")

        alternative = None
        if alternative_id is not None:
            alternative = self.store.get_alternative(alternative_id)
            if alternative is None:
                raise NotFoundError(f"Language alternative {alternative_id} not found")

        def assign(user_config: UserLanguageConfig) -> None:
            user_config.selected_alternative_id = alternative_id
            user_config.manually_set = manually_set
            user_config.is_plugin_managed = is_plugin_managed
            user_config.set_at = utcnow()
            user_config.set_by = set_by

        self.store.update_or_create_user_language(user_id, assign)
        self.logger.info(
            "Assigned language",
            user=log_user(user),
            alternative=log_alternative(alternative) if alternative else "default",
            set_by=set_by,
            manual=manually_set,
            managed=is_plugin_managed,
        )

        if is_plugin_managed:
            self.access.update_user_library_access(user_id)

    def get_user_language(self, user_id: str) -> Optional[UserLanguageConfig]:
        return self.store.get_user_language(user_id)

    def get_user_language_alternative(self, user_id: str) -> Optional[Alternative]:
        """The alternative assigned to a user, or None for default/unassigned."""
        user_config = self.store.get_user_language(user_id)
        if user_config is None or user_config.selected_alternative_id is None:
            return None
        return self.store.get_alternative(user_config.selected_alternative_id)

    def clear_language(self, user_id: str) -> bool:
        """Reset a user to the default language.

        Returns:
            False if the user had no assignment
        """
        def clear(user_config: UserLanguageConfig) -> None:
            user_config.selected_alternative_id = None
            user_config.set_at = utcnow()
            user_config.set_by = SET_BY_ADMIN

        if not self.store.update_user_language(user_id, clear):
            self.logger.debug("No language assignment to clear", user=user_id)
            return False

        self.logger.info("Cleared language assignment", user=user_id)
        self.access.update_user_library_access(user_id)
        return True

    def get_all_users_with_languages(self) -> List[UserInfo]:
        """Every host user with their assignment, if any."""
        assignments = {u.user_id: u for u in self.store.get_user_languages()}
        names = {a.id: a.name for a in self.store.get_alternatives()}

        result = []
        for user in self.users.get_users():
            info = UserInfo(id=user.id, username=user.username, is_administrator=user.is_administrator)
            user_config = assignments.get(user.id)
            if user_config is not None:
                info.is_plugin_managed = user_config.is_plugin_managed
                info.assigned_alternative_id = user_config.selected_alternative_id
                info.assigned_alternative_name = names.get(user_config.selected_alternative_id)
                info.manually_set = user_config.manually_set
                info.set_by = user_config.set_by
                info.set_at = user_config.set_at
            result.append(info)
        return result

    def is_manually_set(self, user_id: str) -> bool:
        user_config = self.store.get_user_language(user_id)
        return bool(user_config and user_config.manually_set)

    def remove_user(self, user_id: str) -> bool:
        """Forget a deleted user's assignment."""
        if self.store.remove_user_language(user_id):
            self.logger.info("Removed language assignment for deleted user", user=user_id)
            return True
        self.logger.debug("No language assignment found for user", user=user_id)
        return False
