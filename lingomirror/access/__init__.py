"""Per-user library visibility and language assignment."""

from lingomirror.access.applier import LibraryAccessService
from lingomirror.access.projection import AccessProjector, managed_library_ids, project_access
from lingomirror.access.users import UserInfo, UserLanguageService

__all__ = [
    "AccessProjector",
    "LibraryAccessService",
    "UserInfo",
    "UserLanguageService",
    "managed_library_ids",
    "project_access",
]
