#!/usr/bin/env python3
"""Projection of the library set a managed user should see.

Only libraries that take part in a mirror (as source or as target) are
managed. For a managed user:
- Mirrors of the user's own alternative are visible
- Mirrors of every other alternative are hidden
- A source is hidden when the user's alternative mirrors it and that
  mirror library still exists on the host; otherwise it stays visible as a
  fallback
- Unmanaged libraries are not part of the projection at all

Users without an assignment, users not managed by LingoMirror and users
assigned to an alternative that no longer exists project to the empty set,
which callers read as "leave this user alone".

Example:
    >>> projector = AccessProjector(store, host)
    >>> projector.get_expected_library_access(user_id)
    {'lib-pt-movies', 'lib-series'}
"""

from typing import Iterable, Optional, Set, Tuple

from lingomirror.host.interfaces import LibraryDirectory
from lingomirror.infrastructure.logger import Logger, get_logger
from lingomirror.store.models import Alternative, StoreDocument, UserLanguageConfig
from lingomirror.store.repository import ConfigurationStore


def managed_library_ids(document: StoreDocument) -> Set[str]:
    """Every library id that is the source or the target of some mirror."""
    managed: Set[str] = set()
    for _, mirror in document.iter_mirrors():
        managed.add(mirror.source_library_id)
        if mirror.target_library_id:
            managed.add(mirror.target_library_id)
    return managed


def is_projectable(document: StoreDocument, user_config: Optional[UserLanguageConfig]) -> bool:
    """True if the user is managed and assigned to the default or to an existing alternative."""
    if user_config is None or not user_config.is_plugin_managed:
        return False
    if user_config.selected_alternative_id is None:
        return True
    return any(a.id == user_config.selected_alternative_id for a in document.alternatives)


def project_access(
    document: StoreDocument,
    user_config: Optional[UserLanguageConfig],
    host_library_ids: Iterable[str],
    logger: Optional[Logger] = None,
) -> Set[str]:
    """Compute the managed libraries a user should see.

    Pure function over a document snapshot and the host's live library ids.

    Args:
        document: Configuration snapshot
        user_config: The user's assignment (None if unassigned)
        host_library_ids: Ids of libraries currently registered on the host
        logger: Optional logger for fallback warnings

    Returns:
        Set of library ids (empty means "do not touch")
    """
    if not is_projectable(document, user_config):
        return set()

    alternative: Optional[Alternative] = None
    if user_config.selected_alternative_id is not None:
        alternative = next(a for a in document.alternatives if a.id == user_config.selected_alternative_id)

    host_ids = set(host_library_ids)
    managed = managed_library_ids(document)

    own_targets: Set[str] = set()
    own_sources: Set[str] = set()
    if alternative is not None:
        for mirror in alternative.mirrors:
            if mirror.target_library_id:
                own_targets.add(mirror.target_library_id)
                own_sources.add(mirror.source_library_id)

    all_targets = {m.target_library_id for _, m in document.iter_mirrors() if m.target_library_id}

    expected: Set[str] = set()
    for library_id in host_ids:
        if library_id not in managed:
            continue
        if library_id in own_targets:
            expected.add(library_id)
            continue
        if library_id in all_targets:
            continue
        if library_id in own_sources:
            mirror_alive = any(
                m.source_library_id == library_id and m.target_library_id in host_ids
                for m in alternative.mirrors
            )
            if mirror_alive:
                continue
            (logger or get_logger()).warning(
                "Mirror library missing on host, showing source as fallback", library=library_id
            )
        expected.add(library_id)

    return expected


class AccessProjector:
    """Reads the store and the host to project per-user library access."""

    def __init__(self, store: ConfigurationStore, libraries: LibraryDirectory, logger: Optional[Logger] = None):
        self.store = store
        self.libraries = libraries
        self.logger = logger or get_logger()

    def host_library_ids(self) -> Set[str]:
        return {folder.id for folder in self.libraries.get_virtual_folders()}

    def managed_library_ids(self) -> Set[str]:
        document = self.store.snapshot()
        return managed_library_ids(document) if document else set()

    def project(self, user_id: str) -> Optional[Tuple[Set[str], Set[str], Set[str]]]:
        """Project a user's access from one consistent snapshot.

        Returns:
            ``(expected, managed, host_ids)``, or None when the user must be
            left alone
        """
        document = self.store.snapshot()
        if document is None:
            return None
        user_config = next((u for u in document.user_languages if u.user_id == user_id), None)
        if not is_projectable(document, user_config):
            return None
        host_ids = self.host_library_ids()
        expected = project_access(document, user_config, host_ids, self.logger)
        return expected, managed_library_ids(document), host_ids

    def get_expected_library_access(self, user_id: str) -> Set[str]:
        """Managed libraries the user should see; empty for users left alone."""
        projection = self.project(user_id)
        return projection[0] if projection else set()
