#!/usr/bin/env python3
"""Concurrency-safe configuration store.

The store is the single source of truth for alternatives, mirrors, user
language assignments, LDAP group mappings and global settings. It provides:
- Deep-copied reads, so callers can never mutate canonical state
- Update primitives that take a transform function and apply it to a
  freshly looked-up record inside the critical section
- Atomic check-and-mutate operations (duplicate detection, conflict-aware
  alternative removal)
- An explicit durable save after every mutation

Every mutation runs against a working copy of the document under a single
re-entrant lock. The working copy replaces the canonical document only
after the backend accepted the save, so a failed write or a transform that
raises leaves the in-memory state untouched.

Example:
    >>> store = ConfigurationStore(YamlDocumentStore("mirrors.yaml"))
    >>> store.add_alternative(alternative)
    True
    >>> store.update_mirror(mirror_id, lambda m: setattr(m, "status", SyncStatus.SYNCED))
    True
"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, FrozenSet, Iterable, List, Optional, Tuple, TypeVar

from lingomirror.core.validators import validate_settings_update
from lingomirror.infrastructure.log_entities import log_alternative, log_mirror
from lingomirror.infrastructure.logger import Logger, get_logger
from lingomirror.store.models import (
    Alternative,
    LdapGroupMapping,
    Mirror,
    Settings,
    StoreDocument,
    UserLanguageConfig,
    utcnow,
)
from lingomirror.store.persistence import DocumentBackend, PersistenceError

T = TypeVar("T")


class RemoveOutcome(Enum):
    """Outcome of a conflict-aware alternative removal."""

    SUCCEEDED = "succeeded"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"
    NEW_MIRRORS_ADDED = "new_mirrors_added"


@dataclass
class RemoveAlternativeResult:
    """Result of ``try_remove_alternative_atomic``."""

    outcome: RemoveOutcome
    unexpected_mirror_ids: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.outcome == RemoveOutcome.SUCCEEDED


class ConfigurationStore:
    """Thread-safe repository over a persisted StoreDocument.

    Construct one per process and pass it to every component that needs
    configuration; there is no module-level instance.
    """

    def __init__(self, backend: DocumentBackend, logger: Optional[Logger] = None):
        """Initialize the store and load the document.

        A backend that fails to load leaves the store unavailable: reads
        return empty results and mutations return False until ``reload``
        succeeds.

        Args:
            backend: Durable storage backend
            logger: Optional logger
        """
        self._backend = backend
        self._logger = logger or get_logger()
        self._lock = threading.RLock()
        self._document: Optional[StoreDocument] = None
        self.reload()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @property
    def available(self) -> bool:
        """True when the document is loaded."""
        with self._lock:
            return self._document is not None

    def reload(self) -> bool:
        """(Re)load the document from the backend.

        Returns:
            True if the document was loaded
        """
        with self._lock:
            try:
                self._document = self._backend.load()
                return True
            except PersistenceError as e:
                self._logger.error("Configuration unavailable", error=e.message)
                self._document = None
                return False

    def _mutate(
        self,
        operation: str,
        fn: Callable[[StoreDocument], Tuple[T, bool]],
        unavailable: T,
    ) -> T:
        """Run ``fn`` against a working copy and commit it if asked to.

        ``fn`` returns ``(result, save)``. When ``save`` is true the working
        copy is persisted and becomes canonical.

        Raises:
            PersistenceError: If the backend rejects the save
        """
        with self._lock:
            if self._document is None:
                self._logger.warning(f"{operation}: configuration unavailable")
                return unavailable

            working = self._document.deep_copy()
            result, save = fn(working)
            if save:
                self._backend.save(working)
                self._document = working
            return result

    def _read(self, fn: Callable[[StoreDocument], T], default: T) -> T:
        with self._lock:
            if self._document is None:
                return default
            return fn(self._document)

    @staticmethod
    def _find_mirror(document: StoreDocument, mirror_id: str) -> Tuple[Optional[Alternative], Optional[Mirror]]:
        for alternative, mirror in document.iter_mirrors():
            if mirror.id == mirror_id:
                return alternative, mirror
        return None, None

    @staticmethod
    def _find_alternative(document: StoreDocument, alternative_id: str) -> Optional[Alternative]:
        for alternative in document.alternatives:
            if alternative.id == alternative_id:
                return alternative
        return None

    @staticmethod
    def _find_user(document: StoreDocument, user_id: str) -> Optional[UserLanguageConfig]:
        for user_config in document.user_languages:
            if user_config.user_id == user_id:
                return user_config
        return None

    @staticmethod
    def _drop_alternative(document: StoreDocument, alternative: Alternative) -> int:
        """Remove an alternative and every reference to it. Returns removed LDAP mappings."""
        document.alternatives.remove(alternative)
        if document.settings.default_alternative_id == alternative.id:
            document.settings.default_alternative_id = None
        before = len(document.ldap_group_mappings)
        document.ldap_group_mappings = [
            m for m in document.ldap_group_mappings if m.alternative_id != alternative.id
        ]
        return before - len(document.ldap_group_mappings)

    def snapshot(self) -> Optional[StoreDocument]:
        """Deep copy of the whole document for consistent multi-entity reads."""
        return self._read(lambda doc: doc.deep_copy(), None)

    # ------------------------------------------------------------------
    # Mirrors
    # ------------------------------------------------------------------

    def get_mirror(self, mirror_id: str) -> Optional[Mirror]:
        """Return a copy of a mirror, or None."""
        def read(doc: StoreDocument) -> Optional[Mirror]:
            _, mirror = self._find_mirror(doc, mirror_id)
            return mirror.deep_copy() if mirror else None

        return self._read(read, None)

    def get_mirror_with_alternative(self, mirror_id: str) -> Optional[Tuple[Mirror, str]]:
        """Return ``(mirror copy, owning alternative id)`` or None."""
        def read(doc: StoreDocument) -> Optional[Tuple[Mirror, str]]:
            alternative, mirror = self._find_mirror(doc, mirror_id)
            if mirror is None:
                return None
            return mirror.deep_copy(), alternative.id

        return self._read(read, None)

    def get_all_mirrors(self) -> List[Tuple[Mirror, str]]:
        """Return copies of every mirror with its alternative id."""
        return self._read(
            lambda doc: [(m.deep_copy(), a.id) for a, m in doc.iter_mirrors()], []
        )

    def update_mirror(self, mirror_id: str, update: Callable[[Mirror], None]) -> bool:
        """Apply ``update`` to the current mirror record and save.

        Args:
            mirror_id: Mirror to update
            update: Mutating transform applied to the fresh record

        Returns:
            False if the mirror no longer exists or the store is unavailable
        """
        def apply(doc: StoreDocument):
            _, mirror = self._find_mirror(doc, mirror_id)
            if mirror is None:
                self._logger.debug("update_mirror: mirror not found", mirror=mirror_id)
                return False, False
            update(mirror)
            return True, True

        return self._mutate("update_mirror", apply, False)

    def add_mirror(self, alternative_id: str, mirror: Mirror) -> bool:
        """Add a mirror unless the alternative already mirrors the same source.

        Returns:
            False if the alternative is missing, a duplicate exists, or the
            store is unavailable
        """
        def apply(doc: StoreDocument):
            alternative = self._find_alternative(doc, alternative_id)
            if alternative is None:
                self._logger.warning("add_mirror: alternative not found", alternative=alternative_id)
                return False, False
            if alternative.find_mirror_for_source(mirror.source_library_id):
                self._logger.warning(
                    "add_mirror: duplicate mirror for source library",
                    mirror=log_mirror(mirror),
                    alternative=log_alternative(alternative),
                )
                return False, False
            alternative.mirrors.append(mirror.deep_copy())
            self._logger.info(
                "Added mirror", mirror=log_mirror(mirror), alternative=log_alternative(alternative)
            )
            return True, True

        return self._mutate("add_mirror", apply, False)

    def remove_mirror(self, mirror_id: str) -> bool:
        """Remove a mirror from its alternative."""
        def apply(doc: StoreDocument):
            alternative, mirror = self._find_mirror(doc, mirror_id)
            if mirror is None:
                self._logger.debug("remove_mirror: mirror not found", mirror=mirror_id)
                return False, False
            alternative.mirrors.remove(mirror)
            self._logger.info(
                "Removed mirror", mirror=log_mirror(mirror), alternative=log_alternative(alternative)
            )
            return True, True

        return self._mutate("remove_mirror", apply, False)

    # ------------------------------------------------------------------
    # Alternatives
    # ------------------------------------------------------------------

    def get_alternative(self, alternative_id: str) -> Optional[Alternative]:
        """Return a copy of an alternative (with its mirrors), or None."""
        def read(doc: StoreDocument) -> Optional[Alternative]:
            alternative = self._find_alternative(doc, alternative_id)
            return alternative.deep_copy() if alternative else None

        return self._read(read, None)

    def get_alternatives(self) -> List[Alternative]:
        """Return copies of all alternatives in order."""
        return self._read(lambda doc: [a.deep_copy() for a in doc.alternatives], [])

    def find_alternative_by_name(self, name: str) -> Optional[Alternative]:
        """Case-insensitive lookup by display name."""
        folded = name.casefold()

        def read(doc: StoreDocument) -> Optional[Alternative]:
            for alternative in doc.alternatives:
                if alternative.name.casefold() == folded:
                    return alternative.deep_copy()
            return None

        return self._read(read, None)

    def update_alternative(self, alternative_id: str, update: Callable[[Alternative], None]) -> bool:
        """Apply ``update`` to the current alternative, stamp ``modified_at`` and save."""
        def apply(doc: StoreDocument):
            alternative = self._find_alternative(doc, alternative_id)
            if alternative is None:
                self._logger.debug("update_alternative: alternative not found", alternative=alternative_id)
                return False, False
            update(alternative)
            alternative.modified_at = utcnow()
            return True, True

        return self._mutate("update_alternative", apply, False)

    def add_alternative(self, alternative: Alternative) -> bool:
        """Add an alternative unless one with the same name (any case) exists."""
        folded = alternative.name.casefold()

        def apply(doc: StoreDocument):
            if any(a.name.casefold() == folded for a in doc.alternatives):
                self._logger.warning("add_alternative: duplicate name", name=alternative.name)
                return False, False
            doc.alternatives.append(alternative.deep_copy())
            self._logger.info("Added alternative", alternative=log_alternative(alternative))
            return True, True

        return self._mutate("add_alternative", apply, False)

    def remove_alternative(self, alternative_id: str) -> bool:
        """Remove an alternative, clearing the default and LDAP mappings that point at it."""
        def apply(doc: StoreDocument):
            alternative = self._find_alternative(doc, alternative_id)
            if alternative is None:
                self._logger.debug("remove_alternative: alternative not found", alternative=alternative_id)
                return False, False
            removed = self._drop_alternative(doc, alternative)
            self._logger.info(
                "Removed alternative", alternative=log_alternative(alternative), ldap_mappings=removed
            )
            return True, True

        return self._mutate("remove_alternative", apply, False)

    def try_remove_alternative_atomic(
        self, alternative_id: str, expected_mirror_ids: Iterable[str]
    ) -> RemoveAlternativeResult:
        """Remove an alternative only if its mirror set is a subset of ``expected_mirror_ids``.

        Used after the caller deleted the mirrors it knew about: a mirror
        added concurrently makes the removal abort with NEW_MIRRORS_ADDED.

        Args:
            alternative_id: Alternative to remove
            expected_mirror_ids: Mirror ids the caller already handled

        Returns:
            RemoveAlternativeResult
        """
        expected: FrozenSet[str] = frozenset(expected_mirror_ids)

        def apply(doc: StoreDocument):
            alternative = self._find_alternative(doc, alternative_id)
            if alternative is None:
                return RemoveAlternativeResult(RemoveOutcome.NOT_FOUND), False

            unexpected = [m.id for m in alternative.mirrors if m.id not in expected]
            if unexpected:
                self._logger.warning(
                    "New mirrors were added during deletion, aborting",
                    alternative=log_alternative(alternative),
                    unexpected=len(unexpected),
                )
                return RemoveAlternativeResult(RemoveOutcome.NEW_MIRRORS_ADDED, unexpected), False

            removed = self._drop_alternative(doc, alternative)
            self._logger.info(
                "Removed alternative", alternative=log_alternative(alternative), ldap_mappings=removed
            )
            return RemoveAlternativeResult(RemoveOutcome.SUCCEEDED), True

        return self._mutate(
            "try_remove_alternative_atomic", apply, RemoveAlternativeResult(RemoveOutcome.UNAVAILABLE)
        )

    # ------------------------------------------------------------------
    # User languages
    # ------------------------------------------------------------------

    def get_user_language(self, user_id: str) -> Optional[UserLanguageConfig]:
        """Return a copy of a user's assignment, or None."""
        def read(doc: StoreDocument) -> Optional[UserLanguageConfig]:
            user_config = self._find_user(doc, user_id)
            return user_config.deep_copy() if user_config else None

        return self._read(read, None)

    def get_user_languages(self) -> List[UserLanguageConfig]:
        """Return copies of all user assignments."""
        return self._read(lambda doc: [u.deep_copy() for u in doc.user_languages], [])

    def update_or_create_user_language(
        self, user_id: str, update: Callable[[UserLanguageConfig], None]
    ) -> bool:
        """Apply ``update`` to a user's assignment, creating it first if missing.

        Returns:
            True if the record was created, False if it already existed
            (or the store is unavailable)
        """
        def apply(doc: StoreDocument):
            user_config = self._find_user(doc, user_id)
            created = user_config is None
            if created:
                user_config = UserLanguageConfig(user_id=user_id)
                doc.user_languages.append(user_config)
            update(user_config)
            return created, True

        return self._mutate("update_or_create_user_language", apply, False)

    def update_user_language(self, user_id: str, update: Callable[[UserLanguageConfig], None]) -> bool:
        """Apply ``update`` to an existing assignment. False if none exists."""
        def apply(doc: StoreDocument):
            user_config = self._find_user(doc, user_id)
            if user_config is None:
                return False, False
            update(user_config)
            return True, True

        return self._mutate("update_user_language", apply, False)

    def remove_user_language(self, user_id: str) -> bool:
        """Remove a user's assignment. False if none existed."""
        def apply(doc: StoreDocument):
            remaining = [u for u in doc.user_languages if u.user_id != user_id]
            if len(remaining) == len(doc.user_languages):
                return False, False
            doc.user_languages = remaining
            return True, True

        return self._mutate("remove_user_language", apply, False)

    # ------------------------------------------------------------------
    # LDAP group mappings
    # ------------------------------------------------------------------

    def get_ldap_group_mappings(self) -> List[LdapGroupMapping]:
        """Return copies of all LDAP group mappings."""
        return self._read(lambda doc: [m.deep_copy() for m in doc.ldap_group_mappings], [])

    def add_ldap_group_mapping(self, mapping: LdapGroupMapping) -> bool:
        """Add a mapping unless its group DN (any case) is already mapped."""
        folded = mapping.group_dn.casefold()

        def apply(doc: StoreDocument):
            if any(m.group_dn.casefold() == folded for m in doc.ldap_group_mappings):
                self._logger.warning("add_ldap_group_mapping: duplicate group", group=mapping.group_dn)
                return False, False
            doc.ldap_group_mappings.append(mapping.deep_copy())
            return True, True

        return self._mutate("add_ldap_group_mapping", apply, False)

    def remove_ldap_group_mapping(self, mapping_id: str) -> bool:
        """Remove a mapping by id."""
        def apply(doc: StoreDocument):
            remaining = [m for m in doc.ldap_group_mappings if m.id != mapping_id]
            if len(remaining) == len(doc.ldap_group_mappings):
                return False, False
            doc.ldap_group_mappings = remaining
            return True, True

        return self._mutate("remove_ldap_group_mapping", apply, False)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_settings(self) -> Settings:
        """Return a copy of the global settings (defaults when unavailable)."""
        return self._read(lambda doc: doc.settings.deep_copy(), Settings())

    def update_settings(self, update: Callable[[Settings], bool]) -> bool:
        """Apply ``update`` to the settings; save only if it returns True.

        The resulting settings are validated before the save.

        Raises:
            ValidationError: If the updated settings are invalid
        """
        def apply(doc: StoreDocument):
            if not update(doc.settings):
                return False, False
            validate_settings_update(doc.settings.to_dict())
            return True, True

        return self._mutate("update_settings", apply, False)

    def get_excluded_extensions(self) -> FrozenSet[str]:
        """Configured excluded extensions, lowercased."""
        return self._read(lambda doc: frozenset(e.lower() for e in doc.settings.excluded_extensions), frozenset())

    def get_excluded_directories(self) -> FrozenSet[str]:
        """Configured excluded directory names."""
        return self._read(lambda doc: frozenset(doc.settings.excluded_directories), frozenset())

    def get_included_directories(self) -> FrozenSet[str]:
        """Configured force-included directory names."""
        return self._read(lambda doc: frozenset(doc.settings.included_directories), frozenset())

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    def clear_all(self) -> bool:
        """Remove every alternative, user assignment and LDAP mapping. Settings are kept."""
        def apply(doc: StoreDocument):
            doc.alternatives.clear()
            doc.user_languages.clear()
            doc.ldap_group_mappings.clear()
            doc.settings.default_alternative_id = None
            return True, True

        return self._mutate("clear_all", apply, False)
