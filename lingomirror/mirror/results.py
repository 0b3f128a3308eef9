"""Result types returned by the mirror engine and the orphan reconciler."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


@dataclass
class SyncMirrorResult:
    """Outcome of one incremental sync."""

    added: int = 0
    removed: int = 0
    failed: int = 0
    total_files: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


@dataclass
class DeleteMirrorResult:
    """Outcome of deleting a mirror.

    ``removed_from_config`` is False when a partial failure aborted the
    delete (without force) so the caller can retry.
    """

    removed_from_config: bool = False
    library_deletion_error: Optional[str] = None
    file_deletion_error: Optional[str] = None

    @property
    def has_errors(self) -> bool:
        return bool(self.library_deletion_error or self.file_deletion_error)

    @property
    def error_summary(self) -> str:
        parts = []
        if self.library_deletion_error:
            parts.append(f"library: {self.library_deletion_error}")
        if self.file_deletion_error:
            parts.append(f"files: {self.file_deletion_error}")
        return "; ".join(parts)


class SyncAllStatus(Enum):
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    CANCELLED = "cancelled"
    ALTERNATIVE_NOT_FOUND = "alternative_not_found"


@dataclass
class SyncAllResult:
    """Outcome of syncing every mirror of one alternative."""

    status: SyncAllStatus
    mirrors_synced: int = 0
    mirrors_failed: int = 0
    total_mirrors: int = 0


@dataclass
class OrphanCleanupResult:
    """Report produced by the orphan reconciler.

    Attributes:
        cleaned_up_mirrors: ``"<library name> (<reason>)"`` per removed mirror
        failed_cleanups: ``"<library name>: <error>"`` per mirror that could not be removed
        sources_without_mirrors: Source library ids left with no mirror in any language
    """

    cleaned_up_mirrors: List[str] = field(default_factory=list)
    failed_cleanups: List[str] = field(default_factory=list)
    sources_without_mirrors: List[str] = field(default_factory=list)

    @property
    def total_cleaned(self) -> int:
        return len(self.cleaned_up_mirrors)


@dataclass
class LibraryInfo:
    """A host library annotated with its mirror role."""

    id: str
    name: str
    collection_type: Optional[str] = None
    paths: List[str] = field(default_factory=list)
    preferred_metadata_language: Optional[str] = None
    metadata_country_code: Optional[str] = None
    is_mirror: bool = False
    alternative_id: Optional[str] = None
