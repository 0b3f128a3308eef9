#!/usr/bin/env python3
"""File classification rules for mirror trees.

Decides whether a source file is hardlinked into a mirror. Rules are
evaluated in order and the first one that applies wins:

1. Any ancestor directory is an excluded directory -> skip
2. Any ancestor directory is an included directory -> link
   (even if the extension is excluded)
3. The extension is excluded -> skip
4. Everything else -> link

All name and extension comparisons are case-insensitive.

Example:
    >>> classifier = FileClassifier()
    >>> classifier.should_hardlink("/media/movies/Film (2020)/film.mkv")
    True
    >>> classifier.should_hardlink("/media/movies/Film (2020)/poster.jpg")
    False
"""

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath
from typing import FrozenSet, Iterable, Optional, Union

from lingomirror.core.constants import (
    DEFAULT_EXCLUDED_DIRECTORIES,
    DEFAULT_EXCLUDED_EXTENSIONS,
    DEFAULT_INCLUDED_DIRECTORIES,
)

PathLike = Union[str, PurePath]


class Decision(Enum):
    """Outcome of classifying a path, with the rule that produced it."""

    EXCLUDED_DIRECTORY = "excluded_directory"
    INCLUDED_DIRECTORY = "included_directory"
    EXCLUDED_EXTENSION = "excluded_extension"
    DEFAULT = "default"
    EMPTY_PATH = "empty_path"

    @property
    def hardlink(self) -> bool:
        return self in (Decision.INCLUDED_DIRECTORY, Decision.DEFAULT)


def _folded(values: Iterable[str]) -> FrozenSet[str]:
    return frozenset(v.casefold() for v in values if v)


def _extensions(values: Iterable[str]) -> FrozenSet[str]:
    return frozenset("." + v.strip().lstrip(".").casefold() for v in values if v and v.strip())


def _base_name(path: str) -> str:
    return os.path.basename(path.rstrip("/\\"))


@dataclass(frozen=True)
class FileClassifier:
    """Immutable set of exclusion and inclusion rules.

    Attributes:
        excluded_extensions: Extensions (with leading dot) never linked
        excluded_directories: Directory names skipped wholesale
        included_directories: Directory names linked in full
    """

    excluded_extensions: FrozenSet[str] = _folded(DEFAULT_EXCLUDED_EXTENSIONS)
    excluded_directories: FrozenSet[str] = _folded(DEFAULT_EXCLUDED_DIRECTORIES)
    included_directories: FrozenSet[str] = _folded(DEFAULT_INCLUDED_DIRECTORIES)

    @classmethod
    def from_lists(
        cls,
        excluded_extensions: Optional[Iterable[str]] = None,
        excluded_directories: Optional[Iterable[str]] = None,
        included_directories: Optional[Iterable[str]] = None,
    ) -> "FileClassifier":
        """Build a classifier, falling back to the defaults for any list that is None.

        Args:
            excluded_extensions: Extensions to skip
            excluded_directories: Directory names to skip
            included_directories: Directory names to link regardless of extension

        Returns:
            New classifier
        """
        return cls(
            excluded_extensions=_extensions(
                DEFAULT_EXCLUDED_EXTENSIONS if excluded_extensions is None else excluded_extensions
            ),
            excluded_directories=_folded(
                DEFAULT_EXCLUDED_DIRECTORIES if excluded_directories is None else excluded_directories
            ),
            included_directories=_folded(
                DEFAULT_INCLUDED_DIRECTORIES if included_directories is None else included_directories
            ),
        )

    def _ancestors(self, file_path: str):
        parent = PurePath(file_path).parent
        for part in parent.parts:
            if part not in ("/", "\\", parent.anchor):
                yield part.casefold()

    def classify(self, file_path: PathLike) -> Decision:
        """Classify a file path.

        Args:
            file_path: Path of the file (absolute or relative)

        Returns:
            Decision naming the rule that applied
        """
        if not file_path:
            return Decision.EMPTY_PATH

        file_path = str(file_path)
        ancestors = list(self._ancestors(file_path))

        if any(name in self.excluded_directories for name in ancestors):
            return Decision.EXCLUDED_DIRECTORY

        if any(name in self.included_directories for name in ancestors):
            return Decision.INCLUDED_DIRECTORY

        extension = os.path.splitext(file_path)[1].casefold()
        if extension and extension in self.excluded_extensions:
            return Decision.EXCLUDED_EXTENSION

        return Decision.DEFAULT

    def should_hardlink(self, file_path: PathLike) -> bool:
        """Return True if the file belongs in a mirror."""
        return self.classify(file_path).hardlink

    def should_exclude_directory(self, directory_path: PathLike) -> bool:
        """Return True if the directory's own name is excluded.

        Only the last path component is checked.
        """
        if not directory_path:
            return False
        return _base_name(str(directory_path)).casefold() in self.excluded_directories

    def is_included_directory(self, directory_path: PathLike) -> bool:
        """Return True if the directory's own name is force-included."""
        if not directory_path:
            return False
        return _base_name(str(directory_path)).casefold() in self.included_directories


DEFAULT_CLASSIFIER = FileClassifier()


def should_hardlink(
    file_path: PathLike,
    excluded_extensions: Optional[Iterable[str]] = None,
    excluded_directories: Optional[Iterable[str]] = None,
    included_directories: Optional[Iterable[str]] = None,
) -> bool:
    """Functional form of ``FileClassifier.should_hardlink``.

    Any list left as None uses the defaults.
    """
    if excluded_extensions is None and excluded_directories is None and included_directories is None:
        return DEFAULT_CLASSIFIER.should_hardlink(file_path)
    return FileClassifier.from_lists(
        excluded_extensions, excluded_directories, included_directories
    ).should_hardlink(file_path)


def should_exclude_directory(
    directory_path: PathLike, excluded_directories: Optional[Iterable[str]] = None
) -> bool:
    """Functional form of ``FileClassifier.should_exclude_directory``."""
    return FileClassifier.from_lists(excluded_directories=excluded_directories).should_exclude_directory(
        directory_path
    )


def is_included_directory(
    directory_path: PathLike, included_directories: Optional[Iterable[str]] = None
) -> bool:
    """Functional form of ``FileClassifier.is_included_directory``."""
    return FileClassifier.from_lists(included_directories=included_directories).is_included_directory(
        directory_path
    )
