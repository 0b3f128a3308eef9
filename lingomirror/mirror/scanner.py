"""Directory scanning for mirror diffs.

Walks a library root and returns every qualifying file keyed by its path
relative to that root. Excluded directories are pruned during the walk so
their contents are never visited.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, Optional, Tuple

from lingomirror.core.file_ops import PROBE_PREFIX, FileSignature, file_signature
from lingomirror.infrastructure.logger import Logger, get_logger
from lingomirror.rules.classifier import FileClassifier


@dataclass(frozen=True)
class ScannedFile:
    """A qualifying file found under a root."""

    path: Path
    signature: FileSignature


def iter_mirrorable_files(
    root: str, classifier: FileClassifier, logger: Optional[Logger] = None
) -> Iterator[Tuple[str, ScannedFile]]:
    """Yield ``(relative_path, ScannedFile)`` for every file that belongs in a mirror.

    Classification uses the path relative to ``root``, so directory names
    above the library root never trigger exclusions.

    Args:
        root: Directory to walk (missing roots yield nothing)
        classifier: Exclusion rules
        logger: Optional logger for unreadable entries
    """
    logger = logger or get_logger()
    if not os.path.isdir(root):
        return

    def on_error(error: OSError) -> None:
        logger.warning("Cannot read directory", path=error.filename, error=error.strerror)

    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
        dirnames[:] = sorted(d for d in dirnames if not classifier.should_exclude_directory(d))

        for filename in sorted(filenames):
            if filename.startswith(PROBE_PREFIX):
                continue
            full_path = os.path.join(dirpath, filename)
            relative = os.path.relpath(full_path, root)
            if not classifier.should_hardlink(relative):
                continue
            try:
                if not os.path.isfile(full_path):
                    continue
                signature = file_signature(full_path)
            except OSError as e:
                logger.warning("Cannot stat file", path=full_path, error=str(e))
                continue
            yield relative, ScannedFile(Path(full_path), signature)


def scan_sources(
    roots: Iterable[str], classifier: FileClassifier, logger: Optional[Logger] = None
) -> Dict[str, ScannedFile]:
    """Scan several source roots into one map.

    When two roots contain the same relative path the first root wins.
    """
    files: Dict[str, ScannedFile] = {}
    for root in roots:
        for relative, scanned in iter_mirrorable_files(root, classifier, logger):
            files.setdefault(relative, scanned)
    return files


def scan_target(root: str, classifier: FileClassifier, logger: Optional[Logger] = None) -> Dict[str, ScannedFile]:
    """Scan a mirror target with the same rules used for sources."""
    return dict(iter_mirrorable_files(root, classifier, logger))
