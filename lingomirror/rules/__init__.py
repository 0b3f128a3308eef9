"""LingoMirror Rules System.

This module decides which source files are mirrored:
- FileClassifier: extension and directory exclusion/inclusion rules

Rules keep per-language artwork and sidecar metadata out of mirror trees
while sharing the media files themselves through hardlinks.
"""

from .classifier import (
    DEFAULT_CLASSIFIER,
    Decision,
    FileClassifier,
    is_included_directory,
    should_exclude_directory,
    should_hardlink,
)

__all__ = [
    "DEFAULT_CLASSIFIER",
    "Decision",
    "FileClassifier",
    "is_included_directory",
    "should_exclude_directory",
    "should_hardlink",
]
