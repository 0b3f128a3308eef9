"""
LingoMirror Core: Constants and Type Definitions

This module provides system-wide constants, error codes, default exclusion
lists and type aliases shared by the store, the mirror engine and the access
layer.
"""
from enum import IntEnum
from typing import NewType, TypeAlias

# Version information
LINGOMIRROR_VERSION = "1.0.0"
LINGOMIRROR_DOCUMENT_VERSION = 1


# Error codes (0-9 range)
class ErrorCode(IntEnum):
    """Standardized error codes for LingoMirror operations."""

    SUCCESS = 0  # Operation completed successfully
    INVALID_INPUT = 1  # Bad path, invalid configuration
    NOT_FOUND = 2  # Mirror, alternative, library or user doesn't exist
    PERMISSION_DENIED = 3  # Insufficient permissions
    CONFLICT = 4  # Concurrent modification, duplicate entity
    DEPENDENCY_ERROR = 5  # Host library or directory unavailable
    INTERNAL_ERROR = 6  # Bug in LingoMirror
    TIMEOUT = 7  # Operation timed out
    RATE_LIMITED = 8  # Too many operations
    DEGRADED = 9  # Running with reduced functionality


# Type aliases for clarity
FilePath: TypeAlias = str
RelativePath: TypeAlias = str

# NewTypes for identifiers
MirrorId = NewType("MirrorId", str)
AlternativeId = NewType("AlternativeId", str)
LibraryId = NewType("LibraryId", str)
UserId = NewType("UserId", str)


# Resource limits and defaults
class Limits:
    """System limits and default values."""

    # Path limits
    MAX_PATH_LENGTH = 4096
    MAX_FILENAME_LENGTH = 255

    # Naming limits
    MAX_ALTERNATIVE_NAME_LENGTH = 100
    MAX_LIBRARY_NAME_LENGTH = 255

    # Ghost mirrors (never finished creation) are reaped after this age
    DEFAULT_GHOST_THRESHOLD_MINUTES = 30

    # Scheduling
    DEFAULT_MIRROR_SYNC_INTERVAL_HOURS = 6
    DEFAULT_USER_RECONCILIATION_TIME = "03:00"


# Files never mirrored (artwork and sidecar metadata the host regenerates per language)
DEFAULT_EXCLUDED_EXTENSIONS = (
    ".nfo",
    ".jpg",
    ".jpeg",
    ".png",
    ".gif",
    ".webp",
    ".tbn",
    ".bmp",
)

# Directories skipped wholesale
DEFAULT_EXCLUDED_DIRECTORIES = (
    "extrafanart",
    "extrathumbs",
    ".trickplay",
    "metadata",
    ".actors",
)

# Directories mirrored in full even if their file extensions are excluded
DEFAULT_INCLUDED_DIRECTORIES = (
    ".trickplay",
    ".actors",
)

# Source tags recorded when a user's language is set
class SetBy:
    """Who or what last assigned a user's language."""

    MANUAL = "manual"
    AUTO = "auto"
    LDAP = "ldap"
    DEFAULT = "default"


# Configuration keys
class ConfigKey:
    """Application configuration key constants."""

    ROOT = "lingomirror"
    STORE_PATH = "lingomirror.store.path"
    HOST_PATH = "lingomirror.host.path"
    LOG_LEVEL = "lingomirror.logging.level"
    LOG_FILE = "lingomirror.logging.file"
    GHOST_THRESHOLD = "lingomirror.mirror.ghost_threshold_minutes"
    PROBE_HARDLINKS = "lingomirror.mirror.probe_hardlinks"


# Default library naming templates (Jinja2)
DEFAULT_LIBRARY_NAME_TEMPLATE = "{{ source }} ({{ alternative }})"
DEFAULT_TARGET_PATH_TEMPLATE = "{{ base }}/{{ source | slug }}"
