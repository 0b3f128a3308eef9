"""
LingoMirror Core: Input Validators.

This module provides input validation functions for alternative names,
language codes, paths and global settings updates.
"""
import os
import re
from typing import Any, Dict, Iterable, List, Union

from lingomirror.core.constants import ErrorCode, Limits
from lingomirror.core.errors import LingoMirrorError

LANGUAGE_CODE_RE = re.compile(r"^[a-z]{2,3}(-[A-Z]{2})?$")
TIME_OF_DAY_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class ValidationError(LingoMirrorError):
    """Base exception for validation errors."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.INVALID_INPUT):
        """Initialize ValidationError.

        Args:
            message: Error message
            error_code: Associated error code
        """
        super().__init__(message, error_code)


def validate_path(path: str) -> bool:
    """Validate that a path is safe and valid.

    Args:
        path: Path to validate

    Returns:
        True if valid

    Raises:
        ValidationError: If path is invalid
    """
    if not path:
        raise ValidationError("Path cannot be empty")

    if not isinstance(path, str):
        raise ValidationError(f"Path must be string, got {type(path)}")

    if not path.strip():
        raise ValidationError("Path cannot be blank")

    # Check length
    if len(path) > Limits.MAX_PATH_LENGTH:
        raise ValidationError(f"Path exceeds maximum length ({Limits.MAX_PATH_LENGTH})")

    # Check for null bytes
    if "\0" in path:
        raise ValidationError("Path contains null bytes")

    # Check for control characters
    if any(ord(c) < 32 and c not in "\t\n\r" for c in path):
        raise ValidationError("Path contains control characters")

    # Check for path traversal attempts
    if ".." in path.replace("\\", "/").split("/"):
        raise ValidationError("Path traversal not allowed")

    return True


def validate_absolute_path(path: str) -> bool:
    """Validate a path that must be absolute.

    Args:
        path: Path to validate

    Returns:
        True if valid

    Raises:
        ValidationError: If path is invalid or relative
    """
    validate_path(path)
    if not os.path.isabs(path):
        raise ValidationError(f"Path must be absolute: {path}")
    return True


def validate_alternative_name(name: str) -> bool:
    """Validate a language alternative's display name.

    Args:
        name: Alternative name

    Returns:
        True if valid

    Raises:
        ValidationError: If name is invalid
    """
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Alternative name cannot be empty")

    if len(name) > Limits.MAX_ALTERNATIVE_NAME_LENGTH:
        raise ValidationError(
            f"Alternative name exceeds maximum length ({Limits.MAX_ALTERNATIVE_NAME_LENGTH})"
        )

    if any(c in name for c in "/\\\0"):
        raise ValidationError(f"Alternative name contains invalid characters: {name}")

    return True


def validate_language_code(code: str) -> bool:
    """Validate a language code such as ``pt`` or ``pt-BR``.

    Args:
        code: Language code

    Returns:
        True if valid

    Raises:
        ValidationError: If code is not ``ll`` or ``ll-CC``
    """
    if not isinstance(code, str) or not LANGUAGE_CODE_RE.match(code):
        raise ValidationError(f"Invalid language code: {code}. Expected 'll' or 'll-CC'")
    return True


def split_language_code(code: str) -> tuple:
    """Split ``ll-CC`` into (metadata_language, metadata_country).

    Country is empty when the code has no region part.
    """
    validate_language_code(code)
    language, _, country = code.partition("-")
    return language, country


def validate_library_name(name: str) -> bool:
    """Validate a host library name.

    Raises:
        ValidationError: If name is empty, too long or contains separators
    """
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Library name cannot be empty")
    if len(name) > Limits.MAX_LIBRARY_NAME_LENGTH:
        raise ValidationError(f"Library name exceeds maximum length ({Limits.MAX_LIBRARY_NAME_LENGTH})")
    if any(c in name for c in "/\\\0"):
        raise ValidationError(f"Library name contains invalid characters: {name}")
    return True


def normalize_extensions(extensions: Iterable[str]) -> List[str]:
    """Normalize an extension list to lowercase with a leading dot.

    Args:
        extensions: Raw extension entries (``jpg``, ``.JPG``)

    Returns:
        Deduplicated, normalized list preserving first-seen order

    Raises:
        ValidationError: If an entry is empty or contains a separator
    """
    result: List[str] = []
    for ext in extensions:
        if not isinstance(ext, str) or not ext.strip():
            raise ValidationError("Extension cannot be empty")
        ext = ext.strip().lower()
        if "/" in ext or "\\" in ext:
            raise ValidationError(f"Extension contains path separator: {ext}")
        if not ext.startswith("."):
            ext = "." + ext
        if ext not in result:
            result.append(ext)
    return result


def normalize_directory_names(names: Iterable[str]) -> List[str]:
    """Normalize a directory-name list.

    Raises:
        ValidationError: If an entry is empty or contains a separator
    """
    result: List[str] = []
    for name in names:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Directory name cannot be empty")
        name = name.strip()
        if "/" in name or "\\" in name:
            raise ValidationError(f"Directory name must not contain separators: {name}")
        if name.lower() not in (n.lower() for n in result):
            result.append(name)
    return result


def validate_time_of_day(value: str) -> bool:
    """Validate an ``HH:MM`` 24-hour time string.

    Raises:
        ValidationError: If value is not a valid time
    """
    if not isinstance(value, str) or not TIME_OF_DAY_RE.match(value):
        raise ValidationError(f"Invalid time of day: {value}. Expected HH:MM")
    return True


def validate_positive_number(value: Union[int, float], field_name: str) -> bool:
    """Validate a strictly positive number.

    Raises:
        ValidationError: If value is not a positive number
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValidationError(f"{field_name} must be positive number: {value}")
    return True


def validate_settings_update(settings: Dict[str, Any]) -> bool:
    """Validate a partial global settings update.

    Args:
        settings: Mapping of setting name to new value

    Returns:
        True if valid

    Raises:
        ValidationError: If any field is invalid or unknown
    """
    if not isinstance(settings, dict):
        raise ValidationError("Settings must be a dictionary")

    valid_fields = {
        "default_alternative_id",
        "auto_manage_new_users",
        "sync_mirrors_after_library_scan",
        "excluded_extensions",
        "excluded_directories",
        "included_directories",
        "mirror_sync_interval_hours",
        "user_reconciliation_time",
        "ghost_threshold_minutes",
        "library_name_template",
    }
    unknown_fields = set(settings.keys()) - valid_fields
    if unknown_fields:
        raise ValidationError(f"Unknown settings fields: {', '.join(sorted(unknown_fields))}")

    for flag in ("auto_manage_new_users", "sync_mirrors_after_library_scan"):
        if flag in settings and not isinstance(settings[flag], bool):
            raise ValidationError(f"{flag} must be boolean: {settings[flag]}")

    for field_name in ("excluded_extensions", "excluded_directories", "included_directories"):
        if field_name in settings and not isinstance(settings[field_name], (list, tuple)):
            raise ValidationError(f"{field_name} must be a list")

    if "excluded_extensions" in settings:
        normalize_extensions(settings["excluded_extensions"])
    for field_name in ("excluded_directories", "included_directories"):
        if field_name in settings:
            normalize_directory_names(settings[field_name])

    if "mirror_sync_interval_hours" in settings:
        validate_positive_number(settings["mirror_sync_interval_hours"], "mirror_sync_interval_hours")
    if "ghost_threshold_minutes" in settings:
        validate_positive_number(settings["ghost_threshold_minutes"], "ghost_threshold_minutes")
    if "user_reconciliation_time" in settings:
        validate_time_of_day(settings["user_reconciliation_time"])

    return True
