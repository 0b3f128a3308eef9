"""Formatting helpers that render domain entities in log lines as ``Name (id)``."""

from typing import Any, Optional


def _describe(name: Optional[str], entity_id: Any) -> str:
    if name:
        return f"{name} ({entity_id})"
    return str(entity_id)


def log_mirror(mirror: Any) -> str:
    """Describe a mirror by its target library name, falling back to the source name."""
    if mirror is None:
        return "<none>"
    name = getattr(mirror, "target_library_name", None) or getattr(mirror, "source_library_name", None)
    return _describe(name, mirror.id)


def log_alternative(alternative: Any) -> str:
    """Describe a language alternative."""
    if alternative is None:
        return "<none>"
    return _describe(alternative.name, alternative.id)


def log_user(user: Any) -> str:
    """Describe a host user (or a bare user id)."""
    if user is None:
        return "<none>"
    if isinstance(user, str):
        return user
    return _describe(getattr(user, "username", None), user.id)


def log_library(library: Any) -> str:
    """Describe a host library."""
    if library is None:
        return "<none>"
    return _describe(getattr(library, "name", None), library.id)
