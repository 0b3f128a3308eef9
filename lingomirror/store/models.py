#!/usr/bin/env python3
"""Persistent data model for LingoMirror.

The configuration document holds:
- Alternatives: a language variant (name, metadata language/country,
  destination base path) owning an ordered list of mirrors
- Mirrors: one source library reflected into one hardlinked tree
- User language assignments
- LDAP group mappings (stored only, resolution happens elsewhere)
- Global settings

Every model round-trips through plain dictionaries so the document can be
persisted as YAML.

Example:
    >>> alt = Alternative(name="Portuguese", language_code="pt-BR",
    ...                   metadata_language="pt", metadata_country="BR",
    ...                   destination_base_path="/media/pt")
    >>> Alternative.from_dict(alt.to_dict()) == alt
    True
"""

import copy
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Dict, List, Optional

from lingomirror.core.constants import (
    DEFAULT_EXCLUDED_DIRECTORIES,
    DEFAULT_EXCLUDED_EXTENSIONS,
    DEFAULT_INCLUDED_DIRECTORIES,
    DEFAULT_LIBRARY_NAME_TEMPLATE,
    LINGOMIRROR_DOCUMENT_VERSION,
    Limits,
)


def new_id() -> str:
    """Generate a new entity identifier."""
    return uuid.uuid4().hex


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _dump_time(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _load_time(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SyncStatus(IntEnum):
    """Mirror lifecycle state. Pending is initial, no state is terminal."""

    PENDING = 0
    SYNCING = 1
    SYNCED = 2
    ERROR = 3


@dataclass
class Mirror:
    """One source library reflected into a hardlinked target tree."""

    source_library_id: str
    source_library_name: str
    target_path: str
    target_library_name: str
    id: str = field(default_factory=new_id)
    target_library_id: Optional[str] = None
    collection_type: Optional[str] = None
    status: SyncStatus = SyncStatus.PENDING
    last_synced_at: Optional[datetime] = None
    last_sync_file_count: int = 0
    last_error: Optional[str] = None
    created_at: Optional[datetime] = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source_library_id": self.source_library_id,
            "source_library_name": self.source_library_name,
            "target_library_id": self.target_library_id,
            "target_library_name": self.target_library_name,
            "target_path": self.target_path,
            "collection_type": self.collection_type,
            "status": self.status.name.lower(),
            "last_synced_at": _dump_time(self.last_synced_at),
            "last_sync_file_count": self.last_sync_file_count,
            "last_error": self.last_error,
            "created_at": _dump_time(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Mirror":
        status = data.get("status", SyncStatus.PENDING)
        if isinstance(status, str):
            status = SyncStatus[status.upper()]
        else:
            status = SyncStatus(status)
        return cls(
            id=str(data["id"]),
            source_library_id=str(data["source_library_id"]),
            source_library_name=data.get("source_library_name", ""),
            target_library_id=data.get("target_library_id"),
            target_library_name=data.get("target_library_name", ""),
            target_path=data.get("target_path", ""),
            collection_type=data.get("collection_type"),
            status=status,
            last_synced_at=_load_time(data.get("last_synced_at")),
            last_sync_file_count=int(data.get("last_sync_file_count") or 0),
            last_error=data.get("last_error"),
            created_at=_load_time(data.get("created_at")),
        )

    def deep_copy(self) -> "Mirror":
        return copy.deepcopy(self)


@dataclass
class Alternative:
    """A language variant owning its mirrors."""

    name: str
    language_code: str
    metadata_language: str
    metadata_country: str
    destination_base_path: str
    id: str = field(default_factory=new_id)
    mirrors: List[Mirror] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    modified_at: Optional[datetime] = None

    def find_mirror(self, mirror_id: str) -> Optional[Mirror]:
        """Return the mirror with ``mirror_id`` or None."""
        for mirror in self.mirrors:
            if mirror.id == mirror_id:
                return mirror
        return None

    def find_mirror_for_source(self, source_library_id: str) -> Optional[Mirror]:
        """Return this alternative's mirror of a source library, if any."""
        for mirror in self.mirrors:
            if mirror.source_library_id == source_library_id:
                return mirror
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "language_code": self.language_code,
            "metadata_language": self.metadata_language,
            "metadata_country": self.metadata_country,
            "destination_base_path": self.destination_base_path,
            "created_at": _dump_time(self.created_at),
            "modified_at": _dump_time(self.modified_at),
            "mirrors": [m.to_dict() for m in self.mirrors],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Alternative":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            language_code=data.get("language_code", ""),
            metadata_language=data.get("metadata_language", ""),
            metadata_country=data.get("metadata_country", ""),
            destination_base_path=data.get("destination_base_path", ""),
            created_at=_load_time(data.get("created_at")) or utcnow(),
            modified_at=_load_time(data.get("modified_at")),
            mirrors=[Mirror.from_dict(m) for m in data.get("mirrors") or []],
        )

    def deep_copy(self) -> "Alternative":
        return copy.deepcopy(self)


@dataclass
class UserLanguageConfig:
    """A user's language assignment."""

    user_id: str
    selected_alternative_id: Optional[str] = None
    manually_set: bool = False
    is_plugin_managed: bool = False
    set_by: Optional[str] = None
    set_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "selected_alternative_id": self.selected_alternative_id,
            "manually_set": self.manually_set,
            "is_plugin_managed": self.is_plugin_managed,
            "set_by": self.set_by,
            "set_at": _dump_time(self.set_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserLanguageConfig":
        return cls(
            user_id=str(data["user_id"]),
            selected_alternative_id=data.get("selected_alternative_id"),
            manually_set=bool(data.get("manually_set", False)),
            is_plugin_managed=bool(data.get("is_plugin_managed", False)),
            set_by=data.get("set_by"),
            set_at=_load_time(data.get("set_at")),
        )

    def deep_copy(self) -> "UserLanguageConfig":
        return copy.deepcopy(self)


@dataclass
class LdapGroupMapping:
    """Maps a directory group to an alternative. Higher priority wins."""

    group_dn: str
    alternative_id: str
    group_name: str = ""
    priority: int = 0
    id: str = field(default_factory=new_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "group_dn": self.group_dn,
            "group_name": self.group_name,
            "alternative_id": self.alternative_id,
            "priority": self.priority,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LdapGroupMapping":
        return cls(
            id=str(data["id"]),
            group_dn=data.get("group_dn", ""),
            group_name=data.get("group_name", ""),
            alternative_id=str(data.get("alternative_id", "")),
            priority=int(data.get("priority") or 0),
        )

    def deep_copy(self) -> "LdapGroupMapping":
        return copy.deepcopy(self)


@dataclass
class Settings:
    """Global settings stored alongside alternatives."""

    default_alternative_id: Optional[str] = None
    auto_manage_new_users: bool = False
    sync_mirrors_after_library_scan: bool = True
    excluded_extensions: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDED_EXTENSIONS))
    excluded_directories: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDED_DIRECTORIES))
    included_directories: List[str] = field(default_factory=lambda: list(DEFAULT_INCLUDED_DIRECTORIES))
    mirror_sync_interval_hours: float = Limits.DEFAULT_MIRROR_SYNC_INTERVAL_HOURS
    user_reconciliation_time: str = Limits.DEFAULT_USER_RECONCILIATION_TIME
    ghost_threshold_minutes: float = Limits.DEFAULT_GHOST_THRESHOLD_MINUTES
    library_name_template: str = DEFAULT_LIBRARY_NAME_TEMPLATE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "default_alternative_id": self.default_alternative_id,
            "auto_manage_new_users": self.auto_manage_new_users,
            "sync_mirrors_after_library_scan": self.sync_mirrors_after_library_scan,
            "excluded_extensions": list(self.excluded_extensions),
            "excluded_directories": list(self.excluded_directories),
            "included_directories": list(self.included_directories),
            "mirror_sync_interval_hours": self.mirror_sync_interval_hours,
            "user_reconciliation_time": self.user_reconciliation_time,
            "ghost_threshold_minutes": self.ghost_threshold_minutes,
            "library_name_template": self.library_name_template,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        defaults = cls()
        merged = defaults.to_dict()
        merged.update({k: v for k, v in (data or {}).items() if k in merged and v is not None})
        return cls(**merged)

    def deep_copy(self) -> "Settings":
        return copy.deepcopy(self)


@dataclass
class StoreDocument:
    """The whole persisted configuration."""

    alternatives: List[Alternative] = field(default_factory=list)
    user_languages: List[UserLanguageConfig] = field(default_factory=list)
    ldap_group_mappings: List[LdapGroupMapping] = field(default_factory=list)
    settings: Settings = field(default_factory=Settings)
    version: int = LINGOMIRROR_DOCUMENT_VERSION

    def iter_mirrors(self):
        """Yield (alternative, mirror) pairs across the document."""
        for alternative in self.alternatives:
            for mirror in alternative.mirrors:
                yield alternative, mirror

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "settings": self.settings.to_dict(),
            "alternatives": [a.to_dict() for a in self.alternatives],
            "user_languages": [u.to_dict() for u in self.user_languages],
            "ldap_group_mappings": [m.to_dict() for m in self.ldap_group_mappings],
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "StoreDocument":
        data = data or {}
        return cls(
            version=int(data.get("version") or LINGOMIRROR_DOCUMENT_VERSION),
            settings=Settings.from_dict(data.get("settings") or {}),
            alternatives=[Alternative.from_dict(a) for a in data.get("alternatives") or []],
            user_languages=[UserLanguageConfig.from_dict(u) for u in data.get("user_languages") or []],
            ldap_group_mappings=[
                LdapGroupMapping.from_dict(m) for m in data.get("ldap_group_mappings") or []
            ],
        )

    def deep_copy(self) -> "StoreDocument":
        return copy.deepcopy(self)
