#!/usr/bin/env python3
"""Host media server interfaces.

LingoMirror never owns libraries or users. It talks to the host through
two narrow interfaces:
- LibraryDirectory: list, register and remove libraries; add media paths;
  queue metadata refreshes
- UserDirectory: read and persist a user's library access policy

Example:
    >>> folders = library_directory.get_virtual_folders()
    >>> user = user_directory.get_user(user_id)
    >>> user.enable_all_folders = False
    >>> user_directory.update_user(user)
"""

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class LibraryOptions:
    """Per-library settings.

    Language fields are set per mirror; everything in ``extra`` (fetcher
    order, scan behaviour, subtitle settings) is copied from the source.
    """

    preferred_metadata_language: Optional[str] = None
    metadata_country_code: Optional[str] = None
    enabled: bool = True
    enable_realtime_monitor: bool = False
    enable_internet_providers: bool = True
    save_local_metadata: bool = False
    save_subtitles_with_media: bool = False
    save_lyrics_with_media: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    def for_mirror(self, language: str, country: str) -> "LibraryOptions":
        """Derive mirror library options from source options.

        Sidecar writing is forced off because mirror files share inodes
        with the source; realtime monitoring and internet providers are on.
        """
        return LibraryOptions(
            preferred_metadata_language=language,
            metadata_country_code=country,
            enabled=True,
            enable_realtime_monitor=True,
            enable_internet_providers=True,
            save_local_metadata=False,
            save_subtitles_with_media=False,
            save_lyrics_with_media=False,
            extra=copy.deepcopy(self.extra),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "preferred_metadata_language": self.preferred_metadata_language,
            "metadata_country_code": self.metadata_country_code,
            "enabled": self.enabled,
            "enable_realtime_monitor": self.enable_realtime_monitor,
            "enable_internet_providers": self.enable_internet_providers,
            "save_local_metadata": self.save_local_metadata,
            "save_subtitles_with_media": self.save_subtitles_with_media,
            "save_lyrics_with_media": self.save_lyrics_with_media,
            "extra": copy.deepcopy(self.extra),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "LibraryOptions":
        data = dict(data or {})
        known = {k: data.pop(k) for k in list(data) if k in cls.__dataclass_fields__ and k != "extra"}
        extra = data.pop("extra", None) or {}
        extra.update(data)
        return cls(extra=extra, **known)


@dataclass
class VirtualFolder:
    """A library registered with the host."""

    id: str
    name: str
    locations: List[str] = field(default_factory=list)
    collection_type: Optional[str] = None
    options: LibraryOptions = field(default_factory=LibraryOptions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "locations": list(self.locations),
            "collection_type": self.collection_type,
            "options": self.options.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VirtualFolder":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            locations=list(data.get("locations") or []),
            collection_type=data.get("collection_type"),
            options=LibraryOptions.from_dict(data.get("options")),
        )


@dataclass
class HostUser:
    """A host user and their library access policy."""

    id: str
    username: str
    is_administrator: bool = False
    enable_all_folders: bool = True
    enabled_folders: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "is_administrator": self.is_administrator,
            "enable_all_folders": self.enable_all_folders,
            "enabled_folders": list(self.enabled_folders),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HostUser":
        return cls(
            id=str(data["id"]),
            username=data.get("username", ""),
            is_administrator=bool(data.get("is_administrator", False)),
            enable_all_folders=bool(data.get("enable_all_folders", True)),
            enabled_folders=[str(f) for f in data.get("enabled_folders") or []],
        )


class LibraryDirectory(ABC):
    """Access to the host's library registry."""

    @abstractmethod
    def get_virtual_folders(self) -> List[VirtualFolder]:
        """Return every registered library."""

    def get_virtual_folder(self, library_id: str) -> Optional[VirtualFolder]:
        """Return one library by id, or None."""
        for folder in self.get_virtual_folders():
            if folder.id == library_id:
                return folder
        return None

    def get_virtual_folder_by_name(self, name: str) -> Optional[VirtualFolder]:
        """Return one library by case-insensitive name, or None."""
        folded = name.casefold()
        for folder in self.get_virtual_folders():
            if folder.name.casefold() == folded:
                return folder
        return None

    @abstractmethod
    def add_virtual_folder(
        self, name: str, collection_type: Optional[str], options: LibraryOptions
    ) -> VirtualFolder:
        """Register a new library with no paths."""

    @abstractmethod
    def remove_virtual_folder(self, name: str) -> None:
        """Unregister a library by name."""

    @abstractmethod
    def add_media_path(self, name: str, path: str) -> None:
        """Add a filesystem path to a library."""

    @abstractmethod
    def queue_refresh(self, library_id: str) -> None:
        """Ask the host to rescan a library and refetch its metadata."""


class UserDirectory(ABC):
    """Access to the host's users and their access policies."""

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[HostUser]:
        """Return a user by id, or None."""

    @abstractmethod
    def get_users(self) -> List[HostUser]:
        """Return every user."""

    @abstractmethod
    def update_user(self, user: HostUser) -> None:
        """Persist a user's access policy."""
