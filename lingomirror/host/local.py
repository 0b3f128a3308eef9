"""Standalone host backed by a YAML inventory file.

Used by the command-line tool when no media server is attached, and by the
test suite. Libraries and users live in one YAML document:

    libraries:
      - id: 9f0c...
        name: Movies
        locations: [/media/movies]
        collection_type: movies
    users:
      - id: 71ab...
        username: alice
        enable_all_folders: true
"""

import copy
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, List, Optional, Union

import yaml

from lingomirror.core.errors import ConflictError, NotFoundError
from lingomirror.host.interfaces import (
    HostUser,
    LibraryDirectory,
    LibraryOptions,
    UserDirectory,
    VirtualFolder,
)
from lingomirror.infrastructure.logger import Logger, get_logger
from lingomirror.store.models import new_id
from lingomirror.store.persistence import PersistenceError


class LocalHost(LibraryDirectory, UserDirectory):
    """In-process host implementing both directories.

    With ``path`` set, every change is written back to the YAML file.
    Without it the inventory lives in memory only.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None, logger: Optional[Logger] = None):
        self.path = Path(path).expanduser() if path else None
        self._logger = logger or get_logger()
        self._lock = threading.RLock()
        self._libraries: Dict[str, VirtualFolder] = {}
        self._users: Dict[str, HostUser] = {}
        self.refresh_requests: List[str] = []
        if self.path and self.path.exists():
            self._load()

    def _load(self) -> None:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise PersistenceError(f"Error reading host inventory {self.path}: {e}")

        for item in data.get("libraries") or []:
            folder = VirtualFolder.from_dict(item)
            self._libraries[folder.id] = folder
        for item in data.get("users") or []:
            user = HostUser.from_dict(item)
            self._users[user.id] = user

    def _save(self) -> None:
        if not self.path:
            return
        data = {
            "libraries": [f.to_dict() for f in self._libraries.values()],
            "users": [u.to_dict() for u in self._users.values()],
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=str(self.path.parent))
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
            os.replace(tmp_name, self.path)
        except OSError as e:
            raise PersistenceError(f"Error writing host inventory {self.path}: {e}")

    # Inventory management, used by the CLI and tests

    def add_library(
        self,
        name: str,
        locations: List[str],
        collection_type: Optional[str] = None,
        options: Optional[LibraryOptions] = None,
        library_id: Optional[str] = None,
    ) -> VirtualFolder:
        """Register a library with paths in one step."""
        with self._lock:
            if self.get_virtual_folder_by_name(name):
                raise ConflictError(f"Library already exists: {name}")
            folder = VirtualFolder(
                id=library_id or new_id(),
                name=name,
                locations=[os.path.abspath(p) for p in locations],
                collection_type=collection_type,
                options=options or LibraryOptions(),
            )
            self._libraries[folder.id] = folder
            self._save()
            return copy.deepcopy(folder)

    def add_user(self, username: str, user_id: Optional[str] = None, is_administrator: bool = False) -> HostUser:
        """Register a user with full library access."""
        with self._lock:
            user = HostUser(id=user_id or new_id(), username=username, is_administrator=is_administrator)
            self._users[user.id] = user
            self._save()
            return copy.deepcopy(user)

    def remove_user(self, user_id: str) -> bool:
        with self._lock:
            if self._users.pop(user_id, None) is None:
                return False
            self._save()
            return True

    # LibraryDirectory

    def get_virtual_folders(self) -> List[VirtualFolder]:
        with self._lock:
            return [copy.deepcopy(f) for f in self._libraries.values()]

    def add_virtual_folder(
        self, name: str, collection_type: Optional[str], options: LibraryOptions
    ) -> VirtualFolder:
        return self.add_library(name, [], collection_type, options)

    def remove_virtual_folder(self, name: str) -> None:
        with self._lock:
            folder = self.get_virtual_folder_by_name(name)
            if folder is None:
                raise NotFoundError(f"Library not found: {name}")
            del self._libraries[folder.id]
            self._save()

    def add_media_path(self, name: str, path: str) -> None:
        with self._lock:
            folder = self.get_virtual_folder_by_name(name)
            if folder is None:
                raise NotFoundError(f"Library not found: {name}")
            stored = self._libraries[folder.id]
            path = os.path.abspath(path)
            if path not in stored.locations:
                stored.locations.append(path)
            self._save()

    def queue_refresh(self, library_id: str) -> None:
        with self._lock:
            if library_id not in self._libraries:
                raise NotFoundError(f"Library not found: {library_id}")
            self.refresh_requests.append(library_id)
        self._logger.debug("Queued library refresh", library=library_id)

    # UserDirectory

    def get_user(self, user_id: str) -> Optional[HostUser]:
        with self._lock:
            user = self._users.get(user_id)
            return copy.deepcopy(user) if user else None

    def get_users(self) -> List[HostUser]:
        with self._lock:
            return [copy.deepcopy(u) for u in self._users.values()]

    def update_user(self, user: HostUser) -> None:
        with self._lock:
            if user.id not in self._users:
                raise NotFoundError(f"User not found: {user.id}")
            self._users[user.id] = copy.deepcopy(user)
            self._save()
