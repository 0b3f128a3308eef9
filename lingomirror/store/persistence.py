"""Durable storage backends for the configuration document."""

import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from lingomirror.core.constants import ErrorCode
from lingomirror.core.errors import LingoMirrorError
from lingomirror.store.models import StoreDocument


class PersistenceError(LingoMirrorError):
    """The configuration document could not be read or written."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.DEPENDENCY_ERROR):
        super().__init__(message, error_code)


class DocumentBackend(ABC):
    """Loads and saves a whole StoreDocument."""

    @abstractmethod
    def load(self) -> StoreDocument:
        """Load the document.

        Raises:
            PersistenceError: If the backend is unavailable or the data is corrupt
        """

    @abstractmethod
    def save(self, document: StoreDocument) -> None:
        """Persist the document.

        Raises:
            PersistenceError: If the write fails
        """


class YamlDocumentStore(DocumentBackend):
    """YAML file backend with atomic replace on save.

    A missing file loads as an empty document with default settings.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()

    def load(self) -> StoreDocument:
        if not self.path.exists():
            return StoreDocument()

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise PersistenceError(f"YAML parse error in {self.path}: {e}", ErrorCode.INVALID_INPUT)
        except OSError as e:
            raise PersistenceError(f"Error reading {self.path}: {e}")

        if data is None:
            return StoreDocument()
        if not isinstance(data, dict):
            raise PersistenceError(f"Invalid document format in {self.path}", ErrorCode.INVALID_INPUT)

        try:
            return StoreDocument.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceError(f"Invalid document in {self.path}: {e}", ErrorCode.INVALID_INPUT)

    def save(self, document: StoreDocument) -> None:
        data = document.to_dict()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise PersistenceError(f"Error writing {self.path}: {e}")


class MemoryDocumentStore(DocumentBackend):
    """In-memory backend for tests and embedding.

    Stores the serialized form, so callers never share objects with it.
    """

    def __init__(self, initial: Optional[StoreDocument] = None):
        self._data: Dict[str, Any] = (initial or StoreDocument()).to_dict()
        self._lock = threading.Lock()
        self.save_count = 0
        self.fail_loads = False
        self.fail_saves = False

    def load(self) -> StoreDocument:
        if self.fail_loads:
            raise PersistenceError("Memory backend unavailable")
        with self._lock:
            return StoreDocument.from_dict(self._data)

    def save(self, document: StoreDocument) -> None:
        if self.fail_saves:
            raise PersistenceError("Memory backend rejected write")
        with self._lock:
            self._data = document.to_dict()
            self.save_count += 1

    @property
    def data(self) -> Dict[str, Any]:
        """Last saved document in dictionary form."""
        with self._lock:
            return yaml.safe_load(yaml.safe_dump(self._data))
