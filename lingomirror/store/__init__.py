"""LingoMirror configuration store.

- models: Alternative, Mirror, UserLanguageConfig, LdapGroupMapping, Settings
- persistence: YAML and in-memory document backends
- repository: ConfigurationStore, the locked single source of truth
"""

from .models import (
    Alternative,
    LdapGroupMapping,
    Mirror,
    Settings,
    StoreDocument,
    SyncStatus,
    UserLanguageConfig,
    new_id,
    utcnow,
)
from .persistence import DocumentBackend, MemoryDocumentStore, PersistenceError, YamlDocumentStore
from .repository import ConfigurationStore, RemoveAlternativeResult, RemoveOutcome

__all__ = [
    "Alternative",
    "ConfigurationStore",
    "DocumentBackend",
    "LdapGroupMapping",
    "MemoryDocumentStore",
    "Mirror",
    "PersistenceError",
    "RemoveAlternativeResult",
    "RemoveOutcome",
    "Settings",
    "StoreDocument",
    "SyncStatus",
    "UserLanguageConfig",
    "YamlDocumentStore",
    "new_id",
    "utcnow",
]
