"""Host media server integration.

- interfaces: LibraryDirectory and UserDirectory contracts plus value types
- local: YAML-backed LocalHost for standalone use and tests
"""

from .interfaces import HostUser, LibraryDirectory, LibraryOptions, UserDirectory, VirtualFolder
from .local import LocalHost

__all__ = [
    "HostUser",
    "LibraryDirectory",
    "LibraryOptions",
    "LocalHost",
    "UserDirectory",
    "VirtualFolder",
]
