"""LingoMirror - Per-language hardlinked library mirrors.

Subpackages:
    core: constants, errors, validators and filesystem helpers
    infrastructure: logging and configuration
    rules: file classification for mirror scans
    store: persisted alternatives, mirrors and user assignments
    host: media server library and user directories
    mirror: mirror creation, sync, deletion and orphan cleanup
    access: per-user library access projection
"""

from lingomirror.core.constants import LINGOMIRROR_VERSION

__version__ = LINGOMIRROR_VERSION
