"""LingoMirror Core - Shared constants, errors and filesystem utilities.

Import specific functions from submodules:
    from lingomirror.core import constants
    from lingomirror.core.errors import NotFoundError
    from lingomirror.core.file_ops import create_hardlink
    from lingomirror.core.naming import NameRenderer
    from lingomirror.core.validators import ValidationError
"""
