"""
LingoMirror Core: Filesystem operations.

This module wraps the handful of filesystem primitives the mirror engine
needs:
- Hardlink creation with parent directory creation and target replacement
- Same-volume detection (device id, with a probe hardlink as fallback)
- Path containment checks
- Empty directory pruning bounded by a base directory
- File signatures (size, mtime, inode) used for incremental diffing

Example:
    >>> create_hardlink("/media/movies/a.mkv", "/media/pt/movies/a.mkv")
    True
    >>> are_on_same_filesystem("/media/movies", "/media/pt")
    True
"""
import os
import shutil
import uuid
from pathlib import Path
from typing import NamedTuple, Optional, Union

from lingomirror.core.constants import ErrorCode
from lingomirror.core.errors import LingoMirrorError
from lingomirror.infrastructure.logger import Logger, get_logger

PathLike = Union[str, Path]

PROBE_PREFIX = ".lingomirror_probe_"


class FileOperationError(LingoMirrorError):
    """File operation error."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.INTERNAL_ERROR):
        super().__init__(message, error_code)


class FileSignature(NamedTuple):
    """Size, modification time and inode identifying a file version.

    A hardlink shares all three with its source, so any difference means
    the link points at stale content.
    """

    size: int
    mtime_ns: int
    ino: int = 0


def create_hardlink(source: PathLike, link: PathLike, logger: Optional[Logger] = None) -> bool:
    """Create a hardlink at ``link`` pointing to ``source``.

    Parent directories of ``link`` are created as needed and an existing
    file at ``link`` is replaced.

    Args:
        source: Existing file to link to
        link: Path of the new link
        logger: Optional logger for failure details

    Returns:
        True if the link was created, False if the source is missing or
        the link syscall failed

    Raises:
        FileOperationError: If either argument is empty
    """
    if not source:
        raise FileOperationError("Source path cannot be empty", ErrorCode.INVALID_INPUT)
    if not link:
        raise FileOperationError("Link path cannot be empty", ErrorCode.INVALID_INPUT)

    logger = logger or get_logger()
    source = Path(source)
    link = Path(link)

    if not source.is_file():
        logger.warning("Source file does not exist", source=str(source))
        return False

    try:
        link.parent.mkdir(parents=True, exist_ok=True)
        if link.exists() or link.is_symlink():
            link.unlink()
        os.link(source, link)
        return True
    except OSError as e:
        logger.error("Failed to create hardlink", source=str(source), link=str(link), error=str(e))
        return False


def _existing_ancestor(path: Path) -> Optional[Path]:
    """Return the nearest existing directory at or above ``path``."""
    current = path
    while True:
        if current.is_dir():
            return current
        if current.parent == current:
            return None
        current = current.parent


def _probe_hardlink(source_dir: Path, target_dir: Path) -> bool:
    """Try a throwaway hardlink from ``source_dir`` into ``target_dir``."""
    probe_source = source_dir / f"{PROBE_PREFIX}{uuid.uuid4().hex}"
    probe_link = target_dir / f"{PROBE_PREFIX}{uuid.uuid4().hex}"
    try:
        probe_source.write_text("probe")
    except OSError:
        return False
    try:
        os.link(probe_source, probe_link)
        return True
    except OSError:
        return False
    finally:
        for probe in (probe_link, probe_source):
            try:
                probe.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                get_logger().debug("Could not remove probe file", path=str(probe), error=str(e))


def are_on_same_filesystem(path1: PathLike, path2: PathLike, probe: bool = False) -> bool:
    """Check whether two paths live on the same volume.

    Paths that do not exist yet are resolved to their nearest existing
    ancestor. Device ids are compared first; with ``probe`` set, a real
    hardlink is attempted between the two locations as well, which also
    catches bind mounts that share a device id but refuse links.

    Args:
        path1: First path
        path2: Second path
        probe: Also attempt a test hardlink

    Returns:
        True if hardlinks between the paths are possible
    """
    if not path1 or not path2:
        return False

    dir1 = _existing_ancestor(Path(path1).absolute())
    dir2 = _existing_ancestor(Path(path2).absolute())
    if dir1 is None or dir2 is None:
        return False

    try:
        if os.stat(dir1).st_dev != os.stat(dir2).st_dev:
            return False
    except OSError:
        return False

    if probe:
        return _probe_hardlink(dir1, dir2)
    return True


def is_path_inside(path: PathLike, base: PathLike) -> bool:
    """Check whether ``path`` is ``base`` or nested below it.

    Comparison is component-wise on normalized absolute paths, so
    ``/media/movies2`` is not inside ``/media/movies``.
    """
    if not path or not base:
        return False
    full_path = Path(os.path.normpath(os.path.abspath(path)))
    full_base = Path(os.path.normpath(os.path.abspath(base)))
    return full_path == full_base or full_base in full_path.parents


def is_directory_empty(path: PathLike) -> bool:
    """Return True if ``path`` is a directory with no entries."""
    try:
        with os.scandir(path) as entries:
            return next(entries, None) is None
    except OSError:
        return False


def cleanup_empty_directories(directory: PathLike, base: PathLike) -> int:
    """Remove ``directory`` and its empty ancestors, stopping at ``base``.

    ``base`` itself is never removed, and nothing outside it is touched.

    Args:
        directory: Innermost directory to start from
        base: Boundary directory

    Returns:
        Number of directories removed
    """
    if not directory or not base:
        return 0

    full_base = Path(os.path.normpath(os.path.abspath(base)))
    current = Path(os.path.normpath(os.path.abspath(directory)))
    removed = 0

    while current != full_base and full_base in current.parents:
        if not current.is_dir() or not is_directory_empty(current):
            break
        try:
            current.rmdir()
        except OSError:
            break
        removed += 1
        current = current.parent

    return removed


def remove_tree(path: PathLike) -> None:
    """Recursively delete a directory tree.

    Raises:
        FileOperationError: If the tree could not be removed
    """
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        return
    except OSError as e:
        raise FileOperationError(f"Failed to delete directory {path}: {e}") from e


def file_signature(path: PathLike) -> FileSignature:
    """Return the (size, mtime, inode) signature of a file.

    Raises:
        OSError: If the file cannot be stat'ed
    """
    st = os.stat(path)
    return FileSignature(st.st_size, st.st_mtime_ns, st.st_ino)
