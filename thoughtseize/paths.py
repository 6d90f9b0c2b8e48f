"""
Resolve user supplied secret paths without letting them escape the project.
"""

import logging
import pathlib

from .utils import InvalidPath, PathTraversal, in_directory

log = logging.getLogger(__name__)


def canonical(path: pathlib.Path) -> pathlib.Path:
    try:
        return path.resolve(strict=True)
    except (OSError, RuntimeError) as error:
        raise InvalidPath(f"Invalid path {path}: {error}") from error


def check_containment(path: pathlib.Path, root: pathlib.Path) -> None:
    if not in_directory(canonical(path), canonical(root)):
        log.warning(f"Rejected {path} as it is outside of {root}")
        raise PathTraversal(f"Path traversal detected: {path}")


def resolve(root: pathlib.Path, relative: str) -> pathlib.Path:
    """
    Join a relative path onto the project root and check it stays inside it.

    Existing paths are returned in their canonical form. Paths that do not
    exist yet are checked through their parent directory (when it exists) and
    may not contain '..' segments, as containment can't be checked for
    directories that will only be created later.
    """
    if not relative:
        raise InvalidPath("Invalid path: no path given")

    pure = pathlib.PurePosixPath(relative)
    if pure.is_absolute() or pathlib.Path(relative).is_absolute():
        raise PathTraversal(f"Path traversal detected: {relative}")

    target = root / relative

    if target.exists():
        check_containment(target, root)
        return canonical(target)

    parent = target.parent
    if parent == target:
        raise InvalidPath(f"Invalid path {relative}: no parent")
    # Broken and looping symlinks don't exist but must still fail to resolve.
    if parent.exists() or parent.is_symlink():
        check_containment(parent, root)

    if '..' in pure.parts:
        raise PathTraversal(f"Path traversal detected: {relative}")

    return target
