"""Filesystem operations on changelog files.

Writes never overwrite: reconstructing a changelog must not clobber a real
file that appeared in the meantime. Renames replace their destination.
"""

import logging
import os
from pathlib import Path
from typing import List, Union

from src.changelog_sync.exceptions import PersistenceError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def file_exists(path: PathLike) -> bool:
    """True for an existing regular file (directories do not count)."""
    return Path(path).is_file()


def read_text(path: PathLike) -> str:
    """Read a changelog as UTF-8, keeping its line endings."""
    try:
        with open(path, "r", encoding="utf-8", newline="") as f:
            return f.read()
    except UnicodeError as e:
        raise PersistenceError(f"{path} is not valid UTF-8: {e}", filename=str(path)) from e
    except OSError as e:
        raise PersistenceError(f"Cannot read {path}: {e}", filename=str(path)) from e


def write_new(path: PathLike, content: str) -> None:
    """Create a file with the given content; fails if it already exists."""
    try:
        data = content.encode("utf-8")
    except UnicodeError as e:
        raise PersistenceError(f"Cannot encode {path}: {e}", filename=str(path)) from e
    try:
        with open(path, "xb") as f:
            f.write(data)
    except FileExistsError as e:
        raise PersistenceError(f"The file {path} exists", filename=str(path)) from e
    except OSError as e:
        raise PersistenceError(f"Cannot write {path}: {e}", filename=str(path)) from e
    logger.info("Created: %s", path)


def make_parents(path: PathLike) -> List[Path]:
    """Create the missing parent directories of ``path``.

    Returns the directories created, deepest first, for ``remove_dirs``.
    """
    created: List[Path] = []
    parent = Path(path).parent
    while not parent.exists():
        created.append(parent)
        parent = parent.parent
    try:
        for directory in reversed(created):
            directory.mkdir()
    except OSError as e:
        raise PersistenceError(f"Cannot create {directory}: {e}", filename=str(path)) from e
    if created:
        logger.info("Created directory: %s", created[0])
    return created


def remove_dirs(directories: List[Path]) -> None:
    """Remove directories returned by ``make_parents``; they must be empty."""
    for directory in directories:
        try:
            os.rmdir(directory)
        except OSError as e:
            raise PersistenceError(f"Cannot delete {directory}: {e}") from e
        logger.debug("Deleted directory: %s", directory)


def delete(path: PathLike) -> None:
    try:
        os.remove(path)
    except OSError as e:
        raise PersistenceError(f"Cannot delete {path}: {e}", filename=str(path)) from e
    logger.debug("Deleted: %s", path)


def rename(source: PathLike, destination: PathLike) -> None:
    """Move a file, replacing any existing destination."""
    try:
        os.replace(source, destination)
    except OSError as e:
        raise PersistenceError(
            f"{source} was not successfully renamed to {destination}: {e}",
            filename=str(source),
        ) from e
    logger.info("Renamed %s to %s", source, destination)
