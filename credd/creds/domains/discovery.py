"""Recursive discovery of project directories."""
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Set, Union

from .errors import DiscoveryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DirEntry:
    name: str
    dir: Path  # parent directory
    filename: Path  # resolved path of the directory itself


def get_dirs(
    root: Union[str, Path],
    exclude: Iterable[str] = (),
    prune: Optional[Callable[[Path], bool]] = None,
) -> List[DirEntry]:
    """
    List every directory below ``root``, depth first, names sorted per level.

    Symlinked directories are followed once; a directory whose resolved path
    was already visited is skipped, which breaks symlink cycles.

    Args:
        root: Directory to walk (not itself reported)
        exclude: Directory names that are neither reported nor descended into
        prune: Called with each directory's path; True skips it like ``exclude``

    Raises:
        DiscoveryError: If ``root`` is not a directory
    """
    root = Path(root)
    if not root.is_dir():
        raise DiscoveryError(f"{root} is not a directory")

    excluded = set(exclude)
    visited: Set[Path] = {root.resolve()}
    result: List[DirEntry] = []

    def walk(current: Path) -> None:
        try:
            with os.scandir(current) as it:
                entries = sorted(
                    (e for e in it if e.is_dir(follow_symlinks=True)),
                    key=lambda e: e.name,
                )
        except OSError as e:
            logger.warning(f"Cannot read directory {current}: {e}")
            return

        for entry in entries:
            if entry.name in excluded:
                continue
            if prune is not None and prune(Path(entry.path)):
                logger.debug(f"Pruned {entry.path}")
                continue
            resolved = Path(entry.path).resolve()
            if resolved in visited:
                logger.debug(f"Skipping already visited directory {entry.path}")
                continue
            visited.add(resolved)
            result.append(DirEntry(name=entry.name, dir=current, filename=resolved))
            walk(Path(entry.path))

    walk(root)
    return result


def find_projects(
    root: Union[str, Path],
    marker: str,
    exclude: Iterable[str] = (),
    build_dir_name: Optional[str] = None,
) -> List[Path]:
    """
    Directories below ``root`` that contain the ``marker`` file.

    A directory named ``build_dir_name`` is skipped only when its parent is a
    project itself; elsewhere it is searched like any other directory.
    """
    def is_project_build_dir(path: Path) -> bool:
        return path.name == build_dir_name and (path.parent / marker).is_file()

    prune = is_project_build_dir if build_dir_name else None
    projects = [
        entry.filename
        for entry in get_dirs(root, exclude, prune)
        if (entry.filename / marker).is_file()
    ]
    logger.info(f"Found {len(projects)} project(s) under {root}")
    return projects
