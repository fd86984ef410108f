"""
Repository discovery inside an extracted upload.

An archive may hold a working copy at any depth, a bare repository, or the
repository contents directly at its root.
"""
import logging
import os
from pathlib import Path
from typing import Optional

import git
from git.exc import InvalidGitRepositoryError, NoSuchPathError

from gitvis.ingest.errors import RepositoryLocationError


logger = logging.getLogger(__name__)

METADATA_DIR = ".git"
BARE_MARKER = "HEAD"


def find_repository_root(root: Path) -> Optional[Path]:
    """
    Depth-first search, in lexical order, for the first repository candidate.

    A directory named `.git` matches as itself. A file named `HEAD` matches
    as its parent directory (bare layout). A directory's own entries are
    checked before descending into its subdirectories, and the search stops
    at the first match.

    Returns:
        Candidate path, or None if nothing matched
    """
    stack = [Path(root)]
    while stack:
        directory = stack.pop()
        try:
            entries = sorted(os.scandir(directory), key=lambda entry: entry.name)
        except OSError as e:
            logger.debug(f"Cannot list {directory}: {e}")
            continue

        subdirs = []
        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                if entry.name == METADATA_DIR:
                    return Path(entry.path)
                subdirs.append(Path(entry.path))
            elif entry.name == BARE_MARKER and entry.is_file(follow_symlinks=False):
                return directory
        # Reverse so the lexically first subdirectory is explored next
        stack.extend(reversed(subdirs))
    return None


def locate_repository(root: Path) -> Path:
    """Return the path to open as the repository, falling back to the root itself."""
    candidate = find_repository_root(root)
    if candidate is None:
        logger.info(f"No repository layout found under {root}; trying the root itself")
        return Path(root)
    logger.info(f"Repository candidate: {candidate}")
    return candidate


def open_repository(path: Path) -> git.Repo:
    """
    Open a repository, retrying once with parent-directory discovery.

    Raises:
        RepositoryLocationError: If neither attempt yields a repository
    """
    try:
        return git.Repo(str(path))
    except (InvalidGitRepositoryError, NoSuchPathError):
        pass

    try:
        return git.Repo(str(path), search_parent_directories=True)
    except (InvalidGitRepositoryError, NoSuchPathError) as e:
        raise RepositoryLocationError(f"No git repository at {path}: {e}") from e
