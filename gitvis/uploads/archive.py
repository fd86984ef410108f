"""
Upload archive handling.

Uploaded repositories arrive as zip archives and are unpacked into a fresh
directory per upload before parsing.
"""
import logging
import time
import zipfile
import zlib
from pathlib import Path


logger = logging.getLogger(__name__)


class ArchiveError(Exception):
    """The uploaded file is not a readable zip archive."""


def new_extract_dir(work_dir: Path, upload_id: int) -> Path:
    """Create a unique extraction directory for an upload."""
    extract_dir = Path(work_dir) / f"gitvis-{upload_id}-{time.time_ns()}"
    extract_dir.mkdir(parents=True, exist_ok=False)
    return extract_dir


def extract_archive(zip_path: Path, dest: Path) -> Path:
    """
    Extract a zip archive into `dest`.

    Args:
        zip_path: Archive to read
        dest: Existing or new destination directory

    Returns:
        The destination directory

    Raises:
        ArchiveError: If the archive is missing, corrupt, encrypted, uses an
            unsupported compression method, or cannot be written out
    """
    dest = Path(dest)
    dest.mkdir(parents=True, exist_ok=True)

    try:
        with zipfile.ZipFile(zip_path) as archive:
            bad_member = archive.testzip()
            if bad_member is not None:
                raise ArchiveError(f"Corrupt archive member: {bad_member}")
            archive.extractall(dest)
            member_count = len(archive.infolist())
    except (zipfile.BadZipFile, NotImplementedError, RuntimeError, zlib.error, OSError) as e:
        # zipfile reports unknown compression as NotImplementedError, encryption as RuntimeError
        raise ArchiveError(f"Cannot read archive {zip_path}: {e}") from e

    logger.info(f"Extracted {member_count} member(s) from {zip_path} into {dest}")
    return dest
