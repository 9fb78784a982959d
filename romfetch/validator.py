# romfetch/validator.py
"""
Structural integrity checks for downloaded zip archives.

Only the archive structure is checked (central directory and member names);
payload checksums are not verified.
"""

import os
from romfetch.extractor import ArchiveHandle, ARCHIVE_ERRORS
from romfetch.logger import get_logger

ARCHIVE_EXTENSIONS = ('.zip',)


def is_archive(file_path):
    """True if the path's extension marks it as a zip archive."""
    return str(file_path).lower().endswith(ARCHIVE_EXTENSIONS)


def check_archive(file_path):
    """
    Validate an archive on disk, deleting it if it's unusable.

    Args:
        file_path: Path to check

    Returns:
        bool: False if the file was invalid and has been deleted, True otherwise
              (valid archive, non-archive file, or no regular file at the path)
    """
    logger = get_logger()
    file_path = str(file_path)

    if not is_archive(file_path) or not os.path.isfile(file_path):
        return True

    error = None
    try:
        with ArchiveHandle(file_path) as archive:
            unsafe = archive.unsafe_members()
            if unsafe:
                error = f"unsafe member name {unsafe[0]!r}"
    except ARCHIVE_ERRORS as e:
        error = f"{type(e).__name__}: {e}"

    if error is None:
        logger.debug(f"Archive OK: {file_path}")
        return True

    logger.error(f"Error reading zip file [{file_path}] (deleting): {error}")
    os.remove(file_path)
    return False
