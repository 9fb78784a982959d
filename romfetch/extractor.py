# romfetch/extractor.py
"""
Selective zip extraction.

Pulls named members out of a downloaded archive into the ROM folder, one
rule at a time, with path traversal protection.
"""

import os
import shutil
import zipfile
import zlib
from dataclasses import dataclass
from typing import List, Optional, Sequence
from tqdm import tqdm
from romfetch.catalog import ExtractRule
from romfetch.logger import get_logger

# Errors a damaged central directory can raise while the archive is opened.
# ValueError also covers UnicodeDecodeError from mangled member names.
ARCHIVE_ERRORS = (OSError, zipfile.BadZipFile, NotImplementedError, ValueError, EOFError)

# Errors a single member can raise while being read or written
MEMBER_ERRORS = (OSError, zipfile.BadZipFile, zlib.error, RuntimeError, EOFError, NotImplementedError)


class ArchiveHandle:
    """
    An open zip archive together with the file it was read from.

    Use as a context manager; both the zip state and the file are closed on
    exit, including when opening fails half way.

    Example:
        >>> with ArchiveHandle('game.zip') as archive:
        ...     archive.names()
    """

    def __init__(self, path: str):
        self.path = path
        self._file = None
        self._zip: Optional[zipfile.ZipFile] = None

    def open(self) -> 'ArchiveHandle':
        """
        Raises:
            OSError: If the file can't be opened
            zipfile.BadZipFile: If the central directory can't be parsed
            NotImplementedError: If the archive needs an unsupported zip version
        """
        self._file = open(self.path, 'rb')
        try:
            self._zip = zipfile.ZipFile(self._file, 'r')
        except BaseException:
            self._file.close()
            self._file = None
            raise
        return self

    def close(self) -> None:
        try:
            if self._zip is not None:
                self._zip.close()
        finally:
            self._zip = None
            if self._file is not None:
                self._file.close()
                self._file = None

    @property
    def closed(self) -> bool:
        return self._file is None

    def __enter__(self) -> 'ArchiveHandle':
        if self.closed:
            self.open()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def names(self) -> List[str]:
        return self._zip.namelist()

    def getinfo(self, member: str) -> zipfile.ZipInfo:
        """Raises KeyError if `member` isn't in the archive."""
        return self._zip.getinfo(member)

    def open_member(self, info: zipfile.ZipInfo):
        return self._zip.open(info, 'r')

    def unsafe_members(self) -> List[str]:
        """Member names that would escape the extraction folder."""
        return [name for name in self.names() if not is_enclosed_name(name)]


def is_enclosed_name(name: str) -> bool:
    """True if `name` is relative and has no `..` components."""
    if not name or '\0' in name:
        return False
    normalized = name.replace('\\', '/')
    if normalized.startswith('/'):
        return False
    # Drive letters (C:foo) only mean something on Windows but are never valid here
    if len(normalized) > 1 and normalized[1] == ':':
        return False
    return '..' not in normalized.split('/')


@dataclass
class ExtractResult:
    """Outcome of one extraction rule."""
    rule: ExtractRule
    success: bool
    destination: Optional[str] = None
    error: Optional[str] = None


def extract_members(archive: ArchiveHandle, rules: Sequence[ExtractRule],
                    output_root: str) -> List[ExtractResult]:
    """
    Extract each rule's member to `output_root / rule.dst`.

    Rules are handled independently and in order; a failed rule is logged
    and recorded and the next one is still attempted.

    Args:
        archive: Open ArchiveHandle
        rules: Extraction rules
        output_root: ROM folder the rule destinations are relative to

    Returns:
        list: One ExtractResult per rule, same order
    """
    logger = get_logger()
    results = []
    abs_root = os.path.normpath(os.path.abspath(output_root))

    progress = tqdm(total=len(rules), unit='file', desc='Extracting')
    try:
        for rule in rules:
            results.append(_extract_one(archive, rule, abs_root, logger))
            progress.update(1)
    finally:
        progress.close()

    failed = sum(1 for r in results if not r.success)
    if failed:
        logger.warning(f"{failed}/{len(rules)} files failed to extract from [{archive.path}]")
    return results


def _extract_one(archive: ArchiveHandle, rule: ExtractRule, abs_root: str, logger) -> ExtractResult:
    try:
        info = archive.getinfo(rule.src)
    except KeyError:
        logger.error(f"File {rule.src} not found in zip [{archive.path}]")
        logger.error("  The extract_to list in the catalog is likely malformed. "
                     "This is not a fault of this downloader.")
        return ExtractResult(rule, False, error='member not found')

    destination = os.path.normpath(os.path.abspath(os.path.join(abs_root, rule.dst)))
    if os.path.commonpath([abs_root, destination]) != abs_root or destination == abs_root:
        logger.error(f"Path traversal attempt detected: {rule.dst}")
        return ExtractResult(rule, False, error='path traversal')

    logger.info(f"Extracting {rule.src} to {destination}...")
    try:
        os.makedirs(os.path.dirname(destination), exist_ok=True)
        with archive.open_member(info) as source, open(destination, 'wb') as target:
            shutil.copyfileobj(source, target)
    except MEMBER_ERRORS as e:
        logger.error(f"File {rule.src} failed to extract from zip [{archive.path}]: {e}")
        if os.path.isfile(destination):
            os.remove(destination)
        return ExtractResult(rule, False, destination=destination, error='extraction failed')

    return ExtractResult(rule, True, destination=destination)


def extract_archive(archive_path: str, rules: Sequence[ExtractRule], output_root: str,
                    remove_archive: bool = True) -> Optional[List[ExtractResult]]:
    """
    Open `archive_path`, extract `rules` and optionally delete the archive.

    Returns:
        list of ExtractResult, or None if the archive couldn't be opened
        (in which case the file is left in place)
    """
    logger = get_logger()

    archive = ArchiveHandle(archive_path)
    try:
        archive.open()
    except ARCHIVE_ERRORS as e:
        logger.error(f"Failed to open zip [{archive_path}]: {e}")
        return None

    with archive:
        results = extract_members(archive, rules, output_root)

    # Handle is closed here, safe to delete
    if remove_archive:
        logger.debug(f"Removing archive: {archive_path}")
        os.remove(archive_path)

    return results
