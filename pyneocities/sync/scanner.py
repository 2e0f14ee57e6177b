"""Directory scanning for deploy operations."""

import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..exceptions import ScanError
from ..utils import IGNORE_FILE_NAME, calculate_sha1
from .ignore import IgnoreRuleStack
from .manifest import FileEntry, Manifest

logger = logging.getLogger(__name__)


@dataclass
class ScanResult:
    """Outcome of scanning a local tree."""

    manifest: Manifest
    """Included regular files and the directories that were listed"""

    failures: list[ScanError] = field(default_factory=list)
    """Paths that could not be read; they are not in the manifest. A failed
    directory stands for its whole subtree."""

    @property
    def ok(self) -> bool:
        return not self.failures


@dataclass(frozen=True)
class _PendingDir:
    path: Path
    relative_path: str
    depth: int
    ancestors: frozenset
    """(st_dev, st_ino) of the directories on the way here"""


class DirectoryScanner:
    """Scans a local directory into a Manifest.

    Supports .neocitiesignore files for gitignore-style pattern matching.
    Rules of a directory apply to its whole subtree; a directory excluded by
    a rule is not entered, so rule files below it are never read. A
    directory whose rule file cannot be read is reported as a failure and
    not entered either.

    Examples:
        >>> scanner = DirectoryScanner()
        >>> result = scanner.scan(Path("/home/user/site"))
        >>> for path, entry in result.manifest.items():
        ...     print(path, entry.fingerprint)

        >>> # With extra patterns and parallel hashing
        >>> scanner = DirectoryScanner(ignore_patterns=["*.tmp"], max_workers=4)
    """

    def __init__(
        self,
        ignore_patterns: Optional[list[str]] = None,
        use_ignore_files: bool = True,
        follow_symlinks: bool = True,
        max_workers: int = 1,
        abort_on_error: bool = False,
    ):
        """Initialize directory scanner.

        Args:
            ignore_patterns: Extra glob patterns applied from the root
            use_ignore_files: Whether to load .neocitiesignore files
            follow_symlinks: Follow symbolic links (skip them otherwise)
            max_workers: Number of threads used to hash files
            abort_on_error: Raise the first ScanError instead of recording it
        """
        self.ignore_patterns = ignore_patterns or []
        self.use_ignore_files = use_ignore_files
        self.follow_symlinks = follow_symlinks
        self.max_workers = max(1, max_workers)
        self.abort_on_error = abort_on_error

    def _fail(self, failures: list[ScanError], path: str, reason: object) -> None:
        error = ScanError(path, str(reason))
        if self.abort_on_error:
            raise error
        logger.warning("%s", error)
        failures.append(error)

    def scan(self, root: Path) -> ScanResult:
        """Scan a directory tree.

        Args:
            root: Directory to scan

        Returns:
            ScanResult with the manifest and per-path failures

        Raises:
            ScanError: If root is missing or not a directory, or on the first
                unreadable path when ``abort_on_error`` is set
        """
        root = Path(root).expanduser().absolute()
        if not root.exists():
            raise ScanError(str(root), "directory does not exist")
        if not root.is_dir():
            raise ScanError(str(root), "not a directory")

        failures: list[ScanError] = []
        files, directories = self._walk(root, failures)
        entries = self._fingerprint_all(files, failures)

        failures.sort(key=lambda e: e.path)
        logger.debug(
            "Scanned %s: %d file(s), %d failure(s)", root, len(entries), len(failures)
        )
        return ScanResult(manifest=Manifest(entries, directories), failures=failures)

    def _walk(
        self, root: Path, failures: list[ScanError]
    ) -> tuple[list[tuple[Path, str]], list[str]]:
        """Collect included regular files and the directories listed.

        Returns:
            (absolute path, relative path) of each file, and the relative
            path of each directory below the root
        """
        rules = IgnoreRuleStack(self.ignore_patterns)
        files: list[tuple[Path, str]] = []
        directories: list[str] = []
        pending = [_PendingDir(root, "", 0, frozenset())]

        while pending:
            current = pending.pop()
            display = current.relative_path or "."

            try:
                stat = current.path.stat()
            except OSError as e:
                self._fail(failures, display, e)
                continue
            key = (stat.st_dev, stat.st_ino)
            if key in current.ancestors:
                logger.warning("Skipping %s: symlink cycle", display)
                continue

            if self.use_ignore_files:
                try:
                    rules.enter_directory(
                        current.path, current.relative_path, current.depth
                    )
                except OSError as e:
                    # Without its rules the subtree cannot be filtered
                    reason = f"cannot read {IGNORE_FILE_NAME}: {e}"
                    self._fail(failures, display, reason)
                    continue
            else:
                rules.truncate(current.depth)
                rules.push(current.relative_path, [])

            try:
                with os.scandir(current.path) as it:
                    children = sorted(it, key=lambda d: d.name)
            except OSError as e:
                self._fail(failures, display, e)
                continue
            if current.relative_path:
                directories.append(current.relative_path)

            subdirs = []
            for child in children:
                relative_path = _join(current.relative_path, child.name)
                try:
                    if child.is_symlink() and not self.follow_symlinks:
                        logger.debug("Skipping symlink: %s", relative_path)
                        continue
                    is_dir = child.is_dir()
                    is_file = not is_dir and child.is_file()
                except OSError as e:
                    self._fail(failures, relative_path, e)
                    continue

                if is_file and child.name == IGNORE_FILE_NAME:
                    continue
                if not is_dir and not is_file:
                    # Broken symlinks, sockets, devices...
                    logger.debug("Skipping non-regular file: %s", relative_path)
                    continue
                if rules.is_excluded(relative_path, is_dir=is_dir):
                    logger.debug("Ignoring (from rules): %s", relative_path)
                    continue

                if is_dir:
                    subdirs.append(
                        _PendingDir(
                            Path(child.path),
                            relative_path,
                            current.depth + 1,
                            current.ancestors | {key},
                        )
                    )
                else:
                    files.append((Path(child.path), relative_path))

            # Reversed so the first child is popped next
            pending.extend(reversed(subdirs))

        return files, directories

    def _fingerprint_all(
        self, files: list[tuple[Path, str]], failures: list[ScanError]
    ) -> list[FileEntry]:
        if self.max_workers == 1 or len(files) <= 1:
            entries = []
            for path, relative_path in files:
                try:
                    entries.append(_fingerprint(path, relative_path))
                except OSError as e:
                    self._fail(failures, relative_path, e)
            return entries

        logger.debug("Hashing %d files with %d workers", len(files), self.max_workers)
        entries = []
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                executor.submit(_fingerprint, path, relative_path): relative_path
                for path, relative_path in files
            }
            for future in as_completed(futures):
                try:
                    entries.append(future.result())
                except OSError as e:
                    try:
                        self._fail(failures, futures[future], e)
                    except ScanError:
                        for pending in futures:
                            pending.cancel()
                        raise
        return entries


def _join(parent: str, name: str) -> str:
    return f"{parent}/{name}" if parent else name


def _fingerprint(path: Path, relative_path: str) -> FileEntry:
    """Hash one file.

    Raises:
        OSError: If the file cannot be read
    """
    size = path.stat().st_size
    return FileEntry(
        path=relative_path,
        size=size,
        fingerprint=calculate_sha1(path),
        local_path=path,
    )
