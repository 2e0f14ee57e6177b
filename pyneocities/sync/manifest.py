"""File entries and manifests for local and remote file sets."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, Optional

from ..models import ListEntry


@dataclass(frozen=True)
class FileEntry:
    """A regular file with its content fingerprint."""

    path: str
    """Relative path (using forward slashes for cross-platform compatibility)"""

    size: int
    """File size in bytes"""

    fingerprint: str
    """SHA-1 hex digest of the raw file bytes"""

    local_path: Optional[Path] = field(default=None, compare=False)
    """Absolute path on the local file system, for local entries"""

    def same_content(self, other: "FileEntry") -> bool:
        return self.fingerprint == other.fingerprint

    def to_dict(self) -> dict:
        return {"path": self.path, "size": self.size, "fingerprint": self.fingerprint}


def parent_directories(path: str) -> list[str]:
    """Ancestor directories of a relative path, outermost first.

    Examples:
        >>> parent_directories("a/b/c.html")
        ['a', 'a/b']
    """
    parts = path.split("/")[:-1]
    return ["/".join(parts[: i + 1]) for i in range(len(parts))]


def is_within(path: str, directory: str) -> bool:
    """True if ``path`` is ``directory`` itself or lies below it.

    ``"."`` stands for the root and contains every path.
    """
    if directory in ("", "."):
        return True
    return path == directory or path.startswith(directory + "/")


class Manifest(Mapping):
    """Immutable mapping from relative path to FileEntry.

    Iteration is always in sorted path order, whatever order the entries
    were discovered in. Directories are kept apart from the file entries:
    ``directories`` holds the ones given explicitly plus every parent of a
    file.

    Examples:
        >>> m = Manifest([FileEntry("b.txt", 3, "x"), FileEntry("a.txt", 2, "y")])
        >>> list(m)
        ['a.txt', 'b.txt']
        >>> Manifest([FileEntry("css/site.css", 1, "z")]).directories
        ('css',)
    """

    __slots__ = ("_entries", "_directories")

    def __init__(
        self, entries: Iterable[FileEntry] = (), directories: Iterable[str] = ()
    ):
        """Build a manifest.

        Raises:
            ValueError: If two entries share a path, or a path is both a file
                and a directory
        """
        by_path: dict[str, FileEntry] = {}
        for entry in entries:
            if entry.path in by_path:
                raise ValueError(f"Duplicate path in manifest: {entry.path}")
            by_path[entry.path] = entry
        self._entries: dict[str, FileEntry] = {
            path: by_path[path] for path in sorted(by_path)
        }

        dirs = set(directories)
        for path in by_path:
            dirs.update(parent_directories(path))
        clash = dirs & by_path.keys()
        if clash:
            raise ValueError(f"Path is both a file and a directory: {min(clash)}")
        self._directories: tuple[str, ...] = tuple(sorted(dirs))

    @classmethod
    def from_list_entries(cls, entries: Iterable[ListEntry]) -> "Manifest":
        """Build the remote manifest from the API's file list."""
        files = []
        directories = []
        for entry in entries:
            if entry.is_directory:
                directories.append(entry.path)
            else:
                files.append(
                    FileEntry(
                        path=entry.path,
                        size=entry.size or 0,
                        fingerprint=(entry.sha1_hash or "").lower(),
                    )
                )
        return cls(files, directories)

    def __getitem__(self, path: str) -> FileEntry:
        return self._entries[path]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return (
            f"Manifest({list(self._entries.values())!r}, "
            f"directories={list(self._directories)!r})"
        )

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Manifest):
            return (
                list(self._entries.values()) == list(other._entries.values())
                and self._directories == other._directories
            )
        return NotImplemented

    def __hash__(self) -> int:
        return hash((tuple(self._entries.values()), self._directories))

    @property
    def directories(self) -> tuple[str, ...]:
        """Directory paths in sorted order."""
        return self._directories

    def has_directory(self, path: str) -> bool:
        return path in self._directories

    @property
    def total_size(self) -> int:
        return sum(entry.size for entry in self._entries.values())

    def entries(self) -> list[FileEntry]:
        """Entries in path order."""
        return list(self._entries.values())

    def prune(self, paths: Iterable[str]) -> "Manifest":
        """Copy without the files and directories at or below ``paths``.

        Args:
            paths: Relative paths; ``"."`` removes everything
        """
        paths = list(paths)
        if not paths:
            return self
        return Manifest(
            (
                entry
                for entry in self._entries.values()
                if not any(is_within(entry.path, p) for p in paths)
            ),
            (d for d in self._directories if not any(is_within(d, p) for p in paths)),
        )
