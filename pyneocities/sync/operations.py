"""Remote operations used by the deploy engine."""

import logging
from typing import Any, Protocol, Sequence

from ..exceptions import ErrorKind, NeocitiesAPIError, NeocitiesError, RemoteFetchError
from ..models import ListEntry
from .manifest import FileEntry, Manifest

logger = logging.getLogger(__name__)


class RemoteSite(Protocol):
    """The part of the API client the deploy engine needs."""

    def list(self) -> list[ListEntry]: ...

    def upload(self, files: Sequence[tuple[str, bytes]]) -> Any: ...

    def delete_many(self, paths: Sequence[str]) -> Any: ...


class SyncOperations:
    """Upload, delete and list against a remote site."""

    def __init__(self, client: RemoteSite):
        """Initialize sync operations.

        Args:
            client: Neocities API client (or anything shaped like it)
        """
        self.client = client

    def fetch_manifest(self) -> Manifest:
        """Fetch the current remote file set.

        Raises:
            RemoteFetchError: If the list cannot be retrieved
        """
        try:
            entries = self.client.list()
        except NeocitiesError as e:
            raise RemoteFetchError(f"Cannot list remote files: {e}") from e
        return Manifest.from_list_entries(entries)

    def upload_file(self, entry: FileEntry) -> Any:
        """Upload a local file to its remote path.

        Args:
            entry: Local entry (must carry ``local_path``)

        Returns:
            Upload response from API

        Raises:
            OSError: If the local file is unknown or cannot be read
            NeocitiesError: If the upload fails
        """
        if entry.local_path is None:
            raise FileNotFoundError(f"No local file for {entry.path}")
        content = entry.local_path.read_bytes()
        return self.client.upload([(entry.path, content)])

    def delete_remote(self, path: str) -> bool:
        """Delete a remote file or directory (with its contents).

        Deleting a path the site no longer has is not an error.

        Args:
            path: Remote path

        Returns:
            True if the file was deleted, False if it was already gone
        """
        try:
            self.client.delete_many([path])
        except NeocitiesAPIError as e:
            if e.kind == ErrorKind.MISSING_FILES:
                logger.debug("%s already absent from the site", path)
                return False
            raise
        return True
