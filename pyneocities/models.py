"""Data models for Neocities API responses."""

from dataclasses import dataclass, field
from typing import Any, Optional

from .exceptions import NeocitiesInvalidResponseError


@dataclass
class ListEntry:
    """An item of the ``/api/list`` response.

    Files carry ``size`` and ``sha1_hash``; directories carry neither.
    """

    path: str
    is_directory: bool
    updated_at: str = ""
    size: Optional[int] = None
    sha1_hash: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ListEntry":
        """Create a ListEntry from a JSON object.

        Raises:
            NeocitiesInvalidResponseError: If a required field is missing
        """
        try:
            path = data["path"]
            is_directory = bool(data["is_directory"])
        except (KeyError, TypeError) as e:
            raise NeocitiesInvalidResponseError(
                f"Malformed list entry: {data!r}"
            ) from e
        if not is_directory and (
            data.get("size") is None or data.get("sha1_hash") is None
        ):
            raise NeocitiesInvalidResponseError(
                f"File entry without size or hash: {path}"
            )
        return cls(
            path=path,
            is_directory=is_directory,
            updated_at=data.get("updated_at", ""),
            size=data.get("size"),
            sha1_hash=data.get("sha1_hash"),
        )


@dataclass
class SiteInfo:
    """The ``/api/info`` response."""

    sitename: str
    views: int = 0
    hits: int = 0
    created_at: str = ""
    last_updated: Optional[str] = None
    domain: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    latest_ipfs_hash: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SiteInfo":
        if "sitename" not in data:
            raise NeocitiesInvalidResponseError("Site info without sitename")
        return cls(
            sitename=data["sitename"],
            views=data.get("views") or 0,
            hits=data.get("hits") or 0,
            created_at=data.get("created_at") or "",
            last_updated=data.get("last_updated"),
            domain=data.get("domain"),
            tags=list(data.get("tags") or []),
            latest_ipfs_hash=data.get("latest_ipfs_hash"),
        )
