"""Account-tier filtering of the local manifest."""

from dataclasses import dataclass, field

from ..api import ALLOWED_EXTENSIONS_FOR_FREE_ACCOUNTS
from ..exceptions import PolicyViolation
from ..utils import file_extension
from .manifest import Manifest


@dataclass(frozen=True)
class AccountPolicy:
    """File types an account may host."""

    restricted: bool = False
    allowed_extensions: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def free(cls) -> "AccountPolicy":
        """Policy of a free Neocities account."""
        return cls(
            restricted=True, allowed_extensions=ALLOWED_EXTENSIONS_FOR_FREE_ACCOUNTS
        )

    @classmethod
    def unrestricted(cls) -> "AccountPolicy":
        """Policy of a supporter account: any file type."""
        return cls(restricted=False)

    @classmethod
    def for_account(cls, free_account: bool) -> "AccountPolicy":
        return cls.free() if free_account else cls.unrestricted()


def is_allowed(path: str, policy: AccountPolicy) -> bool:
    """Check whether a file may be uploaded under a policy.

    Examples:
        >>> policy = AccountPolicy(True, frozenset({"html", "css", "js"}))
        >>> is_allowed("index.HTML", policy)
        True
        >>> is_allowed("site.zip", policy)
        False
    """
    if not policy.restricted:
        return True
    allowed = {ext.lower() for ext in policy.allowed_extensions}
    return file_extension(path) in allowed


def filter_manifest(manifest: Manifest, policy: AccountPolicy) -> Manifest:
    """Drop the entries a restricted policy does not allow.

    Identity for unrestricted policies. Directories are kept even when every
    file in them is dropped.
    """
    if not policy.restricted:
        return manifest
    return Manifest(
        (entry for entry in manifest.values() if is_allowed(entry.path, policy)),
        manifest.directories,
    )


def find_violations(
    manifest: Manifest, policy: AccountPolicy
) -> list[PolicyViolation]:
    """One PolicyViolation per entry :func:`filter_manifest` would drop."""
    if not policy.restricted:
        return []
    return [
        PolicyViolation(entry.path, file_extension(entry.path))
        for entry in manifest.values()
        if not is_allowed(entry.path, policy)
    ]
