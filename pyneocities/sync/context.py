"""Immutable settings threaded through a deploy."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..auth import Auth
from .executor import ErrorPolicy
from .policy import AccountPolicy


@dataclass(frozen=True)
class DeployContext:
    """Everything one site's deploy needs, fixed for the whole run."""

    name: str
    """Site name (as in the config file)"""

    auth: Auth
    local_path: Path
    policy: AccountPolicy = field(default_factory=AccountPolicy.unrestricted)
    proxy: Optional[str] = None
    error_policy: ErrorPolicy = ErrorPolicy.ABORT_ON_ERROR
    max_workers: int = 1
    follow_symlinks: bool = True
    ignore_patterns: tuple[str, ...] = ()
    dry_run: bool = False
