"""Configuration file handling for PyNeocities.

The configuration is a TOML document with one table per site::

    [site."example"]
    auth = "username:password"   # or an API key
    path = "/home/me/site"
    free_account = true
    proxy = "http://localhost:8080"
"""

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional

import tomli_w

from .api import NeocitiesClient
from .auth import Auth
from .exceptions import NeocitiesConfigError
from .sync.context import DeployContext
from .sync.executor import ErrorPolicy
from .sync.policy import AccountPolicy

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = "pyneocities"
CONFIG_FILE_NAME = "config.toml"


def default_config_file() -> Path:
    """Default configuration path, ``$XDG_CONFIG_HOME/pyneocities/config.toml``."""
    base = os.environ.get("XDG_CONFIG_HOME")
    config_home = Path(base) if base else Path.home() / ".config"
    return config_home / CONFIG_DIR_NAME / CONFIG_FILE_NAME


@dataclass
class Site:
    """Configuration for a site."""

    auth: Auth
    """Credentials or API key"""

    path: str
    """Local directory deployed to the site"""

    free_account: Optional[bool] = None
    """Whether the account is free (restricted file types)"""

    proxy: Optional[str] = None
    """HTTP proxy for API requests"""

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any]) -> "Site":
        try:
            auth = data["auth"]
            path = data["path"]
        except KeyError as e:
            raise NeocitiesConfigError(
                f"Site '{name}' is missing '{e.args[0]}'"
            ) from e
        if not isinstance(auth, str) or not isinstance(path, str):
            raise NeocitiesConfigError(
                f"Site '{name}': 'auth' and 'path' must be strings"
            )
        free_account = data.get("free_account")
        if free_account is not None and not isinstance(free_account, bool):
            raise NeocitiesConfigError(
                f"Site '{name}': 'free_account' must be a boolean"
            )
        return cls(
            auth=Auth.from_string(auth),
            path=path,
            free_account=free_account,
            proxy=data.get("proxy") or None,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"auth": self.auth.to_string(), "path": self.path}
        if self.free_account is not None:
            data["free_account"] = self.free_account
        if self.proxy:
            data["proxy"] = self.proxy
        return data

    @property
    def policy(self) -> AccountPolicy:
        return AccountPolicy.for_account(bool(self.free_account))

    def build_client(self, **kwargs: Any) -> NeocitiesClient:
        """Build an API client for this site."""
        return NeocitiesClient(auth=self.auth, proxy=self.proxy, **kwargs)

    def to_context(
        self,
        name: str,
        error_policy: ErrorPolicy = ErrorPolicy.ABORT_ON_ERROR,
        max_workers: int = 1,
        follow_symlinks: bool = True,
        ignore_patterns: Iterable[str] = (),
        dry_run: bool = False,
    ) -> DeployContext:
        """Freeze this site's settings into a DeployContext."""
        return DeployContext(
            name=name,
            auth=self.auth,
            local_path=Path(self.path).expanduser(),
            policy=self.policy,
            proxy=self.proxy,
            error_policy=error_policy,
            max_workers=max_workers,
            follow_symlinks=follow_symlinks,
            ignore_patterns=tuple(ignore_patterns),
            dry_run=dry_run,
        )


@dataclass
class Config:
    """The configured sites, in document order."""

    sites: dict[str, Site] = field(default_factory=dict)

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load the configuration from a file.

        Raises:
            NeocitiesConfigError: If the file is missing or invalid
        """
        logger.debug("Loading configuration from %s", path)
        try:
            data = tomllib.loads(Path(path).read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise NeocitiesConfigError(f"Config file not found: {path}") from e
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise NeocitiesConfigError(f"Cannot read config file {path}: {e}") from e

        sites_data = data.get("site", {})
        if not isinstance(sites_data, dict):
            raise NeocitiesConfigError("'site' must be a table")
        return cls(
            sites={
                name: Site.from_dict(name, site_data)
                for name, site_data in sites_data.items()
            }
        )

    @classmethod
    def load_or_default(cls, path: Path) -> "Config":
        """Load the configuration, or return an empty one if the file is missing."""
        if not Path(path).exists():
            return cls()
        return cls.load(path)

    def save(self, path: Path) -> None:
        """Save the configuration, creating parent directories as needed."""
        path = Path(path)
        logger.debug("Saving configuration to %s", path)
        if not path.parent.exists():
            logger.debug("Creating parent directories for %s", path)
            path.parent.mkdir(parents=True, exist_ok=True)
        document = {"site": {name: site.to_dict() for name, site in self.sites.items()}}
        path.write_bytes(tomli_w.dumps(document).encode("utf-8"))
        logger.info("Configuration saved to %s", path)

    def has_site(self, name: str) -> bool:
        return name in self.sites

    def insert_site(self, name: str, site: Site) -> None:
        self.sites[name] = site

    def select(self, names: Iterable[str] = ()) -> list[tuple[str, Site]]:
        """Sites to work with: the named ones, or all of them.

        Raises:
            NeocitiesConfigError: If a name is not configured
        """
        names = list(names)
        if not names:
            return list(self.sites.items())
        selected = []
        for name in names:
            if name not in self.sites:
                raise NeocitiesConfigError(f"Site not found: {name}")
            selected.append((name, self.sites[name]))
        return selected
