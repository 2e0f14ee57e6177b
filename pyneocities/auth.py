"""Authentication methods for the Neocities API."""

import base64
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Auth:
    """Either a username/password pair or an API key.

    Examples:
        >>> Auth.from_string("username:password").header()
        'Basic dXNlcm5hbWU6cGFzc3dvcmQ='
        >>> Auth.from_string("api_key").header()
        'Bearer api_key'
    """

    api_key: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None

    @classmethod
    def from_string(cls, value: str) -> "Auth":
        """Parse the form stored in the config file.

        A string with a colon is a ``username:password`` pair, anything
        else is an API key.
        """
        if ":" in value:
            username, password = value.split(":", 1)
            return cls(username=username, password=password)
        return cls(api_key=value)

    @classmethod
    def credentials(cls, username: str, password: str) -> "Auth":
        return cls(username=username, password=password)

    @property
    def is_api_key(self) -> bool:
        return self.api_key is not None

    def header(self) -> str:
        """Value of the Authorization HTTP header."""
        if self.api_key is not None:
            return f"Bearer {self.api_key}"
        token = f"{self.username}:{self.password}".encode("utf-8")
        return f"Basic {base64.b64encode(token).decode('ascii')}"

    def to_string(self) -> str:
        """Inverse of :meth:`from_string`."""
        if self.api_key is not None:
            return self.api_key
        return f"{self.username}:{self.password}"

    def __repr__(self) -> str:
        if self.api_key is not None:
            masked = self.api_key[:6] + "*" * max(0, 32 - 6)
            return f"Auth(api_key={masked!r})"
        return f"Auth(username={self.username!r}, password='********')"
