"""API client for Neocities."""

from __future__ import annotations

import logging
import os
import random
import time
from typing import Any, Sequence

import httpx

from . import __version__
from .auth import Auth
from .exceptions import (
    ErrorKind,
    NeocitiesAPIError,
    NeocitiesAuthenticationError,
    NeocitiesConfigError,
    NeocitiesError,
    NeocitiesInvalidResponseError,
    NeocitiesNetworkError,
)
from .models import ListEntry, SiteInfo
from .utils import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_DELAY

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://neocities.org/api"
DEFAULT_USER_AGENT = f"pyneocities/{__version__}"

# Base URL override, used to point the client at a local test server
API_URL_ENV_VAR = "NEOCITIES_API_URL"

# File types free accounts may host, see https://neocities.org/site_files/allowed_types
ALLOWED_EXTENSIONS_FOR_FREE_ACCOUNTS: frozenset[str] = frozenset(
    {
        "apng",
        "asc",
        "atom",
        "avif",
        "bin",
        "css",
        "csv",
        "dae",
        "eot",
        "epub",
        "geojson",
        "gif",
        "gltf",
        "gpg",
        "htm",
        "html",
        "ico",
        "jpeg",
        "jpg",
        "js",
        "json",
        "key",
        "kml",
        "knowl",
        "less",
        "manifest",
        "map",
        "markdown",
        "md",
        "mf",
        "mid",
        "midi",
        "mtl",
        "obj",
        "opml",
        "osdx",
        "otf",
        "pdf",
        "pgp",
        "pls",
        "png",
        "rdf",
        "resolvehandle",
        "rss",
        "sass",
        "scss",
        "svg",
        "text",
        "toml",
        "tsv",
        "ttf",
        "txt",
        "webapp",
        "webmanifest",
        "webp",
        "woff",
        "woff2",
        "xcf",
        "xml",
        "yaml",
        "yml",
    }
)


class NeocitiesClient:
    """Client for interacting with the Neocities API."""

    def __init__(
        self,
        auth: Auth,
        api_url: str | None = None,
        proxy: str | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize Neocities API client.

        Args:
            auth: Credentials or API key
            api_url: Optional API URL (defaults to $NEOCITIES_API_URL, then
                https://neocities.org/api)
            proxy: Optional HTTP proxy URL
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (default: 30.0)
            transport: Optional httpx transport (used by tests)
        """
        if auth is None:
            raise NeocitiesConfigError("No credentials configured for this site")
        self.auth = auth
        self.api_url = (
            api_url or os.environ.get(API_URL_ENV_VAR) or DEFAULT_API_URL
        ).rstrip("/")
        self.proxy = proxy
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            kwargs: dict[str, Any] = {}
            if self.proxy:
                kwargs["proxy"] = self.proxy
            if self._transport is not None:
                kwargs["transport"] = self._transport
            self._client = httpx.Client(
                headers={
                    "User-Agent": DEFAULT_USER_AGENT,
                    "Accept": "application/json",
                    "Accept-Charset": "utf-8",
                    "Authorization": self.auth.header(),
                },
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                **kwargs,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> NeocitiesClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # =========================
    # Request handling
    # =========================

    def _should_retry(self, exception: Exception, attempt: int) -> bool:
        """Determine if a request should be retried.

        Args:
            exception: The exception that occurred
            attempt: Current attempt number (0-based)

        Returns:
            True if the request should be retried, False otherwise
        """
        if attempt >= self.max_retries:
            return False

        if isinstance(exception, NeocitiesNetworkError):
            return True

        if isinstance(exception, NeocitiesAPIError):
            # Only bare status errors (rate limit, server errors) are transient
            return exception.retryable

        return False

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # Add jitter: +/- 25% of base delay
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _parse_response(self, response: httpx.Response, field: str) -> Any:
        """Extract ``field`` from the API's JSON envelope.

        Args:
            response: HTTP response
            field: Name of the payload field of a successful response

        Returns:
            The payload value

        Raises:
            NeocitiesAuthenticationError: If the API reports invalid_auth
            NeocitiesAPIError: If the API reports any other error, or the
                server answers 4xx/5xx without a readable envelope
            NeocitiesInvalidResponseError: If a 2xx body cannot be understood
        """
        status = response.status_code
        try:
            data = response.json()
            if not isinstance(data, dict) or data.get("result") not in (
                "success",
                "error",
            ):
                raise ValueError("missing result field")
        except ValueError as e:
            if 400 <= status <= 599:
                raise NeocitiesAPIError(
                    f"{status} {response.reason_phrase}",
                    ErrorKind.STATUS,
                    status_code=status,
                ) from e
            raise NeocitiesInvalidResponseError(
                f"Invalid JSON response from server: {e}"
            ) from e

        if data["result"] == "error":
            kind = ErrorKind.parse(data.get("error_type"))
            message = data.get("message") or "No error message provided"
            if kind == ErrorKind.INVALID_AUTH:
                raise NeocitiesAuthenticationError(message)
            raise NeocitiesAPIError(message, kind)

        if field not in data:
            raise NeocitiesInvalidResponseError(
                f"Response is missing the '{field}' field"
            )
        return data[field]

    def _request(self, method: str, endpoint: str, field: str, **kwargs: Any) -> Any:
        """Make an API request with retry logic.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            field: Payload field to return from the response envelope
            **kwargs: Additional arguments passed to httpx

        Returns:
            The payload value

        Raises:
            NeocitiesError: If the request fails after all retries
        """
        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        client = self._get_client()
        last_exception: Exception | None = None

        for attempt in range(self.max_retries + 1):
            try:
                response = client.request(method, url, **kwargs)
                return self._parse_response(response, field)
            except httpx.RequestError as e:
                error: NeocitiesError = NeocitiesNetworkError(f"Network error: {e}")
                last_exception = error
                if self._should_retry(error, attempt):
                    delay = self._calculate_retry_delay(attempt)
                    logger.debug(
                        "%s %s failed (attempt %d), retrying in %.1fs: %s",
                        method,
                        endpoint,
                        attempt + 1,
                        delay,
                        e,
                    )
                    time.sleep(delay)
                    continue
                raise error from e
            except NeocitiesAPIError as e:
                last_exception = e
                if self._should_retry(e, attempt):
                    delay = self._calculate_retry_delay(attempt)
                    logger.debug(
                        "%s %s returned %s (attempt %d), retrying in %.1fs",
                        method,
                        endpoint,
                        e.message,
                        attempt + 1,
                        delay,
                    )
                    time.sleep(delay)
                    continue
                logger.debug("%s %s failed: %s", method, endpoint, e)
                raise

        # If we get here, we've exhausted all retries
        if last_exception:
            raise last_exception
        raise NeocitiesAPIError("Request failed after all retry attempts")

    # =========================
    # Endpoints
    # =========================

    def list(self) -> list[ListEntry]:
        """List all files and directories of the site."""
        logger.debug("Listing files")
        files = self._request("GET", "list", "files")
        if not isinstance(files, list):
            raise NeocitiesInvalidResponseError("'files' is not a list")
        return [ListEntry.from_dict(item) for item in files]

    def info(self) -> SiteInfo:
        """Get the site info."""
        logger.debug("Getting site info")
        return SiteInfo.from_dict(self._request("GET", "info", "info"))

    def key(self) -> str:
        """Get an API key for the site."""
        logger.debug("Getting API key")
        key = self._request("GET", "key", "api_key")
        logger.debug("Got an API key: <redacted>")
        return str(key)

    def upload(self, files: Sequence[tuple[str, bytes]]) -> str:
        """Upload one or more files.

        Args:
            files: (remote path, content) pairs

        Returns:
            Message returned by the API
        """
        logger.debug("Uploading files %s", [path for path, _ in files])
        form = [
            (path, ("file", content, "application/octet-stream"))
            for path, content in files
        ]
        return self._request("POST", "upload", "message", files=form)

    def delete_many(self, paths: Sequence[str]) -> str:
        """Delete one or more files or directories.

        Args:
            paths: Remote paths

        Returns:
            Message returned by the API
        """
        logger.debug("Deleting files %s", list(paths))
        return self._request(
            "POST", "delete", "message", data={"filenames[]": list(paths)}
        )

