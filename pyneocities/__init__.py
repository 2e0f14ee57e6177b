"""PyNeocities - deploy a local directory to a Neocities site."""

__version__ = "0.1.0"

from .api import NeocitiesClient  # noqa: E402
from .auth import Auth  # noqa: E402
from .exceptions import (  # noqa: E402
    AggregateFailure,
    ErrorKind,
    NeocitiesAPIError,
    NeocitiesAuthenticationError,
    NeocitiesConfigError,
    NeocitiesError,
    NeocitiesInvalidResponseError,
    NeocitiesNetworkError,
    OperationError,
    PolicyViolation,
    RemoteFetchError,
    ScanError,
    SyncError,
)
from .utils import calculate_sha1, format_size  # noqa: E402

__all__ = [
    "__version__",
    "NeocitiesClient",
    "Auth",
    "AggregateFailure",
    "ErrorKind",
    "NeocitiesAPIError",
    "NeocitiesAuthenticationError",
    "NeocitiesConfigError",
    "NeocitiesError",
    "NeocitiesInvalidResponseError",
    "NeocitiesNetworkError",
    "OperationError",
    "PolicyViolation",
    "RemoteFetchError",
    "ScanError",
    "SyncError",
    "calculate_sha1",
    "format_size",
]
