"""Utility functions for PyNeocities."""

import hashlib
from pathlib import Path

# =============================================================================
# Constants for deploy operations
# =============================================================================

# Name of the per-directory ignore file
IGNORE_FILE_NAME: str = ".neocitiesignore"

# Read size used when hashing files (64 KB)
HASH_CHUNK_SIZE: int = 64 * 1024

# Retry configuration for transient errors
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY: float = 1.0  # seconds

# Parallel uploads
DEFAULT_MAX_WORKERS: int = 1
MAX_WORKERS_LIMIT: int = 16


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


# =============================================================================
# Hash calculation utilities
# =============================================================================


def calculate_sha1(file_path: Path, chunk_size: int = HASH_CHUNK_SIZE) -> str:
    """Calculate the SHA-1 fingerprint of a file's raw bytes.

    This is the digest Neocities reports as ``sha1_hash`` in its file list,
    so local and remote fingerprints compare directly.

    Args:
        file_path: File to hash
        chunk_size: Read size in bytes

    Returns:
        Lowercase hex digest

    Raises:
        OSError: If the file cannot be read
    """
    sha = hashlib.sha1()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            sha.update(chunk)
    return sha.hexdigest()


def sha1_of_bytes(data: bytes) -> str:
    """SHA-1 hex digest of an in-memory byte string.

    Examples:
        >>> sha1_of_bytes(b"Hello, world!")
        '943a702d06f34599aee1f8da8ef9f7296031d699'
    """
    return hashlib.sha1(data).hexdigest()


def file_extension(path: str) -> str:
    """Return the lowercase extension of the last path segment.

    Examples:
        >>> file_extension("css/Site.CSS")
        'css'
        >>> file_extension("archive.tar.gz")
        'gz'
        >>> file_extension("README")
        ''
        >>> file_extension(".htaccess")
        'htaccess'
    """
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()
