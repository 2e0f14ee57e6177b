"""Unit tests for utility functions."""

import hashlib

import pytest

from pyneocities.utils import (
    calculate_sha1,
    file_extension,
    format_size,
    sha1_of_bytes,
)


class TestFormatSize:
    @pytest.mark.parametrize(
        "size, expected",
        [
            (0, "0 B"),
            (1023, "1023 B"),
            (1024, "1.0 KB"),
            (1536, "1.5 KB"),
            (5 * 1024 * 1024, "5.0 MB"),
            (3 * 1024**3, "3.0 GB"),
        ],
    )
    def test_format_size(self, size, expected):
        assert format_size(size) == expected


class TestCalculateSha1:
    def test_known_digest(self, tmp_path):
        path = tmp_path / "hello.txt"
        path.write_bytes(b"Hello, world!")
        assert calculate_sha1(path) == "943a702d06f34599aee1f8da8ef9f7296031d699"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty"
        path.write_bytes(b"")
        assert calculate_sha1(path) == "da39a3ee5e6b4b0d3255bfef95601890afd80709"

    def test_content_larger_than_chunk(self, tmp_path):
        data = bytes(range(256)) * 1000
        path = tmp_path / "big.bin"
        path.write_bytes(data)
        assert calculate_sha1(path, chunk_size=4096) == hashlib.sha1(data).hexdigest()

    def test_raw_bytes_are_hashed(self, tmp_path):
        """Line endings are not normalized."""
        unix = tmp_path / "unix.txt"
        dos = tmp_path / "dos.txt"
        unix.write_bytes(b"a\nb\n")
        dos.write_bytes(b"a\r\nb\r\n")
        assert calculate_sha1(unix) != calculate_sha1(dos)

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(OSError):
            calculate_sha1(tmp_path / "missing")

    def test_matches_sha1_of_bytes(self, tmp_path):
        path = tmp_path / "x"
        path.write_bytes(b"content")
        assert calculate_sha1(path) == sha1_of_bytes(b"content")


class TestFileExtension:
    @pytest.mark.parametrize(
        "path, expected",
        [
            ("index.html", "html"),
            ("css/Site.CSS", "css"),
            ("archive.tar.gz", "gz"),
            ("README", ""),
            ("dir.d/README", ""),
            (".htaccess", "htaccess"),
            ("trailing.", ""),
        ],
    )
    def test_file_extension(self, path, expected):
        assert file_extension(path) == expected
