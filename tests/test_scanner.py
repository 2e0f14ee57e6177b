"""Tests for the local tree scanner."""

import os
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from pyneocities.exceptions import ScanError
from pyneocities.sync.ignore import IGNORE_FILE_NAME, load_ignore_file
from pyneocities.sync.scanner import DirectoryScanner
from pyneocities.utils import calculate_sha1, sha1_of_bytes

skip_without_symlinks = pytest.mark.skipif(
    sys.platform == "win32", reason="symlinks need privileges on Windows"
)


def write(root: Path, relative_path: str, content: str = "x") -> Path:
    path = root / relative_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


@pytest.fixture
def site(tmp_path):
    """An empty site directory."""
    root = tmp_path / "site"
    root.mkdir()
    return root


class TestDirectoryScanner:
    """Basic scanning behavior."""

    def test_scan_collects_files_with_fingerprints(self, site):
        write(site, "index.html", "<h1>hi</h1>")
        write(site, "css/style.css", "body {}")

        result = DirectoryScanner().scan(site)

        assert result.ok
        assert list(result.manifest) == ["css/style.css", "index.html"]
        entry = result.manifest["index.html"]
        assert entry.size == len("<h1>hi</h1>")
        assert entry.fingerprint == sha1_of_bytes(b"<h1>hi</h1>")
        assert entry.local_path == site / "index.html"

    def test_empty_directories_are_not_entries(self, site):
        (site / "empty").mkdir()
        result = DirectoryScanner().scan(site)
        assert len(result.manifest) == 0
        assert result.manifest.directories == ("empty",)

    def test_excluded_directories_are_not_recorded(self, site):
        write(site, IGNORE_FILE_NAME, "build/\n")
        (site / "build").mkdir()
        (site / "src").mkdir()

        result = DirectoryScanner().scan(site)

        assert result.manifest.directories == ("src",)

    def test_missing_root_raises(self, tmp_path):
        with pytest.raises(ScanError, match="does not exist"):
            DirectoryScanner().scan(tmp_path / "nope")

    def test_root_is_file_raises(self, tmp_path):
        file_path = write(tmp_path, "file.txt")
        with pytest.raises(ScanError, match="not a directory"):
            DirectoryScanner().scan(file_path)

    def test_scan_is_deterministic(self, site):
        for name in ["b.txt", "a.txt", "z/y.txt", "m/n/o.txt"]:
            write(site, name, name)

        first = DirectoryScanner().scan(site)
        second = DirectoryScanner().scan(site)

        assert first.manifest == second.manifest
        assert list(first.manifest) == sorted(first.manifest)

    def test_parallel_hashing_matches_sequential(self, site):
        for i in range(20):
            write(site, f"dir{i % 3}/file{i}.txt", f"content {i}")

        sequential = DirectoryScanner(max_workers=1).scan(site)
        parallel = DirectoryScanner(max_workers=4).scan(site)

        assert parallel.manifest == sequential.manifest


class TestIgnoreRules:
    """Scanning with .neocitiesignore files."""

    def test_rule_files_are_not_deployed(self, site):
        write(site, IGNORE_FILE_NAME, "")
        write(site, f"sub/{IGNORE_FILE_NAME}", "")
        write(site, "index.html")

        result = DirectoryScanner().scan(site)

        assert list(result.manifest) == ["index.html"]

    def test_negation_scoped_to_subdirectory(self, site):
        write(site, IGNORE_FILE_NAME, "*.log\n")
        write(site, f"dir/{IGNORE_FILE_NAME}", "!keep.log\n")
        write(site, "a.log")
        write(site, "dir/keep.log")
        write(site, "dir/other.log")
        write(site, "other/keep.log")
        write(site, "index.html")

        result = DirectoryScanner().scan(site)

        assert list(result.manifest) == ["dir/keep.log", "index.html"]

    def test_rules_do_not_leak_to_siblings(self, site):
        write(site, f"a/{IGNORE_FILE_NAME}", "*.txt\n")
        write(site, "a/x.txt")
        write(site, "b/x.txt")
        write(site, "x.txt")

        result = DirectoryScanner().scan(site)

        assert list(result.manifest) == ["b/x.txt", "x.txt"]

    def test_excluded_directory_is_not_descended(self, site):
        write(site, IGNORE_FILE_NAME, "private/\n")
        write(site, f"private/{IGNORE_FILE_NAME}", "!*\n")
        write(site, "private/secret.txt")
        write(site, "public.txt")

        with patch(
            "pyneocities.sync.ignore.load_ignore_file", wraps=load_ignore_file
        ) as mock_load:
            result = DirectoryScanner().scan(site)
            loaded = [call.args[0] for call in mock_load.call_args_list]

        assert loaded == [site / IGNORE_FILE_NAME]
        assert list(result.manifest) == ["public.txt"]

    def test_anchored_pattern(self, site):
        write(site, IGNORE_FILE_NAME, "/build\n")
        write(site, "build/out.js")
        write(site, "src/build/in.js")

        result = DirectoryScanner().scan(site)

        assert list(result.manifest) == ["src/build/in.js"]

    def test_extra_patterns(self, site):
        write(site, "a.tmp")
        write(site, "sub/b.tmp")
        write(site, "c.html")

        result = DirectoryScanner(ignore_patterns=["*.tmp"]).scan(site)

        assert list(result.manifest) == ["c.html"]

    def test_rule_file_can_override_extra_patterns(self, site):
        write(site, IGNORE_FILE_NAME, "!keep.tmp\n")
        write(site, "a.tmp")
        write(site, "keep.tmp")

        result = DirectoryScanner(ignore_patterns=["*.tmp"]).scan(site)

        assert list(result.manifest) == ["keep.tmp"]

    def test_use_ignore_files_disabled(self, site):
        write(site, IGNORE_FILE_NAME, "*.log\n")
        write(site, "a.log")

        result = DirectoryScanner(use_ignore_files=False).scan(site)

        assert "a.log" in result.manifest


class TestSymlinks:
    @skip_without_symlinks
    def test_symlink_cycle_is_skipped(self, site):
        write(site, "a.txt")
        os.symlink(site, site / "loop")

        result = DirectoryScanner().scan(site)

        assert list(result.manifest) == ["a.txt"]

    @skip_without_symlinks
    def test_symlinked_file_followed(self, site, tmp_path):
        target = write(tmp_path, "outside.txt", "shared")
        os.symlink(target, site / "link.txt")

        result = DirectoryScanner().scan(site)

        assert result.manifest["link.txt"].fingerprint == calculate_sha1(target)

    @skip_without_symlinks
    def test_symlinks_skipped_when_not_following(self, site, tmp_path):
        target = write(tmp_path, "outside.txt")
        os.symlink(target, site / "link.txt")
        write(site, "real.txt")

        result = DirectoryScanner(follow_symlinks=False).scan(site)

        assert list(result.manifest) == ["real.txt"]

    @skip_without_symlinks
    def test_broken_symlink_is_skipped(self, site):
        os.symlink(site / "missing", site / "dangling")
        write(site, "a.txt")

        result = DirectoryScanner().scan(site)

        assert result.ok
        assert list(result.manifest) == ["a.txt"]


class TestUnreadableFiles:
    """Per-path failures."""

    @pytest.fixture
    def failing_hash(self):
        """Make hashing of any file named bad.txt fail."""

        def fake_sha1(path):
            if Path(path).name == "bad.txt":
                raise PermissionError("Permission denied")
            return calculate_sha1(path)

        with patch(
            "pyneocities.sync.scanner.calculate_sha1", side_effect=fake_sha1
        ) as mock:
            yield mock

    def test_unreadable_file_recorded_and_excluded(self, site, failing_hash):
        write(site, "bad.txt")
        write(site, "good.txt")

        result = DirectoryScanner().scan(site)

        assert not result.ok
        assert list(result.manifest) == ["good.txt"]
        assert [f.path for f in result.failures] == ["bad.txt"]
        assert "Permission denied" in result.failures[0].reason

    def test_unreadable_file_in_parallel_scan(self, site, failing_hash):
        write(site, "bad.txt")
        for i in range(5):
            write(site, f"good{i}.txt")

        result = DirectoryScanner(max_workers=3).scan(site)

        assert len(result.manifest) == 5
        assert [f.path for f in result.failures] == ["bad.txt"]

    def test_abort_on_error_raises(self, site, failing_hash):
        write(site, "bad.txt")
        write(site, "good.txt")

        with pytest.raises(ScanError) as exc_info:
            DirectoryScanner(abort_on_error=True).scan(site)

        assert exc_info.value.path == "bad.txt"

    def test_unreadable_rule_file_skips_its_directory(self, site):
        write(site, "index.html")
        write(site, f"logs/{IGNORE_FILE_NAME}", "*.log\n")
        write(site, "logs/a.log")
        write(site, "logs/deep/b.log")

        with patch(
            "pyneocities.sync.ignore.load_ignore_file",
            side_effect=PermissionError("Permission denied"),
        ):
            result = DirectoryScanner().scan(site)

        assert [f.path for f in result.failures] == ["logs"]
        assert IGNORE_FILE_NAME in result.failures[0].reason
        assert list(result.manifest) == ["index.html"]
        assert not result.manifest.has_directory("logs")

    def test_unreadable_root_rule_file(self, site):
        write(site, IGNORE_FILE_NAME, "*.log\n")
        write(site, "a.log")

        with patch(
            "pyneocities.sync.ignore.load_ignore_file",
            side_effect=PermissionError("Permission denied"),
        ):
            result = DirectoryScanner().scan(site)

        assert [f.path for f in result.failures] == ["."]
        assert len(result.manifest) == 0

    def test_unreadable_directory(self, site):
        write(site, "index.html")
        write(site, "blog/post.html")
        real_scandir = os.scandir

        def fake_scandir(path):
            if Path(path).name == "blog":
                raise PermissionError("Permission denied")
            return real_scandir(path)

        with patch("pyneocities.sync.scanner.os.scandir", side_effect=fake_scandir):
            result = DirectoryScanner().scan(site)

        assert [f.path for f in result.failures] == ["blog"]
        assert list(result.manifest) == ["index.html"]
        assert result.manifest.directories == ()

    def test_unreadable_rule_file_aborts(self, site):
        write(site, f"logs/{IGNORE_FILE_NAME}", "*.log\n")

        with patch(
            "pyneocities.sync.ignore.load_ignore_file",
            side_effect=PermissionError("Permission denied"),
        ):
            with pytest.raises(ScanError) as exc_info:
                DirectoryScanner(abort_on_error=True).scan(site)

        assert exc_info.value.path == "logs"
