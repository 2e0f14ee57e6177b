"""Gitignore-style exclusion rules loaded from .neocitiesignore files.

Each directory of the deployed tree may contain a ``.neocitiesignore`` file.
Its rules apply to that directory and everything below it. Rules are
evaluated in discovery order, root first and file order within a file, and
the last matching rule decides. A rule starting with ``!`` re-includes a path
excluded by an earlier rule.

Supported syntax:

- blank lines and lines starting with ``#`` are ignored
- ``*`` matches anything except ``/``, ``?`` one character, ``[a-z]`` and
  ``[!a-z]`` character classes
- ``**/name``, ``dir/**`` and ``a/**/b`` match across directories
- a leading ``/`` (or a ``/`` in the middle) anchors the pattern to the
  directory holding the rule file; otherwise it matches at any depth
- a trailing ``/`` restricts the rule to directories
- ``\\#`` and ``\\!`` escape a literal leading ``#`` or ``!``
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, Iterator, Optional

from ..utils import IGNORE_FILE_NAME

logger = logging.getLogger(__name__)

__all__ = [
    "IGNORE_FILE_NAME",
    "IgnoreRule",
    "IgnoreRuleStack",
    "Resolution",
    "load_ignore_file",
    "parse_ignore_lines",
]


class Resolution(str, Enum):
    """Outcome of resolving a path against the rule stack."""

    INCLUDED = "included"
    EXCLUDED = "excluded"


def _translate(pattern: str) -> str:
    """Translate a glob pattern to a regular expression body."""
    parts: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**", i):
                at_start = i == 0 or pattern[i - 1] == "/"
                j = i + 2
                if at_start and j < n and pattern[j] == "/":
                    # "**/" matches zero or more leading directories
                    parts.append("(?:.*/)?")
                    i = j + 1
                    continue
                parts.append(".*")
                i = j
                continue
            parts.append("[^/]*")
        elif c == "?":
            parts.append("[^/]")
        elif c == "[":
            j = i + 1
            if j < n and pattern[j] in "!^":
                j += 1
            if j < n and pattern[j] == "]":
                j += 1
            while j < n and pattern[j] != "]":
                j += 1
            if j >= n:
                # Unterminated class is a literal bracket
                parts.append(re.escape(c))
            else:
                body = pattern[i + 1 : j]
                if body[:1] in ("!", "^"):
                    body = "^" + body[1:]
                body = body.replace("\\", "\\\\")
                parts.append(f"[{body}]")
                i = j
        elif c == "\\" and i + 1 < n:
            i += 1
            parts.append(re.escape(pattern[i]))
        else:
            parts.append(re.escape(c))
        i += 1
    return "".join(parts)


@dataclass(frozen=True)
class IgnoreRule:
    """A single parsed ignore pattern."""

    pattern: str
    """Pattern text with the !, leading / and trailing / markers removed"""

    anchored: bool = False
    """Matched against the full path below ``base`` instead of the name"""

    directory_only: bool = False
    """Only matches directories"""

    negated: bool = False
    """Re-includes matching paths"""

    origin_depth: int = 0
    """Depth of the directory holding the rule file (0 for the root)"""

    base: str = ""
    """Relative path of the directory holding the rule file"""

    source: Optional[str] = None
    """Where the rule came from, for debug output"""

    _regex: "re.Pattern[str]" = field(
        init=False, repr=False, compare=False, default=None  # type: ignore[assignment]
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "_regex", re.compile(_translate(self.pattern)))

    @classmethod
    def parse(
        cls,
        line: str,
        base: str = "",
        origin_depth: int = 0,
        source: Optional[str] = None,
    ) -> Optional["IgnoreRule"]:
        """Parse one line of an ignore file.

        Returns:
            The rule, or None for blank lines and comments

        Examples:
            >>> rule = IgnoreRule.parse("!/build/")
            >>> (rule.pattern, rule.negated, rule.anchored, rule.directory_only)
            ('build', True, True, True)
            >>> IgnoreRule.parse("# comment") is None
            True
        """
        text = line.rstrip("\r\n")
        # Trailing spaces are dropped unless escaped
        while text.endswith(" ") and not text.endswith("\\ "):
            text = text[:-1]
        if not text or text.startswith("#"):
            return None

        negated = False
        if text.startswith("!"):
            negated = True
            text = text[1:]
        elif text.startswith("\\!") or text.startswith("\\#"):
            text = text[1:]

        directory_only = False
        if text.endswith("/"):
            directory_only = True
            text = text.rstrip("/")

        anchored = False
        if text.startswith("/"):
            anchored = True
            text = text.lstrip("/")
        elif "/" in text:
            anchored = True

        if not text:
            return None

        return cls(
            pattern=text,
            anchored=anchored,
            directory_only=directory_only,
            negated=negated,
            origin_depth=origin_depth,
            base=base,
            source=source,
        )

    def matches(self, path: str, is_dir: bool = False) -> bool:
        """Check whether the rule matches a path relative to the sync root.

        Args:
            path: Forward-slash path relative to the sync root
            is_dir: Whether the path is a directory

        Returns:
            True if the pattern matches (regardless of negation)
        """
        if self.directory_only and not is_dir:
            return False

        if self.base:
            prefix = self.base + "/"
            if not path.startswith(prefix):
                return False
            path = path[len(prefix) :]

        if self.anchored:
            return self._regex.fullmatch(path) is not None
        name = path.rsplit("/", 1)[-1]
        return self._regex.fullmatch(name) is not None


def parse_ignore_lines(
    lines: Iterable[str],
    base: str = "",
    origin_depth: int = 0,
    source: Optional[str] = None,
) -> list[IgnoreRule]:
    """Parse lines of an ignore file, skipping blanks and comments."""
    rules = []
    for line in lines:
        rule = IgnoreRule.parse(
            line, base=base, origin_depth=origin_depth, source=source
        )
        if rule is not None:
            rules.append(rule)
    return rules


def load_ignore_file(
    ignore_file: Path, base: str = "", origin_depth: int = 0
) -> list[IgnoreRule]:
    """Load the rules of one ignore file.

    Args:
        ignore_file: Path to the .neocitiesignore file
        base: Relative path of the directory holding the file
        origin_depth: Depth of that directory below the sync root

    Returns:
        Parsed rules in file order

    Raises:
        OSError: If the file cannot be read
    """
    text = ignore_file.read_text(encoding="utf-8", errors="replace")
    rules = parse_ignore_lines(
        text.splitlines(), base=base, origin_depth=origin_depth, source=str(ignore_file)
    )
    logger.debug("Loaded %d rule(s) from %s", len(rules), ignore_file)
    return rules


class IgnoreRuleStack:
    """Rules of the directories on the path from the sync root to the
    directory being scanned.

    The scanner keeps one frame per directory: entering a directory at depth
    ``d`` truncates the stack to ``d`` frames (its ancestors) and pushes the
    directory's own rules.

    Examples:
        >>> stack = IgnoreRuleStack()
        >>> stack.push("", parse_ignore_lines(["*.log"]))
        >>> stack.push("dir", parse_ignore_lines(["!keep.log"], base="dir",
        ...                                      origin_depth=1))
        >>> stack.resolve("a.log").value
        'excluded'
        >>> stack.resolve("dir/keep.log").value
        'included'
    """

    def __init__(self, global_patterns: Iterable[str] = ()):
        """Initialize the stack.

        Args:
            global_patterns: Extra patterns applied from the root, evaluated
                before any rule file
        """
        self._global: list[IgnoreRule] = parse_ignore_lines(
            global_patterns, source="<command line>"
        )
        self._frames: list[tuple[str, list[IgnoreRule]]] = []

    @property
    def depth(self) -> int:
        return len(self._frames)

    def push(self, base: str, rules: list[IgnoreRule]) -> None:
        """Enter a directory with its rules (possibly none)."""
        self._frames.append((base, rules))

    def pop(self) -> tuple[str, list[IgnoreRule]]:
        """Leave the innermost directory."""
        return self._frames.pop()

    def truncate(self, depth: int) -> None:
        """Pop frames until ``depth`` remain."""
        while len(self._frames) > depth:
            self._frames.pop()

    def enter_directory(self, directory: Path, base: str, depth: int) -> None:
        """Truncate to the ancestors of ``directory`` and push its rules.

        Raises:
            OSError: If the directory's rule file exists but cannot be read
        """
        self.truncate(depth)
        ignore_file = directory / IGNORE_FILE_NAME
        rules: list[IgnoreRule] = []
        if ignore_file.is_file():
            rules = load_ignore_file(ignore_file, base=base, origin_depth=depth)
        self.push(base, rules)

    def rules(self) -> Iterator[IgnoreRule]:
        """All active rules in discovery order."""
        yield from self._global
        for _, rules in self._frames:
            yield from rules

    def resolve(self, path: str, is_dir: bool = False) -> Resolution:
        """Resolve a path relative to the sync root; last match wins."""
        result = Resolution.INCLUDED
        for rule in self.rules():
            if rule.matches(path, is_dir=is_dir):
                result = Resolution.INCLUDED if rule.negated else Resolution.EXCLUDED
        return result

    def is_excluded(self, path: str, is_dir: bool = False) -> bool:
        return self.resolve(path, is_dir=is_dir) is Resolution.EXCLUDED
