"""Tests for .neocitiesignore rule parsing and evaluation."""

from pathlib import Path

import pytest

from pyneocities.sync.ignore import (
    IGNORE_FILE_NAME,
    IgnoreRule,
    IgnoreRuleStack,
    Resolution,
    load_ignore_file,
    parse_ignore_lines,
)


class TestIgnoreRuleParse:
    """Tests for IgnoreRule.parse."""

    @pytest.mark.parametrize("line", ["", "   ", "# a comment", "#", "/", "!"])
    def test_lines_without_rules(self, line):
        """Blank lines, comments and bare markers yield no rule."""
        assert IgnoreRule.parse(line) is None

    def test_simple_pattern(self):
        rule = IgnoreRule.parse("*.log")
        assert rule.pattern == "*.log"
        assert not rule.negated
        assert not rule.anchored
        assert not rule.directory_only

    def test_negation(self):
        rule = IgnoreRule.parse("!keep.log")
        assert rule.negated
        assert rule.pattern == "keep.log"

    def test_escaped_leading_characters(self):
        """\\# and \\! are literal characters, not comment or negation."""
        hash_rule = IgnoreRule.parse("\\#notes.txt")
        bang_rule = IgnoreRule.parse("\\!important")
        assert hash_rule.pattern == "#notes.txt"
        assert bang_rule.pattern == "!important"
        assert not bang_rule.negated

    def test_trailing_spaces_stripped(self):
        assert IgnoreRule.parse("foo.txt   ").pattern == "foo.txt"

    def test_escaped_trailing_space_kept(self):
        rule = IgnoreRule.parse("foo\\ ")
        assert rule.matches("foo ")
        assert not rule.matches("foo")

    def test_trailing_slash_is_directory_only(self):
        rule = IgnoreRule.parse("build/")
        assert rule.directory_only
        assert rule.pattern == "build"
        assert not rule.anchored

    def test_leading_slash_anchors(self):
        rule = IgnoreRule.parse("/build")
        assert rule.anchored
        assert rule.pattern == "build"

    def test_middle_slash_anchors(self):
        assert IgnoreRule.parse("doc/*.txt").anchored

    def test_origin_recorded(self):
        rule = IgnoreRule.parse("*.tmp", base="sub", origin_depth=1, source="x")
        assert rule.base == "sub"
        assert rule.origin_depth == 1
        assert rule.source == "x"


class TestIgnoreRuleMatches:
    """Tests for pattern matching."""

    def test_basename_matches_at_any_depth(self):
        rule = IgnoreRule.parse("*.log")
        assert rule.matches("a.log")
        assert rule.matches("deep/down/a.log")
        assert not rule.matches("a.log.txt")

    def test_star_does_not_cross_directories(self):
        rule = IgnoreRule.parse("doc/*.txt")
        assert rule.matches("doc/a.txt")
        assert not rule.matches("doc/sub/a.txt")
        assert not rule.matches("other/doc/a.txt")

    def test_question_mark(self):
        rule = IgnoreRule.parse("file?.txt")
        assert rule.matches("file1.txt")
        assert not rule.matches("file10.txt")

    def test_character_classes(self):
        rule = IgnoreRule.parse("[ab].txt")
        assert rule.matches("a.txt")
        assert not rule.matches("c.txt")

        negated_class = IgnoreRule.parse("[!ab].txt")
        assert negated_class.matches("c.txt")
        assert not negated_class.matches("a.txt")

    def test_unterminated_class_is_literal(self):
        rule = IgnoreRule.parse("[abc")
        assert rule.matches("[abc")
        assert not rule.matches("a")

    def test_leading_double_star(self):
        rule = IgnoreRule.parse("**/cache")
        assert rule.matches("cache")
        assert rule.matches("a/cache")
        assert rule.matches("a/b/cache")

    def test_trailing_double_star(self):
        rule = IgnoreRule.parse("drafts/**")
        assert rule.matches("drafts/a.html")
        assert rule.matches("drafts/deep/a.html")
        assert not rule.matches("drafts")

    def test_middle_double_star(self):
        rule = IgnoreRule.parse("a/**/b")
        assert rule.matches("a/b")
        assert rule.matches("a/x/b")
        assert rule.matches("a/x/y/b")
        assert not rule.matches("b")

    def test_anchored_matches_only_at_base(self):
        rule = IgnoreRule.parse("/build")
        assert rule.matches("build", is_dir=True)
        assert not rule.matches("src/build", is_dir=True)

    def test_directory_only_ignores_files(self):
        rule = IgnoreRule.parse("build/")
        assert rule.matches("build", is_dir=True)
        assert rule.matches("src/build", is_dir=True)
        assert not rule.matches("build", is_dir=False)

    def test_rule_only_applies_below_its_base(self):
        rule = IgnoreRule.parse("*.log", base="dir", origin_depth=1)
        assert rule.matches("dir/a.log")
        assert rule.matches("dir/sub/a.log")
        assert not rule.matches("a.log")
        assert not rule.matches("other/a.log")
        assert not rule.matches("directory/a.log")

    def test_anchored_rule_is_relative_to_base(self):
        rule = IgnoreRule.parse("/keep.txt", base="dir", origin_depth=1)
        assert rule.matches("dir/keep.txt")
        assert not rule.matches("dir/sub/keep.txt")
        assert not rule.matches("keep.txt")

    def test_escaped_wildcard_is_literal(self):
        rule = IgnoreRule.parse("\\*.txt")
        assert rule.matches("*.txt")
        assert not rule.matches("a.txt")


class TestParseIgnoreLines:
    def test_skips_blanks_and_comments(self):
        rules = parse_ignore_lines(["# header", "", "*.log", "  ", "!keep.log"])
        assert [r.pattern for r in rules] == ["*.log", "keep.log"]

    def test_load_ignore_file(self, tmp_path):
        ignore_file = tmp_path / IGNORE_FILE_NAME
        ignore_file.write_text("*.tmp\r\n# comment\nbuild/\n")

        rules = load_ignore_file(ignore_file, base="sub", origin_depth=1)

        assert [r.pattern for r in rules] == ["*.tmp", "build"]
        assert all(r.base == "sub" for r in rules)
        assert rules[0].source == str(ignore_file)

    def test_load_missing_file_raises(self, tmp_path):
        with pytest.raises(OSError):
            load_ignore_file(tmp_path / IGNORE_FILE_NAME)


class TestIgnoreRuleStack:
    """Tests for hierarchical rule evaluation."""

    def test_empty_stack_includes_everything(self):
        stack = IgnoreRuleStack()
        assert stack.resolve("anything.txt") is Resolution.INCLUDED

    def test_last_match_wins(self):
        stack = IgnoreRuleStack()
        stack.push("", parse_ignore_lines(["*.log", "!keep.log", "keep.log"]))
        assert stack.is_excluded("keep.log")

    def test_negation_reincludes(self):
        stack = IgnoreRuleStack()
        stack.push("", parse_ignore_lines(["*.log", "!keep.log"]))
        assert stack.is_excluded("other.log")
        assert not stack.is_excluded("keep.log")

    def test_deeper_negation_is_scoped(self):
        stack = IgnoreRuleStack()
        stack.push("", parse_ignore_lines(["*.log"]))
        stack.push(
            "dir", parse_ignore_lines(["!keep.log"], base="dir", origin_depth=1)
        )

        assert stack.resolve("dir/keep.log") is Resolution.INCLUDED
        assert stack.resolve("dir/other.log") is Resolution.EXCLUDED
        assert stack.resolve("keep.log") is Resolution.EXCLUDED
        assert stack.resolve("other/keep.log") is Resolution.EXCLUDED

    def test_global_patterns_evaluated_first(self):
        stack = IgnoreRuleStack(["*.tmp"])
        stack.push("", parse_ignore_lines(["!keep.tmp"]))
        assert stack.is_excluded("a.tmp")
        assert not stack.is_excluded("keep.tmp")

    def test_truncate_drops_sibling_frames(self):
        stack = IgnoreRuleStack()
        stack.push("", [])
        stack.push("a", parse_ignore_lines(["*.txt"], base="a", origin_depth=1))
        assert stack.depth == 2

        stack.truncate(1)

        assert stack.depth == 1
        assert not stack.is_excluded("a/x.txt")

    def test_pop_returns_frame(self):
        stack = IgnoreRuleStack()
        rules = parse_ignore_lines(["*.txt"])
        stack.push("", rules)
        assert stack.pop() == ("", rules)
        assert stack.depth == 0

    def test_enter_directory_loads_rule_file(self, tmp_path):
        sub = tmp_path / "sub"
        sub.mkdir()
        (sub / IGNORE_FILE_NAME).write_text("*.bak\n")
        stack = IgnoreRuleStack()

        stack.enter_directory(tmp_path, "", 0)
        stack.enter_directory(sub, "sub", 1)

        assert stack.depth == 2
        assert stack.is_excluded("sub/a.bak")
        assert not stack.is_excluded("a.bak")

    def test_enter_directory_without_rule_file(self, tmp_path):
        stack = IgnoreRuleStack()
        stack.enter_directory(Path(tmp_path), "", 0)
        assert stack.depth == 1
        assert list(stack.rules()) == []
