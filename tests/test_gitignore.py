"""Tests for hierarchical .gitignore resolution."""

import pytest

from deadwood.analyzer.gitignore import (
    GLOBAL_IGNORE_PATTERNS,
    IgnoreResolver,
    LocalIgnores,
    convert_gitignore_to_glob_patterns,
    find_ancestor_gitignore_files,
    is_match,
    is_path_ignored,
    parse_gitignore_lines,
)


class TestConvertPatterns:
    """Normalization of single ignore-file patterns."""

    @pytest.mark.parametrize("raw, negated, expected", [
        ("*.log", False, ("**/*.log", "**/*.log/**")),
        ("!keep.log", True, ("**/keep.log", "**/keep.log/**")),
        ("/root.txt", False, ("root.txt", "root.txt/**")),
        ("/build/", False, ("build", "build/**")),
        ("build/", False, ("**/build", "**/build/**")),
        ("**/cache", False, ("**/cache", "**/cache/**")),
        ("*/**/tmp", False, ("**/tmp", "**/tmp/**")),
        ("docs/*", False, ("**/docs/*", "**/docs/*")),
        ("!/dist/", True, ("dist", "dist/**")),
    ])
    def test_convert(self, raw, negated, expected):
        rule = convert_gitignore_to_glob_patterns(raw)
        assert rule.negated is negated
        assert rule.patterns == expected


class TestParseLines:
    """Line-level parsing: comments, blanks, malformed lines, ancestor rebasing."""

    def test_skips_blank_lines_and_comments(self):
        rules = parse_gitignore_lines([
            "",
            "   ",
            "# full-line comment",
            "   # indented comment only",
            "*.log  # trailing comment",
            "coverage",
        ])
        assert [rule.patterns[0] for rule in rules] == ["**/*.log", "**/coverage"]

    def test_escaped_hash_is_kept(self):
        rules = parse_gitignore_lines([r"\#notes.txt"])
        assert len(rules) == 1
        assert rules[0].patterns[0] == r"**/\#notes.txt"

    def test_malformed_lines_are_skipped_not_fatal(self):
        rules = parse_gitignore_lines(["!", "/", "!/", "//", "tmp"])
        assert [rule.patterns[0] for rule in rules] == ["**/tmp"]

    def test_crlf_line_endings(self):
        rules = parse_gitignore_lines("a.txt\r\nb.txt\r\n".splitlines())
        assert [rule.patterns[0] for rule in rules] == ["**/a.txt", "**/b.txt"]

    def test_ancestor_patterns_are_rebased(self):
        rules = parse_gitignore_lines([
            "/packages/a/dist",
            "packages/a/tmp",
            "/**/cache",
            "!/**/keep",
            "/other",
            "!/other",
            "*.log",
        ], from_prefix="packages/a/")

        assert [(rule.negated, rule.patterns[0]) for rule in rules] == [
            (False, "dist"),
            (False, "**/tmp"),
            (False, "**/cache"),
            (True, "**/keep"),
            (False, "**/*.log"),
        ]


class TestIsMatch:
    """Matching semantics of normalized patterns."""

    def test_any_depth_pattern(self):
        patterns = ["**/*.log", "**/*.log/**"]
        assert is_match("b.log", patterns)
        assert is_match("a/b.log", patterns)
        assert not is_match("a/b.txt", patterns)

    def test_unignore_overrides(self):
        patterns = ["**/*.log", "**/*.log/**"]
        unignores = ["**/keep.log", "**/keep.log/**"]
        assert is_match("a/b.log", patterns, unignores)
        assert not is_match("a/keep.log", patterns, unignores)

    def test_anchored_pattern(self):
        patterns = ["build", "build/**"]
        assert is_match("build", patterns)
        assert is_match("build/out/app.js", patterns)
        assert not is_match("src/build/app.js", patterns)

    def test_empty_patterns_never_match(self):
        assert not is_match("anything", [])

    def test_ignored_parent_directory_wins_over_unignore(self):
        patterns = ["**/dist", "**/dist/**"]
        unignores = ["**/keep.js", "**/keep.js/**"]

        assert not is_match("dist/keep.js", patterns, unignores)
        assert is_path_ignored("dist/keep.js", patterns, unignores)
        assert not is_path_ignored("src/keep.js", patterns, unignores)

    def test_reopened_parent_directory(self):
        patterns = ["**/dist", "**/dist/**"]
        unignores = ["pkg/**/dist", "pkg/**/dist/**"]

        assert is_path_ignored("dist/a.js", patterns, unignores)
        assert not is_path_ignored("pkg/dist/a.js", patterns, unignores)


class TestAncestorWalk:
    """Upward discovery of ancestor ignore files."""

    def test_nearest_first(self, tmp_path):
        (tmp_path / "a" / "b" / "c").mkdir(parents=True)
        (tmp_path / "a" / ".gitignore").write_text("x\n", encoding="utf-8")
        (tmp_path / "a" / "b" / ".gitignore").write_text("y\n", encoding="utf-8")

        found = find_ancestor_gitignore_files(tmp_path / "a" / "b" / "c")

        assert found[:2] == [
            str(tmp_path / "a" / "b" / ".gitignore"),
            str(tmp_path / "a" / ".gitignore"),
        ]

    def test_working_directory_itself_is_not_included(self, tmp_path):
        (tmp_path / "a").mkdir()
        (tmp_path / "a" / ".gitignore").write_text("x\n", encoding="utf-8")

        assert str(tmp_path / "a" / ".gitignore") not in find_ancestor_gitignore_files(tmp_path / "a")

    def test_missing_directory_ends_walk(self, tmp_path):
        assert find_ancestor_gitignore_files(tmp_path / "missing" / "deeper") == []


class TestResolver:
    """End-to-end discovery on real directory trees."""

    def test_ignore_and_unignore(self, make_tree):
        root = make_tree({
            ".gitignore": "*.log\n!keep.log\n",
            "a/b.log": "",
            "a/keep.log": "",
            "src/index.ts": "",
        })
        is_ignored = IgnoreResolver(root).get_gitignored_handler()

        assert is_ignored(root / "a" / "b.log")
        assert not is_ignored(root / "a" / "keep.log")
        assert not is_ignored(root / "src" / "index.ts")
        assert is_ignored("a/b.log")

    def test_aggregate_sets(self, make_tree):
        root = make_tree({".gitignore": "*.log\n!keep.log\n"})

        result = IgnoreResolver(root).find_and_parse_gitignores()

        assert ".gitignore" in result.gitignore_files
        assert {"**/*.log", "**/*.log/**"} <= set(result.ignores)
        assert set(GLOBAL_IGNORE_PATTERNS) <= set(result.ignores)
        assert result.unignores[-2:] == ["**/keep.log", "**/keep.log/**"]

    def test_builtin_ignores_without_any_ignore_file(self, make_tree):
        root = make_tree({"node_modules/pkg/index.js": "", ".git/config": "", "src/a.ts": ""})
        is_ignored = IgnoreResolver(root).get_gitignored_handler()

        assert is_ignored(root / "node_modules" / "pkg" / "index.js")
        assert is_ignored(root / ".git" / "config")
        assert not is_ignored(root / "src" / "a.ts")

    def test_nested_ignore_is_scoped_to_its_directory(self, make_tree):
        root = make_tree({
            "pkg-a/.gitignore": "*.tmp\n",
            "pkg-a/x.tmp": "",
            "pkg-a/deep/y.tmp": "",
            "pkg-b/x.tmp": "",
            "x.tmp": "",
        })
        resolver = IgnoreResolver(root)
        is_ignored = resolver.get_gitignored_handler()

        assert is_ignored(root / "pkg-a" / "x.tmp")
        assert is_ignored(root / "pkg-a" / "deep" / "y.tmp")
        assert not is_ignored(root / "pkg-b" / "x.tmp")
        assert not is_ignored(root / "x.tmp")
        assert resolver.get_local_ignores(root / "pkg-a").ignores == [
            "pkg-a/**/*.tmp",
            "pkg-a/**/*.tmp/**",
        ]

    def test_cache_holds_only_new_patterns(self, make_tree):
        root = make_tree({
            ".gitignore": "*.log\n",
            "pkg/.gitignore": "*.log\ncoverage/\n",
        })
        resolver = IgnoreResolver(root)
        result = resolver.find_and_parse_gitignores()

        local = resolver.get_local_ignores(root / "pkg")
        assert local.ignores == ["pkg/**/coverage", "pkg/**/coverage/**"]
        assert "pkg/**/*.log" not in result.ignores

    def test_ignored_directories_are_not_walked(self, make_tree):
        root = make_tree({
            ".gitignore": "vendor/\n",
            "vendor/lib/.gitignore": "*.js\n",
        })
        result = IgnoreResolver(root).find_and_parse_gitignores()

        assert "vendor/lib/.gitignore" not in result.gitignore_files

    def test_parent_rules_apply_before_children_are_visited(self, make_tree):
        root = make_tree({
            "pkg/.gitignore": "generated/\n",
            "pkg/generated/.gitignore": "*.keep\n",
            "pkg/generated/a.ts": "",
        })
        resolver = IgnoreResolver(root)
        is_ignored = resolver.get_gitignored_handler()
        result = resolver.find_and_parse_gitignores()

        assert "pkg/.gitignore" in result.gitignore_files
        assert "pkg/generated/.gitignore" not in result.gitignore_files
        assert is_ignored(root / "pkg" / "generated" / "a.ts")

    def test_nested_unignore_cannot_reopen_ancestor_exclusion(self, make_tree):
        root = make_tree({
            ".gitignore": "dist/\n",
            "pkg/.gitignore": "!dist/\n",
            "pkg/dist/.gitignore": "secret.txt\n",
            "pkg/dist/secret.txt": "",
            "dist/out.js": "",
        })
        resolver = IgnoreResolver(root)
        is_ignored = resolver.get_gitignored_handler()
        result = resolver.find_and_parse_gitignores()

        # The root rule pruned pkg/dist before pkg's negation was known
        assert "pkg/dist/.gitignore" not in result.gitignore_files
        assert "pkg/**/dist/**" in result.unignores
        # so the rules inside pkg/dist never take effect
        assert not is_ignored(root / "pkg" / "dist" / "secret.txt")
        assert is_ignored(root / "dist" / "out.js")

    def test_ancestor_gitignore_is_rebased(self, make_tree):
        root = make_tree({
            ".gitignore": "/packages/app/dist\n*.cache\n/top-only\n",
            "packages/app/src/index.ts": "",
        })
        cwd = root / "packages" / "app"
        resolver = IgnoreResolver(cwd)
        is_ignored = resolver.get_gitignored_handler()

        assert is_ignored(cwd / "dist" / "bundle.js")
        assert is_ignored(cwd / "src" / "a.cache")
        assert not is_ignored(cwd / "top-only")
        assert not is_ignored(cwd / "src" / "index.ts")
        assert "dist" in resolver.get_local_ignores(root).ignores

    def test_git_info_exclude(self, make_tree):
        root = make_tree({".git/info/exclude": "secret.env\n", "secret.env": ""})
        resolver = IgnoreResolver(root)
        is_ignored = resolver.get_gitignored_handler()
        result = resolver.find_and_parse_gitignores()

        assert ".git/info/exclude" in result.gitignore_files
        assert is_ignored(root / "secret.env")
        assert "**/secret.env" in resolver.get_local_ignores(root).ignores

    def test_gitignore_disabled(self, make_tree):
        root = make_tree({".gitignore": "*.log\n"})
        resolver = IgnoreResolver(root, gitignore=False)
        is_ignored = resolver.get_gitignored_handler()

        assert not is_ignored(root / "a.log")
        assert not is_ignored(root / "node_modules" / "x.js")
        assert resolver.cache == {}

    def test_new_handler_starts_from_empty_cache(self, make_tree):
        root = make_tree({"src/a.ts": ""})
        resolver = IgnoreResolver(root)
        resolver.cache["/stale"] = LocalIgnores(ignores=["stale"])

        resolver.get_gitignored_handler()

        assert "/stale" not in resolver.cache

    def test_reset(self, make_tree):
        root = make_tree({".gitignore": "*.log\n"})
        resolver = IgnoreResolver(root)
        resolver.find_and_parse_gitignores()
        assert resolver.cache

        resolver.reset()

        assert resolver.cache == {}

    def test_undecodable_ignore_file_contributes_nothing(self, make_tree):
        root = make_tree({
            "b/.gitignore": "*.tmp\n",
            "a/x.tmp": "",
            "b/x.tmp": "",
        })
        (root / "a" / ".gitignore").write_bytes(b"\xff\xfe*.tmp\n\x80\n")
        resolver = IgnoreResolver(root)
        is_ignored = resolver.get_gitignored_handler()
        result = resolver.find_and_parse_gitignores()

        assert "a/.gitignore" in result.gitignore_files
        assert resolver.get_local_ignores(root / "a") == LocalIgnores()
        assert not is_ignored(root / "a" / "x.tmp")
        assert is_ignored(root / "b" / "x.tmp")
