"""Hierarchical .gitignore resolution.

Collects ignore rules from three places, in this order:
1. .gitignore files in ancestors of the working directory (nearest first)
2. the repository's local exclude file (.git/info/exclude)
3. .gitignore files found while walking the working directory top-down

Every rule is normalized into a pair of glob patterns (the pattern itself and
an "extended" variant matching everything below it). Patterns introduced by
each directory are cached per directory so FileEnumerator can compose scoped
ignore lists for workspaces without recomputing global state.

KNOWN LIMITATION: matchers built for earlier rules only know the unignores
collected up to that point. A negation in a nested .gitignore therefore cannot
re-open a directory an ancestor rule already pruned from the discovery walk.
"""
import os
import posixpath
import re
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Sequence, Set, Tuple
from wcmatch import glob

from ..utils.debug import debug_log_object
from ..utils.performance import timerify

GITIGNORE_FILE = '.gitignore'
GIT_INFO_EXCLUDE = posixpath.join('.git', 'info', 'exclude')

# Version-control metadata, anchored to the working directory
GIT_METADATA_PATTERNS = ('.git', '.git/**')

# Noise never worth walking into, regardless of ignore files
GLOBAL_IGNORE_PATTERNS = ('**/node_modules', '**/node_modules/**', '.yarn', '.yarn/**')

IGNORE_MATCH_FLAGS = glob.GLOBSTAR | glob.DOTGLOB | glob.BRACE | glob.EXTGLOB | glob.FORCEUNIX

_INLINE_COMMENT = re.compile(r'(?<!\\)#.*')


class IgnoreRule(NamedTuple):
    """A normalized ignore-file line."""
    negated: bool
    patterns: Tuple[str, str]


@dataclass
class LocalIgnores:
    """Patterns newly introduced by one directory's ignore file(s)."""
    ignores: List[str] = field(default_factory=list)
    unignores: List[str] = field(default_factory=list)


@dataclass
class GitignoreResult:
    """Aggregate outcome of one discovery pass."""
    gitignore_files: List[str]
    ignores: List[str]
    unignores: List[str]


def _normalize(path: str | Path) -> str:
    return os.path.normpath(os.path.abspath(str(path)))


def _to_posix(path: str) -> str:
    return path.replace(os.sep, '/') if os.sep != '/' else path


def _relative(start: str, path: str) -> str:
    """Posix path of `path` relative to `start`; '' when they are equal."""
    rel = _to_posix(os.path.relpath(path, start))
    return '' if rel == '.' else rel


def _extend_unique(target: List[str], items: Iterable[str]) -> None:
    for item in items:
        if item not in target:
            target.append(item)


def _any_depth(pattern: str) -> str:
    return pattern if pattern.startswith('**/') else f'**/{pattern}'


def is_match(path: str, patterns: Sequence[str], unignores: Sequence[str] = ()) -> bool:
    """Test a relative posix path against ignore patterns with unignore exceptions.

    Args:
        path: Path relative to the working directory
        patterns: Ignore globs; any match counts
        unignores: Globs that veto an ignore match

    Returns:
        True if the path is ignored
    """
    if not patterns or not glob.globmatch(path, list(patterns), flags=IGNORE_MATCH_FLAGS, limit=0):
        return False
    return not (unignores and glob.globmatch(path, list(unignores), flags=IGNORE_MATCH_FLAGS, limit=0))


def is_path_ignored(path: str, patterns: Sequence[str], unignores: Sequence[str] = ()) -> bool:
    """Like is_match, but a path below an ignored directory is always ignored.

    Git never re-includes a file whose parent directory is excluded, and the
    enumerator never enters such a directory, so unignores only apply when
    every ancestor directory is itself kept.
    """
    parts = path.split('/')
    for depth in range(1, len(parts)):
        if is_match('/'.join(parts[:depth]), patterns, unignores):
            return True
    return is_match(path, patterns, unignores)


def convert_gitignore_to_glob_patterns(pattern: str) -> IgnoreRule:
    """Normalize one ignore-file pattern into a base and an extended glob.

    Examples:
        '*.log'      -> ('**/*.log', '**/*.log/**')
        '!keep.log'  -> negated, ('**/keep.log', '**/keep.log/**')
        '/root.txt'  -> ('root.txt', 'root.txt/**')
        'build/'     -> ('**/build', '**/build/**')

    Args:
        pattern: Trimmed, comment-free ignore-file line

    Returns:
        IgnoreRule with the negation flag and both glob variants
    """
    negated = pattern.startswith('!')
    if negated:
        pattern = pattern[1:]

    if pattern.endswith('/'):
        pattern = pattern[:-1]
    if pattern.startswith('*/**/'):
        pattern = pattern[5:]

    if pattern.startswith('/'):
        pattern = pattern[1:]
    elif not pattern.startswith('**/'):
        pattern = f'**/{pattern}'

    extended = pattern if pattern.endswith('/*') else f'{pattern}/**'

    return IgnoreRule(negated, (pattern, extended))


def _rebase_ancestor_pattern(pattern: str, match_from: re.Pattern) -> Optional[str]:
    """Rewrite a pattern from an ancestor ignore file relative to the working directory.

    Returns:
        The rewritten pattern, or None if it is anchored elsewhere
    """
    if match_from.match(pattern):
        return match_from.sub(r'\1', pattern, count=1)
    if pattern.startswith('/**/'):
        return pattern[1:]
    if pattern.startswith('!/**/'):
        return f'!{pattern[2:]}'
    if pattern.startswith('/') or pattern.startswith('!/'):
        return None
    return pattern


def parse_gitignore_lines(lines: Iterable[str], from_prefix: Optional[str] = None) -> List[IgnoreRule]:
    """Parse ignore-file lines into normalized rules.

    Blank lines, full-line comments and lines that are empty once an unescaped
    trailing comment is stripped are skipped.

    Args:
        lines: Raw lines of an ignore file
        from_prefix: For ancestor files, the working directory relative to the
                     file's directory, with a trailing slash (e.g. 'packages/a/')

    Returns:
        List of IgnoreRule in file order
    """
    match_from = re.compile(rf'^(!?/?)({re.escape(from_prefix)})') if from_prefix else None
    rules = []

    for line in lines:
        if not line.strip() or line.startswith('#'):
            continue

        pattern = _INLINE_COMMENT.sub('', line).strip()
        if not pattern.lstrip('!').strip('/'):
            continue

        if match_from is not None:
            pattern = _rebase_ancestor_pattern(pattern, match_from)
            if pattern is None:
                continue

        rules.append(convert_gitignore_to_glob_patterns(pattern))

    return rules


def parse_gitignore_file(file_path: str | Path, from_prefix: Optional[str] = None) -> List[IgnoreRule]:
    """Read and parse one ignore file; unreadable files yield no rules."""
    try:
        text = Path(file_path).read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError):
        return []
    return parse_gitignore_lines(text.splitlines(), from_prefix)


def find_ancestor_gitignore_files(cwd: str | Path) -> List[str]:
    """Collect .gitignore files above the working directory, nearest first.

    The walk stops at the filesystem root, or earlier at the first directory
    that doesn't exist or can't be inspected.

    Args:
        cwd: Working directory (not itself inspected)

    Returns:
        Absolute paths of ancestor .gitignore files
    """
    gitignore_paths = []
    directory = os.path.dirname(_normalize(cwd))

    while directory:
        if not os.path.isdir(directory):
            break
        file_path = os.path.join(directory, GITIGNORE_FILE)
        try:
            if stat.S_ISREG(os.stat(file_path).st_mode):
                gitignore_paths.append(file_path)
        except FileNotFoundError:
            pass
        except OSError:
            break

        parent = os.path.dirname(directory)
        if parent == directory:
            break
        directory = parent

    return gitignore_paths


class _Matcher:
    """Single ignore glob bound to the unignores known when it was created."""

    __slots__ = ('pattern', 'unignores')

    def __init__(self, pattern: str, unignores: Sequence[str]):
        self.pattern = pattern
        self.unignores = tuple(unignores)

    def __call__(self, path: str) -> bool:
        return is_match(path, (self.pattern,), self.unignores)


class _GitignoreCollector:
    """Mutable state of one discovery pass."""

    def __init__(self, cwd: str, cache: Dict[str, LocalIgnores]):
        self.cwd = cwd
        self.cache = cache
        self.init = [*GIT_METADATA_PATTERNS, *GLOBAL_IGNORE_PATTERNS]
        self.ignores: List[str] = list(self.init)
        self._ignore_set: Set[str] = set(self.init)
        self.unignores: List[str] = []
        self.gitignore_files: List[str] = []
        self.matchers: List[_Matcher] = []
        self._matcher_patterns: Set[str] = set()

        self._cache_local(cwd, self.init, [])
        for pattern in self.init:
            self._add_matcher(pattern)

    def _add_matcher(self, pattern: str) -> None:
        # First matcher registered for a pattern wins; later duplicates never match first
        if pattern in self._matcher_patterns:
            return
        self._matcher_patterns.add(pattern)
        self.matchers.append(_Matcher(pattern, self.unignores))

    def _add_ignore(self, pattern: str) -> None:
        if pattern not in self._ignore_set:
            self._ignore_set.add(pattern)
            self.ignores.append(pattern)

    def _cache_local(self, directory: str, ignores: Iterable[str], unignores: Iterable[str]) -> None:
        local = self.cache.setdefault(directory, LocalIgnores())
        _extend_unique(local.ignores, ignores)
        _extend_unique(local.unignores, unignores)

    def is_match(self, rel_path: str) -> bool:
        """Active-matcher test used to prune the discovery walk (first match wins)."""
        return any(matcher(rel_path) for matcher in self.matchers)

    def add_file(self, file_path: str, owner_dir: Optional[str] = None) -> None:
        """Parse an ignore file and register its patterns.

        Args:
            file_path: Absolute path of the ignore file
            owner_dir: Directory the patterns are relative to (defaults to the
                       file's own directory)
        """
        self.gitignore_files.append(_relative(self.cwd, file_path))

        directory = owner_dir or os.path.dirname(file_path)
        base = _relative(self.cwd, directory)
        is_ancestor = base.startswith('..')
        from_prefix = f'{_relative(directory, self.cwd)}/' if is_ancestor else None
        is_outer = base == '' or is_ancestor

        dir_ignores: List[str] = list(self.init) if base == '' else []
        dir_unignores: List[str] = []

        for rule in parse_gitignore_file(file_path, from_prefix):
            pattern, extended = rule.patterns

            if rule.negated:
                seen = extended if is_outer else _any_depth(extended)
                if seen in self.unignores:
                    continue
                added = [pattern, extended] if is_outer else [
                    posixpath.join(base, pattern), posixpath.join(base, extended)]
                self.unignores.extend(added)
                _extend_unique(dir_unignores, added)
            else:
                seen = extended if is_outer else _any_depth(extended)
                if seen in self._ignore_set:
                    continue
                added = [pattern, extended] if is_outer else [
                    posixpath.join(base, pattern), posixpath.join(base, extended)]
                for item in added:
                    self._add_ignore(item)
                _extend_unique(dir_ignores, added)

        self._cache_local(directory, dir_ignores, dir_unignores)
        for item in dir_ignores:
            self._add_matcher(item)

    def walk(self) -> None:
        """Discover nested .gitignore files, pruning ignored directories.

        os.walk yields a directory before its children, and the directory's own
        .gitignore is registered before its subdirectories are filtered, so
        nested rules always apply to the subtree below them.
        """
        for dirpath, dirnames, filenames in os.walk(self.cwd):
            if GITIGNORE_FILE in filenames:
                file_path = os.path.join(dirpath, GITIGNORE_FILE)
                if os.path.isfile(file_path):
                    self.add_file(file_path)

            dirnames[:] = sorted(
                name for name in dirnames
                if not self.is_match(_relative(self.cwd, os.path.join(dirpath, name)))
            )


class IgnoreResolver:
    """Resolve ignore files for one working directory.

    Owns the directory-keyed cache of local ignore patterns. The cache is
    cleared whenever a new predicate is built, or explicitly via reset().
    """

    def __init__(self, cwd: str | Path, gitignore: bool = True):
        """Initialize resolver.

        Args:
            cwd: Working directory (project root)
            gitignore: Whether ignore files are respected at all
        """
        self.cwd = _normalize(cwd)
        self.gitignore = gitignore
        self.cache: Dict[str, LocalIgnores] = {}

    def reset(self) -> None:
        """Forget every cached pattern set."""
        self.cache.clear()

    def relative(self, file_path: str | Path) -> str:
        """Posix path relative to the working directory.

        Args:
            file_path: Absolute path, or a path already relative to cwd

        Returns:
            Relative posix path
        """
        file_path = str(file_path)
        if not os.path.isabs(file_path):
            return _to_posix(os.path.normpath(file_path))
        return _relative(self.cwd, _normalize(file_path))

    def get_local_ignores(self, directory: str | Path) -> Optional[LocalIgnores]:
        return self.cache.get(_normalize(directory))

    @timerify
    def find_and_parse_gitignores(self) -> GitignoreResult:
        """Collect and normalize every ignore rule relevant to the working directory.

        Returns:
            GitignoreResult with discovered files (relative to cwd), the
            aggregate ignores and the ordered unignores
        """
        collector = _GitignoreCollector(self.cwd, self.cache)

        for file_path in find_ancestor_gitignore_files(self.cwd):
            collector.add_file(file_path)

        info_exclude = os.path.join(self.cwd, GIT_INFO_EXCLUDE)
        if os.path.isfile(info_exclude):
            collector.add_file(info_exclude, owner_dir=self.cwd)

        collector.walk()

        result = GitignoreResult(
            gitignore_files=collector.gitignore_files,
            ignores=collector.ignores,
            unignores=collector.unignores,
        )
        debug_log_object('*', 'Parsed gitignore files', {
            'gitignoreFiles': result.gitignore_files,
            'ignores': result.ignores,
            'unignores': result.unignores,
        })
        return result

    def get_gitignored_handler(self) -> Callable[[str | Path], bool]:
        """Build the top-level is-ignored predicate.

        Clears the cache first, so each call starts a fresh discovery pass.

        Returns:
            Predicate taking an absolute (or cwd-relative) path
        """
        self.reset()

        if not self.gitignore:
            return lambda file_path: False

        result = self.find_and_parse_gitignores()
        ignores = tuple(result.ignores)
        unignores = tuple(result.unignores)

        def is_gitignored(file_path: str | Path) -> bool:
            return is_path_ignored(self.relative(file_path), ignores, unignores)

        return timerify(is_gitignored)
