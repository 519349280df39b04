"""Candidate file discovery.

Combines include/exclude globs with the ignore patterns cached by
IgnoreResolver, scoped to the directory being queried (the project root or a
nested workspace), and hands the result to a glob engine for traversal.
"""
import os
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple
from wcmatch import glob

from ..utils.debug import ROOT_WORKSPACE_NAME, debug_log_object
from ..utils.performance import timerify
from .gitignore import IgnoreResolver, LocalIgnores, is_match

GLOB_FLAGS = glob.GLOBSTAR | glob.BRACE | glob.EXTGLOB | glob.NEGATE | glob.FORCEUNIX

# engine(patterns, cwd, ignore, exclude, absolute, dot, only_directories) -> paths
GlobEngine = Callable[..., List[str]]


@dataclass(frozen=True)
class GlobOptions:
    """Options for one FileEnumerator query.

    Attributes:
        cwd: Project root; every pattern is relative to it
        dir: Query directory (cwd itself, or a workspace below it)
        gitignore: Respect ignore files
        ignore: Exclude globs supplied by the caller; nothing re-includes them
        absolute: Return absolute paths
        dot: Let wildcards match dotfiles
        only_directories: Return directories instead of files
    """
    cwd: str
    dir: str
    gitignore: bool = True
    ignore: Tuple[str, ...] = ()
    absolute: bool = True
    dot: bool = False
    only_directories: bool = False


def _split_ignore(ignore: Sequence[str]) -> Tuple[List[str], List[str]]:
    """Separate plain ignores from '!'-prefixed forced includes."""
    ignores = [pattern for pattern in ignore if not pattern.startswith('!')]
    unignores = [pattern[1:] for pattern in ignore if pattern.startswith('!')]
    return ignores, unignores


def wcmatch_glob(
    patterns: Sequence[str],
    cwd: str,
    ignore: Sequence[str] = (),
    exclude: Sequence[str] = (),
    absolute: bool = True,
    dot: bool = False,
    only_directories: bool = False,
) -> List[str]:
    """Default glob engine: an os.walk traversal matched with wcmatch.

    Directories hit by `exclude` or by `ignore` are pruned and never entered.
    As with git, a file inside an ignored directory can't be re-included.

    Args:
        patterns: Include globs relative to cwd; '!' negates
        cwd: Root directory for the traversal
        ignore: Ignore-file globs, optionally followed by '!'-prefixed
                forced includes that override them
        exclude: Caller's exclude globs, never overridden
        absolute: Return absolute paths instead of cwd-relative posix paths
        dot: Let wildcards match dotfiles
        only_directories: Return directories instead of files

    Returns:
        Sorted list of paths
    """
    flags = (GLOB_FLAGS | glob.DOTGLOB) if dot else GLOB_FLAGS
    matcher = glob.compile(list(patterns), flags=flags, limit=0)
    ignores, unignores = _split_ignore(ignore)
    exclude = list(exclude)

    def is_excluded(rel_path: str) -> bool:
        return is_match(rel_path, exclude) or is_match(rel_path, ignores, unignores)

    results = []
    for dirpath, dirnames, filenames in os.walk(cwd):
        rel_dir = os.path.relpath(dirpath, cwd).replace(os.sep, '/')
        prefix = '' if rel_dir == '.' else f'{rel_dir}/'

        dirnames[:] = sorted(name for name in dirnames if not is_excluded(prefix + name))

        for name in dirnames if only_directories else filenames:
            rel_path = prefix + name
            if not matcher.match(rel_path) or is_excluded(rel_path):
                continue
            results.append(os.path.normpath(os.path.join(cwd, rel_path)) if absolute else rel_path)

    return sorted(results)


class FileEnumerator:
    """Compute scoped ignore lists and delegate matching to a glob engine."""

    def __init__(self, resolver: IgnoreResolver, engine: Optional[GlobEngine] = None):
        """Initialize enumerator.

        Args:
            resolver: Resolver whose directory cache supplies local ignore patterns
            engine: Glob engine (defaults to wcmatch_glob)
        """
        self.resolver = resolver
        self.engine = engine or wcmatch_glob

    def build_ignore_list(self, options: GlobOptions) -> List[str]:
        """Collect the ignore-file patterns in effect for a query directory.

        Walks from the query directory up to (but not including) the project
        root, gathering each directory's cached ignores, then appends the
        root's own ignores and those of ignore files above the root (already
        rebased onto it). Unignores follow as '!'-prefixed forced includes.
        The caller's excludes are not part of this list.

        Args:
            options: Query options

        Returns:
            Ordered ignore list for the glob engine
        """
        if not options.gitignore:
            return []

        ignores: List[str] = []
        unignores: List[str] = []

        def collect(local: Optional[LocalIgnores]) -> None:
            if local:
                ignores.extend(local.ignores)
                unignores.extend(local.unignores)

        cwd = os.path.normpath(os.path.abspath(options.cwd))
        directory = os.path.normpath(os.path.abspath(options.dir))

        while directory != cwd:
            collect(self.resolver.get_local_ignores(directory))
            parent = os.path.dirname(directory)
            if parent == directory:
                # Query directory is not below cwd
                break
            directory = parent

        collect(self.resolver.get_local_ignores(cwd))

        directory = cwd
        while os.path.dirname(directory) != directory:
            directory = os.path.dirname(directory)
            collect(self.resolver.get_local_ignores(directory))

        return ignores + [f'!{pattern}' for pattern in unignores]

    @timerify
    def glob(self, patterns: str | Sequence[str], options: GlobOptions) -> List[str]:
        """Find files matching include patterns, minus excludes and ignored paths.

        Args:
            patterns: Include glob(s) relative to options.cwd
            options: Query options

        Returns:
            Matching paths (absolute unless options.absolute is False)
        """
        if isinstance(patterns, str):
            patterns = [patterns]
        if not patterns:
            return []

        ignore = self.build_ignore_list(options)

        scope = os.path.relpath(options.dir, options.cwd).replace(os.sep, '/')
        debug_log_object(scope if scope != '.' else ROOT_WORKSPACE_NAME, 'Glob options', {
            'patterns': list(patterns),
            'cwd': options.cwd,
            'dir': options.dir,
            'gitignore': options.gitignore,
            'ignore': ignore,
            'exclude': list(options.ignore),
            'absolute': options.absolute,
            'dot': options.dot,
            'onlyDirectories': options.only_directories,
        })

        return self.engine(
            list(patterns),
            cwd=options.cwd,
            ignore=ignore,
            exclude=list(options.ignore),
            absolute=options.absolute,
            dot=options.dot,
            only_directories=options.only_directories,
        )
