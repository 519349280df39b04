"""One analysis pass: ignore resolution, file discovery and graph building.

AnalysisSession owns every piece of per-pass mutable state (the ignore
pattern cache, the is-ignored predicate and the dependency graph), so
repeated or concurrent sessions never see each other's data.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Set
import networkx as nx
from rich.console import Console

from ..config import get_config
from ..utils.debug import ROOT_WORKSPACE_NAME, debug_log, debug_log_array, get_debug_console
from ..utils.performance import performance
from .compilers import CompilerRegistry, source_glob
from .dependency_graph import (
    DependencyGraph,
    Export,
    ImportDetails,
    dump_graph,
    get_or_create_file_node,
    to_networkx,
    update_import_map,
)
from .file_enumerator import FileEnumerator, GlobEngine, GlobOptions
from .gitignore import IgnoreResolver


@dataclass
class FileAnalysis:
    """Facts the parser extracted from one file."""
    imports: Dict[str, ImportDetails] = field(default_factory=dict)
    exports: Dict[str, Export] = field(default_factory=dict)
    external: Set[str] = field(default_factory=set)
    unresolved: Set[str] = field(default_factory=set)
    duplicates: Set[Any] = field(default_factory=set)
    scripts: Set[str] = field(default_factory=set)
    trace_refs: Set[str] = field(default_factory=set)


class AnalysisSession:
    """Wire IgnoreResolver, FileEnumerator and the dependency graph for one pass."""

    def __init__(
        self,
        cwd: str | Path,
        gitignore: Optional[bool] = None,
        compilers: Optional[CompilerRegistry] = None,
        engine: Optional[GlobEngine] = None,
    ):
        """Initialize session.

        Args:
            cwd: Project root
            gitignore: Respect ignore files (defaults to Config.gitignore)
            compilers: Compilers for non-source files
            engine: Glob engine override for FileEnumerator
        """
        self.cwd = os.path.normpath(os.path.abspath(str(cwd)))
        self.gitignore = get_config().gitignore if gitignore is None else gitignore
        self.compilers = compilers or CompilerRegistry()
        self.resolver = IgnoreResolver(self.cwd, gitignore=self.gitignore)
        self.enumerator = FileEnumerator(self.resolver, engine=engine)
        self.graph: DependencyGraph = {}
        self._is_ignored: Optional[Callable[[str | Path], bool]] = None

    def start(self) -> Callable[[str | Path], bool]:
        """Resolve ignore files and build the is-ignored predicate.

        Returns:
            The predicate (also available as is_ignored)
        """
        self._is_ignored = self.resolver.get_gitignored_handler()
        return self._is_ignored

    def is_ignored(self, file_path: str | Path) -> bool:
        if self._is_ignored is None:
            self.start()
        return self._is_ignored(file_path)

    def reset(self) -> None:
        """Drop all per-pass state so the next pass starts from scratch."""
        self.resolver.reset()
        self.graph = {}
        self._is_ignored = None

    def resolve_dir(self, dir: Optional[str | Path] = None) -> str:
        """Absolute query directory; relative paths are taken from the project root."""
        if not dir:
            return self.cwd
        return os.path.normpath(os.path.join(self.cwd, str(dir)))

    def glob(
        self,
        patterns: str | Sequence[str],
        dir: Optional[str | Path] = None,
        ignore: Sequence[str] = (),
        absolute: bool = True,
        dot: bool = False,
        only_directories: bool = False,
    ) -> List[str]:
        """Enumerate files for the project root or a workspace below it.

        Results never include a path the session's is_ignored() rejects.

        Args:
            patterns: Include glob(s) relative to the project root
            dir: Workspace directory (defaults to the project root)
            ignore: Exclude globs
            absolute: Return absolute paths
            dot: Let wildcards match dotfiles
            only_directories: Return directories instead of files

        Returns:
            Matching paths
        """
        if self._is_ignored is None and self.gitignore:
            # The enumerator reads the cache filled by the resolver
            self.start()

        options = GlobOptions(
            cwd=self.cwd,
            dir=self.resolve_dir(dir),
            gitignore=self.gitignore,
            ignore=tuple(ignore),
            absolute=absolute,
            dot=dot,
            only_directories=only_directories,
        )
        paths = self.enumerator.glob(patterns, options)
        if not self.gitignore:
            return paths
        # Rules of nested ignore files outside the query scope still apply
        return [path for path in paths if not self.is_ignored(path)]

    def source_files(self, dir: Optional[str | Path] = None, ignore: Sequence[str] = ()) -> List[str]:
        """Enumerate source files plus files handled by registered compilers.

        When dir is a workspace below the project root, only files inside it
        are returned.
        """
        directory = self.resolve_dir(dir)
        scope = os.path.relpath(directory, self.cwd).replace(os.sep, '/')

        pattern = source_glob(self.compilers.extensions)
        if scope != '.':
            pattern = f'{scope}/{pattern}'

        files = self.glob(pattern, dir=directory, ignore=ignore)
        debug_log_array(scope if scope != '.' else ROOT_WORKSPACE_NAME, 'Source files', files)
        return files

    def read_source(self, file_path: str | Path) -> str:
        """Read a file as source text, running its compiler if one is registered.

        Raises:
            OSError: If the file can't be read
            CompilerError: If the compiler fails
        """
        text = Path(file_path).read_text(encoding='utf-8')
        return self.compilers.compile(text, str(file_path))

    def add_file(self, file_path: str, analysis: FileAnalysis) -> None:
        """Fold one file's parser output into the graph.

        Safe to call for files in any order; importing a file that hasn't been
        analyzed yet creates its node.

        Args:
            file_path: Absolute path of the analyzed file
            analysis: Facts extracted from it
        """
        node = get_or_create_file_node(self.graph, file_path)

        for identifier, export in analysis.exports.items():
            node.exports.setdefault(identifier, export)

        node.imports.external.update(analysis.external)
        node.imports.unresolved.update(analysis.unresolved)
        node.duplicates.update(analysis.duplicates)
        node.scripts.update(analysis.scripts)
        node.trace_refs.update(analysis.trace_refs)

        update_import_map(node, analysis.imports, self.graph)

        debug_log(os.path.relpath(file_path, self.cwd), f"Merged {len(analysis.imports)} internal imports")

    def to_networkx(self) -> nx.DiGraph:
        return to_networkx(self.graph)

    def dump(self) -> str:
        return dump_graph(self.graph)

    def print_timings(self, console: Optional[Console] = None) -> bool:
        """Print the timing table collected during this process.

        Args:
            console: Destination (defaults to the stderr debug console)

        Returns:
            True if a table was printed (performance recording is enabled)
        """
        if not performance.enabled:
            return False
        (console or get_debug_console()).print(performance.get_table())
        return True
