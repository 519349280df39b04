"""Merge-safe dependency graph of per-file import/export facts.

The graph maps file paths to FileNode records. Facts produced by the parser for
one file are folded in with update_import_map(), which updates the importing
file's outgoing record and the imported file's incoming (`imported`) aggregate
at the same time. Every mutation is a set/mapping union over storage owned by
a single node, so files can be merged in any order, repeatedly, or partially.
"""
import copy
import json
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple
import networkx as nx

# identifier -> importer ids
IdToFileMap = Dict[str, Set[str]]
# identifier -> alias -> importer ids
IdToNsToFileMap = Dict[str, Dict[str, Set[str]]]


class SymbolType(str, Enum):
    CLASS = 'class'
    ENUM = 'enum'
    FUNCTION = 'function'
    INTERFACE = 'interface'
    MEMBER = 'member'
    NAMESPACE = 'namespace'
    TYPE = 'type'
    UNKNOWN = 'unknown'
    VARIABLE = 'variable'


def _depth(levels: int):
    """Field declaration carrying the nesting depth used by the generic merge.

    0 is a set, 1 a mapping of sets, 2 a mapping of mappings of sets.
    """
    return field(default_factory=set if levels == 0 else dict, metadata={'depth': levels})


@dataclass
class ImportDetails:
    """How symbols of one file are imported (or re-exported) by others."""
    refs: Set[str] = _depth(0)
    imported: IdToFileMap = _depth(1)
    imported_as: IdToNsToFileMap = _depth(2)
    imported_ns: IdToFileMap = _depth(1)
    re_exported: IdToFileMap = _depth(1)
    re_exported_as: IdToNsToFileMap = _depth(2)
    re_exported_ns: IdToFileMap = _depth(1)


@dataclass
class Imports:
    internal: Dict[str, ImportDetails] = field(default_factory=dict)
    external: Set[str] = field(default_factory=set)
    unresolved: Set[str] = field(default_factory=set)


@dataclass
class Export:
    """An exported symbol, populated by the parser after creation."""
    identifier: str
    pos: int = 0
    line: int = 1
    col: int = 1
    type: SymbolType = SymbolType.UNKNOWN
    members: List[str] = field(default_factory=list)
    jsdoc_tags: Set[str] = field(default_factory=set)
    ref_count: int = 0
    explicitly_used: bool = False
    fixes: List[Tuple[Any, ...]] = field(default_factory=list)
    is_re_export: bool = False


@dataclass
class FileNode:
    imports: Imports = field(default_factory=Imports)
    exports: Dict[str, Export] = field(default_factory=dict)
    # None until some other file imports from this one
    imported: Optional[ImportDetails] = None
    duplicates: Set[Any] = field(default_factory=set)
    scripts: Set[str] = field(default_factory=set)
    trace_refs: Set[str] = field(default_factory=set)


DependencyGraph = Dict[str, FileNode]

# Per-field nesting depth, resolved once
_IMPORT_DETAIL_DEPTHS = tuple((f.name, f.metadata['depth']) for f in fields(ImportDetails))


def create_imports() -> ImportDetails:
    return ImportDetails()


def create_export(identifier: str) -> Export:
    """Create an export with zero position and UNKNOWN type."""
    return Export(identifier=identifier)


def create_file_node() -> FileNode:
    return FileNode()


def get_or_create_file_node(graph: DependencyGraph, file_path: str) -> FileNode:
    """Return the node for file_path, registering a fresh one if it is missing.

    Args:
        graph: Dependency graph
        file_path: Absolute file path

    Returns:
        The single FileNode for file_path
    """
    node = graph.get(file_path)
    if node is None:
        node = create_file_node()
        graph[file_path] = node
    return node


def _union(target: Any, source: Any, depth: int) -> None:
    if depth == 0:
        target.update(source)
        return
    for key, value in source.items():
        if key in target:
            _union(target[key], value, depth - 1)
        else:
            # Copy so no set is ever shared between two nodes
            target[key] = copy.deepcopy(value)


def merge_import_details(target: ImportDetails, source: ImportDetails) -> ImportDetails:
    """Union source into target in place. Nothing in target is ever replaced.

    Args:
        target: Accumulator owned by one node
        source: Details observed for one import relationship (left untouched)

    Returns:
        target, for chaining
    """
    for name, depth in _IMPORT_DETAIL_DEPTHS:
        _union(getattr(target, name), getattr(source, name), depth)
    return target


def merged_import_details(*details: ImportDetails) -> ImportDetails:
    """Pure union of any number of ImportDetails into a new value."""
    result = create_imports()
    for item in details:
        merge_import_details(result, item)
    return result


def add_value(id_map: IdToFileMap, identifier: str, value: str) -> None:
    id_map.setdefault(identifier, set()).add(value)


def add_ns_value(id_map: IdToNsToFileMap, identifier: str, ns: str, value: str) -> None:
    id_map.setdefault(identifier, {}).setdefault(ns, set()).add(value)


def update_import_map(file: FileNode, import_map: Dict[str, ImportDetails], graph: DependencyGraph) -> None:
    """Fold one file's resolved internal imports into the graph.

    For each imported file path, the details are merged into the importing
    file's outgoing record and into the imported file's `imported` aggregate.
    The imported file's node is created if it hasn't been analyzed (yet).

    Args:
        file: Node of the importing file
        import_map: Imported file path -> details observed in the importing file
        graph: Dependency graph
    """
    for imported_file_path, import_details in import_map.items():
        internal = file.imports.internal.setdefault(imported_file_path, create_imports())
        merge_import_details(internal, import_details)

        imported_file = get_or_create_file_node(graph, imported_file_path)
        if imported_file.imported is None:
            imported_file.imported = create_imports()
        merge_import_details(imported_file.imported, import_details)

        graph[imported_file_path] = imported_file


def _to_plain(value: Any) -> Any:
    """Convert sets/dataclasses/enums into sorted, JSON-friendly structures."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(key): _to_plain(item) for key, item in sorted(value.items(), key=lambda kv: str(kv[0]))}
    if isinstance(value, (set, frozenset)):
        return sorted((_to_plain(item) for item in value), key=lambda item: json.dumps(item, sort_keys=True))
    if isinstance(value, (list, tuple)):
        return [_to_plain(item) for item in value]
    if hasattr(value, '__dataclass_fields__'):
        return {f.name: _to_plain(getattr(value, f.name)) for f in fields(value)}
    return value


def graph_to_dict(graph: DependencyGraph) -> Dict[str, Any]:
    """Deterministic plain-data rendering of the graph, keyed by file path."""
    return _to_plain(graph)


def dump_graph(graph: DependencyGraph, indent: Optional[int] = 2) -> str:
    """Serialize the graph to JSON; equal graphs always produce identical text."""
    return json.dumps(graph_to_dict(graph), indent=indent, sort_keys=True)


def imported_symbols(details: ImportDetails) -> Set[str]:
    """Identifiers referenced through any import or re-export variant."""
    symbols: Set[str] = set()
    for name, depth in _IMPORT_DETAIL_DEPTHS:
        if depth > 0:
            symbols.update(getattr(details, name).keys())
    return symbols


def to_networkx(graph: DependencyGraph) -> nx.DiGraph:
    """Project the graph onto a NetworkX DiGraph.

    Edge (A, B) means "file A imports file B"; its `symbols` attribute lists
    the identifiers involved. Files never imported have in-degree 0.

    Args:
        graph: Dependency graph

    Returns:
        NetworkX DiGraph with one node per file
    """
    digraph = nx.DiGraph()

    for file_path in sorted(graph):
        node = graph[file_path]
        digraph.add_node(
            file_path,
            exports=sorted(node.exports),
            external=sorted(node.imports.external),
            unresolved=sorted(node.imports.unresolved),
        )

    for file_path in sorted(graph):
        for target, details in sorted(graph[file_path].imports.internal.items()):
            digraph.add_edge(file_path, target, symbols=sorted(imported_symbols(details)))

    return digraph
