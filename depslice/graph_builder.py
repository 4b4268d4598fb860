"""Dependency graph construction.

Two modes share one resolver and one cycle pass:

- :func:`build_full_graph` turns every indexed file into a node, whether or
  not anything reaches it.
- :func:`build_seeded_graph` walks breadth-first from seed files down to a
  depth limit, so each node's ``depth`` is its shortest hop count from the
  seed set.

Graphs are built append-only: nodes and edges are added once, in discovery
order, and never rewritten afterwards apart from the ``is_circular`` flag
derived at the end.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .config import DEFAULT_GRAPH_DEPTH
from .cycles import adjacency_from_edges, circular_members, detect_cycles
from .indexer import build_record, infer_file_type
from .models import DepEdge, DepGraph, DepNode, FileRecord, GraphStats, UnresolvedImport
from .reader import FileReader
from .resolver import AliasConfig, ModuleResolver, classify_import, is_plausible_specifier, package_name
from .utils import normalize_relpath

logger = logging.getLogger(__name__)


class EmptySeedSetError(ValueError):
    """None of the requested seed files exist in the repository."""

    def __init__(self, seeds: Sequence[str]) -> None:
        self.seeds = list(seeds)
        shown = ", ".join(map(str, self.seeds)) if self.seeds else "(none given)"
        super().__init__(f"No seed files resolved: {shown}")


class _Collector:
    """Per-file import resolution shared by both build modes."""

    def __init__(self, reader: FileReader, resolver: ModuleResolver) -> None:
        self.reader = reader
        self.resolver = resolver
        self.external: Set[str] = set()
        self.unresolved: List[UnresolvedImport] = []

    def outbound(self, source: str, specifiers: Iterable[str]) -> List[DepEdge]:
        """Resolve *specifiers* of *source* into de-duplicated internal edges."""
        edges: List[DepEdge] = []
        seen: Set[str] = set()
        content: Optional[str] = None

        for specifier in dict.fromkeys(specifiers):
            if not is_plausible_specifier(specifier):
                logger.debug("Skipping implausible specifier %r in %s", specifier, source)
                continue
            resolution = self.resolver.resolve(specifier, source)
            if resolution.is_external:
                self.external.add(package_name(specifier))
                continue
            if resolution.path is None:
                self.unresolved.append(UnresolvedImport(src=source, specifier=specifier))
                continue
            if resolution.path in seen:
                continue
            seen.add(resolution.path)
            if content is None:
                content = self.reader.read_text_safe(source) or ""
            edges.append(DepEdge(src=source, dst=resolution.path, kind=classify_import(content, specifier)))
        return edges


def _make_resolver(reader: FileReader, aliases: Optional[AliasConfig]) -> ModuleResolver:
    return ModuleResolver(reader, aliases if aliases is not None else AliasConfig.from_tsconfig(reader))


def _finish(graph: DepGraph, collector: _Collector, dangling: int = 0) -> DepGraph:
    adjacency = adjacency_from_edges(graph.node_ids(), graph.edges)
    graph.cycles = detect_cycles(adjacency)
    members = circular_members(graph.cycles)
    for node in graph.nodes:
        if node.node_id in members:
            node.is_circular = True

    graph.external_packages = sorted(collector.external)
    graph.unresolved = list(collector.unresolved)
    graph.stats = compute_stats(graph, dangling)
    return graph


def compute_stats(graph: DepGraph, dangling: int = 0) -> GraphStats:
    dep_counts: Dict[str, int] = {}
    for edge in graph.edges:
        dep_counts[edge.src] = dep_counts.get(edge.src, 0) + 1

    max_file, max_count = "", 0
    for file_path, count in dep_counts.items():
        if count > max_count:
            max_file, max_count = file_path, count

    total_nodes = len(graph.nodes)
    return GraphStats(
        total_nodes=total_nodes,
        total_edges=len(graph.edges),
        external_deps=len(graph.external_packages),
        circular_deps=len(graph.cycles),
        avg_deps_per_file=len(graph.edges) / total_nodes if total_nodes else 0.0,
        max_deps_file=max_file,
        max_deps_count=max_count,
        unresolved_imports=len(graph.unresolved),
        dangling_edges=dangling,
    )


def build_full_graph(
    records: Sequence[FileRecord],
    reader: FileReader,
    aliases: Optional[AliasConfig] = None,
    repo_root: str = "",
) -> DepGraph:
    """Graph of every indexed file and every internal import between them.

    An import resolving to a file the indexer skipped (tests, declaration
    files, ignored directories) has no node to point at; it is counted in
    ``stats.dangling_edges`` instead of becoming an edge.

    Args:
        records: Indexed files; each becomes one node, duplicates ignored.
        reader: File access used by the resolver.
        aliases: Alias table; ``None`` reads tsconfig/jsconfig paths.
        repo_root: Root recorded on the graph.

    Returns:
        DepGraph with cycles, external packages and stats filled in.
    """
    collector = _Collector(reader, _make_resolver(reader, aliases))
    graph = DepGraph(repo_root=repo_root)

    known: Dict[str, FileRecord] = {}
    for record in records:
        if record.relative_path in known:
            logger.debug("Ignoring duplicate record for %s", record.relative_path)
            continue
        known[record.relative_path] = record
        graph.nodes.append(DepNode(node_id=record.relative_path, file_type=record.file_type))

    dangling = 0
    for path, record in known.items():
        for edge in collector.outbound(path, record.imports):
            if edge.dst not in known:
                dangling += 1
                logger.debug("Import %s -> %s targets an unindexed file", edge.src, edge.dst)
                continue
            graph.edges.append(edge)

    return _finish(graph, collector, dangling)


def _normalize_seeds(seeds: Iterable[str]) -> List[str]:
    normalized: List[str] = []
    for seed in seeds:
        rel = normalize_relpath(seed.strip()) if isinstance(seed, str) else None
        if rel:
            normalized.append(rel)
    return list(dict.fromkeys(normalized))


def resolve_seeds(seeds: Iterable[str], reader: FileReader) -> List[str]:
    """Existing seed paths, de-duplicated, in request order.

    Raises :class:`EmptySeedSetError` when nothing survives.
    """
    requested = list(seeds)
    existing = []
    for seed in _normalize_seeds(requested):
        if reader.exists(seed):
            existing.append(seed)
        else:
            logger.debug("Skipping missing seed %s", seed)
    if not existing:
        raise EmptySeedSetError(requested)
    return existing


def build_seeded_graph(
    seeds: Iterable[str],
    records: Sequence[FileRecord],
    reader: FileReader,
    aliases: Optional[AliasConfig] = None,
    max_depth: int = DEFAULT_GRAPH_DEPTH,
    repo_root: str = "",
) -> DepGraph:
    """Breadth-first graph from *seeds*, bounded by *max_depth* hops.

    A file is finalised the first time it leaves the queue; later sightings
    are ignored before any resolution work. Files at exactly *max_depth* are
    finalised, but their imports are not followed; their edges are kept only
    when they point at a file that made it into the graph.

    Args:
        seeds: Seed paths relative to the root; missing ones are skipped.
        records: Indexed files; reachable files outside it are indexed on the fly.
        reader: File access used by the resolver.
        aliases: Alias table; ``None`` reads tsconfig/jsconfig paths.
        max_depth: Inclusive hop limit, non-negative.
        repo_root: Root recorded on the graph.

    Returns:
        DepGraph whose nodes carry their BFS depth, in discovery order.

    Raises:
        EmptySeedSetError: If no seed exists.
        ValueError: If *max_depth* is negative.
    """
    if max_depth < 0:
        raise ValueError(f"max_depth must be non-negative, got {max_depth}")

    seed_paths = resolve_seeds(seeds, reader)
    collector = _Collector(reader, _make_resolver(reader, aliases))
    graph = DepGraph(repo_root=repo_root, seeds=seed_paths, max_depth=max_depth)
    record_map = {r.relative_path: r for r in records}

    queue: Deque[Tuple[str, int]] = deque((seed, 0) for seed in seed_paths)
    visited: Set[str] = set()
    pending: List[DepEdge] = []

    while queue:
        current, depth = queue.popleft()
        if current in visited:
            continue
        visited.add(current)

        record = record_map.get(current) or build_record(current, reader)
        file_type = record.file_type if record else infer_file_type(current)
        graph.nodes.append(DepNode(node_id=current, file_type=file_type, depth=depth))

        imports = record.imports if record else []
        for edge in collector.outbound(current, imports):
            pending.append(edge)
            if depth < max_depth and edge.dst not in visited:
                queue.append((edge.dst, depth + 1))

    dangling = 0
    for edge in pending:
        if edge.dst in visited:
            graph.edges.append(edge)
        else:
            dangling += 1

    logger.debug(
        "Seeded graph: %d seeds, %d nodes, %d edges (max depth %d)",
        len(seed_paths), len(graph.nodes), len(graph.edges), max_depth,
    )
    return _finish(graph, collector, dangling)
