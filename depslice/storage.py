"""JSON persistence for the repository index, dependency graphs and context slices.

Records are written with stable key order and no timestamps, so two runs
over an unchanged tree produce byte-identical files.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import OUTPUT_DIRNAME
from .models import (
    ContextSlice,
    DepEdge,
    DepGraph,
    DepNode,
    ExcludedFile,
    FileRecord,
    GraphStats,
    RepoIndex,
    SliceFile,
    SliceSummary,
    TokenBudgetReport,
    UnresolvedImport,
)

logger = logging.getLogger(__name__)


def graph_to_dict(graph: DepGraph) -> Dict[str, Any]:
    nodes = []
    for node in graph.nodes:
        entry: Dict[str, Any] = {
            "id": node.node_id,
            "type": node.file_type,
            "isExternal": node.is_external,
            "isCircular": node.is_circular,
        }
        if node.depth is not None:
            entry["depth"] = node.depth
        nodes.append(entry)

    return {
        "version": graph.version,
        "gitCommit": graph.git_commit,
        "repoRoot": graph.repo_root,
        "seeds": graph.seeds,
        "maxDepth": graph.max_depth,
        "nodes": nodes,
        "edges": [{"from": e.src, "to": e.dst, "type": e.kind} for e in graph.edges],
        "cycles": graph.cycles,
        "externalPackages": graph.external_packages,
        "unresolved": [{"from": u.src, "specifier": u.specifier} for u in graph.unresolved],
        "stats": asdict(graph.stats),
    }


def graph_from_dict(data: Dict[str, Any]) -> DepGraph:
    return DepGraph(
        repo_root=data.get("repoRoot", ""),
        nodes=[
            DepNode(
                node_id=n["id"],
                file_type=n.get("type", "unknown"),
                is_external=n.get("isExternal", False),
                is_circular=n.get("isCircular", False),
                depth=n.get("depth"),
            )
            for n in data.get("nodes", [])
        ],
        edges=[DepEdge(src=e["from"], dst=e["to"], kind=e.get("type", "static")) for e in data.get("edges", [])],
        cycles=[list(c) for c in data.get("cycles", [])],
        stats=GraphStats(**data.get("stats", {})),
        seeds=list(data.get("seeds", [])),
        max_depth=data.get("maxDepth"),
        external_packages=list(data.get("externalPackages", [])),
        unresolved=[UnresolvedImport(src=u["from"], specifier=u["specifier"]) for u in data.get("unresolved", [])],
        git_commit=data.get("gitCommit"),
        version=data.get("version", "1.0.0"),
    )


def slice_to_dict(slice_: ContextSlice) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "version": slice_.version,
        "gitCommit": slice_.git_commit,
        "type": slice_.slice_type,
        "name": slice_.name,
        "seedFiles": slice_.seed_files,
        "budget": {"dimension": slice_.budget_dimension, "ceiling": slice_.budget_ceiling},
        "files": [
            {
                "relativePath": f.relative_path,
                "type": f.file_type,
                "sizeBytes": f.size_bytes,
                "tokens": f.tokens,
                "depth": f.depth,
                "reason": f.reason,
            }
            for f in slice_.files
        ],
        "excluded": [{"file": e.relative_path, "reason": e.reason} for e in slice_.excluded],
        "summary": asdict(slice_.summary),
    }
    if slice_.model is not None:
        data["model"] = slice_.model
    if slice_.token_budget is not None:
        data["tokenBudget"] = asdict(slice_.token_budget)
    return data


def slice_from_dict(data: Dict[str, Any]) -> ContextSlice:
    budget = data.get("budget", {})
    token_budget = data.get("tokenBudget")
    return ContextSlice(
        name=data["name"],
        slice_type=data.get("type", "feature"),
        seed_files=list(data.get("seedFiles", [])),
        files=[
            SliceFile(
                relative_path=f["relativePath"],
                file_type=f.get("type", "unknown"),
                size_bytes=f.get("sizeBytes", 0),
                tokens=f.get("tokens", 0),
                depth=f.get("depth", 0),
                reason=f.get("reason", "import"),
            )
            for f in data.get("files", [])
        ],
        excluded=[ExcludedFile(e["file"], e["reason"]) for e in data.get("excluded", [])],
        summary=SliceSummary(**data.get("summary", {})),
        budget_dimension=budget.get("dimension", "bytes"),
        budget_ceiling=budget.get("ceiling", 0),
        model=data.get("model"),
        token_budget=TokenBudgetReport(**token_budget) if token_budget else None,
        git_commit=data.get("gitCommit"),
        version=data.get("version", "1.0.0"),
    )


def index_to_dict(index: RepoIndex) -> Dict[str, Any]:
    files = []
    for record in index.files:
        entry: Dict[str, Any] = {
            "relativePath": record.relative_path,
            "type": record.file_type,
            "sizeBytes": record.size_bytes,
            "hash": record.content_hash,
            "imports": record.imports,
        }
        if record.route_path is not None:
            entry["routePath"] = record.route_path
        files.append(entry)
    return {
        "version": index.version,
        "gitCommit": index.git_commit,
        "repoRoot": index.repo_root,
        "files": files,
        "summary": {"totalFiles": len(index.files), "byType": index.by_type()},
    }


def index_from_dict(data: Dict[str, Any]) -> RepoIndex:
    return RepoIndex(
        repo_root=data.get("repoRoot", ""),
        files=[
            FileRecord(
                relative_path=f["relativePath"],
                file_type=f.get("type", "component"),
                imports=list(f.get("imports", [])),
                size_bytes=f.get("sizeBytes", 0),
                content_hash=f.get("hash", ""),
                route_path=f.get("routePath"),
            )
            for f in data.get("files", [])
        ],
        git_commit=data.get("gitCommit"),
        version=data.get("version", "1.0.0"),
    )


def _write_json(path: Path, payload: Dict[str, Any]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    return path


def _read_json(path: Path) -> Optional[Dict[str, Any]]:
    if not path.exists():
        return None
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Could not read %s: %s", path, exc)
        return None
    return payload if isinstance(payload, dict) else None


class OutputStore:
    """Manage the ``.depslice`` output directory of one repository.

    Layout::

        <output_dir>/index.json
        <output_dir>/graphs/deps.json
        <output_dir>/slices/<name>.json
    """

    def __init__(self, repo_root: Path, output_dir: Optional[Path] = None) -> None:
        """Initialize the store.

        Args:
            repo_root: Repository the outputs describe.
            output_dir: Output directory; defaults to ``<repo_root>/.depslice``.
        """
        self.repo_root = repo_root
        self.output_dir = output_dir or repo_root / OUTPUT_DIRNAME

    @property
    def index_path(self) -> Path:
        return self.output_dir / "index.json"

    @property
    def graphs_dir(self) -> Path:
        return self.output_dir / "graphs"

    @property
    def slices_dir(self) -> Path:
        return self.output_dir / "slices"

    def save_index(self, index: RepoIndex) -> Path:
        """Write the repository index.

        Args:
            index: Scan result to persist.

        Returns:
            Path of the written ``index.json``.
        """
        return _write_json(self.index_path, index_to_dict(index))

    def load_index(self) -> Optional[RepoIndex]:
        """Load the saved repository index.

        Returns:
            RepoIndex, or None if missing or unreadable.
        """
        payload = _read_json(self.index_path)
        return index_from_dict(payload) if payload is not None else None

    def save_graph(self, graph: DepGraph, path: Optional[Path] = None) -> Path:
        """Write a dependency graph as JSON.

        Args:
            graph: Graph to persist.
            path: Target file; defaults to ``graphs/deps.json``.

        Returns:
            Path of the written file.
        """
        return _write_json(path or self.graphs_dir / "deps.json", graph_to_dict(graph))

    def load_graph(self, path: Optional[Path] = None) -> Optional[DepGraph]:
        """Load a saved dependency graph.

        Args:
            path: Source file; defaults to ``graphs/deps.json``.

        Returns:
            DepGraph, or None if missing or unreadable.
        """
        payload = _read_json(path or self.graphs_dir / "deps.json")
        return graph_from_dict(payload) if payload is not None else None

    def save_slice(self, slice_: ContextSlice, file_stem: str) -> Path:
        """Write a context slice to ``slices/<file_stem>.json``."""
        return _write_json(self.slices_dir / f"{file_stem}.json", slice_to_dict(slice_))

    def load_slice(self, file_stem: str) -> Optional[ContextSlice]:
        """Load ``slices/<file_stem>.json``.

        Args:
            file_stem: Slice file name without extension.

        Returns:
            ContextSlice, or None if missing or unreadable.
        """
        payload = _read_json(self.slices_dir / f"{file_stem}.json")
        return slice_from_dict(payload) if payload is not None else None

    def list_slices(self) -> List[str]:
        """Stems of saved slices, sorted."""
        if not self.slices_dir.exists():
            return []
        return sorted(p.stem for p in self.slices_dir.glob("*.json"))

    def save_text(self, relative_name: str, text: str) -> Path:
        path = self.output_dir / relative_name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path
