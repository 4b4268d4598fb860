"""Core data models shared by the resolver, graph builder, and slicer."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional

from .config import CHARS_PER_TOKEN

EdgeKind = Literal["static", "dynamic", "type-only"]
IncludeReason = Literal["seed", "layout", "import", "schema"]
ExcludeReason = Literal["size", "depth", "pattern", "circular", "external", "budget", "token_budget"]
BudgetDimension = Literal["bytes", "tokens"]


@dataclass(frozen=True)
class FileRecord:
    """One indexed file, as handed over by the indexer."""
    relative_path: str
    file_type: str
    imports: List[str] = field(default_factory=list)
    size_bytes: int = 0
    content_hash: str = ""
    route_path: Optional[str] = None


@dataclass
class RepoIndex:
    """Saved result of one repository scan."""
    repo_root: str
    files: List[FileRecord] = field(default_factory=list)
    git_commit: Optional[str] = None
    version: str = "1.0.0"

    def by_type(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for record in self.files:
            counts[record.file_type] = counts.get(record.file_type, 0) + 1
        return dict(sorted(counts.items()))


@dataclass(frozen=True)
class Resolution:
    """Result of resolving a single specifier.

    ``path is None and not is_external`` is a resolution miss: the specifier
    looked internal but no file matched.
    """
    path: Optional[str]
    is_external: bool

    @property
    def is_miss(self) -> bool:
        return self.path is None and not self.is_external


@dataclass
class DepEdge:
    src: str
    dst: str
    kind: EdgeKind = "static"


@dataclass
class UnresolvedImport:
    """An internal-looking specifier that matched no file on disk."""
    src: str
    specifier: str


@dataclass
class DepNode:
    node_id: str
    file_type: str
    is_external: bool = False
    is_circular: bool = False
    depth: Optional[int] = None


@dataclass
class GraphStats:
    total_nodes: int = 0
    total_edges: int = 0
    external_deps: int = 0
    circular_deps: int = 0
    avg_deps_per_file: float = 0.0
    max_deps_file: str = ""
    max_deps_count: int = 0
    unresolved_imports: int = 0
    dangling_edges: int = 0


@dataclass
class DepGraph:
    """A module dependency graph, either full-repository or seeded."""
    repo_root: str
    nodes: List[DepNode] = field(default_factory=list)
    edges: List[DepEdge] = field(default_factory=list)
    cycles: List[List[str]] = field(default_factory=list)
    stats: GraphStats = field(default_factory=GraphStats)
    seeds: List[str] = field(default_factory=list)
    max_depth: Optional[int] = None
    external_packages: List[str] = field(default_factory=list)
    unresolved: List[UnresolvedImport] = field(default_factory=list)
    git_commit: Optional[str] = None
    version: str = "1.0.0"

    @property
    def is_seeded(self) -> bool:
        return self.max_depth is not None

    def node_ids(self) -> List[str]:
        return [n.node_id for n in self.nodes]

    def get_node(self, node_id: str) -> Optional[DepNode]:
        for node in self.nodes:
            if node.node_id == node_id:
                return node
        return None


@dataclass
class SliceFile:
    relative_path: str
    file_type: str
    size_bytes: int
    tokens: int
    depth: int
    reason: IncludeReason


@dataclass
class ExcludedFile:
    relative_path: str
    reason: ExcludeReason


@dataclass(frozen=True)
class ModelProfile:
    """A named model context profile used to derive a token budget."""
    name: str
    context_window: int
    max_output: int
    reserve_for_output: int
    cost_per_1k_input: Optional[float] = None
    cost_per_1k_output: Optional[float] = None

    @property
    def available_for_input(self) -> int:
        return self.context_window - self.reserve_for_output


@dataclass
class Budget:
    """Running budget over exactly one dimension (bytes or tokens)."""
    dimension: BudgetDimension
    ceiling: int
    used: int = 0
    profile: Optional[ModelProfile] = None

    def __post_init__(self):
        if self.ceiling < 0:
            raise ValueError(f"Budget ceiling must be non-negative, got {self.ceiling}")

    @property
    def remaining(self) -> int:
        return self.ceiling - self.used

    @property
    def exclusion_reason(self) -> ExcludeReason:
        return "token_budget" if self.dimension == "tokens" else "budget"

    def fits(self, cost: int) -> bool:
        return self.used + cost <= self.ceiling

    def charge(self, cost: int) -> None:
        self.used += cost


@dataclass
class TokenBudgetReport:
    model: str
    context_window: int
    reserved_for_output: int
    available_for_input: int
    used: int
    remaining: int
    estimated_cost: Optional[float] = None


@dataclass
class SliceSummary:
    total_files: int = 0
    total_bytes: int = 0
    total_tokens: int = 0
    max_depth: int = 0
    by_type: Dict[str, int] = field(default_factory=dict)


@dataclass
class ContextSlice:
    """Deterministic partition of a bounded graph into included and excluded files."""
    name: str
    slice_type: Literal["route", "feature"]
    seed_files: List[str]
    files: List[SliceFile] = field(default_factory=list)
    excluded: List[ExcludedFile] = field(default_factory=list)
    summary: SliceSummary = field(default_factory=SliceSummary)
    budget_dimension: BudgetDimension = "bytes"
    budget_ceiling: int = 0
    model: Optional[str] = None
    token_budget: Optional[TokenBudgetReport] = None
    git_commit: Optional[str] = None
    version: str = "1.0.0"

    @property
    def considered(self) -> int:
        return len(self.files) + len(self.excluded)

    def included_paths(self) -> List[str]:
        return [f.relative_path for f in self.files]

    def excluded_paths(self) -> List[str]:
        return [e.relative_path for e in self.excluded]


def estimate_tokens(text: str) -> int:
    """Approximate token count for source text.

    Roughly 3.5 characters per token for code. Stable rather than exact:
    identical content always yields the identical estimate.
    """
    return math.ceil(len(text) / CHARS_PER_TOKEN)
