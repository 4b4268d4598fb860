"""Budgeted slicing of a bounded dependency graph.

Nodes are visited in ``(depth, path)`` order and each one ends up either
included or excluded, never both and never neither. The budget is greedy but
keeps going after a miss: a file that does not fit is excluded and the next,
possibly smaller, file is still considered.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .config import (
    DEFAULT_MAX_BYTES,
    DEFAULT_MAX_FILE_BYTES,
    DEFAULT_SCHEMA_PREFIXES,
    DEFAULT_SLICE_DEPTH,
)
from .graph_builder import EmptySeedSetError, build_seeded_graph
from .models import (
    Budget,
    ContextSlice,
    DepGraph,
    DepNode,
    ExcludedFile,
    FileRecord,
    IncludeReason,
    ModelProfile,
    SliceFile,
    SliceSummary,
    TokenBudgetReport,
    estimate_tokens,
)
from .reader import FileReader
from .resolver import AliasConfig
from .utils import matches_patterns, normalize_relpath

logger = logging.getLogger(__name__)

__all__ = [
    "MODEL_PROFILES",
    "EmptySeedSetError",
    "derive_budget",
    "find_route_seeds",
    "get_profile",
    "normalize_route",
    "slice_feature",
    "slice_graph",
    "slice_route",
]


MODEL_PROFILES: Dict[str, ModelProfile] = {
    p.name: p
    for p in (
        ModelProfile("claude-opus-4.5", 200000, 32000, 8000, 0.015, 0.075),
        ModelProfile("claude-sonnet-4", 200000, 64000, 8000, 0.003, 0.015),
        ModelProfile("gpt-4o", 128000, 16384, 4000, 0.005, 0.015),
        ModelProfile("gpt-4-turbo", 128000, 4096, 4000, 0.01, 0.03),
        ModelProfile("o1", 200000, 100000, 16000, 0.015, 0.06),
        ModelProfile("o3", 200000, 100000, 16000, 0.01, 0.04),
        ModelProfile("gemini-2.0-pro", 1000000, 8192, 4000, 0.00125, 0.005),
        ModelProfile("gemini-1.5-pro", 1000000, 8192, 4000, 0.00125, 0.005),
    )
}


def get_profile(name: str, extra: Optional[Mapping[str, ModelProfile]] = None) -> ModelProfile:
    """Look up a profile; user-defined profiles shadow built-in ones."""
    profiles = dict(MODEL_PROFILES)
    if extra:
        profiles.update(extra)
    try:
        return profiles[name]
    except KeyError:
        known = ", ".join(sorted(profiles))
        raise ValueError(f"Unknown model profile '{name}'. Known profiles: {known}") from None


def derive_budget(
    model: Optional[str] = None,
    max_tokens: Optional[int] = None,
    max_bytes: Optional[int] = None,
    profiles: Optional[Mapping[str, ModelProfile]] = None,
) -> Budget:
    """Pick the single active budget dimension for one slicing run.

    A named model means tokens, with ``context_window - reserve_for_output``
    as the ceiling unless *max_tokens* overrides it. *max_tokens* alone also
    selects tokens. Otherwise the budget is bytes (*max_bytes* or 8 MiB).
    Token and byte limits cannot be combined.
    """
    if max_bytes is not None and (model is not None or max_tokens is not None):
        raise ValueError("Byte and token budgets are mutually exclusive; pass only one")

    if model is not None:
        profile = get_profile(model, profiles)
        ceiling = max_tokens if max_tokens is not None else profile.available_for_input
        return Budget(dimension="tokens", ceiling=ceiling, profile=profile)
    if max_tokens is not None:
        return Budget(dimension="tokens", ceiling=max_tokens)
    return Budget(dimension="bytes", ceiling=max_bytes if max_bytes is not None else DEFAULT_MAX_BYTES)


def _sort_key(node: DepNode) -> Tuple[int, str]:
    return (node.depth or 0, node.node_id)


def _inclusion_reason(
    path: str,
    seeds: Iterable[str],
    layout_files: Iterable[str],
    schema_prefixes: Sequence[str],
) -> IncludeReason:
    if path in layout_files:
        return "layout"
    if path in seeds:
        return "seed"
    if any(path.startswith(prefix) for prefix in schema_prefixes):
        return "schema"
    return "import"


def _normalize_paths(paths: Iterable[str]) -> List[str]:
    normalized = (normalize_relpath(p.strip()) for p in paths if isinstance(p, str))
    return list(dict.fromkeys(p for p in normalized if p))


def slice_graph(
    graph: DepGraph,
    budget: Budget,
    reader: FileReader,
    seeds: Optional[Sequence[str]] = None,
    *,
    name: str = "feature",
    slice_type: str = "feature",
    layout_files: Sequence[str] = (),
    schema_prefixes: Sequence[str] = DEFAULT_SCHEMA_PREFIXES,
    exclude: Sequence[str] = (),
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
) -> ContextSlice:
    """Partition *graph* into included and excluded files under *budget*.

    Every node is considered exactly once. Exclusion reasons, checked in
    order: ``pattern`` (matches *exclude*), ``external`` (no longer readable),
    ``size`` (over *max_file_bytes*), then ``budget`` or ``token_budget``
    when the file does not fit what is left.

    Args:
        graph: Bounded dependency graph, usually from :func:`build_seeded_graph`.
        budget: Dimension and ceiling for this run. It is copied on entry and
            never modified, so one ``Budget`` can drive any number of calls.
        reader: File access for sizes and content.
        seeds: Seed paths used for the ``seed`` reason; defaults to ``graph.seeds``.
        name: Slice name recorded in the result.
        slice_type: ``"feature"`` or ``"route"``.
        layout_files: Paths tagged ``layout`` when included.
        schema_prefixes: Path prefixes tagged ``schema`` when included.
        exclude: Glob patterns excluded with reason ``pattern``.
        max_file_bytes: Per-file size cap.

    Returns:
        ContextSlice with included files in ``(depth, path)`` order.
    """
    budget = replace(budget)
    seed_list = _normalize_paths(seeds) if seeds is not None else list(graph.seeds)
    seed_set = set(seed_list)
    layout_set = set(_normalize_paths(layout_files))

    result = ContextSlice(
        name=name,
        slice_type=slice_type,
        seed_files=seed_list,
        budget_dimension=budget.dimension,
        budget_ceiling=budget.ceiling,
        model=budget.profile.name if budget.profile else None,
        git_commit=graph.git_commit,
    )
    total_bytes = 0
    total_tokens = 0

    for node in sorted(graph.nodes, key=_sort_key):
        path = node.node_id

        if exclude and matches_patterns(path, exclude):
            result.excluded.append(ExcludedFile(path, "pattern"))
            continue

        try:
            size = reader.size(path)
            content = reader.read_text(path)
        except OSError as exc:
            logger.debug("Excluding unreadable %s: %s", path, exc)
            result.excluded.append(ExcludedFile(path, "external"))
            continue

        if size > max_file_bytes:
            result.excluded.append(ExcludedFile(path, "size"))
            continue

        tokens = estimate_tokens(content)
        cost = tokens if budget.dimension == "tokens" else size
        if not budget.fits(cost):
            logger.debug("Excluding %s: %d over remaining %d", path, cost, budget.remaining)
            result.excluded.append(ExcludedFile(path, budget.exclusion_reason))
            continue

        budget.charge(cost)
        total_bytes += size
        total_tokens += tokens
        result.files.append(SliceFile(
            relative_path=path,
            file_type=node.file_type,
            size_bytes=size,
            tokens=tokens,
            depth=node.depth or 0,
            reason=_inclusion_reason(path, seed_set, layout_set, schema_prefixes),
        ))

    by_type: Dict[str, int] = {}
    for f in result.files:
        by_type[f.file_type] = by_type.get(f.file_type, 0) + 1

    result.summary = SliceSummary(
        total_files=len(result.files),
        total_bytes=total_bytes,
        total_tokens=total_tokens,
        max_depth=max((f.depth for f in result.files), default=0),
        by_type=dict(sorted(by_type.items())),
    )
    if budget.dimension == "tokens":
        result.token_budget = _token_report(budget)
    return result


def _token_report(budget: Budget) -> TokenBudgetReport:
    profile = budget.profile
    cost = None
    if profile is not None and profile.cost_per_1k_input is not None:
        cost = budget.used / 1000 * profile.cost_per_1k_input
    return TokenBudgetReport(
        model=profile.name if profile else "custom",
        context_window=profile.context_window if profile else budget.ceiling,
        reserved_for_output=profile.reserve_for_output if profile else 0,
        available_for_input=budget.ceiling,
        used=budget.used,
        remaining=budget.remaining,
        estimated_cost=cost,
    )


def slice_feature(
    seeds: Sequence[str],
    name: str,
    records: Sequence[FileRecord],
    reader: FileReader,
    *,
    aliases: Optional[AliasConfig] = None,
    depth: int = DEFAULT_SLICE_DEPTH,
    budget: Optional[Budget] = None,
    exclude: Sequence[str] = (),
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
    schema_prefixes: Sequence[str] = DEFAULT_SCHEMA_PREFIXES,
    repo_root: str = "",
) -> ContextSlice:
    """Slice the neighbourhood of explicit seed files.

    Args:
        seeds: Seed file paths, relative to the repository root.
        name: Slice name.
        records: Indexed files of the repository.
        reader: File access for resolution and slicing.
        aliases: Alias table; ``None`` reads tsconfig/jsconfig paths.
        depth: Maximum hops from the seeds.
        budget: Budget for the run; defaults to the 8 MiB byte budget.

    Returns:
        The budgeted ContextSlice.

    Raises:
        EmptySeedSetError: If none of *seeds* exist.
    """
    graph = build_seeded_graph(seeds, records, reader, aliases, max_depth=depth, repo_root=repo_root)
    return slice_graph(
        graph,
        budget or derive_budget(),
        reader,
        graph.seeds,
        name=name,
        slice_type="feature",
        exclude=exclude,
        max_file_bytes=max_file_bytes,
        schema_prefixes=schema_prefixes,
    )


def slice_route(
    route: str,
    seed_files: Sequence[str],
    layout_files: Sequence[str],
    records: Sequence[FileRecord],
    reader: FileReader,
    *,
    aliases: Optional[AliasConfig] = None,
    depth: int = DEFAULT_SLICE_DEPTH,
    budget: Optional[Budget] = None,
    exclude: Sequence[str] = (),
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
    schema_prefixes: Sequence[str] = DEFAULT_SCHEMA_PREFIXES,
    repo_root: str = "",
) -> ContextSlice:
    """Slice a route whose page and ancestor layout files are already known.

    Layout files are seeds too; included ones are tagged ``layout``. Use
    :func:`find_route_seeds` to derive both lists from an index.

    Args:
        route: URL route, used as the slice name.
        seed_files: Page, route handler and similar files of the route.
        layout_files: Ancestor layouts, outermost first.
        records: Indexed files of the repository.
        reader: File access for the repository.

    Returns:
        ContextSlice of type ``"route"``.

    Raises:
        EmptySeedSetError: If neither list names an existing file.
    """
    layouts = _normalize_paths(layout_files)
    seeds = list(dict.fromkeys(_normalize_paths(seed_files) + layouts))
    if not seeds:
        raise EmptySeedSetError([route])
    graph = build_seeded_graph(seeds, records, reader, aliases, max_depth=depth, repo_root=repo_root)
    return slice_graph(
        graph,
        budget or derive_budget(),
        reader,
        graph.seeds,
        name=route,
        slice_type="route",
        layout_files=layouts,
        exclude=exclude,
        max_file_bytes=max_file_bytes,
        schema_prefixes=schema_prefixes,
    )


def normalize_route(route: str) -> str:
    """``"dashboard/"`` -> ``"/dashboard"``; the empty route is ``"/"``."""
    segments = [s for s in route.strip().split("/") if s]
    return "/" + "/".join(segments)


def find_route_seeds(records: Sequence[FileRecord], route: str) -> Tuple[List[str], List[str]]:
    """Route files and ancestor layouts for *route*, from indexed records.

    Route files are every non-layout record whose ``route_path`` equals the
    route (page, route handler, loading and error files). Layouts are collected
    from ``/`` down to the route itself, outermost first.

    Returns:
        ``(seed_files, layout_files)``; both empty when nothing matches.
    """
    target = normalize_route(route)
    segments = [s for s in target.split("/") if s]
    ancestors = ["/"] + ["/" + "/".join(segments[:i]) for i in range(1, len(segments) + 1)]

    seed_files = [
        r.relative_path for r in records
        if r.route_path == target and r.file_type != "layout"
    ]
    layout_files: List[str] = []
    for ancestor in ancestors:
        layout_files.extend(
            r.relative_path for r in records
            if r.file_type == "layout" and r.route_path == ancestor
        )
    return seed_files, layout_files
