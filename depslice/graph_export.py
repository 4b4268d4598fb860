"""Graph and slice renderers: Mermaid, Graphviz DOT, and Markdown context packs."""

from __future__ import annotations

import posixpath
import re
from typing import List, Sequence

from .models import ContextSlice, DepGraph, DepNode
from .reader import FileReader
from .utils import format_bytes

_MERMAID_CLASSES = [
    "  classDef page fill:#e1f5fe,stroke:#01579b",
    "  classDef layout fill:#f3e5f5,stroke:#4a148c",
    "  classDef component fill:#e8f5e9,stroke:#1b5e20",
    "  classDef lib fill:#fff3e0,stroke:#e65100",
    "  classDef hook fill:#fce4ec,stroke:#880e4f",
    "  classDef circular fill:#ffebee,stroke:#c62828,stroke-width:2px",
]


def _sanitize_id(node_id: str) -> str:
    return re.sub(r"[^a-zA-Z0-9]", "_", node_id)


def _label(node: DepNode) -> str:
    return posixpath.splitext(posixpath.basename(node.node_id))[0]


def _esc(text: str) -> str:
    return text.replace('"', '\\"')


def _visible_nodes(graph: DepGraph, max_nodes: int) -> List[DepNode]:
    return graph.nodes[:max_nodes] if max_nodes > 0 else list(graph.nodes)


def to_mermaid(graph: DepGraph, max_nodes: int = 50, direction: str = "TD") -> str:
    """Render *graph* as a Mermaid flowchart, keeping the first *max_nodes* nodes."""
    shown = _visible_nodes(graph, max_nodes)
    shown_ids = {n.node_id for n in shown}

    lines = [f"graph {direction}"]
    for node in shown:
        label = _label(node)
        shape = f'[["{label}"]]' if node.file_type == "page" else f'["{label}"]'
        css = "circular" if node.is_circular else node.file_type
        lines.append(f"  {_sanitize_id(node.node_id)}{shape}:::{css}")

    for edge in graph.edges:
        if edge.src in shown_ids and edge.dst in shown_ids:
            arrow = "-.->" if edge.kind == "dynamic" else "-->"
            lines.append(f"  {_sanitize_id(edge.src)} {arrow} {_sanitize_id(edge.dst)}")

    lines.append("")
    lines.extend(_MERMAID_CLASSES)
    return "\n".join(lines)


def to_dot(graph: DepGraph, max_nodes: int = 0) -> str:
    """Render *graph* as a Graphviz digraph."""
    shown = _visible_nodes(graph, max_nodes)
    shown_ids = {n.node_id for n in shown}

    lines = ["digraph DepSlice {"]
    lines.append("  rankdir=LR;")
    for node in shown:
        attrs = f'label="{_esc(node.file_type)}\\n{_esc(node.node_id)}"'
        if node.is_circular:
            attrs += ", color=red"
        lines.append(f'  "{_esc(node.node_id)}" [{attrs}];')

    for edge in graph.edges:
        if edge.src not in shown_ids or edge.dst not in shown_ids:
            continue
        style = ", style=dashed" if edge.kind == "dynamic" else ""
        lines.append(
            f'  "{_esc(edge.src)}" -> "{_esc(edge.dst)}" [label="{_esc(edge.kind)}"{style}];'
        )

    lines.append("}")
    return "\n".join(lines)


def context_pack(slice_: ContextSlice, reader: FileReader) -> str:
    """Markdown document listing the slice and embedding each included file."""
    lines: List[str] = [f"# Context Pack: {slice_.name}", ""]
    lines.append(f"Type: {slice_.slice_type}")
    if slice_.git_commit:
        lines.append(f"Git: {slice_.git_commit[:8]}")
    lines.append(f"Files: {slice_.summary.total_files}")
    lines.append(f"Size: {format_bytes(slice_.summary.total_bytes)}")
    lines.append(f"Tokens: ~{slice_.summary.total_tokens}")
    lines.extend(["", "---", "", "## Files Included", ""])
    for f in slice_.files:
        lines.append(f"- `{f.relative_path}` ({f.file_type}, {format_bytes(f.size_bytes)}, {f.reason})")
    lines.append("")

    if slice_.excluded:
        lines.extend(["## Files Excluded", ""])
        for ex in slice_.excluded:
            lines.append(f"- `{ex.relative_path}` ({ex.reason})")
        lines.append("")

    lines.extend(["---", "", "## Source Files", ""])
    for f in slice_.files:
        content = reader.read_text_safe(f.relative_path)
        if not content:
            continue
        ext = posixpath.splitext(f.relative_path)[1].lstrip(".") or "txt"
        lines.extend([f"### {f.relative_path}", "", f"```{ext}", content.strip(), "```", ""])

    return "\n".join(lines)


def summarize_exclusions(slice_: ContextSlice) -> Sequence[tuple]:
    """(reason, count) pairs in first-seen order."""
    counts = {}
    for ex in slice_.excluded:
        counts[ex.reason] = counts.get(ex.reason, 0) + 1
    return list(counts.items())
