"""Import cycle detection over internal dependency edges."""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Sequence, Set

from .models import DepEdge


def adjacency_from_edges(node_ids: Iterable[str], edges: Iterable[DepEdge]) -> Dict[str, List[str]]:
    """Insertion-ordered adjacency map; every node gets a key, even if a leaf."""
    adjacency: Dict[str, List[str]] = {node_id: [] for node_id in node_ids}
    for edge in edges:
        adjacency.setdefault(edge.src, []).append(edge.dst)
    return adjacency


def detect_cycles(adjacency: Mapping[str, Sequence[str]]) -> List[List[str]]:
    """Find cycles with a single depth-first pass.

    Each node is a DFS root at most once, in mapping order. When an edge
    reaches a node on the current path, the path slice from that node to the
    current one is reported. Not every simple cycle is enumerated, but every
    node lying on a reported cycle is found.

    Uses an explicit frame stack so deeply layered import chains do not hit
    the interpreter recursion limit.
    """
    cycles: List[List[str]] = []
    visited: Set[str] = set()
    on_path: Set[str] = set()
    path: List[str] = []

    for root in adjacency:
        if root in visited:
            continue

        # Frames are (node, index of the next neighbour to look at).
        visited.add(root)
        on_path.add(root)
        path.append(root)
        stack = [[root, 0]]

        while stack:
            frame = stack[-1]
            node, index = frame[0], frame[1]
            neighbours = adjacency.get(node, ())

            if index >= len(neighbours):
                stack.pop()
                path.pop()
                on_path.discard(node)
                continue

            frame[1] = index + 1
            neighbour = neighbours[index]
            if neighbour not in visited:
                visited.add(neighbour)
                on_path.add(neighbour)
                path.append(neighbour)
                stack.append([neighbour, 0])
            elif neighbour in on_path:
                start = path.index(neighbour)
                cycles.append(list(path[start:]))

    return cycles


def circular_members(cycles: Iterable[Sequence[str]]) -> Set[str]:
    return {node_id for cycle in cycles for node_id in cycle}
