"""Smallest-cycle perception over a small bond graph (one residue at a time)."""

from __future__ import annotations

from collections import deque
from typing import Optional

MAX_RING_SIZE = 10

Graph = dict[int, dict[int, int]]


def _shortest_path(graph: Graph, start: int, goal: int, skip: tuple[int, int], limit: int) -> Optional[list[int]]:
    """BFS path start -> goal not using the edge ``skip``; None if longer than ``limit`` atoms."""
    prev: dict[int, int] = {start: start}
    depth = {start: 1}
    queue = deque([start])
    while queue:
        node = queue.popleft()
        if depth[node] >= limit:
            continue
        for nb in graph[node]:
            if (node, nb) == skip or (nb, node) == skip or nb in prev:
                continue
            prev[nb] = node
            depth[nb] = depth[node] + 1
            if nb == goal:
                path = [goal]
                while path[-1] != start:
                    path.append(prev[path[-1]])
                return path
            queue.append(nb)
    return None


def find_rings(graph: Graph, max_size: int = MAX_RING_SIZE) -> list[tuple[int, ...]]:
    """Smallest ring through every ring bond, deduplicated.

    ``graph`` maps atom -> {neighbor: bond flags}. Rings are returned as atom
    tuples in ring order, sorted by their smallest atom.
    """
    seen: set[frozenset[int]] = set()
    rings: list[tuple[int, ...]] = []
    for a in sorted(graph):
        for b in sorted(graph[a]):
            if b <= a:
                continue
            path = _shortest_path(graph, b, a, (a, b), max_size)
            if path is None:
                continue
            key = frozenset(path)
            if key in seen:
                continue
            seen.add(key)
            rings.append(tuple(path))
    rings.sort(key=lambda r: (min(r), len(r)))
    return rings


def ring_bond_flags(graph: Graph, ring: tuple[int, ...]) -> list[int]:
    return [graph[ring[i]][ring[(i + 1) % len(ring)]] for i in range(len(ring))]
