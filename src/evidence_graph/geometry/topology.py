from typing import Dict, List

from ..models.substrate import Component, StrongGraph, Topology


class UnionFind:
    """Disjoint sets with path compression and union by rank."""

    def __init__(self, items: List[str]):
        self.parent: Dict[str, str] = {x: x for x in items}
        self.rank: Dict[str, int] = {x: 0 for x in items}

    def find(self, x: str) -> str:
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]
        return root

    def union(self, x: str, y: str) -> None:
        px, py = self.find(x), self.find(y)
        if px == py:
            return
        rx, ry = self.rank[px], self.rank[py]
        if rx < ry:
            self.parent[px] = py
        elif rx > ry:
            self.parent[py] = px
        else:
            self.parent[py] = px
            self.rank[px] = rx + 1


def singleton_components(paragraph_ids: List[str]) -> List[Component]:
    ordered = sorted(paragraph_ids)
    return [Component(id=f"comp_{i}", node_ids=[pid], size=1) for i, pid in enumerate(ordered)]


def compute_topology(strong: StrongGraph, paragraph_ids: List[str]) -> Topology:
    """Connected components of the strong graph plus global metrics."""
    n = len(paragraph_ids)
    if n == 0:
        return Topology()

    uf = UnionFind(paragraph_ids)
    for edge in strong.edges:
        uf.union(edge.source, edge.target)

    groups: Dict[str, List[str]] = {}
    for pid in paragraph_ids:
        groups.setdefault(uf.find(pid), []).append(pid)

    raw = []
    for node_ids in groups.values():
        node_ids = sorted(node_ids)
        members = set(node_ids)
        internal = sum(1 for e in strong.edges if e.source in members and e.target in members)
        max_possible = len(node_ids) * (len(node_ids) - 1) / 2
        raw.append((node_ids, internal / max_possible if max_possible > 0 else 0.0))

    raw.sort(key=lambda c: (-len(c[0]), c[0][0]))
    components = [
        Component(id=f"comp_{i}", node_ids=node_ids, size=len(node_ids), internal_density=density)
        for i, (node_ids, density) in enumerate(raw)
    ]

    touched = set()
    for edge in strong.edges:
        touched.add(edge.source)
        touched.add(edge.target)
    isolated = sum(1 for pid in paragraph_ids if pid not in touched)
    max_edges = n * (n - 1) / 2

    return Topology(
        components=components,
        component_count=len(components),
        largest_component_ratio=components[0].size / n,
        isolation_ratio=isolated / n,
        global_strong_density=len(strong.edges) / max_edges if max_edges > 0 else 0.0,
    )
