"""kNN (symmetric union) and mutual kNN graphs over paragraph embeddings.

kNN: each node links to its top-K neighbours; if A picks B, the edge A-B
exists for both. Mutual: A-B exists only if each is in the other's top-K.
The mutual graph is the high-precision backbone used for topology.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Tuple

import numpy as np

from ..models.substrate import GraphEdge, NeighborGraph
from .similarity import quantize


@dataclass
class Neighbor:
    target: str
    similarity: float
    rank: int


@dataclass
class TwoGraphs:
    knn: NeighborGraph
    mutual: NeighborGraph
    ranked: Dict[str, List[Neighbor]] = field(default_factory=dict)
    top1: Dict[str, float] = field(default_factory=dict)
    top_k: Dict[str, List[float]] = field(default_factory=dict)


def _edge_sort_key(edge: GraphEdge) -> str:
    return edge.key()


def ranked_neighbors(
    paragraph_ids: List[str], embeddings: Mapping[str, np.ndarray], k: int
) -> Dict[str, List[Neighbor]]:
    """Top-K neighbours per node, sorted by (similarity desc, id asc)."""
    present = [pid for pid in paragraph_ids if pid in embeddings]
    sims: Dict[Tuple[str, str], float] = {}
    if present:
        X = np.vstack([np.asarray(embeddings[pid], dtype=float) for pid in present])
        gram = X @ X.T
        for i, a in enumerate(present):
            for j, b in enumerate(present):
                if i != j:
                    sims[(a, b)] = quantize(float(gram[i, j]))

    ranked: Dict[str, List[Neighbor]] = {}
    for pid in paragraph_ids:
        if pid not in embeddings:
            ranked[pid] = []
            continue
        candidates = [(other, sims[(pid, other)]) for other in present if other != pid]
        candidates.sort(key=lambda c: (-c[1], c[0]))
        ranked[pid] = [Neighbor(target=t, similarity=s, rank=r + 1) for r, (t, s) in enumerate(candidates[:k])]
    return ranked


def build_two_graphs(paragraph_ids: List[str], embeddings: Mapping[str, np.ndarray], k: int = 5) -> TwoGraphs:
    ranked = ranked_neighbors(paragraph_ids, embeddings, k)

    knn_edges: Dict[str, GraphEdge] = {}
    knn_adj: Dict[str, List[GraphEdge]] = {pid: [] for pid in paragraph_ids}
    for source in paragraph_ids:
        for nb in ranked[source]:
            edge = GraphEdge(source=source, target=nb.target, similarity=nb.similarity, rank=nb.rank)
            key = edge.key()
            if key in knn_edges:
                continue
            # rank kept from the first perspective that produced the pair
            knn_edges[key] = edge
            knn_adj[source].append(edge)
            knn_adj[nb.target].append(edge.reversed())

    mutual_edges: List[GraphEdge] = []
    mutual_adj: Dict[str, List[GraphEdge]] = {pid: [] for pid in paragraph_ids}
    rank_of = {pid: {nb.target: nb.rank for nb in ranked[pid]} for pid in paragraph_ids}
    for edge in knn_edges.values():
        forward = rank_of[edge.source].get(edge.target)
        backward = rank_of[edge.target].get(edge.source)
        if forward is None or backward is None:
            continue
        mutual = GraphEdge(
            source=edge.source, target=edge.target, similarity=edge.similarity, rank=min(forward, backward)
        )
        mutual_edges.append(mutual)
        mutual_adj[edge.source].append(mutual)
        mutual_adj[edge.target].append(mutual.reversed())

    return TwoGraphs(
        knn=NeighborGraph(k=k, edges=sorted(knn_edges.values(), key=_edge_sort_key), adjacency=knn_adj),
        mutual=NeighborGraph(k=k, edges=sorted(mutual_edges, key=_edge_sort_key), adjacency=mutual_adj),
        ranked=ranked,
        top1={pid: (ranked[pid][0].similarity if ranked[pid] else 0.0) for pid in paragraph_ids},
        top_k={pid: [nb.similarity for nb in ranked[pid]] for pid in paragraph_ids},
    )
