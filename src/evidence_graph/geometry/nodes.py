from typing import Dict, List

from ..models.paragraph import Paragraph
from ..models.substrate import NeighborGraph, NodeStats, StrongGraph
from .similarity import quantize


def compute_node_stats(
    paragraphs: List[Paragraph],
    knn: NeighborGraph,
    mutual: NeighborGraph,
    strong: StrongGraph,
    top1: Dict[str, float],
    top_k: Dict[str, List[float]],
) -> List[NodeStats]:
    """Per-paragraph local statistics, sorted by paragraph id."""
    nodes = []
    for p in paragraphs:
        t1 = top1.get(p.id, 0.0)
        sims = top_k.get(p.id, [])
        mutual_neighbors = [e.target for e in mutual.adjacency.get(p.id, [])]
        nodes.append(
            NodeStats(
                paragraph_id=p.id,
                model_index=p.model_index,
                dominant_stance=p.dominant_stance,
                contested=p.contested,
                statement_ids=list(p.statement_ids),
                top1_sim=t1,
                avg_top_k_sim=quantize(sum(sims) / len(sims)) if sims else 0.0,
                knn_degree=len(knn.adjacency.get(p.id, [])),
                mutual_degree=len(mutual_neighbors),
                strong_degree=len(strong.adjacency.get(p.id, [])),
                isolation_score=quantize(1 - t1),
                mutual_neighborhood_patch=sorted([p.id, *mutual_neighbors]),
            )
        )
    nodes.sort(key=lambda n: n.paragraph_id)
    return nodes


def isolated_node_stats(paragraphs: List[Paragraph]) -> List[NodeStats]:
    """Stats for a degenerate substrate: every node alone, isolation 1."""
    nodes = [
        NodeStats(
            paragraph_id=p.id,
            model_index=p.model_index,
            dominant_stance=p.dominant_stance,
            contested=p.contested,
            statement_ids=list(p.statement_ids),
            isolation_score=1.0,
            mutual_neighborhood_patch=[p.id],
        )
        for p in paragraphs
    ]
    nodes.sort(key=lambda n: n.paragraph_id)
    return nodes
