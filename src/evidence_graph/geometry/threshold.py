import logging
from typing import Dict, List, Optional

from ..config import SubstrateConfig
from ..models.substrate import GraphEdge, NeighborGraph, SimilarityStats, StrongGraph
from .similarity import percentile_of_sorted, quantize

logger = logging.getLogger(__name__)

_PERCENTILES = {"p80_top1": 0.80, "p75_top1": 0.75}


def compute_soft_threshold(top1: Dict[str, float], config: Optional[SubstrateConfig] = None) -> float:
    """Cutoff for "strong" edges, derived from the best-neighbour distribution.

    Never forces merges; it only decides which mutual edges count as strong.
    """
    config = config or SubstrateConfig()
    if config.threshold_method == "fixed":
        return config.fixed_threshold

    sims = sorted(s for s in top1.values() if s > 0)
    if not sims:
        return config.clamp_min

    raw = percentile_of_sorted(sims, _PERCENTILES[config.threshold_method])
    return quantize(max(config.clamp_min, min(config.clamp_max, raw)))


def build_strong_graph(
    mutual: NeighborGraph, paragraph_ids: List[str], soft_threshold: float, threshold_method: str
) -> StrongGraph:
    edges: List[GraphEdge] = []
    adjacency: Dict[str, List[GraphEdge]] = {pid: [] for pid in paragraph_ids}
    for edge in mutual.edges:
        if edge.similarity < soft_threshold:
            continue
        if edge.source not in adjacency or edge.target not in adjacency:
            continue
        edges.append(edge)
        adjacency[edge.source].append(edge)
        adjacency[edge.target].append(edge.reversed())
    return StrongGraph(
        soft_threshold=soft_threshold, threshold_method=threshold_method, edges=edges, adjacency=adjacency
    )


def compute_similarity_stats(top_k: Dict[str, List[float]]) -> SimilarityStats:
    """max / p95 / p80 / p50 / mean over every top-K similarity."""
    all_sims = sorted(s for sims in top_k.values() for s in sims)
    if not all_sims:
        return SimilarityStats()
    return SimilarityStats(
        max=all_sims[-1],
        p95=percentile_of_sorted(all_sims, 0.95),
        p80=percentile_of_sorted(all_sims, 0.80),
        p50=percentile_of_sorted(all_sims, 0.50),
        mean=sum(all_sims) / len(all_sims),
    )


def log_similarity_warnings(stats: SimilarityStats, soft_threshold: float) -> List[str]:
    warnings = []
    if stats.p95 < soft_threshold:
        warnings.append(f"p95 similarity {stats.p95:.3f} is below the soft threshold {soft_threshold:.3f}")
    if stats.max < 0.7:
        warnings.append(f"max similarity {stats.max:.3f} is below 0.7; the embeddings may be weak")
    if stats.mean < 0.4:
        warnings.append(f"mean top-K similarity {stats.mean:.3f} is below 0.4")
    for w in warnings:
        logger.warning(w)
    return warnings
