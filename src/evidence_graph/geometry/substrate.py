import logging
import time
from typing import List, Mapping, Optional

import numpy as np

from ..config import SubstrateConfig
from ..models.paragraph import Paragraph
from ..models.substrate import (
    GeometricSubstrate,
    NeighborGraph,
    StrongGraph,
    SubstrateGraphs,
    SubstrateMeta,
    Topology,
)
from .knn import build_two_graphs
from .layout import compute_layout
from .nodes import compute_node_stats, isolated_node_stats
from .shape import classify_shape
from .threshold import build_strong_graph, compute_similarity_stats, compute_soft_threshold, log_similarity_warnings
from .topology import compute_topology, singleton_components

logger = logging.getLogger(__name__)


def build_substrate(
    paragraphs: List[Paragraph],
    embeddings: Optional[Mapping[str, np.ndarray]],
    embedding_backend: str = "none",
    config: Optional[SubstrateConfig] = None,
) -> GeometricSubstrate:
    """Build the full geometric substrate over paragraph embeddings.

    Always returns a well-formed substrate. Degenerate inputs (too few
    paragraphs, no embeddings, all similarities identical) come back with
    ``degenerate=True`` and a typed reason instead of raising.

    Similarity work is O(n^2) in the number of paragraphs.
    """
    config = config or SubstrateConfig()
    start = time.perf_counter()
    paragraph_ids = [p.id for p in paragraphs]
    n = len(paragraph_ids)

    if n < config.min_paragraphs:
        return _degenerate(paragraphs, "insufficient_paragraphs", embedding_backend, config, start)

    usable = {pid: embeddings[pid] for pid in paragraph_ids if embeddings and pid in embeddings}
    if not usable:
        return _degenerate(paragraphs, "embedding_failure", embedding_backend, config, start)

    missing = n - len(usable)
    if missing:
        logger.warning("%d of %d paragraphs have no embedding; treating them as isolated", missing, n)

    two = build_two_graphs(paragraph_ids, usable, config.k)

    all_sims = [s for sims in two.top_k.values() for s in sims]
    if all_sims and len(set(all_sims)) == 1:
        return _degenerate(paragraphs, "all_embeddings_identical", embedding_backend, config, start)

    soft_threshold = compute_soft_threshold(two.top1, config)
    strong = build_strong_graph(two.mutual, paragraph_ids, soft_threshold, config.threshold_method)
    topology = compute_topology(strong, paragraph_ids)
    shape = classify_shape(topology, n)
    layout = compute_layout(paragraph_ids, usable) if config.compute_layout else None
    nodes = compute_node_stats(paragraphs, two.knn, two.mutual, strong, two.top1, two.top_k)

    stats = compute_similarity_stats(two.top_k)
    log_similarity_warnings(stats, soft_threshold)

    build_ms = (time.perf_counter() - start) * 1000
    logger.debug(
        "Substrate: %d nodes, %d knn / %d mutual / %d strong edges in %.1fms",
        n,
        len(two.knn.edges),
        len(two.mutual.edges),
        len(strong.edges),
        build_ms,
    )
    return GeometricSubstrate(
        nodes=nodes,
        graphs=SubstrateGraphs(knn=two.knn, mutual=two.mutual, strong=strong),
        topology=topology,
        shape=shape,
        layout2d=layout,
        meta=SubstrateMeta(
            embedding_success=True,
            embedding_backend=embedding_backend,
            node_count=n,
            knn_edge_count=len(two.knn.edges),
            mutual_edge_count=len(two.mutual.edges),
            strong_edge_count=len(strong.edges),
            similarity_stats=stats,
            build_time_ms=build_ms,
        ),
    )


def _degenerate(
    paragraphs: List[Paragraph], reason: str, embedding_backend: str, config: SubstrateConfig, start: float
) -> GeometricSubstrate:
    """Fully fragmented substrate: isolated nodes, empty graphs, singletons."""
    logger.warning("Degenerate substrate (%s) over %d paragraphs", reason, len(paragraphs))
    paragraph_ids = [p.id for p in paragraphs]
    n = len(paragraph_ids)

    def empty_adjacency():
        return {pid: [] for pid in paragraph_ids}

    components = singleton_components(paragraph_ids)
    topology = Topology(
        components=components,
        component_count=n,
        largest_component_ratio=1 / n if n else 0.0,
        isolation_ratio=1.0,
        global_strong_density=0.0,
    )
    return GeometricSubstrate(
        nodes=isolated_node_stats(paragraphs),
        graphs=SubstrateGraphs(
            knn=NeighborGraph(k=config.k, adjacency=empty_adjacency()),
            mutual=NeighborGraph(k=config.k, adjacency=empty_adjacency()),
            strong=StrongGraph(
                soft_threshold=0.0, threshold_method=config.threshold_method, adjacency=empty_adjacency()
            ),
        ),
        topology=topology,
        shape=classify_shape(topology, n),
        layout2d=None,
        meta=SubstrateMeta(
            embedding_success=reason != "embedding_failure",
            embedding_backend=embedding_backend,
            node_count=n,
            build_time_ms=(time.perf_counter() - start) * 1000,
        ),
        degenerate=True,
        degenerate_reason=reason,
    )
