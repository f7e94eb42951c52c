from typing import Optional

from ..config import ClusteringConfig
from ..models.region import Lens
from ..models.substrate import GeometricSubstrate
from .similarity import quantize


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def _mutual_merge_possible(similarity: float, config: ClusteringConfig) -> bool:
    # same arithmetic as the clusterer's discounted average-linkage distance
    distance = quantize(quantize(1.0 - similarity) * config.mutual_discount)
    return distance <= quantize(1.0 - config.similarity_threshold)


def derive_lens(substrate: GeometricSubstrate, config: Optional[ClusteringConfig] = None) -> Lens:
    """Decide whether clustering can produce anything meaningful here.

    Clustering is pointless on a degenerate substrate, or when no pair
    could merge: no observed similarity reaches the clustering threshold and
    no mutual edge gets there once its distance is discounted the way the
    clusterer discounts it.
    """
    config = config or ClusteringConfig()
    stats = substrate.meta.similarity_stats
    shape = substrate.shape

    evidence = [
        f"shape.conf={shape.confidence:.2f}",
        f"shape.frag={shape.signals.fragmentation_score:.2f},"
        f"bim={shape.signals.bimodality_score:.2f},"
        f"par={shape.signals.parallel_score:.2f},"
        f"conv={shape.signals.convergent_score:.2f}",
        f"density={substrate.topology.global_strong_density:.3f}",
        f"isolation={substrate.topology.isolation_ratio:.3f}",
        f"p95={stats.p95:.3f}",
    ]

    should_run = True
    if substrate.degenerate:
        should_run = False
        evidence.append(f"degenerate={substrate.degenerate_reason}")
    elif stats.max < config.similarity_threshold:
        best_mutual = max((e.similarity for e in substrate.graphs.mutual.edges), default=None)
        if best_mutual is not None and _mutual_merge_possible(best_mutual, config):
            evidence.append(f"mutual_max={best_mutual:.3f} merges under discount {config.mutual_discount:.2f}")
        else:
            should_run = False
            evidence.append(f"max={stats.max:.3f}<threshold={config.similarity_threshold:.3f}")

    return Lens(
        shape_prior=shape.prior,
        hard_merge_threshold=_clamp(stats.p95 - 0.03, 0.65, 0.85),
        confidence=_clamp(0.35 + 0.6 * shape.confidence, 0.35, 0.95),
        should_run_clustering=should_run,
        evidence=evidence,
    )
