from ..models.substrate import ShapeClassification, ShapeSignals, Topology


def classify_shape(topology: Topology, node_count: int) -> ShapeClassification:
    """Map topology metrics to a coarse, purely descriptive prior.

    fragmentation: many small components, high isolation, low density.
    bimodality:    two similarly sized components covering most nodes.
    parallel:      three or more independent components of size >= 3.
    convergent:    share of nodes in the single largest component.
    """
    lcr = topology.largest_component_ratio
    comps = topology.components

    fragmentation = min(
        1.0,
        (1 - lcr) * 0.5 + topology.isolation_ratio * 0.3 + (1 - topology.global_strong_density) * 0.2,
    )

    bimodality = 0.0
    if len(comps) >= 2 and comps[1].size >= 2 and node_count > 0:
        first, second = comps[0], comps[1]
        bimodality = (second.size / first.size) * ((first.size + second.size) / node_count)

    significant = [c for c in comps if c.size >= 3]
    parallel = min(1.0, len(significant) / 5) if len(significant) >= 3 else 0.0

    convergent = lcr

    # first listed wins ties
    scores = [
        ("fragmented", fragmentation),
        ("convergent_core", convergent),
        ("bimodal_fork", bimodality),
        ("parallel_components", parallel),
    ]
    prior, confidence = max(scores, key=lambda s: s[1])

    evidence = [
        f"lcr={lcr:.3f}",
        f"isolation={topology.isolation_ratio:.3f}",
        f"density={topology.global_strong_density:.3f}",
        f"components={topology.component_count}",
        f"significant_components={len(significant)}",
    ]
    return ShapeClassification(
        prior=prior,
        confidence=confidence,
        signals=ShapeSignals(
            fragmentation_score=fragmentation,
            bimodality_score=bimodality,
            parallel_score=parallel,
            convergent_score=convergent,
        ),
        evidence=evidence,
    )
