import logging
from typing import Dict, List, Optional

from .models.cluster import ClusteringResult
from .models.region import (
    REGION_KIND_ORDER,
    Lens,
    OppositionPair,
    Region,
    RegionizationMeta,
    RegionizationResult,
    RegionProfile,
)
from .models.statement import STANCE_PRIORITY, is_opposing_stance
from .models.substrate import GeometricSubstrate, NodeStats

logger = logging.getLogger(__name__)

MAX_OPPOSITIONS = 10


def _statement_ids(node_ids: List[str], nodes_by_id: Dict[str, NodeStats]) -> List[str]:
    out, seen = [], set()
    for nid in node_ids:
        node = nodes_by_id.get(nid)
        if node is None:
            continue
        for sid in node.statement_ids:
            if sid not in seen:
                seen.add(sid)
                out.append(sid)
    return out


def _region(kind: str, node_ids: List[str], source_id: Optional[str], nodes_by_id: Dict[str, NodeStats]) -> Region:
    ordered = sorted(node_ids)
    return Region(
        id="",
        kind=kind,
        node_ids=ordered,
        statement_ids=_statement_ids(ordered, nodes_by_id),
        source_id=source_id,
        model_indices=sorted({nodes_by_id[n].model_index for n in ordered if n in nodes_by_id}),
    )


def _skip_reason(clustering: Optional[ClusteringResult], lens: Optional[Lens]) -> str:
    if clustering is not None and clustering.meta.skipped and clustering.meta.skip_reason:
        return clustering.meta.skip_reason
    if lens is not None and not lens.should_run_clustering:
        return "clustering_skipped_by_lens"
    return "no_clustering"


def build_regions(
    substrate: GeometricSubstrate,
    clustering: Optional[ClusteringResult] = None,
    lens: Optional[Lens] = None,
) -> RegionizationResult:
    """Partition every substrate node into exactly one region.

    Applied in priority order until everything is covered:
    cluster regions (only when clustering was meaningful), strong components
    with at least two uncovered members, then patches of nodes sharing an
    identical mutual-neighbour signature. Anything left becomes its own patch.
    """
    nodes_by_id = {n.paragraph_id: n for n in substrate.nodes}
    covered = set()
    regions: List[Region] = []
    meta = RegionizationMeta(total_nodes=len(substrate.nodes))

    clustering_usable = (
        clustering is not None
        and not clustering.meta.skipped
        and (lens is None or lens.should_run_clustering)
    )
    if clustering_usable:
        multi = [c for c in clustering.clusters if c.size >= 2]
        for cluster in multi:
            uncovered = [pid for pid in cluster.paragraph_ids if pid in nodes_by_id and pid not in covered]
            if len(uncovered) >= 2:
                regions.append(_region("cluster", uncovered, cluster.id, nodes_by_id))
                covered.update(uncovered)
        if not multi:
            meta.fallback_used = True
            meta.fallback_reason = "no_multi_member_clusters"
    else:
        meta.fallback_used = True
        meta.fallback_reason = _skip_reason(clustering, lens)

    for component in substrate.topology.components:
        uncovered = [pid for pid in component.node_ids if pid not in covered]
        if len(uncovered) >= 2:
            regions.append(_region("component", uncovered, component.id, nodes_by_id))
            covered.update(uncovered)

    patches: Dict[str, List[str]] = {}
    for node in substrate.nodes:
        if node.paragraph_id in covered:
            continue
        key = "|".join(sorted(node.mutual_neighborhood_patch or [node.paragraph_id]))
        patches.setdefault(key, []).append(node.paragraph_id)
    for node_ids in patches.values():
        regions.append(_region("patch", node_ids, "patch_" + "_".join(sorted(node_ids)), nodes_by_id))
        covered.update(node_ids)

    regions.sort(key=lambda r: (REGION_KIND_ORDER[r.kind], -len(r.node_ids), r.node_ids[0]))
    for i, r in enumerate(regions):
        r.id = f"r_{i}"
        meta.kind_counts[r.kind] += 1

    meta.covered_nodes = len(covered)
    if meta.covered_nodes != meta.total_nodes:
        logger.warning("Regions cover %d of %d nodes", meta.covered_nodes, meta.total_nodes)
    return RegionizationResult(regions=regions, meta=meta)


def _internal_edges(node_ids: List[str], edges) -> List:
    members = set(node_ids)
    return [e for e in edges if e.source in members and e.target in members]


def profile_regions(regions: List[Region], substrate: GeometricSubstrate) -> List[RegionProfile]:
    """Measured aggregates per region: size, source diversity, density, isolation."""
    nodes_by_id = {n.paragraph_id: n for n in substrate.nodes}
    observed_models = max(1, len({n.model_index for n in substrate.nodes}))
    profiles = []
    for region in regions:
        node_ids = region.node_ids
        n = len(node_ids)

        strong = _internal_edges(node_ids, substrate.graphs.strong.edges) if n >= 2 else []
        max_possible = n * (n - 1) / 2
        density = len(strong) / max_possible if max_possible > 0 else 0.0
        if strong:
            avg_sim = sum(e.similarity for e in strong) / len(strong)
        else:
            mutual = _internal_edges(node_ids, substrate.graphs.mutual.edges) if n >= 2 else []
            avg_sim = sum(e.similarity for e in mutual) / len(mutual) if mutual else 0.0

        members = [nodes_by_id[nid] for nid in node_ids if nid in nodes_by_id]
        isolation = sum(m.isolation_score for m in members) / len(members) if members else 1.0

        stance_counts = {s: 0 for s in STANCE_PRIORITY}
        for m in members:
            stance_counts[m.dominant_stance] += 1
        dominant = None
        if members:
            # max() keeps the first of equal counts, and STANCE_PRIORITY is highest first
            dominant = max(STANCE_PRIORITY, key=lambda s: stance_counts[s])

        profiles.append(
            RegionProfile(
                region_id=region.id,
                kind=region.kind,
                node_count=n,
                model_diversity=len(region.model_indices),
                model_diversity_ratio=len(region.model_indices) / observed_models,
                internal_density=density,
                avg_internal_similarity=avg_sim,
                isolation=isolation,
                stance_counts=stance_counts,
                dominant_stance=dominant,
            )
        )
    return profiles


def detect_oppositions(
    regions: List[Region], profiles: List[RegionProfile], substrate: GeometricSubstrate
) -> List[OppositionPair]:
    """Region pairs with opposing dominant stances, strongest link first."""
    if len(regions) < 2:
        return []
    node_to_region = {nid: r.id for r in regions for nid in r.node_ids}
    best: Dict[tuple, float] = {}
    for edge in substrate.graphs.mutual.edges:
        a, b = node_to_region.get(edge.source), node_to_region.get(edge.target)
        if a is None or b is None or a == b:
            continue
        key = (a, b) if a < b else (b, a)
        if edge.similarity > best.get(key, 0.0):
            best[key] = edge.similarity

    profile_by_id = {p.region_id: p for p in profiles}
    pairs = []
    for (a, b), sim in sorted(best.items(), key=lambda kv: (-kv[1], kv[0])):
        pa, pb = profile_by_id.get(a), profile_by_id.get(b)
        if pa is None or pb is None:
            continue
        if is_opposing_stance(pa.dominant_stance, pb.dominant_stance):
            pairs.append(
                OppositionPair(
                    region_a=a, region_b=b, stance_a=pa.dominant_stance, stance_b=pb.dominant_stance, similarity=sim
                )
            )
    return pairs[:MAX_OPPOSITIONS]
