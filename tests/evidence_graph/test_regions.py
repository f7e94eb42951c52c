import pytest

from evidence_graph.clusterer import Clusterer
from evidence_graph.config import SubstrateConfig
from evidence_graph.geometry import build_substrate, derive_lens, enrich_statements, statements_in_region
from evidence_graph.models import (
    ClusteringResult,
    GeometricSubstrate,
    NeighborGraph,
    NodeStats,
    ShapeClassification,
    ShapeSignals,
    StrongGraph,
    SubstrateGraphs,
    Topology,
)
from evidence_graph.models.substrate import Component
from evidence_graph.regions import build_regions, detect_oppositions, profile_regions

from .factories import make_paragraph, make_statement, unit


@pytest.fixture
def clustered(two_group_paragraphs, two_group_embeddings):
    substrate = build_substrate(two_group_paragraphs, two_group_embeddings)
    lens = derive_lens(substrate)
    clustering = Clusterer().cluster_paragraphs(
        two_group_paragraphs, two_group_embeddings, substrate.graphs.mutual, lens
    )
    return substrate, clustering, lens


def _assert_partition(result, substrate):
    seen = [nid for r in result.regions for nid in r.node_ids]
    assert sorted(seen) == sorted(n.paragraph_id for n in substrate.nodes)
    assert len(seen) == len(set(seen))
    assert result.meta.covered_nodes == result.meta.total_nodes


def test_cluster_regions_come_first(clustered):
    substrate, clustering, lens = clustered

    result = build_regions(substrate, clustering, lens)

    _assert_partition(result, substrate)
    assert [r.id for r in result.regions] == ["r_0", "r_1"]
    assert [r.kind for r in result.regions] == ["cluster", "cluster"]
    assert [r.source_id for r in result.regions] == ["pc_0", "pc_1"]
    assert result.regions[0].statement_ids == ["s_0", "s_1", "s_2"]
    assert result.regions[0].model_indices == [0, 1, 2]
    assert result.meta.fallback_used is False
    assert result.meta.kind_counts == {"cluster": 2, "component": 0, "patch": 0}


def test_skipped_clustering_falls_back_to_components(clustered):
    substrate, _, _ = clustered
    skipped = Clusterer().cluster_paragraphs([], {})

    result = build_regions(substrate, skipped)

    _assert_partition(result, substrate)
    assert [r.kind for r in result.regions] == ["component", "component"]
    assert [r.source_id for r in result.regions] == ["comp_0", "comp_1"]
    assert result.meta.fallback_reason == "insufficient_paragraphs"


def test_fallback_reason_names_why_clustering_was_not_used(clustered, two_group_paragraphs):
    substrate, clustering, lens = clustered
    vetoed = lens.model_copy(update={"should_run_clustering": False})
    no_vectors = Clusterer().cluster_paragraphs(two_group_paragraphs, {})

    assert build_regions(substrate, clustering, vetoed).meta.fallback_reason == "clustering_skipped_by_lens"
    assert build_regions(substrate, no_vectors).meta.fallback_reason == "no_embeddings"
    assert build_regions(substrate).meta.fallback_reason == "no_clustering"


def test_singleton_clusters_report_fallback(clustered):
    substrate, clustering, lens = clustered
    singletons = ClusteringResult(
        clusters=[c.model_copy(update={"paragraph_ids": [c.paragraph_ids[0]]}) for c in clustering.clusters]
    )
    result = build_regions(substrate, singletons, lens)
    assert result.meta.fallback_reason == "no_multi_member_clusters"
    assert [r.kind for r in result.regions] == ["component", "component"]


def test_degenerate_substrate_becomes_single_node_patches():
    paragraphs = [make_paragraph(f"p_{i}", statement_ids=[f"s_{i}"]) for i in range(5)]
    substrate = build_substrate(paragraphs, {p.id: unit(1, 0) for p in paragraphs})

    result = build_regions(substrate)

    _assert_partition(result, substrate)
    assert [r.kind for r in result.regions] == ["patch"] * 5
    assert result.regions[0].source_id == "patch_p_0"
    assert result.meta.kind_counts["patch"] == 5


def _manual_substrate(patches):
    ids = sorted(patches)
    empty = {pid: [] for pid in ids}
    return GeometricSubstrate(
        nodes=[
            NodeStats(paragraph_id=pid, model_index=0, dominant_stance="assertive", mutual_neighborhood_patch=patch)
            for pid, patch in sorted(patches.items())
        ],
        graphs=SubstrateGraphs(
            knn=NeighborGraph(k=5, adjacency=empty),
            mutual=NeighborGraph(k=5, adjacency=empty),
            strong=StrongGraph(adjacency=empty),
        ),
        topology=Topology(
            components=[Component(id=f"comp_{i}", node_ids=[pid], size=1) for i, pid in enumerate(ids)],
            component_count=len(ids),
        ),
        shape=ShapeClassification(prior="fragmented", confidence=1.0, signals=ShapeSignals()),
    )


def test_nodes_with_same_mutual_signature_share_a_patch():
    substrate = _manual_substrate({
        "p_a": ["p_a", "p_b"],
        "p_b": ["p_b", "p_a"],
        "p_c": ["p_c"],
    })

    result = build_regions(substrate)

    assert [r.node_ids for r in result.regions] == [["p_a", "p_b"], ["p_c"]]
    assert result.regions[0].source_id == "patch_p_a_p_b"


def test_profiles_measure_regions(clustered):
    substrate, clustering, lens = clustered
    regions = build_regions(substrate, clustering, lens).regions

    profiles = profile_regions(regions, substrate)

    first = profiles[0]
    assert first.region_id == "r_0"
    assert first.node_count == 3
    assert first.internal_density == 1.0
    assert first.avg_internal_similarity > 0.98
    assert first.model_diversity == 3
    assert first.model_diversity_ratio == 1.0
    assert first.stance_counts["prescriptive"] == 3
    assert set(first.stance_counts) == {
        "prerequisite", "dependent", "cautionary", "prescriptive", "uncertain", "assertive"
    }
    assert first.dominant_stance == "prescriptive"
    assert profiles[1].dominant_stance == "cautionary"


def test_oppositions_follow_cross_region_mutual_edges(clustered):
    substrate, clustering, lens = clustered
    regions = build_regions(substrate, clustering, lens).regions
    profiles = profile_regions(regions, substrate)

    pairs = detect_oppositions(regions, profiles, substrate)

    assert len(pairs) == 1
    pair = pairs[0]
    assert (pair.region_a, pair.region_b) == ("r_0", "r_1")
    assert {pair.stance_a, pair.stance_b} == {"prescriptive", "cautionary"}
    assert pair.similarity == pytest.approx(0.0101, abs=1e-4)


def test_no_oppositions_without_cross_links(two_group_paragraphs, two_group_embeddings):
    substrate = build_substrate(two_group_paragraphs, two_group_embeddings, config=SubstrateConfig(k=2))
    regions = build_regions(substrate).regions
    assert detect_oppositions(regions, profile_regions(regions, substrate), substrate) == []


def test_enrichment_places_statements(clustered, two_group_paragraphs):
    substrate, clustering, lens = clustered
    regions = build_regions(substrate, clustering, lens).regions
    statements = [make_statement(f"s_{i}", paragraph_index=i) for i in range(6)]
    statements.append(make_statement("s_orphan"))

    result = enrich_statements(statements, two_group_paragraphs, substrate, regions)

    assert result.enriched_count == 6
    assert result.unenriched_count == 1
    assert result.failures[0].statement_id == "s_orphan"
    assert result.failures[0].reason == "no_paragraph"
    geometry = result.statements[4].geometry
    assert geometry.paragraph_id == "p_4"
    assert geometry.region_id == "r_1"
    assert geometry.component_id == "comp_1"
    assert result.statements[-1].geometry is None
    # originals are untouched
    assert not hasattr(statements[0], "geometry")


def test_statements_in_region(clustered, two_group_paragraphs):
    substrate, clustering, lens = clustered
    region = build_regions(substrate, clustering, lens).regions[1]
    assert statements_in_region(region, two_group_paragraphs) == ["s_3", "s_4", "s_5"]
