import math

import numpy as np
import pytest

from evidence_graph.clusterer import Clusterer
from evidence_graph.config import ClusteringConfig, SubstrateConfig
from evidence_graph.geometry import build_substrate, build_two_graphs, compute_soft_threshold, derive_lens, quantize

from .factories import make_paragraph, unit


def test_two_groups_form_two_strong_components(two_group_paragraphs, two_group_embeddings):
    """Tight groups connect internally and stay apart from each other."""
    substrate = build_substrate(two_group_paragraphs, two_group_embeddings, "test")

    assert substrate.degenerate is False
    comps = substrate.topology.components
    assert [c.node_ids for c in comps] == [["p_0", "p_1", "p_2"], ["p_3", "p_4", "p_5"]]
    assert [c.id for c in comps] == ["comp_0", "comp_1"]
    assert all(c.internal_density == 1.0 for c in comps)
    assert substrate.topology.isolation_ratio == 0.0
    assert substrate.topology.global_strong_density == pytest.approx(6 / 15)
    assert substrate.graphs.strong.soft_threshold == 0.78
    assert substrate.meta.embedding_backend == "test"
    assert substrate.meta.strong_edge_count == 6


def test_two_equal_components_read_as_bimodal(two_group_paragraphs, two_group_embeddings):
    substrate = build_substrate(two_group_paragraphs, two_group_embeddings)
    assert substrate.shape.prior == "bimodal_fork"
    assert substrate.shape.signals.bimodality_score == pytest.approx(1.0)
    assert substrate.shape.signals.convergent_score == pytest.approx(0.5)


def test_strong_edges_are_mutual_and_mutual_edges_are_knn(two_group_paragraphs, two_group_embeddings):
    substrate = build_substrate(two_group_paragraphs, two_group_embeddings, config=SubstrateConfig(k=2))
    knn_keys = {e.key() for e in substrate.graphs.knn.edges}
    mutual_keys = {e.key() for e in substrate.graphs.mutual.edges}
    strong_keys = {e.key() for e in substrate.graphs.strong.edges}
    assert strong_keys <= mutual_keys <= knn_keys
    for edge in substrate.graphs.strong.edges:
        assert edge.similarity >= substrate.graphs.strong.soft_threshold


def test_node_stats(two_group_paragraphs, two_group_embeddings):
    substrate = build_substrate(two_group_paragraphs, two_group_embeddings, config=SubstrateConfig(k=2))
    node = substrate.node("p_0")

    expected_top1 = quantize(0.99 / np.sqrt(0.9901))
    assert node.top1_sim == expected_top1
    assert node.isolation_score == quantize(1 - expected_top1)
    assert node.mutual_neighborhood_patch == ["p_0", "p_1", "p_2"]
    assert node.strong_degree == 2
    assert node.dominant_stance == "prescriptive"
    assert [n.paragraph_id for n in substrate.nodes] == [f"p_{i}" for i in range(6)]


def test_knn_ties_break_on_id():
    ids = ["p_0", "p_1", "p_2"]
    embeddings = {"p_0": unit(1, 0), "p_1": unit(1, 1), "p_2": unit(1, -1)}
    two = build_two_graphs(ids, embeddings, k=1)
    # p_1 and p_2 are equally close to p_0
    assert two.ranked["p_0"][0].target == "p_1"


def test_build_is_deterministic(two_group_paragraphs, two_group_embeddings):
    first = build_substrate(two_group_paragraphs, two_group_embeddings)
    second = build_substrate(two_group_paragraphs, dict(reversed(list(two_group_embeddings.items()))))
    exclude = {"meta": {"build_time_ms"}, "layout2d": {"build_time_ms"}}
    assert first.model_dump(exclude=exclude) == second.model_dump(exclude=exclude)


def test_layout_is_bounded(two_group_paragraphs, two_group_embeddings):
    substrate = build_substrate(two_group_paragraphs, two_group_embeddings)
    coords = substrate.layout2d.coordinates
    assert set(coords) == {p.id for p in two_group_paragraphs}
    for x, y in coords.values():
        assert -1.0 <= x <= 1.0 and -1.0 <= y <= 1.0


def test_layout_can_be_disabled(two_group_paragraphs, two_group_embeddings):
    substrate = build_substrate(two_group_paragraphs, two_group_embeddings, config=SubstrateConfig(compute_layout=False))
    assert substrate.layout2d is None


def test_identical_embeddings_are_degenerate():
    """Five identical vectors: nothing to tell apart, every node isolated."""
    paragraphs = [make_paragraph(f"p_{i}", statement_ids=[f"s_{i}"]) for i in range(5)]
    embeddings = {p.id: unit(1, 0, 0) for p in paragraphs}

    substrate = build_substrate(paragraphs, embeddings)

    assert substrate.degenerate is True
    assert substrate.degenerate_reason == "all_embeddings_identical"
    assert substrate.topology.component_count == 5
    assert substrate.topology.isolation_ratio == 1.0
    assert all(n.isolation_score == 1.0 for n in substrate.nodes)
    assert substrate.graphs.strong.edges == []
    assert derive_lens(substrate).should_run_clustering is False


def test_too_few_paragraphs_are_degenerate():
    paragraphs = [make_paragraph("p_0"), make_paragraph("p_1")]
    substrate = build_substrate(paragraphs, {"p_0": unit(1, 0), "p_1": unit(0, 1)})
    assert substrate.degenerate_reason == "insufficient_paragraphs"
    assert [c.node_ids for c in substrate.topology.components] == [["p_0"], ["p_1"]]


def test_missing_embeddings_are_degenerate():
    paragraphs = [make_paragraph(f"p_{i}") for i in range(3)]
    substrate = build_substrate(paragraphs, None)
    assert substrate.degenerate_reason == "embedding_failure"
    assert substrate.meta.embedding_success is False


def test_paragraph_without_vector_is_isolated(two_group_paragraphs, two_group_embeddings):
    embeddings = dict(two_group_embeddings)
    del embeddings["p_5"]
    substrate = build_substrate(two_group_paragraphs, embeddings)
    node = substrate.node("p_5")
    assert node.knn_degree == 0
    assert node.isolation_score == 1.0
    assert substrate.layout2d.coordinates["p_5"] == (0.0, 0.0)


def test_soft_threshold_is_clamped():
    assert compute_soft_threshold({"a": 0.99, "b": 0.98}) == 0.78
    assert compute_soft_threshold({"a": 0.1, "b": 0.2}) == 0.55
    assert compute_soft_threshold({}, SubstrateConfig()) == 0.55
    assert compute_soft_threshold({"a": 0.9}, SubstrateConfig(threshold_method="fixed", fixed_threshold=0.7)) == 0.7


def test_lens_runs_clustering_when_similarity_reaches_threshold(two_group_paragraphs, two_group_embeddings):
    substrate = build_substrate(two_group_paragraphs, two_group_embeddings)
    lens = derive_lens(substrate, ClusteringConfig())
    assert lens.should_run_clustering is True
    assert 0.65 <= lens.hard_merge_threshold <= 0.85
    assert lens.shape_prior == "bimodal_fork"

    strict = derive_lens(substrate, ClusteringConfig(similarity_threshold=1.0))
    assert strict.should_run_clustering is False


def test_lens_keeps_clustering_when_a_mutual_pair_merges_under_discount():
    """A 0.70 mutual pair sits below 0.72 but still merges once discounted."""
    # Arrange
    paragraphs = [make_paragraph(f"p_{i}", statement_ids=[f"s_{i}"]) for i in range(4)]
    embeddings = {
        "p_0": unit(1, 0, 0, 0),
        "p_1": unit(0.7, math.sqrt(0.51), 0, 0),
        "p_2": unit(0, 0, 1, 0),
        "p_3": unit(0, 0, 0, 1),
    }
    substrate = build_substrate(paragraphs, embeddings)

    # Act
    lens = derive_lens(substrate)
    result = Clusterer().cluster_paragraphs(paragraphs, embeddings, substrate.graphs.mutual, lens)

    # Assert
    assert substrate.meta.similarity_stats.max == pytest.approx(0.7)
    assert lens.should_run_clustering is True
    assert result.meta.skipped is False
    assert sorted(c.paragraph_ids for c in result.clusters) == [["p_0", "p_1"], ["p_2"], ["p_3"]]


def test_lens_skips_when_even_discounted_mutual_pairs_cannot_merge():
    paragraphs = [make_paragraph(f"p_{i}") for i in range(4)]
    embeddings = {
        "p_0": unit(1, 0, 0, 0),
        "p_1": unit(0.6, 0.8, 0, 0),
        "p_2": unit(0, 0, 1, 0),
        "p_3": unit(0, 0, 0, 1),
    }
    lens = derive_lens(build_substrate(paragraphs, embeddings))
    assert lens.should_run_clustering is False
