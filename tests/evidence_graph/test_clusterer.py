import math

import pytest

from evidence_graph.clusterer import Clusterer
from evidence_graph.config import ClusteringConfig
from evidence_graph.geometry import build_substrate, derive_lens
from evidence_graph.models import Lens
from evidence_graph.models.substrate import GraphEdge, NeighborGraph

from .factories import make_paragraph, unit


def test_cluster_paragraphs_finds_two_groups(two_group_paragraphs, two_group_embeddings):
    """Two tight groups become two confident clusters."""
    # Arrange
    substrate = build_substrate(two_group_paragraphs, two_group_embeddings)
    clusterer = Clusterer()

    # Act
    result = clusterer.cluster_paragraphs(
        two_group_paragraphs, two_group_embeddings, substrate.graphs.mutual, derive_lens(substrate)
    )

    # Assert
    assert [c.paragraph_ids for c in result.clusters] == [["p_0", "p_1", "p_2"], ["p_3", "p_4", "p_5"]]
    assert [c.id for c in result.clusters] == ["pc_0", "pc_1"]
    assert [c.representative_paragraph_id for c in result.clusters] == ["p_0", "p_3"]
    assert result.clusters[0].statement_ids == ["s_0", "s_1", "s_2"]
    assert not any(c.uncertain for c in result.clusters)
    assert result.clusters[0].cohesion > 0.99
    assert result.meta.total_clusters == 2
    assert result.meta.singleton_count == 0
    assert result.meta.compression_ratio == pytest.approx(2 / 6)


def test_each_paragraph_in_exactly_one_cluster(two_group_paragraphs, two_group_embeddings):
    result = Clusterer(ClusteringConfig(similarity_threshold=0.999)).cluster_paragraphs(
        two_group_paragraphs, two_group_embeddings
    )
    seen = [pid for c in result.clusters for pid in c.paragraph_ids]
    assert sorted(seen) == sorted(p.id for p in two_group_paragraphs)
    assert len(seen) == len(set(seen))


def test_too_few_paragraphs_give_singletons():
    paragraphs = [make_paragraph("p_1", statement_ids=["s_1"]), make_paragraph("p_0", statement_ids=["s_0"])]
    result = Clusterer().cluster_paragraphs(paragraphs, {"p_0": unit(1, 0), "p_1": unit(1, 0)})
    assert result.meta.skipped is True
    assert result.meta.skip_reason == "insufficient_paragraphs"
    assert [c.paragraph_ids for c in result.clusters] == [["p_0"], ["p_1"]]
    assert result.clusters[0].representative_paragraph_id == "p_0"


def test_lens_can_skip_clustering(two_group_paragraphs, two_group_embeddings):
    lens = Lens(shape_prior="fragmented", hard_merge_threshold=0.7, confidence=0.4, should_run_clustering=False)
    result = Clusterer().cluster_paragraphs(two_group_paragraphs, two_group_embeddings, lens=lens)
    assert result.meta.skip_reason == "clustering_skipped_by_lens"
    assert result.meta.singleton_count == 6


def test_no_embeddings_give_singletons(two_group_paragraphs):
    result = Clusterer().cluster_paragraphs(two_group_paragraphs, {})
    assert result.meta.skip_reason == "no_embeddings"


def test_stance_diversity_marks_cluster_uncertain():
    """Three stances in one cluster flags it and attaches an expansion."""
    stances = ["prescriptive", "cautionary", "uncertain"]
    paragraphs = [
        make_paragraph(f"p_{i}", model_index=i, statement_ids=[f"s_{i}"], stance=s, text=f"Paragraph text {i}.")
        for i, s in enumerate(stances)
    ]
    embeddings = {"p_0": unit(1, 0, 0), "p_1": unit(1, 0.05, 0), "p_2": unit(1, 0, 0.05)}

    result = Clusterer().cluster_paragraphs(paragraphs, embeddings)

    assert len(result.clusters) == 1
    cluster = result.clusters[0]
    assert cluster.uncertain is True
    assert "stance_diversity" in cluster.uncertainty_reasons
    assert cluster.expansion.members[0].paragraph_id == cluster.representative_paragraph_id
    assert len(cluster.expansion.members) == 3
    assert result.meta.uncertain_count == 1


def test_low_cohesion_threshold_flags_cluster():
    paragraphs = [make_paragraph(f"p_{i}", statement_ids=[f"s_{i}"]) for i in range(3)]
    embeddings = {"p_0": unit(1, 0, 0), "p_1": unit(1, 0.3, 0), "p_2": unit(1, 0, 0.3)}
    config = ClusteringConfig(similarity_threshold=0.8, low_cohesion_threshold=0.99)

    result = Clusterer(config).cluster_paragraphs(paragraphs, embeddings)

    assert len(result.clusters) == 1
    assert result.clusters[0].uncertainty_reasons == ["low_cohesion"]


def test_expansion_respects_character_budget():
    stances = ["prescriptive", "cautionary", "uncertain"]
    paragraphs = [
        make_paragraph(f"p_{i}", statement_ids=[f"s_{i}"], stance=s, text="x" * 100) for i, s in enumerate(stances)
    ]
    embeddings = {"p_0": unit(1, 0, 0), "p_1": unit(1, 0.05, 0), "p_2": unit(1, 0, 0.05)}
    config = ClusteringConfig(max_expansion_chars_total=250)

    cluster = Clusterer(config).cluster_paragraphs(paragraphs, embeddings).clusters[0]

    assert len(cluster.expansion.members) == 2


def test_clustering_is_deterministic(two_group_paragraphs, two_group_embeddings):
    a = Clusterer().cluster_paragraphs(list(reversed(two_group_paragraphs)), two_group_embeddings)
    b = Clusterer().cluster_paragraphs(two_group_paragraphs, two_group_embeddings)
    assert [c.model_dump() for c in a.clusters] == [c.model_dump() for c in b.clusters]
    timing = {"embedding_time_ms", "clustering_time_ms", "total_time_ms"}
    assert a.meta.model_dump(exclude=timing) == b.meta.model_dump(exclude=timing)


def _pair_below_threshold():
    paragraphs = [make_paragraph(f"p_{i}", statement_ids=[f"s_{i}"]) for i in range(3)]
    embeddings = {
        "p_0": unit(1, 0, 0),
        "p_1": unit(0.7, math.sqrt(0.51), 0),
        "p_2": unit(0, 0, 1),
    }
    return paragraphs, embeddings


def test_mutual_edge_discount_enables_a_merge():
    """At 0.70 the pair stays apart, unless a mutual edge discounts its distance."""
    # Arrange
    paragraphs, embeddings = _pair_below_threshold()
    mutual = NeighborGraph(k=5, edges=[GraphEdge(source="p_0", target="p_1", similarity=0.7, rank=1)])
    clusterer = Clusterer()

    # Act
    plain = clusterer.cluster_paragraphs(paragraphs, embeddings)
    discounted = clusterer.cluster_paragraphs(paragraphs, embeddings, mutual)

    # Assert
    assert sorted(c.paragraph_ids for c in plain.clusters) == [["p_0"], ["p_1"], ["p_2"]]
    assert sorted(c.paragraph_ids for c in discounted.clusters) == [["p_0", "p_1"], ["p_2"]]


def test_equal_distance_merges_prefer_the_lower_id_pair():
    """p_1 is equally close to p_0 and p_2; the (p_0, p_1) pair merges first."""
    # Arrange
    paragraphs = [make_paragraph(f"p_{i}", statement_ids=[f"s_{i}"]) for i in range(3)]
    embeddings = {
        "p_0": unit(0.8, 0.6),
        "p_1": unit(1, 0),
        "p_2": unit(0.8, -0.6),
    }

    # Act
    result = Clusterer().cluster_paragraphs(paragraphs, embeddings)

    # Assert
    assert sorted(c.paragraph_ids for c in result.clusters) == [["p_0", "p_1"], ["p_2"]]
