from unittest.mock import patch

import pytest

from evidence_graph import Embedder, PipelineConfig, TraversalEngine, prune_pipeline_result, run_pipeline
from evidence_graph.config import EmbeddingConfig
from evidence_graph.models import TraversalState

from .factories import KeywordBackend, unit

SOURCES = [
    (1, "You should back up your data before upgrading."),
    (2, "It's recommended to create a backup prior to upgrading."),
    (3, "The encryption standard is widely adopted by most vendors."),
]


def _config():
    return PipelineConfig(embedding=EmbeddingConfig(backend="hashing", dimensions=4))


def _keyword_embedder():
    backend = KeywordBackend(
        table=[
            ("backup", unit(1, 0.05, 0, 0)),
            ("back up", unit(1, 0, 0, 0)),
            ("encryption", unit(0, 1, 0, 0)),
        ],
        default=unit(0, 0, 0, 1),
    )
    return Embedder(_config().embedding, backend=backend)


@pytest.mark.asyncio
async def test_backup_advice_lands_in_one_region():
    """Two near-identical pieces of advice from different sources share a region."""
    result = await run_pipeline(SOURCES, _keyword_embedder(), _config())

    statements = result.extraction.statements
    assert [s.model_index for s in statements] == [1, 2, 3]
    assert [s.stance for s in statements[:2]] == ["prerequisite", "prerequisite"]
    assert all(s.signals.sequence for s in statements[:2])

    assert result.substrate.degenerate is False
    regions = {r.id: r for r in result.regions.regions}
    enriched = {s.id: s for s in result.enrichment.statements}
    region_a = enriched["s_0"].geometry.region_id
    assert region_a == enriched["s_1"].geometry.region_id
    assert regions[region_a].kind == "cluster"
    assert enriched["s_2"].geometry.region_id != region_a
    assert result.regions.meta.covered_nodes == 3
    assert result.embedding_failures == {}


@pytest.mark.asyncio
async def test_embedding_passes_cover_statements_and_paragraphs():
    embedder = _keyword_embedder()
    result = await run_pipeline(SOURCES, embedder, _config())
    assert set(result.statement_embeddings) == {"s_0", "s_1", "s_2"}
    assert set(result.paragraph_embeddings) == {"p_0", "p_1", "p_2"}
    assert len(embedder.backend.calls) == 2


@pytest.mark.asyncio
async def test_traversal_then_pruning():
    """Resolving a conflict rewrites the losing source and leaves the rest alone."""
    result = await run_pipeline(SOURCES, _keyword_embedder(), _config())
    engine = TraversalEngine.from_raw({
        "claims": [
            {"id": "A", "label": "Back up first", "sourceStatementIds": ["s_0"]},
            {"id": "B", "label": "Create a backup", "sourceStatementIds": ["s_1"]},
        ],
        "edges": [{"from": "A", "to": "B", "type": "conflict"}],
    })

    engine.resolve_conflict("fp_conflict_A::B", "A")
    pruned = prune_pipeline_result(result, engine.graph.claims, engine.state)

    assert pruned.text_for(1) == SOURCES[0][1]
    assert pruned.text_for(2) == "--- backup ---"
    assert pruned.text_for(3) == SOURCES[2][1]
    assert pruned.summary.path_steps == ['→ Chose "Back up first" over "Create a backup"']


@pytest.mark.asyncio
async def test_nothing_pruned_passes_sources_through():
    result = await run_pipeline(SOURCES, _keyword_embedder(), _config())
    pruned = prune_pipeline_result(result, [], TraversalState())
    assert pruned.is_passthrough is True
    assert [o.text for o in pruned.outputs] == [text for _, text in SOURCES]


@pytest.mark.asyncio
async def test_pipeline_is_deterministic():
    sources = [
        (0, "You must pin every dependency before deploying.\n\nCaching might help in some cases."),
        (1, "Never deploy on a Friday afternoon.\n\nThe scheduler supports cron expressions."),
        (2, "Install the drivers before running setup. After the reboot, the device is ready to use."),
    ]
    config = PipelineConfig(embedding=EmbeddingConfig(backend="hashing", dimensions=16))

    first = await run_pipeline(sources, config=config)
    second = await run_pipeline(sources, config=config)

    timing = {"meta": {"build_time_ms"}, "layout2d": {"build_time_ms"}}
    assert first.substrate.model_dump(exclude=timing) == second.substrate.model_dump(exclude=timing)
    assert first.regions == second.regions
    assert [c.model_dump() for c in first.clustering.clusters] == [c.model_dump() for c in second.clustering.clusters]
    assert first.profiles == second.profiles
    assert first.oppositions == second.oppositions


@pytest.mark.asyncio
async def test_empty_sources_give_degenerate_but_well_formed_result():
    result = await run_pipeline([(0, ""), (1, None)], config=_config())
    assert result.extraction.statements == []
    assert result.substrate.degenerate_reason == "insufficient_paragraphs"
    assert result.regions.regions == []
    assert result.clustering.meta.skipped is True


@pytest.mark.asyncio
@patch("evidence_graph.main.Embedder")
async def test_embedder_is_built_from_config(MockEmbedder):
    """Without an explicit embedder the pipeline builds one from config.embedding."""
    # Arrange
    MockEmbedder.return_value = _keyword_embedder()
    config = _config()

    # Act
    await run_pipeline(SOURCES, config=config)

    # Assert
    MockEmbedder.assert_called_once_with(config.embedding)
