import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import numpy as np

from .clusterer import Clusterer
from .config import PipelineConfig
from .embedder import Embedder
from .extraction.extractor import extract_statements
from .extraction.paragraphs import project_paragraphs
from .geometry.enrichment import EnrichmentResult, enrich_statements
from .geometry.lens import derive_lens
from .geometry.substrate import build_substrate
from .models.cluster import ClusteringResult
from .models.paragraph import Paragraph, ParagraphProjection
from .models.region import Lens, OppositionPair, RegionizationResult, RegionProfile
from .models.statement import ExtractionResult, Statement
from .models.substrate import GeometricSubstrate
from .models.traversal import Claim, TraversalState
from .models.triage import PrunedSubstrate
from .regions import build_regions, detect_oppositions, profile_regions
from .triage.engine import triage_statements
from .triage.reconstruct import passthrough_substrate, reconstruct_substrate

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    sources: List[Tuple[int, str]]
    extraction: ExtractionResult
    projection: ParagraphProjection
    statement_embeddings: Dict[str, np.ndarray]
    paragraph_embeddings: Dict[str, np.ndarray]
    substrate: GeometricSubstrate
    lens: Lens
    clustering: ClusteringResult
    regions: RegionizationResult
    profiles: List[RegionProfile]
    oppositions: List[OppositionPair]
    enrichment: EnrichmentResult
    embedding_failures: Dict[str, str] = field(default_factory=dict)
    total_time_ms: float = 0.0


async def run_pipeline(
    sources: Iterable[Tuple[int, Optional[str]]],
    embedder: Optional[Embedder] = None,
    config: Optional[PipelineConfig] = None,
) -> PipelineResult:
    """
    Turns raw per-source answers into the evidence graph a traversal runs on.

    Everything except the embedding calls is a deterministic, synchronous
    transformation; the two embedding passes (statements and whole
    paragraphs) are independent and run concurrently.

    Args:
        sources: ``(source index, raw text)`` pairs. Empty texts are skipped.
        embedder: Embedding adapter. Built from ``config.embedding`` if omitted.
        config: Pipeline configuration.

    Returns:
        A `PipelineResult` holding every intermediate snapshot.
    """
    config = config or PipelineConfig()
    embedder = embedder or Embedder(config.embedding)
    start = time.perf_counter()
    sources = [(idx, text or "") for idx, text in sources]

    # Step 1: Extract stance-tagged statements and regroup them into paragraphs.
    extraction = extract_statements(sources, config.extraction)
    projection = project_paragraphs(extraction.statements)
    paragraphs = projection.paragraphs

    # Step 2: Embed statements and full paragraphs in two independent passes.
    statement_batch, paragraph_batch = await asyncio.gather(
        embedder.embed_statements(extraction.statements),
        embedder.embed_paragraphs(paragraphs, extraction.statements),
    )
    failures = {**statement_batch.failures, **paragraph_batch.failures}

    # Step 3: Build the geometric substrate over paragraph vectors.
    paragraph_embeddings = paragraph_batch.as_arrays()
    substrate = build_substrate(paragraphs, paragraph_embeddings, embedder.backend_name, config.substrate)

    # Step 4: Cluster, gated by the lens read off the substrate's shape.
    lens = derive_lens(substrate, config.clustering)
    clustering = Clusterer(config.clustering).cluster_paragraphs(
        paragraphs, paragraph_embeddings, substrate.graphs.mutual, lens
    )

    # Step 5: Partition nodes into regions and measure them.
    regions = build_regions(substrate, clustering, lens)
    profiles = profile_regions(regions.regions, substrate)
    oppositions = detect_oppositions(regions.regions, profiles, substrate)

    # Step 6: Attach coordinates to statement copies.
    enrichment = enrich_statements(extraction.statements, paragraphs, substrate, regions.regions)

    elapsed = (time.perf_counter() - start) * 1000
    logger.info(
        "Pipeline: %d statements, %d paragraphs, %d regions (%s) in %.1fms",
        len(extraction.statements),
        len(paragraphs),
        len(regions.regions),
        substrate.shape.prior,
        elapsed,
    )
    return PipelineResult(
        sources=sources,
        extraction=extraction,
        projection=projection,
        statement_embeddings=statement_batch.as_arrays(),
        paragraph_embeddings=paragraph_embeddings,
        substrate=substrate,
        lens=lens,
        clustering=clustering,
        regions=regions,
        profiles=profiles,
        oppositions=oppositions,
        enrichment=enrichment,
        embedding_failures=failures,
        total_time_ms=elapsed,
    )


def build_pruned_substrate(
    sources: List[Tuple[int, str]],
    statements: List[Statement],
    claims: List[Claim],
    state: TraversalState,
    statement_embeddings: Mapping[str, np.ndarray],
    paragraphs: Optional[List[Paragraph]] = None,
    paragraph_embeddings: Optional[Mapping[str, np.ndarray]] = None,
    config: Optional[PipelineConfig] = None,
) -> PrunedSubstrate:
    """Rewrite every source text to reflect a finished traversal.

    With no pruned claim the source texts come back verbatim.
    """
    config = config or PipelineConfig()
    if not any(state.claim_statuses.get(c.id) == "pruned" for c in claims):
        logger.debug("No pruned claims; passing sources through")
        return passthrough_substrate(sources, statements, state)

    triage = triage_statements(
        statements, claims, state, statement_embeddings, paragraphs, paragraph_embeddings, config.triage
    )
    return reconstruct_substrate(sources, statements, triage, state)


def prune_pipeline_result(
    result: PipelineResult, claims: List[Claim], state: TraversalState, config: Optional[PipelineConfig] = None
) -> PrunedSubstrate:
    return build_pruned_substrate(
        result.sources,
        result.extraction.statements,
        claims,
        state,
        result.statement_embeddings,
        result.projection.paragraphs,
        result.paragraph_embeddings,
        config,
    )
