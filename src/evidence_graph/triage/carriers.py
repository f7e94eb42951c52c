from typing import AbstractSet, List, Mapping, Optional

import numpy as np

from ..config import TriageConfig
from ..models.paragraph import Paragraph
from ..models.statement import Statement, is_opposing_stance
from ..models.triage import CarrierDetectionResult, ConfirmedCarrier
from ..geometry.similarity import cosine


def prefilter_statement_ids(
    claim_centroid: np.ndarray,
    paragraphs: List[Paragraph],
    paragraph_embeddings: Mapping[str, np.ndarray],
    threshold: float,
) -> set:
    """Statement ids from paragraphs at least ``threshold`` close to the claim."""
    allowed = set()
    for para in paragraphs:
        vec = paragraph_embeddings.get(para.id)
        if vec is not None and cosine(vec, claim_centroid) >= threshold:
            allowed.update(para.statement_ids)
    return allowed


def detect_carriers(
    source: Statement,
    claim_centroid: Optional[np.ndarray],
    statements: List[Statement],
    statement_embeddings: Mapping[str, np.ndarray],
    protected_ids: AbstractSet[str],
    config: Optional[TriageConfig] = None,
    candidate_ids: Optional[AbstractSet[str]] = None,
) -> CarrierDetectionResult:
    """Find other statements that already convey what ``source`` says.

    A carrier must be close to both the pruned claim's centroid and the
    source statement itself; the source bar rises by ``opposing_margin``
    when the two stances oppose. Carriers come back strongest first.
    """
    config = config or TriageConfig()
    source_vec = statement_embeddings.get(source.id)
    if claim_centroid is None or source_vec is None:
        return CarrierDetectionResult(source_statement_id=source.id)

    carriers: List[ConfirmedCarrier] = []
    examined = 0
    for candidate in statements:
        if candidate.id == source.id or candidate.id in protected_ids:
            continue
        if candidate_ids is not None and candidate.id not in candidate_ids:
            continue
        vec = statement_embeddings.get(candidate.id)
        if vec is None:
            continue
        examined += 1

        claim_sim = cosine(vec, claim_centroid)
        if claim_sim < config.claim_similarity:
            continue
        required = config.source_similarity
        if is_opposing_stance(source.stance, candidate.stance):
            required += config.opposing_margin
        source_sim = cosine(vec, source_vec)
        if source_sim < required:
            continue
        carriers.append(
            ConfirmedCarrier(statement_id=candidate.id, claim_similarity=claim_sim, source_similarity=source_sim)
        )

    carriers.sort(key=lambda c: (-(c.claim_similarity + c.source_similarity), c.statement_id))
    return CarrierDetectionResult(
        source_statement_id=source.id,
        carriers=carriers,
        is_sole_carrier=not carriers,
        candidates_examined=examined,
    )
