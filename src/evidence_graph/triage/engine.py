import logging
import time
from typing import Dict, List, Mapping, Optional

import numpy as np

from ..config import TriageConfig
from ..models.paragraph import Paragraph
from ..models.statement import Statement, is_opposing_stance
from ..models.traversal import Claim, TraversalState
from ..models.triage import StatementFate, TriageMeta, TriageResult
from ..geometry.similarity import cosine, normalized_mean
from .carriers import detect_carriers, prefilter_statement_ids

logger = logging.getLogger(__name__)


def dominant_claim_stance(claim: Claim, statements_by_id: Mapping[str, Statement]) -> Optional[str]:
    """Confidence-weighted majority stance of a claim's statements; None on a tie."""
    weights: Dict[str, float] = {}
    for sid in claim.source_statement_ids:
        st = statements_by_id.get(sid)
        if st is None:
            continue
        weights[st.stance] = weights.get(st.stance, 0.0) + max(0.1, st.confidence)
    if not weights:
        return None
    ranked = sorted(weights.items(), key=lambda kv: (-kv[1], kv[0]))
    if len(ranked) > 1 and abs(ranked[0][1] - ranked[1][1]) < 1e-6:
        return None
    return ranked[0][0]


def claim_centroid(claim: Claim, statement_embeddings: Mapping[str, np.ndarray]) -> Optional[np.ndarray]:
    vectors = [statement_embeddings[sid] for sid in claim.source_statement_ids if sid in statement_embeddings]
    return normalized_mean(vectors)


def triage_statements(
    statements: List[Statement],
    claims: List[Claim],
    state: TraversalState,
    statement_embeddings: Mapping[str, np.ndarray],
    paragraphs: Optional[List[Paragraph]] = None,
    paragraph_embeddings: Optional[Mapping[str, np.ndarray]] = None,
    config: Optional[TriageConfig] = None,
) -> TriageResult:
    """Give every statement a fate for the current traversal state.

    Statements behind a surviving claim are PROTECTED, whatever else
    happens. Each remaining statement of a pruned claim is REMOVEd when
    other statements carry the same content (those carriers are
    SKELETONIZEd), and SKELETONIZEd itself when it is the only carrier.
    Statements opposing the pruned claim's stance are kept as
    counterevidence. A final sweep skeletonizes close paraphrases of any
    pruning target in every source. Everything else passes through.
    """
    config = config or TriageConfig()
    start = time.perf_counter()
    statements_by_id = {s.id: s for s in statements}

    surviving, pruned = [], []
    for claim in claims:
        (pruned if state.claim_statuses.get(claim.id) == "pruned" else surviving).append(claim)

    protected_ids = {sid for c in surviving for sid in c.source_statement_ids if sid in statements_by_id}
    fates: Dict[str, StatementFate] = {
        sid: StatementFate(statement_id=sid, action="PROTECTED", reason="Linked to surviving claim")
        for sid in sorted(protected_ids)
    }

    centroids = {c.id: claim_centroid(c, statement_embeddings) for c in pruned}
    stances = {c.id: dominant_claim_stance(c, statements_by_id) for c in pruned}

    for claim in pruned:
        centroid = centroids[claim.id]
        claim_stance = stances[claim.id]
        candidate_ids = None
        if config.paragraph_prefilter is not None and centroid is not None and paragraphs and paragraph_embeddings:
            candidate_ids = prefilter_statement_ids(centroid, paragraphs, paragraph_embeddings, config.paragraph_prefilter)

        for sid in claim.source_statement_ids:
            source = statements_by_id.get(sid)
            if source is None or sid in fates:
                continue

            if is_opposing_stance(source.stance, claim_stance):
                fates[sid] = StatementFate(
                    statement_id=sid,
                    action="PROTECTED",
                    reason=f"Counterevidence vs pruned {claim.id}",
                    trigger_claim_id=claim.id,
                )
                continue

            if centroid is None or sid not in statement_embeddings:
                fates[sid] = StatementFate(
                    statement_id=sid,
                    action="SKELETONIZE",
                    reason=f"Sole carrier of pruned {claim.id} (no embedding)",
                    trigger_claim_id=claim.id,
                    is_sole_carrier=True,
                )
                continue

            detection = detect_carriers(
                source, centroid, statements, statement_embeddings, protected_ids, config, candidate_ids
            )
            skeletonized = []
            for carrier in detection.carriers:
                cid = carrier.statement_id
                existing = fates.get(cid)
                if existing is None:
                    carrier_stance = statements_by_id[cid].stance
                    if is_opposing_stance(carrier_stance, claim_stance):
                        fates[cid] = StatementFate(
                            statement_id=cid,
                            action="PROTECTED",
                            reason=f"Counterevidence carrier vs pruned {claim.id}",
                            trigger_claim_id=claim.id,
                        )
                        continue
                    existing = fates[cid] = StatementFate(
                        statement_id=cid,
                        action="SKELETONIZE",
                        reason=f"Carrier of pruned {claim.id} (sim: {carrier.claim_similarity:.2f})",
                        trigger_claim_id=claim.id,
                    )
                if existing.action == "SKELETONIZE":
                    skeletonized.append(cid)

            if skeletonized:
                fates[sid] = StatementFate(
                    statement_id=sid,
                    action="REMOVE",
                    reason=f"Pruned {claim.id}, {len(skeletonized)} carrier(s) found",
                    trigger_claim_id=claim.id,
                    carriers=skeletonized,
                )
            else:
                fates[sid] = StatementFate(
                    statement_id=sid,
                    action="SKELETONIZE",
                    reason=f"Sole carrier of pruned {claim.id}",
                    trigger_claim_id=claim.id,
                    is_sole_carrier=True,
                )

    paraphrases = _paraphrase_sweep(statements, fates, protected_ids, statement_embeddings, stances, config)
    if paraphrases:
        logger.info("Found %d cross-source paraphrases of pruned statements", paraphrases)

    for st in statements:
        if st.id not in fates:
            fates[st.id] = StatementFate(statement_id=st.id, action="PROTECTED", reason="Not linked to a pruned claim")

    counts = {"PROTECTED": 0, "SKELETONIZE": 0, "REMOVE": 0}
    for fate in fates.values():
        counts[fate.action] += 1
    elapsed = (time.perf_counter() - start) * 1000
    logger.debug(
        "Triage: %d protected, %d skeletonized, %d removed in %.1fms",
        counts["PROTECTED"],
        counts["SKELETONIZE"],
        counts["REMOVE"],
        elapsed,
    )
    return TriageResult(
        fates=fates,
        meta=TriageMeta(
            total_statements=len(statements),
            protected_count=counts["PROTECTED"],
            skeletonized_count=counts["SKELETONIZE"],
            removed_count=counts["REMOVE"],
            pruned_claim_count=len(pruned),
            processing_time_ms=elapsed,
        ),
    )


def _paraphrase_sweep(
    statements: List[Statement],
    fates: Dict[str, StatementFate],
    protected_ids: set,
    statement_embeddings: Mapping[str, np.ndarray],
    claim_stances: Mapping[str, Optional[str]],
    config: TriageConfig,
) -> int:
    targets = sorted(sid for sid, f in fates.items() if f.action in ("REMOVE", "SKELETONIZE"))
    statements_by_id = {s.id: s for s in statements}
    found = 0
    for target_id in targets:
        target_vec = statement_embeddings.get(target_id)
        target = statements_by_id.get(target_id)
        if target_vec is None or target is None:
            continue
        trigger = fates[target_id].trigger_claim_id
        claim_stance = claim_stances.get(trigger) if trigger else None

        for st in statements:
            if st.id == target_id or st.id in protected_ids or st.id in fates:
                continue
            vec = statement_embeddings.get(st.id)
            if vec is None:
                continue
            required = config.paraphrase_threshold
            if is_opposing_stance(target.stance, st.stance):
                required += config.opposing_margin
            similarity = cosine(target_vec, vec)
            if similarity < required:
                continue
            found += 1
            if is_opposing_stance(st.stance, claim_stance):
                fates[st.id] = StatementFate(
                    statement_id=st.id,
                    action="PROTECTED",
                    reason=f"Counterevidence paraphrase vs pruned {trigger}",
                    trigger_claim_id=trigger,
                )
            else:
                fates[st.id] = StatementFate(
                    statement_id=st.id,
                    action="SKELETONIZE",
                    reason=f"Paraphrase of pruned statement {target_id} (sim: {similarity:.2f})",
                    trigger_claim_id=trigger,
                )
    return found
