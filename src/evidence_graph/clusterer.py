import logging
import time
from typing import Dict, List, Mapping, Optional, Tuple

import numpy as np

from .config import ClusteringConfig
from .models.cluster import (
    ClusterExpansion,
    ClusteringMeta,
    ClusteringResult,
    ExpansionMember,
    ParagraphCluster,
)
from .models.paragraph import Paragraph
from .models.region import Lens
from .models.substrate import NeighborGraph
from .geometry.similarity import normalized_mean, quantize, quantize_array

logger = logging.getLogger(__name__)


def _clip(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars].strip() + "..."


class Clusterer:
    def __init__(self, config: Optional[ClusteringConfig] = None):
        """Average-linkage agglomerative clustering over paragraph embeddings.

        Distance is ``1 - quantized cosine``. Merging stops once the best
        available merge is farther than ``1 - similarity_threshold``. The
        number of clusters is emergent; ``max_clusters`` only triggers a
        warning and never forces merges.

        Memory is O(n^2) and worst-case time O(n^3) in the paragraph count.
        """
        self.config = config or ClusteringConfig()

    def _distance_matrix(self, ids: List[str], embeddings: Mapping[str, np.ndarray]) -> np.ndarray:
        n = len(ids)
        D = np.full((n, n), np.inf)
        present = [i for i, pid in enumerate(ids) if pid in embeddings]
        if present:
            X = np.vstack([np.asarray(embeddings[ids[i]], dtype=float) for i in present])
            sims = quantize_array(X @ X.T)
            D[np.ix_(present, present)] = quantize_array(1.0 - sims)
        np.fill_diagonal(D, 0.0)
        return D

    def _mutual_matrix(self, ids: List[str], mutual: Optional[NeighborGraph]) -> Optional[np.ndarray]:
        if mutual is None:
            return None
        index = {pid: i for i, pid in enumerate(ids)}
        M = np.zeros((len(ids), len(ids)), dtype=bool)
        for edge in mutual.edges:
            a, b = index.get(edge.source), index.get(edge.target)
            if a is None or b is None:
                continue
            M[a, b] = M[b, a] = True
        return M

    def _hierarchical(self, D: np.ndarray, M: Optional[np.ndarray]) -> List[List[int]]:
        n = D.shape[0]
        members: List[List[int]] = [[i] for i in range(n)]
        # running sums of pairwise distances and "any mutual edge" flags between clusters
        S = D.copy()
        sizes = np.ones(n)
        active = np.ones(n, dtype=bool)
        threshold = quantize(1 - self.config.similarity_threshold)

        while active.sum() > 1:
            idx = np.flatnonzero(active)
            with np.errstate(invalid="ignore"):
                avg = quantize_array(S[np.ix_(idx, idx)] / np.outer(sizes[idx], sizes[idx]))
            if M is not None:
                crossing = M[np.ix_(idx, idx)]
                avg = np.where(crossing, quantize_array(avg * self.config.mutual_discount), avg)
            avg[np.tril_indices(len(idx))] = np.inf

            # row-major argmin picks the lowest (i, j) among ties
            flat = int(np.argmin(avg))
            a, b = divmod(flat, len(idx))
            best = avg[a, b]
            if not np.isfinite(best) or best > threshold:
                break

            i, j = idx[a], idx[b]
            S[i, :] += S[j, :]
            S[:, i] += S[:, j]
            if M is not None:
                M[i, :] |= M[j, :]
                M[:, i] |= M[:, j]
            sizes[i] += sizes[j]
            members[i].extend(members[j])
            active[j] = False

        if active.sum() > self.config.max_clusters:
            logger.warning(
                "Produced %d clusters (exceeds max %d); data is fragmented at threshold %.2f",
                int(active.sum()),
                self.config.max_clusters,
                self.config.similarity_threshold,
            )
        return [sorted(members[i]) for i in np.flatnonzero(active)]

    def _centroid(self, member_ids: List[str], embeddings: Mapping[str, np.ndarray]) -> str:
        """Member nearest the normalised mean; ties go to the smaller id."""
        if len(member_ids) == 1:
            return member_ids[0]
        vectors = [embeddings[m] for m in member_ids if m in embeddings]
        mean = normalized_mean(vectors)
        if mean is None:
            return member_ids[0]
        best_id, best_sim = member_ids[0], -np.inf
        for m in member_ids:
            if m not in embeddings:
                continue
            sim = quantize(float(np.dot(embeddings[m], mean)))
            if sim > best_sim or (sim == best_sim and m < best_id):
                best_id, best_sim = m, sim
        return best_id

    def _cohesion(
        self, member_ids: List[str], representative: str, embeddings: Mapping[str, np.ndarray]
    ) -> Tuple[float, float]:
        if len(member_ids) == 1:
            return 1.0, 1.0
        present = [m for m in member_ids if m in embeddings]
        if representative not in embeddings or len(present) < 2:
            return 0.0, 0.0
        rep = embeddings[representative]
        cohesion = quantize(float(np.mean([np.dot(embeddings[m], rep) for m in present])))
        X = np.vstack([embeddings[m] for m in present])
        gram = X @ X.T
        upper = gram[np.triu_indices(len(present), k=1)]
        pairwise = quantize(float(np.mean(upper)))
        return cohesion, pairwise

    def _uncertainty(
        self, member_ids: List[str], by_id: Dict[str, Paragraph], cohesion: float, pairwise: float
    ) -> List[str]:
        cfg = self.config
        size = len(member_ids)
        members = [by_id[m] for m in member_ids if m in by_id]
        reasons = []
        if cohesion < cfg.low_cohesion_threshold:
            reasons.append("low_cohesion")
        if (
            size >= 4
            and cohesion >= cfg.low_cohesion_threshold
            and pairwise < cfg.low_cohesion_threshold
            and cohesion - pairwise >= cfg.dumbbell_gap
        ):
            reasons.append("dumbbell_cluster")
        if size > cfg.max_cluster_size:
            reasons.append("oversized")
        if len({p.dominant_stance for p in members}) >= cfg.stance_diversity_threshold:
            reasons.append("stance_diversity")
        contested = sum(1 for p in members if p.contested)
        if size and contested / size > cfg.contested_ratio_threshold:
            reasons.append("high_contested_ratio")
        if size > 1 and any(p.signals.tension for p in members) and any(p.signals.conditional for p in members):
            reasons.append("conflicting_signals")
        return reasons

    def _expansion(
        self,
        member_ids: List[str],
        representative: str,
        by_id: Dict[str, Paragraph],
        embeddings: Mapping[str, np.ndarray],
    ) -> ClusterExpansion:
        cfg = self.config
        if representative not in embeddings:
            return ClusterExpansion()
        rep = embeddings[representative]
        # farthest from the representative first
        by_distance = sorted(
            member_ids,
            key=lambda m: (quantize(float(np.dot(embeddings[m], rep))) if m in embeddings else 0.0, m),
        )
        order = [representative] + [m for m in by_distance if m != representative]
        budget = cfg.max_expansion_chars_total
        members = []
        for pid in order[: cfg.max_expansion_members]:
            p = by_id.get(pid)
            if p is None:
                continue
            text = _clip(p.full_paragraph or "", cfg.max_member_text_chars)
            if budget - len(text) < 0:
                break
            budget -= len(text)
            members.append(ExpansionMember(paragraph_id=pid, model_index=p.model_index, text=text))
        return ClusterExpansion(members=members)

    def _singletons(self, paragraphs: List[Paragraph], reason: str, start: float) -> ClusteringResult:
        ordered = sorted(paragraphs, key=lambda p: p.id)
        clusters = [
            ParagraphCluster(
                id=f"pc_{i}",
                paragraph_ids=[p.id],
                statement_ids=list(p.statement_ids),
                representative_paragraph_id=p.id,
            )
            for i, p in enumerate(ordered)
        ]
        elapsed = (time.perf_counter() - start) * 1000
        n = len(clusters)
        logger.info("Clustering skipped (%s); %d singleton clusters", reason, n)
        return ClusteringResult(
            clusters=clusters,
            meta=ClusteringMeta(
                total_clusters=n,
                singleton_count=n,
                avg_cluster_size=1.0 if n else 0.0,
                max_cluster_size=1 if n else 0,
                total_paragraphs=n,
                compression_ratio=1.0,
                clustering_time_ms=elapsed,
                total_time_ms=elapsed,
                skipped=True,
                skip_reason=reason,
            ),
        )

    def cluster_paragraphs(
        self,
        paragraphs: List[Paragraph],
        embeddings: Mapping[str, np.ndarray],
        mutual: Optional[NeighborGraph] = None,
        lens: Optional[Lens] = None,
    ) -> ClusteringResult:
        start = time.perf_counter()
        if len(paragraphs) < self.config.min_paragraphs_for_clustering:
            return self._singletons(paragraphs, "insufficient_paragraphs", start)
        if not embeddings:
            return self._singletons(paragraphs, "no_embeddings", start)
        if lens is not None and not lens.should_run_clustering:
            return self._singletons(paragraphs, "clustering_skipped_by_lens", start)

        by_id = {p.id: p for p in paragraphs}
        ids = sorted(by_id)
        D = self._distance_matrix(ids, embeddings)
        groups = self._hierarchical(D, self._mutual_matrix(ids, mutual))

        clusters = []
        for group in groups:
            member_ids = [ids[i] for i in group]
            representative = self._centroid(member_ids, embeddings)
            cohesion, pairwise = self._cohesion(member_ids, representative, embeddings)
            reasons = self._uncertainty(member_ids, by_id, cohesion, pairwise)

            statement_ids: List[str] = []
            seen = set()
            for pid in member_ids:
                for sid in by_id[pid].statement_ids:
                    if sid not in seen:
                        seen.add(sid)
                        statement_ids.append(sid)

            clusters.append(
                ParagraphCluster(
                    id="",
                    paragraph_ids=member_ids,
                    statement_ids=statement_ids,
                    representative_paragraph_id=representative,
                    cohesion=cohesion,
                    pairwise_cohesion=pairwise,
                    uncertain=bool(reasons),
                    uncertainty_reasons=reasons,
                    expansion=self._expansion(member_ids, representative, by_id, embeddings) if reasons else None,
                )
            )

        clusters.sort(key=lambda c: (not c.uncertain, -c.size, c.paragraph_ids[0]))
        for i, c in enumerate(clusters):
            c.id = f"pc_{i}"

        sizes = [c.size for c in clusters]
        elapsed = (time.perf_counter() - start) * 1000
        logger.debug("Clustered %d paragraphs into %d clusters in %.1fms", len(ids), len(clusters), elapsed)
        return ClusteringResult(
            clusters=clusters,
            meta=ClusteringMeta(
                total_clusters=len(clusters),
                singleton_count=sum(1 for s in sizes if s == 1),
                uncertain_count=sum(1 for c in clusters if c.uncertain),
                avg_cluster_size=sum(sizes) / len(sizes) if sizes else 0.0,
                max_cluster_size=max(sizes) if sizes else 0,
                total_paragraphs=len(ids),
                compression_ratio=len(clusters) / len(ids) if ids else 1.0,
                clustering_time_ms=elapsed,
                total_time_ms=elapsed,
            ),
        )
