import logging
import time
from typing import Dict, List, Tuple

from ..models.paragraph import Paragraph, ParagraphProjection, ParagraphStatement, ProjectionMeta
from ..models.statement import STANCE_PRIORITY, Signals, Statement

logger = logging.getLogger(__name__)

MAX_STATEMENT_CHARS = 320


def _precedence(stance: str) -> int:
    return STANCE_PRIORITY.index(stance)


def _clip(text: str, max_chars: int) -> str:
    normalized = (text or "").strip()
    if len(normalized) <= max_chars:
        return normalized
    return normalized[:max_chars].strip()


def dominant_stance(stances: List[str], confidence_by_stance: Dict[str, float]) -> Tuple[str, bool, List[str]]:
    """Resolve a paragraph's stance from its members.

    Only prescriptive+cautionary and assertive+uncertain mark a paragraph as
    contested; a contested paragraph takes the highest-precedence stance
    present. Otherwise the stance with the largest summed confidence wins,
    ties going to precedence.
    """
    present = set(stances)
    hints = [s for s in STANCE_PRIORITY if s in present]
    contested = ("prescriptive" in present and "cautionary" in present) or (
        "assertive" in present and "uncertain" in present
    )
    if not present:
        return "assertive", False, hints
    if contested:
        return hints[0], True, hints

    best = max(hints, key=lambda s: (confidence_by_stance.get(s, 0.0), -_precedence(s)))
    return best, False, hints


def project_paragraphs(statements: List[Statement]) -> ParagraphProjection:
    """Regroup statements into their source paragraphs.

    Groups are keyed by (model_index, paragraph_index) and numbered ``p_0``,
    ``p_1``, ... in ascending key order. Members are ordered by sentence
    index, then encounter order, then id, with duplicate ids dropped.
    """
    start = time.perf_counter()

    groups: Dict[Tuple[int, int], List[Tuple[int, int, Statement]]] = {}
    for encounter, stmt in enumerate(statements):
        key = (stmt.model_index, stmt.location.paragraph_index)
        groups.setdefault(key, []).append((stmt.location.sentence_index, encounter, stmt))

    paragraphs: List[Paragraph] = []
    by_model: Dict[int, int] = {}
    contested_count = 0

    for i, key in enumerate(sorted(groups)):
        model_index, paragraph_index = key
        members: List[Statement] = []
        seen = set()
        for _, _, stmt in sorted(groups[key], key=lambda g: (g[0], g[1], g[2].id)):
            if stmt.id in seen:
                continue
            seen.add(stmt.id)
            members.append(stmt)

        by_model[model_index] = by_model.get(model_index, 0) + 1

        confidence_by_stance: Dict[str, float] = {}
        for stmt in members:
            confidence_by_stance[stmt.stance] = confidence_by_stance.get(stmt.stance, 0.0) + stmt.confidence
        dominant, contested, hints = dominant_stance([m.stance for m in members], confidence_by_stance)
        if contested:
            contested_count += 1

        paragraphs.append(
            Paragraph(
                id=f"p_{i}",
                model_index=model_index,
                paragraph_index=paragraph_index,
                statement_ids=[m.id for m in members],
                dominant_stance=dominant,
                stance_hints=hints,
                contested=contested,
                confidence=max((m.confidence for m in members), default=0.0),
                signals=Signals(
                    sequence=any(m.signals.sequence for m in members),
                    tension=any(m.signals.tension for m in members),
                    conditional=any(m.signals.conditional for m in members),
                ),
                statements=[
                    ParagraphStatement(
                        id=m.id,
                        text=_clip(m.text, MAX_STATEMENT_CHARS),
                        stance=m.stance,
                        signals=m.signals.tags(),
                    )
                    for m in members
                ],
                full_paragraph=members[0].full_paragraph if members else "",
            )
        )

    meta = ProjectionMeta(
        total_paragraphs=len(paragraphs),
        by_model=by_model,
        contested_count=contested_count,
        processing_time_ms=(time.perf_counter() - start) * 1000,
    )
    return ParagraphProjection(paragraphs=paragraphs, meta=meta)
