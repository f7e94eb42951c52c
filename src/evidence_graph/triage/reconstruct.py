import logging
from typing import Dict, Iterable, List, Optional, Tuple

from ..extraction.sentences import split_paragraphs, split_sentences
from ..models.statement import Statement
from ..models.traversal import TraversalState
from ..models.triage import (
    PrunedSubstrate,
    PrunedSummary,
    ReconstructedOutput,
    ReconstructedParagraph,
    ReconstructedStatement,
    TriageResult,
)
from .skeleton import skeletonize

logger = logging.getLogger(__name__)

EMPTY_PARAGRAPH_MARKER = "[...]"
SKELETON_WEIGHT = 0.3
FENCE_BELOW_RATIO = 0.3

SourceText = Tuple[int, str]


def _reconstruct_paragraph(
    p_idx: int, paragraph: str, located: Dict[Tuple[int, int], Statement], triage: TriageResult
) -> ReconstructedParagraph:
    parts: List[str] = []
    results: List[ReconstructedStatement] = []
    intact = total = 0.0
    changed = False

    for s_idx, sentence in enumerate(split_sentences(paragraph)):
        stmt = located.get((p_idx, s_idx))
        if stmt is None:
            parts.append(sentence)
            continue
        fate = triage.fates.get(stmt.id)
        action = fate.action if fate else "PROTECTED"
        total += len(stmt.text)
        if action == "PROTECTED":
            result = sentence
            intact += len(stmt.text)
        elif action == "SKELETONIZE":
            result = skeletonize(stmt.text)
            intact += len(result) * SKELETON_WEIGHT
            changed = True
        else:
            result = None
            changed = True
        if result:
            parts.append(result)
        results.append(ReconstructedStatement(statement_id=stmt.id, original=stmt.text, action=action, result=result))

    return ReconstructedParagraph(
        paragraph_index=p_idx,
        original=paragraph,
        text=" ".join(parts).strip() if changed else paragraph,
        statements=results,
        intact_ratio=intact / total if total > 0 else 1.0,
    )


def _render(paragraph: ReconstructedParagraph) -> str:
    if not paragraph.text:
        return EMPTY_PARAGRAPH_MARKER
    if paragraph.intact_ratio < FENCE_BELOW_RATIO:
        return f"--- {paragraph.text} ---"
    return paragraph.text


def reconstruct_source(
    model_index: int, text: str, statements: Iterable[Statement], triage: TriageResult
) -> ReconstructedOutput:
    """Rewrite one source text according to its statements' fates.

    Sentences are located with the same splitting the extractor used, so
    anything that never became a statement is kept verbatim. A source with
    nothing pruned comes back unchanged.
    """
    located = {
        (s.location.paragraph_index, s.location.sentence_index): s
        for s in statements
        if s.model_index == model_index
    }
    paragraphs = [
        _reconstruct_paragraph(p_idx, paragraph, located, triage)
        for p_idx, paragraph in enumerate(split_paragraphs(text or ""))
    ]
    touched = any(st.action != "PROTECTED" for p in paragraphs for st in p.statements)
    if not touched:
        return ReconstructedOutput(model_index=model_index, original_text=text or "", text=text or "", paragraphs=paragraphs)

    output = "\n\n".join(_render(p) for p in paragraphs).strip()
    if not output and text and text.strip():
        logger.warning("Empty reconstruction for source %s; falling back to source text", model_index)
        return ReconstructedOutput(
            model_index=model_index, original_text=text, text=text.strip(), paragraphs=paragraphs, is_passthrough=True
        )
    return ReconstructedOutput(model_index=model_index, original_text=text or "", text=output, paragraphs=paragraphs)


def _summary(triage: Optional[TriageResult], state: TraversalState, statement_count: int) -> PrunedSummary:
    if triage is None:
        return PrunedSummary(protected_count=statement_count, path_steps=list(state.path_steps))
    return PrunedSummary(
        protected_count=triage.meta.protected_count,
        skeletonized_count=triage.meta.skeletonized_count,
        removed_count=triage.meta.removed_count,
        pruned_claim_ids=state.pruned_claim_ids(),
        path_steps=list(state.path_steps),
    )


def passthrough_substrate(
    sources: List[SourceText], statements: List[Statement], state: TraversalState
) -> PrunedSubstrate:
    outputs = [
        ReconstructedOutput(model_index=idx, original_text=text or "", text=text or "", is_passthrough=True)
        for idx, text in sources
    ]
    return PrunedSubstrate(outputs=outputs, summary=_summary(None, state, len(statements)), is_passthrough=True)


def reconstruct_substrate(
    sources: List[SourceText], statements: List[Statement], triage: TriageResult, state: TraversalState
) -> PrunedSubstrate:
    outputs = [reconstruct_source(idx, text, statements, triage) for idx, text in sources]
    return PrunedSubstrate(outputs=outputs, summary=_summary(triage, state, len(statements)), triage=triage)


def format_substrate_for_prompt(substrate: PrunedSubstrate) -> str:
    """Render the pruned texts and the user's constraints for a synthesis prompt."""
    rule = "─" * 63
    summary = substrate.summary
    parts = [
        "EVIDENCE SUBSTRATE (User-Constrained)",
        "",
        f"Sources: {len(substrate.outputs)}",
        f"Pruned positions: {len(summary.pruned_claim_ids)}",
        f"Statements kept/skeletonized/removed: "
        f"{summary.protected_count}/{summary.skeletonized_count}/{summary.removed_count}",
        "",
    ]
    if summary.path_steps:
        parts.append("User constraints applied:")
        parts.extend(f"  {step}" for step in summary.path_steps)
        parts.append("")
    parts.append(rule)
    for output in substrate.outputs:
        parts.extend(["", f"### Source {output.model_index}", "", output.text, "", rule])
    return "\n".join(parts)
