import logging
import time
from typing import Iterable, List, Optional, Tuple

from ..config import ExtractionConfig
from ..models.statement import (
    STANCE_PRIORITY,
    ExtractionMeta,
    ExtractionResult,
    Statement,
    StatementLocation,
)
from .patterns import DEFAULT_TABLES, PatternTables
from .sentences import is_substantive, split_paragraphs, split_sentences

logger = logging.getLogger(__name__)

# (source index, raw text)
SourceText = Tuple[int, Optional[str]]


def extract_statements(
    sources: Iterable[SourceText],
    config: Optional[ExtractionConfig] = None,
    tables: PatternTables = DEFAULT_TABLES,
) -> ExtractionResult:
    """Mechanically extract stance-tagged statements from raw source texts.

    Each source is split into paragraphs (blank lines) and sentences. Every
    substantive sentence is classified, checked against the hard exclusion
    rules and tagged with signals. Ids are assigned in encounter order
    (``s_0``, ``s_1``, ...).

    Extraction stops early, with ``meta.partial`` set, once the sentence or
    candidate ceiling from ``config`` is reached. Missing or empty texts
    yield no statements.
    """
    config = config or ExtractionConfig()
    start = time.perf_counter()

    statements: List[Statement] = []
    candidates_processed = 0
    candidates_excluded = 0
    sentences_processed = 0
    partial_reason = None

    for model_index, content in sources:
        if partial_reason:
            break
        if not content or not content.strip():
            logger.debug("Skipping empty text for source %s", model_index)
            continue

        for p_idx, paragraph in enumerate(split_paragraphs(content)):
            if partial_reason:
                break
            for s_idx, sentence in enumerate(split_sentences(paragraph)):
                if sentences_processed >= config.sentence_limit:
                    partial_reason = "sentence_limit"
                    logger.warning(
                        "Hit sentence limit (%d), stopping at source %s", config.sentence_limit, model_index
                    )
                    break
                sentences_processed += 1

                if not is_substantive(sentence):
                    continue

                if len(statements) >= config.candidate_limit:
                    partial_reason = "candidate_limit"
                    logger.warning("Hit candidate limit (%d), stopping extraction", config.candidate_limit)
                    break

                candidates_processed += 1
                stance, confidence = tables.classify_stance(sentence)
                if tables.is_excluded(sentence, stance):
                    candidates_excluded += 1
                    continue

                statements.append(
                    Statement(
                        id=f"s_{len(statements)}",
                        model_index=model_index,
                        text=sentence,
                        stance=stance,
                        confidence=confidence,
                        signals=tables.detect_signals(sentence),
                        location=StatementLocation(paragraph_index=p_idx, sentence_index=s_idx),
                        full_paragraph=paragraph,
                    )
                )

    meta = _build_meta(statements, candidates_processed, candidates_excluded, sentences_processed)
    meta.processing_time_ms = (time.perf_counter() - start) * 1000
    meta.partial = partial_reason is not None
    meta.partial_reason = partial_reason
    logger.debug(
        "Extracted %d statements from %d sentences in %.1fms",
        meta.total_statements,
        sentences_processed,
        meta.processing_time_ms,
    )
    return ExtractionResult(statements=statements, meta=meta)


def _build_meta(
    statements: List[Statement], candidates_processed: int, candidates_excluded: int, sentences_processed: int
) -> ExtractionMeta:
    by_model = {}
    by_stance = {s: 0 for s in STANCE_PRIORITY}
    by_signal = {"sequence": 0, "tension": 0, "conditional": 0}
    for stmt in statements:
        by_model[stmt.model_index] = by_model.get(stmt.model_index, 0) + 1
        by_stance[stmt.stance] += 1
        for name in by_signal:
            if getattr(stmt.signals, name):
                by_signal[name] += 1
    return ExtractionMeta(
        total_statements=len(statements),
        by_model=by_model,
        by_stance=by_stance,
        by_signal=by_signal,
        candidates_processed=candidates_processed,
        candidates_excluded=candidates_excluded,
        sentences_processed=sentences_processed,
    )


def statements_by_stance(statements: List[Statement], stance: str) -> List[Statement]:
    return [s for s in statements if s.stance == stance]


def statements_by_model(statements: List[Statement], model_index: int) -> List[Statement]:
    return [s for s in statements if s.model_index == model_index]


def statements_with_signal(
    statements: List[Statement],
    sequence: Optional[bool] = None,
    tension: Optional[bool] = None,
    conditional: Optional[bool] = None,
) -> List[Statement]:
    """Filter on any combination of signal flags; ``None`` means don't care."""
    wanted = {"sequence": sequence, "tension": tension, "conditional": conditional}
    return [
        s
        for s in statements
        if all(v is None or getattr(s.signals, k) == v for k, v in wanted.items())
    ]


def high_confidence_statements(statements: List[Statement], threshold: float = 0.7) -> List[Statement]:
    return [s for s in statements if s.confidence >= threshold]
