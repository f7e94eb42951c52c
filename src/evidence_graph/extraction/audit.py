"""Audit of extracted statements that no claim ended up using.

After the external claim authority returns its claims, statements it never
referenced are ranked by confidence, overlap with the user query and signal
weight, so callers can offer them as additional context or flag gaps.
"""

import re
import time
from typing import Iterable, List, Mapping, Set

from ..models.audit import AuditGaps, AuditResult, ShadowAudit, UnreferencedStatement
from ..models.statement import ExtractionResult
from .patterns import signal_weight

_STOP_WORDS = frozenset(
    [
        "the", "and", "for", "are", "but", "not", "you", "with",
        "this", "that", "can", "will", "what", "when", "where",
        "how", "why", "who", "which", "their", "there", "than",
        "then", "them", "these", "those", "have", "has", "had",
        "was", "were", "been", "being", "from", "they", "she",
        "would", "could", "should", "about", "into", "through",
    ]
)


def significant_words(text: str) -> Set[str]:
    normalized = re.sub(r"[^\w\s]", " ", (text or "").lower())
    return {w for w in normalized.split() if len(w) >= 3 and w not in _STOP_WORDS}


def query_relevance(statement_text: str, query: str) -> float:
    """Jaccard overlap of significant words."""
    a = significant_words(statement_text)
    b = significant_words(query)
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def compute_audit(extraction: ExtractionResult, referenced_ids: Set[str], query: str) -> AuditResult:
    start = time.perf_counter()
    audit = ShadowAudit(statement_count=len(extraction.statements))
    unreferenced: List[UnreferencedStatement] = []

    for stmt in extraction.statements:
        counts = audit.by_stance[stmt.stance]
        counts.total += 1
        if stmt.id in referenced_ids:
            continue
        counts.unreferenced += 1
        relevance = query_relevance(stmt.text, query)
        weight = signal_weight(stmt.signals)
        unreferenced.append(
            UnreferencedStatement(
                statement=stmt,
                query_relevance=relevance,
                signal_weight=weight,
                adjusted_score=stmt.confidence * (1 + relevance) * (1 + weight * 0.2),
            )
        )

    # stable sort keeps extraction order among equal scores
    unreferenced.sort(key=lambda u: -u.adjusted_score)

    audit.referenced_count = audit.statement_count - len(unreferenced)
    audit.unreferenced_count = len(unreferenced)
    audit.high_signal_unreferenced_count = sum(1 for u in unreferenced if u.signal_weight > 0)
    audit.gaps = AuditGaps(
        conflicts=sum(1 for u in unreferenced if u.statement.signals.tension),
        prerequisites=sum(
            1
            for u in unreferenced
            if u.statement.stance in ("prerequisite", "dependent") or u.statement.signals.sequence
        ),
        prescriptive=audit.by_stance["prescriptive"].unreferenced + audit.by_stance["cautionary"].unreferenced,
    )
    sentences = extraction.meta.sentences_processed
    audit.survival_rate = audit.statement_count / sentences if sentences else 0.0
    audit.candidates_processed = extraction.meta.candidates_processed

    return AuditResult(
        unreferenced=unreferenced,
        audit=audit,
        processing_time_ms=(time.perf_counter() - start) * 1000,
    )


def extract_referenced_ids(claims: Iterable[Mapping]) -> Set[str]:
    """Collect statement ids referenced anywhere in raw claim records."""
    ids: Set[str] = set()

    def add(values):
        for v in values or []:
            if isinstance(v, str):
                ids.add(v)

    for claim in claims or []:
        if not isinstance(claim, Mapping):
            continue
        add(claim.get("sourceStatementIds") or claim.get("source_statement_ids"))
        gates = claim.get("gates") or {}
        if isinstance(gates, Mapping):
            for gate in (gates.get("conditionals") or []) + (gates.get("prerequisites") or []):
                if isinstance(gate, Mapping):
                    add(gate.get("sourceStatementIds") or gate.get("source_statement_ids"))
        for edge in claim.get("conflicts") or []:
            if isinstance(edge, Mapping):
                add(edge.get("sourceStatementIds") or edge.get("source_statement_ids"))
    return ids


def format_unreferenced_for_prompt(unreferenced: List[UnreferencedStatement], limit: int = 5) -> str:
    if not unreferenced:
        return ""
    lines = [
        "## Additional Context (not in main analysis)",
        "",
        "These statements were extracted but not used in claims:",
        "",
    ]
    for u in unreferenced[:limit]:
        tags = u.statement.signals.tags()
        tag_str = f" [{','.join(tags)}]" if tags else ""
        lines.append(f'- ({u.statement.stance}{tag_str}): "{u.statement.text}"')
    return "\n".join(lines) + "\n"


def format_audit_summary(result: AuditResult) -> str:
    audit = result.audit
    lines = [
        "Statement audit:",
        f"  Total statements: {audit.statement_count}",
        f"  Referenced in claims: {audit.referenced_count}",
        f"  Unreferenced: {audit.unreferenced_count}",
        f"  High-signal unreferenced: {audit.high_signal_unreferenced_count}",
        "",
        "  By stance:",
    ]
    for stance, counts in audit.by_stance.items():
        percent = round(counts.unreferenced / counts.total * 100) if counts.total else 0
        lines.append(f"    {stance}: {counts.unreferenced}/{counts.total} ({percent}% unreferenced)")
    return "\n".join(lines) + "\n"
