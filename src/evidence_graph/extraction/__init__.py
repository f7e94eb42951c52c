from .audit import compute_audit, extract_referenced_ids, format_audit_summary, format_unreferenced_for_prompt
from .extractor import (
    extract_statements,
    high_confidence_statements,
    statements_by_model,
    statements_by_stance,
    statements_with_signal,
)
from .paragraphs import project_paragraphs
from .patterns import DEFAULT_TABLES, PatternTables, signal_weight
from .sentences import is_substantive, split_paragraphs, split_sentences, strip_inline_markdown
