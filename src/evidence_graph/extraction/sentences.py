import re
from typing import List

_ABBREVIATION_RE = re.compile(r"\b(Mr|Mrs|Ms|Dr|Prof|Inc|Ltd|vs|etc|e\.g|i\.e)\.", re.IGNORECASE)
_NUMBER_DOT_RE = re.compile(r"\b(\d+)\.")
_SENTENCE_BOUNDARY_RE = re.compile(r"(?<=[.!?])\s+")
_PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")
_PLACEHOLDER = "|||"

_META_PATTERNS = [
    re.compile(r"^(sure|okay|yes|no|well|so|now)[,.]?\s", re.IGNORECASE),
    re.compile(r"^(let me|I'll|I will|I can|I would)\b", re.IGNORECASE),
    re.compile(
        r"^(here's|here is|this is|that's|that is)\s+(a|an|the|my)\s+(summary|overview|breakdown|list)",
        re.IGNORECASE,
    ),
    re.compile(r"\b(as I mentioned|as discussed|as noted)\b", re.IGNORECASE),
    re.compile(r"^(to summarize|in summary|in conclusion)\b", re.IGNORECASE),
]

_INLINE_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]*\)")
_LIST_MARKER_RE = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+")


def split_paragraphs(text: str) -> List[str]:
    """Split raw text on blank lines, dropping empty paragraphs."""
    if not text:
        return []
    normalized = text.replace("\r\n", "\n")
    return [p.strip() for p in _PARAGRAPH_BREAK_RE.split(normalized) if p.strip()]


def split_sentences(paragraph: str) -> List[str]:
    """Split a paragraph on sentence punctuation.

    Dots after common abbreviations (Mr., e.g., etc.) and after numbers
    ("1.", "3.5") are protected first so they do not end a sentence.
    """
    protected = _ABBREVIATION_RE.sub(lambda m: m.group(1) + _PLACEHOLDER, paragraph)
    protected = _NUMBER_DOT_RE.sub(lambda m: m.group(1) + _PLACEHOLDER, protected)
    sentences = []
    for part in _SENTENCE_BOUNDARY_RE.split(protected):
        restored = part.replace(_PLACEHOLDER, ".").strip()
        if restored:
            sentences.append(restored)
    return sentences


def is_substantive(sentence: str) -> bool:
    """True for sentences worth classifying.

    Rejects anything under five words, markdown headings, bold-only lines,
    table rows, empty bullets and conversational meta-commentary.
    """
    trimmed = sentence.strip()
    if len(trimmed.split()) < 5:
        return False

    if re.match(r"^#{1,6}\s", trimmed):
        return False
    if re.match(r"^\*{2}[^*]+\*{2}$", trimmed) or re.match(r"^__[^_]+__$", trimmed):
        return False
    if re.match(r"^\|.*\|$", trimmed) and len(trimmed.split("|")) > 2:
        return False
    if re.match(r"^[|\s\-:]+$", trimmed):
        return False
    if re.match(r"^[-*+]\s*$", trimmed) or re.match(r"^\d+\.\s*$", trimmed):
        return False

    return not any(p.search(trimmed) for p in _META_PATTERNS)


def strip_inline_markdown(text: str) -> str:
    """Remove emphasis markers, backticks, inline links and list markers."""
    out = _INLINE_LINK_RE.sub(r"\1", text)
    out = out.replace("**", "").replace("__", "").replace("`", "")
    out = _LIST_MARKER_RE.sub("", out)
    return out.strip()
