import numpy as np

from evidence_graph.models import Paragraph, Signals, Statement, StatementLocation


def unit(*values):
    vec = np.asarray(values, dtype=float)
    return vec / np.linalg.norm(vec)


def make_statement(sid, model_index=1, text="A plain statement about things.", stance="assertive",
                   confidence=0.65, paragraph_index=0, sentence_index=0, **signals):
    return Statement(
        id=sid,
        model_index=model_index,
        text=text,
        stance=stance,
        confidence=confidence,
        signals=Signals(**signals),
        location=StatementLocation(paragraph_index=paragraph_index, sentence_index=sentence_index),
        full_paragraph=text,
    )


def make_paragraph(pid, model_index=1, statement_ids=None, stance="assertive", contested=False,
                   paragraph_index=0, text="", **signals):
    return Paragraph(
        id=pid,
        model_index=model_index,
        paragraph_index=paragraph_index,
        statement_ids=statement_ids or [],
        dominant_stance=stance,
        contested=contested,
        signals=Signals(**signals),
        full_paragraph=text,
    )


class KeywordBackend:
    """Embedding backend returning fixed vectors chosen by keyword."""

    name = "keyword"

    def __init__(self, table, default):
        self.table = table
        self.default = default
        self.calls = []

    async def encode(self, texts):
        self.calls.append(list(texts))
        out = []
        for text in texts:
            vec = self.default
            for keyword, value in self.table:
                if keyword in text:
                    vec = value
                    break
            out.append(list(vec))
        return out
