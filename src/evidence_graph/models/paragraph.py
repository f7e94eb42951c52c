from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field

from .statement import Signals, Stance


class ParagraphStatement(BaseModel):
    """Prompt-facing surface of a member statement (text is clipped)."""
    id: str
    text: str
    stance: Stance
    signals: List[str] = Field(default_factory=list)


class Paragraph(BaseModel):
    """Statements of one source paragraph, regrouped in sentence order."""
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    id: str
    model_index: int
    paragraph_index: int
    statement_ids: List[str]
    dominant_stance: Stance
    stance_hints: List[Stance] = Field(default_factory=list)
    contested: bool = False
    confidence: float = 0.0
    signals: Signals = Field(default_factory=Signals)
    statements: List[ParagraphStatement] = Field(default_factory=list)
    full_paragraph: str = ""


class ProjectionMeta(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    total_paragraphs: int = 0
    by_model: Dict[int, int] = Field(default_factory=dict)
    contested_count: int = 0
    # wall-clock, differs between otherwise identical runs
    processing_time_ms: float = 0.0


class ParagraphProjection(BaseModel):
    paragraphs: List[Paragraph] = Field(default_factory=list)
    meta: ProjectionMeta = Field(default_factory=ProjectionMeta)
