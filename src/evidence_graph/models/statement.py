from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Stance = Literal["prerequisite", "dependent", "cautionary", "prescriptive", "uncertain", "assertive"]

# Highest priority first. Structural order beats action beats fact.
STANCE_PRIORITY: List[str] = [
    "prerequisite",
    "dependent",
    "cautionary",
    "prescriptive",
    "uncertain",
    "assertive",
]

# The only stance pairs treated as opposing each other.
OPPOSING_STANCE_PAIRS = (("prescriptive", "cautionary"), ("assertive", "uncertain"))


def is_opposing_stance(a: Optional[str], b: Optional[str]) -> bool:
    return any((a == x and b == y) or (a == y and b == x) for x, y in OPPOSING_STANCE_PAIRS)


class Signals(BaseModel):
    """Relationship flags, independent of stance."""
    model_config = ConfigDict(frozen=True)

    sequence: bool = False
    tension: bool = False
    conditional: bool = False

    def tags(self) -> List[str]:
        out = []
        if self.sequence:
            out.append("SEQ")
        if self.tension:
            out.append("TENS")
        if self.conditional:
            out.append("COND")
        return out


class StatementLocation(BaseModel):
    model_config = ConfigDict(frozen=True)

    paragraph_index: int
    sentence_index: int


class StatementGeometry(BaseModel):
    model_config = ConfigDict(frozen=True)

    paragraph_id: str
    component_id: Optional[str] = None
    region_id: Optional[str] = None
    knn_degree: int = 0
    mutual_degree: int = 0
    strong_degree: int = 0
    isolation_score: float = 1.0


class Statement(BaseModel):
    """An atomic, stance-tagged unit of evidence extracted from one source."""
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    id: str
    model_index: int
    text: str
    stance: Stance
    confidence: float = Field(ge=0.0, le=1.0)
    signals: Signals = Field(default_factory=Signals)
    location: StatementLocation
    full_paragraph: str = ""


class EnrichedStatement(Statement):
    """A statement copy carrying geometric coordinates."""
    geometry: Optional[StatementGeometry] = None


class ExtractionMeta(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    total_statements: int = 0
    by_model: Dict[int, int] = Field(default_factory=dict)
    by_stance: Dict[str, int] = Field(default_factory=lambda: {s: 0 for s in STANCE_PRIORITY})
    by_signal: Dict[str, int] = Field(
        default_factory=lambda: {"sequence": 0, "tension": 0, "conditional": 0}
    )
    candidates_processed: int = 0
    candidates_excluded: int = 0
    sentences_processed: int = 0
    # wall-clock, differs between otherwise identical runs
    processing_time_ms: float = 0.0
    partial: bool = False
    partial_reason: Optional[Literal["sentence_limit", "candidate_limit"]] = None


class ExtractionResult(BaseModel):
    statements: List[Statement] = Field(default_factory=list)
    meta: ExtractionMeta = Field(default_factory=ExtractionMeta)
