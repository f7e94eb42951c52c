from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Verdict = Literal["PROTECTED", "SKELETONIZE", "REMOVE"]


class StatementFate(BaseModel):
    statement_id: str
    action: Verdict
    reason: str
    trigger_claim_id: Optional[str] = None
    carriers: List[str] = Field(default_factory=list)
    is_sole_carrier: bool = False


class ConfirmedCarrier(BaseModel):
    statement_id: str
    claim_similarity: float
    source_similarity: float


class CarrierDetectionResult(BaseModel):
    source_statement_id: str
    carriers: List[ConfirmedCarrier] = Field(default_factory=list)
    is_sole_carrier: bool = True
    candidates_examined: int = 0


class TriageMeta(BaseModel):
    total_statements: int = 0
    protected_count: int = 0
    skeletonized_count: int = 0
    removed_count: int = 0
    pruned_claim_count: int = 0
    processing_time_ms: float = 0.0


class TriageResult(BaseModel):
    fates: Dict[str, StatementFate] = Field(default_factory=dict)
    meta: TriageMeta = Field(default_factory=TriageMeta)

    def ids_with(self, action: Verdict) -> List[str]:
        return sorted(sid for sid, fate in self.fates.items() if fate.action == action)


class ReconstructedStatement(BaseModel):
    statement_id: str
    original: str
    action: Verdict
    result: Optional[str] = None


class ReconstructedParagraph(BaseModel):
    paragraph_index: int
    original: str
    text: str
    statements: List[ReconstructedStatement] = Field(default_factory=list)
    intact_ratio: float = 1.0


class ReconstructedOutput(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_index: int
    original_text: str
    text: str
    paragraphs: List[ReconstructedParagraph] = Field(default_factory=list)
    is_passthrough: bool = False


class PrunedSummary(BaseModel):
    protected_count: int = 0
    skeletonized_count: int = 0
    removed_count: int = 0
    pruned_claim_ids: List[str] = Field(default_factory=list)
    path_steps: List[str] = Field(default_factory=list)


class PrunedSubstrate(BaseModel):
    outputs: List[ReconstructedOutput] = Field(default_factory=list)
    summary: PrunedSummary = Field(default_factory=PrunedSummary)
    triage: Optional[TriageResult] = None
    is_passthrough: bool = False

    def text_for(self, model_index: int) -> Optional[str]:
        for out in self.outputs:
            if out.model_index == model_index:
                return out.text
        return None
