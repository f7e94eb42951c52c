from typing import Dict, List

from pydantic import BaseModel, Field

from .statement import STANCE_PRIORITY, Statement


class UnreferencedStatement(BaseModel):
    statement: Statement
    query_relevance: float
    signal_weight: int
    adjusted_score: float


class StanceCount(BaseModel):
    total: int = 0
    unreferenced: int = 0


class AuditGaps(BaseModel):
    conflicts: int = 0
    prerequisites: int = 0
    prescriptive: int = 0


class ShadowAudit(BaseModel):
    statement_count: int = 0
    referenced_count: int = 0
    unreferenced_count: int = 0
    high_signal_unreferenced_count: int = 0
    by_stance: Dict[str, StanceCount] = Field(
        default_factory=lambda: {s: StanceCount() for s in STANCE_PRIORITY}
    )
    gaps: AuditGaps = Field(default_factory=AuditGaps)
    survival_rate: float = 0.0
    candidates_processed: int = 0


class AuditResult(BaseModel):
    unreferenced: List[UnreferencedStatement] = Field(default_factory=list)
    audit: ShadowAudit = Field(default_factory=ShadowAudit)
    processing_time_ms: float = 0.0
