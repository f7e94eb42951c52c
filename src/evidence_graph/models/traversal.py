from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

ClaimStatus = Literal["active", "pruned"]


class Claim(BaseModel):
    """A position identified outside this package, grounded in statement ids."""
    id: str
    label: str = ""
    text: str = ""
    supporters: List[int] = Field(default_factory=list)
    source_statement_ids: List[str] = Field(default_factory=list)


class ConflictEdge(BaseModel):
    claim_a: str
    claim_b: str
    question: Optional[str] = None
    blocked_by_gates: List[str] = Field(default_factory=list)


class ConditionalRelation(BaseModel):
    id: str
    question: str
    condition: str = ""
    affected_claims: List[str] = Field(default_factory=list)


class NormalizedClaimGraph(BaseModel):
    claims: List[Claim] = Field(default_factory=list)
    conflicts: List[ConflictEdge] = Field(default_factory=list)
    conditionals: List[ConditionalRelation] = Field(default_factory=list)
    dropped: List[str] = Field(default_factory=list)

    def claim_map(self) -> Dict[str, Claim]:
        return {c.id: c for c in self.claims}


class ConflictOption(BaseModel):
    claim_id: str
    label: str


class ForcingPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    type: Literal["conditional", "conflict"]
    tier: int
    question: str
    condition: str
    affected_claims: List[str] = Field(default_factory=list)
    options: List[ConflictOption] = Field(default_factory=list)
    blocked_by: List[str] = Field(default_factory=list)
    source_statement_ids: List[str] = Field(default_factory=list)


class ConditionalResolution(BaseModel):
    type: Literal["conditional"] = "conditional"
    satisfied: bool
    user_input: Optional[str] = None


class ConflictResolution(BaseModel):
    type: Literal["conflict"] = "conflict"
    selected_claim_id: str
    selected_label: str = ""


Resolution = Union[ConditionalResolution, ConflictResolution]


class TraversalState(BaseModel):
    """Claim statuses, recorded resolutions and the audit trail of one session.

    Dicts keep insertion order; serialization turns them into ordered pairs.
    """
    claim_statuses: Dict[str, ClaimStatus] = Field(default_factory=dict)
    resolutions: Dict[str, Resolution] = Field(default_factory=dict)
    path_steps: List[str] = Field(default_factory=list)

    def pruned_claim_ids(self) -> List[str]:
        return [cid for cid, status in self.claim_statuses.items() if status == "pruned"]

    def active_claim_ids(self) -> List[str]:
        return [cid for cid, status in self.claim_statuses.items() if status == "active"]
