from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

UncertaintyReason = Literal[
    "low_cohesion",
    "dumbbell_cluster",
    "oversized",
    "stance_diversity",
    "high_contested_ratio",
    "conflicting_signals",
]


class ExpansionMember(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    paragraph_id: str
    model_index: int
    text: str


class ClusterExpansion(BaseModel):
    """Extra member text handed downstream for clusters flagged as uncertain."""
    members: List[ExpansionMember] = Field(default_factory=list)


class ParagraphCluster(BaseModel):
    id: str
    paragraph_ids: List[str]
    statement_ids: List[str] = Field(default_factory=list)
    representative_paragraph_id: str
    cohesion: float = 1.0
    pairwise_cohesion: float = 1.0
    uncertain: bool = False
    uncertainty_reasons: List[UncertaintyReason] = Field(default_factory=list)
    expansion: Optional[ClusterExpansion] = None

    @property
    def size(self) -> int:
        return len(self.paragraph_ids)


class ClusteringMeta(BaseModel):
    total_clusters: int = 0
    singleton_count: int = 0
    uncertain_count: int = 0
    avg_cluster_size: float = 0.0
    max_cluster_size: int = 0
    total_paragraphs: int = 0
    compression_ratio: float = 1.0
    # wall-clock diagnostics; excluded from determinism comparisons
    embedding_time_ms: float = 0.0
    clustering_time_ms: float = 0.0
    total_time_ms: float = 0.0
    skipped: bool = False
    skip_reason: Optional[Literal["insufficient_paragraphs", "no_embeddings", "clustering_skipped_by_lens"]] = None


class ClusteringResult(BaseModel):
    clusters: List[ParagraphCluster] = Field(default_factory=list)
    meta: ClusteringMeta = Field(default_factory=ClusteringMeta)
