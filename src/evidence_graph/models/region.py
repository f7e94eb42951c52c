from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .statement import Stance
from .substrate import ShapePrior

RegionKind = Literal["cluster", "component", "patch"]

REGION_KIND_ORDER: Dict[str, int] = {"cluster": 0, "component": 1, "patch": 2}


class Lens(BaseModel):
    """How clustering should treat the substrate it is about to run on."""
    shape_prior: ShapePrior
    hard_merge_threshold: float
    confidence: float
    should_run_clustering: bool
    evidence: List[str] = Field(default_factory=list)


class Region(BaseModel):
    id: str
    kind: RegionKind
    node_ids: List[str]
    statement_ids: List[str] = Field(default_factory=list)
    # cluster, component or patch_<ids> the region came from
    source_id: Optional[str] = None
    model_indices: List[int] = Field(default_factory=list)


class RegionizationMeta(BaseModel):
    kind_counts: Dict[str, int] = Field(default_factory=lambda: {"cluster": 0, "component": 0, "patch": 0})
    covered_nodes: int = 0
    total_nodes: int = 0
    fallback_used: bool = False
    fallback_reason: Optional[
        Literal[
            "no_clustering",
            "insufficient_paragraphs",
            "no_embeddings",
            "clustering_skipped_by_lens",
            "no_multi_member_clusters",
        ]
    ] = None


class RegionizationResult(BaseModel):
    regions: List[Region] = Field(default_factory=list)
    meta: RegionizationMeta = Field(default_factory=RegionizationMeta)


class RegionProfile(BaseModel):
    """Measured aggregates only; a profile never labels what a region means."""
    region_id: str
    kind: RegionKind
    node_count: int
    model_diversity: int
    model_diversity_ratio: float
    internal_density: float
    avg_internal_similarity: float
    isolation: float
    stance_counts: Dict[str, int] = Field(default_factory=dict)
    dominant_stance: Optional[Stance] = None


class OppositionPair(BaseModel):
    region_a: str
    region_b: str
    stance_a: Stance
    stance_b: Stance
    similarity: float
