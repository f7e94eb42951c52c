from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .statement import Stance

DegenerateReason = Literal["insufficient_paragraphs", "embedding_failure", "all_embeddings_identical"]
ShapePrior = Literal["fragmented", "convergent_core", "bimodal_fork", "parallel_components"]
ThresholdMethod = Literal["p80_top1", "p75_top1", "fixed"]


class GraphEdge(BaseModel):
    source: str
    target: str
    similarity: float
    rank: int

    def key(self) -> str:
        """Canonical undirected key, smaller id first."""
        if self.source < self.target:
            return f"{self.source}|{self.target}"
        return f"{self.target}|{self.source}"

    def reversed(self) -> "GraphEdge":
        return GraphEdge(source=self.target, target=self.source, similarity=self.similarity, rank=self.rank)


class NeighborGraph(BaseModel):
    """kNN union or mutual kNN graph. Adjacency lists both directions."""
    k: int
    edges: List[GraphEdge] = Field(default_factory=list)
    adjacency: Dict[str, List[GraphEdge]] = Field(default_factory=dict)


class StrongGraph(BaseModel):
    soft_threshold: float = 0.0
    threshold_method: ThresholdMethod = "p80_top1"
    edges: List[GraphEdge] = Field(default_factory=list)
    adjacency: Dict[str, List[GraphEdge]] = Field(default_factory=dict)


class SubstrateGraphs(BaseModel):
    knn: NeighborGraph
    mutual: NeighborGraph
    strong: StrongGraph


class Component(BaseModel):
    id: str
    node_ids: List[str]
    size: int
    internal_density: float = 0.0


class Topology(BaseModel):
    components: List[Component] = Field(default_factory=list)
    component_count: int = 0
    largest_component_ratio: float = 0.0
    isolation_ratio: float = 1.0
    global_strong_density: float = 0.0


class ShapeSignals(BaseModel):
    fragmentation_score: float = 0.0
    bimodality_score: float = 0.0
    parallel_score: float = 0.0
    convergent_score: float = 0.0


class ShapeClassification(BaseModel):
    """Coarse descriptive prior over the strong-graph topology."""
    prior: ShapePrior
    confidence: float
    signals: ShapeSignals
    evidence: List[str] = Field(default_factory=list)


class NodeStats(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    paragraph_id: str
    model_index: int
    dominant_stance: Stance
    contested: bool = False
    statement_ids: List[str] = Field(default_factory=list)

    top1_sim: float = 0.0
    avg_top_k_sim: float = 0.0

    knn_degree: int = 0
    mutual_degree: int = 0
    strong_degree: int = 0

    isolation_score: float = 1.0
    mutual_neighborhood_patch: List[str] = Field(default_factory=list)


class SimilarityStats(BaseModel):
    max: float = 0.0
    p95: float = 0.0
    p80: float = 0.0
    p50: float = 0.0
    mean: float = 0.0


class Layout2D(BaseModel):
    method: Literal["pca"] = "pca"
    coordinates: Dict[str, Tuple[float, float]] = Field(default_factory=dict)
    # wall-clock, differs between otherwise identical runs
    build_time_ms: float = 0.0


class SubstrateMeta(BaseModel):
    embedding_success: bool = True
    embedding_backend: str = "none"
    node_count: int = 0
    knn_edge_count: int = 0
    mutual_edge_count: int = 0
    strong_edge_count: int = 0
    similarity_stats: SimilarityStats = Field(default_factory=SimilarityStats)
    quantization: str = "1e-6"
    tie_breaker: str = "lexicographic"
    # wall-clock, differs between otherwise identical runs
    build_time_ms: float = 0.0


class GeometricSubstrate(BaseModel):
    nodes: List[NodeStats] = Field(default_factory=list)
    graphs: SubstrateGraphs
    topology: Topology
    shape: ShapeClassification
    layout2d: Optional[Layout2D] = None
    meta: SubstrateMeta = Field(default_factory=SubstrateMeta)
    degenerate: bool = False
    degenerate_reason: Optional[DegenerateReason] = None

    def node(self, paragraph_id: str) -> Optional[NodeStats]:
        for n in self.nodes:
            if n.paragraph_id == paragraph_id:
                return n
        return None
