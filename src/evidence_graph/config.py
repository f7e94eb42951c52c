# evidence_graph/config.py
import os
from typing import Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import ConfigurationError


class ExtractionConfig(BaseModel):
    """Hard ceilings that guarantee extraction terminates on huge inputs."""
    sentence_limit: int = Field(default=2000, gt=0)
    candidate_limit: int = Field(default=2000, gt=0)


class EmbeddingConfig(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    backend: Literal["sentence_transformers", "http", "hashing"] = "sentence_transformers"
    model_id: str = Field(default="all-MiniLM-L6-v2", description="Embedding model name")
    dimensions: int = Field(default=256, gt=0, description="Prefix length kept from each vector")
    endpoint: Optional[str] = Field(default=None, description="URL for the http backend")
    timeout_sec: float = Field(default=30.0, gt=0)
    batch_size: int = Field(default=64, gt=0)


class SubstrateConfig(BaseModel):
    k: int = Field(default=5, gt=0, description="Neighbours kept per node")
    min_paragraphs: int = Field(default=3, ge=1)
    threshold_method: Literal["p80_top1", "p75_top1", "fixed"] = "p80_top1"
    fixed_threshold: float = 0.65
    clamp_min: float = 0.55
    clamp_max: float = 0.78
    compute_layout: bool = True


class ClusteringConfig(BaseModel):
    """Hierarchical clustering and cluster diagnostics."""
    model_config = ConfigDict(protected_namespaces=())

    similarity_threshold: float = Field(default=0.72, ge=0.0, le=1.0)
    max_clusters: int = 40
    low_cohesion_threshold: float = 0.70
    max_cluster_size: int = 8
    stance_diversity_threshold: int = 3
    contested_ratio_threshold: float = 0.30
    dumbbell_gap: float = 0.10
    mutual_discount: float = 0.9

    # expansion payload for uncertain clusters
    max_expansion_members: int = 6
    max_expansion_chars_total: int = 2100
    max_member_text_chars: int = 700

    embedding_dimensions: int = Field(default=256, gt=0)
    model_id: str = "all-MiniLM-L6-v2"
    min_paragraphs_for_clustering: int = 3


class TriageConfig(BaseModel):
    claim_similarity: float = 0.6
    source_similarity: float = 0.6
    opposing_margin: float = 0.08
    paraphrase_threshold: float = 0.85
    paragraph_prefilter: Optional[float] = Field(
        default=None, description="Only search carriers in paragraphs at least this close to the pruned claim"
    )


class PipelineConfig(BaseModel):
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    substrate: SubstrateConfig = Field(default_factory=SubstrateConfig)
    clustering: ClusteringConfig = Field(default_factory=ClusteringConfig)
    triage: TriageConfig = Field(default_factory=TriageConfig)

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Build a config from EVIDENCE_GRAPH_* environment variables."""
        preset = os.getenv("EVIDENCE_GRAPH_PRESET")
        clustering = get_preset_config(preset) if preset else ClusteringConfig()
        embedding = EmbeddingConfig(
            model_id=os.getenv("EVIDENCE_GRAPH_EMBED_MODEL", clustering.model_id),
            dimensions=_env_int("EVIDENCE_GRAPH_EMBED_DIMS", clustering.embedding_dimensions),
        )
        clustering = clustering.model_copy(
            update={"embedding_dimensions": embedding.dimensions, "model_id": embedding.model_id}
        )
        return cls(embedding=embedding, clustering=clustering)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


# Preset clustering profiles
CLUSTERING_PRESETS: Dict[str, dict] = {
    "high_precision": {
        "similarity_threshold": 0.88,
        "low_cohesion_threshold": 0.80,
        "max_cluster_size": 5,
        "embedding_dimensions": 384,
    },
    "balanced": {},
    "high_recall": {
        "similarity_threshold": 0.78,
        "low_cohesion_threshold": 0.65,
        "max_cluster_size": 12,
    },
    "fast": {
        "embedding_dimensions": 128,
        "max_expansion_members": 4,
    },
}


def get_preset_config(preset_name: str) -> ClusteringConfig:
    """Return the clustering config for a named preset."""
    if preset_name not in CLUSTERING_PRESETS:
        raise ConfigurationError(
            f"Unknown preset: {preset_name}. Available: {list(CLUSTERING_PRESETS.keys())}"
        )
    return ClusteringConfig(**CLUSTERING_PRESETS[preset_name])
