"""Evidence graph: extraction, embedding geometry, traversal and pruning of
multi-source answers."""

from .clusterer import Clusterer
from .config import PipelineConfig, get_preset_config
from .embedder import Embedder, HashingBackend
from .logging_config import configure_logging
from .main import PipelineResult, build_pruned_substrate, prune_pipeline_result, run_pipeline
from .traversal import TraversalEngine, normalize_claim_graph

__all__ = [
    "Clusterer",
    "Embedder",
    "HashingBackend",
    "PipelineConfig",
    "PipelineResult",
    "TraversalEngine",
    "build_pruned_substrate",
    "configure_logging",
    "get_preset_config",
    "normalize_claim_graph",
    "prune_pipeline_result",
    "run_pipeline",
]
