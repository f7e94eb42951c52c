from .enrichment import EnrichmentResult, enrich_statements, statements_in_region
from .knn import build_two_graphs
from .layout import compute_layout
from .lens import derive_lens
from .shape import classify_shape
from .similarity import cosine, quantize
from .substrate import build_substrate
from .threshold import compute_soft_threshold
from .topology import compute_topology
