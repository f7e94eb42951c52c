from .engine import (
    TraversalEngine,
    extract_forcing_points,
    init_traversal_state,
    is_traversal_complete,
    live_forcing_points,
    path_summary,
    resolve_conditional,
    resolve_conflict,
)
from .normalize import normalize_claim_graph
from .serialization import deserialize_traversal_state, serialize_traversal_state
