from .carriers import detect_carriers
from .engine import dominant_claim_stance, triage_statements
from .reconstruct import (
    format_substrate_for_prompt,
    passthrough_substrate,
    reconstruct_source,
    reconstruct_substrate,
)
from .skeleton import PLACEHOLDER, skeletonize
