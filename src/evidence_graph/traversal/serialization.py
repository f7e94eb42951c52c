import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import ValidationError

from ..models.traversal import ConditionalResolution, ConflictResolution, Resolution, TraversalState

logger = logging.getLogger(__name__)


def serialize_traversal_state(state: TraversalState) -> Dict[str, Any]:
    """Checkpoint form: insertion-ordered ``[key, value]`` pairs for both maps."""
    return {
        "claim_statuses": [[cid, status] for cid, status in state.claim_statuses.items()],
        "resolutions": [[fp_id, r.model_dump()] for fp_id, r in state.resolutions.items()],
        "path_steps": list(state.path_steps),
    }


def _pairs(raw: Any) -> List[Tuple[str, Any]]:
    if isinstance(raw, Mapping):
        return [(str(k), v) for k, v in raw.items()]
    if isinstance(raw, (list, tuple)):
        return [(str(item[0]), item[1]) for item in raw if isinstance(item, (list, tuple)) and len(item) == 2]
    return []


def _resolution(raw: Any) -> Optional[Resolution]:
    if isinstance(raw, (ConditionalResolution, ConflictResolution)):
        return raw
    if not isinstance(raw, Mapping):
        return None
    try:
        if raw.get("type") == "conflict" or "selected_claim_id" in raw or "selectedClaimId" in raw:
            return ConflictResolution(
                selected_claim_id=str(raw.get("selected_claim_id", raw.get("selectedClaimId", ""))),
                selected_label=str(raw.get("selected_label", raw.get("selectedLabel", "")) or ""),
            )
        return ConditionalResolution(
            satisfied=bool(raw.get("satisfied")),
            user_input=raw.get("user_input", raw.get("userInput")),
        )
    except ValidationError as e:
        logger.warning("Skipping malformed resolution: %s", e)
        return None


def deserialize_traversal_state(raw: Any) -> Optional[TraversalState]:
    """Inverse of ``serialize_traversal_state``.

    Also accepts camelCase keys and plain mappings in place of pair lists.
    Any status other than ``"pruned"`` reads back as ``"active"``. Returns
    ``None`` when ``raw`` is not a mapping at all.
    """
    if not isinstance(raw, Mapping):
        return None

    statuses_raw = raw.get("claim_statuses", raw.get("claimStatuses"))
    claim_statuses = {cid: ("pruned" if status == "pruned" else "active") for cid, status in _pairs(statuses_raw)}

    resolutions = {}
    for fp_id, value in _pairs(raw.get("resolutions")):
        resolution = _resolution(value)
        if resolution is not None:
            resolutions[fp_id] = resolution

    steps_raw = raw.get("path_steps", raw.get("pathSteps"))
    path_steps = [s for s in steps_raw if isinstance(s, str)] if isinstance(steps_raw, list) else []

    return TraversalState(claim_statuses=claim_statuses, resolutions=resolutions, path_steps=path_steps)
