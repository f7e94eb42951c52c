import logging
from typing import Any, Dict, List, Optional

from ..errors import TraversalError
from ..models.traversal import (
    Claim,
    ConditionalResolution,
    ConflictOption,
    ConflictResolution,
    ForcingPoint,
    NormalizedClaimGraph,
    TraversalState,
)
from .normalize import is_placeholder_question, normalize_claim_graph, pair_key

logger = logging.getLogger(__name__)

PLACEHOLDER_QUESTION = "Is this applicable to your situation?"


def _affects_summary(claim_ids: List[str], claims: Dict[str, Claim]) -> str:
    labels = [claims[cid].label if cid in claims else cid for cid in claim_ids]
    summary = ", ".join(labels[:3])
    if len(labels) > 3:
        summary += f" +{len(labels) - 3} more"
    return f"Affects: {summary}"


def extract_forcing_points(graph: NormalizedClaimGraph) -> List[ForcingPoint]:
    """Conditionals (tier 0) first, then one conflict per claim pair (tier 1)."""
    claims = graph.claim_map()
    points: List[ForcingPoint] = []

    for cond in graph.conditionals:
        affected = [cid for cid in cond.affected_claims if cid in claims]
        if not affected:
            continue
        sources = sorted({sid for cid in affected for sid in claims[cid].source_statement_ids})
        if is_placeholder_question(cond.question, cond.id):
            question, condition = PLACEHOLDER_QUESTION, _affects_summary(affected, claims)
        else:
            question = condition = cond.question
        points.append(
            ForcingPoint(
                id=cond.id,
                type="conditional",
                tier=0,
                question=question,
                condition=condition,
                affected_claims=affected,
                source_statement_ids=sources,
            )
        )

    for edge in graph.conflicts:
        a, b = claims.get(edge.claim_a), claims.get(edge.claim_b)
        if a is None or b is None:
            continue
        sources = sorted(set(a.source_statement_ids) | set(b.source_statement_ids))
        points.append(
            ForcingPoint(
                id=f"fp_conflict_{pair_key(a.id, b.id)}",
                type="conflict",
                tier=1,
                question=edge.question or f"Choose between: {a.label} vs {b.label}",
                condition=f"{a.label} vs {b.label}",
                options=[ConflictOption(claim_id=a.id, label=a.label), ConflictOption(claim_id=b.id, label=b.label)],
                blocked_by=list(edge.blocked_by_gates),
                source_statement_ids=sources,
            )
        )

    points.sort(key=lambda fp: fp.tier)
    return points


def init_traversal_state(claims: List[Claim]) -> TraversalState:
    return TraversalState(claim_statuses={c.id: "active" for c in claims})


def resolve_conditional(
    state: TraversalState, forcing_point: ForcingPoint, satisfied: bool, user_input: Optional[str] = None
) -> TraversalState:
    """Record a conditional answer; "not satisfied" prunes every affected claim.

    Returns a new state. Repeating the recorded answer returns the state
    unchanged; a different answer raises ``TraversalError``.
    """
    if forcing_point.type != "conditional":
        raise TraversalError(f"{forcing_point.id} is not a conditional")
    previous = state.resolutions.get(forcing_point.id)
    if previous is not None:
        if isinstance(previous, ConditionalResolution) and previous.satisfied == satisfied:
            return state
        raise TraversalError(f"{forcing_point.id} is already resolved with a different answer")

    nxt = state.model_copy(deep=True)
    nxt.resolutions[forcing_point.id] = ConditionalResolution(satisfied=satisfied, user_input=user_input)
    if not satisfied:
        for cid in forcing_point.affected_claims:
            nxt.claim_statuses[cid] = "pruned"
        nxt.path_steps.append(
            f'✗ "{forcing_point.condition}" — {len(forcing_point.affected_claims)} claim(s) pruned'
        )
    else:
        note = f" — {user_input}" if user_input else ""
        nxt.path_steps.append(f'✓ "{forcing_point.condition}"{note}')
    return nxt


def resolve_conflict(state: TraversalState, forcing_point: ForcingPoint, selected_claim_id: str) -> TraversalState:
    """Keep the selected option and prune the others."""
    if forcing_point.type != "conflict":
        raise TraversalError(f"{forcing_point.id} is not a conflict")
    selected = next((o for o in forcing_point.options if o.claim_id == selected_claim_id), None)
    if selected is None:
        raise TraversalError(f"{selected_claim_id} is not an option of {forcing_point.id}")
    previous = state.resolutions.get(forcing_point.id)
    if previous is not None:
        if isinstance(previous, ConflictResolution) and previous.selected_claim_id == selected_claim_id:
            return state
        raise TraversalError(f"{forcing_point.id} is already resolved with a different choice")

    nxt = state.model_copy(deep=True)
    nxt.resolutions[forcing_point.id] = ConflictResolution(
        selected_claim_id=selected.claim_id, selected_label=selected.label
    )
    rejected = [o for o in forcing_point.options if o.claim_id != selected_claim_id]
    for option in rejected:
        nxt.claim_statuses[option.claim_id] = "pruned"
    nxt.path_steps.append(f'→ Chose "{selected.label}" over "{", ".join(o.label for o in rejected)}"')
    return nxt


def live_forcing_points(forcing_points: List[ForcingPoint], state: TraversalState) -> List[ForcingPoint]:
    """Forcing points a user can be asked about right now.

    Every unresolved conditional is live. A conflict waits until no
    conditional is outstanding, every gate blocking it was answered as
    satisfied, and at least two of its options are still active.
    """
    unresolved = [fp for fp in forcing_points if fp.id not in state.resolutions]
    conditionals = [fp for fp in unresolved if fp.type == "conditional"]
    if conditionals:
        return conditionals

    live = []
    for fp in unresolved:
        blocked = False
        for gate_id in fp.blocked_by:
            r = state.resolutions.get(gate_id)
            if not (isinstance(r, ConditionalResolution) and r.satisfied):
                blocked = True
                break
        if blocked:
            continue
        active = [o for o in fp.options if state.claim_statuses.get(o.claim_id) == "active"]
        if len(active) >= 2:
            live.append(fp)
    return live


def is_traversal_complete(forcing_points: List[ForcingPoint], state: TraversalState) -> bool:
    return not live_forcing_points(forcing_points, state)


def path_summary(state: TraversalState) -> str:
    if not state.path_steps:
        return "No constraints applied."
    return "\n".join(state.path_steps)


class TraversalEngine:
    """One traversal session over a normalized claim graph.

    Resolutions are applied one at a time; each call replaces ``state`` with
    the result of a single transition.
    """

    def __init__(self, graph: NormalizedClaimGraph, state: Optional[TraversalState] = None):
        self.graph = graph
        self.forcing_points = extract_forcing_points(graph)
        self._by_id = {fp.id: fp for fp in self.forcing_points}
        self.state = state or init_traversal_state(graph.claims)
        logger.debug(
            "Traversal session: %d claims, %d forcing points", len(graph.claims), len(self.forcing_points)
        )

    @classmethod
    def from_raw(cls, raw_graph: Any, state: Optional[TraversalState] = None) -> "TraversalEngine":
        return cls(normalize_claim_graph(raw_graph), state)

    def forcing_point(self, forcing_point_id: str) -> ForcingPoint:
        fp = self._by_id.get(forcing_point_id)
        if fp is None:
            raise TraversalError(f"Unknown forcing point: {forcing_point_id}")
        return fp

    def live(self) -> List[ForcingPoint]:
        return live_forcing_points(self.forcing_points, self.state)

    def is_complete(self) -> bool:
        return is_traversal_complete(self.forcing_points, self.state)

    def resolve_conditional(self, forcing_point_id: str, satisfied: bool, note: Optional[str] = None) -> TraversalState:
        self.state = resolve_conditional(self.state, self.forcing_point(forcing_point_id), satisfied, note)
        return self.state

    def resolve_conflict(self, forcing_point_id: str, selected_claim_id: str) -> TraversalState:
        self.state = resolve_conflict(self.state, self.forcing_point(forcing_point_id), selected_claim_id)
        return self.state

    def active_claims(self) -> List[Claim]:
        return [c for c in self.graph.claims if self.state.claim_statuses.get(c.id) == "active"]

    def pruned_claims(self) -> List[Claim]:
        return [c for c in self.graph.claims if self.state.claim_statuses.get(c.id) == "pruned"]
