import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ..models.traversal import Claim, ConditionalRelation, ConflictEdge, NormalizedClaimGraph

logger = logging.getLogger(__name__)


def _str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _first(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [s for s in (_str(v) for v in value) if s]


def _unique(values: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(values))


def pair_key(a: str, b: str) -> str:
    return "::".join(sorted((a, b)))


def is_placeholder_question(question: str, conditional_id: str) -> bool:
    return (
        not question
        or question == conditional_id
        or question == f"Condition: {conditional_id}"
        or question.startswith("placeholder_")
    )


def _normalize_claims(raw_claims: Any) -> List[Claim]:
    claims: Dict[str, Claim] = {}
    for raw in raw_claims if isinstance(raw_claims, list) else []:
        if not isinstance(raw, Mapping):
            continue
        cid = _str(raw.get("id"))
        if not cid:
            continue
        if cid in claims:
            logger.warning("Duplicate claim id %s; keeping the first", cid)
            continue
        text = _first(raw, "text", "description")
        supporters = [s for s in raw.get("supporters") or [] if isinstance(s, int) and not isinstance(s, bool)]
        claims[cid] = Claim(
            id=cid,
            label=_str(raw.get("label")) or cid,
            text=text if isinstance(text, str) else "",
            supporters=supporters,
            source_statement_ids=_str_list(_first(raw, "sourceStatementIds", "source_statement_ids")),
        )
    return list(claims.values())


def _raw_conflicts(graph: Mapping[str, Any]) -> List[Tuple[str, str, Optional[str], List[str], str]]:
    """(a, b, question, gates, origin) from every conflict shape the graph may use."""
    found = []
    for edge in graph.get("edges") or []:
        if not isinstance(edge, Mapping) or edge.get("type") != "conflict":
            continue
        question = edge.get("question")
        found.append(
            (
                _str(edge.get("from")),
                _str(edge.get("to")),
                question if isinstance(question, str) else None,
                _str_list(_first(edge, "blockedByGates", "blocked_by_gates")),
                "edge",
            )
        )
    for tension in graph.get("tensions") or []:
        if not isinstance(tension, Mapping):
            continue
        question = tension.get("question")
        found.append(
            (
                _str(_first(tension, "claimAId", "claim_a_id")),
                _str(_first(tension, "claimBId", "claim_b_id")),
                question if isinstance(question, str) else None,
                _str_list(_first(tension, "blockedByGates", "blocked_by_gates")),
                "tension",
            )
        )
    for claim in graph.get("claims") or []:
        if not isinstance(claim, Mapping):
            continue
        for conflict in claim.get("conflicts") or []:
            if not isinstance(conflict, Mapping):
                continue
            question = conflict.get("question")
            found.append(
                (
                    _str(claim.get("id")),
                    _str(_first(conflict, "claimId", "claim_id")),
                    question if isinstance(question, str) else None,
                    [],
                    "claim",
                )
            )
    return found


def _raw_conditionals(graph: Mapping[str, Any]) -> List[Tuple[str, str, List[str]]]:
    found = []
    for cond in graph.get("conditionals") or []:
        if not isinstance(cond, Mapping):
            continue
        question = _str(_first(cond, "question", "condition", "prompt"))
        found.append((_str(cond.get("id")), question, _str_list(_first(cond, "affectedClaims", "affected_claims"))))
    for tier in graph.get("tiers") or []:
        if not isinstance(tier, Mapping):
            continue
        for gate in tier.get("gates") or []:
            if not isinstance(gate, Mapping) or _str(gate.get("type")) != "conditional":
                continue
            question = _str(_first(gate, "question", "condition"))
            found.append((_str(gate.get("id")), question, _str_list(_first(gate, "blockedClaims", "blocked_claims"))))
    return found


def normalize_claim_graph(graph: Any) -> NormalizedClaimGraph:
    """Fold every claim-graph dialect into one canonical shape.

    The graph comes from outside and is never trusted: entries with missing
    or unknown ids are dropped (and listed in ``dropped``) instead of failing
    the session. Conditionals sharing an id merge their affected claims;
    conflicts are deduplicated by unordered claim pair.
    """
    if not isinstance(graph, Mapping):
        return NormalizedClaimGraph()

    claims = _normalize_claims(graph.get("claims"))
    known = {c.id for c in claims}
    dropped: List[str] = []

    conditionals: Dict[str, ConditionalRelation] = {}
    for cid, question, affected in _raw_conditionals(graph):
        if not cid:
            continue
        valid = [a for a in _unique(affected) if a in known]
        if len(valid) != len(affected):
            unknown = sorted(set(affected) - known)
            if unknown:
                dropped.append(f"conditional {cid}: unknown claims {', '.join(unknown)}")
        if not valid:
            continue
        prev = conditionals.get(cid)
        if prev is None:
            conditionals[cid] = ConditionalRelation(id=cid, question=question or cid, affected_claims=valid)
            continue
        if is_placeholder_question(prev.question, cid) and not is_placeholder_question(question, cid):
            prev.question = question
        prev.affected_claims = _unique(prev.affected_claims + valid)

    conflicts: Dict[str, ConflictEdge] = {}
    for a, b, question, gates, origin in _raw_conflicts(graph):
        if not a or not b:
            dropped.append(f"{origin} conflict with a missing claim id")
            continue
        if a == b:
            dropped.append(f"{origin} conflict {a} with itself")
            continue
        if a not in known or b not in known:
            dropped.append(f"{origin} conflict {a}/{b}: unknown claim")
            continue
        key = pair_key(a, b)
        valid_gates = [g for g in _unique(gates) if g in conditionals]
        if len(valid_gates) != len(set(gates)):
            dropped.append(f"conflict {key}: unknown gates {', '.join(sorted(set(gates) - set(conditionals)))}")
        existing = conflicts.get(key)
        if existing is not None:
            existing.blocked_by_gates = sorted(set(existing.blocked_by_gates) | set(valid_gates))
            if not existing.question and question and question.strip():
                existing.question = question.strip()
            continue
        conflicts[key] = ConflictEdge(
            claim_a=a,
            claim_b=b,
            question=question.strip() if question and question.strip() else None,
            blocked_by_gates=sorted(valid_gates),
        )

    for reason in dropped:
        logger.warning("Claim graph: dropped %s", reason)

    return NormalizedClaimGraph(
        claims=claims,
        conflicts=list(conflicts.values()),
        conditionals=list(conditionals.values()),
        dropped=dropped,
    )
