import logging
from typing import Dict, List, Literal

from pydantic import BaseModel, Field

from ..models.paragraph import Paragraph
from ..models.region import Region
from ..models.statement import EnrichedStatement, Statement, StatementGeometry
from ..models.substrate import GeometricSubstrate

logger = logging.getLogger(__name__)


class EnrichmentFailure(BaseModel):
    statement_id: str
    reason: Literal["no_paragraph", "no_node"]


class EnrichmentResult(BaseModel):
    statements: List[EnrichedStatement] = Field(default_factory=list)
    enriched_count: int = 0
    unenriched_count: int = 0
    failures: List[EnrichmentFailure] = Field(default_factory=list)


def enrich_statements(
    statements: List[Statement],
    paragraphs: List[Paragraph],
    substrate: GeometricSubstrate,
    regions: List[Region],
) -> EnrichmentResult:
    """Attach paragraph, component and region coordinates to statement copies.

    Originals are left untouched. Statements that cannot be placed keep
    ``geometry=None`` and are listed in ``failures``.
    """
    statement_to_paragraph: Dict[str, str] = {}
    for para in paragraphs:
        for sid in para.statement_ids:
            statement_to_paragraph[sid] = para.id

    nodes = {n.paragraph_id: n for n in substrate.nodes}
    to_component = {nid: c.id for c in substrate.topology.components for nid in c.node_ids}
    to_region = {nid: r.id for r in regions for nid in r.node_ids}

    result = EnrichmentResult()
    for stmt in statements:
        base = stmt.model_dump()
        paragraph_id = statement_to_paragraph.get(stmt.id)
        node = nodes.get(paragraph_id) if paragraph_id else None
        if paragraph_id is None or node is None:
            result.failures.append(
                EnrichmentFailure(statement_id=stmt.id, reason="no_paragraph" if paragraph_id is None else "no_node")
            )
            result.statements.append(EnrichedStatement(**base))
            continue

        geometry = StatementGeometry(
            paragraph_id=paragraph_id,
            component_id=to_component.get(paragraph_id),
            region_id=to_region.get(paragraph_id),
            knn_degree=node.knn_degree,
            mutual_degree=node.mutual_degree,
            strong_degree=node.strong_degree,
            isolation_score=node.isolation_score,
        )
        result.statements.append(EnrichedStatement(**base, geometry=geometry))
        result.enriched_count += 1

    result.unenriched_count = len(result.failures)
    if result.failures:
        logger.warning("%d statements could not be placed on the substrate", len(result.failures))
    return result


def statements_in_region(region: Region, paragraphs: List[Paragraph]) -> List[str]:
    nodes = set(region.node_ids)
    return [sid for para in paragraphs if para.id in nodes for sid in para.statement_ids]
