from .audit import AuditGaps, AuditResult, ShadowAudit, StanceCount, UnreferencedStatement
from .cluster import ClusterExpansion, ClusteringMeta, ClusteringResult, ExpansionMember, ParagraphCluster
from .paragraph import Paragraph, ParagraphProjection, ParagraphStatement, ProjectionMeta
from .region import Lens, OppositionPair, Region, RegionizationMeta, RegionizationResult, RegionProfile
from .statement import (
    OPPOSING_STANCE_PAIRS,
    STANCE_PRIORITY,
    EnrichedStatement,
    ExtractionMeta,
    ExtractionResult,
    Signals,
    Stance,
    Statement,
    StatementGeometry,
    StatementLocation,
    is_opposing_stance,
)
from .substrate import (
    Component,
    GeometricSubstrate,
    GraphEdge,
    Layout2D,
    NeighborGraph,
    NodeStats,
    ShapeClassification,
    ShapeSignals,
    SimilarityStats,
    StrongGraph,
    SubstrateGraphs,
    SubstrateMeta,
    Topology,
)
from .traversal import (
    Claim,
    ConditionalRelation,
    ConditionalResolution,
    ConflictEdge,
    ConflictOption,
    ConflictResolution,
    ForcingPoint,
    NormalizedClaimGraph,
    Resolution,
    TraversalState,
)
from .triage import (
    CarrierDetectionResult,
    ConfirmedCarrier,
    PrunedSubstrate,
    PrunedSummary,
    ReconstructedOutput,
    ReconstructedParagraph,
    ReconstructedStatement,
    StatementFate,
    TriageMeta,
    TriageResult,
)
