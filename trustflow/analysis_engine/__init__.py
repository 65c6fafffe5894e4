"""
Analysis engine package: evidence calculus, ledger, and categorization.

Turns raw interaction outcomes into opinions, aggregates them per agent,
extracts feature vectors and assigns agents to labelled categories.
"""

from trustflow.analysis_engine.opinion import (
    Opinion,
    calculate_opinion,
    check_opinion,
    combine_evidence,
    discount_opinion,
    ensure_opinion,
    expected_probability,
    fuse_all,
    fuse_opinions,
)
from trustflow.analysis_engine.ledger import DecayReport, Edge, EvidenceLedger
from trustflow.analysis_engine.graph import GraphSnapshot
from trustflow.analysis_engine.features import (
    FEATURE_NAMES,
    FeatureVector,
    build_feature_vector,
    extract_features,
)
from trustflow.analysis_engine.categorizer import (
    DEFAULT_CATEGORIES,
    Assignment,
    Category,
    CategoryLabel,
    Classification,
    PrototypeCategorizer,
)
from trustflow.analysis_engine.summary import (
    BatchSummary,
    CategorySummary,
    LabelUpdatePolicy,
    summarize_batch,
)
from trustflow.analysis_engine.labels import (
    AgentHandle,
    BatchResult,
    CategorizationPipeline,
    CategoryLabelStore,
    heuristic_label,
)

__all__ = [
    "Assignment",
    "AgentHandle",
    "BatchResult",
    "BatchSummary",
    "Category",
    "CategoryLabel",
    "CategoryLabelStore",
    "CategorizationPipeline",
    "CategorySummary",
    "Classification",
    "DEFAULT_CATEGORIES",
    "DecayReport",
    "Edge",
    "EvidenceLedger",
    "FEATURE_NAMES",
    "FeatureVector",
    "GraphSnapshot",
    "LabelUpdatePolicy",
    "Opinion",
    "PrototypeCategorizer",
    "build_feature_vector",
    "calculate_opinion",
    "check_opinion",
    "combine_evidence",
    "discount_opinion",
    "ensure_opinion",
    "expected_probability",
    "extract_features",
    "fuse_all",
    "fuse_opinions",
    "heuristic_label",
    "summarize_batch",
]
