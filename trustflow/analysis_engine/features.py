"""
Feature assembly: opinion + structural + behavioural signals -> fixed vector.

Converts an agent's incoming evidence and its position in the interaction graph
into a 9-dimension feature vector with every component clamped to [0, 1].
No classification logic; output feeds the prototype categorizer.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

import numpy as np

from trustflow.analysis_engine.graph import GraphSnapshot
from trustflow.analysis_engine.ledger import EvidenceLedger
from trustflow.analysis_engine.opinion import calculate_opinion
from trustflow.trustflow_logging import get_logger

logger = get_logger(__name__)

FEATURE_NAMES = (
    "belief",
    "disbelief",
    "uncertainty",
    "evidence_volume",
    "centrality",
    "clustering",
    "recency",
    "volatility",
    "hyperedge_load",
)
FEATURE_DIM = len(FEATURE_NAMES)

# Evidence mass at which evidence_volume saturates
EVIDENCE_VOLUME_SCALE = 100.0
# Activity counts as fresh for this long (ms), then fades linearly over RECENCY_FADE_MS
RECENCY_FRESH_MS = 2000.0
RECENCY_FADE_MS = 10000.0


def clamp01(value: float) -> float:
    """Clamp to [0, 1]; NaN becomes 0."""
    if value != value:  # NaN
        return 0.0
    return max(0.0, min(1.0, float(value)))


@dataclass(frozen=True)
class FeatureVector:
    """
    Feature vector for one agent at one snapshot.

    All components are clamped to [0, 1] at construction by build_feature_vector.
    """

    agent_id: str
    belief: float
    disbelief: float
    uncertainty: float
    evidence_volume: float
    """min(1, (r + s) / 100) over incoming evidence."""
    centrality: float
    """Degree centrality in the undirected interaction graph."""
    clustering: float
    """Local clustering coefficient."""
    recency: float
    """1 while recently active, fading linearly to 0."""
    volatility: float
    """2 * min(r, s) / (r + s): how mixed the observed outcomes are."""
    hyperedge_load: float
    """Fraction of interaction footprints (hyperedges) containing the agent."""

    def values(self) -> tuple[float, ...]:
        return tuple(getattr(self, name) for name in FEATURE_NAMES)

    def to_array(self) -> np.ndarray:
        return np.asarray(self.values(), dtype=np.float64)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"agent_id": self.agent_id}
        for name in FEATURE_NAMES:
            out[name] = getattr(self, name)
        return out


def recency_score(last_active: float | None, now: float) -> float:
    if last_active is None:
        return 0.0
    age = now - last_active
    if age <= RECENCY_FRESH_MS:
        return 1.0
    return clamp01(1.0 - (age - RECENCY_FRESH_MS) / RECENCY_FADE_MS)


def volatility_score(r: float, s: float) -> float:
    total = r + s
    if total <= 0:
        return 0.0
    return 2.0 * min(r, s) / total


def build_feature_vector(
    agent_id: str,
    r: float,
    s: float,
    *,
    centrality: float = 0.0,
    clustering: float = 0.0,
    recency: float = 0.0,
    hyperedge_load: float = 0.0,
) -> FeatureVector:
    """
    Assemble a feature vector from evidence and precomputed graph signals.

    Evidence must already be non-negative; non-finite signals clamp to 0.
    """
    r = r if math.isfinite(r) and r > 0 else 0.0
    s = s if math.isfinite(s) and s > 0 else 0.0
    op = calculate_opinion(r, s)
    return FeatureVector(
        agent_id=agent_id,
        belief=clamp01(op.b),
        disbelief=clamp01(op.d),
        uncertainty=clamp01(op.u),
        evidence_volume=clamp01((r + s) / EVIDENCE_VOLUME_SCALE),
        centrality=clamp01(centrality),
        clustering=clamp01(clustering),
        recency=clamp01(recency),
        volatility=clamp01(volatility_score(r, s)),
        hyperedge_load=clamp01(hyperedge_load),
    )


def extract_features(
    agent_id: str,
    ledger: EvidenceLedger,
    graph: GraphSnapshot,
    now: float,
) -> FeatureVector:
    """Compute the feature vector for one agent from the ledger and a graph snapshot."""
    r, s = ledger.incoming_evidence(agent_id)
    return build_feature_vector(
        agent_id,
        r,
        s,
        centrality=graph.degree_centrality(agent_id),
        clustering=graph.clustering_coefficient(agent_id),
        recency=recency_score(graph.last_active(agent_id), now),
        hyperedge_load=graph.hyperedge_load(agent_id),
    )
