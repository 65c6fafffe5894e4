"""
Batch summaries per category: mean vector, distinguishing features, drift.

Groups a batch of assignments by category. For each non-empty category: members,
mean feature vector, top-N feature names ranked by |mean - global batch mean|,
drift (L2 distance from the baseline mean of the same category, 0 without one),
and membership change vs the baseline. Empty categories are omitted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

import numpy as np

from trustflow.analysis_engine.categorizer import Assignment
from trustflow.analysis_engine.features import FEATURE_NAMES
from trustflow.analysis_engine.graph import GraphSnapshot
from trustflow.trustflow_logging import get_logger

logger = get_logger(__name__)

DEFAULT_TOP_N = 3
# Relabel thresholds
MEAN_DRIFT_THRESHOLD = 0.5
MEMBERSHIP_CHANGE_THRESHOLD = 0.25


@dataclass
class CategorySummary:
    """Statistics for one non-empty category in one batch."""

    category_id: int
    members: list[str]
    mean: np.ndarray
    top_features: list[str]
    drift: float = 0.0
    """L2 distance between this mean and the baseline mean (0 when no baseline group)."""
    membership_change: float = 0.0
    """|prev ^ curr| / |prev | curr| against the baseline members (0 when no baseline group)."""
    avg_degree: float = 0.0
    avg_clustering: float = 0.0
    covariance: np.ndarray | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "category_id": self.category_id,
            "members": list(self.members),
            "mean": dict(zip(FEATURE_NAMES, (float(v) for v in self.mean))),
            "top_features": list(self.top_features),
            "drift": self.drift,
            "membership_change": self.membership_change,
            "avg_degree": self.avg_degree,
            "avg_clustering": self.avg_clustering,
        }
        if self.covariance is not None:
            out["covariance"] = self.covariance.tolist()
        return out


@dataclass
class BatchSummary:
    """All category summaries of one batch plus the global mean."""

    snapshot_time: float
    summaries: list[CategorySummary]
    global_mean: np.ndarray
    assignments: list[Assignment] = field(default_factory=list)

    def by_category(self, category_id: int) -> CategorySummary | None:
        for s in self.summaries:
            if s.category_id == category_id:
                return s
        return None

    def category_of(self, agent_id: str) -> int | None:
        for a in self.assignments:
            if a.agent_id == agent_id:
                return a.category_id
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "snapshot_time": self.snapshot_time,
            "global_mean": dict(zip(FEATURE_NAMES, (float(v) for v in self.global_mean))),
            "summaries": [s.to_dict() for s in self.summaries],
        }


@dataclass(frozen=True)
class LabelUpdatePolicy:
    """When a category's label should be regenerated."""

    mean_drift_threshold: float = MEAN_DRIFT_THRESHOLD
    membership_change_threshold: float = MEMBERSHIP_CHANGE_THRESHOLD

    def should_relabel(self, summary: CategorySummary) -> bool:
        return (
            summary.drift >= self.mean_drift_threshold
            or summary.membership_change >= self.membership_change_threshold
        )


def l2_distance(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.linalg.norm(np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)))


def membership_change_ratio(previous: Sequence[str], current: Sequence[str]) -> float:
    """Symmetric difference over union; 0 when both are empty."""
    p = set(previous)
    c = set(current)
    union = p | c
    if not union:
        return 0.0
    return len(p ^ c) / len(union)


def summarize_batch(
    assignments: Sequence[Assignment],
    baseline: BatchSummary | None = None,
    *,
    top_n: int = DEFAULT_TOP_N,
    graph: GraphSnapshot | None = None,
    snapshot_time: float = 0.0,
    include_covariance: bool = False,
) -> BatchSummary:
    """
    Summarize a batch of assignments by category.

    Args:
        assignments: One Assignment per agent (features included).
        baseline: Previous batch; drift and membership change are measured against it.
        top_n: Number of distinguishing feature names kept per category.
        graph: Optional snapshot for avg degree / clustering per category.
        snapshot_time: Timestamp recorded on the result.
        include_covariance: Also compute the per-category sample covariance.

    Returns:
        BatchSummary with categories in ascending id order; empty ones omitted.
    """
    if not assignments:
        return BatchSummary(
            snapshot_time=snapshot_time,
            summaries=[],
            global_mean=np.zeros(len(FEATURE_NAMES)),
            assignments=[],
        )

    matrix = np.asarray([a.features.to_array() for a in assignments], dtype=np.float64)
    global_mean = matrix.mean(axis=0)

    grouped: dict[int, list[int]] = {}
    for idx, a in enumerate(assignments):
        grouped.setdefault(a.category_id, []).append(idx)

    summaries: list[CategorySummary] = []
    for category_id in sorted(grouped):
        rows = matrix[grouped[category_id]]
        members = [assignments[i].agent_id for i in grouped[category_id]]
        mean = rows.mean(axis=0)

        deviation = np.abs(mean - global_mean)
        # stable sort keeps feature order on ties
        order = np.argsort(-deviation, kind="stable")
        top_features = [FEATURE_NAMES[i] for i in order[: max(0, top_n)]]

        drift = 0.0
        membership_change = 0.0
        prev = baseline.by_category(category_id) if baseline is not None else None
        if prev is not None:
            drift = l2_distance(mean, prev.mean)
            membership_change = membership_change_ratio(prev.members, members)

        avg_degree = 0.0
        avg_clustering = 0.0
        if graph is not None and members:
            avg_degree = sum(graph.degree(m) for m in members) / len(members)
            avg_clustering = sum(graph.clustering_coefficient(m) for m in members) / len(members)

        covariance = None
        if include_covariance:
            covariance = (
                np.cov(rows, rowvar=False)
                if rows.shape[0] > 1
                else np.zeros((rows.shape[1], rows.shape[1]))
            )

        summaries.append(
            CategorySummary(
                category_id=category_id,
                members=members,
                mean=mean,
                top_features=top_features,
                drift=drift,
                membership_change=membership_change,
                avg_degree=avg_degree,
                avg_clustering=avg_clustering,
                covariance=covariance,
            )
        )

    return BatchSummary(
        snapshot_time=snapshot_time,
        summaries=summaries,
        global_mean=global_mean,
        assignments=list(assignments),
    )
