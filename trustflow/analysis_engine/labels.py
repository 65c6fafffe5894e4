"""
Labels: deterministic per-agent handles and the rolling category label store.

- heuristic_label(r, s): threshold rules over summed incoming evidence; always available.
- CategoryLabelStore: one LabelRecord per category, refreshed when a batch drifts.
- CategorizationPipeline: features -> classify -> summarize vs previous batch -> refresh labels.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from trustflow.analysis_engine.categorizer import (
    Assignment,
    CategoryLabel,
    PrototypeCategorizer,
)
from trustflow.analysis_engine.features import extract_features
from trustflow.analysis_engine.graph import GraphSnapshot
from trustflow.analysis_engine.ledger import EvidenceLedger
from trustflow.analysis_engine.summary import (
    BatchSummary,
    CategorySummary,
    LabelUpdatePolicy,
    summarize_batch,
)
from trustflow.trustflow_logging import get_logger

logger = get_logger(__name__)

# Heuristic thresholds on total evidence (r + s) and positive ratio r / (r + s)
MIN_EVIDENCE = 2.0
STEWARD_MIN_TOTAL = 50.0
STEWARD_MIN_RATIO = 0.95
RELIABLE_MIN_TOTAL = 20.0
RELIABLE_MIN_RATIO = 0.8
HIGH_RISK_MIN_TOTAL = 10.0
HIGH_RISK_MAX_RATIO = 0.2
CONTROVERSIAL_MIN_TOTAL = 30.0
CONTROVERSIAL_RATIO_RANGE = (0.4, 0.6)


@dataclass(frozen=True)
class AgentHandle:
    """Short human-facing label for one agent."""

    handle: str
    gloss: str
    tag: str

    def to_dict(self) -> dict[str, str]:
        return {"handle": self.handle, "gloss": self.gloss, "tag": self.tag}


UNKNOWN_ENTITY = AgentHandle("Unknown Entity", "Insufficient evidence to form a reputation.", "slate")
ECOSYSTEM_STEWARD = AgentHandle(
    "Ecosystem Steward",
    "High volume of positive evidence with negligible defects. Trust anchor.",
    "emerald",
)
RELIABLE_OPERATOR = AgentHandle(
    "Reliable Operator",
    "Consistent positive performance with minor or justified exceptions.",
    "teal",
)
HIGH_RISK_ACTOR = AgentHandle(
    "High-Risk Actor",
    "History of negative outcomes. Interaction discouraged.",
    "red",
)
CONTROVERSIAL_FIGURE = AgentHandle(
    "Controversial Figure",
    "Significant evidence exists, but it is deeply polarized.",
    "amber",
)
UNVERIFIED_PARTICIPANT = AgentHandle(
    "Unverified Participant",
    "Some evidence exists, but confidence is low due to high uncertainty.",
    "blue",
)


def heuristic_label(r: float, s: float) -> AgentHandle:
    """Rule-based handle from summed evidence. First matching rule wins."""
    total = r + s
    ratio = r / total if total > 0 else 0.0

    if total < MIN_EVIDENCE:
        return UNKNOWN_ENTITY
    if total > STEWARD_MIN_TOTAL and ratio > STEWARD_MIN_RATIO:
        return ECOSYSTEM_STEWARD
    if total > RELIABLE_MIN_TOTAL and ratio > RELIABLE_MIN_RATIO:
        return RELIABLE_OPERATOR
    if total > HIGH_RISK_MIN_TOTAL and ratio < HIGH_RISK_MAX_RATIO:
        return HIGH_RISK_ACTOR
    lo, hi = CONTROVERSIAL_RATIO_RANGE
    if total > CONTROVERSIAL_MIN_TOTAL and lo < ratio < hi:
        return CONTROVERSIAL_FIGURE
    return UNVERIFIED_PARTICIPANT


@dataclass(frozen=True)
class LabelRecord:
    label: CategoryLabel
    snapshot_time: float

    def to_dict(self) -> dict[str, Any]:
        return {"label": self.label.to_dict(), "snapshot_time": self.snapshot_time}


def describe_summary(base: CategoryLabel, summary: CategorySummary) -> CategoryLabel:
    """Category label stamped with the batch's distinguishing features."""
    if not summary.top_features:
        return base
    return CategoryLabel(
        handle=base.handle,
        description=base.description,
        guidance=f"{base.guidance or ''} Distinguished by: {', '.join(summary.top_features)}.".strip(),
        tag=base.tag,
    )


class CategoryLabelStore:
    """In-memory label records keyed by category id."""

    def __init__(
        self,
        categorizer: PrototypeCategorizer,
        policy: LabelUpdatePolicy | None = None,
    ) -> None:
        self._categorizer = categorizer
        self._policy = policy or LabelUpdatePolicy()
        self._records: dict[int, LabelRecord] = {}

    def get(self, category_id: int) -> LabelRecord | None:
        return self._records.get(category_id)

    def label_for(self, category_id: int) -> CategoryLabel:
        record = self._records.get(category_id)
        if record is not None:
            return record.label
        return self._categorizer.category(category_id).label

    def refresh(self, batch: BatchSummary, snapshot_time: float) -> list[int]:
        """
        Stamp labels for categories that are new or drifted past the policy.

        Returns the relabelled category ids in ascending order.
        """
        relabelled: list[int] = []
        for summary in batch.summaries:
            cid = summary.category_id
            if cid in self._records and not self._policy.should_relabel(summary):
                continue
            label = describe_summary(self._categorizer.category(cid).label, summary)
            self._records[cid] = LabelRecord(label=label, snapshot_time=snapshot_time)
            relabelled.append(cid)
        if relabelled:
            logger.info("category_labels_refreshed", categories=relabelled, snapshot_time=snapshot_time)
        return relabelled

    def clear(self) -> None:
        self._records.clear()


@dataclass
class BatchResult:
    """Output of one categorization batch."""

    summary: BatchSummary
    assignments: dict[str, Assignment]
    relabelled: list[int] = field(default_factory=list)

    def category_of(self, agent_id: str) -> int | None:
        a = self.assignments.get(agent_id)
        return a.category_id if a is not None else None


class CategorizationPipeline:
    """Runs feature extraction, classification, summarization and labelling as one batch."""

    def __init__(
        self,
        categorizer: PrototypeCategorizer | None = None,
        policy: LabelUpdatePolicy | None = None,
        top_n: int = 3,
    ) -> None:
        self.categorizer = categorizer or PrototypeCategorizer()
        self.labels = CategoryLabelStore(self.categorizer, policy)
        self.top_n = top_n
        self._previous: BatchSummary | None = None
        self._last: BatchResult | None = None

    @property
    def last_result(self) -> BatchResult | None:
        return self._last

    def run_batch(self, agent_ids: Iterable[str], ledger: EvidenceLedger, now: float) -> BatchResult:
        """Categorize every agent against the ledger as it is now; baseline rolls to this batch."""
        ids = list(agent_ids)
        graph = GraphSnapshot(ids, ledger.edges())
        assignments = [self.categorizer.assign(extract_features(a, ledger, graph, now)) for a in ids]
        summary = summarize_batch(
            assignments,
            self._previous,
            top_n=self.top_n,
            graph=graph,
            snapshot_time=now,
        )
        relabelled = self.labels.refresh(summary, now)
        self._previous = summary
        result = BatchResult(
            summary=summary,
            assignments={a.agent_id: a for a in assignments},
            relabelled=relabelled,
        )
        self._last = result
        logger.debug(
            "categorization_batch",
            agents=len(ids),
            categories=[s.category_id for s in summary.summaries],
            relabelled=relabelled,
        )
        return result

    def reset(self) -> None:
        self._previous = None
        self._last = None
        self.labels.clear()
