"""
Evidence ledger: directed edge store keyed by (source, target).

Edges represent source -> target interaction outcomes. Stats: r (positive),
s (negative), last_active (ms). At most one edge per ordered pair; edges refer
to agents by id only. Evidence enters through record_interaction / add_evidence,
ages through decay_tick, and is culled once r + s falls to the floor.

The ledger is not thread-safe on its own: callers mutate it inside the
TickDispatcher critical section so each decay pass is seen whole or not at all.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Any

from trustflow.analysis_engine.opinion import (
    DEFAULT_BASE_RATE,
    Opinion,
    calculate_opinion,
    discount_opinion,
    ensure_opinion,
    fuse_all,
)
from trustflow.core.exceptions import ValidationError
from trustflow.trustflow_logging import get_logger

logger = get_logger(__name__)

# Edges idle for longer than this (ms) lose a little evidence every decay tick
DECAY_INACTIVITY_MS = 2000.0
DECAY_FACTOR = 0.99
# Simulated link failure: independent per edge per tick
LINK_FAILURE_PROBABILITY = 0.001
LINK_FAILURE_FACTOR = 0.2
# Edges with r + s at or below this are culled
CULL_FLOOR = 0.3


@dataclass
class Edge:
    """Directed evidence edge. r, s >= 0."""

    source: str
    target: str
    r: float = 0.0
    s: float = 0.0
    last_active: float = 0.0

    @property
    def key(self) -> tuple[str, str]:
        return (self.source, self.target)

    @property
    def total(self) -> float:
        return self.r + self.s

    def opinion(self, base_rate: float = DEFAULT_BASE_RATE) -> Opinion:
        return ensure_opinion(calculate_opinion(self.r, self.s, base_rate), self.r, self.s)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "target": self.target,
            "r": self.r,
            "s": self.s,
            "last_active": self.last_active,
        }


@dataclass
class DecayReport:
    """Outcome of one decay pass."""

    aged: int = 0
    failed: int = 0
    culled: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"aged": self.aged, "failed": self.failed, "culled": self.culled}


def _check_id(name: str, value: str) -> str:
    value = (value or "").strip() if isinstance(value, str) else ""
    if not value:
        raise ValidationError(f"{name} must be a non-empty id")
    return value


def _check_evidence(name: str, value: float) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(v):
        raise ValidationError(f"{name} must be finite, got {v!r}")
    if v < 0:
        raise ValidationError(f"{name} must be non-negative, got {v!r}")
    return v


class EvidenceLedger:
    """Arena of edges keyed by (source, target). Insertion order is preserved."""

    def __init__(self) -> None:
        self._edges: dict[tuple[str, str], Edge] = {}

    def __len__(self) -> int:
        return len(self._edges)

    def edges(self) -> list[Edge]:
        return list(self._edges.values())

    def get(self, source: str, target: str) -> Edge | None:
        return self._edges.get((source, target))

    def record_interaction(self, source: str, target: str, success: bool, now: float) -> Edge:
        """
        Add one unit of evidence for source -> target.

        Existing edge: r += 1 (success) or s += 1 (failure), last_active = now.
        Missing edge: created with (1, 0) or (0, 1).
        """
        source = _check_id("source", source)
        target = _check_id("target", target)
        if source == target:
            raise ValidationError(f"self-interaction is not allowed: {source}")
        edge = self._edges.get((source, target))
        if edge is None:
            edge = Edge(source=source, target=target, last_active=now)
            self._edges[edge.key] = edge
        if success:
            edge.r += 1.0
        else:
            edge.s += 1.0
        edge.last_active = now
        return edge

    def add_evidence(self, source: str, target: str, r: float, s: float, now: float) -> Edge:
        """Add bulk evidence. Negative or non-finite values are rejected; the ledger is unchanged."""
        source = _check_id("source", source)
        target = _check_id("target", target)
        if source == target:
            raise ValidationError(f"self-interaction is not allowed: {source}")
        r_val = _check_evidence("r", r)
        s_val = _check_evidence("s", s)
        edge = self._edges.get((source, target))
        if edge is None:
            edge = Edge(source=source, target=target, last_active=now)
            self._edges[edge.key] = edge
        edge.r += r_val
        edge.s += s_val
        edge.last_active = now
        return edge

    def decay_tick(self, now: float, rng: random.Random | None = None) -> DecayReport:
        """
        One complete aging pass over every edge, then cull.

        1. Edges idle for more than DECAY_INACTIVITY_MS: r, s *= DECAY_FACTOR.
        2. Independently, each edge with LINK_FAILURE_PROBABILITY: r, s *= LINK_FAILURE_FACTOR.
        3. Edges with r + s <= CULL_FLOOR are removed.
        Factors are in (0, 1), so evidence never grows and never goes negative.
        """
        rng = rng or random.Random()
        report = DecayReport()
        survivors: dict[tuple[str, str], Edge] = {}
        for key, edge in self._edges.items():
            if now - edge.last_active > DECAY_INACTIVITY_MS:
                edge.r *= DECAY_FACTOR
                edge.s *= DECAY_FACTOR
                report.aged += 1
            if rng.random() < LINK_FAILURE_PROBABILITY:
                edge.r *= LINK_FAILURE_FACTOR
                edge.s *= LINK_FAILURE_FACTOR
                report.failed += 1
            if edge.total <= CULL_FLOOR:
                report.culled += 1
                continue
            survivors[key] = edge
        self._edges = survivors
        if report.failed or report.culled:
            logger.debug("ledger_decay_tick", **report.to_dict(), edges=len(self._edges))
        return report

    def get_incoming(self, agent_id: str) -> list[Edge]:
        return [e for e in self._edges.values() if e.target == agent_id]

    def get_outgoing(self, agent_id: str) -> list[Edge]:
        return [e for e in self._edges.values() if e.source == agent_id]

    def opinion(self, source: str, target: str, base_rate: float = DEFAULT_BASE_RATE) -> Opinion | None:
        """Opinion of source about target, or None when they never interacted."""
        edge = self._edges.get((source, target))
        return edge.opinion(base_rate) if edge is not None else None

    def incoming_evidence(self, agent_id: str) -> tuple[float, float]:
        """Summed (r, s) of every edge pointing at agent_id."""
        r = 0.0
        s = 0.0
        for e in self._edges.values():
            if e.target == agent_id:
                r += e.r
                s += e.s
        return (r, s)

    def agent_opinion(self, agent_id: str, base_rate: float = DEFAULT_BASE_RATE) -> Opinion:
        """Network opinion about agent_id: consensus fusion of every incoming edge opinion."""
        return fuse_all([e.opinion(base_rate) for e in self.get_incoming(agent_id)], base_rate)

    def propagate_depth1(self, source: str, base_rate: float = DEFAULT_BASE_RATE) -> dict[str, Opinion]:
        """
        source's opinion about every agent it can reach in at most two hops.

        For each target j the direct opinion (if any) is fused with one
        discounted opinion per witness w: discount(source->w, w->j).
        """
        outgoing = {e.target: e.opinion(base_rate) for e in self.get_outgoing(source)}
        gathered: dict[str, list[Opinion]] = {}
        for target, op in outgoing.items():
            gathered.setdefault(target, []).append(op)
        for witness, op_sw in outgoing.items():
            for e in self.get_outgoing(witness):
                if e.target == source:
                    continue
                gathered.setdefault(e.target, []).append(discount_opinion(op_sw, e.opinion(base_rate)))
        return {target: fuse_all(ops, base_rate) for target, ops in gathered.items()}

    def remove_agent(self, agent_id: str) -> int:
        """Drop every edge touching agent_id. Returns the number removed."""
        before = len(self._edges)
        self._edges = {
            k: e for k, e in self._edges.items() if e.source != agent_id and e.target != agent_id
        }
        return before - len(self._edges)

    def clear(self) -> None:
        self._edges = {}

    def mean_uncertainty(self) -> float:
        """Mean u across edges; 1.0 (total uncertainty) with no edges."""
        if not self._edges:
            return 1.0
        return sum(calculate_opinion(e.r, e.s).u for e in self._edges.values()) / len(self._edges)
