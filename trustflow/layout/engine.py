"""
Force-directed layout over agent positions.

One step() per frame:
1. Pairwise repulsion (inverse square) plus an elastic standoff push when two
   agents are closer than the standoff distance.
2. Edge springs whose rest length and stiffness follow the edge's opinion:
   trust shortens and stiffens, distrust lengthens and loosens.
3. Pulses advance; an arriving pulse applies one impulse to its target, sets
   the target's impact flash and is removed in the same step.
4. Centre pull, damping, integration (skipped for pinned agents), clamp to
   the padded canvas, flash decay.

The engine keeps no state between frames besides its config and rng; callers
hold the world lock for the whole step.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from trustflow.analysis_engine.ledger import EvidenceLedger
from trustflow.analysis_engine.opinion import Opinion, calculate_opinion
from trustflow.simulation.models import Agent, Outcome, Pulse


@dataclass(frozen=True)
class LayoutConfig:
    width: float = 800.0
    height: float = 500.0
    padding: float = 30.0
    repulsion: float = 5000.0
    standoff_distance: float = 180.0
    standoff_k: float = 0.1
    damping: float = 0.85
    center_pull: float = 0.005
    neutral_rest_length: float = 180.0
    neutral_k: float = 0.04
    pulse_duration_ms: float = 1000.0
    arrival_impulse: float = 8.0
    flash_decay: float = 0.05


@dataclass
class FrameResult:
    """What one layout step did besides moving agents."""

    pulses: list[Pulse] = field(default_factory=list)
    """Pulses still in flight after this frame."""
    arrivals: list[Pulse] = field(default_factory=list)
    dropped: int = 0
    """Pulses discarded because an endpoint no longer exists."""


def spring_parameters(op: Opinion, config: LayoutConfig = LayoutConfig()) -> tuple[float, float]:
    """(rest_length, stiffness) for an edge with opinion op."""
    if op.b > op.d and op.b > 0.5:
        return 150.0 - op.b * 70.0, 0.04 + op.b * 0.04
    if op.d > op.b and op.d > 0.5:
        return 200.0 + op.d * 150.0, 0.04 + op.d * 0.02
    return config.neutral_rest_length, config.neutral_k


class SpatialLayoutEngine:
    def __init__(self, config: LayoutConfig | None = None, rng: random.Random | None = None) -> None:
        self.config = config or LayoutConfig()
        self.rng = rng or random.Random()

    def step(
        self,
        agents: Sequence[Agent],
        ledger: EvidenceLedger,
        pulses: Iterable[Pulse],
        now: float,
        pinned: Iterable[str] = (),
    ) -> FrameResult:
        """Advance one frame. Mutates agents in place; returns surviving pulses."""
        cfg = self.config
        by_id = {a.id: a for a in agents}
        forces: dict[str, list[float]] = {a.id: [0.0, 0.0] for a in agents}

        for i in range(len(agents)):
            for j in range(i + 1, len(agents)):
                a1, a2 = agents[i], agents[j]
                dx = a1.x - a2.x
                dy = a1.y - a2.y
                dist_sq = dx * dx + dy * dy
                if dist_sq < 0.1:
                    dx = self.rng.random() - 0.5
                    dy = self.rng.random() - 0.5
                    dist_sq = 1.0
                dist = math.sqrt(dist_sq)
                f = cfg.repulsion / dist_sq
                fx = dx / dist * f
                fy = dy / dist * f
                if dist < cfg.standoff_distance:
                    overlap = cfg.standoff_distance - dist
                    fx += dx / dist * overlap * cfg.standoff_k
                    fy += dy / dist * overlap * cfg.standoff_k
                forces[a1.id][0] += fx
                forces[a1.id][1] += fy
                forces[a2.id][0] -= fx
                forces[a2.id][1] -= fy

        for e in ledger.edges():
            src = by_id.get(e.source)
            tgt = by_id.get(e.target)
            if src is None or tgt is None:
                continue
            dx = tgt.x - src.x
            dy = tgt.y - src.y
            dist = math.sqrt(dx * dx + dy * dy)
            if dist == 0:
                continue
            rest, k = spring_parameters(calculate_opinion(e.r, e.s), cfg)
            force = (dist - rest) * k
            fx = dx / dist * force
            fy = dy / dist * force
            forces[src.id][0] += fx
            forces[src.id][1] += fy
            forces[tgt.id][0] -= fx
            forces[tgt.id][1] -= fy

        result = FrameResult()
        impacts: dict[str, Outcome] = {}
        for p in pulses:
            src = by_id.get(p.source)
            tgt = by_id.get(p.target)
            if src is None or tgt is None:
                result.dropped += 1
                continue
            dx = tgt.x - src.x
            dy = tgt.y - src.y
            progress = (now - p.start_time) / cfg.pulse_duration_ms
            if progress >= 1.0:
                angle = math.atan2(dy, dx)
                forces[tgt.id][0] += math.cos(angle) * cfg.arrival_impulse
                forces[tgt.id][1] += math.sin(angle) * cfg.arrival_impulse
                impacts[tgt.id] = p.outcome
                result.arrivals.append(p)
                continue
            progress = max(0.0, progress)
            p.progress = progress
            p.x = src.x + dx * progress
            p.y = src.y + dy * progress
            p.rotation = math.degrees(math.atan2(dy, dx))
            result.pulses.append(p)

        held = set(pinned)
        lo_x, hi_x = cfg.padding, cfg.width - cfg.padding
        lo_y, hi_y = cfg.padding, cfg.height - cfg.padding
        for a in agents:
            f = forces[a.id]
            f[0] += (cfg.width / 2.0 - a.x) * cfg.center_pull
            f[1] += (cfg.height / 2.0 - a.y) * cfg.center_pull
            a.vx = (a.vx + f[0]) * cfg.damping
            a.vy = (a.vy + f[1]) * cfg.damping
            x, y = a.x, a.y
            if a.id not in held:
                x += a.vx
                y += a.vy
            a.x = max(lo_x, min(hi_x, x))
            a.y = max(lo_y, min(hi_y, y))

            outcome = impacts.get(a.id)
            if outcome is not None:
                a.impact = 1.0
                a.impact_type = outcome
            elif a.impact > 0:
                a.impact = max(0.0, a.impact - cfg.flash_decay)

        return result
