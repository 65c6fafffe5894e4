"""
Interaction policy: who does a source agent interact with next.

Density-gated strategy:
- Sparse graph (density < 0.6): discovery. Prefer peers sharing the source's
  role (80%), else any other agent.
- Dense graph: epsilon-greedy exploitation over the source's own opinions.
  Score E = b + a*u of the source -> candidate edge (0.5 when never met);
  70% pick among the top 3, 30% pick any candidate.

Hidden reliability is never read here; only observed evidence drives scoring.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from trustflow.analysis_engine.ledger import EvidenceLedger
from trustflow.analysis_engine.opinion import DEFAULT_BASE_RATE, expected_probability
from trustflow.simulation.models import Agent

# density = edges / (agents * DENSITY_SCALE)
DENSITY_SCALE = 1.5
DISCOVERY_DENSITY_THRESHOLD = 0.6
PEER_PREFERENCE = 0.8
EXPLOIT_PROBABILITY = 0.7
EXPLOIT_WINDOW = 3
UNKNOWN_SCORE = DEFAULT_BASE_RATE


class SelectionMode(str, Enum):
    DISCOVERY_PEER = "discovery_peer"
    DISCOVERY_RANDOM = "discovery_random"
    EXPLOIT = "exploit"
    EXPLORE = "explore"


@dataclass(frozen=True)
class TargetChoice:
    agent: Agent
    mode: SelectionMode


@dataclass(frozen=True)
class PolicyConfig:
    density_scale: float = DENSITY_SCALE
    discovery_density_threshold: float = DISCOVERY_DENSITY_THRESHOLD
    peer_preference: float = PEER_PREFERENCE
    exploit_probability: float = EXPLOIT_PROBABILITY
    exploit_window: int = EXPLOIT_WINDOW


def network_density(edge_count: int, agent_count: int, scale: float = DENSITY_SCALE) -> float:
    if agent_count <= 0:
        return 0.0
    return edge_count / (agent_count * scale)


class InteractionPolicy:
    """Chooses interaction partners. Randomness comes only from the injected rng."""

    def __init__(self, rng: random.Random | None = None, config: PolicyConfig | None = None) -> None:
        self.rng = rng or random.Random()
        self.config = config or PolicyConfig()

    def score(self, source: Agent, candidate: Agent, ledger: EvidenceLedger) -> float:
        """Expected probability of the source's opinion about candidate."""
        op = ledger.opinion(source.id, candidate.id)
        if op is None:
            return UNKNOWN_SCORE
        return expected_probability(op)

    def select_target(
        self,
        source: Agent,
        agents: Sequence[Agent],
        ledger: EvidenceLedger,
    ) -> TargetChoice | None:
        """
        Pick a partner for source among agents.

        Returns None only when there is no other agent to interact with.
        """
        candidates = [a for a in agents if a.id != source.id]
        if not candidates:
            return None

        cfg = self.config
        density = network_density(len(ledger), len(agents), cfg.density_scale)

        if density < cfg.discovery_density_threshold:
            peers = [c for c in candidates if c.role == source.role]
            if peers and self.rng.random() < cfg.peer_preference:
                return TargetChoice(self.rng.choice(peers), SelectionMode.DISCOVERY_PEER)
            return TargetChoice(self.rng.choice(candidates), SelectionMode.DISCOVERY_RANDOM)

        # sorted() is stable: equal scores keep arena order
        ranked = sorted(candidates, key=lambda c: self.score(source, c, ledger), reverse=True)
        if self.rng.random() < cfg.exploit_probability:
            window = ranked[: max(1, cfg.exploit_window)]
            return TargetChoice(self.rng.choice(window), SelectionMode.EXPLOIT)
        return TargetChoice(self.rng.choice(candidates), SelectionMode.EXPLORE)
