"""
Tests for the interaction policy: discovery below the density threshold,
epsilon-greedy exploitation above it, and the degenerate single-agent arena.
"""

from __future__ import annotations

import random

import pytest

from trustflow.analysis_engine.ledger import EvidenceLedger
from trustflow.simulation.models import Agent, Role
from trustflow.simulation.policy import (
    UNKNOWN_SCORE,
    InteractionPolicy,
    SelectionMode,
    network_density,
)


class _ScriptedRandom(random.Random):
    """random() replays a script; choice() records the sequence and takes its first item."""

    def __init__(self, draws):
        super().__init__(0)
        self._draws = list(draws)
        self.choices: list[list[str]] = []

    def random(self) -> float:
        return self._draws.pop(0)

    def choice(self, seq):
        self.choices.append([a.id for a in seq])
        return seq[0]


def _agent(agent_id: str, role: Role = Role.TRADER) -> Agent:
    return Agent(id=agent_id, label=agent_id, role=role, reliability=0.9, x=0.0, y=0.0)


def _dense_ledger() -> EvidenceLedger:
    """Four agents, four edges: density 4 / (4 * 1.5) = 0.667."""
    ledger = EvidenceLedger()
    ledger.add_evidence("src", "B", 10, 0, 0)
    ledger.add_evidence("src", "C", 0, 10, 0)
    ledger.add_evidence("C", "D", 1, 0, 0)
    ledger.add_evidence("B", "C", 1, 0, 0)
    return ledger


def test_network_density():
    assert network_density(0, 0) == 0.0
    assert network_density(3, 2) == pytest.approx(1.0)


def test_discovery_prefers_same_role_peer():
    src = _agent("src", Role.TRADER)
    agents = [src, _agent("B", Role.OBSERVER), _agent("C", Role.TRADER)]
    rng = _ScriptedRandom([0.1])
    choice = InteractionPolicy(rng).select_target(src, agents, EvidenceLedger())
    assert choice.mode == SelectionMode.DISCOVERY_PEER
    assert choice.agent.id == "C"
    assert rng.choices == [["C"]]


def test_discovery_falls_back_to_any_candidate():
    src = _agent("src", Role.TRADER)
    agents = [src, _agent("B", Role.OBSERVER), _agent("C", Role.TRADER)]
    rng = _ScriptedRandom([0.9])
    choice = InteractionPolicy(rng).select_target(src, agents, EvidenceLedger())
    assert choice.mode == SelectionMode.DISCOVERY_RANDOM
    assert rng.choices == [["B", "C"]]


def test_discovery_without_peers_skips_preference_draw():
    src = _agent("src", Role.SYBIL)
    agents = [src, _agent("B"), _agent("C")]
    rng = _ScriptedRandom([])
    choice = InteractionPolicy(rng).select_target(src, agents, EvidenceLedger())
    assert choice.mode == SelectionMode.DISCOVERY_RANDOM
    assert choice.agent.id == "B"


def test_exploit_ranks_by_expected_probability():
    """B (trusted) > D (never met, 0.5) > C (distrusted)."""
    src = _agent("src")
    agents = [src, _agent("B"), _agent("C"), _agent("D")]
    rng = _ScriptedRandom([0.1])
    choice = InteractionPolicy(rng).select_target(src, agents, _dense_ledger())
    assert choice.mode == SelectionMode.EXPLOIT
    assert rng.choices == [["B", "D", "C"]]
    assert choice.agent.id == "B"


def test_explore_picks_among_all_candidates():
    src = _agent("src")
    agents = [src, _agent("B"), _agent("C"), _agent("D")]
    rng = _ScriptedRandom([0.95])
    choice = InteractionPolicy(rng).select_target(src, agents, _dense_ledger())
    assert choice.mode == SelectionMode.EXPLORE
    assert rng.choices == [["B", "C", "D"]]


def test_score_uses_only_observed_evidence():
    src, stranger = _agent("src"), _agent("D")
    stranger.reliability = 0.0
    policy = InteractionPolicy(random.Random(1))
    assert policy.score(src, stranger, _dense_ledger()) == UNKNOWN_SCORE
    assert policy.score(src, _agent("B"), _dense_ledger()) == pytest.approx(10 / 12 + 0.5 * 2 / 12)


def test_single_agent_has_no_target():
    src = _agent("src")
    assert InteractionPolicy(random.Random(1)).select_target(src, [src], EvidenceLedger()) is None


def test_source_is_never_its_own_target():
    rng = random.Random(99)
    agents = [_agent(f"N{i}", role) for i, role in enumerate([Role.TRADER, Role.TRADER, Role.SYBIL])]
    policy = InteractionPolicy(rng)
    ledger = EvidenceLedger()
    for _ in range(200):
        src = rng.choice(agents)
        choice = policy.select_target(src, agents, ledger)
        assert choice.agent.id != src.id
        ledger.record_interaction(src.id, choice.agent.id, True, 0)
