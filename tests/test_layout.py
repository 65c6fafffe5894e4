"""
Tests for the force-directed layout: pulse lifecycle, impact flash, drag pinning,
canvas clamping and opinion-driven spring parameters.
"""

from __future__ import annotations

import random

import pytest

from trustflow.analysis_engine.ledger import EvidenceLedger
from trustflow.analysis_engine.opinion import Opinion
from trustflow.layout.engine import LayoutConfig, SpatialLayoutEngine, spring_parameters
from trustflow.simulation.models import Agent, Outcome, Pulse, Role
from trustflow.simulation.world import World


@pytest.fixture
def pair_world(clock, topology_factory):
    """Two fully reliable agents so every pulse is a success."""
    return World(rng=random.Random(5), clock=clock, topology=topology_factory(1.0))


def _agent(agent_id: str, x: float, y: float, **kw) -> Agent:
    return Agent(id=agent_id, label=agent_id, role=Role.TRADER, reliability=1.0, x=x, y=y, **kw)


def test_pulse_travels_then_arrives_exactly_once(pair_world, clock):
    tx = pair_world.transaction_tick()
    clock.advance(500)
    frame = pair_world.layout_tick()
    [pulse] = frame.pulses
    assert frame.arrivals == []
    assert pulse.progress == pytest.approx(0.5)

    clock.advance(500)
    frame = pair_world.layout_tick()
    assert frame.pulses == []
    assert [p.id for p in frame.arrivals] == [tx.pulse_id]
    target = pair_world.get_agent(tx.target)
    assert target.impact == pytest.approx(1.0)
    assert target.impact_type is Outcome.SUCCESS
    assert pair_world.pulses() == []

    frame = pair_world.layout_tick()
    assert frame.arrivals == []
    assert pair_world.get_agent(tx.target).impact == pytest.approx(0.95)


def test_flash_decays_to_zero(pair_world, clock):
    pair_world.transaction_tick()
    clock.advance(1000)
    for _ in range(30):
        pair_world.layout_tick()
    assert all(a.impact == 0.0 for a in pair_world.agents())


def test_dragged_agent_holds_for_one_frame(pair_world):
    moved = pair_world.drag_agent("A", 10.0, 0.0)
    assert moved.x == pytest.approx(310.0)
    pair_world.layout_tick()
    assert pair_world.get_agent("A").x == pytest.approx(310.0)
    pair_world.layout_tick()
    assert pair_world.get_agent("A").x != pytest.approx(310.0)


def test_positions_clamped_to_padded_canvas():
    cfg = LayoutConfig()
    agent = _agent("A", 400.0, 480.0, vy=100.0)
    SpatialLayoutEngine(cfg, random.Random(1)).step([agent], EvidenceLedger(), [], now=0.0)
    assert agent.y == pytest.approx(cfg.height - cfg.padding)
    assert agent.x == pytest.approx(400.0)


def test_coincident_agents_are_separated():
    a, b = _agent("A", 400.0, 250.0), _agent("B", 400.0, 250.0)
    SpatialLayoutEngine(rng=random.Random(3)).step([a, b], EvidenceLedger(), [], now=0.0)
    assert (a.x, a.y) != (b.x, b.y)


def test_pulse_with_missing_endpoint_is_dropped():
    a = _agent("A", 300.0, 250.0)
    ghost = Pulse(id=1, source="A", target="GONE", outcome=Outcome.FAILURE, start_time=0.0)
    frame = SpatialLayoutEngine(rng=random.Random(1)).step([a], EvidenceLedger(), [ghost], now=10.0)
    assert frame.dropped == 1
    assert frame.pulses == []
    assert frame.arrivals == []


@pytest.mark.parametrize(
    "op,expected",
    [
        (Opinion(0.9, 0.0, 0.1), (150.0 - 63.0, 0.04 + 0.036)),
        (Opinion(0.0, 0.8, 0.2), (200.0 + 120.0, 0.04 + 0.016)),
        (Opinion(0.0, 0.0, 1.0), (180.0, 0.04)),
        (Opinion(0.45, 0.45, 0.1), (180.0, 0.04)),
    ],
)
def test_spring_parameters_follow_opinion(op, expected):
    rest, k = spring_parameters(op)
    assert rest == pytest.approx(expected[0])
    assert k == pytest.approx(expected[1])


def test_trusted_edge_pulls_agents_together():
    ledger = EvidenceLedger()
    ledger.add_evidence("A", "B", 50, 0, 0)
    a, b = _agent("A", 200.0, 250.0), _agent("B", 600.0, 250.0)
    engine = SpatialLayoutEngine(rng=random.Random(1))
    for _ in range(200):
        engine.step([a, b], ledger, [], now=0.0)
    assert abs(b.x - a.x) < 400.0
