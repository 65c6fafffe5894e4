"""
Tests for the shared world (transaction tick, commands, reset, snapshot) and
the run/pause scheduler on an unstarted APScheduler.
"""

from __future__ import annotations

import math
import random
import threading
import time
from datetime import timedelta

import pytest

from trustflow.core.exceptions import AgentNotFoundError, ValidationError
from trustflow.scheduler.engine import (
    PAUSED_MESSAGE,
    STARTED_MESSAGE,
    TRANSACTION_JOB_ID,
    SchedulerState,
    clamp_speed,
    interval_for_speed,
)
from trustflow.simulation.clock import ManualClock
from trustflow.simulation.models import Agent, Outcome, Role
from trustflow.simulation.world import LOG_CAPACITY, World

SEED = 1234


def _total_evidence(world: World) -> float:
    return sum(e.r + e.s for e in world.ledger.edges())


# ----------------------------------------------------------------------
# World
# ----------------------------------------------------------------------


def test_transaction_tick_records_evidence_and_pulse(world, clock):
    result = world.transaction_tick()
    assert result is not None
    assert result.source != result.target
    assert world.transaction_count == 1
    assert _total_evidence(world) == pytest.approx(1.0)
    [pulse] = world.pulses()
    source = world.get_agent(result.source)
    assert (pulse.source, pulse.target) == (result.source, result.target)
    assert pulse.start_time == clock()
    assert (pulse.x, pulse.y) == (source.x, source.y)


def test_every_third_transaction_is_logged(world):
    logged = [world.transaction_tick().logged for _ in range(4)]
    assert logged == [True, False, False, True]
    entries = world.log_entries()
    assert len(entries) == 2
    assert "→" in entries[0].message
    assert entries[0].message.endswith("(r/s update)")
    assert entries[0].id > entries[1].id


def test_log_is_bounded_newest_first(world):
    for _ in range(3 * LOG_CAPACITY + 10):
        world.transaction_tick()
    entries = world.log_entries()
    assert len(entries) == LOG_CAPACITY
    assert entries[0].id == max(e.id for e in entries)


def test_transaction_tick_needs_two_agents(clock):
    lonely = World(
        rng=random.Random(SEED),
        clock=clock,
        topology=lambda: [Agent(id="A", label="A", role=Role.TRADER, reliability=1.0, x=0, y=0)],
    )
    assert lonely.transaction_tick() is None
    assert lonely.transaction_count == 0
    assert lonely.pulses() == []


def test_seeded_worlds_replay_identically():
    def trace(seed):
        w = World(rng=random.Random(seed), clock=ManualClock(0))
        return [(r.source, r.target, r.success, r.mode) for r in (w.transaction_tick() for _ in range(60))]

    assert trace(SEED) == trace(SEED)


def test_add_agent_assigns_next_id_and_logs(world):
    agent = world.add_agent()
    assert agent.id == "N8"
    # 7 agents in the arena: ROLES[7 % 4] is Sybil
    assert agent.role is Role.SYBIL
    assert agent.reliability == pytest.approx(0.2)
    assert world.log_entries()[0].message == "New node N8 (Sybil) joined. Seeking peers..."
    validator = world.add_agent("validator")
    assert validator.id == "N9"
    assert validator.reliability == pytest.approx(0.9)


def test_remove_agent_drops_edges_and_pulses(world):
    for _ in range(40):
        world.transaction_tick()
    world.remove_agent("N1")
    assert not world.has_agent("N1")
    assert all("N1" not in e.key for e in world.ledger.edges())
    assert all("N1" not in (p.source, p.target) for p in world.pulses())
    with pytest.raises(AgentNotFoundError):
        world.remove_agent("N1")


def test_set_role_resets_reliability(world):
    agent = world.set_role("N1", "Sybil")
    assert agent.role is Role.SYBIL
    assert agent.reliability == pytest.approx(0.15)
    with pytest.raises(ValidationError):
        world.set_role("N1", "Wizard")


@pytest.mark.parametrize("value", [-0.1, 1.01, float("nan"), float("inf"), "high"])
def test_set_reliability_rejects_out_of_range(world, value):
    before = world.get_agent("N2").reliability
    with pytest.raises(ValidationError):
        world.set_reliability("N2", value)
    assert world.get_agent("N2").reliability == before


def test_set_reliability_unknown_agent(world):
    with pytest.raises(AgentNotFoundError):
        world.set_reliability("N42", 0.5)


def test_reset_restores_initial_topology(world):
    for _ in range(10):
        world.transaction_tick()
    world.add_agent()
    world.set_reliability("N1", 0.0)
    world.categorize_tick()
    world.reset()
    assert world.agent_ids() == [f"N{i}" for i in range(1, 8)]
    assert world.get_agent("N1").reliability == pytest.approx(0.98)
    assert len(world.ledger) == 0
    assert world.pulses() == []
    assert world.log_entries() == []
    assert world.transaction_count == 0
    assert world.pipeline.last_result is None
    assert world.epoch == 1


def test_snapshot_shape(world):
    world.transaction_tick()
    world.categorize_tick()
    snap = world.snapshot()
    assert len(snap["agents"]) == 7
    assert snap["metrics"]["transaction_count"] == 1
    assert snap["metrics"]["edge_count"] == 1
    for a in snap["agents"]:
        ev = a["evidence"]
        assert ev["b"] + ev["d"] + ev["u"] == pytest.approx(1.0)
        assert a["effective_label"]["source"] == "heuristic"
        assert a["category_id"] is not None


def test_ticks_run_inside_dispatcher(world):
    world.transaction_tick()
    world.decay_tick()
    world.layout_tick()
    world.categorize_tick()
    counts = world.dispatcher.tick_counts()
    for kind in ("transaction", "decay", "layout", "categorize"):
        assert counts[kind] == 1


def test_evidence_converges_to_hidden_reliability(clock, topology_factory):
    """
    Two agents at reliability 0.7, decay disabled: total evidence equals the number
    of transactions and the success count stays within 4 sigma of the binomial mean.
    """
    n = 4000
    p = 0.7
    w = World(rng=random.Random(SEED), clock=clock, topology=topology_factory(p))
    for _ in range(n):
        w.transaction_tick()
    assert _total_evidence(w) == pytest.approx(n)
    r_total = sum(e.r for e in w.ledger.edges())
    assert abs(r_total - n * p) <= 4 * math.sqrt(n * p * (1 - p))
    for e in w.ledger.edges():
        assert e.r / (e.r + e.s) == pytest.approx(p, abs=0.05)


# ----------------------------------------------------------------------
# Scheduler
# ----------------------------------------------------------------------


def test_speed_mapping():
    assert clamp_speed(50) == 100
    assert interval_for_speed(50) == 2000
    assert interval_for_speed(5000) == 100
    assert interval_for_speed(900) == 1200


def test_start_stop_are_idempotent(scheduler, world, aps):
    assert scheduler.state is SchedulerState.STOPPED
    assert scheduler.start() is True
    assert scheduler.running
    assert aps.get_job(TRANSACTION_JOB_ID) is not None
    assert world.log_entries()[0].message == STARTED_MESSAGE
    assert scheduler.start() is False
    assert len(world.log_entries()) == 1

    assert scheduler.stop() is True
    assert aps.get_job(TRANSACTION_JOB_ID) is None
    assert world.log_entries()[0].message == PAUSED_MESSAGE
    assert scheduler.stop() is False
    assert len(world.log_entries()) == 2


def test_set_speed_reschedules_running_job(scheduler, aps):
    assert scheduler.set_speed(5000) == 100
    assert scheduler.speed == 2000
    scheduler.start()
    assert aps.get_job(TRANSACTION_JOB_ID).trigger.interval == timedelta(milliseconds=100)
    assert scheduler.set_speed(1500) == 600
    assert aps.get_job(TRANSACTION_JOB_ID).trigger.interval == timedelta(milliseconds=600)


def test_transaction_job_is_inert_when_stopped(scheduler, world):
    assert scheduler._transaction_job() is None
    assert world.transaction_count == 0
    scheduler.start()
    assert scheduler._transaction_job() is not None
    assert world.transaction_count == 1


def test_failing_tick_does_not_escape(scheduler, world, monkeypatch):
    def boom():
        raise RuntimeError("tick failed")

    monkeypatch.setattr(world, "decay_tick", boom)
    assert scheduler.decay_tick() is None
    # other jobs keep working
    assert scheduler.transaction_tick() is not None


def test_scheduler_reset_stops_and_clears(scheduler, world):
    scheduler.start()
    for _ in range(5):
        scheduler.transaction_tick()
    scheduler.reset()
    assert not scheduler.running
    assert world.transaction_count == 0
    assert world.log_entries() == []
    assert len(world.ledger) == 0


def test_background_jobs_registered(scheduler, aps):
    scheduler.start_background()
    try:
        ids = {job.id for job in aps.get_jobs()}
        assert {"trustflow_decay", "trustflow_layout", "trustflow_categorize"} <= ids
        assert TRANSACTION_JOB_ID not in ids
    finally:
        scheduler.shutdown(wait=False)


def test_scheduler_snapshot_metrics(scheduler):
    snap = scheduler.snapshot()
    m = snap["metrics"]
    assert m["running"] is False
    assert m["state"] == "stopped"
    assert m["interval_ms"] == 1200
    assert m["speed"] == 900


# ----------------------------------------------------------------------
# Pulses and late ticks
# ----------------------------------------------------------------------


def test_pulses_returns_copies(world):
    world.transaction_tick()
    p = world.pulses()[0]
    p.progress = 0.5
    p.x = -1.0
    assert world.pulses()[0].progress == 0.0
    assert world.pulses()[0].x != -1.0


def test_expire_pulses_applies_arrival_once(world, clock):
    """Without a layout frame, arrived pulses still flash their target and go away."""
    result = world.transaction_tick()
    assert world.expire_pulses() == []
    clock.advance(1000)
    arrived = world.expire_pulses()
    assert [p.id for p in arrived] == [result.pulse_id]
    target = world.get_agent(result.target)
    assert target.impact == 1.0
    assert target.impact_type is Outcome.of(result.success)
    assert world.pulses() == []
    assert world.expire_pulses() == []


def test_transaction_tick_guard_checked_under_lock(world):
    assert world.transaction_tick(guard=lambda: False) is None
    assert world.transaction_count == 0
    assert world.transaction_tick(guard=lambda: True) is not None


@pytest.mark.parametrize("command", ["reset", "stop"])
def test_tick_blocked_on_lock_is_dropped(scheduler, world, command):
    """A transaction fired before stop()/reset() but still waiting on the world lock writes nothing."""
    scheduler.start()
    results = []
    with world.dispatcher.critical():
        worker = threading.Thread(target=lambda: results.append(scheduler._transaction_job()))
        worker.start()
        time.sleep(0.1)
        getattr(scheduler, command)()
    worker.join(timeout=5)
    assert not worker.is_alive()
    assert results == [None]
    assert not scheduler.running
    assert world.transaction_count == 0
    assert len(world.ledger) == 0
    assert world.pulses() == []
