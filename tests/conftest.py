"""
Pytest fixtures for trustflow tests: manual clock, seeded world, scheduler, API client.

The APScheduler instance is never started here; tests drive ticks by hand.
"""

from __future__ import annotations

import random

import pytest
from apscheduler.schedulers.background import BackgroundScheduler

from trustflow.config import Settings
from trustflow.labeling.provider import LabelOverrideService
from trustflow.runtime import SimulationRuntime
from trustflow.scheduler.engine import SimulationScheduler
from trustflow.simulation.clock import ManualClock
from trustflow.simulation.models import Agent, Role
from trustflow.simulation.world import World

SEED = 1234


def two_agents(reliability: float = 0.7):
    """Topology factory: two Traders with the same hidden reliability."""

    def factory() -> list[Agent]:
        return [
            Agent(id="A", label="A", role=Role.TRADER, reliability=reliability, x=300.0, y=250.0),
            Agent(id="B", label="B", role=Role.TRADER, reliability=reliability, x=500.0, y=250.0),
        ]

    return factory


@pytest.fixture
def clock():
    return ManualClock(start_ms=10_000.0)


@pytest.fixture
def world(clock):
    """Default seven-agent topology, seeded rng, manual clock."""
    return World(rng=random.Random(SEED), clock=clock)


@pytest.fixture
def settings():
    return Settings(seed=SEED)


@pytest.fixture
def aps():
    """Unstarted APScheduler; jobs stay pending and never fire on their own."""
    return BackgroundScheduler()


@pytest.fixture
def scheduler(world, settings, aps):
    return SimulationScheduler(world, settings, scheduler=aps)


@pytest.fixture
def runtime(world, scheduler):
    labels = LabelOverrideService(world, provider=None)
    yield SimulationRuntime(world=world, scheduler=scheduler, labels=labels)
    labels.shutdown(wait=True)


@pytest.fixture
def client(runtime):
    """FastAPI TestClient over the fixture runtime (lifespan not entered)."""
    from fastapi.testclient import TestClient

    from trustflow.api_server.server import create_app

    return TestClient(create_app(runtime))


@pytest.fixture
def topology_factory():
    """two_agents(reliability) for tests that build their own World."""
    return two_agents
