"""
Wiring: one World, its SimulationScheduler and the label override service.

Shared by the API server, main.py and the headless runner.
"""

from __future__ import annotations

import random
from dataclasses import dataclass

from trustflow.config import Settings, get_settings
from trustflow.labeling.provider import HttpLabelProvider, LabelOverrideService
from trustflow.scheduler.engine import SimulationScheduler
from trustflow.simulation.world import World
from trustflow.trustflow_logging import get_logger

logger = get_logger(__name__)


@dataclass
class SimulationRuntime:
    world: World
    scheduler: SimulationScheduler
    labels: LabelOverrideService

    def start(self) -> None:
        self.scheduler.start_background()

    def shutdown(self) -> None:
        self.scheduler.shutdown(wait=False)
        self.labels.shutdown(wait=False)


def build_runtime(settings: Settings | None = None) -> SimulationRuntime:
    """Build (without starting) the simulation from settings."""
    settings = settings or get_settings()
    world = World(rng=random.Random(settings.seed))
    scheduler = SimulationScheduler(world, settings)
    provider = None
    if settings.label_provider_enabled:
        provider = HttpLabelProvider(settings.label_provider_url, settings.label_provider_timeout_sec)
    labels = LabelOverrideService(world, provider)
    logger.info(
        "runtime_built",
        seed=settings.seed,
        speed=settings.speed,
        label_provider_enabled=settings.label_provider_enabled,
    )
    return SimulationRuntime(world=world, scheduler=scheduler, labels=labels)
