"""
Scheduler package: tick serialization and the periodic simulation jobs.

The APScheduler-backed SimulationScheduler lives in trustflow.scheduler.engine.
"""

from trustflow.scheduler.dispatcher import TickDispatcher

__all__ = ["TickDispatcher"]
