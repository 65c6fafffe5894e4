"""
Test that trustflow_logging can be imported without circular import and logger works.
"""

from __future__ import annotations

import structlog


def test_logging_import():
    """Import get_logger from trustflow_logging and use the logger."""
    from trustflow.trustflow_logging import get_logger

    logger = get_logger("test")
    assert hasattr(logger, "info")
    assert hasattr(logger, "exception")
    # Smoke test: call info (should not raise)
    logger.info("test_message", key="value")


def test_bind_agent_logger():
    from trustflow.trustflow_logging import bind_agent, get_logger

    logger = bind_agent(get_logger("test"), "N1")
    logger.info("agent_context_message", tick=1)


def test_job_context_binds_and_unbinds():
    """Records inside a scheduler job carry job=<name>; nothing leaks afterwards."""
    from trustflow.trustflow_logging import job_context

    with job_context("decay"):
        assert structlog.contextvars.get_contextvars()["job"] == "decay"
    assert "job" not in structlog.contextvars.get_contextvars()


def test_world_module_imports_cleanly():
    """The world pulls in ledger, layout, labeling and dispatcher without import cycles."""
    from trustflow.layout.engine import SpatialLayoutEngine
    from trustflow.scheduler.engine import SimulationScheduler
    from trustflow.simulation.world import World

    assert World is not None
    assert SimulationScheduler is not None
    assert SpatialLayoutEngine is not None
