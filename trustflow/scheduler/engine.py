"""
Simulation scheduler: run/pause state plus the periodic jobs (APScheduler).

Jobs (BackgroundScheduler interval jobs, max_instances=1, coalesce=True):
- transaction: every 2100 - speed ms, only while Running.
- decay: fixed period, always.
- layout: every frame, always.
- categorize: fixed period, always.

Every job body runs inside the world's TickDispatcher critical section and
catches its own exceptions, so one failing tick never stops the loop.
"""

from __future__ import annotations

import threading
from datetime import datetime
from enum import Enum
from typing import Any, Callable, TypeVar

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler

from trustflow.analysis_engine.labels import BatchResult
from trustflow.analysis_engine.ledger import DecayReport
from trustflow.config import Settings, get_settings
from trustflow.layout.engine import FrameResult
from trustflow.simulation.models import LogKind, Pulse
from trustflow.simulation.world import TransactionResult, World
from trustflow.trustflow_logging import get_logger, job_context

logger = get_logger(__name__)

T = TypeVar("T")

SPEED_MIN = 100
SPEED_MAX = 2000
SPEED_OFFSET = 2100

TRANSACTION_JOB_ID = "trustflow_transaction"
DECAY_JOB_ID = "trustflow_decay"
LAYOUT_JOB_ID = "trustflow_layout"
CATEGORIZE_JOB_ID = "trustflow_categorize"

STARTED_MESSAGE = "Simulation started. Nodes looking for peers..."
PAUSED_MESSAGE = "Simulation paused."


class SchedulerState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


def clamp_speed(slider: float) -> int:
    return int(max(SPEED_MIN, min(SPEED_MAX, round(slider))))


def interval_for_speed(slider: float) -> int:
    """Displayed speed maps inversely to the tick interval (ms)."""
    return SPEED_OFFSET - clamp_speed(slider)


class SimulationScheduler:
    """Owns the Stopped/Running state machine and every periodic job of one World."""

    def __init__(
        self,
        world: World,
        settings: Settings | None = None,
        scheduler: BaseScheduler | None = None,
    ) -> None:
        self.world = world
        self.settings = settings or get_settings()
        self._scheduler = scheduler or BackgroundScheduler()
        self._state = SchedulerState.STOPPED
        self._speed = clamp_speed(self.settings.speed)
        self._interval_ms = interval_for_speed(self._speed)
        # guards state transitions; ticks themselves use the world dispatcher
        self._lock = threading.RLock()

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state is SchedulerState.RUNNING

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    @property
    def speed(self) -> int:
        return self._speed

    # ------------------------------------------------------------------
    # Background loops
    # ------------------------------------------------------------------

    def _add_interval_job(self, func: Callable[[], Any], job_id: str, period_ms: float, **kwargs: Any) -> None:
        self._scheduler.add_job(
            func,
            "interval",
            seconds=period_ms / 1000.0,
            id=job_id,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
            **kwargs,
        )

    def start_background(self) -> None:
        """Register the always-on jobs (decay, layout, categorize) and start APScheduler."""
        s = self.settings
        self._add_interval_job(self._decay_job, DECAY_JOB_ID, s.decay_interval_ms)
        self._add_interval_job(self._layout_job, LAYOUT_JOB_ID, s.frame_ms)
        self._add_interval_job(self._categorize_job, CATEGORIZE_JOB_ID, s.categorize_interval_ms)
        if not self._scheduler.running:
            self._scheduler.start()
        logger.info(
            "scheduler_background_started",
            decay_interval_ms=s.decay_interval_ms,
            frame_ms=s.frame_ms,
            categorize_interval_ms=s.categorize_interval_ms,
        )

    def shutdown(self, wait: bool = False) -> None:
        self.stop()
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
        logger.info("scheduler_shutdown")

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """Begin transaction ticks immediately. No-op (False) when already Running."""
        with self._lock:
            if self._state is SchedulerState.RUNNING:
                return False
            self._state = SchedulerState.RUNNING
            self._add_interval_job(
                self._transaction_job,
                TRANSACTION_JOB_ID,
                self._interval_ms,
                next_run_time=datetime.now(),
            )
        self.world.append_log(LogKind.NEUTRAL, STARTED_MESSAGE)
        logger.info("simulation_started", interval_ms=self._interval_ms)
        return True

    def stop(self) -> bool:
        """Cancel future transaction ticks; an in-flight tick finishes. No-op (False) when Stopped."""
        with self._lock:
            if self._state is SchedulerState.STOPPED:
                return False
            self._state = SchedulerState.STOPPED
            if self._scheduler.get_job(TRANSACTION_JOB_ID) is not None:
                self._scheduler.remove_job(TRANSACTION_JOB_ID)
        self.world.append_log(LogKind.NEUTRAL, PAUSED_MESSAGE)
        logger.info("simulation_stopped", transaction_count=self.world.transaction_count)
        return True

    def reset(self) -> None:
        """Stop, then restore the initial topology with empty edges, pulses, log and counter."""
        with self._lock:
            self.stop()
            self.world.reset()

    def set_speed(self, slider: float) -> int:
        """Clamp slider to [100, 2000] and apply interval = 2100 - slider. Returns the interval (ms)."""
        with self._lock:
            self._speed = clamp_speed(slider)
            self._interval_ms = interval_for_speed(self._speed)
            if self._state is SchedulerState.RUNNING and self._scheduler.get_job(TRANSACTION_JOB_ID):
                self._scheduler.reschedule_job(
                    TRANSACTION_JOB_ID,
                    trigger="interval",
                    seconds=self._interval_ms / 1000.0,
                )
        logger.info("simulation_speed_set", speed=self._speed, interval_ms=self._interval_ms)
        return self._interval_ms

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def _run_job(self, job: str, fn: Callable[[], T]) -> T | None:
        with job_context(job):
            try:
                return fn()
            except Exception as e:
                logger.exception("scheduler_job_error", error=str(e))
                return None

    def _transaction_job(self) -> TransactionResult | None:
        if self._state is not SchedulerState.RUNNING:
            return None
        epoch = self.world.epoch

        def still_current() -> bool:
            # stop() or reset() may land while this tick waits for the world lock
            return self.running and self.world.epoch == epoch

        return self._run_job("transaction", lambda: self.world.transaction_tick(guard=still_current))

    def _decay_job(self) -> DecayReport | None:
        return self._run_job("decay", self.world.decay_tick)

    def _layout_job(self) -> FrameResult | None:
        return self._run_job("layout", self.world.layout_tick)

    def _categorize_job(self) -> BatchResult | None:
        return self._run_job("categorize", self.world.categorize_tick)

    # Manual drivers (CLI runner and tests); same error isolation as the timers
    def transaction_tick(self) -> TransactionResult | None:
        return self._run_job("transaction", self.world.transaction_tick)

    def decay_tick(self) -> DecayReport | None:
        return self._decay_job()

    def layout_tick(self) -> FrameResult | None:
        return self._layout_job()

    def categorize_tick(self) -> BatchResult | None:
        return self._categorize_job()

    def expire_tick(self) -> list[Pulse] | None:
        return self._run_job("expire", self.world.expire_pulses)

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        snap = self.world.snapshot()
        snap["metrics"].update(
            {
                "running": self.running,
                "state": self._state.value,
                "speed": self._speed,
                "interval_ms": self._interval_ms,
            }
        )
        return snap
