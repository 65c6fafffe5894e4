"""
Shared simulation state and the commands that mutate it.

Responsibilities:
- Own the agent arena, the evidence ledger, in-flight pulses, the activity log
  and the transaction counter.
- Expose every mutation as a method that runs inside the TickDispatcher
  critical section: timer ticks (transaction, decay, layout, categorize) and
  external commands (add/remove agent, role, reliability, drag, label override).
- Produce read-only snapshots for the render boundary.

Time is in milliseconds from an injectable clock; randomness comes from one
injectable random.Random so a seeded world replays deterministically when its
ticks are driven by hand.
"""

from __future__ import annotations

import math
import random
from collections import deque
from dataclasses import dataclass, replace
from typing import Any, Callable

from trustflow.analysis_engine.labels import BatchResult, CategorizationPipeline, heuristic_label
from trustflow.analysis_engine.ledger import DecayReport, Edge, EvidenceLedger
from trustflow.analysis_engine.opinion import calculate_opinion
from trustflow.core.exceptions import AgentNotFoundError, EmptyGraphError, ValidationError
from trustflow.labeling.provider import LabelRequest
from trustflow.layout.engine import FrameResult, LayoutConfig, SpatialLayoutEngine
from trustflow.scheduler.dispatcher import TickDispatcher
from trustflow.simulation.clock import wall_clock_ms
from trustflow.simulation.models import (
    ROLE_DEFAULT_RELIABILITY,
    ROLES,
    Agent,
    EffectiveLabel,
    LogEntry,
    LogKind,
    Outcome,
    OverrideLabel,
    Pulse,
    Role,
    resolve_label,
)
from trustflow.simulation.policy import InteractionPolicy, SelectionMode
from trustflow.simulation.topology import initial_agents
from trustflow.trustflow_logging import get_logger

logger = get_logger(__name__)

LOG_CAPACITY = 50
# Every LOG_EVERY-th transaction is written to the activity log
LOG_EVERY = 3
NEW_AGENT_LABEL = "New Actor"
NEW_AGENT_RELIABILITY = 0.9
NEW_SYBIL_RELIABILITY = 0.2
NEW_AGENT_SPREAD = 100.0


@dataclass(frozen=True)
class TransactionResult:
    """One completed transaction tick."""

    source: str
    target: str
    success: bool
    mode: SelectionMode
    edge: Edge
    pulse_id: int
    logged: bool


class World:
    """The single shared state of one simulation run."""

    def __init__(
        self,
        *,
        rng: random.Random | None = None,
        clock: Callable[[], float] | None = None,
        dispatcher: TickDispatcher | None = None,
        topology: Callable[[], list[Agent]] = initial_agents,
        layout_config: LayoutConfig | None = None,
        pipeline: CategorizationPipeline | None = None,
    ) -> None:
        self.rng = rng or random.Random()
        self.clock = clock or wall_clock_ms
        self.dispatcher = dispatcher or TickDispatcher()
        self.ledger = EvidenceLedger()
        self.policy = InteractionPolicy(self.rng)
        self.layout = SpatialLayoutEngine(layout_config, self.rng)
        self.pipeline = pipeline or CategorizationPipeline()
        self._topology = topology
        self._agents: dict[str, Agent] = {a.id: a for a in topology()}
        self._pulses: list[Pulse] = []
        self._log: deque[LogEntry] = deque(maxlen=LOG_CAPACITY)
        self._pinned: set[str] = set()
        self.transaction_count = 0
        self._next_pulse_id = 1
        self._next_log_id = 1
        self._epoch = 0

    def now(self) -> float:
        return float(self.clock())

    @property
    def epoch(self) -> int:
        """Incremented by every reset."""
        return self._epoch

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def agents(self) -> list[Agent]:
        """Copies of every agent in arena order."""
        with self.dispatcher.critical():
            return [a.copy() for a in self._agents.values()]

    def agent_ids(self) -> list[str]:
        with self.dispatcher.critical():
            return list(self._agents)

    def get_agent(self, agent_id: str) -> Agent:
        with self.dispatcher.critical():
            return self._require(agent_id).copy()

    def has_agent(self, agent_id: str) -> bool:
        with self.dispatcher.critical():
            return agent_id in self._agents

    def pulses(self) -> list[Pulse]:
        with self.dispatcher.critical():
            return [replace(p) for p in self._pulses]

    def log_entries(self) -> list[LogEntry]:
        """Most recent first."""
        with self.dispatcher.critical():
            return list(self._log)

    def effective_label(self, agent_id: str) -> EffectiveLabel:
        with self.dispatcher.critical():
            agent = self._require(agent_id)
            r, s = self.ledger.incoming_evidence(agent_id)
            return resolve_label(agent.label_override, heuristic_label(r, s))

    def _require(self, agent_id: str) -> Agent:
        agent = self._agents.get(agent_id)
        if agent is None:
            raise AgentNotFoundError(agent_id)
        return agent

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def append_log(self, kind: LogKind, message: str) -> LogEntry:
        with self.dispatcher.critical():
            entry = LogEntry(id=self._next_log_id, timestamp=self.now(), message=message, kind=kind)
            self._next_log_id += 1
            self._log.appendleft(entry)
            return entry

    def _next_agent_id(self) -> str:
        n = len(self._agents) + 1
        while f"N{n}" in self._agents:
            n += 1
        return f"N{n}"

    def add_agent(self, role: Role | str | None = None) -> Agent:
        """Add an agent near the canvas centre. Without a role, roles cycle by arena size."""
        with self.dispatcher.critical("command"):
            chosen = Role.parse(role) if role is not None else ROLES[len(self._agents) % len(ROLES)]
            agent = Agent(
                id=self._next_agent_id(),
                label=NEW_AGENT_LABEL,
                role=chosen,
                reliability=NEW_SYBIL_RELIABILITY if chosen is Role.SYBIL else NEW_AGENT_RELIABILITY,
                x=self.layout.config.width / 2.0 + (self.rng.random() - 0.5) * NEW_AGENT_SPREAD,
                y=self.layout.config.height / 2.0 + (self.rng.random() - 0.5) * NEW_AGENT_SPREAD,
            )
            self._agents[agent.id] = agent
            self.append_log(LogKind.NEUTRAL, f"New node {agent.id} ({chosen.value}) joined. Seeking peers...")
            logger.info("agent_added", agent_id=agent.id, role=chosen.value)
            return agent.copy()

    def remove_agent(self, agent_id: str) -> int:
        """Remove an agent with every incident edge and pulse. Returns edges removed."""
        with self.dispatcher.critical("command"):
            self._require(agent_id)
            del self._agents[agent_id]
            removed = self.ledger.remove_agent(agent_id)
            self._pulses = [p for p in self._pulses if p.source != agent_id and p.target != agent_id]
            self._pinned.discard(agent_id)
            logger.info("agent_removed", agent_id=agent_id, edges_removed=removed)
            return removed

    def set_role(self, agent_id: str, role: Role | str) -> Agent:
        """Change role; reliability resets to the role default."""
        with self.dispatcher.critical("command"):
            agent = self._require(agent_id)
            agent.role = Role.parse(role)
            agent.reliability = ROLE_DEFAULT_RELIABILITY[agent.role]
            logger.info("agent_role_set", agent_id=agent_id, role=agent.role.value, reliability=agent.reliability)
            return agent.copy()

    def set_reliability(self, agent_id: str, value: float) -> Agent:
        try:
            v = float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"reliability must be a number, got {value!r}") from None
        if not math.isfinite(v) or v < 0.0 or v > 1.0:
            raise ValidationError(f"reliability must be in [0, 1], got {value!r}")
        with self.dispatcher.critical("command"):
            agent = self._require(agent_id)
            agent.reliability = v
            logger.info("agent_reliability_set", agent_id=agent_id, reliability=v)
            return agent.copy()

    def drag_agent(self, agent_id: str, dx: float, dy: float) -> Agent:
        """
        Move an agent by (dx, dy). The next layout frame keeps this position
        instead of integrating forces for the agent.
        """
        if not (math.isfinite(dx) and math.isfinite(dy)):
            raise ValidationError("drag offsets must be finite")
        with self.dispatcher.critical("command"):
            agent = self._require(agent_id)
            agent.x += dx
            agent.y += dy
            self._pinned.add(agent_id)
            return agent.copy()

    def label_request(self, agent_id: str) -> LabelRequest:
        """Consistent view of one agent for the external label provider."""
        with self.dispatcher.critical():
            agent = self._require(agent_id)
            r, s = self.ledger.incoming_evidence(agent_id)
            op = calculate_opinion(r, s)
            return LabelRequest(
                agent_id=agent_id,
                role=agent.role.value,
                reliability=agent.reliability,
                r=r,
                s=s,
                b=op.b,
                d=op.d,
                u=op.u,
                epoch=self._epoch,
            )

    def apply_label_override(self, agent_id: str, handle: str, gloss: str, epoch: int | None = None) -> bool:
        """
        Set (or overwrite) an agent's override label.

        Returns False, without error, when the agent is gone or the world was
        reset after the request was built.
        """
        with self.dispatcher.critical("command"):
            if epoch is not None and epoch != self._epoch:
                logger.info("label_override_stale", agent_id=agent_id, epoch=epoch, current_epoch=self._epoch)
                return False
            agent = self._agents.get(agent_id)
            if agent is None:
                logger.info("label_override_agent_gone", agent_id=agent_id)
                return False
            agent.label_override = OverrideLabel(handle=handle, gloss=gloss, requested_at=self.now())
            logger.info("label_override_applied", agent_id=agent_id, handle=handle)
            return True

    def reset(self) -> None:
        """Restore the initial topology; empty edges, pulses, log and counters."""
        with self.dispatcher.critical("command"):
            self._agents = {a.id: a for a in self._topology()}
            self.ledger.clear()
            self._pulses = []
            self._log.clear()
            self._pinned.clear()
            self.transaction_count = 0
            self._next_pulse_id = 1
            self._next_log_id = 1
            self.pipeline.reset()
            self._epoch += 1
            logger.info("world_reset", agents=len(self._agents), epoch=self._epoch)

    # ------------------------------------------------------------------
    # Ticks
    # ------------------------------------------------------------------

    def _pick_source(self) -> Agent:
        if len(self._agents) < 2:
            raise EmptyGraphError(f"need at least two agents, have {len(self._agents)}")
        return self.rng.choice(list(self._agents.values()))

    def transaction_tick(self, guard: Callable[[], bool] | None = None) -> TransactionResult | None:
        """
        One interaction: source, partner, outcome, evidence, pulse, throttled log.

        Silent no-op (None) with fewer than two agents. guard is checked once the
        critical section is held; a false result drops the tick, so a timer that
        fired before stop() or reset() cannot write into the world afterwards.
        """
        with self.dispatcher.critical("transaction"):
            if guard is not None and not guard():
                logger.debug("transaction_tick_skipped")
                return None
            try:
                source = self._pick_source()
            except EmptyGraphError:
                return None
            choice = self.policy.select_target(source, list(self._agents.values()), self.ledger)
            if choice is None:
                return None
            target = choice.agent
            success = self.rng.random() < target.reliability
            now = self.now()
            edge = self.ledger.record_interaction(source.id, target.id, success, now)

            pulse = Pulse(
                id=self._next_pulse_id,
                source=source.id,
                target=target.id,
                outcome=Outcome.of(success),
                start_time=now,
                x=source.x,
                y=source.y,
            )
            self._next_pulse_id += 1
            self._pulses.append(pulse)

            logged = self.transaction_count % LOG_EVERY == 0
            if logged:
                self.append_log(
                    LogKind.SUCCESS if success else LogKind.FAILURE,
                    f"{source.id} → {target.id}: {'Verified' if success else 'Defect'} (r/s update)",
                )
            self.transaction_count += 1
            return TransactionResult(
                source=source.id,
                target=target.id,
                success=success,
                mode=choice.mode,
                edge=Edge(edge.source, edge.target, edge.r, edge.s, edge.last_active),
                pulse_id=pulse.id,
                logged=logged,
            )

    def decay_tick(self) -> DecayReport:
        with self.dispatcher.critical("decay"):
            return self.ledger.decay_tick(self.now(), self.rng)

    def expire_pulses(self) -> list[Pulse]:
        """
        Reap pulses without running a layout frame.

        A pulse whose travel time has elapsed flashes its target and is removed;
        pulses whose endpoints are gone are dropped. Used when no layout job is
        scheduled. Returns the arrived pulses.
        """
        with self.dispatcher.critical("expire"):
            now = self.now()
            duration = self.layout.config.pulse_duration_ms
            arrived: list[Pulse] = []
            kept: list[Pulse] = []
            for p in self._pulses:
                target = self._agents.get(p.target)
                if target is None or p.source not in self._agents:
                    continue
                if now - p.start_time >= duration:
                    target.impact = 1.0
                    target.impact_type = p.outcome
                    arrived.append(p)
                else:
                    kept.append(p)
            self._pulses = kept
            return arrived

    def layout_tick(self) -> FrameResult:
        """One layout frame; arriving pulses are reaped here, exactly once."""
        with self.dispatcher.critical("layout"):
            result = self.layout.step(
                list(self._agents.values()),
                self.ledger,
                self._pulses,
                self.now(),
                pinned=self._pinned,
            )
            self._pulses = result.pulses
            self._pinned.clear()
            return result

    def categorize_tick(self) -> BatchResult:
        with self.dispatcher.critical("categorize"):
            return self.pipeline.run_batch(list(self._agents), self.ledger, self.now())

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def metrics(self) -> dict[str, Any]:
        with self.dispatcher.critical():
            return {
                "mean_uncertainty": self.ledger.mean_uncertainty(),
                "transaction_count": self.transaction_count,
                "agent_count": len(self._agents),
                "edge_count": len(self.ledger),
                "pulse_count": len(self._pulses),
            }

    def snapshot(self) -> dict[str, Any]:
        """Read-only, JSON-ready view of the whole world at one instant."""
        with self.dispatcher.critical():
            last = self.pipeline.last_result
            agents_out: list[dict[str, Any]] = []
            for agent in self._agents.values():
                r, s = self.ledger.incoming_evidence(agent.id)
                op = calculate_opinion(r, s)
                out = agent.to_dict()
                out["effective_label"] = resolve_label(agent.label_override, heuristic_label(r, s)).to_dict()
                out["category_id"] = last.category_of(agent.id) if last is not None else None
                out["evidence"] = {"r": r, "s": s, "b": op.b, "d": op.d, "u": op.u}
                agents_out.append(out)
            return {
                "time": self.now(),
                "agents": agents_out,
                "edges": [e.to_dict() for e in self.ledger.edges()],
                "pulses": [p.to_dict() for p in self._pulses],
                "log": [entry.to_dict() for entry in self._log],
                "metrics": self.metrics(),
            }
