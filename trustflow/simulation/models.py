"""
Data models for the simulated agent network.

Agents, in-flight pulses, activity log entries and the effective-label variants.
Agents are stored in an arena keyed by id; nothing here holds a reference to
another agent, so removal can never leave a dangling link.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from trustflow.analysis_engine.labels import AgentHandle
from trustflow.core.exceptions import ValidationError


class Role(str, Enum):
    """Intended behaviour of an agent. Only used for discovery and defaults."""

    VALIDATOR = "Validator"
    TRADER = "Trader"
    OBSERVER = "Observer"
    SYBIL = "Sybil"

    @classmethod
    def parse(cls, value: "Role | str") -> "Role":
        if isinstance(value, Role):
            return value
        for role in cls:
            if str(value).strip().lower() == role.value.lower():
                return role
        raise ValidationError(f"unknown role: {value!r}")


ROLES: tuple[Role, ...] = (Role.VALIDATOR, Role.TRADER, Role.OBSERVER, Role.SYBIL)

# Ground-truth reliability assigned when a role is (re)set
ROLE_DEFAULT_RELIABILITY: dict[Role, float] = {
    Role.VALIDATOR: 0.99,
    Role.TRADER: 0.85,
    Role.OBSERVER: 0.95,
    Role.SYBIL: 0.15,
}


class Outcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"

    @classmethod
    def of(cls, success: bool) -> "Outcome":
        return cls.SUCCESS if success else cls.FAILURE


class LogKind(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class HeuristicLabel:
    """Label derived from evidence at read time."""

    handle: str
    gloss: str
    tag: str

    @property
    def source(self) -> str:
        return "heuristic"

    def to_dict(self) -> dict[str, str]:
        return {"handle": self.handle, "gloss": self.gloss, "tag": self.tag, "source": self.source}


@dataclass(frozen=True)
class OverrideLabel:
    """Label supplied by the external label provider."""

    handle: str
    gloss: str
    requested_at: float = 0.0

    @property
    def source(self) -> str:
        return "override"

    def to_dict(self) -> dict[str, Any]:
        return {"handle": self.handle, "gloss": self.gloss, "source": self.source}


EffectiveLabel = Union[HeuristicLabel, OverrideLabel]


def resolve_label(override: OverrideLabel | None, heuristic: AgentHandle) -> EffectiveLabel:
    """Override wins when present; an empty gloss falls back to the heuristic one."""
    if override is not None:
        return OverrideLabel(
            handle=override.handle,
            gloss=override.gloss or heuristic.gloss,
            requested_at=override.requested_at,
        )
    return HeuristicLabel(handle=heuristic.handle, gloss=heuristic.gloss, tag=heuristic.tag)


@dataclass
class Agent:
    """
    One participant in the simulated network.

    reliability is the hidden probability that an interaction targeting this
    agent succeeds. It is ground truth for the simulation only; the calculus
    and the partner-selection scoring never read it.
    """

    id: str
    label: str
    role: Role
    reliability: float
    x: float
    y: float
    vx: float = 0.0
    vy: float = 0.0
    impact: float = 0.0
    impact_type: Outcome = Outcome.SUCCESS
    label_override: OverrideLabel | None = None

    def copy(self) -> "Agent":
        return Agent(
            id=self.id,
            label=self.label,
            role=self.role,
            reliability=self.reliability,
            x=self.x,
            y=self.y,
            vx=self.vx,
            vy=self.vy,
            impact=self.impact,
            impact_type=self.impact_type,
            label_override=self.label_override,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "role": self.role.value,
            "reliability": self.reliability,
            "x": self.x,
            "y": self.y,
            "vx": self.vx,
            "vy": self.vy,
            "impact": self.impact,
            "impact_type": self.impact_type.value,
        }


@dataclass
class Pulse:
    """In-flight evidence event. Created by a transaction, reaped on arrival."""

    id: int
    source: str
    target: str
    outcome: Outcome
    start_time: float
    x: float = 0.0
    y: float = 0.0
    rotation: float = 0.0
    progress: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "outcome": self.outcome.value,
            "start_time": self.start_time,
            "x": self.x,
            "y": self.y,
            "rotation": self.rotation,
            "progress": self.progress,
        }


@dataclass(frozen=True)
class LogEntry:
    id: int
    timestamp: float
    message: str
    kind: LogKind

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "message": self.message,
            "kind": self.kind.value,
        }
