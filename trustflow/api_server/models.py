"""
Request and response models for the HTTP boundary.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class AddAgentRequest(BaseModel):
    """POST /agents body. Without a role, roles cycle by arena size."""

    role: str | None = Field(None, description="Validator | Trader | Observer | Sybil")


class RoleRequest(BaseModel):
    role: str = Field(..., description="Validator | Trader | Observer | Sybil")


class ReliabilityRequest(BaseModel):
    value: float = Field(..., description="Hidden reliability in [0, 1]")


class DragRequest(BaseModel):
    dx: float = Field(..., description="Horizontal offset (canvas units)")
    dy: float = Field(..., description="Vertical offset (canvas units)")


class SpeedRequest(BaseModel):
    value: float = Field(..., description="Speed slider; clamped to [100, 2000]")


class AgentResponse(BaseModel):
    id: str
    label: str
    role: str
    reliability: float = Field(..., ge=0, le=1)
    x: float
    y: float


class RemoveAgentResponse(BaseModel):
    id: str
    edges_removed: int


class SimulationStateResponse(BaseModel):
    running: bool
    state: str
    speed: int
    interval_ms: int
    transaction_count: int


class LabelRequestResponse(BaseModel):
    """POST /agents/{id}/label response. The override applies asynchronously."""

    agent_id: str
    submitted: bool = Field(..., description="False when disabled or a request is already in flight")
    provider_enabled: bool


class HealthResponse(BaseModel):
    status: str = "ok"
    running: bool
    agents: int
    edges: int
    transaction_count: int


class CategoryResponse(BaseModel):
    id: int
    handle: str
    description: str
    guidance: str | None = None
    tag: str
    members: list[str] = Field(default_factory=list)
    top_features: list[str] = Field(default_factory=list)
    drift: float = 0.0
    membership_change: float = 0.0
    labelled_at: float | None = None
    prototype: dict[str, Any] = Field(default_factory=dict)
