"""
FastAPI server: render/command boundary over one running simulation.

Read side: GET /snapshot, GET /categories, GET /health.
Commands: agents (add, remove, role, reliability, drag, label override) and
simulation control (start, stop, reset, speed). Every command runs through the
World / SimulationScheduler methods, so it takes the same critical section as
the timer ticks.

ValidationError -> 400, AgentNotFoundError -> 404.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from trustflow import __version__
from trustflow.api_server.models import (
    AddAgentRequest,
    AgentResponse,
    CategoryResponse,
    DragRequest,
    HealthResponse,
    LabelRequestResponse,
    ReliabilityRequest,
    RemoveAgentResponse,
    RoleRequest,
    SimulationStateResponse,
    SpeedRequest,
)
from trustflow.core.exceptions import AgentNotFoundError, ValidationError
from trustflow.runtime import SimulationRuntime, build_runtime
from trustflow.simulation.models import Agent
from trustflow.trustflow_logging import get_logger

logger = get_logger(__name__)


def _agent_response(agent: Agent) -> AgentResponse:
    return AgentResponse(
        id=agent.id,
        label=agent.label,
        role=agent.role.value,
        reliability=agent.reliability,
        x=agent.x,
        y=agent.y,
    )


def _state_response(rt: SimulationRuntime) -> SimulationStateResponse:
    s = rt.scheduler
    return SimulationStateResponse(
        running=s.running,
        state=s.state.value,
        speed=s.speed,
        interval_ms=s.interval_ms,
        transaction_count=rt.world.transaction_count,
    )


def create_app(runtime: SimulationRuntime | None = None) -> FastAPI:
    """
    Build the API app.

    With a runtime, the app serves it as-is and the lifespan does not start
    background jobs (tests drive ticks by hand). Without one, the lifespan
    builds a runtime from settings, starts the timers and shuts them down on exit.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = runtime is None
        if owned:
            app.state.runtime = build_runtime()
            app.state.runtime.start()
            logger.info("api_runtime_started")
        yield
        if owned:
            app.state.runtime.shutdown()
            logger.info("api_runtime_stopped")

    app = FastAPI(
        title="trustflow API",
        description="Evidence-based trust simulation: snapshots and commands.",
        version=__version__,
        lifespan=lifespan,
    )
    if runtime is not None:
        app.state.runtime = runtime

    @app.exception_handler(AgentNotFoundError)
    async def _agent_not_found(request: Request, exc: AgentNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        logger.info("api_validation_error", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    def rt() -> SimulationRuntime:
        return app.state.runtime

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        m = rt().world.metrics()
        return HealthResponse(
            running=rt().scheduler.running,
            agents=m["agent_count"],
            edges=m["edge_count"],
            transaction_count=m["transaction_count"],
        )

    @app.get("/snapshot")
    def snapshot() -> dict[str, Any]:
        """Agents, edges, pulses, activity log and metrics at one instant."""
        return rt().scheduler.snapshot()

    @app.get("/categories", response_model=list[CategoryResponse])
    def categories() -> list[CategoryResponse]:
        world = rt().world
        out: list[CategoryResponse] = []
        with world.dispatcher.critical():
            pipeline = world.pipeline
            last = pipeline.last_result
            for cat in pipeline.categorizer.categories:
                label = pipeline.labels.label_for(cat.id)
                record = pipeline.labels.get(cat.id)
                summary = last.summary.by_category(cat.id) if last is not None else None
                out.append(
                    CategoryResponse(
                        id=cat.id,
                        handle=label.handle,
                        description=label.description,
                        guidance=label.guidance,
                        tag=label.tag,
                        members=list(summary.members) if summary else [],
                        top_features=list(summary.top_features) if summary else [],
                        drift=summary.drift if summary else 0.0,
                        membership_change=summary.membership_change if summary else 0.0,
                        labelled_at=record.snapshot_time if record else None,
                        prototype=cat.to_dict()["prototype"],
                    )
                )
        return out

    @app.post("/agents", response_model=AgentResponse, status_code=201)
    def add_agent(body: AddAgentRequest | None = None) -> AgentResponse:
        role = body.role if body is not None else None
        return _agent_response(rt().world.add_agent(role))

    @app.delete("/agents/{agent_id}", response_model=RemoveAgentResponse)
    def remove_agent(agent_id: str) -> RemoveAgentResponse:
        removed = rt().world.remove_agent(agent_id)
        return RemoveAgentResponse(id=agent_id, edges_removed=removed)

    @app.put("/agents/{agent_id}/role", response_model=AgentResponse)
    def set_role(agent_id: str, body: RoleRequest) -> AgentResponse:
        return _agent_response(rt().world.set_role(agent_id, body.role))

    @app.put("/agents/{agent_id}/reliability", response_model=AgentResponse)
    def set_reliability(agent_id: str, body: ReliabilityRequest) -> AgentResponse:
        return _agent_response(rt().world.set_reliability(agent_id, body.value))

    @app.post("/agents/{agent_id}/drag", response_model=AgentResponse)
    def drag_agent(agent_id: str, body: DragRequest) -> AgentResponse:
        return _agent_response(rt().world.drag_agent(agent_id, body.dx, body.dy))

    @app.post("/agents/{agent_id}/label", response_model=LabelRequestResponse, status_code=202)
    def request_label(agent_id: str) -> LabelRequestResponse:
        service = rt().labels
        future = service.request(agent_id)
        return LabelRequestResponse(
            agent_id=agent_id,
            submitted=future is not None,
            provider_enabled=service.enabled,
        )

    @app.post("/simulation/start", response_model=SimulationStateResponse)
    def start() -> SimulationStateResponse:
        rt().scheduler.start()
        return _state_response(rt())

    @app.post("/simulation/stop", response_model=SimulationStateResponse)
    def stop() -> SimulationStateResponse:
        rt().scheduler.stop()
        return _state_response(rt())

    @app.post("/simulation/reset", response_model=SimulationStateResponse)
    def reset() -> SimulationStateResponse:
        rt().scheduler.reset()
        return _state_response(rt())

    @app.put("/simulation/speed", response_model=SimulationStateResponse)
    def set_speed(body: SpeedRequest) -> SimulationStateResponse:
        rt().scheduler.set_speed(body.value)
        return _state_response(rt())

    return app


app = create_app()
