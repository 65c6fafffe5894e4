"""
External label provider: optional, fallible generative annotation for one agent.

Responsibilities:
- Build the request (role, ground-truth reliability, evidence, opinion) and prompt.
- HttpLabelProvider: POST JSON to LABEL_PROVIDER_URL, expect {handle, gloss}.
- LabelOverrideService: run requests on a thread pool, at most one in flight per
  agent, apply successes back to the world under the dispatcher.

A failing provider never blocks or faults the simulation: the error is logged
and the agent keeps its heuristic label.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

from trustflow.core.exceptions import ExternalServiceError
from trustflow.trustflow_logging import bind_agent, get_logger

if TYPE_CHECKING:
    from trustflow.simulation.world import World

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SEC = 10.0
DEFAULT_MAX_WORKERS = 2
MAX_HANDLE_LEN = 64
MAX_GLOSS_LEN = 280


@dataclass(frozen=True)
class LabelRequest:
    """Everything the provider needs to name one agent."""

    agent_id: str
    role: str
    reliability: float
    r: float
    s: float
    b: float
    d: float
    u: float
    epoch: int = 0
    """World reset generation when the request was built; stale results are dropped."""

    def to_payload(self) -> dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "role": self.role,
            "r": self.r,
            "s": self.s,
            "b": self.b,
            "d": self.d,
            "u": self.u,
            "prompt": build_prompt(self),
        }


@dataclass(frozen=True)
class LabelResponse:
    handle: str
    gloss: str


def build_prompt(request: LabelRequest) -> str:
    return (
        "Analyze this network node:\n"
        f"Role: {request.role} (intended behavior context)\n"
        f"Reliability (ground truth): {request.reliability * 100:.0f}%\n"
        "Reputation stats:\n"
        f"- Positive evidence: {request.r:.1f}\n"
        f"- Negative evidence: {request.s:.1f}\n"
        f"- Uncertainty: {request.u:.2f}\n"
        'Generate a short "Handle" (name) and a one-sentence "Gloss" (description) '
        "for this entity based on its reputation. High trust: a noble or technical name. "
        "Low trust: a glitchy or warning name. Unknown: a mysterious name. "
        'Respond as JSON: {"handle": ..., "gloss": ...}.'
    )


def parse_label_response(data: Any) -> LabelResponse:
    """Validate the provider payload. Raises ExternalServiceError when unusable."""
    if not isinstance(data, dict):
        raise ExternalServiceError("label provider returned a non-object payload")
    handle = data.get("handle")
    if not isinstance(handle, str) or not handle.strip():
        raise ExternalServiceError("label provider returned no handle")
    gloss = data.get("gloss")
    if not isinstance(gloss, str):
        gloss = ""
    return LabelResponse(handle=handle.strip()[:MAX_HANDLE_LEN], gloss=gloss.strip()[:MAX_GLOSS_LEN])


class LabelProvider:
    """Interface: turn a LabelRequest into a LabelResponse or raise ExternalServiceError."""

    def generate(self, request: LabelRequest) -> LabelResponse:
        raise NotImplementedError


class HttpLabelProvider(LabelProvider):
    """JSON-over-HTTP label provider (httpx)."""

    def __init__(
        self,
        url: str,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        client: httpx.Client | None = None,
    ) -> None:
        if not url:
            raise ValueError("label provider url must be non-empty")
        self.url = url.rstrip("/")
        self.timeout_sec = timeout_sec
        self._client = client

    def _post(self, client: httpx.Client, payload: dict[str, Any]) -> Any:
        resp = client.post(self.url, json=payload)
        resp.raise_for_status()
        return resp.json()

    def generate(self, request: LabelRequest) -> LabelResponse:
        payload = request.to_payload()
        try:
            if self._client is not None:
                data = self._post(self._client, payload)
            else:
                with httpx.Client(timeout=self.timeout_sec) as client:
                    data = self._post(client, payload)
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"label provider request failed: {e}") from e
        except ValueError as e:
            raise ExternalServiceError(f"label provider returned invalid JSON: {e}") from e
        return parse_label_response(data)


class LabelOverrideService:
    """Asynchronous override requests. One in-flight request per agent."""

    def __init__(
        self,
        world: "World",
        provider: LabelProvider | None,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> None:
        self.world = world
        self.provider = provider
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="label-provider")
        self._lock = threading.Lock()
        self._in_flight: set[str] = set()

    @property
    def enabled(self) -> bool:
        return self.provider is not None

    def pending(self, agent_id: str) -> bool:
        with self._lock:
            return agent_id in self._in_flight

    def request(self, agent_id: str) -> Future[bool] | None:
        """
        Submit a label request for agent_id.

        Raises AgentNotFoundError for an unknown agent. Returns None when no
        provider is configured or a request for this agent is already running.
        Raises RuntimeError once the service has been shut down.
        """
        req = self.world.label_request(agent_id)
        if self.provider is None:
            logger.info("label_provider_disabled", agent_id=agent_id)
            return None
        with self._lock:
            if agent_id in self._in_flight:
                logger.debug("label_request_already_in_flight", agent_id=agent_id)
                return None
            self._in_flight.add(agent_id)
        try:
            future = self._executor.submit(self._run, req)
        except RuntimeError:
            # executor already shut down
            with self._lock:
                self._in_flight.discard(agent_id)
            logger.warning("label_request_rejected", agent_id=agent_id)
            raise
        logger.info("label_request_submitted", agent_id=agent_id)
        return future

    def _run(self, req: LabelRequest) -> bool:
        log = bind_agent(logger, req.agent_id)
        try:
            resp = self.provider.generate(req)
            applied = self.world.apply_label_override(req.agent_id, resp.handle, resp.gloss, epoch=req.epoch)
            log.info("label_request_done", applied=applied, handle=resp.handle)
            return applied
        except ExternalServiceError as e:
            log.warning("label_request_failed", error=str(e))
            return False
        except Exception as e:
            log.exception("label_request_error", error=str(e))
            return False
        finally:
            with self._lock:
                self._in_flight.discard(req.agent_id)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
