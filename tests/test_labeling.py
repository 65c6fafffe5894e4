"""
Tests for the external label provider: HTTP round trip via httpx.MockTransport,
failure fallback to the heuristic label, in-flight dedupe and stale results.
"""

from __future__ import annotations

import json
import threading

import httpx
import pytest

from trustflow.core.exceptions import AgentNotFoundError, ExternalServiceError
from trustflow.labeling.provider import (
    MAX_HANDLE_LEN,
    HttpLabelProvider,
    LabelOverrideService,
    LabelProvider,
    LabelResponse,
    parse_label_response,
)

PROVIDER_URL = "http://labels.test/generate"


def _http_provider(handler) -> HttpLabelProvider:
    return HttpLabelProvider(PROVIDER_URL, client=httpx.Client(transport=httpx.MockTransport(handler)))


class _BlockingProvider(LabelProvider):
    """Holds every request until release is set."""

    def __init__(self) -> None:
        self.release = threading.Event()
        self.calls = 0

    def generate(self, request):
        self.calls += 1
        self.release.wait(timeout=5)
        return LabelResponse(handle="Slow Oracle", gloss="Took its time.")


@pytest.fixture
def make_service(world):
    services: list[LabelOverrideService] = []

    def factory(provider):
        service = LabelOverrideService(world, provider)
        services.append(service)
        return service

    yield factory
    for s in services:
        s.shutdown(wait=True)


def test_successful_response_sets_override(world, make_service):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(json.loads(request.content))
        return httpx.Response(200, json={"handle": "Iron Sentinel", "gloss": "Keeps its word."})

    service = make_service(_http_provider(handler))
    assert service.request("N1").result(timeout=5) is True
    assert seen["agent_id"] == "N1"
    assert "prompt" in seen
    label = world.effective_label("N1")
    assert label.source == "override"
    assert (label.handle, label.gloss) == ("Iron Sentinel", "Keeps its word.")
    snap_agent = next(a for a in world.snapshot()["agents"] if a["id"] == "N1")
    assert snap_agent["effective_label"]["handle"] == "Iron Sentinel"


@pytest.mark.parametrize(
    "status,body",
    [
        (500, {"text": "upstream down"}),
        (200, {"json": {"gloss": "no handle"}}),
        (200, {"json": ["not", "an", "object"]}),
        (200, {"text": "not json"}),
    ],
)
def test_failed_request_keeps_heuristic_label(world, make_service, status, body):
    service = make_service(_http_provider(lambda request: httpx.Response(status, **body)))
    assert service.request("N2").result(timeout=5) is False
    assert world.effective_label("N2").source == "heuristic"
    assert not service.pending("N2")


def test_empty_gloss_falls_back_to_heuristic_gloss(world, make_service):
    service = make_service(_http_provider(lambda request: httpx.Response(200, json={"handle": "Nameless"})))
    heuristic_gloss = world.effective_label("N3").gloss
    assert service.request("N3").result(timeout=5) is True
    label = world.effective_label("N3")
    assert label.handle == "Nameless"
    assert label.gloss == heuristic_gloss


def test_one_request_in_flight_per_agent(make_service):
    provider = _BlockingProvider()
    service = make_service(provider)
    first = service.request("N1")
    assert first is not None
    assert service.pending("N1")
    assert service.request("N1") is None
    provider.release.set()
    assert first.result(timeout=5) is True
    assert not service.pending("N1")
    assert provider.calls == 1


def test_result_after_reset_is_dropped(world, make_service):
    provider = _BlockingProvider()
    service = make_service(provider)
    future = service.request("N1")
    world.reset()
    provider.release.set()
    assert future.result(timeout=5) is False
    assert world.effective_label("N1").source == "heuristic"


def test_disabled_provider_and_unknown_agent(make_service):
    service = make_service(None)
    assert not service.enabled
    assert service.request("N1") is None
    with pytest.raises(AgentNotFoundError):
        service.request("N99")


def test_parse_label_response_truncates_and_validates():
    resp = parse_label_response({"handle": "  " + "x" * 100, "gloss": "ok"})
    assert len(resp.handle) == MAX_HANDLE_LEN
    with pytest.raises(ExternalServiceError):
        parse_label_response({"handle": "   "})
    with pytest.raises(ExternalServiceError):
        parse_label_response("Iron Sentinel")


def test_http_provider_requires_url():
    with pytest.raises(ValueError):
        HttpLabelProvider("")


def test_request_after_shutdown_leaves_nothing_in_flight(make_service):
    """A rejected submit must not leave the agent marked as pending."""
    provider = _BlockingProvider()
    service = make_service(provider)
    service.shutdown(wait=True)
    with pytest.raises(RuntimeError):
        service.request("N1")
    assert not service.pending("N1")
    assert provider.calls == 0
