"""Shared fakes for geoipqa tests."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx

from geoipqa.client import SearchClient
from geoipqa.core.models import OutcomeStatus, Scenario, VerificationOutcome

Handler = Callable[[httpx.Request], httpx.Response]


class FakeSleep:
    """Records requested sleeps instead of sleeping."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeSearchEngine:
    """In-memory stand-in for the search engine's JSON API.

    Routes are matched on (method, path); unmatched requests get a 404.
    A route is a dict (JSON 200), an httpx.Response, a callable taking the
    request, or a list of any of those served in order (the last one
    repeats).
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Any] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, *responses: Any) -> None:
        self.routes[(method, path)] = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"error": "not found"})
        route = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(route):
            route = route(request)
        if isinstance(route, httpx.Response):
            return route
        return httpx.Response(200, json=route)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def bodies(self, method: str, path: str) -> list[Any]:
        return [json.loads(r.content) if r.content else None for r in self.calls(method, path)]


def make_client(handler: Handler, base_url: str = "http://es.test:9200") -> SearchClient:
    return SearchClient(base_url, transport=httpx.MockTransport(handler))


def hits(*sources: dict[str, Any]) -> dict[str, Any]:
    """A search response carrying one hit per ``_source``."""
    return {
        "hits": {
            "total": {"value": len(sources)},
            "hits": [{"_id": f"doc-{i}", "_source": s} for i, s in enumerate(sources, 1)],
        }
    }


def created(doc_id: str = "doc-1") -> dict[str, Any]:
    return {"_id": doc_id, "result": "created"}


ACK = {"acknowledged": True}


def outcome(
    scenario: Scenario,
    check: str,
    status: OutcomeStatus = OutcomeStatus.PASSED,
    detail: str = "",
) -> VerificationOutcome:
    return VerificationOutcome(scenario=scenario, check=check, status=status, detail=detail)
