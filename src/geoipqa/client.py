"""Thin HTTP client for the search engine's JSON API.

The client never decides pass/fail. It returns parsed responses (status
code, raw body, decoded JSON) and converts transport failures into
ServiceConnectionError so callers can classify them at the step boundary.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from geoipqa.errors import (
    ErrorContext,
    RequestFailedError,
    ServiceConnectionError,
    ServiceTimeoutError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApiResponse:
    """A decoded response from the search engine.

    Attributes:
        status_code: HTTP status code.
        body: Raw response text, kept for diagnostics.
        data: Decoded JSON, or None when the body is not JSON.
    """

    status_code: int
    body: str
    data: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def acknowledged(self) -> bool:
        """True only for a JSON object with ``"acknowledged": true``."""
        return isinstance(self.data, dict) and self.data.get("acknowledged") is True

    def get(self, key: str, default: Any = None) -> Any:
        if isinstance(self.data, dict):
            return self.data.get(key, default)
        return default

    def raise_for_status(self) -> ApiResponse:
        """Return self, or raise RequestFailedError for a non-2xx status."""
        if not self.ok:
            raise RequestFailedError(
                f"HTTP {self.status_code}: {self.body[:200]}",
                status_code=self.status_code,
                body=self.body,
            )
        return self


class SearchClient:
    """Client for the subset of the search engine API the harness drives.

    Example:
        >>> with SearchClient("http://localhost:9200") as es:
        ...     es.cluster_health().get("status")
        'green'
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Accept": "application/json",
                "User-Agent": "geoipqa/1.0",
            },
        )

    def __enter__(self) -> SearchClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def request(
        self,
        method: str,
        path: str,
        json_body: Any = None,
        params: dict[str, Any] | None = None,
    ) -> ApiResponse:
        """Issue a request and decode the response.

        Raises:
            ServiceTimeoutError: The request timed out.
            ServiceConnectionError: The service could not be reached.
        """
        url = path if path.startswith("/") else f"/{path}"
        context = ErrorContext(request={"method": method, "url": f"{self.base_url}{url}"})
        logger.debug(f"{method} {self.base_url}{url}")
        try:
            resp = self._client.request(method, url, json=json_body, params=params)
        except httpx.TimeoutException as exc:
            raise ServiceTimeoutError(
                f"{method} {url} timed out after {self.timeout}s",
                context=context,
                cause=exc,
            ) from exc
        except (httpx.TransportError, OSError) as exc:
            raise ServiceConnectionError(
                f"Could not reach {self.base_url}: {exc}",
                context=context,
                cause=exc,
            ) from exc

        text = resp.text
        try:
            data = json.loads(text) if text else None
        except json.JSONDecodeError:
            data = None
        return ApiResponse(status_code=resp.status_code, body=text, data=data)

    # -- cluster ---------------------------------------------------------

    def info(self) -> ApiResponse:
        return self.request("GET", "/")

    def version(self) -> str | None:
        """Server version number from the root endpoint, if reported.

        Raises:
            RequestFailedError: The root endpoint answered with an error status.
        """
        version = self.info().raise_for_status().get("version")
        if isinstance(version, dict):
            return version.get("number")
        return None

    def cluster_health(self) -> ApiResponse:
        return self.request("GET", "/_cluster/health")

    def put_cluster_settings(self, persistent: dict[str, Any]) -> ApiResponse:
        return self.request("PUT", "/_cluster/settings", json_body={"persistent": persistent})

    # -- ingest ----------------------------------------------------------

    def put_pipeline(self, name: str, body: dict[str, Any]) -> ApiResponse:
        return self.request("PUT", f"/_ingest/pipeline/{quote(name)}", json_body=body)

    def delete_pipeline(self, name: str) -> ApiResponse:
        return self.request("DELETE", f"/_ingest/pipeline/{quote(name)}")

    def geoip_stats(self) -> ApiResponse:
        return self.request("GET", "/_ingest/geoip/stats")

    def put_index_template(self, name: str, body: dict[str, Any]) -> ApiResponse:
        return self.request("PUT", f"/_index_template/{quote(name)}", json_body=body)

    # -- documents -------------------------------------------------------

    def index_document(
        self,
        index: str,
        document: dict[str, Any],
        pipeline: str | None = None,
    ) -> ApiResponse:
        params = {"pipeline": pipeline} if pipeline else None
        return self.request("POST", f"/{quote(index)}/_doc", json_body=document, params=params)

    def search(
        self,
        index: str,
        query: dict[str, Any] | None = None,
        size: int = 10,
    ) -> ApiResponse:
        body: dict[str, Any] = {"size": size}
        if query is not None:
            body["query"] = query
        return self.request("POST", f"/{quote(index)}/_search", json_body=body)

    def search_by_id(self, index: str, doc_id: str) -> ApiResponse:
        return self.search(index, query={"ids": {"values": [doc_id]}}, size=1)

    def delete_index(self, index: str) -> ApiResponse:
        return self.request("DELETE", f"/{quote(index)}")


def search_hits(response: ApiResponse) -> list[dict[str, Any]]:
    """The ``hits.hits`` list of a search response, or ``[]``."""
    hits = response.get("hits")
    if isinstance(hits, dict):
        inner = hits.get("hits")
        if isinstance(inner, list):
            return [h for h in inner if isinstance(h, dict)]
    return []
