"""Tests for the search engine HTTP client."""

from __future__ import annotations

import httpx
import pytest
from helpers import ACK, hits, make_client

from geoipqa.client import ApiResponse, search_hits
from geoipqa.errors import RequestFailedError, ServiceConnectionError, ServiceTimeoutError


class TestApiResponse:
    """Tests for ApiResponse helpers."""

    def test_acknowledged_requires_literal_true(self):
        assert ApiResponse(200, "", {"acknowledged": True}).acknowledged
        assert not ApiResponse(200, "", {"acknowledged": "true"}).acknowledged
        assert not ApiResponse(200, "", {"acknowledged": False}).acknowledged
        assert not ApiResponse(200, "", None).acknowledged
        assert not ApiResponse(200, "", ["acknowledged"]).acknowledged

    def test_raise_for_status(self):
        response = ApiResponse(200, "{}", {})
        assert response.raise_for_status() is response

        with pytest.raises(RequestFailedError) as exc_info:
            ApiResponse(401, "missing authentication credentials").raise_for_status()
        assert exc_info.value.status_code == 401
        assert "HTTP 401" in str(exc_info.value)

    def test_get_on_non_object(self):
        assert ApiResponse(200, "x", None).get("status", "none") == "none"

    def test_ok(self):
        assert ApiResponse(201, "").ok
        assert not ApiResponse(400, "").ok


class TestSearchClient:
    """Tests for SearchClient requests."""

    def test_put_pipeline_sends_body(self, engine, client):
        engine.on("PUT", "/_ingest/pipeline/geoip-test", ACK)

        response = client.put_pipeline("geoip-test", {"processors": []})

        assert response.acknowledged
        assert engine.bodies("PUT", "/_ingest/pipeline/geoip-test") == [{"processors": []}]

    def test_index_document_with_pipeline(self, engine, client):
        engine.on("POST", "/geoip-test-index/_doc", {"result": "created", "_id": "abc"})

        response = client.index_document("geoip-test-index", {"ip": "8.8.8.8"}, pipeline="geoip-test")

        assert response.get("_id") == "abc"
        request = engine.calls("POST", "/geoip-test-index/_doc")[0]
        assert request.url.params["pipeline"] == "geoip-test"

    def test_search_by_id(self, engine, client):
        engine.on("POST", "/idx/_search", hits({"ip": "1.1.1.1"}))

        response = client.search_by_id("idx", "doc-1")

        assert engine.bodies("POST", "/idx/_search") == [
            {"size": 1, "query": {"ids": {"values": ["doc-1"]}}}
        ]
        assert search_hits(response)[0]["_source"] == {"ip": "1.1.1.1"}

    def test_cluster_settings_are_persistent(self, engine, client):
        engine.on("PUT", "/_cluster/settings", ACK)

        client.put_cluster_settings({"ingest.geoip.downloader.enabled": True})

        assert engine.bodies("PUT", "/_cluster/settings") == [
            {"persistent": {"ingest.geoip.downloader.enabled": True}}
        ]

    def test_version(self, engine, client):
        engine.on("GET", "/", {"version": {"number": "9.3.0"}})
        assert client.version() == "9.3.0"

    def test_non_json_body(self, engine, client):
        engine.on("GET", "/_cluster/health", httpx.Response(502, text="Bad Gateway"))

        response = client.cluster_health()

        assert response.status_code == 502
        assert response.body == "Bad Gateway"
        assert response.data is None

    def test_connection_error(self):
        def refuse(request):
            raise httpx.ConnectError("Connection refused", request=request)

        with make_client(refuse) as client:
            with pytest.raises(ServiceConnectionError) as exc_info:
                client.cluster_health()

        assert "Could not reach" in str(exc_info.value)
        assert exc_info.value.context.request["method"] == "GET"

    def test_timeout(self):
        def slow(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with make_client(slow) as client:
            with pytest.raises(ServiceTimeoutError):
                client.geoip_stats()

    def test_trailing_slash_stripped(self, engine):
        with make_client(engine, base_url="http://es.test:9200/") as client:
            assert client.base_url == "http://es.test:9200"


class TestSearchHits:
    """Tests for search_hits."""

    def test_malformed_responses(self):
        assert search_hits(ApiResponse(200, "", None)) == []
        assert search_hits(ApiResponse(200, "", {"hits": []})) == []
        assert search_hits(ApiResponse(200, "", {"hits": {"hits": "x"}})) == []
