"""Tests for pipeline and template provisioning."""

from __future__ import annotations

import httpx
from helpers import ACK, make_client

from geoipqa.core.models import GeoipLookup, IndexTemplateSpec, PipelineSpec
from geoipqa.provisioner import DOWNLOADER_SETTING, PipelineProvisioner

COMPAT = PipelineSpec(
    name="geoip-compat",
    field="source.ip",
    target_field="source.geo",
    extra_lookups=(GeoipLookup("source.as", "GeoLite2-ASN.mmdb"),),
)

REJECTED = httpx.Response(400, json={"error": {"type": "parse_exception"}, "status": 400})


class TestProvision:
    """Tests for PipelineProvisioner.provision."""

    def test_acknowledged_primary(self, engine, client):
        engine.on("PUT", "/_ingest/pipeline/geoip-compat", ACK)

        result = PipelineProvisioner(client).provision(COMPAT, COMPAT.simplified())

        assert result.acknowledged
        assert result.attempts == 1
        assert not result.used_fallback
        assert len(engine.calls("PUT", "/_ingest/pipeline/geoip-compat")) == 1

    def test_fallback_attempted_exactly_once(self, engine, client):
        engine.on("PUT", "/_ingest/pipeline/geoip-compat", REJECTED, ACK)

        result = PipelineProvisioner(client).provision(COMPAT, COMPAT.simplified())

        assert result.acknowledged
        assert result.used_fallback
        assert result.attempts == 2
        bodies = engine.bodies("PUT", "/_ingest/pipeline/geoip-compat")
        assert len(bodies) == 2
        assert len(bodies[0]["processors"]) == 2
        assert bodies[1]["processors"] == [{"geoip": {"field": "source.ip", "target_field": "geoip"}}]

    def test_fallback_rejected_too(self, engine, client):
        engine.on("PUT", "/_ingest/pipeline/geoip-compat", REJECTED)

        result = PipelineProvisioner(client).provision(COMPAT, COMPAT.simplified())

        assert not result.acknowledged
        assert result.attempts == 2
        assert "parse_exception" in result.body
        assert len(engine.calls("PUT", "/_ingest/pipeline/geoip-compat")) == 2

    def test_no_fallback_given(self, engine, client):
        engine.on("PUT", "/_ingest/pipeline/geoip-compat", REJECTED)

        result = PipelineProvisioner(client).provision(COMPAT)

        assert not result.acknowledged
        assert result.attempts == 1

    def test_acknowledged_false_is_not_success(self, engine, client):
        engine.on("PUT", "/_ingest/pipeline/geoip-compat", {"acknowledged": False})

        result = PipelineProvisioner(client).provision(COMPAT)

        assert not result.acknowledged

    def test_connection_error_is_unacknowledged(self):
        def refuse(request):
            raise httpx.ConnectError("Connection refused", request=request)

        with make_client(refuse) as client:
            result = PipelineProvisioner(client).provision(COMPAT, COMPAT.simplified())

        assert not result.acknowledged
        assert result.attempts == 2
        assert "Could not reach" in result.body


class TestTemplatesAndSettings:
    """Tests for template and cluster setting provisioning."""

    def test_provision_template(self, engine, client):
        engine.on("PUT", "/_index_template/logs-geoip-test", ACK)
        spec = IndexTemplateSpec(name="logs-geoip-test", index_patterns=("logs-geoip.test-*",), pipeline="p")

        result = PipelineProvisioner(client).provision_template(spec)

        assert result.acknowledged
        assert engine.bodies("PUT", "/_index_template/logs-geoip-test")[0]["data_stream"] == {}

    def test_enable_downloader(self, engine, client):
        engine.on("PUT", "/_cluster/settings", ACK)

        result = PipelineProvisioner(client).enable_downloader()

        assert result.acknowledged
        assert engine.bodies("PUT", "/_cluster/settings") == [{"persistent": {DOWNLOADER_SETTING: True}}]
