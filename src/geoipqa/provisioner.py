"""Submit declarative configuration (pipelines, templates, settings)."""

from __future__ import annotations

import logging
from collections.abc import Callable

from geoipqa.client import ApiResponse, SearchClient
from geoipqa.core.models import IndexTemplateSpec, PipelineSpec, ProvisionResult
from geoipqa.errors import ServiceConnectionError

logger = logging.getLogger(__name__)

DOWNLOADER_SETTING = "ingest.geoip.downloader.enabled"


class PipelineProvisioner:
    """Create ingest pipelines and index templates, checking acknowledgement.

    A request succeeds only when the parsed response carries
    ``"acknowledged": true``. Connection failures are reported as an
    unacknowledged result with the error text as body, so a dead node is
    classified the same way as a rejection.
    """

    def __init__(self, client: SearchClient) -> None:
        self.client = client

    def _submit(self, what: str, send: Callable[[], ApiResponse]) -> ProvisionResult:
        try:
            response = send()
        except ServiceConnectionError as exc:
            logger.error(f"{what}: {exc}")
            return ProvisionResult(acknowledged=False, body=str(exc))
        if not response.acknowledged:
            logger.warning(f"{what} not acknowledged (HTTP {response.status_code}): {response.body}")
        return ProvisionResult(acknowledged=response.acknowledged, body=response.body)

    def provision(
        self,
        spec: PipelineSpec,
        fallback: PipelineSpec | None = None,
    ) -> ProvisionResult:
        """Create ``spec``; if rejected, try ``fallback`` exactly once.

        Args:
            spec: Primary pipeline definition.
            fallback: Simpler definition to try if the primary is rejected.

        Returns:
            ProvisionResult for whichever request was last made.
        """
        logger.info(f"Creating GeoIP ingest pipeline {spec.name}...")
        primary = self._submit(
            f"Pipeline {spec.name}",
            lambda: self.client.put_pipeline(spec.name, spec.to_body()),
        )
        if primary.acknowledged or fallback is None:
            return primary

        logger.info(f"Trying simpler pipeline {fallback.name}...")
        second = self._submit(
            f"Fallback pipeline {fallback.name}",
            lambda: self.client.put_pipeline(fallback.name, fallback.to_body()),
        )
        return ProvisionResult(
            acknowledged=second.acknowledged,
            body=second.body,
            used_fallback=True,
            attempts=2,
        )

    def provision_template(self, spec: IndexTemplateSpec) -> ProvisionResult:
        logger.info(f"Creating data stream template {spec.name}...")
        return self._submit(
            f"Index template {spec.name}",
            lambda: self.client.put_index_template(spec.name, spec.to_body()),
        )

    def enable_downloader(self) -> ProvisionResult:
        """Turn on the background GeoIP database downloader.

        Advisory only: the setting may already be on, or locked by the node
        configuration, so the caller logs rather than fails.
        """
        logger.info("Enabling GeoIP downloader...")
        return self._submit(
            "GeoIP downloader setting",
            lambda: self.client.put_cluster_settings({DOWNLOADER_SETTING: True}),
        )
