"""Index a document through a GeoIP pipeline and classify the enrichment.

Classification is tri-state:

- the enrichment namespace carries a country or city identifier: PASSED
- a ``_geoip_database_unavailable*`` tag is present: SOFT_PASSED, because
  the background database download has not finished (an environment
  condition, not a plugin regression)
- anything else: FAILED
"""

from __future__ import annotations

import json
import logging
import re
import time
from pathlib import Path
from typing import Any

from geoipqa.client import ApiResponse, SearchClient, search_hits
from geoipqa.core.models import OutcomeStatus, Scenario, VerificationOutcome
from geoipqa.errors import ServiceConnectionError, WaitTimeoutError
from geoipqa.probe import Sleeper, poll_until

logger = logging.getLogger(__name__)

UNAVAILABLE_TAG_PREFIX = "_geoip_database_unavailable"


def resolve_field(source: dict[str, Any], path: str) -> Any:
    """Look up a dotted field path in a document ``_source``.

    Handles both nested objects (``{"source": {"geo": ...}}``) and literal
    dotted keys (``{"source.geo": ...}``), which the search engine may
    return depending on how the field was written.
    """
    if path in source:
        return source[path]
    head, _, rest = path.partition(".")
    if rest and isinstance(source.get(head), dict):
        return resolve_field(source[head], rest)
    return None


def unavailable_tags(source: dict[str, Any]) -> list[str]:
    tags = source.get("tags")
    if isinstance(tags, str):
        tags = [tags]
    if not isinstance(tags, list):
        return []
    return [t for t in tags if isinstance(t, str) and t.startswith(UNAVAILABLE_TAG_PREFIX)]


def identifier(namespace: dict[str, Any]) -> str | None:
    """``"US/Mountain View"``-style summary of a namespace, if it has one."""
    country = namespace.get("country_iso_code") or namespace.get("country_code2") or namespace.get(
        "country_name"
    )
    city = namespace.get("city_name")
    if not country and not city:
        return None
    return f"{country or 'N/A'}/{city or 'N/A'}"


def classify(source: dict[str, Any], namespace: str) -> tuple[OutcomeStatus, str]:
    """Classify one enriched document.

    Args:
        source: The document ``_source``.
        namespace: Dotted path of the enrichment target field.

    Returns:
        (status, detail) tuple.
    """
    enrichment = resolve_field(source, namespace)
    if isinstance(enrichment, dict) and enrichment:
        ident = identifier(enrichment)
        if ident:
            return OutcomeStatus.PASSED, f"{namespace} present: {ident}"

    tags = unavailable_tags(source)
    if tags:
        return OutcomeStatus.SOFT_PASSED, f"GeoIP database still unavailable ({', '.join(tags)})"

    if isinstance(enrichment, dict) and enrichment:
        return OutcomeStatus.FAILED, f"{namespace} present but has no country/city identifier"
    return OutcomeStatus.FAILED, f"{namespace} not present in document"


class EnrichmentVerifier:
    """Submit a record and verify that the GeoIP namespace was added.

    Args:
        client: Search engine client.
        settle_attempts: Maximum searches while waiting for the indexed
            document to become visible.
        settle_interval: Seconds between those searches.
        results_dir: If set, each search response is written here and its
            path recorded as the outcome artifact.
        sleep: Sleep function, replaced in tests.
    """

    def __init__(
        self,
        client: SearchClient,
        settle_attempts: int = 10,
        settle_interval: float = 1.0,
        results_dir: Path | None = None,
        sleep: Sleeper = time.sleep,
    ) -> None:
        self.client = client
        self.settle_attempts = settle_attempts
        self.settle_interval = settle_interval
        self.results_dir = results_dir
        self._sleep = sleep

    def verify(
        self,
        scenario: Scenario,
        check: str,
        index: str,
        document: dict[str, Any],
        namespace: str,
        pipeline: str | None = None,
    ) -> VerificationOutcome:
        """Index ``document`` and classify the stored copy.

        Always returns exactly one outcome; connection errors, rejected
        documents and documents that never become searchable are FAILED.
        """

        def outcome(status: OutcomeStatus, detail: str, artifact: str | None = None) -> VerificationOutcome:
            return VerificationOutcome(
                scenario=scenario, check=check, status=status, detail=detail, artifact=artifact
            )

        try:
            indexed = self.client.index_document(index, document, pipeline=pipeline)
        except ServiceConnectionError as exc:
            return outcome(OutcomeStatus.FAILED, f"Failed to index document: {exc}")

        if indexed.get("result") != "created":
            return outcome(
                OutcomeStatus.FAILED,
                f"Failed to index document (HTTP {indexed.status_code})",
                artifact=indexed.body[:500],
            )
        doc_id = indexed.get("_id")
        logger.info(f"{scenario}: document {doc_id} indexed into {index}")

        try:
            found = poll_until(
                lambda: self.client.search_by_id(index, doc_id),
                lambda resp: bool(search_hits(resp)),
                attempts=self.settle_attempts,
                interval=self.settle_interval,
                description=f"document {doc_id} to become searchable in {index}",
                sleep=self._sleep,
            )
        except WaitTimeoutError as exc:
            return outcome(OutcomeStatus.FAILED, str(exc.message))

        artifact = self._save(scenario, check, found)
        source = search_hits(found)[0].get("_source") or {}
        status, detail = classify(source, namespace)

        if status is OutcomeStatus.SOFT_PASSED:
            logger.warning(f"{scenario}: {detail}")
            logger.info("  This can happen if MaxMind download is slow or blocked")
            self._log_stats()
        elif status is OutcomeStatus.FAILED:
            logger.warning(f"{scenario}: {detail}")

        return outcome(status, detail, artifact)

    def _save(self, scenario: Scenario, check: str, response: ApiResponse) -> str | None:
        if self.results_dir is None:
            return None
        self.results_dir.mkdir(parents=True, exist_ok=True)
        slug = re.sub(r"[^A-Za-z0-9._-]+", "_", f"{scenario.label}_{check}")
        path = self.results_dir / f"{slug}.json"
        payload = response.data if response.data is not None else response.body
        path.write_text(json.dumps(payload, indent=2) if not isinstance(payload, str) else payload)
        return str(path)

    def _log_stats(self) -> None:
        try:
            stats = self.client.geoip_stats()
        except ServiceConnectionError as exc:
            logger.info(f"  GeoIP stats unavailable: {exc}")
            return
        logger.info(f"  GeoIP stats: {stats.body}")
