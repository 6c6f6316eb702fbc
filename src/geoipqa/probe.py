"""Readiness probing and bounded polling.

All waiting in the harness goes through ``poll_until``: a fixed number of
attempts at a fixed interval, with no sleep after the final attempt. The
sleep function is injectable so tests run instantly.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

from geoipqa.client import ApiResponse, SearchClient
from geoipqa.core.models import ProbeResult
from geoipqa.errors import HarnessError, WaitTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleeper = Callable[[float], None]

CITY_DATABASE = "GeoLite2-City.mmdb"


def poll_until(
    fetcher: Callable[[], T],
    condition: Callable[[T], bool],
    attempts: int,
    interval: float,
    description: str = "condition to be met",
    sleep: Sleeper = time.sleep,
    on_attempt: Callable[[int, T | None], None] | None = None,
) -> T:
    """Fetch a value until ``condition`` holds or attempts run out.

    Harness errors raised by ``fetcher`` (the service is not up yet) count
    as a failed attempt; anything else propagates.

    Args:
        fetcher: Produces the current value.
        condition: Predicate on the fetched value.
        attempts: Maximum number of fetches; must be at least 1.
        interval: Seconds slept between fetches.
        description: Used in the timeout error message.
        sleep: Sleep function, replaced in tests.
        on_attempt: Called after every unsuccessful attempt with the attempt
            number and the last value (None if the fetch raised).

    Returns:
        The first value satisfying ``condition``.

    Raises:
        WaitTimeoutError: After ``attempts`` unsuccessful fetches.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    last_value: T | None = None
    for attempt in range(1, attempts + 1):
        value: T | None = None
        try:
            value = fetcher()
        except HarnessError as exc:
            logger.debug(f"Waiting for {description}: attempt {attempt} failed: {exc}")
        else:
            last_value = value
            if condition(value):
                return value

        if on_attempt is not None:
            on_attempt(attempt, value)
        if attempt < attempts:
            sleep(interval)

    raise WaitTimeoutError(
        condition_description=description,
        attempts=attempts,
        interval=interval,
        last_value=last_value,
    )


def has_status_marker(response: ApiResponse) -> bool:
    """A health response counts as ready once it reports a ``status``."""
    return bool(response.get("status"))


class ReadinessProber:
    """Poll a search engine's health endpoint until it reports a status.

    Timeout is reported through ``ProbeResult.ready``, never raised; the
    caller decides whether to proceed.

    Example:
        >>> prober = ReadinessProber(max_attempts=30, interval=2.0)
        >>> result = prober.probe(SearchClient("http://localhost:9200"))
        >>> result.ready, result.elapsed_attempts
        (True, 4)
    """

    def __init__(
        self,
        max_attempts: int = 30,
        interval: float = 2.0,
        sleep: Sleeper = time.sleep,
    ) -> None:
        self.max_attempts = max_attempts
        self.interval = interval
        self._sleep = sleep

    def probe(self, client: SearchClient) -> ProbeResult:
        attempts = 0

        def fetch() -> ApiResponse:
            nonlocal attempts
            attempts += 1
            return client.cluster_health()

        try:
            response = poll_until(
                fetch,
                has_status_marker,
                attempts=self.max_attempts,
                interval=self.interval,
                description=f"{client.base_url} to report cluster health",
                sleep=self._sleep,
            )
        except WaitTimeoutError as exc:
            logger.warning(str(exc))
            return ProbeResult(ready=False, elapsed_attempts=attempts)

        logger.info(
            f"{client.base_url} ready (status={response.get('status')}) after {attempts} attempt(s)"
        )
        return ProbeResult(ready=True, elapsed_attempts=attempts)


def database_names(stats: ApiResponse) -> set[str]:
    """Names of GeoIP databases fully downloaded on any node."""
    names: set[str] = set()
    nodes = stats.get("nodes")
    if not isinstance(nodes, dict):
        return names
    for node in nodes.values():
        if not isinstance(node, dict):
            continue
        for db in node.get("databases", []) or []:
            if isinstance(db, dict) and db.get("name"):
                names.add(db["name"])
    return names


def temp_database_files(stats: ApiResponse) -> set[str]:
    """Database files still being downloaded (``*.tmp``)."""
    files: set[str] = set()
    nodes = stats.get("nodes")
    if not isinstance(nodes, dict):
        return files
    for node in nodes.values():
        if isinstance(node, dict):
            files.update(f for f in node.get("files_in_temp", []) or [] if isinstance(f, str))
    return files


def wait_for_database(
    client: SearchClient,
    database: str = CITY_DATABASE,
    attempts: int = 60,
    interval: float = 2.0,
    sleep: Sleeper = time.sleep,
) -> bool:
    """Wait for the background downloader to finish ``database``.

    Returns False on timeout instead of raising: a missing database is an
    environment condition that the enrichment verifier classifies later.
    """

    def progress(attempt: int, stats: Any) -> None:
        if attempt % 10:
            return
        downloading = isinstance(stats, ApiResponse) and any(
            f.startswith(database) for f in temp_database_files(stats)
        )
        state = "still downloading" if downloading else "waiting"
        logger.info(f"  {database} {state}... ({attempt}/{attempts})")

    try:
        poll_until(
            client.geoip_stats,
            lambda stats: database in database_names(stats),
            attempts=attempts,
            interval=interval,
            description=f"{database} to download",
            sleep=sleep,
            on_attempt=progress,
        )
    except WaitTimeoutError:
        logger.warning(f"{database} may not be fully downloaded yet")
        return False

    logger.info(f"{database} is ready")
    return True
