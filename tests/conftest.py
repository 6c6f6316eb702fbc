"""Pytest fixtures for geoipqa tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from helpers import FakeSearchEngine, FakeSleep, make_client

from geoipqa.client import SearchClient
from geoipqa.config import HarnessConfig
from geoipqa.core.models import Scenario


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
def engine() -> FakeSearchEngine:
    return FakeSearchEngine()


@pytest.fixture
def client(engine: FakeSearchEngine) -> SearchClient:
    c = make_client(engine)
    yield c
    c.close()


@pytest.fixture
def scenario() -> Scenario:
    return Scenario(es_version="8.19", ls_version=None, label="es-8.19")


@pytest.fixture
def config(tmp_path: Path) -> HarnessConfig:
    """Config with instant polling and all paths under tmp_path."""
    return HarnessConfig(
        results_dir=str(tmp_path / "results"),
        plugin_dir=str(tmp_path / "plugin"),
        gem_dir=str(tmp_path / "gems"),
        probe_attempts=3,
        probe_interval=0.0,
        database_wait_attempts=2,
        database_wait_interval=0.0,
        settle_attempts=3,
        settle_interval=0.0,
        logstash_wait_attempts=2,
        logstash_wait_interval=0.0,
    )
