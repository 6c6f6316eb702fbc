"""Tests for the docker compose manager."""

from __future__ import annotations

import subprocess
from unittest.mock import patch

import pytest

from geoipqa.errors import CommandError, ErrorCode
from geoipqa.infra import ComposeManager, DockerComposeError, DockerError, DockerNotFoundError


def _completed(returncode: int = 0, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def manager() -> ComposeManager:
    m = ComposeManager("docker-compose.yml", project_name="geoipqa")
    m._compose_cmd = ["docker", "compose"]
    return m


class TestDockerErrors:
    """Tests for the docker error types."""

    def test_hierarchy(self):
        assert issubclass(DockerError, CommandError)
        assert issubclass(DockerComposeError, DockerError)
        assert DockerNotFoundError().error_code is ErrorCode.DOCKER_FAILED
        assert DockerNotFoundError().suggestions


class TestComposeDetection:
    """Tests for compose command detection."""

    def test_prefers_v2(self):
        with patch("geoipqa.infra.docker.subprocess.run", return_value=_completed()) as run:
            assert ComposeManager().compose_cmd == ["docker", "compose"]
        assert run.call_count == 2

    def test_falls_back_to_docker_compose(self):
        results = [_completed(), _completed(returncode=1), _completed()]

        with patch("geoipqa.infra.docker.subprocess.run", side_effect=results):
            assert ComposeManager().compose_cmd == ["docker-compose"]

    def test_docker_missing(self):
        with patch("geoipqa.infra.docker.subprocess.run", side_effect=FileNotFoundError("docker")):
            with pytest.raises(DockerNotFoundError):
                ComposeManager().compose_cmd

    def test_detected_once(self):
        with patch("geoipqa.infra.docker.subprocess.run", return_value=_completed()) as run:
            manager = ComposeManager()
            manager.compose_cmd
            manager.compose_cmd
        assert run.call_count == 2


class TestComposeCommands:
    """Tests for compose lifecycle commands."""

    def test_start(self, manager):
        with patch("geoipqa.infra.docker.subprocess.run", return_value=_completed()) as run:
            manager.start(["elasticsearch-8", "logstash-8"])

        assert run.call_args.args[0] == [
            "docker", "compose", "-f", "docker-compose.yml", "-p", "geoipqa",
            "up", "-d", "elasticsearch-8", "logstash-8",
        ]

    def test_start_failure(self, manager):
        with patch("geoipqa.infra.docker.subprocess.run", return_value=_completed(1, stderr="port is already allocated")):
            with pytest.raises(DockerComposeError) as exc_info:
                manager.start(["elasticsearch-9"])

        assert exc_info.value.stderr == "port is already allocated"
        assert exc_info.value.returncode == 1

    def test_stop_removes_volumes(self, manager):
        with patch("geoipqa.infra.docker.subprocess.run", return_value=_completed()) as run:
            manager.stop()

        assert run.call_args.args[0][-2:] == ["down", "-v"]
        assert run.call_args.kwargs["timeout"] == 120

    def test_timeout(self, manager):
        with patch("geoipqa.infra.docker.subprocess.run", side_effect=subprocess.TimeoutExpired("docker", 300)):
            with pytest.raises(DockerError, match="timed out"):
                manager.start()

    def test_logs(self, manager):
        with patch("geoipqa.infra.docker.subprocess.run", return_value=_completed(0, "out\n", "err\n")) as run:
            assert manager.logs("logstash-8", tail=50) == "out\nerr\n"
        assert run.call_args.args[0][-4:] == ["logs", "--tail", "50", "logstash-8"]


class TestContainers:
    """Tests for container helpers."""

    def test_container_running(self, manager):
        with patch("geoipqa.infra.docker.subprocess.run", return_value=_completed(0, "ls-8-geoip-test\n")) as run:
            assert manager.container_running("ls-8-geoip-test")
        assert "name=^ls-8-geoip-test$" in run.call_args.args[0]

    def test_container_not_running(self, manager):
        with patch("geoipqa.infra.docker.subprocess.run", return_value=_completed(0, "")):
            assert not manager.container_running("ls-9-geoip-test")

    def test_docker_ps_failure(self, manager):
        with patch("geoipqa.infra.docker.subprocess.run", return_value=_completed(1, stderr="daemon down")):
            assert not manager.container_running("ls-9-geoip-test")

    def test_container_logs(self, manager):
        with patch("geoipqa.infra.docker.subprocess.run", return_value=_completed(0, "a\n", "b\n")) as run:
            assert manager.container_logs("ls-8-geoip-test") == "a\nb\n"
        assert run.call_args.args[0] == ["docker", "logs", "--timestamps", "ls-8-geoip-test"]

    def test_container_logs_missing_container(self, manager):
        with patch("geoipqa.infra.docker.subprocess.run", return_value=_completed(1, stderr="No such container")):
            with pytest.raises(DockerError, match="Could not read logs"):
                manager.container_logs("ls-8-geoip-test")
