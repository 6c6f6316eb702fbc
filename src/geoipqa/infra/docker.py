"""docker compose lifecycle for the search engine and log shipper containers."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from geoipqa.errors import CommandError, ErrorCode

logger = logging.getLogger(__name__)


class DockerError(CommandError):
    """Base exception for Docker operations."""

    error_code = ErrorCode.DOCKER_FAILED
    default_message = "Docker command failed"


class DockerNotFoundError(DockerError):
    """Raised when Docker is not installed or not running."""

    default_suggestions = [
        "Install Docker and make sure the daemon is running (try: docker info)",
    ]


class DockerComposeError(DockerError):
    """Raised when a docker compose command fails."""

    default_suggestions = [
        "Inspect the compose output above; try: docker compose ps",
        "Free ports 9200/9201 if another node is already bound to them",
    ]


class ComposeManager:
    """Run docker compose against the harness compose file.

    The compose command (``docker compose`` or the older ``docker-compose``)
    is detected on first use, not at construction.

    Args:
        compose_file: Path to docker-compose.yml.
        project_name: Optional compose project name.
        timeout: Default timeout for compose commands, in seconds.
    """

    def __init__(
        self,
        compose_file: str | Path | None = None,
        project_name: str | None = None,
        timeout: float = 300.0,
    ) -> None:
        self.compose_file = str(compose_file) if compose_file else None
        self.project_name = project_name
        self.timeout = timeout
        self._compose_cmd: list[str] | None = None

    @property
    def compose_cmd(self) -> list[str]:
        if self._compose_cmd is None:
            self._compose_cmd = self._detect_compose_command()
        return self._compose_cmd

    def _detect_compose_command(self) -> list[str]:
        """Prefer ``docker compose`` (v2), fall back to ``docker-compose``.

        Raises:
            DockerNotFoundError: Docker itself is unavailable.
        """
        result = _run(["docker", "--version"], timeout=10)
        if result.returncode != 0:
            raise DockerNotFoundError(
                "Docker is not installed or not running",
                command=["docker", "--version"],
                stderr=result.stderr,
            )

        for candidate in (["docker", "compose"], ["docker-compose"]):
            try:
                probe = _run([*candidate, "version"], timeout=10)
            except DockerNotFoundError:
                continue
            if probe.returncode == 0:
                return candidate

        logger.warning("Docker Compose not found, using 'docker compose' anyway")
        return ["docker", "compose"]

    def _build_command(self, *args: str) -> list[str]:
        cmd = list(self.compose_cmd)
        if self.compose_file:
            cmd.extend(["-f", self.compose_file])
        if self.project_name:
            cmd.extend(["-p", self.project_name])
        cmd.extend(args)
        return cmd

    def _compose(
        self,
        *args: str,
        check: bool = True,
        timeout: float | None = None,
    ) -> subprocess.CompletedProcess[str]:
        cmd = self._build_command(*args)
        logger.debug(f"Running docker command: {' '.join(cmd)}")
        result = _run(cmd, timeout=timeout or self.timeout)
        if check and result.returncode != 0:
            raise DockerComposeError(
                f"Docker compose command failed: {' '.join(args)}",
                command=cmd,
                returncode=result.returncode,
                stderr=result.stderr,
            )
        return result

    def start(self, services: list[str] | tuple[str, ...] = ()) -> None:
        """``up -d`` for the named services (all services if none given)."""
        logger.info(f"Starting Docker services: {', '.join(services) or 'all'}")
        self._compose("up", "-d", *services)
        logger.info("Docker services started successfully")

    def stop(self, remove_volumes: bool = True) -> None:
        cmd_args = ["down"]
        if remove_volumes:
            cmd_args.append("-v")
        logger.info("Stopping Docker services")
        self._compose(*cmd_args, timeout=120)
        logger.info("Docker services stopped")

    def logs(self, service: str | None = None, tail: int | None = None) -> str:
        cmd_args = ["logs"]
        if tail is not None:
            cmd_args.extend(["--tail", str(tail)])
        if service:
            cmd_args.append(service)
        result = self._compose(*cmd_args, check=False)
        return result.stdout + result.stderr

    def container_running(self, container: str) -> bool:
        """Whether ``docker ps`` lists a running container with this name."""
        result = _run(
            ["docker", "ps", "--filter", f"name=^{container}$", "--format", "{{.Names}}"],
            timeout=30,
        )
        if result.returncode != 0:
            logger.debug(f"docker ps failed: {result.stderr.strip()}")
            return False
        return container in result.stdout.split()

    def container_logs(self, container: str, timestamps: bool = True) -> str:
        """Full stdout and stderr of a container.

        Raises:
            DockerError: ``docker logs`` failed (e.g. no such container).
        """
        cmd = ["docker", "logs"]
        if timestamps:
            cmd.append("--timestamps")
        cmd.append(container)
        result = _run(cmd, timeout=60)
        if result.returncode != 0:
            raise DockerError(
                f"Could not read logs of container {container}",
                command=cmd,
                returncode=result.returncode,
                stderr=result.stderr,
            )
        return result.stdout + result.stderr


def _run(cmd: list[str], timeout: float) -> subprocess.CompletedProcess[str]:
    try:
        return subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            check=False,
            timeout=timeout,
        )
    except FileNotFoundError as e:
        raise DockerNotFoundError(
            f"{cmd[0]} command not found. Please install Docker.",
            command=cmd,
            cause=e,
        ) from e
    except subprocess.TimeoutExpired as e:
        raise DockerError(
            f"Docker command timed out after {timeout:g}s: {' '.join(cmd)}",
            command=cmd,
            cause=e,
        ) from e
