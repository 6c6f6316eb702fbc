"""Container infrastructure."""

from geoipqa.infra.docker import (
    ComposeManager,
    DockerComposeError,
    DockerError,
    DockerNotFoundError,
)

__all__ = [
    "ComposeManager",
    "DockerError",
    "DockerComposeError",
    "DockerNotFoundError",
]
