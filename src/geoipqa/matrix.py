"""Version matrix: which search engine and log shipper versions are validated.

Each supported version maps to a fixed host port and the docker compose
services that back it. Ports differ per version so that both search
engines can run side by side in cross-version mode.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from geoipqa.core.models import Scenario


@dataclass(frozen=True)
class ServiceTarget:
    """Container layout for one version of the stack."""

    version: str
    port: int
    es_service: str
    ls_service: str
    ls_container: str


TARGETS: dict[str, ServiceTarget] = {
    "8.19": ServiceTarget(
        version="8.19",
        port=9200,
        es_service="elasticsearch-8",
        ls_service="logstash-8",
        ls_container="ls-8-geoip-test",
    ),
    "9.3": ServiceTarget(
        version="9.3",
        port=9201,
        es_service="elasticsearch-9",
        ls_service="logstash-9",
        ls_container="ls-9-geoip-test",
    ),
}

VERSIONS: tuple[str, ...] = tuple(TARGETS)

VERSION_ALIASES = {"8": "8.19", "9": "9.3"}


class Mode(Enum):
    """Run modes selectable from the command line."""

    QUICK = "quick"
    V8 = "8.19"
    V9 = "9.3"
    CROSS = "cross"

    @classmethod
    def parse(cls, value: str) -> Mode:
        value = VERSION_ALIASES.get(value, value)
        try:
            return cls(value)
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise ValueError(f"Unknown mode {value!r}. Valid modes: {valid}") from None

    @property
    def versions(self) -> tuple[str, ...]:
        """Stack versions this mode brings up, in start order."""
        if self is Mode.QUICK:
            return ()
        if self is Mode.CROSS:
            return VERSIONS
        return (self.value,)

    @property
    def description(self) -> str:
        return _MODE_DESCRIPTIONS[self]


_MODE_DESCRIPTIONS = {
    Mode.QUICK: "Build and run unit tests only (no Docker)",
    Mode.V8: "Full test with ES/LS 8.19 (includes elastic_integration + data streams)",
    Mode.V9: "Full test with ES/LS 9.3 (includes elastic_integration + data streams)",
    Mode.CROSS: "Cross-version compatibility tests (all Docker services)",
}


def plugin_scenario() -> Scenario:
    """Scenario for checks that touch only the plugin checkout."""
    return Scenario(es_version=None, ls_version=None, label="plugin")


def es_scenario(version: str) -> Scenario:
    return Scenario(es_version=version, ls_version=None, label=f"es-{version}")


def ls_scenario(version: str) -> Scenario:
    return Scenario(es_version=None, ls_version=version, label=f"ls-{version}")


def pair_scenario(es_version: str, ls_version: str) -> Scenario:
    return Scenario(
        es_version=es_version,
        ls_version=ls_version,
        label=f"es-{es_version}/ls-{ls_version}",
    )


def cross_matrix() -> list[Scenario]:
    """Every (search engine, log shipper) pairing, same-version pairs first."""
    same = [pair_scenario(v, v) for v in VERSIONS]
    cross = [pair_scenario(a, b) for a in VERSIONS for b in VERSIONS if a != b]
    return same + cross


def target(version: str) -> ServiceTarget:
    version = VERSION_ALIASES.get(version, version)
    try:
        return TARGETS[version]
    except KeyError:
        raise ValueError(f"Unsupported version {version!r}. Supported: {', '.join(VERSIONS)}") from None
