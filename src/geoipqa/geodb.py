"""Exercise the MaxMind database reader against the plugin's test databases.

Each database kind is opened with ``geoip2.database.Reader`` and queried
for a fixed set of public addresses. Addresses missing from a test
database are expected and ignored; any other lookup error is logged.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import geoip2
import geoip2.database
import geoip2.errors
from maxminddb import InvalidDatabaseError

from geoipqa.core.models import OutcomeStatus, Scenario, VerificationOutcome

logger = logging.getLogger(__name__)

TEST_IPS = (
    "8.8.8.8",  # Google DNS
    "1.1.1.1",  # Cloudflare
    "93.184.216.34",  # example.com
    "216.58.214.206",  # Google
    "151.101.1.140",  # Fastly
)

PLUGIN_TEST_DATA = "src/test/resources/maxmind-test-data"
LOCAL_TEST_DATA = "test-data"


def _city(r: Any) -> str:
    return f"{r.country.iso_code}/{r.city.name} ({r.location.latitude},{r.location.longitude})"


def _country(r: Any) -> str:
    return f"{r.country.iso_code} ({r.country.name})"


def _asn(r: Any) -> str:
    return f"AS{r.autonomous_system_number} ({r.autonomous_system_organization})"


def _isp(r: Any) -> str:
    return f"ISP: {r.isp}, Org: {r.organization}, AS{r.autonomous_system_number}"


def _domain(r: Any) -> str:
    return f"Domain: {r.domain}"


def _enterprise(r: Any) -> str:
    return f"{r.country.iso_code}/{r.city.name} (userType: {r.traits.user_type})"


def _anonymous(r: Any) -> str:
    return (
        f"anon:{r.is_anonymous} vpn:{r.is_anonymous_vpn} "
        f"hosting:{r.is_hosting_provider} tor:{r.is_tor_exit_node}"
    )


@dataclass(frozen=True)
class DatabaseKind:
    """One family of MaxMind database and how to query it.

    Attributes:
        label: Display name, e.g. "City".
        method: Name of the ``Reader`` lookup method.
        files: Test database file names of this kind.
        describe: Formats a lookup response for the log.
        expected_type: Substring the database metadata type must contain,
            or None to skip the check.
    """

    label: str
    method: str
    files: tuple[str, ...]
    describe: Callable[[Any], str]
    expected_type: str | None = None


DATABASE_KINDS = (
    DatabaseKind("City", "city", ("GeoIP2-City-Test.mmdb", "GeoLite2-City-Test.mmdb"), _city, "City"),
    DatabaseKind(
        "Country", "country", ("GeoIP2-Country-Test.mmdb", "GeoLite2-Country-Test.mmdb"), _country, "Country"
    ),
    DatabaseKind("ASN", "asn", ("GeoLite2-ASN-Test.mmdb",), _asn),
    DatabaseKind("ISP", "isp", ("GeoIP2-ISP-Test.mmdb",), _isp),
    DatabaseKind("Domain", "domain", ("GeoIP2-Domain-Test.mmdb",), _domain),
    DatabaseKind("Enterprise", "enterprise", ("GeoIP2-Enterprise-Test.mmdb",), _enterprise),
    DatabaseKind("Anonymous IP", "anonymous_ip", ("GeoIP2-Anonymous-IP-Test.mmdb",), _anonymous),
)


def find_test_databases(plugin_dir: Path, extra: tuple[Path, ...] = ()) -> Path | None:
    """First directory holding ``*.mmdb`` files, or None."""
    candidates = [*extra, plugin_dir / PLUGIN_TEST_DATA, Path(LOCAL_TEST_DATA)]
    for candidate in candidates:
        if candidate.is_dir() and any(candidate.glob("*.mmdb")):
            return candidate
    return None


class DatabaseLibraryCheck:
    """Open each test database and look up the sample addresses.

    Example:
        >>> check = DatabaseLibraryCheck(scenario)
        >>> outcomes = check.run(Path("test-data"))
    """

    def __init__(self, scenario: Scenario, ips: tuple[str, ...] = TEST_IPS) -> None:
        self.scenario = scenario
        self.ips = ips

    def _outcome(self, check: str, ok: bool, detail: str) -> VerificationOutcome:
        status = OutcomeStatus.PASSED if ok else OutcomeStatus.FAILED
        return VerificationOutcome(self.scenario, check, status, detail)

    def run(self, base: Path | None) -> list[VerificationOutcome]:
        logger.info(f"geoip2 library version: {getattr(geoip2, '__version__', 'unknown')}")
        if base is None:
            logger.info("No test databases found. Running API tests only.")
            return self.check_api()

        logger.info(f"Running database tests in {base}")
        outcomes: list[VerificationOutcome] = []
        for kind in DATABASE_KINDS:
            for name in kind.files:
                outcomes.extend(self.check_database(kind, base / name))
        return outcomes

    def check_api(self) -> list[VerificationOutcome]:
        missing = [k.method for k in DATABASE_KINDS if not hasattr(geoip2.database.Reader, k.method)]
        if missing:
            return [self._outcome("geodb-api", False, f"Reader lacks {', '.join(missing)}")]
        return [self._outcome("geodb-api", True, "Reader exposes every lookup method")]

    def check_database(self, kind: DatabaseKind, path: Path) -> list[VerificationOutcome]:
        """Check one database file. Missing files yield no outcome."""
        if not path.is_file():
            logger.info(f"SKIP: {path} (not found)")
            return []

        check = f"geodb-{path.stem}"
        logger.info(f"Testing {kind.label} Database: {path.name}")
        outcomes: list[VerificationOutcome] = []
        try:
            with geoip2.database.Reader(str(path)) as reader:
                db_type = reader.metadata().database_type
                if kind.expected_type:
                    outcomes.append(
                        self._outcome(
                            f"{check}-type",
                            kind.expected_type in db_type,
                            f"Database type contains {kind.expected_type!r} (type: {db_type})",
                        )
                    )
                lookup = getattr(reader, kind.method)
                for ip in self.ips:
                    self._lookup(lookup, kind, ip)
        except (OSError, ValueError, InvalidDatabaseError) as e:
            outcomes.append(self._outcome(check, False, f"{kind.label} database read failed: {e}"))
            return outcomes

        outcomes.append(self._outcome(check, True, f"{kind.label} database read successful"))
        return outcomes

    def _lookup(self, lookup: Callable[[str], Any], kind: DatabaseKind, ip: str) -> None:
        try:
            response = lookup(ip)
        except geoip2.errors.AddressNotFoundError:
            return
        except (TypeError, ValueError, geoip2.errors.GeoIP2Error) as e:
            logger.info(f"  {ip} -> ERROR: {e}")
            return
        logger.info(f"  {ip} -> {kind.describe(response)}")
