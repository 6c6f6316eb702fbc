"""Exception hierarchy for geoipqa.

Every harness error carries:
- error_code: an ErrorCode for programmatic handling
- context: ErrorContext describing where the error happened
- suggestions: actionable steps to resolve the issue

Errors are raised by the low-level layers (HTTP client, subprocess runner,
docker manager, config loader) and caught at scenario step boundaries, where
they are turned into failed outcomes. Nothing in the harness aborts a run.

Example:
    try:
        client.put_pipeline("geoip-test", body)
    except ServiceConnectionError as e:
        print(f"Error: {e}")
        print(f"Suggestions: {e.suggestions}")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Standardized error codes.

    - E0xx: Connection errors
    - E1xx: Request errors
    - E2xx: Validation errors
    - E4xx: Scenario errors
    - E5xx: Wait/timeout errors
    - E7xx: External command errors
    - E9xx: Unknown/internal errors
    """

    CONNECTION_FAILED = "E001"
    CONNECTION_TIMEOUT = "E002"

    REQUEST_FAILED = "E102"

    INVALID_CONFIG = "E202"

    ILLEGAL_TRANSITION = "E401"

    WAIT_TIMEOUT = "E501"

    COMMAND_FAILED = "E701"
    COMMAND_NOT_FOUND = "E702"
    DOCKER_FAILED = "E710"

    UNKNOWN = "E999"

    @property
    def category(self) -> str:
        """Get the error category name."""
        code_num = int(self.value[1:])
        if code_num < 100:
            return "connection"
        elif code_num < 200:
            return "request"
        elif code_num < 300:
            return "validation"
        elif code_num < 500:
            return "scenario"
        elif code_num < 600:
            return "wait"
        elif code_num < 800:
            return "command"
        else:
            return "unknown"


@dataclass
class ErrorContext:
    """Structured context for error logging and debugging.

    Attributes:
        scenario: Label of the scenario being executed.
        step: Name of the current step.
        request: HTTP request details (method, url, body).
        response: HTTP response details (status, body).
        extra: Additional context-specific information.
        timestamp: When the error occurred.
    """

    scenario: str | None = None
    step: str | None = None
    request: dict[str, Any] | None = None
    response: dict[str, Any] | None = None
    extra: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        """Convert context to dictionary for serialization."""
        result = {
            "scenario": self.scenario,
            "step": self.step,
            "request": self.request,
            "response": self.response,
            "extra": self.extra,
            "timestamp": self.timestamp.isoformat(),
        }
        return {k: v for k, v in result.items() if v is not None}

    def format_location(self) -> str:
        """Format the error location as a readable string."""
        parts = []
        if self.scenario:
            parts.append(f"scenario={self.scenario}")
        if self.step:
            parts.append(f"step={self.step}")
        return " > ".join(parts) if parts else "unknown location"


class HarnessError(Exception):
    """Base exception for all geoipqa errors.

    Attributes:
        error_code: Unique ErrorCode for this error type
        message: Human-readable error description
        context: ErrorContext with execution details
        suggestions: List of actionable steps to resolve the issue
        cause: The underlying exception (if any)
    """

    error_code: ErrorCode = ErrorCode.UNKNOWN
    default_message: str = "An unexpected error occurred"
    default_suggestions: list[str] = []

    def __init__(
        self,
        message: str | None = None,
        error_code: ErrorCode | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
        suggestions: list[str] | None = None,
        **extra_context: Any,
    ) -> None:
        self.message = message or self.default_message
        self.error_code = error_code or self.error_code
        self.context = context or ErrorContext()
        self.cause = cause
        self._suggestions = suggestions

        if extra_context:
            self.context.extra.update(extra_context)

        super().__init__(self.message)

    @property
    def suggestions(self) -> list[str]:
        """Get actionable suggestions for resolving this error."""
        if self._suggestions is not None:
            return self._suggestions
        return self.default_suggestions.copy()

    def __str__(self) -> str:
        parts = [f"[{self.error_code.value}] {self.message}"]

        location = self.context.format_location()
        if location != "unknown location":
            parts.append(f"at {location}")

        return " | ".join(parts)

    def format_verbose(self) -> str:
        """Format error with full details including suggestions."""
        lines = [
            f"Error [{self.error_code.value}]: {self.message}",
            "",
        ]

        location = self.context.format_location()
        if location != "unknown location":
            lines.append(f"Location: {location}")

        if self.context.request:
            method = self.context.request.get("method", "?")
            url = self.context.request.get("url", "?")
            lines.append(f"Request: {method} {url}")

        if self.context.response:
            status = self.context.response.get("status", "?")
            lines.append(f"Response: HTTP {status}")

        if self.suggestions:
            lines.append("")
            lines.append("Suggestions:")
            for suggestion in self.suggestions:
                lines.append(f"  - {suggestion}")

        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for serialization."""
        return {
            "error_code": self.error_code.value,
            "error_type": self.__class__.__name__,
            "message": self.message,
            "suggestions": self.suggestions,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
        }


class ServiceConnectionError(HarnessError):
    """Error reaching a containerized service over HTTP.

    Raised when the search engine cannot be reached at all: the container
    is not started, the port mapping is wrong, or the node is still booting.
    """

    error_code = ErrorCode.CONNECTION_FAILED
    default_message = "Failed to connect to service"
    default_suggestions = [
        "Verify the container is running (try: docker compose ps)",
        "Check that the port matches the version matrix (9200 for 8.19, 9201 for 9.3)",
        "The node may still be starting; raise probe_attempts in geoipqa.yaml",
    ]


class ServiceTimeoutError(ServiceConnectionError):
    """The service accepted the connection but did not answer in time."""

    error_code = ErrorCode.CONNECTION_TIMEOUT
    default_message = "Request to service timed out"
    default_suggestions = [
        "Increase request_timeout in geoipqa.yaml",
        "Check container memory limits; the JVM may be swapping",
    ]


class RequestFailedError(HarnessError):
    """The service answered with an error status or an unparseable body."""

    error_code = ErrorCode.REQUEST_FAILED
    default_message = "Request to service failed"

    def __init__(
        self,
        message: str | None = None,
        status_code: int | None = None,
        body: str | None = None,
        **kwargs: Any,
    ) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message, **kwargs)


class ConfigValidationError(HarnessError):
    """Configuration value failed validation."""

    error_code = ErrorCode.INVALID_CONFIG
    default_message = "Invalid configuration"
    default_suggestions = [
        "Check geoipqa.yaml and GEOIPQA_* environment variables",
    ]

    def __init__(
        self,
        message: str | None = None,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ) -> None:
        self.field = field
        self.value = value
        super().__init__(message, **kwargs)
        if field is not None:
            self.context.extra.setdefault("field", field)


class ScenarioStateError(HarnessError):
    """An assertion point was moved or settled out of order.

    Attributes:
        check: The assertion point's check name.
    """

    error_code = ErrorCode.ILLEGAL_TRANSITION
    default_message = "Illegal scenario state transition"

    def __init__(self, message: str | None = None, check: str | None = None, **kwargs: Any) -> None:
        self.check = check
        super().__init__(message, **kwargs)


class WaitTimeoutError(HarnessError):
    """Raised when a bounded poll runs out of attempts.

    Attributes:
        condition_description: What was being waited for.
        attempts: How many polls were made.
        interval: Seconds between polls.
        last_value: The last value fetched before giving up.
    """

    error_code = ErrorCode.WAIT_TIMEOUT
    default_message = "Wait operation timed out"

    def __init__(
        self,
        condition_description: str = "condition to be met",
        attempts: int = 0,
        interval: float = 0.0,
        last_value: Any = None,
        **kwargs: Any,
    ) -> None:
        self.condition_description = condition_description
        self.attempts = attempts
        self.interval = interval
        self.last_value = last_value
        message = (
            f"Timed out waiting for {condition_description} "
            f"after {attempts} attempt(s) at {interval:g}s intervals"
        )
        super().__init__(message, **kwargs)


class CommandError(HarnessError):
    """An external build/test/shipper command failed.

    Attributes:
        command: The argv that was executed.
        returncode: Process exit status, or None if it never started.
        log_path: Where the captured output was written, if anywhere.
    """

    error_code = ErrorCode.COMMAND_FAILED
    default_message = "External command failed"

    def __init__(
        self,
        message: str | None = None,
        command: list[str] | None = None,
        returncode: int | None = None,
        log_path: str | None = None,
        stderr: str = "",
        **kwargs: Any,
    ) -> None:
        self.command = command
        self.returncode = returncode
        self.log_path = log_path
        self.stderr = stderr
        super().__init__(message, **kwargs)


class CommandNotFoundError(CommandError):
    """The executable for an external command is not installed."""

    error_code = ErrorCode.COMMAND_NOT_FOUND
    default_message = "Command not found"
    default_suggestions = [
        "Install the missing tool or put it on PATH",
    ]
