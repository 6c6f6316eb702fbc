"""geoipqa error handling.

Exception hierarchy with error codes, structured context and suggestions.
"""

from geoipqa.errors.base import (
    CommandError,
    CommandNotFoundError,
    ConfigValidationError,
    ErrorCode,
    ErrorContext,
    HarnessError,
    RequestFailedError,
    ScenarioStateError,
    ServiceConnectionError,
    ServiceTimeoutError,
    WaitTimeoutError,
)

__all__ = [
    "HarnessError",
    "ErrorCode",
    "ErrorContext",
    "ServiceConnectionError",
    "ServiceTimeoutError",
    "RequestFailedError",
    "ScenarioStateError",
    "ConfigValidationError",
    "WaitTimeoutError",
    "CommandError",
    "CommandNotFoundError",
]
