"""Custom exception classes for easy-sauce.

This module defines a hierarchy of exceptions for consistent error handling
across the CLI and the test engine. All exceptions inherit from
EasySauceError to allow catch-all handling when needed.

Exception Hierarchy:
    EasySauceError (base)
    ├── ConfigurationError (bad config file, platforms or port value)
    └── ExecutionError (failures reported through the log stream)
        ├── SauceAPIError (Sauce Labs REST failures)
        ├── TunnelError (Sauce Connect failures)
        ├── TestServerError (local test server failures)
        └── TestsFailedError (one or more platforms failed)
"""

from typing import Any


class EasySauceError(Exception):
    """Base exception for all easy-sauce errors.

    Attributes:
        message: Human-readable error description.
        detail: Technical details for debugging (optional).
    """

    def __init__(self, message: str, detail: str | None = None) -> None:
        self.message = message
        self.detail = detail
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for JSON output."""
        result: dict[str, Any] = {
            "error": self.__class__.__name__,
            "message": self.message,
        }
        if self.detail:
            result["detail"] = self.detail
        return result


class ConfigurationError(EasySauceError):
    """Raised when options cannot be resolved before a run is dispatched.

    Covers missing or unparsable config files and malformed platforms or
    port values. Always fatal.
    """

    pass


class ExecutionError(EasySauceError):
    """Raised when a dispatched test run fails."""

    pass


class SauceAPIError(ExecutionError):
    """Raised when a Sauce Labs REST call fails or returns bad data."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        detail: str | None = None,
    ) -> None:
        super().__init__(message, detail)
        self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.status_code is not None:
            result["status_code"] = self.status_code
        return result


class TunnelError(ExecutionError):
    """Raised when the Sauce Connect tunnel cannot be started."""

    pass


class TestServerError(ExecutionError):
    """Raised when the local test server cannot be started."""

    __test__ = False


class TestsFailedError(ExecutionError):
    """Raised when tests fail on one or more platforms."""

    __test__ = False

    def __init__(self, failed: int, total: int) -> None:
        super().__init__(f"Tests failed on {failed} of {total} platforms")
        self.failed = failed
        self.total = total
