"""Error types for the OpenAPI bridge.

Every error carries an optional ``action`` telling the operator what to do
next; ``to_message()`` renders both for logs and MCP tool errors.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base error with an actionable hint."""

    def __init__(self, message: str, action: str | None = None):
        self.action = action
        super().__init__(message)

    def to_message(self) -> str:
        """Format the error with its action hint."""
        if self.action:
            return f"{self}\n\nAction required: {self.action}"
        return str(self)


class ConfigurationError(BridgeError):
    """Settings are missing or invalid."""


class SpecFetchError(BridgeError):
    """The OpenAPI document could not be retrieved."""


class SpecFormatError(BridgeError):
    """The retrieved document is not an OpenAPI/Swagger specification."""


class ApiCallError(BridgeError):
    """A forwarded API call failed."""

    def __init__(self, message: str, status: int | None = None, action: str | None = None):
        self.status = status
        super().__init__(message, action)


class EnvironmentNotFoundError(BridgeError):
    """An unknown environment name was requested."""


class OperationNotFoundError(BridgeError):
    """A tool name no longer maps to an operation in the current spec."""


class RateLimitExceededError(BridgeError):
    """The global request budget is exhausted."""

    def __init__(self, message: str, retry_after: int):
        self.retry_after = retry_after
        super().__init__(message, f"Wait {retry_after} seconds before retrying.")
