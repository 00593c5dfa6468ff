"""Exception types raised by the Linear MCP core.

Every failure from a state check or a network call is converted to one of
these kinds before it leaves the core. The MCP server layer renders them;
nothing below it swallows them.
"""

from typing import Any, Optional


class LinearMCPError(Exception):
    """Base exception for all Linear MCP errors."""

    pass


class ConfigurationError(LinearMCPError):
    """Missing or contradictory setup parameters. Never retried."""

    pass


class StateError(LinearMCPError):
    """Operation invoked in a session state that forbids it."""

    pass


class AuthExchangeError(LinearMCPError):
    """The OAuth token endpoint rejected a code or refresh-token exchange."""

    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message)


class RemoteOperationError(LinearMCPError):
    """The GraphQL endpoint returned a non-success result or the transport failed."""

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        response_body: str = "",
    ):
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message)


class RemoteAuthError(RemoteOperationError):
    """Linear refused the credential (401/403)."""

    pass


class RemoteRateLimitError(RemoteOperationError):
    """Rate limit exceeded (429). Includes retry_after hint if available."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        self.retry_after = retry_after
        super().__init__(message, status_code=429)


class RemoteNotFoundError(RemoteOperationError):
    """Resource not found (404)."""

    def __init__(self, message: str):
        super().__init__(message, status_code=404)


class RemoteTimeoutError(RemoteOperationError):
    """Request timed out or the connection could not be established."""

    pass


class PartialCompletionWarning(Warning):
    """A composite operation completed its first step but not the rest.

    Returned (not raised) from ``create_project_with_issues`` when the
    project exists but its issues could not be created. ``project`` is the
    created project and ``cause`` is the error from the issue step.
    """

    def __init__(self, message: str, project: Any = None, cause: Optional[Exception] = None):
        self.project = project
        self.cause = cause
        super().__init__(message)
