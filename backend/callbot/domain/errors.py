"""
Calling Bot Errors
Typed failures raised by the orchestrator and its collaborators
"""
from typing import Optional


class CallingBotError(Exception):
    """Base class for every orchestration failure"""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class DirectoryExhaustedError(CallingBotError):
    """Raised when a directory role has no matching user."""

    def __init__(self, role: str, message: Optional[str] = None):
        self.role = role
        super().__init__(message or f"No user configured for directory role '{role}'")


class InvalidJoinUrlError(CallingBotError):
    """Raised when a meeting join URL cannot be parsed."""

    def __init__(self, url: str, reason: str = "malformed join URL"):
        self.url = url
        self.reason = reason
        super().__init__(f"Invalid join URL: {reason}")


class PlatformError(CallingBotError):
    """
    Any failure reported by the remote call-control platform.

    Wraps transport errors and non-success HTTP responses so callers
    never see platform-specific error shapes.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        cause: Optional[BaseException] = None
    ):
        self.status_code = status_code
        self.cause = cause
        super().__init__(message)


class CallNotFoundError(PlatformError):
    """The referenced call resource no longer exists on the platform."""

    def __init__(self, call_id: str, cause: Optional[BaseException] = None):
        self.call_id = call_id
        super().__init__(f"Call {call_id} not found", status_code=404, cause=cause)
