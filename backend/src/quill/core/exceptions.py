"""Custom exceptions for Quill.

This module defines all custom exceptions used throughout the application.
"""

from typing import Any


class QuillException(Exception):
    """Base exception class for Quill."""

    def __init__(
        self,
        message: str,
        error_code: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        """Structured form carried by an error notification."""
        return {"message": self.message, "code": self.error_code}


# Request validation (raised synchronously by TaskManager.start)
class EmptyPromptError(QuillException):
    """Raised when the caller supplies no usable prompt."""

    def __init__(self, details: dict[str, Any] | None = None):
        super().__init__(
            message="Input prompt is required",
            error_code="EMPTY_PROMPT",
            status_code=400,
            details=details,
        )


class MissingCredentialError(QuillException):
    """Raised when the selected provider needs a credential that is not configured."""

    def __init__(self, provider: str, setting: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=f"{setting} is not set.",
            error_code="MISSING_CREDENTIAL",
            status_code=400,
            details=details or {"provider": provider, "setting": setting},
        )


class UnknownProviderError(QuillException):
    """Raised when no stream producer is registered for the requested provider."""

    def __init__(self, provider: str, available: list[str] | None = None):
        super().__init__(
            message=f"Unknown provider '{provider}'",
            error_code="UNKNOWN_PROVIDER",
            status_code=400,
            details={"provider": provider, "available": available or []},
        )


# Upstream exceptions (surface as error notifications)
class UpstreamError(QuillException):
    """Base exception for failures talking to a model back-end."""


class UpstreamRequestFailedError(UpstreamError):
    """Raised when the back-end answers with a non-success status or without a body."""

    def __init__(self, provider: str, status: int, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(
            message=f"{provider} request failed: {status} {body}".rstrip(),
            error_code="UPSTREAM_REQUEST_FAILED",
            status_code=502,
            details={"provider": provider, "status": status, "body": body},
        )


class UpstreamTimeoutError(UpstreamError):
    """Raised when the HTTP layer reports a timeout."""

    def __init__(self, provider: str, reason: str):
        super().__init__(
            message=f"Request to {provider} timed out: {reason}",
            error_code="UPSTREAM_TIMEOUT",
            status_code=504,
            details={"provider": provider, "reason": reason},
        )


class UpstreamConnectionError(UpstreamError):
    """Raised when the connection to the back-end fails or drops mid-stream."""

    def __init__(self, provider: str, reason: str):
        super().__init__(
            message=f"Could not communicate with {provider}: {reason}",
            error_code="UPSTREAM_CONNECTION_ERROR",
            status_code=502,
            details={"provider": provider, "reason": reason},
        )


class MalformedPayloadError(UpstreamError):
    """Raised when a wire record cannot be decoded as the expected JSON."""

    def __init__(self, reason: str, payload: str | None = None):
        super().__init__(
            message=f"Malformed stream payload: {reason}",
            error_code="MALFORMED_PAYLOAD",
            status_code=502,
            details={"reason": reason, "payload": (payload or "")[:200]},
        )


# Cancellation
class TaskAbortedError(QuillException):
    """Raised inside a producer when its cancellation token fires.

    Never reported to callers as a failure; it only ends the stream.
    """

    def __init__(self, message: str = "Task aborted"):
        super().__init__(
            message=message,
            error_code="TASK_ABORTED",
            status_code=499,
        )
