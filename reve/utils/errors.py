from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Optional

import httpx

from .http import extract_http_error

logger = logging.getLogger("reve.errors")

# Patterns that might leak credentials into error messages
SENSITIVE_PATTERNS = [
    r"bearer\s+\S+",
    r"token[=:\s]+\S+",
    r"cookie[=:\s]+\S+",
    r"authorization[=:\s]+\S+",
]

# The only two call sites allowed to absorb a failure instead of raising it.
ENHANCEMENT_FALLBACK = "enhancement_fallback"
ARTIFACT_FETCH_RETRY = "artifact_fetch_retry"


class ErrorKind(str, Enum):
    AUTHENTICATION_ERROR = "authentication_error"
    API_ERROR = "api_error"
    REQUEST_ERROR = "request_error"
    TIMEOUT_ERROR = "timeout_error"
    GENERATION_ERROR = "generation_error"
    POLLING_ERROR = "polling_error"
    UNEXPECTED_RESPONSE = "unexpected_response"
    VALIDATION_ERROR = "validation_error"
    UNKNOWN_ERROR = "unknown_error"


class ReveError(Exception):
    """Base error for every failure raised by the generation engine.

    Carries a closed ``kind`` and, when the failure came from an upstream
    response, its HTTP status code.
    """

    kind: ErrorKind = ErrorKind.UNKNOWN_ERROR

    def __init__(self, message: str, kind: Optional[ErrorKind] = None, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind
        self.status_code = status_code

    def to_dict(self) -> dict:
        return {"error": self.kind.value, "message": self.message}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, status_code={self.status_code!r}, message={self.message!r})"


class AuthenticationError(ReveError):
    kind = ErrorKind.AUTHENTICATION_ERROR


class ApiError(ReveError):
    kind = ErrorKind.API_ERROR


class RequestError(ReveError):
    kind = ErrorKind.REQUEST_ERROR


class RequestTimeoutError(RequestError):
    kind = ErrorKind.TIMEOUT_ERROR


class GenerationError(ReveError):
    kind = ErrorKind.GENERATION_ERROR


class PollingError(ReveError):
    kind = ErrorKind.POLLING_ERROR


class UnexpectedResponse(ReveError):
    kind = ErrorKind.UNEXPECTED_RESPONSE


class InvalidRequestError(ReveError):
    kind = ErrorKind.VALIDATION_ERROR


class UnknownError(ReveError):
    kind = ErrorKind.UNKNOWN_ERROR


def sanitize_message(message: str) -> str:
    """Strip credential-looking fragments and truncate long upstream bodies."""
    sanitized = message
    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, "[REDACTED]", sanitized, flags=re.IGNORECASE)

    if len(sanitized) > 500:
        sanitized = sanitized[:500] + "... [truncated]"
    return sanitized


def wrap_error(exc: BaseException, operation: str) -> ReveError:
    """Classify ``exc`` into the error taxonomy.

    Errors that already belong to the taxonomy are returned unchanged so they
    can be re-raised as-is through every layer.
    """
    if isinstance(exc, ReveError):
        return exc

    if isinstance(exc, httpx.HTTPStatusError):
        status_code = exc.response.status_code
        upstream_message, _ = extract_http_error(exc.response)
        if status_code == 401:
            return AuthenticationError(f"Authentication failed while {operation}", status_code=401)
        return RequestError(
            f"Request failed while {operation}: HTTP {status_code} {sanitize_message(upstream_message)}",
            status_code=status_code,
        )

    if isinstance(exc, httpx.TimeoutException):
        return RequestTimeoutError(f"Request timed out while {operation}: {exc}")

    if isinstance(exc, httpx.HTTPError):
        return RequestError(f"Network error while {operation}: {exc}")

    logger.debug("Unclassified error while %s: %r", operation, exc)
    return UnknownError(f"Unexpected error while {operation}: {exc}")


__all__ = [
    "ARTIFACT_FETCH_RETRY",
    "ENHANCEMENT_FALLBACK",
    "ApiError",
    "AuthenticationError",
    "ErrorKind",
    "GenerationError",
    "InvalidRequestError",
    "PollingError",
    "RequestError",
    "RequestTimeoutError",
    "ReveError",
    "UnexpectedResponse",
    "UnknownError",
    "sanitize_message",
    "wrap_error",
]
