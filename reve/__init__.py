"""
Reve Bridge

Client-side orchestration over the Reve image generation service: job
submission, bounded polling, artifact retrieval and batch fan-out.
"""

from .schemas.generation import BatchResult, EditRequest, EditResult, GenerationRequest
from .services.reve import ReveAI
from .utils.errors import (
    ApiError,
    AuthenticationError,
    ErrorKind,
    GenerationError,
    InvalidRequestError,
    PollingError,
    RequestError,
    RequestTimeoutError,
    ReveError,
    UnexpectedResponse,
    UnknownError,
)

__version__ = "1.0.0"

__all__ = [
    "ApiError",
    "AuthenticationError",
    "BatchResult",
    "EditRequest",
    "EditResult",
    "ErrorKind",
    "GenerationError",
    "GenerationRequest",
    "InvalidRequestError",
    "PollingError",
    "RequestError",
    "RequestTimeoutError",
    "ReveAI",
    "ReveError",
    "UnexpectedResponse",
    "UnknownError",
]
