"""Pydantic schema exports."""

from .generation import (
    UNSPECIFIED_SEED,
    BatchResult,
    EditBody,
    EditRequest,
    EditResult,
    GenerateBody,
    GeneratedItem,
    GenerationRequest,
    PollResult,
)

__all__ = [
    "UNSPECIFIED_SEED",
    "BatchResult",
    "EditBody",
    "EditRequest",
    "EditResult",
    "GenerateBody",
    "GeneratedItem",
    "GenerationRequest",
    "PollResult",
]
