from __future__ import annotations

from typing import Optional

from ..utils.errors import InvalidRequestError

MIN_DIMENSION = 256
MAX_DIMENSION = 2048
MAX_BATCH_SIZE = 8


def _check_dimension(name: str, value: Optional[int]) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidRequestError(f"{name} must be an integer, got {value!r}")
    if not MIN_DIMENSION <= value <= MAX_DIMENSION:
        raise InvalidRequestError(
            f"{name} must be between {MIN_DIMENSION} and {MAX_DIMENSION} pixels, got {value}"
        )


def validate_image_options(width: Optional[int], height: Optional[int], batch_size: Optional[int] = None) -> None:
    """Reject unsupported dimensions or batch sizes before any network call."""
    _check_dimension("Width", width)
    _check_dimension("Height", height)

    if batch_size is None:
        return
    if isinstance(batch_size, bool) or not isinstance(batch_size, int):
        raise InvalidRequestError(f"Batch size must be an integer, got {batch_size!r}")
    if not 1 <= batch_size <= MAX_BATCH_SIZE:
        raise InvalidRequestError(f"Batch size must be between 1 and {MAX_BATCH_SIZE}, got {batch_size}")


def validate_edit_options(instruction: Optional[str], originating_generation: Optional[str]) -> None:
    if not instruction or not instruction.strip():
        raise InvalidRequestError("Edit instruction is required")
    if not originating_generation or not originating_generation.strip():
        raise InvalidRequestError("Originating generation ID is required")
