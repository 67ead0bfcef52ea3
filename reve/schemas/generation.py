from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..config import DEFAULT_MODEL

UNSPECIFIED_SEED = -1


class GenerationRequest(BaseModel):
    """A text-to-image request, fanned out into ``batch_size`` jobs."""
    prompt: str = Field(..., description="The text prompt for image generation")
    negative_prompt: str = Field("", description="Features to keep out of the image")
    width: int = Field(1024, description="Image width in pixels")
    height: int = Field(1024, description="Image height in pixels")
    seed: int = Field(UNSPECIFIED_SEED, description="Random seed (-1 for random)")
    batch_size: int = Field(1, description="Number of images to generate")
    model: str = Field(DEFAULT_MODEL, description="Inference model identifier")
    enhance_prompt: bool = Field(True, description="Expand the prompt before generating")


class EditRequest(BaseModel):
    """An edit of a previous generation. Always a single job."""
    model_config = ConfigDict(extra="allow")

    prompt: str = Field("", description="The original, unexpanded prompt")
    instruction: str = Field(..., description="The edit to apply")
    originating_generation: str = Field(..., description="Generation id of the image to edit")
    negative_prompt: str = ""
    width: int = 1024
    height: int = 1024
    seed: int = UNSPECIFIED_SEED
    model: str = DEFAULT_MODEL
    original_caption: Optional[str] = Field(None, description="Caption used by the original generation")
    annotated_prompt: Optional[str] = None


class GenerateBody(GenerationRequest):
    """Body of ``POST /generate``; the worker defaults to a landscape frame."""
    width: int = 1360
    height: int = 768


class EditBody(EditRequest):
    """Body of ``POST /edit``; the original prompt is required for context."""
    prompt: str = Field(..., min_length=1, description="The original, unexpanded prompt")
    width: int = 1360
    height: int = 768


class PollResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    image_urls: List[str]
    seed: int = UNSPECIFIED_SEED


class GeneratedItem(BaseModel):
    """Outcome of one submit-and-poll pipeline."""
    model_config = ConfigDict(frozen=True)

    image_url: str
    seed: int
    generation_id: str
    caption: str
    enhanced_prompt: Optional[str] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BatchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    generation_ids: List[str]
    image_urls: List[str]
    seed: int
    prompt: str
    caption: Optional[str] = None
    captions: Optional[List[str]] = None
    enhanced_prompt: Optional[str] = None
    enhanced_prompts: Optional[List[str]] = None
    negative_prompt: Optional[str] = None
    completed_at: datetime = Field(default_factory=_utcnow)


class EditResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    generation_id: str
    image_url: str
    seed: int
    prompt: str
    instruction: str
    originating_generation: str
    final_caption: str
    negative_prompt: Optional[str] = None
    annotated_prompt: Optional[str] = None
    completed_at: datetime = Field(default_factory=_utcnow)
