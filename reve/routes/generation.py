"""
Generate and edit endpoints.

Thin routing shim over ``ReveAI``: request bodies are validated by FastAPI,
everything else (including error classification) happens in the services.
Credentials come from the process settings; there is one tenant per process.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter

from ..config import get_settings
from ..schemas.generation import BatchResult, EditBody, EditResult, GenerateBody
from ..services.reve import ReveAI

logger = logging.getLogger("reve.routes")
router = APIRouter()

# Shared client instance (created on first use, closed by the app lifespan)
_reve_client: Optional[ReveAI] = None


def get_reve_client() -> ReveAI:
    """Return the cached client (initialise on first use)."""
    global _reve_client
    if _reve_client is None:
        _reve_client = ReveAI.from_settings(get_settings())
        logger.info("Reve client initialised (user=%s)", _reve_client.user_id or "unknown")
    return _reve_client


async def close_reve_client() -> None:
    global _reve_client
    if _reve_client is not None:
        await _reve_client.aclose()
        _reve_client = None


@router.post("/generate", response_model=BatchResult)
async def generate(body: GenerateBody) -> BatchResult:
    """Generate ``batch_size`` images for one prompt."""
    logger.info("Generate request: batch_size=%d enhance=%s", body.batch_size, body.enhance_prompt)
    return await get_reve_client().generate_image(body)


@router.post("/edit", response_model=EditResult)
async def edit(body: EditBody) -> EditResult:
    """Edit a previous generation according to an instruction."""
    logger.info("Edit request for generation %s", body.originating_generation)
    return await get_reve_client().edit_image(body)
