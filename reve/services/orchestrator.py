from __future__ import annotations

import asyncio
import logging
import random
import uuid
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..schemas.generation import (
    UNSPECIFIED_SEED,
    BatchResult,
    EditRequest,
    EditResult,
    GeneratedItem,
    GenerationRequest,
)
from ..utils.errors import ReveError, wrap_error
from ..utils.http_client import HttpClient
from .normalizer import extract_generation_id
from .poller import GenerationPoller
from .projects import ProjectResolver
from .prompt_enhancer import PromptEnhancer
from .validation import validate_edit_options, validate_image_options

logger = logging.getLogger("reve.orchestrator")

GENERATION_DESCRIPTION = "A generation which encapsulates a request to generate an image."
EDIT_DESCRIPTION = "A generation which encapsulates a request to edit an image."
SEED_JITTER = 1000
MAX_GENERATE_SEED = 10_000_000
MAX_EDIT_SEED = 1_000_000_000


def _collapse(values: Sequence[str]) -> tuple[Optional[str], Optional[List[str]]]:
    """One value stays scalar, several become a list."""
    if len(values) == 1:
        return values[0], None
    if len(values) > 1:
        return None, list(values)
    return None, None


async def gather_all(coros: Sequence[Any]) -> List[Any]:
    """Run every coroutine concurrently; the first failure cancels the rest and propagates."""
    tasks = [asyncio.ensure_future(coro) for coro in coros]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class BatchOrchestrator:
    """Fans a generate or edit request out into submit-and-poll pipelines."""

    def __init__(
        self,
        client: HttpClient,
        projects: ProjectResolver,
        enhancer: PromptEnhancer,
        poller_factory: Callable[[], GenerationPoller],
        rng: Optional[random.Random] = None,
    ) -> None:
        self._client = client
        self._projects = projects
        self._enhancer = enhancer
        self._poller_factory = poller_factory
        self._rng = rng or random.Random()

    def _item_seed(self, seed: int) -> int:
        if seed == UNSPECIFIED_SEED:
            return self._rng.randrange(MAX_GENERATE_SEED)
        # jittered so a batch does not reuse one seed; distinctness is not guaranteed
        return seed + self._rng.randrange(SEED_JITTER)

    async def _submit(self, project_id: str, payload: Dict[str, Any]) -> str:
        response = await self._client.post(f"/api/project/{project_id}/generation", json=payload)
        return extract_generation_id(response.json())

    async def _resolve_caption(self, request: GenerationRequest, index: int, variants: List[str]) -> str:
        if not request.enhance_prompt:
            return request.prompt
        if variants:
            return variants[index % len(variants)]
        enhanced = await self._enhancer.enhance(request.prompt, 1)
        return enhanced[0] if enhanced else request.prompt

    async def _generate_one(
        self, project_id: str, request: GenerationRequest, index: int, variants: List[str]
    ) -> GeneratedItem:
        caption = await self._resolve_caption(request, index, variants)
        seed = self._item_seed(request.seed)

        payload = {
            "data": {
                "client_metadata": {
                    "aspectRatio": f"{request.width}:{request.height}",
                    "instruction": request.prompt,
                    "optimizeEnabled": request.enhance_prompt,
                    "unexpandedPrompt": request.prompt,
                },
                "inference_inputs": {
                    "caption": caption,
                    "height": request.height,
                    "negative_caption": request.negative_prompt,
                    "seed": seed,
                    "width": request.width,
                },
                "inference_model": request.model,
            },
            "node": {
                "description": GENERATION_DESCRIPTION,
                "id": str(uuid.uuid4()),
                "name": "My Generation",
            },
        }

        generation_id = await self._submit(project_id, payload)
        logger.info("Item %d submitted as generation %s (seed %d)", index, generation_id, seed)
        result = await self._poller_factory().poll(project_id, generation_id)

        return GeneratedItem(
            image_url=result.image_urls[0],
            seed=result.seed,
            generation_id=generation_id,
            caption=caption,
            enhanced_prompt=caption if request.enhance_prompt and caption != request.prompt else None,
        )

    async def generate(self, request: GenerationRequest) -> BatchResult:
        validate_image_options(request.width, request.height, request.batch_size)

        try:
            # one project lookup for the whole batch
            project_id = await self._projects.get_project_id()
            variants: List[str] = []
            if request.enhance_prompt and request.batch_size > 1:
                variants = await self._enhancer.enhance(request.prompt, request.batch_size)
                logger.info("Got %d enhanced prompts for a batch of %d", len(variants), request.batch_size)

            items: List[GeneratedItem] = await gather_all(
                [self._generate_one(project_id, request, index, variants) for index in range(request.batch_size)]
            )
        except ReveError:
            raise
        except Exception as exc:
            raise wrap_error(exc, "generating image") from exc

        caption, captions = _collapse([item.caption for item in items])
        enhanced_prompt, enhanced_prompts = (None, None)
        if request.enhance_prompt:
            enhanced_prompt, enhanced_prompts = _collapse(
                [item.enhanced_prompt for item in items if item.enhanced_prompt is not None]
            )

        return BatchResult(
            generation_ids=[item.generation_id for item in items],
            image_urls=[item.image_url for item in items],
            seed=items[0].seed,
            prompt=request.prompt,
            caption=caption,
            captions=captions,
            enhanced_prompt=enhanced_prompt,
            enhanced_prompts=enhanced_prompts,
            negative_prompt=request.negative_prompt or None,
        )

    async def edit(self, request: EditRequest) -> EditResult:
        validate_image_options(request.width, request.height)
        validate_edit_options(request.instruction, request.originating_generation)

        extra = request.model_extra or {}
        if extra.get("batch_size") not in (None, 1):
            logger.warning("Batch size > 1 is not supported for edits, processing a single edit")
        if extra.get("enhance_prompt"):
            logger.warning("Prompt enhancement is not supported for edits, ignoring the flag")

        try:
            project_id = await self._projects.get_project_id()
            aspect_ratio = f"{request.width}:{request.height}"
            caption = await self._enhancer.enhance_for_edit(
                request.prompt,
                request.original_caption,
                request.instruction,
                request.seed,
                aspect_ratio,
            )
            logger.debug("Using edit caption: %.100s", caption)

            seed = request.seed if request.seed != UNSPECIFIED_SEED else self._rng.randrange(MAX_EDIT_SEED)
            payload = {
                "data": {
                    "client_metadata": {
                        "aspectRatio": aspect_ratio,
                        "instruction": request.instruction,
                        "optimizeEnabled": True,
                        "originatingGeneration": request.originating_generation,
                        "unexpandedPrompt": request.prompt,
                        "annotatedPrompt": caption,
                    },
                    "inference_inputs": {
                        "caption": caption,
                        "height": request.height,
                        "negative_caption": request.negative_prompt,
                        "seed": seed,
                        "width": request.width,
                    },
                    "inference_model": request.model,
                },
                "node": {
                    "description": EDIT_DESCRIPTION,
                    "id": str(uuid.uuid4()),
                    "name": "My Edit Generation",
                },
            }

            generation_id = await self._submit(project_id, payload)
            logger.info("Edit of %s submitted as generation %s", request.originating_generation, generation_id)
            result = await self._poller_factory().poll(project_id, generation_id)
        except ReveError:
            raise
        except Exception as exc:
            raise wrap_error(exc, "editing image") from exc

        return EditResult(
            generation_id=generation_id,
            image_url=result.image_urls[0],
            seed=result.seed,
            prompt=request.prompt,
            negative_prompt=request.negative_prompt or None,
            instruction=request.instruction,
            originating_generation=request.originating_generation,
            final_caption=caption,
            annotated_prompt=request.annotated_prompt,
        )
