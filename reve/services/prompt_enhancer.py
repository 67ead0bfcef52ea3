from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from ..config import DEFAULT_ENHANCER_MODEL
from ..utils.errors import ENHANCEMENT_FALLBACK, ReveError, wrap_error
from ..utils.http_client import JSON_CONTENT_TYPE, HttpClient
from .normalizer import extract_chat_prompt
from .projects import ProjectResolver

logger = logging.getLogger("reve.enhancer")

INFER_PATH = "/api/misc/model_infer_sync"
CHAT_PATH = "/api/misc/chat"
CHAT_MAX_LENGTH = 8192
# Placeholder turn the chat endpoint requires after the instruction
ASSISTANT_PLACEHOLDER = '[{"}]'


def build_edit_conversation(
    original_prompt: str,
    original_caption: Optional[str],
    instruction: str,
    seed: Optional[int] = None,
    aspect_ratio: Optional[str] = None,
) -> Dict[str, Any]:
    """Build the five-turn conversation payload for an edit caption."""
    context: Dict[str, Any] = {"prompt": original_caption or original_prompt}
    if seed is not None and seed != -1:
        context["seed"] = seed
    if aspect_ratio:
        context["aspectRatio"] = aspect_ratio

    return {
        "max_length": CHAT_MAX_LENGTH,
        "conversation": [
            {
                "role": "user",
                "multi_content": [{
                    "template_text": {
                        "template_name": "prompt_edit",
                        "template_args": {"numVariations": 1},
                    }
                }],
            },
            {"role": "user", "content": original_prompt},
            {"role": "assistant", "content": json.dumps(context)},
            {"role": "user", "content": instruction},
            {"role": "assistant", "multi_content": [{"text": ASSISTANT_PLACEHOLDER}]},
        ],
    }


def _expanded_prompts(body: Any) -> Optional[List[str]]:
    if not isinstance(body, list) or not body:
        return None
    last = body[-1]
    if not isinstance(last, dict) or last.get("status") != "success":
        return None
    prompts = (last.get("outputs") or {}).get("expanded_prompts")
    if not isinstance(prompts, list):
        return None
    prompts = [p for p in prompts if isinstance(p, str) and p]
    return prompts or None


class PromptEnhancer:
    """Client for the auxiliary prompt-expansion and chat endpoints."""

    def __init__(self, client: HttpClient, projects: ProjectResolver, model_id: str = DEFAULT_ENHANCER_MODEL) -> None:
        self._client = client
        self._projects = projects
        self.model_id = model_id

    async def enhance(self, prompt: str, variant_count: int = 4) -> List[str]:
        """Return ``variant_count`` expanded prompts, or ``[prompt]`` on any failure.

        Enhancement is advisory: this never raises.
        """
        logger.debug("Enhancing prompt with %d variants: %s", variant_count, prompt)
        try:
            payload = {
                "inputs": {"num_variants": variant_count, "prompt": prompt},
                "model_id": self.model_id,
                "project_id": await self._projects.get_project_id(),
            }
            response = await self._client.post(INFER_PATH, json=payload)
            prompts = _expanded_prompts(response.json())
        except Exception as exc:
            logger.warning("Prompt enhancement failed (%s), using original prompt: %s", ENHANCEMENT_FALLBACK, exc)
            return [prompt]

        if prompts is None:
            logger.info("Prompt enhancement unsuccessful (%s), using original prompt", ENHANCEMENT_FALLBACK)
            return [prompt]

        logger.debug("Prompt enhancement produced %d variants", len(prompts))
        return prompts

    async def enhance_for_edit(
        self,
        original_prompt: str,
        original_caption: Optional[str],
        instruction: str,
        seed: Optional[int] = None,
        aspect_ratio: Optional[str] = None,
    ) -> str:
        """Synthesize the caption of an edit from its conversational context.

        Unlike ``enhance`` failures propagate: an edit cannot proceed without
        its caption.
        """
        logger.debug(
            "Enhancing edit prompt. instruction=%r original_prompt=%.50r original_caption=%.50r",
            instruction, original_prompt, original_caption or "N/A",
        )
        payload = build_edit_conversation(original_prompt, original_caption, instruction, seed, aspect_ratio)

        try:
            response = await self._client.post(
                CHAT_PATH,
                content=json.dumps(payload),
                headers={"content-type": JSON_CONTENT_TYPE, "accept": "*/*"},
            )
            try:
                body = response.json()
            except ValueError:
                body = response.text
            return extract_chat_prompt(body)
        except ReveError:
            raise
        except Exception as exc:
            raise wrap_error(exc, "enhancing edit prompt") from exc
