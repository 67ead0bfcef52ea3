"""
Polling engine for generation jobs.

One ``poll`` run tracks one job through the states
``POLLING -> SUCCEEDED | FAILED | TIMED_OUT``:

- job absent from the node list, still pending, or output ready but the
  artifact not yet fetchable: stay ``POLLING``, sleep, consume one attempt;
- explicit ``error`` on the job: ``FAILED`` at once, whatever budget is left;
- artifact fetched: ``SUCCEEDED``;
- budget exhausted while ``POLLING``: ``TIMED_OUT``.

A failure of the node-list fetch itself is not a polling attempt and ends
the run.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from ..schemas.generation import UNSPECIFIED_SEED, PollResult
from ..utils.errors import ARTIFACT_FETCH_RETRY, GenerationError, PollingError, ReveError, wrap_error
from ..utils.http_client import HttpClient

logger = logging.getLogger("reve.poller")

DEFAULT_IMAGE_MIME = "image/webp"
ARTIFACT_ACCEPT = "image/webp,*/*"


class PollState(str, Enum):
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


def to_data_uri(payload: bytes, content_type: Optional[str]) -> str:
    mime = (content_type or "").strip() or DEFAULT_IMAGE_MIME
    return f"data:{mime};base64,{base64.b64encode(payload).decode('ascii')}"


def _find_job(node_list: list, generation_id: str) -> Optional[Dict[str, Any]]:
    for item in node_list:
        if not isinstance(item, dict) or not isinstance(item.get("node"), dict):
            continue
        if item["node"].get("id") == generation_id:
            return item
    return None


class GenerationPoller:
    def __init__(
        self,
        client: HttpClient,
        max_attempts: int = 60,
        interval: float = 2.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self.max_attempts = max_attempts
        self.interval = interval
        self._sleep = sleep
        self.state = PollState.POLLING
        self.attempts = 0

    async def _fetch_artifact(self, project_id: str, image_id: str) -> str:
        response = await self._client.get(
            f"/api/project/{project_id}/image/{image_id}/url",
            headers={"accept": ARTIFACT_ACCEPT},
        )
        return to_data_uri(response.content, response.headers.get("content-type"))

    async def _fetch_node_list(self, project_id: str) -> Any:
        try:
            response = await self._client.get(f"/api/project/{project_id}/node")
            return response.json()
        except ReveError:
            raise
        except Exception as exc:
            raise wrap_error(exc, "polling generation status") from exc

    async def _wait(self) -> None:
        await self._sleep(self.interval)
        self.attempts += 1

    async def poll(self, project_id: str, generation_id: str) -> PollResult:
        """Poll until the job completes, fails, or the attempt budget runs out."""
        self.state = PollState.POLLING
        self.attempts = 0
        started = time.monotonic()

        while self.attempts < self.max_attempts:
            logger.debug("Polling attempt %d/%d for generation %s", self.attempts + 1, self.max_attempts, generation_id)
            body = await self._fetch_node_list(project_id)
            node_list = body.get("list") if isinstance(body, dict) else None

            if not isinstance(node_list, list):
                logger.warning("Node response list is missing or invalid: %.500r", body)
                await self._wait()
                continue

            job = _find_job(node_list, generation_id)
            data = (job or {}).get("data")
            if not isinstance(data, dict):
                data = {}

            if job is None:
                logger.debug("Generation %s not in node list yet", generation_id)
            elif data.get("error"):
                self.state = PollState.FAILED
                logger.error("Generation %s failed: %s", generation_id, data["error"])
                raise GenerationError(f"Generation failed: {data['error']}")
            elif data.get("output"):
                image_id = data["output"]
                inputs = data.get("inference_inputs")
                seed = inputs.get("seed") if isinstance(inputs, dict) else None
                try:
                    data_uri = await self._fetch_artifact(project_id, image_id)
                except Exception as exc:
                    logger.warning(
                        "Fetching image %s failed (%s), will retry polling: %s",
                        image_id, ARTIFACT_FETCH_RETRY, exc,
                    )
                else:
                    self.state = PollState.SUCCEEDED
                    logger.info(
                        "Generation %s complete after %d attempt(s) in %.1fs",
                        generation_id, self.attempts + 1, time.monotonic() - started,
                    )
                    return PollResult(
                        image_urls=[data_uri],
                        seed=seed if isinstance(seed, int) else UNSPECIFIED_SEED,
                    )
            else:
                logger.debug("Generation %s still in progress", generation_id)

            await self._wait()

        self.state = PollState.TIMED_OUT
        logger.error(
            "Generation %s polling timed out after %d attempts and %.1fs",
            generation_id, self.attempts, time.monotonic() - started,
        )
        raise PollingError(f"Generation timed out after {self.attempts} polling attempts")
