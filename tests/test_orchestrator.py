"""
Tests for the batch orchestrator.

Submissions go through a mocked HTTP client, polling through fake pollers
keyed by generation id, so each test controls exactly one concern.
"""

import asyncio
import itertools
import random
from unittest.mock import AsyncMock, Mock

import pytest

from reve.schemas.generation import EditRequest, GenerationRequest, PollResult
from reve.services.orchestrator import BatchOrchestrator, gather_all
from reve.services.projects import ProjectResolver
from reve.services.prompt_enhancer import PromptEnhancer
from reve.utils.errors import (
    GenerationError,
    InvalidRequestError,
    PollingError,
    UnexpectedResponse,
    UnknownError,
)
from tests._helpers import json_response
from tests.conftest import PROJECT_ID


def image_for(generation_id):
    return f"data:image/webp;base64,{generation_id}"


class Upstream:
    """Fake submission endpoint: hands out ids and remembers every payload."""

    def __init__(self, mock_http_client):
        self.payloads = {}
        self._ids = itertools.count(1)
        mock_http_client.post.side_effect = self.post

    async def post(self, url, **kwargs):
        generation_id = f"gen-{next(self._ids)}"
        self.payloads[generation_id] = kwargs["json"]
        return json_response({"create": {"node": {"id": generation_id}}}, method="POST", path=url)

    async def poll(self, project_id, generation_id):
        seed = self.payloads[generation_id]["data"]["inference_inputs"]["seed"]
        return PollResult(image_urls=[image_for(generation_id)], seed=seed)


def factory_for(poll):
    def factory():
        poller = Mock()
        poller.poll = AsyncMock(side_effect=poll)
        return poller
    return factory


@pytest.fixture
def enhancer():
    return AsyncMock(spec=PromptEnhancer)


@pytest.fixture
def upstream(mock_http_client):
    return Upstream(mock_http_client)


@pytest.fixture
def orchestrator(mock_http_client, projects, enhancer, upstream):
    return BatchOrchestrator(mock_http_client, projects, enhancer, factory_for(upstream.poll), rng=random.Random(7))


class TestGenerate:
    @pytest.mark.asyncio
    async def test_single_image_without_enhancement(self, orchestrator, enhancer, upstream, mock_http_client):
        result = await orchestrator.generate(GenerationRequest(prompt="a red fox", enhance_prompt=False))

        assert len(result.generation_ids) == 1
        assert len(result.image_urls) == 1
        assert result.image_urls[0].startswith("data:image/")
        assert result.caption == "a red fox"
        assert result.captions is None
        assert result.enhanced_prompt is None
        assert result.enhanced_prompts is None
        assert result.negative_prompt is None
        assert result.seed >= 0
        enhancer.enhance.assert_not_called()

        url = mock_http_client.post.call_args.args[0]
        payload = upstream.payloads[result.generation_ids[0]]
        assert url == f"/api/project/{PROJECT_ID}/generation"
        assert payload["data"]["inference_inputs"]["caption"] == "a red fox"
        assert payload["data"]["client_metadata"] == {
            "aspectRatio": "1024:1024",
            "instruction": "a red fox",
            "optimizeEnabled": False,
            "unexpandedPrompt": "a red fox",
        }
        assert payload["node"]["name"] == "My Generation"

    @pytest.mark.asyncio
    async def test_batch_keeps_submission_order(self, orchestrator, upstream):
        result = await orchestrator.generate(
            GenerationRequest(prompt="a red fox", batch_size=3, seed=100, enhance_prompt=False, negative_prompt="blur")
        )

        assert len(result.generation_ids) == 3
        assert len(set(result.generation_ids)) == 3
        assert result.image_urls == [image_for(g) for g in result.generation_ids]
        assert result.captions == ["a red fox"] * 3
        assert result.caption is None
        assert result.negative_prompt == "blur"
        for generation_id in result.generation_ids:
            inputs = upstream.payloads[generation_id]["data"]["inference_inputs"]
            assert 100 <= inputs["seed"] < 1100
            assert inputs["negative_caption"] == "blur"
        node_ids = {p["node"]["id"] for p in upstream.payloads.values()}
        assert len(node_ids) == 3

    @pytest.mark.asyncio
    async def test_batch_uses_prefetched_variants_in_order(self, orchestrator, enhancer):
        variants = ["fox at dawn", "fox at noon", "fox at dusk", "fox at night"]
        enhancer.enhance.return_value = variants

        result = await orchestrator.generate(GenerationRequest(prompt="a red fox", batch_size=4))

        enhancer.enhance.assert_awaited_once_with("a red fox", 4)
        assert result.captions == variants
        assert result.enhanced_prompts == variants

    @pytest.mark.asyncio
    async def test_short_variant_list_is_cycled(self, orchestrator, enhancer):
        enhancer.enhance.return_value = ["v1", "v2"]
        result = await orchestrator.generate(GenerationRequest(prompt="a red fox", batch_size=3))
        assert result.captions == ["v1", "v2", "v1"]

    @pytest.mark.asyncio
    async def test_single_image_enhanced_lazily(self, orchestrator, enhancer, upstream):
        enhancer.enhance.return_value = ["a red fox, cinematic lighting"]

        result = await orchestrator.generate(GenerationRequest(prompt="a red fox"))

        enhancer.enhance.assert_awaited_once_with("a red fox", 1)
        assert result.caption == "a red fox, cinematic lighting"
        assert result.enhanced_prompt == "a red fox, cinematic lighting"
        payload = upstream.payloads[result.generation_ids[0]]
        assert payload["data"]["client_metadata"]["optimizeEnabled"] is True

    @pytest.mark.asyncio
    async def test_enhancement_fallback_reports_no_enhanced_prompt(self, orchestrator, enhancer):
        enhancer.enhance.return_value = ["a red fox"]
        result = await orchestrator.generate(GenerationRequest(prompt="a red fox"))
        assert result.caption == "a red fox"
        assert result.enhanced_prompt is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kwargs", [{"width": 100}, {"height": 4096}, {"batch_size": 0}, {"batch_size": 9}])
    async def test_validation_happens_before_any_call(self, orchestrator, enhancer, mock_http_client, kwargs):
        with pytest.raises(InvalidRequestError):
            await orchestrator.generate(GenerationRequest(prompt="a red fox", **kwargs))
        mock_http_client.post.assert_not_called()
        mock_http_client.get.assert_not_called()
        enhancer.enhance.assert_not_called()

    @pytest.mark.asyncio
    async def test_one_failure_fails_the_batch_and_cancels_the_rest(
        self, mock_http_client, projects, enhancer, upstream
    ):
        cancelled = []

        async def poll(project_id, generation_id):
            if generation_id == "gen-2":
                await asyncio.sleep(0)
                raise GenerationError("Generation failed: OOM")
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(generation_id)
                raise

        orchestrator = BatchOrchestrator(mock_http_client, projects, enhancer, factory_for(poll))

        with pytest.raises(GenerationError) as exc_info:
            await orchestrator.generate(GenerationRequest(prompt="a red fox", batch_size=3, enhance_prompt=False))

        assert exc_info.value.message == "Generation failed: OOM"
        assert sorted(cancelled) == ["gen-1", "gen-3"]

    @pytest.mark.asyncio
    async def test_auto_detected_project_looked_up_once(self, mock_http_client, enhancer, upstream):
        async def get(url, **kwargs):
            await asyncio.sleep(0)
            return json_response([{"id": "detected-1"}], path=url)

        mock_http_client.get.side_effect = get
        orchestrator = BatchOrchestrator(
            mock_http_client, ProjectResolver(mock_http_client), enhancer, factory_for(upstream.poll)
        )

        result = await orchestrator.generate(GenerationRequest(prompt="a red fox", batch_size=3, enhance_prompt=False))

        assert len(result.generation_ids) == 3
        mock_http_client.get.assert_awaited_once_with("/api/projects")
        submitted = [call.args[0] for call in mock_http_client.post.call_args_list]
        assert submitted == ["/api/project/detected-1/generation"] * 3

    @pytest.mark.asyncio
    async def test_polling_timeout_propagates(self, mock_http_client, projects, enhancer, upstream):
        async def poll(project_id, generation_id):
            raise PollingError("Generation timed out after 60 polling attempts")

        orchestrator = BatchOrchestrator(mock_http_client, projects, enhancer, factory_for(poll))
        with pytest.raises(PollingError):
            await orchestrator.generate(GenerationRequest(prompt="a red fox", enhance_prompt=False))

    @pytest.mark.asyncio
    async def test_unrecognized_submission_response(self, orchestrator, mock_http_client):
        mock_http_client.post.side_effect = None
        mock_http_client.post.return_value = json_response({"status": "queued"}, method="POST")

        with pytest.raises(UnexpectedResponse):
            await orchestrator.generate(GenerationRequest(prompt="a red fox", enhance_prompt=False))

    @pytest.mark.asyncio
    async def test_unclassified_failure_is_wrapped(self, orchestrator, mock_http_client):
        mock_http_client.post.side_effect = KeyError("boom")

        with pytest.raises(UnknownError) as exc_info:
            await orchestrator.generate(GenerationRequest(prompt="a red fox", enhance_prompt=False))
        assert "generating image" in exc_info.value.message


class TestEdit:
    @pytest.fixture
    def edit_request(self):
        return EditRequest(
            prompt="a red fox",
            instruction="make it snow",
            originating_generation="gen-orig",
            original_caption="a red fox, golden hour",
            width=1360,
            height=768,
            seed=4242,
        )

    @pytest.mark.asyncio
    async def test_edit_submits_single_job(self, orchestrator, enhancer, upstream, edit_request):
        enhancer.enhance_for_edit.return_value = "a red fox in the snow"

        result = await orchestrator.edit(edit_request)

        enhancer.enhance_for_edit.assert_awaited_once_with(
            "a red fox", "a red fox, golden hour", "make it snow", 4242, "1360:768"
        )
        enhancer.enhance.assert_not_called()
        assert len(upstream.payloads) == 1
        payload = upstream.payloads[result.generation_id]
        assert payload["data"]["inference_inputs"]["caption"] == "a red fox in the snow"
        assert payload["data"]["inference_inputs"]["seed"] == 4242
        assert payload["data"]["client_metadata"]["originatingGeneration"] == "gen-orig"
        assert payload["data"]["client_metadata"]["annotatedPrompt"] == "a red fox in the snow"
        assert payload["node"]["name"] == "My Edit Generation"

        assert result.final_caption == "a red fox in the snow"
        assert result.instruction == "make it snow"
        assert result.originating_generation == "gen-orig"
        assert result.image_url == image_for(result.generation_id)
        assert result.seed == 4242

    @pytest.mark.asyncio
    async def test_edit_random_seed(self, orchestrator, enhancer, upstream):
        enhancer.enhance_for_edit.return_value = "caption"
        result = await orchestrator.edit(
            EditRequest(prompt="a red fox", instruction="make it snow", originating_generation="gen-orig")
        )
        assert 0 <= upstream.payloads[result.generation_id]["data"]["inference_inputs"]["seed"] < 1_000_000_000

    @pytest.mark.asyncio
    async def test_edit_ignores_batch_and_enhance_flags(self, orchestrator, enhancer, upstream):
        enhancer.enhance_for_edit.return_value = "caption"
        await orchestrator.edit(
            EditRequest(
                prompt="a red fox",
                instruction="make it snow",
                originating_generation="gen-orig",
                batch_size=4,
                enhance_prompt=True,
            )
        )
        assert len(upstream.payloads) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("instruction,originating", [("", "gen-orig"), ("make it snow", "  ")])
    async def test_edit_validation_before_any_call(self, orchestrator, enhancer, mock_http_client, instruction, originating):
        with pytest.raises(InvalidRequestError):
            await orchestrator.edit(
                EditRequest(prompt="a red fox", instruction=instruction, originating_generation=originating)
            )
        enhancer.enhance_for_edit.assert_not_called()
        mock_http_client.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_edit_caption_failure_propagates(self, orchestrator, enhancer, mock_http_client, edit_request):
        enhancer.enhance_for_edit.side_effect = UnexpectedResponse("Failed to extract enhanced edit prompt")
        with pytest.raises(UnexpectedResponse):
            await orchestrator.edit(edit_request)
        mock_http_client.post.assert_not_called()


@pytest.mark.asyncio
async def test_gather_all_preserves_order():
    async def value(v, delay):
        await asyncio.sleep(delay)
        return v

    assert await gather_all([value("a", 0.02), value("b", 0), value("c", 0.01)]) == ["a", "b", "c"]
