"""Tests for the fal.ai client and its queue polling loop."""
from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock

import pytest

from adscaler_bridge.core.cancellation import CancelToken
from adscaler_bridge.core.errors import (
    ConfigurationError,
    GenerationFailedError,
    PollCancelledError,
    PollTimeoutError,
    ProviderError,
)
from adscaler_bridge.core.fal_client import AdPrompts, FalClient, app_id, model_id
from adscaler_bridge.core.fal_types import FalModel, GenerationRequest, QueuePhase

RESULT = {
    "images": [{"url": "https://fal.media/ball.png", "width": 1024, "height": 1024}],
    "seed": 42,
    "prompt": "a red ball",
}


def _client(settings, statuses=(), result=RESULT):
    client = FalClient(settings)
    client._requests = MagicMock()
    client._requests.post = AsyncMock(return_value={"request_id": "req-1"})
    client._requests.get = AsyncMock(side_effect=[*statuses, result])
    client._requests.put = AsyncMock(return_value={})
    return client


def _status(phase, **extra):
    return {"status": phase, **extra}


@pytest.mark.asyncio
async def test_generate_image_polls_until_completed(settings):
    client = _client(settings, [_status("IN_QUEUE", queue_position=2), _status("IN_PROGRESS"), _status("COMPLETED")])
    seen = []

    result = await client.generate_image(
        GenerationRequest("a red ball"), on_status=lambda s: seen.append(s.status)
    )

    assert result.images[0].url == "https://fal.media/ball.png"
    assert result.seed == 42
    assert seen == [QueuePhase.in_queue, QueuePhase.in_progress, QueuePhase.completed]

    submit_url = client._requests.post.call_args.args[0]
    assert submit_url == "https://queue.fal.run/fal-ai/flux/schnell"
    status_url = client._requests.get.call_args_list[0].args[0]
    assert status_url == "https://queue.fal.run/fal-ai/flux/requests/req-1/status"
    result_url = client._requests.get.call_args_list[-1].args[0]
    assert result_url == "https://queue.fal.run/fal-ai/flux/requests/req-1"


@pytest.mark.asyncio
async def test_on_status_fires_once_per_phase_change(settings):
    client = _client(settings, [
        _status("IN_QUEUE"),
        _status("IN_QUEUE"),
        _status("IN_PROGRESS"),
        _status("IN_PROGRESS"),
        _status("COMPLETED"),
    ])
    on_status = MagicMock()

    await client.generate_image(GenerationRequest("a red ball"), on_status=on_status)

    assert on_status.call_count == 3


@pytest.mark.asyncio
async def test_failed_job_raises_with_provider_error(settings):
    client = _client(settings, [_status("IN_PROGRESS"), _status("FAILED", error="NSFW content detected")])

    with pytest.raises(GenerationFailedError) as exc_info:
        await client.generate_image(GenerationRequest("a red ball"))

    assert exc_info.value.detail == "NSFW content detected"
    # Result endpoint is never fetched for a failed job
    assert client._requests.get.await_count == 2


@pytest.mark.asyncio
async def test_failed_job_falls_back_to_last_log(settings):
    client = _client(settings, [
        _status("FAILED", logs=[{"message": "loading"}, {"message": "out of memory"}]),
    ])

    with pytest.raises(GenerationFailedError) as exc_info:
        await client.generate_image(GenerationRequest("a red ball"))

    assert exc_info.value.detail == "out of memory"


@pytest.mark.asyncio
async def test_poll_is_bounded_and_cancels_remote_job(settings):
    settings = replace(settings, fal_max_poll_attempts=3)
    client = _client(settings, [_status("IN_PROGRESS")] * 3)

    with pytest.raises(PollTimeoutError) as exc_info:
        await client.generate_image(GenerationRequest("a red ball"))

    assert exc_info.value.attempts == 3
    assert client._requests.get.await_count == 3
    cancel_url = client._requests.put.call_args.args[0]
    assert cancel_url == "https://queue.fal.run/fal-ai/flux/requests/req-1/cancel"


@pytest.mark.asyncio
async def test_cancel_token_stops_polling(settings):
    client = _client(settings, [_status("IN_PROGRESS")])
    token = CancelToken()
    token.cancel("superseded")

    with pytest.raises(PollCancelledError, match="superseded"):
        await client.generate_image(GenerationRequest("a red ball"), cancel=token)

    client._requests.get.assert_not_awaited()
    client._requests.put.assert_awaited_once()


@pytest.mark.asyncio
async def test_failed_remote_cancel_is_not_fatal(settings):
    client = _client(settings, [_status("IN_PROGRESS")])
    client._requests.put = AsyncMock(side_effect=ProviderError("gone", "https://queue.fal.run", status=404))
    token = CancelToken()
    token.cancel()

    with pytest.raises(PollCancelledError):
        await client.generate_image(GenerationRequest("a red ball"), cancel=token)


@pytest.mark.asyncio
async def test_unconfigured_client_raises_before_io(unconfigured_settings):
    client = _client(unconfigured_settings)

    with pytest.raises(ConfigurationError, match="FAL_KEY"):
        await client.generate_image(GenerationRequest("a red ball"))

    client._requests.post.assert_not_awaited()
    assert client.is_configured is False


@pytest.mark.asyncio
async def test_run_uses_synchronous_endpoint(settings):
    client = _client(settings)
    client._requests.post = AsyncMock(return_value=RESULT)

    result = await client.run(GenerationRequest("a red ball", width=512, height=768), FalModel.flux_dev)

    url, payload = client._requests.post.call_args.args
    assert url == "https://fal.run/fal-ai/flux/dev"
    assert payload["image_size"] == {"width": 512, "height": 768}
    assert result.prompt == "a red ball"


@pytest.mark.asyncio
async def test_generate_image_with_stream_callbacks(settings):
    client = _client(settings, [_status("COMPLETED")])
    on_result = MagicMock()
    on_error = MagicMock()

    await client.generate_image_with_stream(
        GenerationRequest("a red ball"), on_result=on_result, on_error=on_error
    )

    on_result.assert_called_once()
    on_error.assert_not_called()


@pytest.mark.asyncio
async def test_generate_image_with_stream_reports_errors(settings):
    client = _client(settings, [_status("FAILED", error="boom")])
    on_error = MagicMock()

    with pytest.raises(GenerationFailedError):
        await client.generate_image_with_stream(GenerationRequest("a red ball"), on_error=on_error)

    assert isinstance(on_error.call_args.args[0], GenerationFailedError)


@pytest.mark.asyncio
async def test_generate_ad_variants_runs_three_prompts(settings):
    client = _client(settings)
    client._requests.post = AsyncMock(return_value=RESULT)

    results = await client.generate_ad_variants(
        AdPrompts(variant_a="desk setup", variant_b="gift box", story_brand="hero journey")
    )

    prompts = sorted(c.args[1]["prompt"] for c in client._requests.post.call_args_list)
    assert prompts == ["desk setup", "gift box", "hero journey"]
    assert results.story_brand.seed == 42


def test_generation_request_payload_defaults():
    payload = GenerationRequest("a red ball").to_payload()

    assert payload == {
        "prompt": "a red ball",
        "image_size": {"width": 1024, "height": 1024},
        "num_images": 1,
        "guidance_scale": 7.5,
        "num_inference_steps": 28,
    }


def test_generation_request_payload_includes_optional_fields():
    payload = GenerationRequest("a red ball", negative_prompt="text", seed=0).to_payload()

    assert payload["negative_prompt"] == "text"
    assert payload["seed"] == 0


def test_model_and_app_ids():
    assert model_id(None, "fal-ai/flux/schnell") == "fal-ai/flux/schnell"
    assert model_id(FalModel.fast_sdxl, "x") == "fal-ai/fast-sdxl"
    assert app_id("fal-ai/flux/schnell") == "fal-ai/flux"
    assert app_id("fal-ai/fast-sdxl") == "fal-ai/fast-sdxl"


@pytest.mark.asyncio
async def test_error_phase_raises_generation_failed(settings):
    client = _client(settings, [_status("IN_PROGRESS"), _status("ERROR", error="Internal worker error")])

    with pytest.raises(GenerationFailedError) as exc_info:
        await client.generate_image(GenerationRequest("a red ball"))

    assert exc_info.value.detail == "Internal worker error"
    assert client._requests.get.await_count == 2
    client._requests.put.assert_not_awaited()


@pytest.mark.asyncio
async def test_poll_timeout_is_a_builtin_timeout(settings):
    settings = replace(settings, fal_max_poll_attempts=1)
    client = _client(settings, [_status("IN_QUEUE")])

    with pytest.raises(TimeoutError, match="timed out"):
        await client.generate_image(GenerationRequest("a red ball"))


@pytest.mark.asyncio
async def test_generate_image_batch_keeps_input_order(settings):
    seeds = {"first": 1, "second": 2, "third": 3}

    async def post(url, payload):
        return {**RESULT, "prompt": payload["prompt"], "seed": seeds[payload["prompt"]]}

    client = _client(settings)
    client._requests.post = AsyncMock(side_effect=post)
    requests = [GenerationRequest(p) for p in seeds]

    results = await client.generate_image_batch(requests, FalModel.fast_sdxl)

    assert [(r.prompt, r.seed) for r in results] == [("first", 1), ("second", 2), ("third", 3)]
    assert client._requests.post.await_count == 3
    urls = {c.args[0] for c in client._requests.post.call_args_list}
    assert urls == {"https://fal.run/fal-ai/fast-sdxl"}
