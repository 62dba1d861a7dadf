"""fal.ai client for Bridge.

Wraps the synchronous run endpoint and the queue API (submit/status/result/
cancel), and drives queued jobs to their terminal state by polling.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .aiohttp_request_manager import AiohttpRequestManager, validate_response
from .cancellation import CancelToken, pause
from .errors import (
    ConfigurationError,
    GenerationFailedError,
    PollCancelledError,
    PollTimeoutError,
    RequestError,
)
from .fal_types import (
    FalModel,
    GenerationRequest,
    GenerationResult,
    QueuePhase,
    QueueStatus,
    QueueSubmission,
)
from .settings import Settings

logger = logging.getLogger(__name__)

PROVIDER = "fal.ai"

StatusCallback = Callable[[QueueStatus], None]
ResultCallback = Callable[[GenerationResult], None]


def model_id(model: "str | FalModel | None", default: str) -> str:
    if model is None:
        return default
    if isinstance(model, FalModel):
        return model.value
    return model


def app_id(model: str) -> str:
    """Queue status/result URLs are keyed by `owner/app`, without the sub-path."""
    parts = model.strip("/").split("/")
    return "/".join(parts[:2])


@dataclass(frozen=True)
class AdPrompts:
    variant_a: str
    variant_b: str
    story_brand: str


@dataclass(frozen=True)
class AdVariantResults:
    variant_a: GenerationResult
    variant_b: GenerationResult
    story_brand: GenerationResult


class FalClient:
    """Image generation against fal.ai."""

    def __init__(self, settings: Settings):
        self._settings = settings
        self._requests = AiohttpRequestManager(
            headers={"Authorization": f"Key {settings.fal_key}"},
            timeout=settings.request_timeout,
        )

    @property
    def is_configured(self) -> bool:
        return self._settings.fal_configured

    @property
    def default_model(self) -> str:
        return self._settings.fal_default_model

    def _require_key(self):
        if not self.is_configured:
            raise ConfigurationError(
                "fal.ai API key not configured. Set FAL_KEY in the environment."
            )

    def _queue_url(self, model: str, request_id: str, suffix: str = "") -> str:
        url = f"{self._settings.fal_queue_url}/{app_id(model)}/requests/{request_id}"
        return f"{url}/{suffix}" if suffix else url

    # === Single calls ===

    async def run(
        self, request: GenerationRequest, model: "str | FalModel | None" = None
    ) -> GenerationResult:
        """Generate synchronously. Best for fast models like flux/schnell."""
        self._require_key()
        url = f"{self._settings.fal_run_url}/{model_id(model, self.default_model)}"
        data = await self._requests.post(url, request.to_payload())
        return validate_response(GenerationResult, data, url, PROVIDER)

    async def submit(
        self, request: GenerationRequest, model: "str | FalModel | None" = None
    ) -> str:
        """Submit a queued job and return its request id."""
        self._require_key()
        url = f"{self._settings.fal_queue_url}/{model_id(model, self.default_model)}"
        data = await self._requests.post(url, request.to_payload())
        return validate_response(QueueSubmission, data, url, PROVIDER).request_id

    async def status(
        self, request_id: str, model: "str | FalModel | None" = None
    ) -> QueueStatus:
        self._require_key()
        url = self._queue_url(model_id(model, self.default_model), request_id, "status")
        data = await self._requests.get(url, params={"logs": "1"})
        return validate_response(QueueStatus, data, url, PROVIDER)

    async def result(
        self, request_id: str, model: "str | FalModel | None" = None
    ) -> GenerationResult:
        self._require_key()
        url = self._queue_url(model_id(model, self.default_model), request_id)
        data = await self._requests.get(url)
        return validate_response(GenerationResult, data, url, PROVIDER)

    async def cancel(
        self, request_id: str, model: "str | FalModel | None" = None
    ) -> None:
        self._require_key()
        url = self._queue_url(model_id(model, self.default_model), request_id, "cancel")
        await self._requests.put(url)

    # === Polling ===

    async def generate_image(
        self,
        request: GenerationRequest,
        model: "str | FalModel | None" = None,
        on_status: Optional[StatusCallback] = None,
        cancel: Optional[CancelToken] = None,
    ) -> GenerationResult:
        """
        Submit a job and poll it until COMPLETED, FAILED or ERROR.

        Args:
            request: Generation parameters
            model: fal model id (defaults to settings)
            on_status: Called once per status transition
            cancel: Optional token checked at every wait

        Raises:
            GenerationFailedError: job reached FAILED or ERROR
            PollTimeoutError: no terminal state after fal_max_poll_attempts polls
            PollCancelledError: token was cancelled (remote job is cancelled too)
        """
        model = model_id(model, self.default_model)
        max_attempts = self._settings.fal_max_poll_attempts

        request_id = await self.submit(request, model)
        logger.info("fal job %s submitted to %s", request_id, model)

        last_phase: QueuePhase | None = None
        try:
            for _ in range(max_attempts):
                await pause(self._settings.poll_interval, cancel)
                status = await self.status(request_id, model)

                if status.status != last_phase:
                    last_phase = status.status
                    logger.debug("fal job %s: %s", request_id, status.status.value)
                    if on_status:
                        on_status(status)

                if status.is_terminal:
                    break
            else:
                raise PollTimeoutError(
                    f"Image generation timed out after "
                    f"{max_attempts * self._settings.poll_interval:g}s",
                    max_attempts,
                )
        except (PollCancelledError, PollTimeoutError):
            await self._cancel_quietly(request_id, model)
            raise

        if last_phase is not None and last_phase.is_failure:
            detail = status.error or (status.logs[-1].message if status.logs else None)
            logger.error("fal job %s failed: %s", request_id, detail)
            raise GenerationFailedError(
                f"Image generation failed: {detail or 'no detail from provider'}",
                detail=detail,
            )

        result = await self.result(request_id, model)
        logger.info("fal job %s finished with %d image(s)", request_id, len(result.images))
        return result

    async def generate_image_with_stream(
        self,
        request: GenerationRequest,
        model: "str | FalModel | None" = None,
        on_status: Optional[StatusCallback] = None,
        on_result: Optional[ResultCallback] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        cancel: Optional[CancelToken] = None,
    ) -> GenerationResult:
        """generate_image with result/error callbacks for UI feedback."""
        try:
            result = await self.generate_image(request, model, on_status, cancel)
        except Exception as e:
            if on_error:
                on_error(e)
            raise
        if on_result:
            on_result(result)
        return result

    async def _cancel_quietly(self, request_id: str, model: str) -> None:
        try:
            await self.cancel(request_id, model)
            logger.info("fal job %s cancelled", request_id)
        except RequestError as e:
            # The local poll has already stopped; a failed remote cancel only
            # leaves the provider job running to completion.
            logger.warning("Failed to cancel fal job %s: %s", request_id, e)

    # === Fan-out helpers ===

    async def generate_image_batch(
        self,
        requests: list[GenerationRequest],
        model: "str | FalModel | None" = None,
    ) -> list[GenerationResult]:
        """Run several synchronous generations in parallel, in input order."""
        return list(await asyncio.gather(*(self.run(r, model) for r in requests)))

    async def generate_ad_variants(
        self,
        prompts: AdPrompts,
        width: int = 1024,
        height: int = 1024,
        model: "str | FalModel | None" = None,
    ) -> AdVariantResults:
        variant_a, variant_b, story_brand = await asyncio.gather(
            self.run(GenerationRequest(prompts.variant_a, width=width, height=height), model),
            self.run(GenerationRequest(prompts.variant_b, width=width, height=height), model),
            self.run(GenerationRequest(prompts.story_brand, width=width, height=height), model),
        )
        return AdVariantResults(variant_a, variant_b, story_brand)

    async def close(self):
        await self._requests.close()
