"""Bannerbear client for Bridge.

Creates template renders with text overlays on top of generated base images
and polls them to completion.
"""
import logging
from dataclasses import replace
from typing import Callable, Optional

from .aiohttp_request_manager import AiohttpRequestManager, validate_response
from .bannerbear_types import (
    BannerbearImage,
    BannerbearTemplate,
    CompositeResult,
    CompositeStatus,
    OverlayConfig,
    TemplateConfig,
)
from .cancellation import CancelToken, pause
from .errors import ConfigurationError, GenerationFailedError, PollTimeoutError
from .settings import Settings
from .templates import get_template_for_format

logger = logging.getLogger(__name__)

PROVIDER = "Bannerbear"

ImageStatusCallback = Callable[[BannerbearImage], None]


def build_modifications(
    template: TemplateConfig, base_image_url: str, overlay: OverlayConfig
) -> list[dict]:
    """Layer modifications for one render: background image, headline, CTA, subtext."""
    colors = overlay.colors
    headline = {"name": template.layers.headline, "text": overlay.headline}
    cta = {"name": template.layers.cta, "text": overlay.cta}
    if colors and colors.headline:
        headline["color"] = colors.headline
    if colors and colors.cta:
        cta["color"] = colors.cta
    if colors and colors.cta_background:
        cta["background"] = colors.cta_background

    modifications = [
        {"name": template.layers.background, "image_url": base_image_url},
        headline,
        cta,
    ]
    if overlay.subtext and template.layers.subtext:
        modifications.append({"name": template.layers.subtext, "text": overlay.subtext})
    return modifications


def composite_from_image(
    image: BannerbearImage,
    base_image_url: str,
    template: TemplateConfig,
    overlay: OverlayConfig,
) -> CompositeResult:
    error = None
    if image.status is CompositeStatus.failed:
        error = image.error_message or "Composite generation failed"
    return CompositeResult(
        uid=image.uid,
        status=image.status,
        base_image_url=base_image_url,
        template=template,
        overlay=overlay,
        image_url=image.image_url,
        error=error,
    )


class BannerbearClient:
    """Text overlay compositing against the Bannerbear v2 API."""

    def __init__(self, settings: Settings):
        self._settings = settings
        self._requests = AiohttpRequestManager(
            headers={"Authorization": f"Bearer {settings.bannerbear_api_key}"},
            timeout=settings.request_timeout,
        )

    @property
    def is_configured(self) -> bool:
        return self._settings.bannerbear_configured

    def _url(self, endpoint: str) -> str:
        if not self.is_configured:
            raise ConfigurationError(
                "Bannerbear API key not configured. Set BANNERBEAR_API_KEY in the environment."
            )
        return f"{self._settings.bannerbear_base_url}{endpoint}"

    def template_for(self, overlay: OverlayConfig) -> TemplateConfig:
        return get_template_for_format(overlay.format, self._settings)

    # === Low-level API ===

    async def create_image(self, request: dict) -> BannerbearImage:
        url = self._url("/images")
        data = await self._requests.post(url, request)
        return validate_response(BannerbearImage, data, url, PROVIDER)

    async def get_image(self, uid: str) -> BannerbearImage:
        url = self._url(f"/images/{uid}")
        data = await self._requests.get(url)
        return validate_response(BannerbearImage, data, url, PROVIDER)

    async def list_templates(self) -> list[BannerbearTemplate]:
        url = self._url("/templates")
        data = await self._requests.get(url)
        if not isinstance(data, list):
            data = []
        return [validate_response(BannerbearTemplate, t, url, PROVIDER) for t in data]

    async def get_template(self, uid: str) -> BannerbearTemplate:
        url = self._url(f"/templates/{uid}")
        data = await self._requests.get(url)
        return validate_response(BannerbearTemplate, data, url, PROVIDER)

    # === Pipeline ===

    async def generate_composite_image(
        self,
        base_image_url: str,
        overlay: OverlayConfig,
        webhook_url: Optional[str] = None,
        synchronous: bool = False,
    ) -> CompositeResult:
        """Start a render of the overlay on top of `base_image_url`."""
        template = self.template_for(overlay)
        request = {
            "template": template.template_id,
            "modifications": build_modifications(template, base_image_url, overlay),
            "synchronous": synchronous,
            "metadata": {
                "base_image_url": base_image_url,
                "format": overlay.format.value,
            },
        }
        if webhook_url:
            request["webhook_url"] = webhook_url

        image = await self.create_image(request)
        logger.info("Bannerbear render %s started (%s)", image.uid, template.name)
        return composite_from_image(image, base_image_url, template, overlay)

    async def poll_completion(
        self,
        uid: str,
        max_attempts: Optional[int] = None,
        interval: Optional[float] = None,
        cancel: Optional[CancelToken] = None,
        on_status: Optional[ImageStatusCallback] = None,
    ) -> BannerbearImage:
        """
        Poll a render until completed.

        Queries immediately, then waits `interval` between queries.
        `on_status` is called once per status transition.

        Raises:
            GenerationFailedError: render failed
            PollTimeoutError: still pending after `max_attempts` queries
        """
        if max_attempts is None:
            max_attempts = self._settings.bannerbear_max_poll_attempts
        if interval is None:
            interval = self._settings.poll_interval

        last_status: CompositeStatus | None = None
        for attempt in range(1, max_attempts + 1):
            if cancel:
                cancel.raise_if_cancelled()
            image = await self.get_image(uid)

            if image.status is not last_status:
                last_status = image.status
                logger.debug("Bannerbear render %s: %s", uid, image.status.value)
                if on_status:
                    on_status(image)

            if image.status is CompositeStatus.completed:
                return image
            if image.status is CompositeStatus.failed:
                raise GenerationFailedError(
                    f"Bannerbear image generation failed: {image.error_message}",
                    detail=image.error_message,
                )

            if attempt < max_attempts:
                await pause(interval, cancel)

        logger.warning("Bannerbear render %s still pending after %d polls", uid, max_attempts)
        raise PollTimeoutError(
            f"Bannerbear image generation timed out after {max_attempts * interval:g}s",
            max_attempts,
        )

    async def generate_and_wait_for_composite(
        self,
        base_image_url: str,
        overlay: OverlayConfig,
        cancel: Optional[CancelToken] = None,
        on_status: Optional[ImageStatusCallback] = None,
    ) -> CompositeResult:
        initial = await self.generate_composite_image(base_image_url, overlay)

        # Rare with async renders
        if initial.status is CompositeStatus.completed and initial.image_url:
            return initial
        if initial.status is CompositeStatus.failed:
            raise GenerationFailedError(
                f"Bannerbear image generation failed: {initial.error}",
                detail=initial.error,
            )

        completed = await self.poll_completion(
            initial.uid, cancel=cancel, on_status=on_status
        )
        return replace(
            initial,
            status=completed.status,
            image_url=completed.image_url,
            error=None,
        )

    async def close(self):
        await self._requests.close()
