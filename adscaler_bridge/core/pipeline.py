"""Ad creative pipeline: fal.ai base image, then an optional Bannerbear overlay.

Base images are generated without text; headline and CTA are composited on
top afterwards so the copy stays crisp and editable.
"""
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .bannerbear_client import BannerbearClient, ImageStatusCallback
from .bannerbear_types import AdFormat, CompositeStatus, OverlayConfig
from .cancellation import CancelToken
from .errors import NoImageError, PollCancelledError
from .fal_client import FalClient, StatusCallback
from .fal_types import FalModel, GenerationRequest

logger = logging.getLogger(__name__)


FORMAT_DIMENSIONS: dict[AdFormat, tuple[int, int]] = {
    AdFormat.square: (1080, 1080),
    AdFormat.story: (1080, 1920),
    AdFormat.landscape: (1200, 628),
}

AD_PROMPT_SUFFIX = ", clean composition, no text, no watermark, no logo, professional photography"

AD_NEGATIVE_PROMPT = (
    "text, words, letters, watermark, logo, signature, writing, captions, "
    "subtitles, blurry, low quality"
)


class CreativeStatus(str, Enum):
    completed = "completed"
    failed = "failed"


@dataclass(frozen=True)
class AdCreativeInput:
    prompt: str
    overlay: OverlayConfig
    negative_prompt: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    seed: Optional[int] = None
    model: "str | FalModel | None" = None


@dataclass(frozen=True)
class BaseImage:
    """The text-free image from fal.ai."""
    url: str
    width: int
    height: int


@dataclass(frozen=True)
class FinalImage:
    """The composited creative from Bannerbear."""
    url: str
    bannerbear_uid: str


@dataclass(frozen=True)
class CreativeTiming:
    total_ms: int
    generation_ms: Optional[int] = None
    overlay_ms: Optional[int] = None


@dataclass(frozen=True)
class AdCreativeResult:
    base_image: Optional[BaseImage]
    seed: Optional[int]
    has_overlay: bool
    timing: CreativeTiming
    final_image: Optional[FinalImage] = None
    status: CreativeStatus = CreativeStatus.completed
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str, seed: Optional[int] = None) -> "AdCreativeResult":
        return cls(
            base_image=None,
            seed=seed,
            has_overlay=False,
            timing=CreativeTiming(total_ms=0),
            status=CreativeStatus.failed,
            error=error,
        )


def resolve_dimensions(
    fmt: AdFormat, width: Optional[int] = None, height: Optional[int] = None
) -> tuple[int, int]:
    """Format preset dimensions; explicit values win per axis."""
    preset_width, preset_height = FORMAT_DIMENSIONS[AdFormat(fmt)]
    return width or preset_width, height or preset_height


def enhance_prompt_for_ads(prompt: str) -> str:
    # Substring check only; "no textures" also counts as already enhanced.
    if "--no text" in prompt or "no text" in prompt:
        return prompt
    return f"{prompt}{AD_PROMPT_SUFFIX}"


def get_ad_negative_prompt(custom: Optional[str] = None) -> str:
    return f"{custom}, {AD_NEGATIVE_PROMPT}" if custom else AD_NEGATIVE_PROMPT


def _elapsed_ms(start: float, end: float) -> int:
    return int(round((end - start) * 1000))


async def _apply_overlay(
    bannerbear: BannerbearClient,
    base_image_url: str,
    overlay: OverlayConfig,
    cancel: Optional[CancelToken],
    on_status: Optional[ImageStatusCallback] = None,
) -> Optional[FinalImage]:
    try:
        composite = await bannerbear.generate_and_wait_for_composite(
            base_image_url, overlay, cancel=cancel, on_status=on_status
        )
    except PollCancelledError:
        raise
    except Exception as e:
        # The base image is still a usable creative
        logger.warning("Bannerbear overlay failed, returning base image only: %s", e)
        return None

    if composite.status is CompositeStatus.completed and composite.image_url:
        return FinalImage(url=composite.image_url, bannerbear_uid=composite.uid)
    return None


async def generate_ad_creative(
    creative: AdCreativeInput,
    *,
    fal: FalClient,
    bannerbear: Optional[BannerbearClient] = None,
    cancel: Optional[CancelToken] = None,
    on_image_status: Optional[StatusCallback] = None,
    on_overlay_status: Optional[ImageStatusCallback] = None,
) -> AdCreativeResult:
    """
    Generate one finished ad creative.

    `on_image_status` follows the fal.ai queue and `on_overlay_status` the
    Bannerbear render; each fires once per status transition.

    Raises:
        NoImageError: generation succeeded without returning an image
        GenerationFailedError, PollTimeoutError, RequestError: from fal.ai
        PollCancelledError: token was cancelled
    """
    start = time.monotonic()

    width, height = resolve_dimensions(creative.overlay.format, creative.width, creative.height)
    request = GenerationRequest(
        prompt=enhance_prompt_for_ads(creative.prompt),
        negative_prompt=get_ad_negative_prompt(creative.negative_prompt),
        width=width,
        height=height,
        seed=creative.seed,
        num_images=1,
    )
    generated = await fal.generate_image(
        request, creative.model, on_status=on_image_status, cancel=cancel
    )
    generated_at = time.monotonic()

    if not generated.images:
        raise NoImageError("Image generation failed: No images returned from fal.ai API")
    image = generated.images[0]
    base_image = BaseImage(
        url=image.url,
        width=image.width or width,
        height=image.height or height,
    )

    final_image = None
    if bannerbear is not None and bannerbear.is_configured:
        final_image = await _apply_overlay(
            bannerbear, base_image.url, creative.overlay, cancel, on_overlay_status
        )
    end = time.monotonic()

    return AdCreativeResult(
        base_image=base_image,
        final_image=final_image,
        seed=generated.seed if generated.seed is not None else creative.seed,
        has_overlay=final_image is not None,
        timing=CreativeTiming(
            total_ms=_elapsed_ms(start, end),
            generation_ms=_elapsed_ms(start, generated_at),
            overlay_ms=_elapsed_ms(generated_at, end) if final_image else None,
        ),
    )
