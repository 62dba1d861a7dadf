"""Chunked batch execution with per-item failure isolation.

Items run in contiguous chunks of `concurrency`; a chunk starts only after the
previous one has fully settled. Failed items become failure-shaped results so
a batch always yields one result per input, in input order.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar

from .bannerbear_client import BannerbearClient
from .bannerbear_types import (
    BannerbearImage,
    CompositeItem,
    CompositeResult,
    CompositeStatus,
    OverlayConfig,
)
from .cancellation import CancelToken
from .errors import PollCancelledError
from .fal_client import FalClient
from .fal_types import FalModel
from .pipeline import AdCreativeInput, AdCreativeResult, generate_ad_creative

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

ProgressCallback = Callable[[int, int], None]
ItemStatusCallback = Callable[[CompositeItem, BannerbearImage], None]

COMPOSITE_CONCURRENCY = 5
CREATIVE_CONCURRENCY = 3


@dataclass
class BatchState:
    """Progress of one batch run. Only the run that owns it writes to it."""
    results: list = field(default_factory=list)
    completed: int = 0
    total: int = 0
    is_processing: bool = False
    error: Optional[str] = None

    def start(self, total: int):
        self.results = [None] * total
        self.completed = 0
        self.total = total
        self.is_processing = True
        self.error = None

    def settle(self, index: int, result: Any):
        self.results[index] = result
        self.completed += 1

    def finish(self, error: Optional[str] = None):
        self.is_processing = False
        self.error = error


@dataclass(frozen=True)
class CreativeVariant:
    """Per-item overrides for a creative batch sharing one prompt."""
    overlay: OverlayConfig
    width: Optional[int] = None
    height: Optional[int] = None
    seed: Optional[int] = None


def _error_message(e: Exception) -> str:
    return str(e) or type(e).__name__


async def run_batch(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    *,
    concurrency: int,
    on_failure: Callable[[T, Exception], R],
    on_progress: Optional[ProgressCallback] = None,
    state: Optional[BatchState] = None,
    cancel: Optional[CancelToken] = None,
) -> list[R]:
    """
    Run `worker` over `items` in chunks of `concurrency`.

    Args:
        items: Inputs, processed in order
        worker: Coroutine function producing one result per item
        concurrency: Chunk size
        on_failure: Builds the failure-shaped result for an item that raised
        on_progress: Called once per settled item with (completed, total)
        state: Optional BatchState to keep updated
        cancel: Optional token; checked before each chunk and passed down by workers

    Raises:
        PollCancelledError: token was cancelled; no further chunks start
    """
    if concurrency < 1:
        raise ValueError("concurrency must be at least 1")

    total = len(items)
    state = state if state is not None else BatchState()
    state.start(total)

    async def settle(index: int, item: T) -> None:
        try:
            result = await worker(item)
        except PollCancelledError:
            raise
        except Exception as e:
            logger.warning("Batch item %d/%d failed: %s", index + 1, total, e)
            result = on_failure(item, e)
        state.settle(index, result)
        if on_progress:
            on_progress(state.completed, total)

    try:
        for offset in range(0, total, concurrency):
            if cancel:
                cancel.raise_if_cancelled()
            chunk = items[offset : offset + concurrency]
            outcomes = await asyncio.gather(
                *(settle(offset + i, item) for i, item in enumerate(chunk)),
                return_exceptions=True,
            )
            # Only cancellation escapes settle()
            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    raise outcome
    except PollCancelledError as e:
        logger.info("Batch cancelled after %d/%d items", state.completed, total)
        state.finish(error=str(e))
        raise

    state.finish()
    return list(state.results)


async def generate_batch_composites(
    client: BannerbearClient,
    items: Sequence[CompositeItem],
    on_progress: Optional[ProgressCallback] = None,
    state: Optional[BatchState] = None,
    cancel: Optional[CancelToken] = None,
    on_status: Optional[ItemStatusCallback] = None,
) -> list[CompositeResult]:
    """Overlay text onto several base images, five at a time.

    `on_status` receives each item with its render status on every transition.
    """

    async def worker(item: CompositeItem) -> CompositeResult:
        item_status = partial(on_status, item) if on_status else None
        return await client.generate_and_wait_for_composite(
            item.base_image_url, item.overlay, cancel=cancel, on_status=item_status
        )

    def on_failure(item: CompositeItem, e: Exception) -> CompositeResult:
        return CompositeResult(
            uid="",
            status=CompositeStatus.failed,
            base_image_url=item.base_image_url,
            template=client.template_for(item.overlay),
            overlay=item.overlay,
            error=_error_message(e),
        )

    return await run_batch(
        items,
        worker,
        concurrency=COMPOSITE_CONCURRENCY,
        on_failure=on_failure,
        on_progress=on_progress,
        state=state,
        cancel=cancel,
    )


async def generate_ad_creative_batch(
    fal: FalClient,
    bannerbear: Optional[BannerbearClient],
    prompt: str,
    variants: Sequence[CreativeVariant],
    negative_prompt: Optional[str] = None,
    model: "str | FalModel | None" = None,
    on_progress: Optional[ProgressCallback] = None,
    state: Optional[BatchState] = None,
    cancel: Optional[CancelToken] = None,
) -> list[AdCreativeResult]:
    """One prompt, several overlays: generate creatives three at a time."""

    async def worker(variant: CreativeVariant) -> AdCreativeResult:
        creative = AdCreativeInput(
            prompt=prompt,
            overlay=variant.overlay,
            negative_prompt=negative_prompt,
            width=variant.width,
            height=variant.height,
            seed=variant.seed,
            model=model,
        )
        return await generate_ad_creative(
            creative, fal=fal, bannerbear=bannerbear, cancel=cancel
        )

    def on_failure(variant: CreativeVariant, e: Exception) -> AdCreativeResult:
        return AdCreativeResult.failed(_error_message(e), seed=variant.seed)

    return await run_batch(
        variants,
        worker,
        concurrency=CREATIVE_CONCURRENCY,
        on_failure=on_failure,
        on_progress=on_progress,
        state=state,
        cancel=cancel,
    )
