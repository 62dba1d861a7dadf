"""Framework-agnostic request handlers for the AdScaler Bridge API.

These handlers contain the business logic behind each route without any
framework-specific code, and translate bridge errors into status codes.
"""
import logging
from dataclasses import asdict, dataclass, field, is_dataclass
from typing import Any, Optional

from pydantic import BaseModel

from .bannerbear_client import BannerbearClient
from .bannerbear_types import CompositeItem
from .batch import (
    BatchState,
    CreativeVariant,
    generate_ad_creative_batch,
    generate_batch_composites,
)
from .cancellation import CancelToken
from .errors import (
    BridgeError,
    ConfigurationError,
    GenerationFailedError,
    NoImageError,
    NotFoundError,
    PollCancelledError,
    PollTimeoutError,
    RequestError,
)
from .fal_client import FalClient
from .fal_types import FalModel, GenerationRequest, get_available_models
from .jobs import BatchJob, JobRegistry, get_registry
from .magpie_client import MagpieClient
from .magpie_types import (
    ActivityEventType,
    AgentStatus,
    NewActivity,
    Platform,
    count_active_agents,
)
from .n8n_client import N8nClient
from .pipeline import AdCreativeInput, generate_ad_creative
from .scaler_types import AdGeneratorForm, get_options
from .settings import Settings
from .templates import (
    are_templates_configured,
    get_available_formats,
    get_unconfigured_templates,
)

logger = logging.getLogger(__name__)


@dataclass
class ApiResponse:
    """Standard API response wrapper."""
    data: dict
    status: int = 200


@dataclass
class CreativeBatchParams:
    """One prompt rendered under several overlays."""
    prompt: str
    variants: list[CreativeVariant]
    negative_prompt: Optional[str] = None
    model: "str | FalModel | None" = None


@dataclass
class AppContext:
    """Settings plus the provider clients built from them."""
    settings: Settings
    fal: FalClient
    bannerbear: BannerbearClient
    n8n: N8nClient
    magpie: MagpieClient
    registry: JobRegistry = field(default_factory=get_registry)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AppContext":
        return cls(
            settings=settings,
            fal=FalClient(settings),
            bannerbear=BannerbearClient(settings),
            n8n=N8nClient(settings),
            magpie=MagpieClient(settings),
        )

    async def close(self):
        await self.registry.shutdown()
        await self.fal.close()
        await self.bannerbear.close()
        await self.n8n.close()
        await self.magpie.close()


# Singleton instance
_context: Optional[AppContext] = None


def get_context() -> AppContext:
    """Get the singleton AppContext, built from the environment on first use."""
    global _context
    if _context is None:
        _context = AppContext.from_settings(Settings.from_env())
    return _context


async def close_context():
    global _context
    if _context is not None:
        await _context.close()
        _context = None


def to_data(value: Any) -> Any:
    """Plain JSON-ready structure for dataclass and pydantic results."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if isinstance(value, list):
        return [to_data(v) for v in value]
    return value


def error_status(e: BridgeError) -> int:
    if isinstance(e, ConfigurationError):
        return 503
    if isinstance(e, NotFoundError):
        return 404
    if isinstance(e, PollTimeoutError):
        return 504
    if isinstance(e, PollCancelledError):
        return 409
    if isinstance(e, (RequestError, GenerationFailedError, NoImageError)):
        return 502
    return 500


def error_response(e: BridgeError) -> ApiResponse:
    status = error_status(e)
    if status >= 500:
        logger.error("%s: %s", type(e).__name__, e)
    return ApiResponse(data={"error": str(e)}, status=status)


def _job_data(job: BatchJob) -> dict:
    state = job.state
    return {
        "job_id": job.id,
        "kind": job.kind,
        "status": job.status.value,
        "completed": state.completed,
        "total": state.total,
        "is_processing": state.is_processing,
        "error": state.error,
        "results": [to_data(r) for r in state.results],
    }


async def handle_health() -> ApiResponse:
    """Handle health check request."""
    return ApiResponse(data={"status": "ok"})


async def handle_get_config() -> ApiResponse:
    """Report which providers and templates are configured.

    Never includes credentials.
    """
    settings = get_context().settings
    return ApiResponse(data={
        "fal_configured": settings.fal_configured,
        "bannerbear_configured": settings.bannerbear_configured,
        "n8n_configured": settings.n8n_configured,
        "supabase_configured": settings.supabase_configured,
        "templates_configured": are_templates_configured(settings),
        "unconfigured_templates": [f.value for f in get_unconfigured_templates(settings)],
        "default_model": settings.fal_default_model,
        "formats": to_data(get_available_formats()),
        "models": to_data(get_available_models()),
    })


async def handle_get_options() -> ApiResponse:
    return ApiResponse(data=get_options())


# === Ad copy (n8n) ===


async def handle_list_ad_copy() -> ApiResponse:
    try:
        records = await get_context().n8n.fetch_ad_copy_records()
    except BridgeError as e:
        return error_response(e)
    return ApiResponse(data={"records": to_data(records)})


async def handle_get_ad_copy(record_id: str) -> ApiResponse:
    try:
        record = await get_context().n8n.fetch_ad_copy_record(record_id)
    except BridgeError as e:
        return error_response(e)
    return ApiResponse(data=to_data(record))


async def handle_generate_ad_copy(form: AdGeneratorForm) -> ApiResponse:
    try:
        response = await get_context().n8n.trigger_generate_ad_copy(form)
    except BridgeError as e:
        return error_response(e)
    return ApiResponse(data=to_data(response))


async def handle_generate_record_images(record_id: str) -> ApiResponse:
    try:
        result = await get_context().n8n.trigger_generate_images(record_id)
    except BridgeError as e:
        return error_response(e)
    return ApiResponse(data={"record_id": record_id, "result": result})


async def handle_generate_record_prompts(record_id: str) -> ApiResponse:
    try:
        result = await get_context().n8n.trigger_generate_prompts(record_id)
    except BridgeError as e:
        return error_response(e)
    return ApiResponse(data={"record_id": record_id, "result": result})


# === Generation ===


async def handle_generate_image(
    request: GenerationRequest, model: "str | FalModel | None" = None
) -> ApiResponse:
    """Generate an image through the fal.ai queue and wait for the result."""
    try:
        result = await get_context().fal.generate_image(request, model)
    except BridgeError as e:
        return error_response(e)
    return ApiResponse(data=to_data(result))


async def handle_list_templates() -> ApiResponse:
    try:
        templates = await get_context().bannerbear.list_templates()
    except BridgeError as e:
        return error_response(e)
    return ApiResponse(data={"templates": to_data(templates)})


async def handle_generate_composite(item: CompositeItem) -> ApiResponse:
    try:
        result = await get_context().bannerbear.generate_and_wait_for_composite(
            item.base_image_url, item.overlay
        )
    except BridgeError as e:
        return error_response(e)
    return ApiResponse(data=to_data(result))


async def handle_generate_creative(creative: AdCreativeInput) -> ApiResponse:
    ctx = get_context()
    try:
        result = await generate_ad_creative(
            creative, fal=ctx.fal, bannerbear=ctx.bannerbear
        )
    except BridgeError as e:
        return error_response(e)
    return ApiResponse(data=to_data(result))


# === MAGPIE telemetry (Supabase) ===


async def handle_list_opportunities(
    min_score: Optional[float] = None,
    category: Optional[str] = None,
    limit: Optional[int] = None,
) -> ApiResponse:
    try:
        products = await get_context().magpie.fetch_product_opportunities(
            min_score=min_score, category=category, limit=limit
        )
    except BridgeError as e:
        return error_response(e)
    return ApiResponse(data={"opportunities": to_data(products)})


async def handle_list_agents() -> ApiResponse:
    try:
        agents = await get_context().magpie.fetch_agents()
    except BridgeError as e:
        return error_response(e)
    return ApiResponse(data={
        "agents": to_data(agents),
        "active_count": count_active_agents(agents),
    })


async def handle_list_activity(
    limit: Optional[int] = None, event_type: Optional[ActivityEventType] = None
) -> ApiResponse:
    try:
        events = await get_context().magpie.fetch_activity(limit=limit, event_type=event_type)
    except BridgeError as e:
        return error_response(e)
    return ApiResponse(data={"events": to_data(events)})


async def handle_list_trends(platform: Optional[Platform] = None) -> ApiResponse:
    try:
        trends = await get_context().magpie.fetch_trending_topics(platform)
    except BridgeError as e:
        return error_response(e)
    return ApiResponse(data={"trends": to_data(trends)})


async def handle_get_trend_summary() -> ApiResponse:
    try:
        summaries = await get_context().magpie.fetch_trend_summary()
    except BridgeError as e:
        return error_response(e)
    return ApiResponse(data={"summaries": to_data(summaries)})


async def handle_get_dashboard_stats() -> ApiResponse:
    """Headline counts for the command center, computed from the live tables."""
    try:
        stats = await get_context().magpie.fetch_dashboard_stats()
    except BridgeError as e:
        return error_response(e)
    return ApiResponse(data=to_data(stats))


async def handle_log_activity(event: NewActivity) -> ApiResponse:
    try:
        logged = await get_context().magpie.log_activity(event)
    except BridgeError as e:
        return error_response(e)
    return ApiResponse(data=to_data(logged))


async def handle_update_agent_status(
    agent_id: str, status: AgentStatus, current_task: Optional[str] = None
) -> ApiResponse:
    """Handle agent status update.

    Returns:
        ApiResponse with the updated agent, or error with status 404.
    """
    try:
        agent = await get_context().magpie.update_agent_status(agent_id, status, current_task)
    except BridgeError as e:
        return error_response(e)
    return ApiResponse(data=to_data(agent))


# === Batch jobs ===


async def handle_start_creative_batch(params: CreativeBatchParams) -> ApiResponse:
    """Start a creative batch in the background and return its job id."""
    ctx = get_context()
    if not ctx.fal.is_configured:
        return error_response(ConfigurationError(
            "fal.ai API key not configured. Set FAL_KEY in the environment."
        ))

    async def runner(state: BatchState, cancel: CancelToken):
        return await generate_ad_creative_batch(
            ctx.fal,
            ctx.bannerbear,
            params.prompt,
            params.variants,
            negative_prompt=params.negative_prompt,
            model=params.model,
            state=state,
            cancel=cancel,
        )

    job = ctx.registry.start("creatives", len(params.variants), runner)
    return ApiResponse(data={"job_id": job.id, "status": job.status.value})


async def handle_start_composite_batch(items: list[CompositeItem]) -> ApiResponse:
    """Start a composite batch in the background and return its job id."""
    ctx = get_context()
    if not ctx.bannerbear.is_configured:
        return error_response(ConfigurationError(
            "Bannerbear API key not configured. Set BANNERBEAR_API_KEY in the environment."
        ))

    async def runner(state: BatchState, cancel: CancelToken):
        return await generate_batch_composites(
            ctx.bannerbear, items, state=state, cancel=cancel
        )

    job = ctx.registry.start("composites", len(items), runner)
    return ApiResponse(data={"job_id": job.id, "status": job.status.value})


async def handle_get_job(job_id: str) -> ApiResponse:
    """Handle get job status request.

    Returns:
        ApiResponse with the batch snapshot, or error with status 404.
    """
    job = get_context().registry.get(job_id)
    if not job:
        return ApiResponse(data={"error": "Job not found"}, status=404)
    return ApiResponse(data=_job_data(job))


async def handle_cancel_job(job_id: str) -> ApiResponse:
    registry = get_context().registry
    if not registry.cancel(job_id):
        return ApiResponse(data={"error": "Job not found"}, status=404)
    return ApiResponse(data={"job_id": job_id, "cancelled": True})
