"""FastAPI application for the AdScaler Bridge.

This module provides the REST API consumed by the AdScaler dashboard.
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from adscaler_bridge.core.bannerbear_types import (
    AdFormat,
    CompositeItem,
    OverlayColors,
    OverlayConfig,
)
from adscaler_bridge.core.batch import CreativeVariant
from adscaler_bridge.core.fal_types import GenerationRequest
from adscaler_bridge.core.handlers import (
    ApiResponse,
    CreativeBatchParams,
    close_context,
    handle_cancel_job,
    handle_generate_ad_copy,
    handle_generate_composite,
    handle_generate_creative,
    handle_generate_image,
    handle_generate_record_images,
    handle_generate_record_prompts,
    handle_get_ad_copy,
    handle_get_config,
    handle_get_dashboard_stats,
    handle_get_job,
    handle_get_options,
    handle_get_trend_summary,
    handle_health,
    handle_list_activity,
    handle_list_ad_copy,
    handle_list_agents,
    handle_list_opportunities,
    handle_list_templates,
    handle_list_trends,
    handle_log_activity,
    handle_start_composite_batch,
    handle_start_creative_batch,
    handle_update_agent_status,
)
from adscaler_bridge.core.magpie_types import (
    ActivityEventType,
    AgentStatus,
    NewActivity,
    Platform,
)
from adscaler_bridge.core.pipeline import AdCreativeInput
from adscaler_bridge.core.scaler_types import AdGeneratorForm
from adscaler_bridge.core.settings import Settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    yield
    # Cancel running batches and close provider sessions
    await close_context()


app = FastAPI(title="AdScaler Bridge", version="0.1.0", lifespan=lifespan)

# Enable CORS for the dashboard
app.add_middleware(
    CORSMiddleware,
    allow_origins=Settings.from_env().cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request/Response Models (Pydantic for FastAPI validation)

class OverlayColorsRequest(BaseModel):
    headline: Optional[str] = None
    cta: Optional[str] = None
    cta_background: Optional[str] = None


class OverlayRequest(BaseModel):
    headline: str = Field(min_length=1)
    cta: str = Field(min_length=1)
    format: AdFormat
    subtext: Optional[str] = None
    colors: Optional[OverlayColorsRequest] = None


class ImageRequest(BaseModel):
    prompt: str
    negative_prompt: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    num_images: Optional[int] = None
    seed: Optional[int] = None
    guidance_scale: Optional[float] = None
    num_inference_steps: Optional[int] = None
    model: Optional[str] = None


class CompositeRequest(BaseModel):
    base_image_url: str
    overlay: OverlayRequest


class CreativeRequest(BaseModel):
    prompt: str
    overlay: OverlayRequest
    negative_prompt: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    seed: Optional[int] = None
    model: Optional[str] = None


class VariantRequest(BaseModel):
    overlay: OverlayRequest
    width: Optional[int] = None
    height: Optional[int] = None
    seed: Optional[int] = None


class CreativeBatchRequest(BaseModel):
    prompt: str
    variants: list[VariantRequest] = Field(min_length=1)
    negative_prompt: Optional[str] = None
    model: Optional[str] = None


class CompositeBatchRequest(BaseModel):
    items: list[CompositeRequest] = Field(min_length=1)


class ActivityRequest(BaseModel):
    type: ActivityEventType
    title: str = Field(min_length=1)
    description: str = ""
    agent_id: Optional[str] = None
    source: Optional[str] = None


class AgentStatusRequest(BaseModel):
    status: AgentStatus
    current_task: Optional[str] = None


class JobStartResponse(BaseModel):
    job_id: str
    status: str


class JobStatusResponse(BaseModel):
    job_id: str
    kind: str
    status: str
    completed: int
    total: int
    is_processing: bool
    error: Optional[str] = None
    results: list[Optional[dict]] = []


def _overlay_config(request: OverlayRequest) -> OverlayConfig:
    colors = None
    if request.colors:
        colors = OverlayColors(
            headline=request.colors.headline,
            cta=request.colors.cta,
            cta_background=request.colors.cta_background,
        )
    return OverlayConfig(
        headline=request.headline,
        cta=request.cta,
        format=request.format,
        subtext=request.subtext,
        colors=colors,
    )


def _composite_item(request: CompositeRequest) -> CompositeItem:
    return CompositeItem(
        base_image_url=request.base_image_url,
        overlay=_overlay_config(request.overlay),
    )


def _raise_for_status(resp: ApiResponse):
    if resp.status != 200:
        raise HTTPException(status_code=resp.status, detail=resp.data.get("error"))


# Health & Configuration Endpoints

@app.get("/api/health")
async def health():
    resp = await handle_health()
    return resp.data


@app.get("/api/config")
async def get_config():
    """Which providers and templates are configured, plus formats and models."""
    resp = await handle_get_config()
    return resp.data


@app.get("/api/options")
async def get_options():
    """Ad copy form vocabularies."""
    resp = await handle_get_options()
    return resp.data


# Ad Copy Endpoints (n8n)

@app.get("/api/ad-copy")
async def list_ad_copy():
    resp = await handle_list_ad_copy()
    _raise_for_status(resp)
    return resp.data


@app.get("/api/ad-copy/{record_id}")
async def get_ad_copy(record_id: str):
    resp = await handle_get_ad_copy(record_id)
    _raise_for_status(resp)
    return resp.data


@app.post("/api/ad-copy")
async def generate_ad_copy(form: AdGeneratorForm):
    """Trigger ad copy generation for a concept."""
    resp = await handle_generate_ad_copy(form)
    _raise_for_status(resp)
    return resp.data


@app.post("/api/ad-copy/{record_id}/images")
async def generate_record_images(record_id: str):
    resp = await handle_generate_record_images(record_id)
    _raise_for_status(resp)
    return resp.data


@app.post("/api/ad-copy/{record_id}/prompts")
async def generate_record_prompts(record_id: str):
    resp = await handle_generate_record_prompts(record_id)
    _raise_for_status(resp)
    return resp.data


# Generation Endpoints

@app.post("/api/images")
async def generate_image(request: ImageRequest):
    """Generate an image via the fal.ai queue and wait for the result."""
    params = GenerationRequest(
        prompt=request.prompt,
        negative_prompt=request.negative_prompt,
        width=request.width,
        height=request.height,
        num_images=request.num_images,
        seed=request.seed,
        guidance_scale=request.guidance_scale,
        num_inference_steps=request.num_inference_steps,
    )
    resp = await handle_generate_image(params, request.model)
    _raise_for_status(resp)
    return resp.data


@app.get("/api/templates")
async def list_templates():
    resp = await handle_list_templates()
    _raise_for_status(resp)
    return resp.data


@app.post("/api/composites")
async def generate_composite(request: CompositeRequest):
    """Overlay text on a base image and wait for the render."""
    resp = await handle_generate_composite(_composite_item(request))
    _raise_for_status(resp)
    return resp.data


@app.post("/api/creatives")
async def generate_creative(request: CreativeRequest):
    """Generate a base image and overlay the ad copy on it."""
    creative = AdCreativeInput(
        prompt=request.prompt,
        overlay=_overlay_config(request.overlay),
        negative_prompt=request.negative_prompt,
        width=request.width,
        height=request.height,
        seed=request.seed,
        model=request.model,
    )
    resp = await handle_generate_creative(creative)
    _raise_for_status(resp)
    return resp.data


# MAGPIE Command Center Endpoints (Supabase)

@app.get("/api/magpie/opportunities")
async def list_opportunities(
    min_score: Optional[float] = Query(None, ge=0, le=100),
    category: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=1),
):
    """Product opportunities, best score first."""
    resp = await handle_list_opportunities(min_score, category, limit)
    _raise_for_status(resp)
    return resp.data


@app.get("/api/magpie/agents")
async def list_agents():
    resp = await handle_list_agents()
    _raise_for_status(resp)
    return resp.data


@app.patch("/api/magpie/agents/{agent_id}/status")
async def update_agent_status(agent_id: str, request: AgentStatusRequest):
    resp = await handle_update_agent_status(agent_id, request.status, request.current_task)
    _raise_for_status(resp)
    return resp.data


@app.get("/api/magpie/activity")
async def list_activity(
    limit: Optional[int] = Query(None, ge=1),
    type: Optional[ActivityEventType] = None,
):
    """Recent activity, newest first."""
    resp = await handle_list_activity(limit, type)
    _raise_for_status(resp)
    return resp.data


@app.post("/api/magpie/activity")
async def log_activity(request: ActivityRequest):
    event = NewActivity(
        type=request.type,
        title=request.title,
        description=request.description,
        agent_id=request.agent_id,
        source=request.source,
    )
    resp = await handle_log_activity(event)
    _raise_for_status(resp)
    return resp.data


@app.get("/api/magpie/trends")
async def list_trends(platform: Optional[Platform] = None):
    resp = await handle_list_trends(platform)
    _raise_for_status(resp)
    return resp.data


@app.get("/api/magpie/trends/summary")
async def get_trend_summary():
    """Trend counts and average scores per platform."""
    resp = await handle_get_trend_summary()
    _raise_for_status(resp)
    return resp.data


@app.get("/api/magpie/stats")
async def get_dashboard_stats():
    resp = await handle_get_dashboard_stats()
    _raise_for_status(resp)
    return resp.data


# Batch Job Endpoints

@app.post("/api/creatives/batch", response_model=JobStartResponse)
async def start_creative_batch(request: CreativeBatchRequest):
    """Start a creative batch; poll /api/jobs/{job_id} for progress."""
    params = CreativeBatchParams(
        prompt=request.prompt,
        variants=[
            CreativeVariant(
                overlay=_overlay_config(v.overlay),
                width=v.width,
                height=v.height,
                seed=v.seed,
            )
            for v in request.variants
        ],
        negative_prompt=request.negative_prompt,
        model=request.model,
    )
    resp = await handle_start_creative_batch(params)
    _raise_for_status(resp)
    return resp.data


@app.post("/api/composites/batch", response_model=JobStartResponse)
async def start_composite_batch(request: CompositeBatchRequest):
    resp = await handle_start_composite_batch([_composite_item(i) for i in request.items])
    _raise_for_status(resp)
    return resp.data


@app.get("/api/jobs/{job_id}", response_model=JobStatusResponse)
async def get_job_status(job_id: str):
    """Get the progress and results of a batch job."""
    resp = await handle_get_job(job_id)
    _raise_for_status(resp)
    return resp.data


@app.post("/api/jobs/{job_id}/cancel")
async def cancel_job(job_id: str):
    """Cancel a batch job. Chunks already running stop at their next poll."""
    resp = await handle_cancel_job(job_id)
    _raise_for_status(resp)
    return resp.data
