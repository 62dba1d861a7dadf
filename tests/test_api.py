"""Tests for the FastAPI routes."""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import AsyncClient, ASGITransport

from adscaler_bridge.core.handlers import AppContext
from adscaler_bridge.core.jobs import JobRegistry
from adscaler_bridge.core.magpie_types import ActivityEventType, Product, dashboard_stats
from adscaler_bridge.core.scaler_types import GenerateAdCopyResponse, GenerateStatus
from adscaler_bridge.core.settings import Settings
from adscaler_bridge.fastapi_app import app

OVERLAY = {"headline": "Stay Hydrated", "cta": "Shop Now", "format": "square"}


def _patched(context):
    return patch("adscaler_bridge.core.handlers.get_context", return_value=context)


@pytest.fixture
def unconfigured_context(unconfigured_settings):
    return AppContext.from_settings(unconfigured_settings)


@pytest.mark.asyncio
async def test_health_returns_ok():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_config_without_credentials(unconfigured_context):
    transport = ASGITransport(app=app)
    with _patched(unconfigured_context):
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/config")

    data = response.json()
    assert response.status_code == 200
    assert data["fal_configured"] is False
    assert data["bannerbear_configured"] is False
    assert data["unconfigured_templates"] == ["square", "story", "landscape"]
    assert data["models"][0]["id"] == "fal-ai/flux/schnell"


@pytest.mark.asyncio
async def test_options():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/api/options")

    assert "Desk Workers" in response.json()["avatar_targets"]


@pytest.mark.asyncio
async def test_generate_image_unconfigured_is_503(unconfigured_context):
    transport = ASGITransport(app=app)
    with _patched(unconfigured_context):
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.post("/api/images", json={"prompt": "a red ball"})

    assert response.status_code == 503
    assert "FAL_KEY" in response.json()["detail"]


@pytest.mark.asyncio
async def test_creative_rejects_unknown_format():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post(
            "/api/creatives",
            json={"prompt": "a water bottle", "overlay": {**OVERLAY, "format": "banner"}},
        )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_batch_requires_variants():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post("/api/creatives/batch", json={"prompt": "x", "variants": []})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_ad_copy_trigger(settings):
    context = AppContext(
        settings=settings,
        fal=MagicMock(),
        bannerbear=MagicMock(),
        n8n=MagicMock(),
        magpie=MagicMock(),
        registry=JobRegistry(),
    )
    context.n8n.trigger_generate_ad_copy = AsyncMock(
        return_value=GenerateAdCopyResponse(record_id="rec1", status=GenerateStatus.running)
    )
    transport = ASGITransport(app=app)
    with _patched(context):
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.post(
                "/api/ad-copy", json={"fullConcept": "Ergonomic chair", "angle": "Pain"}
            )

    assert response.status_code == 200
    assert response.json() == {"record_id": "rec1", "status": "Running"}
    form = context.n8n.trigger_generate_ad_copy.call_args.args[0]
    assert form.angle == "Pain"


@pytest.mark.asyncio
async def test_ad_copy_rejects_unknown_angle():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post("/api/ad-copy", json={"fullConcept": "Chair", "angle": "Sarcasm"})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_unknown_job_is_404():
    context = AppContext.from_settings(Settings())
    transport = ASGITransport(app=app)
    with _patched(context):
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/jobs/does-not-exist")

    assert response.status_code == 404
    assert response.json()["detail"] == "Job not found"


def _magpie_context(settings):
    return AppContext(
        settings=settings,
        fal=MagicMock(),
        bannerbear=MagicMock(),
        n8n=MagicMock(),
        magpie=MagicMock(),
        registry=JobRegistry(),
    )


@pytest.mark.asyncio
async def test_magpie_opportunities_filters(settings):
    context = _magpie_context(settings)
    context.magpie.fetch_product_opportunities = AsyncMock(return_value=[
        Product(id="p1", name="Custom Star Map", category="Personalized Gifts", score=92, margin=31.5),
    ])
    transport = ASGITransport(app=app)
    with _patched(context):
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get(
                "/api/magpie/opportunities",
                params={"min_score": 80, "category": "Personalized Gifts", "limit": 5},
            )

    assert response.status_code == 200
    product = response.json()["opportunities"][0]
    assert product["name"] == "Custom Star Map"
    assert product["velocity"] == "stable"
    context.magpie.fetch_product_opportunities.assert_awaited_once_with(
        min_score=80, category="Personalized Gifts", limit=5
    )


@pytest.mark.asyncio
async def test_magpie_opportunities_rejects_out_of_range_score():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/api/magpie/opportunities", params={"min_score": 150})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_magpie_stats(settings):
    context = _magpie_context(settings)
    context.magpie.fetch_dashboard_stats = AsyncMock(return_value=dashboard_stats([], [], []))
    transport = ASGITransport(app=app)
    with _patched(context):
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/magpie/stats")

    data = response.json()
    assert response.status_code == 200
    assert data["avg_opportunity_score"] == {
        "label": "Avg Opportunity Score", "value": 0, "trend": None, "status": None,
    }
    assert data["active_tests"]["status"] == "neutral"


@pytest.mark.asyncio
async def test_magpie_log_activity(settings):
    context = _magpie_context(settings)
    context.magpie.log_activity = AsyncMock(side_effect=lambda event: {"id": "a1", "title": event.title})
    transport = ASGITransport(app=app)
    with _patched(context):
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.post(
                "/api/magpie/activity",
                json={"type": "opportunity", "title": "High margin: Pet Portrait", "agent_id": "ARCH-01"},
            )

    assert response.status_code == 200
    event = context.magpie.log_activity.call_args.args[0]
    assert event.type is ActivityEventType.opportunity
    assert event.agent_id == "ARCH-01"
    assert event.description == ""


@pytest.mark.asyncio
async def test_magpie_log_activity_rejects_unknown_type():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post("/api/magpie/activity", json={"type": "gossip", "title": "x"})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_magpie_agent_status_unconfigured_is_503(unconfigured_context):
    transport = ASGITransport(app=app)
    with _patched(unconfigured_context):
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.patch(
                "/api/magpie/agents/ARCH-01/status", json={"status": "idle"}
            )

    assert response.status_code == 503
    assert "SUPABASE_URL" in response.json()["detail"]
