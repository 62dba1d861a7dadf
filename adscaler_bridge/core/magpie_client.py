"""Supabase client for MAGPIE command center telemetry.

Talks to the PostgREST endpoint Supabase exposes at `/rest/v1`, so filters
are query parameters such as `opportunity_score=gte.80`.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional, TypeVar

from pydantic import BaseModel

from .aiohttp_request_manager import AiohttpRequestManager, validate_response
from .errors import ConfigurationError, NotFoundError, ProviderError
from .magpie_types import (
    DEFAULT_ACTIVITY_LIMIT,
    HIGH_SCORE_THRESHOLD,
    TRENDING_TOPICS_LIMIT,
    ActivityEvent,
    ActivityEventType,
    ActivityLogRow,
    Agent,
    AgentStatus,
    AgentStatusRow,
    DashboardStats,
    NewActivity,
    Platform,
    Product,
    ProductOpportunityRow,
    TrendDataPoint,
    TrendingTopicRow,
    TrendSummary,
    dashboard_stats,
    map_activity_row,
    map_agent_row,
    map_product_row,
    map_trend_row,
    summarize_trends,
)
from .settings import Settings

logger = logging.getLogger(__name__)

PROVIDER = "Supabase"

Row = TypeVar("Row", bound=BaseModel)


class MagpieClient:
    """Reads and writes the MAGPIE tables through Supabase's REST API."""

    def __init__(self, settings: Settings):
        self._settings = settings
        key = settings.supabase_key or ""
        self._requests = AiohttpRequestManager(
            headers={
                "apikey": key,
                "Authorization": f"Bearer {key}",
                # Inserts and updates return the written rows
                "Prefer": "return=representation",
            },
            timeout=settings.request_timeout,
        )

    @property
    def is_configured(self) -> bool:
        return self._settings.supabase_configured

    def _table_url(self, table: str) -> str:
        if not self.is_configured:
            raise ConfigurationError(
                "Supabase not configured. Set SUPABASE_URL and SUPABASE_KEY in the environment."
            )
        return f"{self._settings.supabase_url.rstrip('/')}/rest/v1/{table}"

    async def _select(self, table: str, model: type[Row], params: dict) -> list[Row]:
        url = self._table_url(table)
        data = await self._requests.get(url, params={"select": "*", **params})
        if not isinstance(data, list):
            return []
        return [validate_response(model, row, url, PROVIDER) for row in data]

    @staticmethod
    def _single(data, url: str) -> dict:
        """The one row a write returned, like supabase-js `.single()`."""
        if isinstance(data, list):
            if len(data) != 1:
                raise ProviderError(f"Expected one row from {PROVIDER}, got {len(data)}", url)
            data = data[0]
        if not isinstance(data, dict):
            raise ProviderError(f"Unexpected response from {PROVIDER}", url)
        return data

    # === Reads ===

    async def fetch_product_opportunities(
        self,
        min_score: Optional[float] = None,
        category: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Product]:
        """Product opportunities, best score first."""
        params = {"order": "opportunity_score.desc"}
        if min_score is not None:
            params["opportunity_score"] = f"gte.{min_score:g}"
        if category:
            params["category"] = f"eq.{category}"
        if limit is not None:
            params["limit"] = str(limit)
        rows = await self._select("product_opportunities", ProductOpportunityRow, params)
        return [map_product_row(r) for r in rows]

    async def fetch_high_score_opportunities(self) -> list[Product]:
        return await self.fetch_product_opportunities(min_score=HIGH_SCORE_THRESHOLD)

    async def fetch_agents(self) -> list[Agent]:
        rows = await self._select("agent_status", AgentStatusRow, {"order": "name.asc"})
        return [map_agent_row(r) for r in rows]

    async def fetch_activity(
        self,
        limit: Optional[int] = None,
        event_type: Optional[ActivityEventType] = None,
    ) -> list[ActivityEvent]:
        """Most recent activity first; 50 events unless `limit` says otherwise."""
        params = {
            "order": "created_at.desc",
            "limit": str(limit or DEFAULT_ACTIVITY_LIMIT),
        }
        if event_type:
            params["type"] = f"eq.{ActivityEventType(event_type).value}"
        rows = await self._select("activity_log", ActivityLogRow, params)
        return [map_activity_row(r) for r in rows]

    async def fetch_trending_topics(
        self, platform: Optional[Platform] = None
    ) -> list[TrendDataPoint]:
        params = {"order": "score.desc", "limit": str(TRENDING_TOPICS_LIMIT)}
        if platform:
            params["platform"] = f"eq.{Platform(platform).value}"
        rows = await self._select("trending_topics", TrendingTopicRow, params)
        return [map_trend_row(r) for r in rows]

    async def fetch_trend_summary(self) -> list[TrendSummary]:
        return summarize_trends(await self.fetch_trending_topics())

    async def fetch_dashboard_stats(self) -> DashboardStats:
        products, agents, trends = await asyncio.gather(
            self.fetch_product_opportunities(),
            self.fetch_agents(),
            self.fetch_trending_topics(),
        )
        return dashboard_stats(products, agents, trends)

    # === Writes ===

    async def log_activity(self, event: NewActivity) -> ActivityEvent:
        url = self._table_url("activity_log")
        data = await self._requests.post(url, event.to_row())
        row = validate_response(ActivityLogRow, self._single(data, url), url, PROVIDER)
        logger.info("Logged %s activity: %s", row.type.value, row.title)
        return map_activity_row(row)

    async def update_agent_status(
        self,
        agent_id: str,
        status: AgentStatus,
        current_task: Optional[str] = None,
    ) -> Agent:
        """
        Set an agent's status and stamp `last_active` with the current time.

        `current_task` is left untouched when not given.

        Raises:
            NotFoundError: no agent has this id
        """
        url = self._table_url("agent_status")
        update = {
            "status": AgentStatus(status).value,
            "last_active": datetime.now(timezone.utc).isoformat(),
        }
        if current_task is not None:
            update["current_task"] = current_task

        data = await self._requests.patch(url, update, params={"id": f"eq.{agent_id}"})
        if isinstance(data, list) and not data:
            raise NotFoundError(f"Agent not found: {agent_id}")
        row = validate_response(AgentStatusRow, self._single(data, url), url, PROVIDER)
        logger.info("Agent %s is now %s", row.id, row.status.value)
        return map_agent_row(row)

    async def close(self):
        await self._requests.close()
