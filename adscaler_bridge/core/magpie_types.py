"""
Types for the MAGPIE command center: agents, product opportunities,
the activity log and trending topics.

Rows come from Supabase tables and are validated into pydantic models, then
mapped into the records the dashboard consumes. Aggregations are pure
functions over the mapped records.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


HIGH_SCORE_THRESHOLD = 80
DEFAULT_ACTIVITY_LIMIT = 50
TRENDING_TOPICS_LIMIT = 100


class AgentStatus(str, Enum):
    active = "active"
    idle = "idle"
    error = "error"
    offline = "offline"


class TrendVelocity(str, Enum):
    up = "up"
    down = "down"
    stable = "stable"


class ActivityEventType(str, Enum):
    product = "product"
    test = "test"
    campaign = "campaign"
    agent = "agent"
    flow = "flow"
    trend = "trend"
    opportunity = "opportunity"
    error = "error"


class Platform(str, Enum):
    tiktok = "tiktok"
    instagram = "instagram"
    facebook = "facebook"
    pinterest = "pinterest"
    reddit = "reddit"
    google = "google"


class MetricStatus(str, Enum):
    up = "up"
    down = "down"
    neutral = "neutral"


# === Table rows ===


class ProductOpportunityRow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    description: Optional[str] = None
    category: str
    opportunity_score: float
    estimated_margin: float
    trending_platforms: Optional[list[str]] = None
    airtable_record_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class AgentStatusRow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    model: str
    responsibility: str
    status: AgentStatus
    current_task: Optional[str] = None
    last_active: Optional[str] = None
    metric_label: Optional[str] = None
    metric_value: Optional[str] = None


class ActivityLogRow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    type: ActivityEventType
    title: str
    description: str
    agent_id: Optional[str] = None
    source: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    created_at: str


class TrendingTopicRow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    topic: str
    platform: Platform
    score: float
    velocity: float
    raw_data: Optional[dict[str, Any]] = None
    collected_at: str


# === Dashboard records ===


@dataclass
class Product:
    id: str
    name: str
    category: str
    score: float
    margin: float
    trending_on: list[str] = field(default_factory=list)
    velocity: TrendVelocity = TrendVelocity.stable
    interest: float = 0
    description: Optional[str] = None
    created_at: Optional[str] = None
    airtable_record_id: Optional[str] = None


@dataclass
class AgentMetric:
    label: str
    value: str


@dataclass
class Agent:
    id: str
    name: str
    model: str
    responsibility: str
    status: AgentStatus
    current_task: Optional[str] = None
    last_active: Optional[str] = None
    metric: Optional[AgentMetric] = None


@dataclass
class ActivityEvent:
    id: str
    type: ActivityEventType
    title: str
    description: str
    timestamp: str
    agent_id: Optional[str] = None
    source: Optional[str] = None


@dataclass(frozen=True)
class NewActivity:
    """An activity log entry to insert; id and timestamp are assigned by the table."""
    type: ActivityEventType
    title: str
    description: str
    agent_id: Optional[str] = None
    source: Optional[str] = None

    def to_row(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "title": self.title,
            "description": self.description,
            "agent_id": self.agent_id,
            "source": self.source,
        }


@dataclass
class TrendDataPoint:
    topic: str
    platform: Platform
    score: float
    velocity: float
    collected_at: str
    raw_data: Optional[dict[str, Any]] = None


@dataclass
class TrendSummary:
    platform: Platform
    trend_count: int
    avg_score: int
    top_trend: Optional[str] = None


@dataclass
class Metric:
    label: str
    value: float
    trend: Optional[float] = None
    status: Optional[MetricStatus] = None


@dataclass
class DashboardStats:
    products_analyzed: Metric
    high_score_opportunities: Metric
    active_tests: Metric
    avg_opportunity_score: Metric


# === Row mappers ===


def map_product_row(row: ProductOpportunityRow) -> Product:
    # No score history is stored, so velocity stays stable and the score
    # doubles as the interest level
    return Product(
        id=row.id,
        name=row.name,
        description=row.description or None,
        category=row.category,
        score=row.opportunity_score,
        margin=row.estimated_margin,
        trending_on=list(row.trending_platforms or []),
        velocity=TrendVelocity.stable,
        interest=row.opportunity_score,
        created_at=row.created_at,
        airtable_record_id=row.airtable_record_id or None,
    )


def map_agent_row(row: AgentStatusRow) -> Agent:
    metric = None
    if row.metric_label:
        metric = AgentMetric(label=row.metric_label, value=row.metric_value or "")
    return Agent(
        id=row.id,
        name=row.name,
        model=row.model,
        responsibility=row.responsibility,
        status=row.status,
        current_task=row.current_task or None,
        last_active=row.last_active or None,
        metric=metric,
    )


def map_activity_row(row: ActivityLogRow) -> ActivityEvent:
    return ActivityEvent(
        id=row.id,
        type=row.type,
        title=row.title,
        description=row.description,
        agent_id=row.agent_id or None,
        timestamp=row.created_at,
        source=row.source or None,
    )


def map_trend_row(row: TrendingTopicRow) -> TrendDataPoint:
    return TrendDataPoint(
        topic=row.topic,
        platform=row.platform,
        score=row.score,
        velocity=row.velocity,
        collected_at=row.collected_at,
        raw_data=row.raw_data or None,
    )


# === Aggregations ===


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def summarize_trends(trends: list[TrendDataPoint]) -> list[TrendSummary]:
    """
    Per-platform trend counts and average scores.

    Platforms appear in first-seen order. `trends` is expected sorted by score
    descending, so the first topic seen for a platform is its top trend.
    """
    by_platform: dict[Platform, list[TrendDataPoint]] = {}
    for trend in trends:
        by_platform.setdefault(trend.platform, []).append(trend)

    return [
        TrendSummary(
            platform=platform,
            trend_count=len(points),
            avg_score=_round_half_up(sum(p.score for p in points) / len(points)),
            top_trend=points[0].topic,
        )
        for platform, points in by_platform.items()
    ]


def count_active_agents(agents: list[Agent]) -> int:
    return sum(1 for a in agents if a.status is AgentStatus.active)


def is_running_test(agent: Agent) -> bool:
    return agent.status is AgentStatus.active and "test" in (agent.current_task or "")


def dashboard_stats(
    products: list[Product],
    agents: list[Agent],
    trends: list[TrendDataPoint],
) -> DashboardStats:
    """Headline metrics for the command center.

    Period-over-period trends are left unset; no history is stored to
    compute them from.
    """
    avg_score = 0
    if products:
        avg_score = _round_half_up(sum(p.score for p in products) / len(products))

    return DashboardStats(
        products_analyzed=Metric(label="Products Analyzed Today", value=len(trends)),
        high_score_opportunities=Metric(
            label="High Score Opportunities",
            value=sum(1 for p in products if p.score >= HIGH_SCORE_THRESHOLD),
        ),
        active_tests=Metric(
            label="Active Tests",
            value=sum(1 for a in agents if is_running_test(a)),
            status=MetricStatus.neutral,
        ),
        avg_opportunity_score=Metric(label="Avg Opportunity Score", value=avg_score),
    )
