"""
Types for the Bannerbear text-overlay API.
Bannerbear composites headlines and CTAs onto generated base images.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class AdFormat(str, Enum):
    square = "square"
    story = "story"
    landscape = "landscape"


class CompositeStatus(str, Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"


# === API records ===


class Modification(BaseModel):
    """One template layer change."""

    model_config = ConfigDict(extra="ignore")

    name: str
    text: Optional[str] = None
    image_url: Optional[str] = None
    color: Optional[str] = None
    background: Optional[str] = None


class BannerbearImage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    uid: str
    status: CompositeStatus
    image_url: Optional[str] = None
    image_url_png: Optional[str] = None
    image_url_jpg: Optional[str] = None
    template: Optional[str] = None
    modifications: list[Modification] = Field(default_factory=list)
    webhook_url: Optional[str] = None
    metadata: Optional[Any] = None
    created_at: Optional[str] = None
    completed_at: Optional[str] = None
    error_message: Optional[str] = None


class BannerbearTemplate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    uid: str
    name: str
    width: Optional[int] = None
    height: Optional[int] = None
    available_modifications: list[Any] = Field(default_factory=list)
    preview_url: Optional[str] = None
    status: Optional[str] = None
    created_at: Optional[str] = None


# === Application records ===


@dataclass(frozen=True)
class TemplateLayers:
    background: str
    headline: str
    cta: str
    subtext: Optional[str] = None


@dataclass(frozen=True)
class TemplateConfig:
    template_id: str
    name: str
    format: AdFormat
    width: int
    height: int
    layers: TemplateLayers


@dataclass(frozen=True)
class OverlayColors:
    headline: Optional[str] = None
    cta: Optional[str] = None
    cta_background: Optional[str] = None


@dataclass(frozen=True)
class OverlayConfig:
    """Text overlay supplied by the caller; read-only input to the composer."""

    headline: str
    cta: str
    format: AdFormat
    subtext: Optional[str] = None
    colors: Optional[OverlayColors] = None


@dataclass(frozen=True)
class CompositeResult:
    """One overlay request. A new instance replaces it on every update."""

    uid: str
    status: CompositeStatus
    base_image_url: str
    template: TemplateConfig
    overlay: OverlayConfig
    image_url: Optional[str] = None
    error: Optional[str] = None

    def __post_init__(self):
        if (self.status is CompositeStatus.failed) != (self.error is not None):
            raise ValueError("CompositeResult.error must be set exactly when status is failed")


@dataclass(frozen=True)
class CompositeItem:
    """Batch input: one base image plus the overlay to put on it."""

    base_image_url: str
    overlay: OverlayConfig


def validate_overlay_config(overlay: dict) -> bool:
    """True when headline, CTA and a known format are all present."""
    try:
        AdFormat(overlay.get("format"))
    except ValueError:
        return False
    return bool(overlay.get("headline") and overlay.get("cta"))


@dataclass(frozen=True)
class FormatInfo:
    format: AdFormat
    name: str
    width: int
    height: int
    aspect_ratio: str
