"""
Ad copy records as the n8n webhook emits them (Airtable-backed).
Field names are camelCase on the wire and snake_case in Python.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


AVATAR_TARGETS = [
    "Desk Workers",
    "Women 45+",
    "Gift Buyers",
    "Hobbyists",
    "Professionals",
    "General",
]

ANGLES = [
    "Curiosity",
    "Identity",
    "Pain",
    "Social Proof",
    "Us vs Them",
    "Urgency",
    "Gift",
    "Cost",
    "Science",
    "Transformation",
    "Risk Reversal",
    "Scarcity",
    "Direct Offer",
]

AWARENESS_LEVELS = [
    "Unaware",
    "Problem Aware",
    "Solution Aware",
    "Product Aware",
]

COPY_FORMATS = [
    "FMT1 - X-Ray Agitation",
    "FMT2 - Problem-Solution",
    "FMT3 - Testimonial Proof",
    "FMT4 - Before-After",
    "FMT5 - Mechanism Reveal",
]


def get_options() -> dict[str, list[str]]:
    return {
        "avatar_targets": list(AVATAR_TARGETS),
        "angles": list(ANGLES),
        "awareness_levels": list(AWARENESS_LEVELS),
        "formats": list(COPY_FORMATS),
    }


class GenerateStatus(str, Enum):
    ready = "Ready"
    running = "Running"
    done = "Done"
    error = "Error"


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )


class ImageAttachment(_CamelModel):
    id: str
    url: str
    filename: str = ""


class RecordPrompts(_CamelModel):
    variant_a: Optional[str] = None
    variant_b: Optional[str] = None
    story_brand: Optional[str] = None


class AdCopyRecord(_CamelModel):
    id: str
    full_concept: str = ""
    headline: str = ""
    body_copy: str = ""
    visual: str = ""
    angle: Optional[str] = None
    avatar_target: Optional[str] = None
    awareness_level: Optional[str] = None
    format: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    cta: Optional[str] = None
    generate_image_prompts: Optional[GenerateStatus] = None
    prompts: RecordPrompts = Field(default_factory=RecordPrompts)
    images: list[ImageAttachment] = Field(default_factory=list)
    created_at: Optional[str] = None


_VOCABULARIES = {
    "avatar_target": AVATAR_TARGETS,
    "angle": ANGLES,
    "awareness_level": AWARENESS_LEVELS,
    "format": COPY_FORMATS,
}


class AdGeneratorForm(_CamelModel):
    """Ad copy generation request. Empty selections mean "let the workflow pick"."""

    full_concept: str
    avatar_target: str = ""
    angle: str = ""
    awareness_level: str = ""
    format: str = ""
    cta: str = ""

    @field_validator("avatar_target", "angle", "awareness_level", "format")
    @classmethod
    def _known_option(cls, value: str, info) -> str:
        if value and value not in _VOCABULARIES[info.field_name]:
            raise ValueError(f"Unknown {info.field_name}: {value}")
        return value

    def to_payload(self) -> dict[str, Any]:
        """Webhook body; blank selections are sent as null."""
        return {
            "fullConcept": self.full_concept,
            "avatarTarget": self.avatar_target or None,
            "angle": self.angle or None,
            "awarenessLevel": self.awareness_level or None,
            "format": self.format or None,
            "cta": self.cta or None,
        }


class GenerateAdCopyResponse(_CamelModel):
    record_id: str
    status: GenerateStatus
