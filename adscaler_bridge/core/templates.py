"""Bannerbear template configuration per ad format.

Template ids are placeholders until replaced in the Bannerbear dashboard or
overridden through BANNERBEAR_TEMPLATE_<FORMAT>.
"""
from dataclasses import replace
from typing import Optional

from .bannerbear_types import AdFormat, FormatInfo, TemplateConfig, TemplateLayers
from .errors import ConfigurationError
from .settings import Settings


BANNERBEAR_TEMPLATES: dict[AdFormat, TemplateConfig] = {
    # Headline top, CTA bottom
    AdFormat.square: TemplateConfig(
        template_id="YOUR_SQUARE_TEMPLATE_ID_HERE",
        name="Ad Creative - Square",
        format=AdFormat.square,
        width=1080,
        height=1080,
        layers=TemplateLayers(
            background="background",
            headline="headline_text",
            cta="cta_button",
            subtext="body_text",
        ),
    ),
    AdFormat.story: TemplateConfig(
        template_id="YOUR_STORY_TEMPLATE_ID_HERE",
        name="Ad Creative - Story",
        format=AdFormat.story,
        width=1080,
        height=1920,
        layers=TemplateLayers(
            background="background",
            headline="headline_text",
            cta="cta_button",
            subtext="body_text",
        ),
    ),
    # No subtext layer: limited space
    AdFormat.landscape: TemplateConfig(
        template_id="YOUR_LANDSCAPE_TEMPLATE_ID_HERE",
        name="Ad Creative - Landscape",
        format=AdFormat.landscape,
        width=1200,
        height=628,
        layers=TemplateLayers(
            background="background",
            headline="headline_text",
            cta="cta_button",
        ),
    ),
}


TEMPLATE_DESIGN_GUIDELINES = {
    AdFormat.square: {
        "headline_zone": {"top": "5%", "height": "20%"},
        "cta_zone": {"bottom": "5%", "height": "15%"},
        "safe_margins": "5%",
    },
    AdFormat.story: {
        "headline_zone": {"top": "10%", "height": "15%"},
        "cta_zone": {"bottom": "15%", "height": "10%"},
        "safe_margins": "5%",
    },
    AdFormat.landscape: {
        "headline_zone": {"top": "10%", "height": "25%"},
        "cta_zone": {"bottom": "10%", "height": "20%"},
        "safe_margins": "3%",
    },
}


AVAILABLE_FORMATS: list[FormatInfo] = [
    FormatInfo(AdFormat.square, "Square (Feed)", 1080, 1080, "1:1"),
    FormatInfo(AdFormat.story, "Story/Reel", 1080, 1920, "9:16"),
    FormatInfo(AdFormat.landscape, "Landscape (Link)", 1200, 628, "1.91:1"),
]


def get_available_formats() -> list[FormatInfo]:
    return list(AVAILABLE_FORMATS)


def _is_placeholder_id(template_id: str) -> bool:
    return "YOUR_" in template_id or "_HERE" in template_id


def get_template_for_format(
    fmt: AdFormat, settings: Optional[Settings] = None
) -> TemplateConfig:
    """Template config for a format, with any id override from settings applied."""
    try:
        template = BANNERBEAR_TEMPLATES[AdFormat(fmt)]
    except (KeyError, ValueError):
        raise ConfigurationError(
            f"No Bannerbear template configured for format: {fmt}"
        ) from None
    if settings and (override := settings.bannerbear_template_ids.get(template.format.value)):
        template = replace(template, template_id=override)
    return template


def get_unconfigured_templates(settings: Optional[Settings] = None) -> list[AdFormat]:
    return [
        fmt
        for fmt in BANNERBEAR_TEMPLATES
        if _is_placeholder_id(get_template_for_format(fmt, settings).template_id)
    ]


def are_templates_configured(settings: Optional[Settings] = None) -> bool:
    return not get_unconfigured_templates(settings)
