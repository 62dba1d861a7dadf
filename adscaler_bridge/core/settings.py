"""Runtime settings for the provider clients.

Values come from the environment once, at startup, and are then passed
explicitly into every client and orchestrator.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field


DEFAULT_FAL_RUN_URL = "https://fal.run"
DEFAULT_FAL_QUEUE_URL = "https://queue.fal.run"
DEFAULT_FAL_MODEL = "fal-ai/flux/schnell"
DEFAULT_BANNERBEAR_URL = "https://api.bannerbear.com/v2"

# Polling
DEFAULT_POLL_INTERVAL = 2.0  # seconds
DEFAULT_FAL_MAX_POLL_ATTEMPTS = 150  # 300s at the default interval
DEFAULT_BANNERBEAR_MAX_POLL_ATTEMPTS = 30  # 60s at the default interval

DEFAULT_REQUEST_TIMEOUT = 60.0  # seconds


def is_placeholder(value: str | None) -> bool:
    """True for unset values and the `your-...-here` samples from .env.example."""
    if not value:
        return True
    lowered = value.strip().lower()
    return lowered.startswith("your") and lowered.endswith("here")


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw else default


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw else default


@dataclass
class Settings:
    fal_key: str | None = None
    bannerbear_api_key: str | None = None
    n8n_webhook_base_url: str | None = None
    supabase_url: str | None = None
    supabase_key: str | None = None

    # n8n webhook ids, appended to the base URL
    n8n_ad_copy_path: str = "ad-copy"
    n8n_generate_images_path: str = "generate-images"
    n8n_generate_prompts_path: str = "generate-prompts"

    fal_run_url: str = DEFAULT_FAL_RUN_URL
    fal_queue_url: str = DEFAULT_FAL_QUEUE_URL
    fal_default_model: str = DEFAULT_FAL_MODEL
    bannerbear_base_url: str = DEFAULT_BANNERBEAR_URL

    # Per-format Bannerbear template ids; missing formats use the built-in config
    bannerbear_template_ids: dict[str, str] = field(default_factory=dict)

    poll_interval: float = DEFAULT_POLL_INTERVAL
    fal_max_poll_attempts: int = DEFAULT_FAL_MAX_POLL_ATTEMPTS
    bannerbear_max_poll_attempts: int = DEFAULT_BANNERBEAR_MAX_POLL_ATTEMPTS
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    cors_origins: str = "*"

    @classmethod
    def from_env(cls) -> "Settings":
        template_ids = {}
        for fmt in ("square", "story", "landscape"):
            if template_id := os.getenv(f"BANNERBEAR_TEMPLATE_{fmt.upper()}"):
                template_ids[fmt] = template_id

        return cls(
            fal_key=os.getenv("FAL_KEY"),
            bannerbear_api_key=os.getenv("BANNERBEAR_API_KEY"),
            n8n_webhook_base_url=os.getenv("N8N_WEBHOOK_BASE_URL"),
            supabase_url=os.getenv("SUPABASE_URL"),
            supabase_key=os.getenv("SUPABASE_KEY") or os.getenv("SUPABASE_ANON_KEY"),
            n8n_ad_copy_path=os.getenv("N8N_AD_COPY_PATH", "ad-copy"),
            n8n_generate_images_path=os.getenv("N8N_GENERATE_IMAGES_PATH", "generate-images"),
            n8n_generate_prompts_path=os.getenv("N8N_GENERATE_PROMPTS_PATH", "generate-prompts"),
            fal_run_url=os.getenv("FAL_RUN_URL", DEFAULT_FAL_RUN_URL),
            fal_queue_url=os.getenv("FAL_QUEUE_URL", DEFAULT_FAL_QUEUE_URL),
            fal_default_model=os.getenv("FAL_DEFAULT_MODEL", DEFAULT_FAL_MODEL),
            bannerbear_base_url=os.getenv("BANNERBEAR_BASE_URL", DEFAULT_BANNERBEAR_URL),
            bannerbear_template_ids=template_ids,
            poll_interval=_float_env("POLL_INTERVAL", DEFAULT_POLL_INTERVAL),
            fal_max_poll_attempts=_int_env(
                "FAL_MAX_POLL_ATTEMPTS", DEFAULT_FAL_MAX_POLL_ATTEMPTS
            ),
            bannerbear_max_poll_attempts=_int_env(
                "BANNERBEAR_MAX_POLL_ATTEMPTS", DEFAULT_BANNERBEAR_MAX_POLL_ATTEMPTS
            ),
            request_timeout=_float_env("REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
            cors_origins=os.getenv("CORS_ORIGINS", "*"),
        )

    @property
    def fal_configured(self) -> bool:
        return not is_placeholder(self.fal_key)

    @property
    def bannerbear_configured(self) -> bool:
        return not is_placeholder(self.bannerbear_api_key)

    @property
    def n8n_configured(self) -> bool:
        return not is_placeholder(self.n8n_webhook_base_url)

    @property
    def supabase_configured(self) -> bool:
        return not (is_placeholder(self.supabase_url) or is_placeholder(self.supabase_key))

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
