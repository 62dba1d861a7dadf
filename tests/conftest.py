import pytest

from adscaler_bridge.core import handlers, jobs
from adscaler_bridge.core.settings import Settings


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset the global context and job registry before each test."""
    handlers._context = None
    jobs._registry = None
    yield
    handlers._context = None
    jobs._registry = None


@pytest.fixture
def settings():
    """Fully configured settings with zero poll intervals."""
    return Settings(
        fal_key="test-fal-key",
        bannerbear_api_key="test-bannerbear-key",
        n8n_webhook_base_url="https://n8n.test/webhook/",
        supabase_url="https://magpie.supabase.test/",
        supabase_key="test-supabase-key",
        bannerbear_template_ids={
            "square": "tmpl-square",
            "story": "tmpl-story",
            "landscape": "tmpl-landscape",
        },
        poll_interval=0,
        fal_max_poll_attempts=10,
        bannerbear_max_poll_attempts=5,
    )


@pytest.fixture
def unconfigured_settings():
    return Settings(
        fal_key="your-fal-key-here",
        bannerbear_api_key=None,
        n8n_webhook_base_url="",
        poll_interval=0,
    )
