"""Core module containing framework-agnostic business logic."""
from .settings import Settings
from .errors import (
    BridgeError,
    ConfigurationError,
    RequestError,
    ProviderError,
    NetworkError,
    GenerationFailedError,
    PollTimeoutError,
    NoImageError,
    PollCancelledError,
    NotFoundError,
)
from .cancellation import CancelToken
from .fal_client import FalClient
from .bannerbear_client import BannerbearClient
from .n8n_client import N8nClient
from .magpie_client import MagpieClient
from .batch import (
    BatchState,
    CreativeVariant,
    run_batch,
    generate_batch_composites,
    generate_ad_creative_batch,
)
from .pipeline import (
    AdCreativeInput,
    AdCreativeResult,
    generate_ad_creative,
    enhance_prompt_for_ads,
    get_ad_negative_prompt,
    resolve_dimensions,
)
from .handlers import ApiResponse, AppContext, get_context

__all__ = [
    # Settings
    "Settings",
    # Errors
    "BridgeError",
    "ConfigurationError",
    "RequestError",
    "ProviderError",
    "NetworkError",
    "GenerationFailedError",
    "PollTimeoutError",
    "NoImageError",
    "PollCancelledError",
    "NotFoundError",
    "CancelToken",
    # Clients
    "FalClient",
    "BannerbearClient",
    "N8nClient",
    "MagpieClient",
    # Orchestration
    "BatchState",
    "CreativeVariant",
    "run_batch",
    "generate_batch_composites",
    "generate_ad_creative_batch",
    "AdCreativeInput",
    "AdCreativeResult",
    "generate_ad_creative",
    "enhance_prompt_for_ads",
    "get_ad_negative_prompt",
    "resolve_dimensions",
    # Handlers
    "ApiResponse",
    "AppContext",
    "get_context",
]
