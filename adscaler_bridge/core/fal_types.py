"""
Types for the fal.ai image generation API.
Provider responses are validated into pydantic models at the client boundary.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_IMAGE_SIZE = 1024
DEFAULT_NUM_IMAGES = 1
DEFAULT_GUIDANCE_SCALE = 7.5
DEFAULT_INFERENCE_STEPS = 28


class FalModel(str, Enum):
    flux_schnell = "fal-ai/flux/schnell"
    flux_dev = "fal-ai/flux/dev"
    flux_lora = "fal-ai/flux-lora"
    fast_sdxl = "fal-ai/fast-sdxl"
    sd3_medium = "fal-ai/stable-diffusion-v3-medium"


class QueuePhase(str, Enum):
    in_queue = "IN_QUEUE"
    in_progress = "IN_PROGRESS"
    completed = "COMPLETED"
    failed = "FAILED"
    error = "ERROR"

    @property
    def is_terminal(self) -> bool:
        return self in (QueuePhase.completed, QueuePhase.failed, QueuePhase.error)

    @property
    def is_failure(self) -> bool:
        return self in (QueuePhase.failed, QueuePhase.error)


@dataclass(frozen=True)
class GenerationRequest:
    """One image generation request. Never mutated after submission."""

    prompt: str
    negative_prompt: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    num_images: Optional[int] = None
    seed: Optional[int] = None
    guidance_scale: Optional[float] = None
    num_inference_steps: Optional[int] = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "prompt": self.prompt,
            "image_size": {
                "width": self.width or DEFAULT_IMAGE_SIZE,
                "height": self.height or DEFAULT_IMAGE_SIZE,
            },
            "num_images": self.num_images or DEFAULT_NUM_IMAGES,
            "guidance_scale": self.guidance_scale or DEFAULT_GUIDANCE_SCALE,
            "num_inference_steps": self.num_inference_steps or DEFAULT_INFERENCE_STEPS,
        }
        if self.negative_prompt:
            payload["negative_prompt"] = self.negative_prompt
        if self.seed is not None:
            payload["seed"] = self.seed
        return payload


class FalImage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    url: str
    width: Optional[int] = None
    height: Optional[int] = None
    content_type: str = "image/jpeg"


class QueueLog(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: str
    timestamp: Optional[str] = None


class QueueStatus(BaseModel):
    """One status poll. Superseded by the next poll, never merged."""

    model_config = ConfigDict(extra="ignore")

    status: QueuePhase
    queue_position: Optional[int] = None
    logs: list[QueueLog] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


class Timings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    inference: Optional[float] = None


class GenerationResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    images: list[FalImage] = Field(default_factory=list)
    seed: Optional[int] = None
    prompt: str = ""
    timings: Optional[Timings] = None
    has_nsfw_concepts: Optional[list[bool]] = None


class QueueSubmission(BaseModel):
    model_config = ConfigDict(extra="ignore")

    request_id: str
    status_url: Optional[str] = None
    response_url: Optional[str] = None
    cancel_url: Optional[str] = None


@dataclass(frozen=True)
class ModelInfo:
    id: FalModel
    name: str
    speed: str  # fast | medium | slow
    quality: str  # standard | high | highest
    description: str


AVAILABLE_MODELS: list[ModelInfo] = [
    ModelInfo(
        FalModel.flux_schnell, "FLUX Schnell", "fast", "high",
        "Fastest FLUX model, great quality (~2-4s)",
    ),
    ModelInfo(
        FalModel.fast_sdxl, "Fast SDXL", "fast", "standard",
        "Quick SDXL generation (~2-5s)",
    ),
    ModelInfo(
        FalModel.flux_dev, "FLUX Dev", "medium", "highest",
        "Highest quality FLUX model (~10-20s)",
    ),
    ModelInfo(
        FalModel.flux_lora, "FLUX LoRA", "medium", "high",
        "FLUX with custom LoRA models",
    ),
    ModelInfo(
        FalModel.sd3_medium, "SD3 Medium", "medium", "high",
        "Stable Diffusion 3 medium model",
    ),
]


def get_available_models() -> list[ModelInfo]:
    return list(AVAILABLE_MODELS)
