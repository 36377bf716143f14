"""Scroll generation services."""

from .cropping_service import CroppingService
from .gemini_service import GeminiService
from .generation_service import GenerationService
from .outpainting_service import OutpaintingService
from .replicate_service import ReplicateService

__all__ = [
    "CroppingService",
    "GeminiService",
    "GenerationService",
    "OutpaintingService",
    "ReplicateService",
]
