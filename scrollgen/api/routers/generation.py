"""Tile generation endpoints."""

import asyncio
import logging
import threading
from typing import Optional

from fastapi import APIRouter, HTTPException

from ...config import get_config
from ...services.generation_service import GenerationRequest, GenerationService
from ..schemas import (
    GenerateNextImageRequest,
    GenerateNextImageResponse,
    ModelInfo,
    ModelListResponse,
    SuccessResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# Shared across requests so session themes survive between calls
_service: Optional[GenerationService] = None


def get_generation_service() -> GenerationService:
    """Get or create the shared generation service."""
    global _service
    if _service is None:
        _service = GenerationService(config=get_config())
    return _service


@router.post("/generate-next-image", response_model=GenerateNextImageResponse)
async def generate_next_image(body: GenerateNextImageRequest):
    """Generate the next tile of a scroll.

    Without ``previousImage`` an initial tile is generated from the prompt.
    """
    service = get_generation_service()
    request = GenerationRequest(**body.model_dump())
    cancel_event = threading.Event()
    timeout = service.config.request_timeout

    try:
        outcome = await asyncio.wait_for(
            asyncio.to_thread(service.generate, request, cancel_event),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        cancel_event.set()
        logger.error("Generation timed out after %.0fs", timeout)
        raise HTTPException(
            status_code=504,
            detail=f"Generation did not finish within {timeout:.0f}s",
        )
    except asyncio.CancelledError:
        # Client went away; stop the worker at its next checkpoint
        cancel_event.set()
        raise

    tile = outcome.tile
    return GenerateNextImageResponse(
        image_url=tile.image_url,
        prompt=tile.prompt,
        original_user_prompt=outcome.original_user_prompt,
        evolved_prompt=outcome.evolved_prompt,
        model_used=outcome.model_used,
        requested_model=outcome.requested_model,
        generation_time=round(tile.generation_time * 1000),
        debug_info=outcome.to_debug_info() if request.debug_mode else None,
    )


@router.get("/models", response_model=ModelListResponse)
async def list_models():
    """List available model profiles."""
    service = get_generation_service()
    return ModelListResponse(
        models=[ModelInfo(**profile.model_dump()) for profile in service.available_models()],
        default=service.config.default_model,
        default_continuation=service.config.default_continuation_model,
    )


@router.post("/sessions/{session_id}/reset", response_model=SuccessResponse)
async def reset_session(session_id: str):
    """Forget the original theme and prompt history of a session."""
    service = get_generation_service()
    existed = service.reset_session(session_id)
    message = f"Session '{session_id}' reset" if existed else f"Session '{session_id}' not found"
    return SuccessResponse(message=message)
