"""API request/response models.

Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialised with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
    )


# =============================================================================
# Generation Schemas
# =============================================================================


class GenerateNextImageRequest(CamelModel):
    """Request for the next tile of a scroll."""

    previous_image: Optional[str] = Field(
        default=None, description="URL or data URL of the previous tile"
    )
    current_prompt: Optional[str] = Field(default=None, description="Latest scene description")
    original_user_prompt: Optional[str] = Field(
        default=None, description="Theme the user started the scroll with"
    )
    model_name: Optional[str] = Field(default=None, description="Requested model profile id")
    debug_mode: bool = Field(default=False, description="Include debug info in the response")
    inference_steps: Optional[int] = Field(
        default=None, ge=1, le=50, description="Override for the profile's step count"
    )
    seed: Optional[int] = Field(default=None, ge=0)
    session_id: Optional[str] = Field(
        default=None, max_length=200, description="Scroll session identifier"
    )


class GenerateNextImageResponse(CamelModel):
    """Generated tile."""

    image_url: str
    prompt: str
    original_user_prompt: Optional[str] = None
    evolved_prompt: Optional[str] = None
    model_used: str
    requested_model: str
    generation_time: int = Field(description="Milliseconds spent producing the tile")
    debug_info: Optional[dict[str, Any]] = None


# =============================================================================
# Model / Health Schemas
# =============================================================================


class ModelInfo(CamelModel):
    """Public view of a model profile."""

    id: str
    name: str
    steps: int
    guidance_scale: float
    use_case: str
    supports_outpainting: bool
    supports_text_to_image: bool
    priority: int


class ModelListResponse(CamelModel):
    """Available model profiles and defaults."""

    models: list[ModelInfo]
    default: str
    default_continuation: str


class ServiceStatus(CamelModel):
    """Which backends have credentials configured."""

    replicate: bool
    gemini: bool


class HealthResponse(CamelModel):
    """Health check response."""

    status: str
    timestamp: datetime
    environment: str
    version: str
    services: ServiceStatus
    available_models: list[str]
    default_model: str


# =============================================================================
# Common Response Schemas
# =============================================================================


class SuccessResponse(CamelModel):
    """Generic success response."""

    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    """Error response."""

    error: str
    details: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
