"""Configuration management for the scroll generator."""

import os
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .exceptions import ConfigurationError


class GradientRamp(str, Enum):
    """Shape of the preserve-to-generate transition band in the mask."""

    LINEAR = "linear"
    EXPONENTIAL = "exponential"


class OutpaintSettings(BaseModel):
    """Geometry knobs for the slice/canvas/mask builder."""

    slice_ratio: float = Field(
        default=0.35,
        gt=0.0,
        lt=1.0,
        description="Fraction of the predecessor height reused as context",
    )
    max_slice_height: Optional[int] = Field(
        default=None,
        gt=0,
        description="Fixed slice height in pixels (overrides slice_ratio when set)",
    )
    max_slice_ratio: float = Field(
        default=0.5,
        gt=0.0,
        lt=1.0,
        description="Upper bound on the slice as a fraction of predecessor height",
    )
    gradient_ratio: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Fraction of the slice used as gradient transition zone",
    )
    max_gradient_zone: int = Field(
        default=60, ge=0, description="Maximum gradient zone height in pixels"
    )
    gradient_ramp: GradientRamp = Field(
        default=GradientRamp.LINEAR, description="Gradient intensity curve"
    )
    fill_color: tuple[int, int, int] = Field(
        default=(128, 128, 128),
        description="Background colour of the canvas region to be generated",
    )

    @field_validator("fill_color")
    @classmethod
    def _check_fill_color(cls, value: tuple[int, int, int]) -> tuple[int, int, int]:
        if any(channel < 0 or channel > 255 for channel in value):
            raise ValueError("fill_color channels must be within 0-255")
        return value

    @classmethod
    def from_env(cls) -> "OutpaintSettings":
        """Build settings from SCROLLGEN_* environment variables."""
        values = {}
        float_vars = {
            "slice_ratio": "SCROLLGEN_SLICE_RATIO",
            "max_slice_ratio": "SCROLLGEN_MAX_SLICE_RATIO",
            "gradient_ratio": "SCROLLGEN_GRADIENT_RATIO",
        }
        for field_name, env_var in float_vars.items():
            if os.environ.get(env_var):
                values[field_name] = float(os.environ[env_var])

        if os.environ.get("SCROLLGEN_MAX_SLICE_HEIGHT"):
            values["max_slice_height"] = int(os.environ["SCROLLGEN_MAX_SLICE_HEIGHT"])
        if os.environ.get("SCROLLGEN_MAX_GRADIENT_ZONE"):
            values["max_gradient_zone"] = int(os.environ["SCROLLGEN_MAX_GRADIENT_ZONE"])
        if os.environ.get("SCROLLGEN_GRADIENT_RAMP"):
            values["gradient_ramp"] = GradientRamp(os.environ["SCROLLGEN_GRADIENT_RAMP"].lower())
        if os.environ.get("SCROLLGEN_FILL_COLOR"):
            values["fill_color"] = tuple(
                int(part) for part in os.environ["SCROLLGEN_FILL_COLOR"].split(",")
            )
        return cls(**values)


class AppConfig(BaseModel):
    """Application-level configuration."""

    # API Keys
    replicate_api_token: Optional[str] = Field(
        default=None,
        description="Replicate API token for image generation",
    )
    gemini_api_key: Optional[str] = Field(
        default=None,
        description="Google API key for Gemini prompt evolution",
    )

    # Canvas
    image_width: int = Field(default=1024, gt=0, description="Tile width in pixels")
    image_height: int = Field(default=768, gt=0, description="Tile height in pixels")

    # Timeouts (seconds)
    generation_timeout: float = Field(default=60.0, gt=0, description="Image backend timeout")
    download_timeout: float = Field(default=30.0, gt=0, description="Image download timeout")
    text_timeout: float = Field(default=30.0, gt=0, description="Text backend timeout")
    request_timeout: float = Field(
        default=180.0, gt=0, description="Wall-clock bound for one HTTP generation request"
    )

    # Model settings
    default_model: str = Field(default="flux-schnell", description="Model for initial tiles")
    default_continuation_model: str = Field(
        default="flux-fill-pro",
        description="Model used for continuation tiles when none is requested",
    )
    text_model: str = Field(
        default="gemini-2.0-flash",
        description="Gemini model for prompt evolution",
    )
    models_file: Optional[Path] = Field(
        default=None,
        description="Optional YAML file overriding the built-in model profiles",
    )

    outpaint: OutpaintSettings = Field(default_factory=OutpaintSettings)

    session_ttl_seconds: float = Field(
        default=3600.0, gt=0, description="Idle time before a session theme is evicted"
    )

    output_dir: Path = Field(
        default=Path.cwd() / "output",
        description="Default output directory for CLI runs",
    )
    environment: str = Field(default="development", description="Deployment environment name")

    @property
    def canvas_size(self) -> tuple[int, int]:
        return (self.image_width, self.image_height)

    @classmethod
    def load(cls) -> "AppConfig":
        """Load configuration from environment and defaults."""
        models_file = os.environ.get("SCROLLGEN_MODELS_FILE")
        return cls(
            replicate_api_token=os.environ.get("REPLICATE_API_TOKEN"),
            gemini_api_key=os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY"),
            image_width=int(os.environ.get("IMAGE_WIDTH", cls.model_fields["image_width"].default)),
            image_height=int(os.environ.get("IMAGE_HEIGHT", cls.model_fields["image_height"].default)),
            # GENERATION_TIMEOUT is expressed in milliseconds
            generation_timeout=float(os.environ.get("GENERATION_TIMEOUT", 60000)) / 1000.0,
            download_timeout=float(os.environ.get("SCROLLGEN_DOWNLOAD_TIMEOUT", 30.0)),
            text_timeout=float(os.environ.get("SCROLLGEN_TEXT_TIMEOUT", 30.0)),
            request_timeout=float(os.environ.get("SCROLLGEN_REQUEST_TIMEOUT", 180.0)),
            default_model=os.environ.get("SCROLLGEN_DEFAULT_MODEL", "flux-schnell"),
            default_continuation_model=os.environ.get(
                "SCROLLGEN_CONTINUATION_MODEL", "flux-fill-pro"
            ),
            text_model=os.environ.get("SCROLLGEN_TEXT_MODEL", "gemini-2.0-flash"),
            models_file=Path(models_file) if models_file else None,
            outpaint=OutpaintSettings.from_env(),
            session_ttl_seconds=float(os.environ.get("SCROLLGEN_SESSION_TTL", 3600.0)),
            output_dir=Path(
                os.environ.get("SCROLLGEN_OUTPUT_DIR", str(cls.model_fields["output_dir"].default))
            ),
            environment=os.environ.get("SCROLLGEN_ENV", "development"),
        )

    def ensure_directories(self) -> None:
        """Create necessary directories."""
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def credential_status(self) -> dict[str, bool]:
        """Which backend credentials are configured (never the values)."""
        return {
            "replicate": bool(self.replicate_api_token),
            "gemini": bool(self.gemini_api_key),
        }

    def missing_credentials(self) -> list[str]:
        """Names of backends without credentials."""
        return [name for name, present in self.credential_status().items() if not present]

    def require_credentials(self) -> None:
        """Raise ConfigurationError if any backend credential is missing."""
        missing = self.missing_credentials()
        if missing:
            env_vars = {"replicate": "REPLICATE_API_TOKEN", "gemini": "GEMINI_API_KEY"}
            raise ConfigurationError(
                "Missing credentials for: "
                + ", ".join(f"{name} ({env_vars[name]})" for name in missing)
            )


# Global config instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get or create global configuration."""
    global _config
    if _config is None:
        _config = AppConfig.load()
    return _config
