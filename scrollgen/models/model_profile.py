"""Image backend model profiles."""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


class ModelProfile(BaseModel):
    """Static configuration of one image-generation backend model."""

    id: str = Field(..., min_length=1, description="Short identifier used by clients")
    name: str = Field(..., min_length=1, description="Vendor model reference")
    steps: int = Field(default=4, ge=1, description="Default number of inference steps")
    guidance_scale: float = Field(default=0.0, ge=0.0, description="Classifier-free guidance")
    use_case: str = Field(default="speed", description="Short description of the trade-off")
    supports_outpainting: bool = Field(
        default=False, description="Accepts image + mask input (inpainting)"
    )
    supports_text_to_image: bool = Field(
        default=True, description="Can generate from a prompt alone"
    )
    priority: int = Field(default=1, ge=1, description="Fallback rank (1 = tried first)")


DEFAULT_PROFILES = [
    ModelProfile(
        id="flux-schnell",
        name="black-forest-labs/flux-schnell",
        steps=1,
        guidance_scale=0.0,
        use_case="speed",
        supports_outpainting=False,
        priority=1,
    ),
    ModelProfile(
        id="flux-fill-pro",
        name="black-forest-labs/flux-fill-pro",
        steps=4,
        guidance_scale=3.5,
        use_case="outpainting",
        supports_outpainting=True,
        supports_text_to_image=False,
        priority=2,
    ),
    ModelProfile(
        id="flux-schnell-lora",
        name="black-forest-labs/flux-schnell-lora",
        steps=2,
        guidance_scale=1.0,
        use_case="balanced",
        supports_outpainting=False,
        priority=3,
    ),
]


class ModelRegistry:
    """Read-only lookup of model profiles, loaded once at start-up."""

    def __init__(self, profiles: Optional[list[ModelProfile]] = None):
        profiles = profiles if profiles is not None else DEFAULT_PROFILES
        if not profiles:
            raise ValueError("ModelRegistry requires at least one profile")
        self._profiles: dict[str, ModelProfile] = {p.id: p for p in profiles}

    @classmethod
    def from_yaml(cls, path: Path) -> "ModelRegistry":
        """Load profiles from a YAML file.

        The file holds a ``models`` list whose entries match
        :class:`ModelProfile` fields.
        """
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        entries = data.get("models", []) if isinstance(data, dict) else data
        return cls([ModelProfile(**entry) for entry in entries])

    @classmethod
    def load(cls, models_file: Optional[Path] = None) -> "ModelRegistry":
        if models_file is not None:
            return cls.from_yaml(models_file)
        return cls()

    def get(self, model_id: str) -> Optional[ModelProfile]:
        return self._profiles.get(model_id)

    def resolve(self, model_id: Optional[str], default: str) -> ModelProfile:
        """Return the requested profile, or the default for unknown ids."""
        profile = self._profiles.get(model_id) if model_id else None
        if profile is None:
            profile = self._profiles.get(default)
        if profile is None:
            profile = self.fastest()
        return profile

    def fastest(self) -> ModelProfile:
        """Lowest-priority text-to-image profile (the last-resort fallback)."""
        candidates = [p for p in self._profiles.values() if p.supports_text_to_image]
        if not candidates:
            candidates = list(self._profiles.values())
        return min(candidates, key=lambda p: p.priority)

    def ids(self) -> list[str]:
        return list(self._profiles)

    def profiles(self) -> list[ModelProfile]:
        return sorted(self._profiles.values(), key=lambda p: p.priority)

    def __contains__(self, model_id: str) -> bool:
        return model_id in self._profiles

    def __len__(self) -> int:
        return len(self._profiles)
