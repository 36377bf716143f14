"""Data models for scroll generation."""

from .model_profile import DEFAULT_PROFILES, ModelProfile, ModelRegistry
from .session import DEFAULT_SESSION_ID, PromptChain, SessionStore
from .tile import OutpaintSetup, SliceSpec, Tile

__all__ = [
    "DEFAULT_PROFILES",
    "ModelProfile",
    "ModelRegistry",
    "DEFAULT_SESSION_ID",
    "PromptChain",
    "SessionStore",
    "OutpaintSetup",
    "SliceSpec",
    "Tile",
]
