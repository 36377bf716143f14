"""API routers for Scrollgen."""

from . import generation

__all__ = ["generation"]
