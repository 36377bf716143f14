"""Error taxonomy for the tile generation pipeline."""

from typing import Optional


class ScrollgenError(Exception):
    """Base class for all scroll generator errors."""

    pass


class ConfigurationError(ScrollgenError):
    """Required credentials or settings are missing."""

    pass


class ImageProcessingError(ScrollgenError):
    """An image could not be fetched, decoded or transformed."""

    pass


class DegenerateGeometryError(ImageProcessingError):
    """Slice geometry cannot produce a valid outpainting input.

    Raised for zero-sized images and for slices that would cover the whole
    predecessor or the whole canvas. Callers fall back to text-to-image
    generation.
    """

    pass


class TransientBackendError(ScrollgenError):
    """Network, timeout or vendor failure from an external backend."""

    def __init__(self, message: str, model: Optional[str] = None):
        super().__init__(message)
        self.model = model


class ModelInputError(ScrollgenError):
    """The request cannot be expressed as input for the selected model."""

    def __init__(self, message: str, model: Optional[str] = None):
        super().__init__(message)
        self.model = model


class PromptEvolutionError(ScrollgenError):
    """The text backend could not evolve the scene description."""

    pass


class GenerationFailedError(ScrollgenError):
    """Every generation strategy failed for a request."""

    def __init__(self, message: str, attempts: Optional[list] = None):
        super().__init__(message)
        self.attempts = attempts or []


class GenerationCancelledError(ScrollgenError):
    """The caller abandoned the request before the pipeline finished."""

    pass
