"""Tile and slice geometry models for the outpainting pipeline."""

from dataclasses import dataclass
from typing import Optional

from PIL import Image

from ..utils.image_utils import image_to_data_url


@dataclass(frozen=True)
class SliceSpec:
    """How much of a predecessor tile's bottom band is reused.

    The band is split into a fully preserved block followed by a gradient
    transition zone:

        rows [0, preserve_height)              -> preserved (mask black)
        rows [preserve_height, slice_height)   -> gradient ramp
        rows [slice_height, canvas_height)     -> generated (mask white)
    """

    slice_height: int
    """Height of the band taken from the bottom of the predecessor (pixels)."""

    gradient_zone: int = 0
    """Height of the gradient transition zone (pixels)."""

    def __post_init__(self):
        if self.slice_height <= 0:
            raise ValueError(f"slice_height must be positive, got {self.slice_height}")
        if self.gradient_zone < 0 or self.gradient_zone > self.slice_height:
            raise ValueError(
                f"gradient_zone must be within [0, {self.slice_height}], got {self.gradient_zone}"
            )

    @property
    def preserve_height(self) -> int:
        """Rows copied verbatim from the predecessor."""
        return self.slice_height - self.gradient_zone

    def generate_height(self, canvas_height: int) -> int:
        """Rows the backend is asked to generate from scratch."""
        return canvas_height - self.slice_height

    def __str__(self) -> str:
        return (
            f"SliceSpec[slice={self.slice_height} preserve={self.preserve_height} "
            f"gradient={self.gradient_zone}]"
        )


@dataclass
class OutpaintSetup:
    """Canvas and mask pair handed to an inpainting backend."""

    canvas: Image.Image
    mask: Image.Image
    spec: SliceSpec

    @property
    def slice_height(self) -> int:
        return self.spec.slice_height

    @property
    def gradient_zone(self) -> int:
        return self.spec.gradient_zone

    @property
    def preserve_height(self) -> int:
        return self.spec.preserve_height

    @property
    def size(self) -> tuple[int, int]:
        return self.canvas.size

    def canvas_data_url(self) -> str:
        return image_to_data_url(self.canvas)

    def mask_data_url(self) -> str:
        return image_to_data_url(self.mask)


@dataclass
class Tile:
    """One generated image in the scroll."""

    image_url: str
    """Remote URL or ``data:`` URL of the final (cropped) image."""

    prompt: str
    """Final prompt text sent to the image backend."""

    model_used: str
    """Identifier of the model profile that actually produced the image."""

    generation_time: float
    """Wall-clock seconds spent producing the image."""

    width: int
    height: int
    is_initial: bool = False
    slice_spec: Optional[SliceSpec] = None
    strategy: Optional[str] = None
