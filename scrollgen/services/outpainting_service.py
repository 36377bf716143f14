"""Outpainting service for building continuation inputs.

Each continuation tile is generated from a canvas whose top rows are a copy
of the predecessor's bottom band. The backend receives:
1. Canvas - the band at row 0, neutral fill below
2. Mask - black over the preserved rows, a gradient transition band,
   white over everything the model must generate

After generation the duplicated band is cropped away (see
:mod:`cropping_service`) so consecutive tiles stack without a seam.
"""

import logging
import math
from typing import Optional

import numpy as np
from PIL import Image

from ..config import GradientRamp, OutpaintSettings
from ..exceptions import DegenerateGeometryError
from ..models.tile import OutpaintSetup, SliceSpec
from ..utils.image_utils import decode_image, resize_image

logger = logging.getLogger(__name__)

# Mask intensities understood by inpainting backends
PRESERVE = 0
GENERATE = 255


class OutpaintingService:
    """Service for turning a predecessor tile into a canvas/mask pair."""

    def __init__(
        self,
        settings: Optional[OutpaintSettings] = None,
        canvas_size: tuple[int, int] = (1024, 768),
    ):
        """
        Initialize outpainting service.

        Args:
            settings: Slice and gradient settings (defaults if None)
            canvas_size: (width, height) of every generated tile
        """
        self.settings = settings or OutpaintSettings()
        self.canvas_width, self.canvas_height = canvas_size
        if self.canvas_width <= 0 or self.canvas_height <= 0:
            raise ValueError(f"Invalid canvas size: {canvas_size}")

    @property
    def canvas_size(self) -> tuple[int, int]:
        return (self.canvas_width, self.canvas_height)

    def compute_slice_height(self, predecessor_height: int) -> int:
        """
        Calculate how many bottom rows of the predecessor to reuse.

        A fixed ``max_slice_height`` takes precedence over ``slice_ratio``;
        either way the result is clamped to ``max_slice_ratio`` of the
        predecessor so small inputs never request rows past the image edge.

        Args:
            predecessor_height: Height of the previous tile in pixels

        Returns:
            Slice height in pixels

        Raises:
            DegenerateGeometryError: If no valid slice exists
        """
        if predecessor_height <= 0:
            raise DegenerateGeometryError(f"Predecessor has zero height ({predecessor_height})")

        settings = self.settings
        if settings.max_slice_height is not None:
            raw = settings.max_slice_height
        else:
            raw = math.floor(predecessor_height * settings.slice_ratio)

        slice_height = min(raw, math.floor(predecessor_height * settings.max_slice_ratio))

        if slice_height <= 0:
            raise DegenerateGeometryError(
                f"Slice of {slice_height}px from a {predecessor_height}px predecessor is empty"
            )
        if slice_height >= predecessor_height:
            raise DegenerateGeometryError(
                f"Slice of {slice_height}px covers the whole {predecessor_height}px predecessor"
            )
        if slice_height >= self.canvas_height:
            raise DegenerateGeometryError(
                f"Slice of {slice_height}px leaves nothing to generate on a "
                f"{self.canvas_height}px canvas"
            )

        return slice_height

    def compute_gradient_zone(self, slice_height: int) -> int:
        """Height of the gradient band inside the slice."""
        zone = math.floor(slice_height * self.settings.gradient_ratio)
        return max(0, min(self.settings.max_gradient_zone, zone, slice_height))

    def compute_slice_spec(self, predecessor_height: int) -> SliceSpec:
        slice_height = self.compute_slice_height(predecessor_height)
        return SliceSpec(
            slice_height=slice_height,
            gradient_zone=self.compute_gradient_zone(slice_height),
        )

    def gradient_values(self, gradient_zone: int) -> np.ndarray:
        """
        Row intensities for the gradient band, from preserve toward generate.

        Linear: ``floor(255 * i / g)``. Exponential: ``255 * (i / g) ** 2``,
        which keeps more of the predecessor and gives a sharper boundary.
        The exponential ramp is accumulated from rounded per-row increments
        so it stays convex after quantisation to uint8.

        Args:
            gradient_zone: Number of rows in the band

        Returns:
            uint8 array of length ``gradient_zone``
        """
        if gradient_zone <= 0:
            return np.zeros(0, dtype=np.uint8)

        g = gradient_zone
        if self.settings.gradient_ramp == GradientRamp.EXPONENTIAL:
            # T(i+1) - T(i) = 255 * (2i + 1) / g^2
            increments = np.rint(GENERATE * (2 * np.arange(g - 1) + 1) / (g * g))
            values = np.concatenate(([0.0], np.cumsum(increments)))
        else:
            values = np.floor(GENERATE * np.arange(g, dtype=np.float64) / g)

        return np.clip(values, PRESERVE, GENERATE).astype(np.uint8)

    def extract_slice(self, image: Image.Image, slice_height: int) -> Image.Image:
        """
        Extract the bottom ``slice_height`` rows at full width.

        The band is resized to the canvas width (height unchanged) when the
        predecessor width differs.
        """
        width, height = image.size
        if slice_height <= 0 or slice_height >= height:
            raise DegenerateGeometryError(
                f"Cannot extract {slice_height}px slice from {width}x{height} image"
            )

        band = image.crop((0, height - slice_height, width, height))
        if width != self.canvas_width:
            logger.debug("Resizing slice from %dpx to %dpx wide", width, self.canvas_width)
            band = resize_image(band, (self.canvas_width, slice_height))
        return band

    def build_canvas(self, band: Image.Image) -> Image.Image:
        """Place the band at the top of a neutral-filled canvas."""
        canvas = Image.new("RGB", self.canvas_size, self.settings.fill_color)
        if band.mode != "RGB":
            band = band.convert("RGB")
        canvas.paste(band, (0, 0))
        return canvas

    def build_mask(self, spec: SliceSpec) -> Image.Image:
        """
        Build the grayscale mask for a slice spec.

        Returns:
            L-mode image: black preserve block, gradient band, white below
        """
        if spec.slice_height >= self.canvas_height:
            raise DegenerateGeometryError(
                f"Slice of {spec.slice_height}px leaves nothing to generate"
            )

        mask = np.full((self.canvas_height, self.canvas_width), GENERATE, dtype=np.uint8)
        mask[: spec.preserve_height, :] = PRESERVE

        ramp = self.gradient_values(spec.gradient_zone)
        if len(ramp):
            mask[spec.preserve_height : spec.slice_height, :] = ramp[:, np.newaxis]

        return Image.fromarray(mask)

    def create_setup(self, image: Image.Image) -> OutpaintSetup:
        """
        Build the canvas, mask and slice spec for a predecessor tile.

        Args:
            image: Decoded predecessor tile

        Returns:
            OutpaintSetup whose canvas and mask are exactly the canvas size

        Raises:
            DegenerateGeometryError: If the predecessor is too small
        """
        width, height = image.size
        if width <= 0 or height <= 0:
            raise DegenerateGeometryError(f"Predecessor has zero size: {width}x{height}")

        spec = self.compute_slice_spec(height)
        logger.debug("Predecessor %dx%d -> %s", width, height, spec)

        band = self.extract_slice(image, spec.slice_height)
        canvas = self.build_canvas(band)
        mask = self.build_mask(spec)

        logger.info(
            "Outpaint setup: preserve %dpx, gradient %dpx, generate %dpx",
            spec.preserve_height,
            spec.gradient_zone,
            spec.generate_height(self.canvas_height),
        )
        return OutpaintSetup(canvas=canvas, mask=mask, spec=spec)

    def create_setup_from_bytes(self, data: bytes) -> OutpaintSetup:
        """Decode a predecessor and build its outpaint setup."""
        return self.create_setup(decode_image(data))
