"""Post-generation cropping for seamless tile stacking."""

import logging
from typing import Optional

from PIL import Image

from ..exceptions import ImageProcessingError
from ..models.tile import SliceSpec
from ..utils.image_utils import image_to_data_url, load_image_reference

logger = logging.getLogger(__name__)


class CroppingService:
    """Removes the band a continuation tile duplicates from its predecessor.

    The whole reused slice (preserved rows plus gradient zone) is cropped, so
    each tile contributes only newly generated rows when stacked below the
    previous one.
    """

    def __init__(self, download_timeout: float = 30.0):
        self.download_timeout = download_timeout

    def crop_amount(self, spec: SliceSpec) -> int:
        """Rows to remove from the top of a generated tile."""
        return spec.slice_height

    def crop(self, image: Image.Image, crop_amount: int) -> Image.Image:
        """
        Drop the top ``crop_amount`` rows.

        Args:
            image: Generated tile
            crop_amount: Rows to remove

        Returns:
            Cropped image of height ``height - crop_amount`` and unchanged
            width, or the input itself when the crop would leave no rows
        """
        width, height = image.size
        crop_amount = max(0, crop_amount)

        if crop_amount >= height:
            logger.warning(
                "Skipping crop of %dpx from %dpx tall image; returning it unchanged",
                crop_amount,
                height,
            )
            return image

        return image.crop((0, crop_amount, width, height))

    def crop_to_spec(self, image: Image.Image, spec: SliceSpec) -> Image.Image:
        return self.crop(image, self.crop_amount(spec))

    def crop_tile_reference(self, image_ref: str, spec: SliceSpec) -> tuple[str, Optional[int]]:
        """
        Crop a generated tile given by URL or data URL.

        A slightly seamed tile is preferable to a missing one, so any fetch
        or decode failure returns ``image_ref`` unchanged.

        Returns:
            Tuple of (PNG data URL of the cropped tile or the original
            reference, height of the returned image or None if it could
            not be decoded)
        """
        try:
            image = load_image_reference(image_ref, timeout=self.download_timeout)
        except ImageProcessingError as e:
            logger.warning("Could not load generated tile for cropping: %s", e)
            return image_ref, None

        amount = self.crop_amount(spec)
        if amount >= image.height:
            logger.warning(
                "Crop of %dpx would consume the %dpx tile; keeping it uncropped",
                amount,
                image.height,
            )
            return image_ref, image.height

        try:
            cropped = self.crop(image, amount)
            result = image_to_data_url(cropped)
        except (OSError, ValueError) as e:
            logger.warning("Cropping generated tile failed: %s", e)
            return image_ref, image.height

        logger.info(
            "Cropped tile %dx%d -> %dx%d",
            image.width,
            image.height,
            cropped.width,
            cropped.height,
        )
        return result, cropped.height
