"""Image processing utilities."""

import base64
import binascii
from io import BytesIO
from pathlib import Path
from typing import Optional, Union

import httpx
from PIL import Image, UnidentifiedImageError

from ..exceptions import ImageProcessingError

DATA_URL_PREFIX = "data:"


def is_data_url(ref: str) -> bool:
    return ref.startswith(DATA_URL_PREFIX)


def is_remote_url(ref: str) -> bool:
    return ref.startswith("http://") or ref.startswith("https://")


def decode_data_url(ref: str) -> bytes:
    """Decode the payload of a base64 ``data:`` URL."""
    header, _, payload = ref.partition(",")
    if not payload or ";base64" not in header:
        raise ImageProcessingError("Unsupported data URL: expected base64 payload")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageProcessingError(f"Invalid base64 in data URL: {e}") from e


def fetch_image_bytes(ref: str, timeout: float = 30.0) -> bytes:
    """Resolve an image reference to raw bytes.

    Accepts ``data:`` URLs, http(s) URLs (downloaded with an explicit
    timeout) and bare base64 strings.

    Raises:
        ImageProcessingError: If the reference cannot be resolved
    """
    if not ref:
        raise ImageProcessingError("Empty image reference")

    if is_data_url(ref):
        return decode_data_url(ref)

    if is_remote_url(ref):
        try:
            response = httpx.get(ref, timeout=timeout, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ImageProcessingError(f"Failed to download image: {e}") from e
        return response.content

    try:
        return base64.b64decode(ref, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageProcessingError("Image reference is neither a URL nor base64 data") from e


def decode_image(data: bytes) -> Image.Image:
    """Decode image bytes into a fully loaded PIL image."""
    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise ImageProcessingError(f"Could not decode image: {e}") from e

    if image.width <= 0 or image.height <= 0:
        raise ImageProcessingError(f"Image has zero size: {image.width}x{image.height}")
    return image


def load_image_reference(ref: str, timeout: float = 30.0) -> Image.Image:
    """Fetch and decode an image reference."""
    return decode_image(fetch_image_bytes(ref, timeout=timeout))


def image_to_png_bytes(image: Image.Image) -> bytes:
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def image_to_data_url(image: Image.Image) -> str:
    """Encode an image as a PNG ``data:`` URL."""
    encoded = base64.b64encode(image_to_png_bytes(image)).decode("ascii")
    return f"data:image/png;base64,{encoded}"


def save_image(image: Image.Image, path: Union[str, Path], quality: int = 95) -> None:
    """Save an image to file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if path.suffix.lower() in (".jpg", ".jpeg"):
        # Convert to RGB for JPEG
        if image.mode == "RGBA":
            background = Image.new("RGB", image.size, (255, 255, 255))
            background.paste(image, mask=image.split()[3])
            image = background
        elif image.mode != "RGB":
            image = image.convert("RGB")
        image.save(path, quality=quality)
    else:
        image.save(path)


def resize_image(
    image: Image.Image,
    size: tuple[int, int],
    resample: int = Image.Resampling.LANCZOS,
) -> Image.Image:
    """Resize image to specified size."""
    return image.resize(size, resample=resample)


def stack_tiles(tiles: list[Image.Image], width: Optional[int] = None) -> Image.Image:
    """Stack tiles top-to-bottom into one continuous strip.

    Tiles with a different width are resized to ``width`` (the first tile's
    width by default) keeping their aspect ratio.
    """
    if not tiles:
        raise ValueError("stack_tiles requires at least one tile")

    width = width or tiles[0].width
    normalized = []
    for tile in tiles:
        if tile.width != width:
            height = max(1, round(tile.height * width / tile.width))
            tile = resize_image(tile, (width, height))
        normalized.append(tile.convert("RGB"))

    strip = Image.new("RGB", (width, sum(t.height for t in normalized)))
    y = 0
    for tile in normalized:
        strip.paste(tile, (0, y))
        y += tile.height
    return strip
