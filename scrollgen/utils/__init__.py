"""Utility functions."""

from .image_utils import (
    decode_image,
    fetch_image_bytes,
    image_to_data_url,
    image_to_png_bytes,
    load_image_reference,
    stack_tiles,
)

__all__ = [
    "decode_image",
    "fetch_image_bytes",
    "image_to_data_url",
    "image_to_png_bytes",
    "load_image_reference",
    "stack_tiles",
]
