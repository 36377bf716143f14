"""Shared test fixtures."""

import numpy as np
import pytest
from PIL import Image

from scrollgen.config import AppConfig, OutpaintSettings
from scrollgen.models.model_profile import ModelRegistry
from scrollgen.utils.image_utils import image_to_data_url, image_to_png_bytes


@pytest.fixture
def app_config(tmp_path):
    """Config with fake credentials and no environment dependence."""
    return AppConfig(
        replicate_api_token="r8_fake_token",
        gemini_api_key="fake-gemini-key",
        output_dir=tmp_path / "output",
    )


@pytest.fixture
def outpaint_settings():
    """Default outpainting geometry."""
    return OutpaintSettings()


@pytest.fixture
def registry():
    """Registry with the built-in model profiles."""
    return ModelRegistry()


@pytest.fixture
def striped_tile():
    """1024x768 tile whose rows encode their own index (mod 256) in red."""
    arr = np.zeros((768, 1024, 3), dtype=np.uint8)
    arr[:, :, 0] = (np.arange(768) % 256).astype(np.uint8)[:, np.newaxis]
    arr[:, :, 1] = 40
    arr[:, :, 2] = 200
    return Image.fromarray(arr, "RGB")


@pytest.fixture
def striped_tile_png(striped_tile):
    """PNG bytes of the striped tile."""
    return image_to_png_bytes(striped_tile)


@pytest.fixture
def striped_tile_data_url(striped_tile):
    """Data URL of the striped tile."""
    return image_to_data_url(striped_tile)


@pytest.fixture
def solid_green_tile():
    """1024x768 solid green tile."""
    return Image.new("RGB", (1024, 768), (30, 160, 60))


@pytest.fixture
def small_tile():
    """Small 64x48 tile for quick geometry checks."""
    return Image.new("RGB", (64, 48), (200, 100, 50))
