from io import BytesIO

import numpy as np
import pytest
from PIL import Image as PILImage

from models.image import Image
from models.keying_config import KeyingConfig
from repositories.opencv_backend import OpenCVRasterBackend
from tests.helpers import GREEN, BLUE, solid


@pytest.fixture
def config():
    # Plain defaults, independent of whatever .env the developer has
    return KeyingConfig()


@pytest.fixture
def backend():
    return OpenCVRasterBackend()


@pytest.fixture
def blue_square_on_green():
    """200x200 #00FF00 canvas with a 100x100 pure blue square at (50, 50)."""
    pixels = solid(200, 200, GREEN)
    pixels[50:150, 50:150] = BLUE
    return Image(pixels)


@pytest.fixture
def png_bytes():
    def _encode(pixels: np.ndarray) -> bytes:
        buffer = BytesIO()
        PILImage.fromarray(pixels).save(buffer, format="PNG")
        return buffer.getvalue()
    return _encode
