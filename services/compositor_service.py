from __future__ import annotations
import logging

import numpy as np

from models.bounding_box import BoundingBox
from models.image import Image
from models.keying_config import KeyingConfig
from models.matte import Matte
from repositories.raster_backend import RasterBackend, get_backend

logger = logging.getLogger(__name__)


class CompositorService:
    """
    Puts the matte into the alpha channel and trims transparent padding.
    """

    def __init__(self, backend: RasterBackend | None = None, config: KeyingConfig | None = None):
        self.config = config or KeyingConfig.from_env()
        self.backend = backend or get_backend(self.config.raster_backend,
                                              binary=self.config.magick_binary)

    @staticmethod
    def merge(rgb_img: Image, matte: Matte, source_alpha: np.ndarray | None = None) -> Image:
        """
        RGB + matte → RGBA. An alpha the source already carried is kept:
        a pixel is never more opaque than it was.
        """
        if matte.shape != rgb_img.rgb.shape[:2]:
            raise ValueError(f"Matte {matte.shape} does not match image {rgb_img.rgb.shape[:2]}")
        alpha = matte.values
        if source_alpha is not None:
            alpha = np.minimum(alpha, source_alpha)
        rgba = np.dstack([rgb_img.rgb, alpha]).astype(np.uint8)
        return Image(pixels=rgba, path=rgb_img.path)

    def bounding_box(self, img: Image) -> BoundingBox | None:
        return self.backend.bounding_box(img.alpha)

    @staticmethod
    def crop(img: Image, box: BoundingBox) -> Image:
        if box.is_empty:
            raise ValueError(f"Invalid crop bounds would create {box.width}x{box.height} image")
        pixels = img.pixels[box.top:box.bottom, box.left:box.right].copy()
        return Image(pixels=pixels, path=img.path)

    def trim(self, img: Image) -> Image:
        """Crop to the non‑transparent pixels; leave a fully transparent canvas alone."""
        box = self.bounding_box(img)
        if box is None or box.is_empty:
            logger.warning(f"Nothing left after keying; keeping the {img.width}x{img.height} canvas uncropped")
            return img
        if (box.width, box.height) == (img.width, img.height):
            return img
        logger.debug(f"Trimming {img.width}x{img.height} → {box}")
        return self.crop(img, box)

    def composite(self, despilled: Image, refined_matte: Matte,
                  source_alpha: np.ndarray | None = None) -> Image:
        return self.trim(self.merge(despilled, refined_matte, source_alpha))
