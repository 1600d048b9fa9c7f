from __future__ import annotations
import logging

import numpy as np

from models.image import Image
from models.key_color import KeyColor
from models.keying_config import KeyingConfig
from models.matte import Matte
from repositories.raster_backend import RasterBackend, get_backend
from services.compositor_service import CompositorService
from services.matte_service import color_distance

logger = logging.getLogger(__name__)


class FallbackService:
    """
    Last-resort keying: hard threshold, 1 px alpha erosion, trim.
    Lower quality than the soft pipeline; has nothing underneath it.
    """

    def __init__(self, backend: RasterBackend | None = None, config: KeyingConfig | None = None):
        self.config = config or KeyingConfig.from_env()
        self.backend = backend or get_backend(self.config.fallback_backend,
                                              binary=self.config.magick_binary)
        self.compositor = CompositorService(self.backend, self.config)

    @staticmethod
    def hard_alpha(img: Image, key: KeyColor, tolerance: float) -> np.ndarray:
        """0 within `tolerance` percent of the key color, 255 elsewhere."""
        background = color_distance(img.rgb, key) * 100.0 <= tolerance
        return np.where(background, 0, 255).astype(np.uint8)

    def fallback(self, img: Image, key: KeyColor, tolerance: float | None = None) -> Image:
        tolerance = self.config.tolerance if tolerance is None else tolerance
        alpha = self.hard_alpha(img, key, tolerance)
        eroded = self.backend.morphology(alpha, "erode", self.config.fallback_erode_radius)
        source_alpha = img.alpha if img.has_alpha else None
        keyed = self.compositor.merge(img, Matte(eroded), source_alpha)
        logger.info(f"Fallback keyed {int((eroded == 0).sum())} px at {tolerance:g}% of {key}")
        return self.compositor.trim(keyed)
