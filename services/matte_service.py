"""
Alpha matte builders.

Both extractors expose a single `extract_alpha(img, key) -> Matte` method and
are picked by name. Their output is foreground alpha: 0 where the pixel
matches the key color, 255 where it clearly does not.
"""
from __future__ import annotations
import logging

import numpy as np

from models.image import Image
from models.key_color import KeyColor
from models.keying_config import KeyingConfig, SOFT, COLORKEY
from models.matte import Matte, RAW
from repositories.raster_backend import RasterBackend, get_backend

logger = logging.getLogger(__name__)


def color_distance(rgb: np.ndarray, key: KeyColor) -> np.ndarray:
    """
    Normalized Euclidean RGB distance in [0, 1]:
    sqrt((dr² + dg² + db²) / 3) / 255, the metric of FFmpeg colorkey
    and ImageMagick -fuzz.
    """
    diff = rgb.astype(np.float32) - key.as_array()
    return np.sqrt((diff * diff).sum(axis=-1) / 3.0) / 255.0


def max_channel_difference(rgb: np.ndarray, key: KeyColor) -> np.ndarray:
    """Per-pixel max over channels of |pixel - key|, float32 in [0, 255]."""
    return np.abs(rgb.astype(np.float32) - key.as_array()).max(axis=-1)


class SoftDifferenceExtractor:
    """
    Difference → auto-level → small blur → level remap.
    Gives a continuous matte with a thin soft band at edges.
    """
    name = SOFT

    def __init__(self, backend: RasterBackend, config: KeyingConfig):
        self.backend = backend
        self.config = config

    def extract_alpha(self, img: Image, key: KeyColor) -> Matte:
        diff = max_channel_difference(img.rgb, key)
        lo, hi = float(diff.min()), float(diff.max())

        if hi - lo < 1e-6:
            # No variation at all: decide the whole canvas at once
            matches = color_distance(img.rgb[:1, :1], key)[0, 0] * 100.0 <= self.config.tolerance
            fill = 0 if matches else 255
            logger.info(f"Flat image; matte is uniformly {fill}")
            return Matte(np.full(diff.shape, fill, dtype=np.uint8), kind=RAW)

        # Never stretch less than the tolerance band up to full opacity
        span = max(hi - lo, 255.0 * self.config.tolerance / 100.0)
        leveled = np.clip(np.rint((diff - lo) * (255.0 / span)), 0, 255).astype(np.uint8)
        blurred = self.backend.gaussian_blur(leveled, self.config.matte_blur_sigma)
        remapped = self.backend.level(blurred, self.config.matte_level_low, self.config.matte_level_high)
        return Matte(remapped, kind=RAW)


class ColorkeyExtractor:
    """
    FFmpeg-style colorkey: hard cut at `similarity`, linear ramp of width `blend`.
    """
    name = COLORKEY

    def __init__(self, config: KeyingConfig):
        self.config = config

    def extract_alpha(self, img: Image, key: KeyColor) -> Matte:
        distance = color_distance(img.rgb, key)
        similarity = self.config.colorkey_similarity
        blend = self.config.colorkey_blend
        if blend > 0:
            alpha = np.clip((distance - similarity) / blend, 0.0, 1.0)
        else:
            alpha = (distance > similarity).astype(np.float32)
        return Matte(np.rint(alpha * 255.0).astype(np.uint8), kind=RAW)


class MatteService:
    """
    Picks the extractor for a strategy and applies the shared degenerate rules:
    an image with no pixel within tolerance of the key is all foreground, one
    with every pixel within tolerance is all background.
    """

    def __init__(self, backend: RasterBackend | None = None, config: KeyingConfig | None = None):
        self.config = config or KeyingConfig.from_env()
        self.backend = backend or get_backend(self.config.raster_backend,
                                              binary=self.config.magick_binary)
        self._extractors = {
            SOFT: SoftDifferenceExtractor(self.backend, self.config),
            COLORKEY: ColorkeyExtractor(self.config),
        }

    def extractor(self, strategy: str | None = None):
        strategy = strategy or self.config.strategy
        try:
            return self._extractors[strategy]
        except KeyError:
            raise ValueError(f"Unknown keying strategy: {strategy!r}") from None

    def key_pixel_mask(self, img: Image, key: KeyColor, tolerance: float | None = None) -> np.ndarray:
        tolerance = self.config.tolerance if tolerance is None else tolerance
        return color_distance(img.rgb, key) * 100.0 <= tolerance

    def build_matte(self, img: Image, key: KeyColor, strategy: str | None = None) -> Matte:
        key_pixels = self.key_pixel_mask(img, key)
        if not key_pixels.any():
            logger.info(f"No pixel within {self.config.tolerance:g}% of {key}; matte is all foreground")
            return Matte(np.full((img.height, img.width), 255, dtype=np.uint8), kind=RAW)
        if key_pixels.all():
            logger.info(f"Every pixel within {self.config.tolerance:g}% of {key}; matte is all background")
            return Matte(np.zeros((img.height, img.width), dtype=np.uint8), kind=RAW)
        return self.extractor(strategy).extract_alpha(img, key)
