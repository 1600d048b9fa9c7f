from __future__ import annotations
import logging

import numpy as np
from sklearn.cluster import KMeans

from models.image import Image
from models.key_color import KeyColor
from models.keying_config import KeyingConfig
from repositories.raster_backend import RasterBackend, get_backend

logger = logging.getLogger(__name__)


class ColorSamplerService:
    """
    Guesses the key color from the top-left corner of the image.

    Tries, in order: k-means clustering of the corner patch, an exact-color
    histogram of the same patch, the single top-left pixel and finally the
    default key. Never raises.
    """

    def __init__(self, backend: RasterBackend | None = None, config: KeyingConfig | None = None):
        self.config = config or KeyingConfig.from_env()
        self.backend = backend or get_backend(self.config.raster_backend,
                                              binary=self.config.magick_binary)

    def corner_patch(self, img: Image) -> np.ndarray:
        """Top-left patch: `sample_patch_fraction` of each side, at least `sample_min_patch` px."""
        frac = self.config.sample_patch_fraction
        minimum = self.config.sample_min_patch
        ph = min(img.height, max(minimum, int(round(img.height * frac))))
        pw = min(img.width, max(minimum, int(round(img.width * frac))))
        return img.rgb[:ph, :pw]

    # ---------- strategies ----------
    def _cluster(self, patch: np.ndarray) -> KeyColor:
        pixels = patch.reshape(-1, 3).astype(np.float64)
        distinct = np.unique(pixels, axis=0)
        k = min(self.config.sample_clusters, len(distinct))
        if k <= 1:
            return KeyColor.from_array(distinct[0])

        kmeans = KMeans(n_clusters=k, n_init=3, random_state=0)
        labels = kmeans.fit_predict(pixels)
        dominant = int(np.argmax(np.bincount(labels, minlength=k)))
        return KeyColor.from_array(kmeans.cluster_centers_[dominant])

    def _histogram(self, patch: np.ndarray) -> KeyColor:
        return KeyColor(*self.backend.dominant_color(patch))

    @staticmethod
    def _top_left(img: Image) -> KeyColor:
        return KeyColor.from_array(img.rgb[0, 0])

    # ---------- public API ----------
    def sample(self, img: Image, default: KeyColor | None = None) -> KeyColor:
        default = default or self.config.default_key_color
        try:
            patch = self.corner_patch(img)
        except Exception as err:
            logger.warning(f"Key color sampling impossible, using {default}: {err}")
            return default

        attempts = (
            ("kmeans", lambda: self._cluster(patch)),
            ("histogram", lambda: self._histogram(patch)),
            ("top-left pixel", lambda: self._top_left(img)),
        )
        for method, attempt in attempts:
            try:
                key = attempt()
                logger.info(f"Key color {key} detected via {method}")
                return key
            except Exception as err:
                logger.warning(f"Key color via {method} failed: {err}")

        logger.warning(f"All key color detectors failed, using default {default}")
        return default
