from __future__ import annotations

import numpy as np

from models.image import Image
from models.key_color import KeyColor
from models.matte import Matte


class DespillService:
    """
    Recovers the true foreground color of partially keyed pixels and removes
    the residual key tint.

    Edge pixels are blends: observed = a * true + (1 - a) * key. Solving for
    `true` with the refined matte as `a` removes most of the halo; clamping
    the key's dominant channel to the mean of the other two removes the rest.
    """

    @staticmethod
    def unmix_colors(observed: np.ndarray, alpha: np.ndarray, key: KeyColor) -> np.ndarray:
        """
        Args
        ----
        observed : (..., 3) float or uint8, 0‑255
        alpha    : (...)    float in [0, 1]
        key      : background color that was blended in

        Returns
        -------
        (..., 3) float32 in [0, 255]. Pixels with alpha == 0 come back black;
        their color is meaningless once alpha is applied.
        """
        observed = observed.astype(np.float32)
        a = np.asarray(alpha, dtype=np.float32)[..., None]
        covered = a > 0.0
        safe_a = np.where(covered, a, 1.0)
        true = (observed - (1.0 - a) * key.as_array()) / safe_a
        true = np.where(covered, true, 0.0)
        return np.clip(true, 0.0, 255.0)

    @staticmethod
    def despill_colors(rgb: np.ndarray, channel: int) -> np.ndarray:
        """channel = min(channel, (other_a + other_b) / 2); idempotent."""
        out = rgb.astype(np.float32).copy()
        other_a, other_b = (c for c in range(3) if c != channel)
        limit = (out[..., other_a] + out[..., other_b]) / 2.0
        out[..., channel] = np.minimum(out[..., channel], limit)
        return out

    @staticmethod
    def _to_u8(values: np.ndarray) -> np.ndarray:
        return np.clip(np.rint(values), 0, 255).astype(np.uint8)

    # ---------- public API ----------
    def despill(self, img: Image, key: KeyColor) -> Image:
        cleaned = self.despill_colors(img.rgb, key.dominant_channel)
        return Image(pixels=self._to_u8(cleaned), path=img.path)

    def unmix(self, img: Image, refined_matte: Matte, key: KeyColor) -> Image:
        """Unmix with the refined matte, then despill. Returns a new RGB Image."""
        if refined_matte.shape != img.rgb.shape[:2]:
            raise ValueError(f"Matte {refined_matte.shape} does not match image {img.rgb.shape[:2]}")
        true = self.unmix_colors(img.rgb, refined_matte.as_float(), key)
        cleaned = self.despill_colors(true, key.dominant_channel)
        return Image(pixels=self._to_u8(cleaned), path=img.path)
