from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
import numpy as np


@dataclass(frozen=True)
class Image:
    """
    Simple data object: RGB or RGBA pixels (+ optional source path for bookkeeping).
    Stages never write into `pixels`; they build a new Image instead.
    """
    pixels: np.ndarray # Shape (H, W, 3) or (H, W, 4), dtype uint8, RGB(A) order.
    path: Path | None = None # Source of the image.

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def has_alpha(self) -> bool:
        return self.pixels.ndim == 3 and self.pixels.shape[2] == 4

    @property
    def rgb(self) -> np.ndarray:
        """(H, W, 3) view without the alpha channel."""
        return self.pixels[:, :, :3]

    @property
    def alpha(self) -> np.ndarray:
        """(H, W) alpha channel; fully opaque when the raster has none."""
        if self.has_alpha:
            return self.pixels[:, :, 3]
        return np.full(self.pixels.shape[:2], 255, dtype=np.uint8)
