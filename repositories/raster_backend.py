"""
Raster backend capability.

The keying services never call OpenCV or ImageMagick directly; they ask a
RasterBackend for the few primitives that are worth delegating (blur, level
remap, binary morphology with a diamond element, dominant color, trim box).
Per-pixel arithmetic stays in numpy inside the services.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Tuple

import numpy as np

from models.bounding_box import BoundingBox

MORPH_OPS = ("close", "open", "erode", "dilate")


class RasterBackend(ABC):
    name: str = "abstract"

    @abstractmethod
    def gaussian_blur(self, channel: np.ndarray, sigma: float) -> np.ndarray:
        """(H, W) uint8 → (H, W) uint8 Gaussian blurred."""

    @abstractmethod
    def level(self, channel: np.ndarray, low_pct: float, high_pct: float) -> np.ndarray:
        """Linear remap: <= low% → 0, >= high% → 255, in between stretched."""

    @abstractmethod
    def morphology(self, channel: np.ndarray, op: str, radius: int = 1) -> np.ndarray:
        """Grayscale morphology with a Diamond:radius structuring element."""

    @abstractmethod
    def dominant_color(self, patch: np.ndarray) -> Tuple[int, int, int]:
        """Most frequent exact RGB triple of an (h, w, 3) patch."""

    @abstractmethod
    def bounding_box(self, alpha: np.ndarray) -> BoundingBox | None:
        """Tightest box around alpha > 0, or None when everything is transparent."""

    def is_available(self) -> bool:
        return True


def diamond_kernel(radius: int) -> np.ndarray:
    """
    Diamond structuring element (|dx| + |dy| <= radius) as uint8 0/1.
    Radius 1 is the 3x3 cross.
    """
    if radius < 0:
        raise ValueError(f"Structuring element radius must be >= 0, got {radius}")
    size = 2 * radius + 1
    yy, xx = np.mgrid[-radius:radius + 1, -radius:radius + 1]
    return (np.abs(xx) + np.abs(yy) <= radius).astype(np.uint8).reshape(size, size)


def get_backend(name: str, **kwargs) -> RasterBackend:
    """Resolve a backend by its configuration name ('opencv' or 'magick')."""
    key = (name or "opencv").lower()
    if key in ("opencv", "cv2", "numpy", "inprocess"):
        from repositories.opencv_backend import OpenCVRasterBackend
        return OpenCVRasterBackend()
    if key in ("magick", "imagemagick"):
        from repositories.magick_backend import MagickRasterBackend
        return MagickRasterBackend(**kwargs)
    raise ValueError(f"Unknown raster backend: {name!r}")
