from typing import Tuple

import cv2
import numpy as np

from models.bounding_box import BoundingBox
from repositories.raster_backend import RasterBackend, MORPH_OPS, diamond_kernel

_CV_OPS = {
    "close": cv2.MORPH_CLOSE,
    "open": cv2.MORPH_OPEN,
    "erode": cv2.MORPH_ERODE,
    "dilate": cv2.MORPH_DILATE,
}


class OpenCVRasterBackend(RasterBackend):
    """
    In-process backend on top of OpenCV + numpy. Always available.
    """
    name = "opencv"

    def gaussian_blur(self, channel: np.ndarray, sigma: float) -> np.ndarray:
        if sigma <= 0:
            return channel.copy()
        # float32 keeps the tails exact; uint8 blur would round them away
        blurred = cv2.GaussianBlur(channel.astype(np.float32), (0, 0),
                                   sigmaX=sigma, sigmaY=sigma,
                                   borderType=cv2.BORDER_REPLICATE)
        return np.clip(np.rint(blurred), 0, 255).astype(np.uint8)

    def level(self, channel: np.ndarray, low_pct: float, high_pct: float) -> np.ndarray:
        low = 255.0 * low_pct / 100.0
        high = 255.0 * high_pct / 100.0
        stretched = (channel.astype(np.float32) - low) * (255.0 / (high - low))
        return np.clip(np.rint(stretched), 0, 255).astype(np.uint8)

    def morphology(self, channel: np.ndarray, op: str, radius: int = 1) -> np.ndarray:
        if op not in MORPH_OPS:
            raise ValueError(f"Unknown morphology op {op!r}; expected one of {MORPH_OPS}")
        if radius == 0:
            return channel.copy()
        # Pixels outside the canvas never count as foreground or hole
        border = cv2.BORDER_REPLICATE
        return cv2.morphologyEx(channel, _CV_OPS[op], diamond_kernel(radius), borderType=border)

    def dominant_color(self, patch: np.ndarray) -> Tuple[int, int, int]:
        flat = patch.reshape(-1, patch.shape[-1])[:, :3]
        if flat.size == 0:
            raise ValueError("Cannot build a histogram of an empty patch")
        colors, counts = np.unique(flat, axis=0, return_counts=True)
        best = colors[int(np.argmax(counts))]
        return int(best[0]), int(best[1]), int(best[2])

    def bounding_box(self, alpha: np.ndarray) -> BoundingBox | None:
        points = cv2.findNonZero((alpha > 0).astype(np.uint8))
        if points is None:
            return None
        x, y, w, h = cv2.boundingRect(points)
        return BoundingBox(left=x, top=y, right=x + w, bottom=y + h)
