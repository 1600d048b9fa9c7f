from __future__ import annotations
from dataclasses import dataclass
import numpy as np


RAW = "raw"
REFINED = "refined"


@dataclass(frozen=True)
class Matte:
    """
    Single-channel foreground opacity, same size as the source image.
    0 = background (matches the key), 255 = foreground, in between = edge.
    """
    values: np.ndarray # Shape (H, W), dtype uint8.
    kind: str = RAW    # RAW straight from the builder, REFINED after morphology.

    @property
    def shape(self):
        return self.values.shape

    def is_all_foreground(self) -> bool:
        return self.values.size > 0 and bool((self.values == 255).all())

    def is_all_background(self) -> bool:
        return self.values.size > 0 and not self.values.any()

    def as_float(self) -> np.ndarray:
        """Alpha in [0, 1] as float32."""
        return self.values.astype(np.float32) / 255.0
