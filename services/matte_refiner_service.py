from __future__ import annotations

import numpy as np

from models.keying_config import KeyingConfig
from models.matte import Matte, REFINED
from repositories.raster_backend import RasterBackend, get_backend


class MatteRefinerService:
    """
    One‑matte cleanup.

    1) Close pinholes inside the subject
    2) Open away isolated specks
    3) Feather the edge inward → anti‑aliased alpha ramp
    """

    def __init__(self, backend: RasterBackend | None = None, config: KeyingConfig | None = None):
        self.config = config or KeyingConfig.from_env()
        self.backend = backend or get_backend(self.config.raster_backend,
                                              binary=self.config.magick_binary)

    def refine(self, matte: Matte) -> Matte:
        radius = self.config.refine_radius
        closed = self.backend.morphology(matte.values, "close", radius)
        opened = self.backend.morphology(closed, "open", radius)

        blurred = self.backend.gaussian_blur(opened, self.config.feather_sigma)
        # Feather only softens; it never grows the foreground
        feathered = np.minimum(blurred, opened)
        return Matte(feathered, kind=REFINED)
