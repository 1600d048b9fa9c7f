from __future__ import annotations
from pathlib import Path
import logging
import shutil
import tempfile

import numpy as np
from PIL import Image as PILImage

from models.image import Image
from models.key_color import KeyColor
from repositories.magick_backend import run_tool

logger = logging.getLogger(__name__)

_INSTALL_HINT = "brew install ffmpeg (macOS) or apt-get install ffmpeg (Debian/Ubuntu)"


class FfmpegColorkeyRepository:
    """
    Runs FFmpeg's `colorkey` + `despill` filters on one raster.
    """

    def __init__(self, binary: str = "ffmpeg"):
        self.binary = binary

    def is_available(self) -> bool:
        return shutil.which(self.binary) is not None

    @staticmethod
    def build_filter(key: KeyColor, similarity: float, blend: float) -> str:
        hex_key = key.to_hex().lstrip("#")
        # despill only knows green and blue screens
        spill = "blue" if key.hue_name == "blue" else "green"
        return f"colorkey=0x{hex_key}:{similarity:g}:{blend:g},despill={spill}"

    def colorkey(self, img: Image, key: KeyColor, similarity: float, blend: float) -> np.ndarray:
        """
        Returns (H, W, 4) uint8 RGBA: keyed and despilled, not yet trimmed.
        """
        with tempfile.TemporaryDirectory(prefix="keyer_ffmpeg_") as tmp:
            src = Path(tmp) / "in.png"
            dst = Path(tmp) / "keyed.png"
            PILImage.fromarray(np.ascontiguousarray(img.rgb)).save(src)
            run_tool(
                [self.binary, "-y", "-loglevel", "error", "-i", str(src),
                 "-vf", self.build_filter(key, similarity, blend),
                 "-pix_fmt", "rgba", str(dst)],
                tool=f"FFmpeg ({self.binary})",
                install_hint=_INSTALL_HINT,
            )
            with PILImage.open(dst) as out:
                return np.asarray(out.convert("RGBA"), dtype=np.uint8).copy()
