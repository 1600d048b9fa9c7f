"""
ImageMagick-backed raster primitives.

Every call round-trips through PNG files in a private temporary directory
which is removed on every exit path, success or failure.
"""
from __future__ import annotations
from pathlib import Path
from typing import List, Tuple
import logging
import re
import shutil
import subprocess
import tempfile

import numpy as np
from PIL import Image as PILImage

from models.bounding_box import BoundingBox
from models.errors import BackendError, BackendUnavailableError
from repositories.raster_backend import RasterBackend, MORPH_OPS

logger = logging.getLogger(__name__)

_INSTALL_HINT = "brew install imagemagick (macOS) or apt-get install imagemagick (Debian/Ubuntu)"
# "     16: (  5,249,  4) #05F904 srgb(5,249,4)"
_HISTOGRAM_LINE = re.compile(r"^\s*(\d+):.*?#([0-9A-Fa-f]{6})")
_GEOMETRY = re.compile(r"^\s*(\d+)x(\d+)([+-]\d+)([+-]\d+)")
_MAGICK_OPS = {"close": "Close", "open": "Open", "erode": "Erode", "dilate": "Dilate"}


def run_tool(cmd: List[str], tool: str, install_hint: str | None = None) -> str:
    """
    Run an external tool synchronously and return its stdout.

    Raises BackendUnavailableError when the executable cannot be started and
    BackendError when it exits non-zero.
    """
    logger.debug("Running %s", " ".join(cmd))
    try:
        proc = subprocess.run(cmd, check=True, capture_output=True, text=True)
    except FileNotFoundError as err:
        raise BackendUnavailableError(tool, install_hint) from err
    except subprocess.CalledProcessError as err:
        raise BackendError(tool, err.returncode, err.stderr or "") from err
    except OSError as err:
        # Permission denied, exec format error, ...
        raise BackendUnavailableError(tool, install_hint) from err
    return (proc.stdout or "").strip()


class MagickRasterBackend(RasterBackend):
    name = "magick"

    def __init__(self, binary: str = "magick"):
        self.binary = binary

    def is_available(self) -> bool:
        return shutil.which(self.binary) is not None

    # ---------- private helpers ----------
    def _magick(self, args: List[str]) -> str:
        return run_tool([self.binary, *args], tool=f"ImageMagick ({self.binary})",
                        install_hint=_INSTALL_HINT)

    def _filter_channel(self, channel: np.ndarray, ops: List[str]) -> np.ndarray:
        with tempfile.TemporaryDirectory(prefix="keyer_magick_") as tmp:
            src = Path(tmp) / "in.png"
            dst = Path(tmp) / "out.png"
            PILImage.fromarray(np.ascontiguousarray(channel)).save(src)
            self._magick([str(src), *ops, "-colorspace", "Gray", "-depth", "8", str(dst)])
            with PILImage.open(dst) as out:
                result = np.asarray(out.convert("L"), dtype=np.uint8).copy()
        if result.shape != channel.shape:
            raise BackendError(self.binary, 0, f"unexpected output size {result.shape}, wanted {channel.shape}")
        return result

    # ---------- public API ----------
    def gaussian_blur(self, channel: np.ndarray, sigma: float) -> np.ndarray:
        if sigma <= 0:
            return channel.copy()
        return self._filter_channel(channel, ["-blur", f"0x{sigma:g}"])

    def level(self, channel: np.ndarray, low_pct: float, high_pct: float) -> np.ndarray:
        return self._filter_channel(channel, ["-level", f"{low_pct:g}%,{high_pct:g}%"])

    def morphology(self, channel: np.ndarray, op: str, radius: int = 1) -> np.ndarray:
        if op not in MORPH_OPS:
            raise ValueError(f"Unknown morphology op {op!r}; expected one of {MORPH_OPS}")
        if radius == 0:
            return channel.copy()
        return self._filter_channel(channel, ["-morphology", _MAGICK_OPS[op], f"Diamond:{radius}"])

    def dominant_color(self, patch: np.ndarray) -> Tuple[int, int, int]:
        with tempfile.TemporaryDirectory(prefix="keyer_magick_") as tmp:
            src = Path(tmp) / "patch.png"
            PILImage.fromarray(np.ascontiguousarray(patch[:, :, :3])).save(src)
            raw = self._magick([str(src), "-format", "%c", "histogram:info:-"])
        return parse_histogram(raw)

    def bounding_box(self, alpha: np.ndarray) -> BoundingBox | None:
        if not alpha.any():
            return None
        with tempfile.TemporaryDirectory(prefix="keyer_magick_") as tmp:
            src = Path(tmp) / "alpha.png"
            PILImage.fromarray(((alpha > 0) * 255).astype(np.uint8)).save(src)
            # Black frame so -trim always takes black as the background
            raw = self._magick([str(src), "-bordercolor", "black", "-border", "1",
                                "-format", "%@", "info:"])
        match = _GEOMETRY.match(raw)
        if not match:
            raise BackendError(self.binary, 0, f"unparseable trim geometry: {raw!r}")
        w, h, x, y = (int(g) for g in match.groups())
        return BoundingBox.from_geometry(w, h, x - 1, y - 1)


def parse_histogram(raw: str) -> Tuple[int, int, int]:
    """Pick the highest-count color from ImageMagick histogram:info output."""
    best_count = 0
    best_hex = None
    for line in raw.splitlines():
        match = _HISTOGRAM_LINE.match(line)
        if not match:
            continue
        count = int(match.group(1))
        if count > best_count:
            best_count, best_hex = count, match.group(2)
    if best_hex is None:
        raise ValueError(f"No colors found in histogram output: {raw[:80]!r}")
    return int(best_hex[0:2], 16), int(best_hex[2:4], 16), int(best_hex[4:6], 16)
