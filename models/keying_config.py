from __future__ import annotations
from dataclasses import dataclass, replace
import os

from dotenv import load_dotenv

from models.key_color import KeyColor, DEFAULT_KEY_COLOR

# Load environment variables
load_dotenv()

SOFT = "soft"
COLORKEY = "colorkey"
STRATEGIES = (SOFT, COLORKEY)


@dataclass(frozen=True)
class KeyingConfig:
    """
    Tunable constants of the keying engine.
    The numbers are empirical defaults, not derived values.
    """
    strategy: str = SOFT
    raster_backend: str = "opencv"
    fallback_backend: str = "opencv"
    colorkey_engine: str = "numpy"          # numpy | ffmpeg
    default_key_color: KeyColor = DEFAULT_KEY_COLOR
    tolerance: float = 10.0                 # percent color distance

    # ── Color sampler ───────────────────────────────────────────────
    sample_patch_fraction: float = 0.10
    sample_min_patch: int = 4
    sample_clusters: int = 3

    # ── Soft-difference matte ───────────────────────────────────────
    matte_blur_sigma: float = 0.4
    matte_level_low: float = 5.0            # percent
    matte_level_high: float = 95.0          # percent

    # ── Refiner ─────────────────────────────────────────────────────
    refine_radius: int = 1
    feather_sigma: float = 0.5

    # ── Colorkey (hard threshold) ───────────────────────────────────
    colorkey_similarity: float = 0.25
    colorkey_blend: float = 0.08

    # ── Fallback ────────────────────────────────────────────────────
    fallback_erode_radius: int = 1

    # ── External tools ──────────────────────────────────────────────
    magick_binary: str = "magick"
    ffmpeg_binary: str = "ffmpeg"

    def __post_init__(self):
        if self.strategy not in STRATEGIES:
            raise ValueError(f"Unknown keying strategy {self.strategy!r}; expected one of {STRATEGIES}")
        if not 0.0 <= self.tolerance <= 100.0:
            raise ValueError(f"Tolerance must be a percentage, got {self.tolerance}")
        if not 0.0 <= self.matte_level_low < self.matte_level_high <= 100.0:
            raise ValueError("Level remap needs 0 <= low < high <= 100")

    @classmethod
    def from_env(cls) -> "KeyingConfig":
        return cls(
            strategy=os.getenv("KEYING_STRATEGY", SOFT).lower(),
            raster_backend=os.getenv("RASTER_BACKEND", "opencv").lower(),
            fallback_backend=os.getenv("FALLBACK_BACKEND", "opencv").lower(),
            colorkey_engine=os.getenv("COLORKEY_ENGINE", "numpy").lower(),
            default_key_color=KeyColor.from_hex(os.getenv("DEFAULT_KEY_COLOR", "#00FF00")),
            tolerance=float(os.getenv("KEY_TOLERANCE", "10")),
            sample_patch_fraction=float(os.getenv("SAMPLE_PATCH_FRACTION", "0.10")),
            sample_min_patch=int(os.getenv("SAMPLE_MIN_PATCH", "4")),
            sample_clusters=int(os.getenv("SAMPLE_CLUSTERS", "3")),
            matte_blur_sigma=float(os.getenv("MATTE_BLUR_SIGMA", "0.4")),
            matte_level_low=float(os.getenv("MATTE_LEVEL_LOW", "5")),
            matte_level_high=float(os.getenv("MATTE_LEVEL_HIGH", "95")),
            refine_radius=int(os.getenv("REFINE_RADIUS", "1")),
            feather_sigma=float(os.getenv("FEATHER_SIGMA", "0.5")),
            colorkey_similarity=float(os.getenv("COLORKEY_SIMILARITY", "0.25")),
            colorkey_blend=float(os.getenv("COLORKEY_BLEND", "0.08")),
            fallback_erode_radius=int(os.getenv("FALLBACK_ERODE_RADIUS", "1")),
            magick_binary=os.getenv("MAGICK_BINARY", "magick"),
            ffmpeg_binary=os.getenv("FFMPEG_BINARY", "ffmpeg"),
        )

    def with_overrides(self, **changes) -> "KeyingConfig":
        """Copy with the non-None keyword arguments applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
