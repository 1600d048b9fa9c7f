from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path

from models.image import Image
from models.key_color import KeyColor

SOFT_METHOD = "soft"
COLORKEY_METHOD = "colorkey"
FALLBACK_METHOD = "fallback"
PASSTHROUGH_METHOD = "passthrough"


@dataclass(frozen=True)
class KeyingResult:
    """
    Data object containing the keyed RGBA image and how it was produced.
    """
    image: Image
    key_color: KeyColor
    method: str                      # soft | colorkey | fallback | passthrough
    failed_stage: str | None = None  # set when the run was downgraded
    reason: str | None = None

    @property
    def degraded(self) -> bool:
        return self.method == FALLBACK_METHOD


@dataclass(frozen=True)
class BatchOutcome:
    """One input of a batch: a result, or the input error that stopped it."""
    source: Path
    result: KeyingResult | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.result is not None
