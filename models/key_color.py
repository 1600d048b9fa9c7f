from __future__ import annotations
from dataclasses import dataclass
import numpy as np


# Ties are broken green, blue, red: green screens are the usual case.
_TIE_ORDER = (1, 2, 0)


@dataclass(frozen=True)
class KeyColor:
    """
    The opaque RGB color assumed to be the background.
    Derived once per image and handed to every stage unchanged.
    """
    r: int
    g: int
    b: int

    def __post_init__(self):
        for name in ("r", "g", "b"):
            value = getattr(self, name)
            if not 0 <= int(value) <= 255:
                raise ValueError(f"Key color channel {name}={value} is outside 0-255")
            object.__setattr__(self, name, int(value))

    @classmethod
    def from_hex(cls, value: str) -> "KeyColor":
        """Accepts '#RRGGBB', 'RRGGBB' or '0xRRGGBB'."""
        text = value.strip()
        if text.lower().startswith("0x"):
            text = text[2:]
        text = text.lstrip("#")
        if len(text) != 6:
            raise ValueError(f"Not a 6-digit hex color: {value!r}")
        try:
            return cls(int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16))
        except ValueError as err:
            raise ValueError(f"Not a 6-digit hex color: {value!r}") from err

    @classmethod
    def from_array(cls, rgb) -> "KeyColor":
        clipped = np.clip(np.rint(np.asarray(rgb, dtype=np.float64)), 0, 255)
        return cls(*(int(c) for c in clipped[:3]))

    def to_hex(self) -> str:
        return f"#{self.r:02X}{self.g:02X}{self.b:02X}"

    def as_array(self) -> np.ndarray:
        return np.array([self.r, self.g, self.b], dtype=np.float32)

    @property
    def dominant_channel(self) -> int:
        """Index (0=R, 1=G, 2=B) of the channel the key is strongest in."""
        values = (self.r, self.g, self.b)
        return max(_TIE_ORDER, key=lambda idx: values[idx])

    @property
    def hue_name(self) -> str:
        return ("red", "green", "blue")[self.dominant_channel]

    def __str__(self) -> str:
        return self.to_hex()


DEFAULT_KEY_COLOR = KeyColor(0, 255, 0)   # pure green, #00FF00
