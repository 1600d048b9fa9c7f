from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class BoundingBox:
    """
    Half-open pixel rectangle: columns [left, right), rows [top, bottom).
    """
    left: int
    top: int
    right: int
    bottom: int

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    @classmethod
    def from_geometry(cls, width: int, height: int, x: int, y: int) -> "BoundingBox":
        """Build from an ImageMagick style 'WxH+X+Y' tuple."""
        return cls(left=x, top=y, right=x + width, bottom=y + height)

    def __str__(self) -> str:
        return f"{self.width}x{self.height}+{self.left}+{self.top}"
