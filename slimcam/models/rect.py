from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Rect:
    """
    Axis-aligned box in image pixel coordinates (not normalised).
    May stick out of the image; call `clamped()` before indexing pixels with it.
    """
    x: float
    y: float
    width: float
    height: float

    def __post_init__(self):
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Rect size must be non-negative, got {self.width}x{self.height}")

    @classmethod
    def from_xyxy(cls, x1: float, y1: float, x2: float, y2: float) -> "Rect":
        """InsightFace style (left, top, right, bottom) → Rect."""
        return cls(float(x1), float(y1), max(0.0, float(x2 - x1)), max(0.0, float(y2 - y1)))

    @property
    def max_x(self) -> float:
        return self.x + self.width

    @property
    def max_y(self) -> float:
        return self.y + self.height

    @property
    def midpoint(self) -> Tuple[float, float]:
        return self.x + self.width / 2.0, self.y + self.height / 2.0

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def clamped(self, img_width: int, img_height: int) -> "Rect":
        """Intersection with the image; an empty Rect if they don't overlap."""
        x1 = min(max(self.x, 0.0), float(img_width))
        y1 = min(max(self.y, 0.0), float(img_height))
        x2 = min(max(self.max_x, 0.0), float(img_width))
        y2 = min(max(self.max_y, 0.0), float(img_height))
        return Rect(x1, y1, max(0.0, x2 - x1), max(0.0, y2 - y1))

    def expanded(self, factor: float) -> "Rect":
        """Grow (factor > 1) or shrink the box about its own centre."""
        cx, cy = self.midpoint
        w, h = self.width * factor, self.height * factor
        return Rect(cx - w / 2.0, cy - h / 2.0, w, h)
