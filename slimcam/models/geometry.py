from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple

from .rect import Rect


@dataclass(frozen=True)
class ShoulderBand:
    """Vertical interval [top, bottom) below the face where the shoulder gradient ramps 0 → 1."""
    top: float
    bottom: float

    @property
    def height(self) -> float:
        return self.bottom - self.top


@dataclass(frozen=True)
class DerivedGeometry:
    face_box: Rect                  # detected face, clamped to the image
    center: Tuple[float, float]     # effect centre (face midpoint + user offset)
    effect_radius: float            # pixels
    shoulder_band: ShoulderBand


@dataclass(frozen=True)
class IndicatorGeometry:
    """Dashed range circle shown while the radius slider is dragged."""
    center: Tuple[float, float]
    diameter: float
    inner_diameter: float
    visible: bool = False

    def as_dict(self) -> dict:
        return {
            "center": list(self.center),
            "diameter": self.diameter,
            "inner_diameter": self.inner_diameter,
            "visible": self.visible,
        }
