from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Tuple
import os

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

FACE_RADIUS_MIN = float(os.getenv("FACE_RADIUS_MIN", "0.2"))
FACE_RADIUS_MAX = float(os.getenv("FACE_RADIUS_MAX", "0.6"))
FACE_RADIUS_DEFAULT = float(os.getenv("FACE_RADIUS_DEFAULT", "0.4"))
DEFAULT_INTENSITY = float(os.getenv("DEFAULT_INTENSITY", "0.7"))


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, float(value)))


@dataclass(frozen=True)
class EffectParameters:
    """
    Value-object holding the user-tunable knobs of the slimming effect.
    Frozen so a running pipeline can keep a snapshot while the user keeps
    dragging sliders.
    """
    intensity: float = DEFAULT_INTENSITY                # [0, 1]
    face_effect_radius: float = FACE_RADIUS_DEFAULT     # fraction of face width, [min, max]
    center_offset: Tuple[float, float] = (0.0, 0.0)     # pixels, added to face centre
    shoulder_enabled: bool = False

    def __post_init__(self):
        object.__setattr__(self, "intensity", _clamp(self.intensity, 0.0, 1.0))
        object.__setattr__(self, "face_effect_radius",
                           _clamp(self.face_effect_radius, FACE_RADIUS_MIN, FACE_RADIUS_MAX))
        dx, dy = self.center_offset
        object.__setattr__(self, "center_offset", (float(dx), float(dy)))
        object.__setattr__(self, "shoulder_enabled", bool(self.shoulder_enabled))

    def with_changes(self, **changes) -> "EffectParameters":
        """Copy with some fields replaced (values are clamped again)."""
        return replace(self, **changes)

    def as_dict(self) -> dict:
        return {
            "intensity": self.intensity,
            "face_effect_radius": self.face_effect_radius,
            "center_offset": list(self.center_offset),
            "shoulder_enabled": self.shoulder_enabled,
        }
