from __future__ import annotations
from typing import Callable, Dict, Tuple
import math
import os

import numpy as np
from dotenv import load_dotenv

from ..errors import NumericFailure

# Load environment variables
load_dotenv()

Point = Tuple[float, float]


# ─── Falloff profiles ──────────────────────────────────────────────
# w(t) for t = distance / radius in [0, 1]: 1 at the centre, 0 at the rim,
# zero slope at both ends so the effective scale meets 1.0 without a kink.
def _cosine_falloff(t):
    return 0.5 * (1.0 + np.cos(np.pi * t))


def _smoothstep_falloff(t):
    return 1.0 - t * t * (3.0 - 2.0 * t)


FALLOFF_PROFILES: Dict[str, Callable] = {
    "cosine": _cosine_falloff,
    "smoothstep": _smoothstep_falloff,
}


class WarpFieldService:
    """
    Radial inverse-warp field.

    For every destination pixel it answers "where in the source should I
    sample?".  Inside the effect circle the radial distance is divided by an
    effective scale that goes from `scale` at the centre to 1.0 at the rim,
    so the falloff is part of the field itself and no second blend pass is
    needed.  scale < 1 shrinks (slims), scale > 1 enlarges.
    """

    _EPS = 1e-6

    def __init__(self, falloff: str | None = None):
        name = (falloff or os.getenv("WARP_FALLOFF", "cosine")).strip().lower()
        if name not in FALLOFF_PROFILES:
            raise ValueError(f"Unknown falloff '{name}', expected one of {sorted(FALLOFF_PROFILES)}")
        self.falloff_name = name
        self._profile = FALLOFF_PROFILES[name]

    # ─── Parameters ────────────────────────────────────────────────
    @staticmethod
    def scale_for_intensity(intensity: float, base_scale: float) -> float:
        """
        Linear map intensity ∈ [0, 1] → scale: 0 gives 1.0 (no-op), 1 gives `base_scale`.
        """
        intensity = min(1.0, max(0.0, float(intensity)))
        return 1.0 - (1.0 - base_scale) * intensity

    @staticmethod
    def _validate(radius: float, scale: float, center: Point | None = None) -> None:
        if not (math.isfinite(radius) and radius > 0):
            raise NumericFailure(f"Effect radius must be a positive number, got {radius}")
        if not (math.isfinite(scale) and scale > 0):
            raise NumericFailure(f"Warp scale must be a positive number, got {scale}")
        if center is not None and not all(math.isfinite(float(c)) for c in center):
            raise NumericFailure(f"Effect centre must be finite, got {center}")

    def falloff(self, t):
        """Weight w(t), t = distance / radius, clipped to [0, 1]."""
        return self._profile(np.clip(t, 0.0, 1.0))

    def effective_scale(self, distance: float, radius: float, scale: float) -> float:
        """lerp(scale, 1.0, 1 − w); exactly 1.0 at or beyond the radius."""
        self._validate(radius, scale)
        if distance >= radius:
            return 1.0
        w = float(self.falloff(distance / radius))
        return scale + (1.0 - scale) * (1.0 - w)

    # ─── Single pixel ──────────────────────────────────────────────
    def sample(
        self,
        pixel: Point,
        center: Point,
        radius: float,
        scale: float,
        bounds: Tuple[int, int] | None = None,
    ) -> Point:
        """
        Source coordinate for one destination pixel.

        Args:
            pixel: destination (x, y).
            center: effect centre (x, y).
            radius: effect radius in pixels.
            scale: centre scale factor (see `scale_for_intensity`).
            bounds: optional (width, height); the result is clamped into the image.
        """
        self._validate(radius, scale, center)
        px, py = float(pixel[0]), float(pixel[1])
        cx, cy = float(center[0]), float(center[1])
        dx, dy = px - cx, py - cy
        distance = math.hypot(dx, dy)

        if scale == 1.0 or distance >= radius or distance < self._EPS:
            sx, sy = px, py
        else:
            eff = self.effective_scale(distance, radius, scale)
            sx, sy = cx + dx / eff, cy + dy / eff

        if bounds is not None:
            width, height = bounds
            sx = min(max(sx, 0.0), width - 1.0)
            sy = min(max(sy, 0.0), height - 1.0)
        return sx, sy

    # ─── Whole image ───────────────────────────────────────────────
    def build_maps(
        self,
        shape: Tuple[int, ...],
        center: Point,
        radius: float,
        scale: float,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Build remap matrices (float32) for `cv2.remap`.
        Identity everywhere; only the bounding square of the effect circle is
        computed.  Values are clamped to the image.
        """
        self._validate(radius, scale, center)
        h, w = int(shape[0]), int(shape[1])
        map_y, map_x = np.mgrid[0:h, 0:w].astype(np.float32)
        if scale == 1.0:
            return map_x, map_y

        cx, cy = float(center[0]), float(center[1])
        x0, x1 = max(0, int(math.floor(cx - radius))), min(w, int(math.ceil(cx + radius)) + 1)
        y0, y1 = max(0, int(math.floor(cy - radius))), min(h, int(math.ceil(cy + radius)) + 1)
        if x0 >= x1 or y0 >= y1:
            # effect circle is entirely off-canvas
            return map_x, map_y

        xx = map_x[y0:y1, x0:x1].astype(np.float64)
        yy = map_y[y0:y1, x0:x1].astype(np.float64)
        dx = xx - cx
        dy = yy - cy
        r = np.sqrt(dx * dx + dy * dy)

        weight = self.falloff(r / radius)
        eff = scale + (1.0 - scale) * (1.0 - weight)
        inside = (r < radius) & (r >= self._EPS)

        src_x = np.where(inside, cx + dx / eff, xx)
        src_y = np.where(inside, cy + dy / eff, yy)
        if not (np.isfinite(src_x).all() and np.isfinite(src_y).all()):
            raise NumericFailure("Warp field produced non-finite coordinates")

        map_x[y0:y1, x0:x1] = np.clip(src_x, 0, w - 1)
        map_y[y0:y1, x0:x1] = np.clip(src_y, 0, h - 1)
        return map_x, map_y
