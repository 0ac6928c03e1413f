from __future__ import annotations
from typing import Tuple
import logging
import os

from dotenv import load_dotenv

from ..errors import InvalidRegion
from ..models.effect_parameters import EffectParameters, FACE_RADIUS_MIN, FACE_RADIUS_MAX
from ..models.geometry import DerivedGeometry, ShoulderBand
from ..models.rect import Rect

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class RegionGeometryService:
    """
    Turns a raw face rectangle + user parameters into the numbers the warp needs:
    effect centre, effect radius (pixels) and the shoulder gradient band.
    """

    def __init__(self,
                 radius_min: float | None = None,
                 radius_max: float | None = None,
                 shoulder_band_factor: float | None = None):
        self.radius_min = radius_min if radius_min is not None else FACE_RADIUS_MIN
        self.radius_max = radius_max if radius_max is not None else FACE_RADIUS_MAX
        self.shoulder_band_factor = (
            shoulder_band_factor if shoulder_band_factor is not None
            else float(os.getenv("SHOULDER_BAND_FACTOR", "0.5"))
        )
        if not 0 < self.radius_min <= self.radius_max:
            raise ValueError(f"Bad radius range [{self.radius_min}, {self.radius_max}]")

    def radius_factor(self, params: EffectParameters) -> float:
        return max(self.radius_min, min(self.radius_max, params.face_effect_radius))

    def derive_geometry(
        self,
        face_rect: Rect | None,
        params: EffectParameters,
        image_size: Tuple[int, int] | None = None,
    ) -> DerivedGeometry:
        """
        Args:
            face_rect: detected face box in image pixels.
            params: user parameters snapshot.
            image_size: (width, height); when given the box is clamped to the image first.

        Raises:
            InvalidRegion: missing or zero-area face box.
        """
        if face_rect is None or face_rect.is_empty:
            raise InvalidRegion(f"Degenerate face region: {face_rect}")

        face_box = face_rect
        if image_size is not None:
            face_box = face_rect.clamped(*image_size)
            if face_box.is_empty:
                raise InvalidRegion(f"Face region {face_rect} lies outside a {image_size} image")

        mid_x, mid_y = face_box.midpoint
        dx, dy = params.center_offset
        center = (mid_x + dx, mid_y + dy)

        effect_radius = face_box.width * self.radius_factor(params)

        band = ShoulderBand(
            top=face_box.max_y,
            bottom=face_box.max_y + face_box.height * self.shoulder_band_factor,
        )

        logger.debug(f"Geometry: center={center}, radius={effect_radius:.1f}, band=({band.top:.0f}, {band.bottom:.0f})")
        return DerivedGeometry(face_box=face_box, center=center, effect_radius=effect_radius, shoulder_band=band)
