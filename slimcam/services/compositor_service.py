from __future__ import annotations
import logging
import os

import cv2
import numpy as np
from dotenv import load_dotenv

from ..errors import NumericFailure
from ..models.geometry import DerivedGeometry, ShoulderBand
from ..models.image import Image
from .warp_field_service import WarpFieldService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class CompositorService:
    """
    Applies the warp stages and blends them back onto the capture.

    • Output extent always equals the input extent.
    • A stage that cannot produce an image logs a warning and hands back
      its input unchanged.
    """

    def __init__(self,
                 warp_field_service: WarpFieldService | None = None,
                 base_face_scale: float | None = None,
                 base_shoulder_scale: float | None = None):
        self.warp_field = warp_field_service or WarpFieldService()
        # 0.65 → face 35 % smaller at full intensity, 1.25 → shoulders 25 % wider
        self.BASE_FACE_SCALE = (base_face_scale if base_face_scale is not None
                                else float(os.getenv("BASE_FACE_SCALE", "0.65")))
        self.BASE_SHOULDER_SCALE = (base_shoulder_scale if base_shoulder_scale is not None
                                    else float(os.getenv("BASE_SHOULDER_SCALE", "1.25")))

    # ─── Intensity → scale ─────────────────────────────────────────
    def face_scale(self, intensity: float) -> float:
        return self.warp_field.scale_for_intensity(intensity, self.BASE_FACE_SCALE)

    def shoulder_scale(self, intensity: float) -> float:
        intensity = min(1.0, max(0.0, float(intensity)))
        return 1.0 + (self.BASE_SHOULDER_SCALE - 1.0) * intensity

    # ─── Mask helpers ──────────────────────────────────────────────
    @staticmethod
    def _resize_mask(mask: np.ndarray, height: int, width: int) -> np.ndarray:
        mask = np.asarray(mask, dtype=np.float32)
        if mask.ndim == 3:
            mask = mask[..., 0]
        if mask.shape != (height, width):
            mask = cv2.resize(mask, (width, height), interpolation=cv2.INTER_LINEAR)
        return np.clip(mask, 0.0, 1.0)

    @staticmethod
    def _blend(fg: np.ndarray, bg: np.ndarray, alpha: np.ndarray) -> np.ndarray:
        if fg.ndim == 3:
            alpha = alpha[..., None]
        out = fg.astype(np.float32) * alpha + bg.astype(np.float32) * (1.0 - alpha)
        return np.clip(np.rint(out), 0, 255).astype(fg.dtype)

    def shoulder_mask(self, person_mask: np.ndarray, band: ShoulderBand, height: int, width: int) -> np.ndarray:
        """
        Person mask × vertical linear gradient (0 at band.top, 1 at band.bottom,
        flat beyond both ends).
        """
        ys = np.arange(height, dtype=np.float32)
        if band.height > 0:
            gradient = np.clip((ys - band.top) / band.height, 0.0, 1.0)
        else:
            gradient = (ys >= band.top).astype(np.float32)
        return self._resize_mask(person_mask, height, width) * gradient[:, None]

    # ─── Blend ─────────────────────────────────────────────────────
    def compose(self, original: Image, warped: Image | None, mask: np.ndarray | None = None) -> Image:
        """
        Blend `warped` over `original` (optionally through `mask`, 1 = warped).

        Returns:
            Image with original's extent; `original` itself if `warped` is
            missing or does not match.
        """
        if warped is None or warped.pixels.shape != original.pixels.shape:
            logger.warning("Warped buffer missing or wrong size, keeping original")
            return original
        if mask is None:
            return warped
        try:
            alpha = self._resize_mask(mask, original.height, original.width)
        except (cv2.error, ValueError) as err:
            logger.warning(f"Unusable blend mask ({err}), keeping original")
            return original
        return Image(pixels=self._blend(warped.pixels, original.pixels, alpha), path=original.path)

    # ─── Stages ────────────────────────────────────────────────────
    def apply_face_warp(self, image: Image, geometry: DerivedGeometry, scale: float) -> Image:
        """Single-pass inverse warp; the falloff lives in the field, so no mask."""
        if scale == 1.0:
            return image
        try:
            map_x, map_y = self.warp_field.build_maps(
                image.pixels.shape, geometry.center, geometry.effect_radius, scale
            )
            warped = cv2.remap(image.pixels, map_x, map_y,
                               interpolation=cv2.INTER_LINEAR,
                               borderMode=cv2.BORDER_REPLICATE)
        except (NumericFailure, cv2.error) as err:
            logger.warning(f"Face warp skipped: {err}")
            return image
        logger.debug(f"Face warp: center={geometry.center}, radius={geometry.effect_radius:.1f}, scale={scale:.3f}")
        return self.compose(image, Image(pixels=warped, path=image.path))

    @staticmethod
    def stretch_horizontally(pixels: np.ndarray, scale: float) -> np.ndarray:
        """
        Scale about the image's horizontal centre into a canvas of the same size,
        so content stays centred instead of sliding off to the right.
        """
        if not (np.isfinite(scale) and scale > 0):
            raise NumericFailure(f"Stretch scale must be a positive number, got {scale}")
        h, w = pixels.shape[:2]
        cx = (w - 1) / 2.0
        m = np.float32([[scale, 0.0, cx * (1.0 - scale)],
                        [0.0, 1.0, 0.0]])
        return cv2.warpAffine(pixels, m, (w, h), flags=cv2.INTER_LINEAR, borderMode=cv2.BORDER_REPLICATE)

    def apply_shoulder_stretch(self,
                               image: Image,
                               person_mask: np.ndarray | None,
                               geometry: DerivedGeometry,
                               scale: float) -> Image:
        if person_mask is None or scale == 1.0:
            return image
        try:
            stretched = self.stretch_horizontally(image.pixels, scale)
            mask = self.shoulder_mask(person_mask, geometry.shoulder_band, image.height, image.width)
        except (NumericFailure, cv2.error, ValueError) as err:
            logger.warning(f"Shoulder stretch skipped: {err}")
            return image
        return self.compose(image, Image(pixels=stretched, path=image.path), mask)
