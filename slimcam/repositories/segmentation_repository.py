# repositories/segmentation_repository.py
from __future__ import annotations
import os

import cv2
import numpy as np
from dotenv import load_dotenv

from ..models.segmentation_engine import SegmentationEngine

# Load environment variables
load_dotenv()


class SegmentationRepository:
    """
    One‑image inference + mask cleanup.

    • Calls MediaPipe engine.
    • Brings the soft mask to the image resolution and optionally feathers it.
      The mask stays soft: the shoulder blend wants probabilities, not a cut‑out.
    """

    def __init__(self, engine: SegmentationEngine | None = None) -> None:
        self.engine = engine or SegmentationEngine()
        self.feather_sigma = float(os.getenv("SEGMENTATION_FEATHER_SIGMA", "0"))

    # ---------- private helpers ----------
    @staticmethod
    def _resize_to(mask: np.ndarray, height: int, width: int) -> np.ndarray:
        if mask.shape[:2] == (height, width):
            return mask
        return cv2.resize(mask, (width, height), interpolation=cv2.INTER_LINEAR)

    def _feather(self, mask: np.ndarray) -> np.ndarray:
        if self.feather_sigma <= 0:
            return mask
        return cv2.GaussianBlur(mask, (0, 0), sigmaX=self.feather_sigma, sigmaY=self.feather_sigma)

    # ---------- public API ----------
    def retrieve_mask(self, rgb: np.ndarray) -> np.ndarray | None:
        """
        Returns float32 mask (H, W) in [0, 1] matching `rgb`, or None if the model gave nothing.
        """
        soft = self.engine.predict(rgb)
        if soft is None:
            return None
        h, w = rgb.shape[:2]
        soft = self._feather(self._resize_to(soft.astype(np.float32), h, w))
        return np.clip(soft, 0.0, 1.0)
