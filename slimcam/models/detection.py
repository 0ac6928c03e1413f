from __future__ import annotations
from dataclasses import dataclass
import numpy as np

from .rect import Rect


@dataclass(frozen=True)
class Detection:
    """
    What the detectors found on one capture.
    Kept by the controller so slider changes only re-run the warp.
    """
    face_rect: Rect
    person_mask: np.ndarray | None = None   # (H, W) float32 in [0, 1], None if segmentation failed
