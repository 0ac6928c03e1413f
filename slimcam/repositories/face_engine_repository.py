from __future__ import annotations
from typing import List

import numpy as np
from insightface.app.common import Face

from ..models.face_engine import FaceEngine


class FaceEngineRepository:
    """
    Thin wrapper around FaceEngine that provides low-level access to detection.
    """

    def __init__(self, engine: FaceEngine | None = None):
        self.engine = engine or FaceEngine()  # Singleton is handled inside

    def infer_faces(self, pixels_rgb: np.ndarray) -> List[Face]:
        img_bgr = np.ascontiguousarray(pixels_rgb[:, :, ::-1])
        return self.engine.app.get(img_bgr)
