# models/segmentation_engine.py
"""
Singleton wrapper around MediaPipe Selfie Segmentation.

• Loads the TFLite graph once per Python process.
• Exposes .predict(rgb)  →  float mask (H, W) in [0, 1].
"""
from __future__ import annotations
import os
import threading

import mediapipe as mp
import numpy as np
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class SegmentationEngine:
    _instance: "SegmentationEngine" | None = None
    _lock = threading.RLock()

    def __new__(cls):
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._init_runtime()
            return cls._instance

    # --------------------------------------------------
    def _init_runtime(self) -> None:
        # model_selection=1  → landscape / selfie quality
        model_selection = int(os.getenv("SEGMENTATION_MODEL_SELECTION", "1"))
        self._mp_seg = mp.solutions.selfie_segmentation.SelfieSegmentation(
            model_selection=model_selection
        )
        # the MediaPipe graph is not re-entrant
        self._infer_lock = threading.Lock()

    # --------------------------------------------------
    def predict(self, rgb: np.ndarray) -> np.ndarray | None:
        """
        Args
        ----
        rgb : np.ndarray  (H, W, 3)  uint8  RGB order

        Returns
        -------
        mask : np.ndarray  (H, W)  float32  [0, 1], or None when the graph gave nothing
        """
        with self._infer_lock:
            results = self._mp_seg.process(rgb)
        if results.segmentation_mask is None:
            return None
        return results.segmentation_mask.astype("float32")
