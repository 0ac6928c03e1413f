from __future__ import annotations
import logging
import os
import threading

from dotenv import load_dotenv
from insightface.app import FaceAnalysis

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class FaceEngine:
    """
    Singleton wrapper around InsightFace's FaceAnalysis (RetinaFace detector only).

    Loads the model once per Python process. Construction is guarded by a
    lock because the controller calls it from worker threads.
    """

    _instance: FaceEngine | None = None  # Class-level cache for singleton
    _lock = threading.RLock()

    def __new__(cls, *args, **kwargs):
        """
        Ensure model is loaded only once (Singleton pattern).

        Args:
            model_name (str, optional): Name of the InsightFace model pack to load.
            ctx_id (int, optional): Device index passed to `prepare`.
        """
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._init_engine(*args, **kwargs)
            return cls._instance

    def _init_engine(self, model_name: str = None, ctx_id: int = None):
        """
        Load and prepare the InsightFace detector on first instantiation.

        Args:
            model_name (str): Model name from the InsightFace model zoo. Defaults to env var.
            ctx_id (int): Device index for onnxruntime. Defaults to env var.
        """
        if model_name is None:
            model_name = os.getenv("FACE_ENGINE_MODEL", "buffalo_l")
        if ctx_id is None:
            ctx_id = int(os.getenv("FACE_ENGINE_CTX_ID", "0"))
        providers = os.getenv("FACE_ENGINE_PROVIDERS", "CPUExecutionProvider").split(",")
        det_size = int(os.getenv("FACE_ENGINE_DET_SIZE", "640"))

        logger.info(f"Loading InsightFace '{model_name}' (ctx_id={ctx_id}, providers={providers})")

        # Landmarks / recognition are not needed for a bounding box
        self.app = FaceAnalysis(name=model_name, allowed_modules=["detection"], providers=providers)
        self.app.prepare(ctx_id=ctx_id, det_size=(det_size, det_size))
