from __future__ import annotations
import logging
import os

from dotenv import load_dotenv

from ..errors import DetectionFailed, NoFaceDetected
from ..models.image import Image
from ..models.rect import Rect
from ..repositories.face_engine_repository import FaceEngineRepository

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class FaceDetectionService:
    """
    Face half of the detection adapter.
    *   Works only with upright Image objects (RGB numpy arrays).
    *   Returns a single Rect for the primary (largest) face, expanded a bit
        so the warp has room around the cheeks.
    """
    def __init__(self, repository: FaceEngineRepository | None = None, expansion: float | None = None):
        self.face_engine_repository = repository or FaceEngineRepository()
        self.FACE_EXPANSION = expansion if expansion is not None else float(os.getenv("FACE_EXPANSION", "1.2"))
        self.DET_CONF_THR = float(os.getenv("DET_CONF_THR", "0.5"))

    @staticmethod
    def _area(face) -> float:
        x1, y1, x2, y2 = face.bbox
        return max(0.0, x2 - x1) * max(0.0, y2 - y1)

    def detect_face(self, img: Image) -> Rect:
        """
        Detect the primary face.

        Args:
            img (Image): An upright RGB image.

        Returns:
            Rect: Expanded face box in image pixel coordinates (may stick out of the image).

        Raises:
            NoFaceDetected: nothing above the confidence threshold.
            DetectionFailed: the engine itself raised.
        """
        try:
            faces = self.face_engine_repository.infer_faces(img.pixels)
        except Exception as err:
            raise DetectionFailed(f"Face engine error: {err}") from err

        faces = [f for f in faces if float(f.det_score) >= self.DET_CONF_THR]
        if not faces:
            raise NoFaceDetected("No face above confidence threshold")
        if len(faces) > 1:
            logger.debug(f"{len(faces)} faces found, using the largest one")

        face = max(faces, key=self._area)
        rect = Rect.from_xyxy(*map(float, face.bbox)).expanded(self.FACE_EXPANSION)
        logger.debug(f"Face rect {rect} (score={float(face.det_score):.2f})")
        return rect
