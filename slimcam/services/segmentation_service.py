# services/segmentation_service.py
from __future__ import annotations
import numpy as np

from ..errors import SegmentationFailed
from ..models.image import Image
from ..repositories.segmentation_repository import SegmentationRepository


class SegmentationService:
    """
    Person half of the detection adapter: soft person mask at image resolution.
    """

    def __init__(self, repository: SegmentationRepository | None = None) -> None:
        self.repo = repository or SegmentationRepository()

    def detect_person_mask(self, img: Image) -> np.ndarray:
        try:
            mask = self.repo.retrieve_mask(img.pixels)
        except Exception as err:
            raise SegmentationFailed(f"Segmentation engine error: {err}") from err
        if mask is None:
            raise SegmentationFailed("Segmentation returned no mask")
        return mask
