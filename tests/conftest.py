from __future__ import annotations
import threading

import numpy as np
import pytest

from slimcam.errors import NoFaceDetected
from slimcam.models.image import Image
from slimcam.models.rect import Rect


class FakeFaceDetector:
    """Returns a fixed rect (or raises), counts calls, can block until released."""

    def __init__(self, rect=None, error=None, gate: threading.Event | None = None):
        self.rect = rect
        self.error = error
        self.gate = gate
        self.calls = 0
        self.entered = threading.Event()

    def detect_face(self, image):
        self.calls += 1
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.error is not None:
            raise self.error
        if self.rect is None:
            raise NoFaceDetected("fake: no face")
        return self.rect


class FakePersonDetector:
    def __init__(self, mask=None, error=None):
        self.mask = mask
        self.error = error
        self.calls = 0

    def detect_person_mask(self, image):
        self.calls += 1
        if self.error is not None:
            raise self.error
        if self.mask is not None:
            return self.mask
        return np.ones(image.pixels.shape[:2], dtype=np.float32)


@pytest.fixture
def noise_image():
    def make(width=400, height=400, seed=0):
        rng = np.random.default_rng(seed)
        return Image(pixels=rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8))
    return make


@pytest.fixture
def face_rect():
    return Rect(100, 100, 200, 200)


@pytest.fixture
def face_detector_factory():
    return FakeFaceDetector


@pytest.fixture
def person_detector_factory():
    return FakePersonDetector
