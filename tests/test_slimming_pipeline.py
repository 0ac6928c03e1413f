import numpy as np
import pytest

from slimcam.errors import DetectionFailed, NoFaceDetected, SegmentationFailed
from slimcam.models.detection import Detection
from slimcam.models.effect_parameters import EffectParameters
from slimcam.models.rect import Rect
from slimcam.pipeline.slimming_pipeline import detect_regions, process_photo, render_effect
from slimcam.services.compositor_service import CompositorService
from slimcam.services.region_geometry_service import RegionGeometryService


@pytest.fixture
def services():
    return dict(compositor=CompositorService(), geometry_service=RegionGeometryService())


@pytest.mark.parametrize("error", [NoFaceDetected("none"), DetectionFailed("boom")])
def test_detector_failure_returns_original(noise_image, face_detector_factory, error):
    image = noise_image()
    out, applied = process_photo(image, EffectParameters(intensity=1.0), face_detector_factory(error=error))
    assert out is image
    assert not applied
    assert np.array_equal(out.pixels, noise_image().pixels)


def test_process_photo_applies_effect(noise_image, face_detector_factory, face_rect):
    image = noise_image()
    out, applied = process_photo(image, EffectParameters(intensity=1.0), face_detector_factory(face_rect))
    assert applied
    assert out.size == image.size
    assert not np.array_equal(out.pixels, image.pixels)


def test_intensity_zero_is_not_applied(noise_image, face_detector_factory, face_rect):
    image = noise_image()
    out, applied = process_photo(image, EffectParameters(intensity=0.0), face_detector_factory(face_rect))
    assert out is image
    assert not applied


def test_segmentation_skipped_when_shoulders_off(noise_image, face_detector_factory,
                                                 person_detector_factory, face_rect):
    person = person_detector_factory()
    process_photo(noise_image(), EffectParameters(shoulder_enabled=False),
                  face_detector_factory(face_rect), person)
    assert person.calls == 0


def test_segmentation_failure_only_drops_mask(noise_image, face_detector_factory,
                                              person_detector_factory, face_rect):
    detection = detect_regions(noise_image(), face_detector_factory(face_rect),
                               person_detector_factory(error=SegmentationFailed("nope")))
    assert detection.face_rect == face_rect
    assert detection.person_mask is None


def test_render_effect_with_shoulders(noise_image, face_rect, services):
    image = noise_image()
    mask = np.ones((400, 400), dtype=np.float32)
    params = EffectParameters(intensity=1.0, shoulder_enabled=True)

    face_only, _ = render_effect(image, Detection(face_rect), params, **services)
    both, applied = render_effect(image, Detection(face_rect, mask), params, **services)
    assert applied
    assert both.size == image.size
    # rows below the face box change only when the shoulder stage runs
    assert np.array_equal(face_only.pixels[320:], image.pixels[320:])
    assert not np.array_equal(both.pixels[320:], image.pixels[320:])


def test_render_effect_invalid_region(noise_image, services):
    image = noise_image()
    out, applied = render_effect(image, Detection(Rect(900, 900, 10, 10)), EffectParameters(intensity=1.0), **services)
    assert out is image
    assert not applied


def test_render_effect_without_detection(noise_image, services):
    image = noise_image()
    out, applied = render_effect(image, None, EffectParameters(), **services)
    assert out is image
    assert not applied


@pytest.mark.parametrize("offset", [(float("nan"), 0.0), (float("inf"), 0.0), (0.0, float("-inf"))])
def test_non_finite_offset_returns_original(noise_image, face_detector_factory, face_rect, offset):
    image = noise_image()
    params = EffectParameters(intensity=1.0, center_offset=offset)
    out, applied = process_photo(image, params, face_detector_factory(face_rect))
    assert out is image
    assert not applied


def test_unexpected_person_detector_error_keeps_face_warp(noise_image, face_detector_factory,
                                                          person_detector_factory, face_rect):
    image = noise_image()
    detection = detect_regions(image, face_detector_factory(face_rect),
                               person_detector_factory(error=RuntimeError("graph crashed")))
    assert detection.face_rect == face_rect
    assert detection.person_mask is None

    params = EffectParameters(intensity=1.0, shoulder_enabled=True)
    out, applied = process_photo(image, params, face_detector_factory(face_rect),
                                 person_detector_factory(error=RuntimeError("graph crashed")))
    assert applied
    assert not np.array_equal(out.pixels, image.pixels)
