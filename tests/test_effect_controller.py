import threading

import numpy as np
import pytest
from PIL import Image as PILImage

from slimcam.errors import DetectionFailed
from slimcam.models.effect_parameters import EffectParameters
from slimcam.models.image import Image
from slimcam.pipeline.effect_controller import EffectController, EffectState


@pytest.fixture
def make_controller():
    controllers = []

    def make(face_detector, person_detector=None, **kwargs):
        kwargs.setdefault("params", EffectParameters(intensity=0.7, face_effect_radius=0.4))
        controller = EffectController(face_detector, person_detector, **kwargs)
        controllers.append(controller)
        return controller

    yield make
    for controller in controllers:
        controller.shutdown()


def test_capture_runs_to_ready(make_controller, face_detector_factory, person_detector_factory,
                               face_rect, noise_image):
    controller = make_controller(face_detector_factory(face_rect), person_detector_factory())
    states = []
    controller.subscribe(lambda c: states.append(c.state))
    image = noise_image()

    assert controller.state is EffectState.IDLE
    assert controller.capture(image).result(timeout=5)

    assert states == [EffectState.CAPTURED, EffectState.PROCESSING, EffectState.READY]
    assert controller.state is EffectState.READY
    assert controller.effect_applied
    assert controller.captured_image is image
    assert controller.processed_image.size == image.size
    assert controller.result_image is controller.processed_image
    assert controller.detection.face_rect == face_rect


def test_parameter_change_rewarps_without_detecting_again(make_controller, face_detector_factory,
                                                          person_detector_factory, face_rect, noise_image):
    face, person = face_detector_factory(face_rect), person_detector_factory()
    controller = make_controller(face, person)
    controller.capture(noise_image()).result(timeout=5)
    first = controller.processed_image

    assert controller.set_intensity(0.2).result(timeout=5)
    assert controller.parameters.intensity == 0.2
    assert face.calls == 1
    assert person.calls == 1
    assert not np.array_equal(first.pixels, controller.processed_image.pixels)

    controller.set_face_effect_radius(0.6).result(timeout=5)
    controller.set_center_offset(20, 0).result(timeout=5)
    controller.set_shoulder_enabled(True).result(timeout=5)
    assert face.calls == 1
    assert controller.parameters.center_offset == (20.0, 0.0)
    assert controller.state is EffectState.READY


def test_detection_failure_passes_original_through(make_controller, face_detector_factory, noise_image):
    face = face_detector_factory(error=DetectionFailed("camera on fire"))
    controller = make_controller(face)
    image = noise_image()
    controller.capture(image).result(timeout=5)

    assert controller.state is EffectState.READY
    assert controller.processed_image is image
    assert not controller.effect_applied

    controller.set_intensity(1.0).result(timeout=5)
    assert controller.processed_image is image
    assert face.calls == 1


def test_no_face_passes_original_through(make_controller, face_detector_factory, noise_image):
    controller = make_controller(face_detector_factory())
    image = noise_image()
    controller.capture(image).result(timeout=5)
    assert np.array_equal(controller.processed_image.pixels, image.pixels)
    assert not controller.effect_applied


def test_unexpected_detector_error_is_absorbed(make_controller, face_detector_factory, noise_image):
    controller = make_controller(face_detector_factory(error=RuntimeError("not a SlimCamError")))
    image = noise_image()
    assert controller.capture(image).result(timeout=5)
    assert controller.processed_image is image


def test_latest_capture_wins(make_controller, face_detector_factory, noise_image):
    gate = threading.Event()
    face = face_detector_factory(gate=gate)  # no face: the result is the capture itself
    controller = make_controller(face)
    published = []
    controller.subscribe(lambda c: published.append(c.processed_image) if c.state is EffectState.READY else None)

    first, second = noise_image(seed=1), noise_image(seed=2)
    stale = controller.capture(first)
    assert face.entered.wait(timeout=5)
    latest = controller.capture(second)
    gate.set()

    assert stale.result(timeout=5) is False
    assert latest.result(timeout=5) is True
    assert controller.processed_image is second
    assert all(img is not first for img in published)


def test_parameter_change_during_detection_restarts_run(make_controller, face_detector_factory,
                                                        face_rect, noise_image):
    gate = threading.Event()
    face = face_detector_factory(face_rect, gate=gate)
    controller = make_controller(face)

    controller.capture(noise_image())
    assert face.entered.wait(timeout=5)
    rerun = controller.set_intensity(1.0)
    gate.set()

    assert rerun.result(timeout=5)
    assert face.calls == 2
    assert controller.effect_applied
    assert controller.parameters.intensity == 1.0


def test_retake_goes_idle_and_drops_results(make_controller, face_detector_factory, face_rect, noise_image):
    controller = make_controller(face_detector_factory(face_rect))
    controller.capture(noise_image()).result(timeout=5)

    controller.retake()
    assert controller.state is EffectState.IDLE
    assert controller.captured_image is None
    assert controller.result_image is None
    assert controller.processed_image is None
    assert controller.detection is None
    # nothing to re-render, but the parameter is remembered
    assert controller.set_intensity(0.3) is None
    assert controller.parameters.intensity == 0.3


def test_retake_discards_in_flight_run(make_controller, face_detector_factory, face_rect, noise_image):
    gate = threading.Event()
    face = face_detector_factory(face_rect, gate=gate)
    controller = make_controller(face)

    run = controller.capture(noise_image())
    assert face.entered.wait(timeout=5)
    controller.retake()
    gate.set()

    assert run.result(timeout=5) is False
    assert controller.state is EffectState.IDLE
    assert controller.processed_image is None


def test_indicator_geometry(make_controller, face_detector_factory, face_rect, noise_image):
    controller = make_controller(face_detector_factory(face_rect))
    assert controller.indicator_geometry() is None

    controller.capture(noise_image()).result(timeout=5)
    indicator = controller.indicator_geometry()
    assert indicator.center == (200, 200)
    assert indicator.diameter == pytest.approx(160)
    assert indicator.inner_diameter == pytest.approx(96)
    assert not indicator.visible

    controller.set_range_indicator_visible(True)
    # 400x400 photo shown aspect-fit in a 200x400 view
    in_view = controller.indicator_geometry(display_size=(200, 400))
    assert in_view.visible
    assert in_view.center == pytest.approx((100, 200))
    assert in_view.diameter == pytest.approx(80)


def test_observer_errors_do_not_break_pipeline(make_controller, face_detector_factory, face_rect, noise_image):
    controller = make_controller(face_detector_factory(face_rect))
    controller.subscribe(lambda c: 1 / 0)
    seen = []
    unsubscribe = controller.subscribe(lambda c: seen.append(c.state))
    controller.capture(noise_image()).result(timeout=5)
    assert controller.state is EffectState.READY

    unsubscribe()
    count = len(seen)
    controller.retake()
    assert len(seen) == count


def test_save(make_controller, face_detector_factory, face_rect, noise_image, tmp_path):
    controller = make_controller(face_detector_factory(face_rect))
    with pytest.raises(ValueError):
        controller.save(tmp_path / "nothing.png")

    controller.capture(noise_image(320, 240)).result(timeout=5)
    path = controller.save(tmp_path / "out" / "slim.png")
    with PILImage.open(path) as saved:
        assert saved.size == (320, 240)
    assert np.array_equal(np.asarray(PILImage.open(path).convert("RGB")), controller.processed_image.pixels)


def test_wait_returns_latest_result(make_controller, face_detector_factory, face_rect, noise_image):
    controller = make_controller(face_detector_factory(face_rect))
    assert controller.wait() is False
    controller.capture(Image(pixels=noise_image().pixels))
    assert controller.wait(timeout=5) is True
    assert controller.state is EffectState.READY


def test_parameter_change_notifies_each_transition_once(make_controller, face_detector_factory,
                                                        face_rect, noise_image):
    controller = make_controller(face_detector_factory(face_rect))
    controller.capture(noise_image()).result(timeout=5)
    states = []
    controller.subscribe(lambda c: states.append(c.state))

    controller.set_intensity(0.3).result(timeout=5)
    assert states == [EffectState.PROCESSING, EffectState.READY]
