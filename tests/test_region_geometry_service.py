import pytest

from slimcam.errors import InvalidRegion
from slimcam.models.effect_parameters import EffectParameters
from slimcam.models.rect import Rect
from slimcam.services.region_geometry_service import RegionGeometryService


@pytest.fixture
def service():
    return RegionGeometryService(radius_min=0.2, radius_max=0.6, shoulder_band_factor=0.5)


def test_center_radius_and_band(service, face_rect):
    g = service.derive_geometry(face_rect, EffectParameters(face_effect_radius=0.4))
    assert g.center == (200, 200)
    assert g.effect_radius == pytest.approx(80)
    assert g.shoulder_band.top == 300
    assert g.shoulder_band.bottom == 400


def test_center_offset_shifts_center_exactly(service, face_rect):
    base = service.derive_geometry(face_rect, EffectParameters())
    moved = service.derive_geometry(face_rect, EffectParameters(center_offset=(20, 0)))
    assert moved.center[0] - base.center[0] == 20
    assert moved.center[1] == base.center[1]
    assert moved.effect_radius == base.effect_radius


def test_radius_factor_is_clamped(service, face_rect):
    service = RegionGeometryService(radius_min=0.3, radius_max=0.5)
    g = service.derive_geometry(face_rect, EffectParameters(face_effect_radius=0.2))
    assert g.effect_radius == pytest.approx(200 * 0.3)


def test_face_box_clamped_to_image(service):
    g = service.derive_geometry(Rect(-100, 0, 200, 100), EffectParameters(), image_size=(400, 300))
    assert g.face_box == Rect(0, 0, 100, 100)
    assert g.center == (50, 50)


@pytest.mark.parametrize("rect", [None, Rect(10, 10, 0, 50), Rect(10, 10, 50, 0)])
def test_degenerate_rect_raises(service, rect):
    with pytest.raises(InvalidRegion):
        service.derive_geometry(rect, EffectParameters())


def test_rect_outside_image_raises(service):
    with pytest.raises(InvalidRegion):
        service.derive_geometry(Rect(500, 500, 50, 50), EffectParameters(), image_size=(400, 400))


def test_bad_radius_range():
    with pytest.raises(ValueError):
        RegionGeometryService(radius_min=0.0, radius_max=0.5)
