"""
Slimming pipeline stages.

detect_regions()  – expensive, once per capture (face box + person mask).
render_effect()   – cheap, re-run on every parameter change.
process_photo()   – both, for one-shot callers such as the CLI.

None of these raise: detector and geometry failures degrade to the
unmodified input image with effect_applied = False.
"""
from __future__ import annotations
import logging
from typing import Tuple

from ..errors import InvalidRegion, SegmentationFailed, SlimCamError
from ..models.detection import Detection
from ..models.effect_parameters import EffectParameters
from ..models.image import Image
from ..services.compositor_service import CompositorService
from ..services.region_geometry_service import RegionGeometryService

logger = logging.getLogger(__name__)


def detect_regions(image: Image, face_detector, person_detector=None) -> Detection:
    """
    Run the detectors on one capture.

    Raises:
        NoFaceDetected / DetectionFailed: from the face detector.
    Any person-detector failure only drops the person mask (no shoulder stage).
    """
    face_rect = face_detector.detect_face(image)

    person_mask = None
    if person_detector is not None:
        try:
            person_mask = person_detector.detect_person_mask(image)
        except SegmentationFailed as err:
            logger.warning(f"Person segmentation failed, shoulder stage disabled: {err}")
        except Exception:
            logger.exception("Person detector raised unexpectedly, shoulder stage disabled")
    return Detection(face_rect=face_rect, person_mask=person_mask)


def render_effect(
    image: Image,
    detection: Detection | None,
    params: EffectParameters,
    *,
    compositor: CompositorService,
    geometry_service: RegionGeometryService,
) -> Tuple[Image, bool]:
    """
    Warp `image` using an earlier detection and a parameter snapshot.

    Returns:
        (output image, effect_applied)
    """
    if detection is None:
        return image, False

    try:
        geometry = geometry_service.derive_geometry(detection.face_rect, params, image.size)
    except InvalidRegion as err:
        logger.warning(f"Skipping warp: {err}")
        return image, False

    output = compositor.apply_face_warp(image, geometry, compositor.face_scale(params.intensity))

    if params.shoulder_enabled:
        output = compositor.apply_shoulder_stretch(
            output, detection.person_mask, geometry, compositor.shoulder_scale(params.intensity)
        )

    return output, output is not image


def process_photo(
    image: Image,
    params: EffectParameters,
    face_detector,
    person_detector=None,
    *,
    compositor: CompositorService | None = None,
    geometry_service: RegionGeometryService | None = None,
) -> Tuple[Image, bool]:
    """Detection + warp in one go. Any failure → (image, False)."""
    compositor = compositor or CompositorService()
    geometry_service = geometry_service or RegionGeometryService()

    # the segmentation model is only worth running when its output is used
    try:
        detection = detect_regions(image, face_detector,
                                   person_detector if params.shoulder_enabled else None)
    except SlimCamError as err:
        logger.warning(f"Detection failed ({type(err).__name__}): {err}")
        return image, False

    return render_effect(image, detection, params,
                         compositor=compositor, geometry_service=geometry_service)
