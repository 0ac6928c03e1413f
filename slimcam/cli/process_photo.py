import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

# --- Centralized Logging Configuration ---
logging.basicConfig(
    level=logging.INFO,  # Set to INFO to reduce noise, or DEBUG for full detail
    format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
    datefmt='%H:%M:%S'
)

from ..models.effect_parameters import EffectParameters, DEFAULT_INTENSITY, FACE_RADIUS_DEFAULT
from ..pipeline.slimming_pipeline import process_photo
from ..services.compositor_service import CompositorService
from ..services.face_detection_service import FaceDetectionService
from ..services.image_service import ImageService
from ..services.region_geometry_service import RegionGeometryService
from ..services.segmentation_service import SegmentationService

logger = logging.getLogger("slimcam.cli")


def parse_args(argv=None):
    ap = argparse.ArgumentParser("slimcam-process", description="Apply the face slimming effect to photos")
    ap.add_argument("inputs", nargs="+", help="Image files or folders")
    ap.add_argument("--output-dir", "-o", default="data/slimmed", help="Where results are written")
    ap.add_argument("--intensity", type=float, default=DEFAULT_INTENSITY, help="Effect strength 0..1")
    ap.add_argument("--radius", type=float, default=FACE_RADIUS_DEFAULT,
                    help="Effect radius as a fraction of face width")
    ap.add_argument("--offset", type=float, nargs=2, default=(0.0, 0.0), metavar=("DX", "DY"),
                    help="Shift the effect centre by DX, DY pixels")
    ap.add_argument("--shoulders", action="store_true", help="Also stretch the shoulders")
    ap.add_argument("--recursive", action="store_true", help="Recurse into folders")
    ap.add_argument("--debug", action="store_true", help="Verbose logging")
    return ap.parse_args(argv)


def iter_inputs(image_service: ImageService, inputs, recursive: bool = False):
    for item in inputs:
        path = Path(item)
        if path.is_dir():
            yield from image_service.stream_gallery(path, recursive=recursive)
        else:
            yield image_service.load(path)


def main(argv=None) -> int:
    args = parse_args(argv)
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    params = EffectParameters(
        intensity=args.intensity,
        face_effect_radius=args.radius,
        center_offset=tuple(args.offset),
        shoulder_enabled=args.shoulders,
    )
    image_service = ImageService()
    face_detector = FaceDetectionService()
    person_detector = SegmentationService() if params.shoulder_enabled else None
    compositor = CompositorService()
    geometry_service = RegionGeometryService()

    output_dir = Path(args.output_dir)
    processed = applied_count = 0
    print(f"\nSlimming with intensity={params.intensity:.2f}, radius={params.face_effect_radius:.2f}")

    try:
        for img in iter_inputs(image_service, args.inputs, recursive=args.recursive):
            result, applied = process_photo(img, params, face_detector, person_detector,
                                            compositor=compositor, geometry_service=geometry_service)
            name = img.path.name if img.path else f"photo_{processed:04d}.jpg"
            target = image_service.save(result, output_dir / name)
            processed += 1
            applied_count += int(applied)
            logger.info(f"{name}: {'effect applied' if applied else 'unchanged'} → {target}")
    except (FileNotFoundError, NotADirectoryError) as err:
        logger.error(str(err))
        return 1

    print(f"\nDone: {processed} photos written to {output_dir} ({applied_count} with effect)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
