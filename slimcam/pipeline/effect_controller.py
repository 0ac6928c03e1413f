"""
Effect controller: owns the current capture, the detection, the parameter
snapshot and the single "current result" slot.

    IDLE ──capture──▶ CAPTURED ──▶ PROCESSING ──▶ READY
                                      ▲            │
                                      └─param change┘
    any state ──retake──▶ IDLE

Runs execute on a thread pool.  Every capture, parameter change and retake
bumps a generation counter; a run only publishes if its generation is still
the current one, so the latest request always wins and stale results are
dropped instead of being applied out of order.
"""
from __future__ import annotations
import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from enum import Enum
from pathlib import Path
from typing import Callable, List, Tuple

from ..errors import InvalidRegion, SlimCamError
from ..models.detection import Detection
from ..models.effect_parameters import EffectParameters
from ..models.geometry import IndicatorGeometry
from ..models.image import Image
from ..services.compositor_service import CompositorService
from ..services.image_service import ImageService
from ..services.region_geometry_service import RegionGeometryService
from .slimming_pipeline import detect_regions, render_effect

logger = logging.getLogger(__name__)

Observer = Callable[["EffectController"], None]

# inner dashed ring of the range indicator, relative to the outer one
INDICATOR_INNER_RATIO = 0.6


class EffectState(str, Enum):
    IDLE = "idle"
    CAPTURED = "captured"
    PROCESSING = "processing"
    READY = "ready"


class EffectController:
    """
    Orchestrates detection + warp for one user session.

    Args:
        face_detector: object with `detect_face(Image) -> Rect`.
        person_detector: object with `detect_person_mask(Image) -> ndarray`, optional.
        compositor / geometry_service / image_service: injectable collaborators.
        params: initial EffectParameters.
        executor: where runs execute; by default a private single-worker pool.
    """

    def __init__(self,
                 face_detector,
                 person_detector=None,
                 *,
                 compositor: CompositorService | None = None,
                 geometry_service: RegionGeometryService | None = None,
                 image_service: ImageService | None = None,
                 params: EffectParameters | None = None,
                 executor: Executor | None = None):
        self.face_detector = face_detector
        self.person_detector = person_detector
        self.compositor = compositor or CompositorService()
        self.geometry_service = geometry_service or RegionGeometryService()
        self.image_service = image_service or ImageService()

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="slimcam")

        self._lock = threading.Lock()
        self._observers: List[Observer] = []
        self._generation = 0
        self._pending: Future | None = None

        self._state = EffectState.IDLE
        self._params = params or EffectParameters()
        self._captured: Image | None = None
        self._processed: Image | None = None
        self._detection: Detection | None = None
        self._detected = False          # detection finished for the current capture (even if it failed)
        self._effect_applied = False
        self._indicator_visible = False

    # ─── Read-only views ───────────────────────────────────────────
    @property
    def state(self) -> EffectState:
        return self._state

    @property
    def parameters(self) -> EffectParameters:
        return self._params

    @property
    def captured_image(self) -> Image | None:
        return self._captured

    @property
    def processed_image(self) -> Image | None:
        """Last published result (kept while a parameter re-run is in flight)."""
        return self._processed

    @property
    def result_image(self) -> Image | None:
        """The processed image once READY, None otherwise."""
        with self._lock:
            return self._processed if self._state is EffectState.READY else None

    @property
    def detection(self) -> Detection | None:
        return self._detection

    @property
    def effect_applied(self) -> bool:
        return self._effect_applied

    @property
    def generation(self) -> int:
        return self._generation

    # ─── Observers ─────────────────────────────────────────────────
    def subscribe(self, callback: Observer) -> Callable[[], None]:
        """Call `callback(controller)` after every state change. Returns an unsubscribe function."""
        with self._lock:
            self._observers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._observers:
                    self._observers.remove(callback)
        return unsubscribe

    def _notify(self) -> None:
        with self._lock:
            observers = list(self._observers)
        for callback in observers:
            try:
                callback(self)
            except Exception:
                logger.exception("State observer raised")

    # ─── Generation bookkeeping (call with the lock held) ──────────
    def _bump_generation(self) -> int:
        self._generation += 1
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None
        return self._generation

    def _is_current(self, gen: int) -> bool:
        with self._lock:
            return gen == self._generation

    def _submit(self, gen: int, fn, *args) -> Future:
        future = self._executor.submit(fn, gen, *args)
        with self._lock:
            if gen == self._generation:
                self._pending = future
        return future

    def _enter_processing(self, gen: int) -> bool:
        with self._lock:
            if gen != self._generation:
                return False
            changed = self._state is not EffectState.PROCESSING
            self._state = EffectState.PROCESSING
        if changed:
            self._notify()
        return True

    def _publish(self, gen: int, output: Image, applied: bool, detection: Detection | None) -> bool:
        with self._lock:
            if gen != self._generation:
                logger.debug(f"Discarding stale result (generation {gen} < {self._generation})")
                return False
            self._processed = output
            self._effect_applied = applied
            self._detection = detection
            self._detected = True
            self._state = EffectState.READY
        logger.info(f"Result ready (generation {gen}, effect_applied={applied})")
        self._notify()
        return True

    # ─── Runs (executed on the pool) ───────────────────────────────
    def _run_capture(self, gen: int, image: Image, params: EffectParameters) -> bool:
        if not self._enter_processing(gen):
            return False
        try:
            detection = detect_regions(image, self.face_detector, self.person_detector)
        except SlimCamError as err:
            logger.warning(f"Detection failed ({type(err).__name__}: {err}), passing original through")
            return self._publish(gen, image, False, None)
        except Exception:
            logger.exception("Detector raised unexpectedly, passing original through")
            return self._publish(gen, image, False, None)

        if not self._is_current(gen):
            return False
        return self._render_and_publish(gen, image, detection, params)

    def _run_warp(self, gen: int, image: Image, detection: Detection | None, params: EffectParameters) -> bool:
        if not self._enter_processing(gen):
            return False
        return self._render_and_publish(gen, image, detection, params)

    def _render_and_publish(self, gen: int, image: Image, detection: Detection | None,
                            params: EffectParameters) -> bool:
        try:
            output, applied = render_effect(image, detection, params,
                                            compositor=self.compositor,
                                            geometry_service=self.geometry_service)
        except Exception:
            logger.exception("Warp raised unexpectedly, passing original through")
            output, applied = image, False
        return self._publish(gen, output, applied, detection)

    # ─── Public API ────────────────────────────────────────────────
    def capture(self, image: Image) -> Future:
        """A new photo arrived: supersede everything and run detection + warp."""
        with self._lock:
            gen = self._bump_generation()
            self._captured = image
            self._processed = None
            self._detection = None
            self._detected = False
            self._effect_applied = False
            self._state = EffectState.CAPTURED
            params = self._params
        logger.info(f"Captured {image.width}x{image.height} photo (generation {gen})")
        self._notify()
        return self._submit(gen, self._run_capture, image, params)

    def update_parameters(self, **changes) -> Future | None:
        """
        Change any EffectParameters field. With a photo loaded the warp is
        re-run on the stored detection; detection itself is not repeated.
        Returns the run's Future, or None when there is nothing to re-render.
        """
        with self._lock:
            self._params = self._params.with_changes(**changes)
            params = self._params
            image = self._captured
            if image is None:
                return None
            gen = self._bump_generation()
            detection, detected = self._detection, self._detected
            self._state = EffectState.PROCESSING
        self._notify()

        if detected:
            return self._submit(gen, self._run_warp, image, detection, params)
        # detection for this capture was still in flight and has just been superseded
        return self._submit(gen, self._run_capture, image, params)

    def set_intensity(self, intensity: float) -> Future | None:
        return self.update_parameters(intensity=intensity)

    def set_face_effect_radius(self, radius: float) -> Future | None:
        return self.update_parameters(face_effect_radius=radius)

    def set_center_offset(self, dx: float, dy: float) -> Future | None:
        return self.update_parameters(center_offset=(dx, dy))

    def set_shoulder_enabled(self, enabled: bool) -> Future | None:
        return self.update_parameters(shoulder_enabled=enabled)

    def retake(self) -> None:
        """Drop the photo and any in-flight run."""
        with self._lock:
            self._bump_generation()
            self._captured = None
            self._processed = None
            self._detection = None
            self._detected = False
            self._effect_applied = False
            self._indicator_visible = False
            self._state = EffectState.IDLE
        logger.info("Retake: back to idle")
        self._notify()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the latest run finishes. True if it published a result."""
        with self._lock:
            pending = self._pending
        if pending is None or pending.cancelled():
            return False
        return bool(pending.result(timeout=timeout))

    # ─── Range indicator ───────────────────────────────────────────
    def set_range_indicator_visible(self, visible: bool) -> None:
        with self._lock:
            self._indicator_visible = bool(visible)
        self._notify()

    def indicator_geometry(self, display_size: Tuple[float, float] | None = None) -> IndicatorGeometry | None:
        """
        Where to draw the effect-range circle.

        Args:
            display_size: (width, height) of a view showing the photo aspect-fit;
                coordinates are returned in that view's space. Image pixels otherwise.

        Returns:
            IndicatorGeometry, or None while there is no usable face region.
        """
        with self._lock:
            detection, params, image, visible = self._detection, self._params, self._captured, self._indicator_visible
        if detection is None or image is None:
            return None
        try:
            geometry = self.geometry_service.derive_geometry(detection.face_rect, params, image.size)
        except InvalidRegion:
            return None

        (cx, cy), diameter = geometry.center, 2.0 * geometry.effect_radius
        if display_size is not None:
            view_w, view_h = display_size
            fit = min(view_w / image.width, view_h / image.height)
            off_x = (view_w - image.width * fit) / 2.0
            off_y = (view_h - image.height * fit) / 2.0
            cx, cy, diameter = off_x + cx * fit, off_y + cy * fit, diameter * fit

        return IndicatorGeometry(center=(cx, cy), diameter=diameter,
                                 inner_diameter=diameter * INDICATOR_INNER_RATIO, visible=visible)

    # ─── Persistence ───────────────────────────────────────────────
    def save(self, path: str | Path) -> Path:
        """Hand the current result to the persistence layer."""
        with self._lock:
            image = self._processed
        if image is None:
            raise ValueError("No processed image to save yet")
        return self.image_service.save(image, path)

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            self._bump_generation()
        if self._owns_executor:
            self._executor.shutdown(wait=wait)
