from __future__ import annotations
from io import BytesIO
from pathlib import Path
from typing import Union, Iterable, Iterator
import logging
import os

import numpy as np
from PIL import Image as PILImage, ImageOps
from dotenv import load_dotenv

from ..models.image import Image

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class ImageRepository:
    """
    Handles file I/O for Image entities.
    Everything that comes out of here is upright RGB: EXIF orientation is
    applied on load, so the warp engine never has to think about it.
    """
    def __init__(self):
        exts = os.getenv("VALID_IMAGE_EXTENSIONS", ".jpg,.jpeg,.png,.bmp,.webp")
        self.VALID_EXTS = {ext.strip().lower() for ext in exts.split(",") if ext.strip()}

    @staticmethod
    def _to_upright_rgb(pil_obj: PILImage.Image) -> np.ndarray:
        pil_obj = ImageOps.exif_transpose(pil_obj)
        return np.ascontiguousarray(np.asarray(pil_obj.convert("RGB")))

    def load(self, path: Union[str, Path]) -> Image:
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Image not found or unreadable: {path}")
        try:
            with PILImage.open(path) as pil_obj:
                arr = self._to_upright_rgb(pil_obj)
        except OSError as err:
            raise FileNotFoundError(f"Image not found or unreadable: {path}") from err
        return Image(pixels=arr, path=path)

    def decode(self, data: bytes) -> Image:
        """Decode an uploaded file body into an upright RGB Image."""
        try:
            with PILImage.open(BytesIO(data)) as pil_obj:
                arr = self._to_upright_rgb(pil_obj)
        except OSError as err:
            raise ValueError(f"Cannot decode image data: {err}") from err
        return Image(pixels=arr)

    @staticmethod
    def save(image: Image, path: Union[str, Path] | None = None, quality: int = 95) -> Path:
        target = Path(path) if path is not None else image.path
        if target is None:
            raise ValueError("Image has no path to save to")
        target.parent.mkdir(parents=True, exist_ok=True)
        pil_obj = PILImage.fromarray(np.ascontiguousarray(image.pixels))
        if target.suffix.lower() in (".jpg", ".jpeg"):
            pil_obj.save(target, quality=quality)
        else:
            pil_obj.save(target)
        return target

    @staticmethod
    def encode(image: Image, fmt: str = "JPEG", quality: int = 95) -> bytes:
        buffer = BytesIO()
        PILImage.fromarray(np.ascontiguousarray(image.pixels)).save(buffer, format=fmt, quality=quality)
        return buffer.getvalue()

    def iter_dir(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[Image]:
        """
        Yield Image objects one at a time.  Nothing accumulates in memory.
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise NotADirectoryError(folder)

        allowed = {e.lower() for e in (exts or self.VALID_EXTS)}
        pattern = "**/*" if recursive else "*"

        for p in sorted(folder.glob(pattern)):
            if p.suffix.lower() not in allowed or not p.is_file():
                logger.debug(f"Skipping {p}")
                continue
            try:
                yield self.load(p)
            except FileNotFoundError as err:
                logger.warning(f"Skipping {p.name}: {err}")
