from __future__ import annotations
from pathlib import Path
from typing import Iterable, Union, Iterator
import base64
import os

from dotenv import load_dotenv

from ..models.image import Image
from ..repositories.image_repository import ImageRepository

# Load environment variables
load_dotenv()


class ImageService:
    """I/O helpers for the capture and persistence boundaries.  No warp logic here."""
    def __init__(self):
        self.JPEG_QUALITY = int(os.getenv("JPEG_QUALITY", "95"))
        self.image_repository = ImageRepository()

    def load(self, path: str | Path) -> Image:
        """Load a single image from disk into an upright RGB Image object."""
        return self.image_repository.load(path)

    def decode(self, data: bytes) -> Image:
        """Decode uploaded bytes (any Pillow format) into an upright RGB Image."""
        return self.image_repository.decode(data)

    def stream_gallery(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[Image]:
        """
        Yield images lazily instead of returning a gigantic list.
        """
        return self.image_repository.iter_dir(folder,
                                              recursive=recursive,
                                              exts=exts)

    def save(self, image: Image, path: Union[str, Path] | None = None) -> Path:
        """
        Business-level method to save the image (to `path`, or to image.path).
        """
        return self.image_repository.save(image, path, quality=self.JPEG_QUALITY)

    def to_jpeg_bytes(self, image: Image) -> bytes:
        return self.image_repository.encode(image, fmt="JPEG", quality=self.JPEG_QUALITY)

    def to_base64(self, image: Image) -> str:
        """Image → data URL, for JSON responses."""
        encoded = base64.b64encode(self.to_jpeg_bytes(image)).decode("utf-8")
        return f"data:image/jpeg;base64,{encoded}"
