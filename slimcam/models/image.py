from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple
import numpy as np


@dataclass
class Image:
    """
    Simple data object: upright RGB pixels (+ optional source path for bookkeeping).
    The warp pipeline never writes into `pixels`; every stage returns a new Image.
    """
    pixels: np.ndarray # Shape (H, W, 3), dtype uint8, RGB order, orientation already normalised.
    path: Path | None = None # Source of the image.

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height) in pixels."""
        return self.width, self.height
