"""Image decoding and proportional resizing."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import numpy as np
from PIL import Image


class DecodeError(Exception):
    """Raised when an image file cannot be rendered."""


@dataclass(slots=True)
class DecodedImage:
    """A fully decoded RGB image."""

    path: Path
    image: Image.Image

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height


def decode(path: Path) -> DecodedImage:
    """Decode ``path`` into an RGB image."""

    try:
        with Image.open(path) as source:
            source.load()
            image = source.convert("RGB")
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"Unable to render \"{path}\": {exc}") from exc
    return DecodedImage(path=path, image=image)


def render_pixels(decoded: DecodedImage, size: tuple[int, int]) -> np.ndarray:
    """Return an ``(height, width, 3)`` uint8 array scaled to ``size``."""

    width, height = size
    if width <= 0 or height <= 0:
        raise DecodeError(f"Invalid output frame size {width} x {height}")
    image = decoded.image
    if image.size != size:
        try:
            image = image.resize(size, Image.Resampling.LANCZOS)
        except (OSError, ValueError, MemoryError) as exc:
            raise DecodeError(f"Unable to create pixel buffer from \"{decoded.path}\": {exc}") from exc
    return np.asarray(image, dtype=np.uint8)
