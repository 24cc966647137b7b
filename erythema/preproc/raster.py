# Raster buffers exchanged with the erythema pipeline
# Purpose: Wrap the RGBA pixel buffer handed to (and returned by) the pipeline
# so that dimension checks happen once, at the boundary.
#
# Notes:
#   - Pixels are stored as a C-contiguous uint8 array (H, W, 4), row-major,
#     origin top-left. The flat byte view has length width * height * 4.
#   - Derived outputs are always built with `from_rgb`, which forces alpha=255.
#   - Techniques work on the RGB view (H, W, 3); alpha never carries data.

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from PIL import Image


class InvalidDimensionsError(ValueError):
    """Raised when a buffer or mask does not match the declared image size."""


@dataclass(frozen=True)
class RasterBuffer:
    """
    RGBA raster owned by one pipeline run.
    Attributes:
        - width, height: image size in pixels.
        - pixels: uint8 array (height, width, 4).
    """

    width: int
    height: int
    pixels: np.ndarray

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise InvalidDimensionsError(
                f"image size must be positive, got {self.width}x{self.height}"
            )
        if self.pixels.shape != (self.height, self.width, 4):
            raise InvalidDimensionsError(
                f"pixel array has shape {self.pixels.shape}, "
                f"expected {(self.height, self.width, 4)}"
            )
        if self.pixels.dtype != np.uint8:
            raise InvalidDimensionsError(f"pixel array must be uint8, got {self.pixels.dtype}")

    @classmethod
    def from_bytes(cls, width: int, height: int, data) -> "RasterBuffer":
        """Build a buffer from a flat RGBA byte sequence (len == width*height*4)."""
        flat = np.frombuffer(bytes(data), dtype=np.uint8)
        expected = width * height * 4
        if flat.size != expected:
            raise InvalidDimensionsError(
                f"buffer length {flat.size} does not match {width}x{height}x4 = {expected}"
            )
        return cls(width, height, flat.reshape(height, width, 4).copy())

    @classmethod
    def from_rgb(cls, rgb: np.ndarray) -> "RasterBuffer":
        """uint8 RGB (H,W,3) -> opaque RGBA buffer."""
        if rgb.ndim != 3 or rgb.shape[2] != 3:
            raise InvalidDimensionsError(f"expected RGB array (H,W,3), got {rgb.shape}")
        h, w = rgb.shape[:2]
        px = np.empty((h, w, 4), dtype=np.uint8)
        px[..., :3] = np.clip(rgb, 0, 255)
        px[..., 3] = 255
        return cls(w, h, px)

    @classmethod
    def from_pil(cls, img: Image.Image) -> "RasterBuffer":
        rgba = np.asarray(img.convert("RGBA"), dtype=np.uint8)
        return cls(rgba.shape[1], rgba.shape[0], np.ascontiguousarray(rgba))

    @property
    def rgb(self) -> np.ndarray:
        """Copy of the RGB channels, uint8 (H,W,3)."""
        return np.ascontiguousarray(self.pixels[..., :3])

    def to_bytes(self) -> bytes:
        return self.pixels.tobytes()

    def to_pil(self) -> Image.Image:
        return Image.fromarray(self.pixels)  # (H,W,4) uint8 -> RGBA


def check_mask(mask: np.ndarray | None, shape: tuple[int, int]) -> np.ndarray | None:
    """Validate an optional (H,W) mask against an image size; returns it as bool."""
    if mask is None:
        return None
    mask = np.asarray(mask)
    if mask.shape != tuple(shape):
        raise InvalidDimensionsError(f"mask has shape {mask.shape}, expected {tuple(shape)}")
    return mask.astype(bool)
