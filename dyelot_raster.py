# -*- coding: utf-8 -*-
"""
Dyelot: Re-dyeing fabric photographs without losing the weave
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: dyelot_raster.py — RGBA 8-bit raster container.

A RasterImage owns a C-contiguous ``uint8`` array of shape (height, width, 4).
Every engine in this package reads from one RasterImage and returns a new one;
nothing writes into a caller's buffer. Alpha is carried through untouched by
all colour operations.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np
from PIL import Image

from dyelot_errors import InvalidParameter

__all__ = ["RasterImage"]


@dataclass(frozen=True, eq=False)
class RasterImage:
    """Row-major RGBA raster (4 bytes per pixel, straight alpha)."""
    width: int
    height: int
    pixels: np.ndarray

    def __post_init__(self) -> None:
        if self.width < 1 or self.height < 1:
            raise InvalidParameter(
                f"Raster dimensions must be positive, got {self.width}x{self.height}."
            )
        expected = (self.height, self.width, 4)
        if self.pixels.shape != expected:
            raise InvalidParameter(
                f"Pixel buffer shape {self.pixels.shape} does not match {expected}."
            )
        if self.pixels.dtype != np.uint8:
            raise InvalidParameter(f"Pixel buffer must be uint8, got {self.pixels.dtype}.")

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------
    @classmethod
    def from_bytes(cls, width: int, height: int, data: bytes | bytearray | memoryview) -> RasterImage:
        """Build from a packed RGBA byte buffer of length ``width*height*4``."""
        buf = np.frombuffer(bytes(data), dtype=np.uint8)
        if buf.size != width * height * 4:
            raise InvalidParameter(
                f"Buffer holds {buf.size} bytes, expected {width * height * 4} "
                f"for a {width}x{height} RGBA image."
            )
        return cls(width, height, buf.reshape(height, width, 4).copy())

    @classmethod
    def from_array(cls, array: np.ndarray) -> RasterImage:
        """
        Build from an (H, W, 4) or (H, W, 3) array.

        Three-channel input gets an opaque alpha channel. Values are copied,
        the caller's array is never aliased.
        """
        arr = np.asarray(array)
        if arr.ndim != 3 or arr.shape[2] not in (3, 4):
            raise InvalidParameter(f"Expected (H, W, 3|4) array, got shape {arr.shape}.")
        if arr.dtype != np.uint8:
            arr = np.clip(np.rint(arr), 0, 255).astype(np.uint8)
        h, w = arr.shape[:2]
        out = np.empty((h, w, 4), dtype=np.uint8)
        out[..., :3] = arr[..., :3]
        out[..., 3] = arr[..., 3] if arr.shape[2] == 4 else 255
        return cls(w, h, out)

    @classmethod
    def from_pil(cls, image: Image.Image) -> RasterImage:
        """Build from a Pillow image (any mode convertible to RGBA)."""
        return cls.from_array(np.asarray(image.convert("RGBA")))

    @classmethod
    def blank(cls, width: int, height: int, rgba: Sequence[int] = (0, 0, 0, 255)) -> RasterImage:
        """Uniform image filled with a single RGBA value."""
        if len(rgba) != 4:
            raise InvalidParameter(f"Fill colour needs 4 components, got {len(rgba)}.")
        pixels = np.empty((height, width, 4), dtype=np.uint8)
        pixels[...] = np.asarray(rgba, dtype=np.uint8)
        return cls(width, height, pixels)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def shape(self) -> Tuple[int, int]:
        """(height, width)"""
        return self.height, self.width

    def rgb_flat(self) -> np.ndarray:
        """(N, 3) uint8 view of the colour channels."""
        return self.pixels.reshape(-1, 4)[:, :3]

    def alpha_flat(self) -> np.ndarray:
        """(N,) uint8 view of the alpha channel."""
        return self.pixels.reshape(-1, 4)[:, 3]

    def rgba_flat(self) -> np.ndarray:
        """(N, 4) uint8 view of the full buffer."""
        return self.pixels.reshape(-1, 4)

    def to_bytes(self) -> bytes:
        return self.pixels.tobytes()

    def to_pil(self) -> Image.Image:
        return Image.fromarray(self.pixels)

    def copy(self) -> RasterImage:
        return RasterImage(self.width, self.height, self.pixels.copy())

    def with_rgb(self, rgb: np.ndarray) -> RasterImage:
        """
        New image with replacement colour channels and this image's alpha.

        Args:
            rgb: (N, 3) or (H, W, 3) values in 0..255. Floats are rounded.
        """
        rgb_arr = np.asarray(rgb)
        if rgb_arr.size != self.pixel_count * 3:
            raise InvalidParameter(
                f"RGB payload has {rgb_arr.size} values, expected {self.pixel_count * 3}."
            )
        if rgb_arr.dtype != np.uint8:
            rgb_arr = np.clip(np.rint(rgb_arr), 0, 255).astype(np.uint8)
        out = np.empty_like(self.pixels)
        out[..., :3] = rgb_arr.reshape(self.height, self.width, 3)
        out[..., 3] = self.pixels[..., 3]
        return RasterImage(self.width, self.height, out)

    def downscaled(self, max_dim: int) -> RasterImage:
        """
        Area-averaged downscale so the longer side is at most ``max_dim``.

        Images already within the limit are returned as a copy.
        """
        if max_dim < 1:
            raise InvalidParameter(f"max_dim must be >= 1, got {max_dim}.")
        scale = min(1.0, max_dim / max(self.width, self.height))
        if scale >= 1.0:
            return self.copy()
        w = max(1, int(round(self.width * scale)))
        h = max(1, int(round(self.height * scale)))
        resized = self.to_pil().resize((w, h), Image.Resampling.BOX)
        return RasterImage.from_pil(resized)

    def __repr__(self) -> str:
        return f"RasterImage({self.width}x{self.height}, RGBA)"
