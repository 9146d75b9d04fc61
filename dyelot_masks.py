# -*- coding: utf-8 -*-
"""
Dyelot: Re-dyeing fabric photographs without losing the weave
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: dyelot_masks.py — Highlight mask construction.

Masks are flat arrays with exactly ``width * height`` entries in row-major
pixel order:

* binary masks are ``uint8`` with values 0 or 255,
* soft masks are ``float64`` weights in [0, 1].

The binary highlight mask marks pixels at or above a luminance percentile and
is cleaned with a 3x3 morphological opening. Pixels on the one-pixel border
ring have no full 3x3 neighbourhood and are always 0 after the opening.
"""

from typing import NamedTuple, Optional

import numpy as np
from scipy.ndimage import binary_dilation, binary_erosion, uniform_filter1d

from dyelot_colorengine import luminance
from dyelot_errors import InvalidParameter, MaskSizeMismatch
from dyelot_raster import RasterImage

__all__ = [
    "HighlightMasks",
    "percentile",
    "build_highlight_mask",
    "build_luminance_mask",
    "soften_mask",
]

_STRUCTURE_3X3 = np.ones((3, 3), dtype=bool)


class HighlightMasks(NamedTuple):
    """Highlight / diffuse masks shared between preprocessing and recoloring."""
    highlight_binary: np.ndarray
    highlight_soft: Optional[np.ndarray] = None
    diffuse_binary: Optional[np.ndarray] = None

    def validate(self, width: int, height: int) -> "HighlightMasks":
        """Raise MaskSizeMismatch unless every present mask has width*height entries."""
        expected = width * height
        for name in self._fields:
            mask = getattr(self, name)
            if mask is not None and np.size(mask) != expected:
                raise MaskSizeMismatch(name, int(np.size(mask)), expected)
        return self

    def weights(self) -> np.ndarray:
        """Per-pixel highlight weight: the soft mask if present, else binary/255."""
        if self.highlight_soft is not None:
            return np.clip(np.asarray(self.highlight_soft, dtype=np.float64).ravel(), 0.0, 1.0)
        return (np.asarray(self.highlight_binary).ravel() == 255).astype(np.float64)

    def binary_flags(self) -> np.ndarray:
        """Boolean view of the binary highlight mask."""
        return np.asarray(self.highlight_binary).ravel() == 255

    def to_dict(self) -> dict:
        return {
            "highlightBinary": self.highlight_binary,
            "highlightSoft": self.highlight_soft,
            "diffuseBinary": self.diffuse_binary,
        }


def percentile(values: np.ndarray, p: float) -> float:
    """
    Order statistic at fraction ``p`` of the sorted values.

    The index is ``floor(n * p)`` clamped to ``[0, n - 1]``, so ``p = 1``
    returns the maximum. An empty input yields 0.0.
    """
    flat = np.asarray(values, dtype=np.float64).ravel()
    n = flat.size
    if n == 0:
        return 0.0
    idx = min(max(int(np.floor(n * p)), 0), n - 1)
    return float(np.partition(flat, idx)[idx])


def _check_fraction(p: float, name: str) -> float:
    if not np.isfinite(p) or not 0.0 < p < 1.0:
        raise InvalidParameter(f"{name} must lie strictly between 0 and 1, got {p!r}.")
    return float(p)


def _to_u8(flags: np.ndarray) -> np.ndarray:
    return np.where(flags, 255, 0).astype(np.uint8).ravel()


def build_highlight_mask(
    image: RasterImage, percentile_threshold: float = 0.97, open_mask: bool = True
) -> np.ndarray:
    """
    Binary highlight mask from BT.709 luminance on 8-bit sRGB values.

    Args:
        image: Source raster.
        percentile_threshold: Fraction in (0, 1); pixels whose luminance is
            at or above this percentile are highlights.
        open_mask: Apply one 3x3 erosion followed by one 3x3 dilation.

    Returns:
        (width*height,) uint8 array of 0/255.

    Raises:
        InvalidParameter: If the percentile is outside (0, 1).
    """
    p = _check_fraction(percentile_threshold, "percentile")
    lum = luminance(image.rgb_flat())
    thr = percentile(lum, p)
    flags = (lum >= thr).reshape(image.height, image.width)

    if open_mask:
        eroded = binary_erosion(flags, structure=_STRUCTURE_3X3, border_value=0)
        flags = binary_dilation(eroded, structure=_STRUCTURE_3X3)
        flags[0, :] = False
        flags[-1, :] = False
        flags[:, 0] = False
        flags[:, -1] = False

    return _to_u8(flags)


def build_luminance_mask(
    lum: np.ndarray, width: int, height: int, percentile_threshold: float = 0.97
) -> np.ndarray:
    """Threshold-only highlight mask over precomputed luminance (no opening)."""
    p = _check_fraction(percentile_threshold, "percentile")
    flat = np.asarray(lum, dtype=np.float64).ravel()
    if flat.size != width * height:
        raise MaskSizeMismatch("luminance", flat.size, width * height)
    return _to_u8(flat >= percentile(flat, p))


def soften_mask(mask: np.ndarray, width: int, height: int, radius: int = 3) -> np.ndarray:
    """
    Separable box blur of a 0/255 mask into [0, 1] weights.

    A horizontal pass is followed by a vertical pass, each a window of
    ``2 * radius + 1`` samples with edge samples repeated outside the image.
    ``radius = 0`` only rescales the mask.

    Raises:
        InvalidParameter: If radius is not a non-negative integer.
        MaskSizeMismatch: If the mask does not have width*height entries.
    """
    if isinstance(radius, bool) or not isinstance(radius, (int, np.integer)) or radius < 0:
        raise InvalidParameter(f"radius must be a non-negative integer, got {radius!r}.")
    flat = np.asarray(mask).ravel()
    if flat.size != width * height:
        raise MaskSizeMismatch("mask", flat.size, width * height)

    soft = flat.astype(np.float64).reshape(height, width) / 255.0
    if radius > 0:
        size = 2 * int(radius) + 1
        soft = uniform_filter1d(soft, size=size, axis=1, mode="nearest")
        soft = uniform_filter1d(soft, size=size, axis=0, mode="nearest")
    return np.clip(soft, 0.0, 1.0).ravel()
