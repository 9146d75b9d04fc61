# -*- coding: utf-8 -*-
"""
Dyelot: Re-dyeing fabric photographs without losing the weave
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: dyelot_postadjust.py — Post-recolor adjustments and tonemapping.

Brightness, saturation and hue operators work in CIELAB (D65) and preserve
alpha. Each returns a fresh exact copy at its identity value (0, 1, 0), so
adjustment sliders at rest never alter the pixels.

The ACES filmic curve ``y = x(ax + b) / (x(cx + d) + e)`` (Narkowicz fit)
maps linear light to [0, 1]; it is used by the intrinsics recolor engine.
"""

import logging
import math
from dataclasses import dataclass
from typing import Union

import numpy as np
from numba import njit

from dyelot_colorengine import ColorSpaceEngine
from dyelot_raster import RasterImage

__all__ = [
    "PostAdjustments",
    "adjust_brightness",
    "adjust_saturation",
    "adjust_hue",
    "apply_adjustments",
    "aces_scalar",
    "aces_tonemap",
    "apply_tonemap_rgb",
]

logger = logging.getLogger(__name__)

ACES_A = 2.51
ACES_B = 0.03
ACES_C = 2.43
ACES_D = 0.59
ACES_E = 0.14


@njit(cache=True, fastmath=True, inline='always')
def aces_scalar(x: float) -> float:
    if x < 0.0:
        x = 0.0
    y = (x * (ACES_A * x + ACES_B)) / (x * (ACES_C * x + ACES_D) + ACES_E)
    return min(1.0, max(0.0, y))


@njit(cache=True, fastmath=True)
def _aces_array(values: np.ndarray) -> np.ndarray:
    out = np.empty_like(values)
    for i in range(values.size):
        out[i] = aces_scalar(values[i])
    return out


def aces_tonemap(x: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """ACES filmic tonemap of linear values (scalar or any-shaped array)."""
    arr = np.asarray(x, dtype=np.float64)
    out = _aces_array(np.ascontiguousarray(arr.ravel())).reshape(arr.shape)
    return float(out) if out.ndim == 0 else out


def apply_tonemap_rgb(rgb: np.ndarray) -> np.ndarray:
    """Per-channel ACES tonemap of a (..., 3) linear RGB array."""
    rgb_arr = np.asarray(rgb, dtype=np.float64)
    if rgb_arr.shape[-1] != 3:
        raise ValueError(f"Expected a trailing RGB axis, got shape {rgb_arr.shape}")
    return aces_tonemap(rgb_arr)


def _is_identity(value: float, identity: float) -> bool:
    return not math.isfinite(value) or value == identity


def adjust_brightness(image: RasterImage, delta_l: float) -> RasterImage:
    """``L' = clamp(L + delta_l, 0, 100)``."""
    if _is_identity(delta_l, 0.0):
        return image.copy()
    lab = ColorSpaceEngine.rgb_to_lab(image.rgb_flat())
    lab[:, 0] = np.clip(lab[:, 0] + delta_l, 0.0, 100.0)
    return image.with_rgb(ColorSpaceEngine.lab_to_rgb(lab))


def adjust_saturation(image: RasterImage, factor: float) -> RasterImage:
    """Scales a* and b* by ``factor`` (negative factors act as 0)."""
    if _is_identity(factor, 1.0):
        return image.copy()
    lab = ColorSpaceEngine.rgb_to_lab(image.rgb_flat())
    lab[:, 1:] *= max(0.0, factor)
    return image.with_rgb(ColorSpaceEngine.lab_to_rgb(lab))


def adjust_hue(image: RasterImage, degrees: float) -> RasterImage:
    """Rotates the CIELAB hue angle by ``degrees``; chroma is kept."""
    if _is_identity(degrees, 0.0) or degrees % 360.0 == 0.0:
        return image.copy()
    lab = ColorSpaceEngine.rgb_to_lab(image.rgb_flat())
    chroma = np.hypot(lab[:, 1], lab[:, 2])
    hue = np.mod(np.degrees(np.arctan2(lab[:, 2], lab[:, 1])) + degrees, 360.0)
    rad = np.radians(hue)
    lab[:, 1] = chroma * np.cos(rad)
    lab[:, 2] = chroma * np.sin(rad)
    return image.with_rgb(ColorSpaceEngine.lab_to_rgb(lab))


@dataclass(frozen=True, slots=True)
class PostAdjustments:
    brightness: float = 0.0
    saturation: float = 1.0
    hue: float = 0.0

    @property
    def is_identity(self) -> bool:
        return (
            _is_identity(self.brightness, 0.0)
            and _is_identity(self.saturation, 1.0)
            and (_is_identity(self.hue, 0.0) or self.hue % 360.0 == 0.0)
        )


def apply_adjustments(image: RasterImage, adjustments: PostAdjustments) -> RasterImage:
    """Brightness, then saturation, then hue; identity steps are skipped."""
    if adjustments.is_identity:
        return image.copy()
    logger.debug("Post adjustments %s", adjustments)
    out = image
    if not _is_identity(adjustments.brightness, 0.0):
        out = adjust_brightness(out, adjustments.brightness)
    if not _is_identity(adjustments.saturation, 1.0):
        out = adjust_saturation(out, adjustments.saturation)
    out = adjust_hue(out, adjustments.hue)
    return out
