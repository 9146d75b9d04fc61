# -*- coding: utf-8 -*-
"""
Dyelot: Re-dyeing fabric photographs without losing the weave
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: dyelot_texture.py — Neutral fabric textures in CIELAB.

A neutral texture keeps the per-pixel lightness variation of the weave and
drops all chroma (a = b = 0). Only a global lightness offset (or gain) is
applied, so relative lightness across the image is untouched apart from
clamping to [0, 100].

``recolor_texture`` dyes such a texture: it places the mean lightness on
the target's L* and sets every pixel's a*, b* to the target's.
"""

import logging
from typing import Optional, Union

import numpy as np

from dyelot_colorengine import ColorSpaceEngine, TargetColor
from dyelot_raster import RasterImage

__all__ = ["extract_neutral_texture", "recolor_texture", "neutralize_to_gray"]

logger = logging.getLogger(__name__)


def _inner_region(width: int, height: int, margin_percent: float) -> np.ndarray:
    """Flat boolean mask of pixels at least ``margin`` pixels away from every edge."""
    frac = min(1.0, max(0.0, float(margin_percent))) if np.isfinite(margin_percent) else 0.0
    margin = int(np.floor(min(width, height) * frac))
    inner = np.zeros((height, width), dtype=bool)
    inner[margin:height - margin, margin:width - margin] = True
    return inner.ravel()


def _neutral_to_image(image: RasterImage, L: np.ndarray) -> RasterImage:
    lab = np.zeros((L.size, 3), dtype=np.float64)
    lab[:, 0] = np.clip(L, 0.0, 100.0)
    return image.with_rgb(ColorSpaceEngine.lab_to_rgb(lab))


def extract_neutral_texture(
    image: RasterImage, target_lightness: float = 65.0, margin_percent: float = 0.03
) -> RasterImage:
    """
    Removes all chroma and re-centres mean L* on ``target_lightness``.

    The mean is taken over the region inside the border margin
    (``floor(min(w, h) * margin_percent)`` pixels), ignoring fully
    transparent pixels. The offset is then applied to every pixel, border
    included. With no usable sample pixels the offset is 0.

    Args:
        image: Source raster (never modified).
        target_lightness: Desired mean CIE L* (0..100).
        margin_percent: Border fraction excluded from the mean.

    Returns:
        New raster with a = b = 0 everywhere and alpha preserved.
    """
    lab = ColorSpaceEngine.rgb_to_lab(image.rgb_flat())
    sample = _inner_region(image.width, image.height, margin_percent) & (image.alpha_flat() > 0)

    if np.any(sample):
        delta_l = float(target_lightness) - float(lab[sample, 0].mean())
    else:
        logger.warning("Neutral texture sample region is empty; lightness left unchanged.")
        delta_l = 0.0

    logger.debug("Neutral texture offset dL=%.3f", delta_l)
    return _neutral_to_image(image, lab[:, 0] + delta_l)


def recolor_texture(
    texture: RasterImage,
    target: Union[str, TargetColor],
    lightness_factor: float = 1.0,
) -> RasterImage:
    """
    Dyes a neutral texture with a flat CIELAB target colour.

    ``L' = L_target + lightness_factor * (L - mean L)`` with the mean taken
    over non-transparent pixels; ``a'`` and ``b'`` are the target's.
    A factor of 1 keeps the weave contrast exactly.

    Raises:
        InvalidColorFormat: If ``target`` is not a valid hex colour.
    """
    color = TargetColor.parse(target)
    lab = ColorSpaceEngine.rgb_to_lab(texture.rgb_flat())

    visible = texture.alpha_flat() > 0
    mean_l = float(lab[visible, 0].mean()) if np.any(visible) else float(lab[:, 0].mean())

    out = np.empty_like(lab)
    out[:, 0] = np.clip(color.lab[0] + lightness_factor * (lab[:, 0] - mean_l), 0.0, 100.0)
    out[:, 1] = color.lab[1]
    out[:, 2] = color.lab[2]
    return texture.with_rgb(ColorSpaceEngine.lab_to_rgb(out))


def neutralize_to_gray(
    image: RasterImage,
    target_lightness: float = 58.0,
    chroma_max: float = 10.0,
    max_dim: Optional[int] = None,
) -> RasterImage:
    """
    Gain-based neutralisation: ``L' = clamp(L * target / mean_gray_L)``.

    The mean is taken over near-gray pixels (CIELAB chroma below
    ``chroma_max``). Without any near-gray pixel the gain is 1.
    """
    if max_dim is not None:
        image = image.downscaled(max_dim)
    lab = ColorSpaceEngine.rgb_to_lab(image.rgb_flat())
    gray = np.hypot(lab[:, 1], lab[:, 2]) < chroma_max

    mean_l = float(lab[gray, 0].mean()) if np.any(gray) else float(target_lightness)
    gain = float(target_lightness) / mean_l if mean_l > 0 else 1.0
    return _neutral_to_image(image, lab[:, 0] * gain)
