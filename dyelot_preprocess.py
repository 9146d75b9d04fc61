# -*- coding: utf-8 -*-
"""
Dyelot: Re-dyeing fabric photographs without losing the weave
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: dyelot_preprocess.py — White balance and exposure normalisation.

Single pass, three stages:

1. Gray-point sampling: near-neutral pixels (OKLCh chroma below
   ``gray_chroma_max``) that are not among the brightest 1% by linear
   luminance give per-channel linear means.
2. White balance: gray-world gains ``mean_avg / mean_c``, divided by their
   BT.709 weighted sum so the overall brightness is unchanged.
3. Exposure: a multiplicative scalar ``s`` is moved toward the target median
   OKLab lightness of diffuse pixels with a damped update, for a fixed number
   of rounds.

The highlight / diffuse masks built for stage 3 are returned for reuse by the
recolor engines.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Tuple

import numpy as np

from dyelot_colorengine import (
    BT709_WEIGHTS,
    ColorSpaceEngine,
    encode_linear_u8,
    srgb_to_linear,
)
from dyelot_errors import EmptySampleSet
from dyelot_masks import HighlightMasks, percentile, soften_mask
from dyelot_raster import RasterImage

__all__ = ["PreprocessOptions", "PreprocessResult", "preprocess_image"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PreprocessOptions:
    highlight_percentile: float = 0.985
    target_lightness: float = 0.60
    exposure_rounds: int = 2
    gray_chroma_max: float = 0.03
    highlight_exclusion: float = 0.99
    diffuse_low_percentile: float = 0.05
    soft_radius: int = 3
    max_dim: Optional[int] = None

    def clamped(self) -> "PreprocessOptions":
        return replace(
            self,
            highlight_percentile=min(0.999, max(0.97, float(self.highlight_percentile))),
            target_lightness=min(1.0, max(0.0, float(self.target_lightness))),
            exposure_rounds=max(0, int(self.exposure_rounds)),
            gray_chroma_max=max(0.0, float(self.gray_chroma_max)),
            highlight_exclusion=min(1.0, max(0.0, float(self.highlight_exclusion))),
            diffuse_low_percentile=min(1.0, max(0.0, float(self.diffuse_low_percentile))),
            soft_radius=max(0, int(self.soft_radius)),
        )


@dataclass(frozen=True, slots=True)
class PreprocessResult:
    image: RasterImage
    wb_gains: Tuple[float, float, float]
    exposure_gain: float
    masks: HighlightMasks

    def to_dict(self) -> Dict[str, Any]:
        return {
            "wbGains": list(self.wb_gains),
            "exposureGain": self.exposure_gain,
            "masks": self.masks.to_dict(),
        }


def _white_balance_gains(
    rgb8: np.ndarray, linear: np.ndarray, lum: np.ndarray, opts: PreprocessOptions
) -> np.ndarray:
    lch = ColorSpaceEngine.oklab_to_oklch(ColorSpaceEngine.rgb_to_oklab(rgb8))
    thr_high = percentile(lum, opts.highlight_exclusion)
    gray = (lch[:, 1] < opts.gray_chroma_max) & (lum < thr_high)

    if np.any(gray):
        means = linear[gray].mean(axis=0)
    else:
        logger.debug("No near-neutral pixels; white balance left neutral.")
        means = np.ones(3)
    means = np.where(means == 0.0, 1.0, means)

    gains = means.mean() / means
    return gains / float(gains @ BT709_WEIGHTS)


def _median_diffuse_lightness(linear: np.ndarray, diffuse: np.ndarray, s: float) -> float:
    """Median OKLab L of diffuse pixels after 8-bit encoding at exposure ``s``."""
    if not np.any(diffuse):
        raise EmptySampleSet("Diffuse mask is empty.")
    encoded = encode_linear_u8(linear[diffuse] * s)
    L = np.sort(ColorSpaceEngine.rgb_to_oklab(encoded)[:, 0])
    return float(L[L.size // 2])


def _exposure_gain(linear: np.ndarray, diffuse: np.ndarray, opts: PreprocessOptions) -> float:
    s = 1.0
    try:
        for _ in range(opts.exposure_rounds):
            med = _median_diffuse_lightness(linear, diffuse, s)
            if med <= 1e-6:
                break
            ratio = opts.target_lightness / med
            s *= min(1.3, max(0.7, ratio ** 1.2))
    except EmptySampleSet:
        logger.warning("No diffuse pixels for exposure estimate; keeping exposure at 1.0.")
        return 1.0
    return s


def preprocess_image(
    image: RasterImage, options: Optional[PreprocessOptions] = None
) -> PreprocessResult:
    """
    Applies gray-world white balance and exposure normalisation.

    Args:
        image: Source raster (never modified).
        options: Stage settings; clamped before use.

    Returns:
        PreprocessResult with the corrected image (alpha unchanged), gains
        and the binary highlight, soft highlight and binary diffuse masks.
    """
    opts = (options or PreprocessOptions()).clamped()
    if opts.max_dim is not None:
        image = image.downscaled(opts.max_dim)

    rgb8 = image.rgb_flat().astype(np.float64)
    linear = srgb_to_linear(rgb8)
    lum = linear @ BT709_WEIGHTS

    gains = _white_balance_gains(rgb8, linear, lum, opts)
    linear = linear * gains

    lum2 = linear @ BT709_WEIGHTS
    highlight = lum2 >= percentile(lum2, opts.highlight_percentile)
    highlight_binary = np.where(highlight, 255, 0).astype(np.uint8)
    highlight_soft = soften_mask(highlight_binary, image.width, image.height, opts.soft_radius)
    diffuse = ~highlight & (lum2 > percentile(lum2, opts.diffuse_low_percentile))
    diffuse_binary = np.where(diffuse, 255, 0).astype(np.uint8)

    s = _exposure_gain(linear, diffuse, opts)
    logger.debug(
        "Preprocess gains=(%.4f, %.4f, %.4f) exposure=%.4f", gains[0], gains[1], gains[2], s
    )

    out = image.with_rgb(encode_linear_u8(linear * s))
    return PreprocessResult(
        image=out,
        wb_gains=(float(gains[0]), float(gains[1]), float(gains[2])),
        exposure_gain=float(s),
        masks=HighlightMasks(highlight_binary, highlight_soft, diffuse_binary),
    )
