# -*- coding: utf-8 -*-
"""
Dyelot: Re-dyeing fabric photographs without losing the weave
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: dyelot_autotune.py — One-click parameter heuristics.

The substrate (source fabric) is sampled on a fixed stride, summarised as
SubstrateMetrics, and compared with the target colour's OKLCh to derive a
PipelineParams. There is no randomness and no iteration: the same image,
target and ``max_samples`` always give the same parameters, in time
proportional to ``max_samples``.
"""

import logging
import math
from dataclasses import dataclass
from typing import Union

import numpy as np

from dyelot_colorengine import ColorSpaceEngine, TargetColor
from dyelot_errors import InvalidParameter
from dyelot_params import PipelineParams
from dyelot_raster import RasterImage

__all__ = ["SubstrateMetrics", "sample_substrate", "auto_tune", "auto_fit_intrinsics"]

logger = logging.getLogger(__name__)

DEFAULT_MAX_SAMPLES = 12000


@dataclass(frozen=True, slots=True)
class SubstrateMetrics:
    """OKLab lightness / chroma summary of a strided pixel sample."""
    median_l: float
    p95_l: float
    p5_l: float
    mean_chroma: float
    highlight_coverage: float
    is_glossy: bool
    sample_count: int


def sample_substrate(image: RasterImage, max_samples: int = DEFAULT_MAX_SAMPLES) -> SubstrateMetrics:
    """
    Summarises every ``ceil(N / max_samples)``-th pixel.

    Raises:
        InvalidParameter: If ``max_samples`` is below 1.
    """
    if isinstance(max_samples, bool) or not isinstance(max_samples, (int, np.integer)) or max_samples < 1:
        raise InvalidParameter(f"max_samples must be a positive integer, got {max_samples!r}.")

    stride = max(1, math.ceil(image.pixel_count / max_samples))
    samples = image.rgb_flat()[::stride]
    lch = ColorSpaceEngine.oklab_to_oklch(ColorSpaceEngine.rgb_to_oklab(samples))

    L = lch[:, 0]
    ordered = np.sort(L)
    n = ordered.size
    median_l = float(ordered[n // 2])
    p95_l = float(ordered[min(n - 1, int(math.floor(n * 0.95)))])
    p5_l = float(ordered[int(math.floor(n * 0.05))])
    coverage = float(np.count_nonzero(L >= p95_l)) / n

    return SubstrateMetrics(
        median_l=median_l,
        p95_l=p95_l,
        p5_l=p5_l,
        mean_chroma=float(lch[:, 1].mean()),
        highlight_coverage=coverage,
        is_glossy=coverage > 0.04 and (p95_l - p5_l) > 0.35,
        sample_count=n,
    )


def auto_tune(
    image: RasterImage,
    target: Union[str, TargetColor],
    max_samples: int = DEFAULT_MAX_SAMPLES,
) -> PipelineParams:
    """
    Derives classic recolor parameters from the substrate and the target.

    * Midtone boost rises when the target is much more chromatic than the
      substrate and falls when it is much less chromatic.
    * Tone match and deep dark grow with how much darker the target is than
      the substrate median.
    * Colour density is only used on glossy substrates with mid-range targets.
    * Highlight handling depends on glossiness and relative target brightness.

    Raises:
        InvalidColorFormat: For a malformed target.
        InvalidParameter: If ``max_samples`` is below 1.
    """
    color = TargetColor.parse(target)
    t_l, t_c, _ = color.oklch
    s = sample_substrate(image, max_samples)

    strength = 0.9

    midtone_boost = 0.25
    if t_c > s.mean_chroma * 1.6:
        midtone_boost = min(0.5, 0.25 + (t_c - s.mean_chroma) / 0.6 * 0.15)
    elif t_c < s.mean_chroma * 0.7:
        midtone_boost = max(0.15, 0.25 - (s.mean_chroma - t_c) / 0.5 * 0.12)

    lum_diff = s.median_l - t_l
    tone_match = 0.0
    deep_dark = 0.0
    if lum_diff > 0.02:
        tone_match = min(0.6, lum_diff / 0.5)
        if lum_diff > 0.10:
            deep_dark = min(0.7, (lum_diff - 0.08) / 0.5)

    color_density = 0.0
    if s.is_glossy and 0.35 <= t_l <= 0.75:
        color_density = 0.25
        if t_c > 0.10:
            color_density += 0.1
        color_density = min(0.4, color_density)

    highlight_blend = 0.65
    highlight_hue_blend = 0.5 if s.is_glossy else 0.3
    highlight_neutralize = not (s.is_glossy and t_l < s.median_l)

    highlight_darken = 0.0
    if deep_dark > 0.0 and s.highlight_coverage > 0.03:
        highlight_darken = min(0.45, deep_dark * 0.55 * (1.0 - t_l))

    # Much brighter target: let highlights take more colour.
    if t_l > s.median_l + 0.08:
        highlight_blend = max(0.45, highlight_blend - 0.15)
        highlight_neutralize = False

    params = PipelineParams(
        strength=strength,
        hue_strength=strength,
        protect_highlights=True,
        highlight_blend=highlight_blend,
        highlight_hue_blend=highlight_hue_blend,
        highlight_neutralize=highlight_neutralize,
        midtone_boost=midtone_boost,
        tone_match=tone_match,
        color_density=color_density,
        deep_dark=deep_dark,
        highlight_darken=highlight_darken,
    ).clamped()
    logger.debug("Auto-tune %s for %s -> %s", s, color.hex, params.to_dict())
    return params


def auto_fit_intrinsics(
    image: RasterImage,
    target: Union[str, TargetColor],
    max_samples: int = DEFAULT_MAX_SAMPLES,
) -> PipelineParams:
    """Intrinsics parameters from the classic heuristics (preserve weight = highlight blend)."""
    tuned = auto_tune(image, target, max_samples)
    return PipelineParams(
        strength=tuned.strength,
        hue_strength=tuned.hue_strength,
        protect_highlights=tuned.protect_highlights,
        highlight_preserve_weight=tuned.highlight_blend,
        highlight_hue_blend=tuned.highlight_hue_blend,
        highlight_neutralize=tuned.highlight_neutralize,
    )
