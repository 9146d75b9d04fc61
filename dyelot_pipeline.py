# -*- coding: utf-8 -*-
"""
Dyelot: Re-dyeing fabric photographs without losing the weave
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: dyelot_pipeline.py — End-to-end recolor data flow.

raw image -> preprocess (white balance, exposure, masks)
          -> [neutral texture] -> [auto-tune]
          -> recolor (classic | intrinsics) with the preprocess masks
          -> post adjustments

Each stage is a separate call into its own module; a caller that needs to
cancel between stages can drive those modules directly instead of using
``run_pipeline``.
"""

import logging
from typing import Any, Mapping, NamedTuple, Optional, Union

from dyelot_autotune import auto_fit_intrinsics, auto_tune
from dyelot_colorengine import TargetColor
from dyelot_errors import InvalidParameter
from dyelot_masks import HighlightMasks
from dyelot_params import PipelineParams
from dyelot_postadjust import PostAdjustments, apply_adjustments
from dyelot_preprocess import PreprocessOptions, PreprocessResult, preprocess_image
from dyelot_raster import RasterImage
from dyelot_recolor import RecolorAlgorithm, RecolorStats, recolor
from dyelot_texture import extract_neutral_texture

__all__ = ["PipelineResult", "run_pipeline"]

logger = logging.getLogger(__name__)


class PipelineResult(NamedTuple):
    image: RasterImage
    stats: RecolorStats
    params: PipelineParams
    preprocess: Optional[PreprocessResult]


def _resolve_params(
    working: RasterImage,
    color: TargetColor,
    params: Union[PipelineParams, Mapping[str, Any], None],
    algorithm: RecolorAlgorithm,
    auto: bool,
) -> PipelineParams:
    if not auto:
        if params is None:
            return PipelineParams().clamped()
        if isinstance(params, PipelineParams):
            return params.clamped()
        return PipelineParams.from_dict(params).clamped()

    if isinstance(params, PipelineParams):
        raise InvalidParameter("With auto=True, pass parameter overrides as a mapping.")
    fit = auto_fit_intrinsics if algorithm is RecolorAlgorithm.INTRINSICS else auto_tune
    tuned = fit(working, color)
    if params:
        tuned = PipelineParams.from_dict(tuned.to_dict(), **dict(params))
    return tuned.clamped()


def run_pipeline(
    image: RasterImage,
    target: Union[str, TargetColor],
    *,
    params: Union[PipelineParams, Mapping[str, Any], None] = None,
    algorithm: Union[str, RecolorAlgorithm] = RecolorAlgorithm.CLASSIC,
    auto: bool = False,
    preprocess: bool = True,
    neutralize: bool = False,
    neutral_lightness: float = 65.0,
    adjustments: Optional[PostAdjustments] = None,
    preprocess_options: Optional[PreprocessOptions] = None,
) -> PipelineResult:
    """
    Runs the full recolor flow on one image.

    Args:
        image: Source raster (never modified).
        target: Target hex colour or TargetColor.
        params: Explicit parameters, or overrides on top of auto-tuned ones.
        algorithm: ``"classic"`` or ``"intrinsics"``.
        auto: Derive parameters from the (preprocessed) image and target.
        preprocess: Run white balance / exposure and reuse its masks.
        neutralize: Replace the image by its neutral texture before recoloring.
        neutral_lightness: Mean CIE L* of the neutral texture.
        adjustments: Brightness / saturation / hue applied last.
        preprocess_options: Settings for the preprocess stage.

    Raises:
        InvalidColorFormat: For a malformed target, before any pixel work.
        InvalidParameter: For an unknown algorithm or invalid parameters.
    """
    color = TargetColor.parse(target)
    try:
        algo = RecolorAlgorithm(algorithm)
    except ValueError as exc:
        raise InvalidParameter(f"Unknown recolor algorithm {algorithm!r}.") from exc

    pre: Optional[PreprocessResult] = None
    working = image
    masks: Optional[HighlightMasks] = None
    if preprocess:
        pre = preprocess_image(image, preprocess_options)
        working = pre.image
        masks = pre.masks

    if neutralize:
        working = extract_neutral_texture(working, neutral_lightness)

    resolved = _resolve_params(working, color, params, algo, auto)
    result = recolor(working, color, resolved, algo, masks)

    out = result.image
    if adjustments is not None:
        out = apply_adjustments(out, adjustments)

    logger.info(
        "Recolored %dx%d image to %s with %s (highlights=%d)",
        image.width, image.height, color.hex, algo.value, result.stats.highlight_pixels,
    )
    return PipelineResult(out, result.stats, resolved, pre)
