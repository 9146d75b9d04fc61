# -*- coding: utf-8 -*-
"""
Dyelot: Re-dyeing fabric photographs without losing the weave
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: dyelot_recolor.py — Recolor engines.

Two interchangeable algorithms share one contract
(image, target, params, masks) -> RecolorResult(image, stats):

* CLASSIC: per-pixel OKLCh blend toward the target hue and chroma, shaped
  by lightness (shadow softening, midtone boost, colour density, soft chroma
  cap), reverted partially inside highlights, with optional lightness pulls
  (tone match, deep dark).
* INTRINSICS: Lambertian albedo / shading split. Albedo = linear / luminance
  is recoloured in OKLCh, recomposed with the original shading, and
  highlights are blended back toward the original linear pixel.

Algorithms are selected through ``RecolorAlgorithm`` and a dispatch table, so
callers never branch on the algorithm themselves.

Per-pixel work runs in Numba ``prange`` kernels. Every weighting curve is a
function of the pixel's own lightness and mask weight only; statistics are
reduced afterwards from per-pixel arrays in index order.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Mapping, NamedTuple, Tuple, Union

import numpy as np
from numba import njit, prange

from dyelot_colorengine import (
    BT709_WEIGHTS,
    TargetColor,
    _clamp_oklch,
    _encode_u8,
    _lch_to_oklab,
    _linear_to_oklab,
    _oklab_to_lch,
    _oklab_to_linear,
    _rgb8_to_oklab,
    srgb_to_linear,
)
from dyelot_errors import InvalidParameter
from dyelot_masks import HighlightMasks, build_highlight_mask, build_luminance_mask
from dyelot_params import PipelineParams
from dyelot_postadjust import aces_scalar
from dyelot_raster import RasterImage

__all__ = [
    "RecolorAlgorithm",
    "RecolorStats",
    "RecolorResult",
    "recolor",
    "recolor_classic",
    "recolor_intrinsics",
]

logger = logging.getLogger(__name__)

ParamsLike = Union[PipelineParams, Mapping[str, Any], None]
MasksLike = Union[HighlightMasks, np.ndarray, None]


class RecolorAlgorithm(str, Enum):
    CLASSIC = "classic"
    INTRINSICS = "intrinsics"


@dataclass(frozen=True, slots=True)
class RecolorStats:
    mean_l: float
    mean_chroma_before: float
    mean_chroma_after: float
    highlight_pixels: int

    def to_dict(self) -> Dict[str, Union[float, int]]:
        return {
            "meanL": self.mean_l,
            "meanChromaBefore": self.mean_chroma_before,
            "meanChromaAfter": self.mean_chroma_after,
            "highlightPixels": self.highlight_pixels,
        }


class RecolorResult(NamedTuple):
    image: RasterImage
    stats: RecolorStats


# =============================================================================
# Kernels
# =============================================================================

@njit(cache=True, fastmath=True, inline='always')
def _hue_delta(target_hue: float, hue: float) -> float:
    """Shortest signed angle from ``hue`` to ``target_hue`` in [-180, 180]."""
    d = target_hue - hue
    if d > 180.0:
        d -= 360.0
    if d < -180.0:
        d += 360.0
    return d

@njit(cache=True, fastmath=True, inline='always')
def _wrap_hue(h: float) -> float:
    h = h % 360.0
    if h < 0.0:
        h += 360.0
    return h

@njit(cache=True, fastmath=True, parallel=True)
def _classic_kernel(
    rgb: np.ndarray, weights: np.ndarray, is_highlight: np.ndarray,
    t_l: float, t_c: float, t_h: float,
    strength: float, hue_strength: float, soft_limit: float,
    highlight_blend: float, highlight_hue_blend: float, neutralize: bool,
    midtone_boost: float, tone_match: float, color_density: float,
    deep_dark: float, highlight_darken: float,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    n = rgb.shape[0]
    out = np.empty((n, 3), dtype=np.float64)
    l_in = np.empty(n, dtype=np.float64)
    c_in = np.empty(n, dtype=np.float64)
    c_out = np.empty(n, dtype=np.float64)

    for i in prange(n):
        L, a, b = _rgb8_to_oklab(rgb[i, 0], rgb[i, 1], rgb[i, 2])
        _, c_before, h_before = _oklab_to_lch(L, a, b)
        d_hue = _hue_delta(t_h, h_before)
        local_hue = hue_strength

        c = c_before * (1.0 - strength) + t_c * strength
        if L < 0.25:
            c *= (L / 0.25) * 0.85
        mid = max(0.0, 1.0 - abs((L - 0.5) / 0.35))
        if midtone_boost > 0.0:
            c *= 1.0 + midtone_boost * mid
        if color_density > 0.0:
            dens = max(0.0, 1.0 - abs((L - 0.65) / 0.18))
            c *= 1.0 + color_density * 0.6 * dens
        cap = min(0.26, soft_limit + 0.06 * mid)
        if c > cap:
            c = cap + (c - cap) * 0.3

        w = weights[i]
        if w > 0.0:
            hb = highlight_blend * w
            c = c * (1.0 - hb) + c_before * hb
            local_hue *= 1.0 - highlight_hue_blend * w
            if neutralize:
                c = min(c, c_before * (0.25 + 0.5 * (1.0 - w)))

        mixed = L
        if tone_match > 0.0:
            ramp = min(1.0, max(0.0, (L - 0.05) / 0.10))
            atten = 1.0
            if w > 0.0:
                atten = 0.4 * (1.0 - 0.6 * w)
            upper_mid = max(0.0, 1.0 - abs((L - 0.7) / 0.2))
            shaping = 0.5 + 0.5 * upper_mid
            mixed = L + tone_match * ramp * atten * shaping * (t_l - L)

        # Full pull outside the highlight mask, highlight_darken share inside it.
        if deep_dark > 0.0 and t_l < mixed:
            share = highlight_darken if is_highlight[i] else 1.0
            mixed -= (mixed - t_l) * deep_dark * share

        mixed = min(1.0, max(0.0, mixed))
        hue = _wrap_hue(h_before + d_hue * local_hue)
        nl, nc, nh = _clamp_oklch(mixed, c, hue)
        _, oa, ob = _lch_to_oklab(nl, nc, nh)
        r, g, bb = _oklab_to_linear(nl, oa, ob)

        out[i, 0] = _encode_u8(r)
        out[i, 1] = _encode_u8(g)
        out[i, 2] = _encode_u8(bb)
        l_in[i] = L
        c_in[i] = c_before
        c_out[i] = nc

    return out, l_in, c_in, c_out

@njit(cache=True, fastmath=True, parallel=True)
def _intrinsics_kernel(
    linear: np.ndarray, weights: np.ndarray,
    t_c: float, t_h: float, strength: float, hue_strength: float,
    neutralize: bool, preserve_weight: float, use_tonemap: bool,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    n = linear.shape[0]
    out = np.empty((n, 3), dtype=np.float64)
    l_in = np.empty(n, dtype=np.float64)
    c_in = np.empty(n, dtype=np.float64)
    c_out = np.empty(n, dtype=np.float64)

    for i in prange(n):
        lr = linear[i, 0]
        lg = linear[i, 1]
        lb = linear[i, 2]
        shading = 0.2126 * lr + 0.7152 * lg + 0.0722 * lb
        s_safe = max(1e-4, shading)

        # Albedo capped at 3, then limited to the displayable cube for the blend.
        ar = min(1.0, max(0.0, min(3.0, lr / s_safe)))
        ag = min(1.0, max(0.0, min(3.0, lg / s_safe)))
        ab = min(1.0, max(0.0, min(3.0, lb / s_safe)))

        L, a, b = _linear_to_oklab(ar, ag, ab)
        _, c_before, h_before = _oklab_to_lch(L, a, b)
        c = c_before * (1.0 - strength) + t_c * strength
        hue = _wrap_hue(h_before + _hue_delta(t_h, h_before) * hue_strength)
        nl, nc, nh = _clamp_oklch(L, c, hue)
        _, oa, ob = _lch_to_oklab(nl, nc, nh)
        nr, ng, nb = _oklab_to_linear(nl, oa, ob)

        r = min(1.0, max(0.0, nr)) * shading
        g = min(1.0, max(0.0, ng)) * shading
        bb = min(1.0, max(0.0, nb)) * shading

        w = weights[i]
        if w > 0.0:
            if neutralize:
                avg = (r + g + bb) / 3.0
                k = 0.9 * w + 0.1 * (1.0 - w)
                r = avg * k + r * (1.0 - k)
                g = avg * k + g * (1.0 - k)
                bb = avg * k + bb * (1.0 - k)
            pw = preserve_weight * w
            r = r * (1.0 - pw) + lr * pw
            g = g * (1.0 - pw) + lg * pw
            bb = bb * (1.0 - pw) + lb * pw

        if use_tonemap:
            r = aces_scalar(r)
            g = aces_scalar(g)
            bb = aces_scalar(bb)

        out[i, 0] = _encode_u8(r)
        out[i, 1] = _encode_u8(g)
        out[i, 2] = _encode_u8(bb)
        l_in[i] = L
        c_in[i] = c_before
        c_out[i] = nc

    return out, l_in, c_in, c_out


# =============================================================================
# Shared helpers
# =============================================================================

def _resolve_params(params: ParamsLike) -> PipelineParams:
    if params is None:
        params = PipelineParams()
    elif not isinstance(params, PipelineParams):
        params = PipelineParams.from_dict(params)
    return params.clamped()


def _resolve_masks(
    image: RasterImage,
    params: PipelineParams,
    masks: MasksLike,
    build: Callable[[], np.ndarray],
) -> Tuple[np.ndarray, np.ndarray]:
    """(weights, binary flags) for the kernels; zeros when highlights are off."""
    if isinstance(masks, np.ndarray):
        masks = HighlightMasks(masks)
    if masks is not None:
        masks.validate(image.width, image.height)

    n = image.pixel_count
    if not params.protect_highlights:
        return np.zeros(n, dtype=np.float64), np.zeros(n, dtype=np.bool_)
    if masks is None:
        masks = HighlightMasks(build())
    return (
        np.ascontiguousarray(masks.weights()),
        np.ascontiguousarray(masks.binary_flags()),
    )


def _finish(
    image: RasterImage, out: np.ndarray, l_in: np.ndarray,
    c_in: np.ndarray, c_out: np.ndarray, weights: np.ndarray
) -> RecolorResult:
    stats = RecolorStats(
        mean_l=float(l_in.mean()),
        mean_chroma_before=float(c_in.mean()),
        mean_chroma_after=float(c_out.mean()),
        highlight_pixels=int(np.count_nonzero(weights > 0.0)),
    )
    logger.debug("Recolor stats %s", stats.to_dict())
    return RecolorResult(image.with_rgb(out), stats)


# =============================================================================
# Public API
# =============================================================================

def recolor_classic(
    image: RasterImage,
    target: Union[str, TargetColor],
    params: ParamsLike = None,
    masks: MasksLike = None,
) -> RecolorResult:
    """
    OKLCh hue/chroma blend toward the target.

    Args:
        image: Source raster (never modified).
        target: ``#RGB`` / ``#RRGGBB`` string or a parsed TargetColor.
        params: PipelineParams or a parameter mapping; clamped before use.
        masks: Precomputed highlight masks (e.g. from preprocessing). When
            omitted, a luminance-percentile mask with 3x3 opening is built.

    Raises:
        InvalidColorFormat: Before any pixel work, for a malformed target.
        MaskSizeMismatch: If a supplied mask does not match the image.
    """
    color = TargetColor.parse(target)
    p = _resolve_params(params)
    weights, flags = _resolve_masks(
        image, p, masks, lambda: build_highlight_mask(image, p.highlight_percentile)
    )
    t_l, t_c, t_h = color.oklch

    out, l_in, c_in, c_out = _classic_kernel(
        np.ascontiguousarray(image.rgb_flat(), dtype=np.float64), weights, flags,
        t_l, t_c, t_h,
        p.strength, p.resolved_hue_strength, p.chroma_soft_limit,
        p.highlight_blend, p.highlight_hue_blend, p.highlight_neutralize,
        p.midtone_boost, p.tone_match, p.color_density,
        p.deep_dark, p.highlight_darken,
    )
    return _finish(image, out, l_in, c_in, c_out, weights)


def recolor_intrinsics(
    image: RasterImage,
    target: Union[str, TargetColor],
    params: ParamsLike = None,
    masks: MasksLike = None,
) -> RecolorResult:
    """
    Albedo / shading recolor.

    Shading is the BT.709 luminance of the linear pixel; albedo is the
    linear pixel divided by ``max(1e-4, shading)`` and capped at 3. Only the
    albedo is recoloured (strength / hue strength, no lightness shaping).
    Inside highlights the result is optionally pulled toward neutral and
    blended back toward the original by ``highlight_preserve_weight``.
    Neutralisation follows the shared ``highlight_neutralize`` field, which
    defaults to False here too; pass True for the neutral-highlight look.

    The self-built mask thresholds linear luminance at
    ``highlight_percentile`` without morphological opening. Statistics
    describe the albedo (mean OKLab L and chroma before / after).

    Raises:
        InvalidColorFormat: Before any pixel work, for a malformed target.
        MaskSizeMismatch: If a supplied mask does not match the image.
    """
    color = TargetColor.parse(target)
    p = _resolve_params(params)
    linear = np.ascontiguousarray(srgb_to_linear(image.rgb_flat()))
    weights, _ = _resolve_masks(
        image, p, masks,
        lambda: build_luminance_mask(
            linear @ BT709_WEIGHTS, image.width, image.height, p.highlight_percentile
        ),
    )
    _, t_c, t_h = color.oklch

    out, l_in, c_in, c_out = _intrinsics_kernel(
        linear, weights, t_c, t_h,
        p.strength, p.resolved_hue_strength,
        p.highlight_neutralize, p.highlight_preserve_weight, p.use_tonemap,
    )
    return _finish(image, out, l_in, c_in, c_out, weights)


_ENGINES: Dict[RecolorAlgorithm, Callable[..., RecolorResult]] = {
    RecolorAlgorithm.CLASSIC: recolor_classic,
    RecolorAlgorithm.INTRINSICS: recolor_intrinsics,
}


def recolor(
    image: RasterImage,
    target: Union[str, TargetColor],
    params: ParamsLike = None,
    algorithm: Union[str, RecolorAlgorithm] = RecolorAlgorithm.CLASSIC,
    masks: MasksLike = None,
) -> RecolorResult:
    """Runs the selected recolor algorithm (``"classic"`` or ``"intrinsics"``)."""
    try:
        algo = RecolorAlgorithm(algorithm)
    except ValueError as exc:
        choices = ", ".join(a.value for a in RecolorAlgorithm)
        raise InvalidParameter(
            f"Unknown recolor algorithm {algorithm!r}; expected one of: {choices}."
        ) from exc
    return _ENGINES[algo](image, target, params, masks)
