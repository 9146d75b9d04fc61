# -*- coding: utf-8 -*-
"""
Dyelot: Re-dyeing fabric photographs without losing the weave
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Unified Color Engine
====================
Colour-space conversions for the recoloring core:

1. sRGB 8-bit <-> linear light <-> OKLab <-> OKLCh (Ottosson, 2020).
2. sRGB 8-bit <-> CIE XYZ (D65) <-> CIELAB.
3. Gamut clamping in OKLCh by iterative chroma reduction.
4. Hex colour parsing / serialisation and the TargetColor value type.

The OKLab path is used by every per-pixel recolor algorithm, the CIELAB path
by neutral texture extraction and post adjustments. The two perceptual spaces
are not numerically interchangeable and are never mixed within one algorithm.

Architecture Note:
    Scalar kernels (``_srgb_decode``, ``_linear_to_oklab``, ``_clamp_oklch``,
    ...) are Numba functions compiled with ``inline='always'``. The batch
    kernels below and the per-pixel loops in ``dyelot_recolor`` call the same
    scalar kernels, so the vectorised public API and the recolor engines share
    one implementation of every formula.

References:
    - IEC 61966-2-1:1999 (sRGB Standard)
    - CIE 15:2004 "Colorimetry"
    - B. Ottosson, "A perceptual color space for image processing" (2020)
"""

import functools
import re
from dataclasses import dataclass
from typing import Any, Callable, Final, Tuple, TypeAlias, Union, Sequence

import numpy as np
import numpy.typing as npt
from numba import njit, prange

from dyelot_errors import InvalidColorFormat

__all__ = [
    # --- Type Aliases ---
    "ArrayFloat",

    # --- Constants ---
    "REF_WHITE_D65",
    "LAB_EPSILON",
    "LAB_KAPPA",
    "BT709_WEIGHTS",
    "GAMUT_CHROMA_STEP",
    "GAMUT_MAX_ITERATIONS",

    # --- Decorators ---
    "handle_shapes",

    # --- Functions ---
    "srgb_to_linear",
    "linear_to_srgb",
    "luminance",
    "encode_linear_u8",
    "parse_hex_color",
    "rgb_to_hex",
    "hex_to_lab",
    "lab_to_hex",

    # --- Classes ---
    "ColorSpaceEngine",
    "GamutMapping",
    "TargetColor",
]

# --- Type Aliases ---
ArrayFloat: TypeAlias = npt.NDArray[np.floating]
RGBTuple: TypeAlias = Tuple[int, int, int]
Triple: TypeAlias = Tuple[float, float, float]

# --- Constants & Matrices ---

# D65 reference white (Y = 1.0)
REF_WHITE_D65: Final[ArrayFloat] = np.array([0.95047, 1.00000, 1.08883], dtype=np.float64)

# BT.709 / sRGB luminance weights
BT709_WEIGHTS: Final[ArrayFloat] = np.array([0.2126, 0.7152, 0.0722], dtype=np.float64)

# sRGB <-> XYZ, IEC 61966-2-1
M_SRGB_TO_XYZ: Final[ArrayFloat] = np.array([
    [0.4124564, 0.3575761, 0.1804375],
    [0.2126729, 0.7151522, 0.0721750],
    [0.0193339, 0.1191920, 0.9503041]
], dtype=np.float64)

M_XYZ_TO_SRGB: Final[ArrayFloat] = np.array([
    [ 3.2404542, -1.5371385, -0.4985314],
    [-0.9692660,  1.8760108,  0.0415560],
    [ 0.0556434, -0.2040259,  1.0572252]
], dtype=np.float64)

# OKLab, sRGB oriented (linear sRGB -> LMS -> LMS' -> Lab)
M1_OKLAB: Final[ArrayFloat] = np.array([
    [0.4122214708, 0.5363325363, 0.0514459929],
    [0.2119034982, 0.6806995451, 0.1073969566],
    [0.0883024619, 0.2817188376, 0.6299787005]
], dtype=np.float64)

M2_OKLAB: Final[ArrayFloat] = np.array([
    [0.2104542553,  0.7936177850, -0.0040720468],
    [1.9779984951, -2.4285922050,  0.4505937099],
    [0.0259040371,  0.7827717662, -0.8086757660]
], dtype=np.float64)

# Exact inverses keep the 8-bit round trip inside +/-1 for the whole cube.
M1_OKLAB_INV: Final[ArrayFloat] = np.linalg.inv(M1_OKLAB)
M2_OKLAB_INV: Final[ArrayFloat] = np.linalg.inv(M2_OKLAB)

# CIE 1976 rational constants
_LAB_DELTA: Final[float] = 6.0 / 29.0
LAB_EPSILON: Final[float] = _LAB_DELTA * _LAB_DELTA * _LAB_DELTA  # ~0.008856
LAB_KAPPA: Final[float] = (116.0 * 29.0 * 29.0) / (3.0 * 6.0 * 6.0)  # ~903.296

DEG2RAD: Final[float] = np.pi / 180.0
RAD2DEG: Final[float] = 180.0 / np.pi

# Gamut search policy
GAMUT_CHROMA_STEP: Final[float] = 0.9
GAMUT_MAX_ITERATIONS: Final[int] = 32

_HEX_PATTERN: Final = re.compile(r"#([0-9a-fA-F]{3}|[0-9a-fA-F]{6})")


# =============================================================================
# 1. ROBUST DECORATORS
# =============================================================================

def handle_shapes(func: Callable[..., ArrayFloat]) -> Callable[..., ArrayFloat]:
    """
    Decorator to normalize inputs to (N, 3) float64 and safeguard shape.

    Single colours (any length-3 sequence) are treated as a one-row batch
    internally.

    Returns:
        The wrapped function with shape handling.
        - If input is (3,), returns (3,)
        - If input is (N, 3), returns (N, 3)
    """
    @functools.wraps(func)
    def wrapper(arr: Union[ArrayFloat, Sequence[float]], *args: Any, **kwargs: Any) -> ArrayFloat:
        arr_np = np.asarray(arr, dtype=np.float64)
        arr_in = np.ascontiguousarray(np.atleast_2d(arr_np))

        if arr_in.ndim != 2 or arr_in.shape[-1] != 3:
            raise ValueError(f"Expected shape (3,) or (N, 3), got {arr_np.shape}")

        res = func(arr_in, *args, **kwargs)

        if arr_np.ndim == 1:
            return res[0]
        return res
    return wrapper


# =============================================================================
# 2. SCALAR KERNELS (Numba, inlined into every caller)
# =============================================================================

@njit(cache=True, fastmath=True, inline='always')
def _srgb_decode(c: float) -> float:
    """sRGB EOTF for an encoded value in [0, 1]."""
    if c <= 0.04045:
        return c / 12.92
    return ((c + 0.055) / 1.055) ** 2.4

@njit(cache=True, fastmath=True, inline='always')
def _srgb_encode(v: float) -> float:
    """sRGB OETF for a linear value (negative input stays on the linear segment)."""
    if v <= 0.0031308:
        return 12.92 * v
    return 1.055 * (v ** (1.0 / 2.4)) - 0.055

@njit(cache=True, fastmath=True, inline='always')
def _encode_u8(v: float) -> float:
    """Linear value -> rounded 8-bit code value, clamped to [0, 255]."""
    s = _srgb_encode(v) * 255.0
    if s < 0.0:
        s = 0.0
    elif s > 255.0:
        s = 255.0
    return np.floor(s + 0.5)

@njit(cache=True, fastmath=True, inline='always')
def _cbrt(x: float) -> float:
    if x >= 0.0:
        return x ** (1.0 / 3.0)
    return -((-x) ** (1.0 / 3.0))

@njit(cache=True, fastmath=True, inline='always')
def _linear_to_oklab(r: float, g: float, b: float) -> Tuple[float, float, float]:
    l_ = _cbrt(M1_OKLAB[0, 0] * r + M1_OKLAB[0, 1] * g + M1_OKLAB[0, 2] * b)
    m_ = _cbrt(M1_OKLAB[1, 0] * r + M1_OKLAB[1, 1] * g + M1_OKLAB[1, 2] * b)
    s_ = _cbrt(M1_OKLAB[2, 0] * r + M1_OKLAB[2, 1] * g + M1_OKLAB[2, 2] * b)
    L = M2_OKLAB[0, 0] * l_ + M2_OKLAB[0, 1] * m_ + M2_OKLAB[0, 2] * s_
    a = M2_OKLAB[1, 0] * l_ + M2_OKLAB[1, 1] * m_ + M2_OKLAB[1, 2] * s_
    bb = M2_OKLAB[2, 0] * l_ + M2_OKLAB[2, 1] * m_ + M2_OKLAB[2, 2] * s_
    return L, a, bb

@njit(cache=True, fastmath=True, inline='always')
def _oklab_to_linear(L: float, a: float, b: float) -> Tuple[float, float, float]:
    l_ = M2_OKLAB_INV[0, 0] * L + M2_OKLAB_INV[0, 1] * a + M2_OKLAB_INV[0, 2] * b
    m_ = M2_OKLAB_INV[1, 0] * L + M2_OKLAB_INV[1, 1] * a + M2_OKLAB_INV[1, 2] * b
    s_ = M2_OKLAB_INV[2, 0] * L + M2_OKLAB_INV[2, 1] * a + M2_OKLAB_INV[2, 2] * b
    l = l_ * l_ * l_
    m = m_ * m_ * m_
    s = s_ * s_ * s_
    r = M1_OKLAB_INV[0, 0] * l + M1_OKLAB_INV[0, 1] * m + M1_OKLAB_INV[0, 2] * s
    g = M1_OKLAB_INV[1, 0] * l + M1_OKLAB_INV[1, 1] * m + M1_OKLAB_INV[1, 2] * s
    bb = M1_OKLAB_INV[2, 0] * l + M1_OKLAB_INV[2, 1] * m + M1_OKLAB_INV[2, 2] * s
    return r, g, bb

@njit(cache=True, fastmath=True, inline='always')
def _rgb8_to_oklab(r8: float, g8: float, b8: float) -> Tuple[float, float, float]:
    return _linear_to_oklab(
        _srgb_decode(r8 / 255.0), _srgb_decode(g8 / 255.0), _srgb_decode(b8 / 255.0)
    )

@njit(cache=True, fastmath=True, inline='always')
def _oklab_to_lch(L: float, a: float, b: float) -> Tuple[float, float, float]:
    C = np.sqrt(a * a + b * b)
    h = np.arctan2(b, a) * RAD2DEG
    if h < 0.0:
        h += 360.0
    if h >= 360.0:
        h -= 360.0
    return L, C, h

@njit(cache=True, fastmath=True, inline='always')
def _lch_to_oklab(L: float, C: float, h: float) -> Tuple[float, float, float]:
    rad = h * DEG2RAD
    return L, C * np.cos(rad), C * np.sin(rad)

@njit(cache=True, fastmath=True, inline='always')
def _in_srgb_gamut(r: float, g: float, b: float) -> bool:
    """True when every linear channel encodes to an 8-bit code inside [0, 255]."""
    sr = _srgb_encode(r) * 255.0
    sg = _srgb_encode(g) * 255.0
    sb = _srgb_encode(b) * 255.0
    return (-0.5 <= sr < 255.5) and (-0.5 <= sg < 255.5) and (-0.5 <= sb < 255.5)

@njit(cache=True, fastmath=True, inline='always')
def _clamp_oklch(L: float, C: float, h: float) -> Tuple[float, float, float]:
    """
    Reduce chroma by GAMUT_CHROMA_STEP until the colour is displayable.

    The search is bounded to GAMUT_MAX_ITERATIONS. When it does not converge
    the colour falls back onto the achromatic axis (C = 0), which is inside
    the sRGB cube for every L in [0, 1].
    """
    c = C if C > 0.0 else 0.0
    for _ in range(GAMUT_MAX_ITERATIONS):
        _, a, b = _lch_to_oklab(L, c, h)
        r, g, bb = _oklab_to_linear(L, a, b)
        if _in_srgb_gamut(r, g, bb):
            return L, c, h
        c *= GAMUT_CHROMA_STEP
    return L, 0.0, h


# =============================================================================
# 3. BATCH KERNELS
# =============================================================================

@njit(cache=True, fastmath=True)
def _srgb_decode_array(encoded: ArrayFloat) -> ArrayFloat:
    """Applies the sRGB EOTF to a flat array of encoded values."""
    out = np.empty_like(encoded)
    for i in range(encoded.size):
        out[i] = _srgb_decode(encoded[i])
    return out

@njit(cache=True, fastmath=True)
def _srgb_encode_array(linear: ArrayFloat) -> ArrayFloat:
    """Applies the sRGB OETF to a flat array of linear values."""
    out = np.empty_like(linear)
    for i in range(linear.size):
        out[i] = _srgb_encode(linear[i])
    return out

@njit(cache=True, fastmath=True)
def _encode_u8_array(linear: ArrayFloat) -> ArrayFloat:
    """Linear -> rounded, clamped 8-bit codes for a flat array."""
    out = np.empty_like(linear)
    for i in range(linear.size):
        out[i] = _encode_u8(linear[i])
    return out

@njit(cache=True, fastmath=True)
def _lab_f(t: ArrayFloat) -> ArrayFloat:
    """
    Non-linear transfer function f(t) for CIELAB on a flat array.

    Cube root above LAB_EPSILON, linear slope below it.
    """
    out = np.empty_like(t)
    for i in range(t.size):
        v = t[i]
        if v > LAB_EPSILON:
            out[i] = v ** (1.0 / 3.0)
        else:
            out[i] = (LAB_KAPPA * v + 16.0) / 116.0
    return out

@njit(cache=True, fastmath=True)
def _lab_f_inv(t: ArrayFloat) -> ArrayFloat:
    """Inverse CIELAB transfer function on a flat array."""
    out = np.empty_like(t)
    for i in range(t.size):
        v = t[i]
        if v > _LAB_DELTA:
            out[i] = v * v * v
        else:
            out[i] = (116.0 * v - 16.0) / LAB_KAPPA
    return out

@njit(cache=True, fastmath=True, parallel=True)
def _batch_rgb8_to_oklab(rgb: ArrayFloat) -> ArrayFloat:
    n = rgb.shape[0]
    out = np.empty((n, 3), dtype=np.float64)
    for i in prange(n):
        L, a, b = _rgb8_to_oklab(rgb[i, 0], rgb[i, 1], rgb[i, 2])
        out[i, 0] = L
        out[i, 1] = a
        out[i, 2] = b
    return out

@njit(cache=True, fastmath=True, parallel=True)
def _batch_linear_to_oklab(linear: ArrayFloat) -> ArrayFloat:
    n = linear.shape[0]
    out = np.empty((n, 3), dtype=np.float64)
    for i in prange(n):
        L, a, b = _linear_to_oklab(linear[i, 0], linear[i, 1], linear[i, 2])
        out[i, 0] = L
        out[i, 1] = a
        out[i, 2] = b
    return out

@njit(cache=True, fastmath=True, parallel=True)
def _batch_oklab_to_rgb8(lab: ArrayFloat) -> ArrayFloat:
    n = lab.shape[0]
    out = np.empty((n, 3), dtype=np.float64)
    for i in prange(n):
        r, g, b = _oklab_to_linear(lab[i, 0], lab[i, 1], lab[i, 2])
        out[i, 0] = _encode_u8(r)
        out[i, 1] = _encode_u8(g)
        out[i, 2] = _encode_u8(b)
    return out

@njit(cache=True, fastmath=True, parallel=True)
def _batch_oklab_to_linear(lab: ArrayFloat) -> ArrayFloat:
    n = lab.shape[0]
    out = np.empty((n, 3), dtype=np.float64)
    for i in prange(n):
        r, g, b = _oklab_to_linear(lab[i, 0], lab[i, 1], lab[i, 2])
        out[i, 0] = r
        out[i, 1] = g
        out[i, 2] = b
    return out

@njit(cache=True, fastmath=True, parallel=True)
def _batch_oklab_to_lch(lab: ArrayFloat) -> ArrayFloat:
    n = lab.shape[0]
    out = np.empty((n, 3), dtype=np.float64)
    for i in prange(n):
        L, C, h = _oklab_to_lch(lab[i, 0], lab[i, 1], lab[i, 2])
        out[i, 0] = L
        out[i, 1] = C
        out[i, 2] = h
    return out

@njit(cache=True, fastmath=True, parallel=True)
def _batch_lch_to_oklab(lch: ArrayFloat) -> ArrayFloat:
    n = lch.shape[0]
    out = np.empty((n, 3), dtype=np.float64)
    for i in prange(n):
        L, a, b = _lch_to_oklab(lch[i, 0], lch[i, 1], lch[i, 2])
        out[i, 0] = L
        out[i, 1] = a
        out[i, 2] = b
    return out

@njit(cache=True, fastmath=True, parallel=True)
def _batch_clamp_oklch(lch: ArrayFloat) -> ArrayFloat:
    n = lch.shape[0]
    out = np.empty((n, 3), dtype=np.float64)
    for i in prange(n):
        L, C, h = _clamp_oklch(lch[i, 0], lch[i, 1], lch[i, 2])
        out[i, 0] = L
        out[i, 1] = C
        out[i, 2] = h
    return out


# =============================================================================
# 4. MODULE-LEVEL HELPERS
# =============================================================================

def srgb_to_linear(values: Union[float, ArrayFloat, Sequence[float]]) -> Union[float, ArrayFloat]:
    """
    8-bit sRGB code values (0..255) to linear light in [0, 1].

    Accepts a scalar or an array of any shape; the result has the same shape.
    """
    arr = np.asarray(values, dtype=np.float64)
    flat = np.ascontiguousarray(arr.ravel()) / 255.0
    out = _srgb_decode_array(flat).reshape(arr.shape)
    return float(out) if out.ndim == 0 else out

def linear_to_srgb(values: Union[float, ArrayFloat, Sequence[float]]) -> Union[float, ArrayFloat]:
    """
    Linear light to encoded sRGB in [0, 1] (not scaled to 8 bits).

    Accepts a scalar or an array of any shape; the result has the same shape.
    """
    arr = np.asarray(values, dtype=np.float64)
    flat = np.ascontiguousarray(arr.ravel())
    out = _srgb_encode_array(flat).reshape(arr.shape)
    return float(out) if out.ndim == 0 else out

def encode_linear_u8(linear: ArrayFloat) -> ArrayFloat:
    """Linear light (any shape) to rounded, clamped 8-bit sRGB codes (float64)."""
    arr = np.asarray(linear, dtype=np.float64)
    return _encode_u8_array(np.ascontiguousarray(arr.ravel())).reshape(arr.shape)

def luminance(rgb: ArrayFloat) -> ArrayFloat:
    """BT.709 weighted sum over the last axis (works on 8-bit or linear values)."""
    return np.asarray(rgb, dtype=np.float64) @ BT709_WEIGHTS


# =============================================================================
# 5. COLOR SPACE ENGINE
# =============================================================================

class ColorSpaceEngine:
    """Static utility class for the conversions used by the recoloring core.

    All public methods accept a single colour of shape (3,) or a batch of
    shape (N, 3). RGB values are 8-bit code values on a 0..255 float scale;
    methods returning RGB round and clamp to that range.
    """

    # =====================================================================
    #  Internal _raw fast-path methods  (assume validated (N, 3) float64)
    # =====================================================================

    @staticmethod
    def _rgb_to_xyz_raw(rgb_array: ArrayFloat) -> ArrayFloat:
        rgb = np.clip(rgb_array, 0.0, 255.0) / 255.0
        linear = _srgb_decode_array(np.ascontiguousarray(rgb.ravel())).reshape(rgb.shape)
        return linear @ M_SRGB_TO_XYZ.T

    @staticmethod
    def _xyz_to_rgb_raw(xyz_array: ArrayFloat) -> ArrayFloat:
        linear = xyz_array @ M_XYZ_TO_SRGB.T
        return _encode_u8_array(np.ascontiguousarray(linear.ravel())).reshape(linear.shape)

    @staticmethod
    def _xyz_to_lab_raw(xyz_array: ArrayFloat) -> ArrayFloat:
        xyz_norm = xyz_array / REF_WHITE_D65
        f_xyz = _lab_f(np.ascontiguousarray(xyz_norm.ravel())).reshape(xyz_norm.shape)

        out = np.empty_like(xyz_array)
        out[:, 0] = 116.0 * f_xyz[:, 1] - 16.0
        out[:, 1] = 500.0 * (f_xyz[:, 0] - f_xyz[:, 1])
        out[:, 2] = 200.0 * (f_xyz[:, 1] - f_xyz[:, 2])
        return out

    @staticmethod
    def _lab_to_xyz_raw(lab_array: ArrayFloat) -> ArrayFloat:
        fy = (lab_array[:, 0] + 16.0) / 116.0
        f_xyz = np.empty_like(lab_array)
        f_xyz[:, 0] = lab_array[:, 1] / 500.0 + fy
        f_xyz[:, 1] = fy
        f_xyz[:, 2] = fy - lab_array[:, 2] / 200.0
        xyz = _lab_f_inv(np.ascontiguousarray(f_xyz.ravel())).reshape(f_xyz.shape)
        return xyz * REF_WHITE_D65

    # =====================================================================
    #  OKLab / OKLCh
    # =====================================================================

    @staticmethod
    @handle_shapes
    def rgb_to_oklab(rgb_array: ArrayFloat) -> ArrayFloat:
        """
        Converts 8-bit sRGB (0..255) to OKLab.

        Returns:
            OKLab coordinates with L in [0, 1].
        """
        return _batch_rgb8_to_oklab(np.clip(rgb_array, 0.0, 255.0))

    @staticmethod
    @handle_shapes
    def oklab_to_rgb(lab_array: ArrayFloat) -> ArrayFloat:
        """
        Converts OKLab to 8-bit sRGB.

        Output is rounded and clamped to [0, 255], making this conversion
        display-referred. Use GamutMapping first to avoid hue shifts from
        per-channel clipping.
        """
        return _batch_oklab_to_rgb8(lab_array)

    @staticmethod
    @handle_shapes
    def linear_to_oklab(linear_array: ArrayFloat) -> ArrayFloat:
        """Converts linear-light sRGB (0..1) to OKLab without 8-bit quantisation."""
        return _batch_linear_to_oklab(linear_array)

    @staticmethod
    @handle_shapes
    def oklab_to_linear(lab_array: ArrayFloat) -> ArrayFloat:
        """Converts OKLab to unclamped linear-light sRGB."""
        return _batch_oklab_to_linear(lab_array)

    @staticmethod
    @handle_shapes
    def oklab_to_oklch(lab_array: ArrayFloat) -> ArrayFloat:
        """
        Converts OKLab to OKLCh.

        Returns:
            (L, C, h) with hue in degrees, normalised to [0, 360).
        """
        return _batch_oklab_to_lch(lab_array)

    @staticmethod
    @handle_shapes
    def oklch_to_oklab(lch_array: ArrayFloat) -> ArrayFloat:
        """Converts OKLCh (hue in degrees) to OKLab."""
        return _batch_lch_to_oklab(lch_array)

    # =====================================================================
    #  CIE XYZ / CIELAB (D65)
    # =====================================================================

    @staticmethod
    @handle_shapes
    def rgb_to_xyz(rgb_array: ArrayFloat) -> ArrayFloat:
        """Converts 8-bit sRGB (0..255) to CIE XYZ (D65, Y in [0, 1])."""
        return ColorSpaceEngine._rgb_to_xyz_raw(rgb_array)

    @staticmethod
    @handle_shapes
    def xyz_to_rgb(xyz_array: ArrayFloat) -> ArrayFloat:
        """Converts CIE XYZ (D65) to rounded, clamped 8-bit sRGB."""
        return ColorSpaceEngine._xyz_to_rgb_raw(xyz_array)

    @staticmethod
    @handle_shapes
    def xyz_to_lab(xyz_array: ArrayFloat) -> ArrayFloat:
        """Converts CIE XYZ to CIELAB (L in [0, 100]) against D65 white."""
        return ColorSpaceEngine._xyz_to_lab_raw(xyz_array)

    @staticmethod
    @handle_shapes
    def lab_to_xyz(lab_array: ArrayFloat) -> ArrayFloat:
        """Converts CIELAB to CIE XYZ against D65 white."""
        return ColorSpaceEngine._lab_to_xyz_raw(lab_array)

    @staticmethod
    @handle_shapes
    def rgb_to_lab(rgb_array: ArrayFloat) -> ArrayFloat:
        """Direct conversion 8-bit sRGB -> CIELAB."""
        xyz = ColorSpaceEngine._rgb_to_xyz_raw(rgb_array)
        return ColorSpaceEngine._xyz_to_lab_raw(xyz)

    @staticmethod
    @handle_shapes
    def lab_to_rgb(lab_array: ArrayFloat) -> ArrayFloat:
        """Direct conversion CIELAB -> rounded, clamped 8-bit sRGB."""
        xyz = ColorSpaceEngine._lab_to_xyz_raw(lab_array)
        return ColorSpaceEngine._xyz_to_rgb_raw(xyz)


# =============================================================================
# 6. GAMUT MAPPING
# =============================================================================

class GamutMapping:
    @staticmethod
    @handle_shapes
    def clamp_oklch_to_srgb(lch_array: ArrayFloat) -> ArrayFloat:
        """
        Pulls OKLCh colours into the sRGB cube by chroma reduction.

        Chroma is multiplied by 0.9 until the colour encodes inside
        [0, 255]^3, for at most 32 rounds. Lightness and hue are never
        touched. Colours the search cannot bring in are returned with C = 0.

        Args:
            lch_array: OKLCh input with L in [0, 1], shape (N, 3) or (3,).

        Returns:
            OKLCh coordinates inside the sRGB gamut.
        """
        return _batch_clamp_oklch(lch_array)

    @staticmethod
    def in_gamut(lch_array: Union[ArrayFloat, Sequence[float]]) -> Union[bool, npt.NDArray[np.bool_]]:
        """True for OKLCh colours whose unclamped sRGB encoding fits in 8 bits."""
        arr = np.asarray(lch_array, dtype=np.float64)
        batch = np.ascontiguousarray(np.atleast_2d(arr))
        linear = _batch_oklab_to_linear(_batch_lch_to_oklab(batch))
        encoded = linear_to_srgb(linear) * 255.0
        ok = np.all((encoded >= -0.5) & (encoded < 255.5), axis=1)
        return bool(ok[0]) if arr.ndim == 1 else ok


# =============================================================================
# 7. HEX COLOURS & TARGET COLOR
# =============================================================================

def parse_hex_color(value: str) -> RGBTuple:
    """
    Parses ``#RGB`` or ``#RRGGBB`` (case-insensitive) into 8-bit RGB.

    The whole string must match; surrounding whitespace or a trailing
    newline raises InvalidColorFormat like any other malformed value.
    """
    if not isinstance(value, str):
        raise InvalidColorFormat(value)
    if not _HEX_PATTERN.fullmatch(value):
        raise InvalidColorFormat(value)
    digits = value[1:]
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)
    return int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16)

def rgb_to_hex(rgb: Sequence[float]) -> str:
    """Serialises an RGB triple (0..255, rounded and clamped) as ``#RRGGBB``."""
    vals = np.clip(np.floor(np.asarray(rgb, dtype=np.float64) + 0.5), 0, 255).astype(int)
    if vals.shape != (3,):
        raise ValueError(f"Expected an RGB triple, got shape {vals.shape}")
    return "#{:02X}{:02X}{:02X}".format(*vals)

def hex_to_lab(value: str) -> ArrayFloat:
    """Hex colour to CIELAB (D65)."""
    return ColorSpaceEngine.rgb_to_lab(parse_hex_color(value))

def lab_to_hex(lab: Sequence[float]) -> str:
    """CIELAB to the nearest displayable ``#RRGGBB``."""
    return rgb_to_hex(ColorSpaceEngine.lab_to_rgb(lab))


@dataclass(frozen=True, slots=True)
class TargetColor:
    """A parsed recolor target with every representation the engines need."""
    hex: str
    rgb: RGBTuple
    lab: Triple
    oklab: Triple
    oklch: Triple

    @classmethod
    def parse(cls, value: Union[str, "TargetColor"]) -> "TargetColor":
        """
        Builds a TargetColor from a hex string.

        Existing TargetColor instances are returned unchanged.

        Raises:
            InvalidColorFormat: If ``value`` is not ``#RGB`` / ``#RRGGBB``.
        """
        if isinstance(value, TargetColor):
            return value
        rgb = parse_hex_color(value)
        lab = ColorSpaceEngine.rgb_to_lab(rgb)
        oklab = ColorSpaceEngine.rgb_to_oklab(rgb)
        oklch = ColorSpaceEngine.oklab_to_oklch(oklab)
        return cls(
            hex=rgb_to_hex(rgb),
            rgb=rgb,
            lab=(float(lab[0]), float(lab[1]), float(lab[2])),
            oklab=(float(oklab[0]), float(oklab[1]), float(oklab[2])),
            oklch=(float(oklch[0]), float(oklch[1]), float(oklch[2])),
        )
