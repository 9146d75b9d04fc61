# -*- coding: utf-8 -*-
"""
Dyelot: Re-dyeing fabric photographs without losing the weave
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: dyelot_params.py — Recolor parameter set.

PipelineParams is the single explicit configuration object for both recolor
algorithms. Every numeric field has a documented default and range, and
``clamped()`` is applied by the engines before any pixel work, so
out-of-range caller input degrades gracefully instead of producing undefined
pixel values.

Hybrid construction API:
  - ``PipelineParams(strength=0.7)`` for interactive use
  - ``PipelineParams.from_dict({'hueStrength': 0.5})`` for UI/config payloads
  - ``PipelineParams.from_dict(payload, strength=0.7)`` (kwargs override)
"""

import math
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Final, Mapping, Optional, Tuple, Union

import numpy as np

from dyelot_errors import InvalidParameter

__all__ = ["PipelineParams", "PARAM_RANGES"]

# (low, high) per numeric field; everything not listed is [0, 1].
PARAM_RANGES: Final[Dict[str, Tuple[float, float]]] = {
    "highlight_percentile": (0.5, 0.999),
    "chroma_soft_limit": (0.0, 0.4),
}

_BOOL_FIELDS: Final = frozenset({"protect_highlights", "highlight_neutralize", "use_tonemap"})


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


@dataclass(frozen=True, slots=True)
class PipelineParams:
    """
    Knobs of the recolor engines.

    Attributes:
        strength: Chroma injection toward the target (0..1).
        hue_strength: Hue rotation toward the target; None follows strength.
        protect_highlights: Enable all highlight handling.
        highlight_percentile: Luminance percentile for self-built masks.
        chroma_soft_limit: Chroma above which compression starts (0..0.4).
        highlight_blend: Fraction of the chroma change reverted in highlights.
        highlight_hue_blend: Fraction of hue rotation removed in highlights.
        highlight_neutralize: Push highlights toward neutral.
        midtone_boost: Extra chroma peaking at L = 0.5.
        tone_match: Pull of lightness toward the target lightness.
        color_density: Extra chroma peaking at L = 0.65.
        deep_dark: Additional lightness pull when the target is darker.
        highlight_darken: Fraction of deep_dark applied inside highlights.
        highlight_preserve_weight: Original-pixel share in highlights (intrinsics).
        use_tonemap: ACES filmic tonemap before encoding (intrinsics).
    """
    strength: float = 0.9
    hue_strength: Optional[float] = None
    protect_highlights: bool = True
    highlight_percentile: float = 0.97
    chroma_soft_limit: float = 0.22
    highlight_blend: float = 0.8
    highlight_hue_blend: float = 0.5
    highlight_neutralize: bool = False
    midtone_boost: float = 0.25
    tone_match: float = 0.0
    color_density: float = 0.0
    deep_dark: float = 0.0
    highlight_darken: float = 0.0
    highlight_preserve_weight: float = 0.7
    use_tonemap: bool = False

    @property
    def resolved_hue_strength(self) -> float:
        return self.strength if self.hue_strength is None else self.hue_strength

    def clamped(self) -> "PipelineParams":
        """
        Copy with every numeric field clamped to its range.

        Non-finite values are replaced by the field default.
        """
        changes: Dict[str, Any] = {}
        for f in fields(self):
            if f.name in _BOOL_FIELDS:
                changes[f.name] = bool(getattr(self, f.name))
                continue
            value = getattr(self, f.name)
            if value is None:
                continue
            value = float(value)
            if not math.isfinite(value):
                value = f.default if f.default is not None else self.strength
            lo, hi = PARAM_RANGES.get(f.name, (0.0, 1.0))
            changes[f.name] = min(hi, max(lo, float(value)))
        return replace(self, **changes)

    @classmethod
    def from_dict(
        cls,
        params: Optional[Mapping[str, Any]] = None,
        **overrides: Any
    ) -> "PipelineParams":
        """
        Build from a mapping of snake_case or camelCase names.

        Args:
            params: Parameter mapping, e.g. a UI payload.
            **overrides: Individual parameters (override params).

        Raises:
            InvalidParameter: For unknown names or non-numeric values.
        """
        aliases = {}
        for f in fields(cls):
            aliases[f.name] = f.name
            aliases[_camel(f.name)] = f.name

        merged = {**(params or {}), **overrides}
        values: Dict[str, Any] = {}
        for key, raw in merged.items():
            name = aliases.get(key)
            if name is None:
                raise InvalidParameter(f"Unknown recolor parameter '{key}'.")
            values[name] = cls._coerce(name, raw)
        return cls(**values)

    @staticmethod
    def _coerce(name: str, raw: Any) -> Union[bool, float, None]:
        if name in _BOOL_FIELDS:
            if isinstance(raw, (bool, np.bool_)) or raw in (0, 1):
                return bool(raw)
            raise InvalidParameter(f"Parameter '{name}' must be a boolean, got {raw!r}.")
        if raw is None and name == "hue_strength":
            return None
        if isinstance(raw, bool) or not isinstance(raw, (int, float, np.number)):
            raise InvalidParameter(
                f"Parameter '{name}' must be numeric, got {type(raw).__name__}."
            )
        value = float(raw)
        if not math.isfinite(value):
            default = PipelineParams.__dataclass_fields__[name].default
            return default
        return value

    def to_dict(self) -> Dict[str, Any]:
        """camelCase mapping, matching the names accepted by from_dict."""
        return {_camel(k): v for k, v in asdict(self).items()}
