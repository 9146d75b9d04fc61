# -*- coding: utf-8 -*-
"""
Dyelot: Re-dyeing fabric photographs without losing the weave
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: dyelot_errors.py — Exception hierarchy.

Only malformed input contracts are raised to the caller. Numeric edge cases
(empty statistics, near-zero shading, gamut search exhaustion) are handled
inside the engines by fallback policies and never surface as exceptions.
"""

__all__ = [
    "DyelotError",
    "InvalidColorFormat",
    "InvalidParameter",
    "MaskSizeMismatch",
    "EmptySampleSet",
]


class DyelotError(ValueError):
    """Base class for every error raised by the recoloring core."""


class InvalidColorFormat(DyelotError):
    """A colour string is not ``#RGB`` or ``#RRGGBB``."""

    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(f"Invalid hex color {value!r}: expected '#RGB' or '#RRGGBB'.")


class InvalidParameter(DyelotError):
    """A parameter is outside the domain where no safe clamp is defined."""


class MaskSizeMismatch(DyelotError):
    """A mask does not have exactly ``width * height`` entries."""

    def __init__(self, name: str, got: int, expected: int) -> None:
        self.name = name
        self.got = got
        self.expected = expected
        super().__init__(
            f"Mask '{name}' has {got} entries, expected {expected} (width * height)."
        )


class EmptySampleSet(DyelotError):
    """
    A statistic was requested over an empty pixel set.

    Raised internally (e.g. an all-highlight image has no diffuse pixels) and
    caught by the stage that owns the fallback.
    """
