import math

import numpy as np
import pytest

from dyelot_errors import DyelotError, InvalidParameter
from dyelot_params import PARAM_RANGES, PipelineParams


def test_defaults():
    params = PipelineParams()
    assert params.strength == 0.9
    assert params.hue_strength is None
    assert params.resolved_hue_strength == 0.9
    assert params.protect_highlights is True
    assert params.highlight_neutralize is False
    assert params.highlight_preserve_weight == 0.7
    assert params.clamped() == params


def test_explicit_hue_strength_wins():
    assert PipelineParams(strength=0.4, hue_strength=0.1).resolved_hue_strength == 0.1


@pytest.mark.parametrize(
    "field, raw, expected",
    [
        ("strength", 2.0, 1.0),
        ("strength", -1.0, 0.0),
        ("chroma_soft_limit", 0.9, 0.4),
        ("highlight_percentile", 0.1, 0.5),
        ("highlight_percentile", 1.0, 0.999),
        ("deep_dark", 3.0, 1.0),
        ("strength", math.nan, 0.9),
        ("midtone_boost", math.inf, 0.25),
    ],
)
def test_clamped(field, raw, expected):
    clamped = PipelineParams(**{field: raw}).clamped()
    assert getattr(clamped, field) == pytest.approx(expected)


def test_clamped_nan_hue_strength_follows_strength():
    assert PipelineParams(strength=0.3, hue_strength=math.nan).clamped().hue_strength == 0.3


def test_ranges_cover_only_wide_fields():
    assert set(PARAM_RANGES) == {"highlight_percentile", "chroma_soft_limit"}


def test_from_dict_accepts_both_spellings():
    params = PipelineParams.from_dict({"hueStrength": 0.5, "tone_match": 0.2, "deepDark": 0.4})
    assert params.hue_strength == 0.5
    assert params.tone_match == 0.2
    assert params.deep_dark == 0.4


def test_from_dict_overrides_win():
    params = PipelineParams.from_dict({"strength": 0.2, "highlightBlend": 0.1}, strength=0.7)
    assert params.strength == 0.7
    assert params.highlight_blend == 0.1
    assert PipelineParams.from_dict(strength=0.6).strength == 0.6
    assert PipelineParams.from_dict() == PipelineParams()


def test_from_dict_bool_fields():
    params = PipelineParams.from_dict(
        {"protectHighlights": 0, "highlightNeutralize": True, "use_tonemap": np.bool_(True)}
    )
    assert params.protect_highlights is False
    assert params.highlight_neutralize is True
    assert params.use_tonemap is True
    with pytest.raises(InvalidParameter):
        PipelineParams.from_dict({"useTonemap": "yes"})


def test_from_dict_numeric_values():
    params = PipelineParams.from_dict({"strength": np.float32(0.5), "toneMatch": 1, "hueStrength": None})
    assert params.strength == pytest.approx(0.5)
    assert params.tone_match == 1.0
    assert params.hue_strength is None
    assert PipelineParams.from_dict({"strength": math.nan}).strength == 0.9


@pytest.mark.parametrize(
    "payload",
    [{"strenght": 0.5}, {"strength": "0.5"}, {"toneMatch": True}, {"deepDark": [0.1]}],
)
def test_from_dict_rejects_bad_input(payload):
    with pytest.raises(InvalidParameter) as excinfo:
        PipelineParams.from_dict(payload)
    assert isinstance(excinfo.value, DyelotError)
    assert isinstance(excinfo.value, ValueError)


def test_to_dict_roundtrip():
    params = PipelineParams(strength=0.5, use_tonemap=True, highlight_darken=0.3)
    payload = params.to_dict()
    assert payload["useTonemap"] is True
    assert payload["highlightDarken"] == 0.3
    assert "hueStrength" in payload
    assert PipelineParams.from_dict(payload) == params
