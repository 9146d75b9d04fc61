import numpy as np
import pytest

from dyelot_colorengine import (
    ColorSpaceEngine,
    GamutMapping,
    TargetColor,
    hex_to_lab,
    lab_to_hex,
    linear_to_srgb,
    parse_hex_color,
    rgb_to_hex,
    srgb_to_linear,
)
from dyelot_errors import InvalidColorFormat


def _rgb_grid(step=15):
    levels = np.arange(0, 256, step)
    levels = np.unique(np.append(levels, 255))
    r, g, b = np.meshgrid(levels, levels, levels, indexing="ij")
    return np.stack([r.ravel(), g.ravel(), b.ravel()], axis=1).astype(np.float64)


def test_srgb_transfer_inverts_at_8_bit():
    codes = np.arange(256, dtype=np.float64)
    lin = srgb_to_linear(codes)
    assert np.all(np.diff(lin) > 0)
    back = np.floor(linear_to_srgb(lin) * 255.0 + 0.5)
    assert np.array_equal(back, codes)


def test_srgb_scalar_input_returns_float():
    assert srgb_to_linear(0) == 0.0
    assert srgb_to_linear(255) == pytest.approx(1.0)
    assert isinstance(linear_to_srgb(0.5), float)


def test_oklab_round_trip_within_one_code():
    rgb = _rgb_grid()
    back = ColorSpaceEngine.oklab_to_rgb(ColorSpaceEngine.rgb_to_oklab(rgb))
    assert np.max(np.abs(back - rgb)) <= 1.0


def test_lab_round_trip_within_one_code():
    rgb = _rgb_grid()
    back = ColorSpaceEngine.lab_to_rgb(ColorSpaceEngine.rgb_to_lab(rgb))
    assert np.max(np.abs(back - rgb)) <= 1.0


def test_single_color_keeps_rank():
    white = ColorSpaceEngine.rgb_to_oklab([255, 255, 255])
    assert white.shape == (3,)
    assert white[0] == pytest.approx(1.0, abs=1e-3)
    assert abs(white[1]) < 1e-3 and abs(white[2]) < 1e-3

    lab = ColorSpaceEngine.rgb_to_lab((255, 255, 255))
    assert lab[0] == pytest.approx(100.0, abs=0.01)


def test_bad_shape_rejected():
    with pytest.raises(ValueError):
        ColorSpaceEngine.rgb_to_oklab(np.zeros((4, 2)))


def test_oklch_hue_range_and_polar_round_trip():
    lab = ColorSpaceEngine.rgb_to_oklab(_rgb_grid(51))
    lch = ColorSpaceEngine.oklab_to_oklch(lab)
    assert np.all(lch[:, 2] >= 0.0) and np.all(lch[:, 2] < 360.0)
    assert np.all(lch[:, 1] >= 0.0)
    back = ColorSpaceEngine.oklch_to_oklab(lch)
    assert np.allclose(back, lab, atol=1e-9)


def test_gamut_clamp_lands_inside_srgb():
    L, C, h = np.meshgrid(
        np.linspace(0.0, 1.0, 11),
        np.array([0.0, 0.05, 0.1, 0.2, 0.4]),
        np.arange(0.0, 360.0, 30.0),
        indexing="ij",
    )
    lch = np.stack([L.ravel(), C.ravel(), h.ravel()], axis=1)
    clamped = GamutMapping.clamp_oklch_to_srgb(lch)

    assert np.array_equal(clamped[:, 0], lch[:, 0])
    assert np.array_equal(clamped[:, 2], lch[:, 2])
    assert np.all(clamped[:, 1] <= lch[:, 1] + 1e-12)
    assert np.all(GamutMapping.in_gamut(clamped))

    rgb = ColorSpaceEngine.oklab_to_rgb(ColorSpaceEngine.oklch_to_oklab(clamped))
    assert rgb.min() >= 0 and rgb.max() <= 255


def test_gamut_clamp_keeps_in_gamut_colors():
    lch = ColorSpaceEngine.oklab_to_oklch(ColorSpaceEngine.rgb_to_oklab([120, 90, 60]))
    assert np.allclose(GamutMapping.clamp_oklch_to_srgb(lch), lch)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("#abc", (0xAA, 0xBB, 0xCC)),
        ("#CC3227", (204, 50, 39)),
        ("#cc3227", (204, 50, 39)),
    ],
)
def test_parse_hex_color(text, expected):
    assert parse_hex_color(text) == expected


@pytest.mark.parametrize(
    "text",
    [
        "not-a-color", "#12", "#1234", "#12345G", "123456", "", "#ffffff0", None, 0x123,
        "  #000000 ", "#abc\n", "\t#CC3227",
    ],
)
def test_parse_hex_color_rejects_malformed(text):
    with pytest.raises(InvalidColorFormat):
        parse_hex_color(text)


def test_hex_serialisation():
    assert rgb_to_hex((204, 50, 39)) == "#CC3227"
    assert rgb_to_hex((300, -4, 15.6)) == "#FF0010"
    assert lab_to_hex(hex_to_lab("#1F3A93")) == "#1F3A93"


def test_target_color_parse():
    color = TargetColor.parse("#cc3227")
    assert color.hex == "#CC3227"
    assert color.rgb == (204, 50, 39)
    assert color.lab[0] == pytest.approx(46.0, abs=0.5)
    assert color.lab[1] > 50 and color.lab[2] > 35
    assert 0.0 <= color.oklch[2] < 360.0
    assert TargetColor.parse(color) is color


def test_target_color_invalid():
    with pytest.raises(InvalidColorFormat) as info:
        TargetColor.parse("#GGGGGG")
    assert info.value.value == "#GGGGGG"
