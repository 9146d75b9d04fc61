import numpy as np
import pytest

from dyelot_colorengine import ColorSpaceEngine
from dyelot_postadjust import (
    PostAdjustments,
    aces_tonemap,
    adjust_brightness,
    adjust_hue,
    adjust_saturation,
    apply_adjustments,
    apply_tonemap_rgb,
)
from dyelot_raster import RasterImage


@pytest.fixture
def swatch():
    rng = np.random.default_rng(2)
    arr = rng.integers(80, 170, size=(12, 12, 4)).astype(np.uint8)
    return RasterImage.from_array(arr)


def _lab(image):
    return ColorSpaceEngine.rgb_to_lab(image.rgb_flat())


@pytest.mark.parametrize(
    "op, identity",
    [(adjust_brightness, 0.0), (adjust_saturation, 1.0), (adjust_hue, 0.0), (adjust_hue, 360.0)],
)
def test_identity_values_return_fresh_copy(swatch, op, identity):
    out = op(swatch, identity)
    assert np.array_equal(out.pixels, swatch.pixels)
    assert not np.shares_memory(out.pixels, swatch.pixels)


@pytest.mark.parametrize("op", [adjust_brightness, adjust_saturation, adjust_hue])
def test_non_finite_values_act_as_identity(swatch, op):
    assert np.array_equal(op(swatch, float("nan")).pixels, swatch.pixels)


def test_brightness_shifts_lightness(swatch):
    out = adjust_brightness(swatch, 10.0)
    shift = _lab(out)[:, 0] - _lab(swatch)[:, 0]
    assert shift.mean() == pytest.approx(10.0, abs=1.0)
    assert np.array_equal(out.alpha_flat(), swatch.alpha_flat())


def test_brightness_clamps_at_white():
    white = RasterImage.blank(3, 3, (255, 255, 255, 255))
    assert np.array_equal(adjust_brightness(white, 25.0).pixels, white.pixels)


def test_zero_saturation_gives_gray(swatch):
    lab = _lab(adjust_saturation(swatch, 0.0))
    assert np.hypot(lab[:, 1], lab[:, 2]).max() < 1.5


def test_hue_rotation_keeps_chroma():
    red = RasterImage.blank(4, 4, (150, 100, 100, 255))
    out = adjust_hue(red, 180.0)
    before, after = _lab(red), _lab(out)
    assert after[:, 1].mean() < 0.0
    chroma_before = np.hypot(before[:, 1], before[:, 2])
    chroma_after = np.hypot(after[:, 1], after[:, 2])
    assert np.allclose(chroma_after, chroma_before, atol=2.0)


def test_apply_adjustments_order(swatch):
    adjustments = PostAdjustments(brightness=5.0, saturation=1.2, hue=15.0)
    expected = adjust_hue(adjust_saturation(adjust_brightness(swatch, 5.0), 1.2), 15.0)
    assert np.array_equal(apply_adjustments(swatch, adjustments).pixels, expected.pixels)


def test_apply_adjustments_identity(swatch):
    assert PostAdjustments().is_identity
    out = apply_adjustments(swatch, PostAdjustments())
    assert np.array_equal(out.pixels, swatch.pixels)
    assert out.pixels is not swatch.pixels


def test_aces_tonemap_curve():
    assert aces_tonemap(0.0) == 0.0
    assert aces_tonemap(-3.0) == 0.0
    assert aces_tonemap(100.0) == 1.0
    xs = np.linspace(0.0, 1.0, 50)
    ys = aces_tonemap(xs)
    assert ys.shape == xs.shape
    assert np.all(np.diff(ys) > 0)
    assert np.all((ys >= 0.0) & (ys <= 1.0))


def test_apply_tonemap_rgb_shape():
    rgb = np.array([[0.2, 0.5, 100.0], [0.0, 0.1, 4.0]])
    out = apply_tonemap_rgb(rgb)
    assert out.shape == rgb.shape
    assert out[0, 2] == 1.0
    assert out[1, 2] == pytest.approx(0.9734, abs=1e-4)
    assert out[1, 0] == 0.0
    with pytest.raises(ValueError):
        apply_tonemap_rgb(np.zeros((2, 4)))
