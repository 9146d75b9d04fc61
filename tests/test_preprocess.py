import numpy as np
import pytest

from dyelot_colorengine import srgb_to_linear
from dyelot_preprocess import PreprocessOptions, preprocess_image
from dyelot_raster import RasterImage


def _cast_image(seed=3):
    """Near-neutral patchwork with a warm cast (R up, B down)."""
    rng = np.random.default_rng(seed)
    levels = rng.integers(80, 180, size=(24, 24)).astype(np.int16)
    arr = np.stack([levels + 5, levels, levels - 5], axis=-1)
    return RasterImage.from_array(np.clip(arr, 0, 255).astype(np.uint8))


def _channel_gap(image):
    lin = srgb_to_linear(image.rgb_flat())
    means = lin.mean(axis=0)
    return abs(means[0] - means[2]) / means[1]


def test_gray_world_removes_cast():
    img = _cast_image()
    result = preprocess_image(img)

    r_gain, g_gain, b_gain = result.wb_gains
    assert r_gain < g_gain < b_gain
    weighted = 0.2126 * r_gain + 0.7152 * g_gain + 0.0722 * b_gain
    assert weighted == pytest.approx(1.0)
    assert _channel_gap(result.image) < 0.25 * _channel_gap(img)


def test_alpha_is_carried_through():
    img = _cast_image()
    pixels = img.pixels.copy()
    pixels[..., 3] = np.arange(24 * 24, dtype=np.int64).reshape(24, 24) % 256
    img = RasterImage(24, 24, pixels)
    before = pixels.copy()

    result = preprocess_image(img)
    assert np.array_equal(result.image.alpha_flat(), img.alpha_flat())
    assert np.array_equal(img.pixels, before)


def test_masks_cover_every_pixel():
    img = _cast_image()
    result = preprocess_image(img)
    masks = result.masks.validate(img.width, img.height)

    assert set(np.unique(masks.highlight_binary)) <= {0, 255}
    assert set(np.unique(masks.diffuse_binary)) <= {0, 255}
    assert masks.highlight_soft.min() >= 0.0 and masks.highlight_soft.max() <= 1.0
    # highlight and diffuse never overlap
    assert not np.any((masks.highlight_binary == 255) & (masks.diffuse_binary == 255))


def test_exposure_moves_diffuse_median_toward_target():
    dark = RasterImage.from_array(np.clip(_cast_image().pixels[..., :3] // 2, 0, 255))
    result = preprocess_image(dark)
    assert result.exposure_gain > 1.0
    assert result.image.rgb_flat().mean() > dark.rgb_flat().mean()


def test_uniform_image_has_no_diffuse_pixels():
    img = RasterImage.blank(8, 8, (128, 128, 128, 255))
    result = preprocess_image(img)

    assert result.exposure_gain == 1.0
    assert not result.masks.diffuse_binary.any()
    assert result.wb_gains == pytest.approx((1.0, 1.0, 1.0))
    assert np.array_equal(result.image.pixels, img.pixels)


def test_black_image_does_not_fail():
    img = RasterImage.blank(5, 4)
    result = preprocess_image(img)
    assert result.exposure_gain == 1.0
    assert np.array_equal(result.image.pixels, img.pixels)


def test_options_are_clamped():
    opts = PreprocessOptions(highlight_percentile=0.5, exposure_rounds=-3).clamped()
    assert opts.highlight_percentile == 0.97
    assert opts.exposure_rounds == 0
    assert PreprocessOptions(highlight_percentile=1.0).clamped().highlight_percentile == 0.999


def test_max_dim_downscales_before_processing():
    img = RasterImage.from_array(np.full((20, 40, 3), 120, np.uint8))
    result = preprocess_image(img, PreprocessOptions(max_dim=10))
    assert (result.image.width, result.image.height) == (10, 5)
    assert result.masks.highlight_binary.size == 50


def test_to_dict_uses_wire_names():
    payload = preprocess_image(_cast_image()).to_dict()
    assert set(payload) == {"wbGains", "exposureGain", "masks"}
    assert set(payload["masks"]) == {"highlightBinary", "highlightSoft", "diffuseBinary"}
    assert len(payload["wbGains"]) == 3
