import numpy as np
import pytest

from dyelot_errors import InvalidParameter, MaskSizeMismatch
from dyelot_masks import (
    HighlightMasks,
    build_highlight_mask,
    build_luminance_mask,
    percentile,
    soften_mask,
)
from dyelot_raster import RasterImage


def _spot_image():
    """20x20 dark field with a 4x4 bright block and one isolated bright pixel."""
    arr = np.full((20, 20, 3), 20, np.uint8)
    arr[8:12, 8:12] = 250
    arr[2, 2] = 250
    return RasterImage.from_array(arr)


def test_percentile_index_rule():
    assert percentile(np.array([]), 0.5) == 0.0
    assert percentile(np.array([3.0, 1.0, 2.0]), 0.5) == 2.0
    assert percentile(np.array([3.0, 1.0, 2.0]), 1.0) == 3.0
    assert percentile(np.array([3.0, 1.0, 2.0]), 0.0) == 1.0


def test_highlight_mask_shape_and_values(fabric):
    mask = build_highlight_mask(fabric)
    assert mask.shape == (fabric.pixel_count,)
    assert mask.dtype == np.uint8
    assert set(np.unique(mask)) <= {0, 255}


def test_highlight_mask_opening_removes_isolated_pixels():
    mask = build_highlight_mask(_spot_image(), 0.97).reshape(20, 20)
    assert np.all(mask[8:12, 8:12] == 255)
    assert mask[2, 2] == 0
    assert np.count_nonzero(mask) == 16


def test_highlight_mask_without_opening_keeps_isolated_pixels():
    mask = build_highlight_mask(_spot_image(), 0.97, open_mask=False).reshape(20, 20)
    assert mask[2, 2] == 255
    assert np.count_nonzero(mask) == 17


def test_highlight_mask_border_ring_is_zero():
    img = RasterImage.blank(6, 5, (255, 255, 255, 255))
    mask = build_highlight_mask(img, 0.5).reshape(5, 6)
    assert np.all(mask[1:-1, 1:-1] == 255)
    assert not mask[0].any() and not mask[-1].any()
    assert not mask[:, 0].any() and not mask[:, -1].any()


@pytest.mark.parametrize("p", [0.0, 1.0, -0.2, 1.5, float("nan")])
def test_highlight_mask_rejects_bad_percentile(fabric, p):
    with pytest.raises(InvalidParameter):
        build_highlight_mask(fabric, p)


def test_luminance_mask_threshold_only():
    lum = np.array([0.1, 0.2, 0.9, 0.95])
    assert list(build_luminance_mask(lum, 2, 2, 0.5)) == [0, 0, 255, 255]
    with pytest.raises(MaskSizeMismatch):
        build_luminance_mask(lum, 3, 2, 0.5)


def test_soften_mask_range_and_edges():
    mask = np.zeros(20 * 20, np.uint8)
    mask.reshape(20, 20)[8:12, 8:12] = 255
    soft = soften_mask(mask, 20, 20, radius=3)
    assert soft.shape == (400,)
    assert soft.min() >= 0.0 and soft.max() <= 1.0
    assert soft.reshape(20, 20)[0, 0] == 0.0
    assert 0.0 < soft.reshape(20, 20)[7, 7] < 1.0


def test_soften_mask_full_mask_stays_one():
    soft = soften_mask(np.full(35, 255, np.uint8), 7, 5, radius=3)
    assert np.allclose(soft, 1.0)


def test_soften_mask_radius_zero_rescales():
    mask = np.array([0, 255, 255, 0], np.uint8)
    assert np.array_equal(soften_mask(mask, 2, 2, radius=0), [0.0, 1.0, 1.0, 0.0])


@pytest.mark.parametrize("radius", [-1, 2.5, True])
def test_soften_mask_rejects_bad_radius(radius):
    with pytest.raises(InvalidParameter):
        soften_mask(np.zeros(4, np.uint8), 2, 2, radius=radius)


def test_soften_mask_size_mismatch():
    with pytest.raises(MaskSizeMismatch) as info:
        soften_mask(np.zeros(5, np.uint8), 2, 2)
    assert info.value.got == 5 and info.value.expected == 4


def test_highlight_masks_validate_and_weights():
    binary = np.array([0, 255, 0, 255], np.uint8)
    masks = HighlightMasks(binary)
    assert masks.validate(2, 2) is masks
    assert np.array_equal(masks.weights(), [0.0, 1.0, 0.0, 1.0])

    soft = np.array([0.0, 0.5, 0.25, 1.0])
    assert np.array_equal(HighlightMasks(binary, soft).weights(), soft)

    with pytest.raises(MaskSizeMismatch) as info:
        HighlightMasks(binary, np.zeros(3)).validate(2, 2)
    assert info.value.name == "highlight_soft"
