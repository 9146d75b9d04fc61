import numpy as np
import pytest

from dyelot_raster import RasterImage


@pytest.fixture
def fabric():
    """32x32 gray weave: horizontal lightness ramp plus fixed-seed noise and a sheen patch."""
    rng = np.random.default_rng(7)
    ramp = np.linspace(70, 190, 32)[None, :].repeat(32, axis=0)
    weave = ramp + rng.normal(0.0, 6.0, size=(32, 32))
    weave[12:18, 12:20] = 245
    rgb = np.clip(np.rint(weave), 0, 255).astype(np.uint8)
    arr = np.stack([rgb, rgb, rgb], axis=-1)
    return RasterImage.from_array(arr)
