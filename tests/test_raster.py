import numpy as np
import pytest
from PIL import Image

from raster import MAX_SAMPLES, ValidationError, as_raster, sample_pixels


def numbered(width, height):
    """A raster whose pixels can be told apart by position."""
    values = np.arange(width * height * 4, dtype=np.int64) % 251
    return values.reshape(height, width, 4).astype(np.uint8)


def test_small_raster_returns_every_pixel_in_row_major_order():
    raster = numbered(10, 10)
    samples = sample_pixels(raster, max_samples=100)
    assert samples.shape == (100, 4)
    np.testing.assert_array_equal(samples, raster.reshape(-1, 4))


def test_large_raster_is_strided_on_both_axes():
    raster = numbered(40, 30)
    samples = sample_pixels(raster, max_samples=100)
    # floor(sqrt(1200 / 100)) == 3
    assert samples.shape == (10 * 14, 4)
    np.testing.assert_array_equal(samples, raster[::3, ::3].reshape(-1, 4))


def test_default_cap():
    raster = numbered(300, 300)
    samples = sample_pixels(raster)
    assert len(samples) == MAX_SAMPLES
    np.testing.assert_array_equal(samples, raster[::3, ::3].reshape(-1, 4))


def test_samples_do_not_alias_the_raster():
    raster = numbered(4, 4)
    samples = sample_pixels(raster)
    samples[0] = 0
    assert raster[0, 0, 1] == 1


def test_rgb_input_gets_opaque_alpha():
    raster = as_raster(np.zeros((2, 3, 3), dtype=np.uint8))
    assert raster.shape == (2, 3, 4)
    assert (raster[:, :, 3] == 255).all()


def test_pil_image_is_converted():
    raster = as_raster(Image.new('RGB', (5, 4), (10, 20, 30)))
    assert raster.shape == (4, 5, 4)
    assert tuple(raster[0, 0]) == (10, 20, 30, 255)


@pytest.mark.parametrize("shape", [(4, 4), (4, 4, 2), (0, 4, 4)])
def test_bad_shapes_rejected(shape):
    with pytest.raises(ValidationError):
        as_raster(np.zeros(shape, dtype=np.uint8))
