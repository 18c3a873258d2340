import numpy as np
import pytest


def solid(width, height, rgba):
    """A width x height raster filled with one RGBA color."""
    raster = np.zeros((height, width, 4), dtype=np.uint8)
    raster[:, :] = rgba
    return raster


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def quadrants():
    """40x40 raster split into red, green, blue and white quadrants."""
    raster = solid(40, 40, (255, 255, 255, 255))
    raster[:20, :20] = (220, 30, 30, 255)
    raster[:20, 20:] = (30, 200, 40, 255)
    raster[20:, :20] = (20, 40, 210, 255)
    return raster


@pytest.fixture
def gray_gradient():
    """4x4 raster whose columns step from black to white."""
    raster = solid(4, 4, (0, 0, 0, 255))
    for x in range(4):
        raster[:, x, :3] = x * 85
    return raster


@pytest.fixture
def noise(rng):
    """32x32 opaque raster of random colors."""
    raster = rng.integers(0, 256, size=(32, 32, 4), dtype=np.uint8)
    raster[:, :, 3] = 255
    return raster


@pytest.fixture
def circle():
    """16x16 transparent raster with an opaque disc of radius 6."""
    raster = solid(16, 16, (0, 0, 0, 0))
    yy, xx = np.mgrid[:16, :16]
    raster[(xx - 8) ** 2 + (yy - 8) ** 2 <= 36] = (200, 60, 50, 255)
    return raster
