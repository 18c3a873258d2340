import numpy as np
import pytest

from color_space import Color
from quantize import (
    Octree, QuantizeAlgorithm, median_cut_quantization, octree_quantization, quantize_palette,
)
from raster import DegenerateInputError, ValidationError

from conftest import solid


def two_tone():
    raster = solid(8, 8, (0, 0, 0, 255))
    raster[:, 4:] = (255, 255, 255, 255)
    return raster


@pytest.mark.parametrize("algorithm", ["median_cut", "kmeans", "octree"])
def test_quantize_does_not_pad(algorithm, rng):
    result = quantize_palette(two_tone(), 8, algorithm=algorithm, rng=rng)
    assert result.original_color_count == 2
    assert sorted(c.rgb() for c in result.palette) == [(0, 0, 0), (255, 255, 255)]
    assert result.algorithm is QuantizeAlgorithm(algorithm)


@pytest.mark.parametrize("algorithm", ["median_cut", "kmeans", "octree"])
def test_quantize_never_exceeds_target(algorithm, noise, rng):
    result = quantize_palette(noise, 8, algorithm=algorithm, rng=rng)
    assert 1 <= len(result.palette) <= 8
    assert len(set(result.palette)) == len(result.palette)


def test_octree_reduces_to_target(noise):
    colors = octree_quantization(noise.reshape(-1, 4), 5)
    assert 1 <= len(colors) <= 5


def test_octree_keeps_distinct_colors_below_target():
    tree = Octree()
    for rgb in [(0, 0, 0), (255, 0, 0), (0, 0, 255)]:
        tree.insert(*rgb)
    tree.reduce_to(16)
    assert tree.leaf_count == 3
    assert sorted(c.rgb() for c in tree.palette()) == [(0, 0, 0), (0, 0, 255), (255, 0, 0)]


def test_median_cut_splits_on_widest_channel():
    pixels = np.array([[0, 0, 0]] * 4 + [[255, 0, 0]] * 4)
    colors = median_cut_quantization(pixels, 2)
    assert sorted(c.rgb() for c in colors) == [(0, 0, 0), (255, 0, 0)]


def test_median_cut_keeps_every_distinct_color():
    raster = solid(6, 1, (0, 0, 0, 255))
    raster[0, 4] = (128, 0, 0, 255)
    raster[0, 5] = (255, 0, 0, 255)
    result = quantize_palette(raster, 8, algorithm="median_cut")
    assert result.original_color_count == 3
    assert sorted(c.rgb() for c in result.palette) == [(0, 0, 0), (128, 0, 0), (255, 0, 0)]


def test_median_cut_never_splits_a_color_run():
    pixels = np.array([[10, 0, 0]] * 5 + [[200, 0, 0]])
    colors = median_cut_quantization(pixels, 2)
    assert sorted(c.rgb() for c in colors) == [(10, 0, 0), (200, 0, 0)]


def test_transparency_is_preserved():
    raster = two_tone()
    raster[0, 0] = (0, 0, 0, 0)
    result = quantize_palette(raster, 4)
    assert result.palette[0] == Color(0, 0, 0, 0)
    assert result.hex_colors()[0] == "#00000000"


def test_fully_transparent_raster_is_degenerate():
    with pytest.raises(DegenerateInputError):
        quantize_palette(solid(4, 4, (10, 10, 10, 0)), 4)


@pytest.mark.parametrize("target", [1, 257])
def test_target_out_of_range(target):
    with pytest.raises(ValidationError):
        quantize_palette(two_tone(), target)


def test_unknown_algorithm():
    with pytest.raises(ValidationError):
        quantize_palette(two_tone(), 4, algorithm="popularity")
