import numpy as np
import pytest

from image_analysis import (
    analyze_composition, detect_edges, edge_runs, generate_brightness_map,
)
from raster import ValidationError

from conftest import solid


def framed_square(size=20, lo=5, hi=15):
    raster = solid(size, size, (0, 0, 0, 255))
    raster[lo:hi, lo:hi] = (255, 255, 255, 255)
    return raster


def test_uniform_raster_has_no_edges():
    edge_map = detect_edges(solid(10, 10, (128, 128, 128, 255)))
    assert np.array(edge_map.grid).sum() == 0
    assert edge_map.major_edges == []


def test_square_edges_sit_on_its_boundary():
    grid = np.array(detect_edges(framed_square()).grid)
    assert grid[10, 4] == 1 and grid[10, 5] == 1
    assert grid[10, 14] == 1 and grid[10, 15] == 1
    assert grid[10, 10] == 0
    assert grid[0].sum() == 0 and grid[:, 0].sum() == 0


def test_square_produces_major_edges():
    edges = detect_edges(framed_square()).major_edges
    assert edges
    for edge in edges:
        assert 0 < edge.strength <= 100
        assert edge.start.x == edge.end.x or edge.start.y == edge.end.y


def test_detect_edges_downsamples():
    edge_map = detect_edges(framed_square(), target_width=10, target_height=8)
    assert np.array(edge_map.grid).shape == (8, 10)


def test_detect_edges_threshold_range():
    with pytest.raises(ValidationError):
        detect_edges(framed_square(), threshold=256)
    with pytest.raises(ValidationError):
        detect_edges(framed_square(), threshold=-1)


def test_edge_runs_include_trailing_run():
    assert edge_runs([False, True, True, True, True, True], 5) == [(1, 6)]
    assert edge_runs([True, True, False, True], 2) == [(0, 2)]


def test_black_raster_is_all_level_zero():
    bmap = generate_brightness_map(solid(8, 8, (0, 0, 0, 255)), 4, 3, 5)
    assert bmap.grid == [[0] * 4] * 3
    assert bmap.legend == {"0": "darkest", "1": "dark", "2": "mid", "3": "light", "4": "lightest"}


def test_white_raster_is_top_level():
    bmap = generate_brightness_map(solid(8, 8, (255, 255, 255, 255)), 2, 2, 4)
    assert bmap.grid == [[3, 3], [3, 3]]


@pytest.mark.parametrize("levels", [1, 257])
def test_brightness_levels_range(levels):
    with pytest.raises(ValidationError):
        generate_brightness_map(solid(4, 4, (0, 0, 0, 255)), 4, 4, levels)


def test_brightness_target_must_be_positive():
    with pytest.raises(ValidationError):
        generate_brightness_map(solid(4, 4, (0, 0, 0, 255)), 0, 4, 5)


def test_composition_guides():
    comp = analyze_composition(framed_square(48, 12, 20))
    assert comp.rule_of_thirds.vertical_lines == [16, 32]
    assert comp.rule_of_thirds.horizontal_lines == [16, 32]
    assert len(comp.rule_of_thirds.intersections) == 4
    region = comp.dominant_region
    assert (region.x, region.y, region.width, region.height) == (12, 12, 24, 24)


def test_composition_focal_points():
    comp = analyze_composition(framed_square(48, 12, 20))
    weights = [fp.weight for fp in comp.focal_points]
    assert 1 <= len(weights) <= 3
    assert weights == sorted(weights, reverse=True)
    assert weights[0] == pytest.approx(1.0)
    flags = {(i.x, i.y): i.has_focal_point for i in comp.rule_of_thirds.intersections}
    assert flags[(16, 16)] is True
    assert flags[(32, 32)] is False


def test_small_raster_has_no_focal_points():
    comp = analyze_composition(framed_square(10, 3, 7))
    assert comp.focal_points == []


def test_composition_accepts_matching_edge_map():
    raster = framed_square(48, 12, 20)
    comp = analyze_composition(raster, detect_edges(raster))
    assert comp.focal_points == analyze_composition(raster).focal_points


def test_composition_rejects_downsampled_edge_map():
    raster = framed_square(48, 12, 20)
    edge_map = detect_edges(raster, target_width=24, target_height=24)
    with pytest.raises(ValidationError):
        analyze_composition(raster, edge_map)
