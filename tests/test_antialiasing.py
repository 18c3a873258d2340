import pytest

from antialiasing import apply_antialiasing, detect_jagged_edges
from raster import ValidationError

from conftest import solid

RED = (255, 0, 0, 255)


def test_detects_gap_below_solid_pair():
    raster = solid(2, 2, RED)
    raster[1, 0] = (0, 0, 0, 0)
    suggestions = detect_jagged_edges(raster)
    assert len(suggestions) == 1
    s = suggestions[0]
    assert (s.x, s.y, s.direction) == (0, 1, "diagonal_ne")
    assert s.neighbor_color == "#FF0000FF"
    assert s.suggested_color == "#7F00007F"


def test_detects_gap_beside_solid_corner():
    raster = solid(2, 2, RED)
    raster[0, 0] = (0, 0, 0, 0)
    suggestions = detect_jagged_edges(raster)
    assert [(s.x, s.y, s.direction) for s in suggestions] == [(0, 0, "diagonal_se")]


def test_flat_raster_has_no_suggestions():
    assert detect_jagged_edges(solid(4, 4, RED)) == []


def test_apply_writes_blend():
    raster = solid(2, 2, RED)
    raster[1, 0] = (0, 0, 0, 0)
    result = apply_antialiasing(raster, detect_jagged_edges(raster))
    assert tuple(result[1, 0]) == (127, 0, 0, 127)
    assert raster[1, 0, 3] == 0


def test_apply_snaps_to_palette():
    raster = solid(2, 2, RED)
    raster[1, 0] = (0, 0, 0, 0)
    result = apply_antialiasing(raster, detect_jagged_edges(raster), palette=["#000000", "#FF0000"])
    assert tuple(result[1, 0]) == (0, 0, 0, 255)


def test_region_must_have_area():
    with pytest.raises(ValidationError):
        detect_jagged_edges(solid(4, 4, RED), region=(0, 0, 0, 4))
