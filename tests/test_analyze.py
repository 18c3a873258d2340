import json

import numpy as np
import pytest
from PIL import Image

from analyze import (
    analyze_reference, calculate_metadata, find_colors_for_brightness_range, load_image, render,
    suggest_dithering_zones,
)
from extract_palette import PaletteColor
from image_analysis import BrightnessMap, EdgeMap
from raster import ValidationError


def entry(color, lightness, hue=0.0, usage=0.0):
    return PaletteColor(color=color, hue=hue, saturation=50, lightness=lightness, usage_percent=usage)


def legend(levels):
    return {str(i): "" for i in range(levels)}


@pytest.fixture
def scene():
    """48x32 horizontal gray ramp with a red block."""
    raster = np.zeros((32, 48, 4), dtype=np.uint8)
    raster[:, :, 3] = 255
    for x in range(48):
        raster[:, x, :3] = x * 5
    raster[8:20, 10:22, :3] = (220, 40, 40)
    return raster


def test_analyze_reference_shapes(scene, rng):
    analysis = analyze_reference(scene, 24, 16, palette_size=8, rng=rng)
    assert len(analysis.palette) == 8
    assert np.array(analysis.brightness_map.grid).shape == (16, 24)
    assert np.array(analysis.edge_map.grid).shape == (16, 24)
    assert len(analysis.dithering_zones) <= 5
    meta = analysis.metadata
    assert meta.scale_factor == pytest.approx(0.5)
    assert (meta.source_dimensions.width, meta.source_dimensions.height) == (48, 32)
    assert meta.contrast_ratio in {"low", "medium", "high"}


def test_analysis_serializes_to_json(scene, rng):
    data = analyze_reference(scene, 12, 8, palette_size=5, rng=rng).to_dict()
    decoded = json.loads(json.dumps(data))
    assert set(decoded) == {"palette", "brightness_map", "edge_map", "composition",
                            "dithering_zones", "metadata"}


@pytest.mark.parametrize("kwargs", [
    {"target_width": 0},
    {"target_height": 65536},
    {"palette_size": 4},
    {"palette_size": 33},
    {"brightness_levels": 11},
    {"edge_threshold": 256},
])
def test_analyze_reference_validation(scene, kwargs):
    args = {"target_width": 8, "target_height": 8}
    args.update(kwargs)
    with pytest.raises(ValidationError):
        analyze_reference(scene, **args)


def test_colors_for_brightness_band():
    palette = [entry("#111111", 5), entry("#777777", 50), entry("#EEEEEE", 95)]
    assert find_colors_for_brightness_range(palette, 2, 2, 5) == ["#777777"]


def test_colors_for_empty_band_fall_back_to_extremes():
    palette = [entry("#EEEEEE", 95), entry("#111111", 5)]
    assert find_colors_for_brightness_range(palette, 2, 2, 5) == ["#111111", "#EEEEEE"]


def test_gradient_zone():
    palette = [entry("#222222", 20), entry("#AAAAAA", 70)]
    bmap = BrightnessMap(grid=[[0, 1, 2, 3, 4]], legend=legend(5))
    edges = EdgeMap(grid=[[0] * 5])
    zones = suggest_dithering_zones(palette, bmap, edges)
    assert len(zones) == 1
    zone = zones[0]
    assert zone.type == "gradient" and zone.pattern == "bayer_4x4"
    assert (zone.region.x, zone.region.width, zone.region.height) == (0, 5, 1)
    assert zone.colors == ["#222222", "#AAAAAA"]


def test_texture_zone_needs_flat_area():
    palette = [entry("#777777", 50), entry("#888888", 55)]
    bmap = BrightnessMap(grid=[[2] * 3] * 3, legend=legend(5))
    flat = suggest_dithering_zones(palette, bmap, EdgeMap(grid=[[0] * 3] * 3))
    assert [(z.type, z.pattern) for z in flat] == [("texture", "checkerboard")]

    busy = EdgeMap(grid=[[1, 1, 0], [0, 0, 0], [0, 0, 0]])
    assert suggest_dithering_zones(palette, bmap, busy) == []


def test_zones_are_capped():
    palette = [entry("#777777", 50), entry("#888888", 55)]
    bmap = BrightnessMap(grid=[[2] * 10] * 10, legend=legend(5))
    zones = suggest_dithering_zones(palette, bmap, EdgeMap(grid=[[0] * 10] * 10))
    assert len(zones) == 5


def test_metadata():
    palette = [entry("#111111", 5, hue=10, usage=25), entry("#EEEEEE", 95, hue=50, usage=75)]
    meta = calculate_metadata(palette, 200, 100, 50, 25)
    assert meta.dominant_hue == pytest.approx(40.0)
    assert meta.contrast_ratio == "high"
    assert meta.scale_factor == pytest.approx(0.25)
    assert meta.color_harmony == "analogous"


def test_render_mentions_sections(scene, rng):
    text = render(analyze_reference(scene, 24, 16, palette_size=6, rng=rng))
    assert text.startswith("HARMONY:")
    assert "PALETTE:" in text and "COMPOSITION:" in text


def test_load_image(tmp_path):
    path = tmp_path / "ref.png"
    Image.new("RGB", (6, 4), (10, 20, 30)).save(path)
    raster = load_image(str(path))
    assert raster.shape == (4, 6, 4)
    assert tuple(raster[0, 0]) == (10, 20, 30, 255)


def test_load_image_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_image(str(tmp_path / "missing.png"))


def test_load_image_rejects_non_image(tmp_path):
    path = tmp_path / "notes.png"
    path.write_text("not an image")
    with pytest.raises(ValidationError):
        load_image(str(path))
