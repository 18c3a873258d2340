import pytest

from extract_palette import PaletteColor
from palette_harmony import analyze_palette_harmonies, determine_color_harmony
from raster import ValidationError


def entries(*hues):
    return [PaletteColor(color="#000000", hue=h, saturation=80, lightness=50) for h in hues]


def test_complementary_pair():
    result = analyze_palette_harmonies(["#FF0000", "#00FFFF"])
    assert len(result.complementary) == 1
    pair = result.complementary[0]
    assert (pair.color1, pair.color2) == ("#FF0000", "#00FFFF")
    assert "180° apart" in pair.description


def test_primary_colors_are_triadic():
    result = analyze_palette_harmonies(["#FF0000", "#00FF00", "#0000FF"])
    assert len(result.triadic) == 1
    assert result.triadic[0].balance == pytest.approx(1.0)


def test_analogous_group():
    result = analyze_palette_harmonies(["#FF0000", "#FF8000", "#FFFF00", "#0000FF"])
    assert result.analogous
    assert all(len(group.colors) >= 3 for group in result.analogous)
    assert all("#0000FF" not in group.colors for group in result.analogous)


def test_temperature_split():
    result = analyze_palette_harmonies(["#FF0000", "#FF8000", "#0000FF", "#808080"])
    temp = result.temperature
    assert temp.warm_colors == ["#FF0000", "#FF8000"]
    assert temp.cool_colors == ["#0000FF"]
    assert temp.neutral_colors == ["#808080"]
    assert temp.dominant == "warm"


def test_balanced_temperature_is_neutral():
    assert analyze_palette_harmonies(["#FF0000", "#0000FF"]).temperature.dominant == "neutral"


def test_invalid_hex():
    with pytest.raises(ValidationError):
        analyze_palette_harmonies(["red"])


@pytest.mark.parametrize("hues, expected", [
    ((30,), "monochromatic"),
    ((0, 180), "complementary"),
    ((10, 40), "analogous"),
    ((0, 120, 240), "triadic"),
    ((0, 90), "diverse"),
])
def test_determine_color_harmony(hues, expected):
    assert determine_color_harmony(entries(*hues)) == expected
