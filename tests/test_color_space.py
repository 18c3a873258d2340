import numpy as np
import pytest

from color_space import (
    Color, circular_hue_distance, hex_to_hsl, hsl_to_rgb, lab_distance, lab_to_hex, lab_to_rgb,
    rgb_to_hsl, rgb_to_lab,
)
from raster import ValidationError


def test_hex_round_trip():
    assert Color.from_hex("#12AB9F").to_hex_rgb() == "#12AB9F"
    assert Color.from_hex("#12ab9f80").to_hex() == "#12AB9F80"
    assert Color.from_hex("0a0b0c") == Color(10, 11, 12, 255)


def test_hex_without_alpha_is_opaque():
    assert Color.from_hex("#000000").a == 255
    assert Color.from_hex("#00000000").is_transparent


@pytest.mark.parametrize("bad", ["#12345", "#GGGGGG", "", "#1234567"])
def test_invalid_hex_rejected(bad):
    with pytest.raises(ValidationError):
        Color.from_hex(bad)


def test_channel_out_of_range_rejected():
    with pytest.raises(ValidationError):
        Color(256, 0, 0)


def test_white_lab():
    L, a, b = rgb_to_lab(np.array([[255, 255, 255]]))[0]
    assert L == pytest.approx(100.0, abs=1e-3)
    assert a == pytest.approx(0.0, abs=1e-2)
    assert b == pytest.approx(0.0, abs=1e-2)


def test_lab_round_trip_stays_within_one_step():
    rgb = np.array([[0, 0, 0], [255, 0, 0], [12, 200, 99], [128, 128, 128], [250, 240, 10]])
    back = lab_to_rgb(rgb_to_lab(rgb)).astype(int)
    assert np.abs(back - rgb).max() <= 1


def test_lab_to_hex():
    assert lab_to_hex(rgb_to_lab(np.array([[255, 0, 0]]))[0]) == "#FF0000"


def test_hsl_conversions():
    assert rgb_to_hsl(255, 0, 0) == pytest.approx((0.0, 1.0, 0.5))
    assert hsl_to_rgb(120, 1.0, 0.5) == (0, 255, 0)
    h, s, l = hex_to_hsl("#0000FF")
    assert h == pytest.approx(240.0)


def test_circular_hue_distance_wraps():
    assert circular_hue_distance(10, 350) == 20
    assert circular_hue_distance(0, 180) == 180


def test_lab_distance():
    assert lab_distance([50, 0, 0], [53, 4, 0]) == pytest.approx(5.0)
