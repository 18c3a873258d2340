#!/usr/bin/env python3
"""
Map raster pixels onto a palette.

Nearest-color remapping and Floyd-Steinberg error diffusion pick colors by
LAB distance. Pattern fills tile a threshold matrix over a rectangle to mix
two colors at a given density.
"""

import logging
from enum import Enum

import numpy as np
from scipy.spatial.distance import cdist

from color_space import Color, rgb_to_lab
from raster import EmptyPaletteError, ValidationError, as_raster

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Floyd-Steinberg kernel: (dx, dy, numerator) over 16
ERROR_DIFFUSION = [
    (1, 0, 7),
    (-1, 1, 3),
    (0, 1, 5),
    (1, 1, 1),
]

DEFAULT_DENSITY = 0.5


class DitherPattern(str, Enum):
    BAYER_2X2 = 'bayer_2x2'
    BAYER_4X4 = 'bayer_4x4'
    BAYER_8X8 = 'bayer_8x8'
    CHECKERBOARD = 'checkerboard'
    GRASS = 'grass'
    WATER = 'water'
    STONE = 'stone'
    CLOUD = 'cloud'
    BRICK = 'brick'
    DOTS = 'dots'
    DIAGONAL = 'diagonal'
    CROSS = 'cross'
    NOISE = 'noise'
    HORIZONTAL_LINES = 'horizontal_lines'
    VERTICAL_LINES = 'vertical_lines'

    @classmethod
    def parse(cls, value) -> 'DitherPattern':
        try:
            return cls(value)
        except ValueError:
            names = ', '.join(p.value for p in cls)
            raise ValidationError(f"Invalid pattern: {value} (must be one of: {names})") from None


PATTERN_MATRICES = {
    DitherPattern.BAYER_2X2: [
        [0, 2],
        [3, 1],
    ],
    DitherPattern.BAYER_4X4: [
        [0, 8, 2, 10],
        [12, 4, 14, 6],
        [3, 11, 1, 9],
        [15, 7, 13, 5],
    ],
    DitherPattern.BAYER_8X8: [
        [0, 32, 8, 40, 2, 34, 10, 42],
        [48, 16, 56, 24, 50, 18, 58, 26],
        [12, 44, 4, 36, 14, 46, 6, 38],
        [60, 28, 52, 20, 62, 30, 54, 22],
        [3, 35, 11, 43, 1, 33, 9, 41],
        [51, 19, 59, 27, 49, 17, 57, 25],
        [15, 47, 7, 39, 13, 45, 5, 37],
        [63, 31, 55, 23, 61, 29, 53, 21],
    ],
    DitherPattern.CHECKERBOARD: [
        [0, 1],
        [1, 0],
    ],
    DitherPattern.GRASS: [
        [1, 0, 1, 0, 1, 0],
        [0, 1, 1, 0, 0, 1],
        [1, 1, 0, 1, 0, 0],
        [0, 1, 0, 1, 1, 0],
        [1, 0, 0, 0, 1, 1],
        [0, 0, 1, 1, 0, 1],
    ],
    DitherPattern.WATER: [
        [0, 0, 1, 1, 0, 0],
        [0, 1, 1, 1, 1, 0],
        [1, 1, 0, 0, 1, 1],
        [1, 0, 0, 0, 0, 1],
        [0, 1, 1, 1, 1, 0],
        [0, 0, 1, 1, 0, 0],
    ],
    DitherPattern.STONE: [
        [0, 0, 0, 1, 1, 0],
        [0, 1, 0, 0, 1, 1],
        [0, 0, 1, 1, 0, 0],
        [1, 1, 0, 0, 0, 1],
        [1, 0, 0, 1, 1, 0],
        [0, 1, 1, 0, 0, 0],
    ],
    DitherPattern.CLOUD: [
        [0, 0, 0, 0, 1, 1],
        [0, 0, 0, 1, 1, 1],
        [0, 0, 1, 1, 1, 0],
        [0, 1, 1, 1, 0, 0],
        [1, 1, 1, 0, 0, 0],
        [1, 1, 0, 0, 0, 0],
    ],
    DitherPattern.BRICK: [
        [0, 0, 0, 0, 1, 0, 0, 0],
        [0, 0, 0, 0, 1, 0, 0, 0],
        [1, 1, 1, 1, 1, 1, 1, 1],
        [0, 0, 1, 0, 0, 0, 0, 1],
        [0, 0, 1, 0, 0, 0, 0, 1],
        [1, 1, 1, 1, 1, 1, 1, 1],
        [0, 0, 0, 0, 1, 0, 0, 0],
        [0, 0, 0, 0, 1, 0, 0, 0],
    ],
    DitherPattern.DOTS: [
        [1, 0, 0, 0],
        [0, 0, 0, 0],
        [0, 0, 1, 0],
        [0, 0, 0, 0],
    ],
    DitherPattern.DIAGONAL: [
        [1, 0, 0, 0],
        [0, 1, 0, 0],
        [0, 0, 1, 0],
        [0, 0, 0, 1],
    ],
    DitherPattern.CROSS: [
        [0, 1, 0],
        [1, 1, 1],
        [0, 1, 0],
    ],
    DitherPattern.NOISE: [
        [1, 0, 1, 0, 0, 1],
        [0, 1, 0, 1, 1, 0],
        [1, 0, 0, 1, 0, 1],
        [0, 1, 1, 0, 1, 0],
        [0, 0, 1, 0, 1, 1],
        [1, 1, 0, 1, 0, 0],
    ],
    DitherPattern.HORIZONTAL_LINES: [
        [1, 1, 1, 1],
        [0, 0, 0, 0],
        [1, 1, 1, 1],
        [0, 0, 0, 0],
    ],
    DitherPattern.VERTICAL_LINES: [
        [1, 0, 1, 0],
        [1, 0, 1, 0],
        [1, 0, 1, 0],
        [1, 0, 1, 0],
    ],
}


# =============================================================================
# Palette lookup
# =============================================================================

def coerce_palette(palette) -> list[Color]:
    """Accept Colors or hex strings; reject an empty palette."""
    colors = [Color.from_hex(c) if isinstance(c, str) else c for c in palette]
    if not colors:
        raise EmptyPaletteError("Palette is empty")
    return colors


class NearestColorLookup:
    """LAB-nearest palette search with a per-call cache of resolved RGB triples."""

    def __init__(self, palette: list[Color]):
        self.palette = palette
        self.palette_rgba = np.array([c.rgba() for c in palette], dtype=np.uint8)
        self.palette_lab = rgb_to_lab(np.array([c.rgb() for c in palette]))
        self._cache = {}

    def indices(self, rgb: np.ndarray) -> np.ndarray:
        """Nearest palette index for every row of an (n, 3) array."""
        if len(rgb) == 0:
            return np.empty(0, dtype=np.int64)
        return np.argmin(cdist(rgb_to_lab(rgb), self.palette_lab), axis=1)

    def index(self, r: int, g: int, b: int) -> int:
        key = (r, g, b)
        if key not in self._cache:
            self._cache[key] = int(self.indices(np.array([key]))[0])
        return self._cache[key]


# =============================================================================
# Remapping
# =============================================================================

def remap_pixels(raster, palette, dither: bool = False) -> np.ndarray:
    """
    Replace every opaque pixel with a palette color.

    Fully transparent pixels are copied through unchanged.

    Raises:
        EmptyPaletteError: If the palette is empty
    """
    if dither:
        return floyd_steinberg_dither(raster, palette)

    raster = as_raster(raster)
    lookup = NearestColorLookup(coerce_palette(palette))

    result = raster.copy()
    opaque = raster[:, :, 3] > 0
    result[opaque] = lookup.palette_rgba[lookup.indices(raster[opaque][:, :3])]
    return result


def floyd_steinberg_dither(raster, palette) -> np.ndarray:
    """
    Remap with Floyd-Steinberg error diffusion.

    Error is diffused through a working buffer so only pixels not yet
    visited receive it: right 7/16, below-left 3/16, below 5/16,
    below-right 1/16, each channel clamped to [0, 255].

    Raises:
        EmptyPaletteError: If the palette is empty
    """
    raster = as_raster(raster)
    lookup = NearestColorLookup(coerce_palette(palette))
    h, w = raster.shape[:2]

    buffer = raster.astype(np.int32)
    result = raster.copy()

    for y in range(h):
        for x in range(w):
            r, g, b, a = (int(v) for v in buffer[y, x])
            if a == 0:
                continue

            chosen = lookup.palette_rgba[lookup.index(r, g, b)]
            result[y, x] = chosen

            err = (r - int(chosen[0]), g - int(chosen[1]), b - int(chosen[2]))
            if err == (0, 0, 0):
                continue

            for dx, dy, weight in ERROR_DIFFUSION:
                nx, ny = x + dx, y + dy
                if 0 <= nx < w and ny < h:
                    for c in range(3):
                        # int() truncates toward zero like the integer kernel
                        value = buffer[ny, nx, c] + int(err[c] * weight / 16)
                        buffer[ny, nx, c] = min(255, max(0, value))

    return result


# =============================================================================
# Pattern fill
# =============================================================================

def pattern_mask(pattern, width: int, height: int, density: float) -> np.ndarray:
    """Boolean (height, width) mask, True where color2 is used."""
    matrix = np.array(PATTERN_MATRICES[DitherPattern.parse(pattern)])
    n = matrix.shape[0]
    threshold = density * n * n
    tiled = np.tile(matrix, (height // n + 1, width // n + 1))[:height, :width]
    return tiled < threshold


def fill_pattern(raster, x: int, y: int, width: int, height: int,
                 color1, color2, pattern='bayer_4x4',
                 density: float = DEFAULT_DENSITY) -> np.ndarray:
    """
    Fill a rectangle by tiling a pattern matrix between two colors.

    The pattern is anchored at the rectangle's top-left corner. A pixel takes
    color2 where the matrix value is below density * n^2, else color1.
    The rectangle is clipped to the raster.

    Raises:
        ValidationError: If density is outside [0, 1], the pattern is unknown,
            or the rectangle does not overlap the raster
    """
    if density < 0 or density > 1:
        raise ValidationError(f"density must be between 0.0 and 1.0, got {density}")
    if width <= 0 or height <= 0:
        raise ValidationError(f"Region size must be positive, got {width}x{height}")

    raster = as_raster(raster)
    color1 = Color.from_hex(color1) if isinstance(color1, str) else color1
    color2 = Color.from_hex(color2) if isinstance(color2, str) else color2

    h, w = raster.shape[:2]
    x0, y0 = max(x, 0), max(y, 0)
    x1, y1 = min(x + width, w), min(y + height, h)
    if x0 >= x1 or y0 >= y1:
        raise ValidationError(f"Region ({x}, {y}, {width}x{height}) lies outside the {w}x{h} raster")

    mask = pattern_mask(pattern, width, height, density)[y0 - y:y1 - y, x0 - x:x1 - x]

    result = raster.copy()
    region = result[y0:y1, x0:x1]
    region[mask] = color2.rgba()
    region[~mask] = color1.rgba()
    return result
