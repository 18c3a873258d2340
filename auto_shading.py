#!/usr/bin/env python3
"""
Geometry-aware automatic shading.

Flat-color regions are found with a flood fill, each region is treated as a
hemisphere facing the viewer, and pixels are recolored from a generated
shadow/base/highlight ramp according to the chosen style.
"""

import logging
import math
from collections import deque
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from color_space import Color, rgb_to_hsl, hsl_to_rgb
from raster import DegenerateInputError, ValidationError, as_raster

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

FLOOD_FILL_TOLERANCE = 2000  # RGB distance in 16-bit channel units
CHANNEL_16BIT = 257  # 8-bit -> 16-bit channel scale
MIN_REGION_PIXELS = 4
MIN_LIGHT_FACING = 0.1

RAMP_LIGHTNESS_SHIFT = 0.3  # Max lightness change at intensity 1.0
RAMP_HUE_SHIFT = 10.0  # Degrees; shadows cooler (+), highlights warmer (-)

CELL_SHADOW_BELOW = 0.3
CELL_HIGHLIGHT_FROM = 0.7
OUTSIDE_RADIUS_FACTOR = 0.5

# Smooth style: blend threshold for even / odd checkerboard cells
SMOOTH_THRESHOLDS = (0.25, 0.75)


@dataclass(frozen=True)
class Vector3D:
    """A 3D vector for surface normals and light direction."""
    x: float
    y: float
    z: float

    def normalize(self) -> 'Vector3D':
        length = math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)
        if length == 0:
            return self
        return Vector3D(self.x / length, self.y / length, self.z / length)

    def dot(self, other: 'Vector3D') -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z


class LightDirection(str, Enum):
    TOP_LEFT = 'top_left'
    TOP = 'top'
    TOP_RIGHT = 'top_right'
    LEFT = 'left'
    RIGHT = 'right'
    BOTTOM_LEFT = 'bottom_left'
    BOTTOM = 'bottom'
    BOTTOM_RIGHT = 'bottom_right'

    @classmethod
    def parse(cls, value) -> 'LightDirection':
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(f"Invalid light direction: {value}") from None

    def vector(self) -> Vector3D:
        """Unit vector pointing toward the light; screen y grows downward."""
        dx, dy = LIGHT_OFFSETS[self]
        return Vector3D(dx, dy, 1).normalize()


LIGHT_OFFSETS = {
    LightDirection.TOP_LEFT: (-1, -1),
    LightDirection.TOP: (0, -1),
    LightDirection.TOP_RIGHT: (1, -1),
    LightDirection.LEFT: (-1, 0),
    LightDirection.RIGHT: (1, 0),
    LightDirection.BOTTOM_LEFT: (-1, 1),
    LightDirection.BOTTOM: (0, 1),
    LightDirection.BOTTOM_RIGHT: (1, 1),
}


class ShadingStyle(str, Enum):
    CELL = 'cell'
    SMOOTH = 'smooth'
    SOFT = 'soft'

    @classmethod
    def parse(cls, value) -> 'ShadingStyle':
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(f"Invalid shading style: {value} (must be cell, smooth, or soft)") from None


@dataclass
class ShadingRegion:
    """A contiguous run of similar colors."""
    min_x: int
    min_y: int
    max_x: int  # Exclusive
    max_y: int  # Exclusive
    base_color: Color
    pixels: list  # (x, y) tuples
    normal: Vector3D = field(default_factory=lambda: Vector3D(0, 0, 1))

    @property
    def width(self) -> int:
        return self.max_x - self.min_x

    @property
    def height(self) -> int:
        return self.max_y - self.min_y

    def center(self) -> tuple[float, float]:
        return (self.min_x + self.max_x) / 2.0, (self.min_y + self.max_y) / 2.0

    def radius(self) -> float:
        return max(self.width / 2.0, self.height / 2.0)


@dataclass
class ShadingResult:
    """Output of apply_auto_shading."""
    raster: np.ndarray
    generated_colors: list  # Hex strings, [shadow, base, highlight] per base color
    regions_shaded: int


# =============================================================================
# Segmentation
# =============================================================================

def colors_match(c1: np.ndarray, c2: np.ndarray, tolerance: int = FLOOD_FILL_TOLERANCE) -> bool:
    """True if two opaque pixels are within tolerance (16-bit RGB distance)."""
    if c1[3] == 0 or c2[3] == 0:
        return False
    diff = (c1[:3].astype(np.int64) - c2[:3].astype(np.int64)) * CHANNEL_16BIT
    return int(math.sqrt(int(np.dot(diff, diff)))) <= tolerance


def flood_fill(raster: np.ndarray, start: tuple[int, int], target: np.ndarray,
               visited: np.ndarray) -> list[tuple[int, int]]:
    """
    Collect the 4-connected pixels around start that match target.

    visited is the caller's (h, w) boolean grid; matched pixels are marked in
    it. Pixels that fail the match stay unvisited and may seed later regions.
    """
    h, w = raster.shape[:2]
    pixels = []
    queue = deque([start])

    while queue:
        x, y = queue.popleft()
        if x < 0 or y < 0 or x >= w or y >= h or visited[y, x]:
            continue
        if not colors_match(raster[y, x], target):
            continue

        visited[y, x] = True
        pixels.append((x, y))
        queue.extend(((x + 1, y), (x - 1, y), (x, y + 1), (x, y - 1)))

    return pixels


def detect_regions(raster: np.ndarray) -> list[ShadingRegion]:
    """Segment a raster into flat-color regions of at least MIN_REGION_PIXELS."""
    h, w = raster.shape[:2]
    visited = np.zeros((h, w), dtype=bool)
    regions = []

    for y in range(h):
        for x in range(w):
            if visited[y, x]:
                continue
            if raster[y, x, 3] == 0:
                visited[y, x] = True
                continue

            seed = raster[y, x].copy()
            pixels = flood_fill(raster, (x, y), seed, visited)
            if len(pixels) < MIN_REGION_PIXELS:
                continue

            xs = [p[0] for p in pixels]
            ys = [p[1] for p in pixels]
            regions.append(ShadingRegion(
                min_x=min(xs),
                min_y=min(ys),
                max_x=max(xs) + 1,
                max_y=max(ys) + 1,
                base_color=Color.from_array(seed),
                pixels=pixels,
            ))

    logger.debug("Detected %d shading regions", len(regions))
    return regions


# =============================================================================
# Ramps and lighting
# =============================================================================

def generate_color_ramp(base: Color, intensity: float, hue_shift: bool) -> list[str]:
    """Return [shadow, base, highlight] hex colors for a base color."""
    h, s, l = rgb_to_hsl(base.r, base.g, base.b)

    shadow_l = max(0.0, l - l * RAMP_LIGHTNESS_SHIFT * intensity)
    shadow_h = (h + RAMP_HUE_SHIFT) % 360 if hue_shift else h

    highlight_l = min(1.0, l + (1.0 - l) * RAMP_LIGHTNESS_SHIFT * intensity)
    highlight_h = (h - RAMP_HUE_SHIFT) % 360 if hue_shift else h

    shadow = Color(*hsl_to_rgb(shadow_h, s, shadow_l))
    highlight = Color(*hsl_to_rgb(highlight_h, s, highlight_l))

    return [shadow.to_hex_rgb(), base.to_hex_rgb(), highlight.to_hex_rgb()]


def pixel_lighting_factor(region: ShadingRegion, x: int, y: int) -> float:
    """
    Lighting for one pixel, treating the region as a hemisphere.

    1.0 at the bounding-box center falling to 0.0 at the radius; pixels
    outside the radius get a flat mid value.
    """
    cx, cy = region.center()
    radius = region.radius()
    dist = math.hypot(x - cx, y - cy)
    if dist < radius:
        norm_dist = dist / radius
        return math.sqrt(1.0 - norm_dist * norm_dist)
    return OUTSIDE_RADIUS_FACTOR


def ramp_pair(ramp: list[Color], factor: float) -> tuple[Color, Color, float]:
    """The two ramp colors around factor and the blend between them (0-1)."""
    if factor < 0.5:
        return ramp[0], ramp[1], factor * 2
    return ramp[1], ramp[2], (factor - 0.5) * 2


def blend_colors(c1: Color, c2: Color, t: float) -> Color:
    """Linear RGBA blend; t=0 gives c1, t=1 gives c2."""
    return Color(*(int(a * (1 - t) + b * t) for a, b in zip(c1.rgba(), c2.rgba())))


# =============================================================================
# Rendering
# =============================================================================

def apply_cell_shading(result: np.ndarray, region: ShadingRegion, ramp: list[Color]) -> None:
    """Hard bands: shadow, base, highlight."""
    for x, y in region.pixels:
        factor = pixel_lighting_factor(region, x, y)
        if factor < CELL_SHADOW_BELOW:
            color = ramp[0]
        elif factor < CELL_HIGHLIGHT_FROM:
            color = ramp[1]
        else:
            color = ramp[2]
        result[y, x] = color.rgba()


def apply_smooth_shading(result: np.ndarray, region: ShadingRegion, ramp: list[Color]) -> None:
    """Two-color checkerboard interleave between adjacent ramp colors."""
    for x, y in region.pixels:
        low, high, blend = ramp_pair(ramp, pixel_lighting_factor(region, x, y))
        threshold = SMOOTH_THRESHOLDS[(x + y) % 2]
        result[y, x] = (high if blend > threshold else low).rgba()


def apply_soft_shading(result: np.ndarray, region: ShadingRegion, ramp: list[Color]) -> None:
    """Continuous blend between adjacent ramp colors."""
    for x, y in region.pixels:
        low, high, blend = ramp_pair(ramp, pixel_lighting_factor(region, x, y))
        result[y, x] = blend_colors(low, high, blend).rgba()


RENDERERS = {
    ShadingStyle.CELL: apply_cell_shading,
    ShadingStyle.SMOOTH: apply_smooth_shading,
    ShadingStyle.SOFT: apply_soft_shading,
}


def apply_auto_shading(raster, light_direction='top_left', intensity: float = 0.5,
                       style='cell', hue_shift: bool = True) -> ShadingResult:
    """
    Shade every flat-color region of a raster.

    Raises:
        ValidationError: If intensity is outside [0, 1] or the direction or
            style is unknown
        DegenerateInputError: If no regions are found
    """
    if intensity < 0.0 or intensity > 1.0:
        raise ValidationError(f"intensity must be between 0.0 and 1.0, got {intensity}")
    light = LightDirection.parse(light_direction).vector()
    style = ShadingStyle.parse(style)

    raster = as_raster(raster)
    regions = detect_regions(raster)
    if not regions:
        raise DegenerateInputError("No regions detected in image")

    ramps = {}
    for region in regions:
        key = region.base_color
        if key not in ramps:
            ramps[key] = generate_color_ramp(region.base_color, intensity, hue_shift)

    result = raster.copy()
    render = RENDERERS[style]
    shaded = 0
    for region in regions:
        if region.normal.dot(light) < MIN_LIGHT_FACING and style is not ShadingStyle.CELL:
            continue
        render(result, region, [Color.from_hex(c) for c in ramps[region.base_color]])
        shaded += 1

    generated = [hex_color for ramp in ramps.values() for hex_color in ramp]
    return ShadingResult(raster=result, generated_colors=generated, regions_shaded=shaded)
