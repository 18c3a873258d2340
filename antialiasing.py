#!/usr/bin/env python3
"""
Find stair-step diagonals in pixel art and suggest in-between pixels.

Each suggestion names one pixel to repaint with a 50/50 blend of the two
colors meeting at the step.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Optional

import numpy as np

from color_space import Color
from dither import coerce_palette
from raster import ValidationError, as_raster

logger = logging.getLogger(__name__)


@dataclass
class EdgeSuggestion:
    x: int
    y: int
    current_color: str  # #RRGGBBAA
    neighbor_color: str
    suggested_color: str
    direction: str  # diagonal_ne, diagonal_nw, diagonal_se, diagonal_sw

    def to_dict(self) -> dict:
        return asdict(self)


def blend_half(c1: Color, c2: Color) -> Color:
    """50/50 RGBA blend, rounding down."""
    return Color(*((a + b) // 2 for a, b in zip(c1.rgba(), c2.rgba())))


def suggestion(x: int, y: int, current: Color, neighbor: Color, direction: str) -> EdgeSuggestion:
    return EdgeSuggestion(
        x=x,
        y=y,
        current_color=current.to_hex(),
        neighbor_color=neighbor.to_hex(),
        suggested_color=blend_half(neighbor, current).to_hex(),
        direction=direction,
    )


def detect_jagged_edges(raster, region: Optional[tuple] = None) -> list[EdgeSuggestion]:
    """
    Scan 2x2 windows for diagonal stair steps.

    region is an optional (x, y, width, height) window; pixels outside the
    raster never match. Opaque pixels are checked for ne/nw steps (a gap
    below a solid pair), transparent pixels for se/sw steps (a gap beside a
    solid L-shape).

    Raises:
        ValidationError: If the region has a non-positive size
    """
    raster = as_raster(raster)
    h, w = raster.shape[:2]
    rx, ry, rw, rh = region if region is not None else (0, 0, w, h)
    if rw <= 0 or rh <= 0:
        raise ValidationError(f"Region size must be positive, got {rw}x{rh}")

    def pixel(px, py):
        if 0 <= px < w and 0 <= py < h:
            return Color.from_array(raster[py, px])
        return None

    def is_gap(c):
        return c is None or c.is_transparent

    found = []
    for y in range(max(ry, 0), min(ry + rh, h) - 1):
        for x in range(max(rx, 0), min(rx + rw, w) - 1):
            current = pixel(x, y)
            below = pixel(x, y + 1)

            if not current.is_transparent:
                # ##     ##
                # .#  or #.
                if is_gap(below) and pixel(x + 1, y) == current and pixel(x + 1, y + 1) == current:
                    found.append(suggestion(x, y + 1, below, current, 'diagonal_ne'))
                if (x > 0 and is_gap(below) and pixel(x - 1, y) == current
                        and pixel(x - 1, y + 1) == current):
                    found.append(suggestion(x, y + 1, below, current, 'diagonal_nw'))
                continue

            # .#     #.
            # ##  or ##
            right = pixel(x + 1, y)
            if not is_gap(right) and below == right and pixel(x + 1, y + 1) == right:
                found.append(suggestion(x, y, current, right, 'diagonal_se'))
            if x > 0:
                left = pixel(x - 1, y)
                if not is_gap(left) and below == left and pixel(x - 1, y + 1) == left:
                    found.append(suggestion(x, y, current, left, 'diagonal_sw'))

    logger.debug("Found %d jagged edge candidates", len(found))
    return found


def nearest_rgb(target: Color, palette: list[Color]) -> Color:
    """Closest palette color by plain RGB distance."""
    rgb = np.array([c.rgb() for c in palette], dtype=np.float64)
    distances = np.linalg.norm(rgb - np.array(target.rgb(), dtype=np.float64), axis=1)
    return palette[int(np.argmin(distances))]


def apply_antialiasing(raster, suggestions: list[EdgeSuggestion], palette=None) -> np.ndarray:
    """
    Write each suggested color into a copy of the raster.

    With a palette, suggested colors snap to the RGB-nearest entry.

    Raises:
        EmptyPaletteError: If palette is given but empty
    """
    result = as_raster(raster)
    colors = coerce_palette(palette) if palette is not None else None
    h, w = result.shape[:2]

    for s in suggestions:
        if not (0 <= s.x < w and 0 <= s.y < h):
            continue
        color = Color.from_hex(s.suggested_color)
        if colors is not None:
            color = nearest_rgb(color, colors)
        result[s.y, s.x] = color.rgba()

    return result
