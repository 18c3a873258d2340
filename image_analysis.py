#!/usr/bin/env python3
"""
Structural analysis of a raster: brightness levels, edges, and composition.

All results are plain dataclasses over lists so they serialize to JSON
without further conversion.
"""

import logging
import math
from dataclasses import dataclass, field, asdict

import numpy as np
from PIL import Image
from scipy import ndimage

from raster import ValidationError, as_raster, resize_bilinear

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MAX_BRIGHTNESS_LEVELS = 256
DEFAULT_EDGE_THRESHOLD = 30
SOBEL_MIN_RUN = 5  # Shortest edge run reported as a major edge
MAX_EDGE_STRENGTH = 100.0

FOCAL_GRID_SIZE = 16
FOCAL_DENSITY_RATIO = 0.5  # Cells above this share of the max density qualify
MAX_FOCAL_POINTS = 3

# Rec. 709 luma
LUMA_WEIGHTS = np.array([0.2126, 0.7152, 0.0722])

BRIGHTNESS_BANDS = [
    (0.2, 'darkest'),
    (0.4, 'dark'),
    (0.6, 'mid'),
    (0.8, 'light'),
]
TOP_BRIGHTNESS = 'lightest'


# =============================================================================
# Data structures
# =============================================================================

@dataclass
class Point:
    x: int
    y: int


@dataclass
class BrightnessMap:
    """Quantized brightness per cell; legend maps str(level) to a label."""
    grid: list
    legend: dict

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class MajorEdge:
    """A horizontal or vertical run of edge pixels (endpoints inclusive)."""
    start: Point
    end: Point
    strength: float  # 0-100

    def to_dict(self) -> dict:
        return {'from': asdict(self.start), 'to': asdict(self.end), 'strength': self.strength}


@dataclass
class EdgeMap:
    """Binary edge grid (1 = edge) plus the major edge runs found in it."""
    grid: list
    major_edges: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {'grid': self.grid, 'major_edges': [e.to_dict() for e in self.major_edges]}


@dataclass
class FocalPoint:
    x: int
    y: int
    weight: float  # 0-1, relative to the densest cell


@dataclass
class Intersection:
    x: int
    y: int
    has_focal_point: bool = False


@dataclass
class RuleOfThirdsGuide:
    vertical_lines: list
    horizontal_lines: list
    intersections: list


@dataclass
class Region:
    x: int
    y: int
    width: int
    height: int


@dataclass
class Composition:
    focal_points: list
    rule_of_thirds: RuleOfThirdsGuide
    dominant_region: Region

    def to_dict(self) -> dict:
        return asdict(self)


# =============================================================================
# Brightness
# =============================================================================

def brightness_label(level: int, num_levels: int) -> str:
    ratio = level / (num_levels - 1)
    for upper, label in BRIGHTNESS_BANDS:
        if ratio < upper:
            return label
    return TOP_BRIGHTNESS


def generate_brightness_map(raster, target_width: int, target_height: int,
                            num_levels: int) -> BrightnessMap:
    """
    Downsample a raster and quantize its luma into num_levels bands.

    Raises:
        ValidationError: If the target size is not positive or num_levels is
            outside [2, 256]
    """
    if target_width <= 0 or target_height <= 0:
        raise ValidationError(
            f"target dimensions must be positive, got {target_width}x{target_height}"
        )
    if num_levels < 2 or num_levels > MAX_BRIGHTNESS_LEVELS:
        raise ValidationError(f"num_levels must be between 2 and 256, got {num_levels}")

    resized = resize_bilinear(as_raster(raster), target_width, target_height)
    gray = resized[:, :, :3].astype(np.float64) @ LUMA_WEIGHTS

    levels = np.minimum((gray / 256.0 * num_levels).astype(int), num_levels - 1)
    legend = {str(i): brightness_label(i, num_levels) for i in range(num_levels)}

    return BrightnessMap(grid=levels.tolist(), legend=legend)


# =============================================================================
# Edges
# =============================================================================

def sobel_magnitude(gray: np.ndarray) -> np.ndarray:
    """3x3 Sobel gradient magnitude; border pixels are left at zero."""
    gray = gray.astype(np.float64)
    gx = ndimage.sobel(gray, axis=1)
    gy = ndimage.sobel(gray, axis=0)
    magnitude = np.hypot(gx, gy)

    magnitude[0, :] = 0
    magnitude[-1, :] = 0
    magnitude[:, 0] = 0
    magnitude[:, -1] = 0
    return magnitude


def run_strength(magnitudes: np.ndarray) -> float:
    mean = float(magnitudes.mean())
    return min(MAX_EDGE_STRENGTH, mean / 255.0 * 100.0)


def edge_runs(line: np.ndarray, min_length: int) -> list[tuple[int, int]]:
    """(start, end_exclusive) of each run of True at least min_length long."""
    runs = []
    start = None
    for i, on in enumerate(line):
        if on and start is None:
            start = i
        elif not on and start is not None:
            if i - start >= min_length:
                runs.append((start, i))
            start = None
    if start is not None and len(line) - start >= min_length:
        runs.append((start, len(line)))
    return runs


def find_major_edges(edges: np.ndarray, magnitudes: np.ndarray,
                     min_length: int = SOBEL_MIN_RUN) -> list[MajorEdge]:
    """
    Scan interior rows, then interior columns, for contiguous edge runs.

    Runs still open at the end of a row or column are reported too.
    """
    h, w = edges.shape
    major = []

    for y in range(1, h - 1):
        row = edges[y, 1:w - 1]
        for start, end in edge_runs(row, min_length):
            x0, x1 = start + 1, end + 1
            major.append(MajorEdge(
                start=Point(x0, y),
                end=Point(x1 - 1, y),
                strength=run_strength(magnitudes[y, x0:x1]),
            ))

    for x in range(1, w - 1):
        column = edges[1:h - 1, x]
        for start, end in edge_runs(column, min_length):
            y0, y1 = start + 1, end + 1
            major.append(MajorEdge(
                start=Point(x, y0),
                end=Point(x, y1 - 1),
                strength=run_strength(magnitudes[y0:y1, x]),
            ))

    return major


def detect_edges(raster, threshold: int = DEFAULT_EDGE_THRESHOLD,
                 target_width: int = 0, target_height: int = 0) -> EdgeMap:
    """
    Sobel edge detection over a grayscale copy of the raster.

    The raster is downsampled first when both target dimensions are given.

    Raises:
        ValidationError: If threshold is outside [0, 255]
    """
    if threshold < 0 or threshold > 255:
        raise ValidationError(f"threshold must be between 0 and 255, got {threshold}")

    raster = as_raster(raster)
    if target_width > 0 and target_height > 0:
        raster = resize_bilinear(raster, target_width, target_height)

    gray = np.array(Image.fromarray(np.ascontiguousarray(raster)).convert('L'))
    magnitudes = sobel_magnitude(gray)
    edges = magnitudes > threshold

    major = find_major_edges(edges, magnitudes)
    logger.debug("Detected %d edge pixels, %d major edges", int(edges.sum()), len(major))

    return EdgeMap(grid=edges.astype(int).tolist(), major_edges=major)


# =============================================================================
# Composition
# =============================================================================

def find_focal_points(edge_grid: np.ndarray, width: int, height: int) -> list[FocalPoint]:
    """
    Rank cells of a 16x16 grid by edge density.

    Cell sizes are integer divisions of the image size, so images narrower
    or shorter than the grid have no cells and yield no focal points.
    """
    cell_w = width // FOCAL_GRID_SIZE
    cell_h = height // FOCAL_GRID_SIZE
    if cell_w == 0 or cell_h == 0:
        return []

    cells = []
    for gy in range(FOCAL_GRID_SIZE):
        for gx in range(FOCAL_GRID_SIZE):
            block = edge_grid[gy * cell_h:(gy + 1) * cell_h, gx * cell_w:(gx + 1) * cell_w]
            if block.size == 0:
                continue
            cells.append((gx * cell_w + cell_w // 2, gy * cell_h + cell_h // 2,
                          float(block.sum()) / block.size))

    max_density = max((c[2] for c in cells), default=0.0)
    if max_density == 0:
        return []

    focal = [
        FocalPoint(x=x, y=y, weight=density / max_density)
        for x, y, density in cells
        if density > max_density * FOCAL_DENSITY_RATIO
    ]
    focal.sort(key=lambda p: p.weight, reverse=True)
    return focal[:MAX_FOCAL_POINTS]


def analyze_composition(raster, edge_map: EdgeMap = None,
                        threshold: int = DEFAULT_EDGE_THRESHOLD) -> Composition:
    """
    Rule-of-thirds guides, edge-density focal points, and a dominant region.

    The edge map is computed from the raster when not supplied. A supplied
    edge map must cover the raster pixel for pixel, so pass the raster it
    was detected on (already downsampled, if detection was).

    Raises:
        ValidationError: If the edge map and raster sizes differ
    """
    raster = as_raster(raster)
    h, w = raster.shape[:2]
    if edge_map is None:
        edge_map = detect_edges(raster, threshold)

    edge_grid = np.array(edge_map.grid, dtype=int)
    if edge_grid.shape != (h, w):
        raise ValidationError(
            f"Edge map shape {edge_grid.shape} does not match raster size {w}x{h}"
        )

    vertical = [w // 3, (w * 2) // 3]
    horizontal = [h // 3, (h * 2) // 3]

    focal_points = find_focal_points(edge_grid, w, h)

    intersections = []
    for vx in vertical:
        for hy in horizontal:
            near = any(math.hypot(vx - fp.x, hy - fp.y) < w / 6 for fp in focal_points)
            intersections.append(Intersection(x=vx, y=hy, has_focal_point=near))

    return Composition(
        focal_points=focal_points,
        rule_of_thirds=RuleOfThirdsGuide(
            vertical_lines=vertical,
            horizontal_lines=horizontal,
            intersections=intersections,
        ),
        dominant_region=Region(x=w // 4, y=h // 4, width=w // 2, height=h // 2),
    )
