#!/usr/bin/env python3
"""
Extract a ranked, role-tagged palette from a raster with k-means in LAB.

Centroid seeding is the only random step; pass a seeded
numpy.random.Generator for reproducible palettes.
"""

import functools
import logging
from dataclasses import dataclass, asdict
from typing import Optional

import numpy as np
from scipy.spatial.distance import cdist

from color_space import Color, rgb_to_lab, lab_to_rgb, rgb_to_hsl
from raster import (
    MAX_SAMPLES, DegenerateInputError, EmptyPaletteError, ValidationError,
    as_raster, sample_pixels,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MIN_PALETTE_COLORS = 2
MAX_PALETTE_COLORS = 256
KMEANS_MAX_ITERATIONS = 100
HUE_TIE_DEGREES = 5.0  # Hues closer than this sort by lightness instead

ROLE_BANDS = [
    (0.2, 'dark_shadow'),
    (0.4, 'shadow'),
    (0.6, 'midtone'),
    (0.8, 'light'),
]
TOP_ROLE = 'highlight'


@dataclass
class PaletteColor:
    """A single palette entry with metadata."""
    color: str  # Hex #RRGGBB
    hue: float  # 0-360 degrees
    saturation: float  # 0-100%
    lightness: float  # 0-100%
    usage_percent: float = 0.0  # Share of sampled pixels assigned to this color
    role: str = ''  # 'dark_shadow', 'shadow', 'midtone', 'light', 'highlight'

    def to_dict(self) -> dict:
        return asdict(self)


# =============================================================================
# K-means
# =============================================================================

def nearest_centroids(points: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """Index of the closest centroid (Euclidean) for every point."""
    return np.argmin(cdist(points, centroids), axis=1)


def kmeans(points: np.ndarray, k: int, max_iterations: int = KMEANS_MAX_ITERATIONS,
           rng: Optional[np.random.Generator] = None,
           seeds: Optional[np.ndarray] = None) -> tuple[np.ndarray, np.ndarray]:
    """
    Cluster points into k groups.

    Initial centroids are k points drawn through rng.permutation. If seeds is
    given, centroids are drawn from it instead (used to seed from distinct
    colors only).

    Returns:
        (centroids, assignments) where assignments maps each point to the
        index of its nearest final centroid.
    """
    points = np.asarray(points, dtype=np.float64)
    if len(points) == 0 or k <= 0:
        return np.empty((0, points.shape[1] if points.ndim == 2 else 0)), np.empty(0, dtype=np.int64)

    if rng is None:
        rng = np.random.default_rng()

    pool = points if seeds is None else np.asarray(seeds, dtype=np.float64)
    k = min(k, len(pool))
    centroids = pool[rng.permutation(len(pool))[:k]].copy()

    assignments = np.full(len(points), -1, dtype=np.int64)
    for iteration in range(max_iterations):
        new_assignments = nearest_centroids(points, centroids)
        if np.array_equal(new_assignments, assignments):
            logger.debug("k-means converged after %d iterations (k=%d)", iteration, k)
            break
        assignments = new_assignments

        for j in range(k):
            members = points[assignments == j]
            if len(members) > 0:
                centroids[j] = members.mean(axis=0)

    # Centroids moved after the last assignment pass; report final membership
    return centroids, nearest_centroids(points, centroids)


# =============================================================================
# Palette extraction
# =============================================================================

def compare_hue_then_lightness(a: PaletteColor, b: PaletteColor) -> int:
    """Order by hue, falling back to lightness when hues nearly coincide."""
    if abs(a.hue - b.hue) < HUE_TIE_DEGREES:
        return (a.lightness > b.lightness) - (a.lightness < b.lightness)
    return (a.hue > b.hue) - (a.hue < b.hue)


def role_for_ratio(ratio: float) -> str:
    for upper, role in ROLE_BANDS:
        if ratio < upper:
            return role
    return TOP_ROLE


def assign_palette_roles(palette: list) -> None:
    """Tag each color by its lightness rank within the palette."""
    n = len(palette)
    if n == 0:
        return

    order = sorted(range(n), key=lambda i: palette[i].lightness)
    for rank, index in enumerate(order):
        ratio = rank / (n - 1) if n > 1 else 0.0
        palette[index].role = role_for_ratio(ratio)


def extract_palette(raster, num_colors: int,
                    rng: Optional[np.random.Generator] = None) -> list[PaletteColor]:
    """
    Extract num_colors representative colors from a raster.

    Colors are clustered in LAB, then sorted by hue (lightness for near-equal
    hues) and tagged with lightness roles.

    Raises:
        ValidationError: If num_colors is outside [2, 256]
        DegenerateInputError: If there are no pixels to sample
    """
    if num_colors < MIN_PALETTE_COLORS or num_colors > MAX_PALETTE_COLORS:
        raise ValidationError(f"num_colors must be between 2 and 256, got {num_colors}")

    raster = as_raster(raster)
    pixels = sample_pixels(raster, MAX_SAMPLES)
    if len(pixels) == 0:
        raise DegenerateInputError("No pixels to sample from image")

    lab_pixels = rgb_to_lab(pixels[:, :3])
    centroids, assignments = kmeans(lab_pixels, num_colors, KMEANS_MAX_ITERATIONS, rng=rng)

    rgb_centroids = lab_to_rgb(centroids)
    counts = np.bincount(assignments, minlength=len(centroids))
    total = len(lab_pixels)

    palette = []
    for rgb, count in zip(rgb_centroids, counts):
        r, g, b = (int(c) for c in rgb)
        h, s, l = rgb_to_hsl(r, g, b)
        palette.append(PaletteColor(
            color=Color(r, g, b).to_hex_rgb(),
            hue=h,
            saturation=s * 100,
            lightness=l * 100,
            usage_percent=count * 100.0 / total,
        ))

    palette.sort(key=functools.cmp_to_key(compare_hue_then_lightness))
    assign_palette_roles(palette)

    return palette


def find_closest_palette_color(target: Color, palette: list) -> tuple[str, int]:
    """
    Find the LAB-nearest palette entry to target.

    Returns:
        (hex color, index into palette)

    Raises:
        EmptyPaletteError: If the palette is empty
    """
    if not palette:
        raise EmptyPaletteError("Palette is empty")

    hexes = [p.color if isinstance(p, PaletteColor) else p.to_hex_rgb() for p in palette]
    rgbs = np.array([Color.from_hex(h).rgb() for h in hexes])
    distances = np.linalg.norm(rgb_to_lab(rgbs) - rgb_to_lab(np.array([target.rgb()])), axis=1)
    index = int(np.argmin(distances))
    return hexes[index], index
