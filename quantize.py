#!/usr/bin/env python3
"""
Reduce a raster's colors to a fixed-size palette.

Three algorithms are available: median cut, k-means in RGB, and octree.
All of them work on a bounded pixel sample and never return more colors
than the sample actually contains.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import numpy as np

from color_space import Color
from extract_palette import kmeans, KMEANS_MAX_ITERATIONS
from raster import (
    MAX_SAMPLES, DegenerateInputError, ValidationError,
    as_raster, count_unique_colors, has_transparency, sample_pixels,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MIN_TARGET_COLORS = 2
MAX_TARGET_COLORS = 256
OCTREE_DEPTH = 8

TRANSPARENT = Color(0, 0, 0, 0)


class QuantizeAlgorithm(str, Enum):
    MEDIAN_CUT = 'median_cut'
    KMEANS = 'kmeans'
    OCTREE = 'octree'

    @classmethod
    def parse(cls, value) -> 'QuantizeAlgorithm':
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(
                f"Unknown algorithm: {value} (must be median_cut, kmeans, or octree)"
            ) from None


@dataclass
class QuantizeResult:
    """Output of quantize_palette."""
    palette: list  # List of Color
    original_color_count: int
    algorithm: QuantizeAlgorithm

    def hex_colors(self) -> list[str]:
        """Palette as hex strings; transparent entries keep their alpha."""
        return [c.to_hex() if c.is_transparent else c.to_hex_rgb() for c in self.palette]


# =============================================================================
# Median cut
# =============================================================================

@dataclass
class ColorBucket:
    """A subset of sample colors (n, 3) owned by the median-cut splitter."""
    pixels: np.ndarray = field(default_factory=lambda: np.empty((0, 3), dtype=np.int64))

    def channel_ranges(self) -> np.ndarray:
        if len(self.pixels) == 0:
            return np.zeros(3, dtype=np.int64)
        return self.pixels.max(axis=0) - self.pixels.min(axis=0)

    def color_range(self) -> int:
        """Sum of the per-channel ranges."""
        return int(self.channel_ranges().sum())

    def split(self) -> tuple['ColorBucket', 'ColorBucket']:
        """
        Split near the median along the channel with the widest range.

        The cut lands on the boundary between distinct channel values closest
        to the median, so pixels of one color never end up in both halves.
        Only called on buckets whose range is non-zero.
        """
        r_range, g_range, b_range = self.channel_ranges()
        if r_range >= g_range and r_range >= b_range:
            axis = 0
        elif g_range >= b_range:
            axis = 1
        else:
            axis = 2

        ordered = self.pixels[np.argsort(self.pixels[:, axis], kind='stable')]
        values = ordered[:, axis]
        boundaries = np.nonzero(values[1:] != values[:-1])[0] + 1
        mid = int(boundaries[np.argmin(np.abs(boundaries - len(ordered) // 2))])
        return ColorBucket(ordered[:mid]), ColorBucket(ordered[mid:])

    def average(self) -> Color:
        if len(self.pixels) == 0:
            return Color(0, 0, 0)
        mean = self.pixels.sum(axis=0) // len(self.pixels)
        return Color(int(mean[0]), int(mean[1]), int(mean[2]))


def median_cut_quantization(pixels: np.ndarray, target_colors: int) -> list[Color]:
    """Quantize (n, 3+) pixels with the median cut algorithm."""
    if len(pixels) == 0 or target_colors <= 0:
        return []

    rgb = np.asarray(pixels)[:, :3].astype(np.int64)
    target_colors = min(target_colors, len(np.unique(rgb, axis=0)))

    buckets = [ColorBucket(rgb)]
    while len(buckets) < target_colors:
        ranges = [bucket.color_range() for bucket in buckets]
        max_idx = int(np.argmax(ranges))

        # All remaining buckets hold a single color each
        if ranges[max_idx] == 0:
            break

        left, right = buckets[max_idx].split()
        buckets[max_idx:max_idx + 1] = [left, right]

    return [bucket.average() for bucket in buckets]


# =============================================================================
# Octree
# =============================================================================

@dataclass
class OctreeNode:
    """A node of the color octree; children hold indices into Octree.nodes."""
    level: int
    r: int = 0
    g: int = 0
    b: int = 0
    pixel_count: int = 0
    children: list = field(default_factory=lambda: [None] * 8)
    is_leaf: bool = False

    def has_children(self) -> bool:
        return any(c is not None for c in self.children)


class Octree:
    """
    Color octree stored as a flat node list.

    Each level below the root consumes one bit (MSB first) of every channel.
    Depth-8 nodes are leaves; reduce() turns an internal node into a leaf
    holding the color sums of everything below it.
    """

    def __init__(self):
        self.nodes = [OctreeNode(level=0)]
        self.leaf_count = 0
        # Internal nodes by depth, in creation order, candidates for reduction
        self.reducible = [[] for _ in range(OCTREE_DEPTH)]

    @staticmethod
    def child_index(r: int, g: int, b: int, level: int) -> int:
        shift = 7 - level
        return (((r >> shift) & 1) << 2) | (((g >> shift) & 1) << 1) | ((b >> shift) & 1)

    def insert(self, r: int, g: int, b: int) -> None:
        index = 0
        for level in range(OCTREE_DEPTH + 1):
            node = self.nodes[index]
            node.r += r
            node.g += g
            node.b += b
            node.pixel_count += 1

            if node.is_leaf:
                return
            if level == OCTREE_DEPTH:
                node.is_leaf = True
                self.leaf_count += 1
                return

            slot = self.child_index(r, g, b, level)
            child = node.children[slot]
            if child is None:
                if not node.has_children():
                    self.reducible[level].append(index)
                child = len(self.nodes)
                self.nodes.append(OctreeNode(level=level + 1))
                node.children[slot] = child
            index = child

    def reduce(self, index: int) -> None:
        """Merge a node's children into it, making it a leaf."""
        node = self.nodes[index]
        merged = sum(1 for c in node.children if c is not None and self.nodes[c].is_leaf)
        node.children = [None] * 8
        node.is_leaf = True
        self.leaf_count -= merged - 1

    def reduce_to(self, target_colors: int) -> None:
        """Reduce deepest nodes first until at most target_colors leaves remain."""
        reductions = 0
        while self.leaf_count > target_colors:
            level = OCTREE_DEPTH - 1
            while level >= 0 and not self.reducible[level]:
                level -= 1
            if level < 0:
                break
            self.reduce(self.reducible[level].pop(0))
            reductions += 1
        logger.debug("Octree reduced %d nodes to %d leaves", reductions, self.leaf_count)

    def palette(self) -> list[Color]:
        """Mean color of every leaf, depth first."""
        colors = []
        stack = [0]
        while stack:
            node = self.nodes[stack.pop()]
            if node.is_leaf:
                if node.pixel_count > 0:
                    colors.append(Color(
                        node.r // node.pixel_count,
                        node.g // node.pixel_count,
                        node.b // node.pixel_count,
                    ))
                continue
            stack.extend(c for c in reversed(node.children) if c is not None)
        return colors


def octree_quantization(pixels: np.ndarray, target_colors: int) -> list[Color]:
    """Quantize (n, 3+) pixels with an octree."""
    if len(pixels) == 0 or target_colors <= 0:
        return []

    tree = Octree()
    for r, g, b in np.asarray(pixels)[:, :3].astype(int).tolist():
        tree.insert(r, g, b)
    tree.reduce_to(target_colors)
    return tree.palette()


# =============================================================================
# K-means (RGB)
# =============================================================================

def kmeans_quantization(pixels: np.ndarray, target_colors: int,
                        rng: Optional[np.random.Generator] = None) -> list[Color]:
    """Quantize (n, 3+) pixels with k-means directly in RGB space."""
    if len(pixels) == 0 or target_colors <= 0:
        return []

    rgb = np.asarray(pixels)[:, :3].astype(np.float64)
    distinct = np.unique(rgb, axis=0)
    centroids, _ = kmeans(rgb, min(target_colors, len(distinct)), KMEANS_MAX_ITERATIONS,
                          rng=rng, seeds=distinct)

    rounded = np.clip(np.round(centroids), 0, 255).astype(int)
    return [Color(int(r), int(g), int(b)) for r, g, b in rounded]


# =============================================================================
# Entry point
# =============================================================================

def dedupe_colors(colors: list[Color]) -> list[Color]:
    return list(dict.fromkeys(colors))


def quantize_palette(raster, target_colors: int, algorithm='median_cut',
                     preserve_transparency: bool = True,
                     rng: Optional[np.random.Generator] = None) -> QuantizeResult:
    """
    Reduce a raster's colors to at most target_colors.

    Raises:
        ValidationError: If target_colors is outside [2, 256] or the
            algorithm is unknown
        DegenerateInputError: If no (non-transparent) pixels can be sampled
    """
    if target_colors < MIN_TARGET_COLORS or target_colors > MAX_TARGET_COLORS:
        raise ValidationError(f"target_colors must be between 2 and 256, got {target_colors}")
    algorithm = QuantizeAlgorithm.parse(algorithm)

    raster = as_raster(raster)
    original_colors = count_unique_colors(raster, preserve_transparency)

    pixels = sample_pixels(raster, MAX_SAMPLES)
    if preserve_transparency:
        pixels = pixels[pixels[:, 3] > 0]
    if len(pixels) == 0:
        raise DegenerateInputError("No non-transparent pixels to quantize")

    if algorithm is QuantizeAlgorithm.MEDIAN_CUT:
        palette = median_cut_quantization(pixels, target_colors)
    elif algorithm is QuantizeAlgorithm.KMEANS:
        palette = kmeans_quantization(pixels, target_colors, rng=rng)
    else:
        palette = octree_quantization(pixels, target_colors)

    palette = dedupe_colors(palette)

    if preserve_transparency and has_transparency(raster):
        palette = [TRANSPARENT] + palette

    logger.debug("Quantized %d colors to %d with %s", original_colors, len(palette), algorithm.value)
    return QuantizeResult(palette=palette, original_color_count=original_colors, algorithm=algorithm)
