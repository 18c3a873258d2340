#!/usr/bin/env python3
"""
Reference image analysis pipeline.

Turns a reference picture into the structured data needed to plan a piece of
pixel art at a given target size, and renders it as a prose report.
Four stages: Data Preparation → Feature Extraction → Synthesis → Render
"""

import logging
from dataclasses import dataclass, asdict
from typing import Optional

import numpy as np
from PIL import Image

from extract_palette import extract_palette
from image_analysis import (
    BrightnessMap, Composition, EdgeMap, Region,
    analyze_composition, detect_edges, generate_brightness_map,
)
from palette_harmony import determine_color_harmony
from raster import ValidationError, as_raster, resize_bilinear

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Image size limits (security: prevent decompression bombs)
MAX_IMAGE_PIXELS = 50_000_000  # 50 megapixels
MAX_IMAGE_DIMENSION = 10_000  # 10k pixels per side

MAX_TARGET_DIMENSION = 65535
DEFAULT_TARGET_SIZE = 64
DEFAULT_PALETTE_SIZE = 16
PALETTE_SIZE_RANGE = (5, 32)
DEFAULT_BRIGHTNESS_LEVELS = 5
BRIGHTNESS_LEVELS_RANGE = (2, 10)
DEFAULT_EDGE_THRESHOLD = 30

# Dithering zone heuristics
MIN_GRADIENT_CELLS = 3
TEXTURE_BLOCK = 3
MAX_TEXTURE_EDGES = 2  # A flat block has fewer edge pixels than this
LIGHTNESS_MARGIN = 10.0  # Palette lightness slack around a brightness band
MAX_DITHERING_ZONES = 5

LOW_CONTRAST_SPAN = 30.0
HIGH_CONTRAST_SPAN = 60.0


# =============================================================================
# Data structures
# =============================================================================

@dataclass
class DitheringZone:
    """A suggested area for dithering, in brightness-map cells."""
    region: Region
    type: str  # 'gradient' or 'texture'
    colors: list  # Two hex colors to dither between
    pattern: str
    reason: str


@dataclass
class Dimensions:
    width: int
    height: int


@dataclass
class AnalysisMetadata:
    source_dimensions: Dimensions
    target_dimensions: Dimensions
    scale_factor: float
    dominant_hue: float  # 0-360 degrees, usage weighted
    color_harmony: str
    contrast_ratio: str  # 'low', 'medium' or 'high'


@dataclass
class ReferenceAnalysis:
    palette: list  # List of PaletteColor
    brightness_map: BrightnessMap
    edge_map: EdgeMap
    composition: Composition
    dithering_zones: list
    metadata: AnalysisMetadata

    def to_dict(self) -> dict:
        return {
            'palette': [p.to_dict() for p in self.palette],
            'brightness_map': self.brightness_map.to_dict(),
            'edge_map': self.edge_map.to_dict(),
            'composition': self.composition.to_dict(),
            'dithering_zones': [asdict(z) for z in self.dithering_zones],
            'metadata': asdict(self.metadata),
        }


# =============================================================================
# Stage 1: Data Preparation
# =============================================================================

def load_image(image_path: str) -> np.ndarray:
    """
    Load an image file as an RGBA raster.

    Raises:
        FileNotFoundError: If image file doesn't exist
        ValidationError: If file is not a valid image or exceeds size limits
    """
    try:
        img = Image.open(image_path)
    except FileNotFoundError:
        raise FileNotFoundError(f"Image not found: {image_path}")
    except OSError as e:
        raise ValidationError(f"Could not open image: {e}")

    # Validate image dimensions (security: prevent decompression bombs)
    width, height = img.size
    if width > MAX_IMAGE_DIMENSION or height > MAX_IMAGE_DIMENSION:
        raise ValidationError(
            f"Image dimensions {width}x{height} exceed maximum "
            f"{MAX_IMAGE_DIMENSION}x{MAX_IMAGE_DIMENSION}"
        )
    if width * height > MAX_IMAGE_PIXELS:
        raise ValidationError(
            f"Image has {width * height:,} pixels, exceeding maximum {MAX_IMAGE_PIXELS:,}"
        )

    return as_raster(img)


def check_range(name: str, value: int, low: int, high: int) -> None:
    if value < low or value > high:
        raise ValidationError(f"{name} must be between {low} and {high}, got {value}")


# =============================================================================
# Stage 3: Synthesis
# =============================================================================

def find_colors_for_brightness_range(palette: list, min_level: int, max_level: int,
                                     num_levels: int) -> list[str]:
    """
    Palette colors whose lightness falls within a band of brightness levels.

    The band spans min_level/num_levels to (max_level+1)/num_levels of the
    lightness scale, widened by LIGHTNESS_MARGIN on both sides. With no
    match, the darkest and lightest palette colors are returned instead.
    """
    low = min_level / num_levels * 100.0 - LIGHTNESS_MARGIN
    high = (max_level + 1) / num_levels * 100.0 + LIGHTNESS_MARGIN

    colors = [p.color for p in palette if low <= p.lightness <= high]
    if colors or not palette:
        return colors

    by_lightness = sorted(palette, key=lambda p: p.lightness)
    return list(dict.fromkeys([by_lightness[0].color, by_lightness[-1].color]))


def gradient_zones(palette: list, grid: np.ndarray, num_levels: int) -> list[DitheringZone]:
    """Horizontal runs of strictly increasing brightness, MIN_GRADIENT_CELLS or longer."""
    zones = []
    h, w = grid.shape

    for y in range(h):
        start = None
        for x in range(1, w + 1):
            rising = x < w and grid[y, x] > grid[y, x - 1]
            if rising:
                if start is None:
                    start = x - 1
                continue
            if start is not None and x - start >= MIN_GRADIENT_CELLS:
                colors = find_colors_for_brightness_range(
                    palette, int(grid[y, start]), int(grid[y, x - 1]), num_levels
                )
                if len(colors) >= 2:
                    zones.append(DitheringZone(
                        region=Region(x=start, y=y, width=x - start, height=1),
                        type='gradient',
                        colors=colors[:2],
                        pattern='bayer_4x4',
                        reason='horizontal brightness gradient detected',
                    ))
            start = None

    return zones


def texture_zones(palette: list, grid: np.ndarray, edges: np.ndarray,
                  num_levels: int) -> list[DitheringZone]:
    """Uniform 3x3 blocks with almost no edges."""
    zones = []
    h, w = grid.shape
    n = TEXTURE_BLOCK

    for y in range(h - n + 1):
        for x in range(w - n + 1):
            block = grid[y:y + n, x:x + n]
            level = int(block[0, 0])
            if np.any(block != level):
                continue
            if int(edges[y:y + n, x:x + n].sum()) >= MAX_TEXTURE_EDGES:
                continue

            colors = find_colors_for_brightness_range(palette, level, level, num_levels)
            if len(colors) >= 2:
                zones.append(DitheringZone(
                    region=Region(x=x, y=y, width=n, height=n),
                    type='texture',
                    colors=colors[:2],
                    pattern='checkerboard',
                    reason='uniform area needs texture',
                ))

    return zones


def suggest_dithering_zones(palette: list, brightness_map: BrightnessMap,
                            edge_map: EdgeMap) -> list[DitheringZone]:
    """
    Suggest where dithering would help: gradients first, then flat areas.

    Both maps must share the same grid size. At most MAX_DITHERING_ZONES
    zones are returned.
    """
    grid = np.array(brightness_map.grid, dtype=int)
    if grid.size == 0:
        return []
    edges = np.array(edge_map.grid, dtype=int)
    num_levels = len(brightness_map.legend)

    zones = gradient_zones(palette, grid, num_levels)
    if len(zones) < MAX_DITHERING_ZONES:
        zones.extend(texture_zones(palette, grid, edges, num_levels))
    return zones[:MAX_DITHERING_ZONES]


def calculate_metadata(palette: list, source_width: int, source_height: int,
                       target_width: int, target_height: int) -> AnalysisMetadata:
    total = sum(p.usage_percent for p in palette)
    dominant_hue = sum(p.hue * p.usage_percent for p in palette) / total if total > 0 else 0.0

    contrast = 'medium'
    if palette:
        span = max(p.lightness for p in palette) - min(p.lightness for p in palette)
        if span < LOW_CONTRAST_SPAN:
            contrast = 'low'
        elif span > HIGH_CONTRAST_SPAN:
            contrast = 'high'

    return AnalysisMetadata(
        source_dimensions=Dimensions(source_width, source_height),
        target_dimensions=Dimensions(target_width, target_height),
        scale_factor=target_width / source_width,
        dominant_hue=dominant_hue,
        color_harmony=determine_color_harmony(palette),
        contrast_ratio=contrast,
    )


# =============================================================================
# Main Pipeline
# =============================================================================

def analyze_reference(raster, target_width: int, target_height: int,
                      palette_size: int = DEFAULT_PALETTE_SIZE,
                      brightness_levels: int = DEFAULT_BRIGHTNESS_LEVELS,
                      edge_threshold: int = DEFAULT_EDGE_THRESHOLD,
                      rng: Optional[np.random.Generator] = None) -> ReferenceAnalysis:
    """
    Run the full reference analysis.

    The palette comes from the full-resolution raster; brightness, edges,
    composition and dithering zones are all computed at the target size so
    their coordinates line up.

    Raises:
        ValidationError: If any parameter is out of range
    """
    check_range('target_width', target_width, 1, MAX_TARGET_DIMENSION)
    check_range('target_height', target_height, 1, MAX_TARGET_DIMENSION)
    check_range('palette_size', palette_size, *PALETTE_SIZE_RANGE)
    check_range('brightness_levels', brightness_levels, *BRIGHTNESS_LEVELS_RANGE)
    check_range('edge_threshold', edge_threshold, 0, 255)

    # Stage 1: Data Preparation
    raster = as_raster(raster)
    source_height, source_width = raster.shape[:2]
    target = resize_bilinear(raster, target_width, target_height)
    logger.debug("Analyzing %dx%d reference at %dx%d",
                source_width, source_height, target_width, target_height)

    # Stage 2: Feature Extraction
    palette = extract_palette(raster, palette_size, rng=rng)
    brightness_map = generate_brightness_map(target, target_width, target_height, brightness_levels)
    edge_map = detect_edges(target, edge_threshold)
    composition = analyze_composition(target, edge_map)
    logger.debug("Extracted %d colors, %d major edges, %d focal points",
                 len(palette), len(edge_map.major_edges), len(composition.focal_points))

    # Stage 3: Synthesis
    zones = suggest_dithering_zones(palette, brightness_map, edge_map)
    metadata = calculate_metadata(palette, source_width, source_height, target_width, target_height)

    return ReferenceAnalysis(
        palette=palette,
        brightness_map=brightness_map,
        edge_map=edge_map,
        composition=composition,
        dithering_zones=zones,
        metadata=metadata,
    )


# =============================================================================
# Stage 4: Render
# =============================================================================

def render(analysis: ReferenceAnalysis) -> str:
    """Render an analysis as prose."""
    meta = analysis.metadata
    lines = []

    # Header
    lines.append(f"HARMONY: {meta.color_harmony} | Contrast: {meta.contrast_ratio}")
    lines.append(f"Source: {meta.source_dimensions.width}x{meta.source_dimensions.height} → "
                 f"Target: {meta.target_dimensions.width}x{meta.target_dimensions.height} "
                 f"(scale {meta.scale_factor:.3f})")
    lines.append(f"Dominant hue: {meta.dominant_hue:.0f}°")
    lines.append("")

    # Palette section
    lines.append("PALETTE:")
    lines.append("")
    for color in analysis.palette:
        role = color.role.replace('_', ' ').capitalize()
        lines.append(f"[{role}] {color.color}")
        lines.append(f"  HSL: ({color.hue:.0f}°, {color.saturation:.0f}%, {color.lightness:.0f}%) | "
                     f"Usage: {color.usage_percent:.1f}%")
    lines.append("")

    # Structure section
    lines.append("STRUCTURE:")
    lines.append("")
    levels = ', '.join(f"{k}={v}" for k, v in analysis.brightness_map.legend.items())
    lines.append(f"Brightness levels: {levels}")
    lines.append(f"Major edges: {len(analysis.edge_map.major_edges)}")
    for edge in sorted(analysis.edge_map.major_edges, key=lambda e: e.strength, reverse=True)[:5]:
        lines.append(f"  - ({edge.start.x}, {edge.start.y}) → ({edge.end.x}, {edge.end.y}) "
                     f"strength {edge.strength:.0f}")
    lines.append("")

    # Composition section
    comp = analysis.composition
    lines.append("COMPOSITION:")
    lines.append("")
    if comp.focal_points:
        lines.append("Focal points:")
        for fp in comp.focal_points:
            lines.append(f"  - ({fp.x}, {fp.y}) weight {fp.weight:.2f}")
    else:
        lines.append("Focal points: none")
    thirds = comp.rule_of_thirds
    lines.append(f"Thirds lines: x={thirds.vertical_lines} y={thirds.horizontal_lines}")
    anchored = [f"({i.x}, {i.y})" for i in thirds.intersections if i.has_focal_point]
    if anchored:
        lines.append(f"Focal interest on thirds intersections: {', '.join(anchored)}")
    region = comp.dominant_region
    lines.append(f"Dominant region: {region.width}x{region.height} at ({region.x}, {region.y})")
    lines.append("")

    # Dithering section
    if analysis.dithering_zones:
        lines.append("DITHERING:")
        lines.append("")
        for zone in analysis.dithering_zones:
            r = zone.region
            lines.append(f"[{zone.type.capitalize()}] {r.width}x{r.height} at ({r.x}, {r.y}): "
                         f"{zone.pattern} between {' / '.join(zone.colors)}")
            lines.append(f"  {zone.reason.capitalize()}.")

    return "\n".join(lines).rstrip()


def analyze_image(image_path: str, target_width: int, target_height: int, **options) -> ReferenceAnalysis:
    """Load an image file and run analyze_reference on it."""
    return analyze_reference(load_image(image_path), target_width, target_height, **options)


# =============================================================================
# CLI
# =============================================================================

if __name__ == '__main__':
    import argparse
    import json
    import sys
    from pathlib import Path

    from raster import AnalysisError

    parser = argparse.ArgumentParser(
        description='Analyze a reference image for pixel art planning.'
    )
    parser.add_argument(
        '--input', '-i',
        required=True,
        help='Path to the image file'
    )
    parser.add_argument('--width', type=int, default=DEFAULT_TARGET_SIZE, help='Target width in pixels')
    parser.add_argument('--height', type=int, default=DEFAULT_TARGET_SIZE, help='Target height in pixels')
    parser.add_argument('--palette-size', type=int, default=DEFAULT_PALETTE_SIZE,
                        help='Number of colors to extract (5-32)')
    parser.add_argument('--brightness-levels', type=int, default=DEFAULT_BRIGHTNESS_LEVELS,
                        help='Brightness quantization levels (2-10)')
    parser.add_argument('--edge-threshold', type=int, default=DEFAULT_EDGE_THRESHOLD,
                        help='Sobel magnitude threshold (0-255)')
    parser.add_argument('--seed', type=int, default=None, help='Seed for reproducible palettes')
    parser.add_argument(
        '--json', '-j',
        nargs='?',
        const=True,
        default=None,
        help='Write JSON report. Optionally specify path, otherwise auto-names from input.'
    )
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )
    image_path = Path(args.input)

    # Run analysis
    try:
        analysis = analyze_image(
            str(image_path), args.width, args.height,
            palette_size=args.palette_size,
            brightness_levels=args.brightness_levels,
            edge_threshold=args.edge_threshold,
            rng=np.random.default_rng(args.seed),
        )
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except AnalysisError as e:
        print(f"Error analyzing image: {e}", file=sys.stderr)
        sys.exit(1)

    # Always print prose to terminal
    print(render(analysis))

    # Write JSON if requested
    if args.json:
        if args.json is True:
            output_path = image_path.with_name(f"{image_path.stem}-analysis.json")
        else:
            output_path = Path(args.json)

        try:
            output_path.write_text(json.dumps(analysis.to_dict(), indent=2))
            print(f"\nWrote: {output_path}")
        except OSError as e:
            print(f"Error writing output: {e}", file=sys.stderr)
            sys.exit(1)
