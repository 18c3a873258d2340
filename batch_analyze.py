#!/usr/bin/env python3
"""Batch analyze reference images and write JSON reports."""

import argparse
import json
import logging
import sys
import time
from pathlib import Path

import numpy as np

from analyze import (
    DEFAULT_BRIGHTNESS_LEVELS, DEFAULT_EDGE_THRESHOLD, DEFAULT_PALETTE_SIZE,
    DEFAULT_TARGET_SIZE, analyze_image,
)
from raster import AnalysisError


def find_images(directory: Path) -> list[Path]:
    """Find all image files in directory."""
    extensions = {'.jpg', '.jpeg', '.png', '.webp', '.gif', '.bmp'}
    return sorted(p for p in directory.iterdir() if p.is_file() and p.suffix.lower() in extensions)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Batch analyze reference images and write JSON reports.'
    )
    parser.add_argument(
        '--input', '-i',
        required=True,
        help='Directory containing images to analyze'
    )
    parser.add_argument(
        '--output', '-o',
        required=True,
        help='Directory for JSON output files'
    )
    parser.add_argument('--width', type=int, default=DEFAULT_TARGET_SIZE, help='Target width in pixels')
    parser.add_argument('--height', type=int, default=DEFAULT_TARGET_SIZE, help='Target height in pixels')
    parser.add_argument('--palette-size', type=int, default=DEFAULT_PALETTE_SIZE,
                        help='Number of colors to extract (5-32)')
    parser.add_argument('--seed', type=int, default=None, help='Seed for reproducible palettes')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )

    input_dir = Path(args.input)
    output_dir = Path(args.output)

    # Validate input directory
    if not input_dir.is_dir():
        print(f"Error: Input directory not found: {input_dir}", file=sys.stderr)
        sys.exit(2)

    # Create output directory if needed
    output_dir.mkdir(parents=True, exist_ok=True)

    # Find images
    images = find_images(input_dir)
    if not images:
        print(f"No images found in {input_dir}", file=sys.stderr)
        sys.exit(2)

    total = len(images)
    succeeded = 0
    failed = []
    rng = np.random.default_rng(args.seed)

    batch_start = time.perf_counter()

    for i, image_path in enumerate(images, 1):
        try:
            img_start = time.perf_counter()
            analysis = analyze_image(
                str(image_path), args.width, args.height,
                palette_size=args.palette_size,
                brightness_levels=DEFAULT_BRIGHTNESS_LEVELS,
                edge_threshold=DEFAULT_EDGE_THRESHOLD,
                rng=rng,
            )
            img_elapsed = time.perf_counter() - img_start

            output_file = output_dir / f"{image_path.stem}-analysis.json"
            if output_file.exists():
                print(f"  Warning: Overwriting {output_file.name}", file=sys.stderr)
            output_file.write_text(json.dumps(analysis.to_dict(), indent=2))

            print(f"[{i}/{total}] {image_path.name} → {analysis.metadata.color_harmony} "
                  f"({len(analysis.palette)} colors, {img_elapsed:.2f}s)")
            succeeded += 1

        except (AnalysisError, OSError) as e:
            error_msg = f"{type(e).__name__}: {e}"
            print(f"[{i}/{total}] {image_path.name} → ERROR: {error_msg}", file=sys.stderr)
            failed.append((image_path.name, error_msg))

    batch_elapsed = time.perf_counter() - batch_start

    # Summary
    print()
    print(f"Completed: {succeeded}/{total} succeeded in {batch_elapsed:.2f}s")
    if succeeded > 0:
        print(f"Average: {batch_elapsed / succeeded:.2f}s per image")
    if failed:
        print(f"Failed ({len(failed)}):")
        for name, error in failed:
            print(f"  - {name}: {error}")
        sys.exit(1)


if __name__ == '__main__':
    main()
