#!/usr/bin/env python3
"""
In-memory RGBA rasters: validation, sampling, and resampling.

Every analysis module works on a numpy array of shape (height, width, 4),
dtype uint8. Nothing here touches the filesystem.
"""

import logging
import math

import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MAX_SAMPLES = 10_000  # Working-set cap for clustering algorithms


# =============================================================================
# Errors
# =============================================================================

class AnalysisError(Exception):
    """Base class for every error raised by the analysis engine."""


class ValidationError(AnalysisError, ValueError):
    """A parameter is outside its allowed range or enum."""


class DegenerateInputError(AnalysisError, ValueError):
    """The input holds nothing to work on (no samples, no regions)."""


class EmptyPaletteError(AnalysisError, LookupError):
    """A nearest-color lookup was made against an empty palette."""


# =============================================================================
# Raster helpers
# =============================================================================

def as_raster(source) -> np.ndarray:
    """
    Coerce a PIL image or array into an (h, w, 4) uint8 RGBA raster.

    RGB arrays get a fully opaque alpha channel. The result is always a new
    array, so callers may mutate it freely.

    Raises:
        ValidationError: If the input has the wrong shape or zero area
    """
    if isinstance(source, Image.Image):
        array = np.array(source.convert('RGBA'))
    else:
        array = np.asarray(source)

    if array.ndim != 3 or array.shape[2] not in (3, 4):
        raise ValidationError(f"Raster must have shape (h, w, 3|4), got {array.shape}")

    h, w = array.shape[:2]
    if h == 0 or w == 0:
        raise ValidationError(f"Raster has zero area ({w}x{h})")

    array = np.clip(array, 0, 255).astype(np.uint8)
    if array.shape[2] == 3:
        alpha = np.full((h, w, 1), 255, dtype=np.uint8)
        array = np.concatenate([array, alpha], axis=2)

    return array.copy()


def sample_pixels(raster: np.ndarray, max_samples: int = MAX_SAMPLES) -> np.ndarray:
    """
    Sample up to max_samples pixels from a raster as an (n, 4) array.

    Small rasters are returned whole in row-major order. Larger ones are
    walked on a uniform grid so the sample keeps the image's spatial spread.
    """
    h, w = raster.shape[:2]
    total = h * w

    if total <= max_samples:
        return raster.reshape(-1, 4).copy()

    step = max(1, int(math.sqrt(total / max_samples)))
    samples = raster[::step, ::step].reshape(-1, 4).copy()
    logger.debug("Sampled %d of %d pixels (stride %d)", len(samples), total, step)
    return samples


def pack_rgb(pixels: np.ndarray) -> np.ndarray:
    """Pack the RGB channels of an (n, >=3) array into one integer per pixel."""
    rgb = pixels[:, :3].astype(np.uint32)
    return (rgb[:, 0] << 16) | (rgb[:, 1] << 8) | rgb[:, 2]


def count_unique_colors(raster: np.ndarray, preserve_transparency: bool = True) -> int:
    """Count distinct RGB colors, skipping fully transparent pixels if asked."""
    pixels = raster.reshape(-1, 4)
    if preserve_transparency:
        pixels = pixels[pixels[:, 3] > 0]
    if len(pixels) == 0:
        return 0
    return int(np.unique(pack_rgb(pixels)).size)


def has_transparency(raster: np.ndarray) -> bool:
    """True if any pixel is fully transparent."""
    return bool(np.any(raster[:, :, 3] == 0))


def resize_bilinear(raster: np.ndarray, width: int, height: int) -> np.ndarray:
    """Resample a raster to width x height with bilinear filtering."""
    img = Image.fromarray(np.ascontiguousarray(raster))
    resized = img.resize((width, height), resample=Image.Resampling.BILINEAR)
    return np.array(resized)
