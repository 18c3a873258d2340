#!/usr/bin/env python3
"""
Color values and color space conversions.

RGB <-> LAB is used for perceptual distances and centroid averaging,
RGB <-> HSL for ramp generation and palette metadata.
"""

import colorsys
import re
from dataclasses import dataclass

import numpy as np

from raster import ValidationError


HEX_COLOR_PATTERN = re.compile(r'^#?([A-Fa-f0-9]{6}|[A-Fa-f0-9]{8})$')


# =============================================================================
# Color
# =============================================================================

@dataclass(frozen=True)
class Color:
    """An RGBA color with 8-bit channels."""
    r: int
    g: int
    b: int
    a: int = 255

    def __post_init__(self):
        for name in ('r', 'g', 'b', 'a'):
            value = getattr(self, name)
            if not 0 <= value <= 255:
                raise ValidationError(f"Channel {name} must be between 0 and 255, got {value}")

    @classmethod
    def from_hex(cls, hex_str: str) -> 'Color':
        """
        Parse "#RRGGBB" or "#RRGGBBAA" (the "#" is optional).

        Colors without an alpha pair are fully opaque.

        Raises:
            ValidationError: If the string is not a hex color
        """
        match = HEX_COLOR_PATTERN.match(hex_str)
        if not match:
            raise ValidationError(
                f"Invalid hex color format: {hex_str!r} (expected #RRGGBB or #RRGGBBAA)"
            )
        digits = match.group(1)
        r, g, b = (int(digits[i:i + 2], 16) for i in (0, 2, 4))
        a = int(digits[6:8], 16) if len(digits) == 8 else 255
        return cls(r, g, b, a)

    @classmethod
    def from_array(cls, values) -> 'Color':
        """Build a color from an RGB or RGBA sequence (e.g. a raster pixel)."""
        values = [int(v) for v in values]
        if len(values) == 3:
            values.append(255)
        return cls(*values)

    def to_hex(self) -> str:
        return f"#{self.r:02X}{self.g:02X}{self.b:02X}{self.a:02X}"

    def to_hex_rgb(self) -> str:
        return f"#{self.r:02X}{self.g:02X}{self.b:02X}"

    def rgb(self) -> tuple:
        return (self.r, self.g, self.b)

    def rgba(self) -> tuple:
        return (self.r, self.g, self.b, self.a)

    @property
    def is_transparent(self) -> bool:
        return self.a == 0


# =============================================================================
# LAB
# =============================================================================

def rgb_to_lab(rgb: np.ndarray) -> np.ndarray:
    """Convert RGB array (0-255) to LAB color space."""
    rgb = np.asarray(rgb)
    if rgb.ndim == 1:
        rgb = rgb.reshape(1, -1)
    rgb_norm = rgb[:, :3].astype(np.float64) / 255.0

    # Apply gamma correction
    mask = rgb_norm > 0.04045
    rgb_linear = np.where(mask, ((rgb_norm + 0.055) / 1.055) ** 2.4, rgb_norm / 12.92)

    # RGB to XYZ matrix
    r, g, b = rgb_linear[:, 0], rgb_linear[:, 1], rgb_linear[:, 2]
    x = r * 0.4124564 + g * 0.3575761 + b * 0.1804375
    y = r * 0.2126729 + g * 0.7151522 + b * 0.0721750
    z = r * 0.0193339 + g * 0.1191920 + b * 0.9503041

    # XYZ to LAB (D65 reference white)
    xn, yn, zn = 0.95047, 1.0, 1.08883
    x, y, z = x / xn, y / yn, z / zn

    epsilon = 0.008856
    kappa = 903.3
    fx = np.where(x > epsilon, np.cbrt(x), (kappa * x + 16) / 116)
    fy = np.where(y > epsilon, np.cbrt(y), (kappa * y + 16) / 116)
    fz = np.where(z > epsilon, np.cbrt(z), (kappa * z + 16) / 116)

    L = 116 * fy - 16
    a = 500 * (fx - fy)
    b_val = 200 * (fy - fz)

    return np.column_stack([L, a, b_val])


def lab_to_rgb(lab: np.ndarray) -> np.ndarray:
    """Convert LAB array to RGB (0-255), rounded and clipped to gamut."""
    lab = np.asarray(lab, dtype=np.float64)
    if lab.ndim == 1:
        lab = lab.reshape(1, -1)

    L, a, b = lab[:, 0], lab[:, 1], lab[:, 2]

    fy = (L + 16) / 116
    fx = a / 500 + fy
    fz = fy - b / 200

    epsilon = 0.008856
    kappa = 903.3

    x = np.where(fx**3 > epsilon, fx**3, (116 * fx - 16) / kappa)
    y = np.where(L > kappa * epsilon, ((L + 16) / 116) ** 3, L / kappa)
    z = np.where(fz**3 > epsilon, fz**3, (116 * fz - 16) / kappa)

    x *= 0.95047
    z *= 1.08883

    r = x * 3.2404542 - y * 1.5371385 - z * 0.4985314
    g = -x * 0.9692660 + y * 1.8760108 + z * 0.0415560
    b_out = x * 0.0556434 - y * 0.2040259 + z * 1.0572252

    rgb_linear = np.column_stack([r, g, b_out])
    mask = rgb_linear > 0.0031308
    rgb = np.where(mask, 1.055 * np.power(np.clip(rgb_linear, 0, None), 1/2.4) - 0.055, 12.92 * rgb_linear)

    return np.clip(np.round(rgb * 255), 0, 255).astype(np.uint8)


def lab_distance(lab1: np.ndarray, lab2: np.ndarray) -> float:
    """Euclidean distance between two LAB triples."""
    return float(np.linalg.norm(np.asarray(lab1) - np.asarray(lab2)))


def lab_to_hex(lab: np.ndarray) -> str:
    """Convert a LAB triple to a "#RRGGBB" string."""
    rgb = lab_to_rgb(lab)[0]
    return f"#{rgb[0]:02X}{rgb[1]:02X}{rgb[2]:02X}"


# =============================================================================
# HSL
# =============================================================================

def rgb_to_hsl(r: int, g: int, b: int) -> tuple:
    """Convert RGB (0-255) to HSL as (hue 0-360, saturation 0-1, lightness 0-1)."""
    h, l, s = colorsys.rgb_to_hls(r / 255, g / 255, b / 255)
    return (h * 360.0) % 360.0, s, l


def hsl_to_rgb(h: float, s: float, l: float) -> tuple:
    """Convert HSL (hue in degrees, s/l 0-1) to rounded RGB (0-255)."""
    r, g, b = colorsys.hls_to_rgb((h % 360.0) / 360.0, min(max(l, 0.0), 1.0), min(max(s, 0.0), 1.0))
    return tuple(int(round(c * 255)) for c in (r, g, b))


def hex_to_hsl(hex_str: str) -> tuple:
    """HSL of a hex color string; see rgb_to_hsl."""
    color = Color.from_hex(hex_str)
    return rgb_to_hsl(color.r, color.g, color.b)


def circular_hue_distance(hue1: float, hue2: float) -> float:
    """Compute minimum angular distance between two hues (0-180)."""
    diff = abs(hue1 - hue2) % 360
    return min(diff, 360 - diff)
