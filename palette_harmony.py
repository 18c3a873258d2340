#!/usr/bin/env python3
"""
Color-wheel relationships within a palette.

analyze_palette_harmonies lists every complementary pair, triadic set and
analogous group plus a warm/cool split. determine_color_harmony reduces an
extracted palette to a single harmony label.
"""

from dataclasses import dataclass, field, asdict
from itertools import combinations

from color_space import circular_hue_distance, hex_to_hsl


# =============================================================================
# Constants
# =============================================================================

COMPLEMENTARY_RANGE = (150.0, 210.0)
TRIADIC_SPACING = 120.0
TRIADIC_TOLERANCE = 30.0
ANALOGOUS_SPAN = 60.0
MIN_ANALOGOUS_COLORS = 3
NEUTRAL_SATURATION = 0.2


@dataclass
class ComplementaryPair:
    color1: str
    color2: str
    contrast: float
    description: str


@dataclass
class TriadicSet:
    colors: list
    balance: float
    description: str


@dataclass
class AnalogousSet:
    colors: list
    harmony: float
    description: str


@dataclass
class TemperatureAnalysis:
    warm_colors: list = field(default_factory=list)
    cool_colors: list = field(default_factory=list)
    neutral_colors: list = field(default_factory=list)
    dominant: str = 'neutral'
    description: str = ''


@dataclass
class HarmonyResult:
    complementary: list
    triadic: list
    analogous: list
    temperature: TemperatureAnalysis

    def to_dict(self) -> dict:
        return asdict(self)


# =============================================================================
# Palette harmonies
# =============================================================================

def color_temperature(hue: float, saturation: float) -> str:
    """warm (reds to yellows, magentas), cool (cyans to purples), or neutral."""
    if saturation < NEUTRAL_SATURATION:
        return 'neutral'
    if hue <= 60 or hue >= 300:
        return 'warm'
    if 180 <= hue <= 300:
        return 'cool'
    return 'neutral'


def analyze_palette_harmonies(hex_colors: list[str]) -> HarmonyResult:
    """
    Find harmonic relationships among hex colors.

    Raises:
        ValidationError: If any entry is not a hex color
    """
    colors = [(c, *hex_to_hsl(c)) for c in hex_colors]

    complementary = []
    for (hex1, h1, _, l1), (hex2, h2, _, l2) in combinations(colors, 2):
        diff = circular_hue_distance(h1, h2)
        if COMPLEMENTARY_RANGE[0] <= diff <= COMPLEMENTARY_RANGE[1]:
            complementary.append(ComplementaryPair(
                color1=hex1,
                color2=hex2,
                contrast=(l1 + l2) / 2.0,
                description=f"High contrast pair ({diff:.0f}° apart)",
            ))

    triadic = []
    for a, b, c in combinations(colors, 3):
        diffs = (
            circular_hue_distance(a[1], b[1]),
            circular_hue_distance(b[1], c[1]),
            circular_hue_distance(c[1], a[1]),
        )
        if all(abs(d - TRIADIC_SPACING) <= TRIADIC_TOLERANCE for d in diffs):
            mean = sum(diffs) / 3.0
            balance = 1.0 - abs(mean - TRIADIC_SPACING) / TRIADIC_SPACING
            triadic.append(TriadicSet(
                colors=[a[0], b[0], c[0]],
                balance=balance,
                description=f"Balanced triadic set ({balance:.1f} balance)",
            ))

    analogous = []
    for i, (seed_hex, seed_hue, _, _) in enumerate(colors):
        group = [seed_hex]
        for j, (other_hex, other_hue, _, _) in enumerate(colors):
            if i == j:
                continue
            diff = circular_hue_distance(seed_hue, other_hue)
            if 0 < diff <= ANALOGOUS_SPAN:
                group.append(other_hex)
        if len(group) >= MIN_ANALOGOUS_COLORS:
            analogous.append(AnalogousSet(
                colors=group,
                harmony=1.0 / len(group),
                description=f"Harmonious adjacent colors ({len(group)} colors)",
            ))

    temperature = TemperatureAnalysis()
    buckets = {
        'warm': temperature.warm_colors,
        'cool': temperature.cool_colors,
        'neutral': temperature.neutral_colors,
    }
    for hex_color, hue, saturation, _ in colors:
        buckets[color_temperature(hue, saturation)].append(hex_color)

    warm, cool, neutral = (len(temperature.warm_colors), len(temperature.cool_colors),
                           len(temperature.neutral_colors))
    if warm > cool and warm > neutral:
        temperature.dominant = 'warm'
    elif cool > warm and cool > neutral:
        temperature.dominant = 'cool'
    temperature.description = (
        f"Palette is predominantly {temperature.dominant} "
        f"({warm} warm, {cool} cool, {neutral} neutral)"
    )

    return HarmonyResult(
        complementary=complementary,
        triadic=triadic,
        analogous=analogous,
        temperature=temperature,
    )


def determine_color_harmony(palette: list) -> str:
    """
    Classify an extracted palette (PaletteColor entries) by hue spread.

    monochromatic for fewer than two colors; complementary when the widest
    hue gap is 150-210°; analogous when it is under 60°; triadic when every
    120° sector holds a color; otherwise diverse.
    """
    if len(palette) < 2:
        return 'monochromatic'

    hues = [p.hue for p in palette]
    max_diff = max(circular_hue_distance(a, b) for a, b in combinations(hues, 2))

    if COMPLEMENTARY_RANGE[0] < max_diff < COMPLEMENTARY_RANGE[1]:
        return 'complementary'
    if max_diff < ANALOGOUS_SPAN:
        return 'analogous'

    if len(palette) >= 3:
        sectors = {min(int(h // 120), 2) for h in hues}
        if len(sectors) == 3:
            return 'triadic'

    return 'diverse'
