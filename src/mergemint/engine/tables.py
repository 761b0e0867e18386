"""Immutable per-deployment tables: unit counts, colour bands and colours."""

from __future__ import annotations

import colorsys
from dataclasses import dataclass
from typing import Dict, Sequence, Tuple

GENE_SLOTS = 5
ANCESTRY_SLOTS = 6
BLANK_COLOR = "#000000"


@dataclass(frozen=True)
class DivisorTable:
    """Unit counts per merge depth plus the band and gradient tables.

    ``unit_counts[d]`` is the number of colour indexes a unit shows at depth
    ``d``.  The final entry must be ``0``: that depth is terminal and carries
    no colour.  ``band_thresholds`` partition ``range(band_domain)`` into the
    cumulative rarity buckets used at depth 0; a draw strictly greater than
    ``band_thresholds[i]`` selects band ``i`` and anything at or below the
    last threshold selects the rarest band.
    """

    unit_counts: Tuple[int, ...] = (80, 40, 20, 10, 5, 4, 1, 0)
    color_bands: Tuple[int, ...] = (80, 60, 40, 20, 10, 5, 1)
    gradient_steps: Tuple[int, ...] = (0, 1, 2, 5, 8, 9, 10)
    band_thresholds: Tuple[int, ...] = (80, 40, 20, 10, 4, 1)
    band_domain: int = 120
    max_merge_depth: int = 5

    def __post_init__(self) -> None:
        counts = tuple(int(c) for c in self.unit_counts)
        bands = tuple(int(b) for b in self.color_bands)
        steps = tuple(int(s) for s in self.gradient_steps)
        thresholds = tuple(int(t) for t in self.band_thresholds)
        object.__setattr__(self, "unit_counts", counts)
        object.__setattr__(self, "color_bands", bands)
        object.__setattr__(self, "gradient_steps", steps)
        object.__setattr__(self, "band_thresholds", thresholds)

        if len(counts) < 3:
            raise ValueError("unit_counts needs a root, a final and a terminal depth")
        if counts[-1] != 0:
            raise ValueError("the terminal unit count must be 0")
        if any(c <= 0 for c in counts[:-1]):
            raise ValueError("non-terminal unit counts must be positive")
        if any(b <= 0 for b in bands):
            raise ValueError("colour band widths must be positive")
        if len(steps) != 7 or steps[0] != 0:
            raise ValueError("gradient_steps needs 7 entries starting with 0")
        if len(thresholds) != len(bands) - 1:
            raise ValueError("band_thresholds must have one entry fewer than color_bands")
        if list(thresholds) != sorted(thresholds, reverse=True):
            raise ValueError("band_thresholds must be descending")
        if self.band_domain <= thresholds[0]:
            raise ValueError("band_domain must exceed the first threshold")
        if not 0 <= self.max_merge_depth < self.terminal_depth:
            raise ValueError("max_merge_depth must sit below the terminal depth")
        if self.max_merge_depth >= ANCESTRY_SLOTS:
            raise ValueError(f"at most {ANCESTRY_SLOTS} merges can be recorded")

    @property
    def terminal_depth(self) -> int:
        return len(self.unit_counts) - 1

    @property
    def root_count(self) -> int:
        return self.unit_counts[0]

    def unit_count(self, depth: int) -> int:
        return self.unit_counts[depth]

    def can_merge_at(self, depth: int) -> bool:
        return 0 <= depth <= self.max_merge_depth and depth < self.terminal_depth

    def band_for_draw(self, draw: int) -> int:
        for index, threshold in enumerate(self.band_thresholds):
            if draw > threshold:
                return index
        return len(self.band_thresholds)

    def as_dict(self) -> Dict[str, object]:
        return {
            "unit_counts": list(self.unit_counts),
            "color_bands": list(self.color_bands),
            "gradient_steps": list(self.gradient_steps),
            "band_thresholds": list(self.band_thresholds),
            "band_domain": self.band_domain,
            "max_merge_depth": self.max_merge_depth,
        }


def pack_rgb(red: int, green: int, blue: int) -> int:
    return ((red & 0xFF) << 16) | ((green & 0xFF) << 8) | (blue & 0xFF)


def color_hex(packed: int) -> str:
    return f"#{packed & 0xFFFFFF:06X}"


def parse_color(value: object) -> int:
    """Accept ``#RRGGBB``, ``RRGGBB`` or an already packed integer."""

    if isinstance(value, int):
        if not 0 <= value <= 0xFFFFFF:
            raise ValueError(f"packed colour {value} out of range")
        return value
    text = str(value).strip().lstrip("#")
    if len(text) != 6:
        raise ValueError(f"invalid colour literal {value!r}")
    return int(text, 16)


def spectrum(size: int) -> Tuple[int, ...]:
    """Return ``size`` packed colours evenly spaced around the hue wheel."""

    if size <= 1:
        raise ValueError("a colour table needs at least two entries")
    colors = []
    for i in range(size):
        # Alternate lightness so neighbouring bands stay distinguishable.
        lightness = 0.45 if i % 2 == 0 else 0.6
        r, g, b = colorsys.hls_to_rgb(i / size, lightness, 0.85)
        colors.append(pack_rgb(round(r * 255), round(g * 255), round(b * 255)))
    return tuple(colors)


PALETTE_COLORS: Tuple[int, ...] = (
    0xE84AA9,
    0xF2399D,
    0xDB2F96,
    0x5FCD8C,
    0x60B1F4,
    0xF9DA4A,
    0xF6A54E,
    0x9657AB,
)

PRESET_DIVISORS: Dict[str, DivisorTable] = {
    "spectrum80": DivisorTable(),
    "compact20": DivisorTable(unit_counts=(20, 10, 5, 4, 2, 1, 0), max_merge_depth=4),
    "mini4": DivisorTable(unit_counts=(4, 2, 1, 0), max_merge_depth=1),
}


def validate_color_table(colors: Sequence[int], table: DivisorTable) -> None:
    if len(colors) < 2:
        raise ValueError("a colour table needs at least two entries")
    if len(set(colors)) != len(colors):
        raise ValueError("colour table entries must be unique")
    if max(table.color_bands) > len(colors):
        raise ValueError("colour band widths cannot exceed the colour table size")


__all__ = [
    "ANCESTRY_SLOTS",
    "BLANK_COLOR",
    "DivisorTable",
    "GENE_SLOTS",
    "PALETTE_COLORS",
    "PRESET_DIVISORS",
    "color_hex",
    "pack_rgb",
    "parse_color",
    "spectrum",
    "validate_color_table",
]
