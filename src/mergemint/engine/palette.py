"""Shrinking winning-colour palettes for palette-bearing deployments."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Sequence, Tuple

from .errors import UnitNotFound
from .seeds import draw

logger = logging.getLogger(__name__)

PALETTE_SLOTS = 3


@dataclass
class PaletteRecord:
    length: int = PALETTE_SLOTS
    colors: List[int] = field(default_factory=lambda: [0] * PALETTE_SLOTS)

    def active(self) -> List[int]:
        return self.colors[: self.length]

    def snapshot(self) -> Dict[str, object]:
        return {"length": self.length, "colors": list(self.colors)}

    @classmethod
    def restore(cls, blob: Mapping[str, object]) -> "PaletteRecord":
        return cls(length=int(blob["length"]), colors=[int(c) for c in blob["colors"]])


class PaletteTracker:
    """Keeps a 3 -> 2 -> 1 colour list per unit.

    The first merge of two full palettes keeps one colour from each side, the
    second keeps one of the four remaining candidates.  A single-colour palette
    never changes again.
    """

    def __init__(self, palette_colors: Sequence[int]) -> None:
        if len(palette_colors) < 2:
            raise ValueError("palette deployments need at least two trait colours")
        self.palette_colors: Tuple[int, ...] = tuple(palette_colors)
        self._records: Dict[int, PaletteRecord] = {}

    def __contains__(self, unit_id: object) -> bool:
        return unit_id in self._records

    def get(self, unit_id: int) -> PaletteRecord:
        try:
            return self._records[unit_id]
        except KeyError:
            raise UnitNotFound(f"unit {unit_id} has no palette") from None

    def init_unit(self, unit_id: int, seed: int) -> PaletteRecord:
        domain = len(self.palette_colors)
        colors = [
            self.palette_colors[draw(seed, f"palette-{slot}", domain)]
            for slot in range(PALETTE_SLOTS)
        ]
        record = PaletteRecord(length=PALETTE_SLOTS, colors=colors)
        self._records[unit_id] = record
        return record

    def on_merge(self, keep_id: int, burn_id: int, randomizer: int) -> PaletteRecord:
        keep = self.get(keep_id)
        burn = self.get(burn_id)
        if keep.length == 3 and burn.length == 3:
            kept = keep.colors[draw(randomizer, "palette-keep", 3)]
            merged = burn.colors[draw(randomizer, "palette-burn", 3)]
            keep.colors = [kept, merged, 0]
            keep.length = 2
        elif keep.length == 2 and burn.length == 2:
            candidates = keep.colors[:2] + burn.colors[:2]
            keep.colors = [candidates[draw(randomizer, "palette-final", 4)], 0, 0]
            keep.length = 1
        else:
            return keep
        logger.debug("Palette of unit %d shrank to %d colour(s)", keep_id, keep.length)
        return keep

    def first_color(self, unit_id: int) -> int:
        return self.get(unit_id).colors[0]

    def snapshot(self) -> Dict[str, Dict[str, object]]:
        return {str(key): self._records[key].snapshot() for key in sorted(self._records)}

    @classmethod
    def restore(
        cls, palette_colors: Sequence[int], blob: Mapping[str, Mapping[str, object]]
    ) -> "PaletteTracker":
        tracker = cls(palette_colors)
        tracker._records = {int(key): PaletteRecord.restore(value) for key, value in blob.items()}
        return tracker


__all__ = ["PALETTE_SLOTS", "PaletteRecord", "PaletteTracker"]
