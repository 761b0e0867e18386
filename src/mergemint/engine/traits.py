"""Persistent per-unit trait records."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Optional

from .errors import UnitNotFound
from .seeds import SEED_BITS, SEED_MASK
from .tables import ANCESTRY_SLOTS, GENE_SLOTS

logger = logging.getLogger(__name__)

_SEED_BYTES = SEED_BITS // 8


@dataclass
class UnitRecord:
    """Merge depth, ancestry, recorded genes and current seed of one unit.

    ``ancestry[d]`` holds the id merged into this unit when it advanced from
    depth ``d`` to ``d + 1``.  ``color_bands[d]``/``gradients[d]`` hold the
    gene recorded by that same merge; only the first :data:`GENE_SLOTS`
    merges record one.
    """

    unit_id: int
    seed: int
    depth: int = 0
    ancestry: List[Optional[int]] = field(default_factory=lambda: [None] * ANCESTRY_SLOTS)
    color_bands: List[int] = field(default_factory=lambda: [0] * GENE_SLOTS)
    gradients: List[int] = field(default_factory=lambda: [0] * GENE_SLOTS)

    def snapshot(self) -> Dict[str, object]:
        return {
            "unit_id": self.unit_id,
            "seed": (self.seed & SEED_MASK).to_bytes(_SEED_BYTES, "big"),
            "depth": self.depth,
            "ancestry": list(self.ancestry),
            "color_bands": list(self.color_bands),
            "gradients": list(self.gradients),
        }

    @classmethod
    def restore(cls, blob: Mapping[str, object]) -> "UnitRecord":
        seed = blob["seed"]
        if isinstance(seed, (bytes, bytearray)):
            seed_value = int.from_bytes(bytes(seed), "big")
        else:
            seed_value = int(seed)
        ancestry = [None if a is None else int(a) for a in blob["ancestry"]]
        return cls(
            unit_id=int(blob["unit_id"]),
            seed=seed_value,
            depth=int(blob["depth"]),
            ancestry=ancestry,
            color_bands=[int(v) for v in blob["color_bands"]],
            gradients=[int(v) for v in blob["gradients"]],
        )


class TraitStore:
    """Id-keyed store of :class:`UnitRecord` values.

    Records outlive their units: a burned unit's record stays readable because
    descendants resolve their colours through it.
    """

    def __init__(self) -> None:
        self._records: Dict[int, UnitRecord] = {}

    def __contains__(self, unit_id: object) -> bool:
        return unit_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[UnitRecord]:
        return iter(self._records.values())

    def create(self, unit_id: int, seed: int) -> UnitRecord:
        if unit_id in self._records:
            raise ValueError(f"unit {unit_id} already has a trait record")
        record = UnitRecord(unit_id=unit_id, seed=seed & SEED_MASK)
        self._records[unit_id] = record
        logger.debug("Created trait record for unit %d", unit_id)
        return record

    def get(self, unit_id: int) -> UnitRecord:
        try:
            return self._records[unit_id]
        except KeyError:
            raise UnitNotFound(f"unit {unit_id} has no trait record") from None

    def snapshot(self) -> List[Dict[str, object]]:
        return [self._records[key].snapshot() for key in sorted(self._records)]

    @classmethod
    def restore(cls, blob: List[Mapping[str, object]]) -> "TraitStore":
        store = cls()
        for item in blob:
            record = UnitRecord.restore(item)
            store._records[record.unit_id] = record
        return store


__all__ = ["TraitStore", "UnitRecord"]
