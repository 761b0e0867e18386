"""Trait resolution through a unit's merge tree and the merge transition."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from .errors import InvalidMergeOperation
from .seeds import SeedGenerator, draw, draw_plain
from .tables import BLANK_COLOR, GENE_SLOTS, DivisorTable, color_hex
from .traits import UnitRecord

logger = logging.getLogger(__name__)

BLANK_INDEX = -1
FORCED_GRADIENT_CUTOFF = 80
ROOT_GRADIENT_ODDS = 20


class RecordReader(Protocol):
    def get(self, unit_id: int) -> UnitRecord: ...


@dataclass(frozen=True)
class Gene:
    band: int
    gradient: int


@dataclass(frozen=True)
class MergeResult:
    keep_id: int
    burn_id: int
    depth: int
    unit_count: int
    gene: Optional[Gene]


def min_nonzero(a: int, b: int) -> int:
    if a == 0:
        return b
    if b == 0:
        return a
    return min(a, b)


def average_band(a: int, b: int) -> int:
    return (a >> 1) + (b >> 1) + (a & b & 1)


class CompositeEngine:
    """Resolves colour indexes on demand and applies merges to trait records.

    Resolution never caches across calls: every call walks the ancestry from
    the current stored records, memoising only inside its own recursion.
    """

    def __init__(
        self,
        table: DivisorTable,
        colors: Sequence[int],
        seeds: Optional[SeedGenerator] = None,
    ) -> None:
        self.table = table
        self.colors: Tuple[int, ...] = tuple(colors)
        self.seeds = seeds or SeedGenerator()

    # ------------------------------------------------------------------
    # Gene lookups
    # ------------------------------------------------------------------

    def band_index(self, record: UnitRecord, depth: int) -> int:
        if depth == 0:
            return self.table.band_for_draw(draw(record.seed, "band", self.table.band_domain))
        # Past the recorded generations the last recorded gene stays in force.
        return record.color_bands[min(depth, GENE_SLOTS) - 1]

    def gradient_index(self, record: UnitRecord, depth: int) -> int:
        if depth == 0:
            n = draw(record.seed, "gradient", 100)
            return 1 + (n % 6) if n < ROOT_GRADIENT_ODDS else 0
        return record.gradients[min(depth, GENE_SLOTS) - 1]

    def combine_genes(self, unit_a: UnitRecord, unit_b: UnitRecord) -> Gene:
        depth = unit_a.depth
        gradient_a = self.gradient_index(unit_a, depth)
        gradient_b = self.gradient_index(unit_b, depth)
        randomizer = self.seeds.merge_randomizer(unit_a.seed, unit_b.seed)
        if draw_plain(randomizer, 100) > FORCED_GRADIENT_CUTOFF:
            if randomizer % 2 == 0:
                gradient = min_nonzero(gradient_a, gradient_b)
            else:
                gradient = max(gradient_a, gradient_b)
        else:
            gradient = min(gradient_a, gradient_b)
        band = average_band(self.band_index(unit_a, depth), self.band_index(unit_b, depth))
        return Gene(band=band, gradient=gradient)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve_color_indexes(
        self, depth: int, record: UnitRecord, reader: RecordReader
    ) -> List[int]:
        """Colour table indexes shown by ``record`` at ``depth``.

        ``reader`` supplies the ancestor records.  A unit at the terminal depth
        resolves to ``[BLANK_INDEX]``.
        """

        memo: Dict[Tuple[int, int], Tuple[int, ...]] = {}
        return list(self._resolve(depth, record, reader, memo))

    def _spread(self, first: int, count: int, step: int, band_width: int) -> List[int]:
        size = len(self.colors)
        return [first] + [
            (first + (i * step * band_width // count) % band_width) % size
            for i in range(1, count)
        ]

    def _resolve(
        self,
        depth: int,
        record: UnitRecord,
        reader: RecordReader,
        memo: Dict[Tuple[int, int], Tuple[int, ...]],
    ) -> Tuple[int, ...]:
        key = (record.unit_id, depth)
        cached = memo.get(key)
        if cached is not None:
            return cached

        table = self.table
        if depth >= table.terminal_depth:
            memo[key] = (BLANK_INDEX,)
            return memo[key]

        size = len(self.colors)
        count = table.unit_count(depth)
        band_width = table.color_bands[self.band_index(record, depth)]
        step = table.gradient_steps[self.gradient_index(record, depth)]
        choices = size if depth == 0 else table.unit_count(depth - 1) * 2
        seed = record.seed

        first = draw_plain(seed, choices)
        if step > 0:
            indexes = self._spread(first, count, step, band_width)
        elif depth == 0:
            indexes = [first] + [
                (first + draw_plain(seed + i, band_width)) % size for i in range(1, count)
            ]
        else:
            indexes = [first] + [draw_plain(seed + i, choices) for i in range(1, count)]

        if depth > 0:
            previous = depth - 1
            parent_count = table.unit_count(previous)
            ancestor_id = record.ancestry[previous]
            if ancestor_id is None:
                raise InvalidMergeOperation(
                    f"unit {record.unit_id} at depth {depth} has no ancestor for depth {previous}"
                )
            kept = self._resolve(previous, record, reader, memo)
            merged = self._resolve(previous, reader.get(ancestor_id), reader, memo)

            def pick(index: int) -> int:
                return kept[index] if index < parent_count else merged[index - parent_count]

            if step > 0:
                indexes = self._spread(pick(indexes[0]), count, step, band_width)
            else:
                indexes = [pick(index) for index in indexes]

        memo[key] = tuple(indexes)
        return memo[key]

    def resolve(self, record: UnitRecord, reader: RecordReader) -> List[int]:
        return self.resolve_color_indexes(record.depth, record, reader)

    def resolve_colors(self, record: UnitRecord, reader: RecordReader) -> List[str]:
        return [
            BLANK_COLOR if index == BLANK_INDEX else color_hex(self.colors[index])
            for index in self.resolve(record, reader)
        ]

    def first_color(self, record: UnitRecord, reader: RecordReader) -> Optional[int]:
        """Packed first colour, or ``None`` for a blank unit."""

        index = self.resolve(record, reader)[0]
        return None if index == BLANK_INDEX else self.colors[index]

    # ------------------------------------------------------------------
    # Merge
    # ------------------------------------------------------------------

    def validate_merge(self, keep: UnitRecord, burn: UnitRecord) -> None:
        if keep.unit_id == burn.unit_id:
            raise InvalidMergeOperation("cannot merge a unit with itself")
        if keep.depth != burn.depth:
            raise InvalidMergeOperation(
                f"units {keep.unit_id} and {burn.unit_id} sit at different depths"
                f" ({keep.depth} != {burn.depth})"
            )
        if not self.table.can_merge_at(keep.depth):
            raise InvalidMergeOperation(f"depth {keep.depth} is not eligible for merging")

    def merge(self, keep: UnitRecord, burn: UnitRecord) -> MergeResult:
        """Advance ``keep`` one depth by absorbing ``burn``.

        Only mutates ``keep``; the caller destroys ``burn``.
        """

        self.validate_merge(keep, burn)
        depth = keep.depth
        gene = self.combine_genes(keep, burn)
        recorded: Optional[Gene] = None
        if depth < GENE_SLOTS:
            keep.color_bands[depth] = gene.band
            keep.gradients[depth] = gene.gradient
            recorded = gene
        keep.ancestry[depth] = burn.unit_id
        keep.seed = self.seeds.derive_merge_seed(keep.seed, burn.seed, gene.band, gene.gradient)
        keep.depth = depth + 1
        unit_count = self.table.unit_count(keep.depth)
        logger.debug(
            "Merged unit %d into %d (depth %d -> %d, gene=%s)",
            burn.unit_id,
            keep.unit_id,
            depth,
            keep.depth,
            recorded,
        )
        return MergeResult(
            keep_id=keep.unit_id,
            burn_id=burn.unit_id,
            depth=keep.depth,
            unit_count=unit_count,
            gene=recorded,
        )


__all__ = [
    "BLANK_INDEX",
    "CompositeEngine",
    "Gene",
    "MergeResult",
    "RecordReader",
    "average_band",
    "min_nonzero",
]
