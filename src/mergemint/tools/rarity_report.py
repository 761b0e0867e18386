"""Rarity histograms for the live units of a collection snapshot.

Example
-------
python -m mergemint.tools.rarity_report --state collection.json
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import numpy as np

from mergemint.engine.collection import CompositeCollection
from mergemint.engine.errors import MergeMintError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--state",
        type=Path,
        required=True,
        help="Snapshot file (.json or .msgpack)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit the histograms as JSON instead of a table",
    )
    return parser


def collect_traits(collection: CompositeCollection) -> Dict[str, np.ndarray]:
    """Band, gradient, depth and first-colour index of every live unit."""

    bands: List[int] = []
    gradients: List[int] = []
    depths: List[int] = []
    first_colors: List[int] = []
    for unit_id in collection.live_units():
        record = collection.record(unit_id)
        bands.append(collection.engine.band_index(record, record.depth))
        gradients.append(collection.engine.gradient_index(record, record.depth))
        depths.append(record.depth)
        first_colors.append(collection.resolve_color_indexes(unit_id)[0])
    return {
        "band": np.asarray(bands, dtype=np.int64),
        "gradient": np.asarray(gradients, dtype=np.int64),
        "depth": np.asarray(depths, dtype=np.int64),
        "first_color": np.asarray(first_colors, dtype=np.int64),
    }


def histograms(collection: CompositeCollection) -> Dict[str, List[int]]:
    table = collection.config.divisors
    traits = collect_traits(collection)
    lengths = {
        "band": len(table.color_bands),
        "gradient": len(table.gradient_steps),
        "depth": len(table.unit_counts),
        "first_color": len(collection.config.colors),
    }
    result: Dict[str, List[int]] = {}
    for name, values in traits.items():
        if name == "first_color":
            # Blank units resolve to -1 and carry no colour.
            values = values[values >= 0]
        counts = np.bincount(values, minlength=lengths[name])
        result[name] = [int(c) for c in counts]
    return result


def format_report(collection: CompositeCollection, report: Dict[str, List[int]]) -> str:
    total = collection.live_unit_count()
    lines = [f"{collection.config.name}: {total} live unit(s)"]
    for name in ("depth", "band", "gradient"):
        counts = np.asarray(report[name], dtype=np.float64)
        shares = counts / counts.sum() if counts.sum() else counts
        lines.append(f"{name}:")
        for index, (count, share) in enumerate(zip(report[name], shares)):
            lines.append(f"  {index:>2}: {count:>6} ({share:6.1%})")
    occupied = int(np.count_nonzero(report["first_color"]))
    lines.append(f"distinct first colours: {occupied}/{len(report['first_color'])}")
    return "\n".join(lines)


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    try:
        collection = CompositeCollection.load_state(args.state)
    except (MergeMintError, OSError) as exc:
        print(f"rarity_report: {exc}", file=sys.stderr)
        return 1
    except (ValueError, KeyError) as exc:
        print(f"rarity_report: invalid snapshot: {exc}", file=sys.stderr)
        return 2
    report = histograms(collection)
    if args.json:
        print(json.dumps(report, indent=2, sort_keys=True))
    else:
        print(format_report(collection, report))
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
