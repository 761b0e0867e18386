"""Shared builders for the collection tests."""

from __future__ import annotations

from typing import List

from mergemint.engine.collection import CompositeCollection
from mergemint.engine.seeds import HostContext

BASE_TIMESTAMP = 1_700_000_000


def make_context(caller: str = "alice", timestamp: int = BASE_TIMESTAMP, entropy: int = 7) -> HostContext:
    return HostContext(timestamp=timestamp, entropy=entropy, caller=caller)


def merge_to_single(collection: CompositeCollection, caller: str, unit_ids: List[int]) -> int:
    """Pairwise merge ``unit_ids`` until one unit remains; returns its id."""

    context = make_context(caller)
    survivors = list(unit_ids)
    while len(survivors) > 1:
        next_round = []
        for keep, burn in zip(survivors[::2], survivors[1::2]):
            collection.composite(context, keep, burn)
            next_round.append(keep)
        survivors = next_round
    return survivors[0]
