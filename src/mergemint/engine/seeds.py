"""Seed derivation and the bounded draws taken from a unit's seed.

All entropy consumed here comes from the host: a coarse timestamp, an
unpredictability value and the caller's address.  Whoever submits or orders
the operation can observe and influence those values, so the draws are
reproducible and biasable.  They are not a secure random beacon and callers
must not rely on them as one.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Union

SEED_BITS = 128
SEED_MASK = (1 << SEED_BITS) - 1
_WORD_MASK = (1 << 256) - 1
DAY_SECONDS = 86_400

_Part = Union[int, str, bytes]


@dataclass(frozen=True)
class HostContext:
    """Values the host environment supplies with every state transition."""

    timestamp: int
    entropy: int
    caller: str


def _encode(part: _Part) -> bytes:
    if isinstance(part, bool):
        part = int(part)
    if isinstance(part, int):
        return (part & _WORD_MASK).to_bytes(32, "big")
    if isinstance(part, str):
        raw = part.encode("utf-8")
    else:
        raw = bytes(part)
    return len(raw).to_bytes(4, "big") + raw


def digest_int(*parts: _Part) -> int:
    """SHA-256 over the fixed-width encoding of ``parts`` as an integer."""

    hasher = hashlib.sha256()
    for part in parts:
        hasher.update(_encode(part))
    return int.from_bytes(hasher.digest(), "big")


def draw(seed: int, salt: str, bound: int) -> int:
    """Salted sub-draw in ``range(bound)``."""

    if bound <= 0:
        raise ValueError("bound must be positive")
    return digest_int(seed, salt) % bound


def draw_plain(seed: int, bound: int) -> int:
    if bound <= 0:
        raise ValueError("bound must be positive")
    return digest_int(seed) % bound


class SeedGenerator:
    """Derives unit seeds at mint time and on every merge."""

    def __init__(self, day_seconds: int = DAY_SECONDS) -> None:
        if day_seconds <= 0:
            raise ValueError("day_seconds must be positive")
        self.day_seconds = day_seconds

    def coarse_time(self, timestamp: int) -> int:
        return int(timestamp) // self.day_seconds

    def derive_mint_seed(self, context: HostContext, unit_id: int, mint_counter: int) -> int:
        return (
            digest_int(
                self.coarse_time(context.timestamp),
                context.entropy,
                unit_id,
                context.caller,
                mint_counter,
            )
            & SEED_MASK
        )

    @staticmethod
    def derive_merge_seed(seed_a: int, seed_b: int, band: int, gradient: int) -> int:
        return digest_int(seed_a, seed_b, band, gradient) & SEED_MASK

    @staticmethod
    def merge_randomizer(seed_a: int, seed_b: int) -> int:
        """Randomiser shared by the gene and palette decisions of one merge."""

        return digest_int(seed_a, seed_b)

    @staticmethod
    def rotation_draw(context: HostContext, previous: int, attempt: int, bound: int) -> int:
        """Candidate for the next winning trait; ``attempt`` advances rejection sampling."""

        return (
            digest_int(context.timestamp, context.entropy, context.caller, previous, attempt)
            % bound
        )


__all__ = [
    "DAY_SECONDS",
    "HostContext",
    "SEED_BITS",
    "SEED_MASK",
    "SeedGenerator",
    "digest_int",
    "draw",
    "draw_plain",
]
