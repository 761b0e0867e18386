"""Deployment configuration: tables, colours and prize-pool parameters."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional, Tuple, Type, TypeVar

from .tables import (
    PALETTE_COLORS,
    PRESET_DIVISORS,
    DivisorTable,
    color_hex,
    parse_color,
    spectrum,
    validate_color_table,
)

T = TypeVar("T")

PREPAID_SPLIT = "prepaid_split"
RETROACTIVE = "retroactive"
ACCOUNTING_MODES = (PREPAID_SPLIT, RETROACTIVE)
WINNING_SOURCES = ("composite", "palette")
PAYMENT_KINDS = ("native", "token")
WEEK_SECONDS = 7 * 86_400


def _coerce_dataclass_config(
    value: object,
    cls: Type[T],
    factory: Callable[[], T],
) -> T:
    """Return an instance of ``cls`` merging ``value`` with default fields.

    Nested sections may be given as dictionaries so callers override only the
    parameters they care about; everything else comes from ``factory()``.
    """

    if isinstance(value, cls):
        return value
    if isinstance(value, Mapping):
        default = factory()
        init_fields = {f.name for f in dataclasses.fields(cls) if f.init}
        merged = {name: getattr(default, name) for name in init_fields}
        for key, val in value.items():
            if key in init_fields:
                merged[key] = val
        return cls(**merged)  # type: ignore[arg-type]
    raise TypeError(f"Expected {cls.__name__} or dict, got {type(value)!r}")


def _check_bounds(name: str, bounds: Tuple[int, int]) -> Tuple[int, int]:
    low, high = (int(b) for b in bounds)
    if not 0 <= low <= high <= 100:
        raise ValueError(f"{name} must satisfy 0 <= low <= high <= 100")
    return low, high


@dataclass(frozen=True)
class PoolConfig:
    """Prize-pool parameters a deployment starts with."""

    accounting: str = RETROACTIVE
    payment: Optional[str] = "native"
    mint_price: int = 100
    max_mint_count: int = 4
    owner_share_percent: int = 40
    winner_share_percent: int = 60
    owner_share_bounds: Tuple[int, int] = (0, 100)
    winner_share_bounds: Tuple[int, int] = (1, 100)
    claim_cooldown: int = WEEK_SECONDS
    winning_trait_index: int = 0

    def __post_init__(self) -> None:
        if self.accounting not in ACCOUNTING_MODES:
            raise ValueError(f"accounting must be one of {ACCOUNTING_MODES}")
        if self.payment is not None and self.payment not in PAYMENT_KINDS:
            raise ValueError(f"payment must be one of {PAYMENT_KINDS} or None")
        if self.mint_price < 0:
            raise ValueError("mint_price must be non-negative")
        if self.max_mint_count <= 0:
            raise ValueError("max_mint_count must be positive")
        if self.claim_cooldown < 0:
            raise ValueError("claim_cooldown must be non-negative")
        owner_bounds = _check_bounds("owner_share_bounds", self.owner_share_bounds)
        winner_bounds = _check_bounds("winner_share_bounds", self.winner_share_bounds)
        object.__setattr__(self, "owner_share_bounds", owner_bounds)
        object.__setattr__(self, "winner_share_bounds", winner_bounds)
        if not owner_bounds[0] <= self.owner_share_percent <= owner_bounds[1]:
            raise ValueError("owner_share_percent is outside owner_share_bounds")
        if not winner_bounds[0] <= self.winner_share_percent <= winner_bounds[1]:
            raise ValueError("winner_share_percent is outside winner_share_bounds")

    def as_dict(self) -> Dict[str, object]:
        blob = dataclasses.asdict(self)
        blob["owner_share_bounds"] = list(self.owner_share_bounds)
        blob["winner_share_bounds"] = list(self.winner_share_bounds)
        return blob


def _default_divisors() -> DivisorTable:
    return DivisorTable()


def _default_pool() -> PoolConfig:
    return PoolConfig()


def _default_colors() -> Tuple[int, ...]:
    return spectrum(80)


@dataclass(frozen=True)
class DeploymentConfig:
    """Everything that distinguishes one deployment from another."""

    name: str = "spectrum80"
    divisors: DivisorTable = field(default_factory=_default_divisors)
    colors: Tuple[int, ...] = field(default_factory=_default_colors)
    palette_colors: Tuple[int, ...] = ()
    winning_source: str = "composite"
    pool: PoolConfig = field(default_factory=_default_pool)
    day_seconds: int = 86_400

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "divisors",
            _coerce_dataclass_config(self.divisors, DivisorTable, _default_divisors),
        )
        object.__setattr__(
            self, "pool", _coerce_dataclass_config(self.pool, PoolConfig, _default_pool)
        )
        object.__setattr__(self, "colors", tuple(parse_color(c) for c in self.colors))
        object.__setattr__(
            self, "palette_colors", tuple(parse_color(c) for c in self.palette_colors)
        )
        validate_color_table(self.colors, self.divisors)
        if self.winning_source not in WINNING_SOURCES:
            raise ValueError(f"winning_source must be one of {WINNING_SOURCES}")
        if self.winning_source == "palette" and len(self.palette_colors) < 2:
            raise ValueError("palette deployments need at least two palette colours")
        if len(set(self.palette_colors)) != len(self.palette_colors):
            raise ValueError("palette colours must be unique")
        if not 0 <= self.pool.winning_trait_index < len(self.winning_colors):
            raise ValueError("winning_trait_index is outside the winning colour table")
        if self.day_seconds <= 0:
            raise ValueError("day_seconds must be positive")

    @property
    def uses_palette(self) -> bool:
        return bool(self.palette_colors)

    @property
    def winning_colors(self) -> Tuple[int, ...]:
        return self.palette_colors if self.winning_source == "palette" else self.colors

    @classmethod
    def from_mapping(
        cls, blob: Mapping[str, object], *, preset: Optional[str] = None
    ) -> "DeploymentConfig":
        """Build a config from plain data, filling gaps from ``preset``."""

        base_name = preset or str(blob.get("preset") or blob.get("name") or "spectrum80")
        base = preset_config(base_name) if base_name in PRESETS else DeploymentConfig()
        merged = {
            "name": base.name,
            "divisors": base.divisors,
            "colors": base.colors,
            "palette_colors": base.palette_colors,
            "winning_source": base.winning_source,
            "pool": base.pool,
            "day_seconds": base.day_seconds,
        }
        for key, value in blob.items():
            if key == "divisors" and isinstance(value, Mapping):
                merged[key] = _coerce_dataclass_config(value, DivisorTable, lambda: base.divisors)
            elif key == "pool" and isinstance(value, Mapping):
                merged[key] = _coerce_dataclass_config(value, PoolConfig, lambda: base.pool)
            elif key in merged:
                merged[key] = value
        return cls(**merged)  # type: ignore[arg-type]

    def as_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "divisors": self.divisors.as_dict(),
            "colors": [color_hex(c) for c in self.colors],
            "palette_colors": [color_hex(c) for c in self.palette_colors],
            "winning_source": self.winning_source,
            "pool": self.pool.as_dict(),
            "day_seconds": self.day_seconds,
        }


def _spectrum80() -> DeploymentConfig:
    return DeploymentConfig()


def _compact20() -> DeploymentConfig:
    return DeploymentConfig(
        name="compact20",
        divisors=PRESET_DIVISORS["compact20"],
        palette_colors=PALETTE_COLORS,
        winning_source="palette",
        pool=PoolConfig(
            accounting=PREPAID_SPLIT,
            payment="token",
            mint_price=100,
            max_mint_count=4,
            owner_share_percent=40,
            winner_share_percent=50,
        ),
    )


def _mini4() -> DeploymentConfig:
    return DeploymentConfig(
        name="mini4",
        divisors=PRESET_DIVISORS["mini4"],
        pool=PoolConfig(
            accounting=PREPAID_SPLIT,
            payment="native",
            mint_price=100,
            max_mint_count=4,
            owner_share_percent=40,
            winner_share_percent=50,
        ),
    )


PRESETS: Dict[str, Callable[[], DeploymentConfig]] = {
    "spectrum80": _spectrum80,
    "compact20": _compact20,
    "mini4": _mini4,
}


def preset_config(name: str) -> DeploymentConfig:
    try:
        factory = PRESETS[name]
    except KeyError:
        raise ValueError(f"unknown preset {name!r}; choose from {sorted(PRESETS)}") from None
    return factory()


__all__ = [
    "ACCOUNTING_MODES",
    "DeploymentConfig",
    "PAYMENT_KINDS",
    "PREPAID_SPLIT",
    "PRESETS",
    "PoolConfig",
    "RETROACTIVE",
    "WINNING_SOURCES",
    "preset_config",
]
