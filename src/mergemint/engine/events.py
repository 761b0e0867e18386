"""Domain events appended by every successful collection operation."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Dict, Mapping, Tuple, Type


@dataclass(frozen=True)
class Event:
    timestamp: int

    def as_dict(self) -> Dict[str, object]:
        blob = dataclasses.asdict(self)
        blob["event"] = type(self).__name__
        return blob


@dataclass(frozen=True)
class Minted(Event):
    recipient: str
    unit_ids: Tuple[int, ...]
    paid: int


@dataclass(frozen=True)
class Composited(Event):
    keep_id: int
    burn_id: int
    unit_count: int


@dataclass(frozen=True)
class Burned(Event):
    unit_id: int
    reason: str


@dataclass(frozen=True)
class PrizeClaimed(Event):
    unit_id: int
    claimant: str
    amount: int


@dataclass(frozen=True)
class WinningTraitChanged(Event):
    previous: int
    current: int


@dataclass(frozen=True)
class FundsDeposited(Event):
    depositor: str
    amount: int


@dataclass(frozen=True)
class OwnerWithdrawal(Event):
    amount: int


@dataclass(frozen=True)
class EmergencySwept(Event):
    amount: int


@dataclass(frozen=True)
class ConfigurationChanged(Event):
    setting: str
    value: str


EVENT_TYPES: Dict[str, Type[Event]] = {
    cls.__name__: cls
    for cls in (
        Minted,
        Composited,
        Burned,
        PrizeClaimed,
        WinningTraitChanged,
        FundsDeposited,
        OwnerWithdrawal,
        EmergencySwept,
        ConfigurationChanged,
    )
}


def event_from_dict(blob: Mapping[str, object]) -> Event:
    data = dict(blob)
    name = data.pop("event")
    cls = EVENT_TYPES[str(name)]
    if "unit_ids" in data:
        data["unit_ids"] = tuple(int(u) for u in data["unit_ids"])  # type: ignore[union-attr]
    return cls(**data)  # type: ignore[arg-type]


__all__ = [
    "Burned",
    "Composited",
    "ConfigurationChanged",
    "EVENT_TYPES",
    "EmergencySwept",
    "Event",
    "FundsDeposited",
    "Minted",
    "OwnerWithdrawal",
    "PrizeClaimed",
    "WinningTraitChanged",
    "event_from_dict",
]
