"""In-memory ownership registry used as the collection's ownership collaborator."""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Protocol, Set, Tuple

from .errors import InvalidRecipient, NotAuthorized, UnitNotFound


class OwnershipRegistry(Protocol):
    def is_authorized(self, caller: str, unit_id: int) -> bool: ...

    def exists(self, unit_id: int) -> bool: ...

    def burn(self, unit_id: int) -> None: ...

    def create(self, owner: str, unit_id: int) -> None: ...


class InMemoryRegistry:
    """Owner, per-unit approval and operator bookkeeping.

    Ids are never reused: once burned, an id stays retired.
    """

    def __init__(self) -> None:
        self._owners: Dict[int, str] = {}
        self._approvals: Dict[int, str] = {}
        self._operators: Set[Tuple[str, str]] = set()
        self._retired: Set[int] = set()

    def exists(self, unit_id: int) -> bool:
        return unit_id in self._owners

    def owner_of(self, unit_id: int) -> str:
        try:
            return self._owners[unit_id]
        except KeyError:
            raise UnitNotFound(f"unit {unit_id} does not exist") from None

    def is_authorized(self, caller: str, unit_id: int) -> bool:
        owner = self._owners.get(unit_id)
        if owner is None:
            return False
        return (
            caller == owner
            or self._approvals.get(unit_id) == caller
            or (owner, caller) in self._operators
        )

    def create(self, owner: str, unit_id: int) -> None:
        if not owner:
            raise InvalidRecipient("units cannot be created for an empty address")
        if unit_id in self._owners or unit_id in self._retired:
            raise ValueError(f"unit id {unit_id} was already issued")
        self._owners[unit_id] = owner

    def burn(self, unit_id: int) -> None:
        self.owner_of(unit_id)
        del self._owners[unit_id]
        self._approvals.pop(unit_id, None)
        self._retired.add(unit_id)

    def transfer(self, caller: str, recipient: str, unit_id: int) -> None:
        if not self.is_authorized(caller, unit_id):
            raise NotAuthorized(f"{caller} may not transfer unit {unit_id}")
        if not recipient:
            raise InvalidRecipient("cannot transfer to an empty address")
        self._owners[unit_id] = recipient
        self._approvals.pop(unit_id, None)

    def approve(self, caller: str, operator: Optional[str], unit_id: int) -> None:
        owner = self.owner_of(unit_id)
        if caller != owner and (owner, caller) not in self._operators:
            raise NotAuthorized(f"{caller} may not approve operators for unit {unit_id}")
        if operator:
            self._approvals[unit_id] = operator
        else:
            self._approvals.pop(unit_id, None)

    def set_approval_for_all(self, caller: str, operator: str, approved: bool) -> None:
        if approved:
            self._operators.add((caller, operator))
        else:
            self._operators.discard((caller, operator))

    def live_count(self) -> int:
        return len(self._owners)

    def units_of(self, owner: str) -> List[int]:
        return sorted(unit for unit, holder in self._owners.items() if holder == owner)

    def live_units(self) -> List[int]:
        return sorted(self._owners)

    def snapshot(self) -> Dict[str, object]:
        return {
            "owners": {str(k): v for k, v in sorted(self._owners.items())},
            "approvals": {str(k): v for k, v in sorted(self._approvals.items())},
            "operators": sorted([owner, operator] for owner, operator in self._operators),
            "retired": sorted(self._retired),
        }

    @classmethod
    def restore(cls, blob: Mapping[str, object]) -> "InMemoryRegistry":
        registry = cls()
        registry._owners = {int(k): str(v) for k, v in dict(blob.get("owners") or {}).items()}
        registry._approvals = {
            int(k): str(v) for k, v in dict(blob.get("approvals") or {}).items()
        }
        registry._operators = {
            (str(owner), str(operator)) for owner, operator in blob.get("operators") or []
        }
        registry._retired = {int(unit) for unit in blob.get("retired") or []}
        return registry


__all__ = ["InMemoryRegistry", "OwnershipRegistry"]
