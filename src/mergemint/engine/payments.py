"""Payment media the prize pool can be configured with.

Both media are simple in-memory balance books.  ``NativeCurrency`` models
value that travels with the call itself; ``FungibleToken`` models the
allowance / transferFrom / transfer semantics of a token contract.
"""

from __future__ import annotations

from typing import Dict, Mapping, Optional, Tuple

from .errors import AllowanceTooLow, InsufficientFunds, InsufficientPayment, ZeroAmount

NATIVE = "native"
TOKEN = "token"


class PaymentMedium:
    kind = ""

    def __init__(self, balances: Optional[Mapping[str, int]] = None) -> None:
        self._balances: Dict[str, int] = {str(k): int(v) for k, v in (balances or {}).items()}

    def balance_of(self, address: str) -> int:
        return self._balances.get(address, 0)

    def credit(self, address: str, amount: int) -> None:
        """Mint ``amount`` into ``address`` (simulation and test funding)."""

        if amount <= 0:
            raise ZeroAmount("credit amount must be positive")
        self._balances[address] = self.balance_of(address) + amount

    def _move(self, source: str, target: str, amount: int) -> None:
        self._balances[source] = self.balance_of(source) - amount
        self._balances[target] = self.balance_of(target) + amount

    def transfer(self, source: str, target: str, amount: int) -> None:
        """Move funds the pool already holds, e.g. payouts and owner shares."""

        if amount < 0:
            raise ValueError("transfer amount must be non-negative")
        if self.balance_of(source) < amount:
            raise InsufficientFunds(
                f"{source} holds {self.balance_of(source)}, cannot send {amount}"
            )
        self._move(source, target, amount)

    def check_pull(self, payer: str, spender: str, amount: int) -> None:
        if self.balance_of(payer) < amount:
            raise InsufficientPayment(
                f"{payer} holds {self.balance_of(payer)}, payment requires {amount}"
            )

    def pull(self, payer: str, spender: str, target: str, amount: int) -> None:
        """Collect ``amount`` from ``payer`` into ``target`` on behalf of ``spender``."""

        self.check_pull(payer, spender, amount)
        self._move(payer, target, amount)

    def snapshot(self) -> Dict[str, object]:
        return {"kind": self.kind, "balances": dict(sorted(self._balances.items()))}


class NativeCurrency(PaymentMedium):
    kind = NATIVE


class FungibleToken(PaymentMedium):
    kind = TOKEN

    def __init__(
        self,
        balances: Optional[Mapping[str, int]] = None,
        allowances: Optional[Mapping[Tuple[str, str], int]] = None,
    ) -> None:
        super().__init__(balances)
        self._allowances: Dict[Tuple[str, str], int] = dict(allowances or {})

    def approve(self, owner: str, spender: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("allowance must be non-negative")
        self._allowances[(owner, spender)] = amount

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    def check_pull(self, payer: str, spender: str, amount: int) -> None:
        if self.allowance(payer, spender) < amount:
            raise AllowanceTooLow(
                f"allowance {self.allowance(payer, spender)} granted by {payer} is below {amount}"
            )
        super().check_pull(payer, spender, amount)

    def pull(self, payer: str, spender: str, target: str, amount: int) -> None:
        super().pull(payer, spender, target, amount)
        self._allowances[(payer, spender)] = self.allowance(payer, spender) - amount

    def snapshot(self) -> Dict[str, object]:
        blob = super().snapshot()
        blob["allowances"] = [
            [owner, spender, amount]
            for (owner, spender), amount in sorted(self._allowances.items())
        ]
        return blob


def medium_from_snapshot(blob: Optional[Mapping[str, object]]) -> Optional[PaymentMedium]:
    if not blob:
        return None
    kind = blob.get("kind")
    balances = blob.get("balances") or {}
    if kind == NATIVE:
        return NativeCurrency(balances)
    if kind == TOKEN:
        allowances = {
            (str(owner), str(spender)): int(amount)
            for owner, spender, amount in blob.get("allowances") or []
        }
        return FungibleToken(balances, allowances)
    raise ValueError(f"unknown payment medium kind {kind!r}")


def create_medium(kind: str) -> PaymentMedium:
    if kind == NATIVE:
        return NativeCurrency()
    if kind == TOKEN:
        return FungibleToken()
    raise ValueError(f"unknown payment medium kind {kind!r}")


__all__ = [
    "FungibleToken",
    "NATIVE",
    "NativeCurrency",
    "PaymentMedium",
    "TOKEN",
    "create_medium",
    "medium_from_snapshot",
]
