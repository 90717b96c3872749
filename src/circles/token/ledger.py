"""Token ledger — balances and allowances for a participant's personal token.

A ledger is created by the hub at signup and lives for the lifetime of
the hub. Units enter only through issue() at signup; nothing burns them.

Every operation validates completely before touching state, appends its
notifications, and only then applies the new balances and allowances.
A failure leaves balances, allowances and the event log untouched.

Invariants:
- balances and allowances are non-negative.
- sum(balances) == total_supply.
- approve() overwrites an allowance; it never accumulates.
- The hub's lock is held for the whole of every mutating call.
"""

from __future__ import annotations

import threading
from typing import Any, Optional

from circles.errors import (
    AllowanceUnderflowError,
    InsufficientAllowanceError,
    InsufficientBalanceError,
    ZeroAddressError,
)
from circles.models.hub import TOKEN_DECIMALS, ZERO_ADDRESS
from circles.persistence.event_log import EventKind, EventLog, EventRecord


def _require_amount(amount: Any) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"Amount must be an int, got {amount!r}")
    if amount < 0:
        raise ValueError(f"Amount must be non-negative, got {amount}")
    return amount


class TokenLedger:
    """Fungible balance and allowance store owned by one participant.

    Usage:
        token = hub.token_of("0xalice")
        token.transfer("0xalice", "0xbob", 10)
        token.approve("0xalice", "0xcarol", 5)
        token.transfer_from("0xcarol", "0xalice", "0xdave", 5)
    """

    decimals = TOKEN_DECIMALS

    def __init__(
        self,
        address: str,
        hub: str,
        owner: str,
        name: str,
        symbol: str,
        event_log: EventLog,
        lock: Optional[threading.RLock] = None,
    ) -> None:
        self._address = address
        self._hub = hub
        self._owner = owner
        self._name = name
        self._symbol = symbol
        self._event_log = event_log
        self._lock = lock or threading.RLock()
        self._total_supply = 0
        self._balances: dict[str, int] = {}
        self._allowances: dict[tuple[str, str], int] = {}

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    @property
    def address(self) -> str:
        return self._address

    @property
    def hub(self) -> str:
        return self._hub

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def name(self) -> str:
        return self._name

    @property
    def symbol(self) -> str:
        return self._symbol

    @property
    def total_supply(self) -> int:
        return self._total_supply

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    def holders(self) -> dict[str, int]:
        """Return a copy of all non-zero balances."""
        return {a: b for a, b in self._balances.items() if b}

    # ------------------------------------------------------------------
    # Issuance (hub only)
    # ------------------------------------------------------------------

    def issue(self, to: str, amount: int, now: Optional[int] = None) -> EventRecord:
        """Credit newly issued units and return the mint notification.

        Called by the hub while the ledger is still staged and invisible
        to everyone else. The caller commits the returned record.
        """
        _require_amount(amount)
        if to == ZERO_ADDRESS:
            raise ZeroAddressError("Cannot issue to the zero address")
        self._balances[to] = self.balance_of(to) + amount
        self._total_supply += amount
        return self._record(
            EventKind.TRANSFER, self._hub,
            {"from": ZERO_ADDRESS, "to": to, "value": amount}, now,
        )

    # ------------------------------------------------------------------
    # Transfer family
    # ------------------------------------------------------------------

    def transfer(
        self, caller: str, to: str, amount: int, now: Optional[int] = None,
    ) -> None:
        """Move amount from caller to another account."""
        _require_amount(amount)
        with self._lock:
            if to == ZERO_ADDRESS:
                raise ZeroAddressError("Cannot transfer to the zero address")
            self._check_balance(caller, amount)

            self._event_log.append(self._record(
                EventKind.TRANSFER, caller,
                {"from": caller, "to": to, "value": amount}, now,
            ))
            self._move(caller, to, amount)

    def approve(
        self, caller: str, spender: str, amount: int, now: Optional[int] = None,
    ) -> None:
        """Set spender's allowance over caller's balance, replacing any prior value."""
        _require_amount(amount)
        with self._lock:
            if spender == ZERO_ADDRESS:
                raise ZeroAddressError("Cannot approve the zero address")
            self._set_allowance(caller, spender, amount, now)

    def transfer_from(
        self,
        caller: str,
        from_account: str,
        to: str,
        amount: int,
        now: Optional[int] = None,
    ) -> None:
        """Move amount out of from_account using caller's allowance.

        Emits Transfer and then Approval carrying the reduced allowance.
        """
        _require_amount(amount)
        with self._lock:
            current = self.allowance(from_account, caller)
            if current < amount:
                raise InsufficientAllowanceError(
                    f"Allowance of {caller} over {from_account} is {current}, "
                    f"requested {amount}"
                )
            if to == ZERO_ADDRESS:
                raise ZeroAddressError("Cannot transfer to the zero address")
            self._check_balance(from_account, amount)

            remaining = current - amount
            self._event_log.append_all([
                self._record(
                    EventKind.TRANSFER, caller,
                    {"from": from_account, "to": to, "value": amount}, now,
                ),
                self._record(
                    EventKind.APPROVAL, caller,
                    {"owner": from_account, "spender": caller, "value": remaining}, now,
                ),
            ])
            self._move(from_account, to, amount)
            self._allowances[(from_account, caller)] = remaining

    def increase_allowance(
        self, caller: str, spender: str, delta: int, now: Optional[int] = None,
    ) -> None:
        _require_amount(delta)
        with self._lock:
            if spender == ZERO_ADDRESS:
                raise ZeroAddressError("Cannot approve the zero address")
            self._set_allowance(
                caller, spender, self.allowance(caller, spender) + delta, now,
            )

    def decrease_allowance(
        self, caller: str, spender: str, delta: int, now: Optional[int] = None,
    ) -> None:
        """Reduce an allowance; reaching exactly zero is allowed."""
        _require_amount(delta)
        with self._lock:
            if spender == ZERO_ADDRESS:
                raise ZeroAddressError("Cannot approve the zero address")
            current = self.allowance(caller, spender)
            if delta > current:
                raise AllowanceUnderflowError(
                    f"Cannot decrease allowance of {spender} by {delta}: "
                    f"current allowance is {current}"
                )
            self._set_allowance(caller, spender, current - delta, now)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_record(self) -> dict[str, Any]:
        return {
            "address": self._address,
            "hub": self._hub,
            "owner": self._owner,
            "name": self._name,
            "symbol": self._symbol,
            "total_supply": self._total_supply,
            "balances": dict(self._balances),
            "allowances": [
                {"owner": o, "spender": s, "value": v}
                for (o, s), v in self._allowances.items()
            ],
        }

    @classmethod
    def from_record(
        cls,
        data: dict[str, Any],
        event_log: EventLog,
        lock: Optional[threading.RLock] = None,
    ) -> TokenLedger:
        """Restore a ledger from a snapshot record."""
        ledger = cls(
            address=data["address"],
            hub=data["hub"],
            owner=data["owner"],
            name=data["name"],
            symbol=data["symbol"],
            event_log=event_log,
            lock=lock,
        )
        ledger._balances = {a: int(v) for a, v in data["balances"].items()}
        ledger._total_supply = int(data["total_supply"])
        ledger._allowances = {
            (a["owner"], a["spender"]): int(a["value"])
            for a in data.get("allowances", [])
        }
        if sum(ledger._balances.values()) != ledger._total_supply:
            raise ValueError(
                f"Token {ledger._address}: balances do not sum to total supply"
            )
        return ledger

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _check_balance(self, account: str, amount: int) -> None:
        balance = self.balance_of(account)
        if balance < amount:
            raise InsufficientBalanceError(
                f"Balance of {account} is {balance}, requested {amount}"
            )

    def _move(self, from_account: str, to: str, amount: int) -> None:
        self._balances[from_account] = self.balance_of(from_account) - amount
        self._balances[to] = self.balance_of(to) + amount

    def _set_allowance(
        self, owner: str, spender: str, value: int, now: Optional[int],
    ) -> None:
        self._event_log.append(self._record(
            EventKind.APPROVAL, owner,
            {"owner": owner, "spender": spender, "value": value}, now,
        ))
        self._allowances[(owner, spender)] = value

    def _record(
        self,
        kind: EventKind,
        actor_id: str,
        payload: dict[str, Any],
        now: Optional[int],
    ) -> EventRecord:
        return EventRecord.create(
            event_kind=kind,
            source=self._address,
            actor_id=actor_id,
            payload=payload,
            timestamp=now,
        )
