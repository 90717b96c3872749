"""Circles service — unified facade over the hub and its token ledgers.

This is the primary interface for programmatic access. It orchestrates:
- Hub deployment from configured parameters
- Participant signup (one token per identity)
- Owner-gated parameter changes
- Token transfers and allowances, addressed by token identity
- Issuance queries against the injected clock
- Persistence (event log, state snapshot)

All operations produce typed results. Domain failures raised by the hub
and ledgers are returned as failed ServiceResults; any other exception
propagates. A failed operation has committed nothing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from circles.errors import HubError, UnknownTokenError
from circles.hub.registry import HubRegistry
from circles.persistence.event_log import EventLog
from circles.persistence.state_store import StateStore
from circles.policy.resolver import PolicyResolver
from circles.token.ledger import TokenLedger

logger = logging.getLogger(__name__)


def _wall_clock() -> int:
    return int(datetime.now(timezone.utc).timestamp())


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)


class HubService:
    """Unified hub facade.

    Usage:
        resolver = PolicyResolver.from_config_dir(config_dir)
        service = HubService.deploy(resolver, owner="0xowner")

        result = service.signup("0xalice", "Alice Coin")
        token = result.data["token"]
        service.transfer("0xalice", token, "0xbob", 10)

    Persistence (optional):
        service = HubService(hub, state_store=store)
        # The snapshot is rewritten after every successful mutation.
    """

    def __init__(
        self,
        hub: HubRegistry,
        state_store: Optional[StateStore] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self._hub = hub
        self._state_store = state_store
        self._clock = clock or _wall_clock
        # Set when a snapshot write fails after a committed operation.
        # In-memory state and the event log remain correct; the snapshot
        # is stale until the next successful write.
        self._persistence_degraded = False

    @classmethod
    def deploy(
        cls,
        resolver: PolicyResolver,
        owner: str,
        event_log: Optional[EventLog] = None,
        state_store: Optional[StateStore] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> HubService:
        """Create a fresh hub from configured parameters at the current time."""
        now = (clock or _wall_clock)()
        hub = HubRegistry(
            owner,
            resolver.hub_parameters(),
            deployed_at=now,
            event_log=event_log,
            bound=resolver.max_magnitude(),
        )
        service = cls(hub, state_store=state_store, clock=clock)
        service._safe_persist()
        logger.info("Deployed hub %s owned by %s at %d", hub.address, owner, now)
        return service

    @property
    def hub(self) -> HubRegistry:
        return self._hub

    @property
    def event_log(self) -> EventLog:
        return self._hub.event_log

    @property
    def persistence_degraded(self) -> bool:
        return self._persistence_degraded

    def now(self) -> int:
        return self._clock()

    # ------------------------------------------------------------------
    # Hub operations
    # ------------------------------------------------------------------

    def signup(self, caller: str, name: str) -> ServiceResult:
        """Register caller and mint the current issuance into a new token."""
        def _signup() -> dict[str, Any]:
            token = self._hub.signup(caller, name, self.now())
            return {
                "user": caller,
                "token": token.address,
                "amount": token.balance_of(caller),
            }
        return self._mutate("signup", _signup)

    def change_owner(self, caller: str, new_owner: str) -> ServiceResult:
        def _change() -> dict[str, Any]:
            self._hub.change_owner(caller, new_owner)
            return {"owner": self._hub.owner}
        return self._mutate("change_owner", _change)

    def update_inflation(self, caller: str, inflation_numerator: int) -> ServiceResult:
        def _update() -> dict[str, Any]:
            self._hub.update_inflation(caller, inflation_numerator)
            return {"inflation_numerator": self._hub.inflation_numerator}
        return self._mutate("update_inflation", _update)

    def update_divisor(self, caller: str, inflation_divisor: int) -> ServiceResult:
        def _update() -> dict[str, Any]:
            self._hub.update_divisor(caller, inflation_divisor)
            return {"inflation_divisor": self._hub.inflation_divisor}
        return self._mutate("update_divisor", _update)

    def update_rate(self, caller: str, base_payout: int) -> ServiceResult:
        def _update() -> dict[str, Any]:
            self._hub.update_rate(caller, base_payout)
            return {"base_payout": self._hub.base_payout}
        return self._mutate("update_rate", _update)

    def update_symbol(self, caller: str, default_symbol: str) -> ServiceResult:
        def _update() -> dict[str, Any]:
            self._hub.update_symbol(caller, default_symbol)
            return {"default_symbol": self._hub.default_symbol}
        return self._mutate("update_symbol", _update)

    def issuance(self) -> ServiceResult:
        """Report the amount a signup would mint right now."""
        now = self.now()
        try:
            engine = self._hub.issuance_engine()
            return ServiceResult(success=True, data={
                "issuance": engine.issuance_at(now),
                "periods": engine.periods_elapsed(now),
                "now": now,
            })
        except HubError as e:
            return ServiceResult(success=False, errors=[str(e)])

    def power(self, base: int, exponent: int) -> ServiceResult:
        try:
            return ServiceResult(success=True, data={"result": self._hub.pow(base, exponent)})
        except (HubError, ValueError) as e:
            return ServiceResult(success=False, errors=[str(e)])

    # ------------------------------------------------------------------
    # Token operations
    # ------------------------------------------------------------------

    def balance_of(self, token: str, account: str) -> ServiceResult:
        try:
            ledger = self._ledger(token)
        except UnknownTokenError as e:
            return ServiceResult(success=False, errors=[str(e)])
        return ServiceResult(success=True, data={
            "token": token,
            "account": account,
            "balance": ledger.balance_of(account),
        })

    def transfer(self, caller: str, token: str, to: str, amount: int) -> ServiceResult:
        def _transfer() -> dict[str, Any]:
            ledger = self._ledger(token)
            ledger.transfer(caller, to, amount, now=self.now())
            return {"token": token, "from": caller, "to": to, "value": amount}
        return self._mutate("transfer", _transfer)

    def approve(self, caller: str, token: str, spender: str, amount: int) -> ServiceResult:
        def _approve() -> dict[str, Any]:
            ledger = self._ledger(token)
            ledger.approve(caller, spender, amount, now=self.now())
            return {"token": token, "owner": caller, "spender": spender,
                    "value": ledger.allowance(caller, spender)}
        return self._mutate("approve", _approve)

    def transfer_from(
        self,
        caller: str,
        token: str,
        from_account: str,
        to: str,
        amount: int,
    ) -> ServiceResult:
        def _transfer_from() -> dict[str, Any]:
            ledger = self._ledger(token)
            ledger.transfer_from(caller, from_account, to, amount, now=self.now())
            return {"token": token, "from": from_account, "to": to, "value": amount,
                    "allowance": ledger.allowance(from_account, caller)}
        return self._mutate("transfer_from", _transfer_from)

    def increase_allowance(
        self, caller: str, token: str, spender: str, delta: int,
    ) -> ServiceResult:
        def _increase() -> dict[str, Any]:
            ledger = self._ledger(token)
            ledger.increase_allowance(caller, spender, delta, now=self.now())
            return {"token": token, "owner": caller, "spender": spender,
                    "value": ledger.allowance(caller, spender)}
        return self._mutate("increase_allowance", _increase)

    def decrease_allowance(
        self, caller: str, token: str, spender: str, delta: int,
    ) -> ServiceResult:
        def _decrease() -> dict[str, Any]:
            ledger = self._ledger(token)
            ledger.decrease_allowance(caller, spender, delta, now=self.now())
            return {"token": token, "owner": caller, "spender": spender,
                    "value": ledger.allowance(caller, spender)}
        return self._mutate("decrease_allowance", _decrease)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def status(self) -> dict[str, Any]:
        hub = self._hub
        return {
            "hub": hub.address,
            "owner": hub.owner,
            "deployed_at": hub.deployed_at,
            "parameters": hub.parameters.to_dict(),
            "signups": len(hub.signups),
            "events": self.event_log.count,
            "persistence_degraded": self._persistence_degraded,
        }

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _ledger(self, token: str) -> TokenLedger:
        ledger = self._hub.token_at(token)
        if ledger is None:
            raise UnknownTokenError(f"Token not found: {token}")
        return ledger

    def _mutate(self, operation: str, action: Callable[[], dict[str, Any]]) -> ServiceResult:
        try:
            data = action()
        except (HubError, ValueError) as e:
            logger.warning("%s rejected: %s", operation, e)
            return ServiceResult(success=False, errors=[str(e)])
        self._safe_persist()
        return ServiceResult(success=True, data=data)

    def _safe_persist(self) -> None:
        """Write the snapshot; on failure flag degraded persistence."""
        if self._state_store is None:
            return
        try:
            self._state_store.save(self._hub)
        except OSError as e:
            self._persistence_degraded = True
            logger.warning("State snapshot write failed: %s", e)
        else:
            self._persistence_degraded = False
