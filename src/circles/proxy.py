"""Proxy accounts — outer executors that act on the hub as one identity.

A proxy account has its own address and a set of owner identities. An
owner submits one inner service operation; the proxy runs it with the
proxy's address as the caller and then records a marker in the event
log:

    execution_success  the inner operation committed
    execution_failed   the inner operation failed; nothing was committed

Because hub and ledger operations are atomic, a failed inner call leaves
no notifications behind, so the failure marker is the only trace.

Signature checking is out of scope here: the signer identity is trusted
and only checked for membership in the owner set. A non-owner is refused
outright, with no marker and no nonce increment.
"""

from __future__ import annotations

from typing import Any, Iterable

from circles.hub.registry import derive_address
from circles.persistence.event_log import EventKind, EventRecord
from circles.service import HubService, ServiceResult

# Service operations a proxy may forward, all of which take the caller first
PROXY_OPERATIONS = frozenset({
    "signup",
    "change_owner",
    "update_inflation",
    "update_divisor",
    "update_rate",
    "update_symbol",
    "transfer",
    "approve",
    "transfer_from",
    "increase_allowance",
    "decrease_allowance",
})


class ProxyAccount:
    """A multi-owner account that forwards calls to a HubService.

    Usage:
        proxy = ProxyAccount.create(service, owners=["0xalice"], salt="main")
        result = proxy.exec_call("0xalice", "signup", name="Alice Coin")
        result.success           # False on a repeated signup
    """

    def __init__(self, address: str, owners: Iterable[str], service: HubService) -> None:
        owner_set = frozenset(owners)
        if not owner_set:
            raise ValueError("A proxy account needs at least one owner")
        self._address = address
        self._owners = owner_set
        self._service = service
        self._nonce = 0

    @classmethod
    def create(
        cls, service: HubService, owners: Iterable[str], salt: str = "",
    ) -> ProxyAccount:
        owner_list = sorted(set(owners))
        address = derive_address(f"proxy:{service.hub.address}:{','.join(owner_list)}:{salt}")
        return cls(address, owner_list, service)

    @property
    def address(self) -> str:
        return self._address

    @property
    def owners(self) -> frozenset[str]:
        return self._owners

    @property
    def nonce(self) -> int:
        return self._nonce

    def exec_call(self, signer: str, operation: str, **kwargs: Any) -> ServiceResult:
        """Run one service operation with this proxy as the caller."""
        if operation not in PROXY_OPERATIONS:
            raise ValueError(f"Unsupported proxy operation: {operation}")
        if signer not in self._owners:
            return ServiceResult(
                success=False,
                errors=[f"{signer} is not an owner of proxy {self._address}"],
            )

        # Inner notifications and the marker stay adjacent in the log.
        with self._service.hub.lock:
            result: ServiceResult = getattr(self._service, operation)(self._address, **kwargs)

            nonce = self._nonce
            self._nonce += 1
            payload: dict[str, Any] = {"nonce": nonce, "operation": operation}
            if result.success:
                kind = EventKind.EXECUTION_SUCCESS
            else:
                kind = EventKind.EXECUTION_FAILED
                payload["errors"] = list(result.errors)
            self._service.event_log.append(EventRecord.create(
                event_kind=kind,
                source=self._address,
                actor_id=signer,
                payload=payload,
                timestamp=self._service.now(),
            ))
        return ServiceResult(
            success=result.success,
            errors=list(result.errors),
            data={**result.data, "nonce": nonce},
        )
