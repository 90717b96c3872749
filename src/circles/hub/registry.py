"""Hub registry — owner-gated parameters and one-time participant signup.

The hub holds the issuance parameters, the deployment time and the map
of participant -> token ledger. It is the only place ledgers are created.

Architecture:
- Parameters live in a frozen HubParameters; an update swaps in a
  validated copy, so a rejected update leaves the old value in place.
- Issuance is delegated to IssuanceEngine, rebuilt from the current
  parameters on each query.
- Every ledger the hub creates shares the hub's lock and event log.

Signup is staged then committed. The new ledger is built and credited
off to the side; only when issuance, ledger creation and the mint have
all succeeded are the notifications appended and the ledger published
in the signup map. A failure at any step commits nothing.

Participant lifecycle:
    UNREGISTERED -> REGISTERED   (signup succeeds; terminal)
A second signup from a registered identity is rejected and changes
nothing.

Invariants:
- deployed_at never changes.
- signups is append-only with unique keys.
- Only the current owner mutates owner or parameters.
- Parameter changes never touch ledgers that already exist.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from typing import Any, Optional

from circles.errors import (
    AlreadyRegisteredError,
    ConfigError,
    PermissionDeniedError,
    ZeroAddressError,
)
from circles.issuance.engine import IssuanceEngine
from circles.issuance.power import power
from circles.models.hub import MAX_UINT256, ZERO_ADDRESS, HubParameters
from circles.persistence.event_log import EventKind, EventLog, EventRecord
from circles.token.ledger import TokenLedger

logger = logging.getLogger(__name__)


def derive_address(seed: str) -> str:
    """Derive a stable 20-byte hex identity from a seed string."""
    digest = hashlib.sha256(seed.encode("utf-8")).hexdigest()
    return "0x" + digest[-40:]


def _require_identity(name: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{name} must be a non-empty identity, got {value!r}")
    return value


class HubRegistry:
    """The single governed registry issuing one token per participant.

    Usage:
        hub = HubRegistry.create(
            owner="0xowner", inflation_numerator=107, inflation_divisor=100,
            period=31556952, default_symbol="CRC",
            base_payout=100 * 10**18, now=1_600_000_000,
        )
        token = hub.signup("0xalice", "Alice Coin", now=1_600_000_100)
        hub.update_symbol("0xowner", "PLUM")
    """

    def __init__(
        self,
        owner: str,
        params: HubParameters,
        deployed_at: int,
        event_log: Optional[EventLog] = None,
        address: Optional[str] = None,
        bound: int = MAX_UINT256,
    ) -> None:
        _require_identity("owner", owner)
        if isinstance(deployed_at, bool) or not isinstance(deployed_at, int):
            raise ConfigError(f"deployed_at must be an integer timestamp, got {deployed_at!r}")
        self._owner = owner
        self._params = params.validate()
        self._deployed_at = deployed_at
        self._event_log = event_log if event_log is not None else EventLog()
        self._address = address or derive_address(f"hub:{owner}:{deployed_at}")
        self._bound = bound
        self._lock = threading.RLock()
        self._signups: dict[str, TokenLedger] = {}
        self._tokens: dict[str, TokenLedger] = {}
        self._nonce = 0

    @classmethod
    def create(
        cls,
        owner: str,
        inflation_numerator: int,
        inflation_divisor: int,
        period: int,
        default_symbol: str,
        base_payout: int,
        now: int,
        event_log: Optional[EventLog] = None,
        address: Optional[str] = None,
        demurrage: int = 0,
        bound: int = MAX_UINT256,
    ) -> HubRegistry:
        """Deploy a hub at time now with the given parameters."""
        params = HubParameters(
            inflation_numerator=inflation_numerator,
            inflation_divisor=inflation_divisor,
            period=period,
            base_payout=base_payout,
            default_symbol=default_symbol,
            demurrage=demurrage,
        )
        return cls(
            owner, params, now, event_log=event_log, address=address, bound=bound,
        )

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    @property
    def address(self) -> str:
        return self._address

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def deployed_at(self) -> int:
        return self._deployed_at

    @property
    def parameters(self) -> HubParameters:
        return self._params

    @property
    def inflation_numerator(self) -> int:
        return self._params.inflation_numerator

    @property
    def inflation_divisor(self) -> int:
        return self._params.inflation_divisor

    @property
    def period(self) -> int:
        return self._params.period

    @property
    def base_payout(self) -> int:
        return self._params.base_payout

    @property
    def default_symbol(self) -> str:
        return self._params.default_symbol

    @property
    def demurrage(self) -> int:
        return self._params.demurrage

    @property
    def event_log(self) -> EventLog:
        return self._event_log

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @property
    def signups(self) -> dict[str, TokenLedger]:
        return dict(self._signups)

    def is_registered(self, user: str) -> bool:
        return user in self._signups

    def token_of(self, user: str) -> Optional[TokenLedger]:
        return self._signups.get(user)

    def token_at(self, address: str) -> Optional[TokenLedger]:
        return self._tokens.get(address)

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    def pow(self, base: int, exponent: int) -> int:
        return power(base, exponent, self._bound)

    def issuance_engine(self) -> IssuanceEngine:
        return IssuanceEngine(self._params, self._deployed_at, self._bound)

    def issuance(self, now: int) -> int:
        """Return the amount a signup at time now would mint."""
        return self.issuance_engine().issuance_at(now)

    # ------------------------------------------------------------------
    # Owner-gated mutation
    # ------------------------------------------------------------------

    def change_owner(self, caller: str, new_owner: str) -> None:
        with self._lock:
            self._require_owner(caller)
            _require_identity("new_owner", new_owner)
            previous, self._owner = self._owner, new_owner
        logger.info("Hub %s owner changed from %s to %s", self._address, previous, new_owner)

    def update_inflation(self, caller: str, inflation_numerator: int) -> None:
        self._update_parameter(caller, inflation_numerator=inflation_numerator)

    def update_divisor(self, caller: str, inflation_divisor: int) -> None:
        self._update_parameter(caller, inflation_divisor=inflation_divisor)

    def update_rate(self, caller: str, base_payout: int) -> None:
        self._update_parameter(caller, base_payout=base_payout)

    def update_symbol(self, caller: str, default_symbol: str) -> None:
        self._update_parameter(caller, default_symbol=default_symbol)

    # ------------------------------------------------------------------
    # Signup
    # ------------------------------------------------------------------

    def signup(self, caller: str, name: str, now: int) -> TokenLedger:
        """Register caller and mint the current issuance into a new token.

        Raises AlreadyRegisteredError on a repeated signup, ClockError if
        now precedes deployment, ArithmeticOverflowError if the issuance
        does not fit. Nothing is committed on failure.
        """
        if not isinstance(name, str):
            raise ConfigError(f"Token name must be a string, got {name!r}")
        with self._lock:
            if caller == ZERO_ADDRESS:
                raise ZeroAddressError("The zero address cannot sign up")
            if caller in self._signups:
                raise AlreadyRegisteredError(f"{caller} has already signed up")

            amount = self.issuance(now)

            # Stage: build and credit the ledger without publishing it
            ledger = TokenLedger(
                address=derive_address(f"{self._address}:{self._nonce}"),
                hub=self._address,
                owner=caller,
                name=name,
                symbol=self._params.default_symbol,
                event_log=self._event_log,
                lock=self._lock,
            )
            mint_event = ledger.issue(caller, amount, now)
            signup_event = EventRecord.create(
                event_kind=EventKind.SIGNUP,
                source=self._address,
                actor_id=caller,
                payload={"user": caller, "token": ledger.address},
                timestamp=now,
            )

            # Commit
            self._event_log.append_all([mint_event, signup_event])
            self._nonce += 1
            self._signups[caller] = ledger
            self._tokens[ledger.address] = ledger

        logger.info(
            "Signup: %s received token %s with %d units", caller, ledger.address, amount,
        )
        return ledger

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_record(self) -> dict[str, Any]:
        return {
            "address": self._address,
            "owner": self._owner,
            "deployed_at": self._deployed_at,
            "nonce": self._nonce,
            "parameters": self._params.to_dict(),
            "signups": {
                user: ledger.to_record() for user, ledger in self._signups.items()
            },
        }

    @classmethod
    def from_record(
        cls,
        data: dict[str, Any],
        event_log: Optional[EventLog] = None,
        bound: int = MAX_UINT256,
    ) -> HubRegistry:
        """Restore a hub and all its ledgers from a snapshot record."""
        hub = cls(
            owner=data["owner"],
            params=HubParameters.from_dict(data["parameters"]),
            deployed_at=data["deployed_at"],
            event_log=event_log,
            address=data["address"],
            bound=bound,
        )
        for user, token_data in data.get("signups", {}).items():
            ledger = TokenLedger.from_record(token_data, hub._event_log, hub._lock)
            if ledger.owner != user:
                raise ValueError(f"Token {ledger.address} is not owned by {user}")
            hub._signups[user] = ledger
            hub._tokens[ledger.address] = ledger
        hub._nonce = data.get("nonce", len(hub._signups))
        return hub

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _require_owner(self, caller: str) -> None:
        if caller != self._owner:
            raise PermissionDeniedError(
                f"{caller} is not the owner of hub {self._address}"
            )

    def _update_parameter(self, caller: str, **changes: Any) -> None:
        with self._lock:
            self._require_owner(caller)
            self._params = self._params.with_changes(**changes)
        logger.info("Hub %s parameters updated: %s", self._address, changes)
