"""Issuance engine — compounding basic-income payout from elapsed time.

The payout grows by inflation_numerator / inflation_divisor once per
completed period since deployment:

    periods  = (now - deployed_at) // period
    issuance = base_payout * numerator**periods // divisor**periods

Both powers go through the checked power(), and the product with the
base payout is bounded the same way. Division truncates. No floats.

The engine is pure: it reads parameters and a timestamp and returns an
int. Recording and minting are the registry's responsibility.
"""

from __future__ import annotations

from circles.errors import ClockError
from circles.issuance.power import checked_mul, power
from circles.models.hub import MAX_UINT256, HubParameters


def compounded_payout(
    base_payout: int,
    numerator: int,
    divisor: int,
    periods: int,
    bound: int = MAX_UINT256,
) -> int:
    """Return floor(base_payout * numerator**periods / divisor**periods)."""
    numerator_pow = power(numerator, periods, bound)
    denominator_pow = power(divisor, periods, bound)
    return checked_mul(base_payout, numerator_pow, bound) // denominator_pow


class IssuanceEngine:
    """Computes the payout a signup would mint at a given time.

    Usage:
        engine = IssuanceEngine(params, deployed_at=1_600_000_000)
        amount = engine.issuance_at(now)
    """

    def __init__(
        self,
        params: HubParameters,
        deployed_at: int,
        bound: int = MAX_UINT256,
    ) -> None:
        self._params = params
        self._deployed_at = deployed_at
        self._bound = bound

    @property
    def params(self) -> HubParameters:
        return self._params

    @property
    def deployed_at(self) -> int:
        return self._deployed_at

    def periods_elapsed(self, now: int) -> int:
        """Return the number of whole periods completed since deployment."""
        if now < self._deployed_at:
            raise ClockError(
                f"Timestamp {now} precedes deployment at {self._deployed_at}"
            )
        return (now - self._deployed_at) // self._params.period

    def issuance_at(self, now: int) -> int:
        p = self._params
        return compounded_payout(
            p.base_payout,
            p.inflation_numerator,
            p.inflation_divisor,
            self.periods_elapsed(now),
            self._bound,
        )
