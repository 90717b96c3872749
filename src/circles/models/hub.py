"""Hub parameter model and the constants every component agrees on.

Amounts, rates and timestamps are plain Python ints. Magnitudes are
bounded by MAX_UINT256 so that every value the hub produces would also
fit the 256-bit word of the ledger it mirrors.

Invariants enforced by HubParameters.validate():
- inflation_numerator, inflation_divisor, period and base_payout are
  strictly positive integers.
- default_symbol is a non-empty string.
- demurrage is a non-negative integer (reserved, never applied).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from circles.errors import ConfigError


ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
MAX_UINT256 = 2**256 - 1
TOKEN_DECIMALS = 18


def require_positive_int(name: str, value: Any) -> int:
    """Return value if it is an int > 0, else raise ConfigError."""
    # bool is an int subclass; True must not pass as 1
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    if value <= 0:
        raise ConfigError(f"{name} must be strictly positive, got {value}")
    return value


def require_symbol(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"default_symbol must be a non-empty string, got {value!r}")
    return value


@dataclass(frozen=True)
class HubParameters:
    """Issuance parameters of a hub.

    The rate per period is inflation_numerator / inflation_divisor.
    A divisor of 1 expresses an integer growth factor.
    """
    inflation_numerator: int
    inflation_divisor: int
    period: int
    base_payout: int
    default_symbol: str
    demurrage: int = 0

    def validate(self) -> HubParameters:
        require_positive_int("inflation_numerator", self.inflation_numerator)
        require_positive_int("inflation_divisor", self.inflation_divisor)
        require_positive_int("period", self.period)
        require_positive_int("base_payout", self.base_payout)
        require_symbol(self.default_symbol)
        if isinstance(self.demurrage, bool) or not isinstance(self.demurrage, int):
            raise ConfigError(f"demurrage must be an integer, got {self.demurrage!r}")
        if self.demurrage < 0:
            raise ConfigError(f"demurrage must be non-negative, got {self.demurrage}")
        return self

    def with_changes(self, **changes: Any) -> HubParameters:
        """Return a validated copy with the given fields replaced."""
        return replace(self, **changes).validate()

    def to_dict(self) -> dict[str, Any]:
        return {
            "inflation_numerator": self.inflation_numerator,
            "inflation_divisor": self.inflation_divisor,
            "period": self.period,
            "base_payout": self.base_payout,
            "default_symbol": self.default_symbol,
            "demurrage": self.demurrage,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HubParameters:
        try:
            params = cls(
                inflation_numerator=data["inflation_numerator"],
                inflation_divisor=data["inflation_divisor"],
                period=data["period"],
                base_payout=data["base_payout"],
                default_symbol=data["default_symbol"],
                demurrage=data.get("demurrage", 0),
            )
        except KeyError as e:
            raise ConfigError(f"Missing hub parameter: {e.args[0]}") from e
        return params.validate()
