"""Policy resolver — reads hub parameters from the config directory.

The config directory holds hub_params.json:

    {
      "inflation_numerator": 107,
      "inflation_divisor": 100,
      "period_seconds": 31556952,
      "base_payout": 100000000000000000000,
      "default_symbol": "CRC",
      "demurrage": 0,
      "max_magnitude_bits": 256
    }

Values are validated on load. A missing file, a missing key or a
non-positive value raises ConfigError naming the culprit.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from circles.errors import ConfigError
from circles.models.hub import HubParameters

HUB_PARAMS_FILE = "hub_params.json"

_REQUIRED_KEYS = (
    "inflation_numerator",
    "inflation_divisor",
    "period_seconds",
    "base_payout",
    "default_symbol",
)


class PolicyResolver:
    """Typed access to hub configuration.

    Usage:
        resolver = PolicyResolver.from_config_dir(Path("config"))
        params = resolver.hub_parameters()
    """

    def __init__(self, hub_params: dict[str, Any]) -> None:
        missing = [k for k in _REQUIRED_KEYS if k not in hub_params]
        if missing:
            raise ConfigError(f"{HUB_PARAMS_FILE} missing keys: {', '.join(missing)}")
        self._hub_params = hub_params
        # Fail at load time, not at first use
        self.hub_parameters()
        self.max_magnitude()

    @classmethod
    def from_config_dir(cls, config_dir: Path) -> PolicyResolver:
        path = config_dir / HUB_PARAMS_FILE
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a JSON object")
        return cls(data)

    def hub_parameters(self) -> HubParameters:
        p = self._hub_params
        return HubParameters(
            inflation_numerator=p["inflation_numerator"],
            inflation_divisor=p["inflation_divisor"],
            period=p["period_seconds"],
            base_payout=p["base_payout"],
            default_symbol=p["default_symbol"],
            demurrage=p.get("demurrage", 0),
        ).validate()

    def max_magnitude(self) -> int:
        """Largest value any product may reach (2**bits - 1)."""
        bits = self._hub_params.get("max_magnitude_bits", 256)
        if isinstance(bits, bool) or not isinstance(bits, int) or bits <= 0:
            raise ConfigError(f"max_magnitude_bits must be a positive integer, got {bits!r}")
        return 2**bits - 1
