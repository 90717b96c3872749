#!/usr/bin/env python3
"""Circles hub invariant checks against config and persisted state."""

import json
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
CONFIG_DIR = ROOT / "config"
DATA_DIR = ROOT / "data"

POSITIVE_PARAMS = (
    "inflation_numerator",
    "inflation_divisor",
    "period_seconds",
    "base_payout",
)


def load_json(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def check_params(params: dict, errors: list[str]) -> None:
    """Validate hub_params.json."""
    for key in POSITIVE_PARAMS:
        value = params.get(key)
        if not _is_int(value) or value <= 0:
            errors.append(f"{key} must be a positive integer, got {value!r}")
    symbol = params.get("default_symbol")
    if not isinstance(symbol, str) or not symbol.strip():
        errors.append("default_symbol must be a non-empty string")
    if params.get("demurrage", 0) != 0:
        errors.append("demurrage is reserved and must be 0")
    bits = params.get("max_magnitude_bits", 256)
    if not _is_int(bits) or bits <= 0:
        errors.append(f"max_magnitude_bits must be a positive integer, got {bits!r}")
    elif _is_int(params.get("base_payout")) and params["base_payout"] > 2**bits - 1:
        errors.append("base_payout exceeds the maximum magnitude")


def check_ledger(user: str, token: dict, errors: list[str]) -> None:
    """Validate one persisted token ledger."""
    label = f"token {token.get('address')}"
    if token.get("owner") != user:
        errors.append(f"{label} is registered to {user} but owned by {token.get('owner')}")
    balances = token.get("balances", {})
    negative = [a for a, v in balances.items() if v < 0]
    if negative:
        errors.append(f"{label} has negative balances: {', '.join(negative)}")
    if sum(balances.values()) != token.get("total_supply"):
        errors.append(f"{label} balances do not sum to total supply")
    for allowance in token.get("allowances", []):
        if allowance["value"] < 0:
            errors.append(
                f"{label} has a negative allowance "
                f"{allowance['owner']} -> {allowance['spender']}"
            )


def check_state(state: dict, errors: list[str]) -> int:
    """Validate the hub snapshot; return the number of signups."""
    hub = state.get("hub", {})
    parameters = hub.get("parameters", {})
    for key in ("inflation_numerator", "inflation_divisor", "period", "base_payout"):
        value = parameters.get(key)
        if not _is_int(value) or value <= 0:
            errors.append(f"hub {key} must be a positive integer, got {value!r}")
    if not hub.get("owner"):
        errors.append("hub has no owner")

    signups = hub.get("signups", {})
    addresses = [t.get("address") for t in signups.values()]
    if len(addresses) != len(set(addresses)):
        errors.append("two participants share a token address")
    for user, token in signups.items():
        check_ledger(user, token, errors)
    return len(signups)


def check_events(path: Path, signups: int, errors: list[str]) -> None:
    """Every registered participant has exactly one signup notification."""
    users: list[str] = []
    with path.open("r", encoding="utf-8") as handle:
        for line in handle:
            line = line.strip()
            if not line:
                continue
            record = json.loads(line)
            if record["event_kind"] == "signup":
                users.append(record["payload"]["user"])
    if len(users) != len(set(users)):
        errors.append("a participant has more than one signup notification")
    if len(users) != signups:
        errors.append(
            f"{len(users)} signup notifications but {signups} registered participants"
        )


def check(config_dir: Path = CONFIG_DIR, data_dir: Path = DATA_DIR) -> int:
    errors: list[str] = []

    params_path = config_dir / "hub_params.json"
    if not params_path.exists():
        print(f"Invariant check failed: missing {params_path}")
        return 1
    check_params(load_json(params_path), errors)

    state_path = data_dir / "state.json"
    events_path = data_dir / "events.jsonl"
    if state_path.exists():
        signups = check_state(load_json(state_path), errors)
        if events_path.exists():
            check_events(events_path, signups, errors)

    if errors:
        print("Invariant check failed:")
        for error in errors:
            print(f"- {error}")
        return 1

    print("All hub invariant checks passed.")
    return 0


if __name__ == "__main__":
    sys.exit(check())
