"""Circles CLI — command-line interface for a persisted hub.

Usage:
    python -m circles.cli init --owner 0xowner
    python -m circles.cli status
    python -m circles.cli signup --caller 0xalice --name "Alice Coin"
    python -m circles.cli issuance
    python -m circles.cli transfer --caller 0xalice --token 0x... --to 0xbob --amount 10
    python -m circles.cli update-symbol --caller 0xowner --symbol PLUM
    python -m circles.cli events --kind signup --from 0
    python -m circles.cli check-invariants

Defaults for --config, --data and --caller can be supplied through the
environment (CIRCLES_CONFIG_DIR, CIRCLES_DATA_DIR, CIRCLES_CALLER) or a
.env file at the project root. Explicit flags win.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Callable, Optional

from dotenv import load_dotenv

from circles.errors import ConfigError
from circles.persistence.event_log import EventKind, EventLog
from circles.persistence.state_store import StateStore
from circles.policy.resolver import PolicyResolver
from circles.service import HubService, ServiceResult


ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG = ROOT / "config"
DEFAULT_DATA = ROOT / "data"


def _fixed_clock(args: argparse.Namespace) -> Optional[Callable[[], int]]:
    if args.now is None:
        return None
    return lambda: args.now


def _stores(data_dir: Path) -> tuple[EventLog, StateStore]:
    data_dir.mkdir(parents=True, exist_ok=True)
    return (
        EventLog(storage_path=data_dir / "events.jsonl"),
        StateStore(storage_path=data_dir / "state.json"),
    )


def _load_service(args: argparse.Namespace) -> Optional[HubService]:
    """Load the persisted hub, or report that none exists yet."""
    resolver = PolicyResolver.from_config_dir(args.config)
    event_log, state_store = _stores(args.data)
    hub = state_store.load(event_log, bound=resolver.max_magnitude())
    if hub is None:
        print(f"No hub found in {args.data}; run 'init' first", file=sys.stderr)
        return None
    return HubService(hub, state_store=state_store, clock=_fixed_clock(args))


def _require_caller(args: argparse.Namespace) -> str:
    caller = args.caller or os.getenv("CIRCLES_CALLER")
    if not caller:
        raise ConfigError("No caller given: pass --caller or set CIRCLES_CALLER")
    return caller


def _report(result: ServiceResult) -> int:
    if result.success:
        print(json.dumps(result.data, indent=2, default=str))
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_init(args: argparse.Namespace) -> int:
    resolver = PolicyResolver.from_config_dir(args.config)
    event_log, state_store = _stores(args.data)
    if state_store.exists():
        print(f"Hub already initialised in {args.data}", file=sys.stderr)
        return 1
    service = HubService.deploy(
        resolver,
        owner=args.owner,
        event_log=event_log,
        state_store=state_store,
        clock=_fixed_clock(args),
    )
    print(f"Deployed hub: {service.hub.address}")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    service = _load_service(args)
    if service is None:
        return 1
    print(json.dumps(service.status(), indent=2))
    return 0


def cmd_issuance(args: argparse.Namespace) -> int:
    service = _load_service(args)
    if service is None:
        return 1
    return _report(service.issuance())


def cmd_pow(args: argparse.Namespace) -> int:
    service = _load_service(args)
    if service is None:
        return 1
    return _report(service.power(args.base, args.exponent))


def cmd_balance(args: argparse.Namespace) -> int:
    service = _load_service(args)
    if service is None:
        return 1
    return _report(service.balance_of(args.token, args.account))


def cmd_events(args: argparse.Namespace) -> int:
    service = _load_service(args)
    if service is None:
        return 1
    kind = EventKind(args.kind) if args.kind else None
    try:
        events = service.event_log.events_in_range(
            args.from_position, args.to_position, kind=kind, source=args.source,
        )
    except ValueError as exc:
        print(f"Failed: {exc}", file=sys.stderr)
        return 1
    print(json.dumps([e.to_dict() for e in events], indent=2))
    return 0


def _caller_command(
    operation: Callable[[HubService, str, argparse.Namespace], ServiceResult],
) -> Callable[[argparse.Namespace], int]:
    """Wrap a mutating command that acts on behalf of --caller."""
    def handler(args: argparse.Namespace) -> int:
        service = _load_service(args)
        if service is None:
            return 1
        return _report(operation(service, _require_caller(args), args))
    return handler


cmd_signup = _caller_command(lambda s, c, a: s.signup(c, a.name))
cmd_transfer = _caller_command(lambda s, c, a: s.transfer(c, a.token, a.to, a.amount))
cmd_approve = _caller_command(lambda s, c, a: s.approve(c, a.token, a.spender, a.amount))
cmd_transfer_from = _caller_command(
    lambda s, c, a: s.transfer_from(c, a.token, a.from_account, a.to, a.amount)
)
cmd_increase_allowance = _caller_command(
    lambda s, c, a: s.increase_allowance(c, a.token, a.spender, a.amount)
)
cmd_decrease_allowance = _caller_command(
    lambda s, c, a: s.decrease_allowance(c, a.token, a.spender, a.amount)
)
cmd_change_owner = _caller_command(lambda s, c, a: s.change_owner(c, a.new_owner))
cmd_update_inflation = _caller_command(lambda s, c, a: s.update_inflation(c, a.value))
cmd_update_divisor = _caller_command(lambda s, c, a: s.update_divisor(c, a.value))
cmd_update_rate = _caller_command(lambda s, c, a: s.update_rate(c, a.value))
cmd_update_symbol = _caller_command(lambda s, c, a: s.update_symbol(c, a.symbol))


def cmd_check_invariants(args: argparse.Namespace) -> int:
    """Run hub invariant checks."""
    # Import and run the existing check_invariants tool
    tools_dir = ROOT / "tools"
    sys.path.insert(0, str(tools_dir))
    from check_invariants import check
    return check(args.config, args.data)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="circles",
        description="Circles Hub — governed issuance registry CLI",
    )
    parser.add_argument(
        "--config", type=Path, default=None,
        help="Path to config directory (default: $CIRCLES_CONFIG_DIR or config/)",
    )
    parser.add_argument(
        "--data", type=Path, default=None,
        help="Path to data directory (default: $CIRCLES_DATA_DIR or data/)",
    )
    parser.add_argument(
        "--now", type=int, default=None,
        help="Override the clock with a Unix timestamp",
    )
    parser.add_argument(
        "--log-level", default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    sub = parser.add_subparsers(dest="command")

    p_init = sub.add_parser("init", help="Deploy a new hub from config")
    p_init.add_argument("--owner", required=True, help="Owner identity")

    sub.add_parser("status", help="Show hub status")
    sub.add_parser("issuance", help="Show the current signup issuance")

    p_pow = sub.add_parser("pow", help="Compute an overflow-checked power")
    p_pow.add_argument("--base", type=int, required=True)
    p_pow.add_argument("--exponent", type=int, required=True)

    p_bal = sub.add_parser("balance", help="Show an account balance")
    p_bal.add_argument("--token", required=True, help="Token address")
    p_bal.add_argument("--account", required=True, help="Account identity")

    p_events = sub.add_parser("events", help="List notifications")
    p_events.add_argument("--kind", choices=[k.value for k in EventKind])
    p_events.add_argument("--source", help="Emitter address")
    p_events.add_argument("--from", dest="from_position", type=int, default=0)
    p_events.add_argument("--to", dest="to_position", type=int, default=None)

    def caller_parser(name: str, help_text: str) -> argparse.ArgumentParser:
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--caller", help="Acting identity (default: $CIRCLES_CALLER)")
        return p

    p_signup = caller_parser("signup", "Sign up and receive a token")
    p_signup.add_argument("--name", required=True, help="Token name")

    p_transfer = caller_parser("transfer", "Transfer tokens")
    p_transfer.add_argument("--token", required=True)
    p_transfer.add_argument("--to", required=True)
    p_transfer.add_argument("--amount", type=int, required=True)

    p_approve = caller_parser("approve", "Set a spender allowance")
    p_approve.add_argument("--token", required=True)
    p_approve.add_argument("--spender", required=True)
    p_approve.add_argument("--amount", type=int, required=True)

    p_tf = caller_parser("transfer-from", "Spend an allowance")
    p_tf.add_argument("--token", required=True)
    p_tf.add_argument("--from-account", required=True)
    p_tf.add_argument("--to", required=True)
    p_tf.add_argument("--amount", type=int, required=True)

    for name, help_text in (
        ("increase-allowance", "Raise a spender allowance"),
        ("decrease-allowance", "Lower a spender allowance"),
    ):
        p = caller_parser(name, help_text)
        p.add_argument("--token", required=True)
        p.add_argument("--spender", required=True)
        p.add_argument("--amount", type=int, required=True)

    p_owner = caller_parser("change-owner", "Hand the hub to a new owner")
    p_owner.add_argument("--new-owner", required=True)

    for name, help_text in (
        ("update-inflation", "Set the inflation numerator"),
        ("update-divisor", "Set the inflation divisor"),
        ("update-rate", "Set the base payout"),
    ):
        p = caller_parser(name, help_text)
        p.add_argument("--value", type=int, required=True)

    p_symbol = caller_parser("update-symbol", "Set the default token symbol")
    p_symbol.add_argument("--symbol", required=True)

    sub.add_parser("check-invariants", help="Run hub invariant checks")

    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv(ROOT / ".env")
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(levelname)s %(name)s: %(message)s",
    )
    args.config = args.config or Path(os.getenv("CIRCLES_CONFIG_DIR") or DEFAULT_CONFIG)
    args.data = args.data or Path(os.getenv("CIRCLES_DATA_DIR") or DEFAULT_DATA)

    commands = {
        "init": cmd_init,
        "status": cmd_status,
        "issuance": cmd_issuance,
        "pow": cmd_pow,
        "balance": cmd_balance,
        "events": cmd_events,
        "signup": cmd_signup,
        "transfer": cmd_transfer,
        "approve": cmd_approve,
        "transfer-from": cmd_transfer_from,
        "increase-allowance": cmd_increase_allowance,
        "decrease-allowance": cmd_decrease_allowance,
        "change-owner": cmd_change_owner,
        "update-inflation": cmd_update_inflation,
        "update-divisor": cmd_update_divisor,
        "update-rate": cmd_update_rate,
        "update-symbol": cmd_update_symbol,
        "check-invariants": cmd_check_invariants,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        return handler(args)
    except ConfigError as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
