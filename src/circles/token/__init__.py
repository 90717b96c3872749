"""Token subsystem — one fungible ledger per signed-up participant."""

from circles.token.ledger import TokenLedger

__all__ = ["TokenLedger"]
