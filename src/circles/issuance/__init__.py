"""Issuance subsystem — checked exponentiation and compounding payout."""

from circles.issuance.engine import IssuanceEngine, compounded_payout
from circles.issuance.power import checked_mul, power

__all__ = ["IssuanceEngine", "checked_mul", "compounded_payout", "power"]
