"""Data models shared by the hub, the ledgers and the persistence layer."""

from circles.models.hub import (
    MAX_UINT256,
    TOKEN_DECIMALS,
    ZERO_ADDRESS,
    HubParameters,
)

__all__ = ["MAX_UINT256", "TOKEN_DECIMALS", "ZERO_ADDRESS", "HubParameters"]
