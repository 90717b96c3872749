"""Error kinds raised by the hub, the issuance engine and token ledgers.

Engines raise these directly. The service layer translates them into
failed ServiceResult values; nothing below the service catches them.
"""

from __future__ import annotations


class HubError(Exception):
    """Base class for every domain failure."""


class ConfigError(HubError, ValueError):
    """A hub parameter is missing, malformed or not strictly positive."""


class PermissionDeniedError(HubError):
    """The caller is not the hub owner."""


class AlreadyRegisteredError(HubError):
    """The participant already holds a token ledger."""


class ClockError(HubError, ValueError):
    """A timestamp precedes the hub deployment time."""


class ArithmeticOverflowError(HubError, OverflowError):
    """A product or power exceeds the maximum representable magnitude."""


class UnknownTokenError(HubError, LookupError):
    """No token ledger exists at the given address."""


class LedgerError(HubError):
    """Base class for token ledger failures."""


class ZeroAddressError(LedgerError, ValueError):
    """The null identity was used where a real account is required."""


class InsufficientBalanceError(LedgerError):
    """The debited account holds less than the requested amount."""


class InsufficientAllowanceError(LedgerError):
    """The spender's allowance is below the requested amount."""


class AllowanceUnderflowError(LedgerError):
    """A decrease would take an allowance below zero."""
