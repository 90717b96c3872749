"""Hub subsystem — the owner-governed registry of participant tokens."""

from circles.hub.registry import HubRegistry, derive_address

__all__ = ["HubRegistry", "derive_address"]
