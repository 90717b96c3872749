"""Circles Hub — governed issuance registry with per-participant ledgers."""

__version__ = "0.3.0"
