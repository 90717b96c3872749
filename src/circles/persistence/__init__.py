"""Persistence — append-only notification log and state snapshots."""
