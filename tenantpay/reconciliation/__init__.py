"""Duplicate payment record reconciliation."""
