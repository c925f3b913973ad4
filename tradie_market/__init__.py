"""Tradie marketplace credit ledger and application workflow."""

__version__ = "0.1.0"
