"""Ebers - clinic patient records, consultation lifecycle and credit ledger."""

__version__ = "1.0.0"
