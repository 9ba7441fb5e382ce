"""Invariant validation for lock and fee ledgers."""

from .invariants import InvariantChecker, ValidationWarning, validate_ledgers

__all__ = [
    "InvariantChecker",
    "ValidationWarning",
    "validate_ledgers"
]
