"""velock - lock-weight accounting and fee-streaming ledger workbench."""

__version__ = "0.1.0"
