"""API routers package."""

from ledger.routers import accounts, reports, transactions

__all__ = ["accounts", "reports", "transactions"]
