"""General ledger service: chart of accounts, journal, balances and statements."""

__version__ = "0.1.0"
