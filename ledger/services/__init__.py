"""Domain services: account registry, journal ledger, balances and statements."""
