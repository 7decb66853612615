"""SQLAlchemy models package."""

from ledger.models.account import (
    NORMAL_BALANCE_BY_TYPE,
    Account,
    AccountType,
    NormalBalance,
)
from ledger.models.transaction import (
    LEDGER_STATUSES,
    JournalEntry,
    Transaction,
    TransactionSource,
    TransactionStatus,
    TransactionType,
)

__all__ = [
    "Account",
    "AccountType",
    "JournalEntry",
    "LEDGER_STATUSES",
    "NORMAL_BALANCE_BY_TYPE",
    "NormalBalance",
    "Transaction",
    "TransactionSource",
    "TransactionStatus",
    "TransactionType",
]
