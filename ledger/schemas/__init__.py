"""Pydantic schemas package."""

from ledger.schemas.account import (
    AccountBalanceResponse,
    AccountCreate,
    AccountListResponse,
    AccountResponse,
    AccountStatsResponse,
    AccountUpdate,
)
from ledger.schemas.base import BaseResponse, ListResponse
from ledger.schemas.reporting import (
    BalanceSheetResponse,
    CashFlowResponse,
    ConsistencyResponse,
    ExportReportType,
    IncomeStatementResponse,
    TrialBalanceResponse,
)
from ledger.schemas.transaction import (
    JournalEntryCreate,
    JournalEntryResponse,
    ReverseTransactionRequest,
    TransactionCreate,
    TransactionListResponse,
    TransactionResponse,
)

__all__ = [
    "AccountBalanceResponse",
    "AccountCreate",
    "AccountListResponse",
    "AccountResponse",
    "AccountStatsResponse",
    "AccountUpdate",
    "BalanceSheetResponse",
    "BaseResponse",
    "CashFlowResponse",
    "ConsistencyResponse",
    "ExportReportType",
    "IncomeStatementResponse",
    "JournalEntryCreate",
    "JournalEntryResponse",
    "ListResponse",
    "ReverseTransactionRequest",
    "TransactionCreate",
    "TransactionListResponse",
    "TransactionResponse",
    "TrialBalanceResponse",
]
