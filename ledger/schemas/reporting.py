"""Pydantic schemas for financial reporting endpoints."""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from ledger.models import AccountType, NormalBalance


class ReportLine(BaseModel):
    """Generic report line for account totals.

    ``account_id`` is empty for computed lines such as retained earnings.
    """

    account_id: UUID | None = None
    code: str | None = None
    name: str
    type: AccountType
    category: str | None = None
    parent_id: UUID | None = None
    level: int = 0
    amount: Decimal


class TrialBalanceLine(BaseModel):
    account_id: UUID
    code: str
    name: str
    type: AccountType
    normal_balance: NormalBalance
    total_debits: Decimal
    total_credits: Decimal
    debit_balance: Decimal
    credit_balance: Decimal


class TrialBalanceResponse(BaseModel):
    """Trial balance snapshot.

    ``total_debits``/``total_credits`` sum raw entry activity;
    ``total_debit_balance``/``total_credit_balance`` sum the balance columns.
    """

    as_of_date: date
    currency: str = Field(min_length=3, max_length=3)
    lines: list[TrialBalanceLine]
    total_debits: Decimal
    total_credits: Decimal
    total_debit_balance: Decimal
    total_credit_balance: Decimal
    is_balanced: bool


class BalanceSheetResponse(BaseModel):
    """Balance sheet response schema."""

    as_of_date: date
    currency: str = Field(min_length=3, max_length=3)
    assets: list[ReportLine]
    liabilities: list[ReportLine]
    equity: list[ReportLine]
    retained_earnings: Decimal
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal
    total_liabilities_and_equity: Decimal
    is_balanced: bool


class IncomeStatementResponse(BaseModel):
    """Income statement response schema."""

    start_date: date
    end_date: date
    currency: str = Field(min_length=3, max_length=3)
    revenues: list[ReportLine]
    expenses: list[ReportLine]
    total_revenues: Decimal
    total_expenses: Decimal
    net_income: Decimal


class CashFlowItem(BaseModel):
    account_id: UUID
    code: str
    name: str
    category: str | None = None
    amount: Decimal


class CashFlowResponse(BaseModel):
    """Cash flow statement response schema."""

    start_date: date
    end_date: date
    currency: str = Field(min_length=3, max_length=3)
    operating: list[CashFlowItem]
    investing: list[CashFlowItem]
    financing: list[CashFlowItem]
    total_operating: Decimal
    total_investing: Decimal
    total_financing: Decimal
    beginning_cash: Decimal
    ending_cash: Decimal
    net_cash_flow: Decimal


class BalanceMismatch(BaseModel):
    account_id: UUID
    code: str
    stored_balance: Decimal
    computed_balance: Decimal
    difference: Decimal


class ConsistencyResponse(BaseModel):
    """Stored running balances checked against recomputed balances."""

    checked_accounts: int
    mismatches: list[BalanceMismatch]
    is_consistent: bool


class ExportReportType(str, Enum):
    """Reports available as CSV."""

    BALANCE_SHEET = "balance-sheet"
    INCOME_STATEMENT = "income-statement"
    TRIAL_BALANCE = "trial-balance"
