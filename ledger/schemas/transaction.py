"""Pydantic schemas for transactions and journal entries.

Entry count, single-sidedness and debit/credit balance are checked by the
ledger service so that the caller receives typed domain errors.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field

from ledger.models.transaction import TransactionSource, TransactionStatus, TransactionType
from ledger.schemas.base import BaseResponse, ListResponse

Amount = Annotated[Decimal, Field(ge=0, max_digits=18, decimal_places=2)]


class JournalEntryBase(BaseModel):
    """Base journal entry schema."""

    account_id: UUID
    debit_amount: Amount = Decimal("0")
    credit_amount: Amount = Decimal("0")
    description: Annotated[str | None, Field(max_length=500)] = None
    memo: str | None = None
    exchange_rate: Annotated[Decimal, Field(gt=0, decimal_places=6)] = Decimal("1")


class JournalEntryCreate(JournalEntryBase):
    """Schema for creating a journal entry. Currency defaults to the ledger currency."""

    currency_code: Annotated[str | None, Field(min_length=3, max_length=3)] = None


class JournalEntryResponse(JournalEntryBase, BaseResponse):
    id: UUID
    transaction_id: UUID
    line_number: int
    currency_code: str
    base_debit_amount: Decimal
    base_credit_amount: Decimal


class TransactionBase(BaseModel):
    """Base transaction schema."""

    description: Annotated[str, Field(min_length=1, max_length=500)]
    transaction_date: date
    reference: Annotated[str | None, Field(max_length=100)] = None
    type: TransactionType = TransactionType.JOURNAL
    category: Annotated[str | None, Field(max_length=100)] = None


class TransactionCreate(TransactionBase):
    """Schema for creating a draft transaction."""

    transaction_number: Annotated[str | None, Field(min_length=1, max_length=50)] = None
    source: TransactionSource = TransactionSource.MANUAL
    entries: list[JournalEntryCreate]


class TransactionResponse(TransactionBase, BaseResponse):
    """Schema for transaction response."""

    id: UUID
    entity_id: str
    transaction_number: str
    source: TransactionSource
    status: TransactionStatus
    total_amount: Decimal
    posting_date: date | None = None
    reversed_transaction_id: UUID | None = None
    reversal_reason: str | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    posted_by: str | None = None
    posted_at: datetime | None = None
    created_by: str | None = None
    entries: list[JournalEntryResponse]
    created_at: datetime
    updated_at: datetime


TransactionListResponse = ListResponse[TransactionResponse]


class ReverseTransactionRequest(BaseModel):
    """Schema for reversing a posted transaction."""

    reason: Annotated[str | None, Field(max_length=500)] = None
    reversal_date: date | None = None
