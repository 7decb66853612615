"""Pydantic schemas for accounts."""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field

from ledger.models.account import AccountType, NormalBalance
from ledger.schemas.base import BaseResponse, ListResponse

ACCOUNT_CODE_PATTERN = r"^[A-Za-z0-9.\-]+$"

AccountCode = Annotated[str, Field(min_length=2, max_length=20, pattern=ACCOUNT_CODE_PATTERN)]
AccountName = Annotated[str, Field(min_length=3, max_length=100)]


class AccountBase(BaseModel):
    """Base account schema."""

    code: AccountCode
    name: AccountName
    type: AccountType
    description: Annotated[str | None, Field(max_length=1000)] = None
    subtype: Annotated[str | None, Field(max_length=100)] = None
    category: Annotated[str | None, Field(max_length=100)] = None
    report_category: Annotated[str | None, Field(max_length=100)] = None
    report_order: int = 0
    allow_transactions: bool = True


class AccountCreate(AccountBase):
    """Schema for creating an account.

    ``normal_balance`` defaults to the conventional side for ``type``.
    """

    normal_balance: NormalBalance | None = None
    parent_id: UUID | None = None
    is_system: bool = False


class AccountUpdate(BaseModel):
    """Schema for updating an account."""

    code: AccountCode | None = None
    name: AccountName | None = None
    type: AccountType | None = None
    description: Annotated[str | None, Field(max_length=1000)] = None
    subtype: Annotated[str | None, Field(max_length=100)] = None
    category: Annotated[str | None, Field(max_length=100)] = None
    report_category: Annotated[str | None, Field(max_length=100)] = None
    report_order: int | None = None
    allow_transactions: bool | None = None


class AccountResponse(AccountBase, BaseResponse):
    """Schema for account response."""

    id: UUID
    entity_id: str
    normal_balance: NormalBalance
    parent_id: UUID | None = None
    level: int
    path: str
    is_active: bool
    is_system: bool
    current_balance: Decimal
    balance: Decimal | None = None
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime
    updated_at: datetime


AccountListResponse = ListResponse[AccountResponse]


class AccountBalanceResponse(BaseModel):
    account_id: UUID
    code: str
    normal_balance: NormalBalance
    as_of_date: date | None = None
    balance: Decimal


class AccountStatsResponse(BaseModel):
    """Chart-of-accounts summary counts."""

    total: int
    active: int
    inactive: int
    system: int
    by_type: dict[AccountType, int]
