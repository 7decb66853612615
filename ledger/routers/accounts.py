"""Chart of accounts API router."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from ledger.config import settings
from ledger.deps import CurrentEntityId, DbSession
from ledger.logger import get_logger
from ledger.models import AccountType
from ledger.schemas import (
    AccountBalanceResponse,
    AccountCreate,
    AccountListResponse,
    AccountResponse,
    AccountStatsResponse,
    AccountUpdate,
)
from ledger.services import accounts as account_service
from ledger.services.balances import get_balance, get_balances
from ledger.services.errors import AccountingError
from ledger.utils.exceptions import raise_domain_error

router = APIRouter(prefix="/accounts", tags=["accounts"])
logger = get_logger(__name__)


@router.post("", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
async def create_account(
    account_data: AccountCreate,
    db: DbSession,
    entity_id: CurrentEntityId,
) -> AccountResponse:
    """Create a new account."""
    try:
        account = await account_service.create_account(db, entity_id, account_data, created_by=entity_id)
    except AccountingError as exc:
        raise_domain_error(exc)
    await db.commit()
    return AccountResponse.model_validate(account)


@router.get("", response_model=AccountListResponse)
async def list_accounts(
    account_type: AccountType | None = Query(default=None, alias="type"),
    is_active: bool | None = None,
    search: str | None = Query(default=None, max_length=100),
    parent_id: UUID | None = None,
    include_balance: bool = Query(False, description="Include recomputed balance (slower)"),
    limit: int = Query(default=settings.max_page_size, ge=1, le=settings.max_page_size),
    offset: int = Query(default=0, ge=0),
    db: DbSession = None,
    entity_id: CurrentEntityId = None,
) -> AccountListResponse:
    """List accounts ordered by code.

    ``search`` matches a case-insensitive name substring or a code prefix.
    """
    accounts, total = await account_service.list_accounts(
        db,
        entity_id,
        account_type=account_type,
        is_active=is_active,
        search=search,
        parent_id=parent_id,
        limit=limit,
        offset=offset,
    )

    balances = await get_balances(db, entity_id, accounts) if include_balance else {}

    items = []
    for account in accounts:
        response = AccountResponse.model_validate(account)
        if include_balance:
            response.balance = balances.get(account.id)
        items.append(response)

    return AccountListResponse(items=items, total=total)


@router.get("/stats", response_model=AccountStatsResponse)
async def account_stats(db: DbSession, entity_id: CurrentEntityId) -> AccountStatsResponse:
    stats = await account_service.get_account_stats(db, entity_id)
    return AccountStatsResponse(**stats)


@router.get("/{key}", response_model=AccountResponse)
async def get_account(
    key: str,
    db: DbSession,
    entity_id: CurrentEntityId,
) -> AccountResponse:
    """Get account details by id or code, with recomputed balance."""
    try:
        account = await account_service.get_account(db, entity_id, key)
    except AccountingError as exc:
        logger.debug("Account not found", key=key)
        raise_domain_error(exc)

    balances = await get_balances(db, entity_id, [account])
    response = AccountResponse.model_validate(account)
    response.balance = balances[account.id]
    return response


@router.get("/{account_id}/children", response_model=list[AccountResponse])
async def list_children(
    account_id: UUID,
    db: DbSession,
    entity_id: CurrentEntityId,
) -> list[AccountResponse]:
    try:
        children = await account_service.list_children(db, entity_id, account_id)
    except AccountingError as exc:
        raise_domain_error(exc)
    return [AccountResponse.model_validate(child) for child in children]


@router.get("/{account_id}/balance", response_model=AccountBalanceResponse)
async def account_balance(
    account_id: UUID,
    as_of_date: date | None = Query(default=None),
    db: DbSession = None,
    entity_id: CurrentEntityId = None,
) -> AccountBalanceResponse:
    """Balance recomputed from posted entries up to ``as_of_date``."""
    try:
        account = await account_service.get_account(db, entity_id, account_id)
        balance = await get_balance(db, entity_id, account_id, as_of_date=as_of_date)
    except AccountingError as exc:
        raise_domain_error(exc)
    return AccountBalanceResponse(
        account_id=account.id,
        code=account.code,
        normal_balance=account.normal_balance,
        as_of_date=as_of_date,
        balance=balance,
    )


@router.patch("/{account_id}", response_model=AccountResponse)
async def update_account(
    account_id: UUID,
    account_data: AccountUpdate,
    db: DbSession,
    entity_id: CurrentEntityId,
) -> AccountResponse:
    """Update account details."""
    try:
        account = await account_service.update_account(
            db, entity_id, account_id, account_data, updated_by=entity_id
        )
    except AccountingError as exc:
        logger.info("Account update rejected", account_id=str(account_id), error=exc.message)
        raise_domain_error(exc)
    await db.commit()
    return AccountResponse.model_validate(account)


@router.post("/{account_id}/deactivate", response_model=AccountResponse)
async def deactivate_account(
    account_id: UUID,
    db: DbSession,
    entity_id: CurrentEntityId,
) -> AccountResponse:
    try:
        account = await account_service.deactivate_account(db, entity_id, account_id, updated_by=entity_id)
    except AccountingError as exc:
        raise_domain_error(exc)
    await db.commit()
    return AccountResponse.model_validate(account)


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_account(
    account_id: UUID,
    db: DbSession,
    entity_id: CurrentEntityId,
) -> None:
    """Delete an account (only if unused)."""
    try:
        await account_service.delete_account(db, entity_id, account_id)
    except AccountingError as exc:
        raise_domain_error(exc)
    await db.commit()
