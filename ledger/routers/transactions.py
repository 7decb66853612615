"""Transaction (journal) API router."""

from datetime import date as date_type
from uuid import UUID

from fastapi import APIRouter, Query, status

from ledger.config import settings
from ledger.deps import CurrentEntityId, DbSession
from ledger.logger import get_logger
from ledger.models import TransactionStatus
from ledger.schemas import (
    ReverseTransactionRequest,
    TransactionCreate,
    TransactionListResponse,
    TransactionResponse,
)
from ledger.services import ledger as ledger_service
from ledger.services.errors import AccountingError
from ledger.utils.exceptions import raise_domain_error

router = APIRouter(prefix="/transactions", tags=["transactions"])
logger = get_logger(__name__)


@router.post("", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
async def create_transaction(
    transaction_data: TransactionCreate,
    db: DbSession,
    entity_id: CurrentEntityId,
) -> TransactionResponse:
    """Create a balanced transaction in DRAFT status."""
    try:
        transaction = await ledger_service.create_transaction(
            db, entity_id, transaction_data, created_by=entity_id
        )
    except AccountingError as exc:
        logger.info("Transaction rejected", code=exc.code, error=exc.message)
        raise_domain_error(exc)
    await db.commit()
    return TransactionResponse.model_validate(transaction)


@router.get("", response_model=TransactionListResponse)
async def list_transactions(
    start_date: date_type | None = None,
    end_date: date_type | None = None,
    account_id: UUID | None = None,
    search: str | None = Query(default=None, max_length=100),
    status_filter: TransactionStatus | None = Query(default=None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: DbSession = None,
    entity_id: CurrentEntityId = None,
) -> TransactionListResponse:
    """List transactions, newest transaction date first."""
    transactions, total = await ledger_service.list_transactions(
        db,
        entity_id,
        start_date=start_date,
        end_date=end_date,
        account_id=account_id,
        search=search,
        status=status_filter,
        page=page,
        limit=limit,
    )
    items = [TransactionResponse.model_validate(t) for t in transactions]
    return TransactionListResponse(items=items, total=total)


@router.get("/{transaction_id}", response_model=TransactionResponse)
async def get_transaction(
    transaction_id: UUID,
    db: DbSession,
    entity_id: CurrentEntityId,
) -> TransactionResponse:
    try:
        transaction = await ledger_service.get_transaction(db, entity_id, transaction_id)
    except AccountingError as exc:
        raise_domain_error(exc)
    return TransactionResponse.model_validate(transaction)


@router.post("/{transaction_id}/submit", response_model=TransactionResponse)
async def submit_transaction(
    transaction_id: UUID,
    db: DbSession,
    entity_id: CurrentEntityId,
) -> TransactionResponse:
    """Submit a draft for approval (DRAFT → PENDING)."""
    try:
        transaction = await ledger_service.submit_transaction(db, entity_id, transaction_id)
    except AccountingError as exc:
        raise_domain_error(exc)
    await db.commit()
    return TransactionResponse.model_validate(transaction)


@router.post("/{transaction_id}/approve", response_model=TransactionResponse)
async def approve_transaction(
    transaction_id: UUID,
    db: DbSession,
    entity_id: CurrentEntityId,
) -> TransactionResponse:
    try:
        transaction = await ledger_service.approve_transaction(
            db, entity_id, transaction_id, approved_by=entity_id
        )
    except AccountingError as exc:
        raise_domain_error(exc)
    await db.commit()
    return TransactionResponse.model_validate(transaction)


@router.post("/{transaction_id}/post", response_model=TransactionResponse)
async def post_transaction(
    transaction_id: UUID,
    db: DbSession,
    entity_id: CurrentEntityId,
) -> TransactionResponse:
    """Post a transaction and apply it to account balances."""
    try:
        transaction = await ledger_service.post_transaction(
            db, entity_id, transaction_id, posted_by=entity_id
        )
    except AccountingError as exc:
        raise_domain_error(exc)
    await db.commit()
    return TransactionResponse.model_validate(transaction)


@router.post("/{transaction_id}/cancel", response_model=TransactionResponse)
async def cancel_transaction(
    transaction_id: UUID,
    db: DbSession,
    entity_id: CurrentEntityId,
) -> TransactionResponse:
    try:
        transaction = await ledger_service.cancel_transaction(db, entity_id, transaction_id)
    except AccountingError as exc:
        raise_domain_error(exc)
    await db.commit()
    return TransactionResponse.model_validate(transaction)


@router.post("/{transaction_id}/reverse", response_model=TransactionResponse)
async def reverse_transaction(
    transaction_id: UUID,
    reverse_request: ReverseTransactionRequest | None = None,
    db: DbSession = None,
    entity_id: CurrentEntityId = None,
) -> TransactionResponse:
    """Reverse a posted transaction. Returns the posted counter-transaction."""
    reverse_request = reverse_request or ReverseTransactionRequest()
    try:
        reversal = await ledger_service.reverse_transaction(
            db,
            entity_id,
            transaction_id,
            reason=reverse_request.reason,
            reversal_date=reverse_request.reversal_date,
            reversed_by=entity_id,
        )
    except AccountingError as exc:
        raise_domain_error(exc)
    await db.commit()
    return TransactionResponse.model_validate(reversal)
