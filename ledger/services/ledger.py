"""Journal entry ledger: transaction lifecycle, posting and reversal.

State machine::

    DRAFT -> PENDING -> APPROVED -> POSTED -> REVERSED
      |         |           |
      +---------+-----------+--> CANCELLED

DRAFT and PENDING may also post directly. Posting is the only step that
touches account balances; a posted transaction is undone solely through a
reversal transaction.
"""

from collections.abc import Iterable, Sequence
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Protocol
from uuid import UUID, uuid4

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from ledger.config import settings
from ledger.logger import get_logger, log_exception
from ledger.models import (
    Account,
    JournalEntry,
    Transaction,
    TransactionSource,
    TransactionStatus,
)
from ledger.schemas.transaction import TransactionCreate
from ledger.services.balances import signed_amount
from ledger.services.errors import (
    ConcurrentModificationError,
    DuplicateCodeError,
    InvalidStateTransitionError,
    NotFoundError,
    UnbalancedTransactionError,
    ValidationError,
)
from ledger.utils.money import ZERO, quantize_money

logger = get_logger(__name__)

HALF_CENT = Decimal("0.005")

ALLOWED_TRANSITIONS: dict[TransactionStatus, frozenset[TransactionStatus]] = {
    TransactionStatus.DRAFT: frozenset(
        {
            TransactionStatus.PENDING,
            TransactionStatus.APPROVED,
            TransactionStatus.POSTED,
            TransactionStatus.CANCELLED,
        }
    ),
    TransactionStatus.PENDING: frozenset(
        {TransactionStatus.APPROVED, TransactionStatus.POSTED, TransactionStatus.CANCELLED}
    ),
    TransactionStatus.APPROVED: frozenset({TransactionStatus.POSTED, TransactionStatus.CANCELLED}),
    TransactionStatus.POSTED: frozenset({TransactionStatus.REVERSED}),
    TransactionStatus.CANCELLED: frozenset(),
    TransactionStatus.REVERSED: frozenset(),
}


class EntryAmounts(Protocol):
    debit_amount: Decimal
    credit_amount: Decimal


def ensure_transition(transaction: Transaction, target: TransactionStatus) -> None:
    if target not in ALLOWED_TRANSITIONS[transaction.status]:
        logger.warning(
            "Illegal transaction state transition",
            transaction_id=str(transaction.id),
            current_status=transaction.status.value,
            target_status=target.value,
        )
        raise InvalidStateTransitionError(transaction.status, target)


def validate_transaction_balance(entries: Sequence[EntryAmounts]) -> tuple[Decimal, Decimal]:
    """
    Validate the entry set of a transaction.

    Requires at least two entries, exactly one positive side per entry and
    total debits equal to total credits within ``settings.balance_tolerance``.

    Returns:
        (total_debit, total_credit)

    Raises:
        ValidationError: Too few entries or a malformed entry
        UnbalancedTransactionError: Debits and credits differ
    """
    if len(entries) < 2:
        raise ValidationError(
            "Transaction must have at least 2 entries", entry_count=len(entries)
        )

    total_debit = ZERO
    total_credit = ZERO
    for line_number, entry in enumerate(entries, start=1):
        debit = quantize_money(entry.debit_amount)
        credit = quantize_money(entry.credit_amount)
        if debit < 0 or credit < 0:
            raise ValidationError(
                f"Entry {line_number} has a negative amount", line_number=line_number
            )
        if (debit > 0) == (credit > 0):
            raise ValidationError(
                f"Entry {line_number} must have exactly one non-zero debit or credit amount",
                line_number=line_number,
            )
        total_debit += debit
        total_credit += credit

    if abs(total_debit - total_credit) > settings.balance_tolerance:
        raise UnbalancedTransactionError(total_debit, total_credit)

    return total_debit, total_credit


def _base_totals(entries: Iterable[JournalEntry]) -> tuple[Decimal, Decimal]:
    total_debit = ZERO
    total_credit = ZERO
    for entry in entries:
        total_debit += entry.base_debit_amount
        total_credit += entry.base_credit_amount
    return total_debit, total_credit


def settle_base_amounts(entries: Sequence[JournalEntry]) -> None:
    """
    Make base debits equal base credits before anything reaches the ledger.

    Each base amount is rounded to cents on its own, so converted lines can
    drift by up to half a cent apiece. That residual is added to the largest
    line on the short side. Any larger gap means the entered amounts do not
    convert to the same base total (mixed exchange rates) and is rejected.

    Raises:
        UnbalancedTransactionError: Base debits and credits differ beyond rounding
    """
    total_debit, total_credit = _base_totals(entries)
    residual = total_debit - total_credit
    if residual == ZERO:
        return

    rounding_allowance = settings.balance_tolerance + HALF_CENT * len(entries)
    if abs(residual) > rounding_allowance:
        logger.warning(
            "Base amounts do not balance",
            base_debit=str(total_debit),
            base_credit=str(total_credit),
        )
        raise UnbalancedTransactionError(total_debit, total_credit)

    if residual > 0:
        short_side = max(
            (entry for entry in entries if entry.base_credit_amount > 0),
            key=lambda entry: entry.base_credit_amount,
        )
        short_side.base_credit_amount += residual
    else:
        short_side = max(
            (entry for entry in entries if entry.base_debit_amount > 0),
            key=lambda entry: entry.base_debit_amount,
        )
        short_side.base_debit_amount -= residual
    logger.debug("Base rounding residual absorbed", line_number=short_side.line_number, residual=str(residual))


def validate_base_balance(entries: Iterable[JournalEntry]) -> None:
    """Posted entries must balance exactly in the ledger currency."""
    total_debit, total_credit = _base_totals(entries)
    if total_debit != total_credit:
        raise UnbalancedTransactionError(total_debit, total_credit)


def generate_transaction_number(transaction_date: date, prefix: str = "TXN") -> str:
    return f"{prefix}-{transaction_date:%Y%m%d}-{uuid4().hex[:8].upper()}"


def _check_posting_accounts(
    accounts: dict[UUID, Account], account_ids: Iterable[UUID], *, require_postable: bool = True
) -> None:
    for account_id in account_ids:
        account = accounts.get(account_id)
        if account is None:
            raise ValidationError(f"Account {account_id} not found", account_id=account_id)
        if not require_postable:
            continue
        if not account.is_active:
            raise ValidationError(f"Account {account.code} is not active", account_id=account_id)
        if not account.allow_transactions:
            raise ValidationError(
                f"Account {account.code} does not allow transactions", account_id=account_id
            )


async def _load_accounts(
    db: AsyncSession, entity_id: str, account_ids: set[UUID], *, lock: bool = False
) -> dict[UUID, Account]:
    query = select(Account).where(Account.entity_id == entity_id).where(Account.id.in_(account_ids))
    if lock:
        # Row locks taken in id order keep concurrent postings deadlock-free
        query = (
            query.order_by(Account.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    result = await db.execute(query)
    return {account.id: account for account in result.scalars().all()}


async def _load_for_update(db: AsyncSession, entity_id: str, transaction_id: UUID) -> Transaction:
    result = await db.execute(
        select(Transaction)
        .where(Transaction.id == transaction_id)
        .where(Transaction.entity_id == entity_id)
        .options(selectinload(Transaction.entries))
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    transaction = result.scalar_one_or_none()
    if not transaction:
        raise NotFoundError(f"Transaction {transaction_id} not found", key=str(transaction_id))
    return transaction


def _apply_entries(entries: Iterable[JournalEntry], accounts: dict[UUID, Account]) -> None:
    for entry in entries:
        account = accounts[entry.account_id]
        effect = signed_amount(account.normal_balance, entry.base_debit_amount, entry.base_credit_amount)
        account.current_balance = quantize_money(account.current_balance + effect)


async def _flush_balances(db: AsyncSession, transaction_id: UUID) -> None:
    try:
        await db.flush()
    except StaleDataError as exc:
        log_exception(
            logger,
            exc,
            "Concurrent balance update detected",
            level="warning",
            include_traceback=False,
            transaction_id=str(transaction_id),
        )
        raise ConcurrentModificationError(
            "Account balances changed concurrently; retry the operation",
            transaction_id=transaction_id,
        ) from exc


async def create_transaction(
    db: AsyncSession,
    entity_id: str,
    transaction_data: TransactionCreate,
    created_by: str | None = None,
) -> Transaction:
    """Record a balanced DRAFT transaction. Balances are untouched until posting."""
    total_debit, _ = validate_transaction_balance(transaction_data.entries)

    account_ids = {entry.account_id for entry in transaction_data.entries}
    accounts = await _load_accounts(db, entity_id, account_ids)
    _check_posting_accounts(accounts, account_ids)

    number = transaction_data.transaction_number or generate_transaction_number(
        transaction_data.transaction_date
    )
    existing = await db.execute(
        select(Transaction.id)
        .where(Transaction.entity_id == entity_id)
        .where(Transaction.transaction_number == number)
    )
    if existing.first() is not None:
        raise DuplicateCodeError(f"Transaction number {number} already exists", transaction_number=number)

    transaction = Transaction(
        entity_id=entity_id,
        transaction_number=number,
        reference=transaction_data.reference,
        description=transaction_data.description,
        transaction_date=transaction_data.transaction_date,
        type=transaction_data.type,
        source=transaction_data.source,
        category=transaction_data.category,
        total_amount=total_debit,
        status=TransactionStatus.DRAFT,
        created_by=created_by,
    )
    entries: list[JournalEntry] = []
    for line_number, entry_data in enumerate(transaction_data.entries, start=1):
        debit = quantize_money(entry_data.debit_amount)
        credit = quantize_money(entry_data.credit_amount)
        rate = entry_data.exchange_rate
        entries.append(
            JournalEntry(
                line_number=line_number,
                account_id=entry_data.account_id,
                description=entry_data.description,
                memo=entry_data.memo,
                debit_amount=debit,
                credit_amount=credit,
                currency_code=(entry_data.currency_code or settings.default_currency).upper(),
                exchange_rate=rate,
                base_debit_amount=quantize_money(debit * rate),
                base_credit_amount=quantize_money(credit * rate),
            )
        )
    settle_base_amounts(entries)
    transaction.entries = entries

    db.add(transaction)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise DuplicateCodeError(
            f"Transaction number {number} already exists", transaction_number=number
        ) from exc

    logger.info(
        "Transaction created",
        entity_id=entity_id,
        transaction_id=str(transaction.id),
        transaction_number=number,
        total_amount=str(total_debit),
        entry_count=len(entries),
    )
    return await get_transaction(db, entity_id, transaction.id)


async def get_transaction(db: AsyncSession, entity_id: str, transaction_id: UUID) -> Transaction:
    result = await db.execute(
        select(Transaction)
        .where(Transaction.id == transaction_id)
        .where(Transaction.entity_id == entity_id)
        .options(selectinload(Transaction.entries))
    )
    transaction = result.scalar_one_or_none()
    if not transaction:
        raise NotFoundError(f"Transaction {transaction_id} not found", key=str(transaction_id))
    return transaction


async def list_transactions(
    db: AsyncSession,
    entity_id: str,
    start_date: date | None = None,
    end_date: date | None = None,
    account_id: UUID | None = None,
    search: str | None = None,
    status: TransactionStatus | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[Transaction], int]:
    """Filterable, paginated listing, newest transaction date first."""
    base_query = select(Transaction).where(Transaction.entity_id == entity_id)

    if start_date:
        base_query = base_query.where(Transaction.transaction_date >= start_date)
    if end_date:
        base_query = base_query.where(Transaction.transaction_date <= end_date)
    if status:
        base_query = base_query.where(Transaction.status == status)
    if account_id:
        base_query = base_query.where(
            Transaction.id.in_(
                select(JournalEntry.transaction_id).where(JournalEntry.account_id == account_id)
            )
        )
    if search:
        term = search.strip().lower()
        base_query = base_query.where(
            or_(
                func.lower(Transaction.description).contains(term, autoescape=True),
                func.lower(Transaction.transaction_number).contains(term, autoescape=True),
                func.lower(func.coalesce(Transaction.reference, "")).contains(term, autoescape=True),
            )
        )

    count_query = select(func.count()).select_from(base_query.subquery())
    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    query = (
        base_query.options(selectinload(Transaction.entries))
        .order_by(Transaction.transaction_date.desc(), Transaction.created_at.desc())
        .offset((max(page, 1) - 1) * limit)
        .limit(limit)
    )
    result = await db.execute(query)
    return list(result.scalars().all()), total


async def _transition(
    db: AsyncSession, entity_id: str, transaction_id: UUID, target: TransactionStatus
) -> Transaction:
    transaction = await _load_for_update(db, entity_id, transaction_id)
    ensure_transition(transaction, target)
    transaction.status = target
    return transaction


async def submit_transaction(db: AsyncSession, entity_id: str, transaction_id: UUID) -> Transaction:
    """DRAFT -> PENDING."""
    transaction = await _transition(db, entity_id, transaction_id, TransactionStatus.PENDING)
    await db.flush()
    logger.info("Transaction submitted", entity_id=entity_id, transaction_id=str(transaction_id))
    return transaction


async def approve_transaction(
    db: AsyncSession, entity_id: str, transaction_id: UUID, approved_by: str | None = None
) -> Transaction:
    transaction = await _transition(db, entity_id, transaction_id, TransactionStatus.APPROVED)
    transaction.approved_by = approved_by
    transaction.approved_at = datetime.now(UTC)
    await db.flush()
    logger.info("Transaction approved", entity_id=entity_id, transaction_id=str(transaction_id))
    return transaction


async def cancel_transaction(db: AsyncSession, entity_id: str, transaction_id: UUID) -> Transaction:
    """Cancel an unposted transaction. Terminal, no balance effect."""
    transaction = await _transition(db, entity_id, transaction_id, TransactionStatus.CANCELLED)
    await db.flush()
    logger.info("Transaction cancelled", entity_id=entity_id, transaction_id=str(transaction_id))
    return transaction


async def post_transaction(
    db: AsyncSession, entity_id: str, transaction_id: UUID, posted_by: str | None = None
) -> Transaction:
    """
    Post a transaction and apply its entries to account balances.

    The transaction row is locked first, then the touched account rows in id
    order; the account ``version`` column backs the locks with an optimistic
    check.

    Raises:
        InvalidStateTransitionError: Already posted, cancelled or reversed
        UnbalancedTransactionError / ValidationError: Entries no longer valid
        ConcurrentModificationError: An account row changed underneath
    """
    transaction = await _load_for_update(db, entity_id, transaction_id)
    ensure_transition(transaction, TransactionStatus.POSTED)
    validate_transaction_balance(transaction.entries)
    validate_base_balance(transaction.entries)

    account_ids = {entry.account_id for entry in transaction.entries}
    accounts = await _load_accounts(db, entity_id, account_ids, lock=True)
    _check_posting_accounts(accounts, account_ids)

    _apply_entries(transaction.entries, accounts)
    transaction.status = TransactionStatus.POSTED
    transaction.posting_date = date.today()
    transaction.posted_at = datetime.now(UTC)
    transaction.posted_by = posted_by
    await _flush_balances(db, transaction.id)

    logger.info(
        "Transaction posted",
        entity_id=entity_id,
        transaction_id=str(transaction.id),
        transaction_number=transaction.transaction_number,
        total_amount=str(transaction.total_amount),
    )
    return transaction


async def reverse_transaction(
    db: AsyncSession,
    entity_id: str,
    transaction_id: UUID,
    reason: str | None = None,
    reversal_date: date | None = None,
    reversed_by: str | None = None,
) -> Transaction:
    """
    Reverse a POSTED transaction.

    Creates and immediately posts a counter-transaction whose entries mirror
    the original with debit and credit swapped. Both records reference each
    other through ``reversed_transaction_id`` and the original becomes
    REVERSED. The counter-transaction is numbered ``REV-YYYYMMDD-XXXXXXXX``
    and carries the original number in ``reference``.

    A reversal transaction cannot itself be reversed; re-enter the original
    instead.

    Returns:
        The reversal transaction
    """
    original = await _load_for_update(db, entity_id, transaction_id)
    ensure_transition(original, TransactionStatus.REVERSED)
    if original.reversed_transaction_id is not None:
        logger.warning(
            "Attempt to reverse a reversal transaction",
            transaction_id=str(original.id),
            reverses=str(original.reversed_transaction_id),
        )
        raise ValidationError(
            f"Transaction {original.transaction_number} is a reversal and cannot be reversed",
            transaction_id=original.id,
            reversed_transaction_id=original.reversed_transaction_id,
        )

    account_ids = {entry.account_id for entry in original.entries}
    accounts = await _load_accounts(db, entity_id, account_ids, lock=True)
    # Deactivated accounts can still receive a reversal
    _check_posting_accounts(accounts, account_ids, require_postable=False)

    now = datetime.now(UTC)
    reversal = Transaction(
        id=uuid4(),
        entity_id=entity_id,
        transaction_number=generate_transaction_number(reversal_date or date.today(), prefix="REV"),
        reference=original.transaction_number,
        description=f"Reversal of {original.transaction_number}: {original.description}"[:500],
        transaction_date=reversal_date or date.today(),
        posting_date=date.today(),
        type=original.type,
        source=TransactionSource.SYSTEM,
        category=original.category,
        total_amount=original.total_amount,
        status=TransactionStatus.POSTED,
        reversed_transaction_id=original.id,
        reversal_reason=reason,
        posted_at=now,
        posted_by=reversed_by,
        created_by=reversed_by,
    )
    reversal.entries = [
        JournalEntry(
            line_number=entry.line_number,
            account_id=entry.account_id,
            description=entry.description,
            memo=entry.memo,
            debit_amount=entry.credit_amount,
            credit_amount=entry.debit_amount,
            currency_code=entry.currency_code,
            exchange_rate=entry.exchange_rate,
            base_debit_amount=entry.base_credit_amount,
            base_credit_amount=entry.base_debit_amount,
        )
        for entry in original.entries
    ]
    db.add(reversal)
    try:
        # Insert the counter-transaction before the original points at it
        await db.flush()
    except IntegrityError as exc:
        raise DuplicateCodeError(
            f"Transaction number {reversal.transaction_number} already exists",
            transaction_number=reversal.transaction_number,
        ) from exc

    _apply_entries(reversal.entries, accounts)
    original.status = TransactionStatus.REVERSED
    original.reversed_transaction_id = reversal.id
    original.reversal_reason = reason
    await _flush_balances(db, original.id)

    logger.info(
        "Transaction reversed",
        entity_id=entity_id,
        transaction_id=str(original.id),
        reversal_id=str(reversal.id),
        reason=reason,
    )
    return await get_transaction(db, entity_id, reversal.id)
