"""Balance calculator.

Account balances are expressed in each account's normal-balance sign: a
DEBIT-normal account grows with debits, a CREDIT-normal account with credits.
Aggregations only consider transactions whose effects are in the ledger
(POSTED, and REVERSED originals whose counter-transaction is also posted).
All arithmetic runs on the ledger-currency ``base_*`` amounts.
"""

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ledger.config import settings
from ledger.logger import get_logger, log_timing
from ledger.models import LEDGER_STATUSES, Account, JournalEntry, NormalBalance, Transaction
from ledger.services.errors import NotFoundError
from ledger.utils.money import ZERO, quantize_money, within_tolerance

logger = get_logger(__name__)


def signed_amount(normal_balance: NormalBalance, debit: Decimal, credit: Decimal) -> Decimal:
    """Effect of a debit/credit pair on an account with the given normal balance."""
    if normal_balance == NormalBalance.DEBIT:
        return debit - credit
    return credit - debit


async def get_account_totals(
    db: AsyncSession,
    entity_id: str,
    *,
    account_ids: Sequence[UUID] | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> dict[UUID, tuple[Decimal, Decimal]]:
    """Sum ledger debits and credits per account over an optional date window."""
    query = (
        select(
            JournalEntry.account_id,
            func.coalesce(func.sum(JournalEntry.base_debit_amount), 0).label("total_debit"),
            func.coalesce(func.sum(JournalEntry.base_credit_amount), 0).label("total_credit"),
        )
        .join(Transaction, JournalEntry.transaction_id == Transaction.id)
        .where(Transaction.entity_id == entity_id)
        .where(Transaction.status.in_(LEDGER_STATUSES))
        .group_by(JournalEntry.account_id)
    )
    if account_ids is not None:
        if not account_ids:
            return {}
        query = query.where(JournalEntry.account_id.in_(account_ids))
    if start_date is not None:
        query = query.where(Transaction.transaction_date >= start_date)
    if end_date is not None:
        query = query.where(Transaction.transaction_date <= end_date)

    result = await db.execute(query)
    return {
        row.account_id: (quantize_money(row.total_debit), quantize_money(row.total_credit))
        for row in result.all()
    }


async def get_balances(
    db: AsyncSession,
    entity_id: str,
    accounts: Sequence[Account],
    as_of_date: date | None = None,
    start_date: date | None = None,
) -> dict[UUID, Decimal]:
    """
    Calculate balances for multiple accounts in a single query.

    Returns a mapping of account_id -> balance in normal-balance sign.
    ``start_date`` turns the balance into period activity.
    """
    if not accounts:
        return {}

    totals = await get_account_totals(
        db,
        entity_id,
        account_ids=[account.id for account in accounts],
        start_date=start_date,
        end_date=as_of_date,
    )
    balances: dict[UUID, Decimal] = {}
    for account in accounts:
        debit, credit = totals.get(account.id, (ZERO, ZERO))
        balances[account.id] = quantize_money(signed_amount(account.normal_balance, debit, credit))
    return balances


async def get_balance(
    db: AsyncSession, entity_id: str, account_id: UUID, as_of_date: date | None = None
) -> Decimal:
    """
    Recompute an account balance from ledger entries dated on or before
    ``as_of_date`` (all entries when omitted).

    Without a date the result must equal the stored ``current_balance``.
    """
    result = await db.execute(
        select(Account).where(Account.id == account_id).where(Account.entity_id == entity_id)
    )
    account = result.scalar_one_or_none()
    if not account:
        raise NotFoundError(f"Account {account_id} not found", key=str(account_id))

    balances = await get_balances(db, entity_id, [account], as_of_date=as_of_date)
    return balances[account.id]


async def _load_entity_accounts(db: AsyncSession, entity_id: str) -> list[Account]:
    result = await db.execute(
        select(Account).where(Account.entity_id == entity_id).order_by(Account.code)
    )
    return list(result.scalars().all())


async def get_trial_balance(db: AsyncSession, entity_id: str, as_of_date: date) -> dict[str, Any]:
    """
    Trial balance as of a date.

    Lists every active account plus inactive accounts with ledger activity.
    Each net balance lands in the debit or credit column by its sign.
    """
    accounts = await _load_entity_accounts(db, entity_id)

    with log_timing("trial_balance", logger=logger, entity_id=entity_id, as_of_date=str(as_of_date)) as ctx:
        totals = await get_account_totals(db, entity_id, end_date=as_of_date)

        lines: list[dict[str, Any]] = []
        total_debits = ZERO
        total_credits = ZERO
        total_debit_balance = ZERO
        total_credit_balance = ZERO

        for account in accounts:
            debit, credit = totals.get(account.id, (ZERO, ZERO))
            if not account.is_active and account.id not in totals:
                continue

            net = debit - credit
            debit_balance = net if net > 0 else ZERO
            credit_balance = -net if net < 0 else ZERO

            lines.append(
                {
                    "account_id": account.id,
                    "code": account.code,
                    "name": account.name,
                    "type": account.type,
                    "normal_balance": account.normal_balance,
                    "total_debits": debit,
                    "total_credits": credit,
                    "debit_balance": quantize_money(debit_balance),
                    "credit_balance": quantize_money(credit_balance),
                }
            )
            total_debits += debit
            total_credits += credit
            total_debit_balance += debit_balance
            total_credit_balance += credit_balance

        is_balanced = within_tolerance(
            total_debits, total_credits, settings.balance_tolerance
        ) and within_tolerance(total_debit_balance, total_credit_balance, settings.balance_tolerance)
        ctx["line_count"] = len(lines)

    if not is_balanced:
        logger.error(
            "Trial balance out of balance",
            entity_id=entity_id,
            as_of_date=str(as_of_date),
            total_debits=str(total_debits),
            total_credits=str(total_credits),
        )

    return {
        "as_of_date": as_of_date,
        "currency": settings.default_currency,
        "lines": lines,
        "total_debits": quantize_money(total_debits),
        "total_credits": quantize_money(total_credits),
        "total_debit_balance": quantize_money(total_debit_balance),
        "total_credit_balance": quantize_money(total_credit_balance),
        "is_balanced": is_balanced,
    }


async def verify_balance_consistency(db: AsyncSession, entity_id: str) -> dict[str, Any]:
    """Compare every stored ``current_balance`` with the balance recomputed from entries."""
    accounts = await _load_entity_accounts(db, entity_id)
    computed = await get_balances(db, entity_id, accounts)

    mismatches: list[dict[str, Any]] = []
    for account in accounts:
        stored = quantize_money(account.current_balance)
        recomputed = computed.get(account.id, ZERO)
        if stored != recomputed:
            mismatches.append(
                {
                    "account_id": account.id,
                    "code": account.code,
                    "stored_balance": stored,
                    "computed_balance": recomputed,
                    "difference": stored - recomputed,
                }
            )

    if mismatches:
        logger.error(
            "Stored balances diverge from ledger",
            entity_id=entity_id,
            mismatched_accounts=[item["code"] for item in mismatches],
        )

    return {
        "checked_accounts": len(accounts),
        "mismatches": mismatches,
        "is_consistent": not mismatches,
    }
