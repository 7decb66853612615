"""Statement generator: balance sheet, income statement, cash flow and CSV export."""

from __future__ import annotations

import csv
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from io import StringIO
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ledger.config import Settings, settings
from ledger.logger import async_log_timing, get_logger
from ledger.models import LEDGER_STATUSES, Account, AccountType, JournalEntry, Transaction
from ledger.services.balances import get_balances, get_trial_balance
from ledger.services.errors import AccountingEquationViolation, ReportError
from ledger.utils.money import ZERO, quantize_money

logger = get_logger(__name__)

RETAINED_EARNINGS_LABEL = "Retained Earnings (current)"


@dataclass(frozen=True)
class CashFlowClassification:
    """
    Maps account categories to cash-flow buckets.

    ASSET accounts whose ``category`` is in ``cash_categories`` are cash.
    Other accounts land in investing or financing by category and default to
    operating.
    """

    cash_categories: frozenset[str]
    investing_categories: frozenset[str] = field(default_factory=frozenset)
    financing_categories: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> CashFlowClassification:
        config = config or settings
        return cls(
            cash_categories=frozenset(config.cash_flow_cash_categories),
            investing_categories=frozenset(config.cash_flow_investing_categories),
            financing_categories=frozenset(config.cash_flow_financing_categories),
        )

    def is_cash(self, account: Account) -> bool:
        return account.type == AccountType.ASSET and account.category in self.cash_categories

    def bucket(self, category: str | None) -> str:
        if category in self.investing_categories:
            return "investing"
        if category in self.financing_categories:
            return "financing"
        return "operating"


def _sort_key(account: Account) -> tuple[int, str]:
    return (account.report_order, account.code)


def _build_account_lines(
    accounts: Sequence[Account], balances: dict[UUID, Decimal], filter_type: AccountType
) -> list[dict[str, Any]]:
    items = sorted((account for account in accounts if account.type == filter_type), key=_sort_key)
    return [
        {
            "account_id": account.id,
            "code": account.code,
            "name": account.name,
            "type": account.type,
            "category": account.category,
            "parent_id": account.parent_id,
            "level": account.level,
            "amount": quantize_money(balances.get(account.id, ZERO)),
        }
        for account in items
    ]


def _sum_lines(lines: Iterable[dict[str, Any]]) -> Decimal:
    return quantize_money(sum((line["amount"] for line in lines), ZERO))


async def _load_accounts(
    db: AsyncSession, entity_id: str, account_types: tuple[AccountType, ...]
) -> list[Account]:
    result = await db.execute(
        select(Account)
        .where(Account.entity_id == entity_id)
        .where(Account.type.in_(account_types))
        .order_by(Account.code)
    )
    return list(result.scalars().all())


def _reportable(accounts: Sequence[Account], balances: dict[UUID, Decimal]) -> list[Account]:
    """Active accounts, plus inactive ones still carrying an amount."""
    return [account for account in accounts if account.is_active or balances.get(account.id, ZERO) != ZERO]


async def generate_balance_sheet(db: AsyncSession, entity_id: str, as_of_date: date) -> dict[str, Any]:
    """
    Generate balance sheet as of a date.

    Revenue and expense balances are not closed into equity by entries, so
    their cumulative difference is shown as a computed retained-earnings line
    inside equity.

    Raises:
        AccountingEquationViolation: assets differ from liabilities + equity
    """
    async with async_log_timing(
        "balance_sheet", logger=logger, entity_id=entity_id, as_of_date=str(as_of_date)
    ):
        accounts = await _load_accounts(db, entity_id, tuple(AccountType))
        balances = await get_balances(db, entity_id, accounts, as_of_date=as_of_date)
        reportable = _reportable(accounts, balances)

        assets = _build_account_lines(reportable, balances, AccountType.ASSET)
        liabilities = _build_account_lines(reportable, balances, AccountType.LIABILITY)
        equity = _build_account_lines(reportable, balances, AccountType.EQUITY)

        total_revenue = sum(
            (balances[a.id] for a in accounts if a.type == AccountType.REVENUE), ZERO
        )
        total_expense = sum(
            (balances[a.id] for a in accounts if a.type == AccountType.EXPENSE), ZERO
        )
        retained_earnings = quantize_money(total_revenue - total_expense)
        equity.append(
            {
                "account_id": None,
                "code": None,
                "name": RETAINED_EARNINGS_LABEL,
                "type": AccountType.EQUITY,
                "category": None,
                "parent_id": None,
                "level": 0,
                "amount": retained_earnings,
            }
        )

        total_assets = _sum_lines(assets)
        total_liabilities = _sum_lines(liabilities)
        total_equity = _sum_lines(equity)
        total_liabilities_and_equity = quantize_money(total_liabilities + total_equity)

    if abs(total_assets - total_liabilities_and_equity) >= settings.balance_tolerance:
        logger.error(
            "Accounting equation violated",
            entity_id=entity_id,
            as_of_date=str(as_of_date),
            total_assets=str(total_assets),
            total_liabilities_and_equity=str(total_liabilities_and_equity),
        )
        raise AccountingEquationViolation(total_assets, total_liabilities_and_equity)

    return {
        "as_of_date": as_of_date,
        "currency": settings.default_currency,
        "assets": assets,
        "liabilities": liabilities,
        "equity": equity,
        "retained_earnings": retained_earnings,
        "total_assets": total_assets,
        "total_liabilities": total_liabilities,
        "total_equity": total_equity,
        "total_liabilities_and_equity": total_liabilities_and_equity,
        "is_balanced": True,
    }


def _check_period(start_date: date, end_date: date) -> None:
    if start_date > end_date:
        raise ReportError(
            "start_date must be before or equal to end_date",
            start_date=start_date.isoformat(),
            end_date=end_date.isoformat(),
        )


async def generate_income_statement(
    db: AsyncSession, entity_id: str, start_date: date, end_date: date
) -> dict[str, Any]:
    """Revenue and expense activity within the period (inclusive)."""
    _check_period(start_date, end_date)

    async with async_log_timing(
        "income_statement",
        logger=logger,
        entity_id=entity_id,
        start_date=str(start_date),
        end_date=str(end_date),
    ):
        accounts = await _load_accounts(db, entity_id, (AccountType.REVENUE, AccountType.EXPENSE))
        activity = await get_balances(
            db, entity_id, accounts, as_of_date=end_date, start_date=start_date
        )
        reportable = _reportable(accounts, activity)

        revenues = _build_account_lines(reportable, activity, AccountType.REVENUE)
        expenses = _build_account_lines(reportable, activity, AccountType.EXPENSE)
        total_revenues = _sum_lines(revenues)
        total_expenses = _sum_lines(expenses)

    return {
        "start_date": start_date,
        "end_date": end_date,
        "currency": settings.default_currency,
        "revenues": revenues,
        "expenses": expenses,
        "total_revenues": total_revenues,
        "total_expenses": total_expenses,
        "net_income": quantize_money(total_revenues - total_expenses),
    }


async def generate_cash_flow(
    db: AsyncSession,
    entity_id: str,
    start_date: date,
    end_date: date,
    classification: CashFlowClassification | None = None,
) -> dict[str, Any]:
    """
    Direct-method cash flow statement.

    For every ledger transaction in the period that touches a cash account,
    each non-cash entry contributes ``credit - debit`` to the bucket of its
    account's category. The buckets therefore sum to the change in cash.
    """
    _check_period(start_date, end_date)
    classification = classification or CashFlowClassification.from_settings()
    if not classification.cash_categories:
        raise ReportError(
            "Cash flow classification is not configured: no cash account categories"
        )

    async with async_log_timing(
        "cash_flow",
        logger=logger,
        entity_id=entity_id,
        start_date=str(start_date),
        end_date=str(end_date),
    ):
        accounts = await _load_accounts(db, entity_id, tuple(AccountType))
        by_id = {account.id: account for account in accounts}
        cash_accounts = [account for account in accounts if classification.is_cash(account)]
        cash_ids = [account.id for account in cash_accounts]

        # Nothing can be dated before date.min
        beginning: dict[UUID, Decimal] = {}
        if start_date > date.min:
            beginning = await get_balances(
                db, entity_id, cash_accounts, as_of_date=start_date - timedelta(days=1)
            )
        ending = await get_balances(db, entity_id, cash_accounts, as_of_date=end_date)
        beginning_cash = _sum_values(beginning.values())
        ending_cash = _sum_values(ending.values())

        buckets: dict[str, list[dict[str, Any]]] = {"operating": [], "investing": [], "financing": []}
        if cash_ids:
            cash_transactions = (
                select(JournalEntry.transaction_id)
                .where(JournalEntry.account_id.in_(cash_ids))
            )
            result = await db.execute(
                select(
                    JournalEntry.account_id,
                    func.coalesce(func.sum(JournalEntry.base_credit_amount), 0).label("credits"),
                    func.coalesce(func.sum(JournalEntry.base_debit_amount), 0).label("debits"),
                )
                .join(Transaction, JournalEntry.transaction_id == Transaction.id)
                .where(Transaction.entity_id == entity_id)
                .where(Transaction.status.in_(LEDGER_STATUSES))
                .where(Transaction.transaction_date >= start_date)
                .where(Transaction.transaction_date <= end_date)
                .where(Transaction.id.in_(cash_transactions))
                .where(JournalEntry.account_id.not_in(cash_ids))
                .group_by(JournalEntry.account_id)
            )
            for row in result.all():
                amount = quantize_money(row.credits) - quantize_money(row.debits)
                if amount == ZERO:
                    continue
                account = by_id[row.account_id]
                buckets[classification.bucket(account.category)].append(
                    {
                        "account_id": account.id,
                        "code": account.code,
                        "name": account.name,
                        "category": account.category,
                        "amount": amount,
                    }
                )

        for items in buckets.values():
            items.sort(key=lambda item: item["code"])

        total_operating = _sum_lines(buckets["operating"])
        total_investing = _sum_lines(buckets["investing"])
        total_financing = _sum_lines(buckets["financing"])
        net_cash_flow = quantize_money(total_operating + total_investing + total_financing)

    if net_cash_flow != ending_cash - beginning_cash:
        logger.error(
            "Cash flow buckets do not reconcile with cash balances",
            entity_id=entity_id,
            net_cash_flow=str(net_cash_flow),
            cash_change=str(ending_cash - beginning_cash),
        )

    return {
        "start_date": start_date,
        "end_date": end_date,
        "currency": settings.default_currency,
        "operating": buckets["operating"],
        "investing": buckets["investing"],
        "financing": buckets["financing"],
        "total_operating": total_operating,
        "total_investing": total_investing,
        "total_financing": total_financing,
        "beginning_cash": beginning_cash,
        "ending_cash": ending_cash,
        "net_cash_flow": net_cash_flow,
    }


def _sum_values(values: Iterable[Decimal]) -> Decimal:
    return quantize_money(sum(values, ZERO))


# =============================================================================
# CSV export
# =============================================================================


def render_balance_sheet_csv(report: dict[str, Any]) -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(["section", "code", "account", "amount", "currency"])
    for section, lines in (
        ("Assets", report["assets"]),
        ("Liabilities", report["liabilities"]),
        ("Equity", report["equity"]),
    ):
        for line in lines:
            writer.writerow([section, line["code"] or "", line["name"], line["amount"], report["currency"]])
    writer.writerow(["Total Assets", "", "", report["total_assets"], report["currency"]])
    writer.writerow(
        [
            "Total Liabilities and Equity",
            "",
            "",
            report["total_liabilities_and_equity"],
            report["currency"],
        ]
    )
    return output.getvalue()


def render_income_statement_csv(report: dict[str, Any]) -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(["section", "code", "account", "amount", "currency"])
    for section, lines in (("Revenue", report["revenues"]), ("Expenses", report["expenses"])):
        for line in lines:
            writer.writerow([section, line["code"], line["name"], line["amount"], report["currency"]])
    writer.writerow(["Net Income", "", "", report["net_income"], report["currency"]])
    return output.getvalue()


def render_trial_balance_csv(report: dict[str, Any]) -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(["code", "account", "type", "debit", "credit"])
    for line in report["lines"]:
        writer.writerow(
            [line["code"], line["name"], line["type"].value, line["debit_balance"], line["credit_balance"]]
        )
    writer.writerow(["", "Total", "", report["total_debit_balance"], report["total_credit_balance"]])
    return output.getvalue()


async def export_report_csv(
    db: AsyncSession,
    entity_id: str,
    report_type: str,
    *,
    as_of_date: date | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> str:
    """Render a report as CSV text."""
    if report_type == "balance-sheet":
        report = await generate_balance_sheet(db, entity_id, as_of_date or date.today())
        return render_balance_sheet_csv(report)
    if report_type == "trial-balance":
        report = await get_trial_balance(db, entity_id, as_of_date or date.today())
        return render_trial_balance_csv(report)
    if report_type == "income-statement":
        if start_date is None or end_date is None:
            raise ReportError("start_date and end_date are required for income statement export")
        report = await generate_income_statement(db, entity_id, start_date, end_date)
        return render_income_statement_csv(report)
    raise ReportError(f"Unsupported report type: {report_type}")
