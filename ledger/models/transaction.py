"""Transaction and journal entry models for double-entry bookkeeping."""

from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger.config import settings
from ledger.database import Base
from ledger.models.base import EntityOwnedMixin, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from ledger.models.account import Account


class TransactionStatus(str, enum.Enum):
    """Lifecycle status of a transaction."""

    DRAFT = "DRAFT"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    POSTED = "POSTED"
    CANCELLED = "CANCELLED"
    REVERSED = "REVERSED"


# Statuses whose entries have been applied to account balances
LEDGER_STATUSES: tuple[TransactionStatus, ...] = (
    TransactionStatus.POSTED,
    TransactionStatus.REVERSED,
)


class TransactionType(str, enum.Enum):
    """Business classification of a transaction."""

    JOURNAL = "JOURNAL"
    PAYMENT = "PAYMENT"
    RECEIPT = "RECEIPT"
    ADJUSTMENT = "ADJUSTMENT"
    TRANSFER = "TRANSFER"
    ACCRUAL = "ACCRUAL"
    DEPRECIATION = "DEPRECIATION"


class TransactionSource(str, enum.Enum):
    """Origin of a transaction."""

    MANUAL = "MANUAL"
    IMPORT = "IMPORT"
    API = "API"
    SYSTEM = "SYSTEM"


class Transaction(Base, UUIDMixin, EntityOwnedMixin, TimestampMixin):
    """
    Transaction header grouping a balanced set of journal entries.

    Entries are only applied to account balances when the transaction is
    posted. A posted transaction is never edited; it is undone by a reversal
    transaction, and both records point at each other through
    ``reversed_transaction_id``.
    """

    __tablename__ = "transactions"
    __table_args__ = (
        UniqueConstraint(
            "entity_id", "transaction_number", name="uq_transactions_entity_number"
        ),
        CheckConstraint("total_amount >= 0", name="non_negative_total"),
    )

    transaction_number: Mapped[str] = mapped_column(String(50), nullable=False)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    posting_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    type: Mapped[TransactionType] = mapped_column(
        Enum(
            TransactionType,
            name="transaction_type_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
        default=TransactionType.JOURNAL,
    )
    source: Mapped[TransactionSource] = mapped_column(
        Enum(
            TransactionSource,
            name="transaction_source_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
        default=TransactionSource.MANUAL,
    )
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, default=Decimal("0.00")
    )
    status: Mapped[TransactionStatus] = mapped_column(
        Enum(
            TransactionStatus,
            name="transaction_status_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
        default=TransactionStatus.DRAFT,
        index=True,
    )
    reversed_transaction_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("transactions.id"), nullable=True
    )
    reversal_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    posted_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    posted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)

    entries: Mapped[list[JournalEntry]] = relationship(
        "JournalEntry",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="JournalEntry.line_number",
    )

    def __repr__(self) -> str:
        return f"<Transaction {self.transaction_number} ({self.status.value})>"


class JournalEntry(Base, UUIDMixin, TimestampMixin):
    """
    Single debit or credit line of a transaction.

    Exactly one of ``debit_amount`` / ``credit_amount`` is positive, the other
    is zero.
    """

    __tablename__ = "journal_entries"
    __table_args__ = (
        CheckConstraint(
            "debit_amount >= 0 AND credit_amount >= 0", name="non_negative_amounts"
        ),
        CheckConstraint(
            "(debit_amount > 0 AND credit_amount = 0) OR (debit_amount = 0 AND credit_amount > 0)",
            name="single_sided_entry",
        ),
    )

    transaction_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    account_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("accounts.id"), nullable=False, index=True
    )
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    memo: Mapped[str | None] = mapped_column(Text, nullable=True)
    debit_amount: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, default=Decimal("0.00")
    )
    credit_amount: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, default=Decimal("0.00")
    )
    currency_code: Mapped[str] = mapped_column(
        String(3), nullable=False, default=lambda: settings.default_currency
    )
    exchange_rate: Mapped[Decimal] = mapped_column(
        Numeric(18, 6), nullable=False, default=Decimal("1")
    )
    base_debit_amount: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, default=Decimal("0.00")
    )
    base_credit_amount: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, default=Decimal("0.00")
    )

    transaction: Mapped[Transaction] = relationship("Transaction", back_populates="entries")
    account: Mapped[Account] = relationship("Account", back_populates="journal_entries")
