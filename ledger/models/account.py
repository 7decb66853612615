"""Account model for the chart of accounts."""

from __future__ import annotations

import enum
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
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

from ledger.database import Base
from ledger.models.base import EntityOwnedMixin, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from ledger.models.transaction import JournalEntry


class AccountType(str, enum.Enum):
    """Account type classification."""

    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"


class NormalBalance(str, enum.Enum):
    """Side of the ledger that increases an account."""

    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


NORMAL_BALANCE_BY_TYPE: dict[AccountType, NormalBalance] = {
    AccountType.ASSET: NormalBalance.DEBIT,
    AccountType.EXPENSE: NormalBalance.DEBIT,
    AccountType.LIABILITY: NormalBalance.CREDIT,
    AccountType.EQUITY: NormalBalance.CREDIT,
    AccountType.REVENUE: NormalBalance.CREDIT,
}


class Account(Base, UUIDMixin, EntityOwnedMixin, TimestampMixin):
    """
    Account represents a ledger account in the chart of accounts.

    Accounts form a tree through ``parent_id``; ``path`` holds the ancestor
    codes joined by the configured separator and ``level`` the depth (roots
    are level 0). ``current_balance`` is maintained by posting and is stored
    in the account's normal-balance sign convention.
    """

    __tablename__ = "accounts"
    __table_args__ = (UniqueConstraint("entity_id", "code", name="uq_accounts_entity_code"),)

    code: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[AccountType] = mapped_column(
        Enum(
            AccountType,
            name="account_type_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
        index=True,
    )
    subtype: Mapped[str | None] = mapped_column(String(100), nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    parent_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("accounts.id"), nullable=True, index=True
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    path: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_system: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    allow_transactions: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    normal_balance: Mapped[NormalBalance] = mapped_column(
        Enum(
            NormalBalance,
            name="normal_balance_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
    )
    report_category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    report_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_balance: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, default=Decimal("0.00")
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Every flush that touches the row bumps and checks ``version``
    __mapper_args__ = {"version_id_col": version}

    # Relationships
    journal_entries: Mapped[list[JournalEntry]] = relationship(
        "JournalEntry", back_populates="account"
    )
    parent: Mapped[Account | None] = relationship(
        "Account", remote_side="Account.id", back_populates="children"
    )
    children: Mapped[list[Account]] = relationship("Account", back_populates="parent")

    def __repr__(self) -> str:
        return f"<Account {self.code} {self.name} ({self.type.value})>"
