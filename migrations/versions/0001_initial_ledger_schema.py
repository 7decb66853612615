"""Initial schema for the general ledger."""

from alembic import op
import sqlalchemy as sa

revision = "0001_initial_ledger_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    account_type_enum = sa.Enum(
        "ASSET",
        "LIABILITY",
        "EQUITY",
        "REVENUE",
        "EXPENSE",
        name="account_type_enum",
    )
    normal_balance_enum = sa.Enum("DEBIT", "CREDIT", name="normal_balance_enum")
    transaction_type_enum = sa.Enum(
        "JOURNAL",
        "PAYMENT",
        "RECEIPT",
        "ADJUSTMENT",
        "TRANSFER",
        "ACCRUAL",
        "DEPRECIATION",
        name="transaction_type_enum",
    )
    transaction_source_enum = sa.Enum(
        "MANUAL", "IMPORT", "API", "SYSTEM", name="transaction_source_enum"
    )
    transaction_status_enum = sa.Enum(
        "DRAFT",
        "PENDING",
        "APPROVED",
        "POSTED",
        "CANCELLED",
        "REVERSED",
        name="transaction_status_enum",
    )

    op.create_table(
        "accounts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", account_type_enum, nullable=False),
        sa.Column("subtype", sa.String(length=100), nullable=True),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("parent_id", sa.Uuid(), nullable=True),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("path", sa.String(length=500), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_system", sa.Boolean(), nullable=False),
        sa.Column("allow_transactions", sa.Boolean(), nullable=False),
        sa.Column("normal_balance", normal_balance_enum, nullable=False),
        sa.Column("report_category", sa.String(length=100), nullable=True),
        sa.Column("report_order", sa.Integer(), nullable=False),
        sa.Column("current_balance", sa.Numeric(18, 2), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_by", sa.String(length=64), nullable=True),
        sa.Column("updated_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["parent_id"], ["accounts.id"]),
        sa.UniqueConstraint("entity_id", "code", name="uq_accounts_entity_code"),
    )
    op.create_index("ix_accounts_entity_id", "accounts", ["entity_id"])
    op.create_index("ix_accounts_type", "accounts", ["type"])
    op.create_index("ix_accounts_category", "accounts", ["category"])
    op.create_index("ix_accounts_parent_id", "accounts", ["parent_id"])
    op.create_index("ix_accounts_path", "accounts", ["path"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("transaction_number", sa.String(length=50), nullable=False),
        sa.Column("reference", sa.String(length=100), nullable=True),
        sa.Column("description", sa.String(length=500), nullable=False),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("posting_date", sa.Date(), nullable=True),
        sa.Column("type", transaction_type_enum, nullable=False),
        sa.Column("source", transaction_source_enum, nullable=False),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("total_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("status", transaction_status_enum, nullable=False),
        sa.Column("reversed_transaction_id", sa.Uuid(), nullable=True),
        sa.Column("reversal_reason", sa.Text(), nullable=True),
        sa.Column("approved_by", sa.String(length=64), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("posted_by", sa.String(length=64), nullable=True),
        sa.Column("posted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["reversed_transaction_id"], ["transactions.id"]),
        sa.UniqueConstraint(
            "entity_id", "transaction_number", name="uq_transactions_entity_number"
        ),
        sa.CheckConstraint("total_amount >= 0", name="non_negative_total"),
    )
    op.create_index("ix_transactions_entity_id", "transactions", ["entity_id"])
    op.create_index("ix_transactions_transaction_date", "transactions", ["transaction_date"])
    op.create_index("ix_transactions_status", "transactions", ["status"])

    op.create_table(
        "journal_entries",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("transaction_id", sa.Uuid(), nullable=False),
        sa.Column("line_number", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.Uuid(), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("memo", sa.Text(), nullable=True),
        sa.Column("debit_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("credit_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("currency_code", sa.String(length=3), nullable=False),
        sa.Column("exchange_rate", sa.Numeric(18, 6), nullable=False),
        sa.Column("base_debit_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("base_credit_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["transaction_id"], ["transactions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"]),
        sa.CheckConstraint(
            "debit_amount >= 0 AND credit_amount >= 0", name="non_negative_amounts"
        ),
        sa.CheckConstraint(
            "(debit_amount > 0 AND credit_amount = 0) OR (debit_amount = 0 AND credit_amount > 0)",
            name="single_sided_entry",
        ),
    )
    op.create_index("ix_journal_entries_transaction_id", "journal_entries", ["transaction_id"])
    op.create_index("ix_journal_entries_account_id", "journal_entries", ["account_id"])


def downgrade() -> None:
    op.drop_table("journal_entries")
    op.drop_table("transactions")
    op.drop_table("accounts")

    if op.get_bind().dialect.name == "postgresql":
        for enum_name in (
            "transaction_status_enum",
            "transaction_source_enum",
            "transaction_type_enum",
            "normal_balance_enum",
            "account_type_enum",
        ):
            op.execute(f"DROP TYPE IF EXISTS {enum_name}")
