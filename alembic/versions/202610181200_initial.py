"""initial ledger schema

Revision ID: 202610181200
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""

from __future__ import annotations

from datetime import datetime

from alembic import op
import sqlalchemy as sa


revision = "202610181200"
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(15, 2)

ACCOUNT_TYPES = [
    ("Checking", False, True),
    ("Savings", False, True),
    ("Cash", False, True),
    ("Credit Card", True, True),
    ("Line of Credit", True, True),
    ("Mortgage", True, False),
    ("Auto Loan", True, False),
    ("Student Loan", True, False),
    ("Medical Debt", True, False),
    ("Investment", False, False),
    ("Other Asset", False, False),
    ("Other Liability", True, False),
]


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    account_types = op.create_table(
        "account_types",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=60), nullable=False, unique=True),
        sa.Column("is_liability", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "is_budget_account", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        *_timestamps(),
    )

    op.create_table(
        "category_groups",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )

    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("category_groups.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("is_hidden", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_system", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("note", sa.Text()),
        *_timestamps(),
        sa.UniqueConstraint(
            "user_id", "group_id", "name", name="uq_category_user_group_name"
        ),
    )
    op.create_index("ix_categories_user", "categories", ["user_id"])

    op.create_table(
        "category_goals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column(
            "goal_type",
            sa.Enum(
                "target_balance",
                "target_balance_by_date",
                "monthly_savings",
                "monthly_spending",
                "debt_payoff",
                name="goaltype",
            ),
            nullable=False,
        ),
        sa.Column("target_amount", MONEY),
        sa.Column("target_date", sa.Date()),
        sa.Column("monthly_amount", MONEY),
        *_timestamps(),
    )

    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column(
            "type_id", sa.Integer(), sa.ForeignKey("account_types.id"), nullable=False
        ),
        sa.Column("on_budget", sa.Boolean()),
        sa.Column("is_closed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "payment_category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="SET NULL"),
        ),
        *_timestamps(),
    )
    op.create_index("ix_accounts_user", "accounts", ["user_id"])

    op.create_table(
        "budgets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "year", "month", name="uq_budget_user_month"),
        sa.CheckConstraint("month >= 1 AND month <= 12", name="ck_budget_month_range"),
    )

    op.create_table(
        "category_allocations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "budget_id",
            sa.Integer(),
            sa.ForeignKey("budgets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("budgeted_amount", MONEY, nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint(
            "budget_id", "category_id", name="uq_allocation_budget_category"
        ),
    )
    op.create_index(
        "ix_allocations_category", "category_allocations", ["category_id"]
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "account_id",
            sa.Integer(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="SET NULL"),
        ),
        sa.Column(
            "parent_transaction_id",
            sa.Integer(),
            sa.ForeignKey("transactions.id", ondelete="CASCADE"),
        ),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column(
            "type",
            sa.Enum("income", "expense", "transfer", name="transactiontype"),
            nullable=False,
        ),
        sa.Column(
            "cleared",
            sa.Enum("uncleared", "cleared", "reconciled", name="clearedstate"),
            nullable=False,
            server_default="uncleared",
        ),
        sa.Column("is_split", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("memo", sa.Text()),
        *_timestamps(),
    )
    op.create_index(
        "ix_transactions_account_date", "transactions", ["account_id", "date"]
    )
    op.create_index(
        "ix_transactions_category_date", "transactions", ["category_id", "date"]
    )
    op.create_index(
        "ix_transactions_parent", "transactions", ["parent_transaction_id"]
    )

    now = datetime.utcnow()
    op.bulk_insert(
        account_types,
        [
            {
                "name": name,
                "is_liability": is_liability,
                "is_budget_account": is_budget_account,
                "created_at": now,
                "updated_at": now,
            }
            for name, is_liability, is_budget_account in ACCOUNT_TYPES
        ],
    )


def downgrade() -> None:
    op.drop_index("ix_transactions_parent", table_name="transactions")
    op.drop_index("ix_transactions_category_date", table_name="transactions")
    op.drop_index("ix_transactions_account_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_allocations_category", table_name="category_allocations")
    op.drop_table("category_allocations")
    op.drop_table("budgets")
    op.drop_index("ix_accounts_user", table_name="accounts")
    op.drop_table("accounts")
    op.drop_table("category_goals")
    op.drop_index("ix_categories_user", table_name="categories")
    op.drop_table("categories")
    op.drop_table("category_groups")
    op.drop_table("account_types")
