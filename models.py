from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base

MONEY = Numeric(15, 2)


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"
    transfer = "transfer"


class ClearedState(str, Enum):
    uncleared = "uncleared"
    cleared = "cleared"
    reconciled = "reconciled"


class GoalType(str, Enum):
    target_balance = "target_balance"
    target_balance_by_date = "target_balance_by_date"
    monthly_savings = "monthly_savings"
    monthly_spending = "monthly_spending"
    debt_payoff = "debt_payoff"


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class AccountType(Base, TimestampMixin):
    __tablename__ = "account_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(60), nullable=False, unique=True)
    is_liability: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_budget_account: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )


class Account(Base, TimestampMixin):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type_id: Mapped[int] = mapped_column(
        ForeignKey("account_types.id"), nullable=False
    )
    # NULL inherits from the account type
    on_budget: Mapped[Optional[bool]] = mapped_column(Boolean)
    is_closed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    payment_category_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL")
    )

    type: Mapped["AccountType"] = relationship("AccountType")
    payment_category: Mapped[Optional["Category"]] = relationship("Category")
    transactions: Mapped[list["Transaction"]] = relationship(
        "Transaction", back_populates="account"
    )

    __table_args__ = (Index("ix_accounts_user", "user_id"),)

    @property
    def is_liability(self) -> bool:
        return bool(self.type and self.type.is_liability)


class CategoryGroup(Base, TimestampMixin):
    __tablename__ = "category_groups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    categories: Mapped[list["Category"]] = relationship(
        "Category", back_populates="group"
    )


class Category(Base, TimestampMixin):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    group_id: Mapped[int] = mapped_column(
        ForeignKey("category_groups.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_hidden: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text)

    group: Mapped["CategoryGroup"] = relationship(
        "CategoryGroup", back_populates="categories"
    )
    goal: Mapped[Optional["CategoryGoal"]] = relationship(
        "CategoryGoal", back_populates="category", uselist=False
    )

    __table_args__ = (
        UniqueConstraint("user_id", "group_id", "name", name="uq_category_user_group_name"),
        Index("ix_categories_user", "user_id"),
    )


class CategoryGoal(Base, TimestampMixin):
    __tablename__ = "category_goals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    category_id: Mapped[int] = mapped_column(
        ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    goal_type: Mapped[GoalType] = mapped_column(SAEnum(GoalType), nullable=False)
    target_amount: Mapped[Optional[Decimal]] = mapped_column(MONEY)
    target_date: Mapped[Optional[date]] = mapped_column(Date)
    monthly_amount: Mapped[Optional[Decimal]] = mapped_column(MONEY)

    category: Mapped["Category"] = relationship("Category", back_populates="goal")


class Budget(Base, TimestampMixin):
    __tablename__ = "budgets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)

    allocations: Mapped[list["CategoryAllocation"]] = relationship(
        "CategoryAllocation", back_populates="budget", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("user_id", "year", "month", name="uq_budget_user_month"),
        CheckConstraint("month >= 1 AND month <= 12", name="ck_budget_month_range"),
    )


class CategoryAllocation(Base, TimestampMixin):
    __tablename__ = "category_allocations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    budget_id: Mapped[int] = mapped_column(
        ForeignKey("budgets.id", ondelete="CASCADE"), nullable=False
    )
    category_id: Mapped[int] = mapped_column(
        ForeignKey("categories.id", ondelete="CASCADE"), nullable=False
    )
    budgeted_amount: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )

    budget: Mapped["Budget"] = relationship("Budget", back_populates="allocations")
    category: Mapped["Category"] = relationship("Category")

    __table_args__ = (
        UniqueConstraint("budget_id", "category_id", name="uq_allocation_budget_category"),
        Index("ix_allocations_category", "category_id"),
    )


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    category_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL")
    )
    parent_transaction_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("transactions.id", ondelete="CASCADE")
    )
    # income positive, expense negative, transfer either sign
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    cleared: Mapped[ClearedState] = mapped_column(
        SAEnum(ClearedState), default=ClearedState.uncleared, nullable=False
    )
    is_split: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    memo: Mapped[Optional[str]] = mapped_column(Text)

    account: Mapped["Account"] = relationship("Account", back_populates="transactions")
    category: Mapped[Optional["Category"]] = relationship("Category")

    __table_args__ = (
        Index("ix_transactions_account_date", "account_id", "date"),
        Index("ix_transactions_category_date", "category_id", "date"),
        Index("ix_transactions_parent", "parent_transaction_id"),
    )
