from __future__ import annotations

import logging
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Callable, Optional, TypeVar

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from config import get_settings
from database import read_session
from models import (
    Account,
    AccountType,
    Budget,
    Category,
    CategoryAllocation,
    CategoryGoal,
    CategoryGroup,
    GoalType,
    Transaction,
    TransactionType,
)
from money import to_decimal
from periods import LOOKBACK_MONTHS, MonthRef, lookback_window

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BudgetNotFound(ValueError):
    pass


class LedgerReadError(RuntimeError):
    pass


@dataclass(frozen=True)
class AccountRow:
    id: int
    on_budget: bool
    is_liability: bool
    payment_category_id: Optional[int]


@dataclass(frozen=True)
class BudgetRow:
    id: int
    year: int
    month: int

    @property
    def ref(self) -> MonthRef:
        return MonthRef(self.year, self.month)


@dataclass(frozen=True)
class GoalRow:
    id: int
    goal_type: GoalType
    target_amount: Optional[Decimal]
    target_date: Optional[date]
    monthly_amount: Optional[Decimal]


@dataclass(frozen=True)
class CurrentAllocationRow:
    budget_id: int
    category_id: int
    budgeted_amount: Decimal
    name: str
    is_system: bool
    group_name: str
    group_sort_order: int
    goal: Optional[GoalRow]


@dataclass(frozen=True)
class AllocationRow:
    budget_id: int
    category_id: int
    budgeted_amount: Decimal


@dataclass(frozen=True)
class TransactionRow:
    account_id: int
    category_id: Optional[int]
    amount: Decimal
    date: date
    type: TransactionType
    parent_transaction_id: Optional[int]
    is_split: bool


@dataclass
class LedgerRows:
    user_id: int
    target: MonthRef
    window: list[MonthRef]
    budget: Optional[BudgetRow]
    accounts: list[AccountRow] = field(default_factory=list)
    budgets: list[BudgetRow] = field(default_factory=list)
    current_allocations: list[CurrentAllocationRow] = field(default_factory=list)
    allocations: list[AllocationRow] = field(default_factory=list)
    transactions: list[TransactionRow] = field(default_factory=list)
    income_amounts: list[Decimal] = field(default_factory=list)


class BudgetDataLoader:
    """
    Fetches everything a budget summary needs in two rounds of concurrent reads.

    Round one loads the user's accounts and budgets. Round two depends on the
    account and budget ids from round one and loads the current month's
    allocations, every allocation, the transaction window and all-time income.
    Each read runs in its own session on a worker thread.
    """

    def __init__(
        self, bind: Engine, user_id: int, *, max_workers: Optional[int] = None
    ) -> None:
        self.bind = bind
        self.user_id = user_id
        self.max_workers = max_workers or get_settings().read_workers

    def load(
        self,
        year: int,
        month: int,
        *,
        require_budget: bool = True,
        lookback_months: int = LOOKBACK_MONTHS,
    ) -> LedgerRows:
        target = MonthRef(year, month)
        window = lookback_window(year, month, lookback_months)
        range_start = window[0].start
        range_end = target.end

        first = self._run_concurrently(
            {"accounts": self._read_accounts, "budgets": self._read_budgets}
        )
        accounts: list[AccountRow] = first["accounts"]
        budgets: list[BudgetRow] = first["budgets"]

        current = next((b for b in budgets if b.ref == target), None)
        if current is None and require_budget:
            raise BudgetNotFound("Budget not found for specified month")

        account_ids = [a.id for a in accounts]
        budget_account_ids = [a.id for a in accounts if a.on_budget]
        budget_ids = [b.id for b in budgets]

        second = self._run_concurrently(
            {
                "current_allocations": lambda s: self._read_current_allocations(
                    s, current.id if current else None
                ),
                "allocations": lambda s: self._read_allocations(s, budget_ids),
                "transactions": lambda s: self._read_transactions(
                    s, account_ids, range_start, range_end
                ),
                "income": lambda s: self._read_income(
                    s, budget_account_ids, range_end
                ),
            }
        )

        rows = LedgerRows(
            user_id=self.user_id,
            target=target,
            window=window,
            budget=current,
            accounts=accounts,
            budgets=budgets,
            current_allocations=second["current_allocations"],
            allocations=second["allocations"],
            transactions=second["transactions"],
            income_amounts=second["income"],
        )
        logger.info(
            f"budget_load: user_id={self.user_id} target={target.year}-{target.month:02d} "
            f"accounts={len(rows.accounts)} budgets={len(rows.budgets)} "
            f"allocations={len(rows.allocations)} transactions={len(rows.transactions)} "
            f"income_rows={len(rows.income_amounts)}"
        )
        return rows

    def _run_concurrently(
        self, reads: dict[str, Callable[[Session], T]]
    ) -> dict[str, T]:
        pool = ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(reads)),
            thread_name_prefix="budget-read",
        )
        try:
            futures: dict[Future, str] = {
                pool.submit(self._in_session, read): name
                for name, read in reads.items()
            }
            done, _pending = wait(futures, return_when=FIRST_EXCEPTION)
            failed = [f for f in done if f.exception() is not None]
            if failed:
                pool.shutdown(wait=False, cancel_futures=True)
                self._raise_read_error(futures[failed[0]], failed[0])
            return {name: future.result() for future, name in futures.items()}
        finally:
            pool.shutdown(wait=False)

    def _raise_read_error(self, name: str, future: Future) -> None:
        try:
            future.result()
        except Exception as exc:
            logger.exception(f"budget_load_failed: user_id={self.user_id} read={name}")
            raise LedgerReadError(f"Failed to read {name}") from exc

    def _in_session(self, read: Callable[[Session], T]) -> T:
        with read_session(self.bind) as session:
            return read(session)

    def _read_accounts(self, session: Session) -> list[AccountRow]:
        stmt = (
            select(
                Account.id,
                Account.on_budget,
                Account.payment_category_id,
                AccountType.is_budget_account,
                AccountType.is_liability,
            )
            .join(AccountType, Account.type_id == AccountType.id)
            .where(Account.user_id == self.user_id)
            .order_by(Account.id)
        )
        accounts = []
        for row in session.execute(stmt):
            if row.on_budget is not None:
                on_budget = bool(row.on_budget)
            elif row.is_budget_account is not None:
                on_budget = bool(row.is_budget_account)
            else:
                on_budget = True
            accounts.append(
                AccountRow(
                    id=row.id,
                    on_budget=on_budget,
                    is_liability=bool(row.is_liability),
                    payment_category_id=row.payment_category_id,
                )
            )
        return accounts

    def _read_budgets(self, session: Session) -> list[BudgetRow]:
        stmt = (
            select(Budget.id, Budget.year, Budget.month)
            .where(Budget.user_id == self.user_id)
            .order_by(Budget.year, Budget.month)
        )
        return [
            BudgetRow(id=row.id, year=row.year, month=row.month)
            for row in session.execute(stmt)
        ]

    def _read_current_allocations(
        self, session: Session, budget_id: Optional[int]
    ) -> list[CurrentAllocationRow]:
        if budget_id is None:
            return []
        stmt = (
            select(
                CategoryAllocation.budget_id,
                CategoryAllocation.category_id,
                CategoryAllocation.budgeted_amount,
                Category.name,
                Category.is_system,
                CategoryGroup.name.label("group_name"),
                CategoryGroup.sort_order.label("group_sort_order"),
                CategoryGoal.id.label("goal_id"),
                CategoryGoal.goal_type,
                CategoryGoal.target_amount,
                CategoryGoal.target_date,
                CategoryGoal.monthly_amount,
            )
            .join(Category, Category.id == CategoryAllocation.category_id)
            .join(CategoryGroup, CategoryGroup.id == Category.group_id)
            .outerjoin(CategoryGoal, CategoryGoal.category_id == Category.id)
            .where(
                CategoryAllocation.budget_id == budget_id,
                Category.is_hidden.is_(False),
            )
            .order_by(Category.sort_order, Category.name, Category.id)
        )
        rows = []
        for row in session.execute(stmt):
            goal = None
            if row.goal_id is not None:
                goal = GoalRow(
                    id=row.goal_id,
                    goal_type=row.goal_type,
                    target_amount=row.target_amount,
                    target_date=row.target_date,
                    monthly_amount=row.monthly_amount,
                )
            rows.append(
                CurrentAllocationRow(
                    budget_id=row.budget_id,
                    category_id=row.category_id,
                    budgeted_amount=to_decimal(row.budgeted_amount),
                    name=row.name,
                    is_system=bool(row.is_system),
                    group_name=row.group_name,
                    group_sort_order=row.group_sort_order or 0,
                    goal=goal,
                )
            )
        return rows

    def _read_allocations(
        self, session: Session, budget_ids: list[int]
    ) -> list[AllocationRow]:
        if not budget_ids:
            return []
        stmt = select(
            CategoryAllocation.budget_id,
            CategoryAllocation.category_id,
            CategoryAllocation.budgeted_amount,
        ).where(CategoryAllocation.budget_id.in_(budget_ids))
        return [
            AllocationRow(
                budget_id=row.budget_id,
                category_id=row.category_id,
                budgeted_amount=to_decimal(row.budgeted_amount),
            )
            for row in session.execute(stmt)
        ]

    def _read_transactions(
        self,
        session: Session,
        account_ids: list[int],
        start: date,
        end: date,
    ) -> list[TransactionRow]:
        if not account_ids:
            return []
        stmt = (
            select(
                Transaction.account_id,
                Transaction.category_id,
                Transaction.amount,
                Transaction.date,
                Transaction.type,
                Transaction.parent_transaction_id,
                Transaction.is_split,
            )
            .where(
                Transaction.account_id.in_(account_ids),
                Transaction.date.between(start, end),
            )
            .order_by(Transaction.date, Transaction.id)
        )
        return [
            TransactionRow(
                account_id=row.account_id,
                category_id=row.category_id,
                amount=to_decimal(row.amount),
                date=row.date,
                type=row.type,
                parent_transaction_id=row.parent_transaction_id,
                is_split=bool(row.is_split),
            )
            for row in session.execute(stmt)
        ]

    def _read_income(
        self, session: Session, account_ids: list[int], end: date
    ) -> list[Decimal]:
        if not account_ids:
            return []
        stmt = select(Transaction.amount).where(
            Transaction.account_id.in_(account_ids),
            Transaction.type == TransactionType.income,
            Transaction.date <= end,
            Transaction.parent_transaction_id.is_(None),
        )
        return [to_decimal(amount) for amount in session.scalars(stmt)]
