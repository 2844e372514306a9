from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy.engine import Engine

from ledger import LedgerIndex, build_ledger_index
from loader import BudgetDataLoader, CurrentAllocationRow
from models import TransactionType
from money import ZERO, quantize_amount, total
from periods import MonthRef
from schemas import BudgetSummary, CategoryBalance, CategoryRow, Goal
from services import get_current_user_id

logger = logging.getLogger(__name__)


def credit_card_activity(
    index: LedgerIndex,
    account_id: int,
    payment_category_id: Optional[int],
    ref: MonthRef,
) -> Decimal:
    """
    Net movement of a credit account's payment pot for one month.

    A positive result raises the payment category's available amount (spending
    was funded from another category, or the card holds a credit balance); a
    negative result lowers it (a payment went out, or debt arrived unfunded).
    """
    charges = ZERO
    payments = ZERO
    for txn in index.transactions_by_account.get(account_id, ()):
        if not ref.contains(txn.date):
            continue
        if txn.type == TransactionType.expense:
            if txn.category_id is not None and txn.category_id != payment_category_id:
                # expenses are stored negative
                charges -= txn.amount
            elif (
                txn.category_id is None
                and not txn.is_split
                and txn.parent_transaction_id is None
            ):
                # uncategorized debt such as a starting balance
                payments -= txn.amount
        elif (
            txn.type == TransactionType.income
            and txn.category_id is None
            and txn.parent_transaction_id is None
        ):
            charges += txn.amount
        elif (
            txn.type == TransactionType.transfer
            and txn.amount > 0
            and txn.parent_transaction_id is None
        ):
            payments += txn.amount
    return charges - payments


def available_balance(
    index: LedgerIndex,
    category_id: int,
    window: Sequence[MonthRef],
    *,
    carry_negative: bool = False,
    exclude_account_id: Optional[int] = None,
    credit_account_id: Optional[int] = None,
) -> Decimal:
    """
    Roll the category's envelope forward through ``window`` (oldest first) and
    return the balance at its last month.

    A month without a budget row wipes out any debt carried into it. Otherwise
    positive balances always roll over and negative ones only when
    ``carry_negative`` is set.
    """
    available = ZERO
    for ref in window:
        budget_id = index.budget_for(ref)
        if budget_id is None:
            if available < 0:
                available = ZERO
            continue

        budgeted = index.budgeted(category_id, budget_id)
        activity = index.activity(category_id, ref, exclude_account_id)
        adjustment = ZERO
        if credit_account_id is not None:
            adjustment = credit_card_activity(
                index, credit_account_id, category_id, ref
            )
        rollover = available if (carry_negative or available > 0) else ZERO
        available = rollover + budgeted + activity + adjustment
    return available


def to_be_budgeted(index: LedgerIndex, ref: MonthRef) -> Decimal:
    budgeted = total(
        alloc.budgeted_amount
        for alloc in index.rows.allocations
        if alloc.budget_id in index.month_by_budget_id
        and index.month_by_budget_id[alloc.budget_id] <= ref
    )
    return index.income_total - budgeted


def category_amounts(index: LedgerIndex, category_id: int) -> tuple[Decimal, Decimal]:
    """Activity and available for the target month of ``index``.

    Payment categories of credit accounts carry debt forward, leave out the
    card's own transactions and fold in the card's monthly activity instead.
    """
    rows = index.rows
    credit_account_id = index.payment_account_for(category_id)
    activity = index.activity(category_id, rows.target, credit_account_id)
    available = available_balance(
        index,
        category_id,
        rows.window,
        carry_negative=credit_account_id is not None,
        exclude_account_id=credit_account_id,
        credit_account_id=credit_account_id,
    )
    return activity, available


def _goal_for(alloc: CurrentAllocationRow) -> Optional[Goal]:
    if alloc.goal is None:
        return None
    return Goal(
        id=alloc.goal.id,
        goal_type=alloc.goal.goal_type,
        target_amount=alloc.goal.target_amount,
        target_date=alloc.goal.target_date,
        monthly_amount=alloc.goal.monthly_amount,
    )


def assemble_summary(index: LedgerIndex) -> BudgetSummary:
    rows = index.rows
    if rows.budget is None:
        raise ValueError("A summary needs the target month's budget")
    target = rows.target

    ordered = sorted(
        rows.current_allocations,
        key=lambda alloc: (alloc.group_sort_order, alloc.group_name),
    )
    categories: list[CategoryRow] = []
    for alloc in ordered:
        activity, available = category_amounts(index, alloc.category_id)
        categories.append(
            CategoryRow(
                id=alloc.category_id,
                name=alloc.name,
                group_name=alloc.group_name,
                is_system=alloc.is_system,
                budgeted_amount=quantize_amount(alloc.budgeted_amount),
                activity_amount=quantize_amount(activity),
                available_amount=quantize_amount(available),
                goal=_goal_for(alloc),
            )
        )

    return BudgetSummary(
        id=rows.budget.id,
        month=target.month,
        year=target.year,
        to_be_budgeted=quantize_amount(to_be_budgeted(index, target)),
        categories=categories,
    )


class BudgetingEngine:
    def __init__(
        self,
        bind: Engine,
        user_id: Optional[int] = None,
        *,
        max_workers: Optional[int] = None,
    ) -> None:
        self.user_id = user_id or get_current_user_id()
        self.loader = BudgetDataLoader(bind, self.user_id, max_workers=max_workers)

    def _index(self, year: int, month: int, *, require_budget: bool) -> LedgerIndex:
        rows = self.loader.load(year, month, require_budget=require_budget)
        return build_ledger_index(rows)

    def summary(self, year: int, month: int) -> BudgetSummary:
        index = self._index(year, month, require_budget=True)
        summary = assemble_summary(index)
        logger.info(
            f"budget_summary: user_id={self.user_id} target={year}-{month:02d} "
            f"categories={len(summary.categories)} to_be_budgeted={summary.to_be_budgeted}"
        )
        return summary

    def category_balance(
        self, category_id: int, year: int, month: int
    ) -> CategoryBalance:
        index = self._index(year, month, require_budget=False)
        activity, available = category_amounts(index, category_id)
        return CategoryBalance(
            category_id=category_id,
            year=year,
            month=month,
            activity_amount=quantize_amount(activity),
            available_amount=quantize_amount(available),
        )

    def category_activity(
        self,
        category_id: int,
        year: int,
        month: int,
        exclude_account_id: Optional[int] = None,
    ) -> Decimal:
        index = self._index(year, month, require_budget=False)
        return quantize_amount(
            index.activity(category_id, index.rows.target, exclude_account_id)
        )

    def category_available(self, category_id: int, year: int, month: int) -> Decimal:
        return self.category_balance(category_id, year, month).available_amount

    def to_be_budgeted(self, year: int, month: int) -> Decimal:
        index = self._index(year, month, require_budget=False)
        return quantize_amount(to_be_budgeted(index, index.rows.target))
