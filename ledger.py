from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from loader import LedgerRows, TransactionRow
from money import ZERO, total
from periods import MonthRef

ActivityKey = tuple[int, int, int]  # (category_id, year, month)


@dataclass
class LedgerIndex:
    """
    In-memory lookups for one summary request.

    Built once from the loaded rows and then only read; every walk, credit-card
    and to-be-budgeted calculation takes it explicitly instead of touching
    storage.
    """

    rows: LedgerRows
    allocations_by_category: dict[int, dict[int, Decimal]] = field(
        default_factory=dict
    )
    activity_by_category_month: dict[ActivityKey, dict[int, Decimal]] = field(
        default_factory=dict
    )
    transactions_by_account: dict[int, list[TransactionRow]] = field(
        default_factory=dict
    )
    budget_id_by_month: dict[MonthRef, int] = field(default_factory=dict)
    month_by_budget_id: dict[int, MonthRef] = field(default_factory=dict)
    payment_account_by_category: dict[int, int] = field(default_factory=dict)
    income_total: Decimal = ZERO

    def budgeted(self, category_id: int, budget_id: int) -> Decimal:
        return self.allocations_by_category.get(category_id, {}).get(budget_id, ZERO)

    def activity(
        self,
        category_id: int,
        ref: MonthRef,
        exclude_account_id: Optional[int] = None,
    ) -> Decimal:
        by_account = self.activity_by_category_month.get(
            (category_id, ref.year, ref.month)
        )
        if not by_account:
            return ZERO
        return total(
            amount
            for account_id, amount in by_account.items()
            if exclude_account_id is None or account_id != exclude_account_id
        )

    def budget_for(self, ref: MonthRef) -> Optional[int]:
        return self.budget_id_by_month.get(ref)

    def payment_account_for(self, category_id: int) -> Optional[int]:
        return self.payment_account_by_category.get(category_id)


def build_ledger_index(rows: LedgerRows) -> LedgerIndex:
    index = LedgerIndex(rows=rows)

    for budget in rows.budgets:
        ref = budget.ref
        index.budget_id_by_month[ref] = budget.id
        index.month_by_budget_id[budget.id] = ref

    for account in rows.accounts:
        if account.payment_category_id is not None:
            index.payment_account_by_category[account.payment_category_id] = account.id

    for alloc in rows.allocations:
        index.allocations_by_category.setdefault(alloc.category_id, {})[
            alloc.budget_id
        ] = alloc.budgeted_amount

    by_account: dict[int, list[TransactionRow]] = defaultdict(list)
    activity: dict[ActivityKey, dict[int, Decimal]] = defaultdict(dict)
    for txn in rows.transactions:
        by_account[txn.account_id].append(txn)
        # split parents carry no category; their children are counted instead
        if txn.category_id is None or txn.is_split:
            continue
        bucket = activity[(txn.category_id, txn.date.year, txn.date.month)]
        bucket[txn.account_id] = bucket.get(txn.account_id, ZERO) + txn.amount
    index.transactions_by_account = dict(by_account)
    index.activity_by_category_month = dict(activity)

    index.income_total = total(rows.income_amounts)
    return index
