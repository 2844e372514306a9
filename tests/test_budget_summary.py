from datetime import date
from decimal import Decimal

import pytest

from budgeting import BudgetingEngine
from loader import BudgetNotFound
from models import AccountType, CategoryGroup, GoalType, TransactionType


def rows_by_name(summary):
    return {row.name: row for row in summary.categories}


def test_single_month_walk(engine, ledger) -> None:
    checking = ledger.checking()
    groceries = ledger.category(ledger.group("Everyday"), "Groceries")
    march = ledger.budget(2025, 3)
    ledger.allocate(march, groceries, "50.00")
    ledger.txn(checking, "-20.00", date(2025, 3, 10), category=groceries)
    ledger.commit()

    summary = BudgetingEngine(engine).summary(2025, 3)

    assert summary.id == march.id
    assert (summary.year, summary.month) == (2025, 3)
    row = rows_by_name(summary)["Groceries"]
    assert row.budgeted_amount == Decimal("50.00")
    assert row.activity_amount == Decimal("-20.00")
    assert row.available_amount == Decimal("30.00")
    assert row.group_name == "Everyday"
    assert row.goal is None


def test_overspending_does_not_roll_into_next_month(engine, ledger) -> None:
    checking = ledger.checking()
    groceries = ledger.category(ledger.group("Everyday"), "Groceries")
    march = ledger.budget(2025, 3)
    april = ledger.budget(2025, 4)
    may = ledger.budget(2025, 5)
    ledger.allocate(march, groceries, "50.00")
    ledger.allocate(april, groceries, "0")
    # no May allocation row for groceries
    ledger.allocate(may, ledger.category(ledger.group("Bills"), "Rent"), "0")
    ledger.txn(checking, "-20.00", date(2025, 3, 10), category=groceries)
    ledger.txn(checking, "-40.00", date(2025, 4, 2), category=groceries)
    ledger.commit()

    engine_ = BudgetingEngine(engine)
    april_row = rows_by_name(engine_.summary(2025, 4))["Groceries"]
    assert april_row.activity_amount == Decimal("-40.00")
    assert april_row.available_amount == Decimal("-10.00")

    assert engine_.category_available(groceries.id, 2025, 5) == Decimal("0.00")


def test_positive_balance_survives_month_without_budget(engine, ledger) -> None:
    checking = ledger.checking()
    savings = ledger.category(ledger.group("Goals"), "Vacation")
    jan = ledger.budget(2025, 1)
    mar = ledger.budget(2025, 3)
    ledger.allocate(jan, savings, "100.00")
    ledger.allocate(mar, savings, "25.00")
    ledger.txn(checking, "-10.00", date(2025, 3, 5), category=savings)
    ledger.commit()

    row = rows_by_name(BudgetingEngine(engine).summary(2025, 3))["Vacation"]
    assert row.available_amount == Decimal("115.00")


def test_lookback_ignores_history_older_than_window(engine, ledger) -> None:
    checking = ledger.checking()
    ledger.txn(checking, "2000.00", date(2023, 6, 1), type=TransactionType.income)
    fund = ledger.category(ledger.group("Goals"), "Emergency fund")
    old = ledger.budget(2023, 12)
    target = ledger.budget(2025, 12)
    ledger.allocate(old, fund, "500.00")
    ledger.allocate(target, fund, "10.00")
    ledger.txn(checking, "-3.00", date(2023, 12, 20), category=fund)
    ledger.commit()

    summary = BudgetingEngine(engine).summary(2025, 12)
    row = rows_by_name(summary)["Emergency fund"]
    assert row.available_amount == Decimal("10.00")
    assert row.activity_amount == Decimal("0.00")
    # to-be-budgeted is all-time, not windowed
    assert summary.to_be_budgeted == Decimal("1490.00")


def test_to_be_budgeted_counts_only_months_up_to_target(engine, ledger) -> None:
    checking = ledger.checking()
    rent = ledger.category(ledger.group("Bills"), "Rent")
    ledger.txn(checking, "1000.00", date(2025, 1, 3), type=TransactionType.income)
    ledger.txn(checking, "400.00", date(2025, 2, 3), type=TransactionType.income)
    jan = ledger.budget(2025, 1)
    feb = ledger.budget(2025, 2)
    ledger.allocate(jan, rent, "300.00")
    ledger.allocate(feb, rent, "200.00")
    ledger.commit()

    budgeting = BudgetingEngine(engine)
    assert budgeting.summary(2025, 1).to_be_budgeted == Decimal("700.00")
    assert budgeting.summary(2025, 2).to_be_budgeted == Decimal("900.00")

    mar = ledger.budget(2025, 3)
    ledger.allocate(mar, rent, "400.00")
    ledger.commit()

    assert budgeting.summary(2025, 1).to_be_budgeted == Decimal("700.00")
    assert budgeting.to_be_budgeted(2025, 3) == Decimal("500.00")


def test_to_be_budgeted_income_rules(engine, ledger) -> None:
    checking = ledger.checking()
    investment_type = ledger.account_type("Investment", is_budget_account=False)
    brokerage = ledger.account("Brokerage", investment_type)
    tracked = ledger.account("Tracked brokerage", investment_type, on_budget=True)
    side_account = ledger.checking("Side checking", on_budget=False)
    ledger.budget(2025, 1)

    ledger.txn(checking, "500.00", date(2025, 1, 2), type=TransactionType.income)
    ledger.txn(tracked, "50.00", date(2025, 1, 2), type=TransactionType.income)
    ledger.txn(brokerage, "999.00", date(2025, 1, 2), type=TransactionType.income)
    ledger.txn(side_account, "77.00", date(2025, 1, 2), type=TransactionType.income)
    parent = ledger.txn(
        checking, "100.00", date(2025, 1, 4), type=TransactionType.income, is_split=True
    )
    ledger.txn(
        checking, "100.00", date(2025, 1, 4), type=TransactionType.income, parent=parent
    )
    ledger.txn(checking, "250.00", date(2025, 2, 1), type=TransactionType.income)
    ledger.commit()

    assert BudgetingEngine(engine).to_be_budgeted(2025, 1) == Decimal("650.00")


def test_hidden_categories_are_excluded(engine, ledger) -> None:
    group = ledger.group("Everyday")
    visible = ledger.category(group, "Groceries")
    hidden = ledger.category(group, "Old card payment", is_hidden=True)
    budget = ledger.budget(2025, 5)
    ledger.allocate(budget, visible, "10.00")
    ledger.allocate(budget, hidden, "20.00")
    ledger.commit()

    summary = BudgetingEngine(engine).summary(2025, 5)
    assert [row.name for row in summary.categories] == ["Groceries"]
    # hidden allocations still count as budgeted money
    assert summary.to_be_budgeted == Decimal("-30.00")


def test_visibility_is_per_category_not_per_group(engine, ledger) -> None:
    assert "is_hidden" not in CategoryGroup.__table__.c
    group = ledger.group("Archive")
    ledger.category(group, "Old rent", is_hidden=True)
    kept = ledger.category(group, "Storage unit")
    budget = ledger.budget(2025, 5)
    ledger.allocate(budget, kept, "15.00")
    ledger.commit()

    summary = BudgetingEngine(engine).summary(2025, 5)
    assert [(row.group_name, row.name) for row in summary.categories] == [
        ("Archive", "Storage unit")
    ]


def test_rows_sorted_by_group_order_then_name(engine, ledger) -> None:
    payments = ledger.group("Credit Card Payments", sort_order=9999)
    bills = ledger.group("Bills", sort_order=1)
    alpha = ledger.group("Alpha", sort_order=1)
    zeta = ledger.group("Zeta", sort_order=0)
    budget = ledger.budget(2025, 6)
    for group, name in [
        (payments, "Visa"),
        (bills, "Rent"),
        (alpha, "Books"),
        (zeta, "Misc"),
        (bills, "Electric"),
    ]:
        ledger.allocate(budget, ledger.category(group, name), "0")
    ledger.commit()

    budgeting = BudgetingEngine(engine)
    first = budgeting.summary(2025, 6)
    second = budgeting.summary(2025, 6)

    assert [(r.group_name, r.name) for r in first.categories] == [
        ("Zeta", "Misc"),
        ("Alpha", "Books"),
        ("Bills", "Electric"),
        ("Bills", "Rent"),
        ("Credit Card Payments", "Visa"),
    ]
    assert first == second


def test_goal_is_attached_to_row(engine, ledger) -> None:
    vacation = ledger.category(ledger.group("Goals"), "Vacation")
    ledger.goal(
        vacation,
        GoalType.target_balance_by_date,
        target_amount=Decimal("1200.00"),
        target_date=date(2025, 12, 1),
    )
    budget = ledger.budget(2025, 2)
    ledger.allocate(budget, vacation, "100.00")
    ledger.commit()

    row = rows_by_name(BudgetingEngine(engine).summary(2025, 2))["Vacation"]
    assert row.goal is not None
    assert row.goal.goal_type == GoalType.target_balance_by_date
    assert row.goal.target_amount == Decimal("1200.00")
    assert row.goal.target_date == date(2025, 12, 1)
    assert row.goal.monthly_amount is None


def test_split_parent_is_not_counted_twice(engine, ledger) -> None:
    checking = ledger.checking()
    group = ledger.group("Everyday")
    groceries = ledger.category(group, "Groceries")
    household = ledger.category(group, "Household")
    budget = ledger.budget(2025, 4)
    ledger.allocate(budget, groceries, "100.00")
    ledger.allocate(budget, household, "100.00")
    parent = ledger.txn(checking, "-90.00", date(2025, 4, 9), is_split=True)
    ledger.txn(checking, "-60.00", date(2025, 4, 9), category=groceries, parent=parent)
    ledger.txn(checking, "-30.00", date(2025, 4, 9), category=household, parent=parent)
    ledger.commit()

    rows = rows_by_name(BudgetingEngine(engine).summary(2025, 4))
    assert rows["Groceries"].activity_amount == Decimal("-60.00")
    assert rows["Household"].available_amount == Decimal("70.00")


def test_missing_budget_raises_not_found(engine, ledger) -> None:
    ledger.budget(2025, 1)
    ledger.commit()

    with pytest.raises(BudgetNotFound):
        BudgetingEngine(engine).summary(2025, 2)


def test_category_activity_can_exclude_an_account(engine, ledger) -> None:
    checking = ledger.checking()
    other = ledger.checking("Joint")
    dining = ledger.category(ledger.group("Everyday"), "Dining")
    ledger.txn(checking, "-12.50", date(2025, 7, 1), category=dining)
    ledger.txn(other, "-7.25", date(2025, 7, 2), category=dining)
    ledger.commit()

    budgeting = BudgetingEngine(engine)
    assert budgeting.category_activity(dining.id, 2025, 7) == Decimal("-19.75")
    assert budgeting.category_activity(
        dining.id, 2025, 7, exclude_account_id=other.id
    ) == Decimal("-12.50")
    # no budgets at all: nothing has been available yet
    assert budgeting.category_available(dining.id, 2025, 7) == Decimal("0.00")


def test_other_users_rows_are_ignored(engine, ledger) -> None:
    groceries = ledger.category(ledger.group("Everyday"), "Groceries")
    budget = ledger.budget(2025, 3)
    ledger.allocate(budget, groceries, "40.00")

    ledger.user_id = 2
    stranger_account = ledger.checking("Stranger")
    ledger.budget(2025, 3)
    ledger.txn(stranger_account, "-15.00", date(2025, 3, 3), category=groceries)
    ledger.txn(stranger_account, "900.00", date(2025, 3, 3), type=TransactionType.income)
    ledger.commit()

    summary = BudgetingEngine(engine, user_id=1).summary(2025, 3)
    row = rows_by_name(summary)["Groceries"]
    assert row.activity_amount == Decimal("0.00")
    assert summary.to_be_budgeted == Decimal("-40.00")
